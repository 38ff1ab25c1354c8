"""Password hashing utilities.

Learn: bcrypt salts automatically and is deliberately slow. The work factor
comes from settings (10 in production, lowered in the test suite so
registration-heavy tests stay fast). Passwords are truncated to 72 bytes,
bcrypt's input limit.
"""

import bcrypt

from peerconnect.config import settings


def hash_password(password: str) -> str:
    """Hash a password with bcrypt ("$2b$..." output)."""
    pw_bytes = password.encode("utf-8")[:72]
    salt = bcrypt.gensalt(rounds=settings.bcrypt_rounds)
    return bcrypt.hashpw(pw_bytes, salt).decode("utf-8")


def verify_password(password: str, password_hash: str) -> bool:
    """Verify a password against its hash. Malformed hashes never match."""
    try:
        pw_bytes = password.encode("utf-8")[:72]
        return bcrypt.checkpw(pw_bytes, password_hash.encode("utf-8"))
    except (ValueError, TypeError):
        return False
