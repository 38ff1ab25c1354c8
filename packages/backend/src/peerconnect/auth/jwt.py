"""JWT token creation and verification.

Learn: JWT (JSON Web Token) provides stateless authentication.
- Access token: short-lived (15 min), sent as "Authorization: Bearer ..."
  and as ?token= on the chat WebSocket
- Refresh token: long-lived (7 days), signed with its own secret,
  only accepted by POST /auth/refresh

Both carry {sub, email, role}; the "type" claim stops a refresh token from
being replayed as an access token and vice versa.
"""

from datetime import datetime, timedelta, timezone
from typing import Optional

import jwt

from peerconnect.config import settings

ACCESS = "access"
REFRESH = "refresh"


class TokenError(Exception):
    """Raised when token verification fails."""


def _secret_for(token_type: str) -> str:
    return settings.refresh_secret if token_type == REFRESH else settings.jwt_secret


def _encode(claims: dict, token_type: str, lifetime: timedelta) -> tuple[str, datetime]:
    now = datetime.now(timezone.utc)
    expires = now + lifetime
    payload = {**claims, "type": token_type, "iat": now, "exp": expires}
    token = jwt.encode(
        payload, _secret_for(token_type), algorithm=settings.jwt_algorithm
    )
    return token, expires


def create_access_token(
    user_id: str,
    email: str,
    role: str,
    expires_minutes: Optional[int] = None,
) -> str:
    """Create a JWT access token."""
    token, _ = _encode(
        {"sub": user_id, "email": email, "role": role},
        ACCESS,
        timedelta(minutes=expires_minutes or settings.access_token_expire_minutes),
    )
    return token


def create_refresh_token(
    user_id: str,
    email: str,
    role: str,
    expires_days: Optional[int] = None,
) -> str:
    """Create a JWT refresh token."""
    token, _ = _encode(
        {"sub": user_id, "email": email, "role": role},
        REFRESH,
        timedelta(days=expires_days or settings.refresh_token_expire_days),
    )
    return token


def create_token_pair(user_id: str, email: str, role: str) -> dict:
    """Access + refresh token, plus the access expiry in epoch milliseconds."""
    claims = {"sub": user_id, "email": email, "role": role}
    access, expires = _encode(
        claims, ACCESS, timedelta(minutes=settings.access_token_expire_minutes)
    )
    refresh, _ = _encode(
        claims, REFRESH, timedelta(days=settings.refresh_token_expire_days)
    )
    return {
        "access_token": access,
        "refresh_token": refresh,
        "expires_in": int(expires.timestamp()) * 1000,
    }


def verify_token(token: str, expected_type: str = ACCESS) -> dict:
    """Verify and decode a JWT token.

    Returns the payload dict on success.
    Raises TokenError on failure (bad signature, expired, wrong type).
    """
    try:
        payload = jwt.decode(
            token, _secret_for(expected_type), algorithms=[settings.jwt_algorithm]
        )
    except jwt.ExpiredSignatureError:
        raise TokenError("Token has expired")
    except jwt.InvalidTokenError as e:
        raise TokenError(f"Invalid token: {e}")

    if payload.get("type") != expected_type:
        raise TokenError(f"Invalid token: expected {expected_type} token")
    if not payload.get("sub"):
        raise TokenError("Invalid token: missing subject")
    return payload
