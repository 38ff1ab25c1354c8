"""FastAPI auth dependencies.

Learn: These are used as Depends() in route handlers to resolve the bearer
token into a User row. The token alone is not trusted: the user must still
exist and have a verified e-mail, so deleting or un-verifying an account
takes effect before its tokens expire.
"""

import uuid
from typing import Optional

from fastapi import Depends, Header, HTTPException
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from peerconnect.auth.jwt import TokenError, verify_token
from peerconnect.db.engine import get_db
from peerconnect.db.models import User
from peerconnect.errors import UnauthorizedError


async def authenticate_token(token: str, db: AsyncSession) -> User:
    """Resolve an access token to a verified user.

    Shared by the HTTP dependencies and the chat WebSocket handshake.
    Raises UnauthorizedError on any failure.
    """
    try:
        payload = verify_token(token)
        user_id = uuid.UUID(payload["sub"])
    except (TokenError, ValueError) as e:
        raise UnauthorizedError(str(e))

    result = await db.execute(select(User).where(User.id == user_id))
    user = result.scalars().first()
    if not user:
        raise UnauthorizedError("User not found")
    if not user.is_email_verified:
        raise UnauthorizedError("Email not verified")
    return user


async def get_current_user_optional(
    authorization: Optional[str] = Header(None),
    db: AsyncSession = Depends(get_db),
) -> Optional[User]:
    """Current user, or None when no bearer token was sent.

    Learn: This is the "soft" auth dependency. A token that IS sent but
    doesn't check out is still a 401; only its absence yields None.
    """
    if not authorization or not authorization.startswith("Bearer "):
        return None
    try:
        return await authenticate_token(authorization[7:], db)
    except UnauthorizedError as e:
        raise HTTPException(
            status_code=401,
            detail=e.message,
            headers={"WWW-Authenticate": "Bearer"},
        )


async def get_current_user(
    user: Optional[User] = Depends(get_current_user_optional),
) -> User:
    """Current user (required — 401 if no auth)."""
    if not user:
        raise HTTPException(
            status_code=401,
            detail="Authentication required",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return user
