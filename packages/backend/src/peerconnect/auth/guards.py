"""Role-based route guards.

Learn: A guard is a callable dependency. Because it depends on the *soft*
auth dependency, it sees "no user" itself and answers 403 "Authentication
required" before it ever looks at a role:

    @router.post("/topics", dependencies=[Depends(admin_only)])

or, when the handler needs the user:

    async def create(user: User = Depends(listener_or_admin)): ...
"""

from typing import Optional

import structlog
from fastapi import Depends, HTTPException

from peerconnect.auth.dependencies import get_current_user_optional
from peerconnect.db.models import User, UserRole

logger = structlog.get_logger()


class RoleGuard:
    """Allow the request only if the current user holds one of `roles`."""

    def __init__(self, *roles: UserRole, detail: Optional[str] = None):
        self.roles = tuple(roles)
        self.detail = detail or (
            "Access denied. Required roles: " + ", ".join(r.value for r in self.roles)
        )

    async def __call__(
        self, user: Optional[User] = Depends(get_current_user_optional)
    ) -> User:
        if user is None:
            logger.warning("auth.guard_denied", reason="unauthenticated")
            raise HTTPException(status_code=403, detail="Authentication required")

        if user.role not in self.roles:
            logger.warning(
                "auth.guard_denied",
                user_id=str(user.id),
                role=user.role,
                required=[r.value for r in self.roles],
            )
            raise HTTPException(status_code=403, detail=self.detail)

        logger.debug("auth.guard_granted", user_id=str(user.id), role=user.role)
        return user


admin_only = RoleGuard(UserRole.ADMIN, detail="Admin access required")
listener_only = RoleGuard(UserRole.LISTENER, detail="Listener access required")
user_only = RoleGuard(UserRole.USER, detail="User access required")
listener_or_admin = RoleGuard(UserRole.LISTENER, UserRole.ADMIN)
any_authenticated = RoleGuard(UserRole.USER, UserRole.LISTENER, UserRole.ADMIN)
