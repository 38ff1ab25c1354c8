"""User profile API and role-gated probe endpoints.

Learn: the three */-only routes do nothing but echo the caller. They let
clients (and the test suite) check what a token's role is allowed to do.
"""

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from peerconnect.auth.guards import admin_only, any_authenticated, listener_only, user_only
from peerconnect.db.engine import get_db
from peerconnect.db.models import User
from peerconnect.schemas.auth import RoleProbeResponse, UpdateUserRequest, UserRead
from peerconnect.services.auth_service import AuthService

router = APIRouter(prefix="/users")


@router.get("/profile", response_model=UserRead)
async def get_profile(user: User = Depends(any_authenticated)):
    return user


@router.patch("/profile", response_model=UserRead)
async def update_profile(
    body: UpdateUserRequest,
    user: User = Depends(any_authenticated),
    db: AsyncSession = Depends(get_db),
):
    return await AuthService(db).update_user(user, body.model_dump(exclude_unset=True))


@router.get("/admin-only", response_model=RoleProbeResponse)
async def admin_probe(user: User = Depends(admin_only)):
    return RoleProbeResponse(message="Welcome, admin", user=user)


@router.get("/listener-only", response_model=RoleProbeResponse)
async def listener_probe(user: User = Depends(listener_only)):
    return RoleProbeResponse(message="Welcome, listener", user=user)


@router.get("/user-only", response_model=RoleProbeResponse)
async def user_probe(user: User = Depends(user_only)):
    return RoleProbeResponse(message="Welcome, user", user=user)
