"""Auth API — registration, e-mail verification, login, profile completion.

Learn: Routes for the account lifecycle:
- POST /auth/register → unverified account + mailed 6-digit code
- POST /auth/register-with-topics → same, with 3–5 topics picked up front
- GET  /auth/verify-email?email=&code= → mark the e-mail verified
- POST /auth/resend-verification → fresh code
- POST /auth/login → user + {accessToken, refreshToken, expiresIn}
- POST /auth/refresh → new token pair
- POST /auth/complete-profile, GET /auth/profile-completion (guarded)
"""

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from peerconnect.auth.dependencies import get_current_user
from peerconnect.db.engine import get_db
from peerconnect.db.models import User
from peerconnect.schemas.auth import (
    CompleteProfileRequest,
    LoginRequest,
    LoginResponse,
    ProfileCompletionStatus,
    RefreshRequest,
    RegisterRequest,
    RegisterResponse,
    RegisterWithTopicsRequest,
    ResendVerificationRequest,
    TokenPair,
    UserRead,
)
from peerconnect.schemas.base import MessageResponse
from peerconnect.services.auth_service import AuthService

router = APIRouter(prefix="/auth")


def _svc(db: AsyncSession = Depends(get_db)) -> AuthService:
    return AuthService(db)


# ─── Registration ────────────────────────────────────────


@router.post("/register", response_model=RegisterResponse, status_code=201)
async def register(body: RegisterRequest, svc: AuthService = Depends(_svc)):
    user = await svc.register(**body.model_dump())
    return RegisterResponse(
        message="Registration successful. Please check your email for verification code.",
        user_id=user.id,
    )


@router.post("/register-with-topics", response_model=RegisterResponse, status_code=201)
async def register_with_topics(
    body: RegisterWithTopicsRequest, svc: AuthService = Depends(_svc)
):
    user = await svc.register(**body.model_dump())
    return RegisterResponse(
        message=(
            "Registration with topics successful. "
            "Please check your email for verification code."
        ),
        user_id=user.id,
    )


@router.get("/verify-email", response_model=UserRead)
async def verify_email(
    email: str = Query(..., min_length=3),
    code: str = Query(..., min_length=6, max_length=6),
    svc: AuthService = Depends(_svc),
):
    return await svc.verify_email(email, code)


@router.post("/resend-verification", response_model=MessageResponse)
async def resend_verification(
    body: ResendVerificationRequest, svc: AuthService = Depends(_svc)
):
    await svc.resend_verification(body.email)
    return MessageResponse(
        message="Verification code sent successfully. Please check your email."
    )


# ─── Sessions ────────────────────────────────────────────


@router.post("/login", response_model=LoginResponse)
async def login(body: LoginRequest, svc: AuthService = Depends(_svc)):
    """Login with email and password → user + JWT tokens."""
    user, tokens = await svc.login(body.email, body.password)
    return LoginResponse(
        **UserRead.model_validate(user).model_dump(),
        **tokens,
    )


@router.post("/refresh", response_model=TokenPair)
async def refresh(body: RefreshRequest, svc: AuthService = Depends(_svc)):
    return TokenPair(**await svc.refresh(body.refresh_token))


@router.post("/logout", response_model=MessageResponse)
async def logout(
    user: User = Depends(get_current_user), svc: AuthService = Depends(_svc)
):
    await svc.logout(user)
    return MessageResponse(message="Logged out")


@router.get("/me", response_model=UserRead)
async def me(user: User = Depends(get_current_user)):
    return user


# ─── Profile completion ──────────────────────────────────


@router.post("/complete-profile", response_model=UserRead)
async def complete_profile(
    body: CompleteProfileRequest,
    user: User = Depends(get_current_user),
    svc: AuthService = Depends(_svc),
):
    return await svc.complete_profile(
        user,
        topic_ids=body.topic_ids,
        bio=body.bio,
        profile_picture=body.profile_picture,
    )


@router.get("/profile-completion", response_model=ProfileCompletionStatus)
async def profile_completion(user: User = Depends(get_current_user)):
    return ProfileCompletionStatus(profile_completed=user.profile_completed)
