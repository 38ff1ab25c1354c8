"""Auth service — registration, e-mail verification, login and tokens.

Learn: the registration flow is
    register → 6-digit code mailed (valid 10 min) → verify-email → login
A user who never receives the mail is rolled back, so the address can be
used again right away instead of being stuck as an unverified account.
"""

import secrets
import uuid
from datetime import timedelta

import structlog
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from peerconnect.auth.jwt import REFRESH, TokenError, create_token_pair, verify_token
from peerconnect.auth.password import hash_password, verify_password
from peerconnect.config import settings
from peerconnect.db.models import User, UserRole, UserStatus, utcnow
from peerconnect.errors import (
    BadRequestError,
    ConflictError,
    UnauthorizedError,
    UpstreamError,
)
from peerconnect.services.mailer import MailDeliveryError, MailerService
from peerconnect.services.topic_service import TopicService

logger = structlog.get_logger()


def generate_verification_code() -> str:
    return str(100000 + secrets.randbelow(900000))


class AuthService:
    """Business logic for accounts and credentials."""

    def __init__(self, db: AsyncSession, mailer: MailerService | None = None):
        self.db = db
        self.mailer = mailer or MailerService()
        self.topics = TopicService(db)

    # ─── Registration ───────────────────────────────────

    async def register(
        self,
        email: str,
        password: str,
        first_name: str,
        last_name: str,
        profile_picture: str | None = None,
        bio: str | None = None,
        topic_ids: list[uuid.UUID] | None = None,
    ) -> User:
        """Create an unverified account and mail its verification code.

        With topic_ids the selection is stored too and the profile counts
        as completed.
        """
        email = email.lower()
        if await self.get_by_email(email):
            raise ConflictError("User with this email already exists")

        if topic_ids is not None:
            await self.topics.ensure_topics_exist(topic_ids)

        code = generate_verification_code()
        user = User(
            email=email,
            password_hash=hash_password(password),
            first_name=first_name,
            last_name=last_name,
            profile_picture=profile_picture,
            bio=bio,
            role=UserRole.USER,
            email_verification_code=code,
            email_verification_expires=utcnow()
            + timedelta(minutes=settings.verification_code_ttl_minutes),
            profile_completed=topic_ids is not None,
        )
        self.db.add(user)
        await self.db.flush()
        if topic_ids is not None:
            await self.topics.replace_user_topics(user.id, topic_ids)
        await self.db.commit()

        try:
            await self.mailer.send_verification_email(user.email, code, first_name)
        except MailDeliveryError:
            await self.db.delete(user)
            await self.db.commit()
            logger.warning("auth.register_rolled_back", email=email)
            raise UpstreamError(
                "Failed to send verification email. Please try again later."
            )

        logger.info(
            "auth.registered",
            user_id=str(user.id),
            with_topics=topic_ids is not None,
        )
        return user

    async def verify_email(self, email: str, code: str) -> User:
        result = await self.db.execute(
            select(User).where(
                User.email == email.lower(),
                User.email_verification_code == code,
                User.email_verification_expires > utcnow(),
            )
        )
        user = result.scalars().first()
        if not user:
            raise BadRequestError("Invalid or expired verification code")

        user.is_email_verified = True
        user.email_verification_code = None
        user.email_verification_expires = None
        await self.db.commit()
        logger.info("auth.email_verified", user_id=str(user.id))

        try:
            await self.mailer.send_welcome_email(user.email, user.first_name)
        except MailDeliveryError as e:
            logger.warning("auth.welcome_mail_failed", user_id=str(user.id), error=str(e))
        return user

    async def resend_verification(self, email: str) -> None:
        user = await self.get_by_email(email.lower())
        if not user:
            raise BadRequestError("User not found")
        if user.is_email_verified:
            raise BadRequestError("Email is already verified")

        code = generate_verification_code()
        user.email_verification_code = code
        user.email_verification_expires = utcnow() + timedelta(
            minutes=settings.verification_code_ttl_minutes
        )
        await self.db.commit()

        try:
            await self.mailer.send_verification_email(user.email, code, user.first_name)
        except MailDeliveryError:
            raise UpstreamError(
                "Failed to send verification email. Please try again later."
            )

    # ─── Sessions ───────────────────────────────────────

    async def login(self, email: str, password: str) -> tuple[User, dict]:
        user = await self.get_by_email(email.lower())
        if not user:
            raise UnauthorizedError("Invalid credentials")
        if not user.is_email_verified:
            raise UnauthorizedError("Please verify your email before logging in")
        if not verify_password(password, user.password_hash):
            logger.info("auth.login_failed", user_id=str(user.id))
            raise UnauthorizedError("Invalid credentials")

        user.status = UserStatus.ONLINE
        await self.db.commit()
        logger.info("auth.login_succeeded", user_id=str(user.id))
        return user, self.issue_tokens(user)

    async def refresh(self, refresh_token: str) -> dict:
        try:
            payload = verify_token(refresh_token, expected_type=REFRESH)
            user_id = uuid.UUID(payload["sub"])
        except (TokenError, ValueError):
            raise UnauthorizedError("Invalid refresh token")

        user = await self.db.get(User, user_id)
        if not user:
            raise UnauthorizedError("Invalid refresh token")
        if not user.is_email_verified:
            raise UnauthorizedError("Email not verified")
        return self.issue_tokens(user)

    async def logout(self, user: User) -> None:
        user.status = UserStatus.OFFLINE
        await self.db.commit()

    @staticmethod
    def issue_tokens(user: User) -> dict:
        return create_token_pair(str(user.id), user.email, user.role)

    # ─── Profile ────────────────────────────────────────

    async def complete_profile(
        self,
        user: User,
        topic_ids: list[uuid.UUID],
        bio: str | None = None,
        profile_picture: str | None = None,
    ) -> User:
        if user.profile_completed:
            raise BadRequestError("Profile is already completed")
        await self.topics.ensure_topics_exist(topic_ids)

        if bio is not None:
            user.bio = bio
        if profile_picture is not None:
            user.profile_picture = profile_picture
        await self.topics.replace_user_topics(user.id, topic_ids)
        user.profile_completed = True
        await self.db.commit()
        logger.info("auth.profile_completed", user_id=str(user.id))
        return user

    async def update_user(self, user: User, changes: dict) -> User:
        email = changes.get("email")
        if email and email.lower() != user.email:
            if await self.get_by_email(email.lower()):
                raise ConflictError("User with this email already exists")
            changes["email"] = email.lower()

        for field, value in changes.items():
            setattr(user, field, value)
        await self.db.commit()
        return user

    async def get_by_email(self, email: str) -> User | None:
        result = await self.db.execute(select(User).where(User.email == email))
        return result.scalars().first()
