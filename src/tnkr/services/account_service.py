"""Account service — registration, email verification, login, passwords, profile.

Learn: Account lifecycle:
  register → (verification email) → verify-email → login
  forgot-password → (reset email) → reset-password

Verification and reset codes are random 64-char hex strings stored in
verification_tokens with an expiry. Codes are single-use: a successful
verify/reset deletes the row.

Emails go through EmailDispatcher (detached task), so an SMTP outage
never fails registration or a reset request.

Every profile mutation invalidates the cached profile read after its
commit.
"""

import secrets
import uuid
from datetime import datetime, timedelta, timezone
from typing import Optional

import structlog
from botocore.exceptions import BotoCoreError, ClientError
from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from tnkr.auth.jwt import create_access_token
from tnkr.auth.password import hash_password, verify_password
from tnkr.cache import cache_key, invalidate_cache
from tnkr.config import settings
from tnkr.db.models import TokenType, User, UserRole, VerificationToken
from tnkr.errors import (
    AuthenticationError,
    ConflictError,
    DependencyUnavailable,
    NotFoundError,
    PermissionDenied,
    ValidationFailure,
)
from tnkr.notifications.mailer import (
    EmailDispatcher,
    password_reset_email,
    verification_email,
)
from tnkr.storage.s3 import ObjectStorage, StoredFile

logger = structlog.get_logger()

PROFILE_PAGE = "profile"
SELF_ASSIGNABLE_ROLES = {UserRole.CUSTOMER.value, UserRole.TECHNICIAN.value}


def generate_code() -> str:
    return secrets.token_hex(32)


def as_utc(value: datetime) -> datetime:
    """SQLite hands back naive datetimes; treat them as UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


class AccountService:
    def __init__(
        self,
        db: AsyncSession,
        storage: Optional[ObjectStorage] = None,
        emails: Optional[EmailDispatcher] = None,
    ):
        self.db = db
        self.storage = storage
        self.emails = emails

    # ─── Lookups ─────────────────────────────────────────

    async def get_user(self, user_id: uuid.UUID) -> User:
        user = await self.db.get(User, user_id)
        if user is None:
            raise NotFoundError("User not found")
        return user

    async def _by_email(self, email: str) -> Optional[User]:
        result = await self.db.execute(select(User).where(User.email == email))
        return result.scalars().first()

    async def _by_username(self, username: str) -> Optional[User]:
        result = await self.db.execute(select(User).where(User.username == username))
        return result.scalars().first()

    async def _issue_token(self, email: str, token_type: TokenType, hours: int) -> str:
        code = generate_code()
        self.db.add(
            VerificationToken(
                code=code,
                email=email,
                type=token_type.value,
                expires_at=datetime.now(timezone.utc) + timedelta(hours=hours),
            )
        )
        return code

    async def _consume_token(self, code: str, token_type: TokenType, label: str) -> VerificationToken:
        result = await self.db.execute(
            select(VerificationToken).where(
                VerificationToken.code == code,
                VerificationToken.type == token_type.value,
            )
        )
        token = result.scalars().first()
        if token is None:
            raise ValidationFailure(f"Invalid {label} code")
        if as_utc(token.expires_at) < datetime.now(timezone.utc):
            raise ValidationFailure(f"{label.capitalize()} code has expired")
        return token

    # ─── Registration ────────────────────────────────────

    async def register(
        self,
        *,
        first_name: str,
        last_name: str,
        username: str,
        email: str,
        password: str,
        phone: Optional[str] = None,
        role: Optional[str] = None,
        photo: Optional[StoredFile] = None,
    ) -> User:
        """Create an unverified account and send the verification email."""
        role = (role or UserRole.CUSTOMER.value).upper()
        if role not in SELF_ASSIGNABLE_ROLES:
            raise ValidationFailure(f"Invalid role: {role}")
        if len(password) < 8:
            raise ValidationFailure("Password must be at least 8 characters")

        if await self._by_username(username):
            raise ConflictError("Username already exists")
        if await self._by_email(email):
            raise ConflictError("Email already exists")

        user = User(
            first_name=first_name,
            last_name=last_name,
            phone=phone,
            username=username,
            email=email,
            role=role,
            password_hash=hash_password(password),
            is_verified=False,
        )
        self.db.add(user)
        await self.db.flush()  # need the id for the picture key

        if photo is not None:
            try:
                user.profile_picture_url = await self.storage.upload_profile_picture(
                    photo, str(user.id)
                )
            except (BotoCoreError, ClientError) as e:
                await self.db.rollback()
                logger.error("account.picture_upload_failed", error=str(e))
                raise DependencyUnavailable("Failed to upload profile picture")

        code = await self._issue_token(
            email, TokenType.EMAIL_VERIFICATION, settings.email_verification_expire_hours
        )
        await self.db.commit()

        self.emails.dispatch(verification_email(email, code))
        logger.info("account.registered", user_id=str(user.id), role=role)
        return user

    async def verify_email(self, code: str) -> None:
        token = await self._consume_token(code, TokenType.EMAIL_VERIFICATION, "verification")
        user = await self._by_email(token.email)
        if user is None:
            raise NotFoundError("User not found")
        user.is_verified = True
        await self.db.delete(token)
        await self.db.commit()
        logger.info("account.email_verified", user_id=str(user.id))

    async def resend_verification(self, email: str) -> None:
        user = await self._by_email(email)
        if user is None:
            raise NotFoundError("User not found")
        if user.is_verified:
            raise ValidationFailure("Email is already verified")

        await self.db.execute(
            delete(VerificationToken).where(
                VerificationToken.email == email,
                VerificationToken.type == TokenType.EMAIL_VERIFICATION.value,
            )
        )
        code = await self._issue_token(
            email, TokenType.EMAIL_VERIFICATION, settings.email_verification_expire_hours
        )
        await self.db.commit()
        self.emails.dispatch(verification_email(email, code))

    # ─── Login ───────────────────────────────────────────

    async def login(self, email: Optional[str], password: Optional[str]) -> tuple[str, User]:
        """Return (access token, user) for valid, verified credentials."""
        if not email or not password:
            raise ValidationFailure("Email and password are required")

        user = await self._by_email(email)
        if user is None or not verify_password(password, user.password_hash):
            raise AuthenticationError("Invalid email or password")
        if not user.is_verified:
            raise PermissionDenied("Please verify your email before logging in")

        token = create_access_token(
            str(user.id), user.role, email=user.email, username=user.username
        )
        logger.info("account.login", user_id=str(user.id))
        return token, user

    # ─── Password reset ──────────────────────────────────

    async def forgot_password(self, email: str) -> None:
        """Email a reset link if the account exists. Silent otherwise."""
        user = await self._by_email(email)
        if user is None:
            return
        code = await self._issue_token(
            email, TokenType.PASSWORD_RESET, settings.password_reset_expire_hours
        )
        await self.db.commit()
        self.emails.dispatch(password_reset_email(email, code))

    async def reset_password(self, code: str, new_password: str) -> None:
        token = await self._consume_token(code, TokenType.PASSWORD_RESET, "reset")
        user = await self._by_email(token.email)
        if user is None:
            raise NotFoundError("User not found")
        user.password_hash = hash_password(new_password)
        await self.db.delete(token)
        await self.db.commit()
        logger.info("account.password_reset", user_id=str(user.id))

    # ─── Profile ─────────────────────────────────────────

    async def update_profile(self, user_id: uuid.UUID, **fields) -> User:
        user = await self.get_user(user_id)
        for name, value in fields.items():
            if value is not None:
                setattr(user, name, value)
        await self.db.commit()
        await invalidate_cache(cache_key(user_id, PROFILE_PAGE))
        return user

    async def update_profile_picture(self, user_id: uuid.UUID, photo: StoredFile) -> User:
        user = await self.get_user(user_id)
        try:
            url = await self.storage.upload_profile_picture(photo, str(user_id))
        except (BotoCoreError, ClientError) as e:
            logger.error("account.picture_upload_failed", error=str(e))
            raise DependencyUnavailable("Failed to upload profile picture")
        user.profile_picture_url = url
        await self.db.commit()
        await invalidate_cache(cache_key(user_id, PROFILE_PAGE))
        return user
