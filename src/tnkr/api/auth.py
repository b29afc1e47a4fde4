"""Auth API — registration, email verification, login, password reset.

Learn: Routes for the account lifecycle:
- POST /auth/register → multipart form (+ optional photo) → unverified user
- GET /auth/verify-email?code= → marks the account verified
- POST /auth/login → email/password → JWT
- POST /auth/forgot-password → emails a reset code (if the account exists)
- POST /auth/reset-password → code + new password
- POST /auth/resend-verification → fresh verification email
- GET /auth/me → current user info

Handlers stay thin: AccountService does the work and raises
ServiceError subclasses, which main.py turns into HTTP responses.
"""

from typing import Optional

from fastapi import APIRouter, Depends, File, Form, Query, UploadFile
from sqlalchemy.ext.asyncio import AsyncSession

from tnkr.auth.dependencies import CurrentIdentity, get_current_user
from tnkr.db.engine import get_db
from tnkr.notifications.mailer import EmailDispatcher, get_email_dispatcher
from tnkr.schemas.common import MessageResponse
from tnkr.schemas.user import (
    ForgotPasswordRequest,
    LoginRequest,
    LoginResponse,
    LoginUser,
    RegisterResponse,
    ResendVerificationRequest,
    ResetPasswordRequest,
    UserRead,
)
from tnkr.services.account_service import AccountService
from tnkr.storage.s3 import ObjectStorage, from_upload, get_storage

router = APIRouter(prefix="/auth")

FORGOT_PASSWORD_REPLY = (
    "If an account exists with that email, a password reset link has been sent."
)


def get_account_service(
    db: AsyncSession = Depends(get_db),
    storage: ObjectStorage = Depends(get_storage),
    emails: EmailDispatcher = Depends(get_email_dispatcher),
) -> AccountService:
    return AccountService(db, storage=storage, emails=emails)


# ─── Register ────────────────────────────────────────────


@router.post("/register", response_model=RegisterResponse, status_code=201)
async def register(
    first_name: str = Form(..., alias="firstName", min_length=1),
    last_name: str = Form(..., alias="lastName", min_length=1),
    username: str = Form(..., min_length=1),
    email: str = Form(..., min_length=3),
    password: str = Form(...),
    phone: Optional[str] = Form(None),
    role: Optional[str] = Form(None),
    photo: Optional[UploadFile] = File(None),
    accounts: AccountService = Depends(get_account_service),
):
    """Create an unverified account; a verification email follows."""
    stored = await from_upload(photo) if photo is not None and photo.filename else None
    user = await accounts.register(
        first_name=first_name,
        last_name=last_name,
        username=username,
        email=email,
        password=password,
        phone=phone,
        role=role,
        photo=stored,
    )
    return RegisterResponse.model_validate(user)


@router.get("/verify-email", response_model=MessageResponse)
async def verify_email(
    code: str = Query(..., min_length=1),
    accounts: AccountService = Depends(get_account_service),
):
    await accounts.verify_email(code)
    return MessageResponse(message="Email verified successfully")


@router.post("/resend-verification", response_model=MessageResponse)
async def resend_verification(
    body: ResendVerificationRequest,
    accounts: AccountService = Depends(get_account_service),
):
    await accounts.resend_verification(body.email)
    return MessageResponse(message="Verification email sent")


# ─── Login ───────────────────────────────────────────────


@router.post("/login", response_model=LoginResponse)
async def login(
    body: LoginRequest,
    accounts: AccountService = Depends(get_account_service),
):
    """Authenticate with email and password; returns a JWT."""
    token, user = await accounts.login(body.email, body.password)
    return LoginResponse(token=token, user=LoginUser.model_validate(user))


# ─── Password reset ──────────────────────────────────────


@router.post("/forgot-password", response_model=MessageResponse)
async def forgot_password(
    body: ForgotPasswordRequest,
    accounts: AccountService = Depends(get_account_service),
):
    """Same reply whether or not the account exists."""
    await accounts.forgot_password(body.email)
    return MessageResponse(message=FORGOT_PASSWORD_REPLY)


@router.post("/reset-password", response_model=MessageResponse)
async def reset_password(
    body: ResetPasswordRequest,
    accounts: AccountService = Depends(get_account_service),
):
    await accounts.reset_password(body.code, body.new_password)
    return MessageResponse(message="Password reset successfully")


# ─── Me ──────────────────────────────────────────────────


@router.get("/me", response_model=UserRead)
async def me(
    identity: CurrentIdentity = Depends(get_current_user),
    accounts: AccountService = Depends(get_account_service),
):
    return await accounts.get_user(identity.uuid)
