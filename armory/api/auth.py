"""Authentication API endpoints."""

from typing import Annotated

from fastapi import APIRouter, Depends, Query, Request, Response, status

from armory.api.dependencies import (
    clear_session_cookie,
    get_account_service,
    get_current_account,
    get_recovery_service,
    set_session_cookie,
)
from armory.config import get_settings
from armory.models.account import Account
from armory.schemas.auth import (
    AccountResponse,
    AuthResponse,
    EmailRequest,
    MessageResponse,
    RegisterResponse,
    ResetPasswordRequest,
    UserLogin,
    UserRegister,
)
from armory.services.account_service import AccountService
from armory.services.password_recovery import PasswordRecoveryService

router = APIRouter(prefix="/api/v1/auth", tags=["auth"])


@router.post("/register", response_model=RegisterResponse, status_code=status.HTTP_201_CREATED)
async def register(
    user_data: UserRegister,
    service: Annotated[AccountService, Depends(get_account_service)],
):
    """Register a new account, or restore a deleted one with the same email."""
    account = service.register(user_data.email, user_data.password)
    return RegisterResponse(
        message="Check your email to verify your account",
        account=AccountResponse.model_validate(account),
    )


@router.post("/login", response_model=AuthResponse)
async def login(
    credentials: UserLogin,
    response: Response,
    service: Annotated[AccountService, Depends(get_account_service)],
):
    """Login with email and password. Sets the session cookie."""
    token, session = service.login(credentials.email, credentials.password)
    set_session_cookie(response, token)

    context = service.resolve_session(token)
    return AuthResponse(
        message="Enjoy adding to your armory!",
        expires_at=session.expires_at,
        account=AccountResponse.model_validate(context.account),
    )


@router.post("/logout", response_model=MessageResponse)
async def logout(
    request: Request,
    response: Response,
    service: Annotated[AccountService, Depends(get_account_service)],
):
    """Logout. Works whether or not the session is still live."""
    service.logout(request.cookies.get(get_settings().session_cookie_name))
    clear_session_cookie(response)
    return MessageResponse(message="Come back soon!")


@router.get("/me", response_model=AccountResponse)
async def get_me(
    current_account: Annotated[Account, Depends(get_current_account)],
):
    """Get current account information."""
    return current_account


@router.get("/verify-email", response_model=MessageResponse)
async def verify_email(
    service: Annotated[AccountService, Depends(get_account_service)],
    token: Annotated[str, Query()] = "",
):
    """Consume an email verification token."""
    service.verify_email(token)
    return MessageResponse(message="Your email has been verified. You can now log in.")


@router.post("/resend-verification", response_model=MessageResponse)
async def resend_verification(
    request_data: EmailRequest,
    service: Annotated[AccountService, Depends(get_account_service)],
):
    """Send a new verification email."""
    return MessageResponse(message=service.resend_verification(request_data.email))


@router.post("/forgot-password", response_model=MessageResponse)
async def forgot_password(
    request_data: EmailRequest,
    service: Annotated[PasswordRecoveryService, Depends(get_recovery_service)],
):
    """Request a password reset link."""
    return MessageResponse(message=service.request_reset(request_data.email))


@router.get("/reset-password", response_model=MessageResponse)
async def check_reset_token(
    service: Annotated[PasswordRecoveryService, Depends(get_recovery_service)],
    token: Annotated[str, Query()] = "",
):
    """Check that a recovery token can still be used."""
    service.validate_token(token)
    return MessageResponse(message="Recovery token is valid")


@router.post("/reset-password", response_model=MessageResponse)
async def reset_password(
    request_data: ResetPasswordRequest,
    service: Annotated[PasswordRecoveryService, Depends(get_recovery_service)],
):
    """Set a new password with a recovery token."""
    service.reset_password(request_data.token, request_data.password)
    return MessageResponse(message="Your password has been reset successfully")
