"""Authentication schemas."""

from datetime import datetime
from typing import Annotated

from pydantic import AfterValidator, BaseModel, ConfigDict, Field, model_validator

from armory.services.validation import EMAIL_PATTERN


def _check_email(value: str) -> str:
    if not EMAIL_PATTERN.match(value):
        raise ValueError("Invalid email format")
    return value


# Kept exactly as typed: addresses are stored and matched case-sensitively
AccountEmail = Annotated[str, Field(max_length=255), AfterValidator(_check_email)]


class UserRegister(BaseModel):
    """User registration request."""

    email: AccountEmail
    password: str = Field(..., min_length=1, max_length=128)
    password_confirm: str = Field(..., max_length=128)

    @model_validator(mode="after")
    def passwords_match(self) -> "UserRegister":
        if self.password != self.password_confirm:
            raise ValueError("Passwords do not match")
        return self


class UserLogin(BaseModel):
    """User login request."""

    email: AccountEmail
    password: str = Field(..., min_length=1, max_length=128)


class EmailRequest(BaseModel):
    """Request carrying only an email (forgot password, resend verification)."""

    email: AccountEmail


class ResetPasswordRequest(BaseModel):
    """Password reset with a recovery token."""

    token: str = Field(..., min_length=1, max_length=128)
    password: str = Field(..., min_length=1, max_length=128)
    confirm_password: str = Field(..., max_length=128)

    @model_validator(mode="after")
    def passwords_match(self) -> "ResetPasswordRequest":
        if self.password != self.confirm_password:
            raise ValueError("Passwords do not match")
        return self


class ProfileUpdate(BaseModel):
    """Profile edit request."""

    email: AccountEmail


class DeleteAccountRequest(BaseModel):
    """Account deletion must be confirmed explicitly."""

    confirm: bool = False


class MessageResponse(BaseModel):
    """Plain message response."""

    message: str


class AccountResponse(BaseModel):
    """Account information response."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    email: str
    verified: bool
    pending_email: str | None
    subscription_tier: str
    subscription_status: str
    created_at: datetime | None = None
    last_login: datetime | None = None


class AuthResponse(BaseModel):
    """Login response. The session itself travels in a cookie."""

    message: str
    expires_at: datetime
    account: AccountResponse


class RegisterResponse(BaseModel):
    """Registration response."""

    message: str
    account: AccountResponse
