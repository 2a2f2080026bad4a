"""Pydantic schemas for API request/response validation."""

from armory.schemas.auth import (
    AccountResponse,
    AuthResponse,
    DeleteAccountRequest,
    EmailRequest,
    MessageResponse,
    ProfileUpdate,
    RegisterResponse,
    ResetPasswordRequest,
    UserLogin,
    UserRegister,
)
from armory.schemas.subscription import (
    CancelResponse,
    CheckoutRequest,
    CheckoutResponse,
    PaymentResponse,
    PricingResponse,
    SubscriptionResponse,
)

__all__ = [
    "AccountResponse",
    "AuthResponse",
    "CancelResponse",
    "CheckoutRequest",
    "CheckoutResponse",
    "DeleteAccountRequest",
    "EmailRequest",
    "MessageResponse",
    "PaymentResponse",
    "PricingResponse",
    "ProfileUpdate",
    "RegisterResponse",
    "ResetPasswordRequest",
    "SubscriptionResponse",
    "UserLogin",
    "UserRegister",
]
