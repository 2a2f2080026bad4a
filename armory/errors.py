"""Account error taxonomy and the HTTP handler that renders it."""

import logging

from fastapi import Request
from fastapi.responses import JSONResponse

logger = logging.getLogger(__name__)


class AccountError(Exception):
    """Base class for errors surfaced to API callers."""

    code = "account_error"
    status_code = 400
    default_message = "Request could not be completed"

    def __init__(self, message: str | None = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class DuplicateEmailError(AccountError):
    code = "duplicate_email"
    default_message = "Email already registered"


class InvalidCredentialsError(AccountError):
    """Unknown account, soft-deleted account, locked account or wrong password."""

    code = "invalid_credentials"
    status_code = 401
    default_message = "Invalid email or password"


class EmailNotVerifiedError(AccountError):
    code = "email_not_verified"
    status_code = 403
    default_message = "Please verify your email before logging in"


class InvalidTokenError(AccountError):
    code = "invalid_token"
    default_message = "Invalid token"


class TokenExpiredError(AccountError):
    code = "token_expired"
    default_message = "Token has expired"


class ValidationError(AccountError):
    code = "validation_error"
    status_code = 422
    default_message = "Invalid form data"


class TierTransitionError(AccountError):
    code = "tier_not_allowed"
    default_message = "You cannot subscribe to this tier"


class SubscriptionError(AccountError):
    code = "subscription_error"
    default_message = "Subscription could not be changed"


class BillingError(AccountError):
    code = "billing_error"
    status_code = 502
    default_message = "Payment provider request failed"


class StorageError(AccountError):
    code = "storage_error"
    status_code = 500
    default_message = "An error occurred"


class EmailDeliveryError(Exception):
    """Raised by notifiers; callers log it and carry on."""


async def account_error_handler(request: Request, exc: AccountError) -> JSONResponse:
    """Render an AccountError as a JSON error body."""
    level = logging.ERROR if exc.status_code >= 500 else logging.WARNING
    logger.log(level, f"{request.method} {request.url.path} -> {exc.code}: {exc.message}")
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.message, "code": exc.code},
    )
