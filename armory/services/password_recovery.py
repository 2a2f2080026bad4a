"""Password recovery with single-use, time-limited tokens."""

import logging
from collections.abc import Callable
from datetime import datetime, timedelta

from sqlalchemy.orm import Session

from armory.config import Settings, get_settings
from armory.errors import EmailDeliveryError, InvalidTokenError, TokenExpiredError
from armory.models.account import Account
from armory.services.account_repository import AccountRepository
from armory.services.credentials import generate_token, get_password_hash
from armory.services.email_service import EmailService
from armory.services.session_cache import utc_now
from armory.services.validation import validate_email, validate_password

logger = logging.getLogger(__name__)

RESET_REQUESTED_MESSAGE = (
    "If your email is registered, you will receive a password reset link valid for 60 minutes"
)


class PasswordRecoveryService:
    """Issues, validates and consumes recovery tokens."""

    def __init__(
        self,
        db: Session,
        notifier: EmailService,
        settings: Settings | None = None,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.accounts = AccountRepository(db)
        self.notifier = notifier
        self.settings = settings or get_settings()
        self.clock = clock

    def request_reset(self, email: str) -> str:
        """Start a reset. The result is identical whether or not the email exists."""
        validate_email(email)
        account = self.accounts.get_by_email(email)
        if account is None:
            logger.info("Password reset requested for an unregistered email")
            return RESET_REQUESTED_MESSAGE

        now = self.clock()
        account.recovery_token = generate_token()
        account.recovery_sent_at = now
        account.recovery_token_expiry = now + timedelta(minutes=self.settings.recovery_token_ttl_minutes)
        self.accounts.update(account)
        logger.info(f"Recovery token issued for account {account.id}")

        # The token stays valid even if the email never arrives.
        try:
            self.notifier.send_password_reset(account.email, account.recovery_token)
        except EmailDeliveryError as e:
            logger.error(f"Failed to send password reset email: {e}")

        return RESET_REQUESTED_MESSAGE

    def validate_token(self, token: str | None) -> Account:
        """Return the account holding a usable recovery token."""
        if not token:
            raise InvalidTokenError("Invalid recovery token")
        account = self.accounts.get_by_recovery_token(token)
        if account is None:
            raise InvalidTokenError("Invalid recovery token")
        if account.is_recovery_expired(self.clock()):
            raise TokenExpiredError("Recovery token has expired")
        return account

    def is_recovery_expired(self, token: str) -> bool:
        """Check a recovery token without consuming it. Unknown tokens count as expired."""
        account = self.accounts.get_by_recovery_token(token)
        if account is None:
            return True
        return account.is_recovery_expired(self.clock())

    def reset_password(self, token: str | None, new_password: str) -> Account:
        """Set a new password and consume the token in a single write.

        If the write fails the session is rolled back and the token can be
        used again.
        """
        validate_password(new_password, self.settings.password_min_length)
        account = self.validate_token(token)

        password_hash = get_password_hash(new_password)
        account.password_hash = password_hash
        account.clear_recovery()
        self.accounts.update(account)

        logger.info(f"Password reset for account {account.id}")
        return account
