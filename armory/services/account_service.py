"""Account lifecycle: registration, verification, login sessions and deletion."""

import logging
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime, timedelta

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from armory.config import Settings, get_settings
from armory.errors import (
    DuplicateEmailError,
    EmailDeliveryError,
    EmailNotVerifiedError,
    InvalidCredentialsError,
    InvalidTokenError,
    StorageError,
    TokenExpiredError,
)
from armory.models.account import Account
from armory.models.enums import SubscriptionStatus, SubscriptionTier
from armory.services.account_repository import AccountRepository
from armory.services.credentials import generate_token, get_password_hash, pwd_context, verify_password
from armory.services.email_service import EmailService
from armory.services.session_cache import SessionCache, SessionInfo, utc_now
from armory.services.validation import validate_email, validate_password

logger = logging.getLogger(__name__)

RESEND_MESSAGE = "If your email is registered, a new verification email has been sent"
ALREADY_VERIFIED_MESSAGE = "Your email is already verified. You can now log in."


@dataclass(frozen=True)
class AuthContext:
    """The authenticated identity for one request."""

    account: Account
    session_token: str
    session: SessionInfo


class AccountService:
    """Drives an account through Unverified -> Verified -> Deleted and back."""

    def __init__(
        self,
        db: Session,
        notifier: EmailService,
        sessions: SessionCache,
        settings: Settings | None = None,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.accounts = AccountRepository(db)
        self.notifier = notifier
        self.sessions = sessions
        self.settings = settings or get_settings()
        self.clock = clock

    def register(self, email: str, password: str) -> Account:
        """Create an account, or reclaim a soft-deleted one with the same email."""
        validate_email(email)
        validate_password(password, self.settings.password_min_length)

        existing = self.accounts.get_by_email(email, include_deleted=True)
        if existing is not None and not existing.is_deleted:
            raise DuplicateEmailError()

        password_hash = get_password_hash(password)

        if existing is not None:
            account = existing
            account.restore()
            account.password_hash = password_hash
            account.verified = False
            account.pending_email = None
            account.clear_recovery()
            account.login_attempts = 0
            account.last_login_attempt = None
            token = self._issue_verification(account)
            self.accounts.update(account)
            logger.info(f"Restored soft-deleted account {account.id} through registration")
        else:
            account = Account(
                email=email,
                password_hash=password_hash,
                verified=False,
                subscription_tier=SubscriptionTier.FREE.value,
                subscription_status=SubscriptionStatus.NONE.value,
            )
            token = self._issue_verification(account)
            try:
                self.accounts.create(account)
            except StorageError as e:
                # Lost a race with a concurrent registration for the same email
                if isinstance(e.__cause__, IntegrityError):
                    raise DuplicateEmailError() from e
                raise
            logger.info(f"Registered account {account.id}")

        self._notify(self.notifier.send_verification, account.email, token)
        return account

    def verify_email(self, token: str | None) -> Account:
        """Consume a verification token, applying any pending email change."""
        if not token:
            raise InvalidTokenError("Invalid verification token")

        account = self.accounts.get_by_verification_token(token)
        if account is None:
            raise InvalidTokenError("Invalid verification token")
        if account.is_verification_expired(self.clock()):
            raise TokenExpiredError("Verification token has expired")

        if account.pending_email:
            owner = self.accounts.get_by_email(account.pending_email, include_deleted=True)
            if owner is not None and owner.id != account.id:
                raise DuplicateEmailError()
            logger.info(f"Account {account.id} confirmed email change")
            account.email = account.pending_email
            account.pending_email = None

        account.verified = True
        account.clear_verification()
        self.accounts.update(account)
        return account

    def resend_verification(self, email: str) -> str:
        """Issue a fresh verification token for an unverified account."""
        validate_email(email)
        account = self.accounts.get_by_email(email)
        if account is None:
            return RESEND_MESSAGE
        if account.verified and not account.pending_email:
            return ALREADY_VERIFIED_MESSAGE

        token = self._issue_verification(account)
        self.accounts.update(account)
        if account.pending_email:
            self._notify(self.notifier.send_email_change_verification, account.pending_email, token)
        else:
            self._notify(self.notifier.send_verification, account.email, token)
        return RESEND_MESSAGE

    def login(self, email: str, password: str) -> tuple[str, SessionInfo]:
        """Authenticate and open a session. Returns the session token and entry."""
        now = self.clock()
        account = self.accounts.get_by_email(email)

        if account is None:
            # Keep the response time of unknown emails close to a real check
            pwd_context.dummy_verify()
            logger.warning("Login failed for unknown or deleted account")
            raise InvalidCredentialsError()

        lockout_seconds = self.settings.lockout_minutes * 60
        if account.is_locked_out(now, self.settings.max_login_attempts, lockout_seconds):
            logger.warning(f"Login refused for locked account {account.id}")
            raise InvalidCredentialsError()

        if not verify_password(password, account.password_hash):
            account.login_attempts = (account.login_attempts or 0) + 1
            account.last_login_attempt = now
            self.accounts.update(account)
            logger.warning(f"Login failed for account {account.id} (attempt {account.login_attempts})")
            raise InvalidCredentialsError()

        if self.settings.require_verified_login and not account.verified:
            logger.warning(f"Unverified account {account.id} attempted login")
            raise EmailNotVerifiedError()

        account.login_attempts = 0
        account.last_login_attempt = now
        account.last_login = now
        self.accounts.update(account)

        token, info = self.sessions.issue(
            account.id,
            account.email,
            claims={"verified": account.verified, "tier": account.subscription_tier},
        )
        logger.info(f"Account {account.id} logged in")
        return token, info

    def logout(self, session_token: str | None) -> None:
        self.sessions.evict(session_token)

    def resolve_session(self, session_token: str | None) -> AuthContext | None:
        """Map a session cookie to a live account, or None when logged out."""
        info = self.sessions.load(session_token)
        if info is None:
            return None

        account = self.accounts.get_by_id(info.account_id)
        if account is None:
            # Account was deleted after the session was issued
            self.sessions.evict(session_token)
            return None

        return AuthContext(account=account, session_token=session_token, session=info)

    def request_email_change(self, account: Account, new_email: str) -> bool:
        """Stage a new email address until it is verified.

        Returns False when the address is unchanged and nothing was issued.
        """
        validate_email(new_email)
        if new_email == account.email:
            return False

        account.pending_email = new_email
        token = self._issue_verification(account)
        self.accounts.update(account)
        logger.info(f"Account {account.id} requested an email change")

        self._notify(self.notifier.send_email_change_verification, new_email, token)
        return True

    def soft_delete(self, account: Account) -> Account:
        """Tombstone an account. Its sessions fail on their next lookup."""
        self.accounts.soft_delete(account, self.clock())
        logger.info(f"Account {account.id} soft-deleted")
        return account

    def purge(self, account_id: int) -> bool:
        """Permanently remove an account, deleted or not."""
        account = self.accounts.get_any_by_id(account_id)
        if account is None:
            return False
        self.accounts.purge(account)
        logger.info(f"Account {account_id} purged")
        return True

    def purge_deleted_before(self, days: int) -> int:
        """Purge accounts soft-deleted more than ``days`` ago. Returns the count."""
        cutoff = self.clock() - timedelta(days=days)
        purged = 0
        for account in self.accounts.list_deleted_before(cutoff):
            self.accounts.purge(account)
            purged += 1
        logger.info(f"Purged {purged} accounts deleted before {cutoff.isoformat()}")
        return purged

    def _issue_verification(self, account: Account) -> str:
        now = self.clock()
        token = generate_token()
        account.verification_token = token
        account.verification_sent_at = now
        account.verification_token_expiry = now + timedelta(minutes=self.settings.verification_token_ttl_minutes)
        return token

    def _notify(self, send: Callable[[str, str], None], email: str, token: str) -> None:
        try:
            send(email, token)
        except EmailDeliveryError as e:
            logger.error(f"Email delivery failed: {e}")
