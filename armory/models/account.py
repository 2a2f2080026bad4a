"""Account model."""

from datetime import datetime

from sqlalchemy import Boolean, Column, DateTime, Integer, String
from sqlalchemy.orm import relationship

from armory.database import Base
from armory.models.enums import AccountState, SubscriptionStatus, SubscriptionTier
from armory.models.mixins import SoftDeleteMixin, TimestampMixin, as_utc


def _expired(expiry: datetime | None, now: datetime) -> bool:
    # A missing expiry never validates a token.
    expiry = as_utc(expiry)
    return expiry is None or now >= expiry


class Account(Base, TimestampMixin, SoftDeleteMixin):
    """Account model for authentication, verification and subscription state."""

    __tablename__ = "accounts"

    id = Column(Integer, primary_key=True, index=True)
    email = Column(String(255), unique=True, nullable=False, index=True)
    password_hash = Column(String(255), nullable=False)
    verified = Column(Boolean, default=False, nullable=False)
    pending_email = Column(String(255), nullable=True)

    verification_token = Column(String(128), nullable=True, index=True)
    verification_token_expiry = Column(DateTime(timezone=True), nullable=True)
    verification_sent_at = Column(DateTime(timezone=True), nullable=True)

    recovery_token = Column(String(128), nullable=True, index=True)
    recovery_token_expiry = Column(DateTime(timezone=True), nullable=True)
    recovery_sent_at = Column(DateTime(timezone=True), nullable=True)

    login_attempts = Column(Integer, default=0, nullable=False)
    last_login_attempt = Column(DateTime(timezone=True), nullable=True)
    last_login = Column(DateTime(timezone=True), nullable=True)

    subscription_tier = Column(String(32), default=SubscriptionTier.FREE.value, nullable=False)
    subscription_status = Column(String(32), default=SubscriptionStatus.NONE.value, nullable=False)
    subscription_end_date = Column(DateTime(timezone=True), nullable=True)
    is_lifetime = Column(Boolean, default=False, nullable=False)
    stripe_customer_id = Column(String(255), nullable=True, index=True)
    stripe_subscription_id = Column(String(255), nullable=True)

    payments = relationship(
        "Payment",
        back_populates="account",
        cascade="all, delete-orphan",
        order_by="Payment.id.desc()",
    )

    @property
    def state(self) -> AccountState:
        """Current lifecycle state."""
        if self.is_deleted:
            return AccountState.DELETED
        return AccountState.VERIFIED if self.verified else AccountState.UNVERIFIED

    @property
    def tier(self) -> SubscriptionTier:
        return SubscriptionTier(self.subscription_tier)

    @property
    def status(self) -> SubscriptionStatus:
        return SubscriptionStatus(self.subscription_status)

    def is_verification_expired(self, now: datetime) -> bool:
        """Check whether the verification token can no longer be used."""
        return _expired(self.verification_token_expiry, now)

    def is_recovery_expired(self, now: datetime) -> bool:
        """Check whether the recovery token can no longer be used."""
        return _expired(self.recovery_token_expiry, now)

    def is_locked_out(self, now: datetime, max_attempts: int, lockout_seconds: float) -> bool:
        """Check whether too many recent failed logins block authentication."""
        if (self.login_attempts or 0) < max_attempts or self.last_login_attempt is None:
            return False
        return (now - as_utc(self.last_login_attempt)).total_seconds() < lockout_seconds

    def clear_recovery(self) -> None:
        """Drop the outstanding recovery token."""
        self.recovery_token = None
        self.recovery_token_expiry = None
        self.recovery_sent_at = None

    def clear_verification(self) -> None:
        """Drop the outstanding verification token."""
        self.verification_token = None
        self.verification_token_expiry = None
