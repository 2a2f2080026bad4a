"""Payment model."""

from sqlalchemy import BigInteger, Column, ForeignKey, Integer, String
from sqlalchemy.orm import relationship

from armory.database import Base
from armory.models.mixins import TimestampMixin


class Payment(Base, TimestampMixin):
    """A settled charge reported by the payment provider."""

    __tablename__ = "payments"

    id = Column(Integer, primary_key=True, index=True)
    account_id = Column(Integer, ForeignKey("accounts.id", ondelete="CASCADE"), nullable=False, index=True)
    amount = Column(BigInteger, nullable=False, default=0)  # cents
    currency = Column(String(3), nullable=False, default="usd")
    payment_type = Column(String(32), nullable=False)  # "one-time" or "subscription"
    status = Column(String(32), nullable=False, default="succeeded")
    description = Column(String(255), nullable=True)
    # Checkout session or invoice ID; webhook retries must not record twice
    stripe_id = Column(String(255), nullable=True, unique=True, index=True)

    account = relationship("Account", back_populates="payments")
