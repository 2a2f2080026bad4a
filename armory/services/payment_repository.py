"""Persistence for payment records."""

import logging

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from armory.errors import StorageError
from armory.models.payment import Payment

logger = logging.getLogger(__name__)


class PaymentRepository:
    """Payment history queries and inserts."""

    def __init__(self, db: Session):
        self.db = db

    def get_by_stripe_id(self, stripe_id: str) -> Payment | None:
        try:
            return self.db.query(Payment).filter(Payment.stripe_id == stripe_id).first()
        except SQLAlchemyError as e:
            self.db.rollback()
            raise StorageError() from e

    def list_for_account(self, account_id: int) -> list[Payment]:
        """Payments for an account, newest first."""
        try:
            return (
                self.db.query(Payment)
                .filter(Payment.account_id == account_id)
                .order_by(Payment.created_at.desc(), Payment.id.desc())
                .all()
            )
        except SQLAlchemyError as e:
            self.db.rollback()
            raise StorageError() from e

    def create(self, payment: Payment) -> Payment:
        self.db.add(payment)
        try:
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"Payment insert failed: {e}")
            raise StorageError() from e
        self.db.refresh(payment)
        return payment
