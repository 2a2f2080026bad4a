"""Persistence for accounts."""

import logging
from datetime import datetime

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from armory.errors import StorageError
from armory.models.account import Account

logger = logging.getLogger(__name__)


class AccountRepository:
    """Account lookups and writes over a SQLAlchemy session.

    Every lookup except ``get_by_email(..., include_deleted=True)`` and
    ``get_any_by_id`` hides soft-deleted rows. Write failures roll the
    session back and surface as ``StorageError``.
    """

    def __init__(self, db: Session):
        self.db = db

    def _active(self):
        return self.db.query(Account).filter(Account.live())

    def _first(self, query) -> Account | None:
        try:
            return query.first()
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"Account lookup failed: {e}")
            raise StorageError() from e

    def get_by_email(self, email: str, include_deleted: bool = False) -> Account | None:
        """Get an account by email."""
        query = self.db.query(Account) if include_deleted else self._active()
        return self._first(query.filter(Account.email == email))

    def get_by_id(self, account_id: int) -> Account | None:
        return self._first(self._active().filter(Account.id == account_id))

    def get_any_by_id(self, account_id: int) -> Account | None:
        """Get an account by ID, soft-deleted or not."""
        return self._first(self.db.query(Account).filter(Account.id == account_id))

    def get_by_verification_token(self, token: str) -> Account | None:
        return self._first(self._active().filter(Account.verification_token == token))

    def get_by_recovery_token(self, token: str) -> Account | None:
        return self._first(self._active().filter(Account.recovery_token == token))

    def get_by_stripe_customer_id(self, customer_id: str) -> Account | None:
        return self._first(self._active().filter(Account.stripe_customer_id == customer_id))

    def list_deleted_before(self, cutoff: datetime) -> list[Account]:
        """Soft-deleted accounts whose tombstone predates the cutoff."""
        try:
            return (
                self.db.query(Account)
                .filter(Account.deleted_before(cutoff))
                .all()
            )
        except SQLAlchemyError as e:
            self.db.rollback()
            raise StorageError() from e

    def create(self, account: Account) -> Account:
        self.db.add(account)
        self._commit("create")
        self.db.refresh(account)
        return account

    def update(self, account: Account) -> Account:
        self.db.add(account)
        self._commit("update")
        return account

    def soft_delete(self, account: Account, now: datetime | None = None) -> Account:
        account.soft_delete(now)
        return self.update(account)

    def purge(self, account: Account) -> None:
        """Permanently remove an account row."""
        self.db.delete(account)
        self._commit("purge")

    def _commit(self, action: str) -> None:
        try:
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"Account {action} failed: {e}")
            raise StorageError() from e
