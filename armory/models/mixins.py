"""Mixins for SQLAlchemy models."""

from datetime import UTC, datetime

from sqlalchemy import Column, DateTime, func


def as_utc(value: datetime | None) -> datetime | None:
    """Attach UTC to naive datetimes read back from backends without tz support."""
    if value is None or value.tzinfo is not None:
        return value
    return value.replace(tzinfo=UTC)


class TimestampMixin:
    """Mixin to add created_at and updated_at timestamp columns."""

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )


class SoftDeleteMixin:
    """Tombstone column plus the filters that hide or select tombstoned rows."""

    deleted_at = Column(DateTime(timezone=True), nullable=True, index=True)

    @classmethod
    def live(cls):
        """Filter clause matching rows that are not soft-deleted."""
        return cls.deleted_at.is_(None)

    @classmethod
    def deleted_before(cls, cutoff: datetime):
        """Filter clause matching rows tombstoned before ``cutoff``."""
        return cls.deleted_at.is_not(None) & (cls.deleted_at < cutoff)

    @property
    def is_deleted(self) -> bool:
        return self.deleted_at is not None

    def soft_delete(self, now: datetime | None = None) -> None:
        self.deleted_at = now or datetime.now(UTC)

    def restore(self) -> None:
        self.deleted_at = None
