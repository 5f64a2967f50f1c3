"""
Soft Delete Models

Declarative helpers for tables that keep soft-deleted rows around.
"""

from datetime import datetime, timezone
from typing import Any, Dict

from sqlalchemy import Column, DateTime


def utcnow() -> datetime:
    """Naive UTC timestamp, matching ``DateTime`` columns without a timezone"""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def as_naive_utc(value: datetime) -> datetime:
    """Convert an aware datetime to the naive UTC convention; naive values pass through"""
    if value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)


class SoftDeleteMixin:
    """
    Adds a nullable ``deleted`` timestamp column.

    Usage:
        class Order(Base, SoftDeleteMixin):
            __tablename__ = "orders"
            ...

    NULL marks an active row; a timestamp marks the instant the row was soft deleted.
    """

    deleted = Column(DateTime, nullable=True, index=True)

    @property
    def is_deleted(self) -> bool:
        return self.deleted is not None

    def to_dict(self) -> Dict[str, Any]:
        data = {}
        for column in self.__table__.columns:
            value = getattr(self, column.key, None)
            data[column.key] = value.isoformat() if isinstance(value, datetime) else value
        return data
