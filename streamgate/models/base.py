"""Shared column mixins."""

from datetime import datetime, timezone

from sqlalchemy import Column, DateTime


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class TimestampMixin:
    """Adds created_at / updated_at columns."""

    created_at = Column(
        DateTime(timezone=True),
        nullable=False,
        default=_utcnow,
        comment="Row creation time",
    )
    updated_at = Column(
        DateTime(timezone=True),
        nullable=False,
        default=_utcnow,
        onupdate=_utcnow,
        comment="Last modification time",
    )
