from datetime import datetime, timezone

from sqlalchemy import Column, Boolean, DateTime
from sqlalchemy.sql import func


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class TimestampMixin:
    # Python-side defaults keep the values loaded on the instance after
    # flush, so async sessions never need a lazy refresh to read them.
    created_at = Column(
        DateTime(timezone=True),
        default=utcnow,
        server_default=func.now(),
        nullable=False
    )
    updated_at = Column(
        DateTime(timezone=True),
        onupdate=utcnow
    )


class SoftDeleteMixin:
    is_deleted = Column(Boolean, default=False, nullable=False)
