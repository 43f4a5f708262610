"""
DLE Backend - Shared Column Mixins
====================================

What:  created_at / updated_at columns shared by the diary tables.
How:   Python-side defaults in UTC plus CURRENT_TIMESTAMP server defaults, so
       rows inserted by migrations or raw SQL are stamped as well.
"""

from datetime import datetime, timezone

from sqlalchemy import DateTime, text
from sqlalchemy.orm import Mapped, mapped_column


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class CreatedAtMixin:
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utcnow,
        server_default=text("CURRENT_TIMESTAMP"),
    )


class TimestampMixin(CreatedAtMixin):
    # updated_at is also set explicitly by update services; onupdate covers
    # ORM flushes that touch any column.
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utcnow,
        onupdate=utcnow,
        server_default=text("CURRENT_TIMESTAMP"),
    )
