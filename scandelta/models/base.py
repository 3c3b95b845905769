"""Declarative base and shared mixins."""

from datetime import datetime

from sqlalchemy import DateTime, Integer, func
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class Base(DeclarativeBase):
    """Shared declarative base for all models."""
    pass


class ImportTimestampMixin:
    """Adds an imported_at column set by the database on insert."""

    imported_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
    )


class IntegerPrimaryKeyMixin:
    """Adds an autoincrement integer surrogate key.

    Ids grow with insertion order, which the store uses as the tie-breaker
    when two reports share a scan date.
    """

    id: Mapped[int] = mapped_column(
        Integer,
        primary_key=True,
        autoincrement=True,
    )
