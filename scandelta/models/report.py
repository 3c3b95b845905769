"""Report model — one imported .nessus scan file."""

from datetime import datetime
from typing import Any

from sqlalchemy import JSON, DateTime, Integer, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from scandelta.models.base import Base, ImportTimestampMixin, IntegerPrimaryKeyMixin


class Report(IntegerPrimaryKeyMixin, ImportTimestampMixin, Base):
    __tablename__ = "reports"

    filename: Mapped[str] = mapped_column(String(512), nullable=False)
    scan_name: Mapped[str] = mapped_column(String(512), nullable=False)
    scan_date: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, index=True
    )

    # Open key/value bag: scanner version, policy settings, warnings
    scan_metadata: Mapped[dict[str, Any] | None] = mapped_column(JSON, nullable=True)

    # Cached totals, fixed at import time
    total_hosts: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    total_vulnerabilities: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    # Relationships
    hosts: Mapped[list["Host"]] = relationship(  # noqa: F821
        "Host",
        back_populates="report",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )

    def __repr__(self) -> str:
        return f"<Report id={self.id!r} filename={self.filename!r}>"
