"""Host model — one scanned target inside one report."""

from sqlalchemy import ForeignKey, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from scandelta.models.base import Base, IntegerPrimaryKeyMixin


class Host(IntegerPrimaryKeyMixin, Base):
    __tablename__ = "hosts"
    __table_args__ = (
        UniqueConstraint("report_id", "ip_address", name="uq_host_report_ip"),
    )

    report_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("reports.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    # Network identifiers; IP is the natural key within a report
    hostname: Mapped[str] = mapped_column(String(255), nullable=False, default="")
    ip_address: Mapped[str] = mapped_column(String(45), nullable=False, index=True)
    mac_address: Mapped[str | None] = mapped_column(String(255), nullable=True)
    os: Mapped[str | None] = mapped_column(String(512), nullable=True)

    # Severity counters derived from this host's vulnerabilities
    critical: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    high: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    medium: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    low: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    info: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    total: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    # Relationships
    report: Mapped["Report"] = relationship("Report", back_populates="hosts")  # noqa: F821
    vulnerabilities: Mapped[list["Vulnerability"]] = relationship(  # noqa: F821
        "Vulnerability",
        back_populates="host",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )

    def __repr__(self) -> str:
        return f"<Host ip={self.ip_address!r} hostname={self.hostname!r}>"
