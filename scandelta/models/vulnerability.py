"""Vulnerability model — one plugin result on one host."""

from sqlalchemy import JSON, Float, ForeignKey, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from scandelta.models.base import Base, IntegerPrimaryKeyMixin


class Vulnerability(IntegerPrimaryKeyMixin, Base):
    __tablename__ = "vulnerabilities"
    __table_args__ = (
        # Finding identity within a host: (plugin_id, port, protocol)
        UniqueConstraint(
            "host_id", "plugin_id", "port", "protocol", name="uq_vuln_host_plugin_port"
        ),
    )

    report_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("reports.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    host_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("hosts.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    plugin_id: Mapped[int] = mapped_column(Integer, nullable=False, index=True)
    plugin_name: Mapped[str] = mapped_column(String(512), nullable=False, default="")
    plugin_family: Mapped[str] = mapped_column(String(255), nullable=False, default="")

    # 0=Info 1=Low 2=Medium 3=High 4=Critical
    severity: Mapped[int] = mapped_column(Integer, nullable=False, default=0, index=True)

    # Port 0 marks host-level findings
    port: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    protocol: Mapped[str | None] = mapped_column(String(10), nullable=True)
    service: Mapped[str | None] = mapped_column(String(100), nullable=True)

    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    solution: Mapped[str | None] = mapped_column(Text, nullable=True)
    synopsis: Mapped[str | None] = mapped_column(Text, nullable=True)
    plugin_output: Mapped[str | None] = mapped_column(Text, nullable=True)

    # Ordered list of CVE identifiers
    cves: Mapped[list[str]] = mapped_column(JSON, nullable=False, default=list)
    cvss_score: Mapped[float | None] = mapped_column(Float, nullable=True)

    # Relationships
    host: Mapped["Host"] = relationship("Host", back_populates="vulnerabilities")  # noqa: F821

    def __repr__(self) -> str:
        return (
            f"<Vulnerability plugin={self.plugin_id!r} port={self.port!r} "
            f"severity={self.severity!r}>"
        )
