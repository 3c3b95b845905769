"""Initial schema: reports, hosts, vulnerabilities.

Revision ID: 0001
Revises:
Create Date: 2026-10-17 00:00:00.000000
"""

from typing import Sequence, Union

import sqlalchemy as sa
from alembic import op

revision: str = "0001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    # ── reports ─────────────────────────────────────────────────────────────
    op.create_table(
        "reports",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True, nullable=False),
        sa.Column("filename", sa.String(512), nullable=False),
        sa.Column("scan_name", sa.String(512), nullable=False),
        sa.Column("scan_date", sa.DateTime(timezone=True), nullable=False),
        sa.Column("scan_metadata", sa.JSON(), nullable=True),
        sa.Column("total_hosts", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("total_vulnerabilities", sa.Integer(), nullable=False, server_default="0"),
        sa.Column(
            "imported_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
            nullable=False,
        ),
    )
    op.create_index("ix_reports_scan_date", "reports", ["scan_date"])

    # ── hosts ────────────────────────────────────────────────────────────────
    op.create_table(
        "hosts",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True, nullable=False),
        sa.Column(
            "report_id",
            sa.Integer(),
            sa.ForeignKey("reports.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("hostname", sa.String(255), nullable=False, server_default=""),
        sa.Column("ip_address", sa.String(45), nullable=False),
        sa.Column("mac_address", sa.String(255), nullable=True),
        sa.Column("os", sa.String(512), nullable=True),
        sa.Column("critical", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("high", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("medium", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("low", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("info", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("total", sa.Integer(), nullable=False, server_default="0"),
        sa.UniqueConstraint("report_id", "ip_address", name="uq_host_report_ip"),
    )
    op.create_index("ix_hosts_report_id", "hosts", ["report_id"])
    op.create_index("ix_hosts_ip_address", "hosts", ["ip_address"])

    # ── vulnerabilities ──────────────────────────────────────────────────────
    op.create_table(
        "vulnerabilities",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True, nullable=False),
        sa.Column(
            "report_id",
            sa.Integer(),
            sa.ForeignKey("reports.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column(
            "host_id",
            sa.Integer(),
            sa.ForeignKey("hosts.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("plugin_id", sa.Integer(), nullable=False),
        sa.Column("plugin_name", sa.String(512), nullable=False, server_default=""),
        sa.Column("plugin_family", sa.String(255), nullable=False, server_default=""),
        sa.Column("severity", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("port", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("protocol", sa.String(10), nullable=True),
        sa.Column("service", sa.String(100), nullable=True),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("solution", sa.Text(), nullable=True),
        sa.Column("synopsis", sa.Text(), nullable=True),
        sa.Column("plugin_output", sa.Text(), nullable=True),
        sa.Column("cves", sa.JSON(), nullable=False),
        sa.Column("cvss_score", sa.Float(), nullable=True),
        sa.UniqueConstraint(
            "host_id", "plugin_id", "port", "protocol", name="uq_vuln_host_plugin_port"
        ),
    )
    op.create_index("ix_vulnerabilities_report_id", "vulnerabilities", ["report_id"])
    op.create_index("ix_vulnerabilities_host_id", "vulnerabilities", ["host_id"])
    op.create_index("ix_vulnerabilities_plugin_id", "vulnerabilities", ["plugin_id"])
    op.create_index("ix_vulnerabilities_severity", "vulnerabilities", ["severity"])


def downgrade() -> None:
    op.drop_table("vulnerabilities")
    op.drop_table("hosts")
    op.drop_table("reports")
