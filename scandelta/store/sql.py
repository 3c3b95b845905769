"""SQLAlchemy-backed report store.

Each public method runs in its own session. ``create_report`` writes the
report, its hosts and its vulnerabilities inside one transaction, so a failed
or cancelled import leaves nothing behind. Driver and constraint failures
surface as ``StorageError``; they are not retried here.
"""

from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager, nullcontext
from typing import Any

from sqlalchemy import delete, func, insert, select, text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker

from scandelta.core.database import build_session_factory
from scandelta.core.errors import HostNotFound, ReportNotFound, StorageError
from scandelta.core.logging import get_logger
from scandelta.ingest.records import (
    NormalizedHost,
    NormalizedReport,
    NormalizedVulnerability,
)
from scandelta.models.host import Host
from scandelta.models.report import Report
from scandelta.models.vulnerability import Vulnerability
from scandelta.schemas.admin import DatabaseStats
from scandelta.schemas.report import HostOut, ReportItemOut, ReportOut, VulnerabilityOut
from scandelta.store.base import ReportStore, StoreCapabilities

logger = get_logger(__name__)

# Rows per bulk INSERT statement for vulnerabilities
_INSERT_BATCH = 2000


class SqlReportStore(ReportStore):
    capabilities = StoreCapabilities(report_vulnerabilities=True, host_vulnerabilities=True)

    def __init__(
        self,
        engine: AsyncEngine,
        session_factory: async_sessionmaker[AsyncSession] | None = None,
    ) -> None:
        self._engine = engine
        self._factory = session_factory or build_session_factory(engine)
        # SQLite admits one writer at a time; queue writers here instead of in the driver
        self._write_lock = asyncio.Lock() if engine.dialect.name == "sqlite" else None

    @asynccontextmanager
    async def _session(self) -> AsyncIterator[AsyncSession]:
        try:
            async with self._factory() as session:
                yield session
        except SQLAlchemyError as exc:
            logger.error("Report store failure", error=str(exc))
            raise StorageError(str(exc)) from exc

    @asynccontextmanager
    async def _write(self) -> AsyncIterator[AsyncSession]:
        """A session inside one transaction, committed on success."""
        async with self._write_lock or nullcontext():
            async with self._session() as session, session.begin():
                yield session

    # ── Writes ───────────────────────────────────────────────────────────────

    async def create_report(
        self,
        report: NormalizedReport,
        hosts: list[NormalizedHost],
        vulnerabilities: list[NormalizedVulnerability],
    ) -> int:
        known_ips = {h.ip_address for h in hosts}
        orphans = {v.host_ip for v in vulnerabilities} - known_ips
        if orphans:
            raise ValueError(f"Vulnerabilities reference unknown hosts: {sorted(orphans)}")

        async with self._write() as session:
            row = Report(
                filename=report.filename,
                scan_name=report.scan_name,
                scan_date=report.scan_date,
                scan_metadata=report.scan_metadata or None,
                total_hosts=len(hosts),
                total_vulnerabilities=len(vulnerabilities),
            )
            session.add(row)
            await session.flush()

            host_rows = [
                Host(
                    report_id=row.id,
                    hostname=h.hostname,
                    ip_address=h.ip_address,
                    mac_address=h.mac_address,
                    os=h.os,
                    critical=h.critical,
                    high=h.high,
                    medium=h.medium,
                    low=h.low,
                    info=h.info,
                    total=h.total,
                )
                for h in hosts
            ]
            session.add_all(host_rows)
            await session.flush()
            host_ids = {h.ip_address: h.id for h in host_rows}

            values = [
                {
                    "report_id": row.id,
                    "host_id": host_ids[v.host_ip],
                    "plugin_id": v.plugin_id,
                    "plugin_name": v.plugin_name,
                    "plugin_family": v.plugin_family,
                    "severity": v.severity,
                    "port": v.port,
                    "protocol": v.protocol,
                    "service": v.service,
                    "description": v.description,
                    "solution": v.solution,
                    "synopsis": v.synopsis,
                    "plugin_output": v.plugin_output,
                    "cves": list(v.cves),
                    "cvss_score": v.cvss_score,
                }
                for v in vulnerabilities
            ]
            for start in range(0, len(values), _INSERT_BATCH):
                await session.execute(
                    insert(Vulnerability), values[start:start + _INSERT_BATCH]
                )

            report_id = row.id

        logger.info(
            "Report stored",
            report_id=report_id,
            hosts=len(hosts),
            vulnerabilities=len(vulnerabilities),
        )
        return report_id

    async def delete_report(self, report_id: int) -> None:
        async with self._write() as session:
            exists = await session.scalar(select(Report.id).where(Report.id == report_id))
            if exists is None:
                raise ReportNotFound(report_id)
            await session.execute(
                delete(Vulnerability).where(Vulnerability.report_id == report_id)
            )
            await session.execute(delete(Host).where(Host.report_id == report_id))
            await session.execute(delete(Report).where(Report.id == report_id))
        logger.info("Report deleted", report_id=report_id)

    async def delete_all(self) -> None:
        async with self._write() as session:
            await session.execute(delete(Vulnerability))
            await session.execute(delete(Host))
            await session.execute(delete(Report))
        logger.warning("All report data deleted")

    # ── Reads ────────────────────────────────────────────────────────────────

    async def get_report(self, report_id: int) -> ReportOut:
        async with self._session() as session:
            row = await session.get(Report, report_id)
            if row is None:
                raise ReportNotFound(report_id)
            return ReportOut.model_validate(row)

    async def list_reports(self) -> list[ReportOut]:
        async with self._session() as session:
            result = await session.execute(
                select(Report).order_by(Report.scan_date.asc(), Report.id.asc())
            )
            return [ReportOut.model_validate(r) for r in result.scalars().all()]

    async def get_hosts(self, report_id: int) -> list[HostOut]:
        async with self._session() as session:
            result = await session.execute(
                select(Host).where(Host.report_id == report_id).order_by(Host.id)
            )
            return [HostOut.model_validate(h) for h in result.scalars().all()]

    async def get_host(self, host_id: int) -> HostOut:
        async with self._session() as session:
            row = await session.get(Host, host_id)
            if row is None:
                raise HostNotFound(host_id)
            return HostOut.model_validate(row)

    async def get_report_vulnerabilities(self, report_id: int) -> list[VulnerabilityOut]:
        async with self._session() as session:
            result = await session.execute(
                select(Vulnerability)
                .where(Vulnerability.report_id == report_id)
                .order_by(Vulnerability.id)
            )
            return [VulnerabilityOut.model_validate(v) for v in result.scalars().all()]

    async def get_host_vulnerabilities(self, host_id: int) -> list[VulnerabilityOut]:
        async with self._session() as session:
            result = await session.execute(
                select(Vulnerability)
                .where(Vulnerability.host_id == host_id)
                .order_by(Vulnerability.id)
            )
            return [VulnerabilityOut.model_validate(v) for v in result.scalars().all()]

    async def get_report_items(self, report_id: int) -> list[ReportItemOut]:
        async with self._session() as session:
            result = await session.execute(
                select(Vulnerability, Host.hostname, Host.ip_address, Host.mac_address)
                .join(Host, Vulnerability.host_id == Host.id)
                .where(Vulnerability.report_id == report_id)
                .order_by(
                    Vulnerability.severity.desc(),
                    Vulnerability.plugin_id.asc(),
                    Vulnerability.id.asc(),
                )
            )
            items: list[ReportItemOut] = []
            for vuln, hostname, ip_address, mac_address in result.all():
                base = VulnerabilityOut.model_validate(vuln).model_dump()
                items.append(
                    ReportItemOut(
                        **base,
                        hostname=hostname,
                        ip_address=ip_address,
                        mac_address=mac_address,
                    )
                )
            return items

    async def get_scan_metadata(self, report_id: int) -> dict[str, Any] | None:
        async with self._session() as session:
            result = await session.execute(
                select(Report.scan_metadata).where(Report.id == report_id)
            )
            row = result.one_or_none()
            if row is None:
                raise ReportNotFound(report_id)
            return row[0] or None

    # ── Housekeeping ─────────────────────────────────────────────────────────

    async def get_stats(self) -> DatabaseStats:
        async with self._session() as session:
            total_reports = await session.scalar(select(func.count()).select_from(Report))
            total_hosts = await session.scalar(select(func.count()).select_from(Host))
            total_vulns = await session.scalar(select(func.count()).select_from(Vulnerability))
            storage_size = await self._storage_size(session)
        return DatabaseStats(
            total_reports=total_reports or 0,
            total_hosts=total_hosts or 0,
            total_vulnerabilities=total_vulns or 0,
            storage_size=storage_size,
        )

    async def _storage_size(self, session: AsyncSession) -> int | None:
        dialect = self._engine.dialect.name
        if dialect == "sqlite":
            page_count = await session.scalar(text("PRAGMA page_count"))
            page_size = await session.scalar(text("PRAGMA page_size"))
            return int(page_count or 0) * int(page_size or 0)
        if dialect == "postgresql":
            size = await session.scalar(text("SELECT pg_database_size(current_database())"))
            return int(size) if size is not None else None
        return None

    async def optimize(self) -> None:
        dialect = self._engine.dialect.name
        try:
            async with self._engine.connect() as conn:
                # VACUUM cannot run inside a transaction block
                conn = await conn.execution_options(isolation_level="AUTOCOMMIT")
                if dialect == "sqlite":
                    await conn.execute(text("VACUUM"))
                    await conn.execute(text("ANALYZE"))
                elif dialect == "postgresql":
                    await conn.execute(text("VACUUM ANALYZE"))
                else:
                    logger.info("No storage optimization for backend", backend=dialect)
                    return
        except SQLAlchemyError as exc:
            logger.error("Storage optimization failed", error=str(exc))
            raise StorageError(str(exc)) from exc
        logger.info("Storage optimized", backend=dialect)
