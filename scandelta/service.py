"""ScanService: the operations exposed to the API and CLI.

The service owns the import pipeline (parse and normalize off the event loop,
then one atomic store write) and materializes reports for the comparison and
trend engines. It holds no per-request state, so one instance can be shared.
"""

from __future__ import annotations

import asyncio
import threading
from collections.abc import Callable, Iterable
from dataclasses import dataclass, field
from datetime import datetime, timezone
from os import PathLike
from pathlib import Path
from typing import Any

from sqlalchemy.ext.asyncio import AsyncEngine

from scandelta.analysis import compare, trends
from scandelta.core.config import Settings, get_settings
from scandelta.core.database import get_engine
from scandelta.core.errors import PartialImportWarning, ScanIOError
from scandelta.core.logging import get_logger
from scandelta.ingest.normalizer import normalize_scan
from scandelta.ingest.parser import NessusParser
from scandelta.ingest.records import NormalizedScan, RawHost
from scandelta.schemas.admin import DatabaseStats
from scandelta.schemas.analysis import Delta, PluginDelta, TrendRow
from scandelta.schemas.report import (
    HostOut,
    ReportData,
    ReportDetails,
    ReportItemOut,
    ReportOut,
    VulnerabilityOut,
)
from scandelta.store import ReportStore, SqlReportStore

logger = get_logger(__name__)


@dataclass(frozen=True)
class ImportProgress:
    hosts_processed: int
    findings_processed: int


ProgressCallback = Callable[[ImportProgress], Any]


@dataclass
class ImportResult:
    report: ReportOut
    warnings: list[str] = field(default_factory=list)
    dropped_host_count: int = 0
    raw_host_count: int = 0

    @property
    def partial(self) -> PartialImportWarning | None:
        """Set when the import skipped or repaired part of the input."""
        if not self.warnings and not self.dropped_host_count:
            return None
        return PartialImportWarning(self.dropped_host_count, self.warnings)


class _ProgressReporter:
    """Counts hosts in the worker thread and posts progress to the event loop."""

    def __init__(
        self,
        callback: ProgressCallback | None,
        every: int,
        loop: asyncio.AbstractEventLoop,
    ) -> None:
        self._callback = callback
        self._every = every
        self._loop = loop
        self.hosts = 0
        self.findings = 0

    def __call__(self, host: RawHost) -> None:
        self.hosts += 1
        self.findings += len(host.findings)
        if self.hosts % self._every == 0:
            self.emit()

    def emit(self) -> None:
        if self._callback is None:
            return
        snapshot = ImportProgress(self.hosts, self.findings)
        self._loop.call_soon_threadsafe(_deliver_progress, self._callback, snapshot)


def _deliver_progress(callback: ProgressCallback, progress: ImportProgress) -> None:
    try:
        callback(progress)
    except Exception as exc:
        # Progress is informational; a broken observer must not fail the import
        logger.warning("Progress callback failed", error=str(exc))


class ScanService:
    def __init__(self, store: ReportStore, settings: Settings | None = None) -> None:
        caps = store.capabilities
        if not (caps.report_vulnerabilities or caps.host_vulnerabilities):
            raise ValueError(
                f"{type(store).__name__} declares no vulnerability lookup capability"
            )
        self.store = store
        self.settings = settings or get_settings()
        self._import_slots = asyncio.Semaphore(self.settings.max_concurrent_imports)

    # ── Import ───────────────────────────────────────────────────────────────

    async def import_scan(
        self,
        file_path: str | PathLike[str],
        filename: str | None = None,
        progress: ProgressCallback | None = None,
    ) -> ImportResult:
        """Parse, normalize and persist one .nessus file.

        Nothing is written unless the whole file parses. Cancelling the calling
        task stops the parser at the next host boundary.

        Raises:
            ScanIOError: the file cannot be opened or read.
            MalformedScanFile: the file is not a usable .nessus document.
            StorageError: the store rejected the write.
        """
        path = Path(file_path)
        display_name = filename or path.name
        log = logger.bind(filename=display_name)
        cancel = threading.Event()

        async with self._import_slots:
            log.info("Import started", path=str(path))
            reporter = _ProgressReporter(
                progress, self.settings.progress_every_hosts, asyncio.get_running_loop()
            )
            try:
                scan = await asyncio.to_thread(
                    self._parse_and_normalize, path, display_name, cancel, reporter
                )
            except asyncio.CancelledError:
                cancel.set()
                log.warning("Import cancelled")
                raise

            report_id = await self.store.create_report(
                scan.report, scan.hosts, scan.vulnerabilities
            )
            report = await self.store.get_report(report_id)

        result = ImportResult(
            report=report,
            warnings=scan.warnings,
            dropped_host_count=scan.dropped_host_count,
            raw_host_count=scan.raw_host_count,
        )
        log.info(
            "Import complete",
            report_id=report.id,
            hosts=report.total_hosts,
            vulnerabilities=report.total_vulnerabilities,
            dropped_hosts=result.dropped_host_count,
            warnings=len(result.warnings),
        )
        return result

    @staticmethod
    def _parse_and_normalize(
        path: Path,
        filename: str,
        cancel: threading.Event,
        reporter: _ProgressReporter,
    ) -> NormalizedScan:
        try:
            source = path.open("rb")
        except OSError as exc:
            raise ScanIOError(f"Cannot open scan file {path}: {exc}") from exc

        with source:
            parser = NessusParser(source, cancel_event=cancel)
            scan = normalize_scan(
                filename,
                parser.metadata,
                parser.iter_hosts(),
                parser_warnings=parser.warnings,
                imported_at=datetime.now(timezone.utc),
                on_host=reporter,
            )
        reporter.emit()
        return scan

    # ── Reports ──────────────────────────────────────────────────────────────

    async def list_reports(self) -> list[ReportOut]:
        return await self.store.list_reports()

    async def get_report_details(self, report_id: int) -> ReportDetails:
        report = await self.store.get_report(report_id)
        hosts = await self.store.get_hosts(report_id)
        return ReportDetails(report=report, hosts=hosts)

    async def get_report_vulnerabilities(self, report_id: int) -> list[VulnerabilityOut]:
        await self.store.get_report(report_id)
        return await self._report_vulnerabilities(report_id)

    async def get_host_vulnerabilities(self, host_id: int) -> list[VulnerabilityOut]:
        host = await self.store.get_host(host_id)
        if self.store.capabilities.host_vulnerabilities:
            return await self.store.get_host_vulnerabilities(host_id)
        vulns = await self.store.get_report_vulnerabilities(host.report_id)
        return [v for v in vulns if v.host_id == host_id]

    async def get_report_items(self, report_id: int) -> list[ReportItemOut]:
        await self.store.get_report(report_id)
        return await self.store.get_report_items(report_id)

    async def get_scan_metadata(self, report_id: int) -> dict[str, Any] | None:
        return await self.store.get_scan_metadata(report_id)

    async def delete_report(self, report_id: int) -> None:
        await self.store.delete_report(report_id)

    async def _report_vulnerabilities(
        self, report_id: int, hosts: list[HostOut] | None = None
    ) -> list[VulnerabilityOut]:
        if self.store.capabilities.report_vulnerabilities:
            return await self.store.get_report_vulnerabilities(report_id)

        if hosts is None:
            hosts = await self.store.get_hosts(report_id)
        vulns: list[VulnerabilityOut] = []
        for host in hosts:
            vulns.extend(await self.store.get_host_vulnerabilities(host.id))
        return vulns

    async def load_report_data(self, report_id: int) -> ReportData:
        """Materialize a report with every host and vulnerability."""
        report = await self.store.get_report(report_id)
        hosts = await self.store.get_hosts(report_id)
        vulns = await self._report_vulnerabilities(report_id, hosts)
        return ReportData(report=report, hosts=hosts, vulnerabilities=vulns)

    # ── Analysis ─────────────────────────────────────────────────────────────

    async def compare_reports(self, report_id_a: int, report_id_b: int) -> Delta:
        """Compare report A (older) with report B (newer); the order is kept."""
        # Loaded one after the other: sessions may share a single connection
        data_a = await self.load_report_data(report_id_a)
        data_b = await self.load_report_data(report_id_b)
        return compare.compare_reports(data_a, data_b)

    async def compare_plugins(self, report_id_a: int, report_id_b: int) -> PluginDelta:
        data_a = await self.load_report_data(report_id_a)
        data_b = await self.load_report_data(report_id_b)
        return compare.compare_plugins(data_a, data_b)

    async def compute_trends(self, report_ids: Iterable[int]) -> list[TrendRow]:
        datasets = [
            await self.load_report_data(report_id)
            for report_id in dict.fromkeys(report_ids)
        ]
        return trends.compute_trends(datasets)

    # ── Housekeeping ─────────────────────────────────────────────────────────

    async def get_database_stats(self) -> DatabaseStats:
        return await self.store.get_stats()

    async def delete_all_data(self) -> None:
        await self.store.delete_all()

    async def optimize_storage(self) -> None:
        await self.store.optimize()


def create_service(
    engine: AsyncEngine | None = None, settings: Settings | None = None
) -> ScanService:
    """Build a service over the SQL store, using the configured engine by default."""
    return ScanService(SqlReportStore(engine or get_engine()), settings=settings)
