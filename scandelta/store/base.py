"""Report store contract: everything the core needs from persistence."""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any

from scandelta.ingest.records import (
    NormalizedHost,
    NormalizedReport,
    NormalizedVulnerability,
)
from scandelta.schemas.admin import DatabaseStats
from scandelta.schemas.report import HostOut, ReportItemOut, ReportOut, VulnerabilityOut


@dataclass(frozen=True)
class StoreCapabilities:
    """Which vulnerability lookups a store can answer efficiently.

    The service uses the bulk per-report path when available and otherwise
    derives it from per-host lookups (and the reverse for a single host).
    Both default to False: a store declares what it implements, and at least
    one of the two must be True.
    """

    report_vulnerabilities: bool = False
    host_vulnerabilities: bool = False


class ReportStore(ABC):
    """Abstract persistence collaborator for reports, hosts and vulnerabilities.

    Implementations own surrogate id assignment and the uniqueness rules:
    one host per (report, IP) and one vulnerability per
    (host, plugin, port, protocol).
    Lookups of unknown ids raise ``NotFoundError`` subclasses; backend
    failures raise ``StorageError``.
    """

    capabilities: StoreCapabilities = StoreCapabilities()

    @abstractmethod
    async def create_report(
        self,
        report: NormalizedReport,
        hosts: list[NormalizedHost],
        vulnerabilities: list[NormalizedVulnerability],
    ) -> int:
        """Persist a report with all of its children atomically; return its id."""

    @abstractmethod
    async def get_report(self, report_id: int) -> ReportOut: ...

    @abstractmethod
    async def list_reports(self) -> list[ReportOut]:
        """All reports, ascending by scan date, ties in import order."""

    @abstractmethod
    async def get_hosts(self, report_id: int) -> list[HostOut]: ...

    @abstractmethod
    async def get_host(self, host_id: int) -> HostOut: ...

    async def get_report_vulnerabilities(self, report_id: int) -> list[VulnerabilityOut]:
        raise NotImplementedError(f"{type(self).__name__} has no per-report vulnerability lookup")

    async def get_host_vulnerabilities(self, host_id: int) -> list[VulnerabilityOut]:
        raise NotImplementedError(f"{type(self).__name__} has no per-host vulnerability lookup")

    @abstractmethod
    async def get_report_items(self, report_id: int) -> list[ReportItemOut]: ...

    @abstractmethod
    async def get_scan_metadata(self, report_id: int) -> dict[str, Any] | None: ...

    @abstractmethod
    async def delete_report(self, report_id: int) -> None:
        """Delete a report and cascade to its hosts and vulnerabilities.

        Raises ``ReportNotFound`` when the id does not exist.
        """

    @abstractmethod
    async def get_stats(self) -> DatabaseStats: ...

    @abstractmethod
    async def delete_all(self) -> None: ...

    @abstractmethod
    async def optimize(self) -> None: ...
