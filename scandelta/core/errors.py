"""Error taxonomy shared by the parser, store, engines and surfaces.

Only structural failures are raised. Per-record problems found while parsing
or normalizing are collected as warning strings and handed back with the
import result (see ``PartialImportWarning``).
"""

from __future__ import annotations


class ScanDeltaError(Exception):
    """Base class for every error raised by scandelta."""


class MalformedScanFile(ScanDeltaError):
    """The .nessus document is not well-formed or lacks its root elements."""


class ScanIOError(ScanDeltaError):
    """The scan file could not be opened or read."""


class ImportCancelled(ScanDeltaError):
    """An import was abandoned before anything was written."""


class NotFoundError(ScanDeltaError):
    """A lookup by surrogate id matched nothing."""

    entity = "record"

    def __init__(self, entity_id: int) -> None:
        self.entity_id = entity_id
        super().__init__(f"{self.entity.capitalize()} {entity_id} not found")


class ReportNotFound(NotFoundError):
    entity = "report"


class HostNotFound(NotFoundError):
    entity = "host"


class StorageError(ScanDeltaError):
    """The report store failed (I/O, constraint violation, driver error)."""


class PartialImportWarning(UserWarning):
    """An import succeeded but skipped or repaired part of the input.

    Returned alongside the created report, never raised.
    """

    def __init__(self, dropped_host_count: int, warnings: list[str]) -> None:
        self.dropped_host_count = dropped_host_count
        self.warnings = list(warnings)
        super().__init__(
            f"Import completed with {len(self.warnings)} warning(s); "
            f"{dropped_host_count} host(s) dropped"
        )
