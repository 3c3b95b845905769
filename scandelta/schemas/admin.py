"""Schemas for imports and housekeeping endpoints."""

from __future__ import annotations

from pydantic import BaseModel, Field

from scandelta.schemas.report import ReportOut


class ImportRequest(BaseModel):
    file_path: str = Field(..., min_length=1, description="Path to a .nessus file")
    filename: str | None = Field(
        default=None, description="Display name (defaults to the path's basename)"
    )


class ImportResultOut(BaseModel):
    report: ReportOut
    warnings: list[str] = []
    dropped_host_count: int = 0
    raw_host_count: int = 0


class DatabaseStats(BaseModel):
    total_reports: int
    total_hosts: int
    total_vulnerabilities: int
    # Bytes, or None when the backend cannot report it
    storage_size: int | None = None
