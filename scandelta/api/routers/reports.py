"""Reports API router: import, listing, details and deletion."""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, status

from scandelta.api.dependencies import ServiceDep
from scandelta.schemas.admin import ImportRequest, ImportResultOut
from scandelta.schemas.report import (
    ReportDetails,
    ReportItemOut,
    ReportOut,
    VulnerabilityOut,
)

router = APIRouter(prefix="/reports", tags=["reports"])


@router.get("", response_model=list[ReportOut])
async def list_reports(service: ServiceDep) -> list[ReportOut]:
    return await service.list_reports()


@router.post("", response_model=ImportResultOut, status_code=status.HTTP_201_CREATED)
async def import_report(payload: ImportRequest, service: ServiceDep) -> ImportResultOut:
    """Import a .nessus file readable by the server process."""
    result = await service.import_scan(payload.file_path, filename=payload.filename)
    return ImportResultOut(
        report=result.report,
        warnings=result.warnings,
        dropped_host_count=result.dropped_host_count,
        raw_host_count=result.raw_host_count,
    )


@router.get("/{report_id}", response_model=ReportDetails)
async def get_report(report_id: int, service: ServiceDep) -> ReportDetails:
    return await service.get_report_details(report_id)


@router.delete("/{report_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_report(report_id: int, service: ServiceDep) -> None:
    await service.delete_report(report_id)


@router.get("/{report_id}/vulnerabilities", response_model=list[VulnerabilityOut])
async def get_report_vulnerabilities(
    report_id: int, service: ServiceDep
) -> list[VulnerabilityOut]:
    return await service.get_report_vulnerabilities(report_id)


@router.get("/{report_id}/items", response_model=list[ReportItemOut])
async def get_report_items(report_id: int, service: ServiceDep) -> list[ReportItemOut]:
    """Flat rows of vulnerability plus host identity, most severe first."""
    return await service.get_report_items(report_id)


@router.get("/{report_id}/metadata")
async def get_scan_metadata(report_id: int, service: ServiceDep) -> dict[str, Any] | None:
    return await service.get_scan_metadata(report_id)
