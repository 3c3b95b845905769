"""Hosts API router."""

from __future__ import annotations

from fastapi import APIRouter

from scandelta.api.dependencies import ServiceDep
from scandelta.schemas.report import VulnerabilityOut

router = APIRouter(prefix="/hosts", tags=["hosts"])


@router.get("/{host_id}/vulnerabilities", response_model=list[VulnerabilityOut])
async def get_host_vulnerabilities(host_id: int, service: ServiceDep) -> list[VulnerabilityOut]:
    return await service.get_host_vulnerabilities(host_id)
