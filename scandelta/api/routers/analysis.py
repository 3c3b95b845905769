"""Comparison and trend endpoints."""

from __future__ import annotations

from fastapi import APIRouter, Query

from scandelta.api.dependencies import ServiceDep
from scandelta.schemas.analysis import Delta, PluginDelta, TrendRequest, TrendRow

router = APIRouter(tags=["analysis"])


@router.get("/compare", response_model=Delta)
async def compare_reports(
    service: ServiceDep,
    a: int = Query(..., description="Older report id"),
    b: int = Query(..., description="Newer report id"),
) -> Delta:
    return await service.compare_reports(a, b)


@router.get("/compare/plugins", response_model=PluginDelta)
async def compare_plugins(
    service: ServiceDep,
    a: int = Query(..., description="Older report id"),
    b: int = Query(..., description="Newer report id"),
) -> PluginDelta:
    return await service.compare_plugins(a, b)


@router.post("/trends", response_model=list[TrendRow])
async def compute_trends(payload: TrendRequest, service: ServiceDep) -> list[TrendRow]:
    return await service.compute_trends(payload.report_ids)
