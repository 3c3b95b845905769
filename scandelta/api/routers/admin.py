"""Admin router: storage statistics and maintenance."""

from __future__ import annotations

from fastapi import APIRouter, status

from scandelta.api.dependencies import ServiceDep
from scandelta.core.logging import get_logger
from scandelta.schemas.admin import DatabaseStats

router = APIRouter(prefix="/admin", tags=["admin"])
logger = get_logger(__name__)


@router.get("/stats", response_model=DatabaseStats)
async def get_database_stats(service: ServiceDep) -> DatabaseStats:
    return await service.get_database_stats()


@router.delete("/data", status_code=status.HTTP_204_NO_CONTENT)
async def delete_all_data(service: ServiceDep) -> None:
    logger.warning("Deleting all report data via API")
    await service.delete_all_data()


@router.post("/optimize", status_code=status.HTTP_204_NO_CONTENT)
async def optimize_storage(service: ServiceDep) -> None:
    await service.optimize_storage()
