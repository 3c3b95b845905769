"""FastAPI dependency providers."""

from __future__ import annotations

from functools import lru_cache
from typing import Annotated

from fastapi import Depends

from scandelta.service import ScanService, create_service


@lru_cache
def get_service() -> ScanService:
    """Return the process-wide scan service (one per engine)."""
    return create_service()


ServiceDep = Annotated[ScanService, Depends(get_service)]
