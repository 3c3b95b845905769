"""pytest fixtures shared across all tests."""

from __future__ import annotations

from pathlib import Path

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from scandelta.core.config import Settings
from scandelta.core.database import build_engine, init_db
from scandelta.service import ScanService
from scandelta.store import SqlReportStore

# Use SQLite in-memory for tests.
# Each test function gets its own fresh DB to avoid cross-test pollution.
TEST_DB_URL = "sqlite+aiosqlite:///:memory:"


@pytest.fixture
def settings() -> Settings:
    return Settings(database_url=TEST_DB_URL, progress_every_hosts=1)


@pytest_asyncio.fixture
async def engine():
    """Create a fresh in-memory SQLite engine per test function."""
    eng = build_engine(TEST_DB_URL)
    await init_db(eng)
    yield eng
    await eng.dispose()


@pytest_asyncio.fixture
async def store(engine) -> SqlReportStore:
    return SqlReportStore(engine)


@pytest_asyncio.fixture
async def service(store, settings) -> ScanService:
    return ScanService(store, settings=settings)


@pytest.fixture
def write_scan(tmp_path: Path):
    """Write an XML string to a .nessus file under tmp_path and return its path."""
    counter = {"n": 0}

    def _write(xml: str, name: str | None = None) -> Path:
        counter["n"] += 1
        path = tmp_path / (name or f"scan{counter['n']}.nessus")
        path.write_text(xml, encoding="utf-8")
        return path

    return _write


@pytest_asyncio.fixture
async def client(service):
    """HTTPX async test client wired to the FastAPI app with a test DB."""
    from scandelta.api.app import create_app
    from scandelta.api.dependencies import get_service

    app = create_app()
    app.dependency_overrides[get_service] = lambda: service

    async with AsyncClient(
        transport=ASGITransport(app=app), base_url="http://test"
    ) as ac:
        yield ac
