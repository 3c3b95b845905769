"""Tests for core/config.py."""

from scandelta.core.config import Settings


def test_default_settings(monkeypatch):
    monkeypatch.delenv("SCANDELTA_DATABASE_URL", raising=False)
    s = Settings(_env_file=None)
    assert s.app_port == 8000
    assert s.app_host == "127.0.0.1"
    assert s.log_level == "INFO"
    assert s.max_concurrent_imports == 2
    assert s.database_url.startswith("sqlite+aiosqlite")
    assert s.is_sqlite


def test_sync_db_url():
    s = Settings(database_url="postgresql+asyncpg://user:pw@localhost/db")
    assert "+asyncpg" not in s.sync_database_url
    assert "postgresql" in s.sync_database_url
    assert not s.is_sqlite


def test_sqlite_sync_url():
    s = Settings(database_url="sqlite+aiosqlite:///./scans.db")
    assert s.sync_database_url == "sqlite:///./scans.db"


def test_env_prefix(monkeypatch):
    monkeypatch.setenv("SCANDELTA_MAX_CONCURRENT_IMPORTS", "5")
    monkeypatch.setenv("SCANDELTA_LOG_LEVEL", "DEBUG")
    s = Settings(_env_file=None)
    assert s.max_concurrent_imports == 5
    assert s.log_level == "DEBUG"
