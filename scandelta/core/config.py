"""Application configuration via Pydantic BaseSettings."""

from functools import lru_cache
from typing import Literal

from pydantic import Field, computed_field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_prefix="SCANDELTA_",
        case_sensitive=False,
        extra="ignore",
    )

    # Database
    database_url: str = Field(
        default="sqlite+aiosqlite:///./scandelta.db",
        description="Async SQLAlchemy connection URL for the report store",
    )
    database_echo: bool = Field(default=False, description="Log every SQL statement")

    # Application
    app_host: str = Field(default="127.0.0.1")
    app_port: int = Field(default=8000)
    app_debug: bool = Field(default=False)
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="INFO"
    )

    # Import pipeline
    max_concurrent_imports: int = Field(
        default=2, ge=1, description="Max simultaneous .nessus imports"
    )
    progress_every_hosts: int = Field(
        default=25, ge=1, description="Report import progress every N hosts"
    )

    @computed_field
    @property
    def sync_database_url(self) -> str:
        """Synchronous DB URL (for Alembic migrations)."""
        return self.database_url.replace("+aiosqlite", "").replace("+asyncpg", "")

    @property
    def is_sqlite(self) -> bool:
        return self.database_url.startswith("sqlite")


@lru_cache
def get_settings() -> Settings:
    return Settings()
