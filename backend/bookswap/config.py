"""Application Configuration — environment-driven settings via pydantic-settings.

Invariants:
    - All secrets come from environment variables (never hardcoded)
    - get_settings() is cached (lru_cache) — single instance per process
    - Stream names are shared by producers and consumers: both read them from here

Design Decisions:
    - pydantic-settings over raw os.environ: validation, type coercion, .env file support
    - Defaults provided for all non-secret settings: works out-of-the-box with docker-compose
"""

import socket
from functools import lru_cache

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from bookswap.core.domain_types import FactType


class Settings(BaseSettings):
    """Application settings from environment variables."""

    model_config = SettingsConfigDict(env_file=".env", case_sensitive=False)

    # Database
    database_url: str = (
        "postgresql+asyncpg://bookswap:bookswap@db:5432/bookswap"
    )

    @field_validator("database_url", mode="before")
    @classmethod
    def convert_postgres_url(cls, v: str) -> str:
        """Hosted Postgres provides postgresql:// but asyncpg needs postgresql+asyncpg://."""
        if isinstance(v, str) and v.startswith("postgresql://"):
            return v.replace("postgresql://", "postgresql+asyncpg://", 1)
        return v

    database_pool_size: int = 20
    database_max_overflow: int = 10

    # Event transport (Redis Streams)
    redis_url: str = "redis://redis:6379/0"
    user_request_stream: str = "validate-user"
    book_request_stream: str = "validate-book"
    user_result_stream: str = "user.validated"
    book_result_stream: str = "book.validated"
    consumer_name: str = Field(default_factory=socket.gethostname)
    stream_block_ms: int = 5000
    stream_batch_size: int = 10
    reclaim_idle_ms: int = 30_000
    max_deliveries: int = 5
    max_in_flight: int = 10

    # Fact checkers
    inventory_service_url: str = "http://inventory-service:3000"
    lookup_timeout_seconds: float = 5.0

    # Reconciliation
    validation_deadline_seconds: int = 300
    sweep_interval_seconds: int = 60
    sweep_batch_size: int = 100

    # Observability
    log_level: str = "INFO"
    log_format: str = "json"

    def request_stream(self, fact_type: FactType) -> str:
        if fact_type is FactType.USER:
            return self.user_request_stream
        return self.book_request_stream

    def result_stream(self, fact_type: FactType) -> str:
        if fact_type is FactType.USER:
            return self.user_result_stream
        return self.book_result_stream


@lru_cache
def get_settings() -> Settings:
    return Settings()
