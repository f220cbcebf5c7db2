"""Configuration management for the loyalty points service."""
from __future__ import annotations

from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    app_name: str = Field(default="Cement Loyalty Service")
    version: str = Field(default="0.1.0")
    docs_url: str | None = Field(default="/docs")
    redoc_url: str | None = Field(default="/redoc")
    openapi_url: str = Field(default="/openapi.json")

    database_url: str = Field(default="postgresql+psycopg://loyalty:loyalty@db:5432/loyalty")

    enable_metrics: bool = Field(default=True)
    enable_tracing: bool = Field(default=True)
    otel_exporter_endpoint: str | None = Field(default=None)

    jwt_algorithm: str = Field(default="HS256")
    jwt_secret_key: str = Field(default="change-me-in-production")

    query_timeout_seconds: float = Field(default=10.0, gt=0)
    analytics_timeout_seconds: float = Field(default=30.0, gt=0)
    top_ranking_size: int = Field(default=5, ge=1)

    analytics_cache_enabled: bool = Field(default=True)
    analytics_cache_ttl_seconds: float = Field(default=60.0, ge=0)
    analytics_cache_max_entries: int = Field(default=256, ge=1)

    rollup_refresh_interval_seconds: int = Field(default=300)

    log_config_path: str | None = Field(default=None)
    log_level: str | None = Field(default=None)

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", case_sensitive=False)


@lru_cache
def get_settings() -> Settings:
    """Return cached settings instance."""
    return Settings()


__all__ = ["Settings", "get_settings"]
