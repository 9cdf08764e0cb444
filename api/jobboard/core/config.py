from functools import lru_cache
from typing import Literal

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    app_name: str = "jobboard-api"
    environment: str = "dev"
    store_backend: Literal["postgres", "memory"] = "postgres"
    database_url: str | None = None
    database_pool_min_size: int = 1
    database_pool_max_size: int = 10
    database_connect_timeout_seconds: float = 5.0
    database_command_timeout_seconds: float = 15.0
    fallback_on_empty: bool = True
    otel_enabled: bool = True
    otel_service_name: str = "jobboard-api"
    otel_exporter_otlp_endpoint: str | None = None
    otel_exporter_otlp_headers: str | None = None
    otel_trace_sample_ratio: float = 1.0
    otel_log_correlation: bool = True

    model_config = SettingsConfigDict(env_prefix="JB_", extra="ignore")


@lru_cache
def get_settings() -> Settings:
    return Settings()
