from functools import lru_cache
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


DEFAULT_APP_NAME = "warehouse-ops"


class WarehouseSettings(BaseSettings):
    """Runtime settings for the warehouse operations service."""

    app_name: str = Field(default=DEFAULT_APP_NAME)
    environment: Literal["local", "dev", "staging", "prod"] = Field(default="local")
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(default="INFO")
    enable_metrics: bool = Field(default=True)
    enable_tracing: bool = Field(default=False)
    tracing_endpoint: str | None = Field(default=None)
    tracing_protocol: Literal["http/protobuf", "grpc"] = Field(default="http/protobuf")
    tracing_insecure: bool = Field(default=True)
    tracing_sample_rate: float = Field(default=1.0, ge=0.0, le=1.0)
    database_url: str | None = Field(default=None)
    redis_url: str | None = Field(default=None)
    dashboard_cache_ttl_seconds: int = Field(default=30, ge=0)
    # Inventory updates skip the activity log unless this is switched on.
    audit_inventory_updates: bool = Field(default=False)
    order_number_prefix: str = Field(default="ORD", min_length=1, max_length=8)

    model_config = SettingsConfigDict(
        env_file=(".env", ".env.local"), env_prefix="WAREHOUSE_", extra="ignore"
    )


@lru_cache
def get_settings() -> WarehouseSettings:
    """Return cached service settings."""

    return WarehouseSettings()
