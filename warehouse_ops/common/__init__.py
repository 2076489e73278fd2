"""Shared utilities for the warehouse operations service."""

from .config import DEFAULT_APP_NAME, WarehouseSettings, get_settings
from .instrumentation import build_app, instrument_app
from .logging import bind_actor, configure_logging, reset_actor
from .database import (
    create_engine,
    dispose_engines,
    get_session_factory,
    init_models,
    lifespan_session,
    resolve_database_url,
)
from .cache import cache_key, close_redis_connections, get_redis_client, resolve_redis

__all__ = [
    "WarehouseSettings",
    "get_settings",
    "build_app",
    "instrument_app",
    "configure_logging",
    "bind_actor",
    "reset_actor",
    "DEFAULT_APP_NAME",
    "create_engine",
    "dispose_engines",
    "get_session_factory",
    "init_models",
    "lifespan_session",
    "resolve_database_url",
    "cache_key",
    "get_redis_client",
    "resolve_redis",
    "close_redis_connections",
]
