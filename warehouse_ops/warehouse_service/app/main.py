from contextlib import asynccontextmanager

from fastapi import FastAPI

from warehouse_ops.common import (
    DEFAULT_APP_NAME,
    WarehouseSettings,
    build_app,
    close_redis_connections,
    configure_logging,
    dispose_engines,
    get_session_factory,
    init_models,
    resolve_database_url,
    resolve_redis,
)

from .api.dashboard import router as dashboard_router
from .api.health import router as health_router
from .api.inventory import router as inventory_router
from .api.orders import router as orders_router
from .api.suppliers import router as suppliers_router
from .api.warehouses import router as warehouses_router
from .errors import register_exception_handlers
from .models import Base

SERVICE_NAME = "Warehouse Operations Service"
DEFAULT_DATABASE_URL = "sqlite+aiosqlite:///./warehouse_service.db"


def create_app(settings: WarehouseSettings | None = None) -> FastAPI:
    """Create the Warehouse Operations FastAPI application."""

    resolved_settings = settings or WarehouseSettings()
    if resolved_settings.app_name == DEFAULT_APP_NAME:
        resolved_settings = resolved_settings.model_copy(update={"app_name": SERVICE_NAME})
    configure_logging(resolved_settings)
    database_url = resolve_database_url(resolved_settings, DEFAULT_DATABASE_URL)
    session_factory = get_session_factory(database_url)
    redis_client = resolve_redis(resolved_settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        app.state.session_factory = session_factory
        app.state.redis = redis_client
        try:
            await init_models(database_url, Base.metadata)
            yield
        finally:
            app.state.session_factory = None  # type: ignore[assignment]
            app.state.redis = None
            await dispose_engines()
            if redis_client is not None:
                await close_redis_connections()

    app = build_app(resolved_settings, lifespan=lifespan)
    register_exception_handlers(app)
    app.include_router(health_router)
    app.include_router(inventory_router)
    app.include_router(orders_router)
    app.include_router(suppliers_router)
    app.include_router(warehouses_router)
    app.include_router(dashboard_router)
    return app


app = create_app()
