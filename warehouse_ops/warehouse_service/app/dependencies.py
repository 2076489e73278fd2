"""Dependency helpers for the warehouse operations service."""

from __future__ import annotations

from collections.abc import AsyncIterator

from fastapi import Depends, Header, Request
from redis.asyncio import Redis
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from warehouse_ops.common import WarehouseSettings, bind_actor, lifespan_session, reset_actor

from .audit import AuditLog
from .dashboard import DashboardService
from .repository import OperationsRepository
from .services import InventoryService, OrderService, SupplierService, WarehouseService


async def get_session(request: Request) -> AsyncIterator[AsyncSession]:
    session_factory: async_sessionmaker[AsyncSession] = request.app.state.session_factory
    async with lifespan_session(session_factory) as session:
        yield session


def get_repository(session: AsyncSession = Depends(get_session)) -> OperationsRepository:
    return OperationsRepository(session)


def get_settings(request: Request) -> WarehouseSettings:
    return request.app.state.settings


async def get_actor(actor_id: int = Header(alias="X-Actor-Id")) -> AsyncIterator[int]:
    """Bind the acting user to log records for the rest of the request."""

    token = bind_actor(actor_id)
    try:
        yield actor_id
    finally:
        reset_actor(token)


def get_audit_log(repository: OperationsRepository = Depends(get_repository)) -> AuditLog:
    return AuditLog(repository)


def get_dashboard_service(
    request: Request,
    repository: OperationsRepository = Depends(get_repository),
    settings: WarehouseSettings = Depends(get_settings),
) -> DashboardService:
    redis: Redis | None = getattr(request.app.state, "redis", None)
    return DashboardService(repository, redis=redis, cache_ttl=settings.dashboard_cache_ttl_seconds)


def get_inventory_service(
    repository: OperationsRepository = Depends(get_repository),
    audit: AuditLog = Depends(get_audit_log),
    settings: WarehouseSettings = Depends(get_settings),
    dashboard: DashboardService = Depends(get_dashboard_service),
) -> InventoryService:
    return InventoryService(
        repository, audit, audit_updates=settings.audit_inventory_updates, dashboard=dashboard
    )


def get_order_service(
    repository: OperationsRepository = Depends(get_repository),
    audit: AuditLog = Depends(get_audit_log),
    settings: WarehouseSettings = Depends(get_settings),
    dashboard: DashboardService = Depends(get_dashboard_service),
) -> OrderService:
    return OrderService(
        repository, audit, order_number_prefix=settings.order_number_prefix, dashboard=dashboard
    )


def get_supplier_service(
    repository: OperationsRepository = Depends(get_repository),
    audit: AuditLog = Depends(get_audit_log),
    dashboard: DashboardService = Depends(get_dashboard_service),
) -> SupplierService:
    return SupplierService(repository, audit, dashboard=dashboard)


def get_warehouse_service(
    repository: OperationsRepository = Depends(get_repository),
    audit: AuditLog = Depends(get_audit_log),
    dashboard: DashboardService = Depends(get_dashboard_service),
) -> WarehouseService:
    return WarehouseService(repository, audit, dashboard=dashboard)
