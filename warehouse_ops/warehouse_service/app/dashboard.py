"""Read-only operations summary with an optional Redis cache."""

from __future__ import annotations

import logging

from pydantic import ValidationError
from redis.asyncio import Redis

from warehouse_ops.common.cache import cache_key

from .metrics import DASHBOARD_CACHE_EVENTS_TOTAL
from .repository import OperationsRepository
from .schemas import DashboardSummary, InventoryRollup, OrderRollup, SupplierRollup, WarehouseRollup

_LOGGER = logging.getLogger(__name__)

CACHE_KEY = cache_key("dashboard", "summary")


class DashboardService:
    def __init__(
        self,
        repository: OperationsRepository,
        *,
        redis: Redis | None = None,
        cache_ttl: int = 0,
    ) -> None:
        self.repository = repository
        self._redis = redis
        self._cache_ttl = cache_ttl

    @property
    def _cache_enabled(self) -> bool:
        return self._redis is not None and self._cache_ttl > 0

    async def summary(self) -> DashboardSummary:
        cached = await self._read_cache()
        if cached is not None:
            return cached

        summary = await self._collect()
        await self._write_cache(summary)
        return summary

    async def invalidate(self) -> None:
        if self._redis is None:
            return
        try:
            await self._redis.delete(CACHE_KEY)
        except Exception:
            DASHBOARD_CACHE_EVENTS_TOTAL.labels(outcome="error").inc()
            _LOGGER.warning("Dashboard cache invalidation failed", exc_info=True)

    async def _collect(self) -> DashboardSummary:
        by_status = await self.repository.count_orders_by("status")
        suppliers = await self.repository.count_suppliers_by_status()
        return DashboardSummary(
            inventory=InventoryRollup(**await self.repository.inventory_rollup()),
            orders=OrderRollup(
                total=sum(by_status.values()),
                by_status=by_status,
                by_type=await self.repository.count_orders_by("order_type"),
                outbound_revenue=await self.repository.outbound_revenue(),
            ),
            suppliers=SupplierRollup(total=sum(suppliers.values()), by_status=suppliers),
            warehouses=WarehouseRollup(**await self.repository.warehouse_rollup()),
        )

    async def _read_cache(self) -> DashboardSummary | None:
        if not self._cache_enabled:
            return None
        assert self._redis is not None
        try:
            raw = await self._redis.get(CACHE_KEY)
        except Exception:
            DASHBOARD_CACHE_EVENTS_TOTAL.labels(outcome="error").inc()
            _LOGGER.warning("Dashboard cache read failed", exc_info=True)
            return None
        if not raw:
            DASHBOARD_CACHE_EVENTS_TOTAL.labels(outcome="miss").inc()
            return None
        try:
            summary = DashboardSummary.model_validate_json(raw)
        except ValidationError:
            DASHBOARD_CACHE_EVENTS_TOTAL.labels(outcome="error").inc()
            await self.invalidate()
            return None
        DASHBOARD_CACHE_EVENTS_TOTAL.labels(outcome="hit").inc()
        return summary

    async def _write_cache(self, summary: DashboardSummary) -> None:
        if not self._cache_enabled:
            return
        assert self._redis is not None
        try:
            await self._redis.set(CACHE_KEY, summary.model_dump_json(), ex=self._cache_ttl)
        except Exception:
            DASHBOARD_CACHE_EVENTS_TOTAL.labels(outcome="error").inc()
            _LOGGER.warning("Dashboard cache write failed", exc_info=True)
