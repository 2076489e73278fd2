"""Data access helpers for the warehouse operations service."""

from __future__ import annotations

from collections.abc import Mapping
from decimal import Decimal
from typing import Any, TypeVar

from sqlalchemy import Select, and_, case, func, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from .models import (
    ActivityLog,
    Base,
    InventoryItem,
    Order,
    OrderNumberSequence,
    OrderStatusHistory,
    STOCK_LOW,
    STOCK_OK,
    STOCK_OUT,
    Supplier,
    User,
    Warehouse,
    WarehouseCapacityHistory,
)
from .numbering import max_sequence, year_prefix

ModelT = TypeVar("ModelT", bound=Base)


class OperationsRepository:
    """Persistence utilities for items, orders, suppliers, warehouses and their ledgers."""

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    # Generic writes ---------------------------------------------------------------------

    async def add(self, entity: ModelT) -> ModelT:
        self.session.add(entity)
        await self.session.flush()
        await self.session.refresh(entity)
        return entity

    async def apply(self, entity: ModelT, values: Mapping[str, Any]) -> ModelT:
        for name, value in values.items():
            setattr(entity, name, value)
        await self.session.flush()
        await self.session.refresh(entity)
        return entity

    async def _exists(self, model: type[Base], entity_id: int) -> bool:
        result = await self.session.execute(select(model.id).where(model.id == entity_id))  # type: ignore[attr-defined]
        return result.scalar_one_or_none() is not None

    # Users ------------------------------------------------------------------------------

    async def create_user(
        self,
        *,
        username: str,
        email: str,
        full_name: str | None = None,
        role: str = "staff",
    ) -> User:
        return await self.add(User(username=username, email=email, full_name=full_name, role=role))

    async def user_exists(self, user_id: int) -> bool:
        return await self._exists(User, user_id)

    # Suppliers --------------------------------------------------------------------------

    async def get_supplier(self, supplier_id: int) -> Supplier | None:
        return await self.session.get(Supplier, supplier_id)

    async def supplier_exists(self, supplier_id: int) -> bool:
        return await self._exists(Supplier, supplier_id)

    async def find_supplier_by_email(self, email: str, *, exclude_id: int | None = None) -> Supplier | None:
        stmt = select(Supplier).where(Supplier.email == email)
        if exclude_id is not None:
            stmt = stmt.where(Supplier.id != exclude_id)
        result = await self.session.execute(stmt.limit(1))
        return result.scalar_one_or_none()

    async def find_supplier_by_company(
        self, company_name: str, *, exclude_id: int | None = None
    ) -> Supplier | None:
        stmt = select(Supplier).where(Supplier.company_name == company_name)
        if exclude_id is not None:
            stmt = stmt.where(Supplier.id != exclude_id)
        result = await self.session.execute(stmt.limit(1))
        return result.scalar_one_or_none()

    async def list_suppliers(
        self,
        *,
        status: str | None,
        limit: int,
        offset: int,
    ) -> tuple[list[Supplier], int]:
        filters = []
        if status is not None:
            filters.append(Supplier.status == status)
        return await self._page(Supplier, filters, limit=limit, offset=offset)

    # Warehouses -------------------------------------------------------------------------

    async def get_warehouse(self, warehouse_id: int) -> Warehouse | None:
        return await self.session.get(Warehouse, warehouse_id)

    async def warehouse_exists(self, warehouse_id: int) -> bool:
        return await self._exists(Warehouse, warehouse_id)

    async def find_warehouse_by_email(self, email: str, *, exclude_id: int | None = None) -> Warehouse | None:
        stmt = select(Warehouse).where(Warehouse.email == email)
        if exclude_id is not None:
            stmt = stmt.where(Warehouse.id != exclude_id)
        result = await self.session.execute(stmt.limit(1))
        return result.scalar_one_or_none()

    async def list_warehouses(
        self,
        *,
        status: str | None,
        warehouse_type: str | None,
        limit: int,
        offset: int,
    ) -> tuple[list[Warehouse], int]:
        filters = []
        if status is not None:
            filters.append(Warehouse.status == status)
        if warehouse_type is not None:
            filters.append(Warehouse.warehouse_type == warehouse_type)
        return await self._page(Warehouse, filters, limit=limit, offset=offset)

    async def add_capacity_snapshot(self, warehouse: Warehouse, *, recorded_by: int) -> WarehouseCapacityHistory:
        snapshot = WarehouseCapacityHistory(
            warehouse_id=warehouse.id,
            total_capacity=warehouse.total_capacity,
            available_capacity=warehouse.available_capacity,
            capacity_utilization=warehouse.capacity_utilization,
            recorded_by=recorded_by,
        )
        return await self.add(snapshot)

    async def list_capacity_history(self, warehouse_id: int) -> list[WarehouseCapacityHistory]:
        result = await self.session.execute(
            select(WarehouseCapacityHistory)
            .where(WarehouseCapacityHistory.warehouse_id == warehouse_id)
            .order_by(WarehouseCapacityHistory.recorded_at, WarehouseCapacityHistory.id)
        )
        return list(result.scalars())

    # Inventory --------------------------------------------------------------------------

    async def get_item(self, item_id: int) -> InventoryItem | None:
        return await self.session.get(InventoryItem, item_id)

    async def find_item_by_sku(self, sku: str, *, exclude_id: int | None = None) -> InventoryItem | None:
        stmt = select(InventoryItem).where(InventoryItem.sku == sku)
        if exclude_id is not None:
            stmt = stmt.where(InventoryItem.id != exclude_id)
        result = await self.session.execute(stmt.limit(1))
        return result.scalar_one_or_none()

    async def list_items(
        self,
        *,
        category: str | None,
        status: str | None,
        warehouse_id: int | None,
        supplier_id: int | None,
        stock_level: str | None,
        limit: int,
        offset: int,
    ) -> tuple[list[InventoryItem], int]:
        filters = []
        if category is not None:
            filters.append(InventoryItem.category == category)
        if status is not None:
            filters.append(InventoryItem.status == status)
        if warehouse_id is not None:
            filters.append(InventoryItem.warehouse_id == warehouse_id)
        if supplier_id is not None:
            filters.append(InventoryItem.supplier_id == supplier_id)
        if stock_level is not None:
            filters.append(_stock_level_expression() == stock_level)
        return await self._page(InventoryItem, filters, limit=limit, offset=offset)

    # Orders -----------------------------------------------------------------------------

    async def get_order(self, order_id: int) -> Order | None:
        return await self.session.get(Order, order_id)

    async def list_orders(
        self,
        *,
        order_type: str | None,
        status: str | None,
        warehouse_id: int | None,
        priority: str | None,
        limit: int,
        offset: int,
    ) -> tuple[list[Order], int]:
        filters = []
        if order_type is not None:
            filters.append(Order.order_type == order_type)
        if status is not None:
            filters.append(Order.status == status)
        if warehouse_id is not None:
            filters.append(Order.warehouse_id == warehouse_id)
        if priority is not None:
            filters.append(Order.priority == priority)
        return await self._page(Order, filters, limit=limit, offset=offset)

    async def add_status_history(self, order: Order, *, status: str, changed_by: int) -> OrderStatusHistory:
        return await self.add(OrderStatusHistory(order_id=order.id, status=status, changed_by=changed_by))

    async def list_status_history(self, order_id: int) -> list[OrderStatusHistory]:
        result = await self.session.execute(
            select(OrderStatusHistory)
            .where(OrderStatusHistory.order_id == order_id)
            .order_by(OrderStatusHistory.changed_at, OrderStatusHistory.id)
        )
        return list(result.scalars())

    async def max_order_sequence(self, year: int, *, prefix: str) -> int:
        """Highest sequence already used by an order number of ``year``."""

        result = await self.session.execute(
            select(Order.order_number).where(Order.order_number.like(f"{year_prefix(year, prefix=prefix)}%"))
        )
        return max_sequence(result.scalars(), year, prefix=prefix)

    async def increment_order_sequence(self, year: int) -> int | None:
        """Bump the counter row for ``year`` and return the new value.

        The UPDATE holds the row lock until the surrounding transaction ends,
        so concurrent allocations for the same year are serialized.
        """

        stmt = (
            update(OrderNumberSequence)
            .where(OrderNumberSequence.year == year)
            .values(last_value=OrderNumberSequence.last_value + 1)
            .returning(OrderNumberSequence.last_value)
            .execution_options(synchronize_session=False)
        )
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def create_order_sequence(self, year: int, *, start: int) -> bool:
        """Insert the counter row for ``year``; False if another transaction won."""

        try:
            async with self.session.begin_nested():
                self.session.add(OrderNumberSequence(year=year, last_value=start))
        except IntegrityError:
            return False
        return True

    # Activity log -----------------------------------------------------------------------

    async def add_activity(
        self,
        *,
        user_id: int,
        action: str,
        entity_type: str,
        entity_id: int,
        description: str | None,
    ) -> ActivityLog:
        entry = ActivityLog(
            user_id=user_id,
            action=action,
            entity_type=entity_type,
            entity_id=entity_id,
            description=description,
        )
        self.session.add(entry)
        await self.session.flush()
        return entry

    # Rollups ----------------------------------------------------------------------------

    async def inventory_rollup(self) -> dict[str, Any]:
        stock_level = _stock_level_expression()
        stmt = select(
            func.count(InventoryItem.id),
            func.coalesce(func.sum(InventoryItem.quantity_on_hand), 0),
            func.coalesce(func.sum(InventoryItem.quantity_available), 0),
            func.coalesce(func.sum(InventoryItem.quantity_on_hand * InventoryItem.cost_price), 0),
            func.coalesce(func.sum(case((stock_level == STOCK_LOW, 1), else_=0)), 0),
            func.coalesce(func.sum(case((stock_level == STOCK_OUT, 1), else_=0)), 0),
        )
        row = (await self.session.execute(stmt)).one()
        return {
            "item_count": row[0],
            "units_on_hand": row[1],
            "units_available": row[2],
            "stock_value": Decimal(str(row[3])),
            "low_stock_count": row[4],
            "out_of_stock_count": row[5],
        }

    async def count_orders_by(self, column_name: str) -> dict[str, int]:
        column = getattr(Order, column_name)
        result = await self.session.execute(select(column, func.count(Order.id)).group_by(column))
        return {key: count for key, count in result.all()}

    async def outbound_revenue(self) -> Decimal:
        stmt = select(func.coalesce(func.sum(Order.net_amount), 0)).where(
            and_(Order.order_type == "outbound", Order.status != "cancelled")
        )
        value = (await self.session.execute(stmt)).scalar_one()
        return Decimal(str(value))

    async def count_suppliers_by_status(self) -> dict[str, int]:
        result = await self.session.execute(
            select(Supplier.status, func.count(Supplier.id)).group_by(Supplier.status)
        )
        return {key: count for key, count in result.all()}

    async def warehouse_rollup(self) -> dict[str, Any]:
        stmt = select(
            func.count(Warehouse.id),
            func.coalesce(func.sum(Warehouse.total_capacity), 0),
            func.coalesce(func.sum(Warehouse.available_capacity), 0),
            func.avg(Warehouse.capacity_utilization),
        )
        row = (await self.session.execute(stmt)).one()
        return {
            "total": row[0],
            "total_capacity": row[1],
            "available_capacity": row[2],
            "average_utilization": round(float(row[3]), 2) if row[3] is not None else 0.0,
        }

    # Helpers ----------------------------------------------------------------------------

    async def _page(
        self,
        model: type[ModelT],
        filters: list[Any],
        *,
        limit: int,
        offset: int,
    ) -> tuple[list[ModelT], int]:
        identity = model.id  # type: ignore[attr-defined]
        base: Select[tuple[ModelT]] = select(model).order_by(identity.desc())
        count: Select[tuple[int]] = select(func.count(identity))

        if filters:
            clause = and_(*filters)
            base = base.where(clause)
            count = count.where(clause)

        total = (await self.session.execute(count)).scalar_one()
        result = await self.session.execute(base.offset(offset).limit(limit))
        return list(result.scalars()), total


def _stock_level_expression():
    available = InventoryItem.quantity_available
    return case(
        (available <= 0, STOCK_OUT),
        (available <= func.coalesce(InventoryItem.minimum_stock_level, 0), STOCK_LOW),
        else_=STOCK_OK,
    )
