"""Domain services: validation, derived fields, persistence and side ledgers.

Each public operation checks everything it can before the first write.
Writes happen inside ``_write_phase``, which opens an operation span and
turns store failures into ``InternalError`` while the session rolls the
whole unit of work back. A unique constraint lost to a concurrent writer
surfaces as ``ConflictError``. Every successful write drops the cached
dashboard summary.
"""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator, Callable, Mapping
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Any

from pydantic import BaseModel
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from warehouse_ops.common.tracing import operation_span

from .audit import CREATE, UPDATE, AuditLog
from .dashboard import DashboardService
from .errors import BadRequestError, ConflictError, InternalError, NotFoundError, WarehouseOpsError
from .metrics import (
    ORDER_NUMBERS_ALLOCATED_TOTAL,
    ORDER_SEQUENCE_SEEDED_TOTAL,
    RECORDS_WRITTEN_TOTAL,
    STORE_FAILURES_TOTAL,
    VALIDATION_REJECTIONS_TOTAL,
)
from .models import Base, InventoryItem, Order, Supplier, Warehouse
from .numbering import format_order_number
from .party import party_columns, party_from_values
from .repository import OperationsRepository
from .schemas import (
    InventoryCreate,
    InventoryUpdate,
    OrderCreate,
    OrderUpdate,
    SupplierCreate,
    SupplierUpdate,
    WarehouseCreate,
    WarehouseUpdate,
)
from .validation import (
    INVENTORY_VALIDATOR,
    ORDER_VALIDATOR,
    SUPPLIER_VALIDATOR,
    WAREHOUSE_VALIDATOR,
)

_LOGGER = logging.getLogger(__name__)

Clock = Callable[[], datetime]

_PARTY_FIELDS = frozenset(
    {"supplier_id", "customer_name", "customer_email", "customer_phone", "customer_address"}
)


def utcnow() -> datetime:
    return datetime.now(tz=timezone.utc)


def _rejected(entity: str, error: WarehouseOpsError) -> WarehouseOpsError:
    VALIDATION_REJECTIONS_TOTAL.labels(entity=entity, kind=error.kind).inc()
    return error


def _changes(payload: BaseModel, model: type[Base]) -> dict[str, Any]:
    """Fields the caller actually sent; nulls are dropped for NOT NULL columns."""

    columns = model.__table__.c  # type: ignore[attr-defined]
    return {
        name: value
        for name, value in payload.model_dump(exclude_unset=True).items()
        if value is not None or columns[name].nullable
    }


def _merged(entity: Base, payload_type: type[BaseModel], changes: Mapping[str, Any]) -> dict[str, Any]:
    values = {name: getattr(entity, name) for name in payload_type.model_fields}
    values.update(changes)
    return values


@asynccontextmanager
async def _write_phase(entity: str, action: str, payload: Mapping[str, Any]) -> AsyncIterator[None]:
    with operation_span(entity, action, fields=",".join(sorted(payload))):
        try:
            yield
        except IntegrityError as exc:
            _LOGGER.warning("Unique constraint rejected %s %s: %s", action, entity, exc.orig)
            raise _rejected(
                entity,
                ConflictError(
                    f"{entity.capitalize()} conflicts with an existing record",
                    details={"entity": entity, "action": action},
                ),
            ) from exc
        except SQLAlchemyError as exc:
            STORE_FAILURES_TOTAL.labels(entity=entity, action=action).inc()
            _LOGGER.error("Store failure during %s %s payload=%r", action, entity, dict(payload), exc_info=True)
            raise InternalError(
                f"Error saving {entity}", details={"entity": entity, "action": action}
            ) from exc


async def _invalidate_dashboard_cache(dashboard: DashboardService | None) -> None:
    if dashboard is None:
        return
    await dashboard.invalidate()

class SupplierService:
    """Supplier registry with email and company-name uniqueness."""

    def __init__(
        self,
        repository: OperationsRepository,
        audit: AuditLog,
        *,
        dashboard: DashboardService | None = None,
    ) -> None:
        self.repository = repository
        self.audit = audit
        self.dashboard = dashboard

    async def add_supplier(self, payload: SupplierCreate, *, actor_id: int) -> Supplier:
        values = payload.model_dump()
        SUPPLIER_VALIDATOR.validate(values)
        await self._ensure_unique(values, exclude_id=None)

        async with _write_phase("supplier", CREATE, values):
            supplier = await self.repository.add(Supplier(**values, created_by=actor_id, updated_by=actor_id))
            await self.audit.append(
                actor_id=actor_id,
                action=CREATE,
                entity_type="supplier",
                entity_id=supplier.id,
                description=f"Added new supplier: {supplier.company_name} (Contact: {supplier.contact_person})",
            )
        RECORDS_WRITTEN_TOTAL.labels(entity="supplier", action=CREATE).inc()
        await _invalidate_dashboard_cache(self.dashboard)
        _LOGGER.info("Added supplier %s (%s)", supplier.id, supplier.company_name)
        return supplier

    async def update_supplier(self, supplier_id: int, payload: SupplierUpdate, *, actor_id: int) -> Supplier:
        supplier = await self.repository.get_supplier(supplier_id)
        if supplier is None:
            raise _rejected("supplier", NotFoundError.for_entity("Supplier", supplier_id, "Supplier not found"))

        changes = _changes(payload, Supplier)
        values = _merged(supplier, SupplierUpdate, changes)
        SUPPLIER_VALIDATOR.validate(values)
        await self._ensure_unique(values, exclude_id=supplier.id)

        async with _write_phase("supplier", UPDATE, changes):
            supplier = await self.repository.apply(supplier, {**changes, "updated_by": actor_id})
            await self.audit.append(
                actor_id=actor_id,
                action=UPDATE,
                entity_type="supplier",
                entity_id=supplier.id,
                description=f"Updated supplier: {supplier.company_name}",
            )
        RECORDS_WRITTEN_TOTAL.labels(entity="supplier", action=UPDATE).inc()
        await _invalidate_dashboard_cache(self.dashboard)
        _LOGGER.info("Updated supplier %s", supplier.id)
        return supplier

    async def _ensure_unique(self, values: Mapping[str, Any], *, exclude_id: int | None) -> None:
        email = values["email"]
        if await self.repository.find_supplier_by_email(email, exclude_id=exclude_id) is not None:
            raise _rejected(
                "supplier",
                ConflictError.for_field("email", email, "Supplier with this email already exists"),
            )
        company_name = values["company_name"]
        if await self.repository.find_supplier_by_company(company_name, exclude_id=exclude_id) is not None:
            raise _rejected(
                "supplier",
                ConflictError.for_field("company_name", company_name, "Company name already exists"),
            )


class WarehouseService:
    """Warehouse records, capacity invariants and the capacity history ledger."""

    def __init__(
        self,
        repository: OperationsRepository,
        audit: AuditLog,
        *,
        dashboard: DashboardService | None = None,
    ) -> None:
        self.repository = repository
        self.audit = audit
        self.dashboard = dashboard

    async def add_warehouse(self, payload: WarehouseCreate, *, actor_id: int) -> Warehouse:
        values = payload.model_dump()
        await self._validate(values, manager_changed=True, exclude_id=None)

        async with _write_phase("warehouse", CREATE, values):
            warehouse = await self.repository.add(Warehouse(**values, created_by=actor_id, updated_by=actor_id))
            await self.audit.append(
                actor_id=actor_id,
                action=CREATE,
                entity_type="warehouse",
                entity_id=warehouse.id,
                description=f"Added new warehouse: {warehouse.name}",
            )
            await self.repository.add_capacity_snapshot(warehouse, recorded_by=actor_id)
        RECORDS_WRITTEN_TOTAL.labels(entity="warehouse", action=CREATE).inc()
        await _invalidate_dashboard_cache(self.dashboard)
        _LOGGER.info("Added warehouse %s at %.2f%% utilization", warehouse.id, warehouse.capacity_utilization)
        return warehouse

    async def update_warehouse(self, warehouse_id: int, payload: WarehouseUpdate, *, actor_id: int) -> Warehouse:
        warehouse = await self.repository.get_warehouse(warehouse_id)
        if warehouse is None:
            raise _rejected(
                "warehouse", NotFoundError.for_entity("Warehouse", warehouse_id, "Warehouse not found")
            )

        changes = _changes(payload, Warehouse)
        values = _merged(warehouse, WarehouseUpdate, changes)
        await self._validate(values, manager_changed="manager_id" in changes, exclude_id=warehouse.id)

        async with _write_phase("warehouse", UPDATE, changes):
            warehouse = await self.repository.apply(warehouse, {**changes, "updated_by": actor_id})
            await self.audit.append(
                actor_id=actor_id,
                action=UPDATE,
                entity_type="warehouse",
                entity_id=warehouse.id,
                description=f"Updated warehouse: {warehouse.name}",
            )
            await self.repository.add_capacity_snapshot(warehouse, recorded_by=actor_id)
        RECORDS_WRITTEN_TOTAL.labels(entity="warehouse", action=UPDATE).inc()
        await _invalidate_dashboard_cache(self.dashboard)
        _LOGGER.info("Updated warehouse %s at %.2f%% utilization", warehouse.id, warehouse.capacity_utilization)
        return warehouse

    async def _validate(self, values: Mapping[str, Any], *, manager_changed: bool, exclude_id: int | None) -> None:
        WAREHOUSE_VALIDATOR.validate(values)

        email = values["email"]
        if await self.repository.find_warehouse_by_email(email, exclude_id=exclude_id) is not None:
            raise _rejected(
                "warehouse",
                ConflictError.for_field("email", email, "Email already exists for another warehouse"),
            )

        manager_id = values.get("manager_id")
        if manager_changed and manager_id is not None and not await self.repository.user_exists(manager_id):
            # Unknown managers are a bad request here, unlike NotFound elsewhere.
            raise _rejected(
                "warehouse", BadRequestError("Invalid manager ID", details={"fields": ["manager_id"]})
            )


class InventoryService:
    """Inventory ledger: sku uniqueness, references and quantity reconciliation."""

    def __init__(
        self,
        repository: OperationsRepository,
        audit: AuditLog,
        *,
        audit_updates: bool = False,
        clock: Clock = utcnow,
        dashboard: DashboardService | None = None,
    ) -> None:
        self.repository = repository
        self.audit = audit
        self.audit_updates = audit_updates
        self.clock = clock
        self.dashboard = dashboard

    async def add_item(self, payload: InventoryCreate, *, actor_id: int) -> InventoryItem:
        values = payload.model_dump()
        INVENTORY_VALIDATOR.validate(values)

        if await self.repository.find_item_by_sku(values["sku"]) is not None:
            raise _rejected(
                "inventory",
                ConflictError.for_field("sku", values["sku"], "SKU already exists. Please use a unique SKU."),
            )
        await self._ensure_references(values)

        async with _write_phase("inventory", CREATE, values):
            item = await self.repository.add(
                InventoryItem(
                    **values,
                    last_counted_date=self.clock(),
                    created_by=actor_id,
                    updated_by=actor_id,
                )
            )
            await self.audit.append(
                actor_id=actor_id,
                action=CREATE,
                entity_type="inventory",
                entity_id=item.id,
                description=f"Added new inventory item: {item.product_name} (SKU: {item.sku})",
            )
        RECORDS_WRITTEN_TOTAL.labels(entity="inventory", action=CREATE).inc()
        await _invalidate_dashboard_cache(self.dashboard)
        _LOGGER.info("Added inventory item %s (%s) available=%s", item.id, item.sku, item.quantity_available)
        return item

    async def update_item(self, item_id: int, payload: InventoryUpdate, *, actor_id: int) -> InventoryItem:
        item = await self.repository.get_item(item_id)
        if item is None:
            raise _rejected(
                "inventory", NotFoundError.for_entity("Inventory item", item_id, "Inventory item not found")
            )

        changes = _changes(payload, InventoryItem)
        values = _merged(item, InventoryUpdate, changes)
        INVENTORY_VALIDATOR.validate(values)

        if await self.repository.find_item_by_sku(values["sku"], exclude_id=item.id) is not None:
            raise _rejected(
                "inventory",
                ConflictError.for_field("sku", values["sku"], "SKU already exists. Please use a unique SKU."),
            )
        await self._ensure_references(changes)

        async with _write_phase("inventory", UPDATE, changes):
            item = await self.repository.apply(item, {**changes, "updated_by": actor_id})
            await self._record_update(item, actor_id=actor_id)
        RECORDS_WRITTEN_TOTAL.labels(entity="inventory", action=UPDATE).inc()
        await _invalidate_dashboard_cache(self.dashboard)
        _LOGGER.info("Updated inventory item %s available=%s", item.id, item.quantity_available)
        return item

    async def _record_update(self, item: InventoryItem, *, actor_id: int) -> None:
        if not self.audit_updates:
            return
        await self.audit.append(
            actor_id=actor_id,
            action=UPDATE,
            entity_type="inventory",
            entity_id=item.id,
            description=f"Updated inventory item: {item.product_name} (SKU: {item.sku})",
        )

    async def _ensure_references(self, values: Mapping[str, Any]) -> None:
        supplier_id = values.get("supplier_id")
        if supplier_id is not None and not await self.repository.supplier_exists(supplier_id):
            raise _rejected("inventory", NotFoundError.for_entity("Supplier", supplier_id, "Supplier not found"))
        warehouse_id = values.get("warehouse_id")
        if warehouse_id is not None and not await self.repository.warehouse_exists(warehouse_id):
            raise _rejected(
                "inventory", NotFoundError.for_entity("Warehouse", warehouse_id, "Warehouse not found")
            )


class OrderService:
    """Order lifecycle: numbering, type-dependent party fields and status history."""

    def __init__(
        self,
        repository: OperationsRepository,
        audit: AuditLog,
        *,
        order_number_prefix: str = "ORD",
        clock: Clock = utcnow,
        dashboard: DashboardService | None = None,
    ) -> None:
        self.repository = repository
        self.audit = audit
        self.order_number_prefix = order_number_prefix
        self.clock = clock
        self.dashboard = dashboard

    async def add_order(self, payload: OrderCreate, *, actor_id: int) -> Order:
        values = payload.model_dump()
        ORDER_VALIDATOR.validate(values)

        party = party_from_values(values["order_type"], values)
        columns = {name: value for name, value in values.items() if name not in _PARTY_FIELDS}
        columns.update(party_columns(party))
        await self._ensure_references(columns)
        now = self.clock()

        async with _write_phase("order", CREATE, values):
            order_number = await self.allocate_order_number(now.year)
            order = await self.repository.add(
                Order(
                    **columns,
                    order_number=order_number,
                    order_date=now,
                    created_by=actor_id,
                    updated_by=actor_id,
                )
            )
            await self.audit.append(
                actor_id=actor_id,
                action=CREATE,
                entity_type="order",
                entity_id=order.id,
                description=(
                    f"Created new {order.order_type} order: {order.order_number} (Total: ${order.total_amount})"
                ),
            )
        RECORDS_WRITTEN_TOTAL.labels(entity="order", action=CREATE).inc()
        await _invalidate_dashboard_cache(self.dashboard)
        _LOGGER.info("Created %s order %s", order.order_type, order.order_number)
        return order

    async def update_order(self, order_id: int, payload: OrderUpdate, *, actor_id: int) -> Order:
        order = await self.repository.get_order(order_id)
        if order is None:
            raise _rejected("order", NotFoundError.for_entity("Order", order_id, "Order not found"))

        changes = _changes(payload, Order)
        values = _merged(order, OrderUpdate, changes)
        ORDER_VALIDATOR.validate(values)

        party = party_from_values(values["order_type"], values)
        columns = {name: value for name, value in changes.items() if name not in _PARTY_FIELDS}
        columns.update(party_columns(party))
        # Only references that will be written are resolved; the party variant may null supplier_id.
        await self._ensure_references(columns)
        columns["updated_by"] = actor_id

        async with _write_phase("order", UPDATE, changes):
            order = await self.repository.apply(order, columns)
            await self.audit.append(
                actor_id=actor_id,
                action=UPDATE,
                entity_type="order",
                entity_id=order.id,
                description=f"Updated {order.order_type} order {order.order_number}",
            )
            # Any status in the payload is recorded, even when unchanged.
            if "status" in changes:
                await self.repository.add_status_history(order, status=changes["status"], changed_by=actor_id)
        RECORDS_WRITTEN_TOTAL.labels(entity="order", action=UPDATE).inc()
        await _invalidate_dashboard_cache(self.dashboard)
        _LOGGER.info("Updated order %s status=%s", order.order_number, order.status)
        return order

    async def allocate_order_number(self, year: int) -> str:
        """Hand out the next order number for ``year`` from the per-year counter."""

        sequence = await self.repository.increment_order_sequence(year)
        if sequence is None:
            start = await self.repository.max_order_sequence(year, prefix=self.order_number_prefix) + 1
            if await self.repository.create_order_sequence(year, start=start):
                ORDER_SEQUENCE_SEEDED_TOTAL.inc()
                sequence = start
            else:
                sequence = await self.repository.increment_order_sequence(year)
        if sequence is None:
            raise InternalError("Order number counter is unavailable", details={"year": year})
        ORDER_NUMBERS_ALLOCATED_TOTAL.inc()
        return format_order_number(year, sequence, prefix=self.order_number_prefix)

    async def _ensure_references(self, values: Mapping[str, Any]) -> None:
        warehouse_id = values.get("warehouse_id")
        if warehouse_id is not None and not await self.repository.warehouse_exists(warehouse_id):
            raise _rejected("order", NotFoundError.for_entity("Warehouse", warehouse_id, "Warehouse not found"))
        supplier_id = values.get("supplier_id")
        if supplier_id is not None and not await self.repository.supplier_exists(supplier_id):
            raise _rejected("order", NotFoundError.for_entity("Supplier", supplier_id, "Supplier not found"))
        for field, label in (("assigned_to", "Assigned user"), ("approved_by", "Approving user")):
            user_id = values.get(field)
            if user_id is not None and not await self.repository.user_exists(user_id):
                raise _rejected("order", NotFoundError.for_entity("User", user_id, f"{label} not found"))
