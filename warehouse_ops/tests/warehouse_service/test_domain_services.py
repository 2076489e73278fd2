from contextlib import asynccontextmanager
from datetime import date, datetime, timezone
from decimal import Decimal
from typing import Any

import pytest
from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError, OperationalError

from warehouse_ops.common import dispose_engines, get_session_factory, init_models, lifespan_session
from warehouse_ops.warehouse_service.app.audit import AuditLog
from warehouse_ops.warehouse_service.app.errors import BadRequestError, ConflictError, InternalError, NotFoundError
from warehouse_ops.warehouse_service.app.models import ActivityLog, Base, Order
from warehouse_ops.warehouse_service.app.repository import OperationsRepository
from warehouse_ops.warehouse_service.app.schemas import (
    InventoryCreate,
    InventoryUpdate,
    OrderCreate,
    OrderUpdate,
    SupplierCreate,
    SupplierUpdate,
    WarehouseCreate,
    WarehouseUpdate,
)
from warehouse_ops.warehouse_service.app.services import (
    InventoryService,
    OrderService,
    SupplierService,
    WarehouseService,
)


def _fixed_clock(year: int = 2025):
    return lambda: datetime(year, 3, 10, 9, 30, tzinfo=timezone.utc)


@asynccontextmanager
async def _store(tmp_path):
    database_url = f"sqlite+aiosqlite:///{tmp_path / 'operations.db'}"
    await init_models(database_url, Base.metadata)
    try:
        yield get_session_factory(database_url)
    finally:
        await dispose_engines()


@asynccontextmanager
async def _unit_of_work(session_factory):
    async with lifespan_session(session_factory) as session:
        yield OperationsRepository(session)


def _supplier_payload(**overrides: Any) -> SupplierCreate:
    payload = {
        "company_name": "Acme Supply",
        "contact_person": "Wile Coyote",
        "email": "orders@acme.test",
        "phone": "555-0101",
        "address": "1 Mesa Road",
        "city": "Desert",
        "country": "US",
    }
    payload.update(overrides)
    return SupplierCreate(**payload)


def _warehouse_payload(**overrides: Any) -> WarehouseCreate:
    payload = {
        "name": "Main DC",
        "address": "1 Dock Road",
        "city": "Springfield",
        "country": "US",
        "zip_code": "12345",
        "phone": "555-0100",
        "email": "dc@example.com",
        "total_capacity": 1000,
        "available_capacity": 400,
    }
    payload.update(overrides)
    return WarehouseCreate(**payload)


def _outbound_payload(warehouse_id: int, **overrides: Any) -> OrderCreate:
    payload = {
        "order_type": "outbound",
        "warehouse_id": warehouse_id,
        "customer_name": "Ada Lovelace",
        "customer_email": "ada@example.com",
        "total_amount": "250.00",
        "discount_amount": "25.00",
        "expected_delivery_date": date(2025, 3, 20),
    }
    payload.update(overrides)
    return OrderCreate(**payload)


async def _seed(session_factory) -> dict[str, int]:
    async with _unit_of_work(session_factory) as repository:
        user = await repository.create_user(username="clerk", email="clerk@example.com")
        audit = AuditLog(repository)
        supplier = await SupplierService(repository, audit).add_supplier(_supplier_payload(), actor_id=user.id)
        warehouse = await WarehouseService(repository, audit).add_warehouse(_warehouse_payload(), actor_id=user.id)
        return {"user": user.id, "supplier": supplier.id, "warehouse": warehouse.id}


async def _activity_count(session_factory, entity_type: str) -> int:
    async with _unit_of_work(session_factory) as repository:
        result = await repository.session.execute(
            select(func.count(ActivityLog.id)).where(ActivityLog.entity_type == entity_type)
        )
        return result.scalar_one()


@pytest.mark.asyncio
async def test_inventory_item_reports_available_quantity(tmp_path) -> None:
    async with _store(tmp_path) as session_factory:
        ids = await _seed(session_factory)
        async with _unit_of_work(session_factory) as repository:
            service = InventoryService(repository, AuditLog(repository))
            item = await service.add_item(
                InventoryCreate(
                    sku="SKU-1",
                    product_name="Pallet Jack",
                    category="equipment",
                    supplier_id=ids["supplier"],
                    warehouse_id=ids["warehouse"],
                    quantity_on_hand=100,
                    quantity_reserved=20,
                    unit_price="10.00",
                    cost_price="6.00",
                ),
                actor_id=ids["user"],
            )

        assert item.quantity_available == 80
        assert item.status == "active"
        assert item.last_counted_date is not None
        assert await _activity_count(session_factory, "inventory") == 1


@pytest.mark.asyncio
async def test_inventory_rejects_duplicate_sku_and_unknown_references(tmp_path) -> None:
    async with _store(tmp_path) as session_factory:
        ids = await _seed(session_factory)
        base = {
            "sku": "SKU-1",
            "product_name": "Pallet Jack",
            "category": "equipment",
            "supplier_id": ids["supplier"],
            "warehouse_id": ids["warehouse"],
            "quantity_on_hand": 5,
            "unit_price": "10.00",
            "cost_price": "6.00",
        }
        async with _unit_of_work(session_factory) as repository:
            await InventoryService(repository, AuditLog(repository)).add_item(
                InventoryCreate(**base), actor_id=ids["user"]
            )

        with pytest.raises(ConflictError) as conflict:
            async with _unit_of_work(session_factory) as repository:
                await InventoryService(repository, AuditLog(repository)).add_item(
                    InventoryCreate(**base), actor_id=ids["user"]
                )
        assert conflict.value.message == "SKU already exists. Please use a unique SKU."

        with pytest.raises(NotFoundError) as missing:
            async with _unit_of_work(session_factory) as repository:
                await InventoryService(repository, AuditLog(repository)).add_item(
                    InventoryCreate(**{**base, "sku": "SKU-2", "supplier_id": 999}), actor_id=ids["user"]
                )
        assert missing.value.message == "Supplier not found"


@pytest.mark.asyncio
async def test_inventory_updates_skip_audit_unless_enabled(tmp_path) -> None:
    async with _store(tmp_path) as session_factory:
        ids = await _seed(session_factory)
        async with _unit_of_work(session_factory) as repository:
            item = await InventoryService(repository, AuditLog(repository)).add_item(
                InventoryCreate(
                    sku="SKU-9",
                    product_name="Shrink Wrap",
                    category="supplies",
                    supplier_id=ids["supplier"],
                    warehouse_id=ids["warehouse"],
                    quantity_on_hand=10,
                    unit_price="3.00",
                    cost_price="1.00",
                ),
                actor_id=ids["user"],
            )

        async with _unit_of_work(session_factory) as repository:
            service = InventoryService(repository, AuditLog(repository))
            updated = await service.update_item(
                item.id, InventoryUpdate(quantity_reserved="4"), actor_id=ids["user"]
            )
        assert updated.quantity_available == 6
        assert await _activity_count(session_factory, "inventory") == 1

        async with _unit_of_work(session_factory) as repository:
            service = InventoryService(repository, AuditLog(repository), audit_updates=True)
            updated = await service.update_item(
                item.id, InventoryUpdate(quantity_on_hand="not a number"), actor_id=ids["user"]
            )
        assert updated.quantity_on_hand == 0
        assert updated.quantity_available == -4
        assert updated.stock_level == "out_of_stock"
        assert await _activity_count(session_factory, "inventory") == 2


@pytest.mark.asyncio
async def test_first_order_of_the_year_is_numbered_from_one(tmp_path) -> None:
    async with _store(tmp_path) as session_factory:
        ids = await _seed(session_factory)
        numbers = []
        for clock in (_fixed_clock(2025), _fixed_clock(2025), _fixed_clock(2026)):
            async with _unit_of_work(session_factory) as repository:
                service = OrderService(repository, AuditLog(repository), clock=clock)
                order = await service.add_order(_outbound_payload(ids["warehouse"]), actor_id=ids["user"])
                numbers.append(order.order_number)

        assert numbers == ["ORD-2025-001", "ORD-2025-002", "ORD-2026-001"]
        assert order.net_amount == Decimal("225.00")
        assert order.supplier_id is None


@pytest.mark.asyncio
async def test_order_counter_seeds_from_existing_numbers(tmp_path) -> None:
    async with _store(tmp_path) as session_factory:
        ids = await _seed(session_factory)
        async with _unit_of_work(session_factory) as repository:
            await repository.add(
                Order(
                    order_number="ORD-2025-041",
                    order_type="transfer",
                    warehouse_id=ids["warehouse"],
                    order_date=datetime(2025, 1, 5, tzinfo=timezone.utc),
                    expected_delivery_date=date(2025, 1, 9),
                    total_amount=Decimal("10.00"),
                )
            )

        async with _unit_of_work(session_factory) as repository:
            service = OrderService(repository, AuditLog(repository), clock=_fixed_clock(2025))
            order = await service.add_order(_outbound_payload(ids["warehouse"]), actor_id=ids["user"])

        assert order.order_number == "ORD-2025-042"


@pytest.mark.asyncio
async def test_order_rules_reject_before_any_write(tmp_path) -> None:
    async with _store(tmp_path) as session_factory:
        ids = await _seed(session_factory)

        with pytest.raises(BadRequestError) as outbound:
            async with _unit_of_work(session_factory) as repository:
                await OrderService(repository, AuditLog(repository)).add_order(
                    _outbound_payload(ids["warehouse"], customer_email=None), actor_id=ids["user"]
                )
        assert outbound.value.message == "customer_name and customer_email are required for outbound orders"

        with pytest.raises(BadRequestError) as inbound:
            async with _unit_of_work(session_factory) as repository:
                await OrderService(repository, AuditLog(repository)).add_order(
                    _outbound_payload(ids["warehouse"], order_type="inbound"), actor_id=ids["user"]
                )
        assert inbound.value.message == "supplier_id is required for inbound orders"

        with pytest.raises(NotFoundError):
            async with _unit_of_work(session_factory) as repository:
                await OrderService(repository, AuditLog(repository)).add_order(
                    _outbound_payload(ids["warehouse"], assigned_to=404), actor_id=ids["user"]
                )

        async with _unit_of_work(session_factory) as repository:
            orders, total = await repository.list_orders(
                order_type=None, status=None, warehouse_id=None, priority=None, limit=10, offset=0
            )
        assert total == 0 and orders == []


@pytest.mark.asyncio
async def test_status_change_is_recorded_once_and_party_follows_type(tmp_path) -> None:
    async with _store(tmp_path) as session_factory:
        ids = await _seed(session_factory)
        async with _unit_of_work(session_factory) as repository:
            order = await OrderService(repository, AuditLog(repository)).add_order(
                _outbound_payload(ids["warehouse"]), actor_id=ids["user"]
            )

        async with _unit_of_work(session_factory) as repository:
            service = OrderService(repository, AuditLog(repository))
            await service.update_order(order.id, OrderUpdate(status="processing"), actor_id=ids["user"])
            await service.update_order(order.id, OrderUpdate(notes="call ahead"), actor_id=ids["user"])
            updated = await service.update_order(
                order.id,
                OrderUpdate(order_type="inbound", supplier_id=ids["supplier"]),
                actor_id=ids["user"],
            )

        assert updated.order_number == order.order_number
        assert updated.status == "processing"
        assert updated.notes == "call ahead"
        assert updated.supplier_id == ids["supplier"]
        assert updated.customer_name is None
        assert updated.customer_email is None

        async with _unit_of_work(session_factory) as repository:
            history = await repository.list_status_history(order.id)
        assert [entry.status for entry in history] == ["processing"]
        assert history[0].changed_by == ids["user"]


@pytest.mark.asyncio
async def test_update_unknown_order_is_not_found(tmp_path) -> None:
    async with _store(tmp_path) as session_factory:
        ids = await _seed(session_factory)
        with pytest.raises(NotFoundError) as excinfo:
            async with _unit_of_work(session_factory) as repository:
                await OrderService(repository, AuditLog(repository)).update_order(
                    999, OrderUpdate(status="shipped"), actor_id=ids["user"]
                )
        assert excinfo.value.message == "Order not found"


@pytest.mark.asyncio
async def test_warehouse_capacity_violation_leaves_record_untouched(tmp_path) -> None:
    async with _store(tmp_path) as session_factory:
        ids = await _seed(session_factory)

        with pytest.raises(BadRequestError) as excinfo:
            async with _unit_of_work(session_factory) as repository:
                await WarehouseService(repository, AuditLog(repository)).update_warehouse(
                    ids["warehouse"], WarehouseUpdate(available_capacity=1200), actor_id=ids["user"]
                )
        assert excinfo.value.message == "Available capacity cannot exceed total capacity"

        async with _unit_of_work(session_factory) as repository:
            warehouse = await repository.get_warehouse(ids["warehouse"])
            history = await repository.list_capacity_history(ids["warehouse"])
        assert warehouse is not None
        assert warehouse.available_capacity == 400
        assert len(history) == 1
        assert history[0].capacity_utilization == 60.0


@pytest.mark.asyncio
async def test_warehouse_update_snapshots_capacity_and_checks_manager(tmp_path) -> None:
    async with _store(tmp_path) as session_factory:
        ids = await _seed(session_factory)

        async with _unit_of_work(session_factory) as repository:
            warehouse = await WarehouseService(repository, AuditLog(repository)).update_warehouse(
                ids["warehouse"],
                WarehouseUpdate(available_capacity=250, manager_id=ids["user"]),
                actor_id=ids["user"],
            )
        assert warehouse.capacity_utilization == 75.0

        with pytest.raises(BadRequestError) as excinfo:
            async with _unit_of_work(session_factory) as repository:
                await WarehouseService(repository, AuditLog(repository)).update_warehouse(
                    ids["warehouse"], WarehouseUpdate(manager_id=999), actor_id=ids["user"]
                )
        assert excinfo.value.message == "Invalid manager ID"

        async with _unit_of_work(session_factory) as repository:
            history = await repository.list_capacity_history(ids["warehouse"])
        assert [snapshot.capacity_utilization for snapshot in history] == [60.0, 75.0]


@pytest.mark.asyncio
async def test_supplier_uniqueness_and_rating_bounds(tmp_path) -> None:
    async with _store(tmp_path) as session_factory:
        ids = await _seed(session_factory)

        with pytest.raises(ConflictError) as email_conflict:
            async with _unit_of_work(session_factory) as repository:
                await SupplierService(repository, AuditLog(repository)).add_supplier(
                    _supplier_payload(company_name="Other Co"), actor_id=ids["user"]
                )
        assert email_conflict.value.message == "Supplier with this email already exists"

        with pytest.raises(ConflictError) as company_conflict:
            async with _unit_of_work(session_factory) as repository:
                await SupplierService(repository, AuditLog(repository)).add_supplier(
                    _supplier_payload(email="sales@other.test"), actor_id=ids["user"]
                )
        assert company_conflict.value.message == "Company name already exists"

        with pytest.raises(BadRequestError) as rating:
            async with _unit_of_work(session_factory) as repository:
                await SupplierService(repository, AuditLog(repository)).update_supplier(
                    ids["supplier"], SupplierUpdate(rating=9), actor_id=ids["user"]
                )
        assert rating.value.message == "Rating must be between 0 and 5"

        async with _unit_of_work(session_factory) as repository:
            supplier = await SupplierService(repository, AuditLog(repository)).update_supplier(
                ids["supplier"], SupplierUpdate(rating=4, email="orders@acme.test"), actor_id=ids["user"]
            )
        assert supplier.rating == 4


class _FailingRepository(OperationsRepository):
    async def add(self, entity):
        raise OperationalError("INSERT", {}, Exception("database is locked"))


class _FailingAuditRepository(OperationsRepository):
    async def add_activity(self, **kwargs):
        raise OperationalError("INSERT", {}, Exception("activity_logs is unavailable"))


@pytest.mark.asyncio
async def test_store_failure_surfaces_as_internal_error(tmp_path) -> None:
    async with _store(tmp_path) as session_factory:
        ids = await _seed(session_factory)
        with pytest.raises(InternalError) as excinfo:
            async with lifespan_session(session_factory) as session:
                repository = _FailingRepository(session)
                await SupplierService(repository, AuditLog(repository)).add_supplier(
                    _supplier_payload(company_name="Beta", email="beta@example.com"), actor_id=ids["user"]
                )
        assert excinfo.value.message == "Error saving supplier"
        assert isinstance(excinfo.value.__cause__, OperationalError)


@pytest.mark.asyncio
async def test_audit_failure_does_not_undo_primary_write(tmp_path) -> None:
    async with _store(tmp_path) as session_factory:
        ids = await _seed(session_factory)
        async with lifespan_session(session_factory) as session:
            repository = _FailingAuditRepository(session)
            supplier = await SupplierService(repository, AuditLog(repository)).add_supplier(
                _supplier_payload(company_name="Gamma", email="gamma@example.com"), actor_id=ids["user"]
            )

        async with _unit_of_work(session_factory) as repository:
            stored = await repository.get_supplier(supplier.id)
        assert stored is not None
        assert stored.company_name == "Gamma"
        assert await _activity_count(session_factory, "supplier") == 1


def _item_payload(ids: dict[str, int], **overrides: Any) -> InventoryCreate:
    payload = {
        "sku": "A",
        "product_name": "Stretch Film",
        "category": "supplies",
        "supplier_id": ids["supplier"],
        "warehouse_id": ids["warehouse"],
        "quantity_on_hand": 40,
        "unit_price": "12.00",
        "cost_price": "7.50",
        "minimum_stock_level": 10,
    }
    payload.update(overrides)
    return InventoryCreate(**payload)


@pytest.mark.asyncio
async def test_inventory_update_rejects_sku_of_another_item(tmp_path) -> None:
    async with _store(tmp_path) as session_factory:
        ids = await _seed(session_factory)
        async with _unit_of_work(session_factory) as repository:
            service = InventoryService(repository, AuditLog(repository))
            await service.add_item(_item_payload(ids), actor_id=ids["user"])
            second = await service.add_item(
                _item_payload(ids, sku="B", product_name="Corner Boards"), actor_id=ids["user"]
            )

        with pytest.raises(ConflictError) as conflict:
            async with _unit_of_work(session_factory) as repository:
                await InventoryService(repository, AuditLog(repository)).update_item(
                    second.id, InventoryUpdate(sku="A", product_name="Renamed"), actor_id=ids["user"]
                )
        assert conflict.value.details == {"field": "sku", "value": "A"}

        async with _unit_of_work(session_factory) as repository:
            stored = await repository.get_item(second.id)
        assert stored is not None
        assert stored.sku == "B"
        assert stored.product_name == "Corner Boards"


@pytest.mark.asyncio
async def test_inventory_update_null_clears_optional_levels_only(tmp_path) -> None:
    async with _store(tmp_path) as session_factory:
        ids = await _seed(session_factory)
        async with _unit_of_work(session_factory) as repository:
            item = await InventoryService(repository, AuditLog(repository)).add_item(
                _item_payload(ids), actor_id=ids["user"]
            )

        async with _unit_of_work(session_factory) as repository:
            updated = await InventoryService(repository, AuditLog(repository)).update_item(
                item.id,
                InventoryUpdate.model_validate({"minimum_stock_level": None, "quantity_on_hand": None}),
                actor_id=ids["user"],
            )

        assert updated.minimum_stock_level is None
        assert updated.quantity_on_hand == 40


class _RacingRepository(OperationsRepository):
    async def find_item_by_sku(self, sku, *, exclude_id=None):
        return None


@pytest.mark.asyncio
async def test_unique_constraint_race_surfaces_as_conflict(tmp_path) -> None:
    async with _store(tmp_path) as session_factory:
        ids = await _seed(session_factory)
        async with _unit_of_work(session_factory) as repository:
            await InventoryService(repository, AuditLog(repository)).add_item(_item_payload(ids), actor_id=ids["user"])

        with pytest.raises(ConflictError) as excinfo:
            async with lifespan_session(session_factory) as session:
                repository = _RacingRepository(session)
                await InventoryService(repository, AuditLog(repository)).add_item(
                    _item_payload(ids), actor_id=ids["user"]
                )
        assert excinfo.value.message == "Inventory conflicts with an existing record"
        assert isinstance(excinfo.value.__cause__, IntegrityError)


@pytest.mark.asyncio
async def test_outbound_update_ignores_supplier_it_would_clear(tmp_path) -> None:
    async with _store(tmp_path) as session_factory:
        ids = await _seed(session_factory)
        async with _unit_of_work(session_factory) as repository:
            service = OrderService(repository, AuditLog(repository))
            order = await service.add_order(
                _outbound_payload(ids["warehouse"], supplier_id=999), actor_id=ids["user"]
            )
            updated = await service.update_order(
                order.id, OrderUpdate(supplier_id=999, notes="dock 4"), actor_id=ids["user"]
            )

        assert order.supplier_id is None
        assert updated.supplier_id is None
        assert updated.notes == "dock 4"
