import asyncio
from contextlib import asynccontextmanager
from typing import Any

from fastapi import FastAPI
from httpx import ASGITransport, AsyncClient

from warehouse_ops.common import WarehouseSettings, dispose_engines, get_session_factory, lifespan_session
from warehouse_ops.warehouse_service.app.main import create_app
from warehouse_ops.warehouse_service.app.repository import OperationsRepository


def _run(coro):
    return asyncio.run(coro)


def _prepare_app(tmp_path) -> tuple[FastAPI, str]:
    database_url = f"sqlite+aiosqlite:///{tmp_path / 'warehouse.db'}"
    settings = WarehouseSettings(
        app_name="Warehouse Service Test",
        enable_metrics=False,
        enable_tracing=False,
        database_url=database_url,
    )
    return create_app(settings), database_url


async def _create_user(database_url: str) -> int:
    async with lifespan_session(get_session_factory(database_url)) as session:
        user = await OperationsRepository(session).create_user(username="clerk", email="clerk@example.com")
        return user.id


def _supplier_payload(**overrides: Any) -> dict[str, Any]:
    payload = {
        "company_name": "Acme Supply",
        "contact_person": "Wile Coyote",
        "email": "orders@acme.test",
        "phone": "555-0101",
        "address": "1 Mesa Road",
        "city": "Desert",
        "country": "US",
        "rating": 4,
    }
    payload.update(overrides)
    return payload


def _warehouse_payload(**overrides: Any) -> dict[str, Any]:
    payload = {
        "name": "Main DC",
        "address": "1 Dock Road",
        "city": "Springfield",
        "country": "US",
        "zip_code": "12345",
        "phone": "555-0100",
        "email": "dc@example.com",
        "total_capacity": 1000,
        "available_capacity": 200,
    }
    payload.update(overrides)
    return payload


async def _bootstrap(client: AsyncClient, headers: dict[str, str]) -> tuple[int, int]:
    supplier = await client.post("/suppliers", json=_supplier_payload(), headers=headers)
    assert supplier.status_code == 201
    warehouse = await client.post("/warehouses", json=_warehouse_payload(), headers=headers)
    assert warehouse.status_code == 201
    return supplier.json()["id"], warehouse.json()["id"]


def test_inventory_lifecycle(tmp_path) -> None:
    app, database_url = _prepare_app(tmp_path)

    async def body() -> None:
        async with lifespan(app):
            headers = {"X-Actor-Id": str(await _create_user(database_url))}
            transport = ASGITransport(app=app)
            async with AsyncClient(transport=transport, base_url="http://test") as client:
                supplier_id, warehouse_id = await _bootstrap(client, headers)
                item_payload = {
                    "sku": "SKU-1",
                    "product_name": "Widget",
                    "category": "Tools",
                    "supplier_id": supplier_id,
                    "warehouse_id": warehouse_id,
                    "quantity_on_hand": 100,
                    "quantity_reserved": 20,
                    "unit_price": "9.99",
                    "cost_price": "4.50",
                    "minimum_stock_level": 10,
                    "quantity_available": 5000,
                }
                create_resp = await client.post("/inventory", json=item_payload, headers=headers)
                assert create_resp.status_code == 201
                created = create_resp.json()
                assert created["quantity_available"] == 80
                assert created["status"] == "active"
                assert created["unit_price"] == "9.99"
                assert created["stock_level"] == "in_stock"

                duplicate = await client.post("/inventory", json=item_payload, headers=headers)
                assert duplicate.status_code == 409
                assert duplicate.json()["error"] == "Conflict"

                update_resp = await client.put(
                    f"/inventory/{created['id']}",
                    json={"quantity_reserved": 95},
                    headers=headers,
                )
                assert update_resp.status_code == 200
                assert update_resp.json()["quantity_available"] == 5
                assert update_resp.json()["stock_level"] == "low_stock"

                low = await client.get("/inventory", params={"stock_level": "low_stock"})
                assert low.status_code == 200
                assert low.json()["total"] == 1

                missing = await client.get("/inventory/999")
                assert missing.status_code == 404
                assert missing.json() == {
                    "error": "NotFound",
                    "message": "Inventory item not found",
                    "details": {"entity": "Inventory item", "id": 999},
                }

    _run(body())
    _run(dispose_engines())


def test_order_numbering_status_history_and_listing(tmp_path) -> None:
    app, database_url = _prepare_app(tmp_path)

    async def body() -> None:
        async with lifespan(app):
            headers = {"X-Actor-Id": str(await _create_user(database_url))}
            transport = ASGITransport(app=app)
            async with AsyncClient(transport=transport, base_url="http://test") as client:
                supplier_id, warehouse_id = await _bootstrap(client, headers)
                order_payload = {
                    "order_type": "inbound",
                    "supplier_id": supplier_id,
                    "customer_name": "Ignored",
                    "warehouse_id": warehouse_id,
                    "total_amount": "500.00",
                    "discount_amount": "50.00",
                    "expected_delivery_date": "2025-06-01",
                    "order_number": "HACKED-1",
                }
                first = await client.post("/orders", json=order_payload, headers=headers)
                assert first.status_code == 201
                created = first.json()
                assert created["order_number"].endswith("-001")
                assert created["order_number"].startswith("ORD-")
                assert created["net_amount"] == "450.00"
                assert created["customer_name"] is None

                second = await client.post("/orders", json=order_payload, headers=headers)
                assert second.json()["order_number"].endswith("-002")

                update_resp = await client.put(
                    f"/orders/{created['id']}",
                    json={"status": "processing", "priority": "high"},
                    headers=headers,
                )
                assert update_resp.status_code == 200
                assert update_resp.json()["status"] == "processing"

                history = await client.get(f"/orders/{created['id']}/status-history")
                assert history.status_code == 200
                assert [entry["status"] for entry in history.json()] == ["processing"]

                listing = await client.get("/orders", params={"priority": "high"})
                assert listing.json()["total"] == 1
                assert listing.json()["items"][0]["id"] == created["id"]

                bad = await client.post(
                    "/orders",
                    json={**order_payload, "order_type": "outbound", "customer_email": None},
                    headers=headers,
                )
                assert bad.status_code == 400
                assert bad.json()["message"] == (
                    "customer_name and customer_email are required for outbound orders"
                )

    _run(body())
    _run(dispose_engines())


def test_warehouse_capacity_rules_and_history(tmp_path) -> None:
    app, database_url = _prepare_app(tmp_path)

    async def body() -> None:
        async with lifespan(app):
            headers = {"X-Actor-Id": str(await _create_user(database_url))}
            transport = ASGITransport(app=app)
            async with AsyncClient(transport=transport, base_url="http://test") as client:
                _, warehouse_id = await _bootstrap(client, headers)

                rejected = await client.put(
                    f"/warehouses/{warehouse_id}",
                    json={"total_capacity": 1000, "available_capacity": 1200},
                    headers=headers,
                )
                assert rejected.status_code == 400
                assert rejected.json()["message"] == "Available capacity cannot exceed total capacity"

                current = await client.get(f"/warehouses/{warehouse_id}")
                assert current.json()["available_capacity"] == 200
                assert current.json()["capacity_utilization"] == 80.0

                history = await client.get(f"/warehouses/{warehouse_id}/capacity-history")
                assert len(history.json()) == 1

                unknown = await client.put("/warehouses/999", json={"name": "Ghost"}, headers=headers)
                assert unknown.status_code == 404

                duplicate = await client.post(
                    "/warehouses", json=_warehouse_payload(name="Overflow"), headers=headers
                )
                assert duplicate.status_code == 409
                assert duplicate.json()["message"] == "Email already exists for another warehouse"

    _run(body())
    _run(dispose_engines())


def test_writes_require_actor_and_well_formed_payloads(tmp_path) -> None:
    app, database_url = _prepare_app(tmp_path)

    async def body() -> None:
        async with lifespan(app):
            headers = {"X-Actor-Id": str(await _create_user(database_url))}
            transport = ASGITransport(app=app)
            async with AsyncClient(transport=transport, base_url="http://test") as client:
                anonymous = await client.post("/suppliers", json=_supplier_payload())
                assert anonymous.status_code == 400
                assert anonymous.json()["error"] == "BadRequest"

                malformed = await client.post(
                    "/suppliers", json=_supplier_payload(rating="five"), headers=headers
                )
                assert malformed.status_code == 400
                fields = [error["field"] for error in malformed.json()["details"]["errors"]]
                assert "rating" in fields

                out_of_range = await client.post(
                    "/suppliers", json=_supplier_payload(rating=6), headers=headers
                )
                assert out_of_range.status_code == 400
                assert out_of_range.json()["message"] == "Rating must be between 0 and 5"

    _run(body())
    _run(dispose_engines())


def test_dashboard_summary_rolls_up_records(tmp_path) -> None:
    app, database_url = _prepare_app(tmp_path)

    async def body() -> None:
        async with lifespan(app):
            headers = {"X-Actor-Id": str(await _create_user(database_url))}
            transport = ASGITransport(app=app)
            async with AsyncClient(transport=transport, base_url="http://test") as client:
                supplier_id, warehouse_id = await _bootstrap(client, headers)
                await client.post(
                    "/orders",
                    json={
                        "order_type": "outbound",
                        "customer_name": "Ada",
                        "customer_email": "ada@example.com",
                        "warehouse_id": warehouse_id,
                        "total_amount": "120.00",
                        "discount_amount": "20.00",
                        "expected_delivery_date": "2025-06-01",
                    },
                    headers=headers,
                )

                summary = await client.get("/dashboard/summary")
                assert summary.status_code == 200
                data = summary.json()
                assert data["orders"]["total"] == 1
                assert data["orders"]["by_type"] == {"outbound": 1}
                assert data["orders"]["outbound_revenue"] == "100.00"
                assert data["suppliers"]["by_status"] == {"active": 1}
                assert data["warehouses"]["total"] == 1
                assert data["warehouses"]["average_utilization"] == 80.0
                assert data["inventory"]["item_count"] == 0

    _run(body())
    _run(dispose_engines())


@asynccontextmanager
async def lifespan(app: FastAPI):
    async with app.router.lifespan_context(app):
        yield
