"""Pydantic schemas for the warehouse operations service.

Request payloads leave required fields optional at the type level; presence
and range checks belong to the rule validators so that every rejection is
reported the same way. Derived fields (``quantity_available``,
``net_amount``, ``capacity_utilization``) and system-assigned fields
(``order_number``, ``order_date``) are ignored when sent by a client.
"""

from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from typing import Annotated, Any

from pydantic import BaseModel, ConfigDict, Field, PlainSerializer, field_validator

_CENT = Decimal("0.01")

Money = Annotated[
    Decimal,
    PlainSerializer(lambda value: str(Decimal(value).quantize(_CENT)), return_type=str),
]


class _Payload(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True, extra="ignore")


def coerce_int(value: Any) -> int:
    """Best-effort integer parse; unparseable input becomes 0."""

    if isinstance(value, bool):
        return int(value)
    if isinstance(value, int):
        return value
    try:
        return int(Decimal(str(value).strip()))
    except (InvalidOperation, ValueError, TypeError):
        return 0


def coerce_decimal(value: Any) -> Decimal:
    """Best-effort decimal parse; unparseable or non-finite input becomes 0."""

    try:
        parsed = Decimal(str(value).strip())
    except (InvalidOperation, ValueError, TypeError):
        return Decimal("0")
    return parsed if parsed.is_finite() else Decimal("0")


# Inventory ----------------------------------------------------------------------------------


class InventoryCreate(_Payload):
    sku: str | None = Field(default=None, max_length=64)
    product_name: str | None = Field(default=None, max_length=255)
    description: str | None = None
    category: str | None = Field(default=None, max_length=128)
    brand: str | None = Field(default=None, max_length=128)
    supplier_id: int | None = None
    warehouse_id: int | None = None
    location: str | None = Field(default=None, max_length=64)
    quantity_on_hand: int | None = None
    quantity_reserved: int = 0
    unit_price: Decimal | None = Field(default=None, max_digits=12, decimal_places=2)
    cost_price: Decimal | None = Field(default=None, max_digits=12, decimal_places=2)
    minimum_stock_level: int | None = None
    maximum_stock_level: int | None = None
    reorder_point: int | None = None
    reorder_quantity: int | None = None
    unit_of_measure: str | None = Field(default=None, max_length=32)
    expiry_date: date | None = None
    batch_number: str | None = Field(default=None, max_length=64)
    barcode: str | None = Field(default=None, max_length=64)
    weight: Decimal | None = None
    dimensions: str | None = Field(default=None, max_length=64)
    status: str = "active"


class InventoryUpdate(_Payload):
    sku: str | None = Field(default=None, max_length=64)
    product_name: str | None = Field(default=None, max_length=255)
    description: str | None = None
    category: str | None = Field(default=None, max_length=128)
    brand: str | None = Field(default=None, max_length=128)
    supplier_id: int | None = None
    warehouse_id: int | None = None
    location: str | None = Field(default=None, max_length=64)
    quantity_on_hand: int | None = None
    quantity_reserved: int | None = None
    unit_price: Decimal | None = None
    cost_price: Decimal | None = None
    minimum_stock_level: int | None = None
    maximum_stock_level: int | None = None
    reorder_point: int | None = None
    reorder_quantity: int | None = None
    unit_of_measure: str | None = Field(default=None, max_length=32)
    expiry_date: date | None = None
    batch_number: str | None = Field(default=None, max_length=64)
    barcode: str | None = Field(default=None, max_length=64)
    weight: Decimal | None = None
    dimensions: str | None = Field(default=None, max_length=64)
    status: str | None = None

    @field_validator(
        "quantity_on_hand",
        "quantity_reserved",
        "minimum_stock_level",
        "maximum_stock_level",
        "reorder_point",
        "reorder_quantity",
        mode="before",
    )
    @classmethod
    def _coerce_counts(cls, value: Any) -> int | None:
        # Explicit null stays null so nullable levels can be cleared.
        return None if value is None else coerce_int(value)

    @field_validator("unit_price", "cost_price", "weight", mode="before")
    @classmethod
    def _coerce_amounts(cls, value: Any) -> Decimal | None:
        return None if value is None else coerce_decimal(value)


class InventoryResponse(BaseModel):
    id: int
    sku: str
    product_name: str
    description: str | None
    category: str
    brand: str | None
    supplier_id: int
    warehouse_id: int
    location: str | None
    quantity_on_hand: int
    quantity_reserved: int
    quantity_available: int
    stock_level: str
    unit_price: Money
    cost_price: Money
    minimum_stock_level: int | None
    maximum_stock_level: int | None
    reorder_point: int | None
    reorder_quantity: int | None
    unit_of_measure: str | None
    expiry_date: date | None
    batch_number: str | None
    barcode: str | None
    weight: Decimal | None
    dimensions: str | None
    status: str
    last_counted_date: datetime | None
    created_by: int | None
    updated_by: int | None
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


class InventoryListResponse(BaseModel):
    items: list[InventoryResponse]
    total: int


# Orders -------------------------------------------------------------------------------------


class OrderCreate(_Payload):
    order_type: str | None = None
    customer_name: str | None = Field(default=None, max_length=255)
    customer_email: str | None = Field(default=None, max_length=255)
    customer_phone: str | None = Field(default=None, max_length=32)
    customer_address: str | None = None
    supplier_id: int | None = None
    warehouse_id: int | None = None
    expected_delivery_date: date | None = None
    priority: str = "medium"
    status: str = "pending"
    total_amount: Decimal | None = Field(default=None, max_digits=12, decimal_places=2)
    tax_amount: Decimal = Field(default=Decimal("0"), max_digits=12, decimal_places=2)
    shipping_amount: Decimal = Field(default=Decimal("0"), max_digits=12, decimal_places=2)
    discount_amount: Decimal = Field(default=Decimal("0"), max_digits=12, decimal_places=2)
    payment_status: str = "pending"
    payment_method: str | None = Field(default=None, max_length=32)
    shipping_method: str | None = Field(default=None, max_length=32)
    tracking_number: str | None = Field(default=None, max_length=64)
    notes: str | None = None
    assigned_to: int | None = None
    approved_by: int | None = None


class OrderUpdate(_Payload):
    order_type: str | None = None
    customer_name: str | None = Field(default=None, max_length=255)
    customer_email: str | None = Field(default=None, max_length=255)
    customer_phone: str | None = Field(default=None, max_length=32)
    customer_address: str | None = None
    supplier_id: int | None = None
    warehouse_id: int | None = None
    expected_delivery_date: date | None = None
    priority: str | None = None
    status: str | None = None
    total_amount: Decimal | None = Field(default=None, max_digits=12, decimal_places=2)
    tax_amount: Decimal | None = Field(default=None, max_digits=12, decimal_places=2)
    shipping_amount: Decimal | None = Field(default=None, max_digits=12, decimal_places=2)
    discount_amount: Decimal | None = Field(default=None, max_digits=12, decimal_places=2)
    payment_status: str | None = None
    payment_method: str | None = Field(default=None, max_length=32)
    shipping_method: str | None = Field(default=None, max_length=32)
    tracking_number: str | None = Field(default=None, max_length=64)
    notes: str | None = None
    assigned_to: int | None = None
    approved_by: int | None = None


class OrderResponse(BaseModel):
    id: int
    order_number: str
    order_type: str
    customer_name: str | None
    customer_email: str | None
    customer_phone: str | None
    customer_address: str | None
    supplier_id: int | None
    warehouse_id: int
    order_date: datetime
    expected_delivery_date: date
    priority: str
    status: str
    total_amount: Money
    tax_amount: Money
    shipping_amount: Money
    discount_amount: Money
    net_amount: Money
    payment_status: str
    payment_method: str | None
    shipping_method: str | None
    tracking_number: str | None
    notes: str | None
    created_by: int | None
    updated_by: int | None
    assigned_to: int | None
    approved_by: int | None
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


class OrderListResponse(BaseModel):
    items: list[OrderResponse]
    total: int


class OrderStatusHistoryResponse(BaseModel):
    id: int
    order_id: int
    status: str
    changed_by: int | None
    changed_at: datetime

    model_config = ConfigDict(from_attributes=True)


# Suppliers ----------------------------------------------------------------------------------


class SupplierCreate(_Payload):
    company_name: str | None = Field(default=None, max_length=255)
    contact_person: str | None = Field(default=None, max_length=255)
    email: str | None = Field(default=None, max_length=255)
    phone: str | None = Field(default=None, max_length=32)
    address: str | None = None
    city: str | None = Field(default=None, max_length=128)
    state: str | None = Field(default=None, max_length=128)
    zip_code: str | None = Field(default=None, max_length=32)
    country: str | None = Field(default=None, max_length=128)
    tax_id: str | None = Field(default=None, max_length=64)
    payment_terms: str | None = Field(default=None, max_length=64)
    rating: int = 0
    status: str = "active"


class SupplierUpdate(_Payload):
    company_name: str | None = Field(default=None, max_length=255)
    contact_person: str | None = Field(default=None, max_length=255)
    email: str | None = Field(default=None, max_length=255)
    phone: str | None = Field(default=None, max_length=32)
    address: str | None = None
    city: str | None = Field(default=None, max_length=128)
    state: str | None = Field(default=None, max_length=128)
    zip_code: str | None = Field(default=None, max_length=32)
    country: str | None = Field(default=None, max_length=128)
    tax_id: str | None = Field(default=None, max_length=64)
    payment_terms: str | None = Field(default=None, max_length=64)
    rating: int | None = None
    status: str | None = None


class SupplierResponse(BaseModel):
    id: int
    company_name: str
    contact_person: str
    email: str
    phone: str
    address: str
    city: str
    state: str | None
    zip_code: str | None
    country: str
    tax_id: str | None
    payment_terms: str | None
    rating: int
    status: str
    created_by: int | None
    updated_by: int | None
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


class SupplierListResponse(BaseModel):
    items: list[SupplierResponse]
    total: int


# Warehouses ---------------------------------------------------------------------------------


class WarehouseCreate(_Payload):
    name: str | None = Field(default=None, max_length=255)
    address: str | None = None
    city: str | None = Field(default=None, max_length=128)
    state: str | None = Field(default=None, max_length=128)
    zip_code: str | None = Field(default=None, max_length=32)
    country: str | None = Field(default=None, max_length=128)
    phone: str | None = Field(default=None, max_length=32)
    email: str | None = Field(default=None, max_length=255)
    warehouse_type: str = "storage"
    status: str = "active"
    total_capacity: int | None = None
    available_capacity: int | None = None
    manager_id: int | None = None


class WarehouseUpdate(_Payload):
    name: str | None = Field(default=None, max_length=255)
    address: str | None = None
    city: str | None = Field(default=None, max_length=128)
    state: str | None = Field(default=None, max_length=128)
    zip_code: str | None = Field(default=None, max_length=32)
    country: str | None = Field(default=None, max_length=128)
    phone: str | None = Field(default=None, max_length=32)
    email: str | None = Field(default=None, max_length=255)
    warehouse_type: str | None = None
    status: str | None = None
    total_capacity: int | None = None
    available_capacity: int | None = None
    manager_id: int | None = None


class WarehouseResponse(BaseModel):
    id: int
    name: str
    address: str
    city: str
    state: str | None
    zip_code: str
    country: str
    phone: str
    email: str
    warehouse_type: str
    status: str
    total_capacity: int
    available_capacity: int
    capacity_utilization: float
    manager_id: int | None
    created_by: int | None
    updated_by: int | None
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


class WarehouseListResponse(BaseModel):
    items: list[WarehouseResponse]
    total: int


class CapacitySnapshotResponse(BaseModel):
    id: int
    warehouse_id: int
    total_capacity: int
    available_capacity: int
    capacity_utilization: float
    recorded_by: int | None
    recorded_at: datetime

    model_config = ConfigDict(from_attributes=True)


# Dashboard ----------------------------------------------------------------------------------


class InventoryRollup(BaseModel):
    item_count: int = 0
    units_on_hand: int = 0
    units_available: int = 0
    stock_value: Money = Decimal("0")
    low_stock_count: int = 0
    out_of_stock_count: int = 0


class OrderRollup(BaseModel):
    total: int = 0
    by_status: dict[str, int] = Field(default_factory=dict)
    by_type: dict[str, int] = Field(default_factory=dict)
    outbound_revenue: Money = Decimal("0")


class SupplierRollup(BaseModel):
    total: int = 0
    by_status: dict[str, int] = Field(default_factory=dict)


class WarehouseRollup(BaseModel):
    total: int = 0
    total_capacity: int = 0
    available_capacity: int = 0
    average_utilization: float = 0.0


class DashboardSummary(BaseModel):
    inventory: InventoryRollup
    orders: OrderRollup
    suppliers: SupplierRollup
    warehouses: WarehouseRollup
