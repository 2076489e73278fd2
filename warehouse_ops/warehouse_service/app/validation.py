"""Composable field rules for each entity.

A ``Validator`` is an ordered list of ``Rule`` objects. ``validate`` raises a
``BadRequestError`` for the first rule that fails, so rule order defines
which message the caller sees. Rules only look at a plain mapping of field
values and never touch the store.
"""

from __future__ import annotations

import re
from collections.abc import Callable, Iterable, Mapping, Sequence
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any

from .errors import BadRequestError
from .metrics import VALIDATION_REJECTIONS_TOTAL
from .models import (
    INVENTORY_STATUSES,
    ORDER_PRIORITIES,
    ORDER_STATUSES,
    ORDER_TYPES,
    PAYMENT_STATUSES,
    SUPPLIER_STATUSES,
    WAREHOUSE_STATUSES,
    WAREHOUSE_TYPES,
)

EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")

Values = Mapping[str, Any]


def is_present(value: Any) -> bool:
    if value is None:
        return False
    if isinstance(value, str):
        return bool(value.strip())
    return True


@dataclass(frozen=True)
class Rule:
    fields: tuple[str, ...]
    check: Callable[[Values], bool]
    message: str

    def passes(self, values: Values) -> bool:
        return self.check(values)


@dataclass(frozen=True)
class Validator:
    entity: str
    rules: Sequence[Rule] = field(default_factory=tuple)

    def failures(self, values: Values) -> list[Rule]:
        return [rule for rule in self.rules if not rule.passes(values)]

    def validate(self, values: Values) -> None:
        for rule in self.rules:
            if not rule.passes(values):
                VALIDATION_REJECTIONS_TOTAL.labels(entity=self.entity, kind="BadRequest").inc()
                raise BadRequestError(rule.message, details={"fields": list(rule.fields)})


def required(*names: str, message: str | None = None) -> Rule:
    text = message or f"Missing required fields: {', '.join(names)}"
    return Rule(names, lambda values: all(is_present(values.get(name)) for name in names), text)


def one_of(name: str, allowed: Iterable[str]) -> Rule:
    choices = tuple(allowed)
    text = f"Invalid {name}. Must be one of: {', '.join(choices)}"
    return Rule((name,), lambda values: values.get(name) is None or values.get(name) in choices, text)


def matches(name: str, pattern: re.Pattern[str], message: str) -> Rule:
    def _check(values: Values) -> bool:
        value = values.get(name)
        return not is_present(value) or bool(pattern.match(str(value)))

    return Rule((name,), _check, message)


def at_least(name: str, minimum: int | Decimal, message: str | None = None) -> Rule:
    text = message or f"{name} cannot be negative"
    return Rule((name,), lambda values: values.get(name) is None or values[name] >= minimum, text)


def greater_than(name: str, bound: int | Decimal, message: str) -> Rule:
    return Rule((name,), lambda values: values.get(name) is not None and values[name] > bound, message)


def between(name: str, low: int, high: int, message: str) -> Rule:
    return Rule((name,), lambda values: values.get(name) is None or low <= values[name] <= high, message)


def when(condition: Callable[[Values], bool], rule: Rule) -> Rule:
    """Apply ``rule`` only to values that satisfy ``condition``."""

    return Rule(rule.fields, lambda values: not condition(values) or rule.passes(values), rule.message)


def _order_type_is(order_type: str) -> Callable[[Values], bool]:
    return lambda values: values.get("order_type") == order_type


def _capacity_within_total(values: Values) -> bool:
    total, available = values.get("total_capacity"), values.get("available_capacity")
    if total is None or available is None:
        return True
    return available <= total


INVENTORY_VALIDATOR = Validator(
    "inventory",
    (
        required(
            "sku",
            "product_name",
            "category",
            "supplier_id",
            "warehouse_id",
            "quantity_on_hand",
            "unit_price",
            "cost_price",
        ),
        one_of("status", INVENTORY_STATUSES),
        at_least("quantity_on_hand", 0, "quantity_on_hand cannot be negative"),
        at_least("quantity_reserved", 0, "quantity_reserved cannot be negative"),
        at_least("unit_price", Decimal("0"), "unit_price cannot be negative"),
        at_least("cost_price", Decimal("0"), "cost_price cannot be negative"),
    ),
)

ORDER_VALIDATOR = Validator(
    "order",
    (
        required("order_type", "warehouse_id", "total_amount", "expected_delivery_date"),
        one_of("order_type", ORDER_TYPES),
        one_of("priority", ORDER_PRIORITIES),
        one_of("status", ORDER_STATUSES),
        one_of("payment_status", PAYMENT_STATUSES),
        when(
            _order_type_is("inbound"),
            required("supplier_id", message="supplier_id is required for inbound orders"),
        ),
        when(
            _order_type_is("outbound"),
            required(
                "customer_name",
                "customer_email",
                message="customer_name and customer_email are required for outbound orders",
            ),
        ),
        matches("customer_email", EMAIL_PATTERN, "Invalid customer email format"),
    ),
)

SUPPLIER_VALIDATOR = Validator(
    "supplier",
    (
        required("company_name", "contact_person", "email", "phone", "address", "city", "country"),
        matches("email", EMAIL_PATTERN, "Invalid email format"),
        between("rating", 0, 5, "Rating must be between 0 and 5"),
        one_of("status", SUPPLIER_STATUSES),
    ),
)

WAREHOUSE_VALIDATOR = Validator(
    "warehouse",
    (
        required("name", "address", "city", "country", "zip_code", "phone", "email"),
        matches("email", EMAIL_PATTERN, "Please enter a valid email address"),
        greater_than("total_capacity", 0, "Total capacity must be greater than 0"),
        required("available_capacity", message="Available capacity is required"),
        at_least("available_capacity", 0, "Available capacity cannot be negative"),
        Rule(
            ("available_capacity", "total_capacity"),
            _capacity_within_total,
            "Available capacity cannot exceed total capacity",
        ),
        one_of("warehouse_type", WAREHOUSE_TYPES),
        one_of("status", WAREHOUSE_STATUSES),
    ),
)
