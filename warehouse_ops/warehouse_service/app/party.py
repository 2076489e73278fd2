"""The counterparty of an order, as a variant keyed by order type.

Inbound orders come from a supplier, outbound orders go to a customer and
transfers have no outside party. ``party_columns`` always returns every
party column, so writing one variant clears the fields of the others.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any, Union


@dataclass(frozen=True, slots=True)
class InboundParty:
    supplier_id: int


@dataclass(frozen=True, slots=True)
class OutboundParty:
    customer_name: str
    customer_email: str
    customer_phone: str | None = None
    customer_address: str | None = None


@dataclass(frozen=True, slots=True)
class TransferParty:
    pass


OrderParty = Union[InboundParty, OutboundParty, TransferParty]

_EMPTY_COLUMNS: dict[str, Any] = {
    "supplier_id": None,
    "customer_name": None,
    "customer_email": None,
    "customer_phone": None,
    "customer_address": None,
}


def party_from_values(order_type: str, values: Mapping[str, Any]) -> OrderParty:
    """Build the variant for ``order_type`` from already validated values."""

    if order_type == "inbound":
        return InboundParty(supplier_id=values["supplier_id"])
    if order_type == "outbound":
        return OutboundParty(
            customer_name=values["customer_name"],
            customer_email=values["customer_email"],
            customer_phone=values.get("customer_phone"),
            customer_address=values.get("customer_address"),
        )
    if order_type == "transfer":
        return TransferParty()
    msg = f"unknown order type: {order_type}"
    raise ValueError(msg)


def party_columns(party: OrderParty) -> dict[str, Any]:
    columns = dict(_EMPTY_COLUMNS)
    if isinstance(party, InboundParty):
        columns["supplier_id"] = party.supplier_id
    elif isinstance(party, OutboundParty):
        columns.update(
            customer_name=party.customer_name,
            customer_email=party.customer_email,
            customer_phone=party.customer_phone,
            customer_address=party.customer_address,
        )
    return columns
