"""HTTP routes for inbound, outbound and transfer orders."""

from __future__ import annotations

from fastapi import APIRouter, Depends, Query, status

from ..dependencies import get_actor, get_order_service, get_repository
from ..errors import NotFoundError
from ..models import Order, OrderStatusHistory
from ..repository import OperationsRepository
from ..schemas import OrderCreate, OrderListResponse, OrderResponse, OrderStatusHistoryResponse, OrderUpdate
from ..services import OrderService

router = APIRouter(prefix="/orders", tags=["orders"])


@router.post("", response_model=OrderResponse, status_code=status.HTTP_201_CREATED)
async def add_order(
    payload: OrderCreate,
    actor_id: int = Depends(get_actor),
    service: OrderService = Depends(get_order_service),
) -> Order:
    return await service.add_order(payload, actor_id=actor_id)


@router.get("", response_model=OrderListResponse)
async def list_orders(
    order_type: str | None = Query(default=None),
    order_status: str | None = Query(default=None, alias="status"),
    warehouse_id: int | None = Query(default=None),
    priority: str | None = Query(default=None),
    limit: int = Query(default=50, ge=1, le=100),
    offset: int = Query(default=0, ge=0),
    repository: OperationsRepository = Depends(get_repository),
) -> OrderListResponse:
    orders, total = await repository.list_orders(
        order_type=order_type,
        status=order_status,
        warehouse_id=warehouse_id,
        priority=priority,
        limit=limit,
        offset=offset,
    )
    return OrderListResponse(items=[OrderResponse.model_validate(order) for order in orders], total=total)


async def _require_order(order_id: int, repository: OperationsRepository) -> Order:
    order = await repository.get_order(order_id)
    if order is None:
        raise NotFoundError.for_entity("Order", order_id, "Order not found")
    return order


@router.get("/{order_id}", response_model=OrderResponse)
async def get_order(
    order_id: int,
    repository: OperationsRepository = Depends(get_repository),
) -> Order:
    return await _require_order(order_id, repository)


@router.put("/{order_id}", response_model=OrderResponse)
async def update_order(
    order_id: int,
    payload: OrderUpdate,
    actor_id: int = Depends(get_actor),
    service: OrderService = Depends(get_order_service),
) -> Order:
    return await service.update_order(order_id, payload, actor_id=actor_id)


@router.get("/{order_id}/status-history", response_model=list[OrderStatusHistoryResponse])
async def list_status_history(
    order_id: int,
    repository: OperationsRepository = Depends(get_repository),
) -> list[OrderStatusHistory]:
    await _require_order(order_id, repository)
    return await repository.list_status_history(order_id)
