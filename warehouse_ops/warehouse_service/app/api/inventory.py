"""HTTP routes for inventory items."""

from __future__ import annotations

from fastapi import APIRouter, Depends, Query, status

from ..dependencies import get_actor, get_inventory_service, get_repository
from ..errors import NotFoundError
from ..models import InventoryItem
from ..repository import OperationsRepository
from ..schemas import InventoryCreate, InventoryListResponse, InventoryResponse, InventoryUpdate
from ..services import InventoryService

router = APIRouter(prefix="/inventory", tags=["inventory"])


@router.post("", response_model=InventoryResponse, status_code=status.HTTP_201_CREATED)
async def add_item(
    payload: InventoryCreate,
    actor_id: int = Depends(get_actor),
    service: InventoryService = Depends(get_inventory_service),
) -> InventoryItem:
    return await service.add_item(payload, actor_id=actor_id)


@router.get("", response_model=InventoryListResponse)
async def list_items(
    category: str | None = Query(default=None),
    item_status: str | None = Query(default=None, alias="status"),
    warehouse_id: int | None = Query(default=None),
    supplier_id: int | None = Query(default=None),
    stock_level: str | None = Query(default=None),
    limit: int = Query(default=50, ge=1, le=100),
    offset: int = Query(default=0, ge=0),
    repository: OperationsRepository = Depends(get_repository),
) -> InventoryListResponse:
    items, total = await repository.list_items(
        category=category,
        status=item_status,
        warehouse_id=warehouse_id,
        supplier_id=supplier_id,
        stock_level=stock_level,
        limit=limit,
        offset=offset,
    )
    return InventoryListResponse(items=[InventoryResponse.model_validate(item) for item in items], total=total)


@router.get("/{item_id}", response_model=InventoryResponse)
async def get_item(
    item_id: int,
    repository: OperationsRepository = Depends(get_repository),
) -> InventoryItem:
    item = await repository.get_item(item_id)
    if item is None:
        raise NotFoundError.for_entity("Inventory item", item_id, "Inventory item not found")
    return item


@router.put("/{item_id}", response_model=InventoryResponse)
async def update_item(
    item_id: int,
    payload: InventoryUpdate,
    actor_id: int = Depends(get_actor),
    service: InventoryService = Depends(get_inventory_service),
) -> InventoryItem:
    return await service.update_item(item_id, payload, actor_id=actor_id)
