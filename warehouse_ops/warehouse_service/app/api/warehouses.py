"""HTTP routes for warehouses and their capacity history."""

from __future__ import annotations

from fastapi import APIRouter, Depends, Query, status

from ..dependencies import get_actor, get_repository, get_warehouse_service
from ..errors import NotFoundError
from ..models import Warehouse, WarehouseCapacityHistory
from ..repository import OperationsRepository
from ..schemas import (
    CapacitySnapshotResponse,
    WarehouseCreate,
    WarehouseListResponse,
    WarehouseResponse,
    WarehouseUpdate,
)
from ..services import WarehouseService

router = APIRouter(prefix="/warehouses", tags=["warehouses"])


@router.post("", response_model=WarehouseResponse, status_code=status.HTTP_201_CREATED)
async def add_warehouse(
    payload: WarehouseCreate,
    actor_id: int = Depends(get_actor),
    service: WarehouseService = Depends(get_warehouse_service),
) -> Warehouse:
    return await service.add_warehouse(payload, actor_id=actor_id)


@router.get("", response_model=WarehouseListResponse)
async def list_warehouses(
    warehouse_status: str | None = Query(default=None, alias="status"),
    warehouse_type: str | None = Query(default=None),
    limit: int = Query(default=50, ge=1, le=100),
    offset: int = Query(default=0, ge=0),
    repository: OperationsRepository = Depends(get_repository),
) -> WarehouseListResponse:
    warehouses, total = await repository.list_warehouses(
        status=warehouse_status,
        warehouse_type=warehouse_type,
        limit=limit,
        offset=offset,
    )
    return WarehouseListResponse(
        items=[WarehouseResponse.model_validate(warehouse) for warehouse in warehouses],
        total=total,
    )


async def _require_warehouse(warehouse_id: int, repository: OperationsRepository) -> Warehouse:
    warehouse = await repository.get_warehouse(warehouse_id)
    if warehouse is None:
        raise NotFoundError.for_entity("Warehouse", warehouse_id, "Warehouse not found")
    return warehouse


@router.get("/{warehouse_id}", response_model=WarehouseResponse)
async def get_warehouse(
    warehouse_id: int,
    repository: OperationsRepository = Depends(get_repository),
) -> Warehouse:
    return await _require_warehouse(warehouse_id, repository)


@router.put("/{warehouse_id}", response_model=WarehouseResponse)
async def update_warehouse(
    warehouse_id: int,
    payload: WarehouseUpdate,
    actor_id: int = Depends(get_actor),
    service: WarehouseService = Depends(get_warehouse_service),
) -> Warehouse:
    return await service.update_warehouse(warehouse_id, payload, actor_id=actor_id)


@router.get("/{warehouse_id}/capacity-history", response_model=list[CapacitySnapshotResponse])
async def list_capacity_history(
    warehouse_id: int,
    repository: OperationsRepository = Depends(get_repository),
) -> list[WarehouseCapacityHistory]:
    await _require_warehouse(warehouse_id, repository)
    return await repository.list_capacity_history(warehouse_id)
