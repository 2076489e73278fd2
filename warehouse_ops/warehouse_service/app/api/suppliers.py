"""HTTP routes for the supplier registry."""

from __future__ import annotations

from fastapi import APIRouter, Depends, Query, status

from ..dependencies import get_actor, get_repository, get_supplier_service
from ..errors import NotFoundError
from ..models import Supplier
from ..repository import OperationsRepository
from ..schemas import SupplierCreate, SupplierListResponse, SupplierResponse, SupplierUpdate
from ..services import SupplierService

router = APIRouter(prefix="/suppliers", tags=["suppliers"])


@router.post("", response_model=SupplierResponse, status_code=status.HTTP_201_CREATED)
async def add_supplier(
    payload: SupplierCreate,
    actor_id: int = Depends(get_actor),
    service: SupplierService = Depends(get_supplier_service),
) -> Supplier:
    return await service.add_supplier(payload, actor_id=actor_id)


@router.get("", response_model=SupplierListResponse)
async def list_suppliers(
    supplier_status: str | None = Query(default=None, alias="status"),
    limit: int = Query(default=50, ge=1, le=100),
    offset: int = Query(default=0, ge=0),
    repository: OperationsRepository = Depends(get_repository),
) -> SupplierListResponse:
    suppliers, total = await repository.list_suppliers(status=supplier_status, limit=limit, offset=offset)
    return SupplierListResponse(
        items=[SupplierResponse.model_validate(supplier) for supplier in suppliers],
        total=total,
    )


@router.get("/{supplier_id}", response_model=SupplierResponse)
async def get_supplier(
    supplier_id: int,
    repository: OperationsRepository = Depends(get_repository),
) -> Supplier:
    supplier = await repository.get_supplier(supplier_id)
    if supplier is None:
        raise NotFoundError.for_entity("Supplier", supplier_id, "Supplier not found")
    return supplier


@router.put("/{supplier_id}", response_model=SupplierResponse)
async def update_supplier(
    supplier_id: int,
    payload: SupplierUpdate,
    actor_id: int = Depends(get_actor),
    service: SupplierService = Depends(get_supplier_service),
) -> Supplier:
    return await service.update_supplier(supplier_id, payload, actor_id=actor_id)
