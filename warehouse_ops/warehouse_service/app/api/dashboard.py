from fastapi import APIRouter, Depends

from ..dashboard import DashboardService
from ..dependencies import get_dashboard_service
from ..schemas import DashboardSummary

router = APIRouter(prefix="/dashboard", tags=["dashboard"])


@router.get("/summary", response_model=DashboardSummary)
async def dashboard_summary(service: DashboardService = Depends(get_dashboard_service)) -> DashboardSummary:
    """Return inventory, order, supplier and warehouse rollups."""

    return await service.summary()
