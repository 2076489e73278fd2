import logging

from fastapi import APIRouter, Depends, Request, status
from fastapi.responses import JSONResponse
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from ..dependencies import get_session

_LOGGER = logging.getLogger(__name__)

router = APIRouter(prefix="/health", tags=["health"])


@router.get("", status_code=status.HTTP_200_OK)
async def healthcheck() -> dict[str, str]:
    """Liveness: the process is up and serving requests."""

    return {"status": "ok"}


@router.get("/ready")
async def readiness(request: Request, session: AsyncSession = Depends(get_session)) -> JSONResponse:
    """Readiness: the store must answer; the dashboard cache only degrades."""

    checks: dict[str, str] = {}
    try:
        await session.execute(text("SELECT 1"))
        checks["database"] = "ok"
    except SQLAlchemyError:
        _LOGGER.warning("Readiness probe could not reach the database", exc_info=True)
        checks["database"] = "unavailable"

    redis = getattr(request.app.state, "redis", None)
    if redis is None:
        checks["cache"] = "disabled"
    else:
        try:
            await redis.ping()
            checks["cache"] = "ok"
        except Exception:
            _LOGGER.warning("Readiness probe could not reach the dashboard cache", exc_info=True)
            checks["cache"] = "degraded"

    ready = checks["database"] == "ok"
    return JSONResponse(
        status_code=status.HTTP_200_OK if ready else status.HTTP_503_SERVICE_UNAVAILABLE,
        content={"status": "ok" if ready else "unavailable", **checks},
    )
