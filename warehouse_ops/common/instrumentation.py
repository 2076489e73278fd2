from importlib.metadata import PackageNotFoundError, version
from typing import Any, cast

from fastapi import FastAPI
from prometheus_fastapi_instrumentator import Instrumentator

from .config import WarehouseSettings
from .tracing import configure_tracing

# Probes and the scrape endpoint itself.
_UNMETERED_ROUTES = [r"^/health(/ready)?$", "/metrics"]


def _package_version() -> str:
    try:
        return version("warehouse-ops")
    except PackageNotFoundError:
        return "0.0.0"


def instrument_app(app: FastAPI, settings: WarehouseSettings) -> None:
    """Expose request metrics and keep the resolved settings on ``app.state``.

    Status codes are reported individually so conflict (409) and validation (400)
    rejections stay distinguishable on the dashboard.
    """

    if settings.enable_metrics:
        instrumentator = Instrumentator(
            should_group_status_codes=False,
            should_ignore_untemplated=True,
            excluded_handlers=_UNMETERED_ROUTES,
        )
        instrumentator.instrument(app).expose(app, include_in_schema=False)

    state = cast(Any, app.state)
    state.settings = settings


def build_app(settings: WarehouseSettings, **extra_kwargs: Any) -> FastAPI:
    app = FastAPI(title=settings.app_name, version=_package_version(), **extra_kwargs)
    instrument_app(app, settings)
    configure_tracing(app, settings)
    return app
