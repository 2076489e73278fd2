"""Typed errors raised by the warehouse operations core.

Every error carries a short human-readable message; the HTTP layer maps the
error kind to a status code in ``register_exception_handlers``.
"""

from __future__ import annotations

import logging
from typing import Any

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

_LOGGER = logging.getLogger(__name__)


class WarehouseOpsError(Exception):
    """Base exception for all domain errors."""

    kind = "Internal"
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(self, message: str, *, details: dict[str, Any] | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_dict(self) -> dict[str, Any]:
        return {"error": self.kind, "message": self.message, "details": self.details}


class BadRequestError(WarehouseOpsError):
    """Missing or invalid field, enum value out of range, or a broken cross-field rule."""

    kind = "BadRequest"
    status_code = status.HTTP_400_BAD_REQUEST


class NotFoundError(WarehouseOpsError):
    """A referenced supplier, warehouse, order, item or user does not exist."""

    kind = "NotFound"
    status_code = status.HTTP_404_NOT_FOUND

    @classmethod
    def for_entity(cls, entity: str, entity_id: Any, message: str | None = None) -> NotFoundError:
        return cls(message or f"{entity} not found", details={"entity": entity, "id": entity_id})


class ConflictError(WarehouseOpsError):
    """Uniqueness violation."""

    kind = "Conflict"
    status_code = status.HTTP_409_CONFLICT

    @classmethod
    def for_field(cls, field: str, value: Any, message: str) -> ConflictError:
        return cls(message, details={"field": field, "value": value})


class InternalError(WarehouseOpsError):
    """Store failure or unexpected exception."""


def register_exception_handlers(app: FastAPI) -> None:
    """Map domain errors and request-shape errors to JSON responses."""

    @app.exception_handler(WarehouseOpsError)
    async def _domain_error_handler(request: Request, exc: WarehouseOpsError) -> JSONResponse:
        return JSONResponse(status_code=exc.status_code, content=exc.to_dict())

    @app.exception_handler(RequestValidationError)
    async def _request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
        errors = [
            {"field": ".".join(str(part) for part in error["loc"][1:]), "message": error["msg"]}
            for error in exc.errors()
        ]
        first = errors[0] if errors else {"field": "", "message": "Invalid request"}
        message = f"{first['field']}: {first['message']}" if first["field"] else first["message"]
        wrapped = BadRequestError(message, details={"errors": errors})
        return JSONResponse(status_code=wrapped.status_code, content=wrapped.to_dict())

    @app.exception_handler(Exception)
    async def _unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
        _LOGGER.exception("Unhandled error on %s %s", request.method, request.url.path)
        wrapped = InternalError("Internal server error")
        return JSONResponse(status_code=wrapped.status_code, content=wrapped.to_dict())
