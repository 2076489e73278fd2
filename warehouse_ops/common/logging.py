import logging
from contextvars import ContextVar, Token
from typing import Literal

from opentelemetry import trace

from .config import WarehouseSettings


_PLACEHOLDER = "-"
_LOG_FORMAT = (
    "%(asctime)s | %(levelname)s | %(name)s | trace_id=%(trace_id)s span_id=%(span_id)s "
    "actor=%(actor)s | %(message)s"
)

_CURRENT_ACTOR: ContextVar[int | None] = ContextVar("warehouse_ops_actor", default=None)


def bind_actor(actor_id: int | None) -> Token:
    """Attach the acting user id to log records emitted in the current context."""

    return _CURRENT_ACTOR.set(actor_id)


def reset_actor(token: Token) -> None:
    _CURRENT_ACTOR.reset(token)


def _format_trace_id(value: int, length: int) -> str:
    return format(value, f"0{length}x")


class TraceContextFilter(logging.Filter):
    """Populate trace/span identifiers when OpenTelemetry is active."""

    def filter(self, record: logging.LogRecord) -> bool:
        span = trace.get_current_span()
        span_context = span.get_span_context() if span is not None else None
        if span_context is not None and span_context.is_valid:
            record.trace_id = _format_trace_id(span_context.trace_id, 32)
            record.span_id = _format_trace_id(span_context.span_id, 16)
        else:
            record.trace_id = _PLACEHOLDER
            record.span_id = _PLACEHOLDER
        return True


class ActorContextFilter(logging.Filter):
    """Populate the acting user id bound by the request dependencies."""

    def filter(self, record: logging.LogRecord) -> bool:
        actor = _CURRENT_ACTOR.get()
        record.actor = _PLACEHOLDER if actor is None else str(actor)
        return True


def _attach(logger: logging.Logger, filter_type: type[logging.Filter]) -> None:
    existing = next((f for f in logger.filters if isinstance(f, filter_type)), None)
    context_filter = existing or filter_type()
    if existing is None:
        logger.addFilter(context_filter)
    for handler in logger.handlers:
        if not any(isinstance(f, filter_type) for f in handler.filters):
            handler.addFilter(context_filter)


def configure_logging(settings: WarehouseSettings) -> None:
    """Configure root logging level and format."""

    logging_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = settings.log_level
    logging.basicConfig(level=logging_level, format=_LOG_FORMAT)
    root_logger = logging.getLogger()
    _attach(root_logger, TraceContextFilter)
    _attach(root_logger, ActorContextFilter)
