"""Prometheus metrics for the warehouse operations service."""

from __future__ import annotations

from typing import Final

from prometheus_client import Counter

# Writes -----------------------------------------------------------------------------------
RECORDS_WRITTEN_TOTAL: Final = Counter(
    "warehouse_ops_records_written_total",
    "Records persisted by the domain services.",
    labelnames=("entity", "action"),
)

VALIDATION_REJECTIONS_TOTAL: Final = Counter(
    "warehouse_ops_validation_rejections_total",
    "Operations rejected before any write, by error kind.",
    labelnames=("entity", "kind"),
)

STORE_FAILURES_TOTAL: Final = Counter(
    "warehouse_ops_store_failures_total",
    "Write-phase failures surfaced as internal errors.",
    labelnames=("entity", "action"),
)

# Order numbering --------------------------------------------------------------------------
ORDER_NUMBERS_ALLOCATED_TOTAL: Final = Counter(
    "warehouse_ops_order_numbers_allocated_total",
    "Order numbers handed out by the per-year counter.",
)

ORDER_SEQUENCE_SEEDED_TOTAL: Final = Counter(
    "warehouse_ops_order_sequence_seeded_total",
    "Per-year order counters created from the existing order numbers.",
)

# Side ledgers -----------------------------------------------------------------------------
AUDIT_WRITE_FAILURES_TOTAL: Final = Counter(
    "warehouse_ops_audit_write_failures_total",
    "Activity log entries that could not be written.",
    labelnames=("entity", "reason"),
)

DASHBOARD_CACHE_EVENTS_TOTAL: Final = Counter(
    "warehouse_ops_dashboard_cache_events_total",
    "Dashboard summary cache lookups by outcome.",
    labelnames=("outcome",),
)
