"""Append-only activity log."""

from __future__ import annotations

import logging

from sqlalchemy.exc import SQLAlchemyError

from .metrics import AUDIT_WRITE_FAILURES_TOTAL
from .models import ActivityLog
from .repository import OperationsRepository

_LOGGER = logging.getLogger(__name__)

CREATE = "CREATE"
UPDATE = "UPDATE"


class AuditLog:
    """Record who did what to which entity.

    Entries are written in the caller's transaction under a savepoint. A
    failed insert rolls back only the savepoint, so it never undoes or fails
    the primary write it describes.
    """

    def __init__(self, repository: OperationsRepository) -> None:
        self.repository = repository

    async def append(
        self,
        *,
        actor_id: int | None,
        action: str,
        entity_type: str,
        entity_id: int | None,
        description: str | None = None,
    ) -> ActivityLog | None:
        if actor_id is None or entity_id is None:
            AUDIT_WRITE_FAILURES_TOTAL.labels(entity=entity_type, reason="missing_reference").inc()
            _LOGGER.warning(
                "Skipping %s audit entry for %s: actor=%s entity_id=%s",
                action,
                entity_type,
                actor_id,
                entity_id,
            )
            return None

        try:
            async with self.repository.session.begin_nested():
                entry = await self.repository.add_activity(
                    user_id=actor_id,
                    action=action,
                    entity_type=entity_type,
                    entity_id=entity_id,
                    description=description,
                )
        except SQLAlchemyError:
            AUDIT_WRITE_FAILURES_TOTAL.labels(entity=entity_type, reason="store_error").inc()
            _LOGGER.warning(
                "Failed to write %s audit entry for %s %s", action, entity_type, entity_id, exc_info=True
            )
            return None
        return entry
