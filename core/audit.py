"""
Audit trail for dispatch entity changes.

Every mutation to an appointment, task or order is logged here. The audit log is:
- Append-only (entries never modified or deleted)
- Actor-attributed (which flow made the change: a webhook, an edit, the cron)
- Detailed (captures old and new values)
"""

from enum import Enum
from typing import Any
from uuid import uuid4

import psycopg2.extras

from clients.postgres_client import PostgresClient
from utils.timezone import now_utc


class AuditAction(Enum):
    """Type of change made to an entity."""

    CREATE = "create"
    UPDATE = "update"
    CANCEL = "cancel"


# Actors for flows with no signed-in user
ACTOR_SYSTEM = "system"
ACTOR_WEBHOOK = "webhook:onfleet"
ACTOR_CRON = "cron:route-assignment"


def compute_changes(
    old: dict[str, Any],
    new: dict[str, Any],
    exclude_fields: set[str] | None = None
) -> dict[str, dict[str, Any]]:
    """
    Compute changes between two entity states.

    Args:
        old: Previous state of entity
        new: New state of entity
        exclude_fields: Fields to ignore (defaults to {"updated_at"})

    Returns:
        Dict of {field: {"old": old_val, "new": new_val}} for changed fields.
        Empty dict if no changes.
    """
    exclude = exclude_fields or {"updated_at"}
    changes = {}

    all_keys = set(old.keys()) | set(new.keys())
    for key in all_keys:
        if key in exclude:
            continue

        old_val = old.get(key)
        new_val = new.get(key)

        if old_val != new_val:
            changes[key] = {"old": old_val, "new": new_val}

    return changes


class AuditLogger:
    """
    Audit trail for dispatch entity changes.

    Use model_dump(mode="json") when passing Pydantic models so datetimes and
    enums are serialized to JSON-compatible values.

    Usage:
        audit = AuditLogger(postgres)

        changes = compute_changes(
            old.model_dump(mode="json"),
            new.model_dump(mode="json")
        )
        audit.log_change(
            entity_type="dispatch_task",
            entity_id=task.id,
            action=AuditAction.UPDATE,
            changes=changes,
            actor=ACTOR_WEBHOOK,
        )
    """

    def __init__(self, postgres: PostgresClient):
        self.postgres = postgres

    def log_change(
        self,
        entity_type: str,
        entity_id: int,
        action: AuditAction,
        changes: dict[str, Any],
        actor: str = ACTOR_SYSTEM
    ) -> None:
        """
        Log an entity change.

        Changes format by action:
        - CREATE: {"created": {full entity data}}
        - UPDATE: {"field": {"old": old_val, "new": new_val}, ...}
        - CANCEL: {"cancelled": {full entity data at cancellation}}
        """
        if not changes:
            return

        self.postgres.execute(
            """
            INSERT INTO audit_log (id, actor, entity_type, entity_id, action, changes, created_at)
            VALUES (%s, %s, %s, %s, %s, %s, %s)
            """,
            (
                uuid4(),
                actor,
                entity_type,
                entity_id,
                action.value,
                psycopg2.extras.Json(changes),
                now_utc()
            )
        )

    def get_entity_history(
        self,
        entity_type: str,
        entity_id: int
    ) -> list[dict[str, Any]]:
        """
        Get full audit history for an entity, newest first.
        """
        return self.postgres.execute(
            """
            SELECT id, actor, entity_type, entity_id, action, changes, created_at
            FROM audit_log
            WHERE entity_type = %s AND entity_id = %s
            ORDER BY created_at DESC
            """,
            (entity_type, entity_id)
        )
