"""
Audit trail for billing changes.

Every change to a billing profile, a financial document or project KPI
settings is logged here. The audit log is:
- Append-only (entries never modified or deleted)
- Tenant- and user-attributed (who made the change, for whom)
- Detailed (captures old and new values)

Entries are written after the change committed; a document number that was
issued is recorded once, never rewritten.
"""

from enum import Enum
from typing import Any
from uuid import UUID, uuid4

from psycopg2.extras import Json

from clients.postgres_client import PostgresClient
from utils.tenant_context import TenantContext
from utils.timezone import now_utc


class AuditAction(Enum):
    """Type of change made to an entity."""

    CREATE = "create"
    UPDATE = "update"


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
    Audit trail writer.

    Always pass model_dump(mode="json") output so UUIDs, Decimals and dates
    are JSON-compatible.

    Usage:
        audit = AuditLogger(postgres)

        audit.log_change(
            ctx,
            entity_type="financial_document",
            entity_id=document.id,
            action=AuditAction.CREATE,
            changes={"created": {"kind": "invoice", "number": document.number}}
        )

        history = audit.get_entity_history(ctx, "financial_document", document.id)
    """

    def __init__(self, postgres: PostgresClient):
        self.postgres = postgres

    def log_change(
        self,
        ctx: TenantContext,
        entity_type: str,
        entity_id: UUID,
        action: AuditAction,
        changes: dict[str, Any],
    ) -> None:
        """
        Log an entity change.

        Args:
            ctx: Tenant the change belongs to; its actor is recorded as author
            entity_type: Type of entity ("billing_profile", "financial_document", ...)
            entity_id: ID of the entity
            action: The action performed (CREATE, UPDATE)
            changes: The changes made (format depends on action)

        Changes format by action:
        - CREATE: {"created": {entity data}}
        - UPDATE: {"field": {"old": old_val, "new": new_val}, ...}
        """
        self.postgres.execute(
            """
            INSERT INTO audit_log (id, tenant_id, user_id, entity_type, entity_id, action, changes, created_at)
            VALUES (%s, %s, %s, %s, %s, %s, %s, %s)
            """,
            (
                uuid4(),
                ctx.tenant_id,
                ctx.actor_id,
                entity_type,
                entity_id,
                action.value,
                Json(changes),
                now_utc()
            ),
            tenant_id=ctx.tenant_id,
        )

    def get_entity_history(
        self,
        ctx: TenantContext,
        entity_type: str,
        entity_id: UUID
    ) -> list[dict[str, Any]]:
        """
        Get full audit history for an entity.

        Returns:
            List of audit entries, newest first.
        """
        return self.postgres.execute(
            """
            SELECT id, tenant_id, user_id, entity_type, entity_id, action, changes, created_at
            FROM audit_log
            WHERE tenant_id = %s AND entity_type = %s AND entity_id = %s
            ORDER BY created_at DESC
            """,
            (ctx.tenant_id, entity_type, entity_id),
            tenant_id=ctx.tenant_id,
        )

    def recent_activity(
        self,
        ctx: TenantContext,
        limit: int = 50,
        entity_type: str | None = None,
    ) -> list[dict[str, Any]]:
        """
        Tenant-wide activity feed, newest first.

        Args:
            ctx: Tenant context
            limit: Maximum number of entries
            entity_type: Only entries for this entity type, if given
        """
        query = """
            SELECT id, tenant_id, user_id, entity_type, entity_id, action, changes, created_at
            FROM audit_log
            WHERE tenant_id = %s
        """
        params: list[Any] = [ctx.tenant_id]
        if entity_type:
            query += " AND entity_type = %s"
            params.append(entity_type)
        query += " ORDER BY created_at DESC LIMIT %s"
        params.append(limit)

        return self.postgres.execute(query, tuple(params), tenant_id=ctx.tenant_id)
