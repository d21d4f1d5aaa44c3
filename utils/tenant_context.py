"""Explicit tenant/session context passed through every core call."""

from dataclasses import dataclass
from uuid import UUID


@dataclass(frozen=True)
class TenantContext:
    """
    Who a call is made for.

    Services never read tenant identity from ambient state. The API layer
    builds one of these per request and hands it down; background jobs and
    tests construct it directly.

    Example:
        ctx = TenantContext(tenant_id=tenant_id)
        document = document_service.commit(ctx, DocumentKind.INVOICE, draft, key)
    """

    tenant_id: UUID
    user_id: UUID | None = None

    @property
    def actor_id(self) -> UUID:
        """User the change is attributed to (tenant itself for system calls)."""
        return self.user_id or self.tenant_id
