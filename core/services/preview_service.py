"""
Preview generation with "last request wins" semantics.

Previews (totals, PDF, e-invoice XML) are recomputed while the user types.
Each request takes a new generation number for its draft from Valkey; when
a slow render finishes after a newer request has started, its result is
discarded instead of overwriting the newer one. The counter lives in Valkey
so the rule holds across stateless API processes.
"""

import logging
from typing import Callable, TypeVar

from clients.valkey_client import ValkeyClient
from core.config import BillingConfig
from core.models import DocumentDraft, DocumentKind, DocumentPreview
from utils.tenant_context import TenantContext

logger = logging.getLogger(__name__)

T = TypeVar("T")


class PreviewService:
    """Generation-tracked previews."""

    def __init__(self, valkey: ValkeyClient, documents, config: BillingConfig | None = None):
        """
        Args:
            valkey: Shared counter store
            documents: DocumentService (for totals previews)
            config: Billing configuration (counter TTL)
        """
        self.valkey = valkey
        self.documents = documents
        self.config = config or BillingConfig()

    @staticmethod
    def _key(ctx: TenantContext, draft_key: str) -> str:
        return f"preview:{ctx.tenant_id}:{draft_key}"

    def begin(self, ctx: TenantContext, draft_key: str) -> int:
        """Start a preview request. Returns its generation number."""
        return self.valkey.incr_with_ttl(self._key(ctx, draft_key), self.config.preview_ttl_seconds)

    def is_current(self, ctx: TenantContext, draft_key: str, generation: int) -> bool:
        """True if no newer request for the draft has started."""
        value = self.valkey.get(self._key(ctx, draft_key))
        return value is not None and int(value) == generation

    def run(self, ctx: TenantContext, draft_key: str, produce: Callable[[], T]) -> T | None:
        """
        Produce a preview unless it gets superseded meanwhile.

        Args:
            ctx: Tenant context
            draft_key: Identifies the draft being edited (e.g. a client tab id)
            produce: Computes the preview (totals, PDF bytes, XML)

        Returns:
            The produced result, or None if a newer request started before it finished
        """
        generation = self.begin(ctx, draft_key)
        result = produce()
        if not self.is_current(ctx, draft_key, generation):
            logger.debug(f"Discarding stale preview generation {generation} for draft {draft_key}")
            return None
        return result

    def preview_document(
        self,
        ctx: TenantContext,
        kind: DocumentKind,
        draft: DocumentDraft,
        draft_key: str,
        number: str | None = None,
    ) -> DocumentPreview | None:
        """Totals preview for a draft; None if superseded."""
        return self.run(ctx, draft_key, lambda: self.documents.preview(ctx, kind, draft, number=number))
