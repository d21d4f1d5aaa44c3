"""
Financial document service.

Invoices, quotes and order confirmations are drafted and previewed without a
number. A number is allocated only when a document is committed, inside the
same transaction as its insert. Once issued, the number never changes:
editing recomputes totals but keeps number and date verbatim.
"""

import logging
from uuid import uuid4

from psycopg2.errors import UniqueViolation
from psycopg2.extras import Json

from clients.postgres_client import PostgresClient
from core.audit import AuditLogger, AuditAction, compute_changes
from core.config import BillingConfig
from core.errors import ConfigurationIncomplete, SequenceCollision
from core.event_bus import EventBus
from core.events import DocumentIssued, DocumentUpdated
from core.line_items import LineItemEngine
from core.models import (
    DocumentDraft, DocumentKind, DocumentPreview, DocumentStatus, DocumentTotals, FinancialDocument,
)
from core.money import Money
from core.rendering import RenderPayload
from core.services.numbering_service import AllocatedNumber, DocumentNumberAllocator
from utils.tenant_context import TenantContext
from utils.timezone import add_days, now_utc, today_utc

logger = logging.getLogger(__name__)

IDEMPOTENCY_CONSTRAINT = "uq_financial_documents_idempotency"

# A number collision is retried exactly once, then surfaced
COLLISION_RETRIES = 1

# source kind -> kinds it can be turned into
_CONVERSIONS = {
    DocumentKind.QUOTE: {DocumentKind.ORDER_CONFIRMATION, DocumentKind.INVOICE},
    DocumentKind.ORDER_CONFIRMATION: {DocumentKind.INVOICE},
}


def _violated_constraint(error: UniqueViolation) -> str | None:
    diag = getattr(error, "diag", None)
    return getattr(diag, "constraint_name", None)


class DocumentService:
    """Service for financial document operations."""

    def __init__(
        self,
        postgres: PostgresClient,
        audit: AuditLogger,
        event_bus: EventBus,
        allocator: DocumentNumberAllocator,
        config: BillingConfig | None = None,
        engine: LineItemEngine | None = None,
    ):
        self.postgres = postgres
        self.audit = audit
        self.event_bus = event_bus
        self.allocator = allocator
        self.config = config or BillingConfig()
        self.engine = engine or LineItemEngine()

    @property
    def profiles(self):
        return self.allocator.profiles

    def _valid_until(self, kind: DocumentKind, doc_date):
        days = {
            DocumentKind.INVOICE: self.config.invoice_due_days,
            DocumentKind.ORDER_CONFIRMATION: self.config.order_confirmation_due_days,
            DocumentKind.QUOTE: self.config.quote_validity_days,
        }[kind]
        return add_days(doc_date, days)

    def compute_totals(self, draft: DocumentDraft) -> DocumentTotals:
        return self.engine.compute(draft.positions, draft.tax_rate, draft.discount)

    def preview(
        self,
        ctx: TenantContext,
        kind: DocumentKind,
        draft: DocumentDraft,
        number: str | None = None,
    ) -> DocumentPreview:
        """
        Totals for a draft. Never allocates.

        Args:
            ctx: Tenant context
            kind: Document kind
            draft: Document content
            number: Existing number when previewing an edit

        Returns:
            DocumentPreview with the existing number, or the number a commit
            would currently get (None while numbering is not configured)
        """
        totals = self.compute_totals(draft)

        if number is None:
            try:
                number = self.allocator.peek(ctx, kind).number
            except ConfigurationIncomplete:
                # Drafts can be previewed before onboarding is finished
                number = None

        return DocumentPreview(kind=kind, number=number, draft=draft, totals=totals)

    # =========================================================================
    # READS
    # =========================================================================

    def get(self, ctx: TenantContext, kind: DocumentKind, number: str) -> FinancialDocument | None:
        """Document by kind and number, None if not found."""
        row = self.postgres.execute_single(
            "SELECT * FROM financial_documents WHERE tenant_id = %s AND kind = %s AND number = %s",
            (ctx.tenant_id, kind.value, number),
            tenant_id=ctx.tenant_id,
        )
        if row is None:
            return None
        return FinancialDocument.model_validate(row)

    def _get_by_idempotency_key(
        self, ctx: TenantContext, kind: DocumentKind, key: str
    ) -> FinancialDocument | None:
        row = self.postgres.execute_single(
            """
            SELECT * FROM financial_documents
            WHERE tenant_id = %s AND kind = %s AND idempotency_key = %s
            """,
            (ctx.tenant_id, kind.value, key),
            tenant_id=ctx.tenant_id,
        )
        if row is None:
            return None
        return FinancialDocument.model_validate(row)

    def list(self, ctx: TenantContext, kind: DocumentKind | None = None, limit: int = 50) -> list[FinancialDocument]:
        """
        Documents newest first.

        Args:
            ctx: Tenant context
            kind: Restrict to one kind
            limit: Maximum documents to return
        """
        if kind is None:
            rows = self.postgres.execute(
                """
                SELECT * FROM financial_documents
                WHERE tenant_id = %s
                ORDER BY date DESC, created_at DESC
                LIMIT %s
                """,
                (ctx.tenant_id, limit),
                tenant_id=ctx.tenant_id,
            )
        else:
            rows = self.postgres.execute(
                """
                SELECT * FROM financial_documents
                WHERE tenant_id = %s AND kind = %s
                ORDER BY sequence DESC
                LIMIT %s
                """,
                (ctx.tenant_id, kind.value, limit),
                tenant_id=ctx.tenant_id,
            )
        return [FinancialDocument.model_validate(row) for row in rows]

    # =========================================================================
    # COMMIT
    # =========================================================================

    def commit(
        self,
        ctx: TenantContext,
        kind: DocumentKind,
        draft: DocumentDraft,
        idempotency_key: str | None = None,
        source: FinancialDocument | None = None,
    ) -> FinancialDocument:
        """
        Issue a document: allocate its number and store it.

        A repeated idempotency key returns the document created the first
        time instead of issuing a second number.

        Args:
            ctx: Tenant context
            kind: Document kind
            draft: Document content
            idempotency_key: Client-chosen key identifying this submission
            source: Document this one was converted from

        Returns:
            The issued document

        Raises:
            ConfigurationIncomplete: If numbering for kind is not configured
            InvalidAmount: If the gross total is negative
            SequenceCollision: If the number collided again after one retry
        """
        if idempotency_key:
            existing = self._get_by_idempotency_key(ctx, kind, idempotency_key)
            if existing is not None:
                logger.info(f"Idempotent replay of {kind.value} {existing.number} (key={idempotency_key})")
                return existing

        totals = self.compute_totals(draft)
        Money.of(totals.gross_total).ensure_non_negative("Gross total")

        floor = None
        attempt = 0
        while True:
            try:
                document, created = self._issue(ctx, kind, draft, totals, idempotency_key, source, floor)
                break
            except SequenceCollision as collision:
                if attempt >= COLLISION_RETRIES:
                    logger.error(f"Sequence collision on {collision.number} persisted after retry")
                    raise
                attempt += 1
                floor = collision.sequence + 1
                logger.warning(
                    f"{kind.value} number {collision.number} already taken for tenant "
                    f"{ctx.tenant_id}, retrying from sequence {floor}"
                )

        if created:
            self.audit.log_change(
                ctx,
                entity_type="financial_document",
                entity_id=document.id,
                action=AuditAction.CREATE,
                changes={"created": {
                    "kind": kind.value,
                    "number": document.number,
                    "gross_total": str(document.gross_total),
                    "source_number": document.source_number,
                }}
            )
            self.event_bus.publish(DocumentIssued.create(document))

        return document

    def _issue(
        self,
        ctx: TenantContext,
        kind: DocumentKind,
        draft: DocumentDraft,
        totals: DocumentTotals,
        idempotency_key: str | None,
        source: FinancialDocument | None,
        floor: int | None,
    ) -> tuple[FinancialDocument, bool]:
        """
        Allocate and insert in one transaction.

        Returns:
            (document, created); created is False when a concurrent request
            with the same idempotency key won

        Raises:
            SequenceCollision: If the allocated number is already taken
        """
        profile = self.profiles.get_or_create(ctx)
        doc_date = draft.date or today_utc()
        template = draft.template or profile.template or self.config.default_template
        content = draft.model_dump(mode="json")
        now = now_utc()

        allocated: AllocatedNumber | None = None
        try:
            with self.postgres.transaction(tenant_id=ctx.tenant_id) as cur:
                allocated = self.allocator.allocate(ctx, kind, cursor=cur, floor=floor)
                row = cur.execute_single(
                    """
                    INSERT INTO financial_documents (
                        id, tenant_id, kind, number, sequence, status,
                        date, valid_until, title, intro, positions,
                        tax_rate, discount, customer_ref, template,
                        net_subtotal, discount_amount, net_after_discount, tax_amount, gross_total,
                        idempotency_key, source_kind, source_number,
                        created_at, updated_at
                    ) VALUES (
                        %s, %s, %s, %s, %s, %s,
                        %s, %s, %s, %s, %s,
                        %s, %s, %s, %s,
                        %s, %s, %s, %s, %s,
                        %s, %s, %s,
                        %s, %s
                    )
                    RETURNING *
                    """,
                    (
                        uuid4(), ctx.tenant_id, kind.value, allocated.number, allocated.sequence,
                        DocumentStatus.ISSUED.value,
                        doc_date, self._valid_until(kind, doc_date), draft.title, draft.intro,
                        Json(content["positions"]),
                        draft.tax_rate, Json(content["discount"]), draft.customer_ref, template,
                        totals.net_subtotal, totals.discount_amount, totals.net_after_discount,
                        totals.tax_amount, totals.gross_total,
                        idempotency_key,
                        source.kind.value if source else None,
                        source.number if source else None,
                        now, now,
                    )
                )
        except UniqueViolation as e:
            if _violated_constraint(e) == IDEMPOTENCY_CONSTRAINT and idempotency_key:
                existing = self._get_by_idempotency_key(ctx, kind, idempotency_key)
                if existing is not None:
                    return existing, False
            if allocated is None:
                raise
            raise SequenceCollision(kind.value, allocated.number, allocated.sequence) from e

        document = FinancialDocument.model_validate(row)
        logger.info(f"Issued {kind.value} {document.number} for tenant {ctx.tenant_id}")
        return document, True

    # =========================================================================
    # EDIT / CONVERT
    # =========================================================================

    def update(
        self,
        ctx: TenantContext,
        kind: DocumentKind,
        number: str,
        draft: DocumentDraft,
    ) -> FinancialDocument:
        """
        Edit an issued document.

        The number and the original document date are kept verbatim; no
        number is allocated. Totals are recomputed from the new content.

        Raises:
            ValueError: If the document is not found
            InvalidAmount: If the new gross total is negative
        """
        current = self.get(ctx, kind, number)
        if current is None:
            raise ValueError(f"{kind.value} {number} not found")

        totals = self.compute_totals(draft)
        Money.of(totals.gross_total).ensure_non_negative("Gross total")

        content = draft.model_dump(mode="json")
        template = draft.template or current.template

        row = self.postgres.execute_returning(
            """
            UPDATE financial_documents
            SET title = %s, intro = %s, positions = %s, tax_rate = %s, discount = %s,
                customer_ref = %s, template = %s,
                net_subtotal = %s, discount_amount = %s, net_after_discount = %s,
                tax_amount = %s, gross_total = %s,
                updated_at = %s
            WHERE id = %s
            RETURNING *
            """,
            (
                draft.title, draft.intro, Json(content["positions"]), draft.tax_rate,
                Json(content["discount"]), draft.customer_ref, template,
                totals.net_subtotal, totals.discount_amount, totals.net_after_discount,
                totals.tax_amount, totals.gross_total,
                now_utc(), current.id,
            ),
            tenant_id=ctx.tenant_id,
        )[0]

        updated = FinancialDocument.model_validate(row)

        changes = compute_changes(
            current.model_dump(mode="json"),
            updated.model_dump(mode="json")
        )
        if changes:
            self.audit.log_change(
                ctx,
                entity_type="financial_document",
                entity_id=updated.id,
                action=AuditAction.UPDATE,
                changes=changes
            )
            self.event_bus.publish(DocumentUpdated.create(updated, changes))

        return updated

    def convert(
        self,
        ctx: TenantContext,
        source_kind: DocumentKind,
        source_number: str,
        target_kind: DocumentKind,
        idempotency_key: str | None = None,
    ) -> FinancialDocument:
        """
        Issue a follow-up document from an existing one.

        Quote -> order confirmation -> invoice (a quote can also go straight to
        an invoice). Positions, tax rate, discount, title, intro and customer
        are carried over; the new document is dated today and numbered in its
        own namespace.

        Raises:
            ValueError: If the conversion is not supported or the source is not found
        """
        if target_kind not in _CONVERSIONS.get(source_kind, set()):
            raise ValueError(f"Cannot convert {source_kind.value} into {target_kind.value}")

        source = self.get(ctx, source_kind, source_number)
        if source is None:
            raise ValueError(f"{source_kind.value} {source_number} not found")

        draft = source.to_draft().model_copy(update={"date": None})
        return self.commit(ctx, target_kind, draft, idempotency_key=idempotency_key, source=source)

    # =========================================================================
    # RENDERING
    # =========================================================================

    def render_payload(self, ctx: TenantContext, document: FinancialDocument) -> RenderPayload:
        """
        Input for the PDF renderer and the e-invoice serializer.

        Per-line totals are recomputed from the stored positions; the summary
        figures are the stored ones, so both outputs print identical amounts.
        """
        profile = self.profiles.get_or_create(ctx)
        computed = self.compute_totals(document.to_draft())
        totals = document.totals.model_copy(update={
            "line_totals": computed.line_totals,
            "subtotal_markers": computed.subtotal_markers,
        })

        return RenderPayload(
            document=document,
            totals=totals,
            profile=profile,
            template=document.template or profile.template or self.config.default_template,
            currency=self.config.default_currency,
            discount_label=document.discount.label or self.config.default_discount_label,
        )
