"""
Document number allocation.

Numbers are `prefix + zero-padded sequence + suffix`, scoped per tenant and
document kind. The next sequence is max(start, last issued + 1). Allocation
is serialized by the database: one counter row per (tenant, kind) is
advanced with a single upsert, whose row lock makes concurrent allocators
queue up instead of reading the same "last" value.

When the allocation runs inside the caller's transaction, a failed document
insert rolls the counter back with it, so issued sequences stay gapless.
"""

import logging
from typing import Protocol

from pydantic import BaseModel

from clients.postgres_client import PostgresClient, TransactionCursor
from core.config import BillingConfig
from core.errors import ConfigurationIncomplete
from core.models import DocumentKind, NumberingConfig
from utils.tenant_context import TenantContext
from utils.timezone import now_utc

logger = logging.getLogger(__name__)


def format_document_number(config: NumberingConfig, sequence: int, padding: int = 4) -> str:
    """
    Render a document number.

    Sequences wider than the padding are printed in full, never truncated.

    Example:
        format_document_number(NumberingConfig(prefix="RE-2024-", start=1, suffix=""), 1)
        → "RE-2024-0001"
    """
    return f"{config.prefix}{sequence:0{padding}d}{config.suffix}"


class AllocatedNumber(BaseModel):
    """A reserved document number."""

    kind: DocumentKind
    number: str
    sequence: int


class SequenceStore(Protocol):
    """Persistent per-(tenant, kind) counter."""

    def advance(
        self,
        ctx: TenantContext,
        kind: DocumentKind,
        floor: int,
        cursor: TransactionCursor | None = None,
    ) -> int:
        """Atomically store and return max(floor, last + 1); `floor` on first use."""
        ...

    def current(self, ctx: TenantContext, kind: DocumentKind) -> int | None:
        """Last issued sequence, or None if nothing was issued yet."""
        ...


class PostgresSequenceStore:
    """SequenceStore backed by the document_sequences table."""

    _ADVANCE_SQL = """
        INSERT INTO document_sequences (tenant_id, kind, last_sequence, updated_at)
        VALUES (%s, %s, %s, %s)
        ON CONFLICT (tenant_id, kind) DO UPDATE
        SET last_sequence = GREATEST(document_sequences.last_sequence + 1, EXCLUDED.last_sequence),
            updated_at = EXCLUDED.updated_at
        RETURNING last_sequence
    """

    def __init__(self, postgres: PostgresClient):
        self.postgres = postgres

    def advance(
        self,
        ctx: TenantContext,
        kind: DocumentKind,
        floor: int,
        cursor: TransactionCursor | None = None,
    ) -> int:
        params = (ctx.tenant_id, kind.value, floor, now_utc())

        if cursor is not None:
            row = cursor.execute_single(self._ADVANCE_SQL, params)
        else:
            with self.postgres.transaction(tenant_id=ctx.tenant_id) as cur:
                row = cur.execute_single(self._ADVANCE_SQL, params)

        return row["last_sequence"]

    def current(self, ctx: TenantContext, kind: DocumentKind) -> int | None:
        return self.postgres.execute_scalar(
            "SELECT last_sequence FROM document_sequences WHERE tenant_id = %s AND kind = %s",
            (ctx.tenant_id, kind.value),
            tenant_id=ctx.tenant_id,
        )


class DocumentNumberAllocator:
    """
    Hands out document numbers.

    Usage:
        allocator = DocumentNumberAllocator(profile_service, PostgresSequenceStore(db))

        with db.transaction(tenant_id=ctx.tenant_id) as cur:
            allocated = allocator.allocate(ctx, DocumentKind.INVOICE, cursor=cur)
            cur.execute("INSERT INTO financial_documents ...", (..., allocated.number, ...))
    """

    def __init__(self, profiles, store: SequenceStore, config: BillingConfig | None = None):
        """
        Args:
            profiles: Anything with get_or_create(ctx) -> TenantBillingProfile
            store: Sequence persistence
            config: Billing configuration (number padding)
        """
        self.profiles = profiles
        self.store = store
        self.config = config or BillingConfig()

    def _numbering(self, ctx: TenantContext, kind: DocumentKind) -> NumberingConfig:
        profile = self.profiles.get_or_create(ctx)
        numbering = profile.numbering(kind)
        if numbering is None:
            raise ConfigurationIncomplete(profile.missing_numbering_fields(kind), kind=kind.value)
        return numbering

    def allocate(
        self,
        ctx: TenantContext,
        kind: DocumentKind,
        cursor: TransactionCursor | None = None,
        floor: int | None = None,
    ) -> AllocatedNumber:
        """
        Reserve the next number for a document kind.

        Args:
            ctx: Tenant context
            kind: Numbering namespace
            cursor: Caller's transaction; the advance commits or rolls back with it
            floor: Lowest acceptable sequence (used to skip past a collision)

        Returns:
            AllocatedNumber with formatted number and raw sequence

        Raises:
            ConfigurationIncomplete: If the kind's prefix/start/suffix is not configured
        """
        numbering = self._numbering(ctx, kind)
        lowest = max(numbering.start, floor or 0)

        sequence = self.store.advance(ctx, kind, lowest, cursor=cursor)
        number = format_document_number(numbering, sequence, self.config.number_padding)

        logger.info(f"Allocated {kind.value} number {number} for tenant {ctx.tenant_id}")
        return AllocatedNumber(kind=kind, number=number, sequence=sequence)

    def peek(self, ctx: TenantContext, kind: DocumentKind) -> AllocatedNumber:
        """
        Number the next allocation would get. Reserves nothing.

        Raises:
            ConfigurationIncomplete: If the kind's prefix/start/suffix is not configured
        """
        numbering = self._numbering(ctx, kind)
        last = self.store.current(ctx, kind)
        sequence = numbering.start if last is None else max(numbering.start, last + 1)
        return AllocatedNumber(
            kind=kind,
            number=format_document_number(numbering, sequence, self.config.number_padding),
            sequence=sequence,
        )
