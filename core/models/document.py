"""Financial document domain models.

Invoices, quotes and order confirmations share one shape and differ only in
their numbering namespace. Line totals, subtotal and tax have two places;
the discount and the amounts after it keep their exact scale. Nothing here
is a float.
"""

from datetime import date as date_type, datetime
from decimal import Decimal
from enum import Enum
from uuid import UUID

from pydantic import BaseModel, Field, field_validator

from core.models.billing_profile import DocumentKind
from core.models.position import Discount, Position
from utils.timezone import parse_document_date


class DocumentStatus(str, Enum):
    """Document lifecycle. Numbers exist only from ISSUED on."""

    DRAFT = "draft"
    ISSUED = "issued"


class LineTotal(BaseModel):
    """Rounded total of one item position, keyed by its index in the list."""

    position_index: int
    amount: Decimal


class SubtotalMarker(BaseModel):
    """Running item sum printed at a subtotal position."""

    position_index: int
    amount: Decimal


class DocumentTotals(BaseModel):
    """Computed money figures of a document. Single source for PDF and e-invoice."""

    net_subtotal: Decimal
    discount_amount: Decimal
    net_after_discount: Decimal
    tax_rate: Decimal
    tax_amount: Decimal
    gross_total: Decimal
    line_totals: list[LineTotal] = Field(default_factory=list)
    subtotal_markers: list[SubtotalMarker] = Field(default_factory=list)

    model_config = {"frozen": True}


class DocumentDraft(BaseModel):
    """Editable content of a document before (or while) it is issued."""

    title: str = Field("", max_length=500)
    intro: str = Field("", max_length=5000)
    date: date_type | None = None
    positions: list[Position] = Field(default_factory=list)
    tax_rate: Decimal = Field(Decimal("19"), ge=0, le=100)
    discount: Discount = Field(default_factory=Discount)
    customer_ref: UUID | None = None
    template: str | None = Field(None, max_length=255)

    @field_validator("date", mode="before")
    @classmethod
    def parse_date(cls, value):
        """Accept ISO and German (dd.mm.yyyy) dates."""
        return parse_document_date(value)


class FinancialDocument(BaseModel):
    """Full document entity as stored."""

    id: UUID
    tenant_id: UUID
    kind: DocumentKind
    number: str
    sequence: int
    status: DocumentStatus
    date: date_type
    valid_until: date_type | None
    title: str
    intro: str
    positions: list[Position]
    tax_rate: Decimal
    discount: Discount
    customer_ref: UUID | None
    template: str | None

    net_subtotal: Decimal
    discount_amount: Decimal
    net_after_discount: Decimal
    tax_amount: Decimal
    gross_total: Decimal

    idempotency_key: str | None = None
    source_kind: DocumentKind | None = None
    source_number: str | None = None
    pdf_path: str | None = None

    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}

    @property
    def totals(self) -> DocumentTotals:
        """Stored summary figures (per-line detail is recomputed on demand)."""
        return DocumentTotals(
            net_subtotal=self.net_subtotal,
            discount_amount=self.discount_amount,
            net_after_discount=self.net_after_discount,
            tax_rate=self.tax_rate,
            tax_amount=self.tax_amount,
            gross_total=self.gross_total,
        )

    def to_draft(self) -> DocumentDraft:
        """Editable copy, e.g. for converting a quote into an order confirmation."""
        return DocumentDraft(
            title=self.title,
            intro=self.intro,
            date=self.date,
            positions=self.positions,
            tax_rate=self.tax_rate,
            discount=self.discount,
            customer_ref=self.customer_ref,
            template=self.template,
        )


class DocumentPreview(BaseModel):
    """Totals for a draft, with the number it has (edit) or would get (new)."""

    kind: DocumentKind
    number: str | None
    draft: DocumentDraft
    totals: DocumentTotals
