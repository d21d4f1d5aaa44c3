"""
Interfaces to the document renderers.

PDF layout and e-invoice XML are produced outside this code base. Both
receive the same RenderPayload, so the numbers printed on the PDF and the
numbers in the XML come from one DocumentTotals and always reconcile.
"""

from typing import Protocol

from pydantic import BaseModel

from core.models.billing_profile import TenantBillingProfile
from core.models.document import DocumentTotals, FinancialDocument
from core.money import Money


class RenderPayload(BaseModel):
    """Everything a renderer needs; no amount is computed downstream."""

    document: FinancialDocument
    totals: DocumentTotals
    profile: TenantBillingProfile
    template: str
    currency: str
    discount_label: str


class PdfRenderer(Protocol):
    def render(self, payload: RenderPayload) -> bytes:
        """Return the PDF byte stream for the payload."""
        ...


class EInvoiceSerializer(Protocol):
    def serialize(self, payload: RenderPayload, monetary_totals: dict[str, str]) -> bytes:
        """Return a conformant e-invoice XML document."""
        ...


def einvoice_monetary_totals(totals: DocumentTotals) -> dict[str, str]:
    """
    Map totals to the e-invoice LegalMonetaryTotal block.

    The discount is not rounded by the engine, so the block rounds the
    tax-exclusive amount half-up to cents and states the allowance as the
    difference to the line extension. Both sums in the block then hold to
    the cent. AllowanceTotalAmount is only present when a discount was applied.
    """
    line_extension = Money.of(totals.net_subtotal).round()
    tax_exclusive = Money.of(totals.net_after_discount).round()
    tax = Money.of(totals.tax_amount)
    tax_inclusive = tax_exclusive + tax

    block = {"LineExtensionAmount": str(line_extension)}
    if totals.discount_amount > 0:
        block["AllowanceTotalAmount"] = str(line_extension - tax_exclusive)
    block["TaxExclusiveAmount"] = str(tax_exclusive)
    block["TaxAmount"] = str(tax)
    block["TaxInclusiveAmount"] = str(tax_inclusive)
    block["PayableAmount"] = str(tax_inclusive)
    return block
