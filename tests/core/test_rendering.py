"""Tests for the renderer-facing totals mapping."""

from decimal import Decimal

from core.line_items import compute_totals
from core.models import Discount, ItemPosition
from core.rendering import einvoice_monetary_totals


def _item(quantity: str, unit_price: str) -> ItemPosition:
    return ItemPosition(quantity=Decimal(quantity), unit_price=Decimal(unit_price))


class TestEInvoiceMonetaryTotals:

    def test_with_discount(self):
        totals = compute_totals(
            [_item("2", "100"), _item("1", "50")], 19,
            Discount(enabled=True, value=Decimal("10")),
        )

        assert einvoice_monetary_totals(totals) == {
            "LineExtensionAmount": "250.00",
            "AllowanceTotalAmount": "25.00",
            "TaxExclusiveAmount": "225.00",
            "TaxAmount": "42.75",
            "TaxInclusiveAmount": "267.75",
            "PayableAmount": "267.75",
        }

    def test_allowance_omitted_without_discount(self):
        block = einvoice_monetary_totals(compute_totals([_item("1", "10")], 7))

        assert "AllowanceTotalAmount" not in block
        assert block["TaxAmount"] == "0.70"
        assert block["PayableAmount"] == "10.70"

    def test_reconciles_with_line_extension(self):
        """Line extension minus allowance equals tax-exclusive amount."""
        totals = compute_totals(
            [_item("3", "19.99"), _item("1", "0.01")], 19,
            Discount(enabled=True, value=Decimal("7.5")),
        )
        block = einvoice_monetary_totals(totals)

        assert Decimal(block["LineExtensionAmount"]) - Decimal(block["AllowanceTotalAmount"]) == Decimal(block["TaxExclusiveAmount"])
        assert Decimal(block["TaxExclusiveAmount"]) + Decimal(block["TaxAmount"]) == Decimal(block["TaxInclusiveAmount"])

    def test_unrounded_discount_rounded_once_for_the_block(self):
        """Discount 3.333 on 33.33: tax-exclusive 29.997 -> 30.00, allowance 3.33."""
        totals = compute_totals([_item("1", "33.33")], 19, Discount(enabled=True, value=Decimal("10")))

        assert einvoice_monetary_totals(totals) == {
            "LineExtensionAmount": "33.33",
            "AllowanceTotalAmount": "3.33",
            "TaxExclusiveAmount": "30.00",
            "TaxAmount": "5.70",
            "TaxInclusiveAmount": "35.70",
            "PayableAmount": "35.70",
        }
