"""
Document totals from an ordered position list.

Rounding happens at exactly three points: each item line total, the
discount amount, and the tax amount. Everything else is exact Decimal
addition, so the same positions always produce the same cents.
"""

from collections.abc import Sequence
from decimal import Decimal

from core.errors import InvalidAmount
from core.models.document import DocumentTotals, LineTotal, SubtotalMarker
from core.models.position import Discount, DiscountBase, DiscountType, ItemPosition, SubtotalPosition
from core.money import Money, to_decimal


class LineItemEngine:
    """Pure totals calculator. Holds no state; safe to share."""

    def compute(
        self,
        positions: Sequence,
        tax_rate: Decimal | int | str,
        discount: Discount | None = None,
    ) -> DocumentTotals:
        """
        Compute totals for a document.

        Only item positions carry money. Negative quantities and prices are
        credit lines and are not clamped here.

        Args:
            positions: Ordered positions as entered
            tax_rate: Tax rate in percent (19 = 19 %)
            discount: Document discount, if any

        Returns:
            DocumentTotals with per-line totals and subtotal markers

        Raises:
            InvalidAmount: If tax_rate is negative or not finite
        """
        rate = to_decimal(tax_rate)
        if rate < 0:
            raise InvalidAmount(f"Tax rate must not be negative, got {rate}")

        line_totals: list[LineTotal] = []
        subtotal_markers: list[SubtotalMarker] = []
        running = Money.zero()

        for index, position in enumerate(positions):
            if isinstance(position, ItemPosition):
                line = Money.of(position.unit_price).multiply_by_quantity(position.quantity).round()
                line_totals.append(LineTotal(position_index=index, amount=line.amount))
                running = running + line
            elif isinstance(position, SubtotalPosition):
                subtotal_markers.append(SubtotalMarker(position_index=index, amount=running.amount))

        net_subtotal = running
        discount_amount = self._discount_amount(net_subtotal, rate, discount)

        # Discount is capped at the net subtotal, so this only goes negative
        # for undiscounted credit documents
        net_after_discount = net_subtotal - discount_amount

        tax_amount = net_after_discount.apply_percent(rate).round()
        gross_total = net_after_discount + tax_amount

        return DocumentTotals(
            net_subtotal=net_subtotal.amount,
            discount_amount=discount_amount.amount,
            net_after_discount=net_after_discount.amount,
            tax_rate=rate,
            tax_amount=tax_amount.amount,
            gross_total=gross_total.amount,
            line_totals=line_totals,
            subtotal_markers=subtotal_markers,
        )

    def _discount_amount(self, net_subtotal: Money, rate: Decimal, discount: Discount | None) -> Money:
        """Unrounded discount, capped at its base and at the net subtotal."""
        if discount is None or not discount.applies or not net_subtotal.is_positive():
            return Money.zero()

        if discount.base == DiscountBase.GROSS:
            # First pass: gross without discount
            base_value = net_subtotal + net_subtotal.apply_percent(rate).round()
        else:
            base_value = net_subtotal

        if discount.type == DiscountType.PERCENT:
            raw = base_value.apply_percent(discount.value)
        else:
            raw = Money.of(discount.value)

        return min(raw, base_value, net_subtotal)


def compute_totals(
    positions: Sequence,
    tax_rate: Decimal | int | str,
    discount: Discount | None = None,
) -> DocumentTotals:
    """Module-level shortcut for LineItemEngine().compute()."""
    return LineItemEngine().compute(positions, tax_rate, discount)
