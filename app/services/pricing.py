"""
Pricing Aggregator — pure money arithmetic for repair quotes.

No database access and no side effects. Callers validate inputs
(negative or missing prices are rejected before they reach this module).

    labour_total(rate, hours, discount)  = rate * hours * (1 - discount / 100)
    part_line_total(quantity, sell)      = quantity * sell
    margin_percent(cost, sell)           = (sell - cost) / sell * 100
    markup_percent(cost, sell)           = (sell - cost) / cost * 100
    summarise(labour, parts, vat_rate)   → PricingSummary

VAT applies to non-exempt labour plus all parts, rounded half-up to 2 dp.
"""

from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal

from flask import current_app, has_app_context

ZERO = Decimal("0.00")
HUNDRED = Decimal("100")
_CENT = Decimal("0.01")
FALLBACK_VAT_RATE = Decimal("20.00")


def _d(value) -> Decimal:
    if value is None:
        return Decimal("0")
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


def money(value) -> Decimal:
    """Round to 2 dp, half-up."""
    return _d(value).quantize(_CENT, rounding=ROUND_HALF_UP)


def labour_total(rate, hours, discount_percent=0) -> Decimal:
    return money(_d(rate) * _d(hours) * (1 - _d(discount_percent) / HUNDRED))


def part_line_total(quantity, sell_price) -> Decimal:
    return money(_d(quantity) * _d(sell_price))


def margin_percent(cost_price, sell_price) -> Decimal:
    """Profit as a share of the sell price; 0 when sell price is 0."""
    sell = _d(sell_price)
    if sell <= 0:
        return ZERO
    return money((sell - _d(cost_price)) / sell * HUNDRED)


def markup_percent(cost_price, sell_price) -> Decimal:
    """Profit as a share of the cost price; 0 when cost price is 0."""
    cost = _d(cost_price)
    if cost <= 0:
        return ZERO
    return money((_d(sell_price) - cost) / cost * HUNDRED)


@dataclass(frozen=True)
class PricingSummary:
    labour_total: Decimal
    parts_total: Decimal
    subtotal: Decimal
    vat_amount: Decimal
    total_inc_vat: Decimal

    def apply_to(self, target):
        """Copy the totals onto a RepairItem or RepairOption."""
        target.labour_total = self.labour_total
        target.parts_total = self.parts_total
        target.subtotal = self.subtotal
        target.vat_amount = self.vat_amount
        target.total_inc_vat = self.total_inc_vat


def summarise(labour_rows, part_rows, vat_rate) -> PricingSummary:
    """Aggregate labour and parts lines into quote totals.

    ``labour_rows`` need ``total`` and ``is_vat_exempt``; ``part_rows``
    need ``line_total``.
    """
    labour_rows = list(labour_rows)
    part_rows = list(part_rows)

    labour_sum = sum((_d(r.total) for r in labour_rows), Decimal("0"))
    taxable_labour = sum(
        (_d(r.total) for r in labour_rows if not r.is_vat_exempt), Decimal("0"),
    )
    parts_sum = sum((_d(p.line_total) for p in part_rows), Decimal("0"))

    subtotal = labour_sum + parts_sum
    vat_amount = money((taxable_labour + parts_sum) * _d(vat_rate) / HUNDRED)
    return PricingSummary(
        labour_total=money(labour_sum),
        parts_total=money(parts_sum),
        subtotal=money(subtotal),
        vat_amount=vat_amount,
        total_inc_vat=money(subtotal) + vat_amount,
    )


def resolve_vat_rate(organization=None) -> Decimal:
    """Organisation override, else the configured DEFAULT_VAT_RATE."""
    if organization is not None and organization.vat_rate is not None:
        return _d(organization.vat_rate)
    if has_app_context():
        return _d(current_app.config.get("DEFAULT_VAT_RATE", FALLBACK_VAT_RATE))
    return FALLBACK_VAT_RATE
