"""
Pricing Aggregator — pure arithmetic tests for app/services/pricing.py.

No HTTP and no database rows; labour / parts lines are simple stand-ins
carrying the attributes ``summarise`` reads.
"""

from decimal import Decimal
from types import SimpleNamespace

from app.models.organization import Organization
from app.services import pricing


def _labour(total, exempt=False):
    return SimpleNamespace(total=Decimal(total), is_vat_exempt=exempt)


def _part(line_total):
    return SimpleNamespace(line_total=Decimal(line_total))


class TestLineArithmetic:
    def test_labour_total_rate_times_hours(self):
        assert pricing.labour_total("85.00", "1.5") == Decimal("127.50")

    def test_labour_total_applies_discount(self):
        assert pricing.labour_total("100.00", "2", "10") == Decimal("180.00")

    def test_labour_total_rounds_half_up(self):
        # 33.33 * 0.15 = 4.9995
        assert pricing.labour_total("33.33", "0.15") == Decimal("5.00")

    def test_part_line_total(self):
        assert pricing.part_line_total("2", "45.00") == Decimal("90.00")

    def test_margin_and_markup(self):
        assert pricing.margin_percent("30.00", "45.00") == Decimal("33.33")
        assert pricing.markup_percent("30.00", "45.00") == Decimal("50.00")

    def test_cost_50_sell_80(self):
        assert pricing.margin_percent("50", "80") == Decimal("37.50")
        assert pricing.markup_percent("50", "80") == Decimal("60.00")

    def test_zero_sell_price_has_zero_margin(self):
        assert pricing.margin_percent("10.00", "0") == pricing.ZERO

    def test_zero_cost_price_has_zero_markup(self):
        assert pricing.markup_percent("0", "10.00") == pricing.ZERO

    def test_money_rounds_half_up(self):
        assert pricing.money("2.675") == Decimal("2.68")
        assert pricing.money(None) == Decimal("0.00")


class TestSummarise:
    def test_labour_and_parts_with_standard_vat(self):
        """1.5h @ 85.00 + 2 x 45.00 at 20% VAT."""
        summary = pricing.summarise([_labour("127.50")], [_part("90.00")], Decimal("20"))

        assert summary.labour_total == Decimal("127.50")
        assert summary.parts_total == Decimal("90.00")
        assert summary.subtotal == Decimal("217.50")
        assert summary.vat_amount == Decimal("43.50")
        assert summary.total_inc_vat == Decimal("261.00")

    def test_vat_exempt_labour_excluded_from_vat(self):
        summary = pricing.summarise(
            [_labour("54.85", exempt=True), _labour("100.00")], [], Decimal("20"),
        )
        assert summary.labour_total == Decimal("154.85")
        assert summary.vat_amount == Decimal("20.00")
        assert summary.total_inc_vat == Decimal("174.85")

    def test_empty_lines_are_all_zero(self):
        summary = pricing.summarise([], [], Decimal("20"))
        assert summary.subtotal == pricing.ZERO
        assert summary.vat_amount == pricing.ZERO
        assert summary.total_inc_vat == pricing.ZERO

    def test_total_is_subtotal_plus_vat(self):
        summary = pricing.summarise(
            [_labour("10.01"), _labour("3.33", exempt=True)],
            [_part("7.77"), _part("0.01")],
            Decimal("17.5"),
        )
        assert summary.total_inc_vat == summary.subtotal + summary.vat_amount

    def test_apply_to_copies_totals(self):
        target = SimpleNamespace()
        pricing.summarise([_labour("10.00")], [], Decimal("20")).apply_to(target)
        assert target.labour_total == Decimal("10.00")
        assert target.total_inc_vat == Decimal("12.00")


class TestResolveVatRate:
    def test_default_comes_from_config(self, app):
        assert pricing.resolve_vat_rate() == app.config["DEFAULT_VAT_RATE"]

    def test_organisation_override_wins(self):
        org = Organization(name="Export Co", slug="export", vat_rate=Decimal("0.00"))
        assert pricing.resolve_vat_rate(org) == Decimal("0.00")

    def test_organisation_without_override_uses_default(self, app):
        org = Organization(name="Plain Co", slug="plain")
        assert pricing.resolve_vat_rate(org) == app.config["DEFAULT_VAT_RATE"]
