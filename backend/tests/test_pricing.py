"""
Pricing engine tests.

Pure functions only; no database.
"""

from decimal import Decimal

import pytest

from backoffice.models import MealSize
from backoffice.services.pricing_service import (
    ExtraItem,
    PriceTable,
    PricingError,
    bps_to_percent,
    compute_order_total,
    format_brl,
    percent_to_bps,
)


class TestOrderTotal:

    def test_discounted_order_with_extra(self):
        total = compute_order_total(
            MealSize.MEDIUM,
            3,
            [{"name": "Refrigerante", "unit_price_cents": 500, "quantity": 1}],
            10,
        )
        assert total.unit_price_cents == 1800
        assert total.meals_subtotal_cents == 5400
        assert total.extras_cents == 500
        assert total.discount_cents == 590
        assert total.grand_total_cents == 5310

    def test_no_discount_no_extras(self):
        total = compute_order_total("P", 2, None, 0)
        assert total.meals_subtotal_cents == 3000
        assert total.discount_cents == 0
        assert total.grand_total_cents == 3000

    def test_full_discount_is_free(self):
        total = compute_order_total("G", 4, [ExtraItem("Suco", 700, 2)], 100)
        assert total.discount_cents == 4 * 2200 + 1400
        assert total.grand_total_cents == 0

    def test_discount_rounds_half_up(self):
        # 1500 * 12.5% = 187.5 -> 188
        total = compute_order_total("P", 1, [], "12.5")
        assert total.discount_cents == 188
        assert total.grand_total_cents == 1312

    def test_size_is_case_insensitive(self):
        assert compute_order_total("m", 1, [], 0).unit_price_cents == 1800

    def test_custom_price_table(self):
        table = PriceTable.from_mapping({"M": 2000})
        total = compute_order_total("M", 2, [], 0, table)
        assert total.grand_total_cents == 4000
        assert table.unit_price("P") == 1500

    @pytest.mark.parametrize("size", list(MealSize))
    @pytest.mark.parametrize("quantity", [1, 2, 7, 31])
    @pytest.mark.parametrize("discount", [0, 5, 10, "12.5", 33, "66.67", 100])
    def test_total_matches_discounted_subtotal(self, size, quantity, discount):
        extras = [{"name": "Sobremesa", "unit_price_cents": 350, "quantity": 2}]
        total = compute_order_total(size, quantity, extras, discount)

        subtotal = PriceTable.default().unit_price(size) * quantity + 700
        exact = Decimal(subtotal) * (1 - Decimal(str(discount)) / 100)

        assert total.meals_subtotal_cents + total.extras_cents == subtotal
        assert total.meals_subtotal_cents + total.extras_cents - total.discount_cents == total.grand_total_cents
        assert abs(Decimal(total.grand_total_cents) - exact) <= Decimal("0.5")
        assert total.grand_total_cents >= 0


class TestRejectedInput:

    @pytest.mark.parametrize(
        "kwargs",
        [
            {"quantity": -1},
            {"discount_percent": -5},
            {"discount_percent": 150},
            {"discount_percent": "abc"},
            {"size": "XL"},
            {"extra_items": [{"name": "Suco", "unit_price_cents": -100, "quantity": 1}]},
            {"extra_items": [{"name": "Suco", "unit_price_cents": 100, "quantity": -1}]},
            {"extra_items": [{"name": "  ", "unit_price_cents": 100, "quantity": 1}]},
            {"extra_items": "Suco"},
        ],
    )
    def test_invalid_input_raises(self, kwargs):
        args = {"size": "M", "quantity": 1, "extra_items": [], "discount_percent": 0}
        args.update(kwargs)
        with pytest.raises(PricingError):
            compute_order_total(**args)

    def test_negative_price_table_rejected(self):
        with pytest.raises(PricingError):
            PriceTable.from_mapping({"P": -1})


class TestHelpers:

    def test_percent_bps_conversion(self):
        assert percent_to_bps(10) == 1000
        assert percent_to_bps("12.5") == 1250
        assert bps_to_percent(1250) == Decimal("12.5")

    @pytest.mark.parametrize(
        "cents,expected",
        [
            (0, "R$ 0,00"),
            (5310, "R$ 53,10"),
            (123456, "R$ 1.234,56"),
            (100000000, "R$ 1.000.000,00"),
            (-250, "-R$ 2,50"),
        ],
    )
    def test_format_brl(self, cents, expected):
        assert format_brl(cents) == expected
