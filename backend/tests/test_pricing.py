"""
Tests for the pricing resolver (shared/domain/pricing.py).
"""

import pytest
from datetime import date, datetime

from hypothesis import given, strategies as st

from shared.domain.pricing import (
    PromotionRule,
    apply_promotion,
    manual_discount_cents,
    price_line,
    resolve_promotion,
    weekday_of,
)

ALL_DAYS = frozenset(range(7))
MONDAY = date(2026, 10, 19)
TUESDAY = date(2026, 10, 20)


def promo(
    id=1,
    scope="GLOBAL",
    discount_type="PERCENT",
    value=10,
    weekdays=ALL_DAYS,
    active=True,
    product_ids=(),
    name=None,
):
    return PromotionRule(
        id=id,
        name=name or f"Promo {id}",
        scope=scope,
        discount_type=discount_type,
        discount_value=value,
        weekdays=frozenset(weekdays),
        active=active,
        product_ids=frozenset(product_ids),
    )


class TestWeekday:
    def test_sunday_is_zero(self):
        assert weekday_of(date(2026, 10, 18)) == 0

    def test_monday_is_one(self):
        assert weekday_of(MONDAY) == 1

    def test_saturday_is_six(self):
        assert weekday_of(date(2026, 10, 24)) == 6

    def test_accepts_datetime(self):
        assert weekday_of(datetime(2026, 10, 20, 23, 59)) == 2


class TestResolvePromotion:
    def test_no_promotions(self):
        assert resolve_promotion(1, [], MONDAY) is None

    def test_product_promotion_beats_global(self):
        global_promo = promo(id=1, value=50)
        product_promo = promo(id=2, scope="PRODUCT", value=5, product_ids=[7])

        assert resolve_promotion(7, [global_promo, product_promo], MONDAY).id == 2

    def test_global_applies_to_unlisted_product(self):
        global_promo = promo(id=1)
        product_promo = promo(id=2, scope="PRODUCT", product_ids=[7])

        assert resolve_promotion(8, [global_promo, product_promo], MONDAY).id == 1

    def test_inactive_promotion_ignored(self):
        assert resolve_promotion(1, [promo(active=False)], MONDAY) is None

    def test_wrong_weekday_ignored(self):
        monday_only = promo(weekdays=[1])

        assert resolve_promotion(1, [monday_only], MONDAY) is not None
        assert resolve_promotion(1, [monday_only], TUESDAY) is None

    def test_first_listed_wins_among_same_kind(self):
        first = promo(id=3, value=10)
        second = promo(id=4, value=90)

        assert resolve_promotion(1, [first, second], MONDAY).id == 3


class TestApplyPromotion:
    def test_no_promotion_keeps_price(self):
        result = apply_promotion(2500, None)
        assert result.final_unit_price_cents == 2500
        assert result.discount_cents == 0
        assert not result.has_promotion

    def test_percent_discount(self):
        result = apply_promotion(2500, promo(value=10))
        assert result.final_unit_price_cents == 2250
        assert result.discount_cents == 250

    def test_percent_rounds_half_up(self):
        # 12.5% of 100 = 12.5 -> 13
        result = apply_promotion(100, promo(value=12.5))
        assert result.discount_cents == 13
        assert result.final_unit_price_cents == 87

    def test_percent_over_100_clamped(self):
        result = apply_promotion(999, promo(value=150))
        assert result.final_unit_price_cents == 0
        assert result.discount_cents == 999

    def test_amount_discount(self):
        result = apply_promotion(2500, promo(discount_type="AMOUNT", value=700))
        assert result.final_unit_price_cents == 1800

    def test_amount_larger_than_price_floors_at_zero(self):
        result = apply_promotion(500, promo(discount_type="AMOUNT", value=800))
        assert result.final_unit_price_cents == 0
        assert result.discount_cents == 500

    def test_promo_name_reported(self):
        assert apply_promotion(1000, promo(name="Terça do burger")).promo_name == "Terça do burger"

    @given(
        base=st.integers(min_value=0, max_value=10_000_000),
        value=st.floats(min_value=0, max_value=10_000_000, allow_nan=False),
        kind=st.sampled_from(["AMOUNT", "PERCENT"]),
    )
    def test_final_price_always_within_bounds(self, base, value, kind):
        result = apply_promotion(base, promo(discount_type=kind, value=value))

        assert 0 <= result.final_unit_price_cents <= base
        assert result.final_unit_price_cents + result.discount_cents == base


class TestManualDiscount:
    def test_percent(self):
        assert manual_discount_cents(5000, "PERCENT", 10) == 500

    def test_amount(self):
        assert manual_discount_cents(5000, "AMOUNT", 1200) == 1200

    def test_amount_capped_at_total(self):
        assert manual_discount_cents(800, "AMOUNT", 1200) == 800

    def test_none_mode(self):
        assert manual_discount_cents(5000, "NONE", 50) == 0


class TestPriceLine:
    def test_addons_not_discounted(self):
        line = price_line(1, 2500, 300, 2, [promo(value=10)], MONDAY)

        assert line.original_unit_price_cents == 2800
        assert line.unit_price_cents == 2550
        assert line.subtotal_cents == 5600
        assert line.discount_cents == 500
        assert line.total_cents == 5100

    def test_no_promotion_name_without_discount(self):
        line = price_line(1, 2500, 0, 1, [promo(value=0)], MONDAY)
        assert line.promo_name is None

    @pytest.mark.parametrize("day,expected", [(MONDAY, 2000), (TUESDAY, 2500)])
    def test_day_gated_promotion(self, day, expected):
        monday_only = promo(discount_type="AMOUNT", value=500, weekdays=[1])
        assert price_line(1, 2500, 0, 1, [monday_only], day).unit_price_cents == expected


class TestPromotionRuleFromDict:
    def test_drops_invalid_weekdays(self):
        rule = PromotionRule.from_dict({"id": 5, "weekdays": [0, 3, 9], "discount_value": 10})
        assert rule.weekdays == frozenset({0, 3})

    def test_unknown_scope_falls_back_to_global(self):
        rule = PromotionRule.from_dict({"id": 5, "scope": "WHATEVER", "discount_value": 10})
        assert rule.scope == "GLOBAL"

    def test_negative_value_clamped(self):
        rule = PromotionRule.from_dict({"id": 5, "discount_value": -3})
        assert rule.discount_value == 0.0
