"""Tests for the promo code model: lenient parsing, activity window, discount math."""
from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from cartengine.domain.entities import PromoCode
from cartengine.domain.value_objects import PromoCodeStatus, PromoCodeType

NOW = datetime(2025, 6, 15, 12, 0, tzinfo=timezone.utc)


def _promo(**overrides) -> PromoCode:
    data = {
        "id": "p1",
        "code": "SUMMER",
        "type": "percentage",
        "value": 20,
        "start_date": (NOW - timedelta(days=1)).isoformat(),
        "end_date": (NOW + timedelta(days=1)).isoformat(),
        "status": "active",
    }
    data.update(overrides)
    return PromoCode.from_json(data)


class TestParsing:
    def test_type_accepts_camel_and_snake_case(self):
        assert _promo(type="fixedAmount").type is PromoCodeType.FIXED_AMOUNT
        assert _promo(type="fixed_amount").type is PromoCodeType.FIXED_AMOUNT
        assert _promo(type="buyOneGetOne").type is PromoCodeType.BUY_ONE_GET_ONE

    def test_unknown_enum_values_fall_back(self):
        promo = _promo(type="mystery", status="weird")
        assert promo.type is PromoCodeType.PERCENTAGE
        assert promo.status is PromoCodeStatus.ACTIVE

    def test_unparseable_dates_default_to_now(self):
        before = datetime.now(timezone.utc)
        promo = _promo(start_date="not-a-date")
        assert promo.start_date >= before

    def test_z_suffix_dates_are_utc(self):
        promo = _promo(end_date="2025-06-20T00:00:00Z")
        assert promo.end_date == datetime(2025, 6, 20, tzinfo=timezone.utc)

    def test_bad_numbers_become_zero(self):
        promo = _promo(value="abc", minimum_order_amount=None)
        assert promo.value == 0.0
        assert promo.minimum_order_amount == 0.0

    def test_json_roundtrip_keeps_snake_case_keys(self):
        promo = _promo(restaurant_id="r1", applicable_categories=["pizza"])
        data = promo.to_json()
        assert data["restaurant_id"] == "r1"
        assert data["minimum_order_amount"] == 0.0
        assert PromoCode.from_json(data) == promo


class TestActivity:
    def test_active_inside_window(self):
        assert _promo().is_active_at(NOW)

    def test_inactive_status(self):
        assert not _promo(status="paused").is_active_at(NOW)

    def test_outside_window(self):
        assert not _promo().is_active_at(NOW + timedelta(days=2))
        assert not _promo().is_active_at(NOW - timedelta(days=2))

    def test_usage_limit_exhausted(self):
        assert not _promo(usage_limit=5, used_count=5).is_active_at(NOW)
        assert _promo(usage_limit=5, used_count=4).is_active_at(NOW)

    def test_zero_or_missing_limit_is_unlimited(self):
        assert _promo(usage_limit=0, used_count=100).is_active_at(NOW)
        assert _promo(usage_limit=5, used_count=None).is_active_at(NOW)

    def test_expired(self):
        assert _promo().is_expired_at(NOW + timedelta(days=2))
        assert _promo(usage_limit=1, used_count=1).is_expired_at(NOW)
        assert not _promo().is_expired_at(NOW)


class TestDiscount:
    def test_percentage(self):
        assert _promo(value=20).calculate_discount(50.0, now=NOW) == pytest.approx(10.0)

    def test_fixed_amount(self):
        assert _promo(type="fixed_amount", value=7.5).calculate_discount(50.0, now=NOW) == 7.5

    def test_fixed_amount_clamped_to_order(self):
        assert _promo(type="fixed_amount", value=80).calculate_discount(50.0, now=NOW) == 50.0

    def test_capped_by_maximum_discount(self):
        promo = _promo(value=50, maximum_discount_amount=5)
        assert promo.calculate_discount(100.0, now=NOW) == 5.0

    def test_zero_maximum_means_uncapped(self):
        promo = _promo(value=50, maximum_discount_amount=0)
        assert promo.calculate_discount(100.0, now=NOW) == 50.0

    def test_below_minimum_order(self):
        assert _promo(minimum_order_amount=60).calculate_discount(50.0, now=NOW) == 0.0

    def test_inactive_gives_nothing(self):
        assert _promo(status="inactive").calculate_discount(50.0, now=NOW) == 0.0

    @pytest.mark.parametrize("promo_type", ["free_delivery", "buy_one_get_one"])
    def test_non_monetary_types(self, promo_type):
        assert _promo(type=promo_type, value=10).calculate_discount(50.0, now=NOW) == 0.0
