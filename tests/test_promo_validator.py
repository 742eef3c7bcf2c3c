from __future__ import annotations

from collections.abc import Sequence
from datetime import datetime, timedelta, timezone

from cartengine.domain.entities import LineItem, PromoCode
from cartengine.services.promo_validator import (
    DISCOUNT_EXCEEDS_MESSAGE,
    EMPTY_CART_MESSAGE,
    NOT_ACTIVE_MESSAGE,
    WRONG_RESTAURANT_MESSAGE,
    PromoValidation,
    validate_promo,
)

NOW = datetime(2025, 6, 15, 12, 0, tzinfo=timezone.utc)
ITEMS = [LineItem(id="a", name="Burger", price=20.0, quantity=2)]


def _promo(**overrides) -> PromoCode:
    data = {
        "code": "SAVE10",
        "type": "fixed_amount",
        "value": 10,
        "start_date": NOW - timedelta(days=1),
        "end_date": NOW + timedelta(days=1),
    }
    data.update(overrides)
    return PromoCode(**data)


class GreedyPromo(PromoCode):
    """Discount rule that ignores the order amount bound."""

    def calculate_discount(self, order_amount: float, now: datetime | None = None) -> float:
        return order_amount + 1


class BlockAll:
    def check(self, promo: PromoCode, items: Sequence[LineItem]) -> str | None:
        return "Not valid for these items"


def test_valid_promo_passes() -> None:
    result = validate_promo(_promo(), 40.0, ITEMS, now=NOW)
    assert result == PromoValidation(True, None)
    assert result.to_dict() == {"isValid": True, "errorMessage": None}


def test_inactive_promo_rejected_first() -> None:
    result = validate_promo(_promo(status="expired", minimum_order_amount=100), 40.0, [], now=NOW)
    assert result.to_dict() == {"isValid": False, "errorMessage": NOT_ACTIVE_MESSAGE}


def test_restaurant_scope_mismatch() -> None:
    result = validate_promo(_promo(restaurant_id="r1"), 40.0, ITEMS, "r2", now=NOW)
    assert result.error_message == WRONG_RESTAURANT_MESSAGE


def test_restaurant_scope_skipped_without_cart_restaurant() -> None:
    assert validate_promo(_promo(restaurant_id="r1"), 40.0, ITEMS, None, now=NOW).is_valid
    assert validate_promo(_promo(), 40.0, ITEMS, "r2", now=NOW).is_valid


def test_minimum_order_amount_message() -> None:
    result = validate_promo(_promo(minimum_order_amount=50), 40.0, ITEMS, now=NOW)
    assert result.to_dict() == {
        "isValid": False,
        "errorMessage": "Minimum order amount of $50.00 required for this promo code",
    }


def test_empty_cart_rejected() -> None:
    result = validate_promo(_promo(), 0.0, [], now=NOW)
    assert result.error_message == EMPTY_CART_MESSAGE


def test_discount_exceeding_subtotal_rejected() -> None:
    promo = GreedyPromo(**_promo().model_dump())
    result = validate_promo(promo, 40.0, ITEMS, now=NOW)
    assert result.error_message == DISCOUNT_EXCEEDS_MESSAGE


def test_declared_category_scope_is_advisory() -> None:
    promo = _promo(applicable_categories=["desserts"], applicable_menu_items=["m1"])
    assert validate_promo(promo, 40.0, ITEMS, now=NOW).is_valid


def test_custom_scope_rule_can_block() -> None:
    result = validate_promo(_promo(), 40.0, ITEMS, now=NOW, scope_rules=[BlockAll()])
    assert result == PromoValidation(False, "Not valid for these items")
