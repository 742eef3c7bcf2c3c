"""Promo code eligibility checks against the current cart."""
from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Protocol

from cartengine.domain.entities import LineItem, PromoCode

try:
    from logging_config import logger
except ImportError:
    import logging

    logger = logging.getLogger(__name__)


NOT_ACTIVE_MESSAGE = "This promo code is not currently active or has expired"
WRONG_RESTAURANT_MESSAGE = "This promo code is not valid for the selected restaurant"
MIN_ORDER_MESSAGE = "Minimum order amount of ${amount:.2f} required for this promo code"
EMPTY_CART_MESSAGE = "Add items to your cart before applying a promo code"
DISCOUNT_EXCEEDS_MESSAGE = "Discount amount exceeds order total"


@dataclass(frozen=True)
class PromoValidation:
    """Outcome of validating a promo code; failures carry a user-facing reason."""

    is_valid: bool
    error_message: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {"isValid": self.is_valid, "errorMessage": self.error_message}


VALID = PromoValidation(is_valid=True)


class PromoScopeRule(Protocol):
    """Narrower eligibility check (categories, menu items). Returns None when it passes."""

    def check(self, promo: PromoCode, items: Sequence[LineItem]) -> str | None: ...


class AdvisoryScopeRule:
    """Default scope rule: reports declared category/menu-item scopes but never blocks."""

    def check(self, promo: PromoCode, items: Sequence[LineItem]) -> str | None:
        if promo.applicable_categories:
            logger.warning("Category scope for promo %s is not enforced", promo.code)
        if promo.applicable_menu_items:
            logger.warning("Menu item scope for promo %s is not enforced", promo.code)
        return None


DEFAULT_SCOPE_RULES: tuple[PromoScopeRule, ...] = (AdvisoryScopeRule(),)


def validate_promo(
    promo: PromoCode,
    subtotal: float,
    items: Sequence[LineItem],
    restaurant_id: str | None = None,
    *,
    now: datetime | None = None,
    scope_rules: Sequence[PromoScopeRule] = DEFAULT_SCOPE_RULES,
) -> PromoValidation:
    """Run the eligibility gates in order and stop at the first failure."""
    if not promo.is_active_at(now):
        logger.info("Promo %s rejected: not active", promo.code)
        return PromoValidation(False, NOT_ACTIVE_MESSAGE)

    if promo.restaurant_id is not None and restaurant_id is not None and promo.restaurant_id != restaurant_id:
        logger.info("Promo %s rejected: restaurant %s out of scope", promo.code, restaurant_id)
        return PromoValidation(False, WRONG_RESTAURANT_MESSAGE)

    if subtotal < promo.minimum_order_amount:
        logger.info(
            "Promo %s rejected: subtotal %.2f below minimum %.2f",
            promo.code,
            subtotal,
            promo.minimum_order_amount,
        )
        return PromoValidation(False, MIN_ORDER_MESSAGE.format(amount=promo.minimum_order_amount))

    if not items:
        logger.info("Promo %s rejected: empty cart", promo.code)
        return PromoValidation(False, EMPTY_CART_MESSAGE)

    discount = promo.calculate_discount(subtotal, now=now)
    if discount > subtotal:
        logger.info("Promo %s rejected: discount %.2f exceeds subtotal %.2f", promo.code, discount, subtotal)
        return PromoValidation(False, DISCOUNT_EXCEEDS_MESSAGE)

    for rule in scope_rules:
        reason = rule.check(promo, items)
        if reason:
            logger.info("Promo %s rejected by scope rule: %s", promo.code, reason)
            return PromoValidation(False, reason)

    return VALID
