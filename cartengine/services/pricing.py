"""Cart pricing: subtotal, discounts, delivery fee and grand total.

Every function here is pure: callers pass the cart state they want priced.
Surfaced amounts are rounded half-up to 2 decimals; intermediate values keep
full precision. Missing or malformed offer metadata never raises.
"""
from __future__ import annotations

from collections.abc import Iterable
from datetime import datetime
from typing import Any, Protocol

from cartengine.core.constants import FALLBACK_DELIVERY_FEE
from cartengine.core.money import round_money
from cartengine.domain.entities import LineItem, PaidDrinkAllocation
from cartengine.domain.offers import OfferSnapshot, parse_offer_snapshot
from cartengine.domain.value_objects import OfferType


class DiscountRule(Protocol):
    """Anything that can price a promo discount for a subtotal."""

    def calculate_discount(self, order_amount: float, now: datetime | None = None) -> float: ...


def calculate_subtotal(items: Iterable[LineItem]) -> float:
    """Sum of price x quantity. Paid drinks are excluded and totaled separately."""
    return round_money(sum(item.price * item.quantity for item in items))


def calculate_paid_drinks_total(allocation: PaidDrinkAllocation) -> float:
    return round_money(allocation.total())


def calculate_discount(promo: DiscountRule | None, subtotal: float, now: datetime | None = None) -> float:
    if promo is None:
        return 0.0
    return round_money(promo.calculate_discount(subtotal, now=now))


def base_delivery_fee(cached_fee: float | None) -> float:
    if cached_fee is None:
        return FALLBACK_DELIVERY_FEE
    return round_money(cached_fee)


def _special_delivery_offers(items: Iterable[LineItem]) -> Iterable[tuple[LineItem, OfferSnapshot]]:
    for item in items:
        snapshot = parse_offer_snapshot(item.customizations)
        if snapshot.has_offer_type(OfferType.SPECIAL_DELIVERY):
            yield item, snapshot


def calculate_special_delivery_discount(items: Iterable[LineItem], cached_fee: float | None) -> float:
    """Largest special-delivery discount among the items; offers do not stack."""
    current_fee = FALLBACK_DELIVERY_FEE if cached_fee is None else cached_fee
    best = 0.0
    for _item, snapshot in _special_delivery_offers(items):
        benefit = snapshot.delivery_benefit()
        if benefit is None:
            continue
        best = max(best, benefit.delivery_discount(current_fee))
    return best


def special_delivery_details(items: Iterable[LineItem]) -> dict[str, Any] | None:
    """Type and raw value of the first special-delivery offer, for display."""
    for _item, snapshot in _special_delivery_offers(items):
        benefit = snapshot.delivery_benefit()
        if benefit is not None:
            return {"type": benefit.delivery_type, "value": benefit.value}
    return None


def calculate_delivery_fee(cached_fee: float | None, special_discount: float) -> float:
    return round_money(max(0.0, base_delivery_fee(cached_fee) - special_discount))


def calculate_total_order_amount(
    subtotal: float,
    discount: float,
    paid_drinks_total: float,
    delivery_fee: float,
    service_fee: float,
) -> float:
    total = (subtotal - discount) + paid_drinks_total + delivery_fee + service_fee
    return max(0.0, round_money(total))


def build_fee_breakdown(
    items: list[LineItem],
    allocation: PaidDrinkAllocation,
    promo: DiscountRule | None,
    cached_fee: float | None,
    service_fee: float,
    now: datetime | None = None,
) -> dict[str, float]:
    """Every intermediate amount of the order total, keyed for display."""
    subtotal = calculate_subtotal(items)
    paid_drinks_total = calculate_paid_drinks_total(allocation)
    discount = calculate_discount(promo, subtotal, now=now)
    special_discount = calculate_special_delivery_discount(items, cached_fee)
    delivery_fee = calculate_delivery_fee(cached_fee, special_discount)
    service = round_money(service_fee)
    total = calculate_total_order_amount(subtotal, discount, paid_drinks_total, delivery_fee, service)

    return {
        "subtotal": subtotal,
        "paid_drinks_total": paid_drinks_total,
        "discount": discount,
        "subtotal_after_discount": round_money(subtotal - discount),
        "base_delivery_fee": base_delivery_fee(cached_fee),
        "special_delivery_discount": round_money(special_discount),
        "delivery_fee": delivery_fee,
        "service_fee": service,
        "total": total,
    }
