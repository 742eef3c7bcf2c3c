"""Typed view over the limited-time offer metadata embedded in line items.

Menu items copy their active LTO configuration into the line item payload at
add time (``is_limited_offer``, ``lto_offer_types``, ``lto_offer_details``).
This module turns that untyped payload into a small tagged union so the
pricing code never pokes at raw dictionaries.
"""
from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any, ClassVar, Union

from cartengine.core.constants import (
    KEY_IS_LIMITED_OFFER,
    KEY_LTO_OFFER_DETAILS,
    KEY_LTO_OFFER_TYPES,
)
from cartengine.core.money import to_bool, to_float, to_int, to_str_map
from cartengine.domain.value_objects import DeliveryDiscountType, OfferType


@dataclass(frozen=True)
class FreeDelivery:
    delivery_type: ClassVar[str] = DeliveryDiscountType.FREE.value
    value: float = 0.0

    def delivery_discount(self, current_fee: float) -> float:
        return current_fee


@dataclass(frozen=True)
class PercentageDelivery:
    delivery_type: ClassVar[str] = DeliveryDiscountType.PERCENTAGE.value
    value: float = 0.0

    def delivery_discount(self, current_fee: float) -> float:
        return current_fee * (self.value / 100)


@dataclass(frozen=True)
class FixedDelivery:
    delivery_type: ClassVar[str] = DeliveryDiscountType.FIXED.value
    value: float = 0.0

    def delivery_discount(self, current_fee: float) -> float:
        # already a currency amount
        return self.value


@dataclass(frozen=True)
class SpecialPrice:
    original_price: float | None = None
    offer_price: float | None = None


@dataclass(frozen=True)
class FreeDrinks:
    drink_ids: tuple[str, ...] = ()
    quantity: int = 0


@dataclass(frozen=True)
class UnknownOffer:
    """Offer kinds this engine does not price; kept for forward compatibility."""

    offer_type: str
    details: Mapping[str, Any] = field(default_factory=dict)


DeliveryBenefit = Union[FreeDelivery, PercentageDelivery, FixedDelivery]
OfferBenefit = Union[FreeDelivery, PercentageDelivery, FixedDelivery, SpecialPrice, FreeDrinks, UnknownOffer]

_DELIVERY_VARIANTS: dict[str, type[FreeDelivery] | type[PercentageDelivery] | type[FixedDelivery]] = {
    FreeDelivery.delivery_type: FreeDelivery,
    PercentageDelivery.delivery_type: PercentageDelivery,
    FixedDelivery.delivery_type: FixedDelivery,
}


@dataclass(frozen=True)
class OfferSnapshot:
    """LTO state captured on a line item when it was added to the cart."""

    is_limited_offer: bool = False
    offer_types: tuple[str, ...] = ()
    benefits: tuple[OfferBenefit, ...] = ()

    def has_offer_type(self, offer_type: str | OfferType) -> bool:
        value = offer_type.value if isinstance(offer_type, OfferType) else offer_type
        return value in self.offer_types

    def delivery_benefit(self) -> DeliveryBenefit | None:
        for benefit in self.benefits:
            if isinstance(benefit, (FreeDelivery, PercentageDelivery, FixedDelivery)):
                return benefit
        return None


NO_OFFER = OfferSnapshot()


def _parse_delivery(details: dict[str, Any]) -> OfferBenefit | None:
    delivery_type = details.get("delivery_type")
    raw_value = details.get("delivery_value")
    if not isinstance(delivery_type, str) or raw_value is None or isinstance(raw_value, bool):
        return None
    variant = _DELIVERY_VARIANTS.get(delivery_type.strip().lower())
    if variant is None:
        return UnknownOffer(OfferType.SPECIAL_DELIVERY.value, dict(details))
    return variant(value=to_float(raw_value))


def _parse_benefit(offer_type: str, details: dict[str, Any]) -> OfferBenefit | None:
    if offer_type == OfferType.SPECIAL_DELIVERY.value:
        return _parse_delivery(details)
    if offer_type == OfferType.SPECIAL_PRICE.value:
        original = details.get("original_price")
        offer_price = details.get("offer_price", details.get("price"))
        return SpecialPrice(
            original_price=None if original is None else to_float(original),
            offer_price=None if offer_price is None else to_float(offer_price),
        )
    if offer_type == OfferType.FREE_DRINKS.value:
        drinks = details.get("free_drinks_list")
        return FreeDrinks(
            drink_ids=tuple(str(d) for d in drinks) if isinstance(drinks, list) else (),
            quantity=to_int(details.get("free_drinks_quantity")),
        )
    return UnknownOffer(offer_type, dict(details))


def parse_offer_snapshot(customizations: Any) -> OfferSnapshot:
    """Read LTO metadata from a line item payload; malformed data yields no offer."""
    payload = to_str_map(customizations)
    if not to_bool(payload.get(KEY_IS_LIMITED_OFFER)):
        return NO_OFFER

    raw_types = payload.get(KEY_LTO_OFFER_TYPES)
    offer_types = tuple(str(t) for t in raw_types) if isinstance(raw_types, list) else ()
    details = payload.get(KEY_LTO_OFFER_DETAILS)
    if not isinstance(details, dict):
        return OfferSnapshot(is_limited_offer=True, offer_types=offer_types)

    details = to_str_map(details)
    benefits: list[OfferBenefit] = []
    for offer_type in offer_types:
        benefit = _parse_benefit(offer_type, details)
        if benefit is not None:
            benefits.append(benefit)
    return OfferSnapshot(is_limited_offer=True, offer_types=offer_types, benefits=tuple(benefits))
