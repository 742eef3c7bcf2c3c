"""Limited-time offer resolution for menu items.

A menu item carries a list of pricing options; LTO options are flagged with
``is_limited_offer`` and bounded by ``offer_start_at`` / ``offer_end_at``.
``LtoPricingResolver`` finds the active one and memoizes the answer per menu
item for a few seconds, so list screens do not re-scan date ranges on every
read. The resolver owns its cache and accepts injectable clocks.
"""
from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

from cartengine.core.caching import Clock, TTLCache
from cartengine.core.constants import (
    KEY_IS_LIMITED_OFFER,
    KEY_LTO_OFFER_DETAILS,
    KEY_LTO_OFFER_TYPES,
    LTO_CACHE_TTL,
)
from cartengine.core.money import to_float, to_str_map
from cartengine.domain.entities.promo_code import parse_datetime_safe
from cartengine.domain.offers import FreeDrinks, parse_offer_snapshot
from cartengine.domain.value_objects import OfferType

PACK_SIZE = "pack"


@dataclass
class MenuItemRecord:
    """Subset of a menu item row needed for offer pricing."""

    id: str
    price: float
    pricing_options: list[dict[str, Any]] = field(default_factory=list)
    name: str = ""
    restaurant_id: str | None = None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> MenuItemRecord:
        options = data.get("pricing_options")
        return cls(
            id=str(data.get("id") or ""),
            price=to_float(data.get("price")),
            pricing_options=[o for o in options if isinstance(o, dict)] if isinstance(options, list) else [],
            name=str(data.get("name") or ""),
            restaurant_id=str(data["restaurant_id"]) if data.get("restaurant_id") else None,
        )


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class LtoPricingResolver:
    """Resolves and caches the active LTO pricing option per menu item."""

    def __init__(
        self,
        ttl: float = LTO_CACHE_TTL,
        clock: Clock | None = None,
        now: Callable[[], datetime] | None = None,
    ) -> None:
        self._cache: TTLCache[dict[str, Any] | None] = TTLCache(ttl, clock=clock)
        self._now = now or _utcnow

    def _scan(self, item: MenuItemRecord) -> dict[str, Any] | None:
        now = self._now()
        for pricing in item.pricing_options:
            if pricing.get(KEY_IS_LIMITED_OFFER) is not True:
                continue
            start_at = parse_datetime_safe(pricing.get("offer_start_at"))
            end_at = parse_datetime_safe(pricing.get("offer_end_at"))
            if (start_at is None or now > start_at) and (end_at is None or now < end_at):
                return pricing
        return None

    def active_pricing(self, item: MenuItemRecord) -> dict[str, Any] | None:
        if not item.pricing_options:
            return None
        return self._cache.get_or_compute(item.id, lambda: self._scan(item))

    def is_offer_active(self, item: MenuItemRecord) -> bool:
        return self.active_pricing(item) is not None

    def has_expired_offer(self, item: MenuItemRecord) -> bool:
        """True when some LTO option's end date has passed. Not cached."""
        now = self._now()
        for pricing in item.pricing_options:
            if pricing.get(KEY_IS_LIMITED_OFFER) is not True:
                continue
            end_at = parse_datetime_safe(pricing.get("offer_end_at"))
            if end_at is not None and now > end_at:
                return True
        return False

    def is_available(self, item: MenuItemRecord, available: bool = True) -> bool:
        """Items whose only LTO has expired are unavailable."""
        if self.has_expired_offer(item) and not self.is_offer_active(item):
            return False
        return available

    def effective_price(self, item: MenuItemRecord) -> float:
        """Pack LTOs carry the full pack price; regular LTOs keep the base price."""
        pricing = self.active_pricing(item)
        if pricing is None:
            return item.price
        size = str(pricing.get("size") or "").strip().lower()
        if size == PACK_SIZE:
            return to_float(pricing.get("price"))
        return item.price

    def offer_types(self, item: MenuItemRecord) -> list[str]:
        pricing = self.active_pricing(item)
        if pricing is None:
            return []
        raw = pricing.get("offer_types")
        return [str(t) for t in raw] if isinstance(raw, list) else []

    def has_offer_type(self, item: MenuItemRecord, offer_type: str | OfferType) -> bool:
        value = offer_type.value if isinstance(offer_type, OfferType) else offer_type
        return value in self.offer_types(item)

    def original_price(self, item: MenuItemRecord) -> float | None:
        pricing = self.active_pricing(item)
        if pricing is None or pricing.get("original_price") is None:
            return None
        return to_float(pricing.get("original_price"))

    def discount_percentage(self, item: MenuItemRecord) -> float | None:
        if not self.has_offer_type(item, OfferType.SPECIAL_PRICE):
            return None
        original = self.original_price(item)
        discounted = self.effective_price(item)
        if original is None or original <= 0 or original <= discounted:
            return None
        return (original - discounted) / original * 100

    def free_drinks(self, item: MenuItemRecord) -> FreeDrinks | None:
        if not self.has_offer_type(item, OfferType.FREE_DRINKS):
            return None
        snapshot = parse_offer_snapshot(self.offer_customizations(item))
        for benefit in snapshot.benefits:
            if isinstance(benefit, FreeDrinks):
                return benefit
        return FreeDrinks()

    def offer_customizations(self, item: MenuItemRecord) -> dict[str, Any]:
        """Payload fields copied into a line item when it is added to the cart."""
        pricing = self.active_pricing(item)
        if pricing is None:
            return {KEY_IS_LIMITED_OFFER: False}
        return {
            KEY_IS_LIMITED_OFFER: True,
            KEY_LTO_OFFER_TYPES: self.offer_types(item),
            KEY_LTO_OFFER_DETAILS: to_str_map(pricing.get("offer_details")),
        }

    def clear(self, menu_item_id: str | None = None) -> None:
        if menu_item_id is None:
            self._cache.clear()
        else:
            self._cache.delete(menu_item_id)
