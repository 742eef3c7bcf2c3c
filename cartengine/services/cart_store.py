"""
Cart aggregate: line items, applied promo, delivery location and the shared
paid-drink allocation.

Mutations are synchronous and persist the full snapshot after each change;
the in-memory state is authoritative. Only delivery-fee lookups are async.
"""
from __future__ import annotations

import asyncio
import json
from collections.abc import Callable, Iterable, Sequence
from datetime import datetime
from typing import Any

from pydantic import ValidationError

from cartengine.core.config import Settings
from cartengine.core.constants import (
    CART_KEY_PREFIX,
    DEFAULT_DELIVERY_MINUTES,
    KEY_MENU_ITEM_ID,
    KEY_RESTAURANT_ID,
    MENU_ITEM_PREFS_PREFIX,
)
from cartengine.core.exceptions import SnapshotCorruptedException
from cartengine.core.money import round_money
from cartengine.domain.entities import LineItem, PaidDrinkAllocation, PromoCode
from cartengine.domain.menu_pricing import LtoPricingResolver, MenuItemRecord
from cartengine.integrations.delivery_fee import DeliveryFeeService, HttpRestaurantDirectory
from cartengine.integrations.identity import IdentityProvider, resolve_user_id
from cartengine.integrations.redis_snapshot import RedisSnapshotStorage, SnapshotStorage
from cartengine.integrations.system_config import SystemConfig
from cartengine.services import pricing
from cartengine.services.drink_reconciler import reconcile_after_removal, strip_paid_drinks
from cartengine.services.promo_validator import (
    DEFAULT_SCOPE_RULES,
    VALID,
    PromoScopeRule,
    PromoValidation,
    validate_promo,
)

try:
    from logging_config import logger
except ImportError:
    import logging

    logger = logging.getLogger(__name__)


class CartStore:
    """Single-writer cart for the active session, keyed by the current user."""

    def __init__(
        self,
        storage: SnapshotStorage | None = None,
        identity: IdentityProvider | None = None,
        delivery_fee_service: DeliveryFeeService | None = None,
        system_config: SystemConfig | None = None,
        *,
        scope_rules: Sequence[PromoScopeRule] = DEFAULT_SCOPE_RULES,
        lto_resolver: LtoPricingResolver | None = None,
        now: Callable[[], datetime] | None = None,
    ) -> None:
        self._storage: SnapshotStorage = storage if storage is not None else RedisSnapshotStorage()
        self._identity = identity
        self._delivery_fee_service = delivery_fee_service
        self._system_config = system_config or SystemConfig()
        self._scope_rules = tuple(scope_rules)
        self._lto_resolver = lto_resolver or LtoPricingResolver(now=now)
        self._now = now

        self._user_id = resolve_user_id(identity)
        self._items: list[LineItem] = []
        self._promo: PromoCode | None = None
        self._allocation = PaidDrinkAllocation()

        self._delivery_latitude: float | None = None
        self._delivery_longitude: float | None = None
        self._delivery_address: str | None = None
        self._current_restaurant_id: str | None = None
        self._cached_delivery_fee: float | None = None
        self._fee_request_token = 0

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        identity: IdentityProvider | None = None,
        **kwargs: Any,
    ) -> CartStore:
        """Wire storage, fee configuration and the delivery-fee service from env settings."""
        config = SystemConfig.from_settings(settings)
        storage = RedisSnapshotStorage(settings.redis_url, settings.cart_expiry_seconds)

        fee_service: DeliveryFeeService | None = None
        if settings.restaurants_api_url:
            directory = HttpRestaurantDirectory(
                settings.restaurants_api_url,
                timeout=settings.delivery.timeout_seconds,
            )
            fee_service = DeliveryFeeService(directory, config)
        else:
            logger.warning("RESTAURANTS_API_URL is not set; delivery fees use the fallback fee")

        return cls(storage, identity, fee_service, config, **kwargs)

    @property
    def system_config(self) -> SystemConfig:
        return self._system_config

    @property
    def delivery_fee_service(self) -> DeliveryFeeService | None:
        return self._delivery_fee_service

    @property
    def lto_resolver(self) -> LtoPricingResolver:
        return self._lto_resolver

    # ---- session ----

    @property
    def user_id(self) -> str:
        return self._user_id

    @property
    def storage_key(self) -> str:
        return f"{CART_KEY_PREFIX}{self._user_id}"

    def initialize(self) -> None:
        """Load the snapshot stored for the current identity (user or guest)."""
        self._user_id = resolve_user_id(self._identity)
        self._load_snapshot()

    def reload_for_current_user(self) -> bool:
        """Swap to the current identity's cart. Returns True when the identity changed."""
        user_id = resolve_user_id(self._identity)
        if user_id == self._user_id:
            return False
        logger.info("Cart identity changed %s -> %s, reloading", self._user_id, user_id)
        self._reset_contents()
        self._user_id = user_id
        self._load_snapshot()
        return True

    def _reset_contents(self) -> None:
        self._items = []
        self._promo = None
        self._allocation = PaidDrinkAllocation()

    # ---- read-only state ----

    @property
    def items(self) -> tuple[LineItem, ...]:
        return tuple(self._items)

    @property
    def applied_promo(self) -> PromoCode | None:
        return self._promo

    @property
    def paid_drink_quantities(self) -> dict[str, int]:
        return dict(self._allocation.quantities)

    @property
    def paid_drink_prices(self) -> dict[str, float]:
        return dict(self._allocation.prices)

    @property
    def carrier_item_id(self) -> str | None:
        return self._allocation.carrier_item_id

    @property
    def delivery_latitude(self) -> float | None:
        return self._delivery_latitude

    @property
    def delivery_longitude(self) -> float | None:
        return self._delivery_longitude

    @property
    def delivery_address(self) -> str | None:
        return self._delivery_address

    @property
    def current_restaurant_id(self) -> str | None:
        return self._current_restaurant_id

    @property
    def cached_delivery_fee(self) -> float | None:
        return self._cached_delivery_fee

    @property
    def is_empty(self) -> bool:
        return not self._items

    @property
    def item_count(self) -> int:
        return sum(item.quantity for item in self._items)

    @property
    def inferred_restaurant_id(self) -> str | None:
        """Restaurant id of the first item whose payload names one."""
        for item in self._items:
            restaurant_id = item.restaurant_id()
            if restaurant_id:
                return restaurant_id
        return None

    # ---- derived totals ----

    def _current_time(self) -> datetime | None:
        return self._now() if self._now is not None else None

    @property
    def _priced_delivery_fee(self) -> float:
        if self._cached_delivery_fee is None:
            return self._fallback_fee
        return self._cached_delivery_fee

    @property
    def subtotal(self) -> float:
        return pricing.calculate_subtotal(self._items)

    @property
    def discount_amount(self) -> float:
        return pricing.calculate_discount(self._promo, self.subtotal, now=self._current_time())

    @property
    def total_price(self) -> float:
        """Subtotal after the promo discount, never negative."""
        return max(0.0, round_money(self.subtotal - self.discount_amount))

    @property
    def paid_drinks_total(self) -> float:
        return pricing.calculate_paid_drinks_total(self._allocation)

    @property
    def service_fee(self) -> float:
        return round_money(self._system_config.service_fee)

    @property
    def special_delivery_discount(self) -> float:
        return round_money(pricing.calculate_special_delivery_discount(self._items, self._priced_delivery_fee))

    @property
    def special_delivery_discount_details(self) -> dict[str, Any] | None:
        return pricing.special_delivery_details(self._items)

    @property
    def delivery_fee(self) -> float:
        special = pricing.calculate_special_delivery_discount(self._items, self._priced_delivery_fee)
        return pricing.calculate_delivery_fee(self._priced_delivery_fee, special)

    @property
    def total_order_amount(self) -> float:
        return self.fee_breakdown["total"]

    @property
    def fee_breakdown(self) -> dict[str, float]:
        return pricing.build_fee_breakdown(
            self._items,
            self._allocation,
            self._promo,
            self._priced_delivery_fee,
            self._system_config.service_fee,
            now=self._current_time(),
        )

    # ---- item mutations ----

    def _index_of(self, item_id: str) -> int | None:
        for idx, item in enumerate(self._items):
            if item.id == item_id:
                return idx
        return None

    def _merge_target(self, item: LineItem) -> int | None:
        for idx, existing in enumerate(self._items):
            if existing.same_configuration(item):
                return idx
        return None

    def _carrier_present(self) -> bool:
        carrier_id = self._allocation.carrier_item_id
        return carrier_id is not None and self._index_of(carrier_id) is not None

    def add_item(self, item: LineItem) -> None:
        """Merge into a content-equal line item or append a new one."""
        if item.quantity <= 0:
            logger.warning("Ignoring add of %s with quantity %s", item.id, item.quantity)
            return

        item = item.deep_copy()
        registered = False
        if item.has_paid_drinks() and (self._allocation.is_empty or not self._items):
            registered = self._allocation.assign_from_item(item)

        merge_idx = self._merge_target(item)
        if merge_idx is None and item.has_paid_drinks() and not registered:
            if self._carrier_present():
                logger.info(
                    "Paid drinks already carried by %s, stripping them from %s",
                    self._allocation.carrier_item_id,
                    item.id,
                )
                item = strip_paid_drinks(item, item.paid_drink_quantities())
                # an earlier add of this configuration was stored stripped
                merge_idx = self._merge_target(item)
            else:
                self._allocation.carrier_item_id = item.id

        if merge_idx is not None:
            existing = self._items[merge_idx]
            self._items[merge_idx] = existing.copy_with(quantity=existing.quantity + item.quantity)
            logger.info("Merged %s into existing line, quantity %s", item.id, self._items[merge_idx].quantity)
            self._persist()
            return

        self._items.append(item)
        logger.info("Added %s x%s at %.2f", item.name, item.quantity, item.price)
        self._persist()

    def add_menu_item(
        self,
        record: MenuItemRecord,
        quantity: int = 1,
        *,
        restaurant_name: str | None = None,
        image: str | None = None,
        customizations: dict[str, Any] | None = None,
        special_instructions: str | None = None,
    ) -> LineItem | None:
        """Price a menu item through its active limited-time offer and add it.

        The offer fields read by the pricing functions are embedded into the
        line item payload. Returns None when the item's only offer has expired.
        """
        resolver = self._lto_resolver
        if not resolver.is_available(record):
            logger.warning("Menu item %s is unavailable, its limited offer has expired", record.id)
            return None

        payload = dict(customizations or {})
        payload[KEY_MENU_ITEM_ID] = record.id
        if record.restaurant_id:
            payload[KEY_RESTAURANT_ID] = record.restaurant_id
        payload.update(resolver.offer_customizations(record))

        item = LineItem(
            id=record.id,
            name=record.name,
            price=resolver.effective_price(record),
            quantity=quantity,
            image=image,
            restaurant_name=restaurant_name,
            customizations=payload,
            special_instructions=special_instructions,
        )
        self.add_item(item)
        return item

    def remove_item(self, item_id: str) -> None:
        removed = [item for item in self._items if item.id == item_id]
        if not removed:
            self._persist()
            return

        self._items = [item for item in self._items if item.id != item_id]

        carrier = next((item for item in removed if item.has_paid_drinks()), None)
        if carrier is not None:
            reconcile_after_removal(self._items, carrier, self._allocation)
        elif self._allocation.carrier_item_id == item_id and not self._items:
            self._allocation.clear()

        logger.info("Removed %s from cart", item_id)
        self._persist()
        self._clear_item_preferences(removed)

    def update_quantity(self, item_id: str, quantity: int) -> None:
        quantity = int(quantity)
        if quantity <= 0:
            self.remove_item(item_id)
            return

        idx = self._index_of(item_id)
        if idx is None:
            return
        self._items[idx] = self._items[idx].copy_with(quantity=quantity)
        self._persist()

    def update_item(self, item_id: str, new_item: LineItem) -> None:
        """Replace by id. Paid-drink consistency of an edited carrier is the caller's concern."""
        idx = self._index_of(item_id)
        if idx is None:
            return
        self._items[idx] = new_item.deep_copy()
        if self._allocation.carrier_item_id == item_id:
            self._allocation.carrier_item_id = new_item.id
        self._persist()

    def update_paid_drink_quantity(self, drink_id: str, quantity: int, price: float) -> None:
        """Edit the shared allocation directly; quantity <= 0 drops the drink."""
        self._allocation.set_drink(str(drink_id), int(quantity), price)
        if self._allocation.is_empty:
            self._allocation.carrier_item_id = None
        self._persist()

    def clear(self) -> None:
        previous = list(self._items)
        self._items = []
        self._promo = None
        self._allocation.clear()
        logger.info("Cart cleared (%d items)", len(previous))
        self._persist()
        self._clear_item_preferences(previous)

    # ---- promo ----

    def get_promo_validation_details(self, promo: PromoCode, restaurant_id: str | None = None) -> PromoValidation:
        scope = restaurant_id if restaurant_id is not None else self.inferred_restaurant_id
        return validate_promo(
            promo,
            self.subtotal,
            self._items,
            scope,
            now=self._current_time(),
            scope_rules=self._scope_rules,
        )

    def is_promo_valid(self, promo: PromoCode, restaurant_id: str | None = None) -> bool:
        return self.get_promo_validation_details(promo, restaurant_id).is_valid

    def apply_promo(self, promo: PromoCode, restaurant_id: str | None = None) -> PromoValidation:
        """Validate and store ``promo``; a failed validation leaves the cart untouched."""
        result = self.get_promo_validation_details(promo, restaurant_id)
        if not result.is_valid:
            logger.info("Promo %s not applied: %s", promo.code, result.error_message)
            return result

        self._promo = promo
        logger.info("Applied promo %s", promo.code)
        self._persist()
        return VALID

    def apply_promo_code(self, promo: PromoCode, restaurant_id: str | None = None) -> bool:
        return self.apply_promo(promo, restaurant_id).is_valid

    def remove_promo(self) -> None:
        self._promo = None
        self._persist()

    # ---- delivery ----

    @property
    def _fallback_fee(self) -> float:
        return self._system_config.delivery.fallback_fee

    def _has_delivery_target(self) -> bool:
        return (
            self._delivery_latitude is not None
            and self._delivery_longitude is not None
            and self._current_restaurant_id is not None
        )

    async def set_delivery_location(
        self,
        latitude: float,
        longitude: float,
        restaurant_id: str | None = None,
        address: str | None = None,
    ) -> None:
        self._delivery_latitude = latitude
        self._delivery_longitude = longitude
        self._delivery_address = address
        self._current_restaurant_id = restaurant_id or self.inferred_restaurant_id
        await self._refresh_delivery_fee()

    async def _refresh_delivery_fee(self) -> None:
        self._fee_request_token += 1
        token = self._fee_request_token

        if not self._has_delivery_target() or self._delivery_fee_service is None:
            self._cached_delivery_fee = self._fallback_fee
            return

        try:
            fee = await asyncio.wait_for(
                self._delivery_fee_service.calculate_fee(
                    self._current_restaurant_id,  # type: ignore[arg-type]
                    self._delivery_latitude,  # type: ignore[arg-type]
                    self._delivery_longitude,  # type: ignore[arg-type]
                ),
                timeout=self._system_config.delivery.timeout_seconds,
            )
        except Exception as exc:
            logger.warning("Delivery fee calculation failed, using fallback: %s", exc)
            fee = self._fallback_fee

        if token != self._fee_request_token:
            logger.debug("Discarding stale delivery fee %.2f (request %d)", fee, token)
            return
        self._cached_delivery_fee = fee
        logger.info("Delivery fee updated to %.2f", fee)

    def set_delivery_fee(self, fee: float) -> None:
        """Fee pushed from outside; supersedes any lookup still in flight."""
        self._fee_request_token += 1
        self._cached_delivery_fee = round_money(fee)

    async def is_delivery_available(self) -> bool:
        if not self._has_delivery_target() or self._delivery_fee_service is None:
            return False
        try:
            return await self._delivery_fee_service.is_delivery_available(
                self._current_restaurant_id,  # type: ignore[arg-type]
                self._delivery_latitude,  # type: ignore[arg-type]
                self._delivery_longitude,  # type: ignore[arg-type]
            )
        except Exception as exc:
            logger.warning("Delivery availability check failed: %s", exc)
            return False

    async def estimated_delivery_minutes(self) -> int:
        if not self._has_delivery_target() or self._delivery_fee_service is None:
            return DEFAULT_DELIVERY_MINUTES
        try:
            return await self._delivery_fee_service.estimated_delivery_minutes(
                self._current_restaurant_id,  # type: ignore[arg-type]
                self._delivery_latitude,  # type: ignore[arg-type]
                self._delivery_longitude,  # type: ignore[arg-type]
            )
        except Exception as exc:
            logger.warning("Delivery time estimate failed: %s", exc)
            return DEFAULT_DELIVERY_MINUTES

    def clear_delivery_fee_cache(self) -> None:
        self._cached_delivery_fee = None
        if self._delivery_fee_service is not None:
            self._delivery_fee_service.clear_cache()

    # ---- persistence ----

    def snapshot(self) -> dict[str, Any]:
        return {
            "items": [item.to_dict() for item in self._items],
            "promoCode": self._promo.to_json() if self._promo is not None else None,
            **self._allocation.to_snapshot(),
        }

    def _persist(self) -> None:
        try:
            blob = json.dumps(self.snapshot(), default=str)
        except (TypeError, ValueError) as exc:
            logger.error("Failed to serialize cart snapshot: %s", exc)
            return
        try:
            self._storage.save(self.storage_key, blob)
        except Exception as exc:
            logger.warning("Failed to persist cart %s: %s", self.storage_key, exc)

    def _load_snapshot(self) -> None:
        key = self.storage_key
        try:
            blob = self._storage.load(key)
        except Exception as exc:
            logger.warning("Failed to load cart %s: %s", key, exc)
            return
        if not blob:
            return

        try:
            items, promo, allocation = self._decode_snapshot(key, blob)
        except SnapshotCorruptedException as exc:
            logger.warning("%s; discarding stored cart", exc.message)
            self._reset_contents()
            try:
                self._storage.delete(key)
            except Exception as delete_exc:
                logger.warning("Failed to delete corrupt cart %s: %s", key, delete_exc)
            return

        self._items = items
        self._promo = promo
        self._allocation = allocation
        logger.info("Loaded cart %s with %d items", key, len(items))

    @staticmethod
    def _decode_snapshot(key: str, blob: str) -> tuple[list[LineItem], PromoCode | None, PaidDrinkAllocation]:
        try:
            data = json.loads(blob)
        except ValueError as exc:
            raise SnapshotCorruptedException(key, f"invalid JSON: {exc}") from exc
        if not isinstance(data, dict):
            raise SnapshotCorruptedException(key, "snapshot root is not an object")

        raw_items = data.get("items")
        if raw_items is None:
            raw_items = []
        if not isinstance(raw_items, list):
            raise SnapshotCorruptedException(key, "items is not a list")
        items: list[LineItem] = []
        for entry in raw_items:
            if not isinstance(entry, dict):
                continue
            item = LineItem.from_dict(entry)
            if item.quantity <= 0:
                logger.warning("Skipping stored line %s with quantity %s", item.id, item.quantity)
                continue
            items.append(item)

        promo: PromoCode | None = None
        raw_promo = data.get("promoCode")
        if isinstance(raw_promo, dict):
            try:
                promo = PromoCode.from_json(raw_promo)
            except (ValidationError, TypeError, ValueError) as exc:
                logger.warning("Dropping unreadable promo from cart %s: %s", key, exc)

        allocation = PaidDrinkAllocation.from_snapshot(data)
        if allocation.is_empty:
            for item in items:
                if allocation.assign_from_item(item):
                    break
        elif allocation.carrier_item_id is None:
            carrier = next((item for item in items if item.has_paid_drinks()), None)
            allocation.carrier_item_id = carrier.id if carrier is not None else None

        return items, promo, allocation

    def _clear_item_preferences(self, items: Iterable[LineItem]) -> None:
        """Best-effort removal of per-menu-item preferences saved by the item screen."""
        for item in items:
            menu_item_id = item.menu_item_id()
            if not menu_item_id:
                continue
            key = f"{MENU_ITEM_PREFS_PREFIX}{self._user_id}_{menu_item_id}"
            try:
                self._storage.delete(key)
            except Exception as exc:
                logger.debug("Ignoring failure clearing preferences %s: %s", key, exc)
