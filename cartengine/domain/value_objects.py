"""Value Objects for domain model."""
from __future__ import annotations

from enum import Enum


class PromoCodeType(str, Enum):
    """How a promo code discounts an order."""

    PERCENTAGE = "percentage"
    FIXED_AMOUNT = "fixed_amount"
    FREE_DELIVERY = "free_delivery"
    BUY_ONE_GET_ONE = "buy_one_get_one"

    @classmethod
    def parse(cls, value: object) -> PromoCodeType:
        """Lenient parse; accepts camelCase and snake_case, defaults to percentage."""
        if isinstance(value, cls):
            return value
        normalized = str(value or "").strip().lower().replace("_", "")
        for item in cls:
            if item.value.replace("_", "") == normalized:
                return item
        return cls.PERCENTAGE


class PromoCodeStatus(str, Enum):
    """Promo code lifecycle status."""

    ACTIVE = "active"
    INACTIVE = "inactive"
    EXPIRED = "expired"
    PAUSED = "paused"

    @classmethod
    def parse(cls, value: object) -> PromoCodeStatus:
        if isinstance(value, cls):
            return value
        normalized = str(value or "").strip().lower()
        for item in cls:
            if item.value == normalized:
                return item
        return cls.ACTIVE


class OfferType(str, Enum):
    """Limited-time offer kinds attached to menu item pricing."""

    SPECIAL_PRICE = "special_price"
    FREE_DRINKS = "free_drinks"
    SPECIAL_DELIVERY = "special_delivery"


class DeliveryDiscountType(str, Enum):
    """Special-delivery offer variants."""

    FREE = "free"
    PERCENTAGE = "percentage"
    FIXED = "fixed"
