"""Domain package."""

from .entities import LineItem, PaidDrinkAllocation, PromoCode
from .value_objects import DeliveryDiscountType, OfferType, PromoCodeStatus, PromoCodeType

__all__ = [
    # Entities
    "LineItem",
    "PaidDrinkAllocation",
    "PromoCode",
    # Value Objects
    "DeliveryDiscountType",
    "OfferType",
    "PromoCodeStatus",
    "PromoCodeType",
]
