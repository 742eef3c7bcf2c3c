"""Domain entities."""

from .line_item import LineItem
from .paid_drinks import PaidDrinkAllocation
from .promo_code import PromoCode

__all__ = ["LineItem", "PaidDrinkAllocation", "PromoCode"]
