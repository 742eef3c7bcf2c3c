"""Line item entity: one configured purchasable unit in the cart."""
from __future__ import annotations

import copy
from dataclasses import dataclass, replace
from typing import Any

from cartengine.core.constants import (
    KEY_DRINKS,
    KEY_FREE_DRINK_QUANTITIES,
    KEY_MENU_ITEM_ID,
    KEY_PAID_DRINK_QUANTITIES,
    KEY_RESTAURANT_ID,
)
from cartengine.core.money import round_money, to_float, to_int, to_quantity_map, to_str_map


def drink_id(drink: dict[str, Any]) -> str:
    raw = drink.get("id")
    return "" if raw is None else str(raw)


def drink_price(drink: dict[str, Any]) -> float:
    return to_float(drink.get("price"))


def is_free_drink(drink: dict[str, Any]) -> bool:
    """A drink is free when flagged so or explicitly priced at zero."""
    if drink.get("is_free") is True:
        return True
    price = drink.get("price")
    return price is not None and not isinstance(price, bool) and to_float(price, -1.0) == 0.0


@dataclass
class LineItem:
    """Single configured entry in the cart."""

    id: str
    name: str
    price: float
    quantity: int
    image: str | None = None
    restaurant_name: str | None = None
    customizations: dict[str, Any] | None = None
    special_instructions: str | None = None
    drink_quantities: dict[str, int] | None = None

    def __post_init__(self) -> None:
        self.id = str(self.id)
        self.price = max(0.0, to_float(self.price))
        self.quantity = to_int(self.quantity, 1)

    @property
    def total_price(self) -> float:
        return round_money(self.price * self.quantity)

    def copy_with(self, **changes: Any) -> LineItem:
        return replace(self, **changes)

    def deep_copy(self) -> LineItem:
        return copy.deepcopy(self)

    def same_configuration(self, other: LineItem) -> bool:
        """Content equality used to merge repeated additions of one configuration."""
        return (
            self.id == other.id
            and (self.customizations or {}) == (other.customizations or {})
            and (self.drink_quantities or {}) == (other.drink_quantities or {})
            and self.special_instructions == other.special_instructions
        )

    # ---- payload readers (never raise) ----

    def _payload(self) -> dict[str, Any]:
        return self.customizations if isinstance(self.customizations, dict) else {}

    def paid_drink_quantities(self) -> dict[str, int]:
        return to_quantity_map(self._payload().get(KEY_PAID_DRINK_QUANTITIES))

    def free_drink_quantities(self) -> dict[str, int]:
        return to_quantity_map(self._payload().get(KEY_FREE_DRINK_QUANTITIES))

    def has_paid_drinks(self) -> bool:
        return bool(self.paid_drink_quantities())

    def drinks(self) -> list[dict[str, Any]]:
        raw = self._payload().get(KEY_DRINKS)
        if not isinstance(raw, list):
            return []
        return [entry for entry in raw if isinstance(entry, dict)]

    def paid_drink_prices(self) -> dict[str, float]:
        """Unit prices of the non-free drinks listed in the payload."""
        prices: dict[str, float] = {}
        for drink in self.drinks():
            did = drink_id(drink)
            if not did or is_free_drink(drink):
                continue
            price = drink_price(drink)
            if price > 0:
                prices[did] = price
        return prices

    def menu_item_id(self) -> str | None:
        raw = self._payload().get(KEY_MENU_ITEM_ID)
        if raw is None:
            return None
        value = str(raw).strip()
        return value or None

    def restaurant_id(self) -> str | None:
        raw = self._payload().get(KEY_RESTAURANT_ID)
        if raw is None:
            return None
        value = str(raw).strip()
        return value or None

    def restaurant_scope(self) -> str | None:
        """Grouping key for paid-drink ownership: display name, else payload restaurant id."""
        if self.restaurant_name:
            return self.restaurant_name
        return self.restaurant_id()

    # ---- serialization ----

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "price": float(self.price),
            "quantity": int(self.quantity),
            "image": self.image,
            "restaurantName": self.restaurant_name,
            "customizations": self.customizations,
            "specialInstructions": self.special_instructions,
            "drinkQuantities": self.drink_quantities,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> LineItem:
        customizations = data.get("customizations")
        drink_quantities = data.get("drinkQuantities")
        image = data.get("image")
        restaurant_name = data.get("restaurantName")
        instructions = data.get("specialInstructions")
        return cls(
            id=str(data.get("id") or ""),
            name=str(data.get("name") or ""),
            price=to_float(data.get("price")),
            quantity=to_int(data.get("quantity"), 1),
            image=None if image is None else str(image),
            restaurant_name=None if restaurant_name is None else str(restaurant_name),
            customizations=to_str_map(customizations) if isinstance(customizations, dict) else None,
            special_instructions=None if instructions is None else str(instructions),
            drink_quantities=(
                {key: to_int(qty) for key, qty in to_str_map(drink_quantities).items()}
                if isinstance(drink_quantities, dict)
                else None
            ),
        )
