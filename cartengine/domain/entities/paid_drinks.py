"""Shared paid-drink allocation tracked apart from line items."""
from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field
from typing import Any

from cartengine.core.money import to_float, to_quantity_map, to_str_map

from .line_item import LineItem


@dataclass
class PaidDrinkAllocation:
    """Paid drinks ordered alongside the cart and the item carrying their cost.

    Quantities and prices live here rather than in line item prices so the
    drinks are not counted twice. ``carrier_item_id`` names the single line
    item whose payload holds the paid-drink entries.
    """

    quantities: dict[str, int] = field(default_factory=dict)
    prices: dict[str, float] = field(default_factory=dict)
    carrier_item_id: str | None = None

    @property
    def is_empty(self) -> bool:
        return not self.quantities

    def total(self) -> float:
        return sum(self.prices.get(did, 0.0) * qty for did, qty in self.quantities.items())

    def clear(self) -> None:
        self.quantities.clear()
        self.prices.clear()
        self.carrier_item_id = None

    def set_drink(self, drink_id: str, quantity: int, price: float) -> None:
        if quantity <= 0:
            self.remove_drink(drink_id)
            return
        self.quantities[drink_id] = int(quantity)
        self.prices[drink_id] = float(price)

    def remove_drink(self, drink_id: str) -> None:
        self.quantities.pop(drink_id, None)
        self.prices.pop(drink_id, None)

    def restrict_to(self, drink_ids: Iterable[str]) -> None:
        keep = set(drink_ids)
        for did in list(self.quantities):
            if did not in keep:
                self.remove_drink(did)
        for did in list(self.prices):
            if did not in keep:
                self.prices.pop(did, None)

    def assign_from_item(self, item: LineItem) -> bool:
        """Register ``item``'s paid drinks and make it the carrier.

        Returns False when the item carries no paid drinks.
        """
        quantities = item.paid_drink_quantities()
        if not quantities:
            return False
        prices = item.paid_drink_prices()
        self.clear()
        for did, qty in quantities.items():
            self.quantities[did] = qty
            if did in prices:
                self.prices[did] = prices[did]
        self.carrier_item_id = item.id
        return True

    def to_snapshot(self) -> dict[str, Any]:
        return {
            "paidDrinkQuantities": dict(self.quantities),
            "paidDrinkPrices": dict(self.prices),
            "carrierItemId": self.carrier_item_id,
        }

    @classmethod
    def from_snapshot(cls, data: dict[str, Any]) -> PaidDrinkAllocation:
        prices = {
            did: to_float(price)
            for did, price in to_str_map(data.get("paidDrinkPrices")).items()
            if to_float(price) > 0
        }
        carrier = data.get("carrierItemId")
        return cls(
            quantities=to_quantity_map(data.get("paidDrinkQuantities")),
            prices=prices,
            carrier_item_id=None if carrier is None else str(carrier),
        )
