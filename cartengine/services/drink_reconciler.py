"""Keeps paid-drink cost on exactly one line item after removals.

When the item carrying the shared paid drinks leaves the cart, the first
remaining item of the same restaurant (by position) takes over the drinks and
their price; every other item of that restaurant is stripped of paid entries.
With no such item left the allocation is dropped.
"""
from __future__ import annotations

import copy
from typing import Any

from cartengine.core.constants import KEY_DRINKS, KEY_PAID_DRINK_QUANTITIES
from cartengine.core.money import round_money
from cartengine.domain.entities import LineItem, PaidDrinkAllocation
from cartengine.domain.entities.line_item import drink_id, drink_price, is_free_drink

try:
    from logging_config import logger
except ImportError:
    import logging

    logger = logging.getLogger(__name__)


def paid_drinks_price(drinks: list[dict[str, Any]], quantities: dict[str, int]) -> float:
    """Price of the listed non-free drinks whose ids appear in ``quantities``."""
    total = 0.0
    for drink in drinks:
        did = drink_id(drink)
        if is_free_drink(drink) or did not in quantities:
            continue
        total += drink_price(drink) * quantities[did]
    return total


def strip_paid_drinks(item: LineItem, paid_quantities: dict[str, int]) -> LineItem:
    """Copy of ``item`` without paid entries for ``paid_quantities`` and without their price."""
    customizations = copy.deepcopy(item.customizations) if item.customizations else {}
    customizations.pop(KEY_PAID_DRINK_QUANTITIES, None)

    drinks = item.drinks()
    removed_price = paid_drinks_price(drinks, paid_quantities)
    if KEY_DRINKS in customizations:
        customizations[KEY_DRINKS] = [
            dict(d) for d in drinks if is_free_drink(d) or drink_id(d) not in paid_quantities
        ]

    drink_quantities = dict(item.drink_quantities or {})
    for did in paid_quantities:
        drink_quantities.pop(did, None)

    return item.copy_with(
        customizations=customizations or None,
        drink_quantities=drink_quantities or None,
        price=round_money(max(0.0, item.price - removed_price)),
    )


def _adopt_paid_drinks(carrier: LineItem, removed: LineItem, paid_quantities: dict[str, int]) -> tuple[LineItem, dict[str, int]]:
    """Move ``removed``'s paid drinks onto ``carrier``; free drinks already on the carrier win."""
    customizations = copy.deepcopy(carrier.customizations) if carrier.customizations else {}

    kept_drinks: list[dict[str, Any]] = []
    free_ids: set[str] = set()
    for drink in carrier.drinks():
        did = drink_id(drink)
        if did and is_free_drink(drink):
            kept_drinks.append(dict(drink))
            free_ids.add(did)
    free_quantities = carrier.free_drink_quantities()
    free_ids.update(free_quantities)

    migrated = {did: qty for did, qty in paid_quantities.items() if did not in free_ids}

    removed_drinks = removed.drinks()
    added: set[str] = set()
    for drink in removed_drinks:
        did = drink_id(drink)
        if not did or did not in migrated or did in added or is_free_drink(drink):
            continue
        entry = dict(drink)
        entry["is_free"] = False
        entry["price"] = drink_price(drink)
        kept_drinks.append(entry)
        added.add(did)

    # entries the carrier already pays for are in its price
    already_paid = carrier.paid_drink_quantities()
    added_price = paid_drinks_price(
        removed_drinks, {did: qty for did, qty in migrated.items() if did not in already_paid}
    )

    customizations[KEY_DRINKS] = kept_drinks
    customizations[KEY_PAID_DRINK_QUANTITIES] = dict(migrated)

    updated = carrier.copy_with(
        customizations=customizations,
        drink_quantities={**migrated, **free_quantities},
        price=round_money(carrier.price + added_price),
    )
    return updated, migrated


def reconcile_after_removal(
    items: list[LineItem],
    removed: LineItem,
    allocation: PaidDrinkAllocation,
) -> None:
    """Re-home ``removed``'s paid drinks. ``items`` must no longer contain ``removed``.

    Mutates ``items`` (replace by position) and ``allocation`` in place.
    """
    paid_quantities = removed.paid_drink_quantities()
    if not paid_quantities:
        return

    scope = removed.restaurant_scope()
    positions = [idx for idx, item in enumerate(items) if item.restaurant_scope() == scope]
    if not positions:
        logger.info("No remaining items from restaurant %s, paid drinks dropped", scope)
        allocation.clear()
        return

    carrier_pos = positions[0]
    carrier, migrated = _adopt_paid_drinks(items[carrier_pos], removed, paid_quantities)
    items[carrier_pos] = carrier
    logger.info(
        "Moved paid drinks %s to item %s (new price %.2f)",
        migrated,
        carrier.id,
        carrier.price,
    )

    for pos in positions[1:]:
        items[pos] = strip_paid_drinks(items[pos], paid_quantities)

    prices = removed.paid_drink_prices()
    for did, qty in migrated.items():
        allocation.quantities[did] = qty
        if did in prices:
            allocation.prices[did] = prices[did]
    allocation.restrict_to(migrated)
    allocation.carrier_item_id = carrier.id if migrated else None
