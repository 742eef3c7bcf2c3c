"""Tests for limited-time offer resolution and its TTL cache."""
from __future__ import annotations

import itertools
from datetime import datetime, timedelta, timezone

import pytest

from cartengine.domain.menu_pricing import LtoPricingResolver, MenuItemRecord

NOW = datetime(2025, 6, 15, 12, 0, tzinfo=timezone.utc)
_ids = itertools.count(1)


class MutableNow:
    def __init__(self, value: datetime) -> None:
        self.value = value

    def __call__(self) -> datetime:
        return self.value


def _lto(**overrides) -> dict:
    option = {
        "size": "pack",
        "price": 900,
        "original_price": 1200,
        "is_limited_offer": True,
        "offer_start_at": (NOW - timedelta(hours=1)).isoformat(),
        "offer_end_at": (NOW + timedelta(hours=1)).isoformat(),
        "offer_types": ["special_price"],
        "offer_details": {},
    }
    option.update(overrides)
    return option


def _menu_item(*options, price: float = 1000.0, item_id: str | None = None) -> MenuItemRecord:
    item_id = item_id or f"m{next(_ids)}"
    return MenuItemRecord.from_dict({"id": item_id, "price": price, "pricing_options": list(options)})


@pytest.fixture
def now() -> MutableNow:
    return MutableNow(NOW)


@pytest.fixture
def resolver(clock, now) -> LtoPricingResolver:
    return LtoPricingResolver(ttl=10, clock=clock, now=now)


def test_record_from_dict_skips_bad_options() -> None:
    record = MenuItemRecord.from_dict({"id": 5, "price": "12.5", "pricing_options": [{"size": "M"}, "junk"]})
    assert record.id == "5"
    assert record.price == 12.5
    assert record.pricing_options == [{"size": "M"}]


def test_first_active_limited_option_wins(resolver) -> None:
    regular = {"size": "M", "price": 500}
    expired = _lto(offer_end_at=(NOW - timedelta(minutes=1)).isoformat(), price=100)
    item = _menu_item(regular, expired, _lto(price=900), _lto(price=800))

    assert resolver.active_pricing(item)["price"] == 900
    assert resolver.is_offer_active(item)


def test_open_ended_windows_are_active(resolver) -> None:
    item = _menu_item(_lto(offer_start_at=None, offer_end_at=None))
    assert resolver.is_offer_active(item)


def test_pack_offer_overrides_price(resolver) -> None:
    assert resolver.effective_price(_menu_item(_lto())) == 900.0
    assert resolver.effective_price(_menu_item(_lto(size="L"))) == 1000.0
    assert resolver.effective_price(_menu_item()) == 1000.0


def test_discount_percentage(resolver) -> None:
    assert resolver.discount_percentage(_menu_item(_lto())) == pytest.approx(25.0)
    assert resolver.discount_percentage(_menu_item(_lto(offer_types=["special_delivery"]))) is None
    assert resolver.discount_percentage(_menu_item(_lto(original_price=800))) is None


def test_free_drinks_offer(resolver) -> None:
    item = _menu_item(
        _lto(
            offer_types=["free_drinks"],
            offer_details={"free_drinks_list": ["cola", 7], "free_drinks_quantity": "2"},
        )
    )
    free = resolver.free_drinks(item)
    assert free.drink_ids == ("cola", "7")
    assert free.quantity == 2
    assert resolver.free_drinks(_menu_item(_lto())) is None


def test_offer_customizations_for_cart_payload(resolver) -> None:
    details = {"delivery_type": "free", "delivery_value": 0}
    item = _menu_item(_lto(offer_types=["special_delivery"], offer_details=details))

    assert resolver.offer_customizations(item) == {
        "is_limited_offer": True,
        "lto_offer_types": ["special_delivery"],
        "lto_offer_details": details,
    }
    assert resolver.has_offer_type(item, "special_delivery")
    assert resolver.offer_customizations(_menu_item()) == {"is_limited_offer": False}


def test_active_pricing_is_cached_until_ttl(resolver, clock, now) -> None:
    item = _menu_item(_lto())
    assert resolver.is_offer_active(item)

    now.value = NOW + timedelta(hours=2)
    assert resolver.is_offer_active(item)

    clock.advance(11)
    assert not resolver.is_offer_active(item)


def test_clear_drops_cached_answer(resolver, now) -> None:
    item = _menu_item(_lto(), item_id="burger")
    resolver.is_offer_active(item)
    now.value = NOW + timedelta(hours=2)

    resolver.clear("burger")

    assert not resolver.is_offer_active(item)


def test_expired_only_offer_makes_item_unavailable(resolver, now) -> None:
    item = _menu_item(_lto())
    now.value = NOW + timedelta(hours=2)

    assert resolver.has_expired_offer(item)
    assert not resolver.is_available(item)
    assert resolver.is_available(_menu_item({"size": "M", "price": 500}))
    assert not resolver.is_available(_menu_item(), available=False)
