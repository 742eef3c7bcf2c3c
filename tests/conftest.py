"""Shared pytest fixtures: fake redis, fake restaurant directory, controllable clock."""
from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from datetime import datetime, timezone

import pytest

from cartengine.integrations.delivery_fee import RestaurantLocation
from cartengine.integrations.identity import StaticIdentity
from cartengine.integrations.redis_snapshot import RedisSnapshotStorage


@dataclass
class FakeRedisClient:
    data: dict[str, str] = field(default_factory=dict)
    expiry: dict[str, int] = field(default_factory=dict)
    setex_calls: list[tuple[str, int]] = field(default_factory=list)
    fail: bool = False

    def _check(self) -> None:
        if self.fail:
            raise ConnectionError("redis down")

    def ping(self) -> bool:
        self._check()
        return True

    def get(self, key: str):
        self._check()
        return self.data.get(key)

    def setex(self, key: str, ttl: int, value: str) -> bool:
        self._check()
        self.data[key] = value
        self.expiry[key] = ttl
        self.setex_calls.append((key, ttl))
        return True

    def delete(self, key: str) -> int:
        self._check()
        existed = 1 if key in self.data else 0
        self.data.pop(key, None)
        self.expiry.pop(key, None)
        return existed


@pytest.fixture
def fake_redis(monkeypatch):
    import cartengine.integrations.redis_snapshot as redis_snapshot_module

    client = FakeRedisClient()
    monkeypatch.setattr(redis_snapshot_module.redis, "from_url", lambda *args, **kwargs: client, raising=False)
    return client


@pytest.fixture
def storage(fake_redis) -> RedisSnapshotStorage:
    return RedisSnapshotStorage(redis_url="redis://fake")


@pytest.fixture
def identity() -> StaticIdentity:
    return StaticIdentity()


class FakeClock:
    """Monotonic clock advanced by hand."""

    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def fixed_now() -> datetime:
    return datetime(2025, 6, 15, 12, 0, tzinfo=timezone.utc)


class FakeRestaurantDirectory:
    """In-memory restaurant records; counts lookups and can stall or fail."""

    def __init__(self, restaurants: dict[str, RestaurantLocation] | None = None) -> None:
        self.restaurants = dict(restaurants or {})
        self.calls: list[str] = []
        self.error: Exception | None = None
        self.delay: float = 0.0

    async def get_restaurant(self, restaurant_id: str) -> RestaurantLocation | None:
        self.calls.append(restaurant_id)
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error is not None:
            raise self.error
        return self.restaurants.get(restaurant_id)


@pytest.fixture
def directory() -> FakeRestaurantDirectory:
    return FakeRestaurantDirectory(
        {
            "r1": RestaurantLocation("r1", 36.7538, 3.0588, delivery_fee=40.0),
            "no-coords": RestaurantLocation("no-coords", None, None, delivery_fee=25.0),
        }
    )
