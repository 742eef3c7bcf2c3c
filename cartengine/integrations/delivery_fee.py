"""
Distance-based delivery fee, availability and ETA lookups.

Restaurant coordinates come from a `RestaurantDirectory`; the default one
reads the backend REST endpoint with aiohttp. Every public call degrades to a
fallback (fee 2.99, unavailable, 30 minutes) instead of raising, and lookups
are bounded by a timeout.
"""
from __future__ import annotations

import asyncio
import math
from collections.abc import Awaitable
from dataclasses import dataclass
from typing import Any, Protocol, TypeVar

import aiohttp

from cartengine.core.caching import Clock, TTLCache
from cartengine.core.constants import (
    BASE_DELIVERY_MINUTES,
    DEFAULT_DELIVERY_MINUTES,
    DELIVERY_FEE_CACHE_TTL,
    MAX_DELIVERY_MINUTES,
    MIN_DELIVERY_MINUTES,
    MINUTES_PER_KM,
)
from cartengine.core.exceptions import DeliveryFeeUnavailableException, RestaurantNotFoundException
from cartengine.core.money import to_float
from cartengine.integrations.system_config import SystemConfig

try:
    from logging_config import logger
except ImportError:
    import logging

    logger = logging.getLogger(__name__)

T = TypeVar("T")

EARTH_RADIUS_KM = 6371.0


@dataclass
class RestaurantLocation:
    restaurant_id: str
    latitude: float | None
    longitude: float | None
    delivery_fee: float = 0.0

    @property
    def has_coordinates(self) -> bool:
        if self.latitude is None or self.longitude is None:
            return False
        return not (self.latitude == 0.0 and self.longitude == 0.0)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> RestaurantLocation:
        lat = data.get("latitude")
        lon = data.get("longitude")
        return cls(
            restaurant_id=str(data.get("id") or ""),
            latitude=None if lat is None else to_float(lat),
            longitude=None if lon is None else to_float(lon),
            delivery_fee=to_float(data.get("delivery_fee")),
        )


class RestaurantDirectory(Protocol):
    async def get_restaurant(self, restaurant_id: str) -> RestaurantLocation | None: ...


class HttpRestaurantDirectory:
    """Reads ``GET {base_url}/restaurants/{id}`` from the backend."""

    def __init__(self, base_url: str, timeout: float = 10.0, session: aiohttp.ClientSession | None = None):
        self._base_url = base_url.rstrip("/")
        self._timeout = aiohttp.ClientTimeout(total=timeout)
        self._session = session
        self._owns_session = session is None

    async def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(timeout=self._timeout)
            self._owns_session = True
        return self._session

    async def get_restaurant(self, restaurant_id: str) -> RestaurantLocation | None:
        session = await self._get_session()
        url = f"{self._base_url}/restaurants/{restaurant_id}"
        async with session.get(url, params={"select": "id,latitude,longitude,delivery_fee"}) as resp:
            if resp.status == 404:
                return None
            resp.raise_for_status()
            data = await resp.json()
        if isinstance(data, list):
            data = data[0] if data else None
        if not isinstance(data, dict):
            return None
        data.setdefault("id", restaurant_id)
        return RestaurantLocation.from_dict(data)

    async def close(self) -> None:
        if self._owns_session and self._session is not None and not self._session.closed:
            await self._session.close()


def haversine_km(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    d_lat = math.radians(lat2 - lat1)
    d_lon = math.radians(lon2 - lon1)
    a = (
        math.sin(d_lat / 2) ** 2
        + math.cos(math.radians(lat1)) * math.cos(math.radians(lat2)) * math.sin(d_lon / 2) ** 2
    )
    return EARTH_RADIUS_KM * 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))


def valid_coordinates(latitude: float, longitude: float) -> bool:
    return abs(latitude) <= 90 and abs(longitude) <= 180


class DeliveryFeeService:
    """Delivery fee collaborator used by the cart."""

    def __init__(
        self,
        directory: RestaurantDirectory,
        config: SystemConfig | None = None,
        cache_ttl: float = DELIVERY_FEE_CACHE_TTL,
        clock: Clock | None = None,
    ) -> None:
        self._directory = directory
        self._config = config or SystemConfig()
        self._cache: TTLCache[float] = TTLCache(cache_ttl, clock=clock)

    @property
    def fallback_fee(self) -> float:
        return self._config.delivery.fallback_fee

    async def _bounded(self, awaitable: Awaitable[T]) -> T:
        try:
            return await asyncio.wait_for(awaitable, timeout=self._config.delivery.timeout_seconds)
        except asyncio.TimeoutError as exc:
            raise DeliveryFeeUnavailableException("Restaurant lookup timed out") from exc

    async def _fetch_restaurant(self, restaurant_id: str) -> RestaurantLocation:
        restaurant = await self._bounded(self._directory.get_restaurant(restaurant_id))
        if restaurant is None:
            raise RestaurantNotFoundException(restaurant_id)
        return restaurant

    @staticmethod
    def _cache_key(restaurant_id: str, latitude: float, longitude: float) -> str:
        return f"{restaurant_id}_{latitude}_{longitude}"

    async def _distance_km(self, restaurant_id: str, latitude: float, longitude: float) -> float:
        restaurant = await self._fetch_restaurant(restaurant_id)
        if not restaurant.has_coordinates:
            raise DeliveryFeeUnavailableException(f"Restaurant {restaurant_id} has no coordinates")
        return haversine_km(restaurant.latitude, restaurant.longitude, latitude, longitude)  # type: ignore[arg-type]

    async def calculate_fee(
        self,
        restaurant_id: str,
        latitude: float,
        longitude: float,
        use_cache: bool = True,
    ) -> float:
        key = self._cache_key(restaurant_id, latitude, longitude)
        if use_cache:
            found, cached = self._cache.lookup(key)
            if found and cached is not None:
                return cached

        try:
            restaurant = await self._fetch_restaurant(restaurant_id)
        except Exception as exc:
            logger.warning("Delivery fee lookup failed for restaurant %s: %s", restaurant_id, exc)
            return self.fallback_fee

        if not restaurant.has_coordinates:
            logger.info("Missing coordinates for restaurant %s, using base fee %.2f", restaurant_id, restaurant.delivery_fee)
            fee = restaurant.delivery_fee
        elif not valid_coordinates(latitude, longitude):
            logger.warning("Invalid customer coordinates (%s, %s), using base fee", latitude, longitude)
            fee = restaurant.delivery_fee
        else:
            distance = haversine_km(restaurant.latitude, restaurant.longitude, latitude, longitude)  # type: ignore[arg-type]
            fee = self._config.calculate_delivery_fee(distance)

        self._cache.set(key, fee)
        return fee

    async def is_delivery_available(self, restaurant_id: str, latitude: float, longitude: float) -> bool:
        try:
            distance = await self._distance_km(restaurant_id, latitude, longitude)
        except Exception as exc:
            logger.warning("Delivery availability check failed for restaurant %s: %s", restaurant_id, exc)
            return False
        return distance <= self._config.max_delivery_radius_km

    async def estimated_delivery_minutes(self, restaurant_id: str, latitude: float, longitude: float) -> int:
        try:
            distance = await self._distance_km(restaurant_id, latitude, longitude)
        except Exception as exc:
            logger.warning("Delivery time estimate failed for restaurant %s: %s", restaurant_id, exc)
            return DEFAULT_DELIVERY_MINUTES
        total = BASE_DELIVERY_MINUTES + round(distance * MINUTES_PER_KM)
        return max(MIN_DELIVERY_MINUTES, min(MAX_DELIVERY_MINUTES, total))

    def clear_cache(self) -> None:
        self._cache.clear()
        logger.info("Delivery fee cache cleared")

    def cache_stats(self) -> dict[str, Any]:
        return {"cached_fees": len(self._cache), **self._cache.stats.to_dict()}
