"""Environment-driven configuration objects for the cart engine."""
from __future__ import annotations

import os
from dataclasses import dataclass, field

from dotenv import load_dotenv

from cartengine.core.constants import (
    CART_EXPIRY_SECONDS,
    DEFAULT_DELIVERY_FEE_RANGES,
    DEFAULT_DELIVERY_FEE_TIMEOUT,
    DEFAULT_EXTRA_RANGE_FEE,
    DEFAULT_MAX_DELIVERY_RADIUS_KM,
    DEFAULT_SERVICE_FEE,
    FALLBACK_DELIVERY_FEE,
)
from cartengine.core.exceptions import ConfigurationException


def _float_env(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return float(raw)
    except ValueError as exc:
        raise ConfigurationException(f"{name} must be a number, got {raw!r}") from exc


def _int_env(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return int(raw)
    except ValueError as exc:
        raise ConfigurationException(f"{name} must be an integer, got {raw!r}") from exc


def parse_fee_ranges(raw: str | None) -> tuple[tuple[float, float], ...]:
    """Parse ``"2:30,5:50,10:80"`` into ((2.0, 30.0), (5.0, 50.0), (10.0, 80.0))."""
    if raw is None or not raw.strip():
        return DEFAULT_DELIVERY_FEE_RANGES
    ranges: list[tuple[float, float]] = []
    for chunk in raw.split(","):
        chunk = chunk.strip()
        if not chunk:
            continue
        distance, sep, fee = chunk.partition(":")
        if not sep:
            raise ConfigurationException(f"Invalid delivery fee range {chunk!r}")
        try:
            ranges.append((float(distance), float(fee)))
        except ValueError as exc:
            raise ConfigurationException(f"Invalid delivery fee range {chunk!r}") from exc
    return tuple(sorted(ranges))


@dataclass(slots=True)
class DeliveryConfig:
    fee_ranges: tuple[tuple[float, float], ...] = DEFAULT_DELIVERY_FEE_RANGES
    extra_range_fee: float = DEFAULT_EXTRA_RANGE_FEE
    max_radius_km: float = DEFAULT_MAX_DELIVERY_RADIUS_KM
    fallback_fee: float = FALLBACK_DELIVERY_FEE
    timeout_seconds: float = DEFAULT_DELIVERY_FEE_TIMEOUT


@dataclass(slots=True)
class Settings:
    redis_url: str | None = None
    restaurants_api_url: str | None = None
    service_fee: float = DEFAULT_SERVICE_FEE
    cart_expiry_seconds: int = CART_EXPIRY_SECONDS
    delivery: DeliveryConfig = field(default_factory=DeliveryConfig)


def load_settings() -> Settings:
    """Load environment variables once and expose typed settings."""
    load_dotenv()

    delivery = DeliveryConfig(
        fee_ranges=parse_fee_ranges(os.getenv("DELIVERY_FEE_RANGES")),
        extra_range_fee=_float_env("EXTRA_RANGE_FEE", DEFAULT_EXTRA_RANGE_FEE),
        max_radius_km=_float_env("MAX_DELIVERY_RADIUS_KM", DEFAULT_MAX_DELIVERY_RADIUS_KM),
        fallback_fee=_float_env("FALLBACK_DELIVERY_FEE", FALLBACK_DELIVERY_FEE),
        timeout_seconds=_float_env("DELIVERY_FEE_TIMEOUT", DEFAULT_DELIVERY_FEE_TIMEOUT),
    )

    return Settings(
        redis_url=os.getenv("REDIS_URL") or None,
        restaurants_api_url=os.getenv("RESTAURANTS_API_URL") or None,
        service_fee=_float_env("SERVICE_FEE", DEFAULT_SERVICE_FEE),
        cart_expiry_seconds=_int_env("CART_EXPIRY_SECONDS", CART_EXPIRY_SECONDS),
        delivery=delivery,
    )
