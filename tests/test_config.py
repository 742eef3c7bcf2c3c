from __future__ import annotations

import pytest

from cartengine.core.config import load_settings, parse_fee_ranges
from cartengine.core.constants import DEFAULT_DELIVERY_FEE_RANGES
from cartengine.core.exceptions import ConfigurationException
from cartengine.integrations.system_config import SystemConfig

ENV_VARS = (
    "REDIS_URL",
    "RESTAURANTS_API_URL",
    "SERVICE_FEE",
    "FALLBACK_DELIVERY_FEE",
    "DELIVERY_FEE_TIMEOUT",
    "CART_EXPIRY_SECONDS",
    "DELIVERY_FEE_RANGES",
    "EXTRA_RANGE_FEE",
    "MAX_DELIVERY_RADIUS_KM",
)


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    import cartengine.core.config as config_module

    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setattr(config_module, "load_dotenv", lambda *args, **kwargs: False)


def test_defaults() -> None:
    settings = load_settings()

    assert settings.redis_url is None
    assert settings.service_fee == 0.50
    assert settings.cart_expiry_seconds == 30 * 24 * 60 * 60
    assert settings.delivery.fee_ranges == DEFAULT_DELIVERY_FEE_RANGES
    assert settings.delivery.fallback_fee == 2.99
    assert settings.delivery.max_radius_km == 50
    assert settings.delivery.timeout_seconds == 10.0


def test_environment_overrides(monkeypatch) -> None:
    monkeypatch.setenv("REDIS_URL", "redis://localhost:6379/0")
    monkeypatch.setenv("SERVICE_FEE", "1.25")
    monkeypatch.setenv("DELIVERY_FEE_RANGES", "3:20, 1:10")
    monkeypatch.setenv("EXTRA_RANGE_FEE", "2")
    monkeypatch.setenv("MAX_DELIVERY_RADIUS_KM", "15")
    monkeypatch.setenv("DELIVERY_FEE_TIMEOUT", "2.5")

    settings = load_settings()
    config = SystemConfig.from_settings(settings)

    assert settings.redis_url == "redis://localhost:6379/0"
    assert config.service_fee == 1.25
    assert settings.delivery.fee_ranges == ((1.0, 10.0), (3.0, 20.0))
    assert config.max_delivery_radius_km == 15.0
    assert settings.delivery.timeout_seconds == 2.5
    assert config.calculate_delivery_fee(4.0) == pytest.approx(20.0 + 10 * 2.0)


def test_invalid_number_raises(monkeypatch) -> None:
    monkeypatch.setenv("SERVICE_FEE", "cheap")
    with pytest.raises(ConfigurationException, match="SERVICE_FEE"):
        load_settings()


def test_invalid_integer_raises(monkeypatch) -> None:
    monkeypatch.setenv("CART_EXPIRY_SECONDS", "1.5")
    with pytest.raises(ConfigurationException):
        load_settings()


@pytest.mark.parametrize("raw", ["", "   ", None])
def test_blank_ranges_use_defaults(raw) -> None:
    assert parse_fee_ranges(raw) == DEFAULT_DELIVERY_FEE_RANGES


@pytest.mark.parametrize("raw", ["2-30", "2:abc", "x:10"])
def test_malformed_ranges_raise(raw) -> None:
    with pytest.raises(ConfigurationException):
        parse_fee_ranges(raw)
