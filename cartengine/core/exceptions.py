"""Custom exceptions for the cart engine."""
from __future__ import annotations


class CartEngineException(Exception):
    """Base exception for all cart engine errors."""

    def __init__(self, message: str, *args: object) -> None:
        super().__init__(message, *args)
        self.message = message


class SnapshotCorruptedException(CartEngineException):
    """Persisted cart snapshot cannot be decoded."""

    def __init__(self, key: str, reason: str) -> None:
        super().__init__(f"Cart snapshot {key} is corrupted: {reason}")
        self.key = key
        self.reason = reason


class RestaurantNotFoundException(CartEngineException):
    """Restaurant record is missing from the directory."""

    def __init__(self, restaurant_id: str) -> None:
        super().__init__(f"Restaurant with ID {restaurant_id} not found")
        self.restaurant_id = restaurant_id


class DeliveryFeeUnavailableException(CartEngineException):
    """Delivery fee lookup failed or timed out."""

    pass


class ConfigurationException(CartEngineException):
    """Configuration errors."""

    pass
