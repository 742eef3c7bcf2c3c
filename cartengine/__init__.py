"""Cart pricing and promotion engine."""

from cartengine.services.cart_store import CartStore

__all__ = ["CartStore"]
