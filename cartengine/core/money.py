"""Money rounding and lenient readers for untyped payload values."""
from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any

_CENT = Decimal("0.01")
_TRUE_VALUES = {"1", "true", "yes", "on"}


def round_money(value: int | float | Decimal | None) -> float:
    """Round half-up to 2 decimals and return a float."""
    if value is None:
        return 0.0
    try:
        amount = Decimal(str(value))
    except (InvalidOperation, TypeError, ValueError):
        return 0.0
    if not amount.is_finite():
        return 0.0
    return float(amount.quantize(_CENT, rounding=ROUND_HALF_UP))


def to_float(value: Any, default: float = 0.0) -> float:
    if value is None or isinstance(value, bool):
        return default
    try:
        result = float(value)
    except (TypeError, ValueError):
        return default
    if result != result or result in (float("inf"), float("-inf")):
        return default
    return result


def to_int(value: Any, default: int = 0) -> int:
    if value is None or isinstance(value, bool):
        return default
    if isinstance(value, int):
        return value
    try:
        return int(str(value).strip())
    except (TypeError, ValueError):
        pass
    try:
        return int(float(value))
    except (TypeError, ValueError, OverflowError):
        return default


def to_bool(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    if value is None:
        return False
    return str(value).strip().lower() in _TRUE_VALUES


def to_str_map(value: Any) -> dict[str, Any]:
    if not isinstance(value, dict):
        return {}
    return {str(key): item for key, item in value.items()}


def to_quantity_map(value: Any) -> dict[str, int]:
    """Coerce a drink-id -> quantity mapping; keeps only positive quantities."""
    result: dict[str, int] = {}
    for key, qty in to_str_map(value).items():
        parsed = to_int(qty)
        if parsed > 0:
            result[key] = parsed
    return result
