from __future__ import annotations

from decimal import Decimal

import pytest

from cartengine.core.money import round_money, to_bool, to_float, to_int, to_quantity_map


@pytest.mark.parametrize(
    ("value", "expected"),
    [
        (2.675, 2.68),
        (1.005, 1.01),
        (0.1 + 0.2, 0.3),
        (19.999999, 20.0),
        (Decimal("3.335"), 3.34),
        (None, 0.0),
        (float("nan"), 0.0),
        (-1.005, -1.01),
    ],
)
def test_round_money_half_up(value, expected) -> None:
    assert round_money(value) == expected


def test_lenient_readers() -> None:
    assert to_float("3.5") == 3.5
    assert to_float("abc") == 0.0
    assert to_float(True) == 0.0
    assert to_float(float("inf"), 1.0) == 1.0
    assert to_int("4") == 4
    assert to_int("2.0") == 2
    assert to_int(None, 1) == 1
    assert to_int("x", 1) == 1
    assert to_bool("true") is True
    assert to_bool(0) is False
    assert to_bool(None) is False


def test_quantity_map_keeps_positive_ints() -> None:
    assert to_quantity_map({"cola": "2", "water": 0, 7: 1, "juice": "x"}) == {"cola": 2, "7": 1}
    assert to_quantity_map(["cola"]) == {}
