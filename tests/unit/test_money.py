"""Unit tests for fixed-point money helpers."""

from decimal import Decimal

import pytest

from condoledger.money import ZERO, money_floor, money_sum, to_money


class TestToMoney:
    def test_rounds_half_up(self):
        assert to_money(Decimal("1031.025")) == Decimal("1031.03")
        assert to_money("0.005") == Decimal("0.01")

    def test_accepts_int_and_str(self):
        assert to_money(5) == Decimal("5.00")
        assert to_money("12.3") == Decimal("12.30")

    def test_none_is_zero(self):
        assert to_money(None) == ZERO

    def test_float_rejected(self):
        with pytest.raises(TypeError):
            to_money(10.01)

    @pytest.mark.parametrize("value", [Decimal("NaN"), Decimal("sNaN"), "Infinity", Decimal("-Infinity")])
    def test_non_finite_rejected(self, value):
        with pytest.raises(ValueError):
            to_money(value)


def test_money_floor_rounds_toward_zero():
    assert money_floor(Decimal("125.009")) == Decimal("125.00")
    assert money_floor(Decimal("0.005")) == Decimal("0.00")


def test_money_sum():
    assert money_sum(["1.10", Decimal("2.205"), 3]) == Decimal("6.31")
    assert money_sum([]) == ZERO
