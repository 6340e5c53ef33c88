# Overview: Pytest coverage for money and quantity primitives.

from decimal import Decimal, InvalidOperation

import pytest

from printshop.money import (
    money_str,
    multiply,
    quantity_str,
    to_money,
    to_quantity,
    weighted_average,
)


class TestParsing:
    def test_json_float_keeps_typed_digits(self):
        assert to_money(0.1) == Decimal("0.10")
        assert to_money(19.99) == Decimal("19.99")

    def test_strings_and_ints(self):
        assert to_money("120") == Decimal("120.00")
        assert to_money(" 7.5 ") == Decimal("7.50")
        assert to_money(3) == Decimal("3.00")

    def test_half_up_rounding(self):
        assert to_money("2.675") == Decimal("2.68")
        assert to_money("-2.675") == Decimal("-2.68")
        assert to_quantity("1.0005") == Decimal("1.001")

    @pytest.mark.parametrize("bad", ["", "abc", True, None, "NaN", "Infinity", [1]])
    def test_rejects_non_numbers(self, bad):
        with pytest.raises(InvalidOperation):
            to_money(bad)


class TestArithmetic:
    def test_line_total_rounds_once(self):
        # 3 x 0.333 = 0.999 -> 1.00
        assert multiply("3", "0.333") == Decimal("1.00")
        assert multiply("2.5", "1.99") == Decimal("4.98")

    def test_weighted_average(self):
        # (10 * 4 + 10 * 6) / 20 = 5
        assert weighted_average("10", "4", "10", "6") == Decimal("5.00")

    def test_weighted_average_without_previous_cost(self):
        assert weighted_average("0", None, "5", "3.20") == Decimal("3.20")
        assert weighted_average("5", None, "5", "3.20") == Decimal("3.20")

    def test_serialization(self):
        assert money_str(Decimal("120")) == "120.00"
        assert money_str(None) is None
        assert quantity_str(2) == "2.000"
