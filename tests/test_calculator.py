"""Tests for the calculator state machine."""

import pytest

from billing.calculator import Calculator


def run(keys: str) -> Calculator:
    calc = Calculator()
    for key in keys:
        calc.press(key)
    return calc


class TestCalculator:
    def test_starts_at_zero(self):
        assert Calculator().display == "0"

    @pytest.mark.parametrize(
        "keys, expected",
        [
            ("12+7=", "19"),
            ("2+3*4=", "20"),
            ("10/4=", "2.5"),
            ("9-12=", "-3"),
            (".1+.2=", "0.3"),
        ],
    )
    def test_evaluates_left_to_right(self, keys, expected):
        assert run(keys).display == expected

    def test_operator_shows_running_result(self):
        assert run("5+5+").display == "10"

    def test_single_decimal_point(self):
        assert run("1..5").display == "1.5"

    def test_divide_by_zero(self):
        calc = run("5/0=")
        assert calc.display == "Error"
        assert calc.has_error
        calc.press("3")
        assert calc.display == "3"

    def test_clear(self):
        calc = run("12+3")
        calc.press("C")
        assert calc.display == "0"
        calc.press("4")
        calc.press("=")
        assert calc.display == "4"

    def test_digit_after_equals_starts_over(self):
        calc = run("2+2=")
        calc.press("7")
        assert calc.display == "7"

    def test_unknown_operator(self):
        with pytest.raises(ValueError):
            Calculator().perform("%")

    def test_result_beyond_context_precision(self):
        calc = run("999999999999999*999999999999999=")
        assert calc.display == "999999999999998000000000000000"
        calc.press("+")
        calc.press("1")
        calc.press("=")
        assert not calc.has_error

    @pytest.mark.parametrize("key", ["\u00b2", "\u0663", "12"])
    def test_non_ascii_digits_are_not_digits(self, key):
        calc = Calculator()
        with pytest.raises(ValueError):
            calc.input_digit(key)
        with pytest.raises(ValueError):
            calc.press(key)
        assert calc.display == "0"
