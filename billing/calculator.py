"""Four-function calculator state machine."""

from __future__ import annotations

from decimal import Decimal, DivisionByZero, InvalidOperation

from billing.constant import DIGITS

OPERATORS = ("+", "-", "*", "/")
ERROR_DISPLAY = "Error"


def _format(value: Decimal) -> str:
    if value == value.to_integral_value():
        try:
            return str(value.quantize(Decimal(1)))
        except InvalidOperation:
            # More digits than the context precision holds.
            pass
    return format(value.normalize(), "f")


def _is_digit(key: str) -> bool:
    return len(key) == 1 and key in DIGITS


def _apply(left: Decimal, right: Decimal, op: str) -> Decimal:
    if op == "+":
        return left + right
    if op == "-":
        return left - right
    if op == "*":
        return left * right
    if op == "/":
        if right == 0:
            raise DivisionByZero
        return left / right
    return right


class Calculator:
    """Chained operations evaluate left to right, without precedence."""

    def __init__(self) -> None:
        self.clear()

    def clear(self) -> None:
        self.display = "0"
        self._first: Decimal | None = None
        self._operator: str | None = None
        self._waiting = False

    @property
    def has_error(self) -> bool:
        return self.display == ERROR_DISPLAY

    def input_digit(self, digit: str) -> None:
        if not _is_digit(digit):
            raise ValueError(f"Not a digit: {digit!r}")
        if self.has_error:
            self.clear()
        if self._waiting:
            self.display = digit
            self._waiting = False
        else:
            self.display = digit if self.display == "0" else self.display + digit

    def input_decimal(self) -> None:
        if self.has_error:
            self.clear()
        if self._waiting:
            self.display = "0."
            self._waiting = False
            return
        if "." not in self.display:
            self.display += "."

    def perform(self, operator: str) -> None:
        """Apply the pending operator and queue ``operator`` (``=`` to finish)."""
        if operator not in OPERATORS and operator != "=":
            raise ValueError(f"Unknown operator: {operator!r}")
        if self.has_error:
            return

        value = Decimal(self.display)
        if self._first is None:
            self._first = value
        elif self._operator and not self._waiting:
            try:
                result = _apply(self._first, value, self._operator)
            except (DivisionByZero, InvalidOperation):
                self.display = ERROR_DISPLAY
                self._first = None
                self._operator = None
                self._waiting = True
                return
            self.display = _format(result)
            self._first = result

        self._waiting = True
        self._operator = None if operator == "=" else operator
        if operator == "=":
            self._first = None

    def press(self, key: str) -> None:
        """Dispatch a single key: digits, ``.``, operators, ``=``, ``c``."""
        if _is_digit(key):
            self.input_digit(key)
        elif key == ".":
            self.input_decimal()
        elif key in ("c", "C"):
            self.clear()
        elif key in ("=", "enter"):
            self.perform("=")
        else:
            self.perform(key)
