"""Calculator screen."""

from __future__ import annotations

from rich.text import Text
from textual.app import ComposeResult
from textual.containers import Container
from textual.events import Key
from textual.screen import Screen
from textual.widgets import Header, Static

from billing.calculator import OPERATORS, Calculator
from billing.constant import DIGITS

_KEY_ALIASES = {"x": "*", "enter": "=", "backspace": "c", "delete": "c"}


class CalculatorScreen(Screen[None]):
    """Keyboard-driven four-function calculator."""

    CSS = """
    CalculatorScreen {
        align: center middle;
    }

    #calc-dialog {
        width: 40;
        height: auto;
        border: round $secondary;
        padding: 1 2;
    }

    #calc-display {
        border: heavy $secondary;
        padding: 0 1;
        content-align: right middle;
        text-style: bold;
        margin-bottom: 1;
    }

    #calc-help {
        color: #dddddd;
    }
    """

    def __init__(self) -> None:
        super().__init__()
        self.calculator = Calculator()

    def compose(self) -> ComposeResult:
        yield Header()
        with Container(id="calc-dialog"):
            yield Static(id="calc-display")
            yield Static("0-9 . + - * / = (Enter)  C clear  Esc/Q back", id="calc-help")

    def on_mount(self) -> None:
        self._refresh_display()

    def on_key(self, event: Key) -> None:
        if event.key in {"escape", "ctrl+c"} or event.character == "q":
            self.dismiss(None)
            event.stop()
            return

        key = _KEY_ALIASES.get(event.key) or _KEY_ALIASES.get(event.character or "") or event.character
        if not key:
            return
        if (len(key) == 1 and key in DIGITS) or key in OPERATORS or key in {".", "=", "c", "C"}:
            self.calculator.press(key)
            self._refresh_display()
            event.stop()

    def _refresh_display(self) -> None:
        display = self.calculator.display
        style = "bold #b23a48" if self.calculator.has_error else "bold"
        self.query_one("#calc-display", Static).update(Text(display, style=style))
