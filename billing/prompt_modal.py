"""Single-line text entry modal screen."""

from __future__ import annotations

from typing import Callable

from textual.app import ComposeResult
from textual.containers import Container
from textual.events import Key
from textual.screen import ModalScreen
from textual.widgets import Static

from billing.constant import DIGITS

Validator = Callable[[str], str | None]


def decimal_chars(value: str, char: str) -> bool:
    """Accept digits and at most one decimal point."""
    if len(char) == 1 and char in DIGITS:
        return True
    return char == "." and "." not in value


class TextPromptModal(ModalScreen[str | None]):
    """Prompt for a line of text; dismisses with the stripped value or ``None``."""

    CSS = """
    TextPromptModal {
        align: center middle;
        background: $background 60%;
    }

    #prompt-dialog {
        width: 60;
        height: auto;
        border: round $secondary;
        background: $panel;
        padding: 1 2;
    }

    #prompt-title {
        text-style: bold;
        margin-bottom: 1;
        color: white;
    }

    #prompt-label {
        color: white;
        margin-bottom: 1;
    }

    #prompt-value {
        border: heavy $secondary;
        padding: 0 1;
        color: white;
        margin-bottom: 1;
    }

    #prompt-error {
        color: #ffb3b3;
        margin-bottom: 1;
    }

    #prompt-help {
        color: #dddddd;
    }
    """

    def __init__(
        self,
        title: str,
        label: str,
        initial: str = "",
        validate: Validator | None = None,
        accept_char: Callable[[str, str], bool] | None = None,
        max_length: int = 80,
    ) -> None:
        super().__init__()
        self.title_text = title
        self.label_text = label
        self.value = initial
        self.error = ""
        self._validate = validate
        self._accept_char = accept_char
        self._max_length = max_length

    def compose(self) -> ComposeResult:
        with Container(id="prompt-dialog"):
            yield Static(self.title_text, id="prompt-title")
            yield Static(self.label_text, id="prompt-label")
            yield Static(id="prompt-value")
            yield Static(id="prompt-error")
            yield Static("Enter confirm. Backspace delete. Esc/Ctrl+C cancel.", id="prompt-help")

    def on_mount(self) -> None:
        self._refresh_content()

    def on_key(self, event: Key) -> None:
        if event.key in {"escape", "ctrl+c"}:
            self.dismiss(None)
            event.stop()
            return

        if event.key == "enter":
            self._confirm()
            event.stop()
            return

        if event.key == "backspace":
            if self.value:
                self.value = self.value[:-1]
                self.error = ""
                self._refresh_content()
            event.stop()
            return

        if event.is_printable and event.character:
            char = event.character
            if self._accept_char is not None and not self._accept_char(self.value, char):
                event.stop()
                return
            if len(self.value) < self._max_length:
                self.value += char
            self.error = ""
            self._refresh_content()
            event.stop()

    def _confirm(self) -> None:
        value = self.value.strip()
        if self._validate is not None:
            error = self._validate(value)
            if error:
                self.error = error
                self._refresh_content()
                return
        self.dismiss(value)

    def _refresh_content(self) -> None:
        self.query_one("#prompt-value", Static).update(f"{self.value}|")
        self.query_one("#prompt-error", Static).update(self.error or "")
