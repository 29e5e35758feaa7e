"""Card details entry modal screen."""

from __future__ import annotations

from rich.text import Text
from textual.app import ComposeResult
from textual.containers import Container
from textual.events import Key
from textual.reactive import reactive
from textual.screen import ModalScreen
from textual.widgets import Static

from billing.cards import format_card_number, normalize_card_number, validate_card
from billing.constant import CARD_TYPES, DIGITS
from billing.models import CardDetails

_FIELDS = ("number", "expiry", "cvv", "card_type")
_LABELS = {
    "number": "Card Number",
    "expiry": "Expiry (MM/YY)",
    "cvv": "CVV",
    "card_type": "Card Type",
}
_MAX_DIGITS = {"number": 16, "expiry": 4, "cvv": 3}


def _format_expiry(digits: str) -> str:
    if len(digits) <= 2:
        return digits
    return f"{digits[:2]}/{digits[2:]}"


class CardDetailsModal(ModalScreen[CardDetails | None]):
    """Collect card number, expiry, CVV and type.

    ``check_type`` turns on the card-type/first-digit rule used for the admin card.
    """

    CSS = """
    CardDetailsModal {
        align: center middle;
        background: $background 60%;
    }

    #card-dialog {
        width: 64;
        height: auto;
        border: round $secondary;
        background: $panel;
        padding: 1 2;
    }

    #card-title {
        text-style: bold;
        margin-bottom: 1;
        color: white;
    }

    #card-body {
        margin-bottom: 1;
        color: white;
    }

    #card-help {
        margin-top: 1;
        color: #dddddd;
    }
    """

    cursor_index = reactive(0)

    def __init__(self, title: str = "Card Details", check_type: bool = False, amount_label: str = "") -> None:
        super().__init__()
        self.title_text = title
        self.check_type = check_type
        self.amount_label = amount_label
        self.digits: dict[str, str] = {"number": "", "expiry": "", "cvv": ""}
        self.card_type = CARD_TYPES[0]
        self.errors: dict[str, str] = {}

    def compose(self) -> ComposeResult:
        with Container(id="card-dialog"):
            yield Static(self.title_text, id="card-title")
            yield Static(id="card-body")
            yield Static(
                "Tab/↑/↓ move, digits type, ←/→ change type, Enter submit, Esc cancel",
                id="card-help",
            )

    def on_mount(self) -> None:
        self._refresh_content()

    @property
    def current_field(self) -> str:
        return _FIELDS[self.cursor_index]

    def on_key(self, event: Key) -> None:
        key = event.key
        if key in {"escape", "ctrl+c"}:
            self.dismiss(None)
        elif key == "enter":
            self._submit()
        elif key in {"tab", "down"}:
            self.cursor_index = (self.cursor_index + 1) % len(_FIELDS)
        elif key in {"shift+tab", "up"}:
            self.cursor_index = (self.cursor_index - 1) % len(_FIELDS)
        elif key in {"left", "right"} and self.current_field == "card_type":
            step = 1 if key == "right" else -1
            idx = CARD_TYPES.index(self.card_type)
            self.card_type = CARD_TYPES[(idx + step) % len(CARD_TYPES)]
            self.errors.pop("card_type", None)
        elif key == "backspace" and self.current_field in self.digits:
            field = self.current_field
            self.digits[field] = self.digits[field][:-1]
            self.errors.pop(field, None)
        elif event.is_printable and event.character and event.character in DIGITS:
            field = self.current_field
            if field in self.digits and len(self.digits[field]) < _MAX_DIGITS[field]:
                self.digits[field] += event.character
                self.errors.pop(field, None)
        else:
            return
        event.stop()
        self._refresh_content()

    def card_details(self) -> CardDetails:
        return CardDetails(
            number=normalize_card_number(self.digits["number"]),
            expiry=_format_expiry(self.digits["expiry"]),
            cvv=self.digits["cvv"],
            card_type=self.card_type,
        )

    def _submit(self) -> None:
        card = self.card_details()
        self.errors = validate_card(card, check_type=self.check_type)
        if self.errors:
            self.cursor_index = _FIELDS.index(next(iter(self.errors)))
            return
        self.dismiss(card)

    def _display_value(self, field: str) -> str:
        if field == "number":
            return format_card_number(self.digits["number"])
        if field == "expiry":
            return _format_expiry(self.digits["expiry"])
        if field == "cvv":
            return "*" * len(self.digits["cvv"])
        return f"< {self.card_type.upper()} >"

    def _refresh_content(self) -> None:
        body = self.query_one("#card-body", Static)
        content = Text(style="white")
        if self.amount_label:
            content.append(f"Amount: {self.amount_label}\n\n", style="bold white")

        for idx, field in enumerate(_FIELDS):
            if idx > 0:
                content.append("\n")
            active = idx == self.cursor_index
            pointer = "➤ " if active else "  "
            cursor = "|" if active and field != "card_type" else ""
            content.append(f"{pointer}{_LABELS[field]:<16} ", style="bold white" if active else "white")
            content.append(f"{self._display_value(field)}{cursor}")
            if field in self.errors:
                content.append(f"\n    {self.errors[field]}", style="#ffb3b3")
        body.update(content)
