"""Main Textual app class."""

from __future__ import annotations

import logging

from rich.text import Text
from textual.app import App, ComposeResult
from textual.containers import Horizontal, Vertical
from textual.css.query import NoMatches
from textual.events import Key
from textual.reactive import reactive
from textual.widgets import Header, Static

from billing.admin_screen import AdminScreen
from billing.calculator_screen import CalculatorScreen
from billing.card_modal import CardDetailsModal
from billing.constant import DIGITS, PAYMENT_METHODS, VENUE_NAME
from billing.data import search_menu
from billing.errors import BillingError
from billing.finance_screen import FinanceScreen
from billing.invoice import format_money
from billing.models import CardDetails, MenuItem
from billing.printer import check_printer_dependencies
from billing.prompt_modal import TextPromptModal
from billing.rendering import format_line_item, format_method_badge
from billing.session import ActionResult, BillingSession
from billing.widgets import visible_rows, window_bounds

logger = logging.getLogger(__name__)


def _required_name(value: str) -> str | None:
    return None if value else "Customer name is required."


def _digits_only(value: str, char: str) -> bool:
    return len(char) == 1 and char in DIGITS


class BillingApp(App):
    """Compose a bill from the menu, take payment and hand off to the admin ledger."""

    TITLE = VENUE_NAME
    SUB_TITLE = "Billing"

    CSS = """
    Screen {
        layout: vertical;
    }

    #main-layout {
        height: 1fr;
    }

    #bill-pane {
        width: 3fr;
        border: round $primary;
        padding: 1;
    }

    #menu-pane {
        width: 2fr;
        border: round $secondary;
        padding: 1;
    }

    #search-bar {
        border: heavy $secondary;
        padding: 0 1;
        margin-bottom: 1;
        height: 4;
    }

    #results {
        height: 1fr;
        border: tall $surface;
        padding: 0 1;
    }

    #bill-header {
        height: auto;
        margin-bottom: 1;
    }

    #bill-lines {
        height: 1fr;
        border: tall $surface;
        padding: 0 1;
    }

    #bill-totals {
        height: auto;
        margin-top: 1;
    }

    .pane-title {
        text-style: bold;
        margin-bottom: 1;
    }
    """

    input_state = reactive("normal")
    search_query = reactive("")
    selected_index = reactive(0)
    line_selected_index = reactive(None)

    BINDINGS = [
        ("tab", "cycle_results(1)", "Next result"),
        ("up", "cycle_results(-1)", "Previous result"),
        ("down", "cycle_results(1)", "Next result"),
        ("enter", "register_selected", "Add item"),
        ("backspace", "backspace_query", "Delete query char"),
        ("ctrl+c", "cancel_active_mode", "Exit search"),
        ("ctrl+q", "quit", "Quit"),
    ]

    def __init__(self, session: BillingSession) -> None:
        super().__init__()
        self.session = session
        self.system_status = ""

    def compose(self) -> ComposeResult:
        yield Header()
        with Horizontal(id="main-layout"):
            with Vertical(id="bill-pane"):
                yield Static(id="bill-header")
                yield Static("(no items yet)", id="bill-lines")
                yield Static(id="bill-totals")
            with Vertical(id="menu-pane"):
                yield Static(id="search-bar")
                yield Static(id="results")

    def on_mount(self) -> None:
        self.session.load()
        _, msg = check_printer_dependencies()
        self.system_status = msg
        logger.info("app mounted printer_status=%r", msg)
        self._refresh_all()

    async def on_unmount(self) -> None:
        await self.session.close()

    def _modal_active(self) -> bool:
        return len(self.screen_stack) > 1

    def on_key(self, event: Key) -> None:
        # While another screen is active, let it own keyboard handling.
        if self._modal_active():
            return

        if self.input_state == "active":
            if event.is_printable and event.character and (event.character.isalnum() or event.character == " "):
                self.search_query += event.character
                self.selected_index = 0
                self._refresh_search()
                event.stop()
            return

        if not event.is_printable or not event.character:
            return

        handlers = {
            "/": self._enter_search,
            "s": self._enter_search,
            "j": lambda: self._move_line_selection(1),
            "k": lambda: self._move_line_selection(-1),
            "+": lambda: self._bump_quantity(1),
            "=": lambda: self._bump_quantity(1),
            "-": lambda: self._bump_quantity(-1),
            "u": self._prompt_quantity,
            "d": self._delete_selected_line,
            "n": self._prompt_customer_name,
            "m": self._cycle_payment_method,
            "c": self._calculate,
            "p": self._start_payment,
            "a": lambda: self.push_screen(AdminScreen(self.session), lambda _: self._refresh_all()),
            "f": lambda: self.push_screen(FinanceScreen(self.session)),
            "x": lambda: self.push_screen(CalculatorScreen()),
        }
        handler = handlers.get(event.character.lower() if event.character.isalpha() else event.character)
        if handler is None:
            return
        handler()
        event.stop()

    # -- search mode -----------------------------------------------------

    def _enter_search(self) -> None:
        self.input_state = "active"
        self.search_query = ""
        self.selected_index = 0
        self._refresh_search()

    def action_cancel_active_mode(self) -> None:
        if self._modal_active() or self.input_state == "normal":
            return
        self.input_state = "normal"
        self.search_query = ""
        self.selected_index = 0
        self._refresh_search()

    def action_cycle_results(self, delta: int) -> None:
        if self._modal_active() or self.input_state != "active":
            return
        results = self._filtered_results()
        if not results:
            self.selected_index = 0
            self._refresh_results(results)
            return
        self.selected_index = (self.selected_index + delta) % len(results)
        self._refresh_results(results)

    def action_register_selected(self) -> None:
        if self._modal_active() or self.input_state != "active":
            return
        results = self._filtered_results()
        if not results or not self._editable():
            return
        item = results[self.selected_index]
        self.session.add_item(item)
        lines = self.session.engine.draft.lines
        self.line_selected_index = next(i for i, line in enumerate(lines) if line.item_id == item.item_id)
        self.system_status = f"Added {item.name}"
        self._refresh_all()

    def action_backspace_query(self) -> None:
        if self._modal_active() or self.input_state != "active" or not self.search_query:
            return
        self.search_query = self.search_query[:-1]
        self.selected_index = 0
        self._refresh_search()

    def _filtered_results(self) -> list[MenuItem]:
        return search_menu(self.search_query)

    # -- draft editing ---------------------------------------------------

    def _editable(self) -> bool:
        if self.session.payment_in_flight:
            self.system_status = "Payment in progress"
            self._refresh_search()
            return False
        return True

    def _selected_line_id(self) -> int | None:
        lines = self.session.engine.draft.lines
        idx = self.line_selected_index
        if idx is None or not (0 <= idx < len(lines)):
            return None
        return lines[idx].item_id

    def _move_line_selection(self, delta: int) -> None:
        lines = self.session.engine.draft.lines
        if not lines:
            return
        if self.line_selected_index is None:
            self.line_selected_index = 0 if delta > 0 else len(lines) - 1
        else:
            self.line_selected_index = (self.line_selected_index + delta) % len(lines)
        self._refresh_bill()

    def _bump_quantity(self, delta: int) -> None:
        item_id = self._selected_line_id()
        if item_id is None or not self._editable():
            return
        line = next(line for line in self.session.engine.draft.lines if line.item_id == item_id)
        self.session.engine.set_quantity(item_id, line.quantity + delta)
        self._refresh_all()

    def _prompt_quantity(self) -> None:
        item_id = self._selected_line_id()
        if item_id is None or not self._editable():
            return

        def apply(value: str | None) -> None:
            if value:
                self.session.engine.set_quantity(item_id, int(value))
                self._refresh_all()

        self.push_screen(
            TextPromptModal("Quantity", "Enter a quantity (0 removes the item)", accept_char=_digits_only, max_length=4),
            apply,
        )

    def _delete_selected_line(self) -> None:
        item_id = self._selected_line_id()
        if item_id is None or not self._editable():
            return
        self.session.engine.remove_item(item_id)
        self._refresh_all()

    def _prompt_customer_name(self) -> None:
        if not self._editable():
            return

        def apply(value: str | None) -> None:
            if value is not None:
                self.session.engine.set_customer_name(value)
                self._refresh_all()

        self.push_screen(
            TextPromptModal(
                "Customer",
                "Enter the customer name",
                initial=self.session.engine.draft.customer_name,
                validate=_required_name,
            ),
            apply,
        )

    def _cycle_payment_method(self) -> None:
        if not self._editable():
            return
        current = self.session.engine.draft.payment_method
        method = PAYMENT_METHODS[(PAYMENT_METHODS.index(current) + 1) % len(PAYMENT_METHODS)]
        self.session.engine.set_payment_method(method)
        self._refresh_bill()

    def _calculate(self) -> None:
        if not self._editable():
            return
        self._report(self.session.calculate())

    # -- payment ---------------------------------------------------------

    def _start_payment(self) -> None:
        if not self._editable():
            return
        try:
            self.session.engine.check_ready()
        except BillingError as exc:
            self._report(ActionResult.failure(str(exc), str(exc)))
            return

        draft = self.session.engine.draft
        if draft.payment_method != "card":
            self._run_payment(None)
            return

        def on_card(card: CardDetails | None) -> None:
            if card is not None:
                self._run_payment(card)

        self.push_screen(CardDetailsModal("Card Payment", amount_label=format_money(draft.total)), on_card)

    def _run_payment(self, card: CardDetails | None) -> None:
        self.system_status = "Processing payment..."
        self._refresh_search()
        self.run_worker(self._process_payment(card), group="payment")

    async def _process_payment(self, card: CardDetails | None) -> None:
        result = await self.session.process_payment(card)
        if result.ok:
            self.line_selected_index = None
        self._report(result)

    def _report(self, result: ActionResult) -> None:
        self.system_status = f"{result.title}: {result.message}"
        self.notify(result.message, title=result.title, severity="information" if result.ok else "error")
        self._refresh_all()

    # -- rendering -------------------------------------------------------

    def _refresh_all(self) -> None:
        self._refresh_bill()
        self._refresh_search()

    def _refresh_bill(self) -> None:
        try:
            header = self.query_one("#bill-header", Static)
            lines_widget = self.query_one("#bill-lines", Static)
            totals = self.query_one("#bill-totals", Static)
        except NoMatches:
            return

        draft = self.session.engine.draft
        head = Text()
        head.append(f"Bill #{draft.bill_id}", style="bold")
        head.append(f"   {draft.date}\n", style="dim")
        head.append("Customer: ")
        head.append(draft.customer_name or "(press N)", style="white" if draft.customer_name else "dim")
        head.append("   Payment: ")
        head.append_text(format_method_badge(draft.payment_method))
        header.update(head)

        if not draft.lines:
            self.line_selected_index = None
            lines_widget.update("(no items yet)")
        else:
            if self.line_selected_index is not None and self.line_selected_index >= len(draft.lines):
                self.line_selected_index = len(draft.lines) - 1

            start, end = window_bounds(len(draft.lines), visible_rows(lines_widget), self.line_selected_index)
            body = Text()
            if start > 0:
                body.append("⋮\n", style="dim")
            for idx in range(start, end):
                if idx > start:
                    body.append("\n")
                body.append("➤ " if idx == self.line_selected_index else "  ")
                body.append(f"{idx + 1}. ")
                body.append_text(format_line_item(draft.lines[idx]))
            if end < len(draft.lines):
                body.append("\n⋮", style="dim")
            lines_widget.update(body)

        summary = Text()
        if self.session.engine.is_priced:
            summary.append(f"Subtotal:  {format_money(draft.subtotal)}\n")
            summary.append(f"Tax (17%): {format_money(draft.tax)}\n")
            summary.append(f"Total:     {format_money(draft.total)}", style="bold")
        else:
            summary.append("Not calculated (press C)", style="dim")
        totals.update(summary)

    def _refresh_search(self) -> None:
        self._refresh_search_bar()
        if self.input_state == "normal":
            self._refresh_results([])
            return
        self._refresh_results(self._filtered_results())

    def _refresh_search_bar(self) -> None:
        try:
            bar = self.query_one("#search-bar", Static)
        except NoMatches:
            return
        if self.input_state == "normal":
            status = self.system_status or "Ready"
            bar.update(
                "S search  J/K select  +/- qty  U set qty  D delete  N name  M method\n"
                "C calculate  P pay  A admin  F finance  X calculator  Ctrl+Q quit\n"
                f"{status}"
            )
            return

        text = Text()
        text.append(" MENU ", style="bold #0b1f0f on #5fbf72")
        text.append(f": {self.search_query}")
        bar.update(text)

    def _refresh_results(self, results: list[MenuItem]) -> None:
        try:
            results_widget = self.query_one("#results", Static)
        except NoMatches:
            return
        if self.input_state == "normal":
            results_widget.update("")
            return
        if not results:
            results_widget.update("No results")
            return
        if self.selected_index >= len(results):
            self.selected_index = 0

        start, end = window_bounds(len(results), visible_rows(results_widget), self.selected_index)
        lines = Text()
        if start > 0:
            lines.append("⋮\n", style="dim")
        for idx in range(start, end):
            if idx > start:
                lines.append("\n")
            pointer = "➤ " if idx == self.selected_index else "  "
            lines.append(f"{pointer}{results[idx].name}")
            lines.append(f"  {format_money(results[idx].unit_price)}", style="dim")
        if end < len(results):
            lines.append("\n⋮", style="dim")
        results_widget.update(lines)
