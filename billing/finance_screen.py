"""Finance sheet screen."""

from __future__ import annotations

from rich.text import Text
from textual.app import ComposeResult
from textual.containers import Vertical
from textual.css.query import NoMatches
from textual.events import Key
from textual.reactive import reactive
from textual.screen import Screen
from textual.widgets import Header, Static

from billing.invoice import format_money
from billing.prompt_modal import TextPromptModal, decimal_chars
from billing.session import ActionResult, BillingSession
from billing.widgets import visible_rows, window_bounds


class FinanceScreen(Screen[None]):
    """Manual income and expense entries with running totals."""

    CSS = """
    #finance-pane {
        height: 1fr;
        border: round $primary;
        padding: 1;
    }

    #finance-totals {
        height: auto;
        margin-bottom: 1;
    }

    #finance-list {
        height: 1fr;
        border: tall $surface;
        padding: 0 1;
    }

    #finance-status {
        height: 3;
        border: heavy $secondary;
        padding: 0 1;
    }
    """

    selected_index = reactive(None)

    def __init__(self, session: BillingSession) -> None:
        super().__init__()
        self.session = session
        self.system_status = ""

    def compose(self) -> ComposeResult:
        yield Header()
        with Vertical(id="finance-pane"):
            yield Static(id="finance-totals")
            yield Static("(no entries yet)", id="finance-list")
        yield Static(id="finance-status")

    def on_mount(self) -> None:
        self._refresh_all()

    def on_key(self, event: Key) -> None:
        if event.key in {"escape", "ctrl+c"} or event.character == "q":
            self.dismiss(None)
            event.stop()
            return
        if not event.is_printable or not event.character:
            return

        key = event.character.lower()
        if key == "i":
            self._prompt_entry("income")
        elif key == "e":
            self._prompt_entry("expense")
        elif key == "d":
            self._remove_selected()
        elif key in {"j", "k"}:
            self._move_selection(1 if key == "j" else -1)
        else:
            return
        event.stop()

    def _move_selection(self, delta: int) -> None:
        entries = self.session.finance.entries
        if not entries:
            return
        if self.selected_index is None:
            self.selected_index = 0
        else:
            self.selected_index = (self.selected_index + delta) % len(entries)
        self._refresh_list()

    def _prompt_entry(self, kind: str) -> None:
        label = "Income" if kind == "income" else "Expense"

        def on_description(description: str | None) -> None:
            if description is None:
                return

            def on_amount(amount: str | None) -> None:
                if amount is not None:
                    self._report(self.session.add_finance_entry(description, amount or "0", kind))

            self.app.push_screen(
                TextPromptModal(f"New {label}", "Amount", accept_char=decimal_chars, max_length=12),
                on_amount,
            )

        self.app.push_screen(TextPromptModal(f"New {label}", "Description"), on_description)

    def _remove_selected(self) -> None:
        entries = self.session.finance.entries
        idx = self.selected_index
        if idx is None or not (0 <= idx < len(entries)):
            return
        self._report(self.session.remove_finance_entry(entries[idx].entry_id))

    def _report(self, result: ActionResult) -> None:
        self.system_status = f"{result.title}: {result.message}"
        self.app.notify(result.message, title=result.title, severity="information" if result.ok else "error")
        self._refresh_all()

    def _refresh_all(self) -> None:
        self._refresh_list()
        self._refresh_status()

    def _refresh_list(self) -> None:
        try:
            totals_widget = self.query_one("#finance-totals", Static)
            list_widget = self.query_one("#finance-list", Static)
        except NoMatches:
            return

        totals = self.session.finance.totals()
        summary = Text()
        summary.append(f"Income:   {format_money(totals.income)}\n", style="#5fbf72")
        summary.append(f"Expenses: {format_money(totals.expenses)}\n", style="#b23a48")
        summary.append(f"Profit:   {format_money(totals.profit)}", style="bold")
        totals_widget.update(summary)

        entries = self.session.finance.entries
        if not entries:
            self.selected_index = None
            list_widget.update("(no entries yet)")
            return
        if self.selected_index is not None and self.selected_index >= len(entries):
            self.selected_index = len(entries) - 1

        start, end = window_bounds(len(entries), visible_rows(list_widget), self.selected_index)
        lines = Text()
        for idx in range(start, end):
            if idx > start:
                lines.append("\n")
            entry = entries[idx]
            lines.append("➤ " if idx == self.selected_index else "  ")
            lines.append(f"{entry.date}  ")
            lines.append(f"{entry.kind:<8}", style="#5fbf72" if entry.kind == "income" else "#b23a48")
            lines.append(f"{format_money(entry.amount):>14}  {entry.description}")
        list_widget.update(lines)

    def _refresh_status(self) -> None:
        try:
            bar = self.query_one("#finance-status", Static)
        except NoMatches:
            return
        bar.update(f"I add income  E add expense  J/K select  D delete  Esc/Q back\n{self.system_status or 'Ready'}")
