"""Admin dashboard screen: confirmed bills, card balance and transaction log."""

from __future__ import annotations

from pathlib import Path

from rich.text import Text
from textual.app import ComposeResult
from textual.containers import Horizontal, Vertical
from textual.css.query import NoMatches
from textual.events import Key
from textual.reactive import reactive
from textual.screen import Screen
from textual.widgets import Header, Static

from billing.card_modal import CardDetailsModal
from billing.invoice import csv_filename, format_money
from billing.models import CardDetails, ConfirmedBill
from billing.prompt_modal import TextPromptModal
from billing.rendering import format_bill_row, format_transaction_row
from billing.session import EMAIL_RE, ActionResult, BillingSession
from billing.widgets import visible_rows, window_bounds

EXPORT_DIR = Path("exports")
_FILTERS: tuple[str | None, ...] = (None, "deposit", "payout")


def _valid_email(value: str) -> str | None:
    return None if EMAIL_RE.match(value) else "Please enter a valid email address."


class AdminScreen(Screen[None]):
    """Withdraw and pay out card bills, manage the admin card and export."""

    CSS = """
    #admin-layout {
        height: 1fr;
    }

    #bills-pane {
        width: 3fr;
        border: round $primary;
        padding: 1;
    }

    #ledger-pane {
        width: 2fr;
        border: round $secondary;
        padding: 1;
    }

    #admin-summary {
        height: auto;
        margin-bottom: 1;
    }

    #bills-list, #tx-list {
        height: 1fr;
        border: tall $surface;
        padding: 0 1;
    }

    #admin-status {
        height: 3;
        border: heavy $secondary;
        padding: 0 1;
    }

    .pane-title {
        text-style: bold;
        margin-bottom: 1;
    }
    """

    bill_selected_index = reactive(None)
    filter_index = reactive(0)

    def __init__(self, session: BillingSession) -> None:
        super().__init__()
        self.session = session
        self.system_status = ""
        self._busy = False

    def compose(self) -> ComposeResult:
        yield Header()
        with Horizontal(id="admin-layout"):
            with Vertical(id="bills-pane"):
                yield Static("Confirmed Bills", classes="pane-title")
                yield Static("(no bills yet)", id="bills-list")
            with Vertical(id="ledger-pane"):
                yield Static(id="admin-summary")
                yield Static(id="tx-title", classes="pane-title")
                yield Static(id="tx-list")
        yield Static(id="admin-status")

    def on_mount(self) -> None:
        if self.session.bills:
            self.bill_selected_index = len(self.session.bills) - 1
        self._refresh_all()

    def on_key(self, event: Key) -> None:
        if not event.is_printable or not event.character:
            if event.key in {"escape", "ctrl+c"}:
                self.dismiss(None)
                event.stop()
            return

        handlers = {
            "q": lambda: self.dismiss(None),
            "j": lambda: self._move_selection(1),
            "k": lambda: self._move_selection(-1),
            "w": lambda: self._with_selected(lambda bill: self._run(self.session.withdraw(bill.bill_id))),
            "o": lambda: self._with_selected(lambda bill: self._run(self.session.payout(bill.bill_id))),
            "i": self._integrate_card,
            "e": lambda: self._run(self.session.empty_balance()),
            "t": self._cycle_filter,
            "x": lambda: self._report(self.session.export_transactions(EXPORT_DIR / csv_filename())),
            "h": lambda: self._with_selected(lambda bill: self._report(self.session.export_invoice(bill.bill_id, EXPORT_DIR))),
            "r": lambda: self._with_selected(lambda bill: self._report(self.session.print_bill(bill.bill_id))),
            "m": lambda: self._with_selected(self._prompt_email),
        }
        handler = handlers.get(event.character.lower())
        if handler is None:
            return
        handler()
        event.stop()

    def _selected_bill(self) -> ConfirmedBill | None:
        idx = self.bill_selected_index
        if idx is None or not (0 <= idx < len(self.session.bills)):
            return None
        return self.session.bills[idx]

    def _with_selected(self, action) -> None:
        bill = self._selected_bill()
        if bill is None:
            self._report(ActionResult.failure("Error", "Please select a bill."))
            return
        action(bill)

    def _move_selection(self, delta: int) -> None:
        bills = self.session.bills
        if not bills:
            return
        if self.bill_selected_index is None:
            self.bill_selected_index = 0 if delta > 0 else len(bills) - 1
        else:
            self.bill_selected_index = (self.bill_selected_index + delta) % len(bills)
        self._refresh_bills()

    def _cycle_filter(self) -> None:
        self.filter_index = (self.filter_index + 1) % len(_FILTERS)
        self._refresh_ledger()

    def _integrate_card(self) -> None:
        def on_card(card: CardDetails | None) -> None:
            if card is not None:
                self._run(self.session.integrate_admin_card(card))

        self.app.push_screen(CardDetailsModal("Integrate Admin Card", check_type=True), on_card)

    def _prompt_email(self, bill: ConfirmedBill) -> None:
        def on_email(value: str | None) -> None:
            if value:
                self._run(self.session.email_bill(bill.bill_id, value))

        self.app.push_screen(
            TextPromptModal(f"Email Bill #{bill.bill_id}", "Recipient email address", validate=_valid_email),
            on_email,
        )

    def _run(self, coro) -> None:
        if self._busy:
            coro.close()
            self._report(ActionResult.failure("Busy", "Another admin action is in progress"))
            return
        self._busy = True
        self.system_status = "Working..."
        self._refresh_status()
        self.run_worker(self._await_action(coro), group="admin")

    async def _await_action(self, coro) -> None:
        try:
            result = await coro
        finally:
            self._busy = False
        self._report(result)

    def _report(self, result: ActionResult) -> None:
        self.system_status = f"{result.title}: {result.message}"
        self.app.notify(result.message, title=result.title, severity="information" if result.ok else "error")
        self._refresh_all()

    # -- rendering -------------------------------------------------------

    def _refresh_all(self) -> None:
        self._refresh_bills()
        self._refresh_ledger()
        self._refresh_status()

    def _refresh_bills(self) -> None:
        try:
            widget = self.query_one("#bills-list", Static)
        except NoMatches:
            return
        bills = self.session.bills
        if not bills:
            widget.update("(no bills yet)")
            return

        start, end = window_bounds(len(bills), visible_rows(widget), self.bill_selected_index)
        lines = Text()
        if start > 0:
            lines.append("⋮\n", style="dim")
        for idx in range(start, end):
            if idx > start:
                lines.append("\n")
            lines.append("➤ " if idx == self.bill_selected_index else "  ")
            lines.append_text(format_bill_row(bills[idx]))
        if end < len(bills):
            lines.append("\n⋮", style="dim")
        widget.update(lines)

    def _refresh_ledger(self) -> None:
        try:
            summary = self.query_one("#admin-summary", Static)
            title = self.query_one("#tx-title", Static)
            tx_widget = self.query_one("#tx-list", Static)
        except NoMatches:
            return

        ledger = self.session.ledger
        state = ledger.state
        text = Text()
        text.append(f"Card Balance:    {format_money(state.card_balance)}\n", style="bold")
        text.append(f"Pending Payouts: {format_money(state.pending_payments)}\n")
        text.append(f"Total Payouts:   {format_money(state.total_payouts)}\n")
        card = ledger.admin_card
        if card is None:
            text.append("Admin Card:      (none, press I)", style="dim")
        else:
            text.append(f"Admin Card:      {card.brand.upper()} **** {card.last4}  exp {card.expiry_date}")
        summary.update(text)

        kind = _FILTERS[self.filter_index]
        title.update(f"Transactions ({kind or 'all'})")
        rows = ledger.transactions_newest_first(kind)
        if not rows:
            tx_widget.update("(no transactions)")
            return
        body = Text()
        for idx, tx in enumerate(rows[: visible_rows(tx_widget)]):
            if idx > 0:
                body.append("\n")
            body.append_text(format_transaction_row(tx))
        tx_widget.update(body)

    def _refresh_status(self) -> None:
        try:
            bar = self.query_one("#admin-status", Static)
        except NoMatches:
            return
        bar.update(
            "J/K select  W withdraw  O payout  I admin card  E empty balance  T filter\n"
            "X export CSV  H invoice HTML  M email  R print  Esc/Q back\n"
            f"{self.system_status or 'Ready'}"
        )
