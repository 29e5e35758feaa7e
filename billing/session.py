"""Session context wiring the bill engine, ledger, finance sheet and storage.

Every user-facing action returns an :class:`ActionResult` instead of raising.
Billing errors become failure results with their own message; anything else
is logged and reported with a generic message.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from decimal import Decimal
from pathlib import Path
from typing import Any

from billing.cards import validate_card
from billing.constant import (
    SNAPSHOT_KEY_ADMIN_CARD,
    SNAPSHOT_KEY_ADMIN_STATE,
    SNAPSHOT_KEY_BILLS,
    SNAPSHOT_KEY_FINANCE,
)
from billing.engine import BillEngine, next_bill_id
from billing.errors import BillingError, CardValidationError
from billing.finance import FinanceSheet
from billing.gateway import GatewayClient
from billing.invoice import email_subject, format_bill_text, format_money, render_invoice_html, transactions_csv
from billing.ledger import AdminLedger
from billing.models import AdminLedgerState, CardDetails, ConfirmedBill, MenuItem
from billing.persistence import (
    SnapshotStore,
    admin_card_to_dict,
    admin_state_from_dict,
    admin_state_to_dict,
    bill_to_dict,
    decode_admin_card,
    decode_bills,
    decode_finance_entries,
    finance_entry_to_dict,
    load_snapshot,
    save_snapshot,
)
from billing.printer import print_bill_receipt

logger = logging.getLogger(__name__)

EMAIL_RE = re.compile(r"^\S+@\S+\.\S+$")


@dataclass(frozen=True)
class ActionResult:
    """Outcome of one user action."""

    ok: bool
    title: str
    message: str
    field_errors: dict[str, str] = field(default_factory=dict)
    value: Any = None

    @classmethod
    def success(cls, title: str, message: str, value: Any = None) -> ActionResult:
        return cls(ok=True, title=title, message=message, value=value)

    @classmethod
    def failure(cls, title: str, message: str, field_errors: dict[str, str] | None = None) -> ActionResult:
        return cls(ok=False, title=title, message=message, field_errors=dict(field_errors or {}))


class BillingSession:
    """State shared by every screen for the lifetime of the app."""

    def __init__(self, store: SnapshotStore, gateway: GatewayClient) -> None:
        self.store = store
        self.gateway = gateway
        self.bills: list[ConfirmedBill] = []
        self.engine = BillEngine()
        self.ledger = AdminLedger(gateway, self.bills)
        self.finance = FinanceSheet()
        self._payment_in_flight = False

    # -- persistence -----------------------------------------------------

    def load(self) -> None:
        """Restore the snapshots, reconciling pending payments against the bills."""
        self.bills[:] = load_snapshot(self.store, SNAPSHOT_KEY_BILLS, decode_bills, [])
        self.ledger.state = load_snapshot(
            self.store, SNAPSHOT_KEY_ADMIN_STATE, admin_state_from_dict, AdminLedgerState()
        )
        self.ledger.admin_card = load_snapshot(self.store, SNAPSHOT_KEY_ADMIN_CARD, decode_admin_card, None)
        self.finance.entries = load_snapshot(self.store, SNAPSHOT_KEY_FINANCE, decode_finance_entries, [])
        self.ledger.reconcile()
        self.engine.reset(next_bill_id(b.bill_id for b in self.bills))
        logger.info(
            "session loaded bills=%d balance=%s finance_entries=%d",
            len(self.bills),
            self.ledger.state.card_balance,
            len(self.finance.entries),
        )

    def save(self) -> None:
        save_snapshot(self.store, SNAPSHOT_KEY_BILLS, [bill_to_dict(b) for b in self.bills])
        save_snapshot(self.store, SNAPSHOT_KEY_ADMIN_STATE, admin_state_to_dict(self.ledger.state))
        card = self.ledger.admin_card
        save_snapshot(self.store, SNAPSHOT_KEY_ADMIN_CARD, None if card is None else admin_card_to_dict(card))
        save_snapshot(self.store, SNAPSHOT_KEY_FINANCE, [finance_entry_to_dict(e) for e in self.finance.entries])

    async def close(self) -> None:
        self.save()
        await self.gateway.aclose()

    # -- draft bill ------------------------------------------------------

    def add_item(self, item: MenuItem) -> None:
        self.engine.add_item(item)

    def calculate(self) -> ActionResult:
        try:
            total = self.engine.recalculate()
        except BillingError as exc:
            return ActionResult.failure(str(exc), "Please add items to the bill before calculating.")
        return ActionResult.success("Bill Calculated", f"Total: {format_money(total)}")

    def find_bill(self, bill_id: int) -> ConfirmedBill | None:
        return self.ledger.find_bill(bill_id)

    @property
    def payment_in_flight(self) -> bool:
        return self._payment_in_flight

    async def process_payment(self, card: CardDetails | None = None) -> ActionResult:
        """Authorize the draft's total and confirm it on success."""
        if self._payment_in_flight:
            return ActionResult.failure("Payment Failed", "A payment is already in progress")

        draft = self.engine.draft
        try:
            self.engine.check_ready()
        except BillingError as exc:
            return ActionResult.failure(str(exc), str(exc))

        is_card = draft.payment_method == "card"
        if is_card:
            if card is None:
                return ActionResult.failure("Invalid Card Details", "Card details are required for card payments")
            errors = validate_card(card)
            if errors:
                return ActionResult.failure("Invalid Card Details", ", ".join(errors.values()), errors)

        amount = draft.total
        self._payment_in_flight = True
        try:
            result = await self.gateway.authorize(amount, draft.payment_method, card if is_card else None, draft.customer_name)
            if not result.success:
                return ActionResult.failure(
                    "Payment Failed", result.error_message or "An error occurred while processing the payment."
                )
            if self.engine.draft is not draft or draft.total != amount:
                logger.warning("draft changed during authorization ref=%s", result.reference_id)
                return ActionResult.failure("Payment Failed", "The bill changed while the payment was processing")

            bill = self.engine.confirm(result, (b.bill_id for b in self.bills), card if is_card else None)
            self.bills.append(bill)
            self.ledger.on_bill_confirmed(bill, result)
            self.save()
        except BillingError as exc:
            return ActionResult.failure("Payment Failed", str(exc))
        except Exception:
            logger.exception("payment processing failed")
            return ActionResult.failure("Payment Failed", "An error occurred while processing the payment.")
        finally:
            self._payment_in_flight = False

        return ActionResult.success(
            "Payment Processed", f"Payment of {format_money(bill.total)} processed successfully.", bill
        )

    # -- ledger ----------------------------------------------------------

    async def withdraw(self, bill_id: int) -> ActionResult:
        try:
            bill = await self.ledger.withdraw(bill_id)
        except BillingError as exc:
            return ActionResult.failure("Withdrawal Failed", str(exc))
        except Exception:
            logger.exception("withdraw failed bill=%s", bill_id)
            return ActionResult.failure("Withdrawal Failed", "An error occurred during withdrawal.")
        self.save()
        return ActionResult.success("Withdrawal Confirmed", f"Bill #{bill_id} marked as withdrawn.", bill)

    async def payout(self, bill_id: int) -> ActionResult:
        try:
            bill = await self.ledger.payout(bill_id)
        except BillingError as exc:
            return ActionResult.failure("Payout Failed", str(exc))
        except Exception:
            logger.exception("payout failed bill=%s", bill_id)
            return ActionResult.failure("Payout Failed", "An error occurred during payout.")
        self.save()
        return ActionResult.success("Payout Confirmed", f"Bill #{bill_id} payout processed.", bill)

    async def integrate_admin_card(self, card: CardDetails) -> ActionResult:
        try:
            admin_card = await self.ledger.integrate_card(card)
        except CardValidationError as exc:
            return ActionResult.failure("Invalid Card Details", str(exc), exc.errors)
        except BillingError as exc:
            return ActionResult.failure("Integration Failed", str(exc))
        except Exception:
            logger.exception("admin card integration failed")
            return ActionResult.failure("Integration Failed", "Failed to integrate admin card. Please try again.")
        self.save()
        return ActionResult.success(
            "Admin Card Integrated",
            f"{card.card_type.upper()} card ending in {admin_card.last4} has been successfully integrated.",
            admin_card,
        )

    async def empty_balance(self) -> ActionResult:
        try:
            tx = await self.ledger.empty_balance()
        except BillingError as exc:
            return ActionResult.failure("Transfer Failed", str(exc))
        except Exception:
            logger.exception("balance transfer failed")
            return ActionResult.failure("Transfer Failed", "Failed to transfer balance. Please try again.")
        self.save()
        return ActionResult.success(
            "Transfer Successful", f"{format_money(tx.amount)} has been transferred to your admin card.", tx
        )

    # -- export ----------------------------------------------------------

    async def email_bill(self, bill_id: int, to: str) -> ActionResult:
        bill = self.find_bill(bill_id)
        if bill is None:
            return ActionResult.failure("Error", "Please select a bill to email.")
        to = to.strip()
        if not EMAIL_RE.match(to):
            return ActionResult.failure("Invalid Email", "Please enter a valid email address.")

        text = format_bill_text(bill)
        try:
            result = await self.gateway.send_email(to, email_subject(bill), text, f"<pre>{text}</pre>")
        except Exception:
            logger.exception("email failed bill=%s", bill_id)
            return ActionResult.failure("Email Sending Failed", "An error occurred while sending the email.")
        if not result.success:
            return ActionResult.failure(
                "Email Sending Failed", result.error_message or "An error occurred while sending the email."
            )
        return ActionResult.success("Email Sent", f"Bill has been emailed to {to}", result.reference_id)

    def export_transactions(self, path: str | Path) -> ActionResult:
        target = Path(path)
        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_text(transactions_csv(self.ledger.state.transactions), encoding="utf-8")
        except OSError as exc:
            logger.exception("csv export failed path=%s", target)
            return ActionResult.failure("Export Failed", str(exc))
        return ActionResult.success("Export Complete", f"Transactions written to {target}", target)

    def export_invoice(self, bill_id: int, directory: str | Path) -> ActionResult:
        bill = self.find_bill(bill_id)
        if bill is None:
            return ActionResult.failure("Error", "Please select a bill to export.")
        target = Path(directory) / f"invoice_{bill_id}.html"
        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_text(render_invoice_html(bill), encoding="utf-8")
        except OSError as exc:
            logger.exception("invoice export failed path=%s", target)
            return ActionResult.failure("Export Failed", str(exc))
        return ActionResult.success("Invoice Saved", f"Invoice written to {target}", target)

    def print_bill(self, bill_id: int) -> ActionResult:
        bill = self.find_bill(bill_id)
        if bill is None:
            return ActionResult.failure("Error", "Please select a bill to print.")
        try:
            print_bill_receipt(bill)
        except Exception as exc:
            logger.exception("print failed bill=%s", bill_id)
            return ActionResult.failure("Print Failed", str(exc))
        return ActionResult.success("Printed", f"Bill #{bill_id} sent to the printer.")

    # -- finance ---------------------------------------------------------

    def add_finance_entry(self, description: str, amount: str | Decimal, kind: str = "income") -> ActionResult:
        try:
            entry = self.finance.add_entry(description, amount, kind)
        except BillingError as exc:
            title = str(exc)
            if title == "Missing Description":
                return ActionResult.failure(title, "Please enter a description for the entry.")
            if title == "Invalid Amount":
                return ActionResult.failure(title, "Please enter an amount greater than zero.")
            return ActionResult.failure("Invalid Entry", title)
        self.save()
        label = "Income" if entry.kind == "income" else "Expense"
        return ActionResult.success("Entry Added", f"{label} of {format_money(entry.amount)} added.", entry)

    def remove_finance_entry(self, entry_id: int) -> ActionResult:
        if not self.finance.remove_entry(entry_id):
            return ActionResult.failure("Error", "Finance entry not found.")
        self.save()
        return ActionResult.success("Entry Removed", "Finance entry has been removed.")
