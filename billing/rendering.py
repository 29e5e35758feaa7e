"""Rich rendering helpers shared by the screens."""

from __future__ import annotations

from rich.text import Text

from billing.constant import PAYMENT_METHOD_LABELS
from billing.invoice import format_money
from billing.models import BillLineItem, ConfirmedBill, Transaction


def badge_style(method: str) -> str:
    """Return a consistent badge style for payment method tags."""
    if method == "card":
        return "bold #ffffff on #2f6db5"
    if method == "digital":
        return "bold #ffffff on #7b4bb2"
    return "bold #0b1f0f on #5fbf72"


def format_method_badge(method: str) -> Text:
    text = Text()
    text.append(f" {PAYMENT_METHOD_LABELS.get(method, method)} ", style=badge_style(method))
    return text


def bill_status_label(bill: ConfirmedBill) -> Text:
    """Lifecycle state of a confirmed bill as a colored tag."""
    if bill.is_paid_out:
        return Text("Paid Out", style="bold #5fbf72")
    if bill.is_withdrawn:
        return Text("Withdrawn", style="bold #e0a526")
    return Text("Completed", style="white")


def transaction_status_style(status: str) -> str:
    if status == "completed":
        return "bold #5fbf72"
    if status == "failed":
        return "bold #b23a48"
    return "bold #e0a526"


def format_line_item(line: BillLineItem) -> Text:
    text = Text()
    text.append(line.item.name)
    text.append(f"  x{line.quantity}", style="dim")
    text.append(f"  {format_money(line.line_total)}")
    return text


def format_bill_row(bill: ConfirmedBill) -> Text:
    """One row of the confirmed-bills list."""
    text = Text()
    text.append(f"#{bill.bill_id} ")
    text.append(bill.customer_name or "-")
    text.append(f"  {format_money(bill.total)}  ")
    text.append_text(format_method_badge(bill.payment_method))
    text.append("  ")
    text.append_text(bill_status_label(bill))
    return text


def format_transaction_row(tx: Transaction) -> Text:
    text = Text()
    kind_style = "#5fbf72" if tx.kind == "deposit" else "#e0a526"
    text.append(f"{tx.kind.upper():<8}", style=kind_style)
    text.append(f" {format_money(tx.amount):>14} ")
    text.append(tx.status, style=transaction_status_style(tx.status))
    text.append(f"  {tx.timestamp[:19].replace('T', ' ')}", style="dim")
    if tx.card_last4:
        text.append(f"  **** {tx.card_last4}")
    return text
