"""Plain-text, HTML and CSV exports of bills and transactions."""

from __future__ import annotations

import csv
import io
from datetime import datetime
from decimal import Decimal
from html import escape
from typing import Iterable

from billing.config import CURRENCY_LABEL
from billing.constant import VENUE_ADDRESS, VENUE_EMAIL, VENUE_NAME, VENUE_PHONE, VENUE_SUPPORT_EMAIL
from billing.models import ConfirmedBill, Transaction, money

_RULE = "─" * 40
CSV_HEADER = ("ID", "Type", "Amount", "Date", "Status", "Card")


def format_money(amount: Decimal) -> str:
    """``Rs. 994.50``"""
    return f"{CURRENCY_LABEL} {money(amount):.2f}"


def format_long_date(value: str) -> str:
    """Render an ISO date as ``June 5, 2024``; unparseable input is returned as-is."""
    try:
        parsed = datetime.fromisoformat(value)
    except ValueError:
        return value
    return f"{parsed:%B} {parsed.day}, {parsed.year}"


def format_bill_text(bill: ConfirmedBill) -> str:
    """Monospaced bill used for the raw preview and the email body."""
    out = [f"{VENUE_NAME}", "", f"Bill #{bill.bill_id}", f"Date: {bill.date}", f"Customer: {bill.customer_name}", ""]
    out.append("Items:")
    out.append(_RULE)
    out.append("Item                  Qty    Price      Total")
    out.append(_RULE)
    for line in bill.lines:
        name = line.item.name.ljust(20)[:20]
        qty = str(line.quantity).rjust(3)
        price = format_money(line.item.unit_price).rjust(10)
        total = format_money(line.line_total).rjust(10)
        out.append(f"{name} {qty} {price} {total}")
    out.append(_RULE)
    out.append(f"Subtotal:{' ' * 30}{format_money(bill.subtotal)}")
    out.append(f"Tax (17%):{' ' * 28}{format_money(bill.tax)}")
    out.append(_RULE)
    out.append(f"Total:{' ' * 33}{format_money(bill.total)}")
    out.append("")

    method = f"Payment Method: {bill.payment_method}"
    if bill.card_type:
        method += f" ({bill.card_type})"
    out.append(method)

    notes: list[str] = []
    if bill.is_withdrawn:
        notes.append("NOTE: This payment has been withdrawn.")
    if bill.is_paid_out:
        notes.append("NOTE: This payment has been paid out.")
    if notes:
        out.append("")
        out.extend(notes)

    out.append("")
    out.append("Thank you for your business!")
    return "\n".join(out)


def email_subject(bill: ConfirmedBill) -> str:
    return f"Bill #{bill.bill_id} from {VENUE_NAME}"


def render_invoice_html(bill: ConfirmedBill) -> str:
    """Standalone HTML invoice for printing or emailing."""
    rows = "\n".join(
        "<tr>"
        f"<td>{escape(line.item.name)}</td>"
        f'<td style="text-align: right;">{format_money(line.item.unit_price)}</td>'
        f'<td style="text-align: right;">{line.quantity}</td>'
        f'<td style="text-align: right;">{format_money(line.line_total)}</td>'
        "</tr>"
        for line in bill.lines
    )
    card_row = f"<p>Card Type: {escape(bill.card_type.upper())}</p>" if bill.card_type else ""
    status_lines = []
    if bill.is_withdrawn:
        status_lines.append("<p>This payment has been withdrawn.</p>")
    if bill.is_paid_out:
        status_lines.append("<p>This payment has been paid out.</p>")
    status_block = (
        f'<div class="status"><h3>Payment Status</h3>{"".join(status_lines)}</div>' if status_lines else ""
    )

    return f"""<!DOCTYPE html>
<html>
<head>
<meta charset="utf-8">
<title>Invoice #{bill.bill_id} - {escape(VENUE_NAME)}</title>
<style>
body {{ font-family: Arial, sans-serif; margin: 0; padding: 20px; color: #333; }}
table {{ width: 100%; border-collapse: collapse; }}
th, td {{ border: 1px solid #ddd; padding: 8px; }}
th {{ background: #f2f2f2; text-align: left; }}
.totals {{ width: 300px; margin-left: auto; }}
.totals div {{ display: flex; justify-content: space-between; padding: 4px 0; }}
.status {{ border: 1px solid #fcd34d; background: #fffbeb; padding: 12px; margin: 16px 0; }}
.footer {{ text-align: center; margin-top: 40px; color: #666; }}
</style>
</head>
<body>
<h1>{escape(VENUE_NAME)}</h1>
<p>{escape(VENUE_ADDRESS)}</p>
<p>Phone: {escape(VENUE_PHONE)}</p>
<p>Email: {escape(VENUE_EMAIL)}</p>
<h2>Invoice #{bill.bill_id}</h2>
<p>Date: {escape(format_long_date(bill.date))}</p>
<p>Payment Method: {escape(bill.payment_method.upper())}</p>
{card_row}
<h3>Customer Information</h3>
<p>Name: {escape(bill.customer_name)}</p>
<table>
<thead><tr><th>Item</th><th>Price</th><th>Quantity</th><th>Total</th></tr></thead>
<tbody>
{rows}
</tbody>
</table>
<div class="totals">
<div><span>Subtotal:</span><span>{format_money(bill.subtotal)}</span></div>
<div><span>Tax (17%):</span><span>{format_money(bill.tax)}</span></div>
<div><strong>Total:</strong><strong>{format_money(bill.total)}</strong></div>
</div>
{status_block}
<div class="footer">
<p>Thank you for your business!</p>
<p>For questions or concerns, please contact us at {escape(VENUE_SUPPORT_EMAIL)}</p>
</div>
</body>
</html>
"""


def _csv_timestamp(value: str) -> str:
    try:
        return datetime.fromisoformat(value).strftime("%Y-%m-%d %H:%M:%S")
    except ValueError:
        return value


def transactions_csv(transactions: Iterable[Transaction]) -> str:
    """Export transactions as CSV with an ``ID,Type,Amount,Date,Status,Card`` header."""
    buf = io.StringIO()
    writer = csv.writer(buf, lineterminator="\n")
    writer.writerow(CSV_HEADER)
    for tx in transactions:
        writer.writerow(
            [
                tx.transaction_id,
                tx.kind,
                f"{money(tx.amount):.2f}",
                _csv_timestamp(tx.timestamp),
                tx.status,
                f"**** {tx.card_last4}" if tx.card_last4 else "N/A",
            ]
        )
    return buf.getvalue()


def csv_filename(today: datetime | None = None) -> str:
    return f"transactions_{(today or datetime.now()):%Y-%m-%d}.csv"
