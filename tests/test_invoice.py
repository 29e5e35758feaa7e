"""Tests for text, HTML and CSV exports."""

from datetime import datetime
from decimal import Decimal

import pytest

from billing.data import menu_item_by_id
from billing.invoice import (
    csv_filename,
    email_subject,
    format_bill_text,
    format_long_date,
    format_money,
    render_invoice_html,
    transactions_csv,
)
from billing.models import BillLineItem, ConfirmedBill, Transaction


@pytest.fixture
def bill():
    return ConfirmedBill(
        bill_id=7,
        lines=(BillLineItem(item=menu_item_by_id(1), quantity=2), BillLineItem(item=menu_item_by_id(2), quantity=1)),
        subtotal=Decimal("850.00"),
        tax=Decimal("144.50"),
        total=Decimal("994.50"),
        payment_method="card",
        customer_name="<b>Bob</b> & Co",
        date="2026-06-05",
        payment_reference="pi_7",
        card_type="visa",
        card_last4="1111",
    )


def test_format_money():
    assert format_money(Decimal("994.5")) == "Rs. 994.50"
    assert format_money(Decimal("1234567")) == "Rs. 1234567.00"


def test_format_long_date():
    assert format_long_date("2026-06-05") == "June 5, 2026"
    assert format_long_date("soon") == "soon"


class TestBillText:
    def test_layout(self, bill):
        text = format_bill_text(bill)
        lines = text.splitlines()
        assert lines[0] == "Sky Lounge"
        assert "Bill #7" in lines
        assert "Item                  Qty    Price      Total" in lines
        assert f"{'Espresso':<20}   2 Rs. 250.00 Rs. 500.00" in lines
        assert f"Subtotal:{' ' * 30}Rs. 850.00" in lines
        assert f"Total:{' ' * 33}Rs. 994.50" in lines
        assert "Payment Method: card (visa)" in lines
        assert lines[-1] == "Thank you for your business!"
        assert "NOTE" not in text

    def test_lifecycle_notes(self, bill):
        text = format_bill_text(bill.mark_withdrawn().mark_paid_out())
        assert "NOTE: This payment has been withdrawn." in text
        assert "NOTE: This payment has been paid out." in text

    def test_subject(self, bill):
        assert email_subject(bill) == "Bill #7 from Sky Lounge"


class TestInvoiceHtml:
    def test_escapes_customer_name(self, bill):
        html = render_invoice_html(bill)
        assert "&lt;b&gt;Bob&lt;/b&gt; &amp; Co" in html
        assert "<b>Bob</b>" not in html
        assert "Date: June 5, 2026" in html
        assert "Card Type: VISA" in html
        assert "Payment Status" not in html

    def test_status_block(self, bill):
        html = render_invoice_html(bill.mark_withdrawn())
        assert "This payment has been withdrawn." in html


class TestTransactionsCsv:
    def test_rows(self):
        rows = [
            Transaction("pi_1", "deposit", Decimal("994.5"), "2026-10-19T08:30:00+00:00", "completed", "1111"),
            Transaction("po_2", "payout", Decimal("10"), "2026-10-19T09:00:00+00:00", "pending"),
        ]
        out = transactions_csv(rows).splitlines()
        assert out == [
            "ID,Type,Amount,Date,Status,Card",
            "pi_1,deposit,994.50,2026-10-19 08:30:00,completed,**** 1111",
            "po_2,payout,10.00,2026-10-19 09:00:00,pending,N/A",
        ]

    def test_empty(self):
        assert transactions_csv([]) == "ID,Type,Amount,Date,Status,Card\n"

    def test_filename(self):
        assert csv_filename(datetime(2026, 10, 19)) == "transactions_2026-10-19.csv"
