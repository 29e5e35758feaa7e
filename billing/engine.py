"""Draft bill editing, pricing and confirmation."""

from __future__ import annotations

import logging
from copy import copy
from decimal import Decimal
from typing import Iterable

from billing.cards import infer_brand, last4
from billing.config import TAX_RATE
from billing.constant import PAYMENT_METHODS
from billing.errors import BillError
from billing.gateway import GatewayResult
from billing.models import ZERO, BillLineItem, CardDetails, ConfirmedBill, DraftBill, MenuItem, money

logger = logging.getLogger(__name__)

TAX = Decimal(TAX_RATE)


def next_bill_id(existing_ids: Iterable[int]) -> int:
    """Return max existing id + 1, or 1 for an empty collection."""
    return max(existing_ids, default=0) + 1


def price_lines(lines: Iterable[BillLineItem]) -> tuple[Decimal, Decimal, Decimal]:
    """Compute ``(subtotal, tax, total)`` for a set of lines."""
    subtotal = money(sum((line.item.unit_price * line.quantity for line in lines), ZERO))
    tax = money(subtotal * TAX)
    return subtotal, tax, money(subtotal + tax)


class BillEngine:
    """Owns the current draft bill.

    Editing lines drops any previously computed totals, so a bill has to be
    recalculated before it can be confirmed.
    """

    def __init__(self, bill_id: int = 1) -> None:
        self.draft = DraftBill(bill_id=bill_id)

    def _line(self, item_id: int) -> BillLineItem | None:
        for line in self.draft.lines:
            if line.item_id == item_id:
                return line
        return None

    def _clear_totals(self) -> None:
        self.draft.subtotal = ZERO
        self.draft.tax = ZERO
        self.draft.total = ZERO

    @property
    def is_priced(self) -> bool:
        return self.draft.total > 0

    def add_item(self, item: MenuItem) -> None:
        line = self._line(item.item_id)
        if line is None:
            self.draft.lines.append(BillLineItem(item=item, quantity=1))
        else:
            line.quantity += 1
        self._clear_totals()

    def set_quantity(self, item_id: int, quantity: int) -> None:
        if quantity <= 0:
            self.remove_item(item_id)
            return
        line = self._line(item_id)
        if line is None:
            return
        line.quantity = quantity
        self._clear_totals()

    def remove_item(self, item_id: int) -> None:
        before = len(self.draft.lines)
        self.draft.lines = [line for line in self.draft.lines if line.item_id != item_id]
        if len(self.draft.lines) != before:
            self._clear_totals()

    def set_customer_name(self, name: str) -> None:
        self.draft.customer_name = name

    def set_payment_method(self, method: str) -> None:
        if method not in PAYMENT_METHODS:
            raise BillError(f"Unknown payment method: {method}")
        self.draft.payment_method = method  # type: ignore[assignment]

    def recalculate(self) -> Decimal:
        """Price the draft and return the new total."""
        if not self.draft.lines:
            raise BillError("No items in bill")
        subtotal, tax, total = price_lines(self.draft.lines)
        self.draft.subtotal = subtotal
        self.draft.tax = tax
        self.draft.total = total
        return total

    def check_ready(self) -> None:
        """Raise :class:`BillError` unless the draft can be confirmed."""
        if not self.draft.lines:
            raise BillError("No items in bill")
        if not self.draft.customer_name.strip():
            raise BillError("Customer name required")
        if self.draft.total <= 0:
            raise BillError("Invalid bill amount")

    def confirm(
        self,
        payment: GatewayResult,
        existing_ids: Iterable[int],
        card: CardDetails | None = None,
    ) -> ConfirmedBill:
        """Turn the draft into a confirmed bill and start a fresh draft."""
        self.check_ready()
        if not payment.success:
            raise BillError(payment.error_message or "Payment was not authorized")

        draft = self.draft
        is_card = draft.payment_method == "card"
        bill = ConfirmedBill(
            bill_id=next_bill_id(existing_ids),
            lines=tuple(copy(line) for line in draft.lines),
            subtotal=draft.subtotal,
            tax=draft.tax,
            total=draft.total,
            payment_method=draft.payment_method,
            customer_name=draft.customer_name.strip(),
            date=draft.date,
            payment_reference=payment.reference_id,
            card_type=card.card_type if is_card and card else None,  # type: ignore[arg-type]
            card_brand=infer_brand(card.number) if is_card and card else None,
            card_last4=(payment.last4 or last4(card.number)) if is_card and card else None,
        )
        logger.info("bill confirmed id=%s total=%s method=%s", bill.bill_id, bill.total, bill.payment_method)
        self.reset(bill.bill_id + 1)
        return bill

    def reset(self, bill_id: int) -> None:
        self.draft = DraftBill(bill_id=bill_id)
