"""Domain models for the billing system."""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import date
from decimal import ROUND_HALF_UP, Decimal
from typing import Literal

PaymentMethod = Literal["cash", "card", "digital"]
CardType = Literal["visa", "debit", "credit"]
TransactionKind = Literal["deposit", "payout"]
TransactionStatus = Literal["pending", "completed", "failed"]
FinanceKind = Literal["income", "expense"]

_CENTS = Decimal("0.01")
ZERO = Decimal("0.00")


def money(value: Decimal | int | float | str) -> Decimal:
    """Coerce a value to a Decimal rounded half-up to cents."""
    if not isinstance(value, Decimal):
        value = Decimal(str(value))
    return value.quantize(_CENTS, rounding=ROUND_HALF_UP)


def _today_iso() -> str:
    return date.today().isoformat()


@dataclass(frozen=True)
class MenuItem:
    """A fixed catalog entry."""

    item_id: int
    name: str
    unit_price: Decimal


@dataclass
class BillLineItem:
    """A menu item on a bill together with its quantity."""

    item: MenuItem
    quantity: int = 1

    @property
    def item_id(self) -> int:
        return self.item.item_id

    @property
    def line_total(self) -> Decimal:
        return money(self.item.unit_price * self.quantity)


@dataclass
class DraftBill:
    """The in-progress bill owned by the bill engine."""

    bill_id: int
    lines: list[BillLineItem] = field(default_factory=list)
    subtotal: Decimal = ZERO
    tax: Decimal = ZERO
    total: Decimal = ZERO
    payment_method: PaymentMethod = "cash"
    customer_name: str = ""
    date: str = field(default_factory=_today_iso)


@dataclass(frozen=True)
class ConfirmedBill:
    """An immutable record of a completed sale.

    Only ``is_withdrawn`` and ``is_paid_out`` ever change, and only through
    :meth:`mark_withdrawn` / :meth:`mark_paid_out`, which return new copies.
    """

    bill_id: int
    lines: tuple[BillLineItem, ...]
    subtotal: Decimal
    tax: Decimal
    total: Decimal
    payment_method: PaymentMethod
    customer_name: str
    date: str
    payment_reference: str
    card_type: CardType | None = None
    card_brand: str | None = None
    card_last4: str | None = None
    is_withdrawn: bool = False
    is_paid_out: bool = False

    @property
    def is_card(self) -> bool:
        return self.payment_method == "card"

    @property
    def is_pending_payout(self) -> bool:
        return self.is_withdrawn and not self.is_paid_out

    def mark_withdrawn(self) -> ConfirmedBill:
        if self.is_withdrawn:
            raise ValueError(f"Bill #{self.bill_id} has already been withdrawn")
        return replace(self, is_withdrawn=True)

    def mark_paid_out(self) -> ConfirmedBill:
        if not self.is_withdrawn:
            raise ValueError("Bill must be withdrawn before payout")
        if self.is_paid_out:
            raise ValueError("Bill has already been paid out")
        return replace(self, is_paid_out=True)


@dataclass(frozen=True)
class CardDetails:
    """Raw card input as typed by the operator. Never persisted."""

    number: str
    expiry: str
    cvv: str
    card_type: str = "visa"


@dataclass(frozen=True)
class AdminCard:
    """The integrated admin destination card: brand and last four digits only."""

    last4: str
    brand: str
    expiry_date: str
    card_type: str


@dataclass(frozen=True)
class Transaction:
    """One immutable entry of the admin transaction log."""

    transaction_id: str
    kind: TransactionKind
    amount: Decimal
    timestamp: str
    status: TransactionStatus
    card_last4: str | None = None


@dataclass(frozen=True)
class AdminLedgerState:
    """Admin card aggregates plus the append-only transaction log."""

    card_balance: Decimal = ZERO
    total_payouts: Decimal = ZERO
    pending_payments: Decimal = ZERO
    transactions: tuple[Transaction, ...] = ()


@dataclass(frozen=True)
class FinanceEntry:
    """A manual income or expense row on the finance sheet."""

    entry_id: int
    date: str
    description: str
    amount: Decimal
    kind: FinanceKind
