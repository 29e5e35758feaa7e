"""Key-value snapshot persistence for bills, admin state and finance entries.

Snapshots are JSON blobs with camelCase keys stored under fixed names in a
single SQLite table. Loading never raises: a missing key yields the empty
default and an unreadable blob is logged and treated as missing.
"""

from __future__ import annotations

import json
import logging
import sqlite3
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from decimal import Decimal
from pathlib import Path
from typing import Any, Callable, TypeVar

from billing.config import DB_PATH
from billing.data import menu_item_by_id
from billing.models import (
    AdminCard,
    AdminLedgerState,
    BillLineItem,
    ConfirmedBill,
    FinanceEntry,
    MenuItem,
    Transaction,
    money,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")


def _utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


class SnapshotStore(ABC):
    """``load(key) -> blob | None`` and ``save(key, blob)``."""

    @abstractmethod
    def load(self, key: str) -> str | None: ...

    @abstractmethod
    def save(self, key: str, blob: str) -> None: ...


class MemorySnapshotStore(SnapshotStore):
    """Dict-backed store, used when no database is wanted."""

    def __init__(self, initial: dict[str, str] | None = None) -> None:
        self.blobs: dict[str, str] = dict(initial or {})

    def load(self, key: str) -> str | None:
        return self.blobs.get(key)

    def save(self, key: str, blob: str) -> None:
        self.blobs[key] = blob


class SqliteSnapshotStore(SnapshotStore):
    """Snapshot store backed by a single ``snapshots`` table."""

    def __init__(self, db_path: str | Path = DB_PATH) -> None:
        self.db_path = Path(db_path)

    def _connect(self) -> sqlite3.Connection:
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        return sqlite3.connect(self.db_path)

    def bootstrap_schema(self) -> None:
        """Create the snapshot table if it does not already exist."""
        with self._connect() as conn:
            conn.executescript(
                """
                CREATE TABLE IF NOT EXISTS snapshots (
                    key TEXT PRIMARY KEY,
                    blob TEXT NOT NULL,
                    updated_at TEXT NOT NULL
                );
                """
            )

    def load(self, key: str) -> str | None:
        try:
            self.bootstrap_schema()
            with self._connect() as conn:
                row = conn.execute("SELECT blob FROM snapshots WHERE key = ?", (key,)).fetchone()
        except (sqlite3.Error, OSError):
            logger.exception("snapshot load failed key=%s", key)
            return None
        return None if row is None else str(row[0])

    def save(self, key: str, blob: str) -> None:
        try:
            self.bootstrap_schema()
            with self._connect() as conn:
                with conn:
                    conn.execute(
                        """
                        INSERT INTO snapshots (key, blob, updated_at) VALUES (?, ?, ?)
                        ON CONFLICT(key) DO UPDATE SET blob = excluded.blob, updated_at = excluded.updated_at
                        """,
                        (key, blob, _utc_now_iso()),
                    )
        except (sqlite3.Error, OSError):
            logger.exception("snapshot save failed key=%s", key)


# -- codecs ------------------------------------------------------------------


def _money_out(value: Decimal) -> str:
    return str(money(value))


def _line_to_dict(line: BillLineItem) -> dict[str, Any]:
    return {
        "id": line.item.item_id,
        "name": line.item.name,
        "price": _money_out(line.item.unit_price),
        "quantity": line.quantity,
    }


def _line_from_dict(raw: dict[str, Any]) -> BillLineItem:
    item_id = int(raw["id"])
    item = menu_item_by_id(item_id)
    price = money(raw.get("price", item.unit_price if item else 0))
    if item is None or item.unit_price != price or item.name != raw.get("name", item.name):
        # Keep the price and name the bill was sold at.
        item = MenuItem(item_id=item_id, name=str(raw.get("name", "")), unit_price=price)
    return BillLineItem(item=item, quantity=int(raw["quantity"]))


def bill_to_dict(bill: ConfirmedBill) -> dict[str, Any]:
    return {
        "id": bill.bill_id,
        "items": [_line_to_dict(line) for line in bill.lines],
        "subtotal": _money_out(bill.subtotal),
        "tax": _money_out(bill.tax),
        "total": _money_out(bill.total),
        "paymentMethod": bill.payment_method,
        "customerName": bill.customer_name,
        "date": bill.date,
        "paymentReference": bill.payment_reference,
        "cardType": bill.card_type,
        "cardBrand": bill.card_brand,
        "cardLast4": bill.card_last4,
        "isWithdrawn": bill.is_withdrawn,
        "isPaidOut": bill.is_paid_out,
    }


def bill_from_dict(raw: dict[str, Any]) -> ConfirmedBill:
    return ConfirmedBill(
        bill_id=int(raw["id"]),
        lines=tuple(_line_from_dict(line) for line in raw.get("items", [])),
        subtotal=money(raw["subtotal"]),
        tax=money(raw["tax"]),
        total=money(raw["total"]),
        payment_method=raw["paymentMethod"],
        customer_name=str(raw.get("customerName", "")),
        date=str(raw.get("date", "")),
        payment_reference=str(raw.get("paymentReference", "")),
        card_type=raw.get("cardType"),
        card_brand=raw.get("cardBrand"),
        card_last4=raw.get("cardLast4"),
        is_withdrawn=bool(raw.get("isWithdrawn", False)),
        is_paid_out=bool(raw.get("isPaidOut", False)),
    )


def _transaction_to_dict(tx: Transaction) -> dict[str, Any]:
    return {
        "id": tx.transaction_id,
        "type": tx.kind,
        "amount": _money_out(tx.amount),
        "date": tx.timestamp,
        "status": tx.status,
        "cardLast4": tx.card_last4,
    }


def _transaction_from_dict(raw: dict[str, Any]) -> Transaction:
    return Transaction(
        transaction_id=str(raw["id"]),
        kind=raw["type"],
        amount=money(raw["amount"]),
        timestamp=str(raw["date"]),
        status=raw["status"],
        card_last4=raw.get("cardLast4"),
    )


def admin_state_to_dict(state: AdminLedgerState) -> dict[str, Any]:
    return {
        "cardBalance": _money_out(state.card_balance),
        "totalPayouts": _money_out(state.total_payouts),
        "pendingPayments": _money_out(state.pending_payments),
        "transactions": [_transaction_to_dict(tx) for tx in state.transactions],
    }


def admin_state_from_dict(raw: dict[str, Any]) -> AdminLedgerState:
    return AdminLedgerState(
        card_balance=money(raw.get("cardBalance", 0)),
        total_payouts=money(raw.get("totalPayouts", 0)),
        pending_payments=money(raw.get("pendingPayments", 0)),
        transactions=tuple(_transaction_from_dict(tx) for tx in raw.get("transactions", [])),
    )


def admin_card_to_dict(card: AdminCard) -> dict[str, Any]:
    return {
        "last4": card.last4,
        "brand": card.brand,
        "expiryDate": card.expiry_date,
        "cardType": card.card_type,
    }


def admin_card_from_dict(raw: dict[str, Any]) -> AdminCard:
    return AdminCard(
        last4=str(raw["last4"]),
        brand=str(raw.get("brand", "unknown")),
        expiry_date=str(raw.get("expiryDate", "")),
        card_type=str(raw.get("cardType", "")),
    )


def finance_entry_to_dict(entry: FinanceEntry) -> dict[str, Any]:
    return {
        "id": entry.entry_id,
        "date": entry.date,
        "description": entry.description,
        "amount": _money_out(entry.amount),
        "type": entry.kind,
    }


def finance_entry_from_dict(raw: dict[str, Any]) -> FinanceEntry:
    return FinanceEntry(
        entry_id=int(raw["id"]),
        date=str(raw["date"]),
        description=str(raw["description"]),
        amount=money(raw["amount"]),
        kind=raw["type"],
    )


# -- store helpers -----------------------------------------------------------


def load_snapshot(store: SnapshotStore, key: str, decode: Callable[[Any], T], default: T) -> T:
    """Load and decode ``key``, falling back to ``default`` on any bad data."""
    blob = store.load(key)
    if blob is None:
        return default
    try:
        return decode(json.loads(blob))
    except (ValueError, KeyError, TypeError, AttributeError, ArithmeticError):
        logger.exception("discarding malformed snapshot key=%s", key)
        return default


def save_snapshot(store: SnapshotStore, key: str, value: Any) -> None:
    store.save(key, json.dumps(value))


def decode_bills(raw: Any) -> list[ConfirmedBill]:
    return [bill_from_dict(item) for item in raw]


def decode_finance_entries(raw: Any) -> list[FinanceEntry]:
    return [finance_entry_from_dict(item) for item in raw]


def decode_admin_card(raw: Any) -> AdminCard | None:
    return None if raw is None else admin_card_from_dict(raw)
