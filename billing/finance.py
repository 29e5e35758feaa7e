"""Manual income/expense sheet."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date
from decimal import Decimal, InvalidOperation

from billing.errors import FinanceError
from billing.models import ZERO, FinanceEntry, money

logger = logging.getLogger(__name__)

FINANCE_KINDS = ("income", "expense")


@dataclass(frozen=True)
class FinanceTotals:
    income: Decimal
    expenses: Decimal

    @property
    def profit(self) -> Decimal:
        return money(self.income - self.expenses)


def parse_amount(raw: str | Decimal | int | float) -> Decimal:
    """Parse operator input into a money amount; raises :class:`FinanceError`."""
    try:
        amount = money(raw)
    except (InvalidOperation, ValueError) as exc:
        raise FinanceError("Invalid Amount") from exc
    if amount <= 0:
        raise FinanceError("Invalid Amount")
    return amount


class FinanceSheet:
    """Entries are kept newest first."""

    def __init__(self, entries: list[FinanceEntry] | None = None) -> None:
        self.entries: list[FinanceEntry] = list(entries or [])

    def add_entry(
        self,
        description: str,
        amount: str | Decimal | int | float,
        kind: str = "income",
        entry_date: str | None = None,
    ) -> FinanceEntry:
        if not description.strip():
            raise FinanceError("Missing Description")
        value = parse_amount(amount)
        if kind not in FINANCE_KINDS:
            raise FinanceError(f"Unknown entry type: {kind}")

        entry = FinanceEntry(
            entry_id=max((e.entry_id for e in self.entries), default=0) + 1,
            date=entry_date or date.today().isoformat(),
            description=description.strip(),
            amount=value,
            kind=kind,  # type: ignore[arg-type]
        )
        self.entries.insert(0, entry)
        logger.info("finance entry added id=%s kind=%s amount=%s", entry.entry_id, kind, value)
        return entry

    def remove_entry(self, entry_id: int) -> bool:
        before = len(self.entries)
        self.entries = [e for e in self.entries if e.entry_id != entry_id]
        return len(self.entries) != before

    def totals(self) -> FinanceTotals:
        income = sum((e.amount for e in self.entries if e.kind == "income"), ZERO)
        expenses = sum((e.amount for e in self.entries if e.kind == "expense"), ZERO)
        return FinanceTotals(income=money(income), expenses=money(expenses))
