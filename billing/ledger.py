"""Admin ledger: card balance, transaction log and the withdraw/payout lifecycle.

A card bill moves ``Completed -> Withdrawn -> PaidOut``. Every transition
checks its preconditions, calls the gateway, re-checks, and only then
commits all affected fields in one assignment, so a failed or rejected
transition leaves the ledger exactly as it was.
"""

from __future__ import annotations

import asyncio
import logging
from contextlib import asynccontextmanager
from dataclasses import replace
from datetime import datetime, timezone
from decimal import Decimal
from typing import AsyncIterator

from billing.cards import validate_card
from billing.errors import CardValidationError, GatewayError, LedgerError
from billing.gateway import GatewayClient, GatewayResult, make_reference
from billing.models import ZERO, AdminCard, AdminLedgerState, CardDetails, ConfirmedBill, Transaction, money

logger = logging.getLogger(__name__)

_BALANCE_KEY = "admin-balance"


def _utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _status_from_gateway(status: str) -> str:
    return "completed" if status == "succeeded" else "pending"


def derive_pending_payments(bills: list[ConfirmedBill]) -> Decimal:
    """Sum of totals for bills withdrawn but not yet paid out."""
    return money(sum((bill.total for bill in bills if bill.is_pending_payout), ZERO))


class AdminLedger:
    """Sole writer of :class:`AdminLedgerState` and of the bill lifecycle flags.

    ``bills`` is the session's list of confirmed bills; the ledger replaces
    entries in place when a bill's flags change.
    """

    def __init__(
        self,
        gateway: GatewayClient,
        bills: list[ConfirmedBill],
        state: AdminLedgerState | None = None,
        admin_card: AdminCard | None = None,
    ) -> None:
        self._gateway = gateway
        self.bills = bills
        self.state = state or AdminLedgerState()
        self.admin_card = admin_card
        self._locks: dict[object, asyncio.Lock] = {}

    # -- lookups ---------------------------------------------------------

    def find_bill(self, bill_id: int) -> ConfirmedBill | None:
        for bill in self.bills:
            if bill.bill_id == bill_id:
                return bill
        return None

    def _replace_bill(self, updated: ConfirmedBill) -> None:
        for idx, bill in enumerate(self.bills):
            if bill.bill_id == updated.bill_id:
                self.bills[idx] = updated
                return
        raise LedgerError("Bill not found")

    def transactions_newest_first(self, kind: str | None = None) -> list[Transaction]:
        rows = [tx for tx in self.state.transactions if kind is None or tx.kind == kind]
        return list(reversed(rows))

    def derived_pending_payments(self) -> Decimal:
        return derive_pending_payments(self.bills)

    def reconcile(self) -> Decimal:
        """Reset ``pending_payments`` to the value derived from the bills."""
        derived = self.derived_pending_payments()
        if derived != self.state.pending_payments:
            logger.warning(
                "pending payments drift stored=%s derived=%s; using derived",
                self.state.pending_payments,
                derived,
            )
            self.state = replace(self.state, pending_payments=derived)
        return derived

    # -- serialization of in-flight transitions --------------------------

    @asynccontextmanager
    async def _exclusive(self, key: object) -> AsyncIterator[None]:
        lock = self._locks.setdefault(key, asyncio.Lock())
        if lock.locked():
            raise LedgerError("Another operation on this item is already in progress")
        try:
            async with lock:
                yield
        finally:
            if not lock.locked() and self._locks.get(key) is lock:
                del self._locks[key]

    def _append(self, state: AdminLedgerState, tx: Transaction) -> AdminLedgerState:
        return replace(state, transactions=state.transactions + (tx,))

    # -- transitions -----------------------------------------------------

    def on_bill_confirmed(self, bill: ConfirmedBill, payment: GatewayResult) -> Transaction | None:
        """Record a deposit for a card bill; other payment methods are ignored."""
        if not bill.is_card:
            return None
        tx = Transaction(
            transaction_id=payment.reference_id or bill.payment_reference,
            kind="deposit",
            amount=bill.total,
            timestamp=_utc_now_iso(),
            status=_status_from_gateway(payment.status),  # type: ignore[arg-type]
            card_last4=bill.card_last4,
        )
        self.state = self._append(
            replace(self.state, card_balance=money(self.state.card_balance + bill.total)),
            tx,
        )
        logger.info("deposit bill=%s amount=%s balance=%s", bill.bill_id, bill.total, self.state.card_balance)
        return tx

    def _check_withdraw(self, bill_id: int) -> ConfirmedBill:
        """Withdraw is where funds leave the card balance, so the balance check lives here rather than in payout."""
        bill = self.find_bill(bill_id)
        if bill is None:
            raise LedgerError("Bill not found")
        if not bill.is_card:
            raise LedgerError("Only card payments can be withdrawn")
        if bill.is_withdrawn:
            raise LedgerError(f"Bill #{bill_id} has already been withdrawn")
        if self.state.card_balance < bill.total:
            raise LedgerError("Insufficient admin card balance for this withdrawal")
        return bill

    async def withdraw(self, bill_id: int) -> ConfirmedBill:
        """Move a card bill's funds out of the card balance into pending payouts."""
        async with self._exclusive(bill_id):
            bill = self._check_withdraw(bill_id)
            result = await self._gateway.withdraw_bill(bill.bill_id, bill.total, bill.card_last4)
            if not result.success:
                raise GatewayError(result.error_message or "Withdrawal failed")

            bill = self._check_withdraw(bill_id)
            updated = bill.mark_withdrawn()
            tx = Transaction(
                transaction_id=result.reference_id or make_reference(f"withdraw-{bill_id}"),
                kind="payout",
                amount=bill.total,
                timestamp=_utc_now_iso(),
                status="completed",
                card_last4=bill.card_last4,
            )
            new_state = self._append(
                replace(
                    self.state,
                    card_balance=money(self.state.card_balance - bill.total),
                    pending_payments=money(self.state.pending_payments + bill.total),
                ),
                tx,
            )
            self._replace_bill(updated)
            self.state = new_state
            logger.info("withdraw bill=%s amount=%s balance=%s", bill_id, bill.total, self.state.card_balance)
            return updated

    def _check_payout(self, bill_id: int) -> ConfirmedBill:
        bill = self.find_bill(bill_id)
        if bill is None:
            raise LedgerError("Bill not found")
        if not bill.is_withdrawn:
            raise LedgerError("Bill must be withdrawn before payout")
        if bill.is_paid_out:
            raise LedgerError("Bill has already been paid out")
        if self.state.pending_payments < bill.total:
            raise LedgerError("Pending payments do not cover this payout")
        return bill

    async def payout(self, bill_id: int) -> ConfirmedBill:
        """Pay out a withdrawn bill."""
        async with self._exclusive(bill_id):
            bill = self._check_payout(bill_id)
            result = await self._gateway.payout_bill(bill.bill_id, bill.total)
            if not result.success:
                raise GatewayError(result.error_message or "Failed to process payout")

            bill = self._check_payout(bill_id)
            updated = bill.mark_paid_out()
            tx = Transaction(
                transaction_id=result.reference_id or make_reference(f"payout-{bill_id}"),
                kind="payout",
                amount=bill.total,
                timestamp=_utc_now_iso(),
                status=_status_from_gateway("succeeded" if result.status == "paid_out" else result.status),  # type: ignore[arg-type]
                card_last4=bill.card_last4,
            )
            new_state = self._append(
                replace(
                    self.state,
                    total_payouts=money(self.state.total_payouts + bill.total),
                    pending_payments=money(self.state.pending_payments - bill.total),
                ),
                tx,
            )
            self._replace_bill(updated)
            self.state = new_state
            logger.info("payout bill=%s amount=%s total_payouts=%s", bill_id, bill.total, self.state.total_payouts)
            return updated

    async def integrate_card(self, card: CardDetails) -> AdminCard:
        """Validate and register the admin destination card, keeping brand and last four only."""
        errors = validate_card(card, check_type=True)
        if errors:
            raise CardValidationError(errors)

        async with self._exclusive("admin-card"):
            result = await self._gateway.integrate_card(card)
            if not result.success:
                raise GatewayError(result.error_message or "Failed to integrate card")
            details = result.payload.get("cardDetails") or {}
            admin_card = AdminCard(
                last4=str(details.get("last4", "")),
                brand=str(details.get("brand", "unknown")),
                expiry_date=str(details.get("expiryDate", card.expiry)),
                card_type=str(details.get("cardType", card.card_type)),
            )
            self.admin_card = admin_card
            logger.info("admin card integrated brand=%s last4=%s", admin_card.brand, admin_card.last4)
            return admin_card

    async def empty_balance(self) -> Transaction:
        """Transfer the whole card balance to the integrated admin card."""
        async with self._exclusive(_BALANCE_KEY):
            if self.admin_card is None:
                raise LedgerError("No admin card integrated")
            amount = self.state.card_balance
            if amount <= 0:
                raise LedgerError("Card balance is empty")

            destination = self.admin_card
            result = await self._gateway.payout(amount, destination)
            if not result.success:
                raise GatewayError(result.error_message or "Failed to transfer balance")
            if self.state.card_balance != amount:
                raise LedgerError("Card balance changed during transfer; please retry")

            tx = Transaction(
                transaction_id=result.reference_id or make_reference("payout"),
                kind="payout",
                amount=amount,
                timestamp=_utc_now_iso(),
                status=_status_from_gateway(result.status),  # type: ignore[arg-type]
                card_last4=destination.last4,
            )
            self.state = self._append(
                replace(
                    self.state,
                    card_balance=ZERO,
                    total_payouts=money(self.state.total_payouts + amount),
                ),
                tx,
            )
            logger.info("balance emptied amount=%s to card=%s", amount, destination.last4)
            return tx
