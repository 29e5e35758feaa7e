"""Tests for the admin ledger state machine."""

import asyncio
from decimal import Decimal

import pytest

from billing.errors import CardValidationError, GatewayError, LedgerError
from billing.gateway import GatewayClient, GatewayResult, GatewayTransport
from billing.ledger import AdminLedger, derive_pending_payments
from billing.models import AdminCard, ConfirmedBill
from billing.sandbox import SandboxTransport
from conftest import DEBIT_2_SERIES, card

DEPOSIT_OK = GatewayResult(success=True, reference_id="pi_1_a", status="succeeded", last4="1111")


def make_bill(bill_id: int, total: str = "994.50", method: str = "card") -> ConfirmedBill:
    amount = Decimal(total)
    return ConfirmedBill(
        bill_id=bill_id,
        lines=(),
        subtotal=amount,
        tax=Decimal("0.00"),
        total=amount,
        payment_method=method,
        customer_name="Alice",
        date="2026-10-19",
        payment_reference=f"pi_{bill_id}",
        card_type="visa" if method == "card" else None,
        card_brand="visa" if method == "card" else None,
        card_last4="1111" if method == "card" else None,
    )


class DecliningTransport(GatewayTransport):
    async def post(self, path, body):
        return 500, {"success": False, "error": "Processor unavailable"}


class SlowTransport(GatewayTransport):
    async def post(self, path, body):
        await asyncio.sleep(1)
        return 200, {"success": True}


@pytest.fixture
def ledger(gateway):
    return AdminLedger(gateway, [])


def confirm(ledger: AdminLedger, bill: ConfirmedBill, payment: GatewayResult = DEPOSIT_OK) -> None:
    ledger.bills.append(bill)
    ledger.on_bill_confirmed(bill, payment)


def snapshot(ledger: AdminLedger):
    return ledger.state, list(ledger.bills)


class TestDeposit:
    def test_card_bill_adds_to_balance(self, ledger):
        confirm(ledger, make_bill(1))
        assert ledger.state.card_balance == Decimal("994.50")
        [tx] = ledger.state.transactions
        assert (tx.kind, tx.status, tx.amount, tx.card_last4) == ("deposit", "completed", Decimal("994.50"), "1111")

    def test_non_succeeded_status_is_pending(self, ledger):
        confirm(ledger, make_bill(1), GatewayResult(success=True, reference_id="pi_x", status="processing"))
        assert ledger.state.transactions[0].status == "pending"

    def test_cash_bill_has_no_effect(self, ledger):
        confirm(ledger, make_bill(1, method="cash"))
        assert ledger.state.card_balance == Decimal("0.00")
        assert ledger.state.transactions == ()


class TestLifecycle:
    @pytest.mark.asyncio
    async def test_full_lifecycle(self, ledger):
        confirm(ledger, make_bill(1))

        bill = await ledger.withdraw(1)
        assert bill.is_withdrawn
        assert ledger.state.card_balance == Decimal("0.00")
        assert ledger.state.pending_payments == Decimal("994.50")

        bill = await ledger.payout(1)
        assert bill.is_paid_out
        assert ledger.state.total_payouts == Decimal("994.50")
        assert ledger.state.pending_payments == Decimal("0.00")
        assert [tx.kind for tx in ledger.state.transactions] == ["deposit", "payout", "payout"]

        with pytest.raises(LedgerError, match="already been withdrawn"):
            await ledger.withdraw(1)

    @pytest.mark.asyncio
    async def test_payout_requires_withdrawal(self, ledger):
        confirm(ledger, make_bill(1))
        before = snapshot(ledger)
        with pytest.raises(LedgerError, match="must be withdrawn"):
            await ledger.payout(1)
        assert snapshot(ledger) == before

    @pytest.mark.asyncio
    async def test_double_payout_rejected(self, ledger):
        confirm(ledger, make_bill(1))
        await ledger.withdraw(1)
        await ledger.payout(1)
        with pytest.raises(LedgerError, match="already been paid out"):
            await ledger.payout(1)

    @pytest.mark.asyncio
    async def test_withdraw_rejects_missing_and_cash_bills(self, ledger):
        confirm(ledger, make_bill(1, method="cash"))
        with pytest.raises(LedgerError, match="Bill not found"):
            await ledger.withdraw(99)
        with pytest.raises(LedgerError, match="Only card payments"):
            await ledger.withdraw(1)

    @pytest.mark.asyncio
    async def test_balance_is_checked_at_withdraw_not_payout(self, ledger):
        confirm(ledger, make_bill(1))
        ledger.admin_card = AdminCard(last4="1111", brand="visa", expiry_date="12/30", card_type="visa")
        await ledger.empty_balance()
        before = snapshot(ledger)
        with pytest.raises(LedgerError, match="Insufficient"):
            await ledger.withdraw(1)
        assert snapshot(ledger) == before

    @pytest.mark.asyncio
    async def test_gateway_failure_leaves_ledger_untouched(self):
        ledger = AdminLedger(GatewayClient(DecliningTransport()), [])
        confirm(ledger, make_bill(1))
        before = snapshot(ledger)
        with pytest.raises(GatewayError, match="Processor unavailable"):
            await ledger.withdraw(1)
        assert snapshot(ledger) == before

    @pytest.mark.asyncio
    async def test_gateway_timeout_is_a_failure(self):
        ledger = AdminLedger(GatewayClient(SlowTransport(), timeout=0.01), [])
        confirm(ledger, make_bill(1))
        with pytest.raises(GatewayError, match="timed out"):
            await ledger.withdraw(1)
        assert not ledger.bills[0].is_withdrawn

    @pytest.mark.asyncio
    async def test_concurrent_withdraw_on_same_bill_is_rejected(self):
        ledger = AdminLedger(GatewayClient(SandboxTransport(delay=0.05)), [])
        confirm(ledger, make_bill(1))
        results = await asyncio.gather(ledger.withdraw(1), ledger.withdraw(1), return_exceptions=True)
        errors = [r for r in results if isinstance(r, Exception)]
        assert len(errors) == 1
        assert "already in progress" in str(errors[0])
        assert ledger.state.pending_payments == Decimal("994.50")
        assert ledger.state.card_balance == Decimal("0.00")

    @pytest.mark.asyncio
    async def test_concurrent_withdraws_on_different_bills(self):
        ledger = AdminLedger(GatewayClient(SandboxTransport(delay=0.02)), [])
        confirm(ledger, make_bill(1, "100.00"))
        confirm(ledger, make_bill(2, "50.00"))
        await asyncio.gather(ledger.withdraw(1), ledger.withdraw(2))
        assert ledger.state.card_balance == Decimal("0.00")
        assert ledger.state.pending_payments == Decimal("150.00")

    @pytest.mark.asyncio
    async def test_locks_are_released_after_transitions(self, ledger):
        confirm(ledger, make_bill(1))
        await ledger.withdraw(1)
        with pytest.raises(LedgerError):
            await ledger.withdraw(1)
        await ledger.payout(1)
        assert ledger._locks == {}

    @pytest.mark.asyncio
    async def test_lock_kept_while_in_flight(self):
        ledger = AdminLedger(GatewayClient(SandboxTransport(delay=0.05)), [])
        confirm(ledger, make_bill(1))
        task = asyncio.create_task(ledger.withdraw(1))
        await asyncio.sleep(0.01)
        assert 1 in ledger._locks
        await task
        assert ledger._locks == {}


class TestReconciliation:
    @pytest.mark.asyncio
    async def test_incremental_matches_derived(self, ledger):
        for bill_id, total in [(1, "100.00"), (2, "250.50"), (3, "75.25"), (4, "10.00")]:
            confirm(ledger, make_bill(bill_id, total))
        confirm(ledger, make_bill(5, "40.00", method="digital"))

        steps = [("withdraw", 1), ("withdraw", 2), ("payout", 1), ("withdraw", 3), ("payout", 3)]
        for action, bill_id in steps:
            await getattr(ledger, action)(bill_id)
            assert ledger.state.pending_payments == derive_pending_payments(ledger.bills)

        assert ledger.state.pending_payments == Decimal("250.50")

    def test_reconcile_overrides_drifted_value(self, ledger):
        from dataclasses import replace

        bill = make_bill(1)
        ledger.bills.append(replace(bill, is_withdrawn=True))
        ledger.state = replace(ledger.state, pending_payments=Decimal("5.00"))
        assert ledger.reconcile() == Decimal("994.50")
        assert ledger.state.pending_payments == Decimal("994.50")

    def test_transactions_newest_first(self, ledger):
        confirm(ledger, make_bill(1, "10.00"))
        confirm(ledger, make_bill(2, "20.00"))
        amounts = [tx.amount for tx in ledger.transactions_newest_first()]
        assert amounts == [Decimal("20.00"), Decimal("10.00")]
        assert ledger.transactions_newest_first("payout") == []


class TestAdminCard:
    @pytest.mark.asyncio
    async def test_integrate_stores_brand_and_last4(self, ledger):
        admin_card = await ledger.integrate_card(card())
        assert (admin_card.brand, admin_card.last4, admin_card.card_type) == ("visa", "1111", "visa")
        assert ledger.admin_card == admin_card

    @pytest.mark.asyncio
    async def test_integrate_checks_card_type(self, ledger, sandbox):
        with pytest.raises(CardValidationError) as exc_info:
            await ledger.integrate_card(card(card_type="credit"))
        assert "card_type" in exc_info.value.errors
        assert sandbox.requests == []

    @pytest.mark.asyncio
    async def test_integrate_debit_card(self, ledger):
        admin_card = await ledger.integrate_card(card(DEBIT_2_SERIES, "debit"))
        assert admin_card.last4 == "3222"

    @pytest.mark.asyncio
    async def test_empty_balance(self, ledger):
        confirm(ledger, make_bill(1, "300.00"))
        await ledger.integrate_card(card())
        tx = await ledger.empty_balance()
        assert tx.amount == Decimal("300.00")
        assert ledger.state.card_balance == Decimal("0.00")
        assert ledger.state.total_payouts == Decimal("300.00")

    @pytest.mark.asyncio
    async def test_empty_balance_preconditions(self, ledger):
        with pytest.raises(LedgerError, match="No admin card"):
            await ledger.empty_balance()
        await ledger.integrate_card(card())
        with pytest.raises(LedgerError, match="empty"):
            await ledger.empty_balance()
