"""Smoke tests driving the Textual app headlessly."""

from decimal import Decimal

import pytest

from billing.billing_app import BillingApp, _digits_only
from billing.calculator_screen import CalculatorScreen
from billing.prompt_modal import decimal_chars


class TestBillingApp:
    @pytest.mark.asyncio
    async def test_search_add_and_calculate(self, session):
        app = BillingApp(session)
        async with app.run_test() as pilot:
            await pilot.press("s", "l", "a", "t", "t", "e")
            assert [item.name for item in app._filtered_results()] == ["Latte"]
            await pilot.press("enter")
            app.action_cancel_active_mode()
            await pilot.press("c")
            await pilot.pause()

        draft = session.engine.draft
        assert [(line.item.name, line.quantity) for line in draft.lines] == [("Latte", 1)]
        assert draft.total == Decimal("468.00")

    @pytest.mark.asyncio
    async def test_cash_payment(self, session):
        app = BillingApp(session)
        async with app.run_test() as pilot:
            await pilot.press("s", "m", "o", "c", "h", "a", "enter")
            app.action_cancel_active_mode()
            session.engine.set_customer_name("Alice")
            await pilot.press("c", "p")
            await app.workers.wait_for_complete()
            await pilot.pause()

        assert [bill.total for bill in session.bills] == [Decimal("526.50")]
        assert session.engine.draft.lines == []

    @pytest.mark.asyncio
    async def test_calculator_screen(self, session):
        app = BillingApp(session)
        async with app.run_test() as pilot:
            await pilot.press("x")
            screen = app.screen
            assert isinstance(screen, CalculatorScreen)
            await pilot.press("7", "x", "6", "enter")
            assert screen.calculator.display == "42"
            await pilot.press("escape")
            assert not isinstance(app.screen, CalculatorScreen)


class TestInputFilters:
    @pytest.mark.parametrize("char", ["²", "٣", "a", ""])
    def test_only_ascii_digits_accepted(self, char):
        assert not _digits_only("", char)
        assert not decimal_chars("", char)

    def test_decimal_point_once(self):
        assert _digits_only("1", "7")
        assert decimal_chars("1", ".")
        assert not decimal_chars("1.5", ".")
