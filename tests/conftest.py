"""Shared fixtures."""

from __future__ import annotations

from datetime import date

import pytest

from billing.data import menu_item_by_id
from billing.gateway import GatewayClient
from billing.models import CardDetails
from billing.persistence import MemorySnapshotStore
from billing.sandbox import SandboxTransport
from billing.session import BillingSession

VISA = "4111111111111111"
MASTERCARD = "5555555555554444"
DEBIT_2_SERIES = "2223003122003222"


def future_expiry(years: int = 2) -> str:
    today = date.today()
    return f"{today.month:02d}/{(today.year + years) % 100:02d}"


def card(number: str = VISA, card_type: str = "visa", expiry: str | None = None, cvv: str = "123") -> CardDetails:
    return CardDetails(number=number, expiry=expiry or future_expiry(), cvv=cvv, card_type=card_type)


@pytest.fixture
def sandbox() -> SandboxTransport:
    return SandboxTransport(delay=0.0)


@pytest.fixture
def gateway(sandbox) -> GatewayClient:
    return GatewayClient(sandbox, timeout=5.0)


@pytest.fixture
def store() -> MemorySnapshotStore:
    return MemorySnapshotStore()


@pytest.fixture
def session(store, gateway) -> BillingSession:
    s = BillingSession(store, gateway)
    s.load()
    return s


def fill_draft(session: BillingSession, name: str = "Alice", method: str = "cash") -> None:
    """Espresso x2 + Cappuccino: subtotal 850, tax 144.50, total 994.50."""
    engine = session.engine
    espresso = menu_item_by_id(1)
    engine.add_item(espresso)
    engine.add_item(espresso)
    engine.add_item(menu_item_by_id(2))
    engine.set_customer_name(name)
    engine.set_payment_method(method)
    engine.recalculate()
