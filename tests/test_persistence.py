"""Tests for snapshot stores and codecs."""

import json
from decimal import Decimal

import pytest

from billing.constant import SNAPSHOT_KEY_ADMIN_STATE, SNAPSHOT_KEY_BILLS
from billing.data import menu_item_by_id
from billing.models import AdminLedgerState, BillLineItem, ConfirmedBill, Transaction
from billing.persistence import (
    MemorySnapshotStore,
    SqliteSnapshotStore,
    admin_state_from_dict,
    admin_state_to_dict,
    bill_from_dict,
    bill_to_dict,
    decode_bills,
    load_snapshot,
    save_snapshot,
)


@pytest.fixture
def bill():
    return ConfirmedBill(
        bill_id=4,
        lines=(BillLineItem(item=menu_item_by_id(1), quantity=2), BillLineItem(item=menu_item_by_id(2), quantity=1)),
        subtotal=Decimal("850.00"),
        tax=Decimal("144.50"),
        total=Decimal("994.50"),
        payment_method="card",
        customer_name="Alice",
        date="2026-10-19",
        payment_reference="pi_1_abc",
        card_type="visa",
        card_brand="visa",
        card_last4="1111",
        is_withdrawn=True,
    )


class TestSqliteSnapshotStore:
    def test_missing_key_is_none(self, tmp_path):
        store = SqliteSnapshotStore(tmp_path / "billing.db")
        assert store.load("confirmedBills") is None

    def test_save_overwrites(self, tmp_path):
        store = SqliteSnapshotStore(tmp_path / "nested" / "billing.db")
        store.save("k", "one")
        store.save("k", "two")
        assert store.load("k") == "two"
        assert SqliteSnapshotStore(tmp_path / "nested" / "billing.db").load("k") == "two"

    def test_unusable_path_fails_soft(self, tmp_path):
        blocker = tmp_path / "file"
        blocker.write_text("x")
        store = SqliteSnapshotStore(blocker / "billing.db")
        store.save("k", "v")
        assert store.load("k") is None


class TestCodecs:
    def test_bill_uses_camel_case_keys(self, bill):
        raw = bill_to_dict(bill)
        assert raw["paymentMethod"] == "card"
        assert raw["isWithdrawn"] is True
        assert raw["items"][0] == {"id": 1, "name": "Espresso", "price": "250.00", "quantity": 2}
        assert bill_from_dict(json.loads(json.dumps(raw))) == bill

    def test_bill_keeps_sold_price(self, bill):
        raw = bill_to_dict(bill)
        raw["items"][0]["price"] = "199.00"
        restored = bill_from_dict(raw)
        assert restored.lines[0].item.unit_price == Decimal("199.00")
        assert restored.lines[0].item.name == "Espresso"

    def test_admin_state(self):
        state = AdminLedgerState(
            card_balance=Decimal("10.00"),
            total_payouts=Decimal("5.00"),
            pending_payments=Decimal("0.00"),
            transactions=(Transaction("pi_1", "deposit", Decimal("10.00"), "2026-10-19T10:00:00+00:00", "completed", "1111"),),
        )
        raw = admin_state_to_dict(state)
        assert raw["transactions"][0]["type"] == "deposit"
        assert admin_state_from_dict(raw) == state


class TestLoadSnapshot:
    def test_missing_returns_default(self):
        assert load_snapshot(MemorySnapshotStore(), SNAPSHOT_KEY_BILLS, decode_bills, []) == []

    def test_malformed_json_returns_default(self, caplog):
        store = MemorySnapshotStore({SNAPSHOT_KEY_ADMIN_STATE: "{not json"})
        state = load_snapshot(store, SNAPSHOT_KEY_ADMIN_STATE, admin_state_from_dict, AdminLedgerState())
        assert state == AdminLedgerState()
        assert "malformed snapshot" in caplog.text

    def test_wrong_shape_returns_default(self):
        store = MemorySnapshotStore({SNAPSHOT_KEY_BILLS: json.dumps([{"id": 1}])})
        assert load_snapshot(store, SNAPSHOT_KEY_BILLS, decode_bills, []) == []

    @pytest.mark.parametrize("blob", ["[]", "5", "\"text\"", "[1, 2]"])
    def test_non_object_admin_state_returns_default(self, blob):
        store = MemorySnapshotStore({SNAPSHOT_KEY_ADMIN_STATE: blob})
        state = load_snapshot(store, SNAPSHOT_KEY_ADMIN_STATE, admin_state_from_dict, AdminLedgerState())
        assert state == AdminLedgerState()

    def test_non_object_bill_rows_return_default(self):
        store = MemorySnapshotStore({SNAPSHOT_KEY_BILLS: json.dumps([[1, 2], "x"])})
        assert load_snapshot(store, SNAPSHOT_KEY_BILLS, decode_bills, []) == []

    def test_round_trip_through_store(self, bill):
        store = MemorySnapshotStore()
        save_snapshot(store, SNAPSHOT_KEY_BILLS, [bill_to_dict(bill)])
        assert load_snapshot(store, SNAPSHOT_KEY_BILLS, decode_bills, []) == [bill]
