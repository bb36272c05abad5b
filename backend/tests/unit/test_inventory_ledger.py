"""
Unit Tests for the Inventory Ledger

The ledger is the only writer of on-hand and allocated. Every call leaves
quantity_available == max(0, on_hand - allocated) and one audit row whose
previous + delta == new.
"""
import pytest
from decimal import Decimal

from sqlalchemy.orm import Session

from stockledger.core.config import settings
from stockledger.exceptions import (
    ConcurrencyError,
    InvalidStateError,
    NegativeResultError,
    NotFoundError,
    ValidationError,
)
from stockledger.models.inventory import Inventory, InventoryTransaction
from stockledger.services.inventory_ledger import InventoryLedger, low_stock, to_decimal

from tests.factories import create_test_inventory, create_test_product


class TestApplyDelta:
    """apply_delta: the single choke point"""

    def test_positive_on_hand_delta(self, db_session: Session):
        inv = create_test_inventory(db_session, on_hand=100, allocated=20)
        ledger = InventoryLedger(db_session, user_id="u1")

        posting = ledger.apply_delta(inv.id, on_hand_delta=Decimal("15"), transaction_type="adjustment")

        assert posting.inventory.quantity_on_hand == Decimal("115")
        assert posting.inventory.quantity_allocated == Decimal("20")
        assert posting.inventory.quantity_available == Decimal("95")

    def test_audit_row_explains_result(self, db_session: Session):
        inv = create_test_inventory(db_session, on_hand=150, allocated=25)
        ledger = InventoryLedger(db_session, user_id="auditor")

        posting = ledger.apply_delta(
            inv.id, on_hand_delta=-10, transaction_type="adjustment", reason_code="damaged",
            reference_type="inventory_adjustment", reference_id=7,
        )
        txn = posting.transaction

        assert txn.previous_on_hand == Decimal("150")
        assert txn.on_hand_delta == Decimal("-10")
        assert txn.new_on_hand == Decimal("140")
        assert txn.previous_allocated == txn.new_allocated == Decimal("25")
        assert txn.reason_code == "damaged"
        assert txn.reference_id == 7
        assert txn.created_by == "auditor"

    def test_available_floors_at_zero(self, db_session: Session):
        inv = create_test_inventory(db_session, on_hand=10, allocated=5)
        ledger = InventoryLedger(db_session)

        posting = ledger.apply_delta(inv.id, allocated_delta=Decimal("20"), transaction_type="allocation")

        assert posting.inventory.quantity_allocated == Decimal("25")
        assert posting.inventory.quantity_available == Decimal("0")

    def test_negative_on_hand_rejected(self, db_session: Session):
        inv = create_test_inventory(db_session, on_hand=5)
        ledger = InventoryLedger(db_session)

        with pytest.raises(NegativeResultError) as exc_info:
            ledger.apply_delta(inv.id, on_hand_delta=-6, transaction_type="adjustment")

        assert exc_info.value.details["quantity_field"] == "quantity_on_hand"
        db_session.refresh(inv)
        assert inv.quantity_on_hand == Decimal("5")
        assert db_session.query(InventoryTransaction).count() == 0

    def test_negative_allocated_rejected(self, db_session: Session):
        inv = create_test_inventory(db_session, on_hand=5, allocated=2)
        ledger = InventoryLedger(db_session)

        with pytest.raises(NegativeResultError) as exc_info:
            ledger.apply_delta(inv.id, allocated_delta=-3, transaction_type="allocation")

        assert exc_info.value.details["quantity_field"] == "quantity_allocated"

    def test_missing_record(self, db_session: Session):
        ledger = InventoryLedger(db_session)

        with pytest.raises(NotFoundError):
            ledger.apply_delta(9999, on_hand_delta=1, transaction_type="adjustment")

    def test_drain_to_zero_allowed(self, db_session: Session):
        inv = create_test_inventory(db_session, on_hand=8)
        posting = InventoryLedger(db_session).apply_delta(inv.id, on_hand_delta=-8, transaction_type="adjustment")
        assert posting.inventory.quantity_on_hand == Decimal("0")
        assert posting.inventory.quantity_available == Decimal("0")

    def test_successive_deltas_accumulate(self, db_session: Session):
        inv = create_test_inventory(db_session, on_hand=0)
        ledger = InventoryLedger(db_session)

        for qty in (10, 20, -5):
            ledger.apply_delta(inv.id, on_hand_delta=qty, transaction_type="adjustment")

        txns = db_session.query(InventoryTransaction).order_by(InventoryTransaction.id).all()
        assert [t.new_on_hand for t in txns] == [Decimal("10"), Decimal("30"), Decimal("25")]
        for earlier, later in zip(txns, txns[1:]):
            assert later.previous_on_hand == earlier.new_on_hand


class TestCosting:
    """Weighted average cost rolls forward on receipts"""

    def test_first_receipt_sets_cost(self, db_session: Session):
        inv = create_test_inventory(db_session, on_hand=0)
        posting = InventoryLedger(db_session).apply_delta(
            inv.id, on_hand_delta=10, unit_cost=Decimal("4.00"), transaction_type="receipt"
        )
        assert posting.inventory.weighted_average_cost == Decimal("4")
        assert posting.inventory.last_cost == Decimal("4")

    def test_weighted_average(self, db_session: Session):
        inv = create_test_inventory(db_session, on_hand=10, weighted_average_cost=Decimal("2.00"))
        posting = InventoryLedger(db_session).apply_delta(
            inv.id, on_hand_delta=30, unit_cost=Decimal("6.00"), transaction_type="receipt"
        )
        # (10 * 2 + 30 * 6) / 40 = 5
        assert posting.inventory.weighted_average_cost == Decimal("5")
        assert posting.inventory.last_cost == Decimal("6")

    def test_outbound_delta_keeps_cost(self, db_session: Session):
        inv = create_test_inventory(db_session, on_hand=10, weighted_average_cost=Decimal("3.00"))
        posting = InventoryLedger(db_session).apply_delta(
            inv.id, on_hand_delta=-4, unit_cost=Decimal("9.00"), transaction_type="adjustment"
        )
        assert posting.inventory.weighted_average_cost == Decimal("3")


class TestGetOrCreate:
    def test_creates_empty_record(self, db_session: Session):
        product = create_test_product(db_session)
        inv = InventoryLedger(db_session).get_or_create_inventory(product.id)

        assert inv.location == "MAIN"
        assert to_decimal(inv.quantity_on_hand) == 0
        assert to_decimal(inv.quantity_allocated) == 0
        assert to_decimal(inv.quantity_available) == 0

    def test_returns_existing(self, db_session: Session):
        inv = create_test_inventory(db_session, on_hand=3)
        found = InventoryLedger(db_session).get_or_create_inventory(inv.product_id)
        assert found.id == inv.id
        assert db_session.query(Inventory).count() == 1

    def test_unknown_product(self, db_session: Session):
        with pytest.raises(NotFoundError):
            InventoryLedger(db_session).get_or_create_inventory(424242)


class TestGetOrCreateRace:
    """Another creator inserts the record between our lookup and our insert"""

    def test_loser_rereads_winner(self, db_session: Session, monkeypatch):
        winner = create_test_inventory(db_session, on_hand=7)
        ledger = InventoryLedger(db_session)
        real_find = ledger.find_inventory
        calls = []

        def find_after_race(product_id, location=None):
            calls.append(product_id)
            # The first lookup runs before the other creator commits
            return None if len(calls) == 1 else real_find(product_id, location)

        monkeypatch.setattr(ledger, "find_inventory", find_after_race)

        inv = ledger.get_or_create_inventory(winner.product_id)

        assert inv.id == winner.id
        assert len(calls) == 2
        assert db_session.query(Inventory).count() == 1

    def test_gives_up_after_max_retries(self, db_session: Session, monkeypatch):
        existing = create_test_inventory(db_session)
        monkeypatch.setattr(settings, "LEDGER_MAX_RETRIES", 2)
        ledger = InventoryLedger(db_session)
        calls = []

        def never_found(product_id, location=None):
            calls.append(product_id)
            return None

        monkeypatch.setattr(ledger, "find_inventory", never_found)

        with pytest.raises(ConcurrencyError) as exc_info:
            ledger.get_or_create_inventory(existing.product_id)

        assert len(calls) == 2
        assert exc_info.value.details["product_id"] == existing.product_id
        # Failed inserts were rolled back to their savepoints
        assert db_session.query(Inventory).count() == 1


class TestAllocation:
    def test_allocate_and_release(self, db_session: Session):
        inv = create_test_inventory(db_session, on_hand=50)
        ledger = InventoryLedger(db_session)

        ledger.allocate(inv.id, 20, reference_type="sales_order", reference_id=1)
        posting = ledger.release(inv.id, 5)

        assert posting.inventory.quantity_allocated == Decimal("15")
        assert posting.inventory.quantity_available == Decimal("35")
        assert posting.transaction.transaction_type == "allocation"

    def test_non_positive_allocation_rejected(self, db_session: Session):
        inv = create_test_inventory(db_session)
        with pytest.raises(ValidationError):
            InventoryLedger(db_session).allocate(inv.id, 0)

    def test_release_more_than_allocated(self, db_session: Session):
        inv = create_test_inventory(db_session, on_hand=10, allocated=2)
        with pytest.raises(NegativeResultError):
            InventoryLedger(db_session).release(inv.id, 3)


class TestDeleteInventory:
    def test_delete_untouched_record(self, db_session: Session):
        inv = create_test_inventory(db_session, on_hand=0)
        InventoryLedger(db_session).delete_inventory(inv.id)
        assert db_session.query(Inventory).count() == 0

    def test_delete_blocked_by_history(self, db_session: Session):
        inv = create_test_inventory(db_session, on_hand=0)
        ledger = InventoryLedger(db_session)
        ledger.apply_delta(inv.id, on_hand_delta=1, transaction_type="adjustment")

        with pytest.raises(InvalidStateError) as exc_info:
            ledger.delete_inventory(inv.id)
        assert exc_info.value.details["transactions"] == 1


class TestLowStock:
    def test_lists_records_at_or_below_reorder_point(self, db_session: Session):
        low = create_test_product(db_session, sku="LOW", reorder_point=Decimal("10"), reorder_quantity=Decimal("50"))
        ok = create_test_product(db_session, sku="OK", reorder_point=Decimal("10"))
        no_policy = create_test_product(db_session, sku="NOPOLICY")
        create_test_inventory(db_session, low, on_hand=12, allocated=4)
        create_test_inventory(db_session, ok, on_hand=30)
        create_test_inventory(db_session, no_policy, on_hand=0)

        items = low_stock(db_session)

        assert [i["sku"] for i in items] == ["LOW"]
        assert items[0]["quantity_available"] == Decimal("8")
        assert items[0]["shortfall"] == Decimal("2")
