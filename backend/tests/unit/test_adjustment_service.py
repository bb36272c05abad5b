"""
Unit Tests for the Adjustment Processor

Batches are all-or-nothing at validation: any bad line means zero lines and
zero ledger movements.
"""
import pytest
from decimal import Decimal

from sqlalchemy.orm import Session

from stockledger.exceptions import (
    DuplicateTargetError,
    NegativeResultError,
    NotFoundError,
    PartialCommitError,
    ValidationError,
)
from stockledger.models.adjustment import InventoryAdjustment, InventoryAdjustmentLine
from stockledger.models.inventory import InventoryTransaction
from stockledger.schemas.adjustment import AdjustmentLineCreate
from stockledger.services.adjustment_service import AdjustmentProcessor
from stockledger.services.inventory_ledger import InventoryLedger

from tests.factories import create_test_inventory


def _line(inv, reason="physical_count", **kwargs):
    return AdjustmentLineCreate(inventory_id=inv.id, reason_code=reason, **kwargs)


def _nothing_written(db):
    return (
        db.query(InventoryAdjustment).count() == 0
        and db.query(InventoryAdjustmentLine).count() == 0
        and db.query(InventoryTransaction).count() == 0
    )


class TestLineSchema:
    def test_requires_one_quantity_form(self):
        with pytest.raises(ValueError):
            AdjustmentLineCreate(inventory_id=1, reason_code="other")

    def test_rejects_both_quantity_forms(self):
        with pytest.raises(ValueError):
            AdjustmentLineCreate(inventory_id=1, reason_code="other",
                                 adjustment_quantity=Decimal("1"), new_quantity=Decimal("2"))


class TestValidation:
    def test_delta_and_new_quantity_are_convertible(self, db_session: Session):
        a = create_test_inventory(db_session, on_hand=40)
        b = create_test_inventory(db_session, on_hand=40)

        validated = AdjustmentProcessor(db_session).validate_batch([
            _line(a, adjustment_quantity=Decimal("-15")),
            _line(b, new_quantity=Decimal("55")),
        ])

        assert (validated[0].previous_quantity, validated[0].new_quantity) == (Decimal("40"), Decimal("25"))
        assert validated[1].adjustment_quantity == Decimal("15")

    def test_missing_reason_code(self, db_session: Session):
        inv = create_test_inventory(db_session)
        with pytest.raises(ValidationError) as exc_info:
            AdjustmentProcessor(db_session).create_adjustment([_line(inv, reason=None, adjustment_quantity=1)])
        assert exc_info.value.details["field"] == "reason_code"
        assert _nothing_written(db_session)

    def test_unknown_reason_code(self, db_session: Session):
        inv = create_test_inventory(db_session)
        with pytest.raises(ValidationError):
            AdjustmentProcessor(db_session).create_adjustment([_line(inv, reason="gremlins", adjustment_quantity=1)])
        assert _nothing_written(db_session)

    def test_all_zero_batch(self, db_session: Session):
        inv = create_test_inventory(db_session, on_hand=12)
        with pytest.raises(ValidationError):
            AdjustmentProcessor(db_session).create_adjustment([_line(inv, new_quantity=Decimal("12"))])
        assert _nothing_written(db_session)

    def test_duplicate_target(self, db_session: Session):
        inv = create_test_inventory(db_session)
        with pytest.raises(DuplicateTargetError) as exc_info:
            AdjustmentProcessor(db_session).create_adjustment([
                _line(inv, adjustment_quantity=1),
                _line(inv, adjustment_quantity=2),
            ])
        assert exc_info.value.details["line_indexes"] == [0, 1]
        assert isinstance(exc_info.value, ValidationError)

    def test_negative_result(self, db_session: Session):
        inv = create_test_inventory(db_session, on_hand=3)
        with pytest.raises(NegativeResultError):
            AdjustmentProcessor(db_session).create_adjustment([_line(inv, adjustment_quantity=-4)])

    def test_one_bad_line_rejects_batch(self, db_session: Session):
        good = create_test_inventory(db_session, on_hand=10)
        bad = create_test_inventory(db_session, on_hand=1)
        with pytest.raises(NegativeResultError):
            AdjustmentProcessor(db_session).create_adjustment([
                _line(good, adjustment_quantity=5),
                _line(bad, adjustment_quantity=-2),
            ])
        db_session.refresh(good)
        assert good.quantity_on_hand == Decimal("10")
        assert _nothing_written(db_session)

    def test_unknown_inventory(self, db_session: Session):
        with pytest.raises(NotFoundError):
            AdjustmentProcessor(db_session).validate_batch([
                AdjustmentLineCreate(inventory_id=777, reason_code="other", adjustment_quantity=1)
            ])


class TestCreateAdjustment:
    def test_header_lines_and_ledger(self, db_session: Session):
        a = create_test_inventory(db_session, on_hand=20)
        b = create_test_inventory(db_session, on_hand=5)

        adjustment = AdjustmentProcessor(db_session, user_id="counter").create_adjustment(
            [_line(a, new_quantity=Decimal("18")), _line(b, reason="theft", adjustment_quantity=-5)],
            notes="Cycle count",
        )

        assert adjustment.status == "completed"
        assert adjustment.completed_at is not None
        assert adjustment.user_id == "counter"
        assert adjustment.adjustment_number == "ADJ-000001"
        assert [l.line_number for l in adjustment.lines] == [1, 2]
        assert [l.adjustment_quantity for l in adjustment.lines] == [Decimal("-2"), Decimal("-5")]
        for line in adjustment.lines:
            txn = db_session.query(InventoryTransaction).filter(
                InventoryTransaction.id == line.inventory_transaction_id
            ).one()
            assert txn.reason_code == line.reason_code
            assert txn.new_on_hand == line.new_quantity
        db_session.refresh(b)
        assert b.quantity_on_hand == Decimal("0")

    def test_zero_lines_dropped_after_validation(self, db_session: Session):
        a = create_test_inventory(db_session, on_hand=20)
        b = create_test_inventory(db_session, on_hand=5)

        adjustment = AdjustmentProcessor(db_session).create_adjustment([
            _line(a, adjustment_quantity=0),
            _line(b, adjustment_quantity=3),
        ])

        assert len(adjustment.lines) == 1
        assert adjustment.lines[0].inventory_id == b.id

    def test_numbers_increase(self, db_session: Session):
        inv = create_test_inventory(db_session, on_hand=20)
        processor = AdjustmentProcessor(db_session)

        first = processor.create_adjustment([_line(inv, adjustment_quantity=1)])
        second = processor.create_adjustment([_line(inv, adjustment_quantity=1)])

        assert (first.adjustment_number, second.adjustment_number) == ("ADJ-000001", "ADJ-000002")


class TestLedgerFailureAfterValidation:
    """Stock moves between validation and apply"""

    def _racing_ledger(self, db_session, victim_id):
        """Ledger that drains the victim record just before its line is applied."""
        ledger = InventoryLedger(db_session)
        original = ledger.apply_delta

        def apply_delta(inventory_id, *args, **kwargs):
            if inventory_id == victim_id and kwargs.get("transaction_type") == "adjustment":
                original(inventory_id, on_hand_delta=-10, transaction_type="shipment")
            return original(inventory_id, *args, **kwargs)

        ledger.apply_delta = apply_delta
        return ledger

    def test_atomic_batch_propagates(self, db_session: Session):
        a = create_test_inventory(db_session, on_hand=10)
        b = create_test_inventory(db_session, on_hand=10)
        processor = AdjustmentProcessor(db_session, ledger=self._racing_ledger(db_session, b.id))

        with pytest.raises(NegativeResultError):
            processor.create_adjustment([_line(a, adjustment_quantity=-1), _line(b, adjustment_quantity=-5)])

    def test_non_atomic_reports_partial_commit(self, db_session: Session, non_atomic_adjustments):
        a = create_test_inventory(db_session, on_hand=10)
        b = create_test_inventory(db_session, on_hand=10)
        processor = AdjustmentProcessor(db_session, ledger=self._racing_ledger(db_session, b.id))

        with pytest.raises(PartialCommitError) as exc_info:
            processor.create_adjustment([_line(a, adjustment_quantity=-1), _line(b, adjustment_quantity=-5)])

        err = exc_info.value
        assert err.failed_index == 1
        assert len(err.succeeded) == 1
        assert isinstance(err.cause, NegativeResultError)

        applied = db_session.query(InventoryAdjustmentLine).one()
        assert applied.id == err.succeeded[0]
        assert applied.inventory_id == a.id
        assert applied.adjustment.status == "completed"
        db_session.refresh(a)
        assert a.quantity_on_hand == Decimal("9")


class TestHistory:
    def test_history_per_record(self, db_session: Session):
        inv = create_test_inventory(db_session, on_hand=10)
        other = create_test_inventory(db_session, on_hand=10)
        processor = AdjustmentProcessor(db_session)
        processor.create_adjustment([_line(inv, adjustment_quantity=1)])
        processor.create_adjustment([_line(inv, adjustment_quantity=2), _line(other, adjustment_quantity=3)])

        history = processor.list_adjustment_history(inv.id)

        assert [h.adjustment_quantity for h in history] == [Decimal("2"), Decimal("1")]

    def test_get_adjustment(self, db_session: Session):
        inv = create_test_inventory(db_session, on_hand=10)
        processor = AdjustmentProcessor(db_session)
        created = processor.create_adjustment([_line(inv, adjustment_quantity=1)])

        assert processor.get_adjustment(created.id).adjustment_number == created.adjustment_number
        with pytest.raises(NotFoundError):
            processor.get_adjustment(created.id + 100)
