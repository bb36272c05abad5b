"""
Adjustment Processor

Manual, reason-coded corrections to on-hand quantities.

A batch is validated as a whole before anything is written: one bad line
(missing or unknown reason code, duplicate target, negative result) rejects
every line. After validation the header is written as draft, lines are
applied through the inventory ledger in submitted order, and the header is
completed.

If a ledger update fails after validation (e.g. stock moved underneath us):
- ADJUSTMENT_ATOMIC_BATCH=True: the error propagates and the caller's
  rollback discards the whole batch.
- ADJUSTMENT_ATOMIC_BATCH=False: each line runs in its own savepoint, the
  applied lines are kept, the header is completed with them, and
  PartialCommitError names the lines that succeeded.
"""
from datetime import datetime
from decimal import Decimal
from typing import List, NamedTuple, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from stockledger.core.config import settings
from stockledger.exceptions import (
    DuplicateTargetError,
    NegativeResultError,
    NotFoundError,
    PartialCommitError,
    StockLedgerException,
    ValidationError,
)
from stockledger.logging_config import get_logger
from stockledger.models.adjustment import InventoryAdjustment, InventoryAdjustmentLine
from stockledger.models.inventory import Inventory
from stockledger.schemas.adjustment import AdjustmentLineCreate, AdjustmentStatus, ReasonCode
from stockledger.schemas.inventory import TransactionType
from stockledger.services.document_numbering import next_adjustment_number
from stockledger.services.inventory_ledger import InventoryLedger, to_decimal

logger = get_logger(__name__)

VALID_REASON_CODES = frozenset(code.value for code in ReasonCode)


class ValidatedLine(NamedTuple):
    """An adjustment line after validation, with both quantity forms resolved"""
    index: int
    inventory_id: int
    reason_code: str
    previous_quantity: Decimal
    adjustment_quantity: Decimal
    new_quantity: Decimal
    notes: Optional[str]


class AdjustmentProcessor:
    """
    Validate and apply adjustment batches.

    IMPORTANT: This service does NOT commit. Caller is responsible for commit,
    including after a PartialCommitError when ADJUSTMENT_ATOMIC_BATCH is off.
    """

    def __init__(self, db: Session, user_id: Optional[str] = None, ledger: Optional[InventoryLedger] = None):
        self.db = db
        self.user_id = user_id
        self.ledger = ledger or InventoryLedger(db, user_id=user_id)

    # =========================================================================
    # Validation
    # =========================================================================

    def validate_batch(self, lines: List[AdjustmentLineCreate]) -> List[ValidatedLine]:
        """
        Validate every line and resolve delta/new-quantity pairs.

        Reads current on-hand for each target; writes nothing.

        Raises:
            ValidationError: empty batch, missing/unknown reason, all-zero batch
            DuplicateTargetError: an inventory record appears twice
            NotFoundError: a target inventory record does not exist
            NegativeResultError: a resulting quantity would be below zero
        """
        if not lines:
            raise ValidationError("An adjustment needs at least one line", field="lines")

        seen = {}
        for index, line in enumerate(lines):
            if line.inventory_id in seen:
                raise DuplicateTargetError(line.inventory_id, line_indexes=[seen[line.inventory_id], index])
            seen[line.inventory_id] = index

        validated = []
        for index, line in enumerate(lines):
            reason = (line.reason_code or "").strip()
            if not reason:
                raise ValidationError(
                    f"Line {index + 1}: reason code is required",
                    field="reason_code",
                    line_index=index,
                )
            if reason not in VALID_REASON_CODES:
                raise ValidationError(
                    f"Line {index + 1}: unknown reason code '{reason}'",
                    field="reason_code",
                    value=reason,
                    line_index=index,
                    details={"allowed": sorted(VALID_REASON_CODES)},
                )

            inventory = self.db.query(Inventory).filter(Inventory.id == line.inventory_id).first()
            if not inventory:
                raise NotFoundError("Inventory", line.inventory_id)

            previous = to_decimal(inventory.quantity_on_hand)
            if line.new_quantity is not None:
                new_quantity = to_decimal(line.new_quantity)
                delta = new_quantity - previous
            else:
                delta = to_decimal(line.adjustment_quantity)
                new_quantity = previous + delta

            if new_quantity < 0:
                raise NegativeResultError(
                    f"Line {index + 1}: new quantity {new_quantity} would be negative "
                    f"(on hand {previous}, adjustment {delta})",
                    quantity_field="new_quantity",
                    current=previous,
                    delta=delta,
                    details={"line_index": index, "inventory_id": line.inventory_id},
                )

            validated.append(ValidatedLine(
                index=index,
                inventory_id=line.inventory_id,
                reason_code=reason,
                previous_quantity=previous,
                adjustment_quantity=delta,
                new_quantity=new_quantity,
                notes=line.notes,
            ))

        if not any(v.adjustment_quantity != 0 for v in validated):
            raise ValidationError("No quantity changes to save", field="lines")

        return validated

    # =========================================================================
    # Commit
    # =========================================================================

    def create_adjustment(self, lines: List[AdjustmentLineCreate], notes: Optional[str] = None) -> InventoryAdjustment:
        """
        Validate, then write header + lines and apply each delta in order.

        Zero-delta lines are dropped once the batch has passed validation.
        """
        validated = [v for v in self.validate_batch(lines) if v.adjustment_quantity != 0]

        adjustment = InventoryAdjustment(
            adjustment_number=next_adjustment_number(self.db),
            adjustment_date=datetime.utcnow(),
            status=AdjustmentStatus.DRAFT.value,
            notes=notes,
            user_id=self.user_id,
        )
        self.db.add(adjustment)
        self.db.flush()

        if settings.ADJUSTMENT_ATOMIC_BATCH:
            for line_number, v in enumerate(validated, start=1):
                self._apply_line(adjustment, line_number, v)
        else:
            self._apply_lines_independently(adjustment, validated)

        adjustment.status = AdjustmentStatus.COMPLETED.value
        adjustment.completed_at = datetime.utcnow()
        self.db.flush()

        logger.info(
            f"Adjustment {adjustment.adjustment_number} completed with {len(validated)} line(s)",
            extra={"adjustment_id": adjustment.id, "user_id": self.user_id},
        )
        return adjustment

    def _apply_line(self, adjustment: InventoryAdjustment, line_number: int, v: ValidatedLine) -> InventoryAdjustmentLine:
        posting = self.ledger.apply_delta(
            v.inventory_id,
            on_hand_delta=v.adjustment_quantity,
            transaction_type=TransactionType.ADJUSTMENT.value,
            reference_type="inventory_adjustment",
            reference_id=adjustment.id,
            reason_code=v.reason_code,
            notes=v.notes,
        )
        if posting.transaction.previous_on_hand != v.previous_quantity:
            logger.warning(
                f"Adjustment {adjustment.adjustment_number} line {line_number}: on hand moved from "
                f"{v.previous_quantity} to {posting.transaction.previous_on_hand} since validation"
            )

        line = InventoryAdjustmentLine(
            adjustment_id=adjustment.id,
            inventory_id=v.inventory_id,
            line_number=line_number,
            previous_quantity=v.previous_quantity,
            adjustment_quantity=v.adjustment_quantity,
            new_quantity=v.new_quantity,
            reason_code=v.reason_code,
            line_notes=v.notes,
            inventory_transaction_id=posting.transaction.id,
        )
        self.db.add(line)
        self.db.flush()
        return line

    def _apply_lines_independently(self, adjustment: InventoryAdjustment, validated: List[ValidatedLine]) -> None:
        succeeded = []
        for line_number, v in enumerate(validated, start=1):
            savepoint = self.db.begin_nested()
            try:
                line = self._apply_line(adjustment, line_number, v)
                savepoint.commit()
                succeeded.append(line.id)
            except (SQLAlchemyError, StockLedgerException) as e:
                savepoint.rollback()
                logger.error(
                    f"Adjustment {adjustment.adjustment_number}: line {line_number} failed after "
                    f"{len(succeeded)} applied: {e}",
                    extra={"adjustment_id": adjustment.id, "failed_index": v.index},
                )
                if not succeeded:
                    # Nothing applied; the caller rolls back the empty header
                    raise
                adjustment.status = AdjustmentStatus.COMPLETED.value
                adjustment.completed_at = datetime.utcnow()
                self.db.flush()
                raise PartialCommitError(
                    f"Adjustment {adjustment.adjustment_number}: {len(succeeded)} of "
                    f"{len(validated)} line(s) applied",
                    succeeded=succeeded,
                    failed_index=v.index,
                    cause=e,
                    details={"adjustment_id": adjustment.id},
                ) from e

    # =========================================================================
    # Reads
    # =========================================================================

    def get_adjustment(self, adjustment_id: int) -> InventoryAdjustment:
        adjustment = self.db.query(InventoryAdjustment).filter(InventoryAdjustment.id == adjustment_id).first()
        if not adjustment:
            raise NotFoundError("Adjustment", adjustment_id)
        return adjustment

    def list_adjustment_history(self, inventory_id: int, limit: int = 50) -> List[InventoryAdjustmentLine]:
        """Completed adjustment lines for one inventory record, newest first."""
        return (
            self.db.query(InventoryAdjustmentLine)
            .join(InventoryAdjustment, InventoryAdjustmentLine.adjustment_id == InventoryAdjustment.id)
            .filter(
                InventoryAdjustmentLine.inventory_id == inventory_id,
                InventoryAdjustment.status == AdjustmentStatus.COMPLETED.value,
            )
            .order_by(InventoryAdjustment.adjustment_date.desc(), InventoryAdjustmentLine.id.desc())
            .limit(limit)
            .all()
        )
