"""
Inventory Ledger

The single choke point for on-hand and allocated quantities. Receiving,
adjustments and the optional invoice deduction hook all go through
InventoryLedger.apply_delta; nothing else writes those columns.

apply_delta never reads a quantity and writes it back. It issues one UPDATE:

    SET on_hand   = on_hand + :d,
        allocated = allocated + :a,
        available = max(0, (on_hand + :d) - (allocated + :a))
    WHERE id = :id AND on_hand + :d >= 0 AND allocated + :a >= 0
    RETURNING on_hand, allocated

so concurrent receipts and adjustments against the same record serialize on
the row lock and neither can lose the other's update. The returned values
give the audit row exact previous/new quantities.

Usage:
    ledger = InventoryLedger(db, user_id="u-17")
    posting = ledger.apply_delta(inv.id, on_hand_delta=Decimal("-10"),
                                 transaction_type="adjustment", reason_code="damaged")
    db.commit()  # Caller commits
"""
from datetime import datetime
from decimal import Decimal
from typing import List, NamedTuple, Optional

from sqlalchemy import Numeric, case, func, literal, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from stockledger.core.config import settings
from stockledger.exceptions import (
    ConcurrencyError,
    InvalidStateError,
    NegativeResultError,
    NotFoundError,
    ValidationError,
)
from stockledger.logging_config import get_logger
from stockledger.models.adjustment import InventoryAdjustmentLine
from stockledger.models.inventory import Inventory, InventoryTransaction
from stockledger.models.product import Product
from stockledger.models.purchase_order import InventoryReceipt
from stockledger.schemas.inventory import TransactionType

logger = get_logger(__name__)

ZERO = Decimal("0")


def to_decimal(value) -> Decimal:
    """Coerce int/float/str/Decimal quantities without float artefacts."""
    if value is None:
        return ZERO
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


def _qty(value: Decimal):
    return literal(value, Numeric(18, 4))


class LedgerPosting(NamedTuple):
    """Result of one apply_delta call"""
    inventory: Inventory
    transaction: InventoryTransaction


class InventoryLedger:
    """
    Atomic delta-apply over inventory records.

    IMPORTANT: This service does NOT commit. Caller is responsible for commit.
    """

    def __init__(self, db: Session, user_id: Optional[str] = None):
        self.db = db
        self.user_id = user_id

    # =========================================================================
    # Reads
    # =========================================================================

    def get_inventory(self, inventory_id: int) -> Inventory:
        inventory = self.db.query(Inventory).filter(Inventory.id == inventory_id).first()
        if not inventory:
            raise NotFoundError("Inventory", inventory_id)
        return inventory

    def find_inventory(self, product_id: int, location: Optional[str] = None) -> Optional[Inventory]:
        location = location or settings.DEFAULT_LOCATION
        return self.db.query(Inventory).filter(
            Inventory.product_id == product_id,
            Inventory.location == location,
        ).first()

    def get_transactions(self, inventory_id: int, limit: int = 100) -> List[InventoryTransaction]:
        """Most recent ledger movements for a record, newest first."""
        self.get_inventory(inventory_id)
        return (
            self.db.query(InventoryTransaction)
            .filter(InventoryTransaction.inventory_id == inventory_id)
            .order_by(InventoryTransaction.id.desc())
            .limit(limit)
            .all()
        )

    def get_or_create_inventory(self, product_id: int, location: Optional[str] = None) -> Inventory:
        """
        Return the product's inventory record at a location, creating an
        empty one (on-hand 0, allocated 0) if none exists yet.

        Two receivers may try to create the same record at once; the insert
        runs in a savepoint and the loser re-reads the winner's row.

        Raises:
            NotFoundError: product does not exist
            ConcurrencyError: creation kept racing past LEDGER_MAX_RETRIES
        """
        location = location or settings.DEFAULT_LOCATION

        for attempt in range(1, settings.LEDGER_MAX_RETRIES + 1):
            inventory = self.find_inventory(product_id, location)
            if inventory:
                return inventory

            product = self.db.query(Product).filter(Product.id == product_id).first()
            if not product:
                raise NotFoundError("Product", product_id)

            savepoint = self.db.begin_nested()
            try:
                inventory = Inventory(
                    product_id=product_id,
                    location=location,
                    quantity_on_hand=ZERO,
                    quantity_allocated=ZERO,
                    quantity_available=ZERO,
                    sales_price=product.sales_price,
                )
                self.db.add(inventory)
                self.db.flush()
                savepoint.commit()
                logger.info(
                    f"Created inventory record {inventory.id} for product {product.sku} at {location}"
                )
                return inventory
            except IntegrityError:
                savepoint.rollback()
                logger.warning(
                    f"Inventory for product {product_id} at {location} created concurrently "
                    f"(attempt {attempt}/{settings.LEDGER_MAX_RETRIES})"
                )

        raise ConcurrencyError(
            f"Could not create inventory for product {product_id} at {location}",
            details={"product_id": product_id, "location": location},
        )

    # =========================================================================
    # The delta choke point
    # =========================================================================

    def apply_delta(
        self,
        inventory_id: int,
        on_hand_delta=ZERO,
        allocated_delta=ZERO,
        *,
        transaction_type: str,
        reference_type: Optional[str] = None,
        reference_id: Optional[int] = None,
        reason_code: Optional[str] = None,
        unit_cost: Optional[Decimal] = None,
        notes: Optional[str] = None,
    ) -> LedgerPosting:
        """
        Apply signed deltas to on-hand and allocated and record the movement.

        When unit_cost is given with a positive on-hand delta (a receipt),
        weighted average cost and last cost are rolled forward in the same
        statement:

            wac' = (on_hand * wac + delta * unit_cost) / (on_hand + delta)

        Raises:
            NotFoundError: record does not exist
            NegativeResultError: on-hand or allocated would go below zero
        """
        on_hand_delta = to_decimal(on_hand_delta)
        allocated_delta = to_decimal(allocated_delta)
        if unit_cost is not None:
            unit_cost = to_decimal(unit_cost)

        # Pending objects (e.g. a just-created record) must be in the table first
        self.db.flush()

        new_on_hand = Inventory.quantity_on_hand + _qty(on_hand_delta)
        new_allocated = Inventory.quantity_allocated + _qty(allocated_delta)
        values = {
            Inventory.quantity_on_hand: new_on_hand,
            Inventory.quantity_allocated: new_allocated,
            Inventory.quantity_available: case(
                (new_on_hand - new_allocated > 0, new_on_hand - new_allocated),
                else_=_qty(ZERO),
            ),
            Inventory.updated_at: datetime.utcnow(),
        }
        if unit_cost is not None and on_hand_delta > 0:
            current_cost = func.coalesce(Inventory.weighted_average_cost, _qty(unit_cost))
            values[Inventory.weighted_average_cost] = case(
                (
                    new_on_hand > 0,
                    (Inventory.quantity_on_hand * current_cost + _qty(on_hand_delta) * _qty(unit_cost))
                    / new_on_hand,
                ),
                else_=_qty(unit_cost),
            )
            values[Inventory.last_cost] = _qty(unit_cost)

        stmt = (
            update(Inventory)
            .where(Inventory.id == inventory_id)
            .where(new_on_hand >= 0)
            .where(new_allocated >= 0)
            .values(values)
            .returning(Inventory.quantity_on_hand, Inventory.quantity_allocated)
            .execution_options(synchronize_session=False)
        )
        row = self.db.execute(stmt).first()

        if row is None:
            self._raise_rejected_delta(inventory_id, on_hand_delta, allocated_delta)

        result_on_hand = to_decimal(row[0])
        result_allocated = to_decimal(row[1])

        inventory = (
            self.db.query(Inventory)
            .populate_existing()
            .filter(Inventory.id == inventory_id)
            .one()
        )

        txn = InventoryTransaction(
            inventory_id=inventory.id,
            product_id=inventory.product_id,
            transaction_type=transaction_type,
            reference_type=reference_type,
            reference_id=reference_id,
            previous_on_hand=result_on_hand - on_hand_delta,
            on_hand_delta=on_hand_delta,
            new_on_hand=result_on_hand,
            previous_allocated=result_allocated - allocated_delta,
            allocated_delta=allocated_delta,
            new_allocated=result_allocated,
            reason_code=reason_code,
            unit_cost=unit_cost,
            notes=notes,
            created_by=self.user_id,
        )
        self.db.add(txn)
        self.db.flush()

        logger.info(
            f"Ledger {transaction_type} on inventory {inventory.id}: "
            f"on_hand {txn.previous_on_hand} -> {result_on_hand} ({on_hand_delta:+}), "
            f"allocated {txn.previous_allocated} -> {result_allocated} ({allocated_delta:+})",
            extra={
                "inventory_id": inventory.id,
                "transaction_id": txn.id,
                "reference_type": reference_type,
                "reference_id": reference_id,
            },
        )
        return LedgerPosting(inventory, txn)

    def _raise_rejected_delta(self, inventory_id: int, on_hand_delta: Decimal, allocated_delta: Decimal):
        current = (
            self.db.query(Inventory)
            .populate_existing()
            .filter(Inventory.id == inventory_id)
            .first()
        )
        if current is None:
            raise NotFoundError("Inventory", inventory_id)

        on_hand = to_decimal(current.quantity_on_hand)
        if on_hand + on_hand_delta < 0:
            raise NegativeResultError(
                f"Inventory {inventory_id} has {on_hand} on hand; "
                f"applying {on_hand_delta} would leave {on_hand + on_hand_delta}",
                quantity_field="quantity_on_hand",
                current=on_hand,
                delta=on_hand_delta,
            )
        allocated = to_decimal(current.quantity_allocated)
        raise NegativeResultError(
            f"Inventory {inventory_id} has {allocated} allocated; "
            f"applying {allocated_delta} would leave {allocated + allocated_delta}",
            quantity_field="quantity_allocated",
            current=allocated,
            delta=allocated_delta,
        )

    # =========================================================================
    # Allocation wrappers
    # =========================================================================

    def allocate(self, inventory_id: int, quantity, *, reference_type: Optional[str] = None,
                 reference_id: Optional[int] = None, notes: Optional[str] = None) -> LedgerPosting:
        """Reserve stock. Over-allocation is allowed; available floors at zero."""
        quantity = to_decimal(quantity)
        if quantity <= 0:
            raise ValidationError("Allocation quantity must be positive", field="quantity", value=quantity)
        return self.apply_delta(
            inventory_id, ZERO, quantity,
            transaction_type=TransactionType.ALLOCATION.value,
            reference_type=reference_type, reference_id=reference_id, notes=notes,
        )

    def release(self, inventory_id: int, quantity, *, reference_type: Optional[str] = None,
                reference_id: Optional[int] = None, notes: Optional[str] = None) -> LedgerPosting:
        quantity = to_decimal(quantity)
        if quantity <= 0:
            raise ValidationError("Release quantity must be positive", field="quantity", value=quantity)
        return self.apply_delta(
            inventory_id, ZERO, -quantity,
            transaction_type=TransactionType.ALLOCATION.value,
            reference_type=reference_type, reference_id=reference_id, notes=notes,
        )

    # =========================================================================
    # Lifecycle / read models
    # =========================================================================

    def delete_inventory(self, inventory_id: int) -> None:
        """
        Delete an inventory record that has never moved.

        Raises:
            InvalidStateError: any ledger transaction, receipt or adjustment
                line references the record
        """
        inventory = self.get_inventory(inventory_id)

        history = {
            "transactions": self.db.query(InventoryTransaction)
            .filter(InventoryTransaction.inventory_id == inventory_id).count(),
            "receipts": self.db.query(InventoryReceipt)
            .filter(InventoryReceipt.inventory_id == inventory_id).count(),
            "adjustment_lines": self.db.query(InventoryAdjustmentLine)
            .filter(InventoryAdjustmentLine.inventory_id == inventory_id).count(),
        }
        if any(history.values()):
            raise InvalidStateError(
                f"Inventory {inventory_id} has transaction history and cannot be deleted",
                details={"inventory_id": inventory_id, **history},
            )

        self.db.delete(inventory)
        self.db.flush()
        logger.info(f"Deleted inventory record {inventory_id}")


def low_stock(db: Session) -> List[dict]:
    """
    Inventory records whose available quantity is at or below the product's
    reorder point. Products without a reorder point are skipped.
    """
    rows = (
        db.query(Inventory, Product)
        .join(Product, Inventory.product_id == Product.id)
        .filter(
            Product.active.is_(True),
            Product.reorder_point > 0,
            Inventory.quantity_available <= Product.reorder_point,
        )
        .order_by(Product.sku)
        .all()
    )
    items = []
    for inventory, product in rows:
        available = to_decimal(inventory.quantity_available)
        reorder_point = to_decimal(product.reorder_point)
        items.append({
            "inventory_id": inventory.id,
            "product_id": product.id,
            "sku": product.sku,
            "quantity_available": available,
            "reorder_point": reorder_point,
            "reorder_quantity": to_decimal(product.reorder_quantity),
            "shortfall": reorder_point - available,
        })
    return items
