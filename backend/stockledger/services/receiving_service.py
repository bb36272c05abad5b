"""
Receiving Reconciler

Receives goods against purchase order lines.

Received-to-date is always the sum of the line's receipt rows (voids are
negative reversal rows), never a counter on the line. Each requested
quantity is clamped to what is still open, so a line can never be received
past its ordered quantity.

Receipt rows and the inventory increase happen in the caller's transaction.
The PO status recompute runs afterwards in a savepoint; if it fails the
receipt still stands and the status is repaired by the next
refresh_purchase_order_status call.
"""
from datetime import date
from decimal import Decimal
from typing import Dict, List, Optional

from sqlalchemy import func
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from stockledger.exceptions import InvalidStateError, NotFoundError, StockLedgerException, ValidationError
from stockledger.logging_config import get_logger
from stockledger.models.purchase_order import InventoryReceipt, PurchaseOrder, PurchaseOrderLine
from stockledger.schemas.inventory import TransactionType
from stockledger.schemas.purchasing import POStatus, ReceiveLineRequest, RECEIVABLE_PO_STATUSES
from stockledger.services.inventory_ledger import InventoryLedger, ZERO, to_decimal

logger = get_logger(__name__)


def derive_po_status(current_status: str, total_ordered: Decimal, total_received: Decimal) -> str:
    """
    Status from summed quantities across all lines.

    CANCELLED is sticky. A PENDING order with nothing received stays PENDING.
    An order with no lines (total_ordered == 0) is never RECEIVED: there
    is nothing to receive, so it keeps CONFIRMED (or PENDING). receive()
    cannot reach this case since it always names an existing line.
    """
    if current_status == POStatus.CANCELLED.value:
        return current_status
    if total_ordered > 0 and total_received >= total_ordered:
        return POStatus.RECEIVED.value
    if total_received > 0:
        return POStatus.PARTIAL.value
    if current_status == POStatus.PENDING.value:
        return current_status
    return POStatus.CONFIRMED.value


class ReceivingReconciler:
    """
    Receive, void and status-recompute for purchase orders.

    IMPORTANT: This service does NOT commit. Caller is responsible for commit.
    """

    def __init__(self, db: Session, user_id: Optional[str] = None, ledger: Optional[InventoryLedger] = None):
        self.db = db
        self.user_id = user_id
        self.ledger = ledger or InventoryLedger(db, user_id=user_id)

    # =========================================================================
    # Reads
    # =========================================================================

    def get_received_quantity(self, po_line_id: int) -> Decimal:
        """Net quantity received against a line (receipts minus reversals)."""
        total = self.db.query(func.coalesce(func.sum(InventoryReceipt.qty_received), 0)).filter(
            InventoryReceipt.po_line_id == po_line_id
        ).scalar()
        return to_decimal(total)

    def _get_purchase_order(self, po_id: int) -> PurchaseOrder:
        po = self.db.query(PurchaseOrder).filter(PurchaseOrder.id == po_id).first()
        if not po:
            raise NotFoundError("Purchase order", po_id)
        return po

    def get_receiving_lines(self, po_id: int) -> List[dict]:
        """Ordered, received and remaining per line of a purchase order."""
        po = self._get_purchase_order(po_id)
        result = []
        for line in po.lines:
            ordered = to_decimal(line.quantity)
            received = self.get_received_quantity(line.id)
            result.append({
                "po_line_id": line.id,
                "product_id": line.product_id,
                "line_number": line.line_number,
                "quantity_ordered": ordered,
                "quantity_received": received,
                "quantity_remaining": max(ZERO, ordered - received),
                "unit_price": to_decimal(line.unit_price),
            })
        return result

    # =========================================================================
    # Receive
    # =========================================================================

    def receive(
        self,
        lines: List[ReceiveLineRequest],
        *,
        receive_date: Optional[date] = None,
        reference_number: Optional[str] = None,
        notes: Optional[str] = None,
        location: Optional[str] = None,
    ) -> dict:
        """
        Receive quantities against PO lines.

        Per line: received-to-date is summed from receipts, the request is
        clamped to max(0, ordered - received), and a positive result inserts
        a receipt and raises on-hand through the ledger. Zero or negative
        requests are skipped.

        Raises:
            NotFoundError: a PO line or its order no longer exists
            InvalidStateError: the order is PENDING or CANCELLED
        """
        if not lines:
            raise ValidationError("At least one line is required", field="lines")

        receive_date = receive_date or date.today()
        results = []
        touched_po_ids: List[int] = []

        for request in lines:
            requested = to_decimal(request.qty_to_receive)

            # Lock the line so concurrent receivers compute remaining serially
            line = (
                self.db.query(PurchaseOrderLine)
                .filter(PurchaseOrderLine.id == request.po_line_id)
                .with_for_update()
                .first()
            )
            if not line:
                raise NotFoundError("Purchase order line", request.po_line_id)

            po = line.purchase_order
            if po is None:
                raise NotFoundError("Purchase order", line.purchase_order_id)
            if po.status not in RECEIVABLE_PO_STATUSES:
                raise InvalidStateError(
                    f"Cannot receive against PO {po.po_number} in status {po.status}",
                    current_state=po.status,
                    allowed_states=list(RECEIVABLE_PO_STATUSES),
                )

            ordered = to_decimal(line.quantity)
            received = self.get_received_quantity(line.id)
            remaining = max(ZERO, ordered - received)
            to_receive = min(requested, remaining)

            line_result = {
                "po_line_id": line.id,
                "requested": requested,
                "received": ZERO,
                "received_to_date": received,
                "remaining": remaining,
                "receipt_id": None,
                "inventory_id": None,
            }

            if to_receive <= 0:
                if requested > 0:
                    logger.info(
                        f"PO {po.po_number} line {line.line_number}: nothing left to receive "
                        f"(requested {requested}, ordered {ordered}, received {received})"
                    )
                results.append(line_result)
                if po.id not in touched_po_ids:
                    touched_po_ids.append(po.id)
                continue

            if to_receive < requested:
                logger.info(
                    f"PO {po.po_number} line {line.line_number}: clamped receipt "
                    f"{requested} -> {to_receive}"
                )

            unit_cost = to_decimal(request.unit_cost if request.unit_cost is not None else line.unit_price)
            inventory = self.ledger.get_or_create_inventory(line.product_id, location)

            receipt = InventoryReceipt(
                po_line_id=line.id,
                product_id=line.product_id,
                inventory_id=inventory.id,
                qty_received=to_receive,
                unit_cost=unit_cost,
                total_cost=to_receive * unit_cost,
                receive_date=receive_date,
                reference_number=reference_number,
                notes=notes,
                received_by=self.user_id,
            )
            self.db.add(receipt)
            self.db.flush()

            self.ledger.apply_delta(
                inventory.id,
                on_hand_delta=to_receive,
                transaction_type=TransactionType.RECEIPT.value,
                reference_type="purchase_order",
                reference_id=po.id,
                unit_cost=unit_cost,
                notes=f"Received {to_receive} on PO {po.po_number} line {line.line_number}",
            )

            line_result.update({
                "received": to_receive,
                "received_to_date": received + to_receive,
                "remaining": remaining - to_receive,
                "receipt_id": receipt.id,
                "inventory_id": inventory.id,
            })
            results.append(line_result)
            if po.id not in touched_po_ids:
                touched_po_ids.append(po.id)

        statuses, failed = self._refresh_statuses(touched_po_ids, receive_date)

        total_received = sum((r["received"] for r in results), ZERO)
        logger.info(
            f"Received {total_received} across {len(results)} line(s)",
            extra={"purchase_order_ids": touched_po_ids, "user_id": self.user_id},
        )
        return {
            "lines": results,
            "total_received": total_received,
            "purchase_order_statuses": statuses,
            "status_update_failed": failed,
        }

    # =========================================================================
    # Status
    # =========================================================================

    def refresh_purchase_order_status(self, po_id: int, received_on: Optional[date] = None) -> str:
        """
        Recompute a PO's status from all of its lines and receipts.

        Idempotent. Sets received_date when the order becomes RECEIVED and
        clears it if a void reopens the order.
        """
        po = self._get_purchase_order(po_id)

        total_ordered = ZERO
        total_received = ZERO
        for line in po.lines:
            total_ordered += to_decimal(line.quantity)
            total_received += self.get_received_quantity(line.id)

        new_status = derive_po_status(po.status, total_ordered, total_received)
        if new_status != po.status:
            logger.info(
                f"PO {po.po_number}: {po.status} -> {new_status} "
                f"(received {total_received} of {total_ordered})"
            )
            po.status = new_status

        if new_status == POStatus.RECEIVED.value:
            if po.received_date is None:
                po.received_date = received_on or date.today()
        elif new_status != POStatus.CANCELLED.value:
            po.received_date = None

        self.db.flush()
        return po.status

    def _refresh_statuses(self, po_ids: List[int], received_on: date):
        """Recompute each PO in its own savepoint; failures are logged, not raised."""
        statuses: Dict[int, str] = {}
        failed: List[int] = []
        for po_id in po_ids:
            savepoint = self.db.begin_nested()
            try:
                statuses[po_id] = self.refresh_purchase_order_status(po_id, received_on)
                savepoint.commit()
            except (SQLAlchemyError, StockLedgerException) as e:
                savepoint.rollback()
                failed.append(po_id)
                logger.warning(
                    f"Status recompute failed for PO {po_id}; receipt kept, will retry on next read: {e}",
                    extra={"purchase_order_id": po_id},
                )
        return statuses, failed

    # =========================================================================
    # Void
    # =========================================================================

    def void_receipt(self, receipt_id: int, *, notes: Optional[str] = None) -> InventoryReceipt:
        """
        Reverse a receipt by appending a negative receipt row.

        The original row is left untouched. On-hand is reduced through the
        ledger, so a void fails with NegativeResultError once the stock has
        been consumed.

        Raises:
            NotFoundError: receipt does not exist
            InvalidStateError: receipt is itself a reversal, or already voided
        """
        original = self.db.query(InventoryReceipt).filter(InventoryReceipt.id == receipt_id).first()
        if not original:
            raise NotFoundError("Receipt", receipt_id)
        if original.reversal_of_id is not None:
            raise InvalidStateError(f"Receipt {receipt_id} is a reversal and cannot be voided")

        already = self.db.query(InventoryReceipt).filter(InventoryReceipt.reversal_of_id == receipt_id).first()
        if already:
            raise InvalidStateError(
                f"Receipt {receipt_id} was already voided by receipt {already.id}",
                current_state="voided",
            )

        line = original.po_line
        qty = to_decimal(original.qty_received)
        unit_cost = to_decimal(original.unit_cost)

        inventory_id = original.inventory_id
        if inventory_id is None:
            inventory_id = self.ledger.get_or_create_inventory(original.product_id).id

        self.ledger.apply_delta(
            inventory_id,
            on_hand_delta=-qty,
            transaction_type=TransactionType.RECEIPT_REVERSAL.value,
            reference_type="purchase_order",
            reference_id=line.purchase_order_id,
            notes=f"Void of receipt {receipt_id}",
        )

        reversal = InventoryReceipt(
            po_line_id=original.po_line_id,
            product_id=original.product_id,
            inventory_id=inventory_id,
            qty_received=-qty,
            unit_cost=unit_cost,
            total_cost=-qty * unit_cost,
            receive_date=date.today(),
            reference_number=original.reference_number,
            notes=notes or f"Void of receipt {receipt_id}",
            received_by=self.user_id,
            reversal_of_id=original.id,
        )
        self.db.add(reversal)
        self.db.flush()

        logger.info(f"Voided receipt {receipt_id} ({qty}) on PO line {original.po_line_id}")
        self._refresh_statuses([line.purchase_order_id], date.today())
        return reversal
