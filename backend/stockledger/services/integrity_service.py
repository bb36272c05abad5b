"""
Integrity Audit

Checks that stored quantities and statuses agree with the rows they are
derived from, and optionally repairs the derived fields:

- inventory.quantity_available == max(0, on_hand - allocated)
- inventory.quantity_on_hand == first recorded on-hand + sum of ledger deltas
- summed receipts never exceed a PO line's ordered quantity
- purchase order status matches summed receipts
- sales order line cache matches summed non-void invoice lines
- invoice sequences per sales order are exactly 1..n

Repairs only ever recompute derived columns; source rows (receipts,
transactions, invoice lines) are never changed.
"""
from typing import List, NamedTuple, Optional

from sqlalchemy import func
from sqlalchemy.orm import Session

from stockledger.logging_config import get_logger
from stockledger.models.inventory import Inventory, InventoryTransaction
from stockledger.models.invoice import Invoice
from stockledger.models.purchase_order import PurchaseOrder
from stockledger.models.sales_order import SalesOrder
from stockledger.services.fulfillment_service import FulfillmentSequencer, NoInventoryDeduction, fulfillment_state
from stockledger.services.inventory_ledger import ZERO, to_decimal
from stockledger.services.receiving_service import ReceivingReconciler, derive_po_status

logger = get_logger(__name__)


class Finding(NamedTuple):
    """One integrity violation"""
    check: str
    entity: str
    entity_id: int
    message: str
    repaired: bool = False


class IntegrityAuditor:
    """Run every consistency check; with repair=True also fix derived columns."""

    def __init__(self, db: Session):
        self.db = db
        self.findings: List[Finding] = []

    def _report(self, check: str, entity: str, entity_id: int, message: str, repaired: bool = False):
        finding = Finding(check, entity, entity_id, message, repaired)
        self.findings.append(finding)
        logger.warning(
            f"[{check}] {entity} {entity_id}: {message}" + (" (repaired)" if repaired else ""),
            extra={"check": check, "entity": entity, "entity_id": entity_id},
        )

    def run(self, repair: bool = False) -> List[Finding]:
        self.findings = []
        self.check_available(repair)
        self.check_ledger_history()
        self.check_purchase_orders(repair)
        self.check_sales_orders(repair)
        self.check_invoice_sequences()
        if repair:
            self.db.flush()
        logger.info(f"Integrity audit finished with {len(self.findings)} finding(s)")
        return self.findings

    # =========================================================================
    # Inventory
    # =========================================================================

    def check_available(self, repair: bool = False) -> None:
        for inv in self.db.query(Inventory).order_by(Inventory.id).all():
            on_hand = to_decimal(inv.quantity_on_hand)
            allocated = to_decimal(inv.quantity_allocated)
            expected = max(ZERO, on_hand - allocated)
            if on_hand < 0 or allocated < 0:
                self._report("non_negative", "inventory", inv.id,
                             f"on_hand={on_hand} allocated={allocated}")
            stored = to_decimal(inv.quantity_available)
            if stored != expected:
                if repair:
                    inv.quantity_available = expected
                self._report("available_formula", "inventory", inv.id,
                             f"available={stored} expected={expected}", repair)

    def check_ledger_history(self) -> None:
        """Replaying each record's transactions must reproduce its on-hand."""
        rows = (
            self.db.query(
                InventoryTransaction.inventory_id,
                func.min(InventoryTransaction.id),
                func.sum(InventoryTransaction.on_hand_delta),
            )
            .group_by(InventoryTransaction.inventory_id)
            .all()
        )
        for inventory_id, first_id, delta_sum in rows:
            first = self.db.query(InventoryTransaction).filter(InventoryTransaction.id == first_id).one()
            inv = self.db.query(Inventory).filter(Inventory.id == inventory_id).first()
            if inv is None:
                continue
            expected = to_decimal(first.previous_on_hand) + to_decimal(delta_sum)
            if to_decimal(inv.quantity_on_hand) != expected:
                self._report("ledger_replay", "inventory", inventory_id,
                             f"on_hand={inv.quantity_on_hand} but transactions explain {expected}")

    # =========================================================================
    # Purchasing
    # =========================================================================

    def check_purchase_orders(self, repair: bool = False) -> None:
        reconciler = ReceivingReconciler(self.db)
        for po in self.db.query(PurchaseOrder).order_by(PurchaseOrder.id).all():
            total_ordered = ZERO
            total_received = ZERO
            for line in po.lines:
                ordered = to_decimal(line.quantity)
                received = reconciler.get_received_quantity(line.id)
                total_ordered += ordered
                total_received += received
                if received > ordered:
                    self._report("receipts_within_ordered", "purchase_order_line", line.id,
                                 f"received {received} of {ordered} ordered")
            expected = derive_po_status(po.status, total_ordered, total_received)
            if expected != po.status:
                if repair:
                    reconciler.refresh_purchase_order_status(po.id)
                self._report("po_status", "purchase_order", po.id,
                             f"status={po.status} expected={expected}", repair)

    # =========================================================================
    # Sales
    # =========================================================================

    def check_sales_orders(self, repair: bool = False) -> None:
        sequencer = FulfillmentSequencer(self.db, inventory_hook=NoInventoryDeduction())
        for so in self.db.query(SalesOrder).order_by(SalesOrder.id).all():
            stale = False
            for line in so.lines:
                quantity = to_decimal(line.quantity)
                invoiced = sequencer.qty_invoiced_for_line(line.id)
                if (
                    to_decimal(line.qty_invoiced) != invoiced
                    or (line.qty_remaining is not None
                        and to_decimal(line.qty_remaining) != max(ZERO, quantity - invoiced))
                    or line.fulfillment_status != fulfillment_state(quantity, invoiced)
                ):
                    stale = True
                    self._report("so_line_cache", "sales_order_line", line.id,
                                 f"cached invoiced={line.qty_invoiced} actual={invoiced}", repair)
            if stale and repair:
                sequencer.recalculate_sales_order(so.id)

    def check_invoice_sequences(self, so_id: Optional[int] = None) -> None:
        query = self.db.query(Invoice.sales_order_id, Invoice.invoice_sequence).filter(
            Invoice.sales_order_id.isnot(None)
        )
        if so_id is not None:
            query = query.filter(Invoice.sales_order_id == so_id)

        by_order = {}
        for order_id, sequence in query.all():
            by_order.setdefault(order_id, []).append(sequence)

        for order_id, sequences in by_order.items():
            sequences.sort()
            if sequences != list(range(1, len(sequences) + 1)):
                self._report("invoice_sequence", "sales_order", order_id,
                             f"sequences {sequences} are not 1..{len(sequences)}")
