"""
Fulfillment Sequencer

Multi-invoice fulfillment of sales orders.

- A sales order line's invoiced quantity is the sum of its invoice lines on
  non-void invoices. The qty_invoiced / qty_remaining / fulfillment_status
  columns on SalesOrderLine are a cache rewritten by recalculate_sales_order.
- invoice_sequence is 1 + the highest sequence already used on the order,
  assigned while the sales order row is locked. A unique constraint on
  (sales_order_id, invoice_sequence) backs it up.
- Sequences stay contiguous: only the newest invoice of an order can be
  deleted; older ones are voided (they keep their number, drop out of totals).

Inventory is not touched here unless an inventory hook says so. See
InvoiceInventoryDeduction and the INVENTORY_DEDUCTION_POINT setting.
"""
from collections import OrderedDict
from datetime import date
from decimal import Decimal
from typing import Dict, List, Optional, Tuple

from sqlalchemy import func
from sqlalchemy.orm import Session

from stockledger.core.config import settings
from stockledger.exceptions import InvalidStateError, NotFoundError, ValidationError
from stockledger.logging_config import get_logger
from stockledger.models.invoice import Invoice, InvoiceLine
from stockledger.models.sales_order import SalesOrder, SalesOrderLine
from stockledger.schemas.inventory import TransactionType
from stockledger.schemas.invoicing import (
    FulfillmentState,
    InvoiceCreate,
    InvoiceLineCreate,
    InvoiceStatus,
    InvoiceUpdate,
    SalesOrderStatus,
)
from stockledger.services.document_numbering import next_invoice_number
from stockledger.services.inventory_ledger import InventoryLedger, ZERO, to_decimal

logger = get_logger(__name__)

EDITABLE_INVOICE_STATUSES = (InvoiceStatus.DRAFT.value, InvoiceStatus.SENT.value)


# ============================================================================
# Inventory hooks
# ============================================================================

class NoInventoryDeduction:
    """Invoices leave on-hand stock alone."""

    def on_invoice_posted(self, invoice: Invoice) -> None:
        pass

    def on_invoice_reversed(self, invoice: Invoice) -> None:
        pass


class InvoiceInventoryDeduction:
    """
    Deduct invoiced quantities from on-hand stock through the ledger.

    Posting an invoice ships its product lines; voiding, deleting or editing
    it puts the previous quantities back first.
    """

    def __init__(self, ledger: InventoryLedger, location: Optional[str] = None):
        self.ledger = ledger
        self.location = location

    def _move(self, invoice: Invoice, sign: int) -> None:
        for line in invoice.lines:
            if line.product_id is None:
                continue
            inventory = self.ledger.find_inventory(line.product_id, self.location)
            if inventory is None:
                raise NotFoundError(
                    "Inventory",
                    details={"product_id": line.product_id, "invoice": invoice.invoice_number},
                )
            self.ledger.apply_delta(
                inventory.id,
                on_hand_delta=sign * to_decimal(line.quantity),
                transaction_type=TransactionType.SHIPMENT.value,
                reference_type="invoice",
                reference_id=invoice.id,
                notes=f"{'Shipped on' if sign < 0 else 'Returned from'} invoice {invoice.invoice_number}",
            )

    def on_invoice_posted(self, invoice: Invoice) -> None:
        self._move(invoice, -1)

    def on_invoice_reversed(self, invoice: Invoice) -> None:
        self._move(invoice, 1)


def default_inventory_hook(db: Session, user_id: Optional[str] = None):
    """Hook selected by INVENTORY_DEDUCTION_POINT."""
    if settings.INVENTORY_DEDUCTION_POINT == "invoice":
        return InvoiceInventoryDeduction(InventoryLedger(db, user_id=user_id))
    return NoInventoryDeduction()


def fulfillment_state(quantity: Decimal, invoiced: Decimal) -> str:
    if invoiced <= 0:
        return FulfillmentState.PENDING.value
    if invoiced >= quantity:
        return FulfillmentState.COMPLETE.value
    return FulfillmentState.PARTIAL.value


# ============================================================================
# Sequencer
# ============================================================================

class FulfillmentSequencer:
    """
    Create, edit, void and delete invoices against sales orders.

    IMPORTANT: This service does NOT commit. Caller is responsible for commit.
    """

    def __init__(self, db: Session, user_id: Optional[str] = None, inventory_hook=None):
        self.db = db
        self.user_id = user_id
        self.inventory_hook = inventory_hook or default_inventory_hook(db, user_id)

    # =========================================================================
    # Reads
    # =========================================================================

    def qty_invoiced_for_line(self, so_line_id: int, exclude_invoice_id: Optional[int] = None) -> Decimal:
        """Sum of invoice line quantities on non-void invoices for a sales order line."""
        query = (
            self.db.query(func.coalesce(func.sum(InvoiceLine.quantity), 0))
            .join(Invoice, InvoiceLine.invoice_id == Invoice.id)
            .filter(
                InvoiceLine.sales_order_line_id == so_line_id,
                Invoice.status != InvoiceStatus.VOID.value,
            )
        )
        if exclude_invoice_id is not None:
            query = query.filter(Invoice.id != exclude_invoice_id)
        return to_decimal(query.scalar())

    def get_invoice(self, invoice_id: int) -> Invoice:
        invoice = self.db.query(Invoice).filter(Invoice.id == invoice_id).first()
        if not invoice:
            raise NotFoundError("Invoice", invoice_id)
        return invoice

    def _get_sales_order(self, so_id: int, lock: bool = False) -> SalesOrder:
        query = self.db.query(SalesOrder).filter(SalesOrder.id == so_id)
        if lock:
            query = query.with_for_update()
        so = query.first()
        if not so:
            raise NotFoundError("Sales order", so_id)
        return so

    def _max_sequence(self, so_id: int) -> int:
        return self.db.query(func.coalesce(func.max(Invoice.invoice_sequence), 0)).filter(
            Invoice.sales_order_id == so_id
        ).scalar() or 0

    def get_sales_order_status(self, so_id: int) -> dict:
        """Invoicing progress computed from invoice lines (not from the cache)."""
        so = self._get_sales_order(so_id)
        lines = []
        for so_line in so.lines:
            quantity = to_decimal(so_line.quantity)
            invoiced = self.qty_invoiced_for_line(so_line.id)
            lines.append({
                "line_id": so_line.id,
                "product_id": so_line.product_id,
                "quantity": quantity,
                "qty_invoiced": invoiced,
                "qty_remaining": max(ZERO, quantity - invoiced),
                "fulfillment_status": fulfillment_state(quantity, invoiced),
            })
        return {
            "sales_order_id": so.id,
            "order_number": so.order_number,
            "status": so.status,
            "invoice_count": self.db.query(Invoice).filter(Invoice.sales_order_id == so.id).count(),
            "next_invoice_sequence": self._max_sequence(so.id) + 1,
            "lines": lines,
        }

    # =========================================================================
    # Line building / validation
    # =========================================================================

    def _build_lines(
        self,
        so: Optional[SalesOrder],
        requests: List[InvoiceLineCreate],
        exclude_invoice_id: Optional[int] = None,
    ) -> Tuple[List[InvoiceLine], Dict[int, Decimal]]:
        """
        Validate requested lines and build InvoiceLine rows.

        Quantities requested for the same sales order line are combined and
        checked against remaining-to-invoice. When editing, the invoice's own
        prior quantities are excluded so they count as available again.

        Returns the new lines and the requested quantity per sales order line.
        """
        if not requests:
            raise ValidationError("An invoice needs at least one line", field="lines")

        so_lines = {line.id: line for line in so.lines} if so else {}
        requested: Dict[int, Decimal] = OrderedDict()
        built = []

        for index, request in enumerate(requests):
            quantity = to_decimal(request.quantity)
            if quantity <= 0:
                raise ValidationError(
                    f"Line {index + 1}: quantity must be positive",
                    field="quantity", value=quantity, line_index=index,
                )

            so_line = None
            if request.sales_order_line_id is not None:
                so_line = so_lines.get(request.sales_order_line_id)
                if so_line is None:
                    raise ValidationError(
                        f"Line {index + 1}: sales order line {request.sales_order_line_id} "
                        f"does not belong to this order",
                        field="sales_order_line_id",
                        value=request.sales_order_line_id,
                        line_index=index,
                    )
                requested[so_line.id] = requested.get(so_line.id, ZERO) + quantity

            if request.unit_price is not None:
                unit_price = to_decimal(request.unit_price)
            elif so_line is not None:
                unit_price = to_decimal(so_line.unit_price)
            else:
                unit_price = ZERO

            built.append(InvoiceLine(
                line_number=index + 1,
                sales_order_line_id=so_line.id if so_line else None,
                product_id=request.product_id or (so_line.product_id if so_line else None),
                description=request.description,
                quantity=quantity,
                unit_price=unit_price,
                line_total=quantity * unit_price,
            ))

        for so_line_id, qty in requested.items():
            so_line = so_lines[so_line_id]
            ordered = to_decimal(so_line.quantity)
            remaining = ordered - self.qty_invoiced_for_line(so_line_id, exclude_invoice_id)
            if qty > remaining:
                raise ValidationError(
                    f"Cannot invoice {qty} on sales order line {so_line.line_number}: "
                    f"only {max(ZERO, remaining)} remaining of {ordered}",
                    field="quantity",
                    value=qty,
                    details={"sales_order_line_id": so_line_id, "remaining": str(max(ZERO, remaining))},
                )

        return built, requested

    def _any_remaining_after(self, so: SalesOrder, requested: Dict[int, Decimal],
                             exclude_invoice_id: Optional[int] = None) -> bool:
        """True if any line of the order still has quantity left once this invoice applies."""
        for so_line in so.lines:
            invoiced = self.qty_invoiced_for_line(so_line.id, exclude_invoice_id)
            invoiced += requested.get(so_line.id, ZERO)
            if to_decimal(so_line.quantity) - invoiced > 0:
                return True
        return False

    @staticmethod
    def _apply_totals(invoice: Invoice, lines: List[InvoiceLine], tax_amount: Decimal) -> None:
        subtotal = sum((to_decimal(line.line_total) for line in lines), ZERO)
        invoice.subtotal = subtotal
        invoice.tax_amount = tax_amount
        invoice.total_amount = subtotal + tax_amount

    # =========================================================================
    # Create / update
    # =========================================================================

    def create_invoice(self, data: InvoiceCreate) -> Invoice:
        """
        Create an invoice, optionally against a sales order.

        Raises:
            NotFoundError: sales order does not exist
            InvalidStateError: sales order is cancelled
            ValidationError: a line exceeds its remaining quantity
        """
        so = None
        if data.sales_order_id is not None:
            so = self._get_sales_order(data.sales_order_id, lock=True)
            if so.status == SalesOrderStatus.CANCELLED.value:
                raise InvalidStateError(
                    f"Cannot invoice cancelled sales order {so.order_number}",
                    current_state=so.status,
                )

        lines, requested = self._build_lines(so, data.lines)
        tax_amount = to_decimal(data.tax_amount)

        if so is not None:
            sequence = self._max_sequence(so.id) + 1
            any_remaining = self._any_remaining_after(so, requested)
            is_final = not any_remaining
            is_partial = any_remaining or sequence > 1
        else:
            sequence, is_final, is_partial = 1, True, False

        invoice = Invoice(
            invoice_number=next_invoice_number(self.db),
            sales_order_id=so.id if so else None,
            invoice_sequence=sequence,
            is_partial_invoice=is_partial,
            is_final_invoice=is_final,
            status=InvoiceStatus.DRAFT.value,
            invoice_date=data.invoice_date or date.today(),
            customer_name=data.customer_name or (so.customer_name if so else None),
            memo=data.memo,
            created_by=self.user_id,
        )
        self._apply_totals(invoice, lines, tax_amount)
        invoice.lines = lines
        self.db.add(invoice)
        self.db.flush()

        if so is not None:
            self.recalculate_sales_order(so.id)
        self.inventory_hook.on_invoice_posted(invoice)

        logger.info(
            f"Created invoice {invoice.invoice_number}"
            + (f" #{sequence} for SO {so.order_number}" if so else "")
            + f" (partial={is_partial}, final={is_final}, subtotal={invoice.subtotal})",
            extra={"invoice_id": invoice.id, "sales_order_id": invoice.sales_order_id, "user_id": self.user_id},
        )
        return invoice

    def update_invoice(self, invoice_id: int, data: InvoiceUpdate) -> Invoice:
        """
        Replace an invoice's lines.

        The invoice's own prior quantities are available to the edit. The
        sequence number is kept; partial/final flags are recomputed.
        """
        invoice = self.get_invoice(invoice_id)
        if invoice.status not in EDITABLE_INVOICE_STATUSES:
            raise InvalidStateError(
                f"Invoice {invoice.invoice_number} is {invoice.status} and cannot be edited",
                current_state=invoice.status,
                allowed_states=list(EDITABLE_INVOICE_STATUSES),
            )

        so = self._get_sales_order(invoice.sales_order_id, lock=True) if invoice.sales_order_id else None
        lines, requested = self._build_lines(so, data.lines, exclude_invoice_id=invoice.id)

        self.inventory_hook.on_invoice_reversed(invoice)

        invoice.lines.clear()
        self.db.flush()
        invoice.lines.extend(lines)

        tax_amount = to_decimal(data.tax_amount) if data.tax_amount is not None else to_decimal(invoice.tax_amount)
        self._apply_totals(invoice, lines, tax_amount)
        if data.memo is not None:
            invoice.memo = data.memo

        if so is not None:
            any_remaining = self._any_remaining_after(so, requested, exclude_invoice_id=invoice.id)
            invoice.is_final_invoice = not any_remaining
            invoice.is_partial_invoice = any_remaining or invoice.invoice_sequence > 1
        self.db.flush()

        if so is not None:
            self.recalculate_sales_order(so.id)
        self.inventory_hook.on_invoice_posted(invoice)

        logger.info(f"Updated invoice {invoice.invoice_number} (subtotal={invoice.subtotal})")
        return invoice

    # =========================================================================
    # Void / delete
    # =========================================================================

    def void_invoice(self, invoice_id: int) -> Invoice:
        """Void an invoice. It keeps its sequence number and stops counting toward totals."""
        invoice = self.get_invoice(invoice_id)
        if invoice.status not in EDITABLE_INVOICE_STATUSES:
            raise InvalidStateError(
                f"Invoice {invoice.invoice_number} is {invoice.status} and cannot be voided",
                current_state=invoice.status,
                allowed_states=list(EDITABLE_INVOICE_STATUSES),
            )
        if invoice.sales_order_id:
            self._get_sales_order(invoice.sales_order_id, lock=True)

        invoice.status = InvoiceStatus.VOID.value
        self.db.flush()

        if invoice.sales_order_id:
            self.recalculate_sales_order(invoice.sales_order_id)
        self.inventory_hook.on_invoice_reversed(invoice)

        logger.info(f"Voided invoice {invoice.invoice_number}")
        return invoice

    def delete_invoice(self, invoice_id: int) -> None:
        """
        Delete an invoice outright.

        Only the newest invoice of a sales order may be deleted, so the
        remaining sequence numbers stay 1..n. Paid invoices are never deleted.
        """
        invoice = self.get_invoice(invoice_id)
        if invoice.status == InvoiceStatus.PAID.value:
            raise InvalidStateError(
                f"Invoice {invoice.invoice_number} is paid and cannot be deleted",
                current_state=invoice.status,
            )

        so_id = invoice.sales_order_id
        if so_id:
            self._get_sales_order(so_id, lock=True)
            latest = self._max_sequence(so_id)
            if invoice.invoice_sequence != latest:
                raise InvalidStateError(
                    f"Invoice {invoice.invoice_number} is #{invoice.invoice_sequence} of {latest}; "
                    f"only the latest invoice can be deleted, void it instead",
                    details={"invoice_sequence": invoice.invoice_sequence, "latest_sequence": latest},
                )

        if invoice.status != InvoiceStatus.VOID.value:
            self.inventory_hook.on_invoice_reversed(invoice)

        number = invoice.invoice_number
        self.db.delete(invoice)
        self.db.flush()

        if so_id:
            self.recalculate_sales_order(so_id)
        logger.info(f"Deleted invoice {number}")

    # =========================================================================
    # Recompute
    # =========================================================================

    def recalculate_sales_order(self, so_id: int) -> SalesOrder:
        """
        Rewrite every line's invoiced/remaining/status cache from invoice lines
        and derive the order status. Never decrements in place.
        """
        so = self._get_sales_order(so_id)

        all_complete = bool(so.lines)
        any_invoiced = False
        for so_line in so.lines:
            quantity = to_decimal(so_line.quantity)
            invoiced = self.qty_invoiced_for_line(so_line.id)
            so_line.qty_invoiced = invoiced
            so_line.qty_remaining = max(ZERO, quantity - invoiced)
            so_line.fulfillment_status = fulfillment_state(quantity, invoiced)
            if so_line.fulfillment_status != FulfillmentState.COMPLETE.value:
                all_complete = False
            if invoiced > 0:
                any_invoiced = True

        if so.status != SalesOrderStatus.CANCELLED.value:
            if all_complete:
                new_status = SalesOrderStatus.INVOICED.value
            elif any_invoiced:
                new_status = SalesOrderStatus.PARTIALLY_INVOICED.value
            elif so.status == SalesOrderStatus.DRAFT.value:
                new_status = so.status
            else:
                new_status = SalesOrderStatus.CONFIRMED.value
            if new_status != so.status:
                logger.info(f"SO {so.order_number}: {so.status} -> {new_status}")
                so.status = new_status

        self.db.flush()
        return so
