"""
Unit Tests for the integrity audit
"""
from decimal import Decimal

from sqlalchemy.orm import Session

from stockledger.models.inventory import Inventory
from stockledger.models.invoice import Invoice
from stockledger.schemas.invoicing import InvoiceCreate, InvoiceLineCreate
from stockledger.schemas.purchasing import ReceiveLineRequest
from stockledger.services.fulfillment_service import FulfillmentSequencer
from stockledger.services.integrity_service import IntegrityAuditor
from stockledger.services.receiving_service import ReceivingReconciler

from tests.factories import create_test_inventory, create_test_purchase_order, create_test_sales_order


def _checks(findings):
    return sorted({f.check for f in findings})


class TestIntegrityAuditor:
    def test_clean_database(self, db_session: Session):
        po = create_test_purchase_order(db_session, lines=[{"quantity": 10}])
        ReceivingReconciler(db_session).receive([ReceiveLineRequest(po_line_id=po.lines[0].id, qty_to_receive=4)])
        so = create_test_sales_order(db_session, lines=[{"quantity": 5}])
        FulfillmentSequencer(db_session).create_invoice(InvoiceCreate(sales_order_id=so.id, lines=[
            InvoiceLineCreate(sales_order_line_id=so.lines[0].id, quantity=Decimal("2")),
        ]))

        assert IntegrityAuditor(db_session).run() == []

    def test_detects_and_repairs_available(self, db_session: Session):
        inv = create_test_inventory(db_session, on_hand=10, allocated=3)
        inv.quantity_available = Decimal("10")
        db_session.flush()

        findings = IntegrityAuditor(db_session).run(repair=True)

        assert _checks(findings) == ["available_formula"]
        assert findings[0].repaired is True
        assert inv.quantity_available == Decimal("7")
        assert IntegrityAuditor(db_session).run() == []

    def test_detects_and_repairs_po_status(self, db_session: Session):
        po = create_test_purchase_order(db_session, lines=[{"quantity": 10}])
        ReceivingReconciler(db_session).receive([ReceiveLineRequest(po_line_id=po.lines[0].id, qty_to_receive=10)])
        po.status = "PARTIAL"
        db_session.flush()

        findings = IntegrityAuditor(db_session).run(repair=True)

        assert _checks(findings) == ["po_status"]
        assert po.status == "RECEIVED"

    def test_detects_stale_sales_order_cache(self, db_session: Session):
        so = create_test_sales_order(db_session, lines=[{"quantity": 5}])
        FulfillmentSequencer(db_session).create_invoice(InvoiceCreate(sales_order_id=so.id, lines=[
            InvoiceLineCreate(sales_order_line_id=so.lines[0].id, quantity=Decimal("2")),
        ]))
        so.lines[0].qty_invoiced = Decimal("0")
        db_session.flush()

        findings = IntegrityAuditor(db_session).run(repair=True)

        assert _checks(findings) == ["so_line_cache"]
        assert so.lines[0].qty_invoiced == Decimal("2")

    def test_detects_sequence_gap(self, db_session: Session):
        so = create_test_sales_order(db_session, lines=[{"quantity": 5}])
        invoice = FulfillmentSequencer(db_session).create_invoice(InvoiceCreate(sales_order_id=so.id, lines=[
            InvoiceLineCreate(sales_order_line_id=so.lines[0].id, quantity=Decimal("2")),
        ]))
        invoice.invoice_sequence = 3
        db_session.flush()

        findings = IntegrityAuditor(db_session).run()

        assert _checks(findings) == ["invoice_sequence"]
        assert db_session.query(Invoice).one().invoice_sequence == 3

    def test_detects_ledger_drift(self, db_session: Session):
        inv = create_test_inventory(db_session, on_hand=0)
        po = create_test_purchase_order(db_session, lines=[{"quantity": 10}])
        ReceivingReconciler(db_session).receive([ReceiveLineRequest(po_line_id=po.lines[0].id, qty_to_receive=4)])
        # The PO line has its own product, so the receipt created a second record
        received = db_session.query(Inventory).filter(Inventory.id != inv.id).one()
        received.quantity_on_hand = Decimal("9")
        received.quantity_available = Decimal("9")
        db_session.flush()

        findings = IntegrityAuditor(db_session).run()

        assert _checks(findings) == ["ledger_replay"]
