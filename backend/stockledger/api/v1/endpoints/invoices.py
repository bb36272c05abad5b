"""
Invoice API Endpoints

Multi-invoice fulfillment of sales orders.
"""
from typing import Optional

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from stockledger.api.v1.deps import get_current_user_id
from stockledger.db.session import get_db
from stockledger.logging_config import get_logger
from stockledger.schemas.invoicing import (
    InvoiceCreate,
    InvoiceResponse,
    InvoiceUpdate,
    SalesOrderInvoicingStatus,
)
from stockledger.services.fulfillment_service import FulfillmentSequencer

router = APIRouter()
logger = get_logger(__name__)


@router.post("/", response_model=InvoiceResponse, status_code=201)
async def create_invoice(
    request: InvoiceCreate,
    db: Session = Depends(get_db),
    user_id: Optional[str] = Depends(get_current_user_id),
):
    invoice = FulfillmentSequencer(db, user_id=user_id).create_invoice(request)
    db.commit()
    db.refresh(invoice)
    return invoice


@router.get("/sales-orders/{so_id}/status", response_model=SalesOrderInvoicingStatus)
async def get_sales_order_invoicing_status(so_id: int, db: Session = Depends(get_db)):
    """How much of each sales order line is invoiced, and the next sequence number."""
    return FulfillmentSequencer(db).get_sales_order_status(so_id)


@router.get("/{invoice_id}", response_model=InvoiceResponse)
async def get_invoice(invoice_id: int, db: Session = Depends(get_db)):
    return FulfillmentSequencer(db).get_invoice(invoice_id)


@router.put("/{invoice_id}", response_model=InvoiceResponse)
async def update_invoice(
    invoice_id: int,
    request: InvoiceUpdate,
    db: Session = Depends(get_db),
    user_id: Optional[str] = Depends(get_current_user_id),
):
    invoice = FulfillmentSequencer(db, user_id=user_id).update_invoice(invoice_id, request)
    db.commit()
    db.refresh(invoice)
    return invoice


@router.post("/{invoice_id}/void", response_model=InvoiceResponse)
async def void_invoice(
    invoice_id: int,
    db: Session = Depends(get_db),
    user_id: Optional[str] = Depends(get_current_user_id),
):
    invoice = FulfillmentSequencer(db, user_id=user_id).void_invoice(invoice_id)
    db.commit()
    db.refresh(invoice)
    return invoice


@router.delete("/{invoice_id}", status_code=204)
async def delete_invoice(
    invoice_id: int,
    db: Session = Depends(get_db),
    user_id: Optional[str] = Depends(get_current_user_id),
):
    """Only the latest invoice of a sales order can be deleted; void older ones."""
    FulfillmentSequencer(db, user_id=user_id).delete_invoice(invoice_id)
    db.commit()
