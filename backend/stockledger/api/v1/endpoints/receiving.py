"""
Receiving API Endpoints

- GET  /purchase-orders/{po_id}/lines   ordered / received / remaining per line
- POST /                                receive against PO lines (clamped)
- POST /receipts/{receipt_id}/void      append a reversing receipt
"""
from typing import List, Optional

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from stockledger.api.v1.deps import get_current_user_id
from stockledger.db.session import get_db
from stockledger.logging_config import get_logger
from stockledger.schemas.purchasing import (
    ReceiptResponse,
    ReceiveRequest,
    ReceiveResponse,
    ReceivingLineResponse,
)
from stockledger.services.receiving_service import ReceivingReconciler

router = APIRouter()
logger = get_logger(__name__)


@router.get("/purchase-orders/{po_id}/lines", response_model=List[ReceivingLineResponse])
async def get_receiving_lines(po_id: int, db: Session = Depends(get_db)):
    """
    Receiving view of a purchase order.

    Also repairs the PO status if an earlier recompute failed.
    """
    reconciler = ReceivingReconciler(db)
    lines = reconciler.get_receiving_lines(po_id)
    reconciler.refresh_purchase_order_status(po_id)
    db.commit()
    return lines


@router.post("/", response_model=ReceiveResponse)
async def receive_items(
    request: ReceiveRequest,
    db: Session = Depends(get_db),
    user_id: Optional[str] = Depends(get_current_user_id),
):
    """Receive quantities against PO lines. Quantities over the open amount are clamped."""
    result = ReceivingReconciler(db, user_id=user_id).receive(
        request.lines,
        receive_date=request.receive_date,
        reference_number=request.reference_number,
        notes=request.notes,
        location=request.location,
    )
    db.commit()
    return result


@router.post("/receipts/{receipt_id}/void", response_model=ReceiptResponse)
async def void_receipt(
    receipt_id: int,
    db: Session = Depends(get_db),
    user_id: Optional[str] = Depends(get_current_user_id),
):
    reversal = ReceivingReconciler(db, user_id=user_id).void_receipt(receipt_id)
    db.commit()
    db.refresh(reversal)
    return reversal
