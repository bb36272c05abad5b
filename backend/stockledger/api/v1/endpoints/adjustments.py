"""
Inventory Adjustment API Endpoints
"""
from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from stockledger.api.v1.deps import get_current_user_id
from stockledger.db.session import get_db
from stockledger.exceptions import PartialCommitError
from stockledger.logging_config import get_logger
from stockledger.schemas.adjustment import (
    REASON_CODE_LABELS,
    AdjustmentCreate,
    AdjustmentLineResponse,
    AdjustmentResponse,
    ReasonCodeOption,
)
from stockledger.services.adjustment_service import AdjustmentProcessor

router = APIRouter()
logger = get_logger(__name__)


@router.post("/", response_model=AdjustmentResponse, status_code=201)
async def create_adjustment(
    request: AdjustmentCreate,
    db: Session = Depends(get_db),
    user_id: Optional[str] = Depends(get_current_user_id),
):
    """
    Apply a batch of reason-coded quantity changes.

    The batch is validated as a whole; one invalid line rejects all of them.
    """
    processor = AdjustmentProcessor(db, user_id=user_id)
    try:
        adjustment = processor.create_adjustment(request.lines, notes=request.notes)
    except PartialCommitError:
        # Applied lines are durable; report which ones
        db.commit()
        raise
    db.commit()
    db.refresh(adjustment)
    return adjustment


@router.get("/reason-codes", response_model=List[ReasonCodeOption])
async def list_reason_codes():
    """The closed set of adjustment reasons, with display labels."""
    return [{"code": code, "label": label} for code, label in REASON_CODE_LABELS.items()]


@router.get("/history/{inventory_id}", response_model=List[AdjustmentLineResponse])
async def get_adjustment_history(
    inventory_id: int,
    limit: int = Query(50, ge=1, le=500),
    db: Session = Depends(get_db),
):
    return AdjustmentProcessor(db).list_adjustment_history(inventory_id, limit=limit)


@router.get("/{adjustment_id}", response_model=AdjustmentResponse)
async def get_adjustment(adjustment_id: int, db: Session = Depends(get_db)):
    return AdjustmentProcessor(db).get_adjustment(adjustment_id)
