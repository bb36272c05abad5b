"""
Purchasing Pydantic Schemas

Covers:
- PO status workflow
- Receiving requests and results
"""
from pydantic import BaseModel, Field
from typing import Optional, List
from datetime import datetime, date
from decimal import Decimal
from enum import Enum


# ============================================================================
# Enums
# ============================================================================

class POStatus(str, Enum):
    """Purchase order status workflow"""
    PENDING = "PENDING"
    CONFIRMED = "CONFIRMED"
    PARTIAL = "PARTIAL"
    RECEIVED = "RECEIVED"
    CANCELLED = "CANCELLED"


# Statuses that accept receipts
RECEIVABLE_PO_STATUSES = (POStatus.CONFIRMED.value, POStatus.PARTIAL.value, POStatus.RECEIVED.value)


# ============================================================================
# Receiving Schemas
# ============================================================================

class ReceiveLineRequest(BaseModel):
    """Quantity to receive against one PO line"""
    po_line_id: int
    qty_to_receive: Decimal = Field(..., decimal_places=4, description="Clamped to the line's remaining quantity")
    unit_cost: Optional[Decimal] = Field(None, ge=0, decimal_places=4, description="Defaults to the PO line unit price")


class ReceiveRequest(BaseModel):
    """Receive one or more PO lines"""
    lines: List[ReceiveLineRequest] = Field(..., min_length=1)
    receive_date: Optional[date] = Field(
        None,
        description="Date items were actually received (defaults to today)"
    )
    reference_number: Optional[str] = Field(None, max_length=100)
    notes: Optional[str] = None
    location: Optional[str] = Field(None, max_length=50)


class ReceivedLineResult(BaseModel):
    """Outcome for one requested line"""
    po_line_id: int
    requested: Decimal
    received: Decimal
    received_to_date: Decimal
    remaining: Decimal
    receipt_id: Optional[int] = None
    inventory_id: Optional[int] = None


class ReceiveResponse(BaseModel):
    """Result of a receive operation"""
    lines: List[ReceivedLineResult]
    total_received: Decimal
    purchase_order_statuses: dict = Field(default_factory=dict)
    status_update_failed: List[int] = Field(
        default_factory=list,
        description="PO ids whose status recompute failed; it is retried on next read"
    )


class ReceivingLineResponse(BaseModel):
    """Receiving view of a PO line"""
    po_line_id: int
    product_id: int
    line_number: int
    quantity_ordered: Decimal
    quantity_received: Decimal
    quantity_remaining: Decimal
    unit_price: Decimal


class ReceiptResponse(BaseModel):
    """Receipt row"""
    id: int
    po_line_id: int
    product_id: int
    inventory_id: Optional[int] = None
    qty_received: Decimal
    unit_cost: Decimal
    total_cost: Decimal
    receive_date: date
    reference_number: Optional[str] = None
    notes: Optional[str] = None
    received_by: Optional[str] = None
    reversal_of_id: Optional[int] = None
    created_at: datetime

    class Config:
        from_attributes = True
