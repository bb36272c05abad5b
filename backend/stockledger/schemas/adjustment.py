"""
Inventory Adjustment Pydantic Schemas
"""
from pydantic import BaseModel, Field, model_validator
from typing import Optional, List
from datetime import datetime
from decimal import Decimal
from enum import Enum


class ReasonCode(str, Enum):
    """Closed set of adjustment reasons"""
    PHYSICAL_COUNT = "physical_count"
    DAMAGED = "damaged"
    EXPIRED = "expired"
    THEFT = "theft"
    RETURN_VENDOR = "return_vendor"
    SAMPLE = "sample"
    MANUFACTURING = "manufacturing"
    OTHER = "other"


REASON_CODE_LABELS = {
    ReasonCode.PHYSICAL_COUNT: "Physical Count Correction",
    ReasonCode.DAMAGED: "Damaged Goods",
    ReasonCode.EXPIRED: "Expired/Obsolete",
    ReasonCode.THEFT: "Theft/Loss",
    ReasonCode.RETURN_VENDOR: "Return to Vendor",
    ReasonCode.SAMPLE: "Sample/Promotional Use",
    ReasonCode.MANUFACTURING: "Manufacturing Waste",
    ReasonCode.OTHER: "Other (See Notes)",
}


class AdjustmentStatus(str, Enum):
    """Adjustment header lifecycle"""
    DRAFT = "draft"
    COMPLETED = "completed"


class AdjustmentLineCreate(BaseModel):
    """
    One adjustment line.

    Supply either adjustment_quantity (signed delta) or new_quantity
    (target on-hand); the other is derived from the current on-hand.
    """
    inventory_id: int
    reason_code: Optional[str] = Field(None, description="One of ReasonCode")
    adjustment_quantity: Optional[Decimal] = Field(None, decimal_places=4)
    new_quantity: Optional[Decimal] = Field(None, decimal_places=4)
    notes: Optional[str] = None

    @model_validator(mode="after")
    def check_quantity_supplied(self):
        if self.adjustment_quantity is None and self.new_quantity is None:
            raise ValueError("Either adjustment_quantity or new_quantity is required")
        if self.adjustment_quantity is not None and self.new_quantity is not None:
            raise ValueError("Supply adjustment_quantity or new_quantity, not both")
        return self


class ReasonCodeOption(BaseModel):
    """A selectable adjustment reason"""
    code: ReasonCode
    label: str


class AdjustmentCreate(BaseModel):
    """Adjustment batch"""
    lines: List[AdjustmentLineCreate] = Field(..., min_length=1)
    notes: Optional[str] = None


class AdjustmentLineResponse(BaseModel):
    """Committed adjustment line"""
    id: int
    line_number: int
    inventory_id: int
    previous_quantity: Decimal
    adjustment_quantity: Decimal
    new_quantity: Decimal
    reason_code: str
    line_notes: Optional[str] = None
    inventory_transaction_id: Optional[int] = None

    class Config:
        from_attributes = True


class AdjustmentResponse(BaseModel):
    """Adjustment header with lines"""
    id: int
    adjustment_number: str
    adjustment_date: datetime
    status: str
    notes: Optional[str] = None
    user_id: Optional[str] = None
    completed_at: Optional[datetime] = None
    lines: List[AdjustmentLineResponse] = Field(default_factory=list)

    class Config:
        from_attributes = True
