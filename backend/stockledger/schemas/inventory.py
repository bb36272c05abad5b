"""
Inventory Pydantic Schemas
"""
from pydantic import BaseModel
from typing import Optional
from datetime import datetime
from decimal import Decimal
from enum import Enum


class TransactionType(str, Enum):
    """Kinds of ledger movement"""
    RECEIPT = "receipt"
    RECEIPT_REVERSAL = "receipt_reversal"
    ADJUSTMENT = "adjustment"
    ALLOCATION = "allocation"
    SHIPMENT = "shipment"


class InventoryResponse(BaseModel):
    """Inventory record with its quantity triple"""
    id: int
    product_id: int
    location: str
    quantity_on_hand: Decimal
    quantity_allocated: Decimal
    quantity_available: Decimal
    weighted_average_cost: Optional[Decimal] = None
    last_cost: Optional[Decimal] = None
    sales_price: Optional[Decimal] = None
    updated_at: datetime

    class Config:
        from_attributes = True


class InventoryTransactionResponse(BaseModel):
    """One ledger movement"""
    id: int
    inventory_id: int
    product_id: int
    transaction_type: str
    reference_type: Optional[str] = None
    reference_id: Optional[int] = None
    previous_on_hand: Decimal
    on_hand_delta: Decimal
    new_on_hand: Decimal
    previous_allocated: Decimal
    allocated_delta: Decimal
    new_allocated: Decimal
    reason_code: Optional[str] = None
    unit_cost: Optional[Decimal] = None
    notes: Optional[str] = None
    created_by: Optional[str] = None
    created_at: datetime

    class Config:
        from_attributes = True


class LowStockItem(BaseModel):
    """Inventory record at or below its product's reorder point"""
    inventory_id: int
    product_id: int
    sku: str
    quantity_available: Decimal
    reorder_point: Decimal
    reorder_quantity: Decimal
    shortfall: Decimal
