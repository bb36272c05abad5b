"""
Invoicing / Fulfillment Pydantic Schemas
"""
from pydantic import BaseModel, Field
from typing import Optional, List
from datetime import datetime, date
from decimal import Decimal
from enum import Enum


class InvoiceStatus(str, Enum):
    """Invoice lifecycle"""
    DRAFT = "DRAFT"
    SENT = "SENT"
    PAID = "PAID"
    VOID = "VOID"


class SalesOrderStatus(str, Enum):
    """Sales order status as driven by invoicing"""
    DRAFT = "DRAFT"
    CONFIRMED = "CONFIRMED"
    PARTIALLY_INVOICED = "PARTIALLY_INVOICED"
    INVOICED = "INVOICED"
    CANCELLED = "CANCELLED"


class FulfillmentState(str, Enum):
    """Per sales-order-line invoicing progress"""
    PENDING = "pending"
    PARTIAL = "partial"
    COMPLETE = "complete"


class InvoiceLineCreate(BaseModel):
    """Invoice line; sales_order_line_id ties it to the order's remaining quantity"""
    sales_order_line_id: Optional[int] = None
    product_id: Optional[int] = None
    description: Optional[str] = Field(None, max_length=500)
    quantity: Decimal = Field(..., gt=0, decimal_places=4)
    unit_price: Optional[Decimal] = Field(None, ge=0, decimal_places=4, description="Defaults to the sales order line price")


class InvoiceCreate(BaseModel):
    """Create an invoice, optionally against a sales order"""
    sales_order_id: Optional[int] = None
    invoice_date: Optional[date] = None
    customer_name: Optional[str] = Field(None, max_length=200)
    tax_amount: Decimal = Field(Decimal("0"), ge=0, decimal_places=4)
    memo: Optional[str] = None
    lines: List[InvoiceLineCreate] = Field(..., min_length=1)


class InvoiceUpdate(BaseModel):
    """Replace an invoice's lines"""
    tax_amount: Optional[Decimal] = Field(None, ge=0, decimal_places=4)
    memo: Optional[str] = None
    lines: List[InvoiceLineCreate] = Field(..., min_length=1)


class InvoiceLineResponse(BaseModel):
    id: int
    line_number: int
    sales_order_line_id: Optional[int] = None
    product_id: Optional[int] = None
    description: Optional[str] = None
    quantity: Decimal
    unit_price: Decimal
    line_total: Decimal

    class Config:
        from_attributes = True


class InvoiceResponse(BaseModel):
    id: int
    invoice_number: str
    sales_order_id: Optional[int] = None
    invoice_sequence: int
    is_partial_invoice: bool
    is_final_invoice: bool
    status: str
    invoice_date: date
    customer_name: Optional[str] = None
    subtotal: Decimal
    tax_amount: Decimal
    total_amount: Decimal
    memo: Optional[str] = None
    created_at: datetime
    lines: List[InvoiceLineResponse] = Field(default_factory=list)

    class Config:
        from_attributes = True


class SalesOrderLineStatus(BaseModel):
    line_id: int
    product_id: int
    quantity: Decimal
    qty_invoiced: Decimal
    qty_remaining: Decimal
    fulfillment_status: FulfillmentState


class SalesOrderInvoicingStatus(BaseModel):
    """Invoicing progress for a sales order"""
    sales_order_id: int
    order_number: str
    status: str
    invoice_count: int
    next_invoice_sequence: int
    lines: List[SalesOrderLineStatus]
