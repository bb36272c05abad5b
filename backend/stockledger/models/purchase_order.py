"""
Purchase Order models for the receiving reconciler

Received-to-date is never stored on the line; it is always the sum of the
line's InventoryReceipt rows.
"""
from sqlalchemy import Column, Integer, String, DateTime, Text, Numeric, ForeignKey, Date
from sqlalchemy.orm import relationship
from datetime import datetime

from stockledger.db.base import Base


class PurchaseOrder(Base):
    """Purchase Order header model"""
    __tablename__ = "purchase_orders"

    id = Column(Integer, primary_key=True, index=True)

    po_number = Column(String(50), unique=True, nullable=False, index=True)
    vendor_name = Column(String(200), nullable=True)

    # Status: PENDING -> CONFIRMED -> PARTIAL -> RECEIVED, or CANCELLED (sticky)
    status = Column(String(20), default="PENDING", nullable=False)

    # Dates
    order_date = Column(Date, nullable=True)
    received_date = Column(Date, nullable=True)  # Date of the receipt that completed the PO

    # Financials
    total_amount = Column(Numeric(18, 4), default=0, nullable=False)

    notes = Column(Text, nullable=True)

    # Audit
    created_by = Column(String(100), nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    # Relationships
    lines = relationship(
        "PurchaseOrderLine",
        back_populates="purchase_order",
        cascade="all, delete-orphan",
        order_by="PurchaseOrderLine.line_number",
    )

    def __repr__(self):
        return f"<PurchaseOrder {self.po_number}: {self.status}>"


class PurchaseOrderLine(Base):
    """Purchase Order line item model"""
    __tablename__ = "purchase_order_lines"

    id = Column(Integer, primary_key=True, index=True)

    purchase_order_id = Column(
        Integer, ForeignKey('purchase_orders.id', ondelete='CASCADE'), nullable=False, index=True
    )
    product_id = Column(Integer, ForeignKey('products.id'), nullable=False)

    # Line number for ordering
    line_number = Column(Integer, nullable=False, default=1)

    quantity = Column(Numeric(18, 4), nullable=False)
    unit_price = Column(Numeric(18, 4), default=0, nullable=False)

    notes = Column(Text, nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    # Relationships
    purchase_order = relationship("PurchaseOrder", back_populates="lines")
    product = relationship("Product")
    receipts = relationship("InventoryReceipt", back_populates="po_line", order_by="InventoryReceipt.id")

    def __repr__(self):
        return f"<PurchaseOrderLine {self.line_number}: {self.quantity}>"


class InventoryReceipt(Base):
    """
    Goods received against a PO line - matches inventory_receipts table

    Append-only. A void is recorded as a second row with a negative
    qty_received and reversal_of_id pointing at the original.
    """
    __tablename__ = "inventory_receipts"

    id = Column(Integer, primary_key=True, index=True)

    po_line_id = Column(Integer, ForeignKey('purchase_order_lines.id'), nullable=False, index=True)
    product_id = Column(Integer, ForeignKey('products.id'), nullable=False)
    inventory_id = Column(Integer, ForeignKey('inventory.id'), nullable=True)

    qty_received = Column(Numeric(18, 4), nullable=False)
    unit_cost = Column(Numeric(18, 4), default=0, nullable=False)
    total_cost = Column(Numeric(18, 4), default=0, nullable=False)

    # User-entered date the goods physically arrived (created_at is the entry timestamp)
    receive_date = Column(Date, nullable=False)
    reference_number = Column(String(100), nullable=True)
    notes = Column(Text, nullable=True)
    received_by = Column(String(100), nullable=True)

    reversal_of_id = Column(Integer, ForeignKey('inventory_receipts.id'), nullable=True, unique=True)

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    # Relationships
    po_line = relationship("PurchaseOrderLine", back_populates="receipts")
    reversal_of = relationship("InventoryReceipt", remote_side=[id])

    def __repr__(self):
        return f"<InventoryReceipt line={self.po_line_id}: {self.qty_received}>"
