"""
Sales Order models

qty_invoiced, qty_remaining and fulfillment_status on SalesOrderLine are a
read cache. They are rewritten from the invoice lines by
FulfillmentSequencer.recalculate_sales_order and never decremented in place.
"""
from sqlalchemy import Column, Integer, String, Numeric, DateTime, Date, ForeignKey, Text
from sqlalchemy.orm import relationship
from datetime import datetime

from stockledger.db.base import Base


class SalesOrder(Base):
    """Sales Order header"""
    __tablename__ = "sales_orders"

    id = Column(Integer, primary_key=True, index=True)

    order_number = Column(String(50), unique=True, nullable=False, index=True)
    customer_name = Column(String(200), nullable=True)

    # DRAFT, CONFIRMED, PARTIALLY_INVOICED, INVOICED, CANCELLED
    status = Column(String(30), default="CONFIRMED", nullable=False)

    order_date = Column(Date, nullable=True)
    notes = Column(Text, nullable=True)

    created_by = Column(String(100), nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    lines = relationship(
        "SalesOrderLine",
        back_populates="sales_order",
        cascade="all, delete-orphan",
        order_by="SalesOrderLine.line_number",
    )
    invoices = relationship("Invoice", back_populates="sales_order", order_by="Invoice.invoice_sequence")

    def __repr__(self):
        return f"<SalesOrder {self.order_number}: {self.status}>"


class SalesOrderLine(Base):
    """Sales Order line item"""
    __tablename__ = "sales_order_lines"

    id = Column(Integer, primary_key=True, index=True)

    sales_order_id = Column(
        Integer, ForeignKey("sales_orders.id", ondelete="CASCADE"), nullable=False, index=True
    )
    product_id = Column(Integer, ForeignKey("products.id"), nullable=False)
    line_number = Column(Integer, nullable=False, default=1)

    quantity = Column(Numeric(18, 4), nullable=False)
    unit_price = Column(Numeric(18, 4), default=0, nullable=False)

    # Derived from invoice lines (see module docstring)
    qty_invoiced = Column(Numeric(18, 4), default=0, nullable=False)
    qty_remaining = Column(Numeric(18, 4), nullable=True)
    fulfillment_status = Column(String(20), default="pending", nullable=False)  # pending, partial, complete

    notes = Column(Text, nullable=True)

    sales_order = relationship("SalesOrder", back_populates="lines")
    product = relationship("Product")

    def __repr__(self):
        return f"<SalesOrderLine {self.line_number}: {self.qty_invoiced}/{self.quantity}>"
