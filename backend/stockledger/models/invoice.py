"""
Invoice models
"""
from sqlalchemy import (
    Column, Integer, String, Numeric, DateTime, Date, ForeignKey, Text, Boolean, UniqueConstraint,
)
from sqlalchemy.orm import relationship
from datetime import datetime

from stockledger.db.base import Base


class Invoice(Base):
    """Invoice header - one of possibly many invoices against a sales order"""
    __tablename__ = "invoices"
    __table_args__ = (
        UniqueConstraint("sales_order_id", "invoice_sequence", name="uq_invoices_sales_order_sequence"),
    )

    id = Column(Integer, primary_key=True, index=True)

    invoice_number = Column(String(50), unique=True, nullable=False, index=True)
    sales_order_id = Column(Integer, ForeignKey("sales_orders.id"), nullable=True, index=True)

    # Multi-invoice support: 1-based, contiguous per sales order
    invoice_sequence = Column(Integer, default=1, nullable=False)
    is_partial_invoice = Column(Boolean, default=False, nullable=False)
    is_final_invoice = Column(Boolean, default=False, nullable=False)

    # DRAFT, SENT, PAID, VOID
    status = Column(String(20), default="DRAFT", nullable=False)

    invoice_date = Column(Date, nullable=False)
    customer_name = Column(String(200), nullable=True)

    subtotal = Column(Numeric(18, 4), default=0, nullable=False)
    tax_amount = Column(Numeric(18, 4), default=0, nullable=False)
    total_amount = Column(Numeric(18, 4), default=0, nullable=False)

    memo = Column(Text, nullable=True)

    created_by = Column(String(100), nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    sales_order = relationship("SalesOrder", back_populates="invoices")
    lines = relationship(
        "InvoiceLine",
        back_populates="invoice",
        cascade="all, delete-orphan",
        order_by="InvoiceLine.line_number",
    )

    def __repr__(self):
        return f"<Invoice {self.invoice_number} #{self.invoice_sequence}: {self.status}>"


class InvoiceLine(Base):
    """Invoice line; contributes its quantity to the referenced sales order line"""
    __tablename__ = "invoice_lines"

    id = Column(Integer, primary_key=True, index=True)

    invoice_id = Column(Integer, ForeignKey("invoices.id", ondelete="CASCADE"), nullable=False, index=True)
    line_number = Column(Integer, nullable=False)

    sales_order_line_id = Column(Integer, ForeignKey("sales_order_lines.id"), nullable=True, index=True)
    product_id = Column(Integer, ForeignKey("products.id"), nullable=True)

    description = Column(String(500), nullable=True)
    quantity = Column(Numeric(18, 4), nullable=False)
    unit_price = Column(Numeric(18, 4), default=0, nullable=False)
    line_total = Column(Numeric(18, 4), default=0, nullable=False)

    invoice = relationship("Invoice", back_populates="lines")
    sales_order_line = relationship("SalesOrderLine")

    def __repr__(self):
        return f"<InvoiceLine {self.line_number}: {self.quantity}>"
