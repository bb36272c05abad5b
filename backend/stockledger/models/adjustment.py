"""
Inventory adjustment models
"""
from sqlalchemy import CheckConstraint, Column, Integer, String, Numeric, DateTime, ForeignKey, Text
from sqlalchemy.orm import relationship
from datetime import datetime

from stockledger.db.base import Base


class InventoryAdjustment(Base):
    """Adjustment header - matches inventory_adjustments table"""
    __tablename__ = "inventory_adjustments"

    id = Column(Integer, primary_key=True, index=True)

    # ADJ-000001, reserved from document_sequences
    adjustment_number = Column(String(50), unique=True, nullable=False, index=True)
    adjustment_date = Column(DateTime, default=datetime.utcnow, nullable=False)

    # draft -> completed; lines are immutable once completed
    status = Column(String(20), default="draft", nullable=False)

    notes = Column(Text, nullable=True)
    user_id = Column(String(100), nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    completed_at = Column(DateTime, nullable=True)

    lines = relationship(
        "InventoryAdjustmentLine",
        back_populates="adjustment",
        cascade="all, delete-orphan",
        order_by="InventoryAdjustmentLine.line_number",
    )

    def __repr__(self):
        return f"<InventoryAdjustment {self.adjustment_number}: {self.status}>"


class InventoryAdjustmentLine(Base):
    """Adjustment line - matches inventory_adjustment_lines table"""
    __tablename__ = "inventory_adjustment_lines"
    __table_args__ = (
        CheckConstraint("new_quantity >= 0", name="ck_adjustment_lines_new_quantity_non_negative"),
    )

    id = Column(Integer, primary_key=True, index=True)

    adjustment_id = Column(
        Integer, ForeignKey('inventory_adjustments.id', ondelete='CASCADE'), nullable=False, index=True
    )
    inventory_id = Column(Integer, ForeignKey('inventory.id'), nullable=False, index=True)
    line_number = Column(Integer, nullable=False)

    # Snapshot at validation time; the ledger transaction holds the applied values
    previous_quantity = Column(Numeric(18, 4), nullable=False)
    adjustment_quantity = Column(Numeric(18, 4), nullable=False)
    new_quantity = Column(Numeric(18, 4), nullable=False)

    reason_code = Column(String(30), nullable=False)
    line_notes = Column(Text, nullable=True)

    inventory_transaction_id = Column(Integer, ForeignKey('inventory_transactions.id'), nullable=True)

    adjustment = relationship("InventoryAdjustment", back_populates="lines")
    inventory = relationship("Inventory")

    def __repr__(self):
        return f"<InventoryAdjustmentLine inv={self.inventory_id}: {self.adjustment_quantity}>"
