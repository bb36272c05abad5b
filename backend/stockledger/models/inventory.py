"""
Inventory models
"""
from sqlalchemy import (
    CheckConstraint, Column, Integer, String, Numeric, DateTime, ForeignKey, Text, UniqueConstraint,
)
from sqlalchemy.orm import relationship
from datetime import datetime

from stockledger.db.base import Base


class Inventory(Base):
    """
    Inventory model - matches inventory table

    quantity_on_hand and quantity_allocated are only ever changed by the
    inventory ledger's delta UPDATE, which rewrites quantity_available in the
    same statement as max(0, on_hand - allocated).
    """
    __tablename__ = "inventory"
    __table_args__ = (
        UniqueConstraint("product_id", "location", name="uq_inventory_product_location"),
        CheckConstraint("quantity_on_hand >= 0", name="ck_inventory_on_hand_non_negative"),
        CheckConstraint("quantity_allocated >= 0", name="ck_inventory_allocated_non_negative"),
    )

    id = Column(Integer, primary_key=True, index=True)

    # References
    product_id = Column(Integer, ForeignKey('products.id'), nullable=False, index=True)
    location = Column(String(50), default="MAIN", nullable=False)

    # Quantities
    quantity_on_hand = Column(Numeric(18, 4), default=0, nullable=False)
    quantity_allocated = Column(Numeric(18, 4), default=0, nullable=False)
    quantity_available = Column(Numeric(18, 4), default=0, nullable=False)

    # Costs
    weighted_average_cost = Column(Numeric(18, 4), nullable=True)
    last_cost = Column(Numeric(18, 4), nullable=True)
    sales_price = Column(Numeric(18, 4), nullable=True)

    # Metadata
    last_counted = Column(DateTime, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    # Relationships
    product = relationship("Product", back_populates="inventory_items")
    transactions = relationship(
        "InventoryTransaction", back_populates="inventory", order_by="InventoryTransaction.id"
    )

    def __repr__(self):
        return f"<Inventory {self.product.sku if self.product else 'N/A'}: {self.quantity_available}>"


class InventoryTransaction(Base):
    """
    Inventory Transaction model - matches inventory_transactions table

    One row per ledger delta. previous + delta = new for both on-hand and
    allocated, so every resulting quantity can be explained.
    """
    __tablename__ = "inventory_transactions"

    id = Column(Integer, primary_key=True, index=True)

    # References
    inventory_id = Column(Integer, ForeignKey('inventory.id'), nullable=False, index=True)
    product_id = Column(Integer, ForeignKey('products.id'), nullable=False)

    # Transaction details
    transaction_type = Column(String(50), nullable=False)
    # receipt, receipt_reversal, adjustment, allocation, shipment

    reference_type = Column(String(50), nullable=True)
    # purchase_order, inventory_adjustment, invoice, sales_order

    reference_id = Column(Integer, nullable=True)

    # On-hand movement
    previous_on_hand = Column(Numeric(18, 4), nullable=False)
    on_hand_delta = Column(Numeric(18, 4), default=0, nullable=False)
    new_on_hand = Column(Numeric(18, 4), nullable=False)

    # Allocation movement
    previous_allocated = Column(Numeric(18, 4), nullable=False)
    allocated_delta = Column(Numeric(18, 4), default=0, nullable=False)
    new_allocated = Column(Numeric(18, 4), nullable=False)

    reason_code = Column(String(30), nullable=True)
    unit_cost = Column(Numeric(18, 4), nullable=True)
    notes = Column(Text, nullable=True)

    # Metadata
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    created_by = Column(String(100), nullable=True)

    # Relationships
    inventory = relationship("Inventory", back_populates="transactions")

    def __repr__(self):
        return f"<InventoryTransaction {self.transaction_type}: {self.on_hand_delta}>"
