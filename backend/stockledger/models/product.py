"""
Product model

Master data is maintained elsewhere; the reconciliation engine only reads
products to key inventory records and reorder points.
"""
from sqlalchemy import Column, Integer, String, Numeric, DateTime, Boolean
from sqlalchemy.orm import relationship
from datetime import datetime

from stockledger.db.base import Base


class Product(Base):
    """Product / SKU master record - matches products table"""
    __tablename__ = "products"

    id = Column(Integer, primary_key=True, index=True)
    sku = Column(String(100), unique=True, nullable=False, index=True)
    name = Column(String(255), nullable=False)
    unit = Column(String(20), default="EA", nullable=False)

    # Pricing
    sales_price = Column(Numeric(18, 4), nullable=True)

    # Reorder policy (lives on the product, not on the inventory record)
    reorder_point = Column(Numeric(18, 4), default=0, nullable=False)
    reorder_quantity = Column(Numeric(18, 4), default=0, nullable=False)

    active = Column(Boolean, default=True, nullable=False)

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    inventory_items = relationship("Inventory", back_populates="product")

    def __repr__(self):
        return f"<Product {self.sku}: {self.name}>"
