"""
Document sequence counters

One row per named sequence (e.g. "inventory_adjustment", "invoice").
Numbers are reserved by incrementing the locked row, never by max()+1 with
a retry-until-unique loop.
"""
from sqlalchemy import Column, Integer, String, DateTime
from datetime import datetime

from stockledger.db.base import Base


class DocumentSequence(Base):
    """Monotonic counter - matches document_sequences table"""
    __tablename__ = "document_sequences"

    name = Column(String(50), primary_key=True)
    current_value = Column(Integer, default=0, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    def __repr__(self):
        return f"<DocumentSequence {self.name}: {self.current_value}>"
