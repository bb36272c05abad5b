"""
Inventory API Endpoints

Read access to inventory records and their ledger history. Quantities are
never written here; they change only through receiving, adjustments and
invoicing.
"""
from typing import List

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from stockledger.db.session import get_db
from stockledger.logging_config import get_logger
from stockledger.schemas.inventory import InventoryResponse, InventoryTransactionResponse, LowStockItem
from stockledger.services.inventory_ledger import InventoryLedger, low_stock

router = APIRouter()
logger = get_logger(__name__)


@router.get("/low-stock", response_model=List[LowStockItem])
async def get_low_stock(db: Session = Depends(get_db)):
    """Records at or below their product's reorder point."""
    return low_stock(db)


@router.get("/{inventory_id}", response_model=InventoryResponse)
async def get_inventory(inventory_id: int, db: Session = Depends(get_db)):
    return InventoryLedger(db).get_inventory(inventory_id)


@router.get("/{inventory_id}/transactions", response_model=List[InventoryTransactionResponse])
async def get_inventory_transactions(
    inventory_id: int,
    limit: int = Query(100, ge=1, le=1000),
    db: Session = Depends(get_db),
):
    """Ledger movements for a record, newest first."""
    return InventoryLedger(db).get_transactions(inventory_id, limit=limit)


@router.delete("/{inventory_id}", status_code=204)
async def delete_inventory(inventory_id: int, db: Session = Depends(get_db)):
    """Delete a record that has never moved."""
    InventoryLedger(db).delete_inventory(inventory_id)
    db.commit()
