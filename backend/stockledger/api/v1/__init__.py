"""
API v1 Router - StockLedger
"""
from fastapi import APIRouter
from stockledger.api.v1.endpoints import (
    inventory,
    receiving,
    adjustments,
    invoices,
)
from stockledger.schemas.common import ErrorResponse

# Error envelope produced by the exception handlers in main.py
ERROR_RESPONSES = {
    400: {"model": ErrorResponse, "description": "Validation error or invalid document state"},
    404: {"model": ErrorResponse, "description": "Referenced record not found"},
    409: {"model": ErrorResponse, "description": "Concurrent modification or partial commit"},
    422: {"model": ErrorResponse, "description": "Malformed request or negative quantity"},
}

router = APIRouter(responses=ERROR_RESPONSES)

# Inventory ledger
router.include_router(
    inventory.router,
    prefix="/inventory",
    tags=["inventory"]
)

# Purchase order receiving
router.include_router(
    receiving.router,
    prefix="/receiving",
    tags=["receiving"]
)

# Manual adjustments
router.include_router(
    adjustments.router,
    prefix="/adjustments",
    tags=["adjustments"]
)

# Invoicing / fulfillment
router.include_router(
    invoices.router,
    prefix="/invoices",
    tags=["invoices"]
)
