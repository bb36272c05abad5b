"""
StockLedger - quantity reconciliation engine

Inventory ledger, purchase order receiving, manual adjustments and
multi-invoice sales order fulfillment kept mutually consistent.
"""
__version__ = "1.0.0"
