"""Database models"""
from stockledger.models.product import Product
from stockledger.models.inventory import Inventory, InventoryTransaction
from stockledger.models.purchase_order import PurchaseOrder, PurchaseOrderLine, InventoryReceipt
from stockledger.models.adjustment import InventoryAdjustment, InventoryAdjustmentLine
from stockledger.models.sales_order import SalesOrder, SalesOrderLine
from stockledger.models.invoice import Invoice, InvoiceLine
from stockledger.models.document_sequence import DocumentSequence

__all__ = [
    # Master data
    "Product",
    # Inventory
    "Inventory",
    "InventoryTransaction",
    # Purchasing
    "PurchaseOrder",
    "PurchaseOrderLine",
    "InventoryReceipt",
    # Adjustments
    "InventoryAdjustment",
    "InventoryAdjustmentLine",
    # Sales
    "SalesOrder",
    "SalesOrderLine",
    "Invoice",
    "InvoiceLine",
    # Numbering
    "DocumentSequence",
]
