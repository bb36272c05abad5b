"""Initial schema

Revision ID: 001_initial_schema
Revises:
Create Date: 2026-10-18

Creates:
- products, inventory, inventory_transactions
- purchase_orders, purchase_order_lines, inventory_receipts
- inventory_adjustments, inventory_adjustment_lines
- sales_orders, sales_order_lines, invoices, invoice_lines
- document_sequences
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = '001_initial_schema'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

QTY = sa.Numeric(18, 4)


def _timestamps():
    return [
        sa.Column('created_at', sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(), nullable=False, server_default=sa.func.now()),
    ]


def upgrade() -> None:
    # Master data
    op.create_table(
        'products',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('sku', sa.String(length=100), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('unit', sa.String(length=20), nullable=False, server_default='EA'),
        sa.Column('sales_price', QTY, nullable=True),
        sa.Column('reorder_point', QTY, nullable=False, server_default='0'),
        sa.Column('reorder_quantity', QTY, nullable=False, server_default='0'),
        sa.Column('active', sa.Boolean(), nullable=False, server_default=sa.true()),
        *_timestamps(),
    )
    op.create_index('ix_products_sku', 'products', ['sku'], unique=True)

    # Inventory ledger
    op.create_table(
        'inventory',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('product_id', sa.Integer(), sa.ForeignKey('products.id'), nullable=False),
        sa.Column('location', sa.String(length=50), nullable=False, server_default='MAIN'),
        sa.Column('quantity_on_hand', QTY, nullable=False, server_default='0'),
        sa.Column('quantity_allocated', QTY, nullable=False, server_default='0'),
        sa.Column('quantity_available', QTY, nullable=False, server_default='0'),
        sa.Column('weighted_average_cost', QTY, nullable=True),
        sa.Column('last_cost', QTY, nullable=True),
        sa.Column('sales_price', QTY, nullable=True),
        sa.Column('last_counted', sa.DateTime(), nullable=True),
        *_timestamps(),
        sa.UniqueConstraint('product_id', 'location', name='uq_inventory_product_location'),
        sa.CheckConstraint('quantity_on_hand >= 0', name='ck_inventory_on_hand_non_negative'),
        sa.CheckConstraint('quantity_allocated >= 0', name='ck_inventory_allocated_non_negative'),
    )
    op.create_index('ix_inventory_product_id', 'inventory', ['product_id'])

    op.create_table(
        'inventory_transactions',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('inventory_id', sa.Integer(), sa.ForeignKey('inventory.id'), nullable=False),
        sa.Column('product_id', sa.Integer(), sa.ForeignKey('products.id'), nullable=False),
        sa.Column('transaction_type', sa.String(length=50), nullable=False),
        sa.Column('reference_type', sa.String(length=50), nullable=True),
        sa.Column('reference_id', sa.Integer(), nullable=True),
        sa.Column('previous_on_hand', QTY, nullable=False),
        sa.Column('on_hand_delta', QTY, nullable=False, server_default='0'),
        sa.Column('new_on_hand', QTY, nullable=False),
        sa.Column('previous_allocated', QTY, nullable=False),
        sa.Column('allocated_delta', QTY, nullable=False, server_default='0'),
        sa.Column('new_allocated', QTY, nullable=False),
        sa.Column('reason_code', sa.String(length=30), nullable=True),
        sa.Column('unit_cost', QTY, nullable=True),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.Column('created_by', sa.String(length=100), nullable=True),
    )
    op.create_index('ix_inventory_transactions_inventory_id', 'inventory_transactions', ['inventory_id'])

    # Purchasing
    op.create_table(
        'purchase_orders',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('po_number', sa.String(length=50), nullable=False),
        sa.Column('vendor_name', sa.String(length=200), nullable=True),
        sa.Column('status', sa.String(length=20), nullable=False, server_default='PENDING'),
        sa.Column('order_date', sa.Date(), nullable=True),
        sa.Column('received_date', sa.Date(), nullable=True),
        sa.Column('total_amount', QTY, nullable=False, server_default='0'),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('created_by', sa.String(length=100), nullable=True),
        *_timestamps(),
    )
    op.create_index('ix_purchase_orders_po_number', 'purchase_orders', ['po_number'], unique=True)

    op.create_table(
        'purchase_order_lines',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('purchase_order_id', sa.Integer(),
                  sa.ForeignKey('purchase_orders.id', ondelete='CASCADE'), nullable=False),
        sa.Column('product_id', sa.Integer(), sa.ForeignKey('products.id'), nullable=False),
        sa.Column('line_number', sa.Integer(), nullable=False, server_default='1'),
        sa.Column('quantity', QTY, nullable=False),
        sa.Column('unit_price', QTY, nullable=False, server_default='0'),
        sa.Column('notes', sa.Text(), nullable=True),
        *_timestamps(),
    )
    op.create_index('ix_purchase_order_lines_purchase_order_id', 'purchase_order_lines', ['purchase_order_id'])

    op.create_table(
        'inventory_receipts',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('po_line_id', sa.Integer(), sa.ForeignKey('purchase_order_lines.id'), nullable=False),
        sa.Column('product_id', sa.Integer(), sa.ForeignKey('products.id'), nullable=False),
        sa.Column('inventory_id', sa.Integer(), sa.ForeignKey('inventory.id'), nullable=True),
        sa.Column('qty_received', QTY, nullable=False),
        sa.Column('unit_cost', QTY, nullable=False, server_default='0'),
        sa.Column('total_cost', QTY, nullable=False, server_default='0'),
        sa.Column('receive_date', sa.Date(), nullable=False),
        sa.Column('reference_number', sa.String(length=100), nullable=True),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('received_by', sa.String(length=100), nullable=True),
        sa.Column('reversal_of_id', sa.Integer(), sa.ForeignKey('inventory_receipts.id'), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.UniqueConstraint('reversal_of_id', name='uq_inventory_receipts_reversal_of_id'),
    )
    op.create_index('ix_inventory_receipts_po_line_id', 'inventory_receipts', ['po_line_id'])

    # Adjustments
    op.create_table(
        'inventory_adjustments',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('adjustment_number', sa.String(length=50), nullable=False),
        sa.Column('adjustment_date', sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.Column('status', sa.String(length=20), nullable=False, server_default='draft'),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('user_id', sa.String(length=100), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.Column('completed_at', sa.DateTime(), nullable=True),
    )
    op.create_index('ix_inventory_adjustments_adjustment_number', 'inventory_adjustments',
                    ['adjustment_number'], unique=True)

    op.create_table(
        'inventory_adjustment_lines',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('adjustment_id', sa.Integer(),
                  sa.ForeignKey('inventory_adjustments.id', ondelete='CASCADE'), nullable=False),
        sa.Column('inventory_id', sa.Integer(), sa.ForeignKey('inventory.id'), nullable=False),
        sa.Column('line_number', sa.Integer(), nullable=False),
        sa.Column('previous_quantity', QTY, nullable=False),
        sa.Column('adjustment_quantity', QTY, nullable=False),
        sa.Column('new_quantity', QTY, nullable=False),
        sa.Column('reason_code', sa.String(length=30), nullable=False),
        sa.Column('line_notes', sa.Text(), nullable=True),
        sa.Column('inventory_transaction_id', sa.Integer(),
                  sa.ForeignKey('inventory_transactions.id'), nullable=True),
        sa.CheckConstraint('new_quantity >= 0', name='ck_adjustment_lines_new_quantity_non_negative'),
    )
    op.create_index('ix_inventory_adjustment_lines_adjustment_id', 'inventory_adjustment_lines', ['adjustment_id'])
    op.create_index('ix_inventory_adjustment_lines_inventory_id', 'inventory_adjustment_lines', ['inventory_id'])

    # Sales / invoicing
    op.create_table(
        'sales_orders',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('order_number', sa.String(length=50), nullable=False),
        sa.Column('customer_name', sa.String(length=200), nullable=True),
        sa.Column('status', sa.String(length=30), nullable=False, server_default='CONFIRMED'),
        sa.Column('order_date', sa.Date(), nullable=True),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('created_by', sa.String(length=100), nullable=True),
        *_timestamps(),
    )
    op.create_index('ix_sales_orders_order_number', 'sales_orders', ['order_number'], unique=True)

    op.create_table(
        'sales_order_lines',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('sales_order_id', sa.Integer(),
                  sa.ForeignKey('sales_orders.id', ondelete='CASCADE'), nullable=False),
        sa.Column('product_id', sa.Integer(), sa.ForeignKey('products.id'), nullable=False),
        sa.Column('line_number', sa.Integer(), nullable=False, server_default='1'),
        sa.Column('quantity', QTY, nullable=False),
        sa.Column('unit_price', QTY, nullable=False, server_default='0'),
        sa.Column('qty_invoiced', QTY, nullable=False, server_default='0'),
        sa.Column('qty_remaining', QTY, nullable=True),
        sa.Column('fulfillment_status', sa.String(length=20), nullable=False, server_default='pending'),
        sa.Column('notes', sa.Text(), nullable=True),
    )
    op.create_index('ix_sales_order_lines_sales_order_id', 'sales_order_lines', ['sales_order_id'])

    op.create_table(
        'invoices',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('invoice_number', sa.String(length=50), nullable=False),
        sa.Column('sales_order_id', sa.Integer(), sa.ForeignKey('sales_orders.id'), nullable=True),
        sa.Column('invoice_sequence', sa.Integer(), nullable=False, server_default='1'),
        sa.Column('is_partial_invoice', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('is_final_invoice', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('status', sa.String(length=20), nullable=False, server_default='DRAFT'),
        sa.Column('invoice_date', sa.Date(), nullable=False),
        sa.Column('customer_name', sa.String(length=200), nullable=True),
        sa.Column('subtotal', QTY, nullable=False, server_default='0'),
        sa.Column('tax_amount', QTY, nullable=False, server_default='0'),
        sa.Column('total_amount', QTY, nullable=False, server_default='0'),
        sa.Column('memo', sa.Text(), nullable=True),
        sa.Column('created_by', sa.String(length=100), nullable=True),
        *_timestamps(),
        sa.UniqueConstraint('sales_order_id', 'invoice_sequence', name='uq_invoices_sales_order_sequence'),
    )
    op.create_index('ix_invoices_invoice_number', 'invoices', ['invoice_number'], unique=True)
    op.create_index('ix_invoices_sales_order_id', 'invoices', ['sales_order_id'])

    op.create_table(
        'invoice_lines',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('invoice_id', sa.Integer(), sa.ForeignKey('invoices.id', ondelete='CASCADE'), nullable=False),
        sa.Column('line_number', sa.Integer(), nullable=False),
        sa.Column('sales_order_line_id', sa.Integer(), sa.ForeignKey('sales_order_lines.id'), nullable=True),
        sa.Column('product_id', sa.Integer(), sa.ForeignKey('products.id'), nullable=True),
        sa.Column('description', sa.String(length=500), nullable=True),
        sa.Column('quantity', QTY, nullable=False),
        sa.Column('unit_price', QTY, nullable=False, server_default='0'),
        sa.Column('line_total', QTY, nullable=False, server_default='0'),
    )
    op.create_index('ix_invoice_lines_invoice_id', 'invoice_lines', ['invoice_id'])
    op.create_index('ix_invoice_lines_sales_order_line_id', 'invoice_lines', ['sales_order_line_id'])

    # Document numbering
    op.create_table(
        'document_sequences',
        sa.Column('name', sa.String(length=50), primary_key=True),
        sa.Column('current_value', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('updated_at', sa.DateTime(), nullable=False, server_default=sa.func.now()),
    )


def downgrade() -> None:
    op.drop_table('document_sequences')
    op.drop_table('invoice_lines')
    op.drop_table('invoices')
    op.drop_table('sales_order_lines')
    op.drop_table('sales_orders')
    op.drop_table('inventory_adjustment_lines')
    op.drop_table('inventory_adjustments')
    op.drop_table('inventory_receipts')
    op.drop_table('purchase_order_lines')
    op.drop_table('purchase_orders')
    op.drop_table('inventory_transactions')
    op.drop_table('inventory')
    op.drop_table('products')
