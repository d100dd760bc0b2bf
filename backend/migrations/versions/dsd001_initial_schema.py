"""initial dsd reconciliation schema

Revision ID: dsd001
Revises:
Create Date: 2026-10-19 00:00:00.000000

This migration creates the complete reconciliation schema from scratch:
- vendors: DSD vendors, created on first mention
- products: canonical products, UNIQUE(upc) is the upsert conflict target
- wholesale_catalog_items: read-only AWG catalog reference
- invoices: headers, UNIQUE(vendor_id, invoice_number) for idempotent resubmission
- invoice_lines: replace-only line sets
- price_ledger_entries: append-only effective-dated costs
"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = 'dsd001'
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    # ============================================================================
    # vendors
    # ============================================================================
    op.create_table(
        'vendors',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('short_code', sa.String(length=64), nullable=True),
        sa.Column('contact_name', sa.String(length=255), nullable=True),
        sa.Column('contact_phone', sa.String(length=64), nullable=True),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.Column('version_id', sa.Integer(), nullable=False, server_default='1'),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_vendors_name', 'vendors', ['name'])
    op.create_index('ix_vendors_short_code', 'vendors', ['short_code'])

    # ============================================================================
    # products
    # ============================================================================
    op.create_table(
        'products',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('upc', sa.String(length=32), nullable=True),
        sa.Column('item_code', sa.String(length=64), nullable=True),
        sa.Column('description', sa.String(length=255), nullable=False),
        sa.Column('vendor_id', sa.Integer(), nullable=True),
        sa.Column('source', sa.String(length=16), nullable=False, server_default='invoice'),
        sa.Column('pack_size', sa.String(length=64), nullable=True),
        sa.Column('unit_of_measure', sa.String(length=32), nullable=True),
        sa.Column('category', sa.String(length=128), nullable=True),
        sa.Column('verified', sa.Boolean(), nullable=False, server_default='0'),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.ForeignKeyConstraint(['vendor_id'], ['vendors.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('upc', name='uq_products_upc'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_products_vendor_item_code', 'products', ['vendor_id', 'item_code'])
    op.create_index('ix_products_vendor', 'products', ['vendor_id'])

    # ============================================================================
    # wholesale_catalog_items: advisory lookup only
    # ============================================================================
    op.create_table(
        'wholesale_catalog_items',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('upc', sa.String(length=32), nullable=False),
        sa.Column('item_number', sa.String(length=64), nullable=False, server_default=''),
        sa.Column('description', sa.String(length=255), nullable=False),
        sa.Column('brand', sa.String(length=128), nullable=True),
        sa.Column('vendor_name', sa.String(length=255), nullable=True),
        sa.Column('vendor_id', sa.Integer(), nullable=True),
        sa.Column('pack_size', sa.String(length=64), nullable=True),
        sa.Column('case_cost', sa.Numeric(12, 4), nullable=True),
        sa.Column('category', sa.String(length=128), nullable=True),
        sa.Column('is_dsd', sa.Boolean(), nullable=False, server_default='0'),
        sa.Column('last_synced', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.ForeignKeyConstraint(['vendor_id'], ['vendors.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('upc', 'item_number', name='uq_wholesale_catalog_upc_item'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_wholesale_catalog_upc', 'wholesale_catalog_items', ['upc'])

    # ============================================================================
    # invoices
    # ============================================================================
    op.create_table(
        'invoices',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('vendor_id', sa.Integer(), nullable=False),
        sa.Column('invoice_number', sa.String(length=128), nullable=False),
        sa.Column('invoice_date', sa.Date(), nullable=False),
        sa.Column('received_date', sa.Date(), nullable=False),
        sa.Column('subtotal', sa.Numeric(12, 4), nullable=True),
        sa.Column('tax', sa.Numeric(12, 4), nullable=True),
        sa.Column('total_amount', sa.Numeric(12, 4), nullable=True),
        sa.Column('promo_credits', sa.Numeric(12, 4), nullable=False, server_default='0'),
        sa.Column('net_amount', sa.Numeric(12, 4), nullable=True),
        sa.Column('payment_status', sa.String(length=16), nullable=False, server_default='pending'),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('document_url', sa.Text(), nullable=True),
        sa.Column('document_filename', sa.String(length=255), nullable=True),
        sa.Column('receiving_mode', sa.String(length=16), nullable=True),
        sa.Column('receiving_log', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.ForeignKeyConstraint(['vendor_id'], ['vendors.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('vendor_id', 'invoice_number', name='uq_invoices_vendor_number'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_invoices_vendor_id', 'invoices', ['vendor_id'])
    op.create_index('ix_invoices_payment_status', 'invoices', ['payment_status'])
    op.create_index('ix_invoices_status_received', 'invoices', ['payment_status', 'received_date'])

    # ============================================================================
    # invoice_lines: replaced wholesale on resubmission
    # ============================================================================
    op.create_table(
        'invoice_lines',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('invoice_id', sa.Integer(), nullable=False),
        sa.Column('product_id', sa.Integer(), nullable=True),
        sa.Column('line_number', sa.Integer(), nullable=False),
        sa.Column('upc', sa.String(length=32), nullable=True),
        sa.Column('item_code', sa.String(length=64), nullable=True),
        sa.Column('description', sa.String(length=255), nullable=True),
        sa.Column('unit', sa.String(length=32), nullable=True),
        sa.Column('quantity', sa.Numeric(12, 4), nullable=False, server_default='0'),
        sa.Column('unit_cost', sa.Numeric(12, 4), nullable=False, server_default='0'),
        sa.Column('extended_cost', sa.Numeric(12, 4), nullable=False, server_default='0'),
        sa.Column('discrepancy_type', sa.String(length=16), nullable=True),
        sa.Column('expected_cost', sa.Numeric(12, 4), nullable=True),
        sa.Column('received_quantity', sa.Integer(), nullable=True),
        sa.Column('line_status', sa.String(length=16), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.ForeignKeyConstraint(['invoice_id'], ['invoices.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['product_id'], ['products.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_invoice_lines_invoice_id', 'invoice_lines', ['invoice_id'])
    op.create_index('ix_invoice_lines_product_id', 'invoice_lines', ['product_id'])
    op.create_index('ix_invoice_lines_invoice_line', 'invoice_lines', ['invoice_id', 'line_number'])

    # ============================================================================
    # price_ledger_entries: append-only
    # ============================================================================
    op.create_table(
        'price_ledger_entries',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('product_id', sa.Integer(), nullable=False),
        sa.Column('effective_date', sa.Date(), nullable=False),
        sa.Column('unit_cost', sa.Numeric(12, 4), nullable=False),
        sa.Column('previous_cost', sa.Numeric(12, 4), nullable=True),
        sa.Column('change_pct', sa.Numeric(10, 4), nullable=True),
        sa.Column('source_invoice_id', sa.Integer(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.ForeignKeyConstraint(['product_id'], ['products.id'], ),
        sa.ForeignKeyConstraint(['source_invoice_id'], ['invoices.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_price_ledger_entries_product_id', 'price_ledger_entries', ['product_id'])
    op.create_index('ix_price_ledger_entries_source_invoice_id', 'price_ledger_entries', ['source_invoice_id'])
    op.create_index('ix_price_ledger_product_effective', 'price_ledger_entries', ['product_id', 'effective_date'])


def downgrade():
    op.drop_table('price_ledger_entries')
    op.drop_table('invoice_lines')
    op.drop_table('invoices')
    op.drop_table('wholesale_catalog_items')
    op.drop_table('products')
    op.drop_table('vendors')
