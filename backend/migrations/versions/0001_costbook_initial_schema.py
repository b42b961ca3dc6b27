"""costbook initial schema

Revision ID: 0001_costbook
Revises:
Create Date: 2026-10-19 00:00:00.000000

Creates the complete bookkeeping schema:
- chart of accounts: currencies, categories, subcategories, accounts
- directory: users, units, items, item packaging, stock locations, suppliers
- general journal: pages and posts
- inventory movement log
- sales, purchases and currency exchanges with their document sequences
"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '0001_costbook'
down_revision = None
branch_labels = None
depends_on = None


def _now():
    return sa.text('CURRENT_TIMESTAMP')


def upgrade():
    """Create all tables from scratch."""

    # ============================================================================
    # Chart of accounts
    # ============================================================================
    op.create_table(
        'currencies',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('code', sa.String(length=8), nullable=False),
        sa.Column('symbol', sa.String(length=8), nullable=True),
        sa.Column('name', sa.String(length=64), nullable=True),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_currencies_code', 'currencies', ['code'], unique=True)

    op.create_table(
        'account_categories',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(length=64), nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('name'),
        sqlite_autoincrement=True
    )

    op.create_table(
        'account_subcategories',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('code', sa.String(length=32), nullable=True),
        sa.Column('name', sa.String(length=128), nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('name'),
        sqlite_autoincrement=True
    )

    op.create_table(
        'accounts',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('number', sa.String(length=32), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('category_id', sa.Integer(), nullable=False),
        sa.Column('subcategory_id', sa.Integer(), nullable=True),
        sa.Column('normal_balance', sa.String(length=8), nullable=False),
        sa.Column('currency_code', sa.String(length=8), nullable=False),
        sa.Column('status', sa.String(length=16), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=_now()),
        sa.ForeignKeyConstraint(['category_id'], ['account_categories.id'], ),
        sa.ForeignKeyConstraint(['subcategory_id'], ['account_subcategories.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_accounts_number', 'accounts', ['number'], unique=True)
    op.create_index('ix_accounts_status', 'accounts', ['status'])
    op.create_index('ix_accounts_category_sub', 'accounts', ['category_id', 'subcategory_id'])

    # ============================================================================
    # Directory
    # ============================================================================
    op.create_table(
        'users',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('username', sa.String(length=64), nullable=False),
        sa.Column('status', sa.String(length=16), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=_now()),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('username'),
        sqlite_autoincrement=True
    )

    op.create_table(
        'units',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(length=64), nullable=False),
        sa.Column('status', sa.String(length=16), nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('name'),
        sqlite_autoincrement=True
    )

    op.create_table(
        'items',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('code', sa.String(length=64), nullable=True),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('base_unit_id', sa.Integer(), nullable=False),
        sa.Column('status', sa.String(length=16), nullable=False),
        sa.ForeignKeyConstraint(['base_unit_id'], ['units.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('code'),
        sqlite_autoincrement=True
    )

    op.create_table(
        'item_details',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('code', sa.String(length=64), nullable=False),
        sa.Column('item_id', sa.Integer(), nullable=False),
        sa.Column('unit_id', sa.Integer(), nullable=False),
        sa.Column('conversion_factor', sa.Integer(), nullable=False),
        sa.Column('price', sa.Numeric(precision=18, scale=4), nullable=True),
        sa.Column('status', sa.String(length=16), nullable=False),
        sa.ForeignKeyConstraint(['item_id'], ['items.id'], ),
        sa.ForeignKeyConstraint(['unit_id'], ['units.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('item_id', 'unit_id', name='uq_item_details_item_unit'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_item_details_code', 'item_details', ['code'], unique=True)
    op.create_index('ix_item_details_item_id', 'item_details', ['item_id'])

    op.create_table(
        'stock_locations',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(length=128), nullable=False),
        sa.Column('status', sa.String(length=16), nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('name'),
        sqlite_autoincrement=True
    )

    op.create_table(
        'suppliers',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('status', sa.String(length=16), nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('name'),
        sqlite_autoincrement=True
    )

    # ============================================================================
    # General journal
    # ============================================================================
    op.create_table(
        'journal_pages',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('currency_id', sa.Integer(), nullable=False),
        sa.Column('ref', sa.String(length=128), nullable=True),
        sa.Column('source', sa.String(length=64), nullable=True),
        sa.Column('description', sa.String(length=500), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=_now()),
        sa.Column('user_id', sa.Integer(), nullable=False),
        sa.Column('status', sa.String(length=16), nullable=False),
        sa.Column('disabled_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('disabled_by_user_id', sa.Integer(), nullable=True),
        sa.Column('version_id', sa.Integer(), nullable=False, server_default='1'),
        sa.ForeignKeyConstraint(['currency_id'], ['currencies.id'], ),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'], ),
        sa.ForeignKeyConstraint(['disabled_by_user_id'], ['users.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_journal_pages_ref', 'journal_pages', ['ref'])
    op.create_index('ix_journal_pages_source', 'journal_pages', ['source'])
    op.create_index('ix_journal_pages_created_at', 'journal_pages', ['created_at'])
    op.create_index('ix_journal_pages_user_id', 'journal_pages', ['user_id'])
    op.create_index('ix_journal_pages_status_created', 'journal_pages', ['status', 'created_at'])

    # Posts reference accounts by number, so renumbering an account is not supported
    op.create_table(
        'journal_posts',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('page_id', sa.Integer(), nullable=False),
        sa.Column('account_number', sa.String(length=32), nullable=False),
        sa.Column('ref', sa.String(length=128), nullable=True),
        sa.Column('description', sa.String(length=500), nullable=True),
        sa.Column('debit', sa.Numeric(precision=18, scale=4), nullable=False),
        sa.Column('credit', sa.Numeric(precision=18, scale=4), nullable=False),
        sa.CheckConstraint('debit >= 0', name='ck_journal_posts_debit_nonneg'),
        sa.CheckConstraint('credit >= 0', name='ck_journal_posts_credit_nonneg'),
        sa.ForeignKeyConstraint(['page_id'], ['journal_pages.id'], ),
        sa.ForeignKeyConstraint(['account_number'], ['accounts.number'], ),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_journal_posts_page_id', 'journal_posts', ['page_id'])
    op.create_index('ix_journal_posts_account_page', 'journal_posts', ['account_number', 'page_id'])

    # ============================================================================
    # inventory_logs: Append-only movement history
    # ============================================================================
    op.create_table(
        'inventory_logs',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('item_id', sa.Integer(), nullable=False),
        sa.Column('item_detail_id', sa.Integer(), nullable=True),
        sa.Column('user_id', sa.Integer(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=_now()),
        sa.Column('transaction_type', sa.String(length=32), nullable=False),
        sa.Column('quantity', sa.Integer(), nullable=False),
        sa.Column('unit_id', sa.Integer(), nullable=False),
        sa.Column('conversion_factor', sa.Integer(), nullable=False),
        sa.Column('quantity_in_base_units', sa.Integer(), nullable=False),
        sa.Column('cost_per_base_unit', sa.Numeric(precision=19, scale=6), nullable=True),
        sa.Column('sale_price_per_transacted_unit', sa.Numeric(precision=18, scale=4), nullable=True),
        sa.Column('source_type', sa.String(length=16), nullable=True),
        sa.Column('source_id', sa.Integer(), nullable=True),
        sa.CheckConstraint('quantity_in_base_units >= 0', name='ck_inventory_logs_base_qty_nonneg'),
        sa.CheckConstraint('conversion_factor > 0', name='ck_inventory_logs_factor_pos'),
        sa.ForeignKeyConstraint(['item_id'], ['items.id'], ),
        sa.ForeignKeyConstraint(['item_detail_id'], ['item_details.id'], ),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'], ),
        sa.ForeignKeyConstraint(['unit_id'], ['units.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_inventory_logs_item_id', 'inventory_logs', ['item_id'])
    op.create_index('ix_inventory_logs_source_id', 'inventory_logs', ['source_id'])
    op.create_index('ix_inventory_logs_item_type', 'inventory_logs', ['item_id', 'transaction_type'])
    op.create_index('ix_inventory_logs_item_created', 'inventory_logs', ['item_id', 'created_at'])

    # ============================================================================
    # Sales
    # ============================================================================
    op.create_table(
        'sales',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('code', sa.String(length=32), nullable=False),
        sa.Column('date', sa.Date(), nullable=False),
        sa.Column('stock_id', sa.Integer(), nullable=False),
        sa.Column('total_price', sa.Numeric(precision=18, scale=4), nullable=False),
        sa.Column('total_cogs', sa.Numeric(precision=18, scale=4), nullable=False),
        sa.Column('journal_page_id', sa.Integer(), nullable=True),
        sa.Column('user_id', sa.Integer(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=_now()),
        sa.Column('status', sa.String(length=16), nullable=False),
        sa.Column('voided_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('voided_by_user_id', sa.Integer(), nullable=True),
        sa.Column('version_id', sa.Integer(), nullable=False, server_default='1'),
        sa.ForeignKeyConstraint(['stock_id'], ['stock_locations.id'], ),
        sa.ForeignKeyConstraint(['journal_page_id'], ['journal_pages.id'], ),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'], ),
        sa.ForeignKeyConstraint(['voided_by_user_id'], ['users.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_sales_code', 'sales', ['code'], unique=True)
    op.create_index('ix_sales_stock_id', 'sales', ['stock_id'])
    op.create_index('ix_sales_status', 'sales', ['status'])
    op.create_index('ix_sales_status_date', 'sales', ['status', 'date'])

    op.create_table(
        'sale_details',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('sale_id', sa.Integer(), nullable=False),
        sa.Column('item_code', sa.String(length=64), nullable=False),
        sa.Column('item_detail_id', sa.Integer(), nullable=False),
        sa.Column('item_id', sa.Integer(), nullable=False),
        sa.Column('unit_id', sa.Integer(), nullable=False),
        sa.Column('qty', sa.Integer(), nullable=False),
        sa.Column('quantity_in_base_units', sa.Integer(), nullable=False),
        sa.Column('total_price', sa.Numeric(precision=18, scale=4), nullable=False),
        sa.Column('cost_per_base_unit', sa.Numeric(precision=19, scale=6), nullable=False),
        sa.Column('calculated_cogs', sa.Numeric(precision=18, scale=4), nullable=False),
        sa.ForeignKeyConstraint(['sale_id'], ['sales.id'], ),
        sa.ForeignKeyConstraint(['item_detail_id'], ['item_details.id'], ),
        sa.ForeignKeyConstraint(['item_id'], ['items.id'], ),
        sa.ForeignKeyConstraint(['unit_id'], ['units.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_sale_details_sale_id', 'sale_details', ['sale_id'])

    # ============================================================================
    # Purchases
    # ============================================================================
    op.create_table(
        'purchases',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('code', sa.String(length=32), nullable=False),
        sa.Column('date', sa.Date(), nullable=False),
        sa.Column('supplier_id', sa.Integer(), nullable=False),
        sa.Column('stock_id', sa.Integer(), nullable=False),
        sa.Column('total_cost', sa.Numeric(precision=18, scale=4), nullable=False),
        sa.Column('journal_page_id', sa.Integer(), nullable=True),
        sa.Column('user_id', sa.Integer(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=_now()),
        sa.Column('status', sa.String(length=16), nullable=False),
        sa.Column('voided_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('voided_by_user_id', sa.Integer(), nullable=True),
        sa.Column('version_id', sa.Integer(), nullable=False, server_default='1'),
        sa.ForeignKeyConstraint(['supplier_id'], ['suppliers.id'], ),
        sa.ForeignKeyConstraint(['stock_id'], ['stock_locations.id'], ),
        sa.ForeignKeyConstraint(['journal_page_id'], ['journal_pages.id'], ),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'], ),
        sa.ForeignKeyConstraint(['voided_by_user_id'], ['users.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_purchases_code', 'purchases', ['code'], unique=True)
    op.create_index('ix_purchases_supplier_id', 'purchases', ['supplier_id'])
    op.create_index('ix_purchases_status', 'purchases', ['status'])
    op.create_index('ix_purchases_status_date', 'purchases', ['status', 'date'])

    op.create_table(
        'purchase_details',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('purchase_id', sa.Integer(), nullable=False),
        sa.Column('item_code', sa.String(length=64), nullable=False),
        sa.Column('item_detail_id', sa.Integer(), nullable=False),
        sa.Column('item_id', sa.Integer(), nullable=False),
        sa.Column('unit_id', sa.Integer(), nullable=False),
        sa.Column('qty', sa.Integer(), nullable=False),
        sa.Column('quantity_in_base_units', sa.Integer(), nullable=False),
        sa.Column('total_cost', sa.Numeric(precision=18, scale=4), nullable=False),
        sa.Column('cost_per_base_unit', sa.Numeric(precision=19, scale=6), nullable=True),
        sa.ForeignKeyConstraint(['purchase_id'], ['purchases.id'], ),
        sa.ForeignKeyConstraint(['item_detail_id'], ['item_details.id'], ),
        sa.ForeignKeyConstraint(['item_id'], ['items.id'], ),
        sa.ForeignKeyConstraint(['unit_id'], ['units.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_purchase_details_purchase_id', 'purchase_details', ['purchase_id'])

    # ============================================================================
    # Currency exchanges and document numbering
    # ============================================================================
    op.create_table(
        'currency_exchanges',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('code', sa.String(length=32), nullable=False),
        sa.Column('option', sa.String(length=16), nullable=False),
        sa.Column('bank_location', sa.String(length=64), nullable=False),
        sa.Column('from_currency_id', sa.Integer(), nullable=False),
        sa.Column('to_currency_id', sa.Integer(), nullable=False),
        sa.Column('from_amount', sa.Numeric(precision=18, scale=4), nullable=False),
        sa.Column('to_amount', sa.Numeric(precision=18, scale=4), nullable=False),
        sa.Column('rate', sa.Numeric(precision=19, scale=6), nullable=False),
        sa.Column('description', sa.String(length=500), nullable=True),
        sa.Column('user_id', sa.Integer(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=_now()),
        sa.Column('sale_page_id', sa.Integer(), nullable=True),
        sa.Column('purchase_page_id', sa.Integer(), nullable=True),
        sa.Column('status', sa.String(length=16), nullable=False),
        sa.Column('disabled_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('disabled_by_user_id', sa.Integer(), nullable=True),
        sa.Column('version_id', sa.Integer(), nullable=False, server_default='1'),
        sa.ForeignKeyConstraint(['from_currency_id'], ['currencies.id'], ),
        sa.ForeignKeyConstraint(['to_currency_id'], ['currencies.id'], ),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'], ),
        sa.ForeignKeyConstraint(['sale_page_id'], ['journal_pages.id'], ),
        sa.ForeignKeyConstraint(['purchase_page_id'], ['journal_pages.id'], ),
        sa.ForeignKeyConstraint(['disabled_by_user_id'], ['users.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_currency_exchanges_code', 'currency_exchanges', ['code'], unique=True)
    op.create_index('ix_currency_exchanges_status', 'currency_exchanges', ['status'])

    op.create_table(
        'document_sequences',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('document_type', sa.String(length=32), nullable=False),
        sa.Column('next_number', sa.Integer(), nullable=False, server_default='1'),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=_now()),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_document_sequences_document_type', 'document_sequences',
                    ['document_type'], unique=True)


def downgrade():
    """Drop all tables (destructive operation)."""
    op.drop_table('document_sequences')
    op.drop_table('currency_exchanges')
    op.drop_table('purchase_details')
    op.drop_table('purchases')
    op.drop_table('sale_details')
    op.drop_table('sales')
    op.drop_table('inventory_logs')
    op.drop_table('journal_posts')
    op.drop_table('journal_pages')
    op.drop_table('suppliers')
    op.drop_table('stock_locations')
    op.drop_table('item_details')
    op.drop_table('items')
    op.drop_table('units')
    op.drop_table('users')
    op.drop_table('accounts')
    op.drop_table('account_subcategories')
    op.drop_table('account_categories')
    op.drop_table('currencies')
