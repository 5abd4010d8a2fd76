"""initial sales and ledger schema

Revision ID: 20261019_initial
Revises:
Create Date: 2026-10-19 00:00:00.000000

Creates the shop POS schema from scratch:
- shops, document_sequences: tenants and per-day invoice/return counters
- products: catalog with guarded stock_qty (never negative)
- customers, customer_ledger: due balance and its append-only ledger
- cash_entries: append-only drawer book
- sales, sale_items: committed sales with name/cost snapshots
- sale_returns, sale_return_items, sale_return_exchange_items: settlements
"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '20261019_initial'
down_revision = None
branch_labels = None
depends_on = None


def _timestamps():
    return [
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.text('CURRENT_TIMESTAMP')),
    ]


def upgrade():
    # ============================================================================
    # shops / document_sequences
    # ============================================================================
    op.create_table(
        'shops',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(length=120), nullable=False),
        sa.Column('owner_user_id', sa.String(length=64), nullable=True),
        sa.Column('timezone', sa.String(length=64), nullable=True),
        sa.Column('sales_invoice_enabled', sa.Boolean(), nullable=False, server_default=sa.text('0')),
        sa.Column('sales_invoice_prefix', sa.String(length=12), nullable=True),
        sa.Column('sale_return_prefix', sa.String(length=12), nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.text('1')),
        *_timestamps(),
        sa.PrimaryKeyConstraint('id', name='pk_shops'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_shops_owner_user_id', 'shops', ['owner_user_id'])

    op.create_table(
        'document_sequences',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('shop_id', sa.Integer(), nullable=False),
        sa.Column('document_type', sa.String(length=32), nullable=False),
        sa.Column('period_key', sa.String(length=10), nullable=False),
        sa.Column('next_number', sa.Integer(), nullable=False, server_default=sa.text('1')),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.ForeignKeyConstraint(['shop_id'], ['shops.id'], name='fk_document_sequences_shop_id_shops'),
        sa.PrimaryKeyConstraint('id', name='pk_document_sequences'),
        sa.UniqueConstraint('shop_id', 'document_type', 'period_key', name='uq_doc_sequences_shop_type_period'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_document_sequences_shop_id', 'document_sequences', ['shop_id'])

    # ============================================================================
    # products
    # ============================================================================
    op.create_table(
        'products',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('shop_id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('category', sa.String(length=120), nullable=True),
        sa.Column('sell_price', sa.Numeric(12, 2), nullable=False),
        sa.Column('buy_price', sa.Numeric(12, 2), nullable=True),
        sa.Column('stock_qty', sa.Numeric(12, 2), nullable=False, server_default=sa.text('0')),
        sa.Column('track_stock', sa.Boolean(), nullable=False, server_default=sa.text('1')),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.text('1')),
        *_timestamps(),
        sa.ForeignKeyConstraint(['shop_id'], ['shops.id'], name='fk_products_shop_id_shops'),
        sa.PrimaryKeyConstraint('id', name='pk_products'),
        sa.CheckConstraint('stock_qty >= 0', name='ck_products_stock_non_negative'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_products_shop_id', 'products', ['shop_id'])
    op.create_index('ix_products_shop_name', 'products', ['shop_id', 'name'])
    op.create_index('ix_products_shop_active', 'products', ['shop_id', 'is_active'])

    # ============================================================================
    # customers
    # ============================================================================
    op.create_table(
        'customers',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('shop_id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('phone', sa.String(length=32), nullable=True),
        sa.Column('address', sa.String(length=255), nullable=True),
        sa.Column('total_due', sa.Numeric(12, 2), nullable=False, server_default=sa.text('0')),
        sa.Column('last_payment_at', sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
        sa.ForeignKeyConstraint(['shop_id'], ['shops.id'], name='fk_customers_shop_id_shops'),
        sa.PrimaryKeyConstraint('id', name='pk_customers'),
        sa.CheckConstraint('total_due >= 0', name='ck_customers_total_due_non_negative'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_customers_shop_id', 'customers', ['shop_id'])
    op.create_index('ix_customers_shop_due', 'customers', ['shop_id', 'total_due'])

    # ============================================================================
    # sales / sale_items
    # ============================================================================
    op.create_table(
        'sales',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('shop_id', sa.Integer(), nullable=False),
        sa.Column('customer_id', sa.Integer(), nullable=True),
        sa.Column('total_amount', sa.Numeric(12, 2), nullable=False),
        sa.Column('paid_amount', sa.Numeric(12, 2), nullable=False, server_default=sa.text('0')),
        sa.Column('payment_method', sa.String(length=32), nullable=False, server_default='cash'),
        sa.Column('note', sa.String(length=255), nullable=True),
        sa.Column('status', sa.String(length=16), nullable=False, server_default='ACTIVE'),
        sa.Column('void_reason', sa.String(length=255), nullable=True),
        sa.Column('voided_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('voided_by_user_id', sa.String(length=64), nullable=True),
        sa.Column('invoice_no', sa.String(length=40), nullable=True),
        sa.Column('invoice_issued_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('client_sale_id', sa.String(length=64), nullable=True),
        sa.Column('reissued_from_sale_id', sa.Integer(), nullable=True),
        sa.Column('sale_date', sa.DateTime(timezone=True), nullable=False),
        sa.Column('business_date', sa.Date(), nullable=False),
        sa.Column('created_by_user_id', sa.String(length=64), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.ForeignKeyConstraint(['shop_id'], ['shops.id'], name='fk_sales_shop_id_shops'),
        sa.ForeignKeyConstraint(['customer_id'], ['customers.id'], name='fk_sales_customer_id_customers'),
        sa.ForeignKeyConstraint(['reissued_from_sale_id'], ['sales.id'], name='fk_sales_reissued_from_sale_id_sales'),
        sa.PrimaryKeyConstraint('id', name='pk_sales'),
        sa.UniqueConstraint('shop_id', 'invoice_no', name='uq_sales_shop_invoice_no'),
        sa.UniqueConstraint('client_sale_id', name='uq_sales_client_sale_id'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_sales_shop_id', 'sales', ['shop_id'])
    op.create_index('ix_sales_customer_id', 'sales', ['customer_id'])
    op.create_index('ix_sales_status', 'sales', ['status'])
    op.create_index('ix_sales_reissued_from_sale_id', 'sales', ['reissued_from_sale_id'])
    op.create_index('ix_sales_shop_status_sale_date', 'sales', ['shop_id', 'status', 'sale_date'])
    op.create_index('ix_sales_shop_business_date', 'sales', ['shop_id', 'business_date'])

    op.create_table(
        'sale_items',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('sale_id', sa.Integer(), nullable=False),
        sa.Column('product_id', sa.Integer(), nullable=False),
        sa.Column('product_name_snapshot', sa.String(length=255), nullable=True),
        sa.Column('quantity', sa.Numeric(12, 2), nullable=False),
        sa.Column('unit_price', sa.Numeric(12, 2), nullable=False),
        sa.Column('cost_at_sale', sa.Numeric(12, 2), nullable=True),
        sa.Column('line_total', sa.Numeric(12, 2), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.ForeignKeyConstraint(['sale_id'], ['sales.id'], name='fk_sale_items_sale_id_sales'),
        sa.ForeignKeyConstraint(['product_id'], ['products.id'], name='fk_sale_items_product_id_products'),
        sa.PrimaryKeyConstraint('id', name='pk_sale_items'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_sale_items_sale_id', 'sale_items', ['sale_id'])
    op.create_index('ix_sale_items_product_id', 'sale_items', ['product_id'])

    # ============================================================================
    # sale_returns and their lines
    # ============================================================================
    op.create_table(
        'sale_returns',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('shop_id', sa.Integer(), nullable=False),
        sa.Column('sale_id', sa.Integer(), nullable=False),
        sa.Column('return_no', sa.String(length=40), nullable=False),
        sa.Column('type', sa.String(length=16), nullable=False),
        sa.Column('status', sa.String(length=16), nullable=False, server_default='completed'),
        sa.Column('settlement_mode', sa.String(length=16), nullable=False),
        sa.Column('reason', sa.String(length=255), nullable=True),
        sa.Column('note', sa.String(length=255), nullable=True),
        sa.Column('subtotal', sa.Numeric(12, 2), nullable=False),
        sa.Column('exchange_subtotal', sa.Numeric(12, 2), nullable=False, server_default=sa.text('0')),
        sa.Column('net_amount', sa.Numeric(12, 2), nullable=False),
        sa.Column('refund_amount', sa.Numeric(12, 2), nullable=False, server_default=sa.text('0')),
        sa.Column('additional_cash_in_amount', sa.Numeric(12, 2), nullable=False, server_default=sa.text('0')),
        sa.Column('due_adjustment_amount', sa.Numeric(12, 2), nullable=False, server_default=sa.text('0')),
        sa.Column('additional_due_amount', sa.Numeric(12, 2), nullable=False, server_default=sa.text('0')),
        sa.Column('business_date', sa.Date(), nullable=False),
        sa.Column('created_by_user_id', sa.String(length=64), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.ForeignKeyConstraint(['shop_id'], ['shops.id'], name='fk_sale_returns_shop_id_shops'),
        sa.ForeignKeyConstraint(['sale_id'], ['sales.id'], name='fk_sale_returns_sale_id_sales'),
        sa.PrimaryKeyConstraint('id', name='pk_sale_returns'),
        sa.UniqueConstraint('shop_id', 'return_no', name='uq_sale_returns_shop_return_no'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_sale_returns_shop_id', 'sale_returns', ['shop_id'])
    op.create_index('ix_sale_returns_sale_id', 'sale_returns', ['sale_id'])
    op.create_index('ix_sale_returns_shop_business_date', 'sale_returns', ['shop_id', 'business_date'])
    op.create_index('ix_sale_returns_shop_status_created', 'sale_returns', ['shop_id', 'status', 'created_at'])

    for table, extra in (
        ('sale_return_items', [sa.Column('sale_item_id', sa.Integer(), sa.ForeignKey('sale_items.id', name='fk_sale_return_items_sale_item_id_sale_items'), nullable=False)]),
        ('sale_return_exchange_items', []),
    ):
        op.create_table(
            table,
            sa.Column('id', sa.Integer(), nullable=False),
            sa.Column('sale_return_id', sa.Integer(), sa.ForeignKey('sale_returns.id', name=f'fk_{table}_sale_return_id_sale_returns'), nullable=False),
            *extra,
            sa.Column('product_id', sa.Integer(), sa.ForeignKey('products.id', name=f'fk_{table}_product_id_products'), nullable=False),
            sa.Column('product_name_snapshot', sa.String(length=255), nullable=True),
            sa.Column('quantity', sa.Numeric(12, 2), nullable=False),
            sa.Column('unit_price', sa.Numeric(12, 2), nullable=False),
            sa.Column('line_total', sa.Numeric(12, 2), nullable=False),
            sa.Column('cost_at_return', sa.Numeric(12, 2), nullable=True),
            sa.Column('created_at', sa.DateTime(timezone=True), nullable=False,
                      server_default=sa.text('CURRENT_TIMESTAMP')),
            sa.PrimaryKeyConstraint('id', name=f'pk_{table}'),
            sqlite_autoincrement=True
        )
        op.create_index(f'ix_{table}_sale_return_id', table, ['sale_return_id'])
        op.create_index(f'ix_{table}_product_id', table, ['product_id'])
    op.create_index('ix_sale_return_items_sale_item_id', 'sale_return_items', ['sale_item_id'])

    # ============================================================================
    # customer_ledger / cash_entries (append-only)
    # ============================================================================
    op.create_table(
        'customer_ledger',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('shop_id', sa.Integer(), nullable=False),
        sa.Column('customer_id', sa.Integer(), nullable=False),
        sa.Column('entry_type', sa.String(length=16), nullable=False),
        sa.Column('amount', sa.Numeric(12, 2), nullable=False),
        sa.Column('description', sa.String(length=255), nullable=True),
        sa.Column('sale_id', sa.Integer(), nullable=True),
        sa.Column('sale_return_id', sa.Integer(), nullable=True),
        sa.Column('entry_date', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.Column('business_date', sa.Date(), nullable=False),
        sa.ForeignKeyConstraint(['shop_id'], ['shops.id'], name='fk_customer_ledger_shop_id_shops'),
        sa.ForeignKeyConstraint(['customer_id'], ['customers.id'], name='fk_customer_ledger_customer_id_customers'),
        sa.ForeignKeyConstraint(['sale_id'], ['sales.id'], name='fk_customer_ledger_sale_id_sales'),
        sa.ForeignKeyConstraint(['sale_return_id'], ['sale_returns.id'], name='fk_customer_ledger_sale_return_id_sale_returns'),
        sa.PrimaryKeyConstraint('id', name='pk_customer_ledger'),
        sa.CheckConstraint('amount > 0', name='ck_customer_ledger_amount_positive'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_customer_ledger_shop_id', 'customer_ledger', ['shop_id'])
    op.create_index('ix_customer_ledger_customer_id', 'customer_ledger', ['customer_id'])
    op.create_index('ix_customer_ledger_entry_type', 'customer_ledger', ['entry_type'])
    op.create_index('ix_customer_ledger_sale_id', 'customer_ledger', ['sale_id'])
    op.create_index('ix_customer_ledger_sale_return_id', 'customer_ledger', ['sale_return_id'])
    op.create_index('ix_customer_ledger_customer_entry_date', 'customer_ledger', ['customer_id', 'entry_date'])
    op.create_index('ix_customer_ledger_shop_business_date', 'customer_ledger', ['shop_id', 'business_date'])

    op.create_table(
        'cash_entries',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('shop_id', sa.Integer(), nullable=False),
        sa.Column('entry_type', sa.String(length=8), nullable=False),
        sa.Column('amount', sa.Numeric(12, 2), nullable=False),
        sa.Column('reason', sa.String(length=255), nullable=True),
        sa.Column('sale_id', sa.Integer(), nullable=True),
        sa.Column('sale_return_id', sa.Integer(), nullable=True),
        sa.Column('business_date', sa.Date(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.ForeignKeyConstraint(['shop_id'], ['shops.id'], name='fk_cash_entries_shop_id_shops'),
        sa.ForeignKeyConstraint(['sale_id'], ['sales.id'], name='fk_cash_entries_sale_id_sales'),
        sa.ForeignKeyConstraint(['sale_return_id'], ['sale_returns.id'], name='fk_cash_entries_sale_return_id_sale_returns'),
        sa.PrimaryKeyConstraint('id', name='pk_cash_entries'),
        sa.CheckConstraint('amount > 0', name='ck_cash_entries_amount_positive'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_cash_entries_shop_id', 'cash_entries', ['shop_id'])
    op.create_index('ix_cash_entries_entry_type', 'cash_entries', ['entry_type'])
    op.create_index('ix_cash_entries_sale_id', 'cash_entries', ['sale_id'])
    op.create_index('ix_cash_entries_sale_return_id', 'cash_entries', ['sale_return_id'])
    op.create_index('ix_cash_entries_shop_business_date', 'cash_entries', ['shop_id', 'business_date'])


def downgrade():
    op.drop_table('cash_entries')
    op.drop_table('customer_ledger')
    op.drop_table('sale_return_exchange_items')
    op.drop_table('sale_return_items')
    op.drop_table('sale_returns')
    op.drop_table('sale_items')
    op.drop_table('sales')
    op.drop_table('customers')
    op.drop_table('products')
    op.drop_table('document_sequences')
    op.drop_table('shops')
