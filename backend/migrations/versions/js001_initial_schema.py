"""initial jewellery retail schema

Revision ID: js001
Revises:
Create Date: 2026-09-01 00:00:00.000000

Creates the complete multi-tenant schema:
- shops, users, session_tokens: tenancy and authentication
- customers, suppliers, products: catalog
- rate_master, stock_items: pricing and serialized inventory
- purchase_orders, purchase_order_items, purchase_payments
- sales_orders, sales_order_lines, sales_payments
- emi_payments, emi_installments
- transactions, audit_logs

Money columns are integer paise, weights integer milligrams,
percentages integer basis points.
"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = 'js001'
down_revision = None
branch_labels = None
depends_on = None


def _timestamps(with_updated=True, with_deleted=True):
    columns = [
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.text('CURRENT_TIMESTAMP')),
    ]
    if with_updated:
        columns.append(sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False,
                                 server_default=sa.text('CURRENT_TIMESTAMP')))
    if with_deleted:
        columns.append(sa.Column('deleted_at', sa.DateTime(timezone=True), nullable=True))
    return columns


def upgrade():
    # ============================================================================
    # shops: tenant root
    # ============================================================================
    op.create_table(
        'shops',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('legal_name', sa.String(length=255), nullable=True),
        sa.Column('gstin', sa.String(length=15), nullable=True),
        sa.Column('pan', sa.String(length=10), nullable=True),
        sa.Column('phone', sa.String(length=32), nullable=True),
        sa.Column('email', sa.String(length=255), nullable=True),
        sa.Column('address', sa.Text(), nullable=True),
        sa.Column('city', sa.String(length=120), nullable=True),
        sa.Column('state', sa.String(length=120), nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=False),
        sa.Column('is_paused', sa.Boolean(), nullable=False),
        sa.Column('subscription_start', sa.Date(), nullable=True),
        sa.Column('subscription_end', sa.Date(), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('gstin'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_shops_is_active', 'shops', ['is_active'])
    op.create_index('ix_shops_deleted_at', 'shops', ['deleted_at'])

    # ============================================================================
    # users / session_tokens
    # ============================================================================
    op.create_table(
        'users',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('shop_id', sa.Integer(), nullable=True),
        sa.Column('username', sa.String(length=64), nullable=False),
        sa.Column('name', sa.String(length=120), nullable=False),
        sa.Column('email', sa.String(length=255), nullable=True),
        sa.Column('password_hash', sa.String(length=255), nullable=False),
        sa.Column('role', sa.String(length=32), nullable=False),
        sa.Column('is_active', sa.Boolean(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.Column('last_login_at', sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(['shop_id'], ['shops.id']),
        sa.PrimaryKeyConstraint('id'),
        sa.CheckConstraint("role = 'SUPER_ADMIN' OR shop_id IS NOT NULL", name='ck_users_shop_required'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_users_shop_id', 'users', ['shop_id'])
    op.create_index('ix_users_username', 'users', ['username'], unique=True)

    op.create_table(
        'session_tokens',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('user_id', sa.Integer(), nullable=False),
        sa.Column('shop_id', sa.Integer(), nullable=True),
        sa.Column('token_hash', sa.String(length=64), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('last_used_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('expires_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('is_revoked', sa.Boolean(), nullable=False),
        sa.Column('revoked_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('revoked_reason', sa.String(length=255), nullable=True),
        sa.Column('user_agent', sa.String(length=255), nullable=True),
        sa.Column('ip_address', sa.String(length=64), nullable=True),
        sa.ForeignKeyConstraint(['user_id'], ['users.id']),
        sa.ForeignKeyConstraint(['shop_id'], ['shops.id']),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_session_tokens_user_id', 'session_tokens', ['user_id'])
    op.create_index('ix_session_tokens_token_hash', 'session_tokens', ['token_hash'], unique=True)

    # ============================================================================
    # catalog: customers, suppliers, products
    # ============================================================================
    op.create_table(
        'customers',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('shop_id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('phone', sa.String(length=20), nullable=False),
        sa.Column('email', sa.String(length=255), nullable=True),
        sa.Column('address', sa.Text(), nullable=True),
        sa.Column('city', sa.String(length=120), nullable=True),
        sa.Column('gstin', sa.String(length=15), nullable=True),
        sa.Column('customer_type', sa.String(length=16), nullable=False),
        sa.Column('credit_limit_paise', sa.Integer(), nullable=False),
        sa.Column('notes', sa.Text(), nullable=True),
        *_timestamps(),
        sa.ForeignKeyConstraint(['shop_id'], ['shops.id']),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('shop_id', 'phone', name='uq_customers_shop_phone'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_customers_shop_id', 'customers', ['shop_id'])
    op.create_index('ix_customers_shop_name', 'customers', ['shop_id', 'name'])

    op.create_table(
        'suppliers',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('shop_id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('contact_person', sa.String(length=255), nullable=True),
        sa.Column('phone', sa.String(length=20), nullable=True),
        sa.Column('email', sa.String(length=255), nullable=True),
        sa.Column('gstin', sa.String(length=15), nullable=True),
        sa.Column('address', sa.Text(), nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=False),
        *_timestamps(),
        sa.ForeignKeyConstraint(['shop_id'], ['shops.id']),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('shop_id', 'name', name='uq_suppliers_shop_name'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_suppliers_shop_id', 'suppliers', ['shop_id'])

    op.create_table(
        'products',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('shop_id', sa.Integer(), nullable=False),
        sa.Column('supplier_id', sa.Integer(), nullable=True),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('barcode', sa.String(length=64), nullable=False),
        sa.Column('category', sa.String(length=64), nullable=True),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('metal_type', sa.String(length=16), nullable=False),
        sa.Column('purity', sa.String(length=16), nullable=False),
        sa.Column('gross_weight_mg', sa.Integer(), nullable=False),
        sa.Column('net_weight_mg', sa.Integer(), nullable=False),
        sa.Column('wastage_bps', sa.Integer(), nullable=False),
        sa.Column('making_charges_paise', sa.Integer(), nullable=False),
        sa.Column('stone_value_paise', sa.Integer(), nullable=False),
        sa.Column('huid', sa.String(length=16), nullable=True),
        sa.Column('tag_number', sa.String(length=64), nullable=True),
        sa.Column('collection_name', sa.String(length=120), nullable=True),
        *_timestamps(),
        sa.ForeignKeyConstraint(['shop_id'], ['shops.id']),
        sa.ForeignKeyConstraint(['supplier_id'], ['suppliers.id']),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('shop_id', 'barcode', name='uq_products_shop_barcode'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_products_shop_id', 'products', ['shop_id'])
    op.create_index('ix_products_shop_metal', 'products', ['shop_id', 'metal_type', 'purity'])

    # ============================================================================
    # rate_master: one active rate per (shop, metal, purity)
    # ============================================================================
    op.create_table(
        'rate_master',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('shop_id', sa.Integer(), nullable=False),
        sa.Column('metal_type', sa.String(length=16), nullable=False),
        sa.Column('purity', sa.String(length=16), nullable=False),
        sa.Column('rate_per_gram_paise', sa.Integer(), nullable=False),
        sa.Column('effective_date', sa.DateTime(timezone=True), nullable=False),
        sa.Column('valid_until', sa.DateTime(timezone=True), nullable=True),
        sa.Column('rate_source', sa.String(length=16), nullable=False),
        sa.Column('is_active', sa.Boolean(), nullable=False),
        sa.Column('created_by_user_id', sa.Integer(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.Column('deleted_at', sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(['shop_id'], ['shops.id']),
        sa.ForeignKeyConstraint(['created_by_user_id'], ['users.id']),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_rate_master_shop_id', 'rate_master', ['shop_id'])
    op.create_index('ix_rate_master_lookup', 'rate_master', ['shop_id', 'metal_type', 'purity', 'is_active'])
    op.create_index(
        'uq_rate_master_one_active',
        'rate_master',
        ['shop_id', 'metal_type', 'purity'],
        unique=True,
        sqlite_where=sa.text('is_active = 1'),
        postgresql_where=sa.text('is_active'),
    )

    # ============================================================================
    # purchasing
    # ============================================================================
    op.create_table(
        'purchase_orders',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('shop_id', sa.Integer(), nullable=False),
        sa.Column('supplier_id', sa.Integer(), nullable=False),
        sa.Column('po_number', sa.String(length=32), nullable=False),
        sa.Column('order_date', sa.DateTime(timezone=True), nullable=False),
        sa.Column('expected_delivery_date', sa.Date(), nullable=True),
        sa.Column('status', sa.String(length=16), nullable=False),
        sa.Column('total_amount_paise', sa.Integer(), nullable=False),
        sa.Column('discount_paise', sa.Integer(), nullable=False),
        sa.Column('paid_amount_paise', sa.Integer(), nullable=False),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('created_by_user_id', sa.Integer(), nullable=True),
        sa.Column('closed_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('cancelled_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('version_id', sa.Integer(), nullable=False),
        *_timestamps(),
        sa.ForeignKeyConstraint(['shop_id'], ['shops.id']),
        sa.ForeignKeyConstraint(['supplier_id'], ['suppliers.id']),
        sa.ForeignKeyConstraint(['created_by_user_id'], ['users.id']),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('shop_id', 'po_number', name='uq_purchase_orders_shop_number'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_purchase_orders_shop_id', 'purchase_orders', ['shop_id'])
    op.create_index('ix_purchase_orders_supplier_id', 'purchase_orders', ['supplier_id'])
    op.create_index('ix_purchase_orders_shop_status', 'purchase_orders', ['shop_id', 'status'])

    op.create_table(
        'purchase_order_items',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('purchase_order_id', sa.Integer(), nullable=False),
        sa.Column('product_id', sa.Integer(), nullable=False),
        sa.Column('quantity', sa.Integer(), nullable=False),
        sa.Column('received_quantity', sa.Integer(), nullable=False),
        sa.Column('unit_price_paise', sa.Integer(), nullable=False),
        sa.Column('line_total_paise', sa.Integer(), nullable=False),
        sa.ForeignKeyConstraint(['purchase_order_id'], ['purchase_orders.id']),
        sa.ForeignKeyConstraint(['product_id'], ['products.id']),
        sa.PrimaryKeyConstraint('id'),
        sa.CheckConstraint('quantity > 0', name='ck_po_items_quantity_positive'),
        sa.CheckConstraint(
            'received_quantity >= 0 AND received_quantity <= quantity',
            name='ck_po_items_received_bounds',
        ),
        sqlite_autoincrement=True
    )
    op.create_index('ix_purchase_order_items_purchase_order_id', 'purchase_order_items', ['purchase_order_id'])

    op.create_table(
        'purchase_payments',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('purchase_order_id', sa.Integer(), nullable=False),
        sa.Column('amount_paise', sa.Integer(), nullable=False),
        sa.Column('payment_date', sa.DateTime(timezone=True), nullable=False),
        sa.Column('payment_method', sa.String(length=32), nullable=False),
        sa.Column('reference_number', sa.String(length=64), nullable=True),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.ForeignKeyConstraint(['purchase_order_id'], ['purchase_orders.id']),
        sa.PrimaryKeyConstraint('id'),
        sa.CheckConstraint('amount_paise > 0', name='ck_purchase_payments_amount_positive'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_purchase_payments_purchase_order_id', 'purchase_payments', ['purchase_order_id'])

    # ============================================================================
    # stock_items: one row per physical unit
    # ============================================================================
    op.create_table(
        'stock_items',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('shop_id', sa.Integer(), nullable=False),
        sa.Column('product_id', sa.Integer(), nullable=False),
        sa.Column('purchase_order_id', sa.Integer(), nullable=True),
        sa.Column('purchase_order_item_id', sa.Integer(), nullable=True),
        sa.Column('sales_order_line_id', sa.Integer(), nullable=True),
        sa.Column('tag_id', sa.String(length=32), nullable=False),
        sa.Column('barcode', sa.String(length=32), nullable=False),
        sa.Column('huid', sa.String(length=16), nullable=True),
        sa.Column('purchase_cost_paise', sa.Integer(), nullable=False),
        sa.Column('purchase_date', sa.DateTime(timezone=True), nullable=False),
        sa.Column('sale_date', sa.DateTime(timezone=True), nullable=True),
        sa.Column('status', sa.String(length=16), nullable=False),
        sa.Column('version_id', sa.Integer(), nullable=False),
        *_timestamps(),
        sa.ForeignKeyConstraint(['shop_id'], ['shops.id']),
        sa.ForeignKeyConstraint(['product_id'], ['products.id']),
        sa.ForeignKeyConstraint(['purchase_order_id'], ['purchase_orders.id']),
        sa.ForeignKeyConstraint(['purchase_order_item_id'], ['purchase_order_items.id']),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('sales_order_line_id'),
        sa.UniqueConstraint('tag_id'),
        sa.UniqueConstraint('barcode'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_stock_items_shop_id', 'stock_items', ['shop_id'])
    op.create_index('ix_stock_items_product_id', 'stock_items', ['product_id'])
    op.create_index('ix_stock_items_purchase_order_id', 'stock_items', ['purchase_order_id'])
    op.create_index('ix_stock_items_shop_status', 'stock_items', ['shop_id', 'status'])
    op.create_index('ix_stock_items_fifo', 'stock_items', ['shop_id', 'product_id', 'status', 'purchase_date'])

    # ============================================================================
    # sales
    # ============================================================================
    op.create_table(
        'sales_orders',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('shop_id', sa.Integer(), nullable=False),
        sa.Column('customer_id', sa.Integer(), nullable=False),
        sa.Column('invoice_number', sa.String(length=32), nullable=False),
        sa.Column('order_date', sa.DateTime(timezone=True), nullable=False),
        sa.Column('order_type', sa.String(length=16), nullable=False),
        sa.Column('status', sa.String(length=16), nullable=False),
        sa.Column('order_total_paise', sa.Integer(), nullable=False),
        sa.Column('discount_paise', sa.Integer(), nullable=False),
        sa.Column('final_amount_paise', sa.Integer(), nullable=False),
        sa.Column('paid_amount_paise', sa.Integer(), nullable=False),
        sa.Column('payment_method', sa.String(length=32), nullable=False),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('created_by_user_id', sa.Integer(), nullable=True),
        sa.Column('completed_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('cancelled_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('version_id', sa.Integer(), nullable=False),
        *_timestamps(),
        sa.ForeignKeyConstraint(['shop_id'], ['shops.id']),
        sa.ForeignKeyConstraint(['customer_id'], ['customers.id']),
        sa.ForeignKeyConstraint(['created_by_user_id'], ['users.id']),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('shop_id', 'invoice_number', name='uq_sales_orders_shop_invoice'),
        sa.CheckConstraint('final_amount_paise >= 0', name='ck_sales_orders_final_nonnegative'),
        sa.CheckConstraint('paid_amount_paise <= final_amount_paise', name='ck_sales_orders_paid_le_final'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_sales_orders_shop_id', 'sales_orders', ['shop_id'])
    op.create_index('ix_sales_orders_customer_id', 'sales_orders', ['customer_id'])
    op.create_index('ix_sales_orders_shop_status', 'sales_orders', ['shop_id', 'status'])

    op.create_table(
        'sales_order_lines',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('sales_order_id', sa.Integer(), nullable=False),
        sa.Column('stock_item_id', sa.Integer(), nullable=False),
        sa.Column('quantity', sa.Integer(), nullable=False),
        sa.Column('unit_price_paise', sa.Integer(), nullable=False),
        sa.Column('line_total_paise', sa.Integer(), nullable=False),
        sa.Column('metal_rate_per_gram_paise', sa.Integer(), nullable=True),
        sa.ForeignKeyConstraint(['sales_order_id'], ['sales_orders.id']),
        sa.ForeignKeyConstraint(['stock_item_id'], ['stock_items.id']),
        sa.PrimaryKeyConstraint('id'),
        sa.CheckConstraint('quantity > 0', name='ck_sales_order_lines_quantity_positive'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_sales_order_lines_sales_order_id', 'sales_order_lines', ['sales_order_id'])
    op.create_index('ix_sales_order_lines_stock_item_id', 'sales_order_lines', ['stock_item_id'])

    op.create_table(
        'sales_payments',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('sales_order_id', sa.Integer(), nullable=False),
        sa.Column('amount_paise', sa.Integer(), nullable=False),
        sa.Column('payment_date', sa.DateTime(timezone=True), nullable=False),
        sa.Column('payment_method', sa.String(length=32), nullable=False),
        sa.Column('reference_number', sa.String(length=64), nullable=True),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.ForeignKeyConstraint(['sales_order_id'], ['sales_orders.id']),
        sa.PrimaryKeyConstraint('id'),
        sa.CheckConstraint('amount_paise > 0', name='ck_sales_payments_amount_positive'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_sales_payments_sales_order_id', 'sales_payments', ['sales_order_id'])

    # ============================================================================
    # EMI
    # ============================================================================
    op.create_table(
        'emi_payments',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('shop_id', sa.Integer(), nullable=False),
        sa.Column('customer_id', sa.Integer(), nullable=False),
        sa.Column('sales_order_id', sa.Integer(), nullable=True),
        sa.Column('total_amount_paise', sa.Integer(), nullable=False),
        sa.Column('number_of_installments', sa.Integer(), nullable=False),
        sa.Column('installment_amount_paise', sa.Integer(), nullable=False),
        sa.Column('interest_rate_bps', sa.Integer(), nullable=False),
        sa.Column('emi_start_date', sa.Date(), nullable=False),
        sa.Column('next_installment_date', sa.Date(), nullable=True),
        sa.Column('current_installment', sa.Integer(), nullable=False),
        sa.Column('remaining_amount_paise', sa.Integer(), nullable=False),
        sa.Column('status', sa.String(length=16), nullable=False),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('version_id', sa.Integer(), nullable=False),
        *_timestamps(),
        sa.ForeignKeyConstraint(['shop_id'], ['shops.id']),
        sa.ForeignKeyConstraint(['customer_id'], ['customers.id']),
        sa.ForeignKeyConstraint(['sales_order_id'], ['sales_orders.id']),
        sa.PrimaryKeyConstraint('id'),
        sa.CheckConstraint('number_of_installments > 0', name='ck_emi_payments_count_positive'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_emi_payments_shop_id', 'emi_payments', ['shop_id'])
    op.create_index('ix_emi_payments_customer_id', 'emi_payments', ['customer_id'])
    op.create_index('ix_emi_payments_shop_status', 'emi_payments', ['shop_id', 'status'])

    op.create_table(
        'emi_installments',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('emi_payment_id', sa.Integer(), nullable=False),
        sa.Column('installment_number', sa.Integer(), nullable=False),
        sa.Column('due_date', sa.Date(), nullable=False),
        sa.Column('amount_paise', sa.Integer(), nullable=False),
        sa.Column('paid_amount_paise', sa.Integer(), nullable=False),
        sa.Column('paid_date', sa.DateTime(timezone=True), nullable=True),
        sa.Column('payment_method', sa.String(length=32), nullable=True),
        sa.Column('status', sa.String(length=16), nullable=False),
        sa.ForeignKeyConstraint(['emi_payment_id'], ['emi_payments.id']),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('emi_payment_id', 'installment_number', name='uq_emi_installments_number'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_emi_installments_emi_payment_id', 'emi_installments', ['emi_payment_id'])
    op.create_index('ix_emi_installments_status_due', 'emi_installments', ['status', 'due_date'])

    # ============================================================================
    # transactions: financial ledger (append-only, soft delete)
    # ============================================================================
    op.create_table(
        'transactions',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('shop_id', sa.Integer(), nullable=False),
        sa.Column('transaction_date', sa.DateTime(timezone=True), nullable=False),
        sa.Column('transaction_type', sa.String(length=32), nullable=False),
        sa.Column('category', sa.String(length=32), nullable=False),
        sa.Column('amount_paise', sa.Integer(), nullable=False),
        sa.Column('payment_mode', sa.String(length=32), nullable=True),
        sa.Column('currency', sa.String(length=3), nullable=False),
        sa.Column('status', sa.String(length=16), nullable=False),
        sa.Column('description', sa.String(length=255), nullable=True),
        sa.Column('reference_number', sa.String(length=64), nullable=True),
        sa.Column('customer_id', sa.Integer(), nullable=True),
        sa.Column('supplier_id', sa.Integer(), nullable=True),
        sa.Column('sales_order_id', sa.Integer(), nullable=True),
        sa.Column('purchase_order_id', sa.Integer(), nullable=True),
        sa.Column('purchase_payment_id', sa.Integer(), nullable=True),
        sa.Column('emi_payment_id', sa.Integer(), nullable=True),
        sa.Column('created_by_user_id', sa.Integer(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.Column('deleted_at', sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(['shop_id'], ['shops.id']),
        sa.ForeignKeyConstraint(['customer_id'], ['customers.id']),
        sa.ForeignKeyConstraint(['supplier_id'], ['suppliers.id']),
        sa.ForeignKeyConstraint(['sales_order_id'], ['sales_orders.id']),
        sa.ForeignKeyConstraint(['purchase_order_id'], ['purchase_orders.id']),
        sa.ForeignKeyConstraint(['purchase_payment_id'], ['purchase_payments.id']),
        sa.ForeignKeyConstraint(['emi_payment_id'], ['emi_payments.id']),
        sa.ForeignKeyConstraint(['created_by_user_id'], ['users.id']),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('purchase_payment_id'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_transactions_shop_id', 'transactions', ['shop_id'])
    op.create_index('ix_transactions_sales_order_id', 'transactions', ['sales_order_id'])
    op.create_index('ix_transactions_purchase_order_id', 'transactions', ['purchase_order_id'])
    op.create_index('ix_transactions_shop_date', 'transactions', ['shop_id', 'transaction_date'])
    op.create_index('ix_transactions_shop_type', 'transactions', ['shop_id', 'transaction_type'])

    # ============================================================================
    # audit_logs: written in the same unit of work as the change
    # ============================================================================
    op.create_table(
        'audit_logs',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('shop_id', sa.Integer(), nullable=True),
        sa.Column('user_id', sa.Integer(), nullable=True),
        sa.Column('action', sa.String(length=32), nullable=False),
        sa.Column('module', sa.String(length=64), nullable=False),
        sa.Column('entity_id', sa.Integer(), nullable=True),
        sa.Column('before_data', sa.JSON(), nullable=True),
        sa.Column('after_data', sa.JSON(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.ForeignKeyConstraint(['shop_id'], ['shops.id']),
        sa.ForeignKeyConstraint(['user_id'], ['users.id']),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_audit_logs_shop_module', 'audit_logs', ['shop_id', 'module', 'created_at'])
    op.create_index('ix_audit_logs_entity', 'audit_logs', ['module', 'entity_id'])


def downgrade():
    for table in (
        'audit_logs',
        'transactions',
        'emi_installments',
        'emi_payments',
        'sales_payments',
        'sales_order_lines',
        'sales_orders',
        'stock_items',
        'purchase_payments',
        'purchase_order_items',
        'purchase_orders',
        'rate_master',
        'products',
        'suppliers',
        'customers',
        'session_tokens',
        'users',
        'shops',
    ):
        op.drop_table(table)
