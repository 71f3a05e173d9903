"""Initial schema: catalog, stock units, sales, installments, ledger books, agency desk

Revision ID: 20261018_initial
Revises:
Create Date: 2026-10-18
"""

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = "20261018_initial"
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    # ### ledger books ###
    ledger_heads = op.create_table('ledger_heads',
        sa.Column('book', sa.String(length=32), nullable=False),
        sa.Column('last_sequence', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('balance_cents', sa.Integer(), nullable=False, server_default='0'),
        sa.PrimaryKeyConstraint('book'),
    )

    # ### master data ###
    op.create_table('products',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('brand', sa.String(length=128), nullable=True),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('barcode', sa.String(length=64), nullable=True),
        sa.Column('purchase_price_cents', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('selling_price_cents', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('is_serialized', sa.Boolean(), nullable=False, server_default='0'),
        sa.Column('stock', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default='1'),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=False),
        sa.CheckConstraint('stock >= 0', name='ck_products_stock_non_negative'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('barcode'),
        sqlite_autoincrement=True,
    )

    op.create_table('customers',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('phone', sa.String(length=32), nullable=True),
        sa.Column('address', sa.Text(), nullable=True),
        sa.Column('national_id', sa.String(length=32), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True,
    )
    op.create_index('ix_customers_name', 'customers', ['name'], unique=False)

    op.create_table('suppliers',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('contact_person', sa.String(length=255), nullable=True),
        sa.Column('phone', sa.String(length=32), nullable=True),
        sa.Column('address', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True,
    )

    op.create_table('expense_categories',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(length=128), nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('name', name='uq_expense_categories_name'),
        sqlite_autoincrement=True,
    )

    op.create_table('cash_transfer_accounts',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(length=128), nullable=False),
        sa.Column('number', sa.String(length=32), nullable=False),
        sa.Column('provider', sa.String(length=64), nullable=False),
        sa.Column('balance_cents', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('daily_limit_cents', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('monthly_limit_cents', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True,
    )

    op.create_table('repair_jobs',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('customer_name', sa.String(length=255), nullable=False),
        sa.Column('customer_phone', sa.String(length=32), nullable=True),
        sa.Column('device_type', sa.String(length=128), nullable=False),
        sa.Column('problem_description', sa.Text(), nullable=True),
        sa.Column('cost_cents', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('status', sa.String(length=16), nullable=False, server_default='received'),
        sa.Column('received_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('repaired_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('delivered_at', sa.DateTime(timezone=True), nullable=True),
        sa.CheckConstraint("status IN ('received', 'repaired', 'delivered')", name='ck_repair_jobs_status'),
        sa.CheckConstraint('cost_cents >= 0', name='ck_repair_jobs_cost_non_negative'),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True,
    )
    op.create_index('ix_repair_jobs_status', 'repair_jobs', ['status'], unique=False)

    # ### documents ###
    op.create_table('purchases',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('supplier_id', sa.Integer(), nullable=True),
        sa.Column('product_id', sa.Integer(), nullable=False),
        sa.Column('quantity', sa.Integer(), nullable=False),
        sa.Column('unit_cost_cents', sa.Integer(), nullable=False),
        sa.Column('total_cost_cents', sa.Integer(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.CheckConstraint('quantity > 0', name='ck_purchases_quantity_positive'),
        sa.CheckConstraint('unit_cost_cents >= 0', name='ck_purchases_unit_cost_non_negative'),
        sa.ForeignKeyConstraint(['supplier_id'], ['suppliers.id'], ),
        sa.ForeignKeyConstraint(['product_id'], ['products.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True,
    )
    op.create_index('ix_purchases_supplier_id', 'purchases', ['supplier_id'], unique=False)
    op.create_index('ix_purchases_product_id', 'purchases', ['product_id'], unique=False)
    op.create_index('ix_purchases_created_at', 'purchases', ['created_at'], unique=False)

    op.create_table('sales',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('customer_id', sa.Integer(), nullable=True),
        sa.Column('payment_type', sa.String(length=16), nullable=False),
        sa.Column('total_cents', sa.Integer(), nullable=False),
        sa.Column('profit_cents', sa.Integer(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.CheckConstraint("payment_type IN ('cash', 'installment')", name='ck_sales_payment_type'),
        sa.ForeignKeyConstraint(['customer_id'], ['customers.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True,
    )
    op.create_index('ix_sales_customer_id', 'sales', ['customer_id'], unique=False)
    op.create_index('ix_sales_created_at', 'sales', ['created_at'], unique=False)
    op.create_index('ix_sales_customer_created', 'sales', ['customer_id', 'created_at'], unique=False)

    op.create_table('sale_lines',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('sale_id', sa.Integer(), nullable=False),
        sa.Column('product_id', sa.Integer(), nullable=False),
        sa.Column('quantity', sa.Integer(), nullable=False),
        sa.Column('unit_price_cents', sa.Integer(), nullable=False),
        sa.Column('unit_cost_cents', sa.Integer(), nullable=False),
        sa.Column('line_total_cents', sa.Integer(), nullable=False),
        sa.Column('serial_number', sa.String(length=128), nullable=True),
        sa.CheckConstraint('quantity > 0', name='ck_sale_lines_quantity_positive'),
        sa.CheckConstraint('serial_number IS NULL OR quantity = 1', name='ck_sale_lines_serial_single_unit'),
        sa.ForeignKeyConstraint(['sale_id'], ['sales.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True,
    )
    op.create_index('ix_sale_lines_sale_id', 'sale_lines', ['sale_id'], unique=False)
    op.create_index('ix_sale_lines_product_id', 'sale_lines', ['product_id'], unique=False)
    op.create_index('ix_sale_lines_serial_number', 'sale_lines', ['serial_number'], unique=False)

    op.create_table('sales_returns',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('original_sale_id', sa.Integer(), nullable=False),
        sa.Column('customer_id', sa.Integer(), nullable=True),
        sa.Column('total_refund_cents', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(['original_sale_id'], ['sales.id'], ),
        sa.ForeignKeyConstraint(['customer_id'], ['customers.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True,
    )
    op.create_index('ix_sales_returns_original_sale_id', 'sales_returns', ['original_sale_id'], unique=False)
    op.create_index('ix_sales_returns_customer_id', 'sales_returns', ['customer_id'], unique=False)
    op.create_index('ix_sales_returns_created_at', 'sales_returns', ['created_at'], unique=False)

    op.create_table('return_lines',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('return_id', sa.Integer(), nullable=False),
        sa.Column('original_sale_line_id', sa.Integer(), nullable=False),
        sa.Column('product_id', sa.Integer(), nullable=False),
        sa.Column('quantity', sa.Integer(), nullable=False),
        sa.Column('unit_price_cents', sa.Integer(), nullable=False),
        sa.Column('unit_cost_cents', sa.Integer(), nullable=False),
        sa.Column('line_refund_cents', sa.Integer(), nullable=False),
        sa.Column('serial_number', sa.String(length=128), nullable=True),
        sa.CheckConstraint('quantity > 0', name='ck_return_lines_quantity_positive'),
        sa.CheckConstraint('serial_number IS NULL OR quantity = 1', name='ck_return_lines_serial_single_unit'),
        sa.ForeignKeyConstraint(['return_id'], ['sales_returns.id'], ),
        sa.ForeignKeyConstraint(['original_sale_line_id'], ['sale_lines.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True,
    )
    op.create_index('ix_return_lines_return_id', 'return_lines', ['return_id'], unique=False)
    op.create_index('ix_return_lines_original_sale_line_id', 'return_lines', ['original_sale_line_id'], unique=False)

    op.create_table('stock_units',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('product_id', sa.Integer(), nullable=False),
        sa.Column('serial_number', sa.String(length=128), nullable=False),
        sa.Column('status', sa.String(length=16), nullable=False, server_default='in_stock'),
        sa.Column('purchase_id', sa.Integer(), nullable=False),
        sa.Column('sale_id', sa.Integer(), nullable=True),
        sa.Column('return_id', sa.Integer(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False),
        sa.CheckConstraint("status IN ('in_stock', 'sold', 'returned')", name='ck_stock_units_status'),
        sa.ForeignKeyConstraint(['product_id'], ['products.id'], ),
        sa.ForeignKeyConstraint(['purchase_id'], ['purchases.id'], ),
        sa.ForeignKeyConstraint(['sale_id'], ['sales.id'], ),
        sa.ForeignKeyConstraint(['return_id'], ['sales_returns.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('serial_number', name='uq_stock_units_serial'),
        sqlite_autoincrement=True,
    )
    op.create_index('ix_stock_units_product_id', 'stock_units', ['product_id'], unique=False)
    op.create_index('ix_stock_units_purchase_id', 'stock_units', ['purchase_id'], unique=False)
    op.create_index('ix_stock_units_sale_id', 'stock_units', ['sale_id'], unique=False)
    op.create_index('ix_stock_units_return_id', 'stock_units', ['return_id'], unique=False)
    op.create_index('ix_stock_units_product_status', 'stock_units', ['product_id', 'status'], unique=False)

    # ### credit ###
    op.create_table('installment_plans',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('sale_id', sa.Integer(), nullable=False),
        sa.Column('customer_id', sa.Integer(), nullable=False),
        sa.Column('principal_cents', sa.Integer(), nullable=False),
        sa.Column('interest_rate_bps', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('interest_amount_cents', sa.Integer(), nullable=False),
        sa.Column('total_amount_cents', sa.Integer(), nullable=False),
        sa.Column('down_payment_cents', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('remaining_amount_cents', sa.Integer(), nullable=False),
        sa.Column('number_of_months', sa.Integer(), nullable=False),
        sa.Column('monthly_installment_cents', sa.Integer(), nullable=False),
        sa.Column('start_date', sa.Date(), nullable=False),
        sa.Column('due_day', sa.Integer(), nullable=False),
        sa.Column('guarantor_name', sa.String(length=255), nullable=True),
        sa.Column('guarantor_phone', sa.String(length=32), nullable=True),
        sa.Column('guarantor_address', sa.Text(), nullable=True),
        sa.Column('guarantor_national_id', sa.String(length=32), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(['sale_id'], ['sales.id'], ),
        sa.ForeignKeyConstraint(['customer_id'], ['customers.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('sale_id', name='uq_installment_plans_sale'),
        sqlite_autoincrement=True,
    )
    op.create_index('ix_installment_plans_customer_id', 'installment_plans', ['customer_id'], unique=False)

    op.create_table('installments',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('plan_id', sa.Integer(), nullable=False),
        sa.Column('sequence', sa.Integer(), nullable=False),
        sa.Column('due_date', sa.Date(), nullable=False),
        sa.Column('amount_cents', sa.Integer(), nullable=False),
        sa.Column('status', sa.String(length=16), nullable=False, server_default='pending'),
        sa.Column('paid_at', sa.DateTime(timezone=True), nullable=True),
        sa.CheckConstraint("status IN ('pending', 'paid')", name='ck_installments_status'),
        sa.CheckConstraint('amount_cents >= 0', name='ck_installments_amount_non_negative'),
        sa.ForeignKeyConstraint(['plan_id'], ['installment_plans.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True,
    )
    op.create_index('ix_installments_plan_id', 'installments', ['plan_id'], unique=False)
    op.create_index('ix_installments_status_due', 'installments', ['status', 'due_date'], unique=False)

    # ### treasury ###
    op.create_table('ledger_entries',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('book', sa.String(length=32), nullable=False),
        sa.Column('sequence', sa.Integer(), nullable=False),
        sa.Column('direction', sa.String(length=16), nullable=False),
        sa.Column('amount_cents', sa.Integer(), nullable=False),
        sa.Column('description', sa.String(length=255), nullable=False),
        sa.Column('reference_type', sa.String(length=32), nullable=True),
        sa.Column('reference_id', sa.Integer(), nullable=True),
        sa.Column('balance_after_cents', sa.Integer(), nullable=False),
        sa.Column('occurred_at', sa.DateTime(timezone=True), nullable=False),
        sa.CheckConstraint('amount_cents > 0', name='ck_ledger_entries_amount_positive'),
        sa.CheckConstraint("direction IN ('deposit', 'withdrawal')", name='ck_ledger_entries_direction'),
        sa.ForeignKeyConstraint(['book'], ['ledger_heads.book'], ),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('book', 'sequence', name='uq_ledger_entries_book_sequence'),
        sqlite_autoincrement=True,
    )
    op.create_index('ix_ledger_entries_book', 'ledger_entries', ['book'], unique=False)
    op.create_index('ix_ledger_entries_occurred_at', 'ledger_entries', ['occurred_at'], unique=False)
    op.create_index('ix_ledger_entries_reference', 'ledger_entries', ['reference_type', 'reference_id'], unique=False)

    op.create_table('cash_transfer_transactions',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('account_id', sa.Integer(), nullable=False),
        sa.Column('direction', sa.String(length=16), nullable=False),
        sa.Column('amount_cents', sa.Integer(), nullable=False),
        sa.Column('commission_cents', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('customer_phone', sa.String(length=32), nullable=True),
        sa.Column('linked_to_main_ledger', sa.Boolean(), nullable=False, server_default='0'),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.CheckConstraint('amount_cents > 0', name='ck_ctt_amount_positive'),
        sa.CheckConstraint('commission_cents >= 0', name='ck_ctt_commission_non_negative'),
        sa.CheckConstraint("direction IN ('deposit', 'withdrawal')", name='ck_ctt_direction'),
        sa.ForeignKeyConstraint(['account_id'], ['cash_transfer_accounts.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True,
    )
    op.create_index('ix_ctt_account_created', 'cash_transfer_transactions', ['account_id', 'created_at'], unique=False)

    op.create_table('expenses',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('category_id', sa.Integer(), nullable=False),
        sa.Column('description', sa.String(length=255), nullable=False),
        sa.Column('amount_cents', sa.Integer(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.CheckConstraint('amount_cents > 0', name='ck_expenses_amount_positive'),
        sa.ForeignKeyConstraint(['category_id'], ['expense_categories.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True,
    )
    op.create_index('ix_expenses_category_id', 'expenses', ['category_id'], unique=False)

    # Every book starts empty at sequence 0
    op.bulk_insert(ledger_heads, [
        {'book': 'main', 'last_sequence': 0, 'balance_cents': 0},
        {'book': 'cash_transfer', 'last_sequence': 0, 'balance_cents': 0},
    ])


def downgrade():
    op.drop_index('ix_expenses_category_id', table_name='expenses')
    op.drop_table('expenses')
    op.drop_index('ix_ctt_account_created', table_name='cash_transfer_transactions')
    op.drop_table('cash_transfer_transactions')
    op.drop_index('ix_ledger_entries_reference', table_name='ledger_entries')
    op.drop_index('ix_ledger_entries_occurred_at', table_name='ledger_entries')
    op.drop_index('ix_ledger_entries_book', table_name='ledger_entries')
    op.drop_table('ledger_entries')
    op.drop_index('ix_installments_status_due', table_name='installments')
    op.drop_index('ix_installments_plan_id', table_name='installments')
    op.drop_table('installments')
    op.drop_index('ix_installment_plans_customer_id', table_name='installment_plans')
    op.drop_table('installment_plans')
    op.drop_index('ix_stock_units_product_status', table_name='stock_units')
    op.drop_index('ix_stock_units_return_id', table_name='stock_units')
    op.drop_index('ix_stock_units_sale_id', table_name='stock_units')
    op.drop_index('ix_stock_units_purchase_id', table_name='stock_units')
    op.drop_index('ix_stock_units_product_id', table_name='stock_units')
    op.drop_table('stock_units')
    op.drop_index('ix_return_lines_original_sale_line_id', table_name='return_lines')
    op.drop_index('ix_return_lines_return_id', table_name='return_lines')
    op.drop_table('return_lines')
    op.drop_index('ix_sales_returns_created_at', table_name='sales_returns')
    op.drop_index('ix_sales_returns_customer_id', table_name='sales_returns')
    op.drop_index('ix_sales_returns_original_sale_id', table_name='sales_returns')
    op.drop_table('sales_returns')
    op.drop_index('ix_sale_lines_serial_number', table_name='sale_lines')
    op.drop_index('ix_sale_lines_product_id', table_name='sale_lines')
    op.drop_index('ix_sale_lines_sale_id', table_name='sale_lines')
    op.drop_table('sale_lines')
    op.drop_index('ix_sales_customer_created', table_name='sales')
    op.drop_index('ix_sales_created_at', table_name='sales')
    op.drop_index('ix_sales_customer_id', table_name='sales')
    op.drop_table('sales')
    op.drop_index('ix_purchases_created_at', table_name='purchases')
    op.drop_index('ix_purchases_product_id', table_name='purchases')
    op.drop_index('ix_purchases_supplier_id', table_name='purchases')
    op.drop_table('purchases')
    op.drop_index('ix_repair_jobs_status', table_name='repair_jobs')
    op.drop_table('repair_jobs')
    op.drop_table('cash_transfer_accounts')
    op.drop_table('expense_categories')
    op.drop_table('suppliers')
    op.drop_index('ix_customers_name', table_name='customers')
    op.drop_table('customers')
    op.drop_table('products')
    op.drop_table('ledger_heads')
