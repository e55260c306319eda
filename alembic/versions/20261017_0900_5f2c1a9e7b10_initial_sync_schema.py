"""Initial sync schema

Revision ID: 5f2c1a9e7b10
Revises:
Create Date: 2026-10-17 09:00:00.000000+00:00

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = '5f2c1a9e7b10'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

ID = sa.BigInteger().with_variant(sa.Integer(), 'sqlite')
AMOUNT = sa.Numeric(precision=12, scale=2)

ORDER_STATUS = sa.Enum(
    'PENDING', 'PROCESSING', 'EM_PRODUCAO', 'SHIPPED', 'COMPLETE', 'CANCELED',
    'CLOSED', 'REFUNDED', 'HOLDED', 'PAYMENT_REVIEW', name='orderstatus'
)
PRODUCT_STATUS = sa.Enum('ENABLED', 'DISABLED', name='productstatus')
JOB_NAME = sa.Enum(
    'ORDERS', 'ORDER_DETAILS', 'ADDRESSES', 'CUSTOMERS', 'PRODUCTS', 'PRODUCT_DETAILS', name='jobname'
)
SYNC_STATUS = sa.Enum('RUNNING', 'SUCCESS', 'PARTIAL', 'FAILED', name='syncstatus')


def upgrade() -> None:
    # Create orders table
    op.create_table('orders',
    sa.Column('id', ID, autoincrement=True, nullable=False),
    sa.Column('increment_id', sa.String(length=50), nullable=False),
    sa.Column('parent_id', sa.String(length=50), nullable=True),
    sa.Column('store_id', sa.String(length=20), nullable=True),
    sa.Column('customer_id', sa.String(length=50), nullable=True),
    sa.Column('is_active', sa.String(length=10), nullable=True),
    sa.Column('status', ORDER_STATUS, nullable=True),
    sa.Column('state', sa.String(length=50), nullable=True),
    sa.Column('grand_total', AMOUNT, nullable=True),
    sa.Column('subtotal', AMOUNT, nullable=True),
    sa.Column('tax_amount', AMOUNT, nullable=True),
    sa.Column('shipping_amount', AMOUNT, nullable=True),
    sa.Column('discount_amount', AMOUNT, nullable=True),
    sa.Column('total_paid', AMOUNT, nullable=True),
    sa.Column('total_refunded', AMOUNT, nullable=True),
    sa.Column('total_qty_ordered', sa.Integer(), nullable=True),
    sa.Column('base_grand_total', AMOUNT, nullable=True),
    sa.Column('base_subtotal', AMOUNT, nullable=True),
    sa.Column('base_tax_amount', AMOUNT, nullable=True),
    sa.Column('base_shipping_amount', AMOUNT, nullable=True),
    sa.Column('base_discount_amount', AMOUNT, nullable=True),
    sa.Column('base_total_paid', AMOUNT, nullable=True),
    sa.Column('base_total_refunded', AMOUNT, nullable=True),
    sa.Column('customer_email', sa.String(length=255), nullable=True),
    sa.Column('customer_firstname', sa.String(length=255), nullable=True),
    sa.Column('customer_lastname', sa.String(length=255), nullable=True),
    sa.Column('billing_firstname', sa.String(length=255), nullable=True),
    sa.Column('billing_lastname', sa.String(length=255), nullable=True),
    sa.Column('billing_street', sa.Text(), nullable=True),
    sa.Column('billing_city', sa.String(length=255), nullable=True),
    sa.Column('billing_region', sa.String(length=255), nullable=True),
    sa.Column('billing_postcode', sa.String(length=20), nullable=True),
    sa.Column('billing_country_id', sa.String(length=5), nullable=True),
    sa.Column('billing_telephone', sa.String(length=50), nullable=True),
    sa.Column('shipping_address_id', sa.String(length=50), nullable=True),
    sa.Column('shipping_firstname', sa.String(length=255), nullable=True),
    sa.Column('shipping_lastname', sa.String(length=255), nullable=True),
    sa.Column('shipping_company', sa.String(length=255), nullable=True),
    sa.Column('shipping_street', sa.Text(), nullable=True),
    sa.Column('shipping_city', sa.String(length=255), nullable=True),
    sa.Column('shipping_region', sa.String(length=255), nullable=True),
    sa.Column('shipping_region_id', sa.Integer(), nullable=True),
    sa.Column('shipping_postcode', sa.String(length=20), nullable=True),
    sa.Column('shipping_country_id', sa.String(length=5), nullable=True),
    sa.Column('shipping_telephone', sa.String(length=50), nullable=True),
    sa.Column('shipping_is_default_billing', sa.Boolean(), nullable=True),
    sa.Column('shipping_is_default_shipping', sa.Boolean(), nullable=True),
    sa.Column('shipping_address_updated_at', sa.DateTime(), nullable=True),
    sa.Column('shipping_method', sa.String(length=255), nullable=True),
    sa.Column('shipping_description', sa.Text(), nullable=True),
    sa.Column('details_fetched', sa.Boolean(), nullable=False),
    sa.Column('details_fetched_at', sa.DateTime(), nullable=True),
    sa.Column('synced_at', sa.DateTime(), nullable=True),
    sa.Column('created_at', sa.DateTime(), nullable=False),
    sa.Column('updated_at', sa.DateTime(), nullable=False),
    sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_orders_increment_id', 'orders', ['increment_id'], unique=True)
    op.create_index('ix_orders_customer_id', 'orders', ['customer_id'], unique=False)
    op.create_index('ix_orders_status', 'orders', ['status'], unique=False)
    op.create_index('ix_orders_customer_email', 'orders', ['customer_email'], unique=False)
    op.create_index('ix_orders_shipping_address_id', 'orders', ['shipping_address_id'], unique=False)
    op.create_index('ix_orders_details_fetched', 'orders', ['details_fetched'], unique=False)
    op.create_index('ix_orders_created_at', 'orders', ['created_at'], unique=False)
    op.create_index('idx_orders_details_created', 'orders', ['details_fetched', 'created_at'], unique=False)

    # Create order_items table
    op.create_table('order_items',
    sa.Column('id', ID, autoincrement=True, nullable=False),
    sa.Column('order_id', sa.String(length=50), nullable=False),
    sa.Column('item_id', sa.String(length=50), nullable=False),
    sa.Column('product_id', sa.String(length=50), nullable=True),
    sa.Column('sku', sa.String(length=255), nullable=True),
    sa.Column('name', sa.String(length=500), nullable=False),
    sa.Column('description', sa.Text(), nullable=True),
    sa.Column('product_type', sa.String(length=50), nullable=True),
    sa.Column('weight', AMOUNT, nullable=True),
    sa.Column('qty', AMOUNT, nullable=False),
    sa.Column('qty_ordered', AMOUNT, nullable=True),
    sa.Column('qty_shipped', AMOUNT, nullable=True),
    sa.Column('qty_invoiced', AMOUNT, nullable=True),
    sa.Column('qty_canceled', AMOUNT, nullable=True),
    sa.Column('qty_refunded', AMOUNT, nullable=True),
    sa.Column('price', AMOUNT, nullable=False),
    sa.Column('base_price', AMOUNT, nullable=True),
    sa.Column('original_price', AMOUNT, nullable=True),
    sa.Column('tax_amount', AMOUNT, nullable=True),
    sa.Column('tax_percent', AMOUNT, nullable=True),
    sa.Column('discount_amount', AMOUNT, nullable=True),
    sa.Column('discount_percent', AMOUNT, nullable=True),
    sa.Column('row_total', AMOUNT, nullable=True),
    sa.Column('base_row_total', AMOUNT, nullable=True),
    sa.Column('created_at', sa.DateTime(), nullable=False),
    sa.Column('updated_at', sa.DateTime(), nullable=False),
    sa.ForeignKeyConstraint(['order_id'], ['orders.increment_id']),
    sa.PrimaryKeyConstraint('id'),
    sa.UniqueConstraint('order_id', 'item_id', name='uq_order_items_order_item')
    )
    op.create_index('ix_order_items_order_id', 'order_items', ['order_id'], unique=False)
    op.create_index('ix_order_items_sku', 'order_items', ['sku'], unique=False)

    # Create customers table
    op.create_table('customers',
    sa.Column('id', ID, autoincrement=True, nullable=False),
    sa.Column('customer_id', sa.String(length=50), nullable=False),
    sa.Column('increment_id', sa.String(length=50), nullable=True),
    sa.Column('email', sa.String(length=255), nullable=True),
    sa.Column('prefix', sa.String(length=50), nullable=True),
    sa.Column('firstname', sa.String(length=255), nullable=True),
    sa.Column('middlename', sa.String(length=255), nullable=True),
    sa.Column('lastname', sa.String(length=255), nullable=True),
    sa.Column('suffix', sa.String(length=50), nullable=True),
    sa.Column('dob', sa.String(length=50), nullable=True),
    sa.Column('taxvat', sa.String(length=50), nullable=True),
    sa.Column('group_id', sa.String(length=20), nullable=True),
    sa.Column('store_id', sa.String(length=20), nullable=True),
    sa.Column('website_id', sa.String(length=20), nullable=True),
    sa.Column('created_in', sa.String(length=255), nullable=True),
    sa.Column('remote_created_at', sa.DateTime(), nullable=True),
    sa.Column('remote_updated_at', sa.DateTime(), nullable=True),
    sa.Column('synced_at', sa.DateTime(), nullable=True),
    sa.Column('created_at', sa.DateTime(), nullable=False),
    sa.Column('updated_at', sa.DateTime(), nullable=False),
    sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_customers_customer_id', 'customers', ['customer_id'], unique=True)
    op.create_index('ix_customers_email', 'customers', ['email'], unique=False)

    # Create products table
    op.create_table('products',
    sa.Column('id', ID, autoincrement=True, nullable=False),
    sa.Column('sku', sa.String(length=255), nullable=False),
    sa.Column('product_id', sa.String(length=50), nullable=True),
    sa.Column('name', sa.String(length=500), nullable=False),
    sa.Column('description', sa.Text(), nullable=True),
    sa.Column('short_description', sa.Text(), nullable=True),
    sa.Column('price', AMOUNT, nullable=False),
    sa.Column('special_price', AMOUNT, nullable=True),
    sa.Column('cost', AMOUNT, nullable=True),
    sa.Column('weight', AMOUNT, nullable=True),
    sa.Column('qty', AMOUNT, nullable=False),
    sa.Column('is_in_stock', sa.Boolean(), nullable=True),
    sa.Column('manage_stock', sa.Boolean(), nullable=True),
    sa.Column('min_qty', AMOUNT, nullable=True),
    sa.Column('max_qty', AMOUNT, nullable=True),
    sa.Column('status', PRODUCT_STATUS, nullable=True),
    sa.Column('visibility', sa.String(length=20), nullable=True),
    sa.Column('type_id', sa.String(length=50), nullable=True),
    sa.Column('attribute_set_id', sa.String(length=20), nullable=True),
    sa.Column('category_ids', sa.String(length=500), nullable=True),
    sa.Column('url_key', sa.String(length=500), nullable=True),
    sa.Column('meta_title', sa.String(length=500), nullable=True),
    sa.Column('meta_description', sa.Text(), nullable=True),
    sa.Column('batch', sa.String(length=100), nullable=True),
    sa.Column('expiry_date', sa.String(length=50), nullable=True),
    sa.Column('manufacturer', sa.String(length=255), nullable=True),
    sa.Column('active_ingredient', sa.String(length=255), nullable=True),
    sa.Column('dosage', sa.String(length=255), nullable=True),
    sa.Column('details_fetched_at', sa.DateTime(), nullable=True),
    sa.Column('synced_at', sa.DateTime(), nullable=True),
    sa.Column('created_at', sa.DateTime(), nullable=False),
    sa.Column('updated_at', sa.DateTime(), nullable=False),
    sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_products_sku', 'products', ['sku'], unique=True)
    op.create_index('ix_products_product_id', 'products', ['product_id'], unique=True)
    op.create_index('ix_products_status', 'products', ['status'], unique=False)

    # Create sync_runs table
    op.create_table('sync_runs',
    sa.Column('id', ID, autoincrement=True, nullable=False),
    sa.Column('run_id', sa.String(length=36), nullable=False),
    sa.Column('job', JOB_NAME, nullable=False),
    sa.Column('status', SYNC_STATUS, nullable=False),
    sa.Column('started_at', sa.DateTime(), nullable=False),
    sa.Column('completed_at', sa.DateTime(), nullable=True),
    sa.Column('duration_seconds', sa.Float(), nullable=True),
    sa.Column('passes', sa.Integer(), nullable=True),
    sa.Column('targets_total', sa.Integer(), nullable=True),
    sa.Column('records_ok', sa.Integer(), nullable=True),
    sa.Column('records_failed', sa.Integer(), nullable=True),
    sa.Column('records_skipped', sa.Integer(), nullable=True),
    sa.Column('items_written', sa.Integer(), nullable=True),
    sa.Column('error_message', sa.Text(), nullable=True),
    sa.Column('error_sample', sa.JSON(), nullable=True),
    sa.Column('params', sa.JSON(), nullable=True),
    sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_sync_runs_run_id', 'sync_runs', ['run_id'], unique=True)
    op.create_index('ix_sync_runs_job', 'sync_runs', ['job'], unique=False)
    op.create_index('ix_sync_runs_status', 'sync_runs', ['status'], unique=False)
    op.create_index('ix_sync_runs_started_at', 'sync_runs', ['started_at'], unique=False)
    op.create_index('idx_sync_run_job_started', 'sync_runs', ['job', 'started_at'], unique=False)


def downgrade() -> None:
    op.drop_table('sync_runs')
    op.drop_table('products')
    op.drop_table('customers')
    op.drop_table('order_items')
    op.drop_table('orders')

    bind = op.get_bind()
    for enum_type in (SYNC_STATUS, JOB_NAME, PRODUCT_STATUS, ORDER_STATUS):
        enum_type.drop(bind, checkfirst=True)
