"""
SQLAlchemy ORM models for database tables.

Models:
    base: Base declarative class and shared enums (OrderStatus, ProductStatus, SyncStatus, JobName)
    order: Orders (keyed by increment_id) and their line items (order_id + item_id)
    customer: Customer accounts keyed by customer_id
    product: Catalog products keyed by sku
    sync_run: Sync job execution tracking and metrics

Every mirrored table is keyed by the identifier the remote platform issues,
never by the local surrogate id, so repeated syncs converge instead of
duplicating rows.

Usage:
    from models import Order, OrderItem, SyncRun
    from models.base import OrderStatus, JobName
"""

from models.base import Base, OrderStatus, ProductStatus, SyncStatus, JobName
from models.order import Order, OrderItem
from models.customer import Customer
from models.product import Product
from models.sync_run import SyncRun

__all__ = [
    "Base",
    "OrderStatus",
    "ProductStatus",
    "SyncStatus",
    "JobName",
    "Order",
    "OrderItem",
    "Customer",
    "Product",
    "SyncRun",
]
