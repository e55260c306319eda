from sqlalchemy import (
    Column, String, BigInteger, Integer, Enum, Text, Numeric, Boolean,
    DateTime, ForeignKey, Index, UniqueConstraint
)
from sqlalchemy.orm import relationship
from datetime import datetime
from models.base import Base, OrderStatus

AMOUNT = Numeric(12, 2)


class Order(Base):
    """
    Sales order mirrored from the remote platform.

    Keyed by increment_id (the order number customers see). Listing jobs
    create the row with summary data; the order-details job fills in the
    remaining header fields and flips details_fetched.
    """
    __tablename__ = "orders"

    id = Column(BigInteger().with_variant(Integer, "sqlite"), primary_key=True, autoincrement=True)
    increment_id = Column(String(50), nullable=False, unique=True, index=True)

    parent_id = Column(String(50), nullable=True)
    store_id = Column(String(20), nullable=True)
    customer_id = Column(String(50), nullable=True, index=True)
    is_active = Column(String(10), nullable=True)

    status = Column(Enum(OrderStatus), nullable=True, index=True)
    state = Column(String(50), nullable=True)

    # Totals
    grand_total = Column(AMOUNT, nullable=True)
    subtotal = Column(AMOUNT, nullable=True)
    tax_amount = Column(AMOUNT, nullable=True)
    shipping_amount = Column(AMOUNT, nullable=True)
    discount_amount = Column(AMOUNT, nullable=True)
    total_paid = Column(AMOUNT, nullable=True)
    total_refunded = Column(AMOUNT, nullable=True)
    total_qty_ordered = Column(Integer, nullable=True)

    base_grand_total = Column(AMOUNT, nullable=True)
    base_subtotal = Column(AMOUNT, nullable=True)
    base_tax_amount = Column(AMOUNT, nullable=True)
    base_shipping_amount = Column(AMOUNT, nullable=True)
    base_discount_amount = Column(AMOUNT, nullable=True)
    base_total_paid = Column(AMOUNT, nullable=True)
    base_total_refunded = Column(AMOUNT, nullable=True)

    # Customer
    customer_email = Column(String(255), nullable=True, index=True)
    customer_firstname = Column(String(255), nullable=True)
    customer_lastname = Column(String(255), nullable=True)

    # Billing
    billing_firstname = Column(String(255), nullable=True)
    billing_lastname = Column(String(255), nullable=True)
    billing_street = Column(Text, nullable=True)
    billing_city = Column(String(255), nullable=True)
    billing_region = Column(String(255), nullable=True)
    billing_postcode = Column(String(20), nullable=True)
    billing_country_id = Column(String(5), nullable=True)
    billing_telephone = Column(String(50), nullable=True)

    # Shipping
    shipping_address_id = Column(String(50), nullable=True, index=True)
    shipping_firstname = Column(String(255), nullable=True)
    shipping_lastname = Column(String(255), nullable=True)
    shipping_company = Column(String(255), nullable=True)
    shipping_street = Column(Text, nullable=True)
    shipping_city = Column(String(255), nullable=True)
    shipping_region = Column(String(255), nullable=True)
    shipping_region_id = Column(Integer, nullable=True)
    shipping_postcode = Column(String(20), nullable=True)
    shipping_country_id = Column(String(5), nullable=True)
    shipping_telephone = Column(String(50), nullable=True)
    shipping_is_default_billing = Column(Boolean, nullable=True)
    shipping_is_default_shipping = Column(Boolean, nullable=True)
    shipping_address_updated_at = Column(DateTime, nullable=True)

    shipping_method = Column(String(255), nullable=True)
    shipping_description = Column(Text, nullable=True)

    # Sync markers
    details_fetched = Column(Boolean, nullable=False, default=False, index=True)
    details_fetched_at = Column(DateTime, nullable=True)
    synced_at = Column(DateTime, nullable=True)

    # Timestamps (created_at mirrors the remote order date when known)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow, index=True)
    updated_at = Column(DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow)

    items = relationship("OrderItem", back_populates="order")

    __table_args__ = (
        Index("idx_orders_details_created", "details_fetched", "created_at"),
    )


class OrderItem(Base):
    """
    Order line item, keyed by (order increment id, remote item id).
    """
    __tablename__ = "order_items"

    id = Column(BigInteger().with_variant(Integer, "sqlite"), primary_key=True, autoincrement=True)
    order_id = Column(String(50), ForeignKey("orders.increment_id"), nullable=False, index=True)
    item_id = Column(String(50), nullable=False)

    product_id = Column(String(50), nullable=True)
    sku = Column(String(255), nullable=True, index=True)
    name = Column(String(500), nullable=False)
    description = Column(Text, nullable=True)
    product_type = Column(String(50), nullable=True)
    weight = Column(AMOUNT, nullable=True)

    # Quantities (qty mirrors qty_ordered)
    qty = Column(AMOUNT, nullable=False, default=0)
    qty_ordered = Column(AMOUNT, nullable=True)
    qty_shipped = Column(AMOUNT, nullable=True)
    qty_invoiced = Column(AMOUNT, nullable=True)
    qty_canceled = Column(AMOUNT, nullable=True)
    qty_refunded = Column(AMOUNT, nullable=True)

    # Prices
    price = Column(AMOUNT, nullable=False, default=0)
    base_price = Column(AMOUNT, nullable=True)
    original_price = Column(AMOUNT, nullable=True)
    tax_amount = Column(AMOUNT, nullable=True)
    tax_percent = Column(AMOUNT, nullable=True)
    discount_amount = Column(AMOUNT, nullable=True)
    discount_percent = Column(AMOUNT, nullable=True)
    row_total = Column(AMOUNT, nullable=True)
    base_row_total = Column(AMOUNT, nullable=True)

    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)
    updated_at = Column(DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow)

    order = relationship("Order", back_populates="items")

    __table_args__ = (
        UniqueConstraint("order_id", "item_id", name="uq_order_items_order_item"),
    )
