from sqlalchemy import Column, String, BigInteger, Integer, Enum, Text, Numeric, Boolean, DateTime
from datetime import datetime
from models.base import Base, ProductStatus


class Product(Base):
    """
    Catalog product mirrored from the remote platform.

    Keyed by sku; product_id is unique as well and is used as a fallback
    match when a sku changes remotely.
    """
    __tablename__ = "products"

    id = Column(BigInteger().with_variant(Integer, "sqlite"), primary_key=True, autoincrement=True)
    sku = Column(String(255), nullable=False, unique=True, index=True)
    product_id = Column(String(50), nullable=True, unique=True, index=True)

    name = Column(String(500), nullable=False)
    description = Column(Text, nullable=True)
    short_description = Column(Text, nullable=True)

    # Pricing
    price = Column(Numeric(12, 2), nullable=False, default=0)
    special_price = Column(Numeric(12, 2), nullable=True)
    cost = Column(Numeric(12, 2), nullable=True)
    weight = Column(Numeric(12, 2), nullable=True)

    # Stock
    qty = Column(Numeric(12, 2), nullable=False, default=0)
    is_in_stock = Column(Boolean, nullable=True)
    manage_stock = Column(Boolean, nullable=True)
    min_qty = Column(Numeric(12, 2), nullable=True)
    max_qty = Column(Numeric(12, 2), nullable=True)

    # Catalog attributes
    status = Column(Enum(ProductStatus), nullable=True, index=True)
    visibility = Column(String(20), nullable=True)
    type_id = Column(String(50), nullable=True)
    attribute_set_id = Column(String(20), nullable=True)
    category_ids = Column(String(500), nullable=True)
    url_key = Column(String(500), nullable=True)
    meta_title = Column(String(500), nullable=True)
    meta_description = Column(Text, nullable=True)

    # Store-specific attributes
    batch = Column(String(100), nullable=True)
    expiry_date = Column(String(50), nullable=True)
    manufacturer = Column(String(255), nullable=True)
    active_ingredient = Column(String(255), nullable=True)
    dosage = Column(String(255), nullable=True)

    details_fetched_at = Column(DateTime, nullable=True)
    synced_at = Column(DateTime, nullable=True)

    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)
    updated_at = Column(DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow)
