from sqlalchemy import Column, String, BigInteger, Integer, DateTime
from datetime import datetime
from models.base import Base


class Customer(Base):
    """
    Customer account mirrored from the remote platform, keyed by customer_id.
    """
    __tablename__ = "customers"

    id = Column(BigInteger().with_variant(Integer, "sqlite"), primary_key=True, autoincrement=True)
    customer_id = Column(String(50), nullable=False, unique=True, index=True)

    increment_id = Column(String(50), nullable=True)
    email = Column(String(255), nullable=True, index=True)
    prefix = Column(String(50), nullable=True)
    firstname = Column(String(255), nullable=True)
    middlename = Column(String(255), nullable=True)
    lastname = Column(String(255), nullable=True)
    suffix = Column(String(50), nullable=True)
    dob = Column(String(50), nullable=True)
    taxvat = Column(String(50), nullable=True)

    group_id = Column(String(20), nullable=True)
    store_id = Column(String(20), nullable=True)
    website_id = Column(String(20), nullable=True)
    created_in = Column(String(255), nullable=True)

    remote_created_at = Column(DateTime, nullable=True)
    remote_updated_at = Column(DateTime, nullable=True)
    synced_at = Column(DateTime, nullable=True)

    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)
    updated_at = Column(DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow)
