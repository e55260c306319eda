from sqlalchemy.orm import declarative_base
import enum

Base = declarative_base()


# ============================================================================
# ENUMS
# ============================================================================

class OrderStatus(str, enum.Enum):
    """Local order status"""
    PENDING = "pending"
    PROCESSING = "processing"
    EM_PRODUCAO = "em_producao"
    SHIPPED = "shipped"
    COMPLETE = "complete"
    CANCELED = "canceled"
    CLOSED = "closed"
    REFUNDED = "refunded"
    HOLDED = "holded"
    PAYMENT_REVIEW = "payment_review"


class ProductStatus(str, enum.Enum):
    """Catalog product status"""
    ENABLED = "enabled"
    DISABLED = "disabled"


class SyncStatus(str, enum.Enum):
    """Sync run status"""
    RUNNING = "running"
    SUCCESS = "success"
    PARTIAL = "partial"
    FAILED = "failed"


class JobName(str, enum.Enum):
    """Synchronization jobs"""
    ORDERS = "orders"
    ORDER_DETAILS = "order_details"
    ADDRESSES = "addresses"
    CUSTOMERS = "customers"
    PRODUCTS = "products"
    PRODUCT_DETAILS = "product_details"
