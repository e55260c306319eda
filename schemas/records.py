"""
Pydantic schemas for normalized records.

Every field except the natural key is optional. None means "the remote
system did not tell us", and the store never writes it over a known value.
"""

from pydantic import BaseModel, Field
from typing import Optional, List, Dict, Any
from datetime import datetime
from decimal import Decimal
from models.base import OrderStatus, ProductStatus


class NormalizedRecord(BaseModel):
    """Base class for records produced by the normalizers"""

    def present_fields(self, exclude: Optional[set] = None) -> Dict[str, Any]:
        """Fields that carry a value, ready to be applied to an ORM row"""
        return self.model_dump(exclude_none=True, exclude=exclude)


class OrderRecord(NormalizedRecord):
    """Order header values"""
    increment_id: str = Field(..., min_length=1, max_length=50)

    parent_id: Optional[str] = None
    store_id: Optional[str] = None
    customer_id: Optional[str] = None
    is_active: Optional[str] = None
    status: Optional[OrderStatus] = None
    state: Optional[str] = None
    created_at: Optional[datetime] = None

    grand_total: Optional[Decimal] = None
    subtotal: Optional[Decimal] = None
    tax_amount: Optional[Decimal] = None
    shipping_amount: Optional[Decimal] = None
    discount_amount: Optional[Decimal] = None
    total_paid: Optional[Decimal] = None
    total_refunded: Optional[Decimal] = None
    total_qty_ordered: Optional[int] = None

    base_grand_total: Optional[Decimal] = None
    base_subtotal: Optional[Decimal] = None
    base_tax_amount: Optional[Decimal] = None
    base_shipping_amount: Optional[Decimal] = None
    base_discount_amount: Optional[Decimal] = None
    base_total_paid: Optional[Decimal] = None
    base_total_refunded: Optional[Decimal] = None

    customer_email: Optional[str] = None
    customer_firstname: Optional[str] = None
    customer_lastname: Optional[str] = None

    billing_firstname: Optional[str] = None
    billing_lastname: Optional[str] = None
    billing_street: Optional[str] = None
    billing_city: Optional[str] = None
    billing_region: Optional[str] = None
    billing_postcode: Optional[str] = None
    billing_country_id: Optional[str] = None
    billing_telephone: Optional[str] = None

    shipping_address_id: Optional[str] = None
    shipping_firstname: Optional[str] = None
    shipping_lastname: Optional[str] = None
    shipping_company: Optional[str] = None
    shipping_street: Optional[str] = None
    shipping_city: Optional[str] = None
    shipping_region: Optional[str] = None
    shipping_region_id: Optional[int] = None
    shipping_postcode: Optional[str] = None
    shipping_country_id: Optional[str] = None
    shipping_telephone: Optional[str] = None

    shipping_method: Optional[str] = None
    shipping_description: Optional[str] = None


class OrderItemRecord(NormalizedRecord):
    """Order line item values"""
    item_id: str = Field(..., min_length=1, max_length=50)

    product_id: Optional[str] = None
    sku: Optional[str] = None
    name: Optional[str] = None
    description: Optional[str] = None
    product_type: Optional[str] = None
    weight: Optional[Decimal] = None

    qty_ordered: Optional[Decimal] = None
    qty_shipped: Optional[Decimal] = None
    qty_invoiced: Optional[Decimal] = None
    qty_canceled: Optional[Decimal] = None
    qty_refunded: Optional[Decimal] = None

    price: Optional[Decimal] = None
    base_price: Optional[Decimal] = None
    original_price: Optional[Decimal] = None
    tax_amount: Optional[Decimal] = None
    tax_percent: Optional[Decimal] = None
    discount_amount: Optional[Decimal] = None
    discount_percent: Optional[Decimal] = None
    row_total: Optional[Decimal] = None
    base_row_total: Optional[Decimal] = None


class OrderDetail(BaseModel):
    """Full order: header plus line items"""
    header: OrderRecord
    items: List[OrderItemRecord] = Field(default_factory=list)

    @property
    def increment_id(self) -> str:
        return self.header.increment_id


class CustomerRecord(NormalizedRecord):
    """Customer account values"""
    customer_id: str = Field(..., min_length=1, max_length=50)

    increment_id: Optional[str] = None
    email: Optional[str] = None
    prefix: Optional[str] = None
    firstname: Optional[str] = None
    middlename: Optional[str] = None
    lastname: Optional[str] = None
    suffix: Optional[str] = None
    dob: Optional[str] = None
    taxvat: Optional[str] = None
    group_id: Optional[str] = None
    store_id: Optional[str] = None
    website_id: Optional[str] = None
    created_in: Optional[str] = None
    remote_created_at: Optional[datetime] = None
    remote_updated_at: Optional[datetime] = None


class AddressRecord(NormalizedRecord):
    """
    Customer address values, named after the shipping columns of the
    orders that reference the address.
    """
    address_id: str = Field(..., min_length=1, max_length=50)

    shipping_firstname: Optional[str] = None
    shipping_lastname: Optional[str] = None
    shipping_company: Optional[str] = None
    shipping_street: Optional[str] = None
    shipping_city: Optional[str] = None
    shipping_region: Optional[str] = None
    shipping_region_id: Optional[int] = None
    shipping_postcode: Optional[str] = None
    shipping_country_id: Optional[str] = None
    shipping_telephone: Optional[str] = None
    shipping_is_default_billing: Optional[bool] = None
    shipping_is_default_shipping: Optional[bool] = None


class ProductRecord(NormalizedRecord):
    """Catalog product values"""
    sku: str = Field(..., min_length=1, max_length=255)

    product_id: Optional[str] = None
    name: Optional[str] = None
    description: Optional[str] = None
    short_description: Optional[str] = None

    price: Optional[Decimal] = None
    special_price: Optional[Decimal] = None
    cost: Optional[Decimal] = None
    weight: Optional[Decimal] = None

    qty: Optional[Decimal] = None
    is_in_stock: Optional[bool] = None
    manage_stock: Optional[bool] = None
    min_qty: Optional[Decimal] = None
    max_qty: Optional[Decimal] = None

    status: Optional[ProductStatus] = None
    visibility: Optional[str] = None
    type_id: Optional[str] = None
    attribute_set_id: Optional[str] = None
    category_ids: Optional[str] = None
    url_key: Optional[str] = None
    meta_title: Optional[str] = None
    meta_description: Optional[str] = None

    batch: Optional[str] = None
    expiry_date: Optional[str] = None
    manufacturer: Optional[str] = None
    active_ingredient: Optional[str] = None
    dosage: Optional[str] = None
