"""
Transform raw remote records into typed local records.

Every normalizer is driven by a field table of (remote tag, local field,
coercer) entries. A tag that is missing, empty or unparseable leaves the
local field unset; defaults are a persistence concern and are never
invented here.
"""

from typing import Any, Callable, Dict, List, Optional, Tuple, Type
from datetime import datetime, timezone
from decimal import Decimal, InvalidOperation
import logging
import re
import unicodedata

from pydantic import ValidationError

from core.exceptions import NormalizationError
from models.base import OrderStatus, ProductStatus
from schemas.records import (
    NormalizedRecord,
    OrderRecord,
    OrderItemRecord,
    OrderDetail,
    CustomerRecord,
    AddressRecord,
    ProductRecord,
)

logger = logging.getLogger(__name__)

CENTS = Decimal("0.01")

FieldTable = List[Tuple[str, str, Callable[[Any], Any]]]


# ============================================================================
# Coercers
# ============================================================================

def clean(value: Any) -> Optional[str]:
    """Stripped string, or None for missing/empty values"""
    if value is None:
        return None
    if isinstance(value, (dict, list)):
        return None
    text = str(value).strip()
    return text or None


def to_decimal(value: Any) -> Optional[Decimal]:
    """Decimal with two places, or None"""
    text = clean(value)
    if text is None:
        return None
    try:
        number = Decimal(text.replace(",", "."))
    except InvalidOperation:
        return None
    if not number.is_finite():
        return None
    return number.quantize(CENTS)


def to_int(value: Any) -> Optional[int]:
    """Integer, accepting "10.0000" style strings"""
    number = to_decimal(value)
    if number is None:
        return None
    return int(number.to_integral_value())


def to_bool(value: Any) -> Optional[bool]:
    text = clean(value)
    if text is None:
        return None
    text = text.lower()
    if text in ("1", "true"):
        return True
    if text in ("0", "false"):
        return False
    return None


def to_datetime(value: Any) -> Optional[datetime]:
    """Naive UTC datetime from "YYYY-MM-DD HH:MM:SS" or ISO 8601"""
    text = clean(value)
    if text is None:
        return None
    try:
        parsed = datetime.fromisoformat(text.replace("Z", "+00:00"))
    except ValueError:
        return None
    if parsed.tzinfo is not None:
        parsed = parsed.astimezone(timezone.utc).replace(tzinfo=None)
    return parsed


def join_street(value: Any) -> Optional[str]:
    """Multi-line street collapsed into one line separated by ", " """
    if isinstance(value, list):
        lines = [clean(v) for v in value]
    else:
        text = clean(value)
        if text is None:
            return None
        lines = [line.strip() for line in re.split(r"\r?\n", text)]
    joined = ", ".join(line for line in lines if line)
    return joined or None


def join_ids(value: Any) -> Optional[str]:
    """Category id lists stored as a comma separated string"""
    if isinstance(value, list):
        ids = [clean(v) for v in value]
        joined = ",".join(i for i in ids if i)
        return joined or None
    return clean(value)


# ============================================================================
# Status mapping
# ============================================================================

ORDER_STATUS_ALIASES = {
    "CANCELLED": "CANCELED",
    "ON_HOLD": "HOLDED",
    "PENDING_PAYMENT": "PENDING",
}


def map_order_status(value: Any) -> Optional[OrderStatus]:
    """
    Remote order status to the local enum.

    Matching ignores case and accents, and treats every run of
    non-alphanumeric characters as "_". Unknown values return None so the
    stored status stays as it is.
    """
    text = clean(value)
    if text is None:
        return None
    folded = unicodedata.normalize("NFKD", text).encode("ascii", "ignore").decode("ascii")
    key = re.sub(r"[^A-Z0-9]+", "_", folded.upper()).strip("_")
    key = ORDER_STATUS_ALIASES.get(key, key)
    try:
        return OrderStatus[key]
    except KeyError:
        logger.debug(f"Unmapped order status '{text}' left untouched")
        return None


def map_product_status(value: Any) -> Optional[ProductStatus]:
    text = clean(value)
    if text is None:
        return None
    text = text.lower()
    if text in ("1", "enabled"):
        return ProductStatus.ENABLED
    if text in ("2", "disabled"):
        return ProductStatus.DISABLED
    return None


# ============================================================================
# Field tables
# ============================================================================

ORDER_FIELDS: FieldTable = [
    ("increment_id", "increment_id", clean),
    ("parent_id", "parent_id", clean),
    ("store_id", "store_id", clean),
    ("customer_id", "customer_id", clean),
    ("is_active", "is_active", clean),
    ("status", "status", map_order_status),
    ("state", "state", clean),
    ("created_at", "created_at", to_datetime),

    ("grand_total", "grand_total", to_decimal),
    ("subtotal", "subtotal", to_decimal),
    ("tax_amount", "tax_amount", to_decimal),
    ("shipping_amount", "shipping_amount", to_decimal),
    ("discount_amount", "discount_amount", to_decimal),
    ("total_paid", "total_paid", to_decimal),
    ("total_refunded", "total_refunded", to_decimal),
    ("total_qty_ordered", "total_qty_ordered", to_int),

    ("base_grand_total", "base_grand_total", to_decimal),
    ("base_subtotal", "base_subtotal", to_decimal),
    ("base_tax_amount", "base_tax_amount", to_decimal),
    ("base_shipping_amount", "base_shipping_amount", to_decimal),
    ("base_discount_amount", "base_discount_amount", to_decimal),
    ("base_total_paid", "base_total_paid", to_decimal),
    ("base_total_refunded", "base_total_refunded", to_decimal),

    ("customer_email", "customer_email", clean),
    ("customer_firstname", "customer_firstname", clean),
    ("customer_lastname", "customer_lastname", clean),

    # Flat tags; the nested address blocks of a detail response win over these
    ("billing_firstname", "billing_firstname", clean),
    ("billing_lastname", "billing_lastname", clean),
    ("billing_street", "billing_street", join_street),
    ("billing_city", "billing_city", clean),
    ("billing_region", "billing_region", clean),
    ("billing_postcode", "billing_postcode", clean),
    ("billing_country_id", "billing_country_id", clean),
    ("billing_telephone", "billing_telephone", clean),

    ("shipping_address_id", "shipping_address_id", clean),
    ("shipping_firstname", "shipping_firstname", clean),
    ("shipping_lastname", "shipping_lastname", clean),
    ("shipping_street", "shipping_street", join_street),
    ("shipping_city", "shipping_city", clean),
    ("shipping_region", "shipping_region", clean),
    ("shipping_postcode", "shipping_postcode", clean),
    ("shipping_country_id", "shipping_country_id", clean),
    ("shipping_telephone", "shipping_telephone", clean),

    ("shipping_method", "shipping_method", clean),
    ("shipping_description", "shipping_description", clean),
]

# Tags inside <billing_address> / <shipping_address> of salesOrderInfo
ORDER_ADDRESS_FIELDS: FieldTable = [
    ("firstname", "firstname", clean),
    ("lastname", "lastname", clean),
    ("company", "company", clean),
    ("street", "street", join_street),
    ("city", "city", clean),
    ("region", "region", clean),
    ("region_id", "region_id", to_int),
    ("postcode", "postcode", clean),
    ("country_id", "country_id", clean),
    ("telephone", "telephone", clean),
]

# Columns that exist for shipping only
SHIPPING_ONLY = {"company", "region_id"}

ORDER_ITEM_FIELDS: FieldTable = [
    ("item_id", "item_id", clean),
    ("product_id", "product_id", clean),
    ("sku", "sku", clean),
    ("name", "name", clean),
    ("description", "description", clean),
    ("product_type", "product_type", clean),
    ("weight", "weight", to_decimal),
    ("qty_ordered", "qty_ordered", to_decimal),
    ("qty_shipped", "qty_shipped", to_decimal),
    ("qty_invoiced", "qty_invoiced", to_decimal),
    ("qty_canceled", "qty_canceled", to_decimal),
    ("qty_refunded", "qty_refunded", to_decimal),
    ("price", "price", to_decimal),
    ("base_price", "base_price", to_decimal),
    ("original_price", "original_price", to_decimal),
    ("tax_amount", "tax_amount", to_decimal),
    ("tax_percent", "tax_percent", to_decimal),
    ("discount_amount", "discount_amount", to_decimal),
    ("discount_percent", "discount_percent", to_decimal),
    ("row_total", "row_total", to_decimal),
    ("base_row_total", "base_row_total", to_decimal),
]

CUSTOMER_FIELDS: FieldTable = [
    ("customer_id", "customer_id", clean),
    ("increment_id", "increment_id", clean),
    ("email", "email", clean),
    ("prefix", "prefix", clean),
    ("firstname", "firstname", clean),
    ("middlename", "middlename", clean),
    ("lastname", "lastname", clean),
    ("suffix", "suffix", clean),
    ("dob", "dob", clean),
    ("taxvat", "taxvat", clean),
    ("group_id", "group_id", clean),
    ("store_id", "store_id", clean),
    ("website_id", "website_id", clean),
    ("created_in", "created_in", clean),
    ("created_at", "remote_created_at", to_datetime),
    ("updated_at", "remote_updated_at", to_datetime),
]

ADDRESS_FIELDS: FieldTable = [
    ("customer_address_id", "address_id", clean),
    ("firstname", "shipping_firstname", clean),
    ("lastname", "shipping_lastname", clean),
    ("company", "shipping_company", clean),
    ("street", "shipping_street", join_street),
    ("city", "shipping_city", clean),
    ("region", "shipping_region", clean),
    ("region_id", "shipping_region_id", to_int),
    ("postcode", "shipping_postcode", clean),
    ("country_id", "shipping_country_id", clean),
    ("telephone", "shipping_telephone", clean),
    ("is_default_billing", "shipping_is_default_billing", to_bool),
    ("is_default_shipping", "shipping_is_default_shipping", to_bool),
]

PRODUCT_FIELDS: FieldTable = [
    ("sku", "sku", clean),
    ("product_id", "product_id", clean),
    ("productId", "product_id", clean),
    ("name", "name", clean),
    ("description", "description", clean),
    ("short_description", "short_description", clean),
    ("price", "price", to_decimal),
    ("special_price", "special_price", to_decimal),
    ("cost", "cost", to_decimal),
    ("weight", "weight", to_decimal),
    ("status", "status", map_product_status),
    ("visibility", "visibility", clean),
    ("type", "type_id", clean),
    ("type_id", "type_id", clean),
    ("set", "attribute_set_id", clean),
    ("category_ids", "category_ids", join_ids),
    ("url_key", "url_key", clean),
    ("meta_title", "meta_title", clean),
    ("meta_description", "meta_description", clean),
    ("batch", "batch", clean),
    ("expiry_date", "expiry_date", clean),
    ("manufacturer", "manufacturer", clean),
    ("active_ingredient", "active_ingredient", clean),
    ("dosage", "dosage", clean),
]

STOCK_FIELDS: FieldTable = [
    ("qty", "qty", to_decimal),
    ("is_in_stock", "is_in_stock", to_bool),
    ("manage_stock", "manage_stock", to_bool),
    ("min_qty", "min_qty", to_decimal),
    ("max_qty", "max_qty", to_decimal),
]


# ============================================================================
# Normalizers
# ============================================================================

def apply_table(raw: Dict[str, Any], table: FieldTable) -> Dict[str, Any]:
    """Values of every tag in the table that yields something usable"""
    values: Dict[str, Any] = {}
    for tag, field, coerce in table:
        if tag not in raw:
            continue
        value = coerce(raw[tag])
        # First usable tag wins when several tags feed one field
        if value is not None and field not in values:
            values[field] = value
    return values


def _build(model: Type[NormalizedRecord], values: Dict[str, Any], entity: str, key_field: str):
    if not values.get(key_field):
        raise NormalizationError(
            f"Record has no {key_field}",
            context={"entity": entity, "field_name": key_field}
        )
    try:
        return model(**values)
    except ValidationError as e:
        raise NormalizationError(
            f"Invalid {entity} record",
            context={"entity": entity, "key": values.get(key_field)},
            original_exception=e
        )


def _require_dict(raw: Any, entity: str) -> Dict[str, Any]:
    if not isinstance(raw, dict):
        raise NormalizationError(
            f"Expected a {entity} record, got {type(raw).__name__}",
            context={"entity": entity}
        )
    return raw


def normalize_order_summary(raw: Dict[str, Any]) -> OrderRecord:
    """Order header from a salesOrderList row"""
    raw = _require_dict(raw, "order")
    return _build(OrderRecord, apply_table(raw, ORDER_FIELDS), "order", "increment_id")


def _order_address(block: Any, prefix: str) -> Dict[str, Any]:
    if not isinstance(block, dict):
        return {}
    values = {}
    for field, value in apply_table(block, ORDER_ADDRESS_FIELDS).items():
        if prefix == "billing" and field in SHIPPING_ONLY:
            continue
        values[f"{prefix}_{field}"] = value
    return values


def normalize_order_item(raw: Dict[str, Any]) -> OrderItemRecord:
    raw = _require_dict(raw, "order_item")
    return _build(OrderItemRecord, apply_table(raw, ORDER_ITEM_FIELDS), "order_item", "item_id")


def normalize_order_detail(raw: Dict[str, Any]) -> OrderDetail:
    """
    Header and line items from a salesOrderInfo record.

    Address values come from the nested billing_address / shipping_address
    blocks when present, falling back to the flat billing_* / shipping_*
    tags some gateways return instead.
    """
    raw = _require_dict(raw, "order")
    values = apply_table(raw, ORDER_FIELDS)
    values.update(_order_address(raw.get("billing_address"), "billing"))
    values.update(_order_address(raw.get("shipping_address"), "shipping"))

    shipping = raw.get("shipping_address")
    if isinstance(shipping, dict):
        address_id = clean(shipping.get("customer_address_id"))
        if address_id:
            values["shipping_address_id"] = address_id

    header = _build(OrderRecord, values, "order", "increment_id")

    items = raw.get("items") or []
    if isinstance(items, dict):
        items = [items]
    records = []
    for item in items:
        if not isinstance(item, dict):
            continue
        if not clean(item.get("item_id")):
            logger.warning(f"Order {header.increment_id}: skipping line item without item_id (sku={item.get('sku')})")
            continue
        records.append(normalize_order_item(item))
    return OrderDetail(header=header, items=records)


def normalize_customer(raw: Dict[str, Any]) -> CustomerRecord:
    raw = _require_dict(raw, "customer")
    return _build(CustomerRecord, apply_table(raw, CUSTOMER_FIELDS), "customer", "customer_id")


def normalize_address(raw: Dict[str, Any]) -> AddressRecord:
    raw = _require_dict(raw, "address")
    return _build(AddressRecord, apply_table(raw, ADDRESS_FIELDS), "address", "address_id")


def normalize_product(raw: Dict[str, Any]) -> ProductRecord:
    """Product from a catalogProductList row or a catalogProductInfo record"""
    raw = _require_dict(raw, "product")
    return _build(ProductRecord, apply_table(raw, PRODUCT_FIELDS), "product", "sku")


def merge_stock(record: ProductRecord, stock: Optional[Dict[str, Any]]) -> ProductRecord:
    """Copy of a product record with the stock values of one stock row"""
    if not stock:
        return record
    return record.model_copy(update=apply_table(stock, STOCK_FIELDS))
