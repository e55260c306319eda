"""
Job catalogue: one SyncJob per entity type, plus how its targets are enumerated.

| job             | targets                        | per target                       |
|-----------------|--------------------------------|----------------------------------|
| orders          | salesOrderList rows            | upsert_order                     |
| order_details   | local orders without details   | salesOrderInfo + items           |
| addresses       | shipping address ids of orders | customerAddressInfo -> orders    |
| customers       | customerCustomerList rows      | upsert_customer                  |
| products        | catalogProductList rows        | upsert_product                   |
| product_details | catalogProductList rows        | catalogProductInfo + stock       |
"""

from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, List, Optional
from datetime import datetime, timedelta
import logging

from core.exceptions import EnumerationError, RemoteError
from models.base import JobName
from schemas.api import SyncParams
from sync import normalizers
from sync.client import MagentoClient
from sync.driver import SyncJob
from sync.session import SessionProvider
from sync.store import SyncStore

logger = logging.getLogger(__name__)


@dataclass
class JobDefinition:
    job: SyncJob
    list_targets: Callable[[SessionProvider], Awaitable[List[Any]]]
    metric_name: str


def _row_key(*tags: str) -> Callable[[Any], Optional[str]]:
    """target_id for listing rows: first non-empty tag"""
    def key(row: Any) -> Optional[str]:
        if not isinstance(row, dict):
            return normalizers.clean(row)
        for tag in tags:
            value = normalizers.clean(row.get(tag))
            if value:
                return value
        return None
    return key


async def _listed_row(token: str, row: Any) -> Any:
    # Listing rows arrive with the enumeration; nothing left to fetch
    return row


class JobCatalog:
    """
    Builds job definitions from a client, a store and settings.

    A definition is built per run so per-run state (the stock rows of the
    current product window) never leaks between runs.
    """

    def __init__(self, client: MagentoClient, store: SyncStore, settings):
        self.client = client
        self.store = store
        self.settings = settings

    def build(self, name: JobName, params: Optional[SyncParams] = None) -> JobDefinition:
        params = params or SyncParams()
        builders = {
            JobName.ORDERS: self._orders,
            JobName.ORDER_DETAILS: self._order_details,
            JobName.ADDRESSES: self._addresses,
            JobName.CUSTOMERS: self._customers,
            JobName.PRODUCTS: self._products,
            JobName.PRODUCT_DETAILS: self._product_details,
        }
        return builders[JobName(name)](params)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _since(self, params: SyncParams) -> datetime:
        if params.updated_since is not None:
            return params.updated_since
        return datetime.utcnow() - timedelta(hours=self.settings.SYNC_LOOKBACK_HOURS)

    def _limit(self, params: SyncParams) -> int:
        return params.limit or self.settings.SYNC_BATCH_LIMIT

    async def _list(self, job: str, call, session: SessionProvider, *args) -> List[Any]:
        token = await session.token()
        try:
            rows = await call(token, *args)
        except RemoteError as e:
            raise EnumerationError(
                f"Remote listing failed for {job}",
                context={"job": job},
                original_exception=e
            )
        logger.info(f"[{job}] remote listing returned {len(rows)} rows")
        return rows

    # ------------------------------------------------------------------
    # Orders
    # ------------------------------------------------------------------

    def _orders(self, params: SyncParams) -> JobDefinition:
        async def list_targets(session: SessionProvider) -> List[Any]:
            rows = await self._list("orders", self.client.list_orders, session, self._since(params))
            return rows[:params.limit] if params.limit else rows

        async def persist(increment_id: str, record) -> int:
            result = await self.store.upsert_order(increment_id, record)
            return int(result.was_created)

        job = SyncJob(
            name=JobName.ORDERS.value,
            fetch=_listed_row,
            normalize=normalizers.normalize_order_summary,
            persist=persist,
            target_id=_row_key("increment_id"),
        )
        return JobDefinition(job=job, list_targets=list_targets, metric_name="records_created")

    def order_details_job(self) -> SyncJob:
        """Shared by the batch job and the single-order trigger"""
        return SyncJob(
            name=JobName.ORDER_DETAILS.value,
            fetch=self.client.order_info,
            normalize=normalizers.normalize_order_detail,
            persist=self.store.apply_order_detail,
        )

    def _order_details(self, params: SyncParams) -> JobDefinition:
        async def list_targets(session: SessionProvider) -> List[Any]:
            return await self.store.orders_needing_details(self._limit(params), params.only_missing)

        return JobDefinition(job=self.order_details_job(), list_targets=list_targets, metric_name="items_written")

    # ------------------------------------------------------------------
    # Addresses
    # ------------------------------------------------------------------

    def address_job(self) -> SyncJob:
        return SyncJob(
            name=JobName.ADDRESSES.value,
            fetch=self.client.address_info,
            normalize=normalizers.normalize_address,
            persist=self.store.apply_shipping_address,
        )

    def _addresses(self, params: SyncParams) -> JobDefinition:
        async def list_targets(session: SessionProvider) -> List[Any]:
            return await self.store.shipping_address_ids(
                only_missing=params.only_missing,
                updated_before=params.updated_before,
                limit=params.limit,
            )

        return JobDefinition(job=self.address_job(), list_targets=list_targets, metric_name="orders_updated")

    # ------------------------------------------------------------------
    # Customers
    # ------------------------------------------------------------------

    def _customers(self, params: SyncParams) -> JobDefinition:
        async def list_targets(session: SessionProvider) -> List[Any]:
            rows = await self._list("customers", self.client.list_customers, session, self._since(params))
            return rows[:params.limit] if params.limit else rows

        async def persist(customer_id: str, record) -> int:
            result = await self.store.upsert_customer(customer_id, record)
            return int(result.was_created)

        job = SyncJob(
            name=JobName.CUSTOMERS.value,
            fetch=_listed_row,
            normalize=normalizers.normalize_customer,
            persist=persist,
            target_id=_row_key("customer_id"),
        )
        return JobDefinition(job=job, list_targets=list_targets, metric_name="records_created")

    # ------------------------------------------------------------------
    # Products
    # ------------------------------------------------------------------

    def _products(self, params: SyncParams) -> JobDefinition:
        async def list_targets(session: SessionProvider) -> List[Any]:
            rows = await self._list("products", self.client.list_products, session, params.store_view)
            return rows[:params.limit] if params.limit else rows

        async def persist(sku: str, record) -> int:
            result = await self.store.upsert_product(sku, record)
            return int(result.was_created)

        job = SyncJob(
            name=JobName.PRODUCTS.value,
            fetch=_listed_row,
            normalize=normalizers.normalize_product,
            persist=persist,
            target_id=_row_key("sku"),
        )
        return JobDefinition(job=job, list_targets=list_targets, metric_name="records_created")

    def product_details_job(self, store_view: Optional[str] = None) -> SyncJob:
        """
        catalogProductInfo per product, merged with its stock row.

        Stock rows are fetched once per window (one bulk call); a product
        missing from the window's rows (single-product trigger, or a sku
        lookup) gets its own stock call.
        """
        stock: Dict[str, Optional[Dict[str, Any]]] = {}

        async def prepare_window(session: SessionProvider, rows: List[Any]):
            stock.clear()
            ids = [pid for pid in (_row_key("product_id", "productId")(row) for row in rows) if pid]
            if ids:
                stock.update(await self.client.stock_items(await session.token(), ids))

        async def fetch(token: str, row: Any) -> Dict[str, Any]:
            if isinstance(row, dict) and not normalizers.clean(row.get("product_id")) and row.get("sku"):
                identifier, identifier_type = row["sku"], "sku"
            else:
                identifier, identifier_type = _row_key("product_id", "productId")(row), "id"

            product = await self.client.product_info(token, identifier, store_view, identifier_type)
            pid = _row_key("product_id", "productId")(product)
            if pid and pid not in stock:
                stock.update(await self.client.stock_items(token, [pid]))
            return {"product": product, "stock": stock.get(pid) if pid else None}

        def normalize(raw: Dict[str, Any]):
            return normalizers.merge_stock(normalizers.normalize_product(raw["product"]), raw["stock"])

        async def persist(target_id: str, record) -> int:
            result = await self.store.upsert_product(record.sku, record, details=True)
            return int(result.was_created)

        return SyncJob(
            name=JobName.PRODUCT_DETAILS.value,
            fetch=fetch,
            normalize=normalize,
            persist=persist,
            target_id=_row_key("product_id", "productId", "sku"),
            prepare_window=prepare_window,
        )

    def _product_details(self, params: SyncParams) -> JobDefinition:
        async def list_targets(session: SessionProvider) -> List[Any]:
            rows = await self._list("product_details", self.client.list_products, session, params.store_view)
            return rows[:params.limit] if params.limit else rows

        return JobDefinition(
            job=self.product_details_job(params.store_view),
            list_targets=list_targets,
            metric_name="records_created",
        )
