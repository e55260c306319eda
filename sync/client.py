"""
Magento SOAP V2 client.

One httpx.AsyncClient is shared by every call of a pass. Each method performs
exactly one remote call (stock_items may fall back to one call per product)
and returns raw records produced by the shared decoder in sync.soap.

Error mapping:
- non-2xx status, timeouts and connection errors -> RemoteHttpError
- SOAP Fault in the payload -> RemoteFault (SessionExpiredError for code 5)
- no record in a successful response -> RemoteParseError
"""

import httpx
from typing import Dict, List, Optional, Sequence
from datetime import datetime
import logging

from core.config import settings
from core.exceptions import AuthError, RemoteError, RemoteHttpError, RemoteParseError
from sync import soap
from sync.soap import RawRecord

logger = logging.getLogger(__name__)

MIN_TOKEN_LENGTH = 10


class MagentoClient:
    """
    Remote record fetcher for the Magento SOAP API.

    Usage:
        async with MagentoClient.from_settings() as client:
            token = await client.login()
            order = await client.order_info(token, "100000123")
    """

    def __init__(
        self,
        url: str,
        username: str,
        api_key: str,
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None
    ):
        # The WSDL address is accepted too; calls go to the endpoint itself
        self.url = url.split("?wsdl")[0] if url else url
        self.username = username
        self.api_key = api_key
        self.timeout = timeout
        self._transport = transport
        self._http: Optional[httpx.AsyncClient] = None

    @classmethod
    def from_settings(cls, transport: Optional[httpx.AsyncBaseTransport] = None) -> "MagentoClient":
        return cls(
            url=settings.MAGENTO_API_URL,
            username=settings.MAGENTO_API_USER,
            api_key=settings.MAGENTO_API_KEY,
            timeout=settings.MAGENTO_TIMEOUT_SECONDS,
            transport=transport,
        )

    async def __aenter__(self) -> "MagentoClient":
        self._open()
        return self

    async def __aexit__(self, exc_type, exc, tb):
        await self.close()

    def _open(self) -> httpx.AsyncClient:
        if self._http is None:
            self._http = httpx.AsyncClient(timeout=self.timeout, transport=self._transport)
        return self._http

    async def close(self):
        if self._http is not None:
            await self._http.aclose()
            self._http = None

    @property
    def configured(self) -> bool:
        return bool(self.url and self.username and self.api_key)

    async def _post(self, operation: str, envelope: str) -> str:
        """POST one envelope and return the response text"""
        http = self._open()
        headers = {
            "Content-Type": "text/xml; charset=utf-8",
            "SOAPAction": soap.soap_action(operation),
        }

        try:
            response = await http.post(self.url, content=envelope.encode("utf-8"), headers=headers)
        except httpx.TimeoutException as e:
            raise RemoteHttpError(
                f"Timeout calling {operation}",
                context={"operation": operation, "timeout": self.timeout},
                original_exception=e
            )
        except httpx.HTTPError as e:
            raise RemoteHttpError(
                f"Transport error calling {operation}",
                context={"operation": operation},
                original_exception=e
            )

        if response.status_code >= 400:
            # Faults usually arrive with HTTP 500; keep the fault when there is one
            if "Fault" in response.text:
                try:
                    soap.parse_body(response.text, operation)
                except RemoteParseError:
                    pass
            raise RemoteHttpError(
                f"HTTP {response.status_code} from {operation}",
                context={"operation": operation, "response_body": response.text[:300]},
                status_code=response.status_code
            )

        return response.text

    # ------------------------------------------------------------------
    # Session
    # ------------------------------------------------------------------

    async def login(self) -> str:
        """
        Authenticate and return a session token.

        Raises:
            AuthError: credentials missing, login faulted or token unusable
        """
        if not self.configured:
            raise AuthError(
                "Magento credentials or URL are not configured",
                context={"url_set": bool(self.url), "user_set": bool(self.username)}
            )

        envelope = soap.build_envelope(
            "login",
            soap.string_param("username", self.username),
            soap.string_param("apiKey", self.api_key),
        )
        try:
            text = await self._post("login", envelope)
            token = soap.decode_scalar(text, "login")
        except RemoteError as e:
            raise AuthError("Login failed", context={"operation": "login"}, original_exception=e)

        if not token or len(token) <= MIN_TOKEN_LENGTH:
            raise AuthError("Login returned no usable session id", context={"operation": "login"})
        return token

    # ------------------------------------------------------------------
    # Orders
    # ------------------------------------------------------------------

    async def list_orders(self, token: str, updated_since: Optional[datetime] = None) -> List[RawRecord]:
        envelope = soap.build_envelope(
            "salesOrderList",
            soap.string_param("sessionId", token),
            soap.updated_since_filter(updated_since),
        )
        return soap.decode_records(await self._post("salesOrderList", envelope), "salesOrderList")

    async def order_info(self, token: str, increment_id: str) -> RawRecord:
        envelope = soap.build_envelope(
            "salesOrderInfo",
            soap.string_param("sessionId", token),
            soap.string_param("orderIncrementId", increment_id),
        )
        return soap.decode_record(await self._post("salesOrderInfo", envelope), "salesOrderInfo")

    # ------------------------------------------------------------------
    # Customers
    # ------------------------------------------------------------------

    async def list_customers(self, token: str, updated_since: Optional[datetime] = None) -> List[RawRecord]:
        envelope = soap.build_envelope(
            "customerCustomerList",
            soap.string_param("sessionId", token),
            soap.updated_since_filter(updated_since),
        )
        return soap.decode_records(
            await self._post("customerCustomerList", envelope), "customerCustomerList"
        )

    async def address_info(self, token: str, address_id: str) -> RawRecord:
        envelope = soap.build_envelope(
            "customerAddressInfo",
            soap.string_param("sessionId", token),
            soap.string_param("addressId", address_id),
        )
        record = soap.decode_record(
            await self._post("customerAddressInfo", envelope), "customerAddressInfo"
        )
        record.setdefault("customer_address_id", str(address_id))
        return record

    # ------------------------------------------------------------------
    # Catalog
    # ------------------------------------------------------------------

    async def list_products(self, token: str, store_view: Optional[str] = None) -> List[RawRecord]:
        envelope = soap.build_envelope(
            "catalogProductList",
            soap.string_param("sessionId", token),
            '<filters xsi:nil="true"/>',
            soap.string_param("storeView", store_view),
        )
        return soap.decode_records(await self._post("catalogProductList", envelope), "catalogProductList")

    async def product_info(
        self,
        token: str,
        product_id: str,
        store_view: Optional[str] = None,
        identifier_type: str = "id"
    ) -> RawRecord:
        envelope = soap.build_envelope(
            "catalogProductInfo",
            soap.string_param("sessionId", token),
            soap.string_param("productId", product_id),
            soap.string_param("storeView", store_view),
            '<attributes xsi:nil="true"/>',
            soap.string_param("identifierType", identifier_type),
        )
        return soap.decode_record(await self._post("catalogProductInfo", envelope), "catalogProductInfo")

    async def stock_items(self, token: str, product_ids: Sequence[str]) -> Dict[str, Optional[RawRecord]]:
        """
        Stock rows keyed by product id.

        Falls back to one call per product when the bulk call is rejected;
        products that still fail map to None.
        """
        if not product_ids:
            return {}

        try:
            return self._index_stock(await self._stock_call(token, product_ids))
        except RemoteError as e:
            logger.warning(f"Bulk stock lookup failed, falling back to single calls: {e.message}")

        out: Dict[str, Optional[RawRecord]] = {}
        for pid in product_ids:
            try:
                rows = await self._stock_call(token, [pid])
                out[str(pid)] = rows[0] if rows else None
            except RemoteError as e:
                logger.error(f"Stock lookup failed for product {pid}: {e.message}")
                out[str(pid)] = None
        return out

    async def _stock_call(self, token: str, product_ids: Sequence[str]) -> List[RawRecord]:
        envelope = soap.build_envelope(
            "catalogInventoryStockItemList",
            soap.string_param("sessionId", token),
            soap.string_array("products", product_ids),
        )
        return soap.decode_records(
            await self._post("catalogInventoryStockItemList", envelope), "catalogInventoryStockItemList"
        )

    @staticmethod
    def _index_stock(rows: List[RawRecord]) -> Dict[str, Optional[RawRecord]]:
        out: Dict[str, Optional[RawRecord]] = {}
        for row in rows:
            pid = row.get("product_id") or row.get("productId")
            if pid:
                out[str(pid)] = row
        return out
