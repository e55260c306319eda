"""
Pytest configuration and fixtures
"""

import re
import pytest
import pytest_asyncio
import httpx
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine, async_sessionmaker
from sqlalchemy.pool import NullPool
from typing import AsyncGenerator, Callable, Dict, List
from xml.sax.saxutils import escape
from core.config import settings
from models import Base
from sync.client import MagentoClient
from sync.runner import SyncRunner
from sync.store import SyncStore


# ============================================================================
# Database
# ============================================================================

@pytest_asyncio.fixture(scope="function")
async def test_engine(tmp_path):
    """File-backed SQLite engine; every session gets its own connection"""
    engine = create_async_engine(
        f"sqlite+aiosqlite:///{tmp_path / 'sync_test.db'}",
        echo=False,
        poolclass=NullPool,
        connect_args={"timeout": 30},
    )

    # Create all tables
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest.fixture
def session_factory(test_engine):
    return async_sessionmaker(
        test_engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )


@pytest_asyncio.fixture(scope="function")
async def db_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    """Create database session for assertions"""
    async with session_factory() as session:
        yield session


@pytest.fixture
def store(session_factory):
    return SyncStore(session_factory)


# ============================================================================
# SOAP payloads
# ============================================================================

def _render(value) -> str:
    if value is None:
        return ""
    if isinstance(value, dict):
        return "".join(f"<{k}>{_render(v)}</{k}>" for k, v in value.items())
    if isinstance(value, list):
        return "".join(f"<item>{_render(v)}</item>" for v in value)
    return escape(str(value))


def soap_response(operation: str, payload, container: str = "result") -> str:
    """Response envelope shaped like the Magento V2 API output"""
    return (
        '<?xml version="1.0" encoding="UTF-8"?>'
        '<SOAP-ENV:Envelope xmlns:SOAP-ENV="http://schemas.xmlsoap.org/soap/envelope/" '
        'xmlns:ns1="urn:Magento">'
        "<SOAP-ENV:Body>"
        f"<ns1:{operation}Response><{container}>{_render(payload)}</{container}></ns1:{operation}Response>"
        "</SOAP-ENV:Body></SOAP-ENV:Envelope>"
    )


def soap_fault(code: str, message: str) -> str:
    return (
        '<?xml version="1.0" encoding="UTF-8"?>'
        '<SOAP-ENV:Envelope xmlns:SOAP-ENV="http://schemas.xmlsoap.org/soap/envelope/">'
        "<SOAP-ENV:Body><SOAP-ENV:Fault>"
        f"<faultcode>{code}</faultcode><faultstring>{escape(message)}</faultstring>"
        "</SOAP-ENV:Fault></SOAP-ENV:Body></SOAP-ENV:Envelope>"
    )


@pytest.fixture
def soap():
    """Payload builders: soap.response(op, payload) and soap.fault(code, msg)"""
    class Builders:
        response = staticmethod(soap_response)
        fault = staticmethod(soap_fault)
    return Builders



@pytest.fixture
def make_client() -> Callable[[Callable[[httpx.Request], httpx.Response]], MagentoClient]:
    """MagentoClient whose HTTP calls are answered by handler(request)"""
    def build(handler) -> MagentoClient:
        return MagentoClient(
            url="https://shop.example.com/api/v2_soap/index/",
            username="sync",
            api_key="secret",
            timeout=5,
            transport=httpx.MockTransport(handler),
        )
    return build


# ============================================================================
# Raw records
# ============================================================================

@pytest.fixture
def order_info_payload() -> Dict:
    """salesOrderInfo record with nested addresses and two items"""
    return {
        "increment_id": "100000123",
        "store_id": "1",
        "customer_id": "42",
        "status": "processing",
        "state": "processing",
        "created_at": "2024-03-01 10:15:00",
        "grand_total": "150.5000",
        "subtotal": "140.0000",
        "shipping_amount": "10.5000",
        "tax_amount": "0.0000",
        "total_qty_ordered": "3.0000",
        "customer_email": "ana@example.com",
        "customer_firstname": "Ana",
        "customer_lastname": "Souza",
        "shipping_address": {
            "customer_address_id": "77",
            "firstname": "Ana",
            "lastname": "Souza",
            "street": "Rua A, 10\nApto 5",
            "city": "Recife",
            "region": "PE",
            "region_id": "502",
            "postcode": "50000-000",
            "country_id": "BR",
            "telephone": "81999999999",
        },
        "billing_address": {
            "firstname": "Ana",
            "lastname": "Souza",
            "street": "Rua B, 20",
            "city": "Recife",
            "country_id": "BR",
        },
        "items": [
            {
                "item_id": "9001",
                "product_id": "501",
                "sku": "SKU-1",
                "name": "Vitamin C",
                "qty_ordered": "2.0000",
                "price": "50.0000",
                "row_total": "100.0000",
            },
            {
                "item_id": "9002",
                "product_id": "502",
                "sku": "SKU-2",
                "name": "Zinc",
                "qty_ordered": "1.0000",
                "price": "40.0000",
            },
        ],
    }


@pytest.fixture
def order_list_rows() -> List[Dict]:
    return [
        {
            "increment_id": "100000001",
            "status": "pending",
            "created_at": "2024-03-01 08:00:00",
            "grand_total": "10.0000",
            "customer_email": "a@example.com",
        },
        {
            "increment_id": "100000002",
            "status": "complete",
            "created_at": "2024-03-02 08:00:00",
            "grand_total": "20.0000",
            "customer_email": "b@example.com",
        },
    ]


# ============================================================================
# Fake remote and runner
# ============================================================================

class FakeMagento:
    """
    In-memory Magento answering the SOAP calls of a MockTransport.

    Detail records live in dicts keyed by the id the call sends; keys in
    ``failing`` answer with a retryable fault every time.
    """

    def __init__(self):
        self.order_rows: List[Dict] = []
        self.orders: Dict[str, Dict] = {}
        self.customers: List[Dict] = []
        self.addresses: Dict[str, Dict] = {}
        self.products: Dict[str, Dict] = {}
        self.stock: Dict[str, Dict] = {}
        self.failing = set()
        self.reject_login = False
        self.logins = 0
        self.calls: List[str] = []

    @staticmethod
    def param(body: str, name: str):
        match = re.search(rf"<{name}[^>]*>([^<]*)</{name}>", body)
        return match.group(1) if match else None

    def _detail(self, operation: str, key: str, records: Dict[str, Dict]) -> httpx.Response:
        if key in self.failing:
            return httpx.Response(500, text=soap_fault("1", "Internal Error. Please see log for details."))
        if key not in records:
            return httpx.Response(500, text=soap_fault("100", "Requested record not exists."))
        return httpx.Response(200, text=soap_response(operation, records[key]))

    def __call__(self, request: httpx.Request) -> httpx.Response:
        operation = request.headers["SOAPAction"].split("#", 1)[1]
        body = request.content.decode()
        self.calls.append(operation)

        if operation == "login":
            if self.reject_login:
                return httpx.Response(500, text=soap_fault("2", "Access denied."))
            self.logins += 1
            token = f"session{self.logins:024d}"
            return httpx.Response(200, text=soap_response(operation, token, container="loginReturn"))
        if operation == "salesOrderList":
            return httpx.Response(200, text=soap_response(operation, self.order_rows))
        if operation == "salesOrderInfo":
            return self._detail(operation, self.param(body, "orderIncrementId"), self.orders)
        if operation == "customerCustomerList":
            return httpx.Response(200, text=soap_response(operation, self.customers))
        if operation == "customerAddressInfo":
            return self._detail(operation, self.param(body, "addressId"), self.addresses)
        if operation == "catalogProductList":
            rows = [
                {k: p[k] for k in ("product_id", "sku", "name", "type") if k in p}
                for p in self.products.values()
            ]
            return httpx.Response(200, text=soap_response(operation, rows))
        if operation == "catalogProductInfo":
            key = self.param(body, "productId")
            if self.param(body, "identifierType") == "sku":
                key = next((pid for pid, p in self.products.items() if p.get("sku") == key), key)
            return self._detail(operation, key, self.products)
        if operation == "catalogInventoryStockItemList":
            ids = re.findall(r'<item xsi:type="xsd:string">([^<]*)</item>', body)
            rows = [self.stock[pid] for pid in ids if pid in self.stock]
            return httpx.Response(200, text=soap_response(operation, rows))

        return httpx.Response(500, text=soap_fault("3", "Invalid api path."))

    def count(self, operation: str) -> int:
        return self.calls.count(operation)


@pytest.fixture
def magento() -> FakeMagento:
    return FakeMagento()


@pytest.fixture
def test_settings():
    """Settings without pauses or backoff"""
    return settings.model_copy(update={
        "SYNC_BACKOFF_SECONDS": 0,
        "SYNC_PAUSE_SECONDS": 0,
        "SYNC_PASS_SLEEP_SECONDS": 0,
        "MAGENTO_SESSION_MAX_OPERATIONS": 0,
    })


@pytest_asyncio.fixture
async def runner(make_client, magento, store, test_settings) -> AsyncGenerator[SyncRunner, None]:
    async with make_client(magento) as client:
        yield SyncRunner(client, store, test_settings)
