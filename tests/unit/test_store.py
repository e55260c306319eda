"""
Unit tests for the persistence upserter
"""

import asyncio
import pytest
from datetime import datetime, timedelta
from decimal import Decimal
from sqlalchemy import func, select
from models import Customer, Order, OrderItem, Product
from models.base import JobName, OrderStatus, SyncStatus
from schemas.records import (
    AddressRecord,
    CustomerRecord,
    OrderDetail,
    OrderItemRecord,
    OrderRecord,
    ProductRecord,
)


async def count(session_factory, model) -> int:
    async with session_factory() as session:
        return (await session.execute(select(func.count()).select_from(model))).scalar()


async def load_order(session_factory, increment_id) -> Order:
    async with session_factory() as session:
        return (
            await session.execute(select(Order).where(Order.increment_id == increment_id))
        ).scalar_one()


def business_columns(row) -> dict:
    """Column values without surrogate keys or sync timestamps"""
    skipped = {"id", "created_at", "updated_at", "synced_at"}
    return {c.key: getattr(row, c.key) for c in row.__table__.columns if c.key not in skipped}


class TestOrderUpserts:

    @pytest.mark.asyncio
    async def test_upsert_is_idempotent(self, store, session_factory):
        record = OrderRecord(
            increment_id="100000001",
            status=OrderStatus.PENDING,
            customer_email="ana@example.com",
            grand_total=Decimal("10.00"),
        )

        first = await store.upsert_order("100000001", record)
        after_first = business_columns(await load_order(session_factory, "100000001"))
        second = await store.upsert_order("100000001", record)
        after_second = business_columns(await load_order(session_factory, "100000001"))

        assert first.was_created is True
        assert second.was_created is False
        assert await count(session_factory, Order) == 1
        assert after_second == after_first
        assert after_second["customer_email"] == "ana@example.com"

    @pytest.mark.asyncio
    async def test_absent_fields_keep_stored_values(self, store, session_factory):
        await store.upsert_order("100000001", OrderRecord(
            increment_id="100000001",
            status=OrderStatus.PROCESSING,
            customer_email="ana@example.com",
            grand_total=Decimal("10.00"),
        ))
        # Second pass without email and with an unmapped status
        await store.upsert_order("100000001", OrderRecord(increment_id="100000001", grand_total=Decimal("0.00")))

        order = await load_order(session_factory, "100000001")
        assert order.customer_email == "ana@example.com"
        assert order.status == OrderStatus.PROCESSING
        assert order.grand_total == Decimal("0.00")

    @pytest.mark.asyncio
    @pytest.mark.parametrize("concurrency", [1, 8])
    async def test_concurrent_upserts_create_one_row_each(self, store, session_factory, concurrency):
        ids = [f"1000000{i:02d}" for i in range(16)]
        semaphore = asyncio.Semaphore(concurrency)

        async def write(increment_id):
            async with semaphore:
                return await store.upsert_order(increment_id, OrderRecord(increment_id=increment_id))

        results = await asyncio.gather(*(write(i) for i in ids))

        assert all(r.was_created for r in results)
        assert await count(session_factory, Order) == len(ids)

    @pytest.mark.asyncio
    async def test_racing_creates_of_same_order(self, store, session_factory):
        record = OrderRecord(increment_id="100000001", customer_email="ana@example.com")

        results = await asyncio.gather(*(store.upsert_order("100000001", record) for _ in range(3)))

        assert sum(r.was_created for r in results) == 1
        assert await count(session_factory, Order) == 1

    @pytest.mark.asyncio
    async def test_apply_order_detail_writes_items(self, store, session_factory):
        detail = OrderDetail(
            header=OrderRecord(increment_id="100000123", grand_total=Decimal("150.50")),
            items=[
                OrderItemRecord(item_id="9001", sku="SKU-1", qty_ordered=Decimal("2.00"), price=Decimal("50.00")),
                OrderItemRecord(item_id="9002", sku="SKU-2"),
            ],
        )

        written = await store.apply_order_detail("100000123", detail)
        again = await store.apply_order_detail("100000123", detail)

        assert written == again == 2
        assert await count(session_factory, OrderItem) == 2

        order = await load_order(session_factory, "100000123")
        assert order.details_fetched is True
        assert order.details_fetched_at is not None

        async with session_factory() as session:
            items = {
                i.item_id: i for i in (await session.execute(select(OrderItem))).scalars().all()
            }
        assert items["9001"].qty == Decimal("2.00")
        assert items["9002"].name == "Item"
        assert items["9002"].price == Decimal("0.00")

    @pytest.mark.asyncio
    async def test_order_items_relationship_loads(self, store, session_factory):
        await store.apply_order_detail("100000123", OrderDetail(
            header=OrderRecord(increment_id="100000123"),
            items=[OrderItemRecord(item_id="9001"), OrderItemRecord(item_id="9002")],
        ))

        async with session_factory() as session:
            order = (
                await session.execute(select(Order).where(Order.increment_id == "100000123"))
            ).scalar_one()
            items = await session.run_sync(lambda _: list(order.items))

        assert sorted(i.item_id for i in items) == ["9001", "9002"]

    @pytest.mark.asyncio
    async def test_item_key_is_scoped_to_order(self, store, session_factory):
        for order_id in ("100000001", "100000002"):
            await store.upsert_order(order_id, OrderRecord(increment_id=order_id))
            await store.upsert_order_item(order_id, "1", OrderItemRecord(item_id="1", name="Zinc"))

        assert await count(session_factory, OrderItem) == 2

    @pytest.mark.asyncio
    async def test_orders_needing_details_newest_first(self, store):
        base = datetime(2024, 3, 1)
        for offset, increment_id in enumerate(["100000001", "100000002", "100000003"]):
            await store.upsert_order(
                increment_id,
                OrderRecord(increment_id=increment_id, created_at=base + timedelta(days=offset)),
            )
        await store.apply_order_detail("100000003", OrderDetail(header=OrderRecord(increment_id="100000003")))

        assert await store.orders_needing_details(limit=10) == ["100000002", "100000001"]
        assert await store.orders_needing_details(limit=1, only_missing=False) == ["100000003"]


class TestAddresses:

    @pytest.mark.asyncio
    async def test_apply_shipping_address_updates_every_order(self, store, session_factory):
        for increment_id in ("100000001", "100000002"):
            await store.upsert_order(increment_id, OrderRecord(increment_id=increment_id, shipping_address_id="77"))
        await store.upsert_order("100000003", OrderRecord(increment_id="100000003", shipping_address_id="88"))

        updated = await store.apply_shipping_address(
            "77", AddressRecord(address_id="77", shipping_city="Recife", shipping_street="Rua A, 10")
        )

        assert updated == 2
        order = await load_order(session_factory, "100000002")
        assert order.shipping_city == "Recife"
        assert order.shipping_address_updated_at is not None
        other = await load_order(session_factory, "100000003")
        assert other.shipping_city is None

    @pytest.mark.asyncio
    async def test_unknown_address_updates_nothing(self, store):
        assert await store.apply_shipping_address("999", AddressRecord(address_id="999", shipping_city="X")) == 0

    @pytest.mark.asyncio
    async def test_shipping_address_ids_distinct_and_filtered(self, store):
        await store.upsert_order("100000001", OrderRecord(increment_id="100000001", shipping_address_id="77"))
        await store.upsert_order("100000002", OrderRecord(increment_id="100000002", shipping_address_id="77"))
        await store.upsert_order("100000003", OrderRecord(increment_id="100000003", shipping_address_id="88"))
        await store.upsert_order("100000004", OrderRecord(increment_id="100000004"))

        assert await store.shipping_address_ids() == ["77", "88"]

        complete = AddressRecord(
            address_id="88",
            shipping_street="Rua B", shipping_city="Recife", shipping_region="PE",
            shipping_postcode="50000-000", shipping_country_id="BR", shipping_telephone="81",
            shipping_company="ACME", shipping_is_default_billing=False, shipping_is_default_shipping=True,
        )
        await store.apply_shipping_address("88", complete)

        assert await store.shipping_address_ids(only_missing=True) == ["77"]
        cutoff = datetime.utcnow() + timedelta(minutes=1)
        assert await store.shipping_address_ids(updated_before=cutoff) == ["77", "88"]
        assert await store.shipping_address_ids(limit=1) == ["77"]


class TestCustomersAndProducts:

    @pytest.mark.asyncio
    async def test_upsert_customer(self, store, session_factory):
        first = await store.upsert_customer("42", CustomerRecord(customer_id="42", email="ana@example.com"))
        second = await store.upsert_customer("42", CustomerRecord(customer_id="42", firstname="Ana"))

        assert first.was_created and not second.was_created
        async with session_factory() as session:
            customer = (await session.execute(select(Customer))).scalar_one()
        assert customer.email == "ana@example.com"
        assert customer.firstname == "Ana"

    @pytest.mark.asyncio
    async def test_product_defaults_on_create(self, store, session_factory):
        result = await store.upsert_product("SKU-1", ProductRecord(sku="SKU-1", product_id="501"))
        assert result.was_created

        async with session_factory() as session:
            product = (await session.execute(select(Product))).scalar_one()
        assert product.name == "SKU-1"
        assert product.qty == 0
        assert product.price == 0
        assert product.details_fetched_at is None

    @pytest.mark.asyncio
    async def test_product_matched_by_product_id_when_sku_changes(self, store, session_factory):
        await store.upsert_product("OLD-SKU", ProductRecord(sku="OLD-SKU", product_id="501", name="Zinc"))

        result = await store.upsert_product(
            "NEW-SKU", ProductRecord(sku="NEW-SKU", product_id="501", qty=Decimal("4.00")), details=True
        )

        assert not result.was_created
        assert await count(session_factory, Product) == 1
        async with session_factory() as session:
            product = (await session.execute(select(Product))).scalar_one()
        assert product.sku == "NEW-SKU"
        assert product.name == "Zinc"
        assert product.qty == Decimal("4.00")
        assert product.details_fetched_at is not None


class TestRunTracking:

    @pytest.mark.asyncio
    async def test_record_and_finish_run(self, store):
        run = await store.record_run(JobName.ORDERS, {"limit": 10})
        assert run.status == SyncStatus.RUNNING

        finished = await store.finish_run(
            run, SyncStatus.PARTIAL, passes=1, targets_total=3, records_ok=2, records_failed=1,
            error_sample=[{"target": "3", "error": "boom"}],
        )

        assert finished.status == SyncStatus.PARTIAL
        assert finished.completed_at is not None
        assert finished.duration_seconds >= 0
        assert finished.error_sample[0]["target"] == "3"
        assert finished.params == {"limit": 10}
