"""
Persist normalized records with select-then-write upsert logic (idempotency)
"""

from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Type
from datetime import datetime
import logging

from sqlalchemy import select, update, or_
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from core.exceptions import EnumerationError, PersistenceError
from models.base import JobName, SyncStatus
from models.customer import Customer
from models.order import Order, OrderItem
from models.product import Product
from models.sync_run import SyncRun
from schemas.records import (
    AddressRecord,
    CustomerRecord,
    OrderDetail,
    OrderItemRecord,
    OrderRecord,
    ProductRecord,
)

logger = logging.getLogger(__name__)

# Shipping columns that, when empty, mark an address as needing a refresh
ADDRESS_COMPLETENESS_COLUMNS = (
    Order.shipping_street,
    Order.shipping_city,
    Order.shipping_region,
    Order.shipping_postcode,
    Order.shipping_country_id,
    Order.shipping_telephone,
    Order.shipping_company,
    Order.shipping_is_default_billing,
    Order.shipping_is_default_shipping,
)


@dataclass
class UpsertResult:
    record: Any
    was_created: bool


class SyncStore:
    """
    Write normalized records keyed by their natural (remote) identifiers.

    Ensures:
    - No duplicate rows on repeated runs
    - Fields the remote did not send keep their stored value
    - Each call is its own transaction (one session, one commit)
    """

    def __init__(self, session_factory: async_sessionmaker):
        self.session_factory = session_factory

    # ------------------------------------------------------------------
    # Generic upsert
    # ------------------------------------------------------------------

    async def _upsert(
        self,
        model: Type,
        where: Dict[str, Any],
        values: Dict[str, Any],
        create_defaults: Optional[Dict[str, Any]] = None,
        session: Optional[AsyncSession] = None
    ) -> UpsertResult:
        if session is None:
            async with self.session_factory() as own_session:
                try:
                    result = await self._upsert(model, where, values, create_defaults, own_session)
                    await own_session.commit()
                    return result
                except IntegrityError:
                    # Lost a create race against another writer; the row exists now
                    await own_session.rollback()
                    result = await self._upsert(model, where, values, None, own_session)
                    await own_session.commit()
                    return result

        stmt = select(model)
        for column, value in where.items():
            stmt = stmt.where(getattr(model, column) == value)
        existing = (await session.execute(stmt)).scalar_one_or_none()

        if existing is None:
            row = model(**{**(create_defaults or {}), **values, **where})
            session.add(row)
            await session.flush()
            return UpsertResult(record=row, was_created=True)

        for column, value in values.items():
            setattr(existing, column, value)
        await session.flush()
        return UpsertResult(record=existing, was_created=False)

    def _fail(self, operation: str, key: Any, error: Exception) -> PersistenceError:
        logger.error(f"{operation} failed for {key}: {error}")
        return PersistenceError(
            f"{operation} failed",
            context={"operation": operation, "key": key},
            original_exception=error
        )

    # ------------------------------------------------------------------
    # Orders
    # ------------------------------------------------------------------

    async def upsert_order(self, increment_id: str, record: OrderRecord) -> UpsertResult:
        """Create or update an order header; unset fields are left alone"""
        values = record.present_fields(exclude={"increment_id"})
        values["synced_at"] = datetime.utcnow()
        try:
            return await self._upsert(Order, {"increment_id": increment_id}, values)
        except SQLAlchemyError as e:
            raise self._fail("upsert_order", increment_id, e)

    async def upsert_order_item(self, order_id: str, item_id: str, record: OrderItemRecord) -> UpsertResult:
        """Create or update a line item keyed by (order increment id, item id)"""
        values = record.present_fields(exclude={"item_id"})
        if "qty_ordered" in values:
            values["qty"] = values["qty_ordered"]
        defaults = {"name": "Item", "qty": 0, "price": 0}
        try:
            return await self._upsert(
                OrderItem, {"order_id": order_id, "item_id": item_id}, values, defaults
            )
        except SQLAlchemyError as e:
            raise self._fail("upsert_order_item", f"{order_id}/{item_id}", e)

    async def apply_order_detail(self, increment_id: str, detail: OrderDetail) -> int:
        """
        Write a full order: header first (marked as detailed), then each item.

        Every write commits on its own, so a failure part-way leaves the
        header and earlier items in place; re-running the order converges.

        Returns:
            Number of line items written
        """
        values = detail.header.present_fields(exclude={"increment_id"})
        now = datetime.utcnow()
        values.update(details_fetched=True, details_fetched_at=now, synced_at=now)
        try:
            await self._upsert(Order, {"increment_id": increment_id}, values)
        except SQLAlchemyError as e:
            raise self._fail("apply_order_detail", increment_id, e)

        written = 0
        for item in detail.items:
            await self.upsert_order_item(increment_id, item.item_id, item)
            written += 1
        return written

    async def orders_needing_details(self, limit: int, only_missing: bool = True) -> List[str]:
        """Increment ids to fetch details for, newest first"""
        stmt = select(Order.increment_id).order_by(Order.created_at.desc()).limit(limit)
        if only_missing:
            stmt = stmt.where(Order.details_fetched.is_(False))
        try:
            async with self.session_factory() as session:
                return list((await session.execute(stmt)).scalars().all())
        except SQLAlchemyError as e:
            raise EnumerationError(
                "Failed to enumerate orders needing details",
                context={"limit": limit, "only_missing": only_missing},
                original_exception=e
            )

    # ------------------------------------------------------------------
    # Addresses
    # ------------------------------------------------------------------

    async def apply_shipping_address(self, address_id: str, record: AddressRecord) -> int:
        """
        Copy address values onto every order shipped to that address.

        Returns:
            Number of orders updated
        """
        values = record.present_fields(exclude={"address_id"})
        values["shipping_address_updated_at"] = datetime.utcnow()
        stmt = (
            update(Order)
            .where(Order.shipping_address_id == address_id)
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        try:
            async with self.session_factory() as session:
                result = await session.execute(stmt)
                await session.commit()
                return result.rowcount or 0
        except SQLAlchemyError as e:
            raise self._fail("apply_shipping_address", address_id, e)

    async def shipping_address_ids(
        self,
        only_missing: bool = False,
        updated_before: Optional[datetime] = None,
        limit: Optional[int] = None
    ) -> List[str]:
        """
        Distinct shipping address ids referenced by orders.

        only_missing keeps addresses whose orders lack some shipping value;
        updated_before keeps addresses last refreshed before the cutoff.
        Both together match either condition.
        """
        stmt = select(Order.shipping_address_id).where(Order.shipping_address_id.isnot(None))

        stale = None
        if updated_before is not None:
            stale = or_(
                Order.shipping_address_updated_at.is_(None),
                Order.shipping_address_updated_at < updated_before,
            )

        if only_missing:
            conditions = [column.is_(None) for column in ADDRESS_COMPLETENESS_COLUMNS]
            if stale is not None:
                conditions.append(stale)
            stmt = stmt.where(or_(*conditions))
        elif stale is not None:
            stmt = stmt.where(stale)

        stmt = stmt.distinct().order_by(Order.shipping_address_id)
        if limit:
            stmt = stmt.limit(limit)

        try:
            async with self.session_factory() as session:
                return list((await session.execute(stmt)).scalars().all())
        except SQLAlchemyError as e:
            raise EnumerationError(
                "Failed to enumerate shipping address ids",
                context={"only_missing": only_missing},
                original_exception=e
            )

    # ------------------------------------------------------------------
    # Customers / products
    # ------------------------------------------------------------------

    async def upsert_customer(self, customer_id: str, record: CustomerRecord) -> UpsertResult:
        values = record.present_fields(exclude={"customer_id"})
        values["synced_at"] = datetime.utcnow()
        try:
            return await self._upsert(Customer, {"customer_id": customer_id}, values)
        except SQLAlchemyError as e:
            raise self._fail("upsert_customer", customer_id, e)

    async def upsert_product(self, sku: str, record: ProductRecord, details: bool = False) -> UpsertResult:
        """
        Create or update a product.

        Matches by sku first, then by product_id so a product whose sku was
        changed remotely updates its existing row instead of colliding on the
        product_id unique key.
        """
        values = record.present_fields()
        values["sku"] = sku
        values["synced_at"] = datetime.utcnow()
        if details:
            values["details_fetched_at"] = values["synced_at"]
        defaults = {"name": sku, "price": 0, "qty": 0}

        try:
            async with self.session_factory() as session:
                existing = (
                    await session.execute(select(Product).where(Product.sku == sku))
                ).scalar_one_or_none()
                if existing is None and record.product_id:
                    existing = (
                        await session.execute(
                            select(Product).where(Product.product_id == record.product_id)
                        )
                    ).scalar_one_or_none()

                if existing is None:
                    result = await self._upsert(Product, {"sku": sku}, values, defaults, session)
                else:
                    for column, value in values.items():
                        setattr(existing, column, value)
                    result = UpsertResult(record=existing, was_created=False)
                await session.commit()
                return result
        except SQLAlchemyError as e:
            raise self._fail("upsert_product", sku, e)

    # ------------------------------------------------------------------
    # Run tracking
    # ------------------------------------------------------------------

    async def record_run(self, job: JobName, params: Optional[Dict[str, Any]] = None) -> SyncRun:
        """Create the audit row for a job run"""
        async with self.session_factory() as session:
            run = SyncRun(
                job=job,
                status=SyncStatus.RUNNING,
                started_at=datetime.utcnow(),
                params=params or {},
            )
            session.add(run)
            await session.commit()
            await session.refresh(run)
            return run

    async def finish_run(
        self,
        run: SyncRun,
        status: SyncStatus,
        passes: int = 0,
        targets_total: int = 0,
        records_ok: int = 0,
        records_failed: int = 0,
        records_skipped: int = 0,
        items_written: int = 0,
        error_message: Optional[str] = None,
        error_sample: Optional[List[Dict[str, Any]]] = None
    ) -> SyncRun:
        """Complete a job run with its counters"""
        async with self.session_factory() as session:
            row = await session.get(SyncRun, run.id)
            row.status = status
            row.completed_at = datetime.utcnow()
            row.duration_seconds = (row.completed_at - row.started_at).total_seconds()
            row.passes = passes
            row.targets_total = targets_total
            row.records_ok = records_ok
            row.records_failed = records_failed
            row.records_skipped = records_skipped
            row.items_written = items_written
            row.error_message = error_message
            row.error_sample = error_sample or []
            await session.commit()
            await session.refresh(row)

        logger.info(
            f"Sync run {row.run_id} ({row.job.value}) finished: {status.value} - "
            f"OK: {records_ok}, Failed: {records_failed}, Skipped: {records_skipped}"
        )
        return row
