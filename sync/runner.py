# ============================================================================
# File: sync/runner.py
# Description: Sync job orchestrator with run tracking and error handling
# ============================================================================
"""
Sync Runner - Orchestrates enumerate -> batch driver -> run bookkeeping.

This module provides job orchestration with:
- One explicit session handle per batch pass
- Partial failure support (per-target failures never abort a pass)
- Whole-job failure only for session or enumeration errors
- SyncRun audit rows with counters and a bounded error sample
- Single-target triggers that share the batch pipeline
"""

from typing import Any, Dict, List, Optional
import logging
import time

from core.exceptions import AuthError, EnumerationError, SyncException
from models.base import JobName, SyncStatus
from schemas.api import JobResult, SyncParams, UntilDoneParams
from sync.client import MagentoClient
from sync.driver import (
    BatchResult,
    DriverOptions,
    SyncJob,
    run_batch,
    run_one,
    run_until_exhausted,
)
from sync.jobs import JobCatalog
from sync.session import SessionProvider
from sync.store import SyncStore

logger = logging.getLogger(__name__)


class SyncRunner:
    """
    Sync job orchestrator.

    Responsibilities:
    - Build the job for a trigger and enumerate its targets
    - Drive the targets through the bounded batch driver
    - Record accurate SyncRun metrics
    - Report a structured JobResult to the trigger surface
    """

    def __init__(self, client: MagentoClient, store: SyncStore, settings):
        self.client = client
        self.store = store
        self.settings = settings
        self.catalog = JobCatalog(client, store, settings)

    def _options(self, params: Optional[SyncParams]) -> DriverOptions:
        params = params or SyncParams()
        return DriverOptions.from_settings(
            self.settings,
            concurrency=params.concurrency,
            retries=params.retries,
            pause_seconds=params.pause_seconds,
        )

    def _new_session(self) -> SessionProvider:
        return SessionProvider(self.client, self.settings.MAGENTO_SESSION_MAX_OPERATIONS)

    def _status(self, result: BatchResult) -> SyncStatus:
        if result.failed == 0:
            return SyncStatus.SUCCESS
        if result.ok > 0:
            return SyncStatus.PARTIAL
        return SyncStatus.FAILED

    async def _finish(
        self,
        run,
        job: JobName,
        result: BatchResult,
        metric_name: str,
        passes: int,
        targets: int,
        started: float,
        error: Optional[SyncException] = None
    ) -> JobResult:
        sample_size = self.settings.SYNC_ERROR_SAMPLE_SIZE
        status = SyncStatus.FAILED if error is not None else self._status(result)
        sample = result.error_sample(sample_size)

        await self.store.finish_run(
            run,
            status=status,
            passes=passes,
            targets_total=targets,
            records_ok=result.ok,
            records_failed=result.failed,
            records_skipped=result.skipped,
            items_written=result.metric,
            error_message=error.message if error is not None else (
                f"{result.failed} targets failed" if result.failed else None
            ),
            error_sample=sample,
        )

        return JobResult(
            success=error is None,
            job=job,
            run_id=run.run_id,
            status=status,
            passes=passes,
            targets=targets,
            ok=result.ok,
            failed=result.failed,
            skipped=result.skipped,
            metric=result.metric,
            metric_name=metric_name,
            errors=sample,
            duration_seconds=round(time.perf_counter() - started, 3),
            message=str(error) if error is not None else None,
        )

    @staticmethod
    def _params_json(params: Optional[SyncParams], **extra) -> Dict[str, Any]:
        data = params.model_dump(mode="json", exclude_none=True) if params else {}
        data.update({k: v for k, v in extra.items() if v is not None})
        return data

    # ------------------------------------------------------------------
    # Batch jobs
    # ------------------------------------------------------------------

    async def run_job(self, name: JobName, params: Optional[SyncParams] = None) -> JobResult:
        """
        Run one batch pass of a job.

        Returns:
            JobResult; success is False only when the whole pass failed
            (no session or enumeration error)

        Raises:
            SyncException: unexpected errors, after the run is marked failed
        """
        name = JobName(name)
        started = time.perf_counter()
        definition = self.catalog.build(name, params)
        options = self._options(params)
        run = await self.store.record_run(name, self._params_json(params))
        session = self._new_session()

        logger.info(f"Starting {name.value} (run {run.run_id})")
        targets: List[Any] = []
        try:
            targets = await definition.list_targets(session)
            result = await run_batch(definition.job, targets, session, options)

        except (AuthError, EnumerationError) as e:
            logger.error(f"{name.value} failed: {e.message}", extra={"error_context": e.to_dict()})
            return await self._finish(
                run, name, BatchResult(), definition.metric_name, 0, len(targets), started, error=e
            )

        except Exception as e:
            logger.exception(f"Unexpected error in {name.value}")
            error = SyncException(
                f"Unexpected error in {name.value}",
                context={"job": name.value, "run_id": run.run_id},
                original_exception=e
            )
            await self._finish(
                run, name, BatchResult(), definition.metric_name, 0, len(targets), started, error=error
            )
            raise error

        return await self._finish(
            run, name, result, definition.metric_name, 1, len(targets), started
        )

    async def run_until_done(
        self,
        name: JobName = JobName.ORDER_DETAILS,
        params: Optional[UntilDoneParams] = None
    ) -> JobResult:
        """
        Repeat passes of a store-enumerated job until no targets remain.

        Each pass gets its own session handle. Meant for order_details and
        addresses with only_missing, where successful targets drop out of
        the enumeration.
        """
        name = JobName(name)
        params = params or UntilDoneParams()
        started = time.perf_counter()
        definition = self.catalog.build(name, params)
        options = self._options(params)
        run = await self.store.record_run(name, self._params_json(params, mode="until_done"))
        targets_seen = 0

        async def run_pass() -> BatchResult:
            nonlocal targets_seen
            session = self._new_session()
            targets = await definition.list_targets(session)
            targets_seen += len(targets)
            return await run_batch(definition.job, targets, session, options)

        max_passes = params.max_passes or self.settings.SYNC_MAX_PASSES
        sleep_seconds = (
            params.sleep_ms / 1000 if params.sleep_ms is not None
            else self.settings.SYNC_PASS_SLEEP_SECONDS
        )

        logger.info(
            f"Starting {name.value} until done (run {run.run_id}, only_missing={params.only_missing}, "
            f"max_passes={max_passes})"
        )
        try:
            outcome = await run_until_exhausted(run_pass, max_passes, sleep_seconds)

        except (AuthError, EnumerationError) as e:
            logger.error(f"{name.value} until-done failed: {e.message}")
            return await self._finish(
                run, name, BatchResult(), definition.metric_name, 0, targets_seen, started, error=e
            )

        except Exception as e:
            logger.exception(f"Unexpected error in {name.value} until-done")
            error = SyncException(
                f"Unexpected error in {name.value} until-done",
                context={"job": name.value, "run_id": run.run_id},
                original_exception=e
            )
            await self._finish(
                run, name, BatchResult(), definition.metric_name, 0, targets_seen, started, error=error
            )
            raise error

        return await self._finish(
            run, name, outcome.totals, definition.metric_name, outcome.passes, targets_seen, started
        )

    async def run_order_details_until_done(self, params: Optional[UntilDoneParams] = None) -> JobResult:
        return await self.run_until_done(JobName.ORDER_DETAILS, params)

    # ------------------------------------------------------------------
    # Single targets
    # ------------------------------------------------------------------

    async def _run_single(self, name: JobName, job: SyncJob, target: Any, metric_name: str) -> JobResult:
        started = time.perf_counter()
        run = await self.store.record_run(name, {"target": job.target_id(target)})
        session = self._new_session()
        result = BatchResult()

        try:
            result.add(await run_one(job, target, session, self._options(None)))
        except AuthError as e:
            logger.error(f"{name.value} single sync failed: {e.message}")
            return await self._finish(run, name, result, metric_name, 0, 1, started, error=e)

        job_result = await self._finish(run, name, result, metric_name, 1, 1, started)
        if result.failed:
            # One target, so its failure is the job's failure
            job_result.success = False
            job_result.message = result.errors[0]["error"]
        return job_result

    async def sync_order(self, increment_id: str) -> JobResult:
        """Fetch and store one order with its line items"""
        return await self._run_single(
            JobName.ORDER_DETAILS, self.catalog.order_details_job(), increment_id, "items_written"
        )

    async def sync_address(self, address_id: str) -> JobResult:
        """Refresh the shipping address of every order using address_id"""
        return await self._run_single(
            JobName.ADDRESSES, self.catalog.address_job(), address_id, "orders_updated"
        )

    async def sync_product(self, identifier: str, by: str = "id", store_view: Optional[str] = None) -> JobResult:
        """Fetch one product (by product id or sku) with its stock"""
        target = {"sku": identifier} if by == "sku" else {"product_id": identifier}
        return await self._run_single(
            JobName.PRODUCT_DETAILS, self.catalog.product_details_job(store_view), target, "records_created"
        )
