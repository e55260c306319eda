"""
Sync trigger endpoints
"""

from datetime import datetime
from typing import Optional
import logging

from fastapi import APIRouter, Depends, HTTPException, Path, Query, Request, Response, status

from api.dependencies import get_runner, verify_internal_token
from core.exceptions import SyncException
from models.base import JobName
from schemas.api import JobResult, SyncParams, UntilDoneParams
from sync.runner import SyncRunner

logger = logging.getLogger(__name__)
router = APIRouter(
    prefix="/sync",
    tags=["Sync"],
    dependencies=[Depends(verify_internal_token)]
)


def sync_params(
    only_missing: bool = Query(True, description="Only targets not synced yet"),
    limit: Optional[int] = Query(None, ge=1, description="Targets per pass"),
    concurrency: Optional[int] = Query(None, ge=1, le=50, description="Targets per window"),
    retries: Optional[int] = Query(None, ge=0, le=10, description="Retries per target"),
    pause_ms: Optional[int] = Query(None, ge=0, description="Pause between windows (ms)"),
    updated_since: Optional[datetime] = Query(None, description="Listing jobs: rows updated since"),
    updated_before: Optional[datetime] = Query(None, description="Address job: refreshed before"),
    store_view: Optional[str] = Query(None, description="Catalog jobs: store view code"),
) -> SyncParams:
    return SyncParams(
        only_missing=only_missing,
        limit=limit,
        concurrency=concurrency,
        retries=retries,
        pause_ms=pause_ms,
        updated_since=updated_since,
        updated_before=updated_before,
        store_view=store_view,
    )


def _respond(result: JobResult, response: Response, request: Request) -> JobResult:
    request_id = getattr(request.state, "request_id", None)
    logger.info(
        f"[{request_id}] {result.job}: {result.status} ok={result.ok} "
        f"failed={result.failed} skipped={result.skipped}"
    )
    if not result.success:
        # Whole-job failure: no session or no targets could be enumerated
        response.status_code = status.HTTP_502_BAD_GATEWAY
    return result


def _unexpected(e: SyncException) -> HTTPException:
    return HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=e.to_dict())


@router.post("/order_details/until-done", response_model=JobResult)
async def sync_order_details_until_done(
    request: Request,
    response: Response,
    params: SyncParams = Depends(sync_params),
    sleep_ms: Optional[int] = Query(None, ge=0, description="Pause between passes (ms)"),
    max_passes: Optional[int] = Query(None, ge=1, description="Upper bound on passes"),
    runner: SyncRunner = Depends(get_runner)
):
    """Repeat order-details passes until no order is left to fetch"""
    until_done = UntilDoneParams(**params.model_dump(), sleep_ms=sleep_ms, max_passes=max_passes)
    try:
        result = await runner.run_order_details_until_done(until_done)
    except SyncException as e:
        raise _unexpected(e)
    return _respond(result, response, request)


@router.post("/orders/{increment_id}", response_model=JobResult)
async def sync_single_order(
    request: Request,
    response: Response,
    increment_id: str = Path(..., min_length=1, max_length=50),
    runner: SyncRunner = Depends(get_runner)
):
    """Fetch one order (header and items) and store it"""
    return _respond(await runner.sync_order(increment_id), response, request)


@router.post("/addresses/{address_id}", response_model=JobResult)
async def sync_single_address(
    request: Request,
    response: Response,
    address_id: str = Path(..., min_length=1, max_length=50),
    runner: SyncRunner = Depends(get_runner)
):
    """Refresh the shipping address on every order that uses it"""
    return _respond(await runner.sync_address(address_id), response, request)


@router.post("/products/{identifier}", response_model=JobResult)
async def sync_single_product(
    request: Request,
    response: Response,
    identifier: str = Path(..., min_length=1, max_length=255),
    by: str = Query("id", pattern="^(id|sku)$", description="Identifier type"),
    store_view: Optional[str] = Query(None),
    runner: SyncRunner = Depends(get_runner)
):
    """Fetch one product with its stock"""
    return _respond(await runner.sync_product(identifier, by=by, store_view=store_view), response, request)


@router.post("/{job}", response_model=JobResult)
async def run_sync_job(
    request: Request,
    response: Response,
    job: JobName,
    params: SyncParams = Depends(sync_params),
    runner: SyncRunner = Depends(get_runner)
):
    """
    Run one batch pass of a sync job.

    Jobs: orders, order_details, addresses, customers, products, product_details
    """
    try:
        result = await runner.run_job(job, params)
    except SyncException as e:
        raise _unexpected(e)
    return _respond(result, response, request)
