"""
Sync statistics and metrics endpoint
"""
from datetime import datetime
from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, func, case
from api.dependencies import get_db, verify_internal_token
from schemas.api import StatsResponse, JobStatistics, SyncRunSummary
from models.base import SyncStatus
from models.customer import Customer
from models.order import Order, OrderItem
from models.product import Product
from models.sync_run import SyncRun
import logging

logger = logging.getLogger(__name__)
router = APIRouter(tags=["Statistics"], dependencies=[Depends(verify_internal_token)])


@router.get("/stats", response_model=StatsResponse)
async def get_stats(
    request: Request,
    limit: int = Query(10, ge=1, le=100, description="Number of recent runs to return"),
    db: AsyncSession = Depends(get_db)
):
    """
    Get sync statistics and metrics.

    Returns:
    - Row counts of the mirrored tables
    - Per-job run statistics
    - Recent sync run history
    """
    request_id = getattr(request.state, "request_id", None)

    logger.info(f"[{request_id}] GET /stats")

    # ========== Table counts ==========

    table_counts = {}
    for name, model in (
        ("orders", Order),
        ("order_items", OrderItem),
        ("customers", Customer),
        ("products", Product),
        ("sync_runs", SyncRun),
    ):
        result = await db.execute(select(func.count()).select_from(model))
        table_counts[name] = result.scalar() or 0

    missing_result = await db.execute(
        select(func.count()).select_from(Order).where(Order.details_fetched.is_(False))
    )
    orders_missing_details = missing_result.scalar() or 0

    # ========== Per-Job Statistics ==========

    per_job = await db.execute(
        select(
            SyncRun.job,
            func.count().label("total_runs"),
            func.sum(case((SyncRun.status == SyncStatus.SUCCESS, 1), else_=0)).label("successful"),
            func.sum(case((SyncRun.status == SyncStatus.FAILED, 1), else_=0)).label("failed"),
            func.sum(SyncRun.records_ok).label("records_ok"),
            func.sum(SyncRun.records_failed).label("records_failed"),
            func.avg(SyncRun.duration_seconds).label("avg_duration"),
            func.max(SyncRun.started_at).label("last_run_at"),
        ).group_by(SyncRun.job)
    )

    job_statistics = []
    for row in per_job.all():
        total = row.total_runs or 0
        successful = row.successful or 0
        job_statistics.append(JobStatistics(
            job=row.job,
            total_runs=total,
            successful_runs=successful,
            failed_runs=row.failed or 0,
            success_rate=round(successful / total * 100, 1) if total else 0.0,  # percentage
            records_ok=row.records_ok or 0,
            records_failed=row.records_failed or 0,
            avg_duration_seconds=round(row.avg_duration, 2) if row.avg_duration else None,
            last_run_at=row.last_run_at,
        ))

    # ========== Recent Sync Runs ==========

    recent_runs_result = await db.execute(
        select(SyncRun)
        .order_by(SyncRun.started_at.desc())
        .limit(limit)
    )
    recent_runs = [SyncRunSummary.model_validate(run) for run in recent_runs_result.scalars().all()]

    logger.info(
        f"[{request_id}] Stats: {table_counts['orders']} orders, "
        f"{orders_missing_details} missing details, {table_counts['sync_runs']} runs"
    )

    return StatsResponse(
        timestamp=datetime.utcnow(),
        table_counts=table_counts,
        orders_missing_details=orders_missing_details,
        job_statistics=job_statistics,
        recent_runs=recent_runs,
        request_id=request_id
    )
