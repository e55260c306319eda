"""
Health check endpoint with database and sync job status
"""

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, func, text
from sqlalchemy.exc import SQLAlchemyError
from api.dependencies import get_db
from core.config import settings
from schemas.api import HealthCheckResponse, JobStatusInfo
from models.base import SyncStatus
from models.sync_run import SyncRun
import logging

logger = logging.getLogger(__name__)
router = APIRouter(tags=["Health"])


@router.get("/health", response_model=HealthCheckResponse)
async def health_check(db: AsyncSession = Depends(get_db)):
    """
    Health check endpoint.

    Returns:
    - Database connectivity status
    - Whether the remote endpoint and credentials are configured
    - Last run of every job that has run
    """

    # Check database connectivity
    db_connected = False

    try:
        await db.execute(text("SELECT 1"))
        db_connected = True
    except SQLAlchemyError as e:
        logger.error(f"Database connection failed: {str(e)}")

    jobs = []
    failed_jobs = 0

    if db_connected:
        try:
            latest = (
                select(SyncRun.job, func.max(SyncRun.started_at).label("started_at"))
                .group_by(SyncRun.job)
                .subquery()
            )
            result = await db.execute(
                select(SyncRun).join(
                    latest,
                    (SyncRun.job == latest.c.job) & (SyncRun.started_at == latest.c.started_at)
                )
            )
            for run in result.scalars().all():
                if run.status == SyncStatus.FAILED:
                    failed_jobs += 1
                jobs.append(JobStatusInfo.model_validate(run))
        except SQLAlchemyError as e:
            logger.error(f"Failed to fetch sync runs: {str(e)}")

    return HealthCheckResponse(
        database_connected=db_connected,
        remote_configured=bool(
            settings.MAGENTO_API_URL and settings.MAGENTO_API_USER and settings.MAGENTO_API_KEY
        ),
        jobs=jobs,
        total_jobs=len(jobs),
        failed_jobs=failed_jobs
    )
