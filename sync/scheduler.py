import logging
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger
from core.config import settings
from core.database import async_session_maker
from core.exceptions import SyncException
from models.base import JobName
from sync.client import MagentoClient
from sync.runner import SyncRunner
from sync.store import SyncStore

logger = logging.getLogger(__name__)

# Listing jobs first so new orders are picked up by the details pass
SCHEDULED_JOBS = (JobName.ORDERS, JobName.ORDER_DETAILS, JobName.CUSTOMERS)


class SyncScheduler:
    def __init__(self, interval_minutes: int = None):
        self.scheduler = AsyncIOScheduler()
        self.interval_minutes = interval_minutes or settings.SCHEDULER_INTERVAL_MINUTES
        self.store = SyncStore(async_session_maker)

    async def run_sync_jobs(self):
        """Job to run the periodic sync jobs in order"""
        logger.info("Scheduler: Starting sync jobs")
        async with MagentoClient.from_settings() as client:
            runner = SyncRunner(client, self.store, settings)
            for name in SCHEDULED_JOBS:
                try:
                    result = await runner.run_job(name)
                    logger.info(
                        f"Scheduler: {name.value} {result.status} - ok={result.ok} failed={result.failed}"
                    )
                except SyncException as e:
                    logger.error(f"Scheduler: {name.value} failed - {e}")

    def start(self):
        """Start the scheduler"""
        self.scheduler.add_job(
            self.run_sync_jobs,
            trigger=IntervalTrigger(minutes=self.interval_minutes),
            id="magento_sync",
            replace_existing=True,
            max_instances=1,
            coalesce=True
        )
        self.scheduler.start()
        logger.info(f"Sync Scheduler started (every {self.interval_minutes} min)")

    def stop(self):
        if self.scheduler.running:
            self.scheduler.shutdown()
        logger.info("Sync Scheduler stopped")
