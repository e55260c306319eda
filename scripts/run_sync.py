"""
Script to run one sync job pass

    python scripts/run_sync.py orders
    python scripts/run_sync.py addresses --all --concurrency 3
"""

import argparse
import asyncio
import logging
import os
import sys

# Add current directory to path to allow imports from core, models, etc.
sys.path.append(os.getcwd())

from core.config import settings
from core.database import async_session_maker, engine
from core.exceptions import SyncException
from core.logging import setup_logging
from models.base import JobName
from schemas.api import SyncParams
from sync.client import MagentoClient
from sync.runner import SyncRunner
from sync.store import SyncStore

logger = logging.getLogger(__name__)


def parse_args(argv=None):
    parser = argparse.ArgumentParser(description="Run one sync job pass")
    parser.add_argument("job", choices=[job.value for job in JobName])
    parser.add_argument("--all", action="store_true", help="Reprocess every target, not only missing ones")
    parser.add_argument("--limit", type=int, default=None)
    parser.add_argument("--concurrency", type=int, default=None)
    parser.add_argument("--retries", type=int, default=None)
    parser.add_argument("--pause", type=int, default=None, help="Pause between windows (ms)")
    parser.add_argument("--store-view", default=None)
    args = parser.parse_args(argv)

    params = SyncParams(
        only_missing=not args.all,
        limit=args.limit,
        concurrency=args.concurrency,
        retries=args.retries,
        pause_ms=args.pause,
        store_view=args.store_view,
    )
    return JobName(args.job), params


async def run_sync(job: JobName, params: SyncParams) -> int:
    """Run a job and log its outcome"""
    try:
        async with MagentoClient.from_settings() as client:
            runner = SyncRunner(client, SyncStore(async_session_maker), settings)
            result = await runner.run_job(job, params)
    except SyncException as e:
        logger.error(f"Sync pipeline error: {e}")
        return 1
    finally:
        await engine.dispose()

    logger.info(
        f"{job.value} completed: {result.status} - targets={result.targets} ok={result.ok} "
        f"failed={result.failed} skipped={result.skipped} {result.metric_name}={result.metric}"
    )
    for error in result.errors:
        logger.warning(f"Sample error: {error}")
    return 0 if result.success else 1


if __name__ == "__main__":
    setup_logging()
    sys.exit(asyncio.run(run_sync(*parse_args())))
