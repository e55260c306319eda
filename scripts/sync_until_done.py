"""
Fetch order details pass after pass until no order is left without them.

    python scripts/sync_until_done.py --limit 200 --concurrency 5
    python scripts/sync_until_done.py --all --max-passes 1
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
from schemas.api import UntilDoneParams
from sync.client import MagentoClient
from sync.runner import SyncRunner
from sync.store import SyncStore

logger = logging.getLogger(__name__)


def parse_args(argv=None) -> UntilDoneParams:
    parser = argparse.ArgumentParser(description="Sync order details until none are missing")
    parser.add_argument("--all", action="store_true", help="Reprocess every order, not only missing ones")
    parser.add_argument("--limit", type=int, default=settings.SYNC_BATCH_LIMIT, help="Orders per pass")
    parser.add_argument("--concurrency", type=int, default=settings.SYNC_CONCURRENCY)
    parser.add_argument("--retries", type=int, default=settings.SYNC_RETRIES)
    parser.add_argument("--pause", type=int, default=int(settings.SYNC_PAUSE_SECONDS * 1000),
                        help="Pause between windows (ms)")
    parser.add_argument("--sleep", type=int, default=int(settings.SYNC_PASS_SLEEP_SECONDS * 1000),
                        help="Pause between passes (ms)")
    parser.add_argument("--max-passes", type=int, default=settings.SYNC_MAX_PASSES)
    args = parser.parse_args(argv)

    return UntilDoneParams(
        only_missing=not args.all,
        limit=args.limit,
        concurrency=args.concurrency,
        retries=args.retries,
        pause_ms=args.pause,
        sleep_ms=args.sleep,
        max_passes=args.max_passes,
    )


async def main(params: UntilDoneParams) -> int:
    logger.info(
        f"[until-done] starting: only_missing={params.only_missing} "
        f"limit={params.limit} concurrency={params.concurrency}"
    )
    try:
        async with MagentoClient.from_settings() as client:
            runner = SyncRunner(client, SyncStore(async_session_maker), settings)
            result = await runner.run_order_details_until_done(params)
    except SyncException as e:
        logger.error(f"[until-done] aborted: {e}")
        return 1
    finally:
        await engine.dispose()

    logger.info(
        f"[until-done] done: passes={result.passes} ok={result.ok} "
        f"failed={result.failed} items={result.metric}"
    )
    for error in result.errors:
        logger.info(f"[until-done] sample error: {error}")
    return 0 if result.success else 1


if __name__ == "__main__":
    setup_logging()
    sys.exit(asyncio.run(main(parse_args())))
