"""
Bounded batch driver.

Walks a list of sync targets in windows of ``concurrency`` targets. Each
target runs one fetch -> normalize -> persist pipeline; every pipeline of a
window runs concurrently and the window settles completely before the next
one starts. Per-target errors become failed outcomes, only AuthError (no
session, no progress possible) aborts the pass.

    result = await run_batch(job, ["100000001", "100000002"], session, options)
    result.ok, result.failed, result.error_sample(5)
"""

import asyncio
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Dict, List, Optional, Sequence
import logging
import time

from core.exceptions import AuthError, RetryableError, SessionExpiredError, SyncException
from sync.session import SessionProvider

logger = logging.getLogger(__name__)


def default_target_id(target: Any) -> Optional[str]:
    """Targets are plain external ids unless a job says otherwise"""
    if target is None:
        return None
    text = str(target).strip()
    return text or None


@dataclass
class SyncJob:
    """
    One entity type's pipeline.

    fetch(token, target) returns the raw record, normalize(raw) the typed
    record, persist(target_id, record) writes it and may return a count
    (e.g. line items written) that is summed into BatchResult.metric.
    prepare_window(session, targets) runs once per window before its
    pipelines start.
    """
    name: str
    fetch: Callable[[str, Any], Awaitable[Any]]
    normalize: Callable[[Any], Any]
    persist: Callable[[str, Any], Awaitable[Optional[int]]]
    target_id: Callable[[Any], Optional[str]] = default_target_id
    prepare_window: Optional[Callable[[SessionProvider, List[Any]], Awaitable[None]]] = None


@dataclass
class DriverOptions:
    concurrency: int = 5
    retries: int = 2
    backoff_seconds: float = 0.3
    pause_seconds: float = 0.3

    def __post_init__(self):
        self.concurrency = max(1, int(self.concurrency))
        self.retries = max(0, int(self.retries))
        self.backoff_seconds = max(0.0, float(self.backoff_seconds))
        self.pause_seconds = max(0.0, float(self.pause_seconds))

    @classmethod
    def from_settings(cls, settings, **overrides) -> "DriverOptions":
        values = {
            "concurrency": settings.SYNC_CONCURRENCY,
            "retries": settings.SYNC_RETRIES,
            "backoff_seconds": settings.SYNC_BACKOFF_SECONDS,
            "pause_seconds": settings.SYNC_PAUSE_SECONDS,
        }
        values.update({k: v for k, v in overrides.items() if v is not None})
        return cls(**values)


@dataclass
class SyncOutcome:
    """Result of one target's pipeline"""
    target_id: str
    ok: bool
    attempts: int = 0
    record: Any = None
    metric: int = 0
    error: Optional[str] = None
    error_type: Optional[str] = None


@dataclass
class BatchResult:
    processed: int = 0
    ok: int = 0
    failed: int = 0
    skipped: int = 0
    metric: int = 0
    errors: List[Dict[str, Any]] = field(default_factory=list)
    duration_seconds: float = 0.0

    def add(self, outcome: SyncOutcome):
        self.processed += 1
        if outcome.ok:
            self.ok += 1
            self.metric += outcome.metric
        else:
            self.failed += 1
            self.errors.append({
                "target": outcome.target_id,
                "error_type": outcome.error_type,
                "error": outcome.error,
                "attempts": outcome.attempts,
            })

    def merge(self, other: "BatchResult"):
        self.processed += other.processed
        self.ok += other.ok
        self.failed += other.failed
        self.skipped += other.skipped
        self.metric += other.metric
        self.errors.extend(other.errors)
        self.duration_seconds += other.duration_seconds

    def error_sample(self, n: int = 5) -> List[Dict[str, Any]]:
        """At most n per-target errors, for trigger responses"""
        return self.errors[:max(0, n)]


@dataclass
class ExhaustionResult:
    passes: int = 0
    enumerations: int = 0
    exhausted: bool = False
    totals: BatchResult = field(default_factory=BatchResult)


def _describe(error: Exception) -> str:
    if isinstance(error, SyncException):
        return error.message
    return f"{type(error).__name__}: {error}"


async def run_one(
    job: SyncJob,
    target: Any,
    session: SessionProvider,
    options: DriverOptions,
    target_id: Optional[str] = None
) -> SyncOutcome:
    """
    Run the pipeline for a single target with retry and backoff.

    Retryable errors (transport failures, remote faults) are retried up to
    options.retries times, sleeping backoff_seconds * attempt**2 before each
    retry. An expired session is refreshed before the retry. Anything else
    fails the target immediately.

    Raises:
        AuthError: the session could not be (re)acquired
    """
    target_id = target_id or job.target_id(target)
    max_attempts = options.retries + 1
    attempt = 0

    while True:
        attempt += 1
        token = None
        try:
            token = await session.token()
            raw = await job.fetch(token, target)
            record = job.normalize(raw)
            metric = await job.persist(target_id, record)
            return SyncOutcome(
                target_id=target_id,
                ok=True,
                attempts=attempt,
                record=record,
                metric=int(metric or 0),
            )

        except AuthError:
            raise

        except Exception as e:
            retryable = isinstance(e, RetryableError)
            if not retryable or attempt >= max_attempts:
                logger.error(
                    f"[{job.name}] {target_id} failed after {attempt} attempt(s): {_describe(e)}"
                )
                return SyncOutcome(
                    target_id=target_id,
                    ok=False,
                    attempts=attempt,
                    error=_describe(e),
                    error_type=type(e).__name__,
                )

            if isinstance(e, SessionExpiredError):
                await session.refresh(token)

            delay = options.backoff_seconds * attempt ** 2
            logger.warning(
                f"[{job.name}] {target_id} attempt {attempt}/{max_attempts} failed "
                f"({_describe(e)}), retrying in {delay:.2f}s"
            )
            await asyncio.sleep(delay)


async def run_batch(
    job: SyncJob,
    targets: Sequence[Any],
    session: SessionProvider,
    options: DriverOptions
) -> BatchResult:
    """
    One batch pass over targets.

    Targets without a resolvable id, and repeated ids, are skipped before
    dispatch and not counted as failures. An empty target list returns at
    once without touching the session.
    """
    started = time.perf_counter()
    result = BatchResult()

    queue = []
    seen = set()
    for target in targets:
        target_id = job.target_id(target)
        if not target_id or target_id in seen:
            result.skipped += 1
            continue
        seen.add(target_id)
        queue.append((target_id, target))

    if not queue:
        logger.info(f"[{job.name}] nothing to process ({result.skipped} skipped)")
        return result

    windows = [queue[i:i + options.concurrency] for i in range(0, len(queue), options.concurrency)]
    logger.info(
        f"[{job.name}] {len(queue)} targets in {len(windows)} window(s) "
        f"of up to {options.concurrency}"
    )

    for index, window in enumerate(windows):
        if job.prepare_window is not None:
            try:
                await job.prepare_window(session, [target for _, target in window])
            except AuthError:
                raise
            except SyncException as e:
                logger.warning(f"[{job.name}] window {index + 1} preparation failed: {e.message}")

        settled = await asyncio.gather(
            *(run_one(job, target, session, options, target_id) for target_id, target in window),
            return_exceptions=True
        )

        for (target_id, _), outcome in zip(window, settled):
            if isinstance(outcome, AuthError):
                raise outcome
            if isinstance(outcome, BaseException):
                # run_one converts every per-target error; this is a cancellation or similar
                outcome = SyncOutcome(
                    target_id=target_id,
                    ok=False,
                    error=_describe(outcome),
                    error_type=type(outcome).__name__,
                )
            result.add(outcome)

        logger.info(
            f"[{job.name}] window {index + 1}/{len(windows)}: "
            f"ok={result.ok} failed={result.failed}"
        )

        if index < len(windows) - 1 and options.pause_seconds:
            await asyncio.sleep(options.pause_seconds)

    result.duration_seconds = time.perf_counter() - started
    logger.info(
        f"[{job.name}] pass done: processed={result.processed} ok={result.ok} "
        f"failed={result.failed} skipped={result.skipped} metric={result.metric}"
    )
    return result


async def run_until_exhausted(
    run_pass: Callable[[], Awaitable[BatchResult]],
    max_passes: int = 10000,
    sleep_seconds: float = 1.5
) -> ExhaustionResult:
    """
    Repeat batch passes while the enumeration keeps returning targets.

    Stops on the first pass that processes nothing, or after max_passes
    passes that did.
    """
    outcome = ExhaustionResult()

    while outcome.passes < max_passes:
        result = await run_pass()
        outcome.enumerations += 1

        if result.processed == 0:
            outcome.totals.skipped += result.skipped
            outcome.exhausted = True
            logger.info(f"Exhausted after {outcome.passes} pass(es)")
            break

        outcome.passes += 1
        outcome.totals.merge(result)
        logger.info(
            f"Pass {outcome.passes}: ok={result.ok} failed={result.failed} "
            f"metric={result.metric} (totals ok={outcome.totals.ok} failed={outcome.totals.failed})"
        )

        if outcome.passes < max_passes and sleep_seconds:
            await asyncio.sleep(sleep_seconds)

    if not outcome.exhausted:
        logger.warning(f"Stopped at max passes ({max_passes}) before targets ran out")
    return outcome
