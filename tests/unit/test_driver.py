"""
Unit tests for the bounded batch driver
"""

import asyncio
import pytest
from unittest.mock import AsyncMock, patch
from core.exceptions import (
    AuthError,
    NormalizationError,
    RemoteFault,
    RemoteHttpError,
    SessionExpiredError,
)
from sync.driver import (
    BatchResult,
    DriverOptions,
    SyncJob,
    run_batch,
    run_one,
    run_until_exhausted,
)
from sync.session import SessionProvider

FAST = DriverOptions(concurrency=5, retries=2, backoff_seconds=0, pause_seconds=0)


class FakeClient:
    def __init__(self):
        self.logins = 0

    async def login(self):
        self.logins += 1
        return f"session-token-{self.logins:04d}"


def make_job(fetch, persisted=None, name="test"):
    persisted = persisted if persisted is not None else {}

    async def persist(target_id, record):
        persisted[target_id] = record
        return 1

    return SyncJob(name=name, fetch=fetch, normalize=lambda raw: raw, persist=persist)


@pytest.fixture
def session():
    return SessionProvider(FakeClient())


class TestDriverOptions:

    def test_values_are_clamped(self):
        options = DriverOptions(concurrency=0, retries=-1, backoff_seconds=-2, pause_seconds=-1)
        assert options.concurrency == 1
        assert options.retries == 0
        assert options.backoff_seconds == 0
        assert options.pause_seconds == 0

    def test_from_settings_ignores_missing_overrides(self):
        class Settings:
            SYNC_CONCURRENCY = 5
            SYNC_RETRIES = 2
            SYNC_BACKOFF_SECONDS = 0.3
            SYNC_PAUSE_SECONDS = 0.3

        options = DriverOptions.from_settings(Settings, concurrency=8, retries=None)
        assert options.concurrency == 8
        assert options.retries == 2


class TestRunOne:

    @pytest.mark.asyncio
    async def test_transient_failures_then_success(self, session):
        calls = {"n": 0}

        async def fetch(token, target):
            calls["n"] += 1
            if calls["n"] <= 2:
                raise RemoteHttpError("timeout")
            return {"id": target}

        outcome = await run_one(make_job(fetch), "A", session, FAST)

        assert outcome.ok
        assert outcome.attempts == 3
        assert outcome.metric == 1

    @pytest.mark.asyncio
    async def test_always_failing_uses_all_attempts(self, session):
        fetch = AsyncMock(side_effect=RemoteFault("Internal Error", fault_code="1"))

        outcome = await run_one(make_job(fetch), "A", session, FAST)

        assert not outcome.ok
        assert outcome.attempts == 3
        assert fetch.await_count == 3
        assert outcome.error_type == "RemoteFault"

    @pytest.mark.asyncio
    async def test_non_retryable_fails_immediately(self, session):
        async def fetch(token, target):
            return {"id": target}

        def normalize(raw):
            raise NormalizationError("bad record")

        job = make_job(fetch)
        job.normalize = normalize

        outcome = await run_one(job, "A", session, FAST)

        assert not outcome.ok
        assert outcome.attempts == 1
        assert outcome.error == "bad record"

    @pytest.mark.asyncio
    async def test_unexpected_error_is_not_retried(self, session):
        fetch = AsyncMock(side_effect=ValueError("boom"))

        outcome = await run_one(make_job(fetch), "A", session, FAST)

        assert not outcome.ok
        assert outcome.attempts == 1
        assert "boom" in outcome.error

    @pytest.mark.asyncio
    async def test_expired_session_is_refreshed(self, session):
        seen = []

        async def fetch(token, target):
            seen.append(token)
            if len(seen) == 1:
                raise SessionExpiredError("Session expired. Try to relogin.", fault_code="5")
            return {"id": target}

        outcome = await run_one(make_job(fetch), "A", session, FAST)

        assert outcome.ok
        assert seen[0] != seen[1]
        assert session.logins == 2

    @pytest.mark.asyncio
    async def test_auth_error_propagates(self):
        client = AsyncMock()
        client.login = AsyncMock(side_effect=AuthError("Login failed"))
        fetch = AsyncMock()

        with pytest.raises(AuthError):
            await run_one(make_job(fetch), "A", SessionProvider(client), FAST)
        fetch.assert_not_awaited()


class TestRunBatch:

    @pytest.mark.asyncio
    async def test_failure_is_isolated(self, session):
        persisted = {}

        async def fetch(token, target):
            if target == "3":
                raise RemoteFault("Requested order not exists.", fault_code="100")
            return {"id": target}

        result = await run_batch(make_job(fetch, persisted), [str(i) for i in range(1, 13)], session, FAST)

        assert result.processed == 12
        assert result.ok == 11
        assert result.failed == 1
        assert result.metric == 11
        assert "3" not in persisted
        assert result.errors[0]["target"] == "3"
        assert result.errors[0]["attempts"] == 3

    @pytest.mark.asyncio
    async def test_empty_targets_do_not_touch_session(self):
        client = FakeClient()
        session = SessionProvider(client)
        fetch = AsyncMock()

        result = await run_batch(make_job(fetch), [], session, FAST)

        assert result.processed == 0
        assert client.logins == 0
        fetch.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_blank_and_repeated_ids_are_skipped(self, session):
        fetch = AsyncMock(return_value={})

        result = await run_batch(make_job(fetch), ["1", "", None, "1", " ", "2"], session, FAST)

        assert result.processed == 2
        assert result.skipped == 4
        assert result.failed == 0
        assert fetch.await_count == 2

    @pytest.mark.asyncio
    async def test_windows_never_exceed_concurrency(self, session):
        active = {"now": 0, "peak": 0}

        async def fetch(token, target):
            active["now"] += 1
            active["peak"] = max(active["peak"], active["now"])
            await asyncio.sleep(0.01)
            active["now"] -= 1
            return {}

        options = DriverOptions(concurrency=3, retries=0, backoff_seconds=0, pause_seconds=0)
        result = await run_batch(make_job(fetch), [str(i) for i in range(10)], session, options)

        assert result.ok == 10
        assert active["peak"] == 3

    @pytest.mark.asyncio
    async def test_prepare_window_runs_per_window(self, session):
        windows = []

        async def prepare(session, targets):
            windows.append(list(targets))

        job = make_job(AsyncMock(return_value={}))
        job.prepare_window = prepare
        options = DriverOptions(concurrency=2, retries=0, backoff_seconds=0, pause_seconds=0)

        await run_batch(job, ["1", "2", "3"], session, options)

        assert windows == [["1", "2"], ["3"]]

    @pytest.mark.asyncio
    async def test_auth_error_aborts_pass(self):
        client = AsyncMock()
        client.login = AsyncMock(side_effect=AuthError("Login failed"))

        with pytest.raises(AuthError):
            await run_batch(make_job(AsyncMock()), ["1", "2"], SessionProvider(client), FAST)


class TestRunUntilExhausted:

    @pytest.mark.asyncio
    async def test_stops_when_enumeration_is_empty(self, session):
        """250 pending targets, 200 per pass: two passes, three enumerations"""
        pending = [str(i) for i in range(250)]

        async def fetch(token, target):
            pending.remove(target)
            return {}

        job = make_job(fetch)

        async def run_pass():
            return await run_batch(job, list(pending[:200]), session, FAST)

        outcome = await run_until_exhausted(run_pass, max_passes=100, sleep_seconds=0)

        assert outcome.exhausted
        assert outcome.passes == 2
        assert outcome.enumerations == 3
        assert outcome.totals.ok == 250
        assert pending == []

    @pytest.mark.asyncio
    async def test_max_passes_bounds_the_loop(self):
        async def run_pass():
            result = BatchResult()
            result.processed = result.failed = 1
            return result

        outcome = await run_until_exhausted(run_pass, max_passes=4, sleep_seconds=0)

        assert not outcome.exhausted
        assert outcome.passes == 4
        assert outcome.totals.failed == 4

    def test_error_sample_is_bounded(self):
        result = BatchResult(errors=[{"target": str(i)} for i in range(10)])
        assert len(result.error_sample(5)) == 5
        assert result.error_sample(0) == []


class TestDelays:

    @pytest.mark.asyncio
    async def test_retry_backoff_grows_with_attempt_squared(self, session):
        fetch = AsyncMock(side_effect=RemoteHttpError("timeout"))
        options = DriverOptions(concurrency=1, retries=2, backoff_seconds=0.3, pause_seconds=0)

        with patch("sync.driver.asyncio.sleep", new_callable=AsyncMock) as sleep:
            outcome = await run_one(make_job(fetch), "A", session, options)

        assert outcome.attempts == 3
        delays = [c.args[0] for c in sleep.await_args_list]
        assert delays == [pytest.approx(0.3), pytest.approx(1.2)]

    @pytest.mark.asyncio
    async def test_pause_between_windows_but_not_after_last(self, session):
        fetch = AsyncMock(return_value={"ok": True})
        options = DriverOptions(concurrency=2, retries=0, backoff_seconds=0, pause_seconds=0.5)

        with patch("sync.driver.asyncio.sleep", new_callable=AsyncMock) as sleep:
            result = await run_batch(make_job(fetch), ["A", "B", "C", "D", "E"], session, options)

        assert result.ok == 5
        assert [c.args[0] for c in sleep.await_args_list] == [0.5, 0.5]

    @pytest.mark.asyncio
    async def test_single_window_never_pauses(self, session):
        fetch = AsyncMock(return_value={"ok": True})
        options = DriverOptions(concurrency=5, retries=0, backoff_seconds=0, pause_seconds=0.5)

        with patch("sync.driver.asyncio.sleep", new_callable=AsyncMock) as sleep:
            await run_batch(make_job(fetch), ["A", "B"], session, options)

        sleep.assert_not_awaited()
