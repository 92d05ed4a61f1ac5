"""
Tests for the keyed at-most-once execution guard.
"""

import asyncio

import pytest

from veritasor.attestation.idempotency import IdempotencyGuard
from veritasor.protocol.errors import IdempotencyConflictError


class ManualClock:
    def __init__(self):
        self.value = 1000.0

    def __call__(self):
        return self.value


class Counter:
    def __init__(self, delay: float = 0.0):
        self.calls = 0
        self.delay = delay

    async def __call__(self):
        self.calls += 1
        if self.delay:
            await asyncio.sleep(self.delay)
        return f"result-{self.calls}"


class TestIdempotencyGuard:
    def test_first_call_executes(self):
        guard = IdempotencyGuard()
        work = Counter()

        result = asyncio.run(guard.execute("attestations", "k1", work))

        assert result == "result-1"
        assert work.calls == 1
        assert len(guard) == 1

    def test_repeat_call_replays_cached_result(self):
        guard = IdempotencyGuard()
        work = Counter()

        async def scenario():
            first = await guard.execute("attestations", "k1", work)
            second = await guard.execute("attestations", "k1", work)
            return first, second

        first, second = asyncio.run(scenario())
        assert first == second == "result-1"
        assert work.calls == 1

    def test_concurrent_callers_share_one_execution(self):
        guard = IdempotencyGuard()
        work = Counter(delay=0.02)

        async def scenario():
            return await asyncio.gather(*[guard.execute("attestations", "k1", work) for _ in range(10)])

        results = asyncio.run(scenario())
        assert set(results) == {"result-1"}
        assert work.calls == 1

    def test_keys_and_scopes_are_independent(self):
        guard = IdempotencyGuard()
        work = Counter()

        async def scenario():
            return [
                await guard.execute("attestations", "k1", work),
                await guard.execute("attestations", "k2", work),
                await guard.execute("other", "k1", work),
            ]

        assert asyncio.run(scenario()) == ["result-1", "result-2", "result-3"]

    def test_failures_are_not_cached(self):
        guard = IdempotencyGuard()
        attempts = []

        async def flaky():
            attempts.append(1)
            if len(attempts) == 1:
                raise RuntimeError("boom")
            return "ok"

        async def scenario():
            with pytest.raises(RuntimeError):
                await guard.execute("attestations", "k1", flaky)
            return await guard.execute("attestations", "k1", flaky)

        assert asyncio.run(scenario()) == "ok"
        assert len(attempts) == 2

    def test_fingerprint_mismatch_raises_conflict(self):
        guard = IdempotencyGuard()
        work = Counter()

        async def scenario():
            await guard.execute("attestations", "k1", work, fingerprint="aaa")
            await guard.execute("attestations", "k1", work, fingerprint="bbb")

        with pytest.raises(IdempotencyConflictError):
            asyncio.run(scenario())
        assert work.calls == 1

    def test_matching_fingerprint_replays(self):
        guard = IdempotencyGuard()
        work = Counter()

        async def scenario():
            await guard.execute("attestations", "k1", work, fingerprint="aaa")
            return await guard.execute("attestations", "k1", work, fingerprint="aaa")

        assert asyncio.run(scenario()) == "result-1"

    def test_entries_expire_after_ttl(self):
        clock = ManualClock()
        guard = IdempotencyGuard(ttl=60, clock=clock)
        work = Counter()

        async def scenario():
            first = await guard.execute("attestations", "k1", work)
            clock.value += 61
            second = await guard.execute("attestations", "k1", work)
            return first, second

        assert asyncio.run(scenario()) == ("result-1", "result-2")

    def test_get_returns_live_entry(self):
        clock = ManualClock()
        guard = IdempotencyGuard(ttl=60, clock=clock)
        asyncio.run(guard.execute("attestations", "k1", Counter(), fingerprint="f"))

        entry = guard.get("attestations", "k1")
        assert entry is not None
        assert entry.result == "result-1"
        assert entry.fingerprint == "f"
        assert entry.expires_at == 1060.0

        clock.value = 1060.0
        assert guard.get("attestations", "k1") is None

    def test_purge_expired(self):
        clock = ManualClock()
        guard = IdempotencyGuard(ttl=10, clock=clock)
        work = Counter()

        async def scenario():
            await guard.execute("attestations", "k1", work)
            clock.value += 5
            await guard.execute("attestations", "k2", work)

        asyncio.run(scenario())
        clock.value += 6

        assert guard.purge_expired() == 1
        assert guard.get("attestations", "k1") is None
        assert guard.get("attestations", "k2") is not None

    def test_non_positive_ttl_rejected(self):
        with pytest.raises(ValueError):
            IdempotencyGuard(ttl=0)
