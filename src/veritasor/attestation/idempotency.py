"""
Keyed at-most-once execution.

IdempotencyGuard runs a coroutine once per (scope, key) and replays the
cached result to every later or concurrent caller with the same key until
the entry expires. First access to a key is serialized by a per-key
asyncio.Lock: concurrent callers wait for the first execution and then read
its outcome instead of re-running the side effect.

Failed executions are not cached, so a retry after an error runs again.
"""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, Optional, Tuple, TypeVar

from veritasor.protocol.errors import IdempotencyConflictError

logger = logging.getLogger(__name__)

T = TypeVar("T")

_Key = Tuple[str, str]


@dataclass(frozen=True)
class IdempotencyEntry:
    scope: str
    key: str
    fingerprint: Optional[str]
    result: Any
    expires_at: float

    def is_expired(self, now: float) -> bool:
        return now >= self.expires_at


class IdempotencyGuard:
    def __init__(
        self,
        ttl: float = 86400.0,
        *,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if ttl <= 0:
            raise ValueError("ttl must be positive")
        self._ttl = ttl
        self._clock = clock
        self._entries: Dict[_Key, IdempotencyEntry] = {}
        self._locks: Dict[_Key, asyncio.Lock] = {}

    async def execute(
        self,
        scope: str,
        key: str,
        work: Callable[[], Awaitable[T]],
        *,
        fingerprint: Optional[str] = None,
    ) -> T:
        """
        Run ``work`` at most once for ``(scope, key)``.

        Raises:
            IdempotencyConflictError: The key was first used with a different
                payload fingerprint
        """
        slot = (scope, key)

        entry = self._fresh(slot)
        if entry is not None:
            return self._replay(entry, fingerprint)

        lock = self._locks.get(slot)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[slot] = lock

        async with lock:
            entry = self._fresh(slot)
            if entry is not None:
                return self._replay(entry, fingerprint)

            result = await work()
            self._entries[slot] = IdempotencyEntry(
                scope=scope,
                key=key,
                fingerprint=fingerprint,
                result=result,
                expires_at=self._clock() + self._ttl,
            )
            return result

    def get(self, scope: str, key: str) -> Optional[IdempotencyEntry]:
        return self._fresh((scope, key))

    def purge_expired(self) -> int:
        """Drop expired entries and idle locks. Returns the number of entries removed."""
        now = self._clock()
        expired = [slot for slot, e in self._entries.items() if e.is_expired(now)]
        for slot in expired:
            del self._entries[slot]
        for slot in [s for s, lock in self._locks.items() if s not in self._entries and not lock.locked()]:
            del self._locks[slot]
        return len(expired)

    def _fresh(self, slot: _Key) -> Optional[IdempotencyEntry]:
        entry = self._entries.get(slot)
        if entry is None:
            return None
        if entry.is_expired(self._clock()):
            del self._entries[slot]
            return None
        return entry

    @staticmethod
    def _replay(entry: IdempotencyEntry, fingerprint: Optional[str]) -> Any:
        if entry.fingerprint is not None and fingerprint is not None and entry.fingerprint != fingerprint:
            raise IdempotencyConflictError(
                f"Idempotency key '{entry.key}' was already used with a different payload"
            )
        logger.debug("Replaying cached result for %s:%s", entry.scope, entry.key)
        return entry.result

    def __len__(self) -> int:
        return len(self._entries)
