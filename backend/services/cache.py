"""Simple in-memory TTL cache with a background sweep.

Freshness is checked lazily on every read and expired entries are also
removed by a periodic sweep task. The cache is only touched from the event
loop thread, so no lock is needed as long as no mutation spans an await.

Note: each uvicorn worker has its own cache instance.
"""

import asyncio
import contextlib
import logging
import time
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Callable

logger = logging.getLogger(__name__)

DEFAULT_DURATION_SECONDS = 5 * 60
DEFAULT_SWEEP_INTERVAL_SECONDS = 60


@dataclass
class CacheEntry:
    key: str
    value: Any
    stored_at: float


class TTLCache:
    def __init__(
        self,
        duration_seconds: float = DEFAULT_DURATION_SECONDS,
        sweep_interval_seconds: float = DEFAULT_SWEEP_INTERVAL_SECONDS,
        clock: Callable[[], float] = time.time,
    ):
        self.duration_seconds = duration_seconds
        self.sweep_interval_seconds = sweep_interval_seconds
        self._clock = clock
        self._store: dict[str, CacheEntry] = {}
        self._sweep_task: asyncio.Task | None = None

    def __len__(self) -> int:
        return len(self._store)

    def _is_expired(self, entry: CacheEntry, now: float | None = None) -> bool:
        if now is None:
            now = self._clock()
        return now - entry.stored_at > self.duration_seconds

    def _fresh_entry(self, key: str) -> CacheEntry | None:
        entry = self._store.get(key)
        if entry is None:
            return None
        if self._is_expired(entry):
            del self._store[key]
            logger.debug("Cache expired and removed for key: %s", key)
            return None
        return entry

    def get(self, key: str) -> Any | None:
        entry = self._fresh_entry(key)
        return entry.value if entry else None

    def has(self, key: str) -> bool:
        return self._fresh_entry(key) is not None

    def set(self, key: str, value: Any) -> None:
        self._store[key] = CacheEntry(key=key, value=value, stored_at=self._clock())
        logger.debug("Cache set for key: %s", key)

    def delete(self, key: str) -> bool:
        removed = self._store.pop(key, None) is not None
        if removed:
            logger.debug("Cache deleted for key: %s", key)
        return removed

    def clear(self) -> None:
        size = len(self._store)
        self._store.clear()
        logger.info("Cache cleared, removed %d items", size)

    def expires_at(self, key: str) -> float | None:
        """Expiry time (clock units) of a live entry, or None."""
        entry = self._fresh_entry(key)
        return entry.stored_at + self.duration_seconds if entry else None

    def sweep(self) -> int:
        """Evict every expired entry. Returns how many were removed."""
        now = self._clock()
        expired = [key for key, entry in self._store.items() if self._is_expired(entry, now)]
        for key in expired:
            del self._store[key]
        if expired:
            logger.info("Cache cleanup: removed %d expired items", len(expired))
        return len(expired)

    def stats(self) -> dict:
        now = self._clock()
        expired = sum(1 for entry in self._store.values() if self._is_expired(entry, now))
        return {
            "totalItems": len(self._store),
            "validItems": len(self._store) - expired,
            "expiredItems": expired,
            "cacheDurationMs": int(self.duration_seconds * 1000),
            "cacheDurationMinutes": self.duration_seconds / 60,
            "timestamp": datetime.now(timezone.utc).isoformat(),
        }

    def snapshot(self) -> list[dict]:
        """Fresh entries with their age in seconds. Does not evict."""
        now = self._clock()
        return [
            {"key": entry.key, "value": entry.value, "age": now - entry.stored_at}
            for entry in self._store.values()
            if not self._is_expired(entry, now)
        ]

    # -- background sweep -------------------------------------------------

    @property
    def sweeping(self) -> bool:
        return self._sweep_task is not None and not self._sweep_task.done()

    def start(self) -> None:
        """Start the periodic sweep on the running event loop."""
        if self.sweeping:
            return
        self._sweep_task = asyncio.get_running_loop().create_task(self._sweep_loop())

    async def stop(self) -> None:
        task, self._sweep_task = self._sweep_task, None
        if task is None:
            return
        task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await task

    async def _sweep_loop(self) -> None:
        while True:
            await asyncio.sleep(self.sweep_interval_seconds)
            self.sweep()
