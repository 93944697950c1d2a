"""In-memory file registry with TTL-based deletion.

Entries map a generated file name to an absolute wall-clock deadline. The
registry lives for the process lifetime only; every registered file gets its
own one-shot deletion task instead of a periodic sweep.
"""
from __future__ import annotations

import asyncio
import logging
import os
import time
from pathlib import Path
from typing import Callable, Dict, Optional, Set, Union

from starlette.concurrency import run_in_threadpool

logger = logging.getLogger(__name__)


class FileRegistry:
    """Async-safe map of ``file_name -> expires_at`` plus the deletion timers.

    The lock only ever guards the map itself (and the single unlink done on
    expiry); uploads and downloads do their disk I/O outside of it.
    """

    def __init__(
        self,
        storage_root: Union[str, Path],
        ttl_seconds: float = 3600.0,
        delete_retry_attempts: int = 3,
        delete_retry_backoff_seconds: float = 0.5,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._storage_root = Path(storage_root)
        self._ttl = ttl_seconds
        self._retry_attempts = max(1, delete_retry_attempts)
        self._retry_backoff = delete_retry_backoff_seconds
        self._clock = clock
        self._entries: Dict[str, float] = {}
        self._lock = asyncio.Lock()
        self._timers: Set[asyncio.Task] = set()  # type: ignore[type-arg]

    @property
    def pending_expiries(self) -> int:
        return len(self._timers)

    def now(self) -> float:
        return self._clock()

    def path_for(self, file_name: str) -> Path:
        return self._storage_root / file_name

    # ------------------------------------------------------------------
    # Entries
    # ------------------------------------------------------------------

    async def register(self, file_name: str) -> float:
        """Publish *file_name* and schedule its deletion.

        The caller must have finished writing the file before calling this.
        """
        expires_at = self._clock() + self._ttl
        async with self._lock:
            self._entries[file_name] = expires_at
        self._schedule_expiry(file_name)
        logger.info("Registered %s (expires in %ss)", file_name, int(self._ttl))
        return expires_at

    async def lookup(self, file_name: str) -> Optional[float]:
        """Return the deadline for *file_name*, or None if unknown or expired.

        An entry whose deadline has passed is treated as gone even when its
        deletion task has not run yet.
        """
        async with self._lock:
            expires_at = self._entries.get(file_name)
        if expires_at is None or self._clock() >= expires_at:
            return None
        return expires_at

    async def contains(self, file_name: str) -> bool:
        """True if an entry exists, expired or not."""
        async with self._lock:
            return file_name in self._entries

    async def active_count(self) -> int:
        now = self._clock()
        async with self._lock:
            return sum(1 for expires_at in self._entries.values() if now < expires_at)

    # ------------------------------------------------------------------
    # Expiry
    # ------------------------------------------------------------------

    async def expire_and_delete(self, file_name: str) -> bool:
        """Remove the file from disk, then drop its entry.

        If the file is already missing the entry is left in place; the
        deadline check in :meth:`lookup` keeps hiding it. Other OS errors are
        retried with a linear backoff, releasing the lock between attempts.
        """
        path = self.path_for(file_name)
        for attempt in range(1, self._retry_attempts + 1):
            async with self._lock:
                try:
                    await run_in_threadpool(os.remove, path)
                except FileNotFoundError as exc:
                    logger.error("Error deleting file %s: %s", file_name, exc)
                    return False
                except OSError as exc:
                    error: OSError = exc
                else:
                    self._entries.pop(file_name, None)
                    logger.info("File deleted: %s", file_name)
                    return True

            logger.warning(
                "Delete failed (attempt %d/%d) file=%s err=%s",
                attempt,
                self._retry_attempts,
                file_name,
                error,
            )
            if attempt < self._retry_attempts:
                await asyncio.sleep(self._retry_backoff * attempt)

        logger.error("Giving up on deleting %s after %d attempts", file_name, self._retry_attempts)
        return False

    def _schedule_expiry(self, file_name: str) -> None:
        task = asyncio.create_task(self._expire_later(file_name), name=f"expire:{file_name}")
        self._timers.add(task)
        task.add_done_callback(self._timers.discard)

    async def _expire_later(self, file_name: str) -> None:
        await asyncio.sleep(self._ttl)
        try:
            await self.expire_and_delete(file_name)
        except Exception:
            logger.exception("Expiry task for %s failed", file_name)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def close(self) -> None:
        """Cancel pending deletion tasks; registry state dies with the process."""
        timers = list(self._timers)
        for task in timers:
            task.cancel()
        if timers:
            await asyncio.gather(*timers, return_exceptions=True)
        logger.info("FileRegistry closed; %d pending deletions dropped", len(timers))
