"""
Debounced, retried writes to the document store.

WriteQueue keeps, per document key, the latest pending patch for each field
and one cancellable timer. A new write to a key restarts the timer and
replaces the patch for its field, so a burst of updates collapses into one
flush. Once a timer fires its flush runs to completion; flushes for the same
key are serialized so an older write never lands after a newer one.
"""
import asyncio
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from typing import Awaitable, Callable, Dict, List, Optional, Set

from launchkit.exceptions import PersistenceError
from launchkit.logger import get_logger

logger = get_logger("write_queue")

Operation = Callable[[], Awaitable[None]]
Sleep = Callable[[float], Awaitable[None]]

BACKOFF_FIXED = "fixed"
BACKOFF_EXPONENTIAL = "exponential"


@dataclass
class RetryPolicy:
    """How often and how patiently a failed write is retried."""
    max_retries: int = 3
    delay_ms: int = 1000
    backoff: str = BACKOFF_EXPONENTIAL

    def __post_init__(self):
        if self.backoff not in (BACKOFF_FIXED, BACKOFF_EXPONENTIAL):
            raise ValueError(f"Unknown backoff: {self.backoff}")
        if self.max_retries < 0:
            raise ValueError("max_retries must be >= 0")

    def delay_for(self, retry: int) -> float:
        """Seconds to wait before the given retry (1-based)."""
        base = self.delay_ms / 1000
        if self.backoff == BACKOFF_FIXED:
            return base
        return base * (2 ** (retry - 1))


async def run_with_retry(
    operation: Operation,
    policy: RetryPolicy,
    key: str = "",
    sleep: Sleep = asyncio.sleep,
) -> int:
    """
    Run `operation` until it succeeds or the policy is exhausted.

    Returns:
        Number of attempts made.

    Raises:
        PersistenceError: every attempt failed.
    """
    attempts = 0
    while True:
        attempts += 1
        try:
            await operation()
            return attempts
        except asyncio.CancelledError:
            raise
        except Exception as e:
            if attempts > policy.max_retries:
                raise PersistenceError(key, attempts, e) from e
            delay = policy.delay_for(attempts)
            logger.warning(f"Write {key} failed (attempt {attempts}), retrying in {delay:.2f}s: {e}")
            await sleep(delay)


@dataclass
class _PendingWrite:
    patches: Dict[str, Operation] = field(default_factory=dict)
    timer: Optional[asyncio.Task] = None


class WriteQueue:
    """Per-key write coalescing queue."""

    def __init__(
        self,
        debounce_ms: int,
        retry_policy: RetryPolicy,
        sleep: Sleep = asyncio.sleep,
    ):
        self.debounce_ms = debounce_ms
        self.retry_policy = retry_policy
        self._sleep = sleep
        self._pending: Dict[str, _PendingWrite] = {}
        self._inflight: Dict[str, Set[asyncio.Task]] = {}
        self._locks: Dict[str, asyncio.Lock] = {}
        self._lock_users: Dict[str, int] = {}

    @asynccontextmanager
    async def _key_lock(self, key: str):
        # A key's lock lives only while someone holds or waits on it
        lock = self._locks.setdefault(key, asyncio.Lock())
        self._lock_users[key] = self._lock_users.get(key, 0) + 1
        try:
            async with lock:
                yield
        finally:
            self._lock_users[key] -= 1
            if not self._lock_users[key]:
                del self._lock_users[key]
                del self._locks[key]

    # ------------------------------------------------------------------
    # Scheduling
    # ------------------------------------------------------------------
    def schedule(self, key: str, patch_field: str, operation: Operation) -> None:
        """Queue `operation` as the latest patch for `patch_field` and restart the timer.

        Must be called from a running event loop.
        """
        entry = self._pending.setdefault(key, _PendingWrite())
        entry.patches.pop(patch_field, None)
        entry.patches[patch_field] = operation

        if entry.timer is not None and not entry.timer.done():
            entry.timer.cancel()
        entry.timer = asyncio.get_running_loop().create_task(self._debounced_flush(key, entry))

    async def _debounced_flush(self, key: str, entry: _PendingWrite) -> None:
        await self._sleep(self.debounce_ms / 1000)
        # From here on the write can no longer be cancelled, only followed.
        if self._pending.get(key) is entry:
            del self._pending[key]
        task = asyncio.current_task()
        self._inflight.setdefault(key, set()).add(task)
        try:
            await self._write_entry(key, entry, raise_errors=False)
        finally:
            tasks = self._inflight.get(key)
            if tasks is not None:
                tasks.discard(task)
                if not tasks:
                    del self._inflight[key]

    async def _write_entry(self, key: str, entry: _PendingWrite, raise_errors: bool) -> None:
        errors: List[PersistenceError] = []
        async with self._key_lock(key):
            for patch_field, operation in entry.patches.items():
                try:
                    await run_with_retry(operation, self.retry_policy, f"{key}:{patch_field}", self._sleep)
                except PersistenceError as e:
                    logger.error(f"Dropping write after retries: {e.message}")
                    errors.append(e)
        if errors and raise_errors:
            raise errors[0]

    async def execute(self, key: str, patch_field: str, operation: Operation) -> int:
        """Write now, bypassing the debounce.

        A pending patch for the same field is older than this write and is
        discarded.

        Raises:
            PersistenceError: retries exhausted.
        """
        entry = self._pending.get(key)
        if entry is not None:
            entry.patches.pop(patch_field, None)
            if not entry.patches:
                if entry.timer is not None:
                    entry.timer.cancel()
                del self._pending[key]
        async with self._key_lock(key):
            return await run_with_retry(operation, self.retry_policy, f"{key}:{patch_field}", self._sleep)

    # ------------------------------------------------------------------
    # Draining
    # ------------------------------------------------------------------
    async def flush(self, key: str) -> None:
        """Write pending patches for `key` now and wait for in-flight writes.

        Raises:
            PersistenceError: a pending patch could not be written.
        """
        entry = self._pending.pop(key, None)
        if entry is not None:
            if entry.timer is not None:
                entry.timer.cancel()
            await self._write_entry(key, entry, raise_errors=True)
        inflight = list(self._inflight.get(key, ()))
        if inflight:
            await asyncio.gather(*inflight, return_exceptions=True)

    async def flush_all(self) -> List[PersistenceError]:
        """Flush every key; failures are logged and returned, not raised."""
        errors: List[PersistenceError] = []
        for key in set(self._pending) | set(self._inflight):
            try:
                await self.flush(key)
            except PersistenceError as e:
                errors.append(e)
        return errors

    def has_pending(self, key: str) -> bool:
        return key in self._pending or bool(self._inflight.get(key))

