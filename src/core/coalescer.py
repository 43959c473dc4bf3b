"""Coalesce concurrent requests for the same key into one upstream call.

The first caller for a key starts the request as an asyncio task; every
caller arriving while that task is pending awaits the same task and sees
the same value or the same exception. The in-flight record is dropped from
inside the task, so by the time any caller observes the outcome a new call
for that key starts a fresh request. Failures are never replayed.

Cancellation is shared. `abort(key)` cancels the one underlying request
and every joined caller receives RequestAbortedError. A single caller
cannot cancel only its own share: cancelling the caller's task stops that
caller from waiting but the shared request keeps running for the others.

There is no built-in timeout. A request that never settles keeps its key
in flight; wrap `request_fn` (e.g. with `asyncio.wait_for`) to bound it.
Keys must be deterministic: two calls meant to be the same logical request
must produce the same key.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Awaitable, Callable, Dict, Generic, List, Optional, TypeVar

from core.errors import RequestAbortedError
from core.models import CoalescerStats

logger = logging.getLogger(__name__)

T = TypeVar("T")

RequestFn = Callable[[], Awaitable[T]]
SettledHook = Callable[[str, T], None]


@dataclass(slots=True)
class InFlightRequest(Generic[T]):
    key: str
    task: "asyncio.Task[T]"
    waiters: int = 1


class RequestCoalescer(Generic[T]):
    def __init__(self, *, on_settled: Optional[SettledHook[T]] = None) -> None:
        self._in_flight: Dict[str, InFlightRequest[T]] = {}
        self._on_settled = on_settled

        self._started = 0
        self._joined = 0
        self._failed = 0
        self._aborted = 0

    async def execute(self, key: str, request_fn: RequestFn[T]) -> T:
        """Run `request_fn` for `key`, or join the request already in flight."""
        record = self._in_flight.get(key)
        if record is None:
            record = self._start(key, request_fn)
        else:
            record.waiters += 1
            self._joined += 1
            logger.debug("Joined in-flight request %r (%d waiters)", key, record.waiters)

        task = record.task
        try:
            # Shield so one caller's cancellation does not cancel the shared request
            return await asyncio.shield(task)
        except asyncio.CancelledError:
            if task.cancelled():
                raise RequestAbortedError(f"Request aborted: {key}") from None
            raise

    def abort(self, key: str) -> bool:
        """Cancel the in-flight request for `key` for every joined caller."""
        record = self._in_flight.get(key)
        if record is None or record.task.done():
            return False
        record.task.cancel()
        self._aborted += 1
        logger.info("Aborted in-flight request %r (%d waiters)", key, record.waiters)
        return True

    def in_flight(self, key: str) -> bool:
        return key in self._in_flight

    def pending_keys(self) -> List[str]:
        return list(self._in_flight)

    @property
    def stats(self) -> CoalescerStats:
        return CoalescerStats(
            started=self._started,
            joined=self._joined,
            failed=self._failed,
            aborted=self._aborted,
            in_flight=len(self._in_flight),
        )

    # --- Internals ---

    def _start(self, key: str, request_fn: RequestFn[T]) -> InFlightRequest[T]:
        task = asyncio.get_running_loop().create_task(self._run(key, request_fn))
        record = InFlightRequest(key=key, task=task)
        self._in_flight[key] = record
        self._started += 1

        # Registered before any waiter, so it runs before waiters resume.
        # Covers tasks cancelled before their coroutine ever started.
        task.add_done_callback(lambda t: self._forget(key, t))
        return record

    async def _run(self, key: str, request_fn: RequestFn[T]) -> T:
        try:
            value = await request_fn()
            if self._on_settled is not None:
                self._on_settled(key, value)
            return value
        except Exception as e:
            self._failed += 1
            logger.warning("In-flight request %r failed: %s", key, e)
            raise
        finally:
            self._forget(key, asyncio.current_task())

    def _forget(self, key: str, task: "Optional[asyncio.Future[T]]") -> None:
        current = self._in_flight.get(key)
        if current is not None and current.task is task:
            del self._in_flight[key]

        # Mark the outcome as retrieved even if every waiter was cancelled
        if task is not None and task.done() and not task.cancelled():
            task.exception()
