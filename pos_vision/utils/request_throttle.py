"""Serializing request throttle for outbound provider calls.

Operations submitted to a RequestThrottle run one at a time, in submission
order, and never start less than ``min_interval_seconds`` after the previous
attempt finished. Each caller receives its own result or its own exception;
a failing operation never stops the queue.

The throttle relies on a single asyncio event loop for mutual exclusion: the
queue is only appended to by ``submit`` and only popped by the drain loop,
and the processing flag guarantees at most one drain loop at a time.

Limitations:
- No withdrawal: once submitted, an operation runs when its turn comes,
  even if its caller stopped waiting.
- An operation that raises CancelledError on its own fails only its own
  caller. Cancelling the drain task itself cancels every queued future.
- No timeout: a hung operation stalls every operation queued behind it.
  Callers that need a deadline wrap their own operation.
- No backpressure: the queue is unbounded.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections import deque
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Generic, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")

Operation = Callable[[], Awaitable[T]]


@dataclass
class _QueuedTask(Generic[T]):
    """One submitted operation paired with the future its caller awaits."""

    operation: Callable[[], Awaitable[T]]
    future: asyncio.Future[T]
    sequence: int = 0


class RequestThrottle:
    """FIFO queue that spaces out asynchronous operations.

    The interval is measured from the end of one attempt to the start of the
    next, so slow operations add to the effective spacing.

    Attributes:
        min_interval_seconds: Minimum delay between consecutive operations.
    """

    def __init__(
        self,
        *,
        min_interval_seconds: float = 1.0,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
        name: str = "default",
    ) -> None:
        """Initialize an idle throttle.

        Args:
            min_interval_seconds: Minimum spacing between operations.
            clock: Monotonic time source in seconds.
            sleep: Coroutine function used to wait between operations.
            name: Label included in log records.

        Raises:
            ValueError: If min_interval_seconds is negative.
        """
        if min_interval_seconds < 0:
            raise ValueError("min_interval_seconds must be >= 0")

        self._min_interval = float(min_interval_seconds)
        self._clock = clock
        self._sleep = sleep
        self._name = name

        self._queue: deque[_QueuedTask[Any]] = deque()
        self._processing = False
        self._last_request_time: float | None = None
        self._drain_task: asyncio.Task[None] | None = None

        self._submitted = 0
        self._executed = 0
        self._failed = 0

    def __repr__(self) -> str:  # pragma: no cover - representation only
        return (
            f"RequestThrottle(name={self._name!r}, "
            f"min_interval_seconds={self._min_interval}, pending={len(self._queue)}, "
            f"draining={self._processing})"
        )

    @property
    def min_interval_seconds(self) -> float:
        return self._min_interval

    @property
    def is_draining(self) -> bool:
        """True while a drain loop owns the queue."""
        return self._processing

    @property
    def pending(self) -> int:
        return len(self._queue)

    @property
    def last_request_time(self) -> float | None:
        return self._last_request_time

    def submit(self, operation: Operation[T]) -> asyncio.Future[T]:
        """Queue an operation and return a future for its outcome.

        Must be called from a running event loop. Failures of the operation
        are delivered through the returned future, never raised here.

        Args:
            operation: Zero-argument callable returning an awaitable.

        Returns:
            Future resolved with the operation's result or its exception.
        """
        loop = asyncio.get_running_loop()
        future: asyncio.Future[T] = loop.create_future()

        self._submitted += 1
        self._queue.append(
            _QueuedTask(operation=operation, future=future, sequence=self._submitted)
        )
        logger.debug(
            "throttle.enqueued",
            extra={
                "throttle": self._name,
                "sequence": self._submitted,
                "pending": len(self._queue),
            },
        )

        self._ensure_draining()
        return future

    async def run(self, operation: Operation[T]) -> T:
        """Submit an operation and wait for its result."""
        return await self.submit(operation)

    def stats(self) -> dict[str, Any]:
        """Return queue metrics without exposing queued operations."""
        return {
            "name": self._name,
            "min_interval_seconds": self._min_interval,
            "pending": len(self._queue),
            "draining": self._processing,
            "submitted": self._submitted,
            "executed": self._executed,
            "failed": self._failed,
            "last_request_time": self._last_request_time,
        }

    def _ensure_draining(self) -> None:
        """Start the drain loop unless one is already running."""
        if self._processing and not self._drain_is_stale():
            return
        if not self._queue:
            return

        self._processing = True
        self._drain_task = asyncio.get_running_loop().create_task(self._drain())

    def _drain_is_stale(self) -> bool:
        # A drain task that was cancelled before its first step, or that
        # belongs to an event loop that is gone, never clears the flag.
        task = self._drain_task
        if task is None:
            return True
        if task.done():
            return True
        return task.get_loop() is not asyncio.get_running_loop()

    async def _drain(self) -> None:
        logger.debug(
            "throttle.drain_started",
            extra={"throttle": self._name, "pending": len(self._queue)},
        )
        try:
            while self._queue:
                await self._wait_for_slot()
                task = self._queue.popleft()
                await self._execute(task)
                self._last_request_time = self._clock()
        except asyncio.CancelledError:
            self._cancel_queued()
            raise
        finally:
            self._processing = False
            logger.debug(
                "throttle.drain_stopped",
                extra={"throttle": self._name, "pending": len(self._queue)},
            )

    def _cancel_queued(self) -> None:
        """Cancel the futures of tasks that will not run on this drain."""
        dropped = 0
        while self._queue:
            task = self._queue.popleft()
            if not task.future.done():
                task.future.cancel()
            dropped += 1
        if dropped:
            logger.warning(
                "throttle.drain_cancelled",
                extra={"throttle": self._name, "dropped": dropped},
            )

    async def _wait_for_slot(self) -> None:
        if self._last_request_time is None:
            return

        elapsed = self._clock() - self._last_request_time
        if elapsed >= self._min_interval:
            return

        delay = self._min_interval - elapsed
        logger.debug(
            "throttle.delayed",
            extra={
                "throttle": self._name,
                "delay_s": round(delay, 4),
                "pending": len(self._queue),
            },
        )
        await self._sleep(delay)

    async def _execute(self, task: _QueuedTask[Any]) -> None:
        try:
            result = await task.operation()
        except asyncio.CancelledError:
            if not task.future.done():
                task.future.cancel()
            current = asyncio.current_task()
            if current is not None and current.cancelling():
                raise
            # The operation cancelled itself; only its own caller is affected
            self._executed += 1
            self._failed += 1
            logger.warning(
                "throttle.task_cancelled",
                extra={"throttle": self._name, "sequence": task.sequence},
            )
            return
        except Exception as exc:
            self._executed += 1
            self._failed += 1
            logger.warning(
                "throttle.task_failed",
                extra={
                    "throttle": self._name,
                    "sequence": task.sequence,
                    "error_type": type(exc).__name__,
                    "error_msg": str(exc),
                },
            )
            if not task.future.done():
                task.future.set_exception(exc)
            return

        self._executed += 1
        if not task.future.done():
            task.future.set_result(result)
