"""
Scheduler Module

Fire-and-forget background tasks and the single-slot debounce timer used
for attendance persistence. Both run on the current asyncio event loop.
"""

import asyncio
from typing import Any, Awaitable, Callable, Dict, Optional, Set

from infrastructure.logger import get_logger

logger = get_logger("Scheduler")


class TaskTracker:
    """
    Keeps references to background tasks and logs their failures.

    A failing task never raises into the caller that spawned it; the
    error is logged when the task completes. Tasks spawned with the same
    key run one after another in spawn order, so writes to one document
    cannot overtake each other.
    """

    def __init__(self):
        self._tasks: Set[asyncio.Task] = set()
        self._last_by_key: Dict[str, asyncio.Task] = {}

    @property
    def pending_count(self) -> int:
        return len(self._tasks)

    def spawn(
        self,
        coro: Awaitable[Any],
        description: str,
        key: Optional[str] = None
    ) -> asyncio.Task:
        """
        Schedule a coroutine on the running loop.

        Args:
            coro: Coroutine to run
            description: Human readable label used in log messages
            key: Optional ordering key; the coroutine starts only after the
                previous task with the same key has finished

        Raises:
            RuntimeError: If there is no running event loop
        """
        previous = self._last_by_key.get(key) if key is not None else None

        async def worker() -> Any:
            try:
                if previous is not None and not previous.done():
                    # wait() never cancels the previous task
                    await asyncio.wait([previous])
                return await coro
            except asyncio.CancelledError:
                logger.info(f"Background task cancelled: {description}")
                raise
            except Exception as e:
                logger.error(f"Background task failed: {description}: {e}", exc_info=e)
                return None

        task = asyncio.get_running_loop().create_task(worker(), name=description)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        if key is not None:
            self._last_by_key[key] = task
            task.add_done_callback(lambda done: self._forget(key, done))
        logger.debug(f"Background task started: {description}")
        return task

    def _forget(self, key: str, task: asyncio.Task) -> None:
        if self._last_by_key.get(key) is task:
            del self._last_by_key[key]

    async def drain(self) -> None:
        """Wait until every tracked task, including ones spawned meanwhile, is done."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)


class DebouncedTask:
    """
    Single-slot debounce timer.

    Each schedule() cancels the pending timer and starts a new one, so
    only the last call within the delay window runs. Arguments are
    captured when scheduled. A write that already started is never
    cancelled.

    Args:
        delay: Quiet period in seconds
        action: Async callable run with the last scheduled arguments
        tracker: Task tracker that runs the action
        description: Label used in log messages
    """

    def __init__(
        self,
        delay: float,
        action: Callable[..., Awaitable[Any]],
        tracker: Optional[TaskTracker] = None,
        description: str = "debounced task"
    ):
        self.delay = delay
        self._action = action
        self._tracker = tracker or TaskTracker()
        self._description = description
        self._handle: Optional[asyncio.TimerHandle] = None
        self._args: tuple = ()

    @property
    def pending(self) -> bool:
        return self._handle is not None

    def schedule(self, *args: Any) -> None:
        """Start or restart the timer with new arguments."""
        if self._handle is not None:
            self._handle.cancel()
        self._args = args
        self._handle = asyncio.get_running_loop().call_later(self.delay, self._fire)

    def cancel(self) -> None:
        """Drop the pending call, if any."""
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None
            self._args = ()

    def _fire(self) -> Optional[asyncio.Task]:
        self._handle = None
        args, self._args = self._args, ()
        return self._tracker.spawn(self._action(*args), self._description)

    async def flush(self) -> None:
        """Run the pending call now and wait for it."""
        if self._handle is None:
            return
        self._handle.cancel()
        task = self._fire()
        await asyncio.gather(task, return_exceptions=True)

    async def drain(self) -> None:
        """Flush the pending call and wait for every started run."""
        await self.flush()
        await self._tracker.drain()
