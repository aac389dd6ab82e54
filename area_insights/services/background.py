"""
Bounded fire-and-forget dispatch for work that must never delay or fail a response.
"""

import asyncio
import logging
from typing import Any, Awaitable, Callable, Optional, Set

from area_insights.config import settings
from area_insights.utils.metrics import metrics

logger = logging.getLogger(__name__)


class BackgroundDispatcher:
    """Runs coroutines as detached tasks, up to ``max_pending`` at a time.

    Work submitted while the limit is reached is dropped before the callable
    is invoked. Exceptions raised by a task are logged and discarded.
    """

    def __init__(self, max_pending: Optional[int] = None):
        self.max_pending = max_pending or settings.background_max_pending
        self._tasks: Set[asyncio.Task] = set()

    @property
    def pending(self) -> int:
        return len(self._tasks)

    def submit(self, fn: Callable[..., Awaitable[Any]], *args, **kwargs) -> bool:
        """Schedule ``fn(*args, **kwargs)``. Returns False if the work was dropped."""
        name = getattr(fn, "__name__", repr(fn))
        if len(self._tasks) >= self.max_pending:
            metrics.background_tasks_total.labels(outcome="dropped").inc()
            logger.warning(f"Background queue full ({self.max_pending}), dropping {name}")
            return False

        task = asyncio.create_task(self._run(name, fn, *args, **kwargs))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return True

    async def drain(self, timeout: Optional[float] = None):
        """Wait for pending tasks, e.g. on shutdown."""
        if not self._tasks:
            return
        _, pending = await asyncio.wait(set(self._tasks), timeout=timeout)
        if pending:
            logger.warning(f"{len(pending)} background tasks still running after drain")

    async def _run(self, name: str, fn: Callable[..., Awaitable[Any]], *args, **kwargs):
        try:
            await fn(*args, **kwargs)
            metrics.background_tasks_total.labels(outcome="completed").inc()
        except Exception as e:
            metrics.background_tasks_total.labels(outcome="failed").inc()
            logger.error(f"Background task {name} failed: {e}", exc_info=True)


background_dispatcher = BackgroundDispatcher()
