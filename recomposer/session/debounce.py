from __future__ import annotations

import asyncio
import logging
from typing import Any, Awaitable, Callable, Dict, Hashable, Optional

logger = logging.getLogger(__name__)


class Debouncer:
    """
    Single-slot delayed tasks keyed by an arbitrary key.
    Scheduling for a key cancels whatever was pending for that key; nothing is queued.
    """

    def __init__(self, delay_s: float):
        self.delay_s = delay_s
        self._tasks: Dict[Hashable, asyncio.Task] = {}

    def schedule(self, key: Hashable, fn: Callable[[], Awaitable[Any]]) -> asyncio.Task:
        self.cancel(key)
        task = asyncio.get_running_loop().create_task(self._run(key, fn))
        self._tasks[key] = task
        return task

    async def _run(self, key: Hashable, fn: Callable[[], Awaitable[Any]]) -> Any:
        try:
            await asyncio.sleep(self.delay_s)
            return await fn()
        finally:
            if self._tasks.get(key) is asyncio.current_task():
                del self._tasks[key]

    def cancel(self, key: Hashable) -> bool:
        task: Optional[asyncio.Task] = self._tasks.pop(key, None)
        if task is None or task.done():
            return False
        task.cancel()
        logger.debug("pending task replaced/cancelled for %s", key)
        return True

    def cancel_all(self) -> None:
        for key in list(self._tasks):
            self.cancel(key)

    def pending(self, key: Hashable) -> Optional[asyncio.Task]:
        task = self._tasks.get(key)
        if task is None or task.done():
            return None
        return task

    def is_pending(self, key: Hashable) -> bool:
        return self.pending(key) is not None
