"""
Fire-and-forget background tasks.

The event loop only keeps weak references to tasks, so spawned work is held
here until it finishes. Task outcomes are observable through logs only.
"""
import asyncio
from typing import Any, Coroutine, Dict, Optional, Set

from loguru import logger


class BackgroundTasks:
    """Owns background tasks spawned on the running event loop."""

    def __init__(self):
        self._tasks: Set[asyncio.Task] = set()
        self._named: Dict[str, asyncio.Task] = {}

    def __len__(self) -> int:
        return len(self._tasks)

    def is_running(self, name: str) -> bool:
        """Check whether a named task is still in flight."""
        task = self._named.get(name)
        return task is not None and not task.done()

    def spawn(self, coro: Coroutine[Any, Any, Any], name: Optional[str] = None) -> asyncio.Task:
        """
        Schedule a coroutine without awaiting it.

        Args:
            coro: Coroutine to run
            name: Optional task name, used for logging and de-duplication

        Returns:
            The created task
        """
        task = asyncio.create_task(coro, name=name)
        self._tasks.add(task)
        if name:
            self._named[name] = task
        task.add_done_callback(self._on_done)
        return task

    def _on_done(self, task: asyncio.Task) -> None:
        self._tasks.discard(task)
        name = task.get_name()
        if self._named.get(name) is task:
            del self._named[name]

        if task.cancelled():
            logger.debug(f"Background task cancelled: {name}")
            return
        error = task.exception()
        if error is not None:
            logger.error(f"Background task {name} failed: {error}")

    async def drain(self, timeout: Optional[float] = None) -> None:
        """
        Wait for in-flight tasks, cancelling whatever is left after timeout.

        Task failures were already logged and are not raised here.
        """
        if not self._tasks:
            return
        pending = list(self._tasks)
        _, still_pending = await asyncio.wait(pending, timeout=timeout)
        for task in still_pending:
            task.cancel()
        if still_pending:
            logger.warning(f"Cancelled {len(still_pending)} background tasks on shutdown")
            await asyncio.gather(*still_pending, return_exceptions=True)
