"""
Detached best-effort writes to the secondary sinks
"""
import asyncio
import logging
from typing import Awaitable, Optional, Set

from ..config import settings

logger = logging.getLogger(__name__)


class FanOutDispatcher:
    """
    Spawns independent background writes that outlive the request.

    Callers never get a handle back: each write succeeds or fails on its own
    and its outcome is only logged. Writes are unordered relative to each other.
    """

    def __init__(self, task_timeout: Optional[float] = None):
        self.task_timeout = settings.FANOUT_TASK_TIMEOUT if task_timeout is None else task_timeout
        self._tasks: Set[asyncio.Task] = set()

    @property
    def pending(self) -> int:
        """Number of writes still in flight"""
        return len(self._tasks)

    def submit(self, sink: str, post_id: str, write: Awaitable[None]) -> None:
        """Dispatch one write; returns immediately"""
        task = asyncio.create_task(
            self._run(sink, post_id, write),
            name=f"fanout-{sink}-{post_id}",
        )
        # the event loop only keeps weak references to tasks
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def _run(self, sink: str, post_id: str, write: Awaitable[None]) -> None:
        try:
            await asyncio.wait_for(write, timeout=self.task_timeout)
        except asyncio.TimeoutError:
            logger.error(f"{sink} write for post {post_id} timed out after {self.task_timeout}s")
        except Exception as e:
            logger.error(f"{sink} write for post {post_id} failed: {e}")
        else:
            logger.info(f"{sink} write for post {post_id} completed")

    async def drain(self, timeout: Optional[float] = None) -> None:
        """Wait for in-flight writes; used at shutdown"""
        if not self._tasks:
            return
        done, pending = await asyncio.wait(set(self._tasks), timeout=timeout)
        if pending:
            logger.warning(f"{len(pending)} fan-out writes still running at drain timeout")


# Global dispatcher instance
dispatcher = FanOutDispatcher()
