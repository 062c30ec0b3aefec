"""Delayed deletion of triggering messages."""

import asyncio
import inspect
from typing import Any
import structlog

from ..core.errors import DeletionError


logger = structlog.get_logger()


class DeletionScheduler:
    """
    One-shot delayed deletes.

    Each scheduled deletion is an independent task: it sleeps, calls
    `message.delete()`, and logs any failure. Once scheduled it cannot be
    cancelled individually; `drain()` waits for everything still pending.
    """

    def __init__(self):
        self._pending: set[asyncio.Task] = set()
        self.scheduled = 0
        self.failed = 0

    def schedule(self, message: Any, delay_ms: float) -> asyncio.Task:
        """Delete `message` after `delay_ms` milliseconds. Needs a running loop."""
        task = asyncio.get_running_loop().create_task(
            self._delete_later(message, delay_ms)
        )
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)
        self.scheduled += 1

        logger.debug("deletion_scheduled", delay_ms=delay_ms)
        return task

    async def _delete_later(self, message: Any, delay_ms: float) -> bool:
        await asyncio.sleep(delay_ms / 1000)

        try:
            result = message.delete()
            if inspect.isawaitable(result):
                await result
        except asyncio.CancelledError:
            raise
        except Exception as e:
            self.failed += 1
            error = DeletionError(f"Failed to delete message: {e}", delay_ms=delay_ms)
            logger.warning("deletion_failed", **error.to_dict())
            return False

        logger.debug("message_deleted", delay_ms=delay_ms)
        return True

    @property
    def pending(self) -> int:
        return len(self._pending)

    async def drain(self) -> None:
        """Wait until every scheduled deletion has run."""
        while self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)
