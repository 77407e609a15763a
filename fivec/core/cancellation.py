"""
Cooperative cancellation for long-running batch operations.
"""
import asyncio
from typing import Awaitable, Optional, TypeVar

import structlog

from fivec.core.exceptions import OperationCancelledError

logger = structlog.get_logger(__name__)

T = TypeVar("T")


class CancellationToken:
    """External cancellation signal shared between a caller and an operation."""

    def __init__(self):
        self._event = asyncio.Event()
        self.reason: Optional[str] = None

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def cancel(self, reason: Optional[str] = None) -> None:
        """Signal cancellation. Idempotent."""
        if not self._event.is_set():
            self.reason = reason
            self._event.set()

    def raise_if_cancelled(self, operation: str) -> None:
        if self.cancelled:
            raise OperationCancelledError(operation, reason=self.reason)

    async def run(self, awaitable: Awaitable[T], operation: str) -> T:
        """
        Await ``awaitable`` unless the token fires first.

        Raises:
            OperationCancelledError: If cancelled before the awaitable finished
        """
        if self.cancelled and asyncio.iscoroutine(awaitable):
            awaitable.close()
        self.raise_if_cancelled(operation)

        task = asyncio.ensure_future(awaitable)
        waiter = asyncio.ensure_future(self._event.wait())
        try:
            done, _ = await asyncio.wait(
                {task, waiter}, return_when=asyncio.FIRST_COMPLETED
            )
        except BaseException:
            task.cancel()
            raise
        finally:
            waiter.cancel()

        if task in done:
            return task.result()

        task.cancel()
        logger.info("Operation cancelled in flight", operation=operation, reason=self.reason)
        raise OperationCancelledError(operation, reason=self.reason)
