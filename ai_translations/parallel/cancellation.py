"""Cooperative cancellation for translation batches."""

from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable, Optional, TypeVar

from ..errors import TranslationCancelled

logger = logging.getLogger(__name__)

T = TypeVar("T")


class CancellationGate:
    """
    Polled cancellation flag plus an abort signal.

    The scheduler polls ``is_cancelled()`` before every admission; work items
    poll it before committing results and may race network calls against the
    abort signal with ``run_or_abort``. Once cancelled the gate stays
    cancelled.

    Args:
        check: Optional caller-owned predicate (e.g. a UI "Cancel" flag).
            It is polled on every ``is_cancelled()`` call.
    """

    def __init__(self, check: Optional[Callable[[], bool]] = None) -> None:
        self._check = check
        self._cancelled = False
        self._abort = asyncio.Event()

    @property
    def abort_signal(self) -> asyncio.Event:
        return self._abort

    def cancel(self) -> None:
        if not self._cancelled:
            logger.info("Cancellation requested")
        self._cancelled = True
        self._abort.set()

    def is_cancelled(self) -> bool:
        if not self._cancelled and self._check is not None and self._check():
            self.cancel()
        return self._cancelled

    def raise_if_cancelled(self) -> None:
        if self.is_cancelled():
            raise TranslationCancelled()

    async def wait_aborted(self) -> None:
        await self._abort.wait()

    async def run_or_abort(self, awaitable: Awaitable[T]) -> T:
        """
        Await ``awaitable`` unless the abort signal fires first.

        Raises:
            TranslationCancelled: If the gate was cancelled before or during
                the wait; the pending operation is cancelled. An awaitable
                that never started is closed without running.
        """
        if self.is_cancelled():
            _discard(awaitable)
            raise TranslationCancelled()
        task = asyncio.ensure_future(awaitable)
        abort_waiter = asyncio.ensure_future(self._abort.wait())
        try:
            await asyncio.wait(
                {task, abort_waiter}, return_when=asyncio.FIRST_COMPLETED
            )
        except asyncio.CancelledError:
            task.cancel()
            raise
        finally:
            abort_waiter.cancel()
        if task.done():
            return task.result()
        task.cancel()
        raise TranslationCancelled()


def _discard(awaitable: Awaitable) -> None:
    # Never-started coroutines must be closed or they warn when collected.
    if asyncio.iscoroutine(awaitable):
        awaitable.close()
    elif asyncio.isfuture(awaitable):
        awaitable.cancel()
