"""
Adaptive concurrency scheduler for translation batches.

Drives a list of independent work items against a rate-limited provider,
adjusting how many run at once with an AIMD policy:

    - additive increase: +1 ceiling after N consecutive successes (up to cap)
    - multiplicative decrease: halve the ceiling on every rate-limit signal

Rate-limited items are retried with a linear backoff and re-queued at the
tail; a fatal configuration error stops admission and fails the batch once
in-flight items settle; cancellation stops admission and lets the batch
finish cleanly with the untouched items reported as skipped.

All scheduler state is mutated from synchronous sections of coroutines on a
single event loop, so no locks are involved.

Example:
    >>> scheduler = AdaptiveScheduler(cap=cap_for_model("gpt-4o-mini"))
    >>> report = await scheduler.run(items)
    >>> print(f"{len(report.succeeded)} done, {len(report.failed)} failed")
"""

from __future__ import annotations

import asyncio
import logging
import math
import time
from collections import deque
from dataclasses import dataclass
from typing import Any, Callable, Deque, Iterable, Optional, Set

from ..errors import ErrorKind, TranslationError
from ..types import BatchReport, ItemContext, WorkItem
from .cancellation import CancellationGate
from .progress import ProgressReporter
from .rate_limit import Verdict, classify_error

logger = logging.getLogger(__name__)

MAX_RETRIES = 3
DEFAULT_BASE_DELAY = 1.0
DEFAULT_SUCCESS_THRESHOLD = 3


@dataclass
class SchedulerConfig:
    """Configuration for one scheduler.

    Attributes:
        cap: Hard upper bound for the concurrency ceiling
        floor: Lower bound for the ceiling after decreases
        max_retries: Rate-limit retries allowed per item
        base_delay: Backoff unit in seconds (delay = base_delay * attempt)
        success_threshold: Consecutive successes needed to grow the ceiling
    """

    cap: int
    floor: int = 1
    max_retries: int = MAX_RETRIES
    base_delay: float = DEFAULT_BASE_DELAY
    success_threshold: int = DEFAULT_SUCCESS_THRESHOLD


@dataclass
class SchedulerState:
    """Mutable state of a single run."""

    ceiling: int
    floor: int
    cap: int
    active: int = 0
    cursor: int = 0
    success_streak: int = 0
    fatal: Optional[BaseException] = None


class AdaptiveScheduler:
    """
    AIMD scheduler for batches of translation work items.

    Args:
        cap: Maximum concurrency, usually from ``cap_for_model``
        floor: Minimum ceiling after multiplicative decrease
        max_retries: Rate-limit retries per item
        base_delay: Linear backoff unit in seconds
        success_threshold: Consecutive successes before additive increase
        reporter: Progress reporter receiving start/done/failed events
        gate: Cancellation gate shared with the caller and the work items
        classifier: Failure classifier, ``classify_error`` by default
    """

    def __init__(
        self,
        cap: int,
        floor: int = 1,
        max_retries: int = MAX_RETRIES,
        base_delay: float = DEFAULT_BASE_DELAY,
        success_threshold: int = DEFAULT_SUCCESS_THRESHOLD,
        reporter: Optional[ProgressReporter] = None,
        gate: Optional[CancellationGate] = None,
        classifier: Callable[[BaseException], Verdict] = classify_error,
    ) -> None:
        if cap < 1:
            raise ValueError(f"cap must be >= 1, got {cap}")
        if floor < 1 or floor > cap:
            raise ValueError(f"floor must be between 1 and cap ({cap}), got {floor}")
        if max_retries < 0:
            raise ValueError("max_retries must be >= 0")
        if base_delay < 0:
            raise ValueError("base_delay must be >= 0")
        if success_threshold < 1:
            raise ValueError("success_threshold must be >= 1")

        self._config = SchedulerConfig(
            cap=cap,
            floor=floor,
            max_retries=max_retries,
            base_delay=base_delay,
            success_threshold=success_threshold,
        )
        self._reporter = reporter or ProgressReporter()
        self._gate = gate or CancellationGate()
        self._classifier = classifier
        self._state = SchedulerState(ceiling=cap, floor=floor, cap=cap)
        self._running = False
        self._halted = asyncio.Event()

    @property
    def config(self) -> SchedulerConfig:
        return self._config

    @property
    def state(self) -> SchedulerState:
        return self._state

    @property
    def gate(self) -> CancellationGate:
        return self._gate

    @property
    def reporter(self) -> ProgressReporter:
        return self._reporter

    async def run(self, items: Iterable[WorkItem]) -> BatchReport:
        """
        Run every item to a terminal state.

        Args:
            items: Work items in admission order

        Returns:
            BatchReport on normal or cancelled completion

        Raises:
            TranslationError: The latched fatal error, once no item is in flight
            RuntimeError: If this scheduler is already running
        """
        if self._running:
            raise RuntimeError("AdaptiveScheduler.run() is already in progress")
        self._running = True

        cfg = self._config
        self._state = SchedulerState(ceiling=cfg.cap, floor=cfg.floor, cap=cfg.cap)
        self._halted = asyncio.Event()
        state = self._state
        queue: Deque[WorkItem] = deque(items)
        total = len(queue)
        report = BatchReport()
        wakeup = asyncio.Event()
        tasks: Set[asyncio.Task] = set()
        start_time = time.monotonic()

        logger.info(
            "Starting translation batch: %d items, cap=%d, max_retries=%d",
            total,
            cfg.cap,
            cfg.max_retries,
        )

        try:
            while True:
                self._admit(queue, tasks, wakeup, report, total)
                if state.active == 0:
                    break
                await wakeup.wait()
                wakeup.clear()
        except asyncio.CancelledError:
            for task in tasks:
                task.cancel()
            raise
        finally:
            self._running = False

        report.skipped = [item.id for item in queue]
        report.final_ceiling = state.ceiling
        report.was_cancelled = self._gate.is_cancelled()
        report.elapsed_sec = time.monotonic() - start_time

        if state.fatal is not None:
            logger.error(
                "Translation batch aborted after %d admissions: %s",
                state.cursor,
                state.fatal,
            )
            raise state.fatal

        logger.info(
            "Batch complete: %d/%d succeeded, %d failed, %d skipped, "
            "%d retries, ceiling=%d, %.1fs%s",
            len(report.succeeded),
            total,
            len(report.failed),
            len(report.skipped),
            report.retry_count,
            report.final_ceiling,
            report.elapsed_sec,
            " (cancelled)" if report.was_cancelled else "",
        )
        return report

    def _admit(
        self,
        queue: Deque[WorkItem],
        tasks: Set[asyncio.Task],
        wakeup: asyncio.Event,
        report: BatchReport,
        total: int,
    ) -> None:
        state = self._state
        while (
            not self._gate.is_cancelled()
            and state.fatal is None
            and state.active < state.ceiling
            and queue
        ):
            item = queue.popleft()
            state.active += 1
            state.cursor += 1
            logger.debug(
                "Admitting %s (attempt %d, active=%d/%d)",
                item.id,
                item.attempt,
                state.active,
                state.ceiling,
            )
            self._reporter.start(item.id)
            task = asyncio.ensure_future(
                self._handle(item, queue, wakeup, report, total)
            )
            tasks.add(task)
            task.add_done_callback(tasks.discard)

    async def _handle(
        self,
        item: WorkItem,
        queue: Deque[WorkItem],
        wakeup: asyncio.Event,
        report: BatchReport,
        total: int,
    ) -> None:
        context = ItemContext(
            item_id=item.id,
            attempt=item.attempt,
            gate=self._gate,
            reporter=self._reporter,
        )
        try:
            try:
                result = await item.execute(context)
            except Exception as exc:
                await self._on_failure(item, exc, queue, report)
            else:
                self._on_success(item, result, report)
        finally:
            self._state.active -= 1
            finished = len(report.succeeded) + len(report.failed)
            if finished and finished % 10 == 0:
                logger.info(
                    "Progress: %d/%d (%.1f%%)",
                    finished,
                    total,
                    100 * finished / max(1, total),
                )
            wakeup.set()

    def _on_success(self, item: WorkItem, result: Any, report: BatchReport) -> None:
        state = self._state
        state.success_streak += 1
        if (
            state.success_streak >= self._config.success_threshold
            and state.ceiling < state.cap
        ):
            state.ceiling += 1
            state.success_streak = 0
            logger.debug("Concurrency ceiling raised to %d", state.ceiling)
        report.succeeded.append(item.id)
        self._reporter.done(item.id, result)

    async def _on_failure(
        self,
        item: WorkItem,
        exc: Exception,
        queue: Deque[WorkItem],
        report: BatchReport,
    ) -> None:
        state = self._state

        if isinstance(exc, TranslationError) and exc.kind is ErrorKind.CANCELLED:
            logger.info("Item %s stopped on cancellation", item.id)
            report.cancelled.append(item.id)
            return

        verdict = self._classifier(exc)

        if verdict is Verdict.FATAL:
            if state.fatal is None:
                state.fatal = exc
                logger.error("Fatal error on %s, halting batch: %s", item.id, exc)
                self._halted.set()
            report.failed.append(item.id)
            self._reporter.failed(item.id, exc)
            return

        if verdict is Verdict.RATE_LIMITED and item.attempt < self._config.max_retries:
            state.success_streak = 0
            previous = state.ceiling
            state.ceiling = max(state.floor, math.ceil(state.ceiling / 2))
            item.attempt += 1
            report.retry_count += 1
            delay = self._config.base_delay * item.attempt
            logger.warning(
                "Rate limited on %s (retry %d/%d in %.1fs), ceiling %d -> %d",
                item.id,
                item.attempt,
                self._config.max_retries,
                delay,
                previous,
                state.ceiling,
            )
            await self._backoff(delay)
            queue.append(item)
            return

        # Ordinary failures break the streak but leave the ceiling alone.
        state.success_streak = 0
        if verdict is Verdict.RATE_LIMITED:
            logger.error(
                "Item %s still rate limited after %d retries, giving up",
                item.id,
                item.attempt,
            )
        else:
            logger.error("Item %s failed: %s", item.id, str(exc)[:200])
        report.failed.append(item.id)
        self._reporter.failed(item.id, exc)

    async def _backoff(self, delay: float) -> None:
        """Sleep for ``delay`` seconds, waking early on cancellation or a fatal error."""
        if delay <= 0:
            return
        waiters = {
            asyncio.ensure_future(self._gate.wait_aborted()),
            asyncio.ensure_future(self._halted.wait()),
        }
        try:
            await asyncio.wait(waiters, timeout=delay, return_when=asyncio.FIRST_COMPLETED)
        finally:
            for waiter in waiters:
                waiter.cancel()


def run_batch_sync(
    items: Iterable[WorkItem],
    cap: int,
    **kwargs: Any,
) -> BatchReport:
    """
    Synchronous wrapper around ``AdaptiveScheduler.run``.

    Example:
        >>> report = run_batch_sync(items, cap=3, base_delay=0.5)
    """

    async def _run() -> BatchReport:
        scheduler = AdaptiveScheduler(cap, **kwargs)
        return await scheduler.run(items)

    return asyncio.run(_run())
