"""Throttled progress reporting for streaming work items."""

from __future__ import annotations

import time
from typing import Any, Callable, Dict, Optional

from ..types import ProgressEvent, ProgressPhase

DEFAULT_MIN_INTERVAL = 0.033  # ~30 emissions per second

ProgressSink = Callable[[ProgressEvent], None]


class ProgressReporter:
    """
    Forwards progress events to a sink, dropping partial updates that arrive
    faster than ``min_interval`` for the same item.

    Start, done and failed events always go through, so the final state of an
    item is never lost even when its last partial update was dropped.

    Example:
        >>> events = []
        >>> reporter = ProgressReporter(events.append)
        >>> _ = reporter.report("title.it", "Cia")
        >>> reporter.report("title.it", "Ciao")  # too soon
        False
        >>> reporter.done("title.it", "Ciao mondo")
        >>> [e.phase.value for e in events]
        ['partial', 'done']
    """

    def __init__(
        self,
        sink: Optional[ProgressSink] = None,
        min_interval: float = DEFAULT_MIN_INTERVAL,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if min_interval < 0:
            raise ValueError("min_interval must be >= 0")
        self._sink = sink
        self._min_interval = min_interval
        self._clock = clock
        self._last_emitted: Dict[str, float] = {}
        self._dropped = 0

    @property
    def dropped(self) -> int:
        """Number of partial updates dropped by throttling."""
        return self._dropped

    def report(self, item_id: str, payload: Any = None) -> bool:
        """
        Report a partial result for ``item_id``.

        Returns:
            True if the event was forwarded, False if it was throttled
        """
        now = self._clock()
        last = self._last_emitted.get(item_id)
        if last is not None and now - last < self._min_interval:
            self._dropped += 1
            return False
        self._last_emitted[item_id] = now
        self._emit(ProgressEvent(item_id, ProgressPhase.PARTIAL, payload))
        return True

    def start(self, item_id: str) -> None:
        self._emit(ProgressEvent(item_id, ProgressPhase.START))

    def done(self, item_id: str, payload: Any = None) -> None:
        self._last_emitted.pop(item_id, None)
        self._emit(ProgressEvent(item_id, ProgressPhase.DONE, payload))

    def failed(self, item_id: str, error: Any = None) -> None:
        self._last_emitted.pop(item_id, None)
        self._emit(ProgressEvent(item_id, ProgressPhase.FAILED, error))

    def _emit(self, event: ProgressEvent) -> None:
        if self._sink is not None:
            self._sink(event)
