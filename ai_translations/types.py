from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Any, Awaitable, Callable, List, Optional

if TYPE_CHECKING:
    from .parallel.cancellation import CancellationGate
    from .parallel.progress import ProgressReporter


class ProgressPhase(Enum):
    START = "start"
    PARTIAL = "partial"
    DONE = "done"
    FAILED = "failed"


@dataclass(frozen=True)
class ProgressEvent:
    item_id: str
    phase: ProgressPhase
    payload: Any = None


@dataclass
class ItemContext:
    """
    Handle passed to a work item on every attempt.

    Carries the cancellation gate (and through it the abort signal) and a
    bound progress reporter so the item never needs to know its own id.
    """

    item_id: str
    attempt: int
    gate: "CancellationGate"
    reporter: Optional["ProgressReporter"] = None

    @property
    def cancelled(self) -> bool:
        return self.gate.is_cancelled()

    def report(self, payload: Any) -> None:
        if self.reporter is not None:
            self.reporter.report(self.item_id, payload)


@dataclass
class WorkItem:
    id: str
    execute: Callable[[ItemContext], Awaitable[Any]]
    attempt: int = 0


@dataclass
class FieldInfo:
    api_key: str
    editor: str
    field_id: str = ""
    localized: bool = True
    label: Optional[str] = None

    @property
    def display_name(self) -> str:
        return self.label or self.api_key


@dataclass
class BatchReport:
    """Terminal state of one scheduler run."""

    succeeded: List[str] = field(default_factory=list)
    failed: List[str] = field(default_factory=list)
    cancelled: List[str] = field(default_factory=list)
    skipped: List[str] = field(default_factory=list)
    retry_count: int = 0
    final_ceiling: int = 0
    was_cancelled: bool = False
    elapsed_sec: float = 0.0

    @property
    def processed(self) -> int:
        return len(self.succeeded) + len(self.failed) + len(self.cancelled)

    def as_dict(self) -> dict:
        return {
            "succeeded": list(self.succeeded),
            "failed": list(self.failed),
            "cancelled": list(self.cancelled),
            "skipped": list(self.skipped),
            "retry_count": self.retry_count,
            "final_ceiling": self.final_ceiling,
            "was_cancelled": self.was_cancelled,
            "elapsed_sec": self.elapsed_sec,
        }
