"""
Parallel translation scheduling.

This module drives many independent field translations against a
rate-limited provider at once, backing off when the provider pushes back.

Key Components:
    - AdaptiveScheduler: AIMD concurrency controller with bounded retries
    - classify_error / cap_for_model: rate-limit classification and static caps
    - ProgressReporter: per-item throttled progress events
    - CancellationGate: cooperative cancellation flag and abort signal

Example:
    >>> from ai_translations.parallel import AdaptiveScheduler, cap_for_model
    >>> scheduler = AdaptiveScheduler(cap=cap_for_model("gpt-4o-mini"))
    >>> report = await scheduler.run(items)
"""

from .cancellation import CancellationGate
from .progress import ProgressReporter
from .rate_limit import Verdict, cap_for_model, classify_error, profile_for_model
from .scheduler import (
    MAX_RETRIES,
    AdaptiveScheduler,
    SchedulerConfig,
    SchedulerState,
    run_batch_sync,
)

__all__ = [
    "AdaptiveScheduler",
    "SchedulerConfig",
    "SchedulerState",
    "MAX_RETRIES",
    "run_batch_sync",
    "CancellationGate",
    "ProgressReporter",
    "Verdict",
    "classify_error",
    "cap_for_model",
    "profile_for_model",
]
