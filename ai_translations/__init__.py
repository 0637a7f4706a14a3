"""Adaptive parallel translation of localized CMS records."""

from .config import TranslationSettings, load_settings
from .errors import ErrorKind, TranslationCancelled, TranslationError, normalize_error
from .parallel import AdaptiveScheduler, CancellationGate, ProgressReporter
from .translation import translate_record
from .types import BatchReport, FieldInfo, ItemContext, ProgressEvent, ProgressPhase, WorkItem

__version__ = "0.1.0"

__all__ = [
    "AdaptiveScheduler",
    "BatchReport",
    "CancellationGate",
    "ErrorKind",
    "FieldInfo",
    "ItemContext",
    "ProgressEvent",
    "ProgressPhase",
    "ProgressReporter",
    "TranslationCancelled",
    "TranslationError",
    "TranslationSettings",
    "WorkItem",
    "load_settings",
    "normalize_error",
    "translate_record",
]
