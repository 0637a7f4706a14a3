"""
Rate-limit classification and concurrency caps for parallel translation.

Decides, for a failed work item, whether the provider is pushing back
(retry with a smaller concurrency ceiling), whether the batch cannot make
progress at all (fatal configuration), or whether it was an ordinary
one-off failure. Also holds the static per-model concurrency caps used to
seed the adaptive scheduler.

Profile caps:
    - light: small/fast models (mini, nano, flash, haiku, DeepL) -> 6
    - heavy: everything else -> 3
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from enum import Enum

from ..errors import ErrorKind, TranslationError

logger = logging.getLogger(__name__)


class Verdict(Enum):
    """Outcome of classifying an item failure."""

    FATAL = "fatal"
    RATE_LIMITED = "rate_limited"
    ORDINARY = "ordinary"


RATE_LIMIT_CODES = frozenset(
    {
        "rate_limit_exceeded",
        "rate_limit_error",
        "rate_limited",
        "too_many_requests",
    }
)
_RATE_LIMIT_MESSAGE_RE = re.compile(
    r"(rate[\s_-]?limit|too many requests)", re.IGNORECASE
)


def classify_error(error: BaseException) -> Verdict:
    """
    Classify an item failure.

    Normalized errors are trusted first; anything else is inspected for an
    HTTP 429 status, a recognized rate-limit code, or rate-limit phrasing.
    Only normalized ``FATAL_CONFIGURATION`` errors are ever fatal.

    Args:
        error: Exception raised by a work item

    Returns:
        Verdict for the scheduler
    """
    if isinstance(error, TranslationError):
        if error.kind is ErrorKind.FATAL_CONFIGURATION:
            return Verdict.FATAL
        if error.kind is ErrorKind.RATE_LIMITED:
            return Verdict.RATE_LIMITED

    status = getattr(error, "status", None)
    if status is None:
        status = getattr(error, "status_code", None)
    if status == 429:
        return Verdict.RATE_LIMITED

    code = getattr(error, "code", None)
    if isinstance(code, str) and code.lower() in RATE_LIMIT_CODES:
        return Verdict.RATE_LIMITED

    if _RATE_LIMIT_MESSAGE_RE.search(str(error)):
        return Verdict.RATE_LIMITED

    return Verdict.ORDINARY


@dataclass(frozen=True)
class ConcurrencyProfile:
    """Static concurrency bound for a class of models."""

    name: str
    cap: int


MODEL_PROFILES = {
    "light": ConcurrencyProfile(name="light", cap=6),
    "heavy": ConcurrencyProfile(name="heavy", cap=3),
}

_LIGHT_MODEL_MARKERS: tuple[str, ...] = (
    "mini",
    "nano",
    "flash",
    "haiku",
    "lite",
    "gpt-3.5",
)
_LIGHT_VENDORS = frozenset({"deepl"})


def profile_for_model(model: str, vendor: str | None = None) -> ConcurrencyProfile:
    """
    Resolve the concurrency profile of a model.

    Args:
        model: Model name as configured (e.g. "gpt-4o-mini")
        vendor: Optional vendor id; some vendors are always light

    Returns:
        The matching ConcurrencyProfile
    """
    if vendor is not None and vendor.lower() in _LIGHT_VENDORS:
        return MODEL_PROFILES["light"]
    name = (model or "").lower()
    if any(marker in name for marker in _LIGHT_MODEL_MARKERS):
        return MODEL_PROFILES["light"]
    return MODEL_PROFILES["heavy"]


def cap_for_model(model: str, vendor: str | None = None) -> int:
    """
    Concurrency cap for a batch targeting ``model``.

    Example:
        >>> cap_for_model("gpt-4o-mini")
        6
        >>> cap_for_model("claude-opus-4")
        3
    """
    profile = profile_for_model(model, vendor)
    logger.debug("Model %s resolved to %s profile (cap=%d)", model, profile.name, profile.cap)
    return profile.cap
