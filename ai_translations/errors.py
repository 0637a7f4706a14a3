"""
Error normalization for translation providers.

Every vendor raises its own exception shapes (OpenAI SDK errors, Anthropic SDK
errors, raw HTTP failures from DeepL). Providers funnel all of them through
``normalize_error`` so the scheduler only ever sees ``TranslationError`` with
one of a small closed set of ``ErrorKind`` values.
"""

from __future__ import annotations

import asyncio
from enum import Enum
from typing import Any, Optional

import anthropic
import openai
import requests


class ErrorKind(Enum):
    RATE_LIMITED = "rate_limited"
    FATAL_CONFIGURATION = "fatal_configuration"
    TRANSIENT_ITEM_FAILURE = "transient_item_failure"
    CANCELLED = "cancelled"


class TranslationError(Exception):
    """Normalized provider failure."""

    def __init__(
        self,
        message: str,
        kind: ErrorKind = ErrorKind.TRANSIENT_ITEM_FAILURE,
        status: Optional[int] = None,
        code: Optional[str] = None,
        vendor: Optional[str] = None,
        hint: Optional[str] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.kind = kind
        self.status = status
        self.code = code
        self.vendor = vendor
        self.hint = hint

    def __str__(self) -> str:
        if self.hint:
            return f"{self.message} {self.hint}"
        return self.message

    @property
    def is_fatal(self) -> bool:
        return self.kind is ErrorKind.FATAL_CONFIGURATION


class TranslationCancelled(TranslationError):
    """Raised by work that observed the cancellation gate mid-operation."""

    def __init__(self, message: str = "Translation cancelled") -> None:
        super().__init__(message, kind=ErrorKind.CANCELLED)


_FATAL_PATTERNS: tuple[str, ...] = (
    "wrong endpoint",
    "must be verified to stream",
    "organization must be verified",
    "insufficient_quota",
    "invalid api key",
    "incorrect api key",
    "model_not_found",
    "does not exist or you do not have access",
)
_RATE_LIMIT_PATTERNS: tuple[str, ...] = (
    "rate limit",
    "rate_limit",
    "too many requests",
)
_FATAL_STATUSES = {401, 403}
DEEPL_FREE_KEY_SUFFIX = ":fx"


def normalize_error(
    exc: BaseException,
    vendor: Optional[str] = None,
    base_url: Optional[str] = None,
    api_key: Optional[str] = None,
) -> TranslationError:
    """
    Map an arbitrary provider exception onto a ``TranslationError``.

    Args:
        exc: Exception raised by a vendor client or HTTP call
        vendor: Vendor id used for messages and hints
        base_url: Endpoint in use, needed for the DeepL endpoint hint
        api_key: API key in use, only inspected for the DeepL ``:fx`` suffix

    Returns:
        The normalized error (``exc`` itself if it is already normalized)
    """
    if isinstance(exc, TranslationError):
        return exc
    if isinstance(exc, asyncio.CancelledError):
        return TranslationCancelled()

    status = _status_of(exc)
    code = _code_of(exc)
    message = str(exc) or exc.__class__.__name__
    haystack = f"{code or ''} {message}".lower()

    pattern = _first_match(haystack, _FATAL_PATTERNS)
    if pattern is not None or status in _FATAL_STATUSES:
        hint = None
        if pattern == "wrong endpoint":
            hint = deepl_endpoint_hint(base_url or "", api_key or "")
        elif pattern in ("must be verified to stream", "organization must be verified"):
            hint = (
                "Streaming for this model requires a verified organization. "
                "Verify the organization or pick a model that allows streaming."
            )
        elif status in _FATAL_STATUSES:
            hint = "Check the API key and the account permissions for this model."
        return TranslationError(
            message,
            kind=ErrorKind.FATAL_CONFIGURATION,
            status=status,
            code=code,
            vendor=vendor,
            hint=hint,
        )

    if (
        isinstance(exc, (openai.RateLimitError, anthropic.RateLimitError))
        or status == 429
        or _first_match(haystack, _RATE_LIMIT_PATTERNS) is not None
    ):
        return TranslationError(
            message,
            kind=ErrorKind.RATE_LIMITED,
            status=status or 429,
            code=code,
            vendor=vendor,
        )

    return TranslationError(
        message,
        kind=ErrorKind.TRANSIENT_ITEM_FAILURE,
        status=status,
        code=code,
        vendor=vendor,
    )


def deepl_endpoint_hint(base_url: str, api_key: str) -> str:
    is_free_key = api_key.lower().endswith(DEEPL_FREE_KEY_SUFFIX)
    using_free = "api-free.deepl.com" in base_url.lower()
    if is_free_key and not using_free:
        return (
            "Your key looks like a Free key (:fx) but the Pro endpoint is configured. "
            "Switch the DeepL endpoint to 'free' (api-free.deepl.com)."
        )
    if not is_free_key and using_free:
        return (
            "A Pro key is being used with the Free endpoint. "
            "Switch the DeepL endpoint to 'pro' (api.deepl.com)."
        )
    return (
        "Ensure the endpoint matches your plan: api-free.deepl.com for Free (:fx) "
        "keys, api.deepl.com for Pro."
    )


def _status_of(exc: BaseException) -> Optional[int]:
    for attr in ("status_code", "status"):
        value = getattr(exc, attr, None)
        if isinstance(value, int):
            return value
    if isinstance(exc, requests.HTTPError) and exc.response is not None:
        return exc.response.status_code
    return None


def _code_of(exc: BaseException) -> Optional[str]:
    code: Any = getattr(exc, "code", None)
    if code is None:
        body = getattr(exc, "body", None)
        if isinstance(body, dict):
            inner = body.get("error", body)
            if isinstance(inner, dict):
                code = inner.get("code") or inner.get("type")
    return str(code) if code is not None else None


def _first_match(haystack: str, patterns: tuple[str, ...]) -> Optional[str]:
    for pattern in patterns:
        if pattern in haystack:
            return pattern
    return None
