"""Tests for failure classification and model concurrency caps."""

from __future__ import annotations

import pytest

from ai_translations.errors import ErrorKind, TranslationError
from ai_translations.parallel.rate_limit import (
    MODEL_PROFILES,
    Verdict,
    cap_for_model,
    classify_error,
    profile_for_model,
)


class FakeApiError(Exception):
    def __init__(self, message: str, status: int | None = None, code: str | None = None) -> None:
        super().__init__(message)
        self.status = status
        self.code = code


class TestClassifyError:
    """Tests for classify_error."""

    def test_normalized_kinds(self) -> None:
        fatal = TranslationError("Wrong endpoint", kind=ErrorKind.FATAL_CONFIGURATION)
        limited = TranslationError("slow down", kind=ErrorKind.RATE_LIMITED)
        transient = TranslationError("connection reset")

        assert classify_error(fatal) is Verdict.FATAL
        assert classify_error(limited) is Verdict.RATE_LIMITED
        assert classify_error(transient) is Verdict.ORDINARY

    def test_status_429(self) -> None:
        assert classify_error(FakeApiError("nope", status=429)) is Verdict.RATE_LIMITED

    def test_status_code_attribute(self) -> None:
        exc = Exception("nope")
        exc.status_code = 429
        assert classify_error(exc) is Verdict.RATE_LIMITED

    @pytest.mark.parametrize(
        "code", ["rate_limit_exceeded", "rate_limit_error", "TOO_MANY_REQUESTS"]
    )
    def test_rate_limit_codes(self, code: str) -> None:
        assert classify_error(FakeApiError("nope", code=code)) is Verdict.RATE_LIMITED

    @pytest.mark.parametrize(
        "message",
        [
            "Rate limit reached for gpt-4o-mini",
            "429 Too Many Requests",
            "rate_limit exceeded, retry later",
        ],
    )
    def test_rate_limit_phrasing(self, message: str) -> None:
        assert classify_error(RuntimeError(message)) is Verdict.RATE_LIMITED

    def test_ordinary(self) -> None:
        assert classify_error(ValueError("could not parse response")) is Verdict.ORDINARY
        assert classify_error(FakeApiError("server error", status=500)) is Verdict.ORDINARY

    @pytest.mark.parametrize(
        "message",
        [
            "Record 429 has an invalid slug",
            "Upstream failure, request id req_84291ab",
            "HTTP 500 while fetching page 429",
        ],
    )
    def test_number_429_in_message_is_ordinary(self, message: str) -> None:
        assert classify_error(ValueError(message)) is Verdict.ORDINARY

    def test_raw_configuration_errors_need_normalization(self) -> None:
        # Only normalized errors can end a batch.
        assert classify_error(RuntimeError("Invalid API key")) is Verdict.ORDINARY


class TestModelCaps:
    """Tests for per-model concurrency caps."""

    @pytest.mark.parametrize(
        "model",
        [
            "gpt-4o-mini",
            "gpt-4.1-nano",
            "gemini-1.5-flash",
            "claude-3-5-haiku-latest",
            "gemini-2.0-flash-lite",
            "gpt-3.5-turbo",
        ],
    )
    def test_light_models(self, model: str) -> None:
        assert profile_for_model(model).name == "light"
        assert cap_for_model(model) == 6

    @pytest.mark.parametrize("model", ["gpt-4o", "claude-opus-4-1", "o3", ""])
    def test_heavy_models(self, model: str) -> None:
        assert profile_for_model(model).name == "heavy"
        assert cap_for_model(model) == 3

    def test_deepl_is_light(self) -> None:
        assert cap_for_model("", vendor="deepl") == 6
        assert cap_for_model("anything", vendor="DeepL") == 6

    def test_profiles(self) -> None:
        assert MODEL_PROFILES["light"].cap > MODEL_PROFILES["heavy"].cap
