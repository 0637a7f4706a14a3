from __future__ import annotations

from abc import ABC, abstractmethod
from typing import AsyncIterator, Optional

from ..parallel.cancellation import CancellationGate


class TranslationProvider(ABC):
    """
    Vendor-agnostic text generation interface.

    Implementations must raise only ``TranslationError`` (see
    ``ai_translations.errors.normalize_error``) so the scheduler can classify
    failures without knowing vendor error shapes.

    Providers with ``accepts_prompts = False`` are driven through
    ``translate_array(segments, target_lang, source_lang, is_html, gate,
    formality)`` instead of prompts.
    """

    vendor: str = ""
    streaming: bool = True
    accepts_prompts: bool = True

    @abstractmethod
    def stream_text(
        self, prompt: str, gate: Optional[CancellationGate] = None
    ) -> AsyncIterator[str]:
        """Yield completion chunks for ``prompt``."""

    @abstractmethod
    async def complete_text(
        self, prompt: str, gate: Optional[CancellationGate] = None
    ) -> str:
        """Return the full completion for ``prompt``."""
