from __future__ import annotations

from typing import AsyncIterator, Optional

import anthropic

from ..errors import TranslationError, normalize_error
from ..parallel.cancellation import CancellationGate
from .base import TranslationProvider

DEFAULT_MAX_TOKENS = 4096


class AnthropicProvider(TranslationProvider):
    """Claude models through the Anthropic Messages API."""

    vendor = "anthropic"
    streaming = True

    def __init__(
        self,
        api_key: str,
        model: str,
        max_tokens: int = DEFAULT_MAX_TOKENS,
        client=None,
    ) -> None:
        if client is None and not api_key:
            raise ValueError("ANTHROPIC_API_KEY environment variable not set")
        self._client = client or anthropic.AsyncAnthropic(api_key=api_key)
        self._model = model
        self._max_tokens = max_tokens

    @property
    def model(self) -> str:
        return self._model

    async def stream_text(
        self, prompt: str, gate: Optional[CancellationGate] = None
    ) -> AsyncIterator[str]:
        try:
            async with self._client.messages.stream(
                model=self._model,
                max_tokens=self._max_tokens,
                messages=[{"role": "user", "content": prompt}],
            ) as stream:
                async for text in stream.text_stream:
                    if gate is not None:
                        gate.raise_if_cancelled()
                    if text:
                        yield text
        except TranslationError:
            raise
        except Exception as exc:
            raise normalize_error(exc, vendor=self.vendor) from exc

    async def complete_text(
        self, prompt: str, gate: Optional[CancellationGate] = None
    ) -> str:
        try:
            request = self._client.messages.create(
                model=self._model,
                max_tokens=self._max_tokens,
                messages=[{"role": "user", "content": prompt}],
            )
            response = await gate.run_or_abort(request) if gate else await request
        except TranslationError:
            raise
        except Exception as exc:
            raise normalize_error(exc, vendor=self.vendor) from exc
        return "".join(
            block.text for block in response.content if getattr(block, "type", "") == "text"
        )
