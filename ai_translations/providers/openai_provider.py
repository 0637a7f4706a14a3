"""
OpenAI provider.

Supports both OpenAI and Azure OpenAI through environment configuration.

Environment Variables:
    For Azure OpenAI:
        AZURE_OPENAI_API_KEY: Your Azure OpenAI API key
        AZURE_OPENAI_ENDPOINT: Your Azure endpoint (e.g., https://your-resource.openai.azure.com)
        AZURE_OPENAI_API_VERSION: API version (default: 2024-02-15-preview)
        AZURE_OPENAI_DEPLOYMENT: Deployment name to use instead of the model name
"""

from __future__ import annotations

import logging
import os
from typing import AsyncIterator, Optional

import openai

from ..errors import TranslationError, normalize_error
from ..parallel.cancellation import CancellationGate
from .base import TranslationProvider

logger = logging.getLogger(__name__)


def is_azure_configured() -> bool:
    """Check if Azure OpenAI is configured via environment variables."""
    return bool(
        os.getenv("AZURE_OPENAI_API_KEY")
        and os.getenv("AZURE_OPENAI_ENDPOINT")
    )


def build_async_client(api_key: str) -> "openai.AsyncOpenAI | openai.AsyncAzureOpenAI":
    """
    Create the async client, preferring Azure OpenAI when configured.

    Raises:
        ValueError: If neither an API key nor Azure settings are available
    """
    if is_azure_configured():
        endpoint = os.getenv("AZURE_OPENAI_ENDPOINT")
        logger.info("Using Azure OpenAI client: %s", endpoint)
        return openai.AsyncAzureOpenAI(
            azure_endpoint=endpoint,
            api_key=os.getenv("AZURE_OPENAI_API_KEY"),
            api_version=os.getenv("AZURE_OPENAI_API_VERSION", "2024-02-15-preview"),
        )
    if not api_key:
        raise ValueError(
            "No OpenAI configuration found. Please set either:\n"
            "  - OPENAI_API_KEY for OpenAI, or\n"
            "  - AZURE_OPENAI_API_KEY and AZURE_OPENAI_ENDPOINT for Azure OpenAI"
        )
    return openai.AsyncOpenAI(api_key=api_key)


class OpenAIProvider(TranslationProvider):
    vendor = "openai"
    streaming = True

    def __init__(self, api_key: str, model: str, client=None) -> None:
        self._client = client or build_async_client(api_key)
        if is_azure_configured():
            model = os.getenv("AZURE_OPENAI_DEPLOYMENT", model)
        self._model = model

    @property
    def model(self) -> str:
        return self._model

    async def stream_text(
        self, prompt: str, gate: Optional[CancellationGate] = None
    ) -> AsyncIterator[str]:
        try:
            request = self._client.chat.completions.create(
                model=self._model,
                messages=[{"role": "user", "content": prompt}],
                stream=True,
            )
            stream = await gate.run_or_abort(request) if gate else await request
            async for chunk in stream:
                if gate is not None and gate.is_cancelled():
                    await stream.close()
                    gate.raise_if_cancelled()
                if not chunk.choices:
                    continue
                content = chunk.choices[0].delta.content
                if content:
                    yield content
        except TranslationError:
            raise
        except Exception as exc:
            raise normalize_error(exc, vendor=self.vendor) from exc

    async def complete_text(
        self, prompt: str, gate: Optional[CancellationGate] = None
    ) -> str:
        try:
            request = self._client.chat.completions.create(
                model=self._model,
                messages=[{"role": "user", "content": prompt}],
                stream=False,
            )
            response = await gate.run_or_abort(request) if gate else await request
        except TranslationError:
            raise
        except Exception as exc:
            raise normalize_error(exc, vendor=self.vendor) from exc
        if not response.choices:
            return ""
        return response.choices[0].message.content or ""
