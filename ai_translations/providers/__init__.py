"""Vendor providers for text translation."""

from .anthropic_provider import AnthropicProvider
from .base import TranslationProvider
from .deepl_provider import DeepLProvider
from .factory import clear_provider_cache, get_provider
from .openai_provider import OpenAIProvider

__all__ = [
    "TranslationProvider",
    "OpenAIProvider",
    "AnthropicProvider",
    "DeepLProvider",
    "get_provider",
    "clear_provider_cache",
]
