from __future__ import annotations

import logging
from typing import Dict

from ..config import VENDORS, TranslationSettings
from .anthropic_provider import AnthropicProvider
from .base import TranslationProvider
from .deepl_provider import DeepLProvider
from .openai_provider import OpenAIProvider

logger = logging.getLogger(__name__)

# Providers hold HTTP clients; reuse them across batches with the same settings.
_cache: Dict[str, TranslationProvider] = {}


def get_provider(settings: TranslationSettings) -> TranslationProvider:
    """
    Get (or create) the provider selected by ``settings.vendor``.

    Raises:
        ValueError: If the vendor is unknown or its credentials are missing
    """
    vendor = settings.vendor
    if vendor not in VENDORS:
        raise ValueError(f"Unknown vendor: {vendor}")
    if vendor == "deepl":
        key = (
            f"deepl:{settings.deepl_api_key}:{settings.deepl_endpoint}:{settings.deepl_proxy_url}"
            f":{settings.deepl_formality}:{settings.deepl_preserve_formatting}"
        )
    else:
        key = f"{vendor}:{settings.api_key()}:{settings.model}"

    cached = _cache.get(key)
    if cached is not None:
        return cached

    if vendor == "openai":
        provider: TranslationProvider = OpenAIProvider(settings.openai_api_key, settings.model)
    elif vendor == "anthropic":
        provider = AnthropicProvider(settings.anthropic_api_key, settings.model)
    else:
        provider = DeepLProvider(
            settings.deepl_api_key,
            endpoint=settings.deepl_endpoint,
            proxy_url=settings.deepl_proxy_url,
            formality=settings.deepl_formality,
            preserve_formatting=settings.deepl_preserve_formatting,
        )

    logger.info("Created %s provider", vendor)
    _cache[key] = provider
    return provider


def clear_provider_cache() -> None:
    _cache.clear()
