from __future__ import annotations

import pytest

from ai_translations.config import TranslationSettings
from ai_translations.providers.factory import clear_provider_cache

from fakes import TEST_PROMPT, FakeProvider


@pytest.fixture
def settings() -> TranslationSettings:
    return TranslationSettings(vendor="openai", model="gpt-4o-mini", prompt=TEST_PROMPT)


@pytest.fixture
def provider() -> FakeProvider:
    return FakeProvider()


@pytest.fixture(autouse=True)
def _fresh_provider_cache():
    clear_provider_cache()
    yield
    clear_provider_cache()
