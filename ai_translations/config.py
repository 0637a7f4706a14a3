"""
Settings for AI translation batches.

Settings come either from environment variables (optionally seeded from a
``.env`` file) or from a YAML file.

Environment Variables:
    AI_TRANSLATIONS_VENDOR: openai | anthropic | deepl (default: openai)
    AI_TRANSLATIONS_MODEL: Model name for LLM vendors (default: gpt-4o-mini)
    OPENAI_API_KEY / ANTHROPIC_API_KEY / DEEPL_API_KEY: Vendor credentials
    AI_TRANSLATIONS_DEEPL_ENDPOINT: auto | free | pro (default: auto)
    AI_TRANSLATIONS_DEEPL_PROXY_URL: Optional proxy in front of DeepL
    AI_TRANSLATIONS_DEEPL_FORMALITY: default | more | less (default: default)
    AI_TRANSLATIONS_DEEPL_PRESERVE_FORMATTING: Ask DeepL to keep formatting (default: 1)
    AI_TRANSLATIONS_FIELDS: Comma-separated editor types to translate
    AI_TRANSLATIONS_EXCLUDED_FIELDS: Comma-separated field ids to skip
    AI_TRANSLATIONS_MAX_CONCURRENCY: Override for the model-derived cap
    AI_TRANSLATIONS_MAX_RETRIES: Rate-limit retries per item (default: 3)
    AI_TRANSLATIONS_BASE_DELAY: Backoff unit in seconds (default: 1.0)
    AI_TRANSLATIONS_PROGRESS_INTERVAL: Minimum seconds between partial updates
    AI_TRANSLATIONS_DEBUG: Enable debug logging
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml
from dotenv import load_dotenv

from .parallel.progress import DEFAULT_MIN_INTERVAL
from .parallel.rate_limit import cap_for_model
from .parallel.scheduler import DEFAULT_BASE_DELAY, MAX_RETRIES

VENDORS = ("openai", "anthropic", "deepl")
DEEPL_ENDPOINTS = ("auto", "free", "pro")
DEEPL_FORMALITIES = ("default", "more", "less")

DEFAULT_PROMPT = (
    "Translate the following text from {fromLocale} to {toLocale}. "
    "Return only the translated text, preserving formatting and placeholders.\n\n"
    "{recordContext}\n\n"
    "Text:\n{fieldValue}"
)

DEFAULT_TRANSLATION_FIELDS = [
    "single_line",
    "markdown",
    "textarea",
    "wysiwyg",
    "slug",
    "seo",
    "structured_text",
    "file",
]


@dataclass
class TranslationSettings:
    vendor: str = "openai"
    model: str = "gpt-4o-mini"
    openai_api_key: str = ""
    anthropic_api_key: str = ""
    deepl_api_key: str = ""
    deepl_endpoint: str = "auto"
    deepl_proxy_url: str = ""
    deepl_formality: str = "default"
    deepl_preserve_formatting: bool = True
    prompt: str = DEFAULT_PROMPT
    translation_fields: List[str] = field(
        default_factory=lambda: list(DEFAULT_TRANSLATION_FIELDS)
    )
    excluded_field_ids: List[str] = field(default_factory=list)
    max_concurrency: Optional[int] = None
    max_retries: int = MAX_RETRIES
    base_delay: float = DEFAULT_BASE_DELAY
    progress_interval: float = DEFAULT_MIN_INTERVAL
    debug: bool = False
    extra: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_env(cls, dotenv_path: str | Path | None = None) -> "TranslationSettings":
        """Load settings from the environment, reading ``.env`` first."""
        load_dotenv(dotenv_path)
        max_concurrency = os.getenv("AI_TRANSLATIONS_MAX_CONCURRENCY", "").strip()
        settings = cls(
            vendor=os.getenv("AI_TRANSLATIONS_VENDOR", "openai").strip().lower(),
            model=os.getenv("AI_TRANSLATIONS_MODEL", "gpt-4o-mini").strip(),
            openai_api_key=os.getenv("OPENAI_API_KEY", ""),
            anthropic_api_key=os.getenv("ANTHROPIC_API_KEY", ""),
            deepl_api_key=os.getenv("DEEPL_API_KEY", ""),
            deepl_endpoint=os.getenv("AI_TRANSLATIONS_DEEPL_ENDPOINT", "auto").strip().lower(),
            deepl_proxy_url=os.getenv("AI_TRANSLATIONS_DEEPL_PROXY_URL", "").strip(),
            deepl_formality=os.getenv("AI_TRANSLATIONS_DEEPL_FORMALITY", "default").strip().lower(),
            deepl_preserve_formatting=_env_flag("AI_TRANSLATIONS_DEEPL_PRESERVE_FORMATTING", True),
            prompt=os.getenv("AI_TRANSLATIONS_PROMPT", DEFAULT_PROMPT),
            translation_fields=_split_csv(
                os.getenv("AI_TRANSLATIONS_FIELDS", ",".join(DEFAULT_TRANSLATION_FIELDS))
            ),
            excluded_field_ids=_split_csv(os.getenv("AI_TRANSLATIONS_EXCLUDED_FIELDS", "")),
            max_concurrency=int(max_concurrency) if max_concurrency else None,
            max_retries=int(os.getenv("AI_TRANSLATIONS_MAX_RETRIES", str(MAX_RETRIES))),
            base_delay=float(
                os.getenv("AI_TRANSLATIONS_BASE_DELAY", str(DEFAULT_BASE_DELAY))
            ),
            progress_interval=float(
                os.getenv("AI_TRANSLATIONS_PROGRESS_INTERVAL", str(DEFAULT_MIN_INTERVAL))
            ),
            debug=_env_flag("AI_TRANSLATIONS_DEBUG", False),
        )
        settings.validate()
        return settings

    def validate(self) -> None:
        """Raise ValueError on inconsistent settings."""
        if self.vendor not in VENDORS:
            raise ValueError(f"Unknown vendor: {self.vendor}. Must be one of {list(VENDORS)}")
        if self.deepl_endpoint not in DEEPL_ENDPOINTS:
            raise ValueError(
                f"Unknown DeepL endpoint: {self.deepl_endpoint}. "
                f"Must be one of {list(DEEPL_ENDPOINTS)}"
            )
        if self.deepl_formality not in DEEPL_FORMALITIES:
            raise ValueError(
                f"Unknown DeepL formality: {self.deepl_formality}. "
                f"Must be one of {list(DEEPL_FORMALITIES)}"
            )
        if self.max_concurrency is not None and self.max_concurrency < 1:
            raise ValueError("max_concurrency must be a positive integer")
        if self.max_retries < 0:
            raise ValueError("max_retries must be >= 0")
        if self.base_delay < 0:
            raise ValueError("base_delay must be >= 0")
        if self.progress_interval < 0:
            raise ValueError("progress_interval must be >= 0")

    def api_key(self) -> str:
        return {
            "openai": self.openai_api_key,
            "anthropic": self.anthropic_api_key,
            "deepl": self.deepl_api_key,
        }[self.vendor]

    def concurrency_cap(self) -> int:
        """Explicit override if set, otherwise the model profile cap."""
        if self.max_concurrency is not None:
            return self.max_concurrency
        return cap_for_model(self.model, self.vendor)


_KNOWN_KEYS = set(TranslationSettings.__dataclass_fields__) - {"extra"}


def load_settings(path: str | Path) -> TranslationSettings:
    """
    Load settings from a YAML file.

    Unknown keys are kept in ``extra``; missing API keys fall back to the
    usual vendor environment variables.
    """
    data = yaml.safe_load(Path(path).read_text()) or {}
    known = {k: v for k, v in data.items() if k in _KNOWN_KEYS}
    extra = {k: v for k, v in data.items() if k not in _KNOWN_KEYS}
    for key, env_var in (
        ("openai_api_key", "OPENAI_API_KEY"),
        ("anthropic_api_key", "ANTHROPIC_API_KEY"),
        ("deepl_api_key", "DEEPL_API_KEY"),
    ):
        known.setdefault(key, os.getenv(env_var, ""))
    settings = TranslationSettings(**known, extra=extra)
    settings.vendor = settings.vendor.lower()
    settings.validate()
    return settings


def _split_csv(raw: str) -> List[str]:
    return [part.strip() for part in raw.split(",") if part.strip()]


def _env_flag(name: str, default: bool) -> bool:
    raw = os.getenv(name, "").strip().lower()
    if not raw:
        return default
    return raw in ("1", "true", "yes")
