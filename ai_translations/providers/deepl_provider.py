"""
DeepL provider.

DeepL is a translation API rather than a prompt-driven model, so field
translators call ``translate_array`` directly. Requests are sent in batches
of at most ``BATCH_SIZE`` segments; the blocking ``requests`` call runs in
the default executor.
"""

from __future__ import annotations

import asyncio
import logging
from functools import partial
from typing import AsyncIterator, List, Optional

import requests

from ..config import DEEPL_FORMALITIES
from ..errors import DEEPL_FREE_KEY_SUFFIX, TranslationError, normalize_error
from ..parallel.cancellation import CancellationGate
from .base import TranslationProvider

logger = logging.getLogger(__name__)

FREE_BASE_URL = "https://api-free.deepl.com"
PRO_BASE_URL = "https://api.deepl.com"
BATCH_SIZE = 45
REQUEST_TIMEOUT = 60.0
IGNORE_TAGS = ("notranslate", "ph")
NON_SPLITTING_TAGS = ("a", "code", "pre", "strong", "em", "ph", "notranslate")


def resolve_base_url(api_key: str, endpoint: str = "auto") -> str:
    """
    Pick the DeepL endpoint.

    An explicit "free" or "pro" setting wins; "auto" uses the Free endpoint
    for keys ending in ":fx".
    """
    if endpoint == "free":
        return FREE_BASE_URL
    if endpoint == "pro":
        return PRO_BASE_URL
    return FREE_BASE_URL if api_key.lower().endswith(DEEPL_FREE_KEY_SUFFIX) else PRO_BASE_URL


FORMALITY_SUPPORTED = frozenset({"DE", "FR", "IT", "ES", "NL", "PL", "PT-PT", "PT-BR"})

# Checked in order; the first matching locale prefix wins.
_LANGUAGE_PREFIXES = (
    ("zh", "ZH"),
    ("pt-br", "PT-BR"),
    ("pt-pt", "PT-PT"),
    ("en-us", "EN-US"),
    ("en-gb", "EN-GB"),
    ("en", "EN"),
    ("es", "ES"),
    ("fr", "FR"),
    ("it", "IT"),
    ("de", "DE"),
    ("nl", "NL"),
    ("pl", "PL"),
    ("ja", "JA"),
    ("ru", "RU"),
)


def deepl_language(locale: str, mode: str = "target") -> str:
    """
    Map a CMS locale such as "pt", "zh-CN" or "en_GB" onto a DeepL code.

    Chinese scripts collapse to ZH and bare "pt" means European Portuguese.
    Unknown locales fall back to their upper-cased language part, or EN if
    that is not a two-letter code. Source languages never carry a regional
    variant.

    Example:
        >>> deepl_language("pt"), deepl_language("zh-CN"), deepl_language("en-us", "source")
        (PT-PT, ZH, EN)
    """
    lc = locale.replace("_", "-").lower()
    if not lc:
        code = "EN"
    elif lc == "pt":
        code = "PT-PT"
    else:
        code = next((c for prefix, c in _LANGUAGE_PREFIXES if lc.startswith(prefix)), "")
        if not code:
            language = lc.split("-")[0].upper()
            code = language if len(language) == 2 else "EN"
    if mode == "source":
        return code.split("-")[0]
    return code


def is_formality_supported(target_lang: str) -> bool:
    return target_lang.upper() in FORMALITY_SUPPORTED


class DeepLProvider(TranslationProvider):
    vendor = "deepl"
    streaming = False
    accepts_prompts = False

    def __init__(
        self,
        api_key: str,
        endpoint: str = "auto",
        proxy_url: str = "",
        formality: str = "default",
        preserve_formatting: bool = True,
        session: Optional[requests.Session] = None,
    ) -> None:
        if not api_key and not proxy_url:
            raise ValueError("DEEPL_API_KEY environment variable not set")
        if formality not in DEEPL_FORMALITIES:
            raise ValueError(f"Unknown DeepL formality: {formality}")
        self._formality = formality
        self._preserve_formatting = preserve_formatting
        self._api_key = api_key
        self._base_url = resolve_base_url(api_key, endpoint)
        self._proxy_url = proxy_url.rstrip("/")
        self._session = session or requests.Session()

    @property
    def base_url(self) -> str:
        return self._base_url

    async def stream_text(
        self, prompt: str, gate: Optional[CancellationGate] = None
    ) -> AsyncIterator[str]:
        raise TranslationError(
            "DeepL does not accept free-form prompts; use translate_array()",
            vendor=self.vendor,
        )
        yield ""  # pragma: no cover

    async def complete_text(
        self, prompt: str, gate: Optional[CancellationGate] = None
    ) -> str:
        raise TranslationError(
            "DeepL does not accept free-form prompts; use translate_array()",
            vendor=self.vendor,
        )

    async def translate_array(
        self,
        segments: List[str],
        target_lang: str,
        source_lang: Optional[str] = None,
        is_html: bool = False,
        gate: Optional[CancellationGate] = None,
        formality: Optional[str] = None,
    ) -> List[str]:
        """
        Translate ``segments`` preserving order.

        Segments missing from DeepL's answer fall back to the source text.
        ``formality`` overrides the provider default for this call and is
        dropped for target languages DeepL has no formal register for.
        """
        if not segments:
            return []
        loop = asyncio.get_running_loop()
        out: List[str] = []
        for start in range(0, len(segments), BATCH_SIZE):
            chunk = segments[start : start + BATCH_SIZE]
            call = loop.run_in_executor(
                None,
                partial(
                    self._post,
                    chunk,
                    target_lang,
                    source_lang,
                    is_html,
                    formality or self._formality,
                ),
            )
            translated = await gate.run_or_abort(call) if gate else await call
            out.extend(
                translated[i] if i < len(translated) else chunk[i]
                for i in range(len(chunk))
            )
        return out

    def _post(
        self,
        segments: List[str],
        target_lang: str,
        source_lang: Optional[str],
        is_html: bool,
        formality: str = "default",
    ) -> List[str]:
        url = (self._proxy_url or self._base_url) + "/v2/translate"
        headers = {"content-type": "application/json"}
        if not self._proxy_url:
            headers["Authorization"] = f"DeepL-Auth-Key {self._api_key}"
        target = deepl_language(target_lang)
        body = {
            "text": segments,
            "target_lang": target,
            "preserve_formatting": "1" if self._preserve_formatting else "0",
        }
        if source_lang:
            body["source_lang"] = deepl_language(source_lang, mode="source")
        if is_html:
            body["tag_handling"] = "html"
            body["ignore_tags"] = ",".join(IGNORE_TAGS)
            body["non_splitting_tags"] = ",".join(NON_SPLITTING_TAGS)
        if formality != "default" and is_formality_supported(target):
            body["formality"] = formality

        try:
            response = self._session.post(
                url, json=body, headers=headers, timeout=REQUEST_TIMEOUT
            )
            if not response.ok:
                message = response.reason or f"HTTP {response.status_code}"
                try:
                    payload = response.json()
                    message = payload.get("message") or message
                except ValueError:
                    pass
                raise requests.HTTPError(f"DeepL: {message}", response=response)
            data = response.json()
        except requests.RequestException as exc:
            raise normalize_error(
                exc,
                vendor=self.vendor,
                base_url=self._base_url,
                api_key=self._api_key,
            ) from exc

        logger.debug("DeepL translated %d segments", len(segments))
        return [str(item.get("text", "")) for item in data.get("translations", [])]
