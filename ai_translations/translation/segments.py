"""
Array translation with placeholder protection.

Interpolation tokens ({{var}}, {var}, %s / %1$s, :slug) are swapped for
opaque ``⟦PH_n⟧`` markers before the text reaches a provider and restored
afterwards. ICU messages such as ``{count, plural, one {# item} other {# items}}``
stay in place so the model can translate the text inside them.

Array-capable providers (DeepL) receive the protected segments as-is; chat
models get a single prompt asking for a JSON array of the same length, and
their answer is parsed and repaired to that length.
"""

from __future__ import annotations

import json
import logging
import re
from typing import Any, List, Optional, Sequence, Tuple

from ..errors import TranslationError, normalize_error
from ..parallel.cancellation import CancellationGate
from ..providers.base import TranslationProvider

logger = logging.getLogger(__name__)

TokenMap = List[Tuple[str, str]]

_ICU_RE = re.compile(r"^\{[^,}]+,\s*(plural|select|selectordinal|number|date|time)\s*,")
PLACEHOLDER_PATTERNS = (
    re.compile(r"\{\{[^}]+\}\}"),
    re.compile(r"\{[^}]+\}"),
    re.compile(r"%[0-9]*\$?[sd]"),
    re.compile(r":[a-zA-Z_][a-zA-Z0-9_-]*"),
)

ARRAY_INSTRUCTION = (
    "Translate the following array of strings from {fromLocale} to {toLocale}. "
    "Return ONLY a valid JSON array of the exact same length, preserving "
    "placeholders like {foo}, {{bar}}, and tokens like ⟦PH_0⟧. For ICU message "
    "format (e.g., {count, plural, ...}), translate only the text content within "
    "the nested braces while preserving the ICU structure. Do not explain."
)


def _icu_end(text: str, start: int) -> Optional[int]:
    """End index of the balanced ICU message opening at ``start``, if any."""
    depth = 0
    for i in range(start, len(text)):
        if text[i] == "{":
            depth += 1
        elif text[i] == "}":
            depth -= 1
            if depth == 0:
                return i + 1 if _ICU_RE.match(text[start : i + 1]) else None
    return None


def _shield_icu(text: str) -> Tuple[str, TokenMap]:
    shielded: TokenMap = []
    out: List[str] = []
    i = 0
    while i < len(text):
        if text[i] == "{":
            end = _icu_end(text, i)
            if end is not None:
                marker = f"⟪ICU_{len(shielded)}⟫"
                shielded.append((marker, text[i:end]))
                out.append(marker)
                i = end
                continue
        out.append(text[i])
        i += 1
    return "".join(out), shielded


def tokenize(text: str) -> Tuple[str, TokenMap]:
    """
    Replace placeholders in ``text`` with numbered markers.

    Returns:
        The protected text and the (marker, original) pairs needed to undo it

    Example:
        >>> tokenize("Hi {{name}}, see :link")
        ('Hi ⟦PH_0⟧, see ⟦PH_1⟧', [('⟦PH_0⟧', '{{name}}'), ('⟦PH_1⟧', ':link')])
    """
    safe, shielded = _shield_icu(text)
    token_map: TokenMap = []

    def swap(match: "re.Match[str]") -> str:
        token = f"⟦PH_{len(token_map)}⟧"
        token_map.append((token, match.group(0)))
        return token

    for pattern in PLACEHOLDER_PATTERNS:
        safe = pattern.sub(swap, safe)

    for marker, original in shielded:
        safe = safe.replace(marker, original)
        token_map = [(token, orig.replace(marker, original)) for token, orig in token_map]
    return safe, token_map


def detokenize(text: str, token_map: TokenMap) -> str:
    for token, original in token_map:
        text = text.replace(token, original)
    return text


def build_array_prompt(
    segments: Sequence[str], from_locale: str, to_locale: str, record_context: str = ""
) -> str:
    instruction = ARRAY_INSTRUCTION.replace("{fromLocale}", from_locale).replace(
        "{toLocale}", to_locale
    )
    lines = [instruction]
    if record_context:
        lines.append(record_context)
    lines.append(json.dumps(list(segments), ensure_ascii=False))
    return "\n".join(lines)


def parse_json_array(raw: str) -> List[Any]:
    """
    Parse a model answer that should be a JSON array.

    Text around the outermost brackets (code fences, chatter) is ignored.
    An answer without any brackets yields an empty list.

    Raises:
        TranslationError: If the bracketed text is not valid JSON or not an array
    """
    text = (raw or "").strip()
    try:
        parsed = json.loads(text)
    except ValueError:
        start, end = text.find("["), text.rfind("]")
        if start < 0 or end <= start:
            logger.warning("Model answer has no JSON array; keeping source segments")
            return []
        try:
            parsed = json.loads(text[start : end + 1])
        except ValueError as exc:
            raise TranslationError(f"Model returned malformed JSON array: {exc}") from exc
    if not isinstance(parsed, list):
        raise TranslationError("Model did not return a JSON array")
    return parsed


def fit_to_length(translated: Sequence[Any], fallback: Sequence[str]) -> List[str]:
    """Pad or trim ``translated`` to ``fallback``'s length; non-strings fall back."""
    fixed: List[str] = []
    for i, source in enumerate(fallback):
        value = translated[i] if i < len(translated) else None
        fixed.append(value if isinstance(value, str) else source)
    if len(translated) != len(fallback):
        logger.warning(
            "Model returned %d segments for %d inputs", len(translated), len(fallback)
        )
    return fixed


async def translate_array(
    provider: TranslationProvider,
    segments: Sequence[str],
    from_locale: str,
    to_locale: str,
    gate: Optional[CancellationGate] = None,
    is_html: bool = False,
    formality: Optional[str] = None,
    record_context: str = "",
) -> List[str]:
    """
    Translate ``segments`` in order with a single provider request.

    Args:
        provider: Active provider; array-capable ones skip prompting
        segments: Texts to translate
        from_locale: Source locale (e.g. "en")
        to_locale: Target locale (e.g. "pt-BR")
        gate: Cancellation gate raced against the request
        is_html: Segments contain HTML markup (DeepL tag handling)
        formality: DeepL formality override
        record_context: Extra context appended to the chat prompt

    Returns:
        Translated segments with placeholders restored

    Raises:
        TranslationError: Normalized provider or parsing failure
    """
    if not segments:
        return []

    protected: List[str] = []
    token_maps: List[TokenMap] = []
    for segment in segments:
        safe, token_map = tokenize("" if segment is None else str(segment))
        protected.append(safe)
        token_maps.append(token_map)

    try:
        if not provider.accepts_prompts:
            out = await provider.translate_array(
                protected,
                to_locale,
                source_lang=from_locale or None,
                is_html=is_html,
                gate=gate,
                formality=formality,
            )
        else:
            prompt = build_array_prompt(protected, from_locale, to_locale, record_context)
            raw = await provider.complete_text(prompt, gate=gate)
            out = parse_json_array(raw)
        out = fit_to_length(out, protected)
    except Exception as exc:
        raise normalize_error(exc, vendor=provider.vendor) from exc

    logger.debug("Translated %d segments %s -> %s", len(segments), from_locale, to_locale)
    return [detokenize(text, token_map) for text, token_map in zip(out, token_maps)]
