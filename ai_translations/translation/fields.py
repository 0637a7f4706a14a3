"""
Field translators.

Routes a field value to the translator for its editor type:

    - seo: title and description of an SEO object
    - structured_text: every text node of a structured-text document
    - file / gallery: alt and title metadata of each asset
    - rich_text / framed_single_block / frameless_single_block: every
      translatable field inside each block, dispatched by its own editor
    - everything else: the value as plain text

Prompt-driven providers stream plain text and every accumulated chunk is
reported as partial progress. Multi-segment values go through
``translate_array`` in one request per value.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Iterable, List, Mapping, Optional

from ..config import TranslationSettings
from ..providers.base import TranslationProvider
from ..types import FieldInfo, ItemContext
from ..utils.structured_text import extract_text_values, reconstruct_object
from .segments import translate_array

logger = logging.getLogger(__name__)

NO_CONTEXT = "Record context: No additional context available."
SEO_KEYS = ("title", "description")
FILE_META_KEYS = ("alt", "title")
MODULAR_CONTENT_EDITORS = ("rich_text", "framed_single_block", "frameless_single_block")
SINGLE_BLOCK_EDITORS = ("framed_single_block", "frameless_single_block")
BLOCK_RESERVED_KEYS = frozenset(
    {"itemTypeId", "blockModelId", "originalIndex", "type", "children", "itemId"}
)

BlockModels = Mapping[str, Iterable[FieldInfo]]


def build_prompt(
    template: str,
    value: str,
    from_locale: str,
    to_locale: str,
    record_context: str = "",
) -> str:
    return (
        template.replace("{fieldValue}", value)
        .replace("{fromLocale}", from_locale)
        .replace("{toLocale}", to_locale)
        .replace("{recordContext}", record_context or NO_CONTEXT)
    )


def editor_enabled(editor: str, translation_fields: Iterable[str]) -> bool:
    """
    Whether ``editor`` is switched on by the enabled editor list.

    Enabling "rich_text" covers every modular-content editor and enabling
    "file" covers "gallery".
    """
    enabled = set(translation_fields)
    if editor in enabled:
        return True
    if editor in MODULAR_CONTENT_EDITORS and "rich_text" in enabled:
        return True
    return editor == "gallery" and "file" in enabled


def strip_item_ids(value: Any) -> Any:
    """Copy ``value`` without ``itemId`` keys so blocks are created anew."""
    if isinstance(value, list):
        return [strip_item_ids(v) for v in value]
    if isinstance(value, dict):
        return {k: strip_item_ids(v) for k, v in value.items() if k != "itemId"}
    return value


class FieldTranslator:
    """
    Translate one field value with a provider.

    Args:
        provider: Provider used for every request
        settings: Prompt template, enabled editors and DeepL options
        block_models: Field metadata per block model id, used to translate
            the fields nested inside modular content
    """

    def __init__(
        self,
        provider: TranslationProvider,
        settings: TranslationSettings,
        block_models: Optional[BlockModels] = None,
    ) -> None:
        self._provider = provider
        self._settings = settings
        self._block_models: Dict[str, Dict[str, FieldInfo]] = {
            model_id: {f.api_key: f for f in fields}
            for model_id, fields in (block_models or {}).items()
        }

    @property
    def provider(self) -> TranslationProvider:
        return self._provider

    async def translate(
        self,
        value: Any,
        editor: str,
        from_locale: str,
        to_locale: str,
        context: Optional[ItemContext] = None,
        record_context: str = "",
    ) -> Any:
        """
        Translate ``value`` of a field using editor ``editor``.

        Empty values are returned unchanged, as are non-text values of
        plain-text editors.
        """
        if value is None or value == "" or value == [] or value == {}:
            return value

        logger.debug("Translating %s field %s -> %s", editor, from_locale, to_locale)
        if editor == "seo":
            return await self._translate_seo(value, from_locale, to_locale, context, record_context)
        if editor == "structured_text":
            return await self._translate_structured_text(
                value, from_locale, to_locale, context, record_context
            )
        if editor in ("file", "gallery"):
            return await self._translate_files(value, from_locale, to_locale, context, record_context)
        if editor in MODULAR_CONTENT_EDITORS:
            return await self._translate_blocks(
                value, editor, from_locale, to_locale, context, record_context
            )
        if not isinstance(value, str):
            logger.warning("Skipping non-text value of %s field (%s)", editor, type(value).__name__)
            return value
        return await self.translate_text(
            value,
            from_locale,
            to_locale,
            context,
            record_context,
            is_html=editor == "wysiwyg",
        )

    async def translate_text(
        self,
        text: str,
        from_locale: str,
        to_locale: str,
        context: Optional[ItemContext] = None,
        record_context: str = "",
        is_html: bool = False,
    ) -> str:
        if not text:
            return text
        gate = context.gate if context is not None else None

        if not self._provider.accepts_prompts:
            translated = await self.translate_segments(
                [text], from_locale, to_locale, context, record_context, is_html=is_html
            )
            result = translated[0] if translated else text
            if context is not None:
                context.report(result)
            return result

        prompt = build_prompt(self._settings.prompt, text, from_locale, to_locale, record_context)
        if not self._provider.streaming:
            result = await self._provider.complete_text(prompt, gate=gate)
            if context is not None:
                context.report(result)
            return result

        translated = ""
        async for chunk in self._provider.stream_text(prompt, gate=gate):
            translated += chunk
            if context is not None:
                context.report(translated)
        return translated

    async def translate_segments(
        self,
        segments: List[str],
        from_locale: str,
        to_locale: str,
        context: Optional[ItemContext] = None,
        record_context: str = "",
        is_html: bool = False,
    ) -> List[str]:
        if not segments:
            return []
        gate = context.gate if context is not None else None
        if gate is not None:
            gate.raise_if_cancelled()
        return await translate_array(
            self._provider,
            segments,
            from_locale,
            to_locale,
            gate=gate,
            is_html=is_html,
            formality=self._settings.deepl_formality,
            record_context=record_context,
        )

    async def _translate_seo(
        self,
        value: Dict[str, Any],
        from_locale: str,
        to_locale: str,
        context: Optional[ItemContext],
        record_context: str,
    ) -> Dict[str, Any]:
        result = dict(value)
        keys = [key for key in SEO_KEYS if isinstance(value.get(key), str) and value[key]]
        translated = await self.translate_segments(
            [value[key] for key in keys], from_locale, to_locale, context, record_context
        )
        for key, text in zip(keys, translated):
            result[key] = text
        return result

    async def _translate_structured_text(
        self,
        value: Any,
        from_locale: str,
        to_locale: str,
        context: Optional[ItemContext],
        record_context: str,
    ) -> Any:
        texts = extract_text_values(value)
        non_empty = [i for i, text in enumerate(texts) if text.strip()]
        translated = await self.translate_segments(
            [texts[i] for i in non_empty], from_locale, to_locale, context, record_context
        )
        for i, text in zip(non_empty, translated):
            texts[i] = text
        return reconstruct_object(value, texts)

    async def _translate_files(
        self,
        value: Any,
        from_locale: str,
        to_locale: str,
        context: Optional[ItemContext],
        record_context: str,
    ) -> Any:
        assets = value if isinstance(value, list) else [value]
        results = []
        for asset in assets:
            if not isinstance(asset, dict):
                results.append(asset)
                continue
            updated = dict(asset)
            keys = [key for key in FILE_META_KEYS if isinstance(asset.get(key), str) and asset[key]]
            translated = await self.translate_segments(
                [asset[key] for key in keys], from_locale, to_locale, context, record_context
            )
            for key, text in zip(keys, translated):
                updated[key] = text
            results.append(updated)
        return results if isinstance(value, list) else results[0]

    async def _translate_blocks(
        self,
        value: Any,
        editor: str,
        from_locale: str,
        to_locale: str,
        context: Optional[ItemContext],
        record_context: str,
    ) -> Any:
        single = editor in SINGLE_BLOCK_EDITORS or isinstance(value, dict)
        blocks = strip_item_ids([value] if single else value)
        if not isinstance(blocks, list):
            return value

        for block in blocks:
            if not isinstance(block, dict):
                continue
            model_id = block.get("itemTypeId") or block.get("blockModelId")
            if not model_id:
                continue
            fields = self._block_models.get(str(model_id))
            if fields is None:
                logger.warning("No field metadata for block model %s; left untranslated", model_id)
                continue

            for name in list(block):
                if name in BLOCK_RESERVED_KEYS:
                    continue
                nested = fields.get(name)
                if nested is None or not self._nested_enabled(nested):
                    continue
                if context is not None:
                    context.gate.raise_if_cancelled()
                    context.report(f"Translating block field: {name}...")
                block[name] = await self.translate(
                    block[name], nested.editor, from_locale, to_locale, context, record_context
                )

        return blocks[0] if single else blocks

    def _nested_enabled(self, field: FieldInfo) -> bool:
        if field.field_id and field.field_id in self._settings.excluded_field_ids:
            return False
        return editor_enabled(field.editor, self._settings.translation_fields)
