"""
Record-level translation.

Turns a record (a mapping of field api keys to per-locale values) into one
work item per eligible (field, target locale) pair and runs them through the
adaptive scheduler. Each work item translates its field, yields one loop turn
so pending progress is delivered, re-checks cancellation, and only then
commits the translated value into the record.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional

from ..config import TranslationSettings
from ..parallel.cancellation import CancellationGate
from ..parallel.progress import ProgressReporter, ProgressSink
from ..parallel.scheduler import AdaptiveScheduler
from ..providers.base import TranslationProvider
from ..providers.factory import get_provider
from ..tracking.mlflow_logger import MlflowLogger
from ..types import BatchReport, FieldInfo, ItemContext, WorkItem
from .fields import BlockModels, FieldTranslator, editor_enabled

logger = logging.getLogger(__name__)

CONTEXT_KEYWORDS = ("title", "name", "content", "description")
CONTEXT_MAX_CHARS = 300

CommitFn = Callable[[str, str, Any], None]


def is_field_translatable(field: FieldInfo, settings: TranslationSettings) -> bool:
    """
    Whether a field takes part in record translation.

    The field must be localized, not excluded by id, and its editor must be
    enabled in ``settings.translation_fields``; enabling "rich_text" also
    enables the single-block editors and enabling "file" enables "gallery".
    """
    if not field.localized:
        return False
    if field.field_id and field.field_id in settings.excluded_field_ids:
        return False
    return editor_enabled(field.editor, settings.translation_fields)


def generate_record_context(record: Mapping[str, Any], source_locale: str) -> str:
    """
    Short description of the record used to steer translations.

    Collects source-locale strings under 300 characters whose key looks like
    a title, name, content or description.
    """
    parts: List[str] = []
    for key, value in record.items():
        if not isinstance(value, dict):
            continue
        localized = value.get(source_locale)
        if not isinstance(localized, str) or not localized:
            continue
        if len(localized) >= CONTEXT_MAX_CHARS:
            continue
        if any(word in key.lower() for word in CONTEXT_KEYWORDS):
            parts.append(f"{key}: {localized}. ")
    if not parts:
        return ""
    return "Content context: " + "".join(parts)


def _commit_into(record: Dict[str, Any]) -> CommitFn:
    def commit(api_key: str, locale: str, value: Any) -> None:
        localized = record.get(api_key)
        if not isinstance(localized, dict):
            localized = {}
            record[api_key] = localized
        localized[locale] = value

    return commit


def _make_execute(
    translator: FieldTranslator,
    field: FieldInfo,
    source_value: Any,
    source_locale: str,
    target_locale: str,
    record_context: str,
    commit: CommitFn,
):
    async def execute(context: ItemContext) -> Any:
        translated = await translator.translate(
            source_value,
            field.editor,
            source_locale,
            target_locale,
            context=context,
            record_context=record_context,
        )
        # One loop turn so the last partial update lands before the commit.
        await asyncio.sleep(0)
        context.gate.raise_if_cancelled()
        commit(field.api_key, target_locale, translated)
        return translated

    return execute


def build_work_items(
    record: Dict[str, Any],
    fields: Iterable[FieldInfo],
    source_locale: str,
    target_locales: Iterable[str],
    translator: FieldTranslator,
    settings: TranslationSettings,
    commit: Optional[CommitFn] = None,
) -> List[WorkItem]:
    """
    Enumerate the work items for one record.

    Items are produced in field order, then target-locale order, with ids of
    the form ``"<api_key>.<locale>"``. Fields without a source-locale value
    (or with an empty block list) are skipped.
    """
    commit = commit or _commit_into(record)
    record_context = generate_record_context(record, source_locale)
    targets = [locale for locale in target_locales if locale != source_locale]
    items: List[WorkItem] = []

    for field in fields:
        if not is_field_translatable(field, settings):
            continue
        localized = record.get(field.api_key)
        if not isinstance(localized, dict):
            continue
        source_value = localized.get(source_locale)
        if not source_value:
            continue
        for locale in targets:
            items.append(
                WorkItem(
                    id=f"{field.api_key}.{locale}",
                    execute=_make_execute(
                        translator,
                        field,
                        source_value,
                        source_locale,
                        locale,
                        record_context,
                        commit,
                    ),
                )
            )

    logger.debug(
        "Record produced %d work items for %d target locales", len(items), len(targets)
    )
    return items


async def translate_record(
    record: Dict[str, Any],
    fields: Iterable[FieldInfo],
    source_locale: str,
    target_locales: Iterable[str],
    settings: TranslationSettings,
    provider: Optional[TranslationProvider] = None,
    on_progress: Optional[ProgressSink] = None,
    gate: Optional[CancellationGate] = None,
    block_models: Optional[BlockModels] = None,
) -> BatchReport:
    """
    Translate every eligible field of ``record`` into ``target_locales``.

    Translated values are written into ``record`` in place. ``block_models``
    maps block model ids to their fields so modular content can be walked.

    Raises:
        TranslationError: If the provider reports a fatal configuration error
    """
    provider = provider or get_provider(settings)
    translator = FieldTranslator(provider, settings, block_models=block_models)
    items = build_work_items(record, fields, source_locale, target_locales, translator, settings)

    scheduler = AdaptiveScheduler(
        cap=settings.concurrency_cap(),
        max_retries=settings.max_retries,
        base_delay=settings.base_delay,
        reporter=ProgressReporter(on_progress, min_interval=settings.progress_interval),
        gate=gate,
    )
    report = await scheduler.run(items)
    MlflowLogger().log_batch_report(report.as_dict())
    return report
