"""
Tests for record-level translation.

Covers field eligibility, record context, work item enumeration and the
end-to-end batch over a fake provider.
"""

from __future__ import annotations

from typing import List

import pytest

from ai_translations.config import TranslationSettings
from ai_translations.errors import ErrorKind, TranslationError
from ai_translations.parallel.cancellation import CancellationGate
from ai_translations.translation.fields import FieldTranslator
from ai_translations.translation.record import (
    build_work_items,
    generate_record_context,
    is_field_translatable,
    translate_record,
)
from ai_translations.types import FieldInfo, ProgressEvent, ProgressPhase

from fakes import TEST_PROMPT, FakeProvider

FIELDS = [
    FieldInfo(api_key="title", editor="single_line", field_id="1"),
    FieldInfo(api_key="seo", editor="seo", field_id="2"),
    FieldInfo(api_key="sku", editor="single_line", field_id="3", localized=False),
    FieldInfo(api_key="body", editor="markdown", field_id="4"),
]


def make_record() -> dict:
    return {
        "title": {"en": "Home", "it": None, "de": None},
        "seo": {"en": {"title": "Home", "description": "Welcome"}},
        "sku": "ABC-1",
        "body": {"en": "", "it": ""},
    }


class TestFieldEligibility:
    def test_enabled_editor(self, settings) -> None:
        assert is_field_translatable(FieldInfo("title", "single_line"), settings)

    def test_disabled_editor(self, settings) -> None:
        assert not is_field_translatable(FieldInfo("blocks", "rich_text"), settings)

    def test_not_localized(self, settings) -> None:
        assert not is_field_translatable(FieldInfo("sku", "single_line", localized=False), settings)

    def test_excluded_by_id(self) -> None:
        settings = TranslationSettings(excluded_field_ids=["99"])
        assert not is_field_translatable(FieldInfo("title", "single_line", field_id="99"), settings)

    def test_gallery_follows_file(self) -> None:
        with_file = TranslationSettings(translation_fields=["file"])
        without_file = TranslationSettings(translation_fields=["single_line"])
        gallery = FieldInfo("photos", "gallery")
        assert is_field_translatable(gallery, with_file)
        assert not is_field_translatable(gallery, without_file)


    @pytest.mark.parametrize(
        "editor", ["rich_text", "framed_single_block", "frameless_single_block"]
    )
    def test_rich_text_enables_block_editors(self, editor: str) -> None:
        settings = TranslationSettings(translation_fields=["rich_text"])
        assert is_field_translatable(FieldInfo("blocks", editor), settings)
        assert not is_field_translatable(FieldInfo("blocks", editor, localized=False), settings)


class TestRecordContext:
    def test_collects_descriptive_fields(self) -> None:
        record = {
            "title": {"en": "Home"},
            "product_name": {"en": "Lamp"},
            "sku": {"en": "ABC-1"},
            "description": {"en": "x" * 300},
            "content": {"en": {"nested": True}},
        }
        assert generate_record_context(record, "en") == (
            "Content context: title: Home. product_name: Lamp. "
        )

    def test_empty(self) -> None:
        assert generate_record_context({"sku": {"en": "ABC"}}, "en") == ""
        assert generate_record_context({"title": {"it": "Casa"}}, "en") == ""


class TestBuildWorkItems:
    def test_ids_in_field_then_locale_order(self, provider, settings) -> None:
        items = build_work_items(
            make_record(), FIELDS, "en", ["it", "en", "de"], FieldTranslator(provider, settings), settings
        )
        # "sku" is not localized and "body" has no source text.
        assert [item.id for item in items] == ["title.it", "title.de", "seo.it", "seo.de"]
        assert all(item.attempt == 0 for item in items)


class TestTranslateRecord:
    """End-to-end record translation over a fake provider."""

    @pytest.mark.asyncio
    async def test_translates_and_commits(self, provider, settings) -> None:
        record = make_record()
        events: List[ProgressEvent] = []

        report = await translate_record(
            record, FIELDS, "en", ["it", "de"], settings, provider=provider, on_progress=events.append
        )

        assert sorted(report.succeeded) == ["seo.de", "seo.it", "title.de", "title.it"]
        assert report.failed == []
        assert record["title"] == {"en": "Home", "it": "[it] Home", "de": "[de] Home"}
        assert record["seo"]["it"] == {"title": "[it] Home", "description": "[it] Welcome"}
        assert record["sku"] == "ABC-1"
        assert record["body"] == {"en": "", "it": ""}

        done = {e.item_id: e.payload for e in events if e.phase is ProgressPhase.DONE}
        assert done["title.it"] == "[it] Home"
        starts = [e.item_id for e in events if e.phase is ProgressPhase.START]
        assert starts == ["title.it", "title.de", "seo.it", "seo.de"]

    @pytest.mark.asyncio
    async def test_record_context_reaches_prompt(self) -> None:
        settings = TranslationSettings(prompt="{recordContext}#" + TEST_PROMPT)
        provider = FakeProvider()
        record = {"title": {"en": "Home"}}

        await translate_record(record, [FieldInfo("title", "single_line")], "en", ["it"], settings, provider=provider)

        assert provider.prompts == ["Content context: title: Home. #en>it|Home"]
        assert record["title"]["it"] == "[it] Home"

    @pytest.mark.asyncio
    async def test_failed_item_not_committed(self, settings) -> None:
        provider = FakeProvider(fail_on="Welcome")
        record = make_record()

        report = await translate_record(record, FIELDS, "en", ["it"], settings, provider=provider)

        assert report.succeeded == ["title.it"]
        assert report.failed == ["seo.it"]
        assert "it" not in record["seo"]
        assert record["title"]["it"] == "[it] Home"

    @pytest.mark.asyncio
    async def test_cancelled_before_start(self, provider, settings) -> None:
        gate = CancellationGate()
        gate.cancel()
        record = make_record()

        report = await translate_record(record, FIELDS, "en", ["it"], settings, provider=provider, gate=gate)

        assert report.processed == 0
        assert report.skipped == ["title.it", "seo.it"]
        assert record["title"]["it"] is None
        assert provider.prompts == []

    @pytest.mark.asyncio
    async def test_cancel_during_translation_skips_commit(self) -> None:
        settings = TranslationSettings(prompt=TEST_PROMPT, max_concurrency=1)
        gate = CancellationGate()

        class CancellingProvider(FakeProvider):
            async def complete_text(self, prompt, gate=None):
                result = self._translate(prompt)
                gate.cancel()
                return result

        record = {"title": {"en": "Home"}}
        report = await translate_record(
            record,
            [FieldInfo("title", "single_line")],
            "en",
            ["it", "de"],
            settings,
            provider=CancellingProvider(streaming=False),
            gate=gate,
        )

        assert report.cancelled == ["title.it"]
        assert report.skipped == ["title.de"]
        assert record["title"] == {"en": "Home"}
        assert report.was_cancelled is True

    @pytest.mark.asyncio
    async def test_fatal_error_propagates(self, settings) -> None:
        class BrokenProvider(FakeProvider):
            async def complete_text(self, prompt, gate=None):
                raise TranslationError(
                    "Incorrect API key provided", kind=ErrorKind.FATAL_CONFIGURATION, status=401
                )

        with pytest.raises(TranslationError) as exc_info:
            await translate_record(
                make_record(), FIELDS, "en", ["it"], settings, provider=BrokenProvider(streaming=False)
            )

        assert exc_info.value.is_fatal

    @pytest.mark.asyncio
    async def test_modular_content_fields(self) -> None:
        settings = TranslationSettings(
            prompt=TEST_PROMPT, translation_fields=["rich_text", "single_line"]
        )
        provider = FakeProvider()
        record = {
            "blocks": {"en": [{"itemId": "7", "itemTypeId": "b1", "heading": "Hello"}]},
            "banner": {"en": {"itemTypeId": "b1", "heading": "Sale"}},
        }
        fields = [
            FieldInfo("blocks", "rich_text", field_id="30"),
            FieldInfo("banner", "frameless_single_block", field_id="31"),
        ]

        report = await translate_record(
            record,
            fields,
            "en",
            ["it"],
            settings,
            provider=provider,
            block_models={"b1": [FieldInfo("heading", "single_line", field_id="40")]},
        )

        assert sorted(report.succeeded) == ["banner.it", "blocks.it"]
        assert record["blocks"]["it"] == [{"itemTypeId": "b1", "heading": "[it] Hello"}]
        assert record["banner"]["it"] == {"itemTypeId": "b1", "heading": "[it] Sale"}
        assert record["blocks"]["en"][0]["itemId"] == "7"
