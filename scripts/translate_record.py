#!/usr/bin/env python3
"""
Translate one localized record into a set of target locales.

The record JSON maps field api keys to per-locale values. The fields JSON is
either a list of field descriptors ({"api_key", "editor", "field_id",
"localized"}) or an object with that list under "fields" and, under
"blocks", the field descriptors of each block model keyed by its id.
"""

import argparse
import asyncio
import json
import signal
import sys
from pathlib import Path

from ai_translations import (
    CancellationGate,
    FieldInfo,
    ProgressEvent,
    ProgressPhase,
    TranslationError,
    TranslationSettings,
    load_settings,
    translate_record,
)
from ai_translations.utils import setup_logging


def to_field_info(entry: dict) -> FieldInfo:
    return FieldInfo(
        api_key=entry["api_key"],
        editor=entry["editor"],
        field_id=str(entry.get("field_id", "")),
        localized=entry.get("localized", True),
        label=entry.get("label"),
    )


def load_fields(path: Path) -> tuple:
    data = json.loads(path.read_text(encoding="utf-8"))
    if isinstance(data, list):
        data = {"fields": data}
    fields = [to_field_info(entry) for entry in data.get("fields", [])]
    block_models = {
        str(model_id): [to_field_info(entry) for entry in entries]
        for model_id, entries in data.get("blocks", {}).items()
    }
    return fields, block_models


def print_progress(event: ProgressEvent) -> None:
    if event.phase is ProgressPhase.START:
        print(f"[START] {event.item_id}")
    elif event.phase is ProgressPhase.PARTIAL:
        preview = str(event.payload).replace("\n", " ")[-60:]
        print(f"[....] {event.item_id}: {preview}")
    elif event.phase is ProgressPhase.DONE:
        print(f"[DONE] {event.item_id}")
    else:
        print(f"[FAIL] {event.item_id}: {event.payload}")


async def run(args: argparse.Namespace, settings: TranslationSettings) -> int:
    record = json.loads(args.record.read_text(encoding="utf-8"))
    fields, block_models = load_fields(args.fields)
    targets = [locale.strip() for locale in args.targets.split(",") if locale.strip()]

    gate = CancellationGate()
    try:
        asyncio.get_running_loop().add_signal_handler(signal.SIGINT, gate.cancel)
    except NotImplementedError:
        # No loop signal handlers on Windows; Ctrl-C aborts the run instead.
        pass

    try:
        report = await translate_record(
            record,
            fields,
            args.source,
            targets,
            settings,
            on_progress=print_progress if not args.quiet else None,
            gate=gate,
            block_models=block_models,
        )
    except TranslationError as exc:
        print(f"[ERROR] {exc}", file=sys.stderr)
        return 2

    output = args.output or args.record
    output.parent.mkdir(parents=True, exist_ok=True)
    output.write_text(json.dumps(record, ensure_ascii=False, indent=2), encoding="utf-8")

    print(
        f"Translated {len(report.succeeded)}/{report.processed + len(report.skipped)} items "
        f"({len(report.failed)} failed, {len(report.skipped)} skipped, "
        f"{report.retry_count} retries) in {report.elapsed_sec:.1f}s -> {output}"
    )
    if report.was_cancelled:
        print("Run was cancelled; skipped items were left untouched.")
    return 1 if report.failed else 0


def main() -> None:
    parser = argparse.ArgumentParser(description="Translate a localized record with AI providers.")
    parser.add_argument("record", type=Path, help="Path to the record JSON")
    parser.add_argument("fields", type=Path, help="Path to the fields JSON")
    parser.add_argument("--source", required=True, help="Source locale, e.g. en")
    parser.add_argument("--targets", required=True, help="Comma-separated target locales")
    parser.add_argument("--config", type=Path, help="Settings YAML (defaults to environment)")
    parser.add_argument("--output", type=Path, help="Where to write the translated record")
    parser.add_argument("--log-level", default="INFO")
    parser.add_argument("--log-file", default=None)
    parser.add_argument("--quiet", action="store_true", help="Do not print progress events")
    args = parser.parse_args()

    settings = load_settings(args.config) if args.config else TranslationSettings.from_env()
    setup_logging(args.log_level, args.log_file, debug=settings.debug)

    sys.exit(asyncio.run(run(args, settings)))


if __name__ == "__main__":
    main()
