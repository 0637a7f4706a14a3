"""Field and record translation built on the parallel scheduler."""

from .fields import FieldTranslator, build_prompt, editor_enabled
from .record import (
    build_work_items,
    generate_record_context,
    is_field_translatable,
    translate_record,
)
from .segments import detokenize, tokenize, translate_array

__all__ = [
    "FieldTranslator",
    "build_prompt",
    "build_work_items",
    "detokenize",
    "editor_enabled",
    "generate_record_context",
    "is_field_translatable",
    "tokenize",
    "translate_array",
    "translate_record",
]
