from .engine import (
    BACKFILL_FIELDS,
    ResolutionEngine,
    append_modifier_note,
    backfill_fields,
    person_fields,
    summarize_decisions,
)

__all__ = [
    "BACKFILL_FIELDS",
    "ResolutionEngine",
    "append_modifier_note",
    "backfill_fields",
    "person_fields",
    "summarize_decisions",
]
