from .matcher import (
    CRITERIA,
    DEFAULT_MIN_CONFIDENCE,
    DuplicateMatcher,
    aggregate_confidence,
    candidates_list,
    compare_birth_dates,
    compare_birth_places,
    compare_names,
    compare_parents,
    match,
    normalize_text,
    round_half_up,
)

__all__ = [
    "CRITERIA",
    "DEFAULT_MIN_CONFIDENCE",
    "DuplicateMatcher",
    "aggregate_confidence",
    "candidates_list",
    "compare_birth_dates",
    "compare_birth_places",
    "compare_names",
    "compare_parents",
    "match",
    "normalize_text",
    "round_half_up",
]
