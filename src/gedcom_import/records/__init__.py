"""
Record parser for the import pipeline.

    from gedcom_import.records import parse

    result = parse(raw_bytes)
    result.individuals, result.relationships, result.errors, result.warnings
"""

from .build_family import FamilyBlock, build_family
from .build_individual import build_individual, map_sex_to_gender, split_name
from .parser import (
    SUPPORTED_VERSIONS,
    detect_version,
    extract_statistics,
    parse,
    parse_tree,
    synthesize_relationships,
)

__all__ = [
    "FamilyBlock",
    "SUPPORTED_VERSIONS",
    "build_family",
    "build_individual",
    "detect_version",
    "extract_statistics",
    "map_sex_to_gender",
    "parse",
    "parse_tree",
    "split_name",
    "synthesize_relationships",
]
