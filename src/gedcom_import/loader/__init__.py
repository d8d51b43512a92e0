# src/gedcom_import/loader/__init__.py

"""
Public interface for the GEDCOM loader stack.

Intended usage from other parts of the project and tests:

    from gedcom_import.loader import (
        Token,
        GedcomSyntaxError,
        GEDCOMNode,
        GEDCOMTree,
        decode_gedcom,
        tokenize_line,
        tokenize_text,
        segment_lines,
        build_tree,
        load_tree,
    )
"""

from __future__ import annotations

from .segmenter import GEDCOMNode, segment_lines, segment_records
from .tokenizer import (
    GedcomSyntaxError,
    Token,
    declared_charset,
    decode_gedcom,
    iter_tokens,
    tokenize_bytes,
    tokenize_line,
    tokenize_text,
)
from .tree_builder import GEDCOMTree, build_tree, load_tree


__all__ = [
    "Token",
    "GedcomSyntaxError",
    "GEDCOMNode",
    "GEDCOMTree",
    "declared_charset",
    "decode_gedcom",
    "iter_tokens",
    "tokenize_bytes",
    "tokenize_line",
    "tokenize_text",
    "segment_lines",
    "segment_records",
    "build_tree",
    "load_tree",
]
