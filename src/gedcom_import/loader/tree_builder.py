# src/gedcom_import/loader/tree_builder.py

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, Iterable, Iterator, List, Optional, Union

from gedcom_import.models import ParseError

from .segmenter import GEDCOMNode, segment_lines
from .tokenizer import Token, decode_gedcom, iter_tokens


@dataclass
class GEDCOMTree:
    """
    The level-0 records of one upload plus the line problems met on the way.

    Attributes:
        records: HEAD, INDI, FAM, ..., TRLR nodes in file order.
        errors: recoverable tokenizer/segmenter problems, in line order.
    """

    records: List[GEDCOMNode]
    errors: List[ParseError] = field(default_factory=list)

    _by_pointer: Dict[str, GEDCOMNode] = field(default_factory=dict, init=False, repr=False)
    _by_tag: Dict[str, List[GEDCOMNode]] = field(default_factory=dict, init=False, repr=False)

    def __post_init__(self) -> None:
        for record in self.records:
            # first definition wins; the record parser reports duplicates
            if record.pointer:
                self._by_pointer.setdefault(record.pointer, record)
            if record.tag:
                self._by_tag.setdefault(record.tag.upper(), []).append(record)

    def __len__(self) -> int:  # pragma: no cover - trivial wrapper
        return len(self.records)

    def __iter__(self) -> Iterator[GEDCOMNode]:  # pragma: no cover - simple
        return iter(self.records)

    def iter_nodes(self) -> Iterator[GEDCOMNode]:
        """Every node, depth-first, records included."""
        for record in self.records:
            yield from record.iter_subtree()

    def find_by_pointer(self, pointer: str) -> Optional[GEDCOMNode]:
        return self._by_pointer.get(pointer) if pointer else None

    def find_records_by_tag(self, tag: str) -> List[GEDCOMNode]:
        """Level-0 records with ``tag`` (case-insensitive)."""
        return list(self._by_tag.get((tag or "").upper(), []))

    def all_tags(self) -> List[str]:
        return sorted(self._by_tag)

    def __repr__(self) -> str:  # pragma: no cover - cosmetic
        return f"<GEDCOMTree records={len(self.records)} errors={len(self.errors)}>"


def build_tree(items: Iterable[Union[Token, ParseError]]) -> GEDCOMTree:
    """
    tokens (with tokenizer errors interleaved, as ``iter_tokens`` yields them)
    -> GEDCOMTree(records=[...], errors=[...])
    """
    records, errors = segment_lines(items)
    return GEDCOMTree(records=records, errors=errors)


def load_tree(raw: Union[bytes, bytearray]) -> GEDCOMTree:
    """
    Decode an upload and build its tree.

    Raises:
        GedcomDecodeError: only when the bytes cannot be decoded as text.
    """
    return build_tree(iter_tokens(decode_gedcom(raw)))
