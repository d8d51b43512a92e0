# src/gedcom_import/loader/segmenter.py

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterable, Iterator, List, Optional, Tuple, Union

from gedcom_import.models import ParseError

from .tokenizer import Token


@dataclass
class GEDCOMNode:
    """
    A hierarchical GEDCOM tree node produced from a flat token stream.

    Attributes:
        level: GEDCOM level number (0 for records, >0 for substructures).
        tag: The GEDCOM tag (HEAD, INDI, BIRT, DATE, FAMC, etc.).
        value: The raw tag value (string).
        pointer: Optional @XREF@ pointer on level-0 records.
        children: Nested GEDCOMNode list ordered as they appeared.
        lineno: Line number in original file.
        raw: Original line text, kept for error reporting.
    """

    level: int
    tag: str
    value: str = ""
    pointer: Optional[str] = None
    lineno: int = 0
    raw: str = ""
    children: List["GEDCOMNode"] = field(default_factory=list)

    # ---------- Helper / Mixin Methods ----------

    def add_child(self, child: "GEDCOMNode") -> None:
        self.children.append(child)

    def find_children(self, tag: str) -> List["GEDCOMNode"]:
        """Return all direct children of this node with a given tag."""
        return [c for c in self.children if c.tag == tag]

    def find_first(self, tag: str) -> Optional["GEDCOMNode"]:
        """Return the first direct child with this tag, or None."""
        for c in self.children:
            if c.tag == tag:
                return c
        return None

    def first_value(self, tag: str) -> Optional[str]:
        """Value of the first direct child with this tag, or None."""
        child = self.find_first(tag)
        return child.value if child is not None else None

    def iter_subtree(self) -> Iterator["GEDCOMNode"]:
        """Yield this node and all descendants in depth-first order."""
        yield self
        for child in self.children:
            yield from child.iter_subtree()

    def __repr__(self) -> str:
        ptr = f" {self.pointer}" if self.pointer else ""
        return f"<GEDCOMNode {self.level}{ptr} {self.tag}: {self.value!r}>"


# ---------- SEGMENTER ----------

@dataclass
class _Dropped:
    """Stack slot for a malformed line; lines nested under it are discarded."""

    lineno: int
    level_known: bool
    reported: bool = False


_Slot = Union[GEDCOMNode, _Dropped]


def _node_from_token(tok: Token) -> GEDCOMNode:
    return GEDCOMNode(
        level=tok.level,
        tag=tok.tag,
        value=tok.value,
        pointer=tok.pointer,
        lineno=tok.lineno,
        raw=tok.raw,
    )


def _place_dropped(stack: List[_Slot], level: int, marker: _Dropped) -> List[_Slot]:
    """Put ``marker`` at ``level``, filling any skipped levels with it too."""
    if level > len(stack):
        return stack + [marker] * (level + 1 - len(stack))
    return stack[:level] + [marker]


def segment_lines(items: Iterable[Union[Token, ParseError]]) -> Tuple[List[GEDCOMNode], List[ParseError]]:
    """
    Nest a flat stream of Tokens (with tokenizer ParseErrors interleaved)
    into record trees.

    Rules:
        - Level 0 tokens start a new record.
        - A level N token hangs under the closest preceding level N-1 line.
        - Going more than one level deeper is an error; that line is dropped.
        - Lines nested under a dropped line go with it and are not errors
          of their own.

    A tokenizer error keeps the level it read (missing tag, pointer without a
    tag) and is dropped at that level. When the level itself was unreadable
    the line is assumed to be a sibling of the line before it; anything
    discarded under such a guess is reported once as a warning.

    Returns:
        (records, problems) in line order.
    """
    records: List[GEDCOMNode] = []
    problems: List[ParseError] = []
    stack: List[_Slot] = []

    for item in items:
        if isinstance(item, ParseError):
            problems.append(item)
            marker = _Dropped(item.lineno, level_known=item.level is not None)
            if item.level == 0:
                stack = [marker]
            elif stack:
                level = item.level if item.level is not None else max(len(stack) - 1, 1)
                stack = _place_dropped(stack, level, marker)
            continue

        tok = item

        if tok.level == 0:
            node = _node_from_token(tok)
            records.append(node)
            stack = [node]
            continue

        if not stack:
            problems.append(
                ParseError(tok.lineno, tok.raw, f"level {tok.level} line appears before any level-0 record")
            )
            continue

        if tok.level > len(stack):
            problems.append(
                ParseError(
                    tok.lineno,
                    tok.raw,
                    f"level jumped from {len(stack) - 1} to {tok.level} without intermediate parent",
                )
            )
            stack = _place_dropped(stack, tok.level, _Dropped(tok.lineno, level_known=True))
            continue

        parent = stack[tok.level - 1]
        if isinstance(parent, _Dropped):
            if not parent.level_known and not parent.reported:
                parent.reported = True
                problems.append(
                    ParseError(
                        tok.lineno,
                        tok.raw,
                        f"discarded with line {parent.lineno}, whose level could not be read",
                        "warning",
                    )
                )
            stack = stack[: tok.level] + [parent]
            continue

        node = _node_from_token(tok)
        parent.add_child(node)
        stack = stack[: tok.level] + [node]

    return records, problems


def segment_records(items: Iterable[Union[Token, ParseError]]) -> List[GEDCOMNode]:
    """Level-0 records only; line problems are ignored."""
    records, _ = segment_lines(items)
    return records
