from __future__ import annotations

from dataclasses import dataclass, field
from typing import List, Optional, Tuple

from gedcom_import.loader import GEDCOMNode
from gedcom_import.models import ParseError

from .build_individual import is_pointer


@dataclass(slots=True)
class FamilyBlock:
    """
    Members of one FAM record, by individual cross-reference.

    Only used while synthesizing relationships; never leaves the parser.
    """
    pointer: str
    lineno: int = 0
    husband: Optional[str] = None
    wife: Optional[str] = None
    children: List[str] = field(default_factory=list)


def build_family(node: GEDCOMNode) -> Tuple[Optional[FamilyBlock], List[ParseError]]:
    """
    Build a FamilyBlock from a GEDCOMNode with tag 'FAM'.

    PURE FUNCTION:
      - no access to other records
      - linkage lines without a valid pointer are reported and skipped
    """
    if node.tag != "FAM":
        raise ValueError(f"Expected FAM node, got {node.tag}")

    errors: List[ParseError] = []

    if not is_pointer(node.pointer):
        errors.append(ParseError(node.lineno, node.raw, "FAM record is missing its cross-reference pointer"))
        return None, errors

    family = FamilyBlock(pointer=node.pointer, lineno=node.lineno)  # type: ignore[arg-type]

    for child in node.children:
        if child.tag not in ("HUSB", "WIFE", "CHIL"):
            continue
        ptr = child.value.strip()
        if not is_pointer(ptr):
            errors.append(
                ParseError(
                    child.lineno,
                    child.raw,
                    f"{node.pointer}: {child.tag} requires an individual pointer, got {child.value!r}",
                )
            )
            continue

        if child.tag == "CHIL":
            if ptr not in family.children:
                family.children.append(ptr)
        elif child.tag == "HUSB" and family.husband is None:
            family.husband = ptr
        elif child.tag == "WIFE" and family.wife is None:
            family.wife = ptr

    return family, errors
