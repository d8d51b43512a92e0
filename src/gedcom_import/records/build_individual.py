from __future__ import annotations

import re
from typing import List, Optional, Tuple

from gedcom_import.dates import normalize_date
from gedcom_import.loader import GEDCOMNode
from gedcom_import.models import ParsedIndividual, ParseError

POINTER_RE = re.compile(r"^@[^@\s]+@$")
_NAME_RE = re.compile(r"^([^/]*)/([^/]*)/?(.*)$")

SEX_TO_GENDER = {
    "M": "male",
    "F": "female",
    "U": "unspecified",
}


def is_pointer(value: Optional[str]) -> bool:
    return bool(value) and bool(POINTER_RE.match(value.strip()))


def map_sex_to_gender(sex: Optional[str]) -> Optional[str]:
    """GEDCOM SEX value (M, F, U, X, ...) -> stored gender vocabulary."""
    if not sex or not sex.strip():
        return None
    return SEX_TO_GENDER.get(sex.strip().upper(), "other")


def split_name(value: str) -> Tuple[str, str]:
    """
    Split a GEDCOM personal name into (first, last).

      "John /Smith/"      -> ("John", "Smith")
      "John /Smith/ Jr."  -> ("John", "Smith")
      "/Smith/"           -> ("", "Smith")
      "John"              -> ("John", "")
    """
    value = " ".join(value.split())
    m = _NAME_RE.match(value)
    if not m:
        return value, ""
    return m.group(1).strip(), m.group(2).strip()


def _error(node: GEDCOMNode, reason: str, severity: str = "error") -> ParseError:
    return ParseError(lineno=node.lineno, raw_line=node.raw, reason=reason, severity=severity)  # type: ignore[arg-type]


def _event_fields(
    node: GEDCOMNode, tag: str, field_name: str, errors: List[ParseError]
) -> Tuple[Optional[str], Optional[str], Optional[str]]:
    """Return (iso_date, place, modifier) for the first BIRT/DEAT child."""
    event = node.find_first(tag)
    if event is None:
        return None, None, None

    date: Optional[str] = None
    modifier: Optional[str] = None
    date_node = event.find_first("DATE")
    if date_node is not None:
        if not date_node.value.strip():
            errors.append(_error(date_node, f"empty DATE value in {tag}"))
        else:
            result = normalize_date(date_node.value)
            if result.valid:
                date, modifier = result.date, result.modifier
            else:
                errors.append(
                    _error(
                        date_node,
                        f"{node.pointer}: could not parse {field_name} {date_node.value!r} ({result.error})",
                        severity="warning",
                    )
                )

    place = event.first_value("PLAC")
    place = " ".join(place.split()) if place else None
    return date, place or None, modifier


def build_individual(node: GEDCOMNode) -> Tuple[Optional[ParsedIndividual], List[ParseError]]:
    """
    Build a ParsedIndividual from a GEDCOMNode with tag 'INDI'.

    PURE FUNCTION:
      - no access to other records
      - problems are returned, never raised

    Returns (None, errors) when the record cannot be used at all (missing
    cross-reference pointer).
    """
    if node.tag != "INDI":
        raise ValueError(f"Expected INDI node, got {node.tag}")

    errors: List[ParseError] = []

    if not is_pointer(node.pointer):
        errors.append(_error(node, "INDI record is missing its cross-reference pointer"))
        return None, errors

    # Names: first NAME wins; GIVN/SURN substructures take priority over the
    # slash-delimited value.
    first_name, last_name = "", ""
    name_node = node.find_first("NAME")
    if name_node is not None:
        givn = (name_node.first_value("GIVN") or "").strip()
        surn = (name_node.first_value("SURN") or "").strip()
        if name_node.value.strip():
            first_name, last_name = split_name(name_node.value)
        elif not (givn or surn):
            errors.append(_error(name_node, f"{node.pointer}: NAME has an empty value"))
        first_name = givn or first_name
        last_name = surn or last_name

    # Gender
    gender = map_sex_to_gender(node.first_value("SEX"))

    birth_date, birth_place, birth_mod = _event_fields(node, "BIRT", "birthDate", errors)
    death_date, death_place, death_mod = _event_fields(node, "DEAT", "deathDate", errors)

    modifiers = []
    if birth_mod:
        modifiers.append(("birthDate", birth_mod))
    if death_mod:
        modifiers.append(("deathDate", death_mod))

    # Family Links
    parent_family: Optional[str] = None
    spouse_families: List[str] = []
    for child in node.children:
        if child.tag not in ("FAMC", "FAMS"):
            continue
        ptr = child.value.strip()
        if not is_pointer(ptr):
            errors.append(_error(child, f"{node.pointer}: {child.tag} requires a family pointer, got {child.value!r}"))
            continue
        if child.tag == "FAMC":
            parent_family = parent_family or ptr
        elif ptr not in spouse_families:
            spouse_families.append(ptr)

    individual = ParsedIndividual(
        source_id=node.pointer,  # type: ignore[arg-type]
        first_name=first_name,
        last_name=last_name,
        birth_date=birth_date,
        death_date=death_date,
        gender=gender,
        birth_place=birth_place,
        death_place=death_place,
        lineno=node.lineno,
        parent_family=parent_family,
        spouse_families=tuple(spouse_families),
        date_modifiers=tuple(modifiers),
    )
    return individual, errors
