"""
Record parser: raw upload bytes -> ParsedIndividual / ParsedRelationship values.

Parsing is a fold over lines that accumulates (valid records, errors); a bad
line never unwinds the parse. The single fatal case is a byte stream that
cannot be decoded as text (GedcomDecodeError from the loader).
"""

from __future__ import annotations

from typing import Dict, List, Optional, Set, Union

from gedcom_import.loader import GEDCOMNode, GEDCOMTree, load_tree
from gedcom_import.logging import get_logger
from gedcom_import.models import ParsedIndividual, ParsedRelationship, ParseError, ParseResult

from .build_family import FamilyBlock, build_family
from .build_individual import build_individual

log = get_logger("record_parser")

SUPPORTED_VERSIONS = ("5.5", "5.5.1", "7.0")


# ---------------------------------------------------------------------------
# Header
# ---------------------------------------------------------------------------

def detect_version(tree: GEDCOMTree) -> Optional[str]:
    """Return HEAD.GEDC.VERS, or None when the header does not declare one."""
    for head in tree.find_records_by_tag("HEAD"):
        gedc = head.find_first("GEDC")
        if gedc is not None:
            vers = (gedc.first_value("VERS") or "").strip()
            if vers:
                return vers
    return None


def _version_warnings(tree: GEDCOMTree, version: Optional[str]) -> List[ParseError]:
    heads = tree.find_records_by_tag("HEAD")
    if not tree.records:
        return []
    anchor: GEDCOMNode = heads[0] if heads else tree.records[0]
    if version is None:
        return [ParseError(anchor.lineno, anchor.raw, "GEDCOM version not declared in header", "warning")]
    if version not in SUPPORTED_VERSIONS:
        return [
            ParseError(
                anchor.lineno,
                anchor.raw,
                f"GEDCOM version {version} is not supported (expected one of {', '.join(SUPPORTED_VERSIONS)})",
                "warning",
            )
        ]
    return []


# ---------------------------------------------------------------------------
# Relationship synthesis
# ---------------------------------------------------------------------------

def _complete_family(
    family: FamilyBlock, individuals: List[ParsedIndividual]
) -> FamilyBlock:
    """
    Fill members a FAM block leaves out but individuals claim via FAMC/FAMS.

    Spouses inferred from FAMS are placed by gender; children inferred from
    FAMC follow the explicit CHIL list in file order.
    """
    for ind in individuals:
        if ind.parent_family == family.pointer and ind.source_id not in family.children:
            family.children.append(ind.source_id)
        if family.pointer in ind.spouse_families and ind.source_id not in (family.husband, family.wife):
            if ind.gender == "male" and family.husband is None:
                family.husband = ind.source_id
            elif ind.gender == "female" and family.wife is None:
                family.wife = ind.source_id
    return family


def synthesize_relationships(
    families: List[FamilyBlock],
    individuals: List[ParsedIndividual],
    errors: List[ParseError],
) -> List[ParsedRelationship]:
    """
    Turn family blocks into pairwise relationships.

    - HUSB + WIFE            -> spouse(husband, wife)
    - CHIL with HUSB/WIFE    -> parentOf(parent, child) with father/mother role

    Members that do not resolve to a parsed individual are reported as
    orphaned-reference warnings and left out.
    """
    known: Set[str] = {ind.source_id for ind in individuals}
    relationships: List[ParsedRelationship] = []
    seen: Set[tuple] = set()

    def add(rel: ParsedRelationship) -> None:
        if rel.key not in seen:
            seen.add(rel.key)
            relationships.append(rel)

    def member(family: FamilyBlock, pointer: Optional[str], role: str) -> Optional[str]:
        if pointer is None:
            return None
        if pointer not in known:
            errors.append(
                ParseError(
                    family.lineno,
                    f"0 {family.pointer} FAM",
                    f"{family.pointer}: orphaned {role} reference {pointer} (individual not found)",
                    "warning",
                )
            )
            return None
        return pointer

    for family in families:
        family = _complete_family(family, individuals)
        husband = member(family, family.husband, "husband")
        wife = member(family, family.wife, "wife")

        if husband and wife and husband != wife:
            add(ParsedRelationship(husband, wife, "spouse", None, family.pointer))

        for child_ptr in family.children:
            child = member(family, child_ptr, "child")
            if child is None:
                continue
            for parent, role in ((husband, "father"), (wife, "mother")):
                if parent is None:
                    continue
                if parent == child:
                    errors.append(
                        ParseError(
                            family.lineno,
                            f"0 {family.pointer} FAM",
                            f"{family.pointer}: {child} is listed as its own {role}",
                        )
                    )
                    continue
                add(ParsedRelationship(parent, child, "parentOf", role, family.pointer))  # type: ignore[arg-type]

    return relationships


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------

def parse_tree(tree: GEDCOMTree) -> ParseResult:
    """Extract individuals and relationships from an already-built tree."""
    errors: List[ParseError] = list(tree.errors)
    individuals: List[ParsedIndividual] = []
    families: List[FamilyBlock] = []
    defined: Dict[str, int] = {}

    for record in tree.records:
        if record.tag not in ("INDI", "FAM"):
            continue

        if record.pointer and record.pointer in defined:
            errors.append(
                ParseError(
                    record.lineno,
                    record.raw,
                    f"duplicate definition of {record.pointer} (first defined on line {defined[record.pointer]})",
                )
            )
            continue

        if record.tag == "INDI":
            individual, record_errors = build_individual(record)
            errors.extend(record_errors)
            if individual is not None:
                individuals.append(individual)
                defined[individual.source_id] = record.lineno
        else:
            family, record_errors = build_family(record)
            errors.extend(record_errors)
            if family is not None:
                families.append(family)
                defined[family.pointer] = record.lineno

    version = detect_version(tree)
    errors.extend(_version_warnings(tree, version))

    relationships = synthesize_relationships(families, individuals, errors)

    # Both lists are in line order regardless of which pass found the issue.
    errors.sort(key=lambda e: e.lineno)
    warnings = [e for e in errors if e.severity == "warning"]
    errors = [e for e in errors if e.severity != "warning"]

    log.info(
        "Parsed GEDCOM (version=%s): %d individuals, %d families, %d relationships, %d error(s), %d warning(s)",
        version,
        len(individuals),
        len(families),
        len(relationships),
        len(errors),
        len(warnings),
    )
    return ParseResult(
        individuals=individuals,
        relationships=relationships,
        errors=errors,
        version=version,
        warnings=warnings,
    )


def parse(raw: Union[bytes, bytearray]) -> ParseResult:
    """
    Parse raw upload bytes.

    Raises:
        GedcomDecodeError: when the bytes cannot be decoded as text.
    """
    return parse_tree(load_tree(raw))


def extract_statistics(result: ParseResult) -> Dict[str, object]:
    """Totals and the earliest/latest known date, for preview headers."""
    dates = sorted(
        d
        for ind in result.individuals
        for d in (ind.birth_date, ind.death_date)
        if d
    )
    return {
        "total_individuals": len(result.individuals),
        "total_relationships": len(result.relationships),
        "total_errors": len(result.errors),
        "total_warnings": len(result.warnings),
        "version": result.version,
        "date_range": {"earliest": dates[0], "latest": dates[-1]} if dates else None,
    }
