"""
JSON-compatible (de)serialization of ImportSession, for file-backed stores.
"""

from __future__ import annotations

import base64
from dataclasses import asdict, is_dataclass
from datetime import datetime
from typing import Any, Dict

from gedcom_import.models import (
    ErrorEntry,
    ImportSession,
    ImportSummary,
    MatchCandidate,
    ParsedIndividual,
    ParsedRelationship,
    Progress,
    ResolutionDecision,
)


def _to_json_compatible(obj: Any) -> Any:
    """
    Recursively convert objects into JSON-compatible structures.

    Rules:
    - Primitives pass through
    - dataclasses -> dict (recursively)
    - dict -> dict (recursively)
    - list / tuple / set -> list (recursively)
    - datetimes -> ISO 8601 strings
    """
    if obj is None or isinstance(obj, (bool, int, float, str)):
        return obj

    if isinstance(obj, datetime):
        return obj.isoformat()

    if is_dataclass(obj):
        return {k: _to_json_compatible(v) for k, v in asdict(obj).items()}

    if isinstance(obj, dict):
        return {str(k): _to_json_compatible(v) for k, v in obj.items()}

    if isinstance(obj, (list, tuple, set, frozenset)):
        return [_to_json_compatible(v) for v in obj]

    return str(obj)


def session_to_dict(session: ImportSession) -> Dict[str, Any]:
    return {
        "upload_id": session.upload_id,
        "status": session.status,
        "file_name": session.file_name,
        "raw_bytes": base64.b64encode(session.raw_bytes).decode("ascii") if session.raw_bytes is not None else None,
        "gedcom_version": session.gedcom_version,
        "parsed_individuals": [_to_json_compatible(i) for i in session.parsed_individuals],
        "parsed_relationships": [_to_json_compatible(r) for r in session.parsed_relationships],
        "candidates": {sid: _to_json_compatible(c) for sid, c in session.candidates.items()},
        "decisions": {sid: d.as_dict() for sid, d in session.decisions.items()},
        "errors": [_to_json_compatible(e) for e in session.errors],
        "progress": _to_json_compatible(session.progress),
        "summary": _to_json_compatible(session.summary),
        "cancel_requested": session.cancel_requested,
        "created_at": session.created_at.isoformat(),
        "updated_at": session.updated_at.isoformat(),
    }


def _individual_from_dict(data: Dict[str, Any]) -> ParsedIndividual:
    data = dict(data)
    data["spouse_families"] = tuple(data.get("spouse_families") or ())
    data["date_modifiers"] = tuple(tuple(pair) for pair in data.get("date_modifiers") or ())
    return ParsedIndividual(**data)


def session_from_dict(data: Dict[str, Any]) -> ImportSession:
    raw = data.get("raw_bytes")
    summary = data.get("summary")
    return ImportSession(
        upload_id=data["upload_id"],
        status=data["status"],
        file_name=data.get("file_name") or "upload.ged",
        raw_bytes=base64.b64decode(raw) if raw is not None else None,
        gedcom_version=data.get("gedcom_version"),
        parsed_individuals=[_individual_from_dict(i) for i in data.get("parsed_individuals", [])],
        parsed_relationships=[ParsedRelationship(**r) for r in data.get("parsed_relationships", [])],
        candidates={sid: MatchCandidate(**c) for sid, c in (data.get("candidates") or {}).items()},
        decisions={sid: ResolutionDecision.from_dict(d) for sid, d in (data.get("decisions") or {}).items()},
        errors=[ErrorEntry(**e) for e in data.get("errors", [])],
        progress=Progress(**(data.get("progress") or {})),
        summary=ImportSummary(**summary) if summary else None,
        cancel_requested=bool(data.get("cancel_requested", False)),
        created_at=datetime.fromisoformat(data["created_at"]),
        updated_at=datetime.fromisoformat(data["updated_at"]),
    )
