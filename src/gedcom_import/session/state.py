"""
Import session status machine.

    uploaded -> parsing -> parsed -> awaiting_resolution -> resolved -> committed

    parsed may go straight to resolved when no candidate needs a decision.
    failed is reachable from every non-terminal status.
"""

from __future__ import annotations

from typing import Dict, FrozenSet

from gedcom_import.errors import InvalidStateError
from gedcom_import.models import ImportSession, SessionStatus, utcnow

S = SessionStatus

TRANSITIONS: Dict[str, FrozenSet[str]] = {
    S.UPLOADED: frozenset({S.PARSING, S.FAILED}),
    S.PARSING: frozenset({S.PARSED, S.FAILED}),
    # parsed -> resolved when nothing needs a decision and commit is invoked
    S.PARSED: frozenset({S.AWAITING_RESOLUTION, S.RESOLVED, S.FAILED}),
    S.AWAITING_RESOLUTION: frozenset({S.AWAITING_RESOLUTION, S.RESOLVED, S.FAILED}),
    S.RESOLVED: frozenset({S.COMMITTED, S.FAILED}),
    S.COMMITTED: frozenset(),
    S.FAILED: frozenset(),
}

# Statuses in which operator decisions may be recorded.
DECISION_STATUSES = frozenset({S.PARSED, S.AWAITING_RESOLUTION})

# Statuses from which commit may start.
COMMIT_STATUSES = frozenset({S.PARSED, S.AWAITING_RESOLUTION, S.RESOLVED})


def can_transition(current: str, new: str) -> bool:
    return new in TRANSITIONS.get(current, frozenset())


def transition(session: ImportSession, new: str) -> ImportSession:
    """Move ``session`` to ``new`` or raise InvalidStateError."""
    if not can_transition(session.status, new):
        raise InvalidStateError(
            f"Upload {session.upload_id!r} cannot move from {session.status} to {new}",
            upload_id=session.upload_id,
            status=session.status,
        )
    session.status = new
    session.updated_at = utcnow()
    return session
