"""
Coarse-grained progress tracking for an import session.

Each phase owns a band of the overall percentage. Updates only happen at
phase boundaries and once per ``batch_size`` records, never per record.
Percentage never decreases and reaches exactly 100 only when the session
ends (committed or failed).
"""

from __future__ import annotations

import time
from typing import Callable, Dict, Optional, Tuple

from gedcom_import.models import ImportSession, SessionStatus, utcnow

PHASE_PARSING = "parsing"
PHASE_MATCHING = "matching"
PHASE_COMMIT = "commit"

# phase -> (start %, end %)
PHASE_BANDS: Dict[str, Tuple[int, int]] = {
    PHASE_PARSING: (0, 40),
    PHASE_MATCHING: (40, 60),
    SessionStatus.PARSED: (60, 60),
    SessionStatus.AWAITING_RESOLUTION: (60, 60),
    PHASE_COMMIT: (60, 99),
}

MAX_IN_FLIGHT = 99


class ProgressReporter:
    def __init__(
        self,
        session: ImportSession,
        batch_size: int = 100,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.session = session
        self.batch_size = max(1, batch_size)
        self.clock = clock
        self._phase_started: float = clock()
        self._total: int = 0
        self._last_reported: int = 0

    @property
    def progress(self):
        return self.session.progress

    def _set(self, percentage: int, estimated_remaining: Optional[float]) -> None:
        progress = self.session.progress
        progress.percentage = max(progress.percentage, min(percentage, 100))
        progress.estimated_remaining = estimated_remaining
        progress.updated_at = utcnow().isoformat()

    def start_phase(self, phase: str, total: int = 0) -> None:
        start, _ = PHASE_BANDS.get(phase, (self.progress.percentage, self.progress.percentage))
        self.session.progress.phase = phase
        self._phase_started = self.clock()
        self._total = max(0, total)
        self._last_reported = 0
        self._set(min(start, MAX_IN_FLIGHT), None)

    def advance(self, done: int) -> bool:
        """
        Record that ``done`` of the phase's records are processed.

        Returns True when a checkpoint was written (once per batch and at the
        end of the phase).
        """
        if self._total <= 0:
            return False
        done = min(done, self._total)
        if done - self._last_reported < self.batch_size and done != self._total:
            return False
        self._last_reported = done
        self.checkpoint(done / self._total)
        return True

    def checkpoint(self, fraction: float) -> None:
        """Write a checkpoint at ``fraction`` (0..1) through the current phase."""
        fraction = max(0.0, min(1.0, fraction))
        start, end = PHASE_BANDS.get(self.progress.phase, (self.progress.percentage, self.progress.percentage))
        percentage = min(int(start + (end - start) * fraction), MAX_IN_FLIGHT)

        elapsed = self.clock() - self._phase_started
        remaining: Optional[float] = None
        if fraction > 0:
            remaining = round(elapsed / fraction * (1.0 - fraction), 3)
        self._set(percentage, remaining)

    def mark(self, phase: str) -> None:
        """Enter a waiting phase (parsed, awaiting_resolution) without work."""
        self.start_phase(phase)

    def finish(self, status: str) -> None:
        """Terminal checkpoint: committed or failed -> exactly 100."""
        if status not in SessionStatus.TERMINAL:
            raise ValueError(f"finish() needs a terminal status, got {status!r}")
        self.session.progress.phase = status
        self._set(100, 0.0)


def progress_snapshot(session: ImportSession) -> Dict[str, object]:
    """Pollable view of a session's progress."""
    p = session.progress
    return {
        "upload_id": session.upload_id,
        "status": session.status,
        "phase": p.phase,
        "percentage": p.percentage,
        "estimated_remaining": p.estimated_remaining,
        "updated_at": p.updated_at,
    }
