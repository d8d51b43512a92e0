# src/gedcom_import/dates/normalizer.py

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, List, Optional, Tuple


# ---------------------------------------------------------------------------
# Month helpers
# ---------------------------------------------------------------------------

MONTHS = {
    "JAN": 1,
    "FEB": 2,
    "MAR": 3,
    "APR": 4,
    "MAY": 5,
    "JUN": 6,
    "JUL": 7,
    "AUG": 8,
    "SEP": 9,
    "SEPT": 9,
    "OCT": 10,
    "NOV": 11,
    "DEC": 12,
}


# ---------------------------------------------------------------------------
# Qualifier / modifier mapping
# ---------------------------------------------------------------------------

# Each entry: alias (lowercase) -> (standard_code, kind)
QUALIFIER_ALIASES: Dict[str, Tuple[str, str]] = {}

def _add_qualifier_aliases(aliases: List[str], code: str, kind: str) -> None:
    for a in aliases:
        QUALIFIER_ALIASES[a.lower()] = (code, kind)


_add_qualifier_aliases(["abt", "abt.", "about", "circa", "c.", "ca", "ca."], "ABT", "approximate")
_add_qualifier_aliases(["bef", "bef.", "before"], "BEF", "before")
_add_qualifier_aliases(["aft", "aft.", "after"], "AFT", "after")
_add_qualifier_aliases(["cal", "cal.", "calculated"], "CAL", "calculated")
_add_qualifier_aliases(["est", "est.", "estimated"], "EST", "estimated")

# Human-readable note for each modifier, appended to a new person's notes
MODIFIER_NOTES = {
    "ABT": "(Date approximate)",
    "BEF": "(Date before)",
    "AFT": "(Date after)",
    "CAL": "(Date calculated)",
    "EST": "(Date estimated)",
    "BET": "(Date between)",
}


@dataclass(frozen=True)
class NormalizedDate:
    """
    Result of normalizing one GEDCOM DATE value.

    ``date`` is ISO-like (YYYY, YYYY-MM or YYYY-MM-DD) or None when the value
    could not be understood; in that case ``error`` says why.
    """
    raw: str
    date: Optional[str]
    precision: Optional[str]
    modifier: Optional[str] = None
    error: Optional[str] = None

    @property
    def valid(self) -> bool:
        return self.date is not None


# ---------------------------------------------------------------------------
# Core parsing helpers
# ---------------------------------------------------------------------------

def _parse_year(token: str) -> Optional[int]:
    token = token.strip()
    if len(token) == 4 and token.isdigit():
        return int(token)
    # allow 3-digit "year" for deep history
    if len(token) == 3 and token.isdigit():
        return int(token)
    return None


def _parse_simple_date(tokens: List[str]) -> Tuple[Optional[str], Optional[str]]:
    """
    Parse a date with no leading qualifier.

    Supports:
        - '1900'
        - 'JAN 1900'
        - '1 JAN 1900'
        - '1900-01-01' (GEDCOM 7 / ISO)
    Returns (date, precision), both None when unrecognized.
    """
    if len(tokens) == 1:
        token = tokens[0]
        parts = token.split("-")
        if len(parts) == 3 and all(p.isdigit() for p in parts) and len(parts[0]) == 4:
            month, day = int(parts[1]), int(parts[2])
            if 1 <= month <= 12 and 1 <= day <= 31:
                return f"{parts[0]}-{month:02d}-{day:02d}", "day"
            return None, None
        year = _parse_year(token)
        if year is not None:
            return f"{year:04d}", "year"
        return None, None

    if len(tokens) == 2:
        mon_token, year_token = tokens
        year = _parse_year(year_token)
        mon = MONTHS.get(mon_token.upper())
        if year is not None and mon is not None:
            return f"{year:04d}-{mon:02d}", "month"
        return None, None

    if len(tokens) == 3:
        day_token, mon_token, year_token = tokens
        year = _parse_year(year_token)
        mon = MONTHS.get(mon_token.upper())
        if year is not None and mon is not None and day_token.isdigit():
            day = int(day_token)
            if 1 <= day <= 31:
                return f"{year:04d}-{mon:02d}-{day:02d}", "day"
        return None, None

    return None, None


# ---------------------------------------------------------------------------
# Main public API
# ---------------------------------------------------------------------------

def normalize_date(raw: Optional[str]) -> NormalizedDate:
    """
    Normalize a GEDCOM DATE value for matching and storage.

        - '1 JAN 1900'   -> '1900-01-01' (day)
        - 'JAN 1900'     -> '1900-01'    (month)
        - '1900'         -> '1900'       (year)
        - 'ABT 1900'     -> '1900', modifier 'ABT'

    Ranges (BET ... AND ..., FROM ... TO ...) keep only their start date and
    report modifier 'BET'.
    """
    s = "" if raw is None else str(raw).strip()
    if not s:
        return NormalizedDate(raw=s, date=None, precision=None, error="empty date")

    tokens = [t for t in s.replace(",", " ").split() if t]

    # Strip a trailing calendar escape such as "@#DJULIAN@" or "(Julian)".
    tokens = [t for t in tokens if not (t.startswith("@#") and t.endswith("@"))]
    if tokens and tokens[-1].startswith("(") and tokens[-1].endswith(")"):
        tokens = tokens[:-1]

    if not tokens:
        return NormalizedDate(raw=s, date=None, precision=None, error="empty date")

    head = tokens[0].lower()

    if head in ("bet", "between", "from"):
        rest = tokens[1:]
        for i, t in enumerate(rest):
            if t.lower() in ("and", "to"):
                rest = rest[:i]
                break
        date, precision = _parse_simple_date(rest)
        if date is None:
            return NormalizedDate(raw=s, date=None, precision=None, modifier="BET", error="invalid date range")
        return NormalizedDate(raw=s, date=date, precision=precision, modifier="BET")

    modifier: Optional[str] = None
    if head in QUALIFIER_ALIASES:
        modifier = QUALIFIER_ALIASES[head][0]
        tokens = tokens[1:]
        if not tokens:
            return NormalizedDate(raw=s, date=None, precision=None, modifier=modifier, error="qualifier without a date")

    date, precision = _parse_simple_date(tokens)
    if date is None:
        return NormalizedDate(raw=s, date=None, precision=None, modifier=modifier, error="invalid date format")
    return NormalizedDate(raw=s, date=date, precision=precision, modifier=modifier)
