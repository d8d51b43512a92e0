# tests/test_dates.py

from __future__ import annotations

import pytest

from gedcom_import.dates import MODIFIER_NOTES, normalize_date


def test_simple_year():
    d = normalize_date("1900")
    assert d.date == "1900"
    assert d.precision == "year"
    assert d.modifier is None
    assert d.valid


def test_month_year():
    d = normalize_date("JAN 1900")
    assert d.date == "1900-01"
    assert d.precision == "month"


def test_full_date():
    d = normalize_date("1 JAN 1900")
    assert d.date == "1900-01-01"
    assert d.precision == "day"


def test_iso_date_from_gedcom7():
    assert normalize_date("1900-03-05").date == "1900-03-05"


def test_approximate_abt():
    d = normalize_date("ABT 1900")
    assert d.modifier == "ABT"
    assert d.date == "1900"


@pytest.mark.parametrize(
    "raw, modifier",
    [
        ("circa 1850", "ABT"),
        ("BEF 3 MAR 1901", "BEF"),
        ("AFT 1901", "AFT"),
        ("CAL 1777", "CAL"),
        ("EST JUN 1800", "EST"),
    ],
)
def test_qualifier_aliases(raw, modifier):
    d = normalize_date(raw)
    assert d.valid
    assert d.modifier == modifier


def test_range_keeps_start_date():
    d = normalize_date("BET 1900 AND 1910")
    assert d.date == "1900"
    assert d.modifier == "BET"

    d = normalize_date("FROM 1 JAN 1850 TO 1860")
    assert d.date == "1850-01-01"
    assert d.modifier == "BET"


def test_calendar_escape_is_ignored():
    assert normalize_date("@#DGREGORIAN@ 1 JAN 1900").date == "1900-01-01"


@pytest.mark.parametrize(
    "raw, error",
    [
        ("", "empty date"),
        ("   ", "empty date"),
        ("sometime in spring", "invalid date format"),
        ("32 JAN 1900", "invalid date format"),
        ("ABT", "qualifier without a date"),
        ("BET AND", "invalid date range"),
    ],
)
def test_invalid_dates_report_why(raw, error):
    d = normalize_date(raw)
    assert not d.valid
    assert d.error == error


def test_every_modifier_has_a_note():
    for code in ("ABT", "BEF", "AFT", "CAL", "EST", "BET"):
        assert MODIFIER_NOTES[code].startswith("(Date ")
