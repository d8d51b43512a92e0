# tests/test_upload.py

from __future__ import annotations

import pytest

from gedcom_import.errors import ValidationError
from gedcom_import.upload import (
    DEFAULT_FILE_NAME,
    MAX_FILE_NAME_LENGTH,
    has_allowed_extension,
    sanitize_file_name,
    validate_upload,
)


@pytest.mark.parametrize(
    "raw, expected",
    [
        ("family.ged", "family.ged"),
        ("../../etc/passwd.ged", "etcpasswd.ged"),
        ("C:\\Users\\me\\tree.ged", "C:Usersmetree.ged"),
        ("nul\x00byte.ged", "nulbyte.ged"),
        ("  spaced.ged  ", "spaced.ged"),
        ("", DEFAULT_FILE_NAME),
        (None, DEFAULT_FILE_NAME),
        ("../..", DEFAULT_FILE_NAME),
    ],
)
def test_sanitize_file_name(raw, expected):
    assert sanitize_file_name(raw) == expected


def test_long_names_keep_their_extension():
    name = sanitize_file_name("a" * 400 + ".ged")
    assert len(name) == MAX_FILE_NAME_LENGTH
    assert name.endswith(".ged")


def test_extension_check_is_case_insensitive():
    assert has_allowed_extension("TREE.GED")
    assert not has_allowed_extension("tree.txt")
    assert not has_allowed_extension("ged")


def test_validate_upload_returns_sanitized_name():
    assert validate_upload("../family.ged", 120) == "family.ged"


@pytest.mark.parametrize(
    "name, size, fragment",
    [
        ("tree.txt", 100, "only .ged files"),
        ("tree.ged", 0, "file is empty"),
        ("tree.ged", 11, "the limit is 10 bytes"),
    ],
)
def test_validate_upload_rejects(name, size, fragment):
    with pytest.raises(ValidationError, match=fragment):
        validate_upload(name, size, max_bytes=10)
