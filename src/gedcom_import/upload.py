"""
Upload boundary checks, run before a file is handed to the pipeline.
"""

from __future__ import annotations

from pathlib import PurePath
from typing import Iterable, Optional

from gedcom_import.errors import ValidationError

DEFAULT_FILE_NAME = "upload.ged"
MAX_FILE_NAME_LENGTH = 255
MAX_UPLOAD_BYTES = 10 * 1024 * 1024
ALLOWED_EXTENSIONS = (".ged",)


def sanitize_file_name(name: Optional[str]) -> str:
    """
    Make an uploaded file name safe to store and display.

    Separators, ``..`` and NUL bytes are removed. Over-long names are cut to
    255 characters keeping their extension.
    """
    if not name or not isinstance(name, str):
        return DEFAULT_FILE_NAME

    cleaned = name.replace("\x00", "")
    cleaned = cleaned.replace("/", "").replace("\\", "")
    cleaned = cleaned.replace("..", "")
    cleaned = cleaned.strip()
    if not cleaned:
        return DEFAULT_FILE_NAME

    if len(cleaned) > MAX_FILE_NAME_LENGTH:
        stem, dot, ext = cleaned.rpartition(".")
        if not dot:
            return cleaned[:MAX_FILE_NAME_LENGTH]
        cleaned = stem[: MAX_FILE_NAME_LENGTH - len(ext) - 1] + "." + ext
    return cleaned


def has_allowed_extension(file_name: str, extensions: Iterable[str] = ALLOWED_EXTENSIONS) -> bool:
    suffix = PurePath(file_name or "").suffix.lower()
    return bool(suffix) and suffix in {e.lower() for e in extensions}


def validate_upload(
    file_name: str,
    size: int,
    max_bytes: int = MAX_UPLOAD_BYTES,
    extensions: Iterable[str] = ALLOWED_EXTENSIONS,
) -> str:
    """
    Check an upload's name and size; return the sanitized file name.

    Raises:
        ValidationError: wrong extension, empty file or file too large.
    """
    if not has_allowed_extension(file_name, extensions):
        raise ValidationError(
            f"{file_name!r}: only {', '.join(extensions)} files can be imported"
        )
    if size < 1:
        raise ValidationError(f"{file_name!r}: file is empty")
    if size > max_bytes:
        raise ValidationError(
            f"{file_name!r}: file is {size} bytes, the limit is {max_bytes} bytes"
        )
    return sanitize_file_name(file_name)
