# src/gedcom_import/loader/tokenizer.py

from __future__ import annotations

import codecs
import re
from dataclasses import dataclass
from typing import Iterator, List, Optional, Tuple, Union

from gedcom_import.errors import GedcomDecodeError
from gedcom_import.models import ParseError


@dataclass(frozen=True)
class Token:
    """
    A single GEDCOM line token.

    Attributes:
        lineno: 1-based line number in the original file.
        level: Parsed GEDCOM level (0, 1, 2, ...).
        pointer: Optional cross-reference identifier, e.g. "@I1@" or None.
        tag: GEDCOM tag, e.g. "INDI", "FAM", "HEAD", "NAME", "FAMC".
        value: The raw line value (payload) as a string (may be empty).
        raw: The original line content without trailing newline characters.
    """
    lineno: int
    level: int
    pointer: Optional[str]
    tag: str
    value: str
    raw: str


class GedcomSyntaxError(ValueError):
    """Raised when a GEDCOM line cannot be parsed according to basic syntax."""

    def __init__(self, message: str, reason: str = "", level: Optional[int] = None):
        super().__init__(message)
        self.reason = reason or message
        self.level = level


# Header CHAR values we can hand to a Python codec. ANSEL has no stdlib codec.
_CHARSET_CODECS = {
    "UTF-8": "utf-8",
    "UTF8": "utf-8",
    "ASCII": "ascii",
    "ANSI": "cp1252",
    "UNICODE": "utf-16",
    "UTF-16": "utf-16",
}

_CHAR_LINE = re.compile(rb"^\s*1\s+CHAR\s+(\S+)", re.MULTILINE)
_LINE_BREAK = re.compile(r"\r\n|\r|\n")


def _strip_eol(line: str) -> str:
    """Strip trailing CR/LF characters but preserve all other whitespace."""
    return line.rstrip("\r\n")


def declared_charset(raw: bytes) -> Optional[str]:
    """Return the ``1 CHAR`` value from the header, if it can be found."""
    m = _CHAR_LINE.search(raw[:4096])
    if not m:
        return None
    return m.group(1).decode("ascii", errors="replace").upper()


def decode_gedcom(raw: Union[bytes, bytearray]) -> str:
    """
    Decode uploaded bytes to text.

    Order of attempts:
        1. UTF-16 when a UTF-16 BOM is present.
        2. UTF-8 (an optional BOM is dropped).
        3. The codec named by the header's ``1 CHAR`` line, when Python has one.

    Raises:
        GedcomDecodeError: if none of the above succeeds. This is the only
        fatal outcome of parsing.
    """
    data = bytes(raw)
    if not data:
        return ""

    if data.startswith((codecs.BOM_UTF16_LE, codecs.BOM_UTF16_BE)):
        try:
            return data.decode("utf-16")
        except UnicodeDecodeError as exc:
            raise GedcomDecodeError(f"File declares UTF-16 but is not valid UTF-16: {exc}") from exc

    try:
        return data.decode("utf-8-sig")
    except UnicodeDecodeError as utf8_exc:
        charset = declared_charset(data)
        codec = _CHARSET_CODECS.get(charset or "")
        if codec is None or codec == "utf-8":
            hint = f" (declared CHAR {charset})" if charset else ""
            raise GedcomDecodeError(
                f"File is not valid UTF-8{hint} and no usable character set is declared: {utf8_exc}"
            ) from utf8_exc
        try:
            return data.decode(codec)
        except UnicodeDecodeError as exc:
            raise GedcomDecodeError(f"File could not be decoded as {charset}: {exc}") from exc


def tokenize_line(line: str, lineno: int = 0) -> Token:
    """
    Parse a single GEDCOM line into a Token.

    Strict about the required order:
        <level> [<pointer>] <tag> [<value>]

    Examples:
        "0 HEAD"
        "0 @I1@ INDI"
        "1 NAME John /Doe/"
        "1 FAMC @F1@"
    """
    raw = _strip_eol(line)

    if not raw.strip():
        raise GedcomSyntaxError(f"Empty or whitespace-only line at {lineno}", "empty line")

    # Handle optional UTF-8 BOM on the very first line.
    if lineno == 1 and raw.startswith("\ufeff"):
        raw = raw.lstrip("\ufeff")

    # Some exporters indent nested lines; the level number still leads.
    stripped = raw.lstrip(" \t")

    # --- 1. Extract level -------------------------------------------------
    parts = stripped.split(None, 1)
    level_str = parts[0]
    if not level_str.isdigit():
        raise GedcomSyntaxError(
            f"Line {lineno}: level is not numeric -> {level_str!r} in {raw!r}",
            f"level {level_str!r} is not a non-negative integer",
        )

    level = int(level_str)
    rest = parts[1].strip(" ") if len(parts) > 1 else ""

    if not rest:
        raise GedcomSyntaxError(f"Line {lineno}: missing tag after level -> {raw!r}", "missing tag", level)

    # --- 2. Extract optional pointer -------------------------------------
    pointer: Optional[str] = None

    if rest.startswith("@"):
        if " " not in rest:
            raise GedcomSyntaxError(
                f"Line {lineno}: pointer present but no tag -> {raw!r}", "cross-reference without a tag", level
            )
        space_index = rest.index(" ")
        pointer = rest[:space_index]
        rest = rest[space_index + 1 :].lstrip(" ")

        if not rest:
            raise GedcomSyntaxError(
                f"Line {lineno}: pointer present but missing tag -> {raw!r}", "cross-reference without a tag", level
            )

    # --- 3. Extract tag and optional value --------------------------------
    if " " in rest:
        tag, value = rest.split(" ", 1)
    else:
        tag, value = rest, ""

    if not tag:
        raise GedcomSyntaxError(f"Line {lineno}: empty tag after level/pointer -> {raw!r}", "missing tag", level)

    return Token(
        lineno=lineno,
        level=level,
        pointer=pointer,
        tag=tag.upper(),
        value=value.rstrip(" "),
        raw=raw,
    )


def iter_tokens(text: str) -> Iterator[Union[Token, ParseError]]:
    """
    Yield a Token or a ParseError for every non-blank line of ``text``.

    Never raises for a bad line; the caller decides what to do with errors.
    """
    for lineno, raw_line in enumerate(_LINE_BREAK.split(text), start=1):
        stripped = _strip_eol(raw_line)
        if not stripped.strip() or stripped == "\ufeff":
            continue
        try:
            yield tokenize_line(stripped, lineno=lineno)
        except GedcomSyntaxError as exc:
            yield ParseError(lineno=lineno, raw_line=stripped, reason=exc.reason, level=exc.level)


def tokenize_text(text: str) -> Tuple[List[Token], List[ParseError]]:
    """Fold ``iter_tokens`` into (tokens, errors), each in file order."""
    tokens: List[Token] = []
    errors: List[ParseError] = []
    for item in iter_tokens(text):
        if isinstance(item, Token):
            tokens.append(item)
        else:
            errors.append(item)
    return tokens, errors


def tokenize_bytes(raw: Union[bytes, bytearray]) -> Tuple[List[Token], List[ParseError]]:
    """Decode then tokenize. Only a decode failure raises."""
    return tokenize_text(decode_gedcom(raw))
