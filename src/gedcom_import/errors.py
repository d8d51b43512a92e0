"""
Exception hierarchy for the import pipeline.

Recoverable per-line parse problems are *values* (``models.ParseError``), not
exceptions; everything here is raised to the caller.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Optional, Sequence

if TYPE_CHECKING:
    from gedcom_import.models import ImportSummary


class GedcomImportError(Exception):
    """Base class for all errors raised by ``gedcom_import``."""


class GedcomDecodeError(GedcomImportError, ValueError):
    """Raised when an uploaded byte stream cannot be decoded as text at all."""


class ValidationError(GedcomImportError, ValueError):
    """
    A request (decision batch, upload precheck, commit precondition) was
    rejected. The session is left unchanged.
    """

    def __init__(self, message: str, source_id: Optional[str] = None, source_ids: Sequence[str] = ()):
        super().__init__(message)
        self.source_id = source_id
        self.source_ids = list(source_ids) or ([source_id] if source_id else [])


class DuplicateRelationshipError(GedcomImportError):
    """A relationship with identical endpoints, type and role already exists."""


class StorageError(GedcomImportError):
    """
    The tree store failed during a write.

    ``summary`` carries the counts achieved before the failure and is always
    marked ``partial``. ``rolled_back`` states whether those writes were undone.
    """

    def __init__(
        self,
        message: str,
        summary: Optional["ImportSummary"] = None,
        rolled_back: bool = False,
        upload_id: Optional[str] = None,
    ):
        super().__init__(message)
        self.summary = summary
        self.rolled_back = rolled_back
        self.upload_id = upload_id


class SessionNotFoundError(GedcomImportError, KeyError):
    """No session was ever created under this upload id."""

    def __init__(self, upload_id: str):
        super().__init__(upload_id)
        self.upload_id = upload_id

    def __str__(self) -> str:
        return f"No import session found for upload {self.upload_id!r}"


class ExpiredSessionError(GedcomImportError):
    """The session existed but was evicted by the retention policy before commit."""

    def __init__(self, upload_id: str):
        super().__init__(f"Upload {upload_id!r} expired before it was committed; please upload the file again")
        self.upload_id = upload_id


class InvalidStateError(GedcomImportError):
    """An operation was attempted from a session status that does not allow it."""

    def __init__(self, message: str, upload_id: Optional[str] = None, status: Optional[str] = None):
        super().__init__(message)
        self.upload_id = upload_id
        self.status = status


class ImportCancelledError(GedcomImportError):
    """An in-flight parse or commit was cancelled by the operator."""

    def __init__(self, upload_id: str, rolled_back: bool = True):
        super().__init__(f"Import {upload_id!r} was cancelled")
        self.upload_id = upload_id
        self.rolled_back = rolled_back
