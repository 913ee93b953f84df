from __future__ import annotations

"""Exception taxonomy shared by the staging pipeline.

Fatal / not-found / conflict errors abort the single operation that raised them.
Row validation problems and content-store failures are collected into result
lists instead of propagating (see ``RowValidationError`` and ``ContentStoreError``).
"""

__all__ = [
    "StagingError",
    "FatalParseError",
    "RowValidationError",
    "NotFoundError",
    "ConflictError",
    "InvalidUploadError",
    "ForbiddenError",
    "ContentStoreError",
]


class StagingError(Exception):
    """Base class for every error raised by the staging pipeline."""


class FatalParseError(StagingError):
    """Workbook unreadable or no recognized sheets; nothing is staged."""


class RowValidationError(StagingError):
    """A single field problem; recorded on the row, never raised past the parser."""

    def __init__(self, field: str, message: str) -> None:
        super().__init__(f"{field}: {message}")
        self.field = field
        self.message = message


class NotFoundError(StagingError):
    """Referenced upload, sheet or item index does not exist."""


class ConflictError(StagingError):
    """Disallowed transition (e.g. deleting a fully approved upload)."""


class InvalidUploadError(StagingError, ValueError):
    """Structurally invalid staging record passed to the store."""


class ForbiddenError(StagingError):
    """Caller is not allowed to perform the operation (admins only)."""


class ContentStoreError(StagingError):
    """External content-store create call failed for one item."""
