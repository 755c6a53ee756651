"""
Error taxonomy for the catalog and identity services.

Every service error derives from ``LibraryError`` and carries a stable
``code`` so callers can branch on the kind of failure without parsing
messages. Repositories raise ``StorageError`` instead; services never let
those escape.
"""

from __future__ import annotations


class LibraryError(Exception):
    """Base exception for library service errors."""

    code = "library_error"


class ValidationError(LibraryError):
    """Input rejected before any state was changed."""

    code = "validation_error"


class DuplicateISBN(ValidationError):
    code = "duplicate_isbn"


class DuplicateId(ValidationError):
    """A caller-supplied identifier already names a stored record."""

    code = "duplicate_id"


class MissingCategory(ValidationError):
    code = "missing_category"


class MissingField(ValidationError):
    code = "missing_field"


class InvalidCopyCount(ValidationError):
    code = "invalid_copy_count"


class DuplicateLogin(ValidationError):
    code = "duplicate_login"


class InvalidRole(ValidationError):
    code = "invalid_role"


class NotFoundError(LibraryError):
    """Identifier does not resolve to a stored record."""

    code = "not_found"


class ConflictError(LibraryError):
    """Request is valid but the current state forbids it."""

    code = "conflict"


class BookInUse(ConflictError):
    code = "book_in_use"


class NoCopiesAvailable(ConflictError):
    code = "no_copies_available"


class AllCopiesReturned(ConflictError):
    code = "all_copies_returned"


class InvalidCredentials(ConflictError):
    code = "invalid_credentials"


class AuthenticationError(LibraryError):
    """Login refused. Deliberately silent about which check failed."""

    code = "authentication_failed"


class OperationFailed(LibraryError):
    """Unexpected failure in storage or hashing; details go to the audit log."""

    code = "operation_failed"


class StorageError(Exception):
    """Raised by repositories when the backing store misbehaves."""


class DuplicateKeyError(StorageError):
    """A unique key (ISBN, login) is already taken."""


class DuplicateIdError(StorageError):
    """The record identifier (book_id, user_id) is already taken."""


class CopyCountViolation(StorageError):
    """An adjustment would leave copy counts outside 0 <= available <= total."""
