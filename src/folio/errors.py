# ABOUTME: Shared exception base for every user-facing folio failure.
# ABOUTME: The CLI catches FolioError and reports it as a one-line diagnostic.


class FolioError(Exception):
    """Base class for errors that abort a folio command with a diagnostic."""


class PackageValidationError(FolioError):
    """Raised when a book's structure cannot form a valid package.

    Covers zero chapters or pages, more than one cover, and references that
    do not resolve in the manifest. Always raised before any output is written.
    """
