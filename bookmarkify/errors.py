"""
Error types raised by the Bookmarkify core.

Every error derives from BookmarkifyError so presentation code can catch
the whole family in one place and decide which ones to surface.
"""


class BookmarkifyError(Exception):
    """Base class for all Bookmarkify errors."""


class ValidationError(BookmarkifyError):
    """A required field is empty or a value is not acceptable."""


class NotFoundError(BookmarkifyError):
    """An operation targeted a bookmark id that does not exist."""


class DuplicateError(BookmarkifyError):
    """A category with the same name is already present."""


class FormatError(BookmarkifyError):
    """A snapshot blob could not be decoded into bookmarks and categories."""


class StorageError(BookmarkifyError):
    """The persistence adapter failed to write."""
