"""Exceptions shared across the archive.

Every error a route can turn into a JSON ``{"err": ...}`` body derives from
``ArchiveError`` and carries the HTTP status it maps to.
"""


class ArchiveError(Exception):
    """Base class."""

    status_code = 500


class StorageError(ArchiveError):
    """Blob store connection or write failure."""

    status_code = 404


class StoreNotReady(StorageError):
    """Operation attempted before the store finished opening, or after close."""


class FileNotFound(ArchiveError):
    status_code = 404

    def __init__(self, message: str = "No file exists") -> None:
        super().__init__(message)


class NotAnImage(ArchiveError):
    status_code = 404

    def __init__(self, message: str = "Not an image") -> None:
        super().__init__(message)


class FileExists(ArchiveError):
    status_code = 409

    def __init__(self, message: str = "File already exists") -> None:
        super().__init__(message)


class SessionRequired(Exception):
    """Raised by the access gate; answered with a redirect, never an error body."""


class MissingUpload(ArchiveError):
    status_code = 400

    def __init__(self, message: str = "No file uploaded") -> None:
        super().__init__(message)


class PostNotFound(ArchiveError):
    status_code = 404

    def __init__(self, message: str = "No post exists") -> None:
        super().__init__(message)


class DocumentStoreNotReady(ArchiveError):
    """Posts requested before the lifespan opened the document database."""

    status_code = 503
