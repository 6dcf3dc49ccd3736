"""
Exception types raised by the photo-book engine.

A missing spread record is not an error: stores return ``None`` for it.
"""


class PhotoBookError(Exception):
    """Base class for photo-book engine errors."""


class StorageError(PhotoBookError):
    """A storage backend failed to read, write or delete a value."""

    def __init__(self, message: str, key: str = ""):
        super().__init__(message)
        self.key = key


class QuotaExceededError(StorageError):
    """The storage backend has no room left for the value being written."""


class SerializationError(PhotoBookError):
    """A stored payload could not be decoded into engine objects."""
