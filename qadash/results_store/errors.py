"""Error types raised by the results store."""


class StorageError(Exception):
    """Base class for results store errors."""


class InitializationError(StorageError):
    """Provider credentials, configuration or endpoint are unusable."""


class StorageWriteError(StorageError):
    """A record could not be written to the active provider."""


class StorageReadError(StorageError):
    """Listing or downloading stored records failed."""


class ParseError(StorageError):
    """A single stored object is not a valid test result document."""

    def __init__(self, object_name: str, reason: str) -> None:
        """Initialize with the offending object name and the reason."""
        super().__init__(f"Failed to parse {object_name}: {reason}")
        self.object_name = object_name
        self.reason = reason


class ObjectNotFoundError(StorageReadError):
    """A listed object no longer exists when it is downloaded."""
