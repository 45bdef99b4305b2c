"""Exception hierarchy for pull synchronization."""


class SyncError(Exception):
    """Base class for all synchronization errors."""

    pass


class ValidationError(SyncError):
    """Raised when a pull request or pulled data fails validation.

    Never retried internally. Aborts the in-progress pull.
    """

    pass


class InvalidPageSizeError(ValidationError):
    """Raised when a pull is requested with a page size that is not a positive integer."""

    pass


class DataIntegrityError(ValidationError):
    """Raised when a pulled record is missing required system properties."""

    pass


class TransportError(SyncError):
    """Raised by remote source implementations when a fetch fails."""

    pass


class StorageError(SyncError):
    """Raised by local store implementations when an operation fails."""

    pass


class ConfigurationError(SyncError):
    """Raised when configuration files or environment variables are missing or invalid."""

    pass
