class StorageError(Exception):
    """Raised when an object store operation fails."""


class ObjectNotFoundError(StorageError):
    """Raised when the requested object does not exist."""


class UnsupportedStorageBackendError(StorageError):
    """Raised when settings name an unknown storage backend."""
