class ApiError(Exception):
    """Base exception for errors answered with an HTTP status and {error}."""

    status_code = 500

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class AuthenticationError(ApiError):
    """Raised when the bearer token is missing or cannot be verified."""

    status_code = 401


class InvalidPayloadError(ApiError):
    """Raised when the request body or path is malformed."""

    status_code = 400


class NotFoundError(ApiError):
    """Raised when a resource is missing or owned by another user."""

    status_code = 404


class ConflictError(ApiError):
    """Raised when a scan already exists or is not in the required state."""

    status_code = 409


class SliceSourceError(Exception):
    """A single slice's bytes could not be obtained; recorded inline."""


class UploadStorageError(ApiError):
    """Raised when a staged upload cannot be written to the object store."""

    status_code = 503
