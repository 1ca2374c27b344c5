class ClientError(Exception):
    """Base exception for all API client errors."""


class ApiRequestError(ClientError):
    """Raised when the API answers with an error status."""

    def __init__(self, status_code: int, message: str) -> None:
        super().__init__(f"HTTP {status_code}: {message}")
        self.status_code = status_code
        self.message = message


class ApiConnectionError(ClientError):
    """Raised when the API cannot be reached."""


class UploadTimeoutError(ClientError):
    """Raised when a scan is not processed within the wait timeout."""


class LoginError(ClientError):
    """Raised when signing in or refreshing the session fails."""
