class ProcessorError(Exception):
    """Base exception for all processor-related errors."""


class ScanNotFoundError(ProcessorError):
    """Raised when a scan cannot be found in the database."""


class InvalidArchiveError(ProcessorError):
    """Raised when a staged upload is not a readable ZIP archive."""
