class AnalysisError(Exception):
    """Raised when analysis of a slice fails."""


class AnalysisNetworkError(AnalysisError):
    """Raised when the AI provider call fails due to network/infrastructure issues."""


class MissingCredentialError(Exception):
    """Raised when the AI provider API key is not configured.

    Aborts the whole run; never recorded against a single slice.
    """
