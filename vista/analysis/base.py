from abc import ABC, abstractmethod

from vista.analysis.models import SliceFinding
from vista.imaging.converter import ConvertedSlice


class BaseSliceAnalyzer(ABC):
    """Contract for all slice analyzers."""

    @abstractmethod
    def ensure_configured(self) -> None:
        """Check credentials before any slice is touched.

        Raises:
            MissingCredentialError: if the provider key is missing.
        """

    @abstractmethod
    def analyze(self, converted: ConvertedSlice) -> SliceFinding:
        """Return findings for one slice.

        Raises:
            AnalysisError: on any provider failure.
        """
