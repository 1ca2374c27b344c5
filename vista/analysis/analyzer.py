"""AI-powered per-slice radiology findings."""

from pathlib import Path

from vista.analysis.base import BaseSliceAnalyzer
from vista.analysis.client_base import BaseVisionClient
from vista.analysis.exceptions import AnalysisError, MissingCredentialError
from vista.analysis.models import SliceFinding
from vista.analysis.prompt_loader import load_system_prompt
from vista.imaging.converter import ConvertedSlice
from vista.logging.logger import Log

MAX_TEMPERATURE = 0.3


class SliceAnalyzer(BaseSliceAnalyzer):
    """Submits one PNG slice per call to a vision-language model."""

    def __init__(
        self,
        *,
        client: BaseVisionClient,
        model: str,
        temperature: float = MAX_TEMPERATURE,
        system_prompt_path: Path | None = None,
    ) -> None:
        self._client = client
        self._model = model
        self._temperature = max(0.0, min(MAX_TEMPERATURE, temperature))
        self._system_prompt = load_system_prompt(system_prompt_path)

    def ensure_configured(self) -> None:
        if not self._client.is_configured:
            raise MissingCredentialError(
                "Server misconfiguration: AI provider API key is missing"
            )

    def analyze(self, converted: ConvertedSlice) -> SliceFinding:
        Log.debug(f"Submitting {converted.name} ({len(converted.png_bytes)} PNG bytes)")
        raw_response = self._client.create_image_completion(
            model=self._model,
            temperature=self._temperature,
            system_prompt=self._system_prompt,
            image_data_url=converted.data_url,
        )
        Log.debug(f"AI raw response for {converted.name}:\n{raw_response}")

        text = raw_response.strip()
        if not text:
            raise AnalysisError("AI returned empty response")
        return SliceFinding(filename=converted.name, result=text)


def analyze_or_record(analyzer: BaseSliceAnalyzer, converted: ConvertedSlice) -> SliceFinding:
    """Analyze a slice, recording a provider failure inline instead of raising."""
    try:
        return analyzer.analyze(converted)
    except AnalysisError as exc:
        Log.warning(f"Analysis failed for {converted.name}: {exc}")
        return SliceFinding.failed(converted.name, str(exc))
