from typing import ClassVar

from vista.analysis.analyzer import SliceAnalyzer
from vista.analysis.base import BaseSliceAnalyzer
from vista.analysis.example_client_adapter import ExampleClientAdapter
from vista.analysis.openai_client_adapter import OpenAIClientAdapter
from vista.config.settings import Settings


class AnalyzerFactory:
    """Creates the configured slice analyzer."""

    OPENAI_COMPATIBLE_BASE_URLS: ClassVar[dict[str, str]] = {
        "ollama": "http://localhost:11434/v1",
    }

    @classmethod
    def create(cls, settings: Settings) -> BaseSliceAnalyzer:
        """Create a configured analyzer from application settings.

        A missing API key does not fail here; it surfaces through
        ensure_configured() when analysis is requested.
        """
        provider = settings.analysis_provider.lower()
        if provider == "example":
            return SliceAnalyzer(
                client=ExampleClientAdapter(),
                model="example",
                temperature=0.0,
            )
        client = OpenAIClientAdapter(
            api_key=cls._resolve_api_key(provider, settings),
            timeout_seconds=settings.analysis_openai_timeout_seconds,
            base_url=cls._resolve_base_url(provider, settings),
            requires_api_key=provider not in cls.OPENAI_COMPATIBLE_BASE_URLS,
        )
        return SliceAnalyzer(
            client=client,
            model=cls._resolve_model_name(provider, settings),
            temperature=settings.analysis_openai_temperature,
        )

    @classmethod
    def _resolve_base_url(cls, provider: str, settings: Settings) -> str | None:
        if provider == "openai":
            return None
        if provider == "openai_compatible":
            url = settings.analysis_openai_compatible_base_url.strip()
            if not url:
                raise ValueError(
                    "analysis_openai_compatible_base_url is required for "
                    "analysis_provider=openai_compatible"
                )
            return url
        default_base_url = cls.OPENAI_COMPATIBLE_BASE_URLS.get(provider)
        if default_base_url is not None:
            return default_base_url
        supported = [
            "example",
            "openai",
            "openai_compatible",
            *sorted(cls.OPENAI_COMPATIBLE_BASE_URLS),
        ]
        raise ValueError(
            f"Unknown analysis provider '{provider}'. Choose from: {supported}"
        )

    @classmethod
    def _resolve_api_key(cls, provider: str, settings: Settings) -> str:
        key_map = {
            "openai": settings.analysis_openai_api_key,
            "openai_compatible": settings.analysis_openai_compatible_api_key,
        }
        return key_map.get(provider, "") or ""

    @classmethod
    def _resolve_model_name(cls, provider: str, settings: Settings) -> str:
        key_map = {
            "openai": settings.analysis_openai_model_name,
            "openai_compatible": settings.analysis_openai_compatible_model_name,
            "ollama": settings.analysis_ollama_model_name,
        }
        return key_map.get(provider, "") or ""
