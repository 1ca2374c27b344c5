"""Tests for the SliceAnalyzer (AI-powered per-slice findings)."""

from unittest.mock import MagicMock

import pytest

from vista.analysis.analyzer import MAX_TEMPERATURE, SliceAnalyzer, analyze_or_record
from vista.analysis.exceptions import (
    AnalysisError,
    AnalysisNetworkError,
    MissingCredentialError,
)
from vista.imaging.converter import ConvertedSlice


def _converted(name: str = "slice_1.dcm") -> ConvertedSlice:
    return ConvertedSlice(name=name, png_bytes=b"\x89PNG", png_base64="iVBORw==")


def _make_analyzer(client: MagicMock | None = None, temperature: float = 0.3) -> SliceAnalyzer:
    if client is None:
        client = MagicMock()
    return SliceAnalyzer(client=client, model="test-model", temperature=temperature)


class TestAnalyze:
    def test_returns_stripped_finding(self) -> None:
        client = MagicMock()
        client.create_image_completion.return_value = "  Small nodule in left lobe.\n"

        finding = _make_analyzer(client).analyze(_converted())

        assert finding.filename == "slice_1.dcm"
        assert finding.result == "Small nodule in left lobe."
        assert finding.ok

    def test_sends_data_url_and_system_prompt(self) -> None:
        client = MagicMock()
        client.create_image_completion.return_value = "ok"

        _make_analyzer(client).analyze(_converted())

        kwargs = client.create_image_completion.call_args.kwargs
        assert kwargs["model"] == "test-model"
        assert kwargs["image_data_url"] == "data:image/png;base64,iVBORw=="
        assert kwargs["system_prompt"].startswith("You are a radiologist AI.")

    def test_blank_response_raises(self) -> None:
        client = MagicMock()
        client.create_image_completion.return_value = "   "

        with pytest.raises(AnalysisError, match="empty"):
            _make_analyzer(client).analyze(_converted())


class TestTemperature:
    @pytest.mark.parametrize(
        ("requested", "expected"),
        [(0.0, 0.0), (0.2, 0.2), (0.9, MAX_TEMPERATURE), (-1.0, 0.0)],
    )
    def test_is_clamped(self, requested: float, expected: float) -> None:
        client = MagicMock()
        client.create_image_completion.return_value = "ok"

        _make_analyzer(client, temperature=requested).analyze(_converted())

        assert client.create_image_completion.call_args.kwargs["temperature"] == expected


class TestEnsureConfigured:
    def test_raises_when_client_lacks_credentials(self) -> None:
        client = MagicMock(is_configured=False)

        with pytest.raises(MissingCredentialError, match="API key is missing"):
            _make_analyzer(client).ensure_configured()

    def test_passes_when_configured(self) -> None:
        _make_analyzer(MagicMock(is_configured=True)).ensure_configured()


class TestAnalyzeOrRecord:
    def test_records_provider_failure_inline(self) -> None:
        client = MagicMock()
        client.create_image_completion.side_effect = AnalysisNetworkError("timeout")

        finding = analyze_or_record(_make_analyzer(client), _converted("s2.dcm"))

        assert finding.filename == "s2.dcm"
        assert finding.error == "timeout"
        assert finding.result == "Error: timeout"
        assert not finding.ok

    def test_does_not_swallow_unexpected_errors(self) -> None:
        client = MagicMock()
        client.create_image_completion.side_effect = RuntimeError("bug")

        with pytest.raises(RuntimeError):
            analyze_or_record(_make_analyzer(client), _converted())
