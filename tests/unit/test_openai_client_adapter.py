from unittest.mock import MagicMock, patch

import httpx
import openai
import pytest

from vista.analysis.exceptions import AnalysisError, AnalysisNetworkError
from vista.analysis.openai_client_adapter import OpenAIClientAdapter

DATA_URL = "data:image/png;base64,iVBORw0KGgo="


def _make_mock_response(content: str | None) -> MagicMock:
    choice = MagicMock()
    choice.message.content = content
    response = MagicMock()
    response.choices = [choice]
    return response


def _complete(adapter: OpenAIClientAdapter) -> str:
    return adapter.create_image_completion(
        model="gpt-4o",
        temperature=0.3,
        system_prompt="You are a radiologist AI.",
        image_data_url=DATA_URL,
    )


class TestOpenAIClientAdapter:
    def test_returns_content(self) -> None:
        mock_client = MagicMock()
        mock_client.chat.completions.create.return_value = _make_mock_response(
            "No acute findings."
        )
        with patch(
            "vista.analysis.openai_client_adapter.openai.OpenAI",
            return_value=mock_client,
        ):
            adapter = OpenAIClientAdapter(api_key="k", timeout_seconds=30)
            content = _complete(adapter)
        assert content == "No acute findings."

    def test_sends_system_prompt_and_one_image(self) -> None:
        mock_client = MagicMock()
        mock_client.chat.completions.create.return_value = _make_mock_response("ok")
        with patch(
            "vista.analysis.openai_client_adapter.openai.OpenAI",
            return_value=mock_client,
        ):
            adapter = OpenAIClientAdapter(api_key="k", timeout_seconds=30)
            _complete(adapter)

        kwargs = mock_client.chat.completions.create.call_args.kwargs
        assert kwargs["model"] == "gpt-4o"
        assert kwargs["temperature"] == 0.3
        system, user = kwargs["messages"]
        assert system == {"role": "system", "content": "You are a radiologist AI."}
        assert user["role"] == "user"
        assert user["content"] == [{"type": "image_url", "image_url": {"url": DATA_URL}}]

    def test_raises_error_for_empty_content(self) -> None:
        mock_client = MagicMock()
        mock_client.chat.completions.create.return_value = _make_mock_response(None)
        with patch(
            "vista.analysis.openai_client_adapter.openai.OpenAI",
            return_value=mock_client,
        ):
            adapter = OpenAIClientAdapter(api_key="k", timeout_seconds=30)
            with pytest.raises(AnalysisError, match="empty response"):
                _complete(adapter)

    def test_raises_error_for_no_choices(self) -> None:
        mock_client = MagicMock()
        mock_client.chat.completions.create.return_value = MagicMock(choices=[])
        with patch(
            "vista.analysis.openai_client_adapter.openai.OpenAI",
            return_value=mock_client,
        ):
            adapter = OpenAIClientAdapter(api_key="k", timeout_seconds=30)
            with pytest.raises(AnalysisError, match="no choices"):
                _complete(adapter)

    def test_raises_network_error_on_connection_failure(self) -> None:
        mock_client = MagicMock()
        mock_client.chat.completions.create.side_effect = openai.APIConnectionError(
            request=MagicMock()
        )
        with patch(
            "vista.analysis.openai_client_adapter.openai.OpenAI",
            return_value=mock_client,
        ):
            adapter = OpenAIClientAdapter(api_key="k", timeout_seconds=30)
            with pytest.raises(AnalysisNetworkError, match="network error"):
                _complete(adapter)

    def test_raises_network_error_on_timeout(self) -> None:
        mock_client = MagicMock()
        mock_client.chat.completions.create.side_effect = httpx.TimeoutException("timeout")
        with patch(
            "vista.analysis.openai_client_adapter.openai.OpenAI",
            return_value=mock_client,
        ):
            adapter = OpenAIClientAdapter(api_key="k", timeout_seconds=30)
            with pytest.raises(AnalysisNetworkError, match="network error"):
                _complete(adapter)

    def test_raises_network_error_on_api_error(self) -> None:
        mock_client = MagicMock()
        mock_client.chat.completions.create.side_effect = openai.APIError(
            message="server error",
            request=MagicMock(),
            body=None,
        )
        with patch(
            "vista.analysis.openai_client_adapter.openai.OpenAI",
            return_value=mock_client,
        ):
            adapter = OpenAIClientAdapter(api_key="k", timeout_seconds=30)
            with pytest.raises(AnalysisNetworkError, match="API error"):
                _complete(adapter)


class TestIsConfigured:
    def test_false_without_key(self) -> None:
        adapter = OpenAIClientAdapter(api_key="", timeout_seconds=30)
        assert adapter.is_configured is False

    def test_true_for_keyless_local_server(self) -> None:
        adapter = OpenAIClientAdapter(
            api_key="",
            timeout_seconds=30,
            base_url="http://localhost:11434/v1",
            requires_api_key=False,
        )
        assert adapter.is_configured is True

    def test_client_is_built_lazily(self) -> None:
        with patch("vista.analysis.openai_client_adapter.openai.OpenAI") as mock_openai:
            OpenAIClientAdapter(api_key="k", timeout_seconds=30)
        mock_openai.assert_not_called()
