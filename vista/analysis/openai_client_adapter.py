import httpx
import openai

from vista.analysis.client_base import BaseVisionClient
from vista.analysis.exceptions import AnalysisError, AnalysisNetworkError


class OpenAIClientAdapter(BaseVisionClient):
    """Vision client adapter built on the OpenAI-compatible chat API."""

    def __init__(
        self,
        *,
        api_key: str,
        timeout_seconds: int,
        base_url: str | None = None,
        requires_api_key: bool = True,
    ) -> None:
        self._api_key = api_key
        self._timeout_seconds = timeout_seconds
        self._base_url = base_url
        self._requires_api_key = requires_api_key
        self._client: openai.OpenAI | None = None

    @property
    def is_configured(self) -> bool:
        return bool(self._api_key) or not self._requires_api_key

    def create_image_completion(
        self,
        *,
        model: str,
        temperature: float,
        system_prompt: str,
        image_data_url: str,
    ) -> str:
        try:
            response = self._get_client().chat.completions.create(
                model=model,
                temperature=temperature,
                messages=[
                    {"role": "system", "content": system_prompt},
                    {
                        "role": "user",
                        "content": [
                            {
                                "type": "image_url",
                                "image_url": {"url": image_data_url},
                            },
                        ],
                    },
                ],
            )
        except (openai.APIConnectionError, httpx.ConnectError, httpx.TimeoutException) as exc:
            raise AnalysisNetworkError(
                f"AI provider network error: {exc}"
            ) from exc
        except openai.APIError as exc:
            raise AnalysisNetworkError(
                f"AI provider API error: {exc}"
            ) from exc

        if not response.choices:
            raise AnalysisError("AI returned no choices")
        content = response.choices[0].message.content
        if not content:
            raise AnalysisError("AI returned empty response")
        return content

    def _get_client(self) -> openai.OpenAI:
        if self._client is None:
            self._client = openai.OpenAI(
                # Local OpenAI-compatible servers accept any key.
                api_key=self._api_key or "not-needed",
                timeout=self._timeout_seconds,
                base_url=self._base_url,
            )
        return self._client
