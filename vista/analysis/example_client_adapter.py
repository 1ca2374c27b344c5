"""Example vision client adapter.

Use this module as a reference when implementing new provider adapters.
Implement BaseVisionClient and register the provider in AnalyzerFactory.
"""

from typing import ClassVar

from vista.analysis.client_base import BaseVisionClient


class ExampleClientAdapter(BaseVisionClient):
    """Example adapter that returns a fixed finding.

    No network calls. Useful for local development and tests.
    """

    DEFAULT_RESPONSE: ClassVar[str] = (
        "No focal lesion, mass or acute abnormality identified on this slice."
    )

    def create_image_completion(
        self,
        *,
        model: str,
        temperature: float,
        system_prompt: str,
        image_data_url: str,
    ) -> str:
        _ = model, temperature, system_prompt, image_data_url
        return self.DEFAULT_RESPONSE
