from abc import ABC, abstractmethod


class BaseVisionClient(ABC):
    """Contract for provider-specific vision-language AI clients."""

    @property
    def is_configured(self) -> bool:
        """False when a required credential is missing."""
        return True

    @abstractmethod
    def create_image_completion(
        self,
        *,
        model: str,
        temperature: float,
        system_prompt: str,
        image_data_url: str,
    ) -> str:
        """Return provider response for one image as plain text."""
