from dataclasses import dataclass
from typing import Any


@dataclass(frozen=True)
class SliceFinding:
    """Model output (or the failure) for one slice."""

    filename: str
    result: str
    error: str | None = None
    image_path: str | None = None

    @classmethod
    def failed(cls, filename: str, error: str) -> "SliceFinding":
        return cls(filename=filename, result=f"Error: {error}", error=error)

    @property
    def ok(self) -> bool:
        return self.error is None

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "filename": self.filename,
            "result": self.result,
            "error": self.error,
        }
        if self.image_path is not None:
            payload["image_path"] = self.image_path
        return payload
