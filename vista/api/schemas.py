from typing import Any

from pydantic import BaseModel, Field, field_validator, model_validator


class SlicePayload(BaseModel):
    name: str = Field(min_length=1)
    base64: str | None = None
    url: str | None = None

    @model_validator(mode="after")
    def _one_source(self) -> "SlicePayload":
        if (self.base64 is None) == (self.url is None):
            raise ValueError(f"slice '{self.name}' needs exactly one of 'base64' or 'url'")
        return self


class AnalyzeSlicesRequest(BaseModel):
    slices: list[SlicePayload] = Field(default_factory=list, validate_default=True)

    @field_validator("slices")
    @classmethod
    def _not_empty(cls, value: list[SlicePayload]) -> list[SlicePayload]:
        if not value:
            raise ValueError("No slices provided")
        return value


class FindingPayload(BaseModel):
    filename: str
    result: str
    error: str | None = None


class AnalyzeSlicesResponse(BaseModel):
    results: list[FindingPayload]


class AnalysisUpdateRequest(BaseModel):
    results: list[FindingPayload]


class UploadResponse(BaseModel):
    scan_id: str
    path: str


class ScanListResponse(BaseModel):
    scans: list[dict[str, Any]]


class ScanResultListResponse(BaseModel):
    results: list[dict[str, Any]]


class DeleteSlicesResponse(BaseModel):
    deleted: list[str]
    queued: int


class RequeueAnalysisResponse(BaseModel):
    scan_id: str
    queued: bool
