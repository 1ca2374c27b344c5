from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

JOB_KIND_INGEST = "ingest"
JOB_KIND_ANALYZE = "analyze"
JOB_KIND_CLEANUP = "cleanup"

SCAN_STATUS_UPLOADED = "uploaded"
SCAN_STATUS_PENDING = "pending"
SCAN_STATUS_PROCESSED = "processed"


@dataclass
class JobRecord:
    """Represents a row from the vista_jobs table."""

    id: int
    kind: str
    subject: str
    status: str
    attempts: int
    error_message: str | None = None
    locked_at: datetime | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None


@dataclass
class ScanRecord:
    """Represents a row from the scans table."""

    id: str
    user_id: str
    status: str
    slices: list[str] = field(default_factory=list)
    source_path: str | None = None
    ai_analysis: list[dict[str, Any]] | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "status": self.status,
            "slices": list(self.slices),
            "source_path": self.source_path,
            "ai_analysis": self.ai_analysis,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }


@dataclass
class ScanResultRecord:
    """Represents a row from the scan_results table. Never updated."""

    id: str
    scan_id: str
    filename: str
    results: list[dict[str, Any]] = field(default_factory=list)
    created_at: datetime | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "scan_id": self.scan_id,
            "filename": self.filename,
            "results": list(self.results),
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }
