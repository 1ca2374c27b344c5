from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from pathlib import Path

from vista.database.models import ScanRecord
from vista.processor.models import SliceWork
from vista.storage.paths import UNKNOWN_OWNER


@dataclass(slots=True)
class PipelineContext:
    job_id: int
    kind: str
    subject: str
    skipped: bool = False
    skip_reason: str = ""
    # ingest
    scratch_dir: Path | None = None
    archive_path: Path | None = None
    owner: str = UNKNOWN_OWNER
    scan_id: str = ""
    slice_paths: list[str] = field(default_factory=list)
    # analyze
    scan: ScanRecord | None = None
    slices: list[SliceWork] = field(default_factory=list)

    def skip(self, reason: str) -> None:
        self.skipped = True
        self.skip_reason = reason


class PipelineStep(ABC):
    @abstractmethod
    def run(self, context: PipelineContext) -> PipelineContext:
        raise NotImplementedError
