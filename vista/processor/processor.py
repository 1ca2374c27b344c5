from dataclasses import dataclass

from vista.analysis.base import BaseSliceAnalyzer
from vista.config.settings import Settings
from vista.database.models import JOB_KIND_ANALYZE, JOB_KIND_CLEANUP, JOB_KIND_INGEST
from vista.database.repositories.job_repository import JobRepository
from vista.database.repositories.scan_repository import ScanRepository
from vista.database.repositories.scan_result_repository import ScanResultRepository
from vista.imaging.converter import SliceConverter
from vista.imaging.dicom_decoder import DicomDecoder
from vista.imaging.png_encoder import PngEncoder
from vista.logging.logger import Log
from vista.processor.pipeline import PipelineContext, PipelineStep
from vista.processor.steps import (
    AnalyzeSlicesStep,
    CleanupScanReferencesStep,
    ConvertSlicesStep,
    CreateScanStep,
    DeleteStagingArchiveStep,
    DownloadArchiveStep,
    EnsureAnalyzerConfiguredStep,
    LoadScanStep,
    PersistResultsStep,
    RemoveScratchStep,
    SelectStagingArchiveStep,
    StorePreviewsStep,
    UnpackSlicesStep,
)
from vista.storage.base import BaseObjectStore


class Processor:
    """Runs pipeline steps in order until one marks the context skipped.

    The final step, if any, always runs, even when a step raises.
    """

    def __init__(
        self,
        steps: list[PipelineStep],
        final_step: PipelineStep | None = None,
    ) -> None:
        self._steps = steps
        self._final_step = final_step

    def process(self, context: PipelineContext) -> PipelineContext:
        Log.info(f"Processing {context.kind} job {context.job_id} for {context.subject}")
        try:
            for step in self._steps:
                context = step.run(context)
                if context.skipped:
                    Log.info(f"Job {context.job_id} skipped: {context.skip_reason}")
                    break
        finally:
            if self._final_step is not None:
                self._final_step.run(context)
        return context


@dataclass
class Repositories:
    jobs: JobRepository
    scans: ScanRepository
    results: ScanResultRepository


def build_converter(settings: Settings) -> SliceConverter:
    return SliceConverter(DicomDecoder(), PngEncoder(settings.image_max_dimension))


def build_ingest_processor(
    settings: Settings,
    store: BaseObjectStore,
    repos: Repositories,
) -> Processor:
    return Processor(
        steps=[
            SelectStagingArchiveStep(store, settings.staging_prefix),
            DownloadArchiveStep(store, settings.scratch_dir),
            UnpackSlicesStep(
                store,
                settings.slices_prefix,
                settings.archive_max_uncompressed_bytes or None,
            ),
            CreateScanStep(repos.scans, repos.jobs),
            DeleteStagingArchiveStep(store, settings.delete_staging_after_ingest),
        ],
        final_step=RemoveScratchStep(),
    )


def build_analysis_processor(
    settings: Settings,
    store: BaseObjectStore,
    analyzer: BaseSliceAnalyzer,
    repos: Repositories,
) -> Processor:
    return Processor(
        steps=[
            LoadScanStep(repos.scans),
            EnsureAnalyzerConfiguredStep(analyzer),
            ConvertSlicesStep(store, build_converter(settings)),
            StorePreviewsStep(store),
            AnalyzeSlicesStep(analyzer),
            PersistResultsStep(repos.scans, repos.results),
        ]
    )


def build_cleanup_processor(repos: Repositories) -> Processor:
    return Processor(steps=[CleanupScanReferencesStep(repos.scans)])


def build_processors(
    settings: Settings,
    store: BaseObjectStore,
    analyzer: BaseSliceAnalyzer,
    repos: Repositories,
) -> dict[str, Processor]:
    """Build one Processor per job kind with all required adapters."""
    return {
        JOB_KIND_INGEST: build_ingest_processor(settings, store, repos),
        JOB_KIND_ANALYZE: build_analysis_processor(settings, store, analyzer, repos),
        JOB_KIND_CLEANUP: build_cleanup_processor(repos),
    }
