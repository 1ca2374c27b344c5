import shutil
import tempfile
import zipfile
from collections.abc import Iterator
from dataclasses import replace
from pathlib import Path, PurePosixPath

from vista.analysis.analyzer import analyze_or_record
from vista.analysis.base import BaseSliceAnalyzer
from vista.analysis.models import SliceFinding
from vista.database.models import (
    JOB_KIND_ANALYZE,
    SCAN_STATUS_PENDING,
    SCAN_STATUS_PROCESSED,
)
from vista.database.repositories.job_repository import JobRepository
from vista.database.repositories.scan_repository import ScanRepository
from vista.database.repositories.scan_result_repository import ScanResultRepository
from vista.imaging.converter import SliceConverter
from vista.imaging.exceptions import ImagingError
from vista.logging.logger import Log
from vista.processor.exceptions import InvalidArchiveError
from vista.processor.models import ArchiveEntry, SliceWork
from vista.processor.pipeline import PipelineContext, PipelineStep
from vista.storage.base import BaseObjectStore
from vista.storage.exceptions import ObjectNotFoundError, StorageError
from vista.storage.paths import (
    OWNER_METADATA_KEY,
    UNKNOWN_OWNER,
    is_staging_archive,
    preview_path,
    scan_id_from_archive,
    slice_name,
    slice_path,
)

DICOM_CONTENT_TYPE = "application/dicom"
PNG_CONTENT_TYPE = "image/png"


# --- ingest -----------------------------------------------------------------


class SelectStagingArchiveStep(PipelineStep):
    def __init__(self, store: BaseObjectStore, staging_prefix: str) -> None:
        self._store = store
        self._staging_prefix = staging_prefix

    def run(self, context: PipelineContext) -> PipelineContext:
        if not is_staging_archive(context.subject, self._staging_prefix):
            context.skip(f"{context.subject} is not a staged ZIP")
            return context
        if not self._store.exists(context.subject):
            context.skip(f"{context.subject} no longer exists (already ingested?)")
            return context
        context.scan_id = scan_id_from_archive(context.subject)
        Log.info(f"Ingesting {context.subject} as scan {context.scan_id}")
        return context


class DownloadArchiveStep(PipelineStep):
    def __init__(self, store: BaseObjectStore, scratch_root: Path | None = None) -> None:
        self._store = store
        self._scratch_root = scratch_root

    def run(self, context: PipelineContext) -> PipelineContext:
        if self._scratch_root is not None:
            self._scratch_root.mkdir(parents=True, exist_ok=True)
        context.scratch_dir = Path(
            tempfile.mkdtemp(prefix=f"vista-{context.job_id}-", dir=self._scratch_root)
        )
        context.archive_path = context.scratch_dir / slice_name(context.subject)
        self._store.download_to(context.subject, context.archive_path)

        metadata = self._store.get_metadata(context.subject)
        context.owner = metadata.get(OWNER_METADATA_KEY) or UNKNOWN_OWNER
        Log.info(
            f"Downloaded {context.archive_path.stat().st_size} bytes "
            f"for scan {context.scan_id} (owner {context.owner})"
        )
        return context


READ_CHUNK_BYTES = 1024 * 1024


def iter_archive_entries(
    archive_path: Path, max_total_bytes: int | None = None
) -> Iterator[ArchiveEntry]:
    """Yield the usable file entries of a ZIP one at a time, by base name.

    Directories, '__MACOSX/' resources and dot-files are ignored. Entries
    whose base names collide get a numeric suffix. Only one entry is held in
    memory at a time.

    Raises:
        InvalidArchiveError: if the file is not a readable ZIP, or its
            entries add up to more than `max_total_bytes` uncompressed.
    """
    seen: set[str] = set()
    total = 0
    try:
        with zipfile.ZipFile(archive_path) as archive:
            infos = [info for info in archive.infolist() if _is_usable(info)]
            declared = sum(info.file_size for info in infos)
            if max_total_bytes is not None and declared > max_total_bytes:
                raise InvalidArchiveError(
                    f"{archive_path.name} expands to {declared} bytes, "
                    f"over the {max_total_bytes} byte limit"
                )
            for info in infos:
                name = _unique_name(PurePosixPath(info.filename).name, seen)
                seen.add(name)
                remaining = None if max_total_bytes is None else max_total_bytes - total
                data = _read_entry(archive, info, remaining, archive_path.name)
                total += len(data)
                yield ArchiveEntry(name=name, data=data)
    except (zipfile.BadZipFile, zipfile.LargeZipFile, OSError) as exc:
        raise InvalidArchiveError(f"{archive_path.name} is not a valid ZIP: {exc}") from exc


def _is_usable(info: zipfile.ZipInfo) -> bool:
    if info.is_dir():
        return False
    parts = PurePosixPath(info.filename).parts
    return bool(parts) and parts[0] != "__MACOSX" and not parts[-1].startswith(".")


def _read_entry(
    archive: zipfile.ZipFile,
    info: zipfile.ZipInfo,
    limit: int | None,
    archive_name: str,
) -> bytes:
    chunks: list[bytes] = []
    size = 0
    with archive.open(info) as stream:
        while True:
            chunk = stream.read(READ_CHUNK_BYTES)
            if not chunk:
                break
            size += len(chunk)
            if limit is not None and size > limit:
                raise InvalidArchiveError(
                    f"{archive_name} exceeds the uncompressed size limit at {info.filename}"
                )
            chunks.append(chunk)
    return b"".join(chunks)


def _unique_name(name: str, seen: set[str]) -> str:
    if name not in seen:
        return name
    path = PurePosixPath(name)
    counter = 2
    while f"{path.stem}_{counter}{path.suffix}" in seen:
        counter += 1
    return f"{path.stem}_{counter}{path.suffix}"


class UnpackSlicesStep(PipelineStep):
    def __init__(
        self,
        store: BaseObjectStore,
        slices_prefix: str,
        max_uncompressed_bytes: int | None = None,
    ) -> None:
        self._store = store
        self._slices_prefix = slices_prefix
        self._max_uncompressed_bytes = max_uncompressed_bytes

    def run(self, context: PipelineContext) -> PipelineContext:
        if context.archive_path is None:
            raise ValueError("PipelineContext.archive_path must be set before unpacking")
        entries = iter_archive_entries(context.archive_path, self._max_uncompressed_bytes)
        slice_paths: list[str] = []
        for entry in entries:
            path = slice_path(self._slices_prefix, context.scan_id, entry.name)
            self._store.upload(
                path,
                entry.data,
                content_type=_content_type_for(entry.name),
                metadata={OWNER_METADATA_KEY: context.owner},
            )
            slice_paths.append(path)
        context.slice_paths = slice_paths
        Log.info(f"Unpacked {len(slice_paths)} slices for scan {context.scan_id}")
        return context


def _content_type_for(name: str) -> str:
    if name.lower().endswith(".png"):
        return PNG_CONTENT_TYPE
    if name.lower().endswith(".dcm"):
        return DICOM_CONTENT_TYPE
    return "application/octet-stream"


class CreateScanStep(PipelineStep):
    def __init__(self, scan_repo: ScanRepository, job_repo: JobRepository) -> None:
        self._scan_repo = scan_repo
        self._job_repo = job_repo

    def run(self, context: PipelineContext) -> PipelineContext:
        promoted = self._scan_repo.upsert_pending(
            context.scan_id,
            context.owner,
            context.slice_paths,
            context.subject,
        )
        if promoted:
            Log.info(f"Scan {context.scan_id} is pending with {len(context.slice_paths)} slices")
        else:
            Log.info(f"Scan {context.scan_id} already past 'uploaded', left untouched")
        # Re-enqueue on every delivery; the dedup key makes this a no-op when queued.
        self._job_repo.enqueue(JOB_KIND_ANALYZE, context.scan_id)
        return context


class DeleteStagingArchiveStep(PipelineStep):
    def __init__(self, store: BaseObjectStore, enabled: bool = True) -> None:
        self._store = store
        self._enabled = enabled

    def run(self, context: PipelineContext) -> PipelineContext:
        if not self._enabled:
            return context
        try:
            self._store.delete(context.subject)
        except ObjectNotFoundError:
            Log.warning(f"Staging archive {context.subject} already removed")
            return context
        Log.info(f"Deleted staging archive {context.subject}")
        return context


class RemoveScratchStep(PipelineStep):
    def run(self, context: PipelineContext) -> PipelineContext:
        if context.scratch_dir is not None:
            shutil.rmtree(context.scratch_dir, ignore_errors=True)
            Log.debug(f"Removed scratch directory {context.scratch_dir}")
            context.scratch_dir = None
        return context


# --- analyze ----------------------------------------------------------------


class LoadScanStep(PipelineStep):
    def __init__(self, scan_repo: ScanRepository) -> None:
        self._scan_repo = scan_repo

    def run(self, context: PipelineContext) -> PipelineContext:
        scan = self._scan_repo.find_by_id(context.subject)
        if scan.status == SCAN_STATUS_PROCESSED:
            context.skip(f"Scan {scan.id} is already processed")
            return context
        if scan.status != SCAN_STATUS_PENDING:
            context.skip(f"Scan {scan.id} is '{scan.status}', not ready for analysis")
            return context
        context.scan = scan
        context.scan_id = scan.id
        context.slices = [SliceWork(path=path, name=slice_name(path)) for path in scan.slices]
        Log.info(f"Loaded scan {scan.id} with {len(scan.slices)} slices")
        return context


class EnsureAnalyzerConfiguredStep(PipelineStep):
    def __init__(self, analyzer: BaseSliceAnalyzer) -> None:
        self._analyzer = analyzer

    def run(self, context: PipelineContext) -> PipelineContext:
        self._analyzer.ensure_configured()
        return context


class ConvertSlicesStep(PipelineStep):
    def __init__(self, store: BaseObjectStore, converter: SliceConverter) -> None:
        self._store = store
        self._converter = converter

    def run(self, context: PipelineContext) -> PipelineContext:
        converted = 0
        for work in context.slices:
            try:
                data = self._store.download(work.path)
                work.converted = self._converter.convert(work.name, data)
                converted += 1
            except (StorageError, ImagingError) as exc:
                Log.warning(f"Could not convert {work.path}: {exc}")
                work.finding = SliceFinding.failed(work.name, str(exc))
        Log.info(
            f"Converted {converted}/{len(context.slices)} slices for scan {context.scan_id}"
        )
        return context


class StorePreviewsStep(PipelineStep):
    def __init__(self, store: BaseObjectStore) -> None:
        self._store = store

    def run(self, context: PipelineContext) -> PipelineContext:
        stored = 0
        owner = context.scan.user_id if context.scan else UNKNOWN_OWNER
        slice_paths = {work.path for work in context.slices}
        for work in context.slices:
            if work.converted is None:
                continue
            target = preview_path(work.path)
            if target == work.path:
                work.preview_path = target
                continue
            if target in slice_paths:
                Log.warning(f"Preview {target} would overwrite a slice of scan {context.scan_id}")
                continue
            try:
                self._store.upload(
                    target,
                    work.converted.png_bytes,
                    content_type=PNG_CONTENT_TYPE,
                    metadata={OWNER_METADATA_KEY: owner},
                )
            except StorageError as exc:
                Log.warning(f"Could not store preview {target}: {exc}")
                continue
            work.preview_path = target
            stored += 1
        Log.info(f"Stored {stored} PNG previews for scan {context.scan_id}")
        return context


class AnalyzeSlicesStep(PipelineStep):
    def __init__(self, analyzer: BaseSliceAnalyzer) -> None:
        self._analyzer = analyzer

    def run(self, context: PipelineContext) -> PipelineContext:
        for work in context.slices:
            if work.finding is not None or work.converted is None:
                continue
            finding = analyze_or_record(self._analyzer, work.converted)
            work.finding = replace(finding, image_path=work.preview_path)
        failed = sum(1 for work in context.slices if work.finding and not work.finding.ok)
        Log.info(
            f"Analyzed {len(context.slices)} slices for scan {context.scan_id} "
            f"({failed} errors)"
        )
        return context


class PersistResultsStep(PipelineStep):
    def __init__(
        self,
        scan_repo: ScanRepository,
        result_repo: ScanResultRepository,
    ) -> None:
        self._scan_repo = scan_repo
        self._result_repo = result_repo

    def run(self, context: PipelineContext) -> PipelineContext:
        if context.scan is None:
            raise ValueError("PipelineContext.scan must be loaded before persisting results")
        findings = [work.finding for work in context.slices if work.finding is not None]
        source = slice_name(context.scan.source_path) if context.scan.source_path else ""

        inserted = self._result_repo.append(
            f"{context.scan.id}:{context.job_id}",
            context.scan.id,
            source or f"{context.scan.id}.zip",
            [finding.to_dict() for finding in findings],
        )
        if not inserted:
            Log.warning(f"Result for scan {context.scan.id} job {context.job_id} already stored")

        summary = [
            {"filename": f.filename, "result": f.result, "error": f.error} for f in findings
        ]
        if self._scan_repo.mark_processed(context.scan.id, summary):
            Log.info(f"Scan {context.scan.id} processed with {len(findings)} findings")
        else:
            Log.warning(f"Scan {context.scan.id} was no longer pending")
        return context


# --- cleanup ----------------------------------------------------------------


class CleanupScanReferencesStep(PipelineStep):
    """Drop a deleted slice from 'uploaded' scans; delete scans left empty.

    Pending and processed scans keep their references. Database errors are
    logged and do not fail the job.
    """

    def __init__(self, scan_repo: ScanRepository) -> None:
        self._scan_repo = scan_repo

    def run(self, context: PipelineContext) -> PipelineContext:
        path = context.subject
        try:
            scans = self._scan_repo.find_by_slice_path(path)
            if not scans:
                Log.info(f"No scan references {path}")
            for scan in scans:
                if scan.status in (SCAN_STATUS_PENDING, SCAN_STATUS_PROCESSED):
                    Log.info(f"Scan {scan.id} is '{scan.status}', keeping {path}")
                    continue
                remaining = self._scan_repo.remove_slice(scan.id, path)
                if remaining is None:
                    continue
                Log.info(f"Removed {path} from scan {scan.id} ({len(remaining)} left)")
                if not remaining and self._scan_repo.delete_if_empty(scan.id):
                    Log.info(f"Deleted empty scan {scan.id}")
        except Exception as exc:
            Log.error(f"Cleanup for {path} failed: {exc}")
        return context
