import io
from pathlib import Path
from typing import Any

import numpy as np
import pytest
from pydicom.dataset import FileDataset, FileMetaDataset
from pydicom.uid import CTImageStorage, ExplicitVRLittleEndian, generate_uid

from vista.config.settings import Settings
from vista.database.models import (
    SCAN_STATUS_PENDING,
    SCAN_STATUS_PROCESSED,
    SCAN_STATUS_UPLOADED,
    ScanRecord,
    ScanResultRecord,
)
from vista.database.repositories.job_repository import dedup_key
from vista.processor.exceptions import ScanNotFoundError
from vista.storage.local_adapter import LocalObjectStore


def make_dicom_bytes(
    pixels: np.ndarray | None = None,
    *,
    include_pixels: bool = True,
    slope: float = 1.0,
    intercept: float = 0.0,
) -> bytes:
    """Build a single-frame 16-bit CT slice (512x512 gradient by default)."""
    if pixels is None:
        pixels = (np.arange(512 * 512, dtype=np.uint32).reshape(512, 512) % 4096).astype(
            np.uint16
        )
    meta = FileMetaDataset()
    meta.MediaStorageSOPClassUID = CTImageStorage
    meta.MediaStorageSOPInstanceUID = generate_uid()
    meta.TransferSyntaxUID = ExplicitVRLittleEndian

    ds = FileDataset(None, {}, file_meta=meta, preamble=b"\0" * 128)
    ds.SOPClassUID = CTImageStorage
    ds.SOPInstanceUID = meta.MediaStorageSOPInstanceUID
    ds.Modality = "CT"
    ds.Rows, ds.Columns = pixels.shape
    ds.SamplesPerPixel = 1
    ds.PhotometricInterpretation = "MONOCHROME2"
    ds.BitsAllocated = 16
    ds.BitsStored = 16
    ds.HighBit = 15
    ds.PixelRepresentation = 0
    ds.RescaleSlope = slope
    ds.RescaleIntercept = intercept
    if include_pixels:
        ds.PixelData = pixels.astype(np.uint16).tobytes()
    ds.is_little_endian = True
    ds.is_implicit_VR = False

    buf = io.BytesIO()
    ds.save_as(buf, write_like_original=False)
    return buf.getvalue()


@pytest.fixture()
def dicom_bytes() -> bytes:
    return make_dicom_bytes()


@pytest.fixture()
def dicom_factory():
    return make_dicom_bytes


@pytest.fixture()
def store(tmp_path: Path) -> LocalObjectStore:
    return LocalObjectStore(root=tmp_path / "bucket")


@pytest.fixture()
def settings(tmp_path: Path) -> Settings:
    return Settings(
        storage_backend="local",
        storage_local_root=tmp_path / "bucket",
        scratch_dir=tmp_path / "scratch",
        analysis_provider="example",
        auth_provider="static",
        auth_static_token="test-token",
        auth_static_user_id="user-1",
        slice_url_allowed_hosts=["images.example.org"],
    )


class FakeScanRepository:
    """In-memory ScanRepository with the same conditional transitions."""

    def __init__(self) -> None:
        self.scans: dict[str, ScanRecord] = {}

    def create_uploaded(self, scan_id: str, user_id: str, source_path: str) -> bool:
        if scan_id in self.scans:
            return False
        self.scans[scan_id] = ScanRecord(
            id=scan_id, user_id=user_id, status=SCAN_STATUS_UPLOADED, source_path=source_path
        )
        return True

    def upsert_pending(
        self, scan_id: str, user_id: str, slices: list[str], source_path: str
    ) -> bool:
        scan = self.scans.get(scan_id)
        if scan is None:
            self.scans[scan_id] = ScanRecord(
                id=scan_id,
                user_id=user_id,
                status=SCAN_STATUS_PENDING,
                slices=list(slices),
                source_path=source_path,
            )
            return True
        if scan.status != SCAN_STATUS_UPLOADED:
            return False
        scan.status = SCAN_STATUS_PENDING
        scan.slices = list(slices)
        scan.source_path = source_path
        return True

    def find_by_id(self, scan_id: str) -> ScanRecord:
        if scan_id not in self.scans:
            raise ScanNotFoundError(f"Scan {scan_id} not found")
        return self.scans[scan_id]

    def list_for_user(self, user_id: str, status: str | None = None) -> list[ScanRecord]:
        return [
            scan
            for scan in self.scans.values()
            if scan.user_id == user_id and (status is None or scan.status == status)
        ]

    def find_by_slice_path(self, path: str) -> list[ScanRecord]:
        return [scan for scan in self.scans.values() if path in scan.slices]

    def mark_processed(self, scan_id: str, ai_analysis: list[dict[str, Any]]) -> bool:
        scan = self.scans.get(scan_id)
        if scan is None or scan.status != SCAN_STATUS_PENDING:
            return False
        scan.status = SCAN_STATUS_PROCESSED
        scan.ai_analysis = ai_analysis
        return True

    def update_ai_analysis(self, scan_id: str, ai_analysis: list[dict[str, Any]]) -> None:
        self.find_by_id(scan_id).ai_analysis = ai_analysis

    def remove_slice(self, scan_id: str, path: str) -> list[str] | None:
        scan = self.scans.get(scan_id)
        if scan is None or scan.status != SCAN_STATUS_UPLOADED:
            return None
        scan.slices = [p for p in scan.slices if p != path]
        return list(scan.slices)

    def delete_if_empty(self, scan_id: str) -> bool:
        scan = self.scans.get(scan_id)
        if scan is None or scan.status != SCAN_STATUS_UPLOADED or scan.slices:
            return False
        del self.scans[scan_id]
        return True


class FakeScanResultRepository:
    def __init__(self) -> None:
        self.results: dict[str, ScanResultRecord] = {}

    def append(
        self, result_id: str, scan_id: str, filename: str, results: list[dict[str, Any]]
    ) -> bool:
        if result_id in self.results:
            return False
        self.results[result_id] = ScanResultRecord(
            id=result_id, scan_id=scan_id, filename=filename, results=results
        )
        return True

    def list_for_scan(self, scan_id: str) -> list[ScanResultRecord]:
        matching = [r for r in self.results.values() if r.scan_id == scan_id]
        return list(reversed(matching))


class FakeJobRepository:
    def __init__(self) -> None:
        self.jobs: dict[str, tuple[int, str, str]] = {}
        self.failed: set[str] = set()

    def enqueue(self, kind: str, subject: str, *, requeue_failed: bool = True) -> int | None:
        key = dedup_key(kind, subject)
        if key in self.jobs:
            if requeue_failed and key in self.failed:
                self.failed.discard(key)
                return self.jobs[key][0]
            return None
        job_id = len(self.jobs) + 1
        self.jobs[key] = (job_id, kind, subject)
        return job_id

    def queued(self, kind: str) -> list[str]:
        return [subject for _id, k, subject in self.jobs.values() if k == kind]

    def fail(self, kind: str, subject: str) -> None:
        self.failed.add(dedup_key(kind, subject))


@pytest.fixture()
def scan_repo() -> FakeScanRepository:
    return FakeScanRepository()


@pytest.fixture()
def result_repo() -> FakeScanResultRepository:
    return FakeScanResultRepository()


@pytest.fixture()
def job_repo() -> FakeJobRepository:
    return FakeJobRepository()
