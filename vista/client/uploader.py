"""Operator-side upload: zip slices, stream the archive, wait for analysis."""

import io
import time
import zipfile
from collections.abc import Callable, Iterator, Sequence
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from vista.client.api_client import VistaApiClient
from vista.client.exceptions import UploadTimeoutError
from vista.logging.logger import Log

ProgressCallback = Callable[[int], None]

PROCESSED = "processed"


@dataclass(frozen=True)
class PreparedArchive:
    name: str
    data: bytes

    @property
    def scan_id(self) -> str:
        return self.name.removesuffix(".zip")


def archive_name(now_ms: int | None = None) -> str:
    """scan_{epochMillis}.zip"""
    if now_ms is None:
        now_ms = int(time.time() * 1000)
    return f"scan_{now_ms}.zip"


class ScanUploader:
    CHUNK_SIZE = 64 * 1024

    def __init__(
        self,
        client: VistaApiClient,
        *,
        poll_interval_seconds: float = 2.0,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._client = client
        self._poll_interval_seconds = poll_interval_seconds
        self._sleep = sleep
        self._clock = clock

    def prepare_archive(self, paths: Sequence[Path], now_ms: int | None = None) -> PreparedArchive:
        """A single .zip is sent as-is; anything else is zipped as slice_{n}.dcm."""
        if not paths:
            raise ValueError("No files selected")
        name = archive_name(now_ms)
        if len(paths) == 1 and paths[0].suffix.lower() == ".zip":
            return PreparedArchive(name=name, data=paths[0].read_bytes())

        buffer = io.BytesIO()
        with zipfile.ZipFile(buffer, "w", compression=zipfile.ZIP_DEFLATED) as archive:
            for index, path in enumerate(paths, start=1):
                archive.writestr(f"slice_{index}.dcm", path.read_bytes())
        Log.debug(f"Zipped {len(paths)} slices into {name}")
        return PreparedArchive(name=name, data=buffer.getvalue())

    def upload(
        self,
        archive: PreparedArchive,
        on_progress: ProgressCallback | None = None,
    ) -> dict[str, Any]:
        """Stream the archive to the staging area, reporting 0-100 progress."""
        response = self._client.upload_archive(
            archive.name,
            self._chunks(archive.data, on_progress),
            len(archive.data),
        )
        Log.info(f"Uploaded {archive.name} as scan {response.get('scan_id')}")
        return response

    def _chunks(self, data: bytes, on_progress: ProgressCallback | None) -> Iterator[bytes]:
        total = len(data)
        sent = 0
        last_reported = -1
        if on_progress is not None and total == 0:
            on_progress(100)
        while sent < total:
            chunk = data[sent : sent + self.CHUNK_SIZE]
            yield chunk
            sent += len(chunk)
            percent = sent * 100 // total
            if on_progress is not None and percent != last_reported:
                on_progress(percent)
                last_reported = percent

    def wait_until_processed(self, scan_id: str, timeout_seconds: float = 300.0) -> dict[str, Any]:
        """Poll the scan until it is processed.

        Raises:
            UploadTimeoutError: if the scan is not processed in time.
        """
        deadline = self._clock() + timeout_seconds
        while True:
            scan = self._client.get_scan(scan_id)
            if scan.get("status") == PROCESSED:
                return scan
            if self._clock() >= deadline:
                raise UploadTimeoutError(
                    f"Scan {scan_id} still '{scan.get('status')}' after {timeout_seconds}s"
                )
            self._sleep(self._poll_interval_seconds)
