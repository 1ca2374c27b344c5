from pathlib import Path

from google.api_core import exceptions as gcloud_exceptions
from google.cloud import storage

from vista.storage.base import BaseObjectStore
from vista.storage.exceptions import ObjectNotFoundError, StorageError


class GcsObjectStore(BaseObjectStore):
    """Object store adapter built on google-cloud-storage."""

    def __init__(self, *, bucket_name: str, project: str | None = None) -> None:
        self._client = storage.Client(project=project)
        self._bucket = self._client.bucket(bucket_name)

    def upload(
        self,
        path: str,
        data: bytes,
        content_type: str = "application/octet-stream",
        metadata: dict[str, str] | None = None,
    ) -> None:
        blob = self._bucket.blob(path)
        if metadata:
            blob.metadata = metadata
        try:
            blob.upload_from_string(data, content_type=content_type)
        except gcloud_exceptions.GoogleAPIError as exc:
            raise StorageError(f"GCS upload failed for {path}: {exc}") from exc

    def download(self, path: str) -> bytes:
        try:
            return self._bucket.blob(path).download_as_bytes()
        except gcloud_exceptions.NotFound as exc:
            raise ObjectNotFoundError(f"Object not found: {path}") from exc
        except gcloud_exceptions.GoogleAPIError as exc:
            raise StorageError(f"GCS download failed for {path}: {exc}") from exc

    def download_to(self, path: str, destination: Path) -> None:
        destination.parent.mkdir(parents=True, exist_ok=True)
        try:
            self._bucket.blob(path).download_to_filename(str(destination))
        except gcloud_exceptions.NotFound as exc:
            destination.unlink(missing_ok=True)
            raise ObjectNotFoundError(f"Object not found: {path}") from exc
        except gcloud_exceptions.GoogleAPIError as exc:
            raise StorageError(f"GCS download failed for {path}: {exc}") from exc

    def get_metadata(self, path: str) -> dict[str, str]:
        try:
            blob = self._bucket.get_blob(path)
        except gcloud_exceptions.GoogleAPIError as exc:
            raise StorageError(f"GCS metadata lookup failed for {path}: {exc}") from exc
        if blob is None:
            raise ObjectNotFoundError(f"Object not found: {path}")
        return dict(blob.metadata or {})

    def delete(self, path: str) -> None:
        try:
            self._bucket.blob(path).delete()
        except gcloud_exceptions.NotFound as exc:
            raise ObjectNotFoundError(f"Object not found: {path}") from exc
        except gcloud_exceptions.GoogleAPIError as exc:
            raise StorageError(f"GCS delete failed for {path}: {exc}") from exc

    def exists(self, path: str) -> bool:
        return bool(self._bucket.blob(path).exists())

    def list(self, prefix: str) -> list[str]:
        try:
            blobs = self._client.list_blobs(self._bucket, prefix=prefix)
            return sorted(blob.name for blob in blobs)
        except gcloud_exceptions.GoogleAPIError as exc:
            raise StorageError(f"GCS listing failed for {prefix}: {exc}") from exc
