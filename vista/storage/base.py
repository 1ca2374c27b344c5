from abc import ABC, abstractmethod
from pathlib import Path


class BaseObjectStore(ABC):
    """Contract for all object store adapters.

    Object paths are '/'-separated keys relative to the bucket root,
    e.g. 'temp-uploads/scan_1.zip' or 'slices/scan_1/slice_1.dcm'.
    """

    @abstractmethod
    def upload(
        self,
        path: str,
        data: bytes,
        content_type: str = "application/octet-stream",
        metadata: dict[str, str] | None = None,
    ) -> None:
        """Store *data* at *path*, replacing any existing object.

        Raises:
            StorageError: on any failure.
        """

    @abstractmethod
    def download(self, path: str) -> bytes:
        """Return the object's bytes.

        Raises:
            ObjectNotFoundError: if the object does not exist.
            StorageError: on any other failure.
        """

    @abstractmethod
    def download_to(self, path: str, destination: Path) -> None:
        """Write the object's bytes to a local file.

        Raises:
            ObjectNotFoundError: if the object does not exist.
        """

    @abstractmethod
    def get_metadata(self, path: str) -> dict[str, str]:
        """Return the object's custom metadata (empty dict if none).

        Raises:
            ObjectNotFoundError: if the object does not exist.
        """

    @abstractmethod
    def delete(self, path: str) -> None:
        """Delete the object.

        Raises:
            ObjectNotFoundError: if the object does not exist.
        """

    @abstractmethod
    def exists(self, path: str) -> bool:
        """Return True if an object is stored at *path*."""

    @abstractmethod
    def list(self, prefix: str) -> list[str]:
        """Return sorted object paths starting with *prefix*."""
