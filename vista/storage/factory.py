from vista.config.settings import Settings
from vista.storage.base import BaseObjectStore
from vista.storage.exceptions import UnsupportedStorageBackendError
from vista.storage.gcs_adapter import GcsObjectStore
from vista.storage.local_adapter import LocalObjectStore


class ObjectStoreFactory:
    """Creates the object store adapter named by settings.storage_backend."""

    BACKENDS = ("local", "gcs")

    @classmethod
    def create(cls, settings: Settings) -> BaseObjectStore:
        backend = settings.storage_backend.lower()
        if backend == "local":
            return LocalObjectStore(root=settings.storage_local_root)
        if backend == "gcs":
            return GcsObjectStore(
                bucket_name=settings.storage_gcs_bucket,
                project=settings.storage_gcs_project,
            )
        raise UnsupportedStorageBackendError(
            f"Unknown storage backend '{backend}'. Choose from: {list(cls.BACKENDS)}"
        )
