import json
import shutil
from pathlib import Path

from vista.storage.base import BaseObjectStore
from vista.storage.exceptions import ObjectNotFoundError, StorageError


class LocalObjectStore(BaseObjectStore):
    """Object store backed by a local directory.

    Custom metadata lives in sidecar JSON files under '{root}/.meta/'.
    """

    FILES_ROOT = Path("/app/files")
    META_DIR = ".meta"

    def __init__(self, root: Path | None = None) -> None:
        self._root = (root if root is not None else self.FILES_ROOT).resolve()

    def upload(
        self,
        path: str,
        data: bytes,
        content_type: str = "application/octet-stream",
        metadata: dict[str, str] | None = None,
    ) -> None:
        target = self._resolve(path)
        meta_target = self._meta_path(path)
        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_bytes(data)
            meta_target.parent.mkdir(parents=True, exist_ok=True)
            meta_target.write_text(
                json.dumps({"content_type": content_type, "metadata": metadata or {}}),
                encoding="utf-8",
            )
        except OSError as exc:
            raise StorageError(f"Failed to write {path}: {exc}") from exc

    def download(self, path: str) -> bytes:
        target = self._existing(path)
        try:
            return target.read_bytes()
        except OSError as exc:
            raise StorageError(f"Failed to read {path}: {exc}") from exc

    def download_to(self, path: str, destination: Path) -> None:
        target = self._existing(path)
        try:
            destination.parent.mkdir(parents=True, exist_ok=True)
            shutil.copyfile(target, destination)
        except OSError as exc:
            raise StorageError(f"Failed to copy {path}: {exc}") from exc

    def get_metadata(self, path: str) -> dict[str, str]:
        self._existing(path)
        meta_target = self._meta_path(path)
        if not meta_target.exists():
            return {}
        payload = json.loads(meta_target.read_text(encoding="utf-8"))
        return dict(payload.get("metadata") or {})

    def delete(self, path: str) -> None:
        target = self._existing(path)
        target.unlink()
        self._meta_path(path).unlink(missing_ok=True)

    def exists(self, path: str) -> bool:
        return self._resolve(path).is_file()

    def list(self, prefix: str) -> list[str]:
        if not self._root.exists():
            return []
        meta_root = self._root / self.META_DIR
        paths: list[str] = []
        for file in self._root.rglob("*"):
            if not file.is_file() or meta_root in file.parents:
                continue
            key = file.relative_to(self._root).as_posix()
            if key.startswith(prefix):
                paths.append(key)
        return sorted(paths)

    def _resolve(self, path: str) -> Path:
        target = (self._root / path).resolve()
        if self._root not in target.parents:
            raise StorageError(f"Object path escapes storage root: {path}")
        return target

    def _existing(self, path: str) -> Path:
        target = self._resolve(path)
        if not target.is_file():
            raise ObjectNotFoundError(f"Object not found: {path}")
        return target

    def _meta_path(self, path: str) -> Path:
        return self._root / self.META_DIR / f"{path}.json"
