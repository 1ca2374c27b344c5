import base64
import binascii

import httpx

from vista.analysis.analyzer import analyze_or_record
from vista.analysis.models import SliceFinding
from vista.api.context import ApiContext
from vista.api.exceptions import SliceSourceError
from vista.api.schemas import SlicePayload
from vista.imaging.exceptions import ImagingError
from vista.logging.logger import Log
from vista.storage.exceptions import StorageError
from vista.storage.paths import OWNER_METADATA_KEY, UNKNOWN_OWNER


class SliceAnalysisService:
    """Synchronous analysis of client-supplied slices (the reviewer's re-run).

    Slices are processed one at a time in request order. A slice that cannot
    be fetched, decoded or analyzed is recorded inline and the batch goes on;
    a missing provider credential aborts before any slice is read.
    """

    def __init__(self, context: ApiContext) -> None:
        self._context = context

    def analyze(self, slices: list[SlicePayload], user_id: str) -> list[SliceFinding]:
        self._context.analyzer.ensure_configured()
        findings: list[SliceFinding] = []
        for payload in slices:
            try:
                data = self._read(payload, user_id)
                converted = self._context.converter.convert(payload.name, data)
            except (SliceSourceError, ImagingError) as exc:
                Log.warning(f"Could not prepare slice {payload.name}: {exc}")
                findings.append(SliceFinding.failed(payload.name, str(exc)))
                continue
            findings.append(analyze_or_record(self._context.analyzer, converted))
        Log.info(
            f"Analyzed {len(findings)} slices for user {user_id} "
            f"({sum(1 for f in findings if not f.ok)} errors)"
        )
        return findings

    def _read(self, payload: SlicePayload, user_id: str) -> bytes:
        if payload.base64 is not None:
            return self._decode_base64(payload.base64)
        url = payload.url or ""
        if url.startswith(("http://", "https://")):
            return self._fetch(url)
        return self._read_object(url, user_id)

    @staticmethod
    def _decode_base64(value: str) -> bytes:
        if value.startswith("data:") and "," in value:
            value = value.split(",", 1)[1]
        try:
            return base64.b64decode(value, validate=True)
        except (binascii.Error, ValueError) as exc:
            raise SliceSourceError(f"Invalid base64 payload: {exc}") from exc

    def _fetch(self, url: str) -> bytes:
        try:
            host = httpx.URL(url).host.lower()
        except httpx.InvalidURL as exc:
            raise SliceSourceError(f"Invalid slice URL {url}: {exc}") from exc
        allowed = {h.lower() for h in self._context.settings.slice_url_allowed_hosts}
        if host not in allowed:
            raise SliceSourceError(f"Downloads from {host or url} are not allowed")
        try:
            response = self._context.http_client.get(url)
            response.raise_for_status()
        except httpx.HTTPError as exc:
            raise SliceSourceError(f"Could not download {url}: {exc}") from exc
        return response.content

    def _read_object(self, path: str, user_id: str) -> bytes:
        store = self._context.store
        if not path.startswith(self._context.settings.slices_prefix):
            raise SliceSourceError(f"{path} is not a slice path")
        try:
            owner = store.get_metadata(path).get(OWNER_METADATA_KEY, UNKNOWN_OWNER)
            if owner not in (user_id, UNKNOWN_OWNER):
                raise SliceSourceError(f"Slice {path} not found")
            return store.download(path)
        except StorageError as exc:
            raise SliceSourceError(str(exc)) from exc
