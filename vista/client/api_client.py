from collections.abc import Iterable
from typing import Any

import httpx

from vista.client.exceptions import ApiConnectionError, ApiRequestError


class VistaApiClient:
    """Thin httpx wrapper around the VISTA HTTP API.

    Every request carries 'Authorization: Bearer <idToken>'.
    """

    def __init__(
        self,
        base_url: str,
        token: str,
        *,
        timeout_seconds: float = 120.0,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        self._client = httpx.Client(
            base_url=base_url.rstrip("/"),
            headers={"Authorization": f"Bearer {token}"},
            timeout=timeout_seconds,
            transport=transport,
        )

    def close(self) -> None:
        self._client.close()

    def __enter__(self) -> "VistaApiClient":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def upload_archive(
        self,
        filename: str,
        chunks: Iterable[bytes],
        size: int,
    ) -> dict[str, Any]:
        response = self._request(
            "PUT",
            f"/uploads/{filename}",
            content=chunks,
            headers={"Content-Type": "application/zip", "Content-Length": str(size)},
        )
        return response.json()

    def list_scans(self, status: str | None = None) -> list[dict[str, Any]]:
        params = {"status": status} if status else None
        return self._request("GET", "/scans", params=params).json()["scans"]

    def get_scan(self, scan_id: str) -> dict[str, Any]:
        return self._request("GET", f"/scans/{scan_id}").json()

    def list_results(self, scan_id: str) -> list[dict[str, Any]]:
        return self._request("GET", f"/scans/{scan_id}/results").json()["results"]

    def download_slice(self, scan_id: str, name: str) -> bytes:
        return self._request("GET", f"/scans/{scan_id}/slices/{name}").content

    def analyze_slices(self, slices: list[dict[str, str]]) -> list[dict[str, Any]]:
        response = self._request("POST", "/analyzeSlices", json={"slices": slices})
        return response.json()["results"]

    def update_analysis(self, scan_id: str, results: list[dict[str, Any]]) -> dict[str, Any]:
        response = self._request(
            "PUT", f"/scans/{scan_id}/analysis", json={"results": results}
        )
        return response.json()

    def requeue_analysis(self, scan_id: str) -> dict[str, Any]:
        return self._request("POST", f"/scans/{scan_id}/analyze").json()

    def delete_slices(self, scan_id: str) -> dict[str, Any]:
        return self._request("DELETE", f"/scans/{scan_id}/slices").json()

    def _request(self, method: str, url: str, **kwargs: Any) -> httpx.Response:
        try:
            response = self._client.request(method, url, **kwargs)
        except httpx.HTTPError as exc:
            raise ApiConnectionError(f"{method} {url} failed: {exc}") from exc
        if response.is_error:
            raise ApiRequestError(response.status_code, _error_message(response))
        return response


def _error_message(response: httpx.Response) -> str:
    try:
        payload = response.json()
    except ValueError:
        return response.text or response.reason_phrase
    if isinstance(payload, dict) and payload.get("error"):
        return str(payload["error"])
    return response.text
