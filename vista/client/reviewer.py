import base64
from pathlib import PurePosixPath
from typing import Any

from vista.client.api_client import VistaApiClient
from vista.logging.logger import Log


class ScanReviewer:
    """Reads, re-runs and deletes the current user's scans."""

    def __init__(self, client: VistaApiClient) -> None:
        self._client = client

    def list_processed(self) -> list[dict[str, Any]]:
        return self._client.list_scans(status="processed")

    def findings(self, scan_id: str) -> list[dict[str, Any]]:
        """Stored findings, falling back to the newest ScanResult."""
        scan = self._client.get_scan(scan_id)
        if scan.get("ai_analysis"):
            return list(scan["ai_analysis"])
        results = self._client.list_results(scan_id)
        if not results:
            return []
        return list(results[0].get("results") or [])

    def rerun(self, scan_id: str) -> list[dict[str, Any]]:
        """Re-analyze every slice and write the findings back to the scan."""
        scan = self._client.get_scan(scan_id)
        slices = []
        for path in scan.get("slices") or []:
            name = PurePosixPath(path).name
            data = self._client.download_slice(scan_id, name)
            slices.append({"name": name, "base64": base64.b64encode(data).decode("ascii")})
        if not slices:
            raise ValueError(f"No slices found for scan {scan_id}")

        Log.info(f"Re-running analysis of {len(slices)} slices for scan {scan_id}")
        results = self._client.analyze_slices(slices)
        self._client.update_analysis(scan_id, results)
        return results

    def delete_slices(self, scan_id: str) -> dict[str, Any]:
        return self._client.delete_slices(scan_id)
