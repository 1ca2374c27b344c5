from dataclasses import dataclass

import httpx
from fastapi import Request

from vista.analysis.base import BaseSliceAnalyzer
from vista.api.auth import BaseTokenVerifier
from vista.config.settings import Settings
from vista.database.repositories.job_repository import JobRepository
from vista.database.repositories.scan_repository import ScanRepository
from vista.database.repositories.scan_result_repository import ScanResultRepository
from vista.imaging.converter import SliceConverter
from vista.storage.base import BaseObjectStore


@dataclass
class ApiContext:
    """Process-wide handles shared by every request."""

    settings: Settings
    store: BaseObjectStore
    analyzer: BaseSliceAnalyzer
    converter: SliceConverter
    verifier: BaseTokenVerifier
    scans: ScanRepository
    results: ScanResultRepository
    jobs: JobRepository
    http_client: httpx.Client


def get_context(request: Request) -> ApiContext:
    return request.app.state.context
