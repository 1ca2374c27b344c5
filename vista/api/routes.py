"""HTTP endpoints: slice analysis, uploads and the reviewer's scan access."""

import json
import mimetypes
from typing import TypeVar

from fastapi import APIRouter, Depends, Request, Response
from fastapi.concurrency import run_in_threadpool
from pydantic import BaseModel, ValidationError

from vista.api.auth import require_user
from vista.api.context import ApiContext, get_context
from vista.api.exceptions import (
    ConflictError,
    InvalidPayloadError,
    NotFoundError,
    UploadStorageError,
)
from vista.api.schemas import (
    AnalysisUpdateRequest,
    AnalyzeSlicesRequest,
    AnalyzeSlicesResponse,
    DeleteSlicesResponse,
    RequeueAnalysisResponse,
    ScanListResponse,
    ScanResultListResponse,
    UploadResponse,
)
from vista.api.slice_service import SliceAnalysisService
from vista.database.models import (
    JOB_KIND_ANALYZE,
    JOB_KIND_CLEANUP,
    JOB_KIND_INGEST,
    SCAN_STATUS_PENDING,
    ScanRecord,
)
from vista.logging.logger import Log
from vista.processor.exceptions import ScanNotFoundError
from vista.storage.exceptions import ObjectNotFoundError, StorageError
from vista.storage.paths import (
    OWNER_METADATA_KEY,
    preview_path,
    scan_id_from_archive,
    slice_path,
    staging_path,
)

router = APIRouter()

ModelT = TypeVar("ModelT", bound=BaseModel)


async def parse_body(request: Request, model: type[ModelT]) -> ModelT:
    """Validate a JSON body. Called after authentication, never before."""
    try:
        payload = await request.json()
    except (json.JSONDecodeError, UnicodeDecodeError) as exc:
        raise InvalidPayloadError("Request body must be valid JSON") from exc
    try:
        return model.model_validate(payload)
    except ValidationError as exc:
        error = exc.errors()[0]
        message = str(error.get("msg", "Invalid request body")).removeprefix("Value error, ")
        raise InvalidPayloadError(message) from exc


def owned_scan(context: ApiContext, scan_id: str, user_id: str) -> ScanRecord:
    try:
        scan = context.scans.find_by_id(scan_id)
    except ScanNotFoundError as exc:
        raise NotFoundError(f"Scan {scan_id} not found") from exc
    if scan.user_id != user_id:
        raise NotFoundError(f"Scan {scan_id} not found")
    return scan


@router.get("/health")
async def health_check():
    """Basic health check endpoint."""
    return {"status": "healthy"}


@router.post("/analyzeSlices", response_model=AnalyzeSlicesResponse)
async def analyze_slices(
    request: Request,
    user_id: str = Depends(require_user),
    context: ApiContext = Depends(get_context),
):
    """Analyze each submitted slice with the vision model, in order."""
    body = await parse_body(request, AnalyzeSlicesRequest)
    findings = await run_in_threadpool(
        SliceAnalysisService(context).analyze, body.slices, user_id
    )
    return {"results": [finding.to_dict() for finding in findings]}


@router.put("/uploads/{filename}", response_model=UploadResponse, status_code=201)
async def upload_archive(
    filename: str,
    request: Request,
    user_id: str = Depends(require_user),
    context: ApiContext = Depends(get_context),
):
    """Stage a ZIP for ingestion and create its 'uploaded' scan."""
    if "/" in filename or filename.startswith(".") or not filename.lower().endswith(".zip"):
        raise InvalidPayloadError("Upload must be a .zip file name")
    data = await request.body()
    if not data:
        raise InvalidPayloadError("Upload body is empty")

    path = staging_path(context.settings.staging_prefix, filename)
    scan_id = scan_id_from_archive(path)

    def stage() -> None:
        if not context.scans.create_uploaded(scan_id, user_id, path):
            raise ConflictError(f"Scan {scan_id} already exists")
        try:
            context.store.upload(
                path,
                data,
                content_type="application/zip",
                metadata={OWNER_METADATA_KEY: user_id},
            )
        except StorageError as exc:
            context.scans.delete_if_empty(scan_id)
            Log.error(f"Could not stage {path}: {exc}")
            raise UploadStorageError(f"Could not store {filename}") from exc
        context.jobs.enqueue(JOB_KIND_INGEST, path)

    await run_in_threadpool(stage)
    Log.info(f"Staged {path} ({len(data)} bytes) for user {user_id}")
    return {"scan_id": scan_id, "path": path}


@router.get("/scans", response_model=ScanListResponse)
def list_scans(
    status: str | None = None,
    user_id: str = Depends(require_user),
    context: ApiContext = Depends(get_context),
):
    scans = context.scans.list_for_user(user_id, status)
    return {"scans": [scan.to_dict() for scan in scans]}


@router.get("/scans/{scan_id}")
def get_scan(
    scan_id: str,
    user_id: str = Depends(require_user),
    context: ApiContext = Depends(get_context),
):
    return owned_scan(context, scan_id, user_id).to_dict()


@router.get("/scans/{scan_id}/results", response_model=ScanResultListResponse)
def list_scan_results(
    scan_id: str,
    user_id: str = Depends(require_user),
    context: ApiContext = Depends(get_context),
):
    owned_scan(context, scan_id, user_id)
    results = context.results.list_for_scan(scan_id)
    return {"results": [result.to_dict() for result in results]}


@router.get("/scans/{scan_id}/slices/{name}")
def download_slice(
    scan_id: str,
    name: str,
    user_id: str = Depends(require_user),
    context: ApiContext = Depends(get_context),
):
    """Stream one slice object, or the PNG preview derived from it."""
    scan = owned_scan(context, scan_id, user_id)
    path = slice_path(context.settings.slices_prefix, scan_id, name)
    known = set(scan.slices) | {preview_path(p) for p in scan.slices}
    if path not in known:
        raise NotFoundError(f"Slice {name} not found")
    try:
        data = context.store.download(path)
    except ObjectNotFoundError as exc:
        raise NotFoundError(f"Slice {name} not found") from exc
    media_type = mimetypes.guess_type(name)[0] or "application/octet-stream"
    return Response(content=data, media_type=media_type)


@router.post(
    "/scans/{scan_id}/analyze", response_model=RequeueAnalysisResponse, status_code=202
)
def requeue_scan_analysis(
    scan_id: str,
    user_id: str = Depends(require_user),
    context: ApiContext = Depends(get_context),
):
    """Queue the analysis of a pending scan again, e.g. after its job failed."""
    scan = owned_scan(context, scan_id, user_id)
    if scan.status != SCAN_STATUS_PENDING:
        raise ConflictError(f"Scan {scan_id} is '{scan.status}', not pending")
    job_id = context.jobs.enqueue(JOB_KIND_ANALYZE, scan_id)
    if job_id is None:
        Log.info(f"Analysis of scan {scan_id} is already queued")
    else:
        Log.info(f"Requeued analysis job {job_id} for scan {scan_id}")
    return {"scan_id": scan_id, "queued": job_id is not None}


@router.put("/scans/{scan_id}/analysis")
async def update_scan_analysis(
    scan_id: str,
    request: Request,
    user_id: str = Depends(require_user),
    context: ApiContext = Depends(get_context),
):
    """Replace a scan's stored findings with the reviewer's re-run."""
    body = await parse_body(request, AnalysisUpdateRequest)

    def update() -> ScanRecord:
        owned_scan(context, scan_id, user_id)
        context.scans.update_ai_analysis(
            scan_id, [finding.model_dump() for finding in body.results]
        )
        return context.scans.find_by_id(scan_id)

    scan = await run_in_threadpool(update)
    Log.info(f"Updated analysis of scan {scan_id} ({len(body.results)} findings)")
    return scan.to_dict()


@router.delete("/scans/{scan_id}/slices", response_model=DeleteSlicesResponse)
def delete_scan_slices(
    scan_id: str,
    user_id: str = Depends(require_user),
    context: ApiContext = Depends(get_context),
):
    """Delete a scan's slice objects and queue a cleanup per slice."""
    scan = owned_scan(context, scan_id, user_id)
    deleted: list[str] = []
    queued = 0
    for path in scan.slices:
        for target in dict.fromkeys([path, preview_path(path)]):
            try:
                context.store.delete(target)
                deleted.append(target)
            except ObjectNotFoundError:
                Log.debug(f"{target} already absent")
        if context.jobs.enqueue(JOB_KIND_CLEANUP, path) is not None:
            queued += 1
    Log.info(f"Deleted {len(deleted)} objects of scan {scan_id}, queued {queued} cleanups")
    return {"deleted": deleted, "queued": queued}
