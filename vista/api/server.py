"""FastAPI application for the VISTA HTTP API."""

import httpx
import uvicorn
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from vista.analysis.exceptions import MissingCredentialError
from vista.analysis.factory import AnalyzerFactory
from vista.api.auth import TokenVerifierFactory
from vista.api.context import ApiContext
from vista.api.exceptions import ApiError
from vista.api.routes import router
from vista.config.settings import Settings
from vista.database.connection import close_pool, ensure_schema, init_pool
from vista.database.repositories.job_repository import JobRepository
from vista.database.repositories.scan_repository import ScanRepository
from vista.database.repositories.scan_result_repository import ScanResultRepository
from vista.logging.logger import Log
from vista.processor.exceptions import ScanNotFoundError
from vista.processor.processor import build_converter
from vista.storage.factory import ObjectStoreFactory

CORS_METHODS = ["GET", "POST", "PUT", "DELETE", "OPTIONS"]


def error_response(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": message})


def build_context(settings: Settings) -> ApiContext:
    """Build the process-wide handles once, at startup."""
    return ApiContext(
        settings=settings,
        store=ObjectStoreFactory.create(settings),
        analyzer=AnalyzerFactory.create(settings),
        converter=build_converter(settings),
        verifier=TokenVerifierFactory.create(settings),
        scans=ScanRepository(),
        results=ScanResultRepository(),
        jobs=JobRepository(settings.max_job_attempts),
        http_client=httpx.Client(
            timeout=settings.analysis_openai_timeout_seconds, follow_redirects=False
        ),
    )


def create_app(context: ApiContext) -> FastAPI:
    """Create and configure the FastAPI application."""
    app = FastAPI(
        title="VISTA API",
        description="CT slice upload, analysis and review",
    )
    app.state.context = context

    app.add_middleware(
        CORSMiddleware,
        allow_origins=context.settings.cors_origins,
        allow_credentials=True,
        allow_methods=CORS_METHODS,
        allow_headers=context.settings.cors_allow_headers,
    )

    @app.exception_handler(ApiError)
    async def api_error_handler(request: Request, exc: ApiError):
        return error_response(exc.status_code, exc.message)

    @app.exception_handler(MissingCredentialError)
    async def missing_credential_handler(request: Request, exc: MissingCredentialError):
        Log.error(f"{request.url.path}: {exc}")
        return error_response(500, str(exc))

    @app.exception_handler(ScanNotFoundError)
    async def scan_not_found_handler(request: Request, exc: ScanNotFoundError):
        return error_response(404, str(exc))

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException):
        return error_response(exc.status_code, str(exc.detail))

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        errors = exc.errors()
        message = str(errors[0].get("msg")) if errors else "Invalid request"
        return error_response(400, message)

    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception):
        Log.exception(f"Unhandled exception on {request.url.path}: {exc}")
        return error_response(500, "Internal server error")

    app.include_router(router)
    return app


def main() -> None:
    """Entry point: initialize pool -> build dependencies -> serve."""
    settings = Settings()
    Log.configure(settings.log_level, component="api")
    init_pool(settings)

    try:
        ensure_schema()
        context = build_context(settings)
        app = create_app(context)
        Log.info(f"Serving VISTA API on {settings.api_host}:{settings.api_port}")
        uvicorn.run(
            app,
            host=settings.api_host,
            port=settings.api_port,
            log_level=settings.log_level.lower(),
        )
    finally:
        close_pool()


if __name__ == "__main__":
    main()
