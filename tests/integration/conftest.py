import os
from collections.abc import Generator
from pathlib import Path
from typing import Any

import psycopg
import pytest

from vista.config.settings import Settings
from vista.database.connection import close_pool, ensure_schema, get_connection, init_pool
from vista.database.repositories.job_repository import JobRepository
from vista.database.repositories.scan_repository import ScanRepository
from vista.database.repositories.scan_result_repository import ScanResultRepository


def _test_settings() -> Settings:
    os.environ.setdefault("DB_DATABASE", "vista_test")
    os.environ.setdefault("DB_POOL_TIMEOUT_SECONDS", "3")
    return Settings()


@pytest.fixture(scope="session")
def test_settings() -> Settings:
    return _test_settings()


@pytest.fixture(scope="session")
def integration_pool(test_settings: Settings) -> Generator[None, None, None]:
    try:
        init_pool(test_settings)
        ensure_schema()
    except Exception as e:
        close_pool()
        pytest.skip(f"PostgreSQL test DB not available: {e}. Set DB_* env to point at one")
    try:
        yield
    finally:
        close_pool()


@pytest.fixture(autouse=True)
def clean_tables(integration_pool: None) -> Generator[None, None, None]:
    """Every integration test starts from empty tables in the dedicated test DB."""
    _truncate()
    yield
    _truncate()


def _truncate() -> None:
    with get_connection() as conn:
        conn.execute("TRUNCATE vista_jobs, scan_results, scans")
        conn.commit()


@pytest.fixture
def db_conn(integration_pool: None) -> Generator[psycopg.Connection[Any], None, None]:
    with get_connection() as conn:
        yield conn


@pytest.fixture
def scans() -> ScanRepository:
    return ScanRepository()


@pytest.fixture
def results() -> ScanResultRepository:
    return ScanResultRepository()


@pytest.fixture
def jobs(test_settings: Settings) -> JobRepository:
    return JobRepository(max_attempts=test_settings.max_job_attempts)


@pytest.fixture
def pipeline_settings(test_settings: Settings, tmp_path: Path) -> Settings:
    return test_settings.model_copy(
        update={
            "storage_backend": "local",
            "storage_local_root": tmp_path / "bucket",
            "scratch_dir": tmp_path / "scratch",
            "analysis_provider": "example",
        }
    )

