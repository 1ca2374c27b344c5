from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application configuration loaded from environment variables."""

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    app_env: str = "dev"
    log_level: str = "INFO"

    db_host: str = "host.docker.internal"
    db_port: int = 5432
    db_database: str = "vista"
    db_username: str = "vista"
    db_password: str = "secret"
    db_pool_timeout_seconds: float = 30.0

    max_job_attempts: int = 3
    job_poll_interval_seconds: int = 5

    storage_backend: str = "local"
    storage_local_root: Path = Path("/app/files")
    storage_gcs_bucket: str = "vista-lifeimaging-ct-data"
    storage_gcs_project: str | None = None
    staging_prefix: str = "temp-uploads/"
    slices_prefix: str = "slices/"
    delete_staging_after_ingest: bool = True
    archive_max_uncompressed_bytes: int = 2 * 1024 * 1024 * 1024
    scratch_dir: Path | None = None

    analysis_provider: str = "openai"
    analysis_openai_api_key: str = ""
    analysis_openai_model_name: str = "gpt-4o"
    analysis_openai_timeout_seconds: int = 60
    analysis_openai_temperature: float = 0.3
    analysis_openai_compatible_base_url: str = ""
    analysis_openai_compatible_api_key: str = ""
    analysis_openai_compatible_model_name: str = ""
    analysis_ollama_model_name: str = "llava"
    image_max_dimension: int = 1024

    auth_provider: str = "firebase"
    firebase_project_id: str = ""
    auth_static_token: str = ""
    auth_static_user_id: str = "dev-user"

    api_host: str = "0.0.0.0"
    api_port: int = 8080
    slice_url_allowed_hosts: list[str] = [
        "storage.googleapis.com",
        "firebasestorage.googleapis.com",
    ]

    cors_origins: list[str] = [
        "http://localhost:3000",
        "http://127.0.0.1:3000",
    ]
    cors_allow_headers: list[str] = [
        "Authorization",
        "Content-Type",
        "x-goog-meta-foo",
    ]
