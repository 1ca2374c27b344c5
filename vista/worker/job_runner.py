from vista.config.settings import Settings
from vista.database.models import JobRecord
from vista.database.repositories.job_repository import JobRepository
from vista.logging.logger import Log
from vista.processor.pipeline import PipelineContext
from vista.processor.processor import Processor


class UnknownJobKindError(Exception):
    """Raised when a job's kind has no registered processor."""


class JobRunner:
    """Run one job, catch exceptions, and apply retry logic."""

    def __init__(
        self,
        processors: dict[str, Processor],
        job_repo: JobRepository,
        settings: Settings,
    ) -> None:
        self._processors = processors
        self._job_repo = job_repo
        self._settings = settings

    def run(self, job: JobRecord) -> None:
        """Execute a single job with error handling."""
        Log.info(f"Running {job.kind} job {job.id} (attempt {job.attempts + 1})")
        try:
            processor = self._processors.get(job.kind)
            if processor is None:
                raise UnknownJobKindError(f"No processor for job kind '{job.kind}'")
            processor.process(
                PipelineContext(job_id=job.id, kind=job.kind, subject=job.subject)
            )
            self._job_repo.mark_done(job.id)
            Log.info(f"Job {job.id} completed successfully")
        except Exception as exc:
            self._handle_failure(job, exc)

    def _handle_failure(self, job: JobRecord, exc: Exception) -> None:
        """Increment attempts; mark failed if at max, otherwise back to pending."""
        Log.error(f"Job {job.id} failed: {exc}")
        if isinstance(exc, UnknownJobKindError) or (
            job.attempts + 1 >= self._settings.max_job_attempts
        ):
            self._job_repo.mark_failed(job.id, str(exc))
            Log.error(f"Job {job.id} permanently failed after {job.attempts + 1} attempts")
        else:
            self._job_repo.increment_attempts(job.id)
            Log.warning(f"Job {job.id} will be retried (attempt {job.attempts + 1})")
