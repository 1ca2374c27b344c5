import time

from vista.config.settings import Settings
from vista.database.connection import get_connection
from vista.database.models import JobRecord
from vista.database.repositories.job_repository import JobRepository
from vista.logging.logger import Log
from vista.worker.job_runner import JobRunner
from vista.worker.staging_watcher import StagingWatcher


class Worker:
    """Poll loop: claim -> dispatch, or watch staging and sleep when idle."""

    def __init__(
        self,
        job_repo: JobRepository,
        job_runner: JobRunner,
        settings: Settings,
        staging_watcher: StagingWatcher | None = None,
    ) -> None:
        self._job_repo = job_repo
        self._job_runner = job_runner
        self._settings = settings
        self._staging_watcher = staging_watcher

    def run(self, max_jobs: int | None = None) -> None:
        """Main poll loop. Runs forever until interrupted.

        If max_jobs is set, stop after processing that many jobs (for testing).
        """
        Log.info("Worker started, polling for jobs")
        jobs_done = 0
        try:
            while True:
                if max_jobs is not None and jobs_done >= max_jobs:
                    break
                job = self._try_claim_job()
                if job:
                    self._job_runner.run(job)
                    jobs_done += 1
                    if max_jobs is not None and jobs_done >= max_jobs:
                        break
                elif self._watch_staging() == 0:
                    Log.debug("No jobs available, sleeping")
                    time.sleep(self._settings.job_poll_interval_seconds)
        except KeyboardInterrupt:
            Log.info("Worker shutting down gracefully")

    def _try_claim_job(self) -> JobRecord | None:
        """Attempt to claim the next pending job. Gracefully handle DB errors."""
        try:
            with get_connection() as conn:
                return self._job_repo.claim_next_job(conn)
        except Exception as exc:
            Log.warning(f"Database error, will retry: {exc}")
            return None

    def _watch_staging(self) -> int:
        if self._staging_watcher is None:
            return 0
        try:
            return self._staging_watcher.poll()
        except Exception as exc:
            Log.warning(f"Staging scan failed, will retry: {exc}")
            return 0
