from vista.database.models import JOB_KIND_INGEST
from vista.database.repositories.job_repository import JobRepository
from vista.logging.logger import Log
from vista.storage.base import BaseObjectStore
from vista.storage.paths import is_staging_archive


class StagingWatcher:
    """Enqueues an ingest job for every ZIP found under the staging prefix.

    Already-queued archives are deduplicated by the job table. An archive
    whose ingest failed for good stays failed; it is not retried every tick.
    """

    def __init__(
        self,
        store: BaseObjectStore,
        job_repo: JobRepository,
        staging_prefix: str,
    ) -> None:
        self._store = store
        self._job_repo = job_repo
        self._staging_prefix = staging_prefix

    def poll(self) -> int:
        """List the staging prefix once. Returns the number of new jobs."""
        queued = 0
        for path in self._store.list(self._staging_prefix):
            if not is_staging_archive(path, self._staging_prefix):
                continue
            job_id = self._job_repo.enqueue(JOB_KIND_INGEST, path, requeue_failed=False)
            if job_id is not None:
                Log.info(f"Queued ingest job {job_id} for {path}")
                queued += 1
        return queued
