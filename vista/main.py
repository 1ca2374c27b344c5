from vista.analysis.factory import AnalyzerFactory
from vista.config.settings import Settings
from vista.database.connection import close_pool, ensure_schema, init_pool
from vista.database.repositories.job_repository import JobRepository
from vista.database.repositories.scan_repository import ScanRepository
from vista.database.repositories.scan_result_repository import ScanResultRepository
from vista.logging.logger import Log
from vista.processor.processor import Repositories, build_processors
from vista.storage.factory import ObjectStoreFactory
from vista.worker.job_runner import JobRunner
from vista.worker.staging_watcher import StagingWatcher
from vista.worker.worker import Worker


def main() -> None:
    """Entry point: initialize pool -> build dependencies -> start worker loop."""
    settings = Settings()
    Log.configure(settings.log_level)
    init_pool(settings)

    try:
        ensure_schema()
        store = ObjectStoreFactory.create(settings)
        analyzer = AnalyzerFactory.create(settings)
        job_repo = JobRepository(settings.max_job_attempts)
        repos = Repositories(
            jobs=job_repo,
            scans=ScanRepository(),
            results=ScanResultRepository(),
        )
        processors = build_processors(settings, store, analyzer, repos)
        job_runner = JobRunner(processors, job_repo, settings)
        watcher = StagingWatcher(store, job_repo, settings.staging_prefix)
        worker = Worker(job_repo, job_runner, settings, staging_watcher=watcher)
        worker.run()
    finally:
        close_pool()


if __name__ == "__main__":
    main()
