from unittest.mock import MagicMock

from vista.database.models import JOB_KIND_ANALYZE, JOB_KIND_INGEST, JobRecord
from vista.processor.pipeline import PipelineContext
from vista.worker.job_runner import JobRunner


def _make_runner(
    max_attempts: int = 3,
) -> tuple[JobRunner, MagicMock, MagicMock]:
    """Create a JobRunner with mocked dependencies."""
    mock_processor = MagicMock()
    mock_repo = MagicMock()
    settings = MagicMock(max_job_attempts=max_attempts)
    runner = JobRunner({JOB_KIND_INGEST: mock_processor}, mock_repo, settings)
    return runner, mock_processor, mock_repo


def _make_job(attempts: int = 0, kind: str = JOB_KIND_INGEST) -> JobRecord:
    return JobRecord(
        id=1,
        kind=kind,
        subject="temp-uploads/scan_1.zip",
        status="processing",
        attempts=attempts,
    )


class TestSuccessfulProcessing:
    def test_calls_processor_with_context(self) -> None:
        runner, mock_processor, _repo = _make_runner()
        job = _make_job()

        runner.run(job)

        mock_processor.process.assert_called_once()
        context = mock_processor.process.call_args.args[0]
        assert isinstance(context, PipelineContext)
        assert context.job_id == 1
        assert context.kind == JOB_KIND_INGEST
        assert context.subject == "temp-uploads/scan_1.zip"

    def test_marks_job_done(self) -> None:
        runner, _processor, mock_repo = _make_runner()
        job = _make_job()

        runner.run(job)

        mock_repo.mark_done.assert_called_once_with(1)


class TestFailureBelowMax:
    def test_increments_attempts(self) -> None:
        runner, mock_processor, mock_repo = _make_runner(max_attempts=3)
        mock_processor.process.side_effect = Exception("boom")
        job = _make_job(attempts=0)

        runner.run(job)

        mock_repo.increment_attempts.assert_called_once_with(1)
        mock_repo.mark_failed.assert_not_called()

    def test_does_not_mark_done(self) -> None:
        runner, mock_processor, mock_repo = _make_runner(max_attempts=3)
        mock_processor.process.side_effect = Exception("boom")
        job = _make_job(attempts=1)

        runner.run(job)

        mock_repo.mark_done.assert_not_called()


class TestFailureAtMax:
    def test_marks_failed(self) -> None:
        runner, mock_processor, mock_repo = _make_runner(max_attempts=3)
        mock_processor.process.side_effect = Exception("boom")
        job = _make_job(attempts=2)

        runner.run(job)

        mock_repo.mark_failed.assert_called_once_with(1, "boom")
        mock_repo.increment_attempts.assert_not_called()

    def test_marks_failed_when_over_max(self) -> None:
        runner, mock_processor, mock_repo = _make_runner(max_attempts=3)
        mock_processor.process.side_effect = Exception("boom")
        job = _make_job(attempts=5)

        runner.run(job)

        mock_repo.mark_failed.assert_called_once_with(1, "boom")


class TestUnknownKind:
    def test_fails_permanently_without_retry(self) -> None:
        runner, mock_processor, mock_repo = _make_runner(max_attempts=3)
        job = _make_job(kind=JOB_KIND_ANALYZE)

        runner.run(job)

        mock_processor.process.assert_not_called()
        mock_repo.mark_failed.assert_called_once()
        assert "analyze" in mock_repo.mark_failed.call_args.args[1]
        mock_repo.increment_attempts.assert_not_called()
