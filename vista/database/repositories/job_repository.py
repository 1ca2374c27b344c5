from typing import Any

import psycopg
from psycopg.rows import dict_row

from vista.database.connection import get_connection
from vista.database.models import JobRecord


def dedup_key(kind: str, subject: str) -> str:
    """Natural idempotency key for a trigger delivery."""
    return f"{kind}:{subject}"


class JobRepository:
    """Database operations for the vista_jobs table."""

    def __init__(self, max_attempts: int) -> None:
        self._max_attempts = max_attempts

    def enqueue(self, kind: str, subject: str, *, requeue_failed: bool = True) -> int | None:
        """Queue a trigger delivery unless one with the same key already exists.

        A key whose job has permanently failed is put back to pending with a
        fresh attempt count when `requeue_failed` is set. Pending, processing
        and done jobs are never duplicated.

        Returns:
            The job ID when a job was queued or requeued, else None.
        """
        with get_connection() as conn:
            with conn.cursor() as cur:
                cur.execute(
                    """
                    INSERT INTO vista_jobs (kind, subject, dedup_key)
                    VALUES (%s, %s, %s)
                    ON CONFLICT (dedup_key) DO UPDATE
                    SET status = 'pending', attempts = 0, error_message = NULL,
                        locked_at = NULL, updated_at = NOW()
                    WHERE vista_jobs.status = 'failed' AND %s
                    RETURNING id
                    """,
                    (kind, subject, dedup_key(kind, subject), requeue_failed),
                )
                row = cur.fetchone()
            conn.commit()
        return None if row is None else int(row[0])

    def claim_next_job(self, conn: psycopg.Connection[Any]) -> JobRecord | None:
        """Claim the next pending job using SELECT FOR UPDATE SKIP LOCKED."""
        with conn.cursor(row_factory=dict_row) as cur:
            cur.execute(
                """
                SELECT id, kind, subject, status, attempts
                FROM vista_jobs
                WHERE status = 'pending'
                  AND attempts < %s
                ORDER BY created_at
                LIMIT 1
                FOR UPDATE SKIP LOCKED
                """,
                (self._max_attempts,),
            )
            row = cur.fetchone()

        if row is None:
            return None

        conn.execute(
            """
            UPDATE vista_jobs
            SET status = 'processing', locked_at = NOW(), updated_at = NOW()
            WHERE id = %s
            """,
            (row["id"],),
        )
        conn.commit()

        return JobRecord(
            id=row["id"],
            kind=row["kind"],
            subject=row["subject"],
            status="processing",
            attempts=row["attempts"],
        )

    def mark_done(self, job_id: int) -> None:
        with get_connection() as conn:
            conn.execute(
                """
                UPDATE vista_jobs
                SET status = 'done', updated_at = NOW()
                WHERE id = %s
                """,
                (job_id,),
            )
            conn.commit()

    def mark_failed(self, job_id: int, error: str) -> None:
        """Mark a job as permanently failed."""
        with get_connection() as conn:
            conn.execute(
                """
                UPDATE vista_jobs
                SET status = 'failed', error_message = %s, updated_at = NOW()
                WHERE id = %s
                """,
                (error, job_id),
            )
            conn.commit()

    def increment_attempts(self, job_id: int) -> None:
        """Increment attempt count and return job to pending."""
        with get_connection() as conn:
            conn.execute(
                """
                UPDATE vista_jobs
                SET attempts = attempts + 1, status = 'pending',
                    locked_at = NULL, updated_at = NOW()
                WHERE id = %s
                """,
                (job_id,),
            )
            conn.commit()

    def find_by_id(self, job_id: int) -> JobRecord | None:
        """Find a job by ID. Useful for tests."""
        with get_connection() as conn:
            with conn.cursor(row_factory=dict_row) as cur:
                cur.execute(
                    """
                    SELECT id, kind, subject, status, attempts,
                           error_message, locked_at, created_at, updated_at
                    FROM vista_jobs
                    WHERE id = %s
                    """,
                    (job_id,),
                )
                row = cur.fetchone()

        if row is None:
            return None

        return JobRecord(
            id=row["id"],
            kind=row["kind"],
            subject=row["subject"],
            status=row["status"],
            attempts=row["attempts"],
            error_message=row["error_message"],
            locked_at=row["locked_at"],
            created_at=row["created_at"],
            updated_at=row["updated_at"],
        )
