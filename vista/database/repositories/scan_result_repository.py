from typing import Any

from psycopg.rows import dict_row
from psycopg.types.json import Jsonb

from vista.database.connection import get_connection
from vista.database.models import ScanResultRecord


class ScanResultRepository:
    """Append-only access to the scan_results table."""

    def append(
        self,
        result_id: str,
        scan_id: str,
        filename: str,
        results: list[dict[str, Any]],
    ) -> bool:
        """Insert a result document. Returns False if *result_id* already exists."""
        with get_connection() as conn:
            with conn.cursor() as cur:
                cur.execute(
                    """
                    INSERT INTO scan_results (id, scan_id, filename, results)
                    VALUES (%s, %s, %s, %s)
                    ON CONFLICT (id) DO NOTHING
                    """,
                    (result_id, scan_id, filename, Jsonb(results)),
                )
                inserted = cur.rowcount > 0
            conn.commit()
        return inserted

    def list_for_scan(self, scan_id: str) -> list[ScanResultRecord]:
        """Return every result document for a scan, newest first."""
        with get_connection() as conn:
            with conn.cursor(row_factory=dict_row) as cur:
                cur.execute(
                    """
                    SELECT id, scan_id, filename, results, created_at
                    FROM scan_results
                    WHERE scan_id = %s
                    ORDER BY created_at DESC
                    """,
                    (scan_id,),
                )
                rows = cur.fetchall()
        return [
            ScanResultRecord(
                id=row["id"],
                scan_id=row["scan_id"],
                filename=row["filename"],
                results=list(row["results"] or []),
                created_at=row["created_at"],
            )
            for row in rows
        ]
