from typing import Any

from psycopg.rows import dict_row
from psycopg.types.json import Jsonb

from vista.database.connection import get_connection
from vista.database.models import ScanRecord
from vista.processor.exceptions import ScanNotFoundError

_COLUMNS = """
    id, user_id, status, slices, source_path, ai_analysis, created_at, updated_at
"""


def _row_to_scan(row: dict[str, Any]) -> ScanRecord:
    return ScanRecord(
        id=row["id"],
        user_id=row["user_id"],
        status=row["status"],
        slices=list(row["slices"] or []),
        source_path=row["source_path"],
        ai_analysis=row["ai_analysis"],
        created_at=row["created_at"],
        updated_at=row["updated_at"],
    )


class ScanRepository:
    """Database operations for the scans table.

    Status writes are conditional so transitions stay monotonic
    (uploaded -> pending -> processed) under duplicate deliveries.
    """

    def create_uploaded(self, scan_id: str, user_id: str, source_path: str) -> bool:
        """Insert an 'uploaded' scan. Returns False if the scan already exists."""
        with get_connection() as conn:
            with conn.cursor() as cur:
                cur.execute(
                    """
                    INSERT INTO scans (id, user_id, status, source_path)
                    VALUES (%s, %s, 'uploaded', %s)
                    ON CONFLICT (id) DO NOTHING
                    """,
                    (scan_id, user_id, source_path),
                )
                created = cur.rowcount > 0
            conn.commit()
        return created

    def upsert_pending(
        self,
        scan_id: str,
        user_id: str,
        slices: list[str],
        source_path: str,
    ) -> bool:
        """Create the scan as 'pending', or promote an 'uploaded' one.

        A scan that is already pending or processed is left untouched.

        Returns:
            True if this call moved the scan to 'pending'.
        """
        with get_connection() as conn:
            with conn.cursor() as cur:
                cur.execute(
                    """
                    INSERT INTO scans (id, user_id, status, slices, source_path)
                    VALUES (%s, %s, 'pending', %s::text[], %s)
                    ON CONFLICT (id) DO UPDATE
                    SET status = 'pending',
                        slices = EXCLUDED.slices,
                        source_path = EXCLUDED.source_path,
                        updated_at = NOW()
                    WHERE scans.status = 'uploaded'
                    RETURNING id
                    """,
                    (scan_id, user_id, slices, source_path),
                )
                row = cur.fetchone()
            conn.commit()
        return row is not None

    def find_by_id(self, scan_id: str) -> ScanRecord:
        """Find a scan by ID.

        Raises:
            ScanNotFoundError: if no scan with this ID exists.
        """
        with get_connection() as conn:
            with conn.cursor(row_factory=dict_row) as cur:
                cur.execute(
                    f"SELECT {_COLUMNS} FROM scans WHERE id = %s",
                    (scan_id,),
                )
                row = cur.fetchone()

        if row is None:
            raise ScanNotFoundError(f"Scan {scan_id} not found")
        return _row_to_scan(row)

    def list_for_user(self, user_id: str, status: str | None = None) -> list[ScanRecord]:
        """List a user's scans, newest first, optionally filtered by status."""
        query = f"SELECT {_COLUMNS} FROM scans WHERE user_id = %s"
        params: tuple[Any, ...] = (user_id,)
        if status is not None:
            query += " AND status = %s"
            params = (user_id, status)
        query += " ORDER BY created_at DESC"
        with get_connection() as conn:
            with conn.cursor(row_factory=dict_row) as cur:
                cur.execute(query, params)
                rows = cur.fetchall()
        return [_row_to_scan(row) for row in rows]

    def find_by_slice_path(self, path: str) -> list[ScanRecord]:
        """Find every scan whose slice list references *path*."""
        with get_connection() as conn:
            with conn.cursor(row_factory=dict_row) as cur:
                cur.execute(
                    f"SELECT {_COLUMNS} FROM scans WHERE %s = ANY(slices)",
                    (path,),
                )
                rows = cur.fetchall()
        return [_row_to_scan(row) for row in rows]

    def mark_processed(
        self,
        scan_id: str,
        ai_analysis: list[dict[str, Any]],
    ) -> bool:
        """Flip a pending scan to 'processed' and attach its findings.

        Returns:
            True if the scan was pending and is now processed.
        """
        with get_connection() as conn:
            with conn.cursor() as cur:
                cur.execute(
                    """
                    UPDATE scans
                    SET status = 'processed', ai_analysis = %s, updated_at = NOW()
                    WHERE id = %s AND status = 'pending'
                    """,
                    (Jsonb(ai_analysis), scan_id),
                )
                updated = cur.rowcount > 0
            conn.commit()
        return updated

    def update_ai_analysis(self, scan_id: str, ai_analysis: list[dict[str, Any]]) -> None:
        """Overwrite the findings attached to a scan (manual re-run).

        Raises:
            ScanNotFoundError: if no scan with this ID exists.
        """
        with get_connection() as conn:
            with conn.cursor() as cur:
                cur.execute(
                    """
                    UPDATE scans
                    SET ai_analysis = %s, updated_at = NOW()
                    WHERE id = %s
                    """,
                    (Jsonb(ai_analysis), scan_id),
                )
                if cur.rowcount == 0:
                    raise ScanNotFoundError(f"Scan {scan_id} not found")
            conn.commit()

    def remove_slice(self, scan_id: str, path: str) -> list[str] | None:
        """Drop *path* from an 'uploaded' scan's slice list.

        Returns:
            The remaining slice list, or None if the scan was not eligible.
        """
        with get_connection() as conn:
            with conn.cursor() as cur:
                cur.execute(
                    """
                    UPDATE scans
                    SET slices = array_remove(slices, %s), updated_at = NOW()
                    WHERE id = %s AND status = 'uploaded'
                    RETURNING slices
                    """,
                    (path, scan_id),
                )
                row = cur.fetchone()
            conn.commit()
        return None if row is None else list(row[0] or [])

    def delete_if_empty(self, scan_id: str) -> bool:
        """Delete an 'uploaded' scan whose slice list is empty."""
        with get_connection() as conn:
            with conn.cursor() as cur:
                cur.execute(
                    """
                    DELETE FROM scans
                    WHERE id = %s AND status = 'uploaded' AND cardinality(slices) = 0
                    """,
                    (scan_id,),
                )
                deleted = cur.rowcount > 0
            conn.commit()
        return deleted
