"""
SQLite persistence manager for job records.

Single-file SQLite database with one row per job. Rows are upserted whole:
the orchestrating process is the only writer, so the last write wins.
List-valued columns are stored as JSON text.
"""

import json
import sqlite3
from contextlib import contextmanager
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional

from .errors import LoadError, PersistenceError, SaveError, SchemaError


# Database schema version for migrations
SCHEMA_VERSION = 1

_JSON_COLUMNS = (
    "edit_options",
    "file_manifest",
    "uploaded_files",
    "failed_uploads",
    "failed_downloads",
    "metadata",
)

_COLUMNS = (
    "id",
    "project_name",
    "input_directory",
    "output_directory",
    "source_type",
    "parent_job_id",
    "remote_project_id",
    "profile_key",
    "photography_type",
    "edit_options",
    "status",
    "progress",
    "error_message",
    "failed_step",
    "file_manifest",
    "total_files",
    "uploaded_count",
    "uploaded_files",
    "failed_uploads",
    "downloaded_count",
    "failed_downloads",
    "created_at",
    "started_at",
    "upload_completed_at",
    "processing_completed_at",
    "completed_at",
    "metadata",
    "updated_at",
)


class PersistenceManager:
    """
    Manages SQLite persistence for job records.

    Stores the complete job shape, queryable by status and creation time.
    """

    def __init__(self, db_path: str):
        """
        Args:
            db_path: Path to SQLite database file (parent directories are created)
        """
        self.db_path = str(Path(db_path).expanduser())
        try:
            Path(self.db_path).parent.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise PersistenceError(self.db_path, f"cannot create database directory: {e}") from e
        self._ensure_schema()

    @contextmanager
    def _connect(self):
        """Context manager for database connections."""
        try:
            conn = sqlite3.connect(self.db_path)
        except sqlite3.Error as e:
            raise PersistenceError(self.db_path, f"cannot open database: {e}") from e
        conn.row_factory = sqlite3.Row
        try:
            yield conn
            conn.commit()
        except sqlite3.Error as e:
            conn.rollback()
            raise PersistenceError(self.db_path, f"database operation failed: {e}") from e
        finally:
            conn.close()

    def _ensure_schema(self):
        """Create schema if it doesn't exist."""
        try:
            with self._connect() as conn:
                cursor = conn.cursor()
                cursor.execute("""
                    CREATE TABLE IF NOT EXISTS schema_version (
                        version INTEGER PRIMARY KEY,
                        applied_at TEXT NOT NULL
                    )
                """)

                cursor.execute("SELECT version FROM schema_version ORDER BY version DESC LIMIT 1")
                row = cursor.fetchone()
                current_version = row[0] if row else 0

                if current_version > SCHEMA_VERSION:
                    raise SchemaError(
                        self.db_path,
                        f"schema version {current_version} is newer than supported ({SCHEMA_VERSION}); "
                        f"upgrade flambient or point --db at another file",
                        found_version=current_version,
                    )
                if current_version < SCHEMA_VERSION:
                    self._migrate_schema(conn, current_version)
        except SchemaError:
            raise
        except PersistenceError as e:
            raise SchemaError(self.db_path, f"schema setup failed: {e.reason}") from e

    def _migrate_schema(self, conn, from_version: int):
        """Apply schema migrations."""
        cursor = conn.cursor()

        if from_version < 1:
            cursor.execute("""
                CREATE TABLE IF NOT EXISTS jobs (
                    id TEXT PRIMARY KEY,
                    project_name TEXT NOT NULL,
                    input_directory TEXT NOT NULL,
                    output_directory TEXT NOT NULL,
                    source_type TEXT NOT NULL DEFAULT 'manual',
                    parent_job_id TEXT,
                    remote_project_id TEXT,
                    profile_key TEXT NOT NULL,
                    photography_type TEXT,
                    edit_options TEXT NOT NULL DEFAULT '{}',
                    status TEXT NOT NULL,
                    progress INTEGER NOT NULL DEFAULT 0,
                    error_message TEXT,
                    failed_step TEXT,
                    file_manifest TEXT NOT NULL DEFAULT '[]',
                    total_files INTEGER NOT NULL DEFAULT 0,
                    uploaded_count INTEGER NOT NULL DEFAULT 0,
                    uploaded_files TEXT NOT NULL DEFAULT '[]',
                    failed_uploads TEXT NOT NULL DEFAULT '[]',
                    downloaded_count INTEGER NOT NULL DEFAULT 0,
                    failed_downloads TEXT NOT NULL DEFAULT '[]',
                    created_at TEXT NOT NULL,
                    started_at TEXT,
                    upload_completed_at TEXT,
                    processing_completed_at TEXT,
                    completed_at TEXT,
                    metadata TEXT NOT NULL DEFAULT '{}',
                    updated_at TEXT NOT NULL
                )
            """)

            cursor.execute("CREATE INDEX IF NOT EXISTS idx_jobs_status ON jobs (status)")
            cursor.execute("CREATE INDEX IF NOT EXISTS idx_jobs_created_at ON jobs (created_at)")
            cursor.execute(
                "CREATE INDEX IF NOT EXISTS idx_jobs_status_created ON jobs (status, created_at)"
            )

            cursor.execute(
                "INSERT INTO schema_version (version, applied_at) VALUES (?, ?)",
                (1, datetime.now().isoformat())
            )

    # Job persistence

    def save_job(self, job_data: Dict[str, Any]):
        """
        Save or update a job record.

        Args:
            job_data: Dict keyed by column name; list/dict columns are JSON-encoded here

        Raises:
            SaveError: If the write fails
        """
        row = {name: job_data.get(name) for name in _COLUMNS}
        row["total_files"] = len(job_data.get("file_manifest") or [])
        row["updated_at"] = datetime.now().isoformat()
        for name in _JSON_COLUMNS:
            default = {} if name in ("edit_options", "metadata") else []
            row[name] = json.dumps(job_data.get(name) or default)

        columns = ", ".join(_COLUMNS)
        placeholders = ", ".join("?" for _ in _COLUMNS)
        updates = ", ".join(f"{name} = excluded.{name}" for name in _COLUMNS if name != "id")

        try:
            with self._connect() as conn:
                conn.execute(
                    f"INSERT INTO jobs ({columns}) VALUES ({placeholders}) "
                    f"ON CONFLICT(id) DO UPDATE SET {updates}",
                    tuple(row[name] for name in _COLUMNS),
                )
        except PersistenceError as e:
            raise SaveError(self.db_path, job_data.get("id"), _reason(e)) from e

    @staticmethod
    def _row_to_dict(row: sqlite3.Row) -> Dict[str, Any]:
        data = {key: row[key] for key in row.keys()}
        for name in _JSON_COLUMNS:
            data[name] = json.loads(data[name]) if data[name] else None
        data.pop("total_files", None)
        data.pop("updated_at", None)
        return data

    def load_job(self, job_id: str) -> Optional[Dict[str, Any]]:
        """
        Load one job record.

        Returns:
            Dict with job data or None if not found

        Raises:
            LoadError: If the read fails or a JSON column is corrupt
        """
        try:
            with self._connect() as conn:
                row = conn.execute("SELECT * FROM jobs WHERE id = ?", (job_id,)).fetchone()
                if not row:
                    return None
                return self._row_to_dict(row)
        except (PersistenceError, ValueError) as e:
            raise LoadError(self.db_path, _reason(e), job_id=job_id) from e

    def find_job_ids(self, prefix: str, limit: int = 10) -> List[str]:
        """Job ids starting with prefix, newest first."""
        with self._connect() as conn:
            rows = conn.execute(
                "SELECT id FROM jobs WHERE id LIKE ? ESCAPE '\\' ORDER BY created_at DESC LIMIT ?",
                (_escape_like(prefix) + "%", limit),
            ).fetchall()
            return [row["id"] for row in rows]

    def list_jobs(self, status: Optional[str] = None, limit: Optional[int] = None) -> List[Dict[str, Any]]:
        """
        Load job records, newest first.

        Raises:
            LoadError: If the read fails
        """
        query = "SELECT * FROM jobs"
        params: List[Any] = []
        if status:
            query += " WHERE status = ?"
            params.append(status)
        query += " ORDER BY created_at DESC"
        if limit:
            query += " LIMIT ?"
            params.append(limit)
        try:
            with self._connect() as conn:
                return [self._row_to_dict(row) for row in conn.execute(query, params).fetchall()]
        except (PersistenceError, ValueError) as e:
            raise LoadError(self.db_path, _reason(e)) from e

    def count_by_status(self) -> Dict[str, int]:
        with self._connect() as conn:
            rows = conn.execute("SELECT status, COUNT(*) AS n FROM jobs GROUP BY status").fetchall()
            return {row["status"]: row["n"] for row in rows}

    def delete_job(self, job_id: str):
        """Delete a job record."""
        with self._connect() as conn:
            conn.execute("DELETE FROM jobs WHERE id = ?", (job_id,))


def _escape_like(value: str) -> str:
    return value.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


def _reason(error: Exception) -> str:
    return error.reason if isinstance(error, PersistenceError) else f"corrupt record ({error})"
