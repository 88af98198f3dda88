"""
Job store errors.

Each error names the SQLite file it came from, so an operator can locate,
back up or move the flambient job database when it is unreadable.
"""

from typing import Optional


class PersistenceError(Exception):
    """The job store could not be opened or queried."""

    def __init__(self, db_path: str, reason: str):
        self.db_path = db_path
        self.reason = reason
        super().__init__(f"Job store {db_path}: {reason}")


class SchemaError(PersistenceError):
    """The job store schema is missing, newer than supported, or failed to migrate."""

    def __init__(self, db_path: str, reason: str, found_version: Optional[int] = None):
        self.found_version = found_version
        super().__init__(db_path, reason)


class LoadError(PersistenceError):
    """A job record could not be read back."""

    def __init__(self, db_path: str, reason: str, job_id: Optional[str] = None):
        self.job_id = job_id
        target = f"job {job_id}" if job_id else "job list"
        super().__init__(db_path, f"cannot read {target}: {reason}")


class SaveError(PersistenceError):
    """A job checkpoint was not written; work since the previous one repeats on resume."""

    def __init__(self, db_path: str, job_id: Optional[str], reason: str):
        self.job_id = job_id
        super().__init__(db_path, f"cannot checkpoint job {job_id}: {reason}")
