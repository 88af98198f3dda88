"""
Persistent job registry.

Translates Job models to and from the persistence layer. Every save is an
immediate, durable checkpoint: the step functions call save() after each
measurable unit of progress.
"""

from typing import Dict, List, Optional

from ..persistence.manager import PersistenceManager
from .errors import AmbiguousJobIdError, JobNotFoundError
from .models import Job, JobStatus


class JobRegistry:
    """Job storage and retrieval by id or unique id prefix."""

    def __init__(self, persistence_manager: PersistenceManager):
        self._persistence = persistence_manager

    def save(self, job: Job) -> None:
        """Checkpoint a job (insert or overwrite)."""
        self._persistence.save_job(job.model_dump(mode="json"))

    def get_job(self, job_id: str) -> Optional[Job]:
        data = self._persistence.load_job(job_id)
        if data is None:
            return None
        return Job.model_validate(data)

    def get_job_or_raise(self, job_id: str) -> Job:
        """
        Retrieve a job by full id or unique prefix.

        Raises:
            JobNotFoundError: If nothing matches
            AmbiguousJobIdError: If a prefix matches several jobs
        """
        job = self.get_job(job_id)
        if job is not None:
            return job

        matches = self._persistence.find_job_ids(job_id)
        if not matches:
            raise JobNotFoundError(job_id)
        if len(matches) > 1:
            raise AmbiguousJobIdError(job_id, matches)
        return self.get_job(matches[0])

    def list_jobs(self, status: Optional[JobStatus] = None, limit: Optional[int] = 20) -> List[Job]:
        """Jobs newest first, optionally filtered by status."""
        rows = self._persistence.list_jobs(status.value if status else None, limit)
        return [Job.model_validate(row) for row in rows]

    def list_resumable(self, limit: Optional[int] = 20) -> List[Job]:
        """Jobs that are not COMPLETED or CANCELLED, newest first."""
        return [job for job in self.list_jobs(limit=None) if job.can_resume()][:limit]

    def count_by_status(self) -> Dict[JobStatus, int]:
        return {JobStatus(status): n for status, n in self._persistence.count_by_status().items()}

    def delete_job(self, job_id: str) -> None:
        self._persistence.delete_job(job_id)
