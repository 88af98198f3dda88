"""
Job-specific error types.

All errors inherit from JobError for easy catching.
Errors are explicit and provide actionable messages.
"""

from typing import List


class JobError(Exception):
    """Base exception for all job-related failures."""
    pass


class JobNotFoundError(JobError):
    """Raised when a job cannot be found in the registry."""

    def __init__(self, job_id: str):
        self.job_id = job_id
        super().__init__(f"Job not found: {job_id}")


class AmbiguousJobIdError(JobError):
    """Raised when a job id prefix matches more than one job."""

    def __init__(self, prefix: str, matches: List[str]):
        self.prefix = prefix
        self.matches = matches
        super().__init__(
            f"Job id prefix '{prefix}' is ambiguous: matches {', '.join(m[:12] for m in matches)}"
        )


class InvalidStateTransitionError(JobError):
    """Raised when attempting an illegal state transition."""

    def __init__(self, entity_type: str, current_state: str, target_state: str):
        self.entity_type = entity_type
        self.current_state = current_state
        self.target_state = target_state
        super().__init__(
            f"Invalid {entity_type} state transition: "
            f"{current_state} -> {target_state}"
        )


class JobNotResumableError(JobError):
    """Raised when resuming a job in a terminal state."""

    def __init__(self, job_id: str, status: str):
        self.job_id = job_id
        self.status = status
        super().__init__(f"Job {job_id} cannot be resumed from status '{status}'")


class UploadVerificationError(JobError):
    """Raised when uploads are incomplete before remote editing would start."""

    def __init__(self, reason: str):
        self.reason = reason
        super().__init__(f"Upload verification failed, nothing to edit: {reason}")
