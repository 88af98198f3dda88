"""
State transition validation and resume-step derivation for jobs.

Job lifecycle:
    PENDING -> UPLOADING -> PROCESSING -> EXPORTING -> DOWNLOADING -> COMPLETED

FAILED is reachable from any non-terminal state, and every active step can
be re-entered from FAILED on resume. PENDING may be CANCELLED before any
remote work starts.

INVARIANT: COMPLETED and CANCELLED are terminal. No transition leaves them.
"""

from typing import FrozenSet, Set, Tuple

from .errors import InvalidStateTransitionError, JobNotResumableError
from .models import Job, JobStatus


TERMINAL_JOB_STATES: FrozenSet[JobStatus] = frozenset({
    JobStatus.COMPLETED,
    JobStatus.CANCELLED,
})

# Active steps in pipeline order. Resume slices this sequence.
STEP_ORDER: Tuple[JobStatus, ...] = (
    JobStatus.UPLOADING,
    JobStatus.PROCESSING,
    JobStatus.EXPORTING,
    JobStatus.DOWNLOADING,
)


def is_job_terminal(status: JobStatus) -> bool:
    """
    Check if a job status is terminal (immutable).

    FAILED is not terminal: a failed job can be resumed.
    """
    return status in TERMINAL_JOB_STATES


_JOB_TRANSITIONS: Set[Tuple[JobStatus, JobStatus]] = {
    # Forward chain
    (JobStatus.PENDING, JobStatus.UPLOADING),
    (JobStatus.UPLOADING, JobStatus.PROCESSING),
    (JobStatus.PROCESSING, JobStatus.EXPORTING),
    (JobStatus.EXPORTING, JobStatus.DOWNLOADING),
    (JobStatus.DOWNLOADING, JobStatus.COMPLETED),

    # Declined before remote work
    (JobStatus.PENDING, JobStatus.CANCELLED),

    # Failure from any non-terminal state
    (JobStatus.PENDING, JobStatus.FAILED),
    (JobStatus.UPLOADING, JobStatus.FAILED),
    (JobStatus.PROCESSING, JobStatus.FAILED),
    (JobStatus.EXPORTING, JobStatus.FAILED),
    (JobStatus.DOWNLOADING, JobStatus.FAILED),

    # Resume re-enters any active step
    (JobStatus.FAILED, JobStatus.UPLOADING),
    (JobStatus.FAILED, JobStatus.PROCESSING),
    (JobStatus.FAILED, JobStatus.EXPORTING),
    (JobStatus.FAILED, JobStatus.DOWNLOADING),
}


def can_transition_job(from_status: JobStatus, to_status: JobStatus) -> bool:
    """
    Check if a job state transition is legal.

    INVARIANT: Terminal states cannot transition to any other state.
    """
    if is_job_terminal(from_status):
        return False

    # Allow staying in same state (step re-entry after a crash)
    if from_status == to_status:
        return True

    return (from_status, to_status) in _JOB_TRANSITIONS


def validate_job_transition(from_status: JobStatus, to_status: JobStatus) -> None:
    """
    Raises:
        InvalidStateTransitionError: If the transition is not allowed
    """
    if not can_transition_job(from_status, to_status):
        raise InvalidStateTransitionError("job", from_status.value, to_status.value)


def step_index(status: JobStatus) -> int:
    """
    Position of an active step in STEP_ORDER.

    Raises:
        ValueError: If status is not an active step
    """
    try:
        return STEP_ORDER.index(status)
    except ValueError:
        raise ValueError(f"{status.value} is not a pipeline step") from None


def resume_step_for(job: Job) -> JobStatus:
    """
    Determine which step a run of this job starts at.

    PENDING starts at UPLOADING. An active status re-enters its own step.
    FAILED re-enters failed_step; records without one derive the step from
    their progress fields.

    Raises:
        JobNotResumableError: If the job is COMPLETED or CANCELLED
    """
    if is_job_terminal(job.status):
        raise JobNotResumableError(job.id, job.status.value)

    if job.status == JobStatus.PENDING:
        return JobStatus.UPLOADING

    if job.status in STEP_ORDER:
        return job.status

    if job.failed_step in STEP_ORDER:
        return job.failed_step

    if not job.remote_project_id or job.upload_completed_at is None or job.pending_uploads():
        return JobStatus.UPLOADING
    if job.processing_completed_at is None:
        return JobStatus.PROCESSING
    return JobStatus.EXPORTING
