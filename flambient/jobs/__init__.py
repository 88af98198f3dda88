"""
Job engine: persisted, resumable remote editing runs.

A job moves PENDING -> UPLOADING -> PROCESSING -> EXPORTING -> DOWNLOADING
-> COMPLETED, checkpointing after every unit of progress. A failed job is
resumed by id and continues from the failed step to completion.
"""

from .errors import (
    JobError,
    JobNotFoundError,
    AmbiguousJobIdError,
    InvalidStateTransitionError,
    JobNotResumableError,
    UploadVerificationError,
)
from .models import (
    JobStatus,
    JobSource,
    Job,
)
from .state import (
    TERMINAL_JOB_STATES,
    STEP_ORDER,
    can_transition_job,
    is_job_terminal,
    resume_step_for,
    validate_job_transition,
)
from .events import (
    JobEventType,
    JobEvent,
    JobObserver,
    EventPublisher,
    EventRecorder,
)
from .registry import JobRegistry
from .steps import PIPELINE, StepContext
from .engine import WorkflowEngine, WorkflowOutcome

__all__ = [
    # Errors
    "JobError",
    "JobNotFoundError",
    "AmbiguousJobIdError",
    "InvalidStateTransitionError",
    "JobNotResumableError",
    "UploadVerificationError",
    # Models
    "JobStatus",
    "JobSource",
    "Job",
    # State validation
    "TERMINAL_JOB_STATES",
    "STEP_ORDER",
    "can_transition_job",
    "is_job_terminal",
    "resume_step_for",
    "validate_job_transition",
    # Events
    "JobEventType",
    "JobEvent",
    "JobObserver",
    "EventPublisher",
    "EventRecorder",
    # Registry
    "JobRegistry",
    # Engine
    "PIPELINE",
    "StepContext",
    "WorkflowEngine",
    "WorkflowOutcome",
]
