"""
Job engine: resumable orchestration of the remote editing pipeline.

Manages job lifecycle: create, run, resume, cancel.

Resume is an explicit slice of the ordered step list: the engine derives a
start index from the job's status (or failed_step) and runs every step from
there to the end. Any exception escaping a step marks the job FAILED, is
checkpointed, and is reported back in a WorkflowOutcome; it is never
re-raised, because a failed job is always resumable by id.
"""

import logging
import time
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional, Sequence

from ..imagen.client import ImagenClient
from ..imagen.models import EditOptions
from ..settings import WorkflowSettings
from .errors import JobNotResumableError
from .events import EventPublisher, JobEventType, JobObserver
from .models import Job, JobSource, JobStatus
from .registry import JobRegistry
from .state import STEP_ORDER, is_job_terminal, resume_step_for, step_index, validate_job_transition
from .steps import PIPELINE, StepContext

logger = logging.getLogger(__name__)


RESUME_COMMAND = "flambient process --resume={job_id}"


@dataclass
class WorkflowOutcome:
    """Result of one engine run."""

    job: Job
    succeeded: bool
    error: Optional[str] = None

    @property
    def resume_hint(self) -> Optional[str]:
        if self.succeeded or not self.job.can_resume():
            return None
        return RESUME_COMMAND.format(job_id=self.job.id)


class WorkflowEngine:
    """
    Job orchestration engine.

    Owns the persisted job record for a run. Steps are pure given
    (job, settings, client); the engine sequences them and records
    transitions.
    """

    def __init__(
        self,
        client: ImagenClient,
        registry: JobRegistry,
        settings: WorkflowSettings,
        observers: Optional[Sequence[JobObserver]] = None,
        sleep: Callable[[float], None] = time.sleep,
        now: Callable[[], datetime] = datetime.now,
    ):
        self.client = client
        self.registry = registry
        self.settings = settings
        self.events = EventPublisher(list(observers or []))
        self._now = now
        self._context = StepContext(
            client=client,
            settings=settings,
            checkpoint=registry.save,
            events=self.events,
            sleep=sleep,
            now=now,
        )

    def create_job(
        self,
        project_name: str,
        input_directory: str,
        output_directory: str,
        file_manifest: Sequence[str],
        profile_key: Optional[str] = None,
        edit_options: Optional[EditOptions] = None,
        source_type: JobSource = JobSource.MANUAL,
        parent_job_id: Optional[str] = None,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> Job:
        """
        Create and persist a PENDING job with a frozen file manifest.

        Raises:
            ValueError: If the manifest is empty
        """
        if not file_manifest:
            raise ValueError("Cannot create a job with an empty file manifest")
        options = edit_options or EditOptions()
        job = Job(
            project_name=project_name,
            input_directory=input_directory,
            output_directory=output_directory,
            file_manifest=list(file_manifest),
            profile_key=str(profile_key or self.settings.imagen.profile_key),
            photography_type=options.photography_type.value if options.photography_type else None,
            edit_options=options.model_dump(mode="json"),
            source_type=source_type,
            parent_job_id=parent_job_id,
            metadata=dict(metadata or {}),
            created_at=self._now(),
        )
        self.registry.save(job)
        logger.info(f"[LIFECYCLE] Created job {job.id} with {job.total_files} file(s)")
        self.events.publish(JobEventType.JOB_CREATED, job.id, total=job.total_files)
        return job

    def cancel(self, job: Job, reason: str = "Cancelled by operator") -> Job:
        """
        Cancel a job that has not started remote work.

        Raises:
            InvalidStateTransitionError: If the job is past PENDING
        """
        validate_job_transition(job.status, JobStatus.CANCELLED)
        job.status = JobStatus.CANCELLED
        job.error_message = reason
        job.completed_at = self._now()
        self.registry.save(job)
        logger.info(f"[LIFECYCLE] Job {job.id} transitioned: pending -> CANCELLED ({reason})")
        self.events.publish(JobEventType.JOB_CANCELLED, job.id, message=reason)
        return job

    def resume(self, job_ref: str, profile_key: Optional[str] = None) -> WorkflowOutcome:
        """
        Resume a job by id or unique id prefix.

        A different profile_key replaces the stored one; the resume step is
        still derived from the job's progress.

        Raises:
            JobNotFoundError: If no job matches
            JobNotResumableError: If the job is COMPLETED or CANCELLED
        """
        job = self.registry.get_job_or_raise(job_ref)
        if not job.can_resume():
            raise JobNotResumableError(job.id, job.status.value)

        if profile_key and str(profile_key) != job.profile_key:
            logger.info(f"[LIFECYCLE] Job {job.id} profile changed: {job.profile_key} -> {profile_key}")
            job.profile_key = str(profile_key)
            self.registry.save(job)

        step = resume_step_for(job)
        self.events.publish(JobEventType.JOB_RESUMED, job.id, step=step.value)
        return self.run(job)

    def run(self, job: Job, from_step: Optional[JobStatus] = None) -> WorkflowOutcome:
        """
        Run the pipeline from the job's resume step to completion.

        Raises:
            JobNotResumableError: If the job is COMPLETED or CANCELLED
        """
        if is_job_terminal(job.status):
            raise JobNotResumableError(job.id, job.status.value)
        start = from_step or resume_step_for(job)
        start_index = step_index(start)
        remaining = PIPELINE[start_index:]

        logger.info(
            f"[LIFECYCLE] run() called for job {job.id}, current status: {job.status.value}, "
            f"starting at {start.value}"
        )
        if job.started_at is None:
            job.started_at = self._now()
        job.error_message = None
        self.events.publish(JobEventType.JOB_STARTED, job.id, step=start.value)

        try:
            for status, step in remaining:
                self._enter(job, status)
                step(job, self._context)
                self.events.publish(JobEventType.STEP_COMPLETED, job.id, step=status.value)
            self._complete(job)
        except Exception as e:
            self._fail(job, e, start)
            return WorkflowOutcome(job=job, succeeded=False, error=str(e))

        return WorkflowOutcome(job=job, succeeded=True)

    def _enter(self, job: Job, status: JobStatus) -> None:
        old_status = job.status
        validate_job_transition(old_status, status)
        job.status = status
        job.failed_step = None
        self.registry.save(job)
        logger.info(f"[LIFECYCLE] Job {job.id} transitioned: {old_status.value} -> {status.value}")
        self.events.publish(
            JobEventType.STEP_STARTED, job.id, step=status.value,
            current=STEP_ORDER.index(status) + 1, total=len(STEP_ORDER),
        )

    def _complete(self, job: Job) -> None:
        validate_job_transition(job.status, JobStatus.COMPLETED)
        job.status = JobStatus.COMPLETED
        job.progress = 100
        job.completed_at = self._now()
        self.registry.save(job)
        logger.info(
            f"[LIFECYCLE] Job {job.id} completed in {job.duration_for_humans()}: "
            f"{job.downloaded_count} downloaded, {len(job.failed_downloads)} failed"
        )
        self.events.publish(JobEventType.JOB_COMPLETED, job.id, total=job.downloaded_count)

    def _fail(self, job: Job, error: BaseException, start: JobStatus) -> None:
        validate_job_transition(job.status, JobStatus.FAILED)
        failed_step = job.status if job.status in STEP_ORDER else start
        message = str(error) or type(error).__name__
        logger.error(f"[LIFECYCLE] Job {job.id} failed during {failed_step.value}: {message}")

        job.status = JobStatus.FAILED
        job.failed_step = failed_step
        job.error_message = message
        self.registry.save(job)
        self.events.publish(
            JobEventType.JOB_FAILED, job.id, step=failed_step.value, message=message,
        )

    def list_jobs(self, limit: int = 20, status: Optional[JobStatus] = None) -> List[Job]:
        return self.registry.list_jobs(status=status, limit=limit)
