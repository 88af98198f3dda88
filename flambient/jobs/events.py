"""
Job event stream.

The engine publishes ordered events while it runs; observers subscribe to
render progress or collect a timeline. Events observe execution, they never
control it: an observer that raises is logged and execution continues.
"""

import logging
from datetime import datetime
from enum import Enum
from typing import List, Optional, Protocol

from pydantic import BaseModel, ConfigDict, Field

logger = logging.getLogger(__name__)


class JobEventType(str, Enum):
    """Job event types (lifecycle-ordered)."""

    # Job lifecycle
    JOB_CREATED = "job_created"
    JOB_STARTED = "job_started"
    JOB_RESUMED = "job_resumed"
    JOB_COMPLETED = "job_completed"
    JOB_FAILED = "job_failed"
    JOB_CANCELLED = "job_cancelled"

    # Steps
    STEP_STARTED = "step_started"
    STEP_COMPLETED = "step_completed"

    # Files
    FILE_UPLOADED = "file_uploaded"
    FILE_UPLOAD_FAILED = "file_upload_failed"
    FILE_DOWNLOADED = "file_downloaded"
    FILE_DOWNLOAD_FAILED = "file_download_failed"

    # Remote progress
    PROGRESS = "progress"


class JobEvent(BaseModel):
    """Single job event. Immutable once created."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    event_type: JobEventType
    job_id: str
    timestamp: datetime = Field(default_factory=datetime.now)

    step: Optional[str] = None
    filename: Optional[str] = None
    progress: Optional[int] = None
    current: Optional[int] = None
    total: Optional[int] = None
    message: Optional[str] = None

    def __str__(self) -> str:
        parts = [f"[{self.timestamp.isoformat()}]", self.event_type.value]
        if self.step:
            parts.append(f"({self.step})")
        if self.filename:
            parts.append(self.filename)
        if self.progress is not None:
            parts.append(f"{self.progress}%")
        if self.message:
            parts.append(f"- {self.message}")
        return " ".join(parts)


class JobObserver(Protocol):
    def notify(self, event: JobEvent) -> None:
        ...


class EventRecorder:
    """Observer that keeps the timeline in memory."""

    def __init__(self):
        self._events: List[JobEvent] = []

    def notify(self, event: JobEvent) -> None:
        self._events.append(event)

    def get_events(self) -> List[JobEvent]:
        return self._events.copy()

    def of_type(self, event_type: JobEventType) -> List[JobEvent]:
        return [e for e in self._events if e.event_type == event_type]


class EventPublisher:
    """Fans events out to every subscribed observer, in subscription order."""

    def __init__(self, observers: Optional[List[JobObserver]] = None):
        self._observers: List[JobObserver] = list(observers or [])

    def subscribe(self, observer: JobObserver) -> None:
        self._observers.append(observer)

    def publish(self, event_type: JobEventType, job_id: str, **details) -> JobEvent:
        event = JobEvent(event_type=event_type, job_id=job_id, **details)
        for observer in self._observers:
            try:
                observer.notify(event)
            except Exception:
                logger.exception(f"Observer {type(observer).__name__} failed on {event_type.value}")
        return event
