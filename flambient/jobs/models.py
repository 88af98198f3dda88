"""
Job data model.

A Job is one end-to-end remote editing run. It is created once per
invocation with a frozen file manifest; resume always works from that
manifest, never from a fresh directory listing.

State transitions are validated externally (see state.py) and the record is
mutated only by the step functions in steps.py.
"""

import os
import uuid
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator

from ..imagen.models import EditOptions


class JobStatus(str, Enum):
    """
    Job-level status.

    The four active steps run in order. FAILED is resumable; COMPLETED and
    CANCELLED are terminal.
    """

    PENDING = "pending"  # Created, no remote calls made
    UPLOADING = "uploading"
    PROCESSING = "processing"  # Remote edit in progress
    EXPORTING = "exporting"
    DOWNLOADING = "downloading"
    COMPLETED = "completed"
    FAILED = "failed"  # Resumable from failed_step
    CANCELLED = "cancelled"  # Declined before any remote work

    @property
    def label(self) -> str:
        return self.value.capitalize()


class JobSource(str, Enum):
    MANUAL = "manual"  # Files picked straight from an input directory
    FLAMBIENT = "flambient"  # Outputs of a local blend run


def _filename(path: str) -> str:
    return os.path.basename(path)


class Job(BaseModel):
    """
    Persisted state of one upload -> edit -> export -> download run.

    uploaded_files is the per-file confirmation list kept alongside
    uploaded_count; failed_uploads holds the names that failed during the
    last finished upload pass.
    """

    model_config = ConfigDict(extra="forbid", validate_assignment=True)

    # Identity
    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    project_name: str
    input_directory: str
    output_directory: str
    source_type: JobSource = JobSource.MANUAL
    parent_job_id: Optional[str] = None

    # Remote binding
    remote_project_id: Optional[str] = None
    profile_key: str
    photography_type: Optional[str] = None
    edit_options: Dict[str, Any] = Field(default_factory=dict)

    # State
    status: JobStatus = JobStatus.PENDING
    progress: int = Field(default=0, ge=0, le=100)
    error_message: Optional[str] = None
    failed_step: Optional[JobStatus] = None

    # Files
    file_manifest: List[str] = Field(default_factory=list)
    uploaded_count: int = Field(default=0, ge=0)
    uploaded_files: List[str] = Field(default_factory=list)
    failed_uploads: List[str] = Field(default_factory=list)
    downloaded_count: int = Field(default=0, ge=0)
    failed_downloads: List[str] = Field(default_factory=list)

    # Timestamps
    created_at: datetime = Field(default_factory=datetime.now)
    started_at: Optional[datetime] = None
    upload_completed_at: Optional[datetime] = None
    processing_completed_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None

    metadata: Dict[str, Any] = Field(default_factory=dict)

    @model_validator(mode="after")
    def _check_counts(self) -> "Job":
        if self.uploaded_count > len(self.file_manifest):
            raise ValueError(
                f"uploaded_count ({self.uploaded_count}) exceeds total files ({len(self.file_manifest)})"
            )
        return self

    @property
    def total_files(self) -> int:
        return len(self.file_manifest)

    @property
    def short_id(self) -> str:
        return self.id[:8]

    @property
    def edited_directory(self) -> str:
        return os.path.join(self.output_directory, "edited")

    @property
    def xmp_directory(self) -> str:
        return os.path.join(self.output_directory, "xmp")

    def get_edit_options(self) -> EditOptions:
        return EditOptions(**self.edit_options)

    def pending_uploads(self) -> List[str]:
        """
        Manifest paths still to upload.

        failed_uploads when non-empty, else the manifest tail past
        uploaded_count. Files already confirmed in uploaded_files are
        never returned.
        """
        confirmed = set(self.uploaded_files)
        if self.failed_uploads:
            wanted = set(self.failed_uploads)
            candidates = [p for p in self.file_manifest if _filename(p) in wanted]
        elif confirmed:
            candidates = list(self.file_manifest)
        else:
            candidates = self.file_manifest[self.uploaded_count:]
        return [p for p in candidates if _filename(p) not in confirmed]

    def upload_progress(self) -> int:
        if not self.file_manifest:
            return 0
        return int(self.uploaded_count * 100 / self.total_files)

    def can_resume(self) -> bool:
        return self.status not in (JobStatus.COMPLETED, JobStatus.CANCELLED)

    def duration_seconds(self, now: Optional[datetime] = None) -> Optional[int]:
        if self.started_at is None:
            return None
        end = self.completed_at or now or datetime.now()
        return max(0, int((end - self.started_at).total_seconds()))

    def duration_for_humans(self, now: Optional[datetime] = None) -> str:
        seconds = self.duration_seconds(now)
        if seconds is None:
            return "-"
        if seconds < 60:
            return f"{seconds}s"
        if seconds < 3600:
            return f"{seconds // 60}m {seconds % 60}s"
        return f"{seconds // 3600}h {seconds % 3600 // 60}m"
