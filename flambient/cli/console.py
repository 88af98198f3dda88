"""
Operator-facing console output.

Progress and summaries go to stdout; errors go to stderr. Logging is kept
separate and is silent at the default verbosity.
"""

import sys
from typing import Any, Callable, Dict, List, Optional, Sequence, TextIO

from ..jobs.events import JobEvent, JobEventType
from ..jobs.models import Job
from .errors import ConfirmationDenied


_STEP_LABELS = {
    "uploading": "Uploading images",
    "processing": "AI editing",
    "exporting": "Exporting edited images",
    "downloading": "Downloading results",
}


def print_table(headers: Sequence[str], rows: Sequence[Sequence[object]], stream: TextIO = None) -> None:
    stream = stream or sys.stdout
    cells = [[str(c) for c in row] for row in rows]
    widths = [len(h) for h in headers]
    for row in cells:
        for i, cell in enumerate(row):
            widths[i] = max(widths[i], len(cell))
    line = "  ".join(h.ljust(widths[i]) for i, h in enumerate(headers))
    print(line, file=stream)
    print("  ".join("-" * w for w in widths), file=stream)
    for row in cells:
        print("  ".join(cell.ljust(widths[i]) for i, cell in enumerate(row)), file=stream)


def confirm(question: str, assume_yes: bool = False, input_fn: Callable[[str], str] = input) -> None:
    """
    Ask for y/N confirmation.

    Raises:
        ConfirmationDenied: Unless the operator answers yes
    """
    if assume_yes:
        return
    try:
        answer = input_fn(f"{question} [y/N]: ").strip().lower()
    except EOFError:
        answer = ""
    if answer not in ("y", "yes"):
        raise ConfirmationDenied(question)


class ConsoleObserver:
    """Renders job events as human-readable progress lines."""

    def __init__(self, stream: Optional[TextIO] = None):
        self.stream = stream or sys.stdout

    def _print(self, text: str) -> None:
        print(text, file=self.stream, flush=True)

    def notify(self, event: JobEvent) -> None:
        kind = event.event_type
        if kind == JobEventType.STEP_STARTED:
            label = _STEP_LABELS.get(event.step, event.step)
            self._print(f"\nStep {event.current}/{event.total}: {label}...")
        elif kind == JobEventType.FILE_UPLOADED:
            self._print(f"  Uploaded {event.current}/{event.total}: {event.filename}")
        elif kind == JobEventType.FILE_DOWNLOADED:
            self._print(f"  Downloaded {event.current}/{event.total}: {event.filename}")
        elif kind in (JobEventType.FILE_UPLOAD_FAILED, JobEventType.FILE_DOWNLOAD_FAILED):
            self._print(f"  FAILED {event.filename}: {event.message}")
        elif kind == JobEventType.PROGRESS:
            self._print(f"  {event.step.capitalize()} progress: {event.progress}%")
        elif kind == JobEventType.JOB_RESUMED:
            self._print(f"Resuming job {event.job_id[:8]} at step: {event.step}")


def job_rows(jobs: Sequence[Job]) -> List[List[str]]:
    return [
        [
            job.short_id,
            job.project_name,
            job.status.label,
            f"{job.uploaded_count}/{job.total_files}",
            job.duration_for_humans(),
            job.created_at.strftime("%Y-%m-%d %H:%M"),
        ]
        for job in jobs
    ]


def print_job_status(job: Job, stream: TextIO = None) -> None:
    stream = stream or sys.stdout
    print(f"Job Status: {job.id}\n", file=stream)
    print_table(
        ["Property", "Value"],
        [
            ["Project Name", job.project_name],
            ["Remote Project", job.remote_project_id or "Not created"],
            ["Status", job.status.label],
            ["Progress", f"{job.progress}%"],
            ["Input", job.input_directory],
            ["Output", job.output_directory],
            ["Profile", job.profile_key],
            ["Photography Type", job.photography_type or "Auto"],
            ["Total Files", job.total_files],
            ["Uploaded", job.uploaded_count],
            ["Downloaded", job.downloaded_count],
            ["Source", job.source_type.value],
            ["Duration", job.duration_for_humans()],
            ["Started", job.started_at.strftime("%Y-%m-%d %H:%M:%S") if job.started_at else "-"],
            ["Completed", job.completed_at.strftime("%Y-%m-%d %H:%M:%S") if job.completed_at else "-"],
        ],
        stream=stream,
    )
    if job.error_message:
        print(f"\nError: {job.error_message}", file=stream)
        if job.failed_step:
            print(f"Failed during: {job.failed_step.value}", file=stream)
    if job.failed_uploads:
        print("\nFailed uploads:", file=stream)
        for name in job.failed_uploads:
            print(f"  - {name}", file=stream)
    if job.failed_downloads:
        print("\nFailed downloads:", file=stream)
        for name in job.failed_downloads:
            print(f"  - {name}", file=stream)
    blend = job.metadata.get("blend")
    if blend:
        _print_blend_provenance(blend, stream)
    if job.can_resume():
        print(f"\nResume with: flambient process --resume={job.id}", file=stream)


def _print_blend_provenance(blend: Dict[str, Any], stream: TextIO) -> None:
    stats = blend.get("statistics") or {}
    strategy = blend.get("custom_field") or blend.get("strategy", "-")
    failed = ", ".join(f"{g:02d}" for g in blend.get("failed_groups") or []) or "none"
    print("\nBlend run:", file=stream)
    print_table(
        ["Property", "Value"],
        [
            ["Source", blend.get("source_directory", "-")],
            ["Workspace", blend.get("workspace", "-")],
            ["Ambient when", f"{strategy} = {blend.get('ambient_value', '-')}"],
            ["Exposures", blend.get("exposures", 0)],
            ["Groups", f"{stats.get('total_groups', 0)} ({stats.get('groups_with_both', 0)} blendable)"],
            ["Ambient / Flash", f"{stats.get('total_ambient', 0)} / {stats.get('total_flash', 0)}"],
            ["Blended images", blend.get("blended", 0)],
            ["Failed groups", failed],
        ],
        stream=stream,
    )
