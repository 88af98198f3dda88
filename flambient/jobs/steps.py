"""
Pipeline step functions.

Each step takes (job, context) and is safe to call on a job that already has
progress in that step:
- upload skips files already confirmed and retries only pending ones
- process always re-issues the edit request, then polls
- export re-triggers the export, then polls
- download only fetches files not already on disk

Steps checkpoint the job after every measurable unit of progress. Status
transitions are made by the engine, not here.
"""

import logging
import os
import time
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Any, Callable, Iterator, List, Optional, Sequence, Tuple

from ..imagen.client import ImagenClient
from ..imagen.errors import FatalImagenError, ImagenError
from ..imagen.models import DownloadLink, DownloadResult, RemoteStatus, UploadResult
from ..imagen.polling import poll_until_complete
from ..settings import WorkflowSettings
from .errors import UploadVerificationError
from .events import EventPublisher, JobEventType
from .models import Job, JobStatus

logger = logging.getLogger(__name__)


TRANSFER_ERRORS = (ImagenError, OSError)


@dataclass
class StepContext:
    """Everything a step needs besides the job itself."""

    client: ImagenClient
    settings: WorkflowSettings
    checkpoint: Callable[[Job], None]
    events: EventPublisher = field(default_factory=EventPublisher)
    sleep: Callable[[float], None] = time.sleep
    now: Callable[[], datetime] = datetime.now


def _name(path: str) -> str:
    return os.path.basename(path)


def _require_remote(job: Job) -> str:
    if not job.remote_project_id:
        raise FatalImagenError(f"Job {job.short_id} has no remote project; upload step has not run")
    return job.remote_project_id


def _transfer(
    items: Sequence[Any],
    fn: Callable[[Any], Any],
    workers: int,
) -> Iterator[Tuple[Any, Any, Optional[BaseException]]]:
    """
    Run fn over items, yielding (item, result, error) as each finishes.

    Transfers run in a bounded pool when workers > 1; results are always
    consumed on the calling thread so bookkeeping stays single-threaded.
    """
    if workers <= 1 or len(items) <= 1:
        for item in items:
            try:
                yield item, fn(item), None
            except TRANSFER_ERRORS as e:
                yield item, None, e
        return

    with ThreadPoolExecutor(max_workers=workers) as pool:
        futures = {pool.submit(fn, item): item for item in items}
        for future in as_completed(futures):
            item = futures[future]
            try:
                yield item, future.result(), None
            except TRANSFER_ERRORS as e:
                yield item, None, e


# Upload

def upload_step(job: Job, ctx: StepContext) -> UploadResult:
    """
    Create the remote project if needed and upload every pending file.

    Raises:
        UploadVerificationError: If any upload failed or nothing was uploaded
    """
    if not job.remote_project_id:
        project = ctx.client.create_project(job.project_name)
        job.remote_project_id = project.uuid
        ctx.checkpoint(job)

    # Records carrying only a counter confirm the manifest head.
    if job.uploaded_count and not job.uploaded_files:
        job.uploaded_files = [_name(p) for p in job.file_manifest[:job.uploaded_count]]

    pending = job.pending_uploads()
    result = UploadResult(project_uuid=job.remote_project_id, total_files=len(pending))
    if pending:
        logger.info(
            f"[UPLOAD] Job {job.short_id}: {len(pending)} pending, "
            f"{job.uploaded_count}/{job.total_files} already uploaded"
        )
        result = _upload_pending(job, ctx, pending)
    else:
        logger.info(f"[UPLOAD] Job {job.short_id}: nothing pending")

    if job.failed_uploads:
        preview = ", ".join(job.failed_uploads[:5])
        raise UploadVerificationError(
            f"{len(job.failed_uploads)} of {job.total_files} file(s) failed to upload ({preview})"
        )
    if job.uploaded_count == 0:
        raise UploadVerificationError("no files were uploaded")
    if ctx.settings.verify_uploads and not ctx.client.verify_uploads_ready(
        job.remote_project_id, list(job.uploaded_files)
    ):
        raise UploadVerificationError("the service did not acknowledge every uploaded file")

    job.progress = 100
    job.upload_completed_at = ctx.now()
    ctx.checkpoint(job)
    return result


def _upload_pending(job: Job, ctx: StepContext, pending: List[str]) -> UploadResult:
    uuid = job.remote_project_id
    failures = set()
    succeeded: List[str] = []

    present = []
    for path in pending:
        if Path(path).is_file():
            present.append(path)
        else:
            logger.warning(f"[UPLOAD] Missing local file: {path}")
            failures.add(_name(path))
            ctx.events.publish(
                JobEventType.FILE_UPLOAD_FAILED, job.id, step="upload",
                filename=_name(path), message="local file is missing",
            )

    links = ctx.client.get_upload_links(uuid, [_name(p) for p in present]) if present else {}
    to_send = []
    for path in present:
        url = links.get(_name(path))
        if url:
            to_send.append((path, url))
        else:
            failures.add(_name(path))
            ctx.events.publish(
                JobEventType.FILE_UPLOAD_FAILED, job.id, step="upload",
                filename=_name(path), message="no upload link issued",
            )

    def send(item: Tuple[str, str]) -> bool:
        path, url = item
        return ctx.client.upload_file(url, path)

    for (path, _), _, error in _transfer(to_send, send, ctx.settings.parallel_uploads):
        name = _name(path)
        if error is not None:
            logger.warning(f"[UPLOAD] {name} failed: {error}")
            failures.add(name)
            ctx.events.publish(
                JobEventType.FILE_UPLOAD_FAILED, job.id, step="upload",
                filename=name, message=str(error),
            )
            continue
        job.uploaded_files.append(name)
        job.uploaded_count += 1
        job.progress = job.upload_progress()
        ctx.checkpoint(job)
        succeeded.append(name)
        ctx.events.publish(
            JobEventType.FILE_UPLOADED, job.id, step="upload", filename=name,
            current=job.uploaded_count, total=job.total_files, progress=job.progress,
        )

    job.failed_uploads = [_name(p) for p in pending if _name(p) in failures]
    ctx.checkpoint(job)
    return UploadResult(
        project_uuid=uuid,
        total_files=len(pending),
        succeeded=succeeded,
        failed=list(job.failed_uploads),
    )


# Remote edit and export

def _poll(job: Job, ctx: StepContext, phase: str, fetch: Callable[[], RemoteStatus]) -> RemoteStatus:
    last_checkpoint = job.progress

    def on_progress(status: RemoteStatus) -> None:
        nonlocal last_checkpoint
        job.progress = status.progress
        ctx.events.publish(
            JobEventType.PROGRESS, job.id, step=phase,
            progress=status.progress, message=status.message,
        )
        if status.progress // 10 > last_checkpoint // 10:
            ctx.checkpoint(job)
            last_checkpoint = status.progress

    return poll_until_complete(
        fetch,
        interval=ctx.settings.imagen.poll_interval,
        max_attempts=ctx.settings.imagen.poll_max_attempts,
        phase=phase,
        on_progress=on_progress,
        sleep=ctx.sleep,
        initial_progress=job.progress,
    )


def process_step(job: Job, ctx: StepContext) -> RemoteStatus:
    """(Re)issue the edit request and poll it to completion."""
    uuid = _require_remote(job)
    job.progress = 0
    ctx.checkpoint(job)

    ack = ctx.client.start_edit(uuid, job.profile_key, job.get_edit_options())
    logger.info(f"[LIFECYCLE] Job {job.short_id}: edit submitted ({ack.message})")

    status = _poll(job, ctx, "edit", lambda: ctx.client.get_edit_status(uuid))
    job.progress = 100
    job.processing_completed_at = ctx.now()
    ctx.checkpoint(job)
    return status


def export_step(job: Job, ctx: StepContext) -> RemoteStatus:
    """Trigger the export and poll it to completion."""
    uuid = _require_remote(job)
    job.progress = 0
    ctx.checkpoint(job)

    ctx.client.trigger_export(uuid)
    status = _poll(job, ctx, "export", lambda: ctx.client.get_export_status(uuid))
    job.progress = 100
    ctx.checkpoint(job)
    return status


# Download

def download_step(job: Job, ctx: StepContext) -> DownloadResult:
    """
    Fetch every exported file not already present in {output}/edited.

    Per-file failures are recorded in failed_downloads. The step fails only
    when the service offers no files or none could be fetched.
    """
    uuid = _require_remote(job)
    edited = Path(job.edited_directory)
    edited.mkdir(parents=True, exist_ok=True)

    links = ctx.client.get_export_links(uuid)
    if not links:
        logger.info(
            f"[DOWNLOAD] No export links yet; retrying in {ctx.settings.imagen.export_link_retry_delay}s"
        )
        ctx.sleep(ctx.settings.imagen.export_link_retry_delay)
        links = ctx.client.get_export_links(uuid)
    if not links:
        raise FatalImagenError("No exported files are available for download")

    to_fetch = [link for link in links if not (edited / link.filename).exists()]
    job.downloaded_count = len(links) - len(to_fetch)
    job.progress = int(job.downloaded_count * 100 / len(links))
    ctx.checkpoint(job)
    if job.downloaded_count:
        logger.info(f"[DOWNLOAD] {job.downloaded_count} file(s) already present, skipping")

    def fetch(link: DownloadLink) -> str:
        return ctx.client.download_file(link.url, str(edited), link.filename)

    failures: List[str] = []
    succeeded: List[str] = []
    for link, local_path, error in _transfer(to_fetch, fetch, ctx.settings.parallel_downloads):
        if error is not None:
            logger.warning(f"[DOWNLOAD] {link.filename} failed: {error}")
            failures.append(link.filename)
            ctx.events.publish(
                JobEventType.FILE_DOWNLOAD_FAILED, job.id, step="download",
                filename=link.filename, message=str(error),
            )
            continue
        job.downloaded_count += 1
        job.progress = int(job.downloaded_count * 100 / len(links))
        ctx.checkpoint(job)
        succeeded.append(local_path)
        ctx.events.publish(
            JobEventType.FILE_DOWNLOADED, job.id, step="download", filename=link.filename,
            current=job.downloaded_count, total=len(links), progress=job.progress,
        )

    job.failed_downloads = failures
    ctx.checkpoint(job)
    if job.downloaded_count == 0:
        raise FatalImagenError(f"All {len(links)} download(s) failed")

    _download_sidecars(job, ctx)
    return DownloadResult(total_files=len(to_fetch), succeeded=succeeded, failed=failures)


def _download_sidecars(job: Job, ctx: StepContext) -> None:
    """Fetch XMP edit sidecars. Failures are logged and do not fail the job."""
    try:
        links = ctx.client.get_download_links(job.remote_project_id)
    except ImagenError as e:
        logger.warning(f"[DOWNLOAD] XMP sidecars unavailable: {e}")
        return

    xmp = Path(job.xmp_directory)
    for link in links:
        if (xmp / link.filename).exists():
            continue
        try:
            ctx.client.download_file(link.url, str(xmp), link.filename)
        except TRANSFER_ERRORS as e:
            logger.warning(f"[DOWNLOAD] XMP sidecar {link.filename} failed: {e}")


StepFunction = Callable[[Job, StepContext], Any]

PIPELINE: Tuple[Tuple[JobStatus, StepFunction], ...] = (
    (JobStatus.UPLOADING, upload_step),
    (JobStatus.PROCESSING, process_step),
    (JobStatus.EXPORTING, export_step),
    (JobStatus.DOWNLOADING, download_step),
)
