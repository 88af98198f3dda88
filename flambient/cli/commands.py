"""
CLI command implementations.

Each command validates operator input up front and raises ValidationError
before anything is persisted. Once a job exists, remote failures are never
raised: they come back as a failed WorkflowOutcome carrying a resume hint.
"""

import json
import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Sequence

from ..blending import (
    BatchResult,
    BlendParameters,
    CompositingRunner,
    Recipe,
    synthesize_all,
    write_scripts,
)
from ..classification import (
    Classifier,
    ExifExtractor,
    ExposureRecord,
    Group,
    GroupStatistics,
    group_exposures,
    group_statistics,
)
from ..imagen import EditOptions, ImagenClient, Profile, get_preset
from ..imagen.models import PhotographyType
from ..jobs import (
    Job,
    JobRegistry,
    JobSource,
    JobStatus,
    WorkflowEngine,
    WorkflowOutcome,
)
from ..persistence import PersistenceManager
from ..settings import WorkflowSettings
from ..workspace import Workspace, categorize_files, default_project_name, discover_images
from .console import confirm, job_rows, print_job_status, print_table
from .errors import ConfirmationDenied, ValidationError

logger = logging.getLogger(__name__)


def build_registry(settings: WorkflowSettings) -> JobRegistry:
    return JobRegistry(PersistenceManager(settings.database_path))


def validate_input_directory(path: str) -> str:
    """
    Raises:
        ValidationError: If the path is missing or not a directory
    """
    resolved = Path(path).expanduser().resolve()
    if not resolved.exists():
        raise ValidationError(f"directory does not exist: {path}", option="--input")
    if not resolved.is_dir():
        raise ValidationError(f"not a directory: {path}", option="--input")
    return str(resolved)


def suggest_output_directory(input_directory: str, suffix: str = "edited") -> str:
    path = Path(input_directory)
    return str(path.parent / f"{path.name}-{suffix}")


def prepare_output_directory(path: str) -> str:
    """
    Raises:
        ValidationError: If the directory cannot be created or written
    """
    resolved = Path(path).expanduser().resolve()
    try:
        resolved.mkdir(parents=True, exist_ok=True)
        marker = resolved / ".flambient_write_test"
        marker.touch()
        marker.unlink()
    except OSError as e:
        raise ValidationError(f"directory is not writable: {e}", option="--output")
    return str(resolved)


def build_edit_options(
    preset: Optional[str] = None,
    photography_type: Optional[str] = None,
    window_pull: bool = False,
    crop: bool = False,
    perspective: bool = False,
    hdr: bool = False,
) -> EditOptions:
    """
    Start from a named preset and switch on any flags given explicitly.

    Raises:
        ValidationError: If the preset or photography type is unknown
    """
    if preset:
        try:
            options = get_preset(preset)
        except KeyError as e:
            raise ValidationError(str(e.args[0]), option="--preset")
    else:
        options = EditOptions()

    updates: Dict[str, object] = {}
    if photography_type:
        try:
            updates["photography_type"] = PhotographyType(photography_type.upper())
        except ValueError:
            choices = ", ".join(t.value.lower() for t in PhotographyType)
            raise ValidationError(
                f"Unknown photography type '{photography_type}'. Choose from: {choices}", option="--type"
            )
    if window_pull:
        updates["window_pull"] = True
    if crop:
        updates["crop"] = True
    if perspective:
        updates["perspective_correction"] = True
    if hdr:
        updates["hdr_merge"] = True
    return options.model_copy(update=updates) if updates else options


def choose_profile(
    client: ImagenClient,
    default_key: str,
    assume_yes: bool,
    input_fn: Callable[[str], str] = input,
) -> str:
    """Let the operator pick a profile; non-interactive runs use the default."""
    if assume_yes:
        return default_key
    profiles = client.list_profiles()
    if not profiles:
        print(f"Could not fetch profiles, using default ({default_key})")
        return default_key

    print("\nAvailable profiles:")
    for index, profile in enumerate(profiles, start=1):
        marker = " (default)" if profile.key == default_key else ""
        print(f"  {index}. {profile.name} ({profile.key}){marker}")
    answer = input_fn(f"Select profile [1-{len(profiles)}, Enter for default]: ").strip()
    if not answer:
        return default_key
    if answer.isdigit() and 1 <= int(answer) <= len(profiles):
        return profiles[int(answer) - 1].key
    raise ValidationError(f"Invalid profile selection: {answer}", option="--profile")


# Job listing and status

def list_jobs(registry: JobRegistry, limit: int = 20, resumable: bool = False) -> List[Job]:
    if resumable:
        jobs = registry.list_resumable(limit=limit)
        print("Resumable jobs\n")
    else:
        jobs = registry.list_jobs(limit=limit)
        print("Recent jobs\n")
    if not jobs:
        print("No jobs found")
        return jobs
    print_table(["ID", "Project", "Status", "Files", "Duration", "Created"], job_rows(jobs))
    counts = registry.count_by_status()
    totals = ", ".join(f"{counts[s]} {s.value}" for s in JobStatus if s in counts)
    print(f"\nTotal: {totals}")
    print("\nResume a job with: flambient process --resume=<id>")
    print("Check status with: flambient process --status=<id>")
    return jobs


def show_job_status(registry: JobRegistry, job_ref: str) -> Job:
    """
    Raises:
        JobNotFoundError: If no job matches
        AmbiguousJobIdError: If a prefix matches several jobs
    """
    job = registry.get_job_or_raise(job_ref)
    print_job_status(job)
    return job


# Remote editing

def create_process_job(
    engine: WorkflowEngine,
    input_directory: str,
    output_directory: Optional[str] = None,
    patterns: Optional[Sequence[str]] = None,
    profile_key: Optional[str] = None,
    project_name: Optional[str] = None,
    edit_options: Optional[EditOptions] = None,
    source_type: JobSource = JobSource.MANUAL,
    parent_job_id: Optional[str] = None,
    file_manifest: Optional[Sequence[str]] = None,
    metadata: Optional[Dict[str, Any]] = None,
) -> Job:
    """
    Validate inputs and persist a PENDING job.

    Raises:
        ValidationError: If the input is unusable; no job is created
    """
    input_directory = validate_input_directory(input_directory)
    files = list(file_manifest) if file_manifest is not None else discover_images(input_directory, patterns)
    if not files:
        raise ValidationError(f"No matching image files found in {input_directory}")

    output_directory = prepare_output_directory(
        output_directory or suggest_output_directory(input_directory)
    )
    job = engine.create_job(
        project_name=project_name or default_project_name(input_directory),
        input_directory=input_directory,
        output_directory=output_directory,
        file_manifest=files,
        profile_key=profile_key,
        edit_options=edit_options,
        source_type=source_type,
        parent_job_id=parent_job_id,
        metadata=metadata,
    )
    print_job_plan(job)
    return job


def print_job_plan(job: Job) -> None:
    options = job.get_edit_options()
    print(f"\n=== Job {job.short_id}: {job.project_name} ===")
    print(f"Input:   {job.input_directory}")
    print(f"Output:  {job.edited_directory}")
    print(f"Profile: {job.profile_key}")
    print(f"Type:    {options.photography_type.label if options.photography_type else 'Auto'}")
    enabled = [
        name for name in ("window_pull", "crop", "perspective_correction", "hdr_merge", "straighten")
        if getattr(options, name)
    ]
    print(f"Options: {', '.join(enabled) or 'none'}")
    counts = categorize_files(job.file_manifest)
    summary = ", ".join(f"{n} {kind}" for kind, n in counts.items())
    print(f"Files:   {job.total_files} ({summary})")


def start_job(
    engine: WorkflowEngine,
    job: Job,
    dry_run: bool = False,
    assume_yes: bool = False,
    input_fn: Callable[[str], str] = input,
) -> Optional[WorkflowOutcome]:
    """
    Confirm and run a PENDING job.

    Dry runs and declined confirmations cancel the job without any remote
    call and return None.
    """
    if dry_run:
        engine.cancel(job, "Dry run")
        print("\nDry run: no files were uploaded. Job cancelled.")
        return None
    try:
        confirm(f"\nUpload {job.total_files} file(s) and start remote editing?", assume_yes, input_fn)
    except ConfirmationDenied as e:
        engine.cancel(job, str(e))
        print("Cancelled. No files were uploaded.")
        return None
    return engine.run(job)


def print_outcome(outcome: WorkflowOutcome) -> None:
    job = outcome.job
    if outcome.succeeded:
        print(f"\nProcessing complete for {job.project_name}")
        print_table(
            ["Metric", "Value"],
            [
                ["Job ID", job.id],
                ["Files uploaded", f"{job.uploaded_count}/{job.total_files}"],
                ["Files downloaded", job.downloaded_count],
                ["Failed downloads", len(job.failed_downloads)],
                ["Duration", job.duration_for_humans()],
                ["Output", job.edited_directory],
            ],
        )
        if job.failed_downloads:
            print("\nSome files could not be downloaded:")
            for name in job.failed_downloads:
                print(f"  - {name}")
        return

    failed_at = job.failed_step.value if job.failed_step else job.status.value
    print(f"\nERROR: Job {job.short_id} failed during {failed_at}: {outcome.error}")
    if outcome.resume_hint:
        print(f"Resume with: {outcome.resume_hint}")


# Local blending

@dataclass
class BlendRun:
    """Everything produced by one local classify -> synthesize -> composite run."""

    workspace: Workspace
    input_directory: str
    classifier: Classifier
    records: List[ExposureRecord]
    groups: List[Group]
    statistics: GroupStatistics
    recipes: List[Recipe]
    scripts: List[str] = field(default_factory=list)
    batch: Optional[BatchResult] = None

    @property
    def output_paths(self) -> List[str]:
        if self.batch is None:
            return []
        return [p for p in self.batch.output_paths if os.path.exists(p)]

    def to_metadata(self) -> Dict[str, Any]:
        """Provenance stored on the remote job spawned from this run."""
        blend: Dict[str, Any] = {
            "source_directory": self.input_directory,
            "workspace": self.workspace.root,
            "strategy": self.classifier.strategy.value,
            "ambient_value": self.classifier.ambient_value,
            "exposures": len(self.records),
            "statistics": self.statistics.model_dump(),
            "blended": len(self.output_paths),
            "failed_groups": [r.group_id for r in self.batch.failed] if self.batch else [],
        }
        if self.classifier.custom_field:
            blend["custom_field"] = self.classifier.custom_field
        return {"blend": blend}


def write_exif_snapshot(records: Sequence[ExposureRecord], workspace: Workspace) -> str:
    path = Path(workspace.metadata) / "exif_snapshot.json"
    payload = [record.model_dump(mode="json") for record in records]
    path.write_text(json.dumps(payload, indent=2), encoding="utf-8")
    return str(path)


def run_blend(
    input_directory: str,
    workspace: Workspace,
    classifier: Classifier,
    params: BlendParameters,
    extractor: ExifExtractor,
    runner: CompositingRunner,
    execute: bool = True,
) -> BlendRun:
    """
    Classify, group, synthesize and (optionally) composite a shoot.

    Raises:
        ValidationError: If no exposures were found
        ClassificationError: If EXIF extraction fails
        BlendError: If scripts cannot be written or the engine is missing
    """
    workspace.prepare()
    records = extractor.extract_records(input_directory, classifier)
    if not records:
        raise ValidationError(f"No JPEG exposures found in {input_directory}")
    write_exif_snapshot(records, workspace)

    groups = group_exposures(records)
    stats = group_statistics(groups)
    recipes = synthesize_all(groups, params, workspace.flambient)
    scripts = write_scripts(recipes, workspace.scripts, runner.binary)

    run = BlendRun(
        workspace=workspace,
        input_directory=input_directory,
        classifier=classifier,
        records=records,
        groups=groups,
        statistics=stats,
        recipes=recipes,
        scripts=[str(p) for p in scripts],
    )
    if execute and scripts:
        run.batch = runner.run_all(recipes, workspace.scripts)
    return run


def print_blend_summary(run: BlendRun) -> None:
    stats = run.statistics
    print(f"\nClassified {len(run.records)} exposure(s) into {stats.total_groups} group(s)")
    print_table(
        ["Metric", "Count"],
        [
            ["Total groups", stats.total_groups],
            ["Ambient images", stats.total_ambient],
            ["Flash images", stats.total_flash],
            ["Groups with both", stats.groups_with_both],
            ["Ambient only", stats.groups_ambient_only],
            ["Flash only", stats.groups_flash_only],
        ],
    )
    print(f"\nScripts: {run.workspace.scripts}")
    if run.batch is None:
        return
    print(
        f"Blended: {len(run.batch.succeeded)} succeeded, {len(run.batch.failed)} failed, "
        f"{len(run.batch.skipped)} skipped"
    )
    for result in run.batch.failed:
        print(f"  FAILED group {result.group_id:02d}: {result.stderr.strip() or 'exit ' + str(result.exit_code)}")


def print_profiles(profiles: Sequence[Profile]) -> None:
    if not profiles:
        print("No profiles available")
        return
    print_table(
        ["Key", "Name", "Type", "Image", "Photography"],
        [
            [p.key, p.name, p.profile_type or "-", p.image_type or "-", p.photography_type or "-"]
            for p in profiles
        ],
    )
