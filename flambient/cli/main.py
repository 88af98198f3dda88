"""
Flambient CLI - operator entrypoint.

Commands:
- process: create, resume, list or inspect remote editing jobs
- blend:   classify exposures, synthesize and run blend scripts, then
           optionally send the blended images for remote editing
- profiles: list the editing profiles available to the account

Exit Codes:
===========
- 0: Success (including dry runs and declined confirmations)
- 1: Validation error (bad input, unknown job, bad configuration)
- 2: Execution error (job failed and can be resumed, or local blend failed)
- 4: System error (job store unavailable, external tool missing)
"""

import argparse
import logging
import os
import sys
from typing import List, NoReturn, Optional

from dotenv import find_dotenv, load_dotenv

from ..blending import (
    MASTER_SCRIPT_NAME,
    BlendError,
    BlendParameters,
    CompositingEngineError,
    CompositingRunner,
    cleanup_darken_exports,
)
from ..classification import (
    ClassificationError,
    ClassificationStrategy,
    Classifier,
    ExifExtractor,
    ExifToolNotFoundError,
    InvalidStrategyError,
)
from ..imagen import (
    DEFAULT_PRESET,
    EDIT_PRESETS,
    ImagenClient,
    ImagenConfigurationError,
    ImagenError,
)
from ..jobs import (
    AmbiguousJobIdError,
    JobNotFoundError,
    JobNotResumableError,
    JobSource,
    WorkflowEngine,
)
from ..persistence import PersistenceError
from ..settings import SettingsError, WorkflowSettings
from ..workspace import Workspace
from . import commands
from .console import ConsoleObserver
from .errors import ValidationError

logger = logging.getLogger(__name__)


EXIT_OK = 0
EXIT_VALIDATION = 1
EXIT_EXECUTION = 2
EXIT_SYSTEM = 4

_INPUT_ERRORS = (
    ValidationError,
    SettingsError,
    InvalidStrategyError,
    ImagenConfigurationError,
    JobNotFoundError,
    AmbiguousJobIdError,
    JobNotResumableError,
)


def _error(message: str, code: int) -> NoReturn:
    print(f"ERROR: {message}", file=sys.stderr)
    sys.exit(code)


def _configure_logging(verbosity: int) -> None:
    level = logging.WARNING
    if verbosity == 1:
        level = logging.INFO
    elif verbosity >= 2:
        level = logging.DEBUG
    logging.basicConfig(level=level, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    logging.getLogger("httpx").setLevel(max(level, logging.WARNING))
    logging.getLogger("httpcore").setLevel(max(level, logging.WARNING))


def _load_settings(args: argparse.Namespace) -> WorkflowSettings:
    load_dotenv(find_dotenv(usecwd=True), override=False)
    settings = WorkflowSettings.from_env()
    if getattr(args, "db", None):
        settings = settings.with_overrides(database_path=args.db)
    logger.debug(f"Settings: {settings.to_dict()}")
    return settings


def _build_engine(settings: WorkflowSettings, registry) -> WorkflowEngine:
    client = ImagenClient(settings.imagen)
    return WorkflowEngine(client, registry, settings, observers=[ConsoleObserver()])


def cmd_process(args: argparse.Namespace) -> NoReturn:
    """
    Create, resume, list or inspect a remote editing job.

    Exit codes:
        0: Job completed, dry run, declined, or listing shown
        1: Validation error (no job created)
        2: Job failed (resumable)
        4: Job store unavailable
    """
    try:
        settings = _load_settings(args)
        registry = commands.build_registry(settings)

        if args.list:
            commands.list_jobs(registry, limit=args.limit, resumable=args.resumable)
            sys.exit(EXIT_OK)

        if args.status:
            commands.show_job_status(registry, args.status)
            sys.exit(EXIT_OK)

        engine = _build_engine(settings, registry)
        try:
            if args.resume:
                outcome = engine.resume(args.resume, profile_key=args.profile)
            else:
                if not args.input:
                    raise ValidationError(
                        "required unless --resume, --list or --status is given", option="--input"
                    )
                options = commands.build_edit_options(
                    preset=args.preset,
                    photography_type=args.type,
                    window_pull=args.window_pull,
                    crop=args.crop,
                    perspective=args.perspective,
                    hdr=args.hdr,
                )
                profile_key = args.profile or commands.choose_profile(
                    engine.client, settings.imagen.profile_key, args.yes or args.dry_run
                )
                job = commands.create_process_job(
                    engine,
                    input_directory=args.input,
                    output_directory=args.output,
                    patterns=_split_patterns(args.pattern),
                    profile_key=profile_key,
                    project_name=args.project_name,
                    edit_options=options,
                    source_type=JobSource(args.source),
                    parent_job_id=args.parent,
                )
                outcome = commands.start_job(engine, job, dry_run=args.dry_run, assume_yes=args.yes)
        finally:
            engine.client.close()

    except _INPUT_ERRORS as e:
        _error(str(e), EXIT_VALIDATION)
    except PersistenceError as e:
        _error(str(e), EXIT_SYSTEM)
    except ImagenError as e:
        _error(str(e), EXIT_EXECUTION)

    if outcome is None:
        sys.exit(EXIT_OK)
    commands.print_outcome(outcome)
    sys.exit(EXIT_OK if outcome.succeeded else EXIT_EXECUTION)


def cmd_blend(args: argparse.Namespace) -> NoReturn:
    """
    Classify, group and blend a shoot; optionally send the results for editing.

    Exit codes:
        0: Blend (and remote job, if any) succeeded, or the remote step was declined
        1: Validation error
        2: Classification, blend or remote job failure
        4: exiftool/ImageMagick missing or job store unavailable
    """
    try:
        settings = _load_settings(args)
        input_directory = commands.validate_input_directory(args.input)
        output_directory = commands.prepare_output_directory(
            args.output or commands.suggest_output_directory(input_directory, "flambient")
        )
        strategy = ClassificationStrategy(args.strategy)
        classifier = Classifier.create(strategy, args.ambient_value, args.custom_field)
        params = BlendParameters(
            level_low=args.level_low or settings.blend.level_low,
            level_high=args.level_high or settings.blend.level_high,
            gamma=args.gamma or settings.blend.gamma,
            output_prefix=args.prefix or settings.blend.output_prefix,
            darken_export=settings.blend.darken_export or args.darken,
            darken_suffix=settings.blend.darken_suffix,
        )
    except ValueError as e:
        # pydantic.ValidationError is a ValueError
        _error(str(e), EXIT_VALIDATION)
    except _INPUT_ERRORS as e:
        _error(str(e), EXIT_VALIDATION)

    workspace = Workspace(output_directory)
    runner = CompositingRunner.from_settings(settings.blend)
    print(f"Classifying exposures by {strategy.label} (ambient = {classifier.ambient_value})")
    try:
        run = commands.run_blend(
            input_directory,
            workspace,
            classifier,
            params,
            ExifExtractor(settings.exiftool_binary),
            runner,
            execute=not args.scripts_only,
        )
    except ValidationError as e:
        _error(str(e), EXIT_VALIDATION)
    except (ExifToolNotFoundError, CompositingEngineError) as e:
        _error(str(e), EXIT_SYSTEM)
    except (ClassificationError, BlendError) as e:
        _error(str(e), EXIT_EXECUTION)

    commands.print_blend_summary(run)
    if args.scripts_only:
        print(f"\nScripts written; run them with: bash {os.path.join(workspace.scripts, MASTER_SCRIPT_NAME)}")
        sys.exit(EXIT_OK)

    outputs = run.output_paths
    if not outputs:
        _error("No blended images were produced", EXIT_EXECUTION)

    if args.local:
        removed = cleanup_darken_exports(run.recipes)
        if removed:
            logger.info(f"Removed {removed} temporary darkened export(s)")
        print(f"\nLocal mode: {len(outputs)} blended image(s) in {workspace.flambient}")
        sys.exit(EXIT_OK if run.batch.is_fully_successful() else EXIT_EXECUTION)

    try:
        registry = commands.build_registry(settings)
        engine = _build_engine(settings, registry)
        try:
            job = commands.create_process_job(
                engine,
                input_directory=workspace.flambient,
                output_directory=workspace.root,
                profile_key=args.profile or settings.imagen.profile_key,
                project_name=args.project_name,
                edit_options=commands.build_edit_options(preset=args.preset or DEFAULT_PRESET),
                source_type=JobSource.FLAMBIENT,
                file_manifest=outputs,
                metadata=run.to_metadata(),
            )
            outcome = commands.start_job(engine, job, dry_run=args.dry_run, assume_yes=args.yes)
        finally:
            engine.client.close()
    except _INPUT_ERRORS as e:
        _error(str(e), EXIT_VALIDATION)
    except PersistenceError as e:
        _error(str(e), EXIT_SYSTEM)

    if outcome is None:
        sys.exit(EXIT_OK)
    commands.print_outcome(outcome)
    sys.exit(EXIT_OK if outcome.succeeded else EXIT_EXECUTION)


def cmd_profiles(args: argparse.Namespace) -> NoReturn:
    """
    List editing profiles.

    Exit codes:
        0: Profiles listed
        1: Missing API key or bad configuration
        2: Service error
    """
    try:
        settings = _load_settings(args)
        with ImagenClient(settings.imagen) as client:
            profiles = client.list_profiles()
    except _INPUT_ERRORS as e:
        _error(str(e), EXIT_VALIDATION)
    except ImagenError as e:
        _error(str(e), EXIT_EXECUTION)
    commands.print_profiles(profiles)
    sys.exit(EXIT_OK)


def _split_patterns(raw: Optional[List[str]]) -> Optional[List[str]]:
    if not raw:
        return None
    patterns = []
    for item in raw:
        patterns.extend(p for p in item.split(",") if p.strip())
    return patterns or None


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="flambient",
        description="Flambient exposure blending and Imagen AI editing workflow",
    )
    parser.add_argument("-v", "--verbose", action="count", default=0, help="Increase log verbosity (-v, -vv)")
    parser.add_argument("--db", help="Job database path (default: ~/.flambient/flambient.db)")

    subparsers = parser.add_subparsers(dest="command", required=True, help="Command to execute")

    # Process command
    parser_process = subparsers.add_parser("process", help="Run or manage a remote editing job")
    parser_process.add_argument("--input", help="Input directory containing images (RAW or JPEG)")
    parser_process.add_argument("--output", help="Output directory (default: <input>-edited)")
    parser_process.add_argument("--profile", help="Imagen AI profile key")
    parser_process.add_argument("--project-name", help="Remote project name (default: <dir>-<timestamp>)")
    parser_process.add_argument("--type", help="Photography type (real_estate, wedding, portrait, ...)")
    parser_process.add_argument("--preset", choices=sorted(EDIT_PRESETS), help="Named edit preset")
    parser_process.add_argument("--window-pull", action="store_true", help="Enable window pull")
    parser_process.add_argument("--crop", action="store_true", help="Enable auto-crop")
    parser_process.add_argument("--perspective", action="store_true", help="Enable perspective correction")
    parser_process.add_argument("--hdr", action="store_true", help="Enable HDR merge")
    parser_process.add_argument(
        "--pattern", action="append",
        help="File pattern(s) to match, comma-separated (default: common JPEG and RAW extensions)",
    )
    parser_process.add_argument(
        "--source", choices=[s.value for s in JobSource], default=JobSource.MANUAL.value,
        help="Source type recorded on the job",
    )
    parser_process.add_argument("--parent", help="Parent job id for multi-pass workflows")
    parser_process.add_argument("--resume", metavar="ID", help="Resume a previous job by id or id prefix")
    parser_process.add_argument("--list", action="store_true", help="List recent jobs")
    parser_process.add_argument(
        "--resumable", action="store_true", help="With --list, show only jobs that can be resumed"
    )
    parser_process.add_argument("--limit", type=int, default=20, help="Number of jobs to list")
    parser_process.add_argument("--status", metavar="ID", help="Show status of a job")
    parser_process.add_argument("--dry-run", action="store_true", help="Show the plan without uploading")
    parser_process.add_argument("-y", "--yes", action="store_true", help="Skip confirmation prompts")
    parser_process.set_defaults(func=cmd_process)

    # Blend command
    parser_blend = subparsers.add_parser("blend", help="Classify, group and blend ambient/flash exposures")
    parser_blend.add_argument("--input", required=True, help="Directory of bracketed JPEG exposures")
    parser_blend.add_argument("--output", help="Workspace directory (default: <input>-flambient)")
    parser_blend.add_argument(
        "--strategy", choices=[s.value for s in ClassificationStrategy],
        default=ClassificationStrategy.FLASH.value, help="EXIF field used to separate ambient from flash",
    )
    parser_blend.add_argument("--ambient-value", help="Field value that marks an ambient exposure")
    parser_blend.add_argument("--custom-field", help="EXIF tag for the custom strategy")
    parser_blend.add_argument("--level-low", help="Mask level low point (default 40%%)")
    parser_blend.add_argument("--level-high", help="Mask level high point (default 140%%)")
    parser_blend.add_argument("--gamma", help="Mask gamma (default 1.0)")
    parser_blend.add_argument("--prefix", help="Output file prefix (default: flambient)")
    parser_blend.add_argument("--darken", action="store_true", help="Also export a darkened flash composite")
    parser_blend.add_argument("--local", action="store_true", help="Blend locally only; skip remote editing")
    parser_blend.add_argument("--scripts-only", action="store_true", help="Write scripts without running them")
    parser_blend.add_argument("--profile", help="Imagen AI profile key for the remote job")
    parser_blend.add_argument("--project-name", help="Remote project name")
    parser_blend.add_argument("--preset", choices=sorted(EDIT_PRESETS), help="Named edit preset")
    parser_blend.add_argument("--dry-run", action="store_true", help="Create the remote job plan without uploading")
    parser_blend.add_argument("-y", "--yes", action="store_true", help="Skip confirmation prompts")
    parser_blend.set_defaults(func=cmd_blend)

    # Profiles command
    parser_profiles = subparsers.add_parser("profiles", help="List Imagen AI editing profiles")
    parser_profiles.set_defaults(func=cmd_profiles)

    return parser


def main(argv: Optional[List[str]] = None) -> NoReturn:
    """
    Main CLI entrypoint.

    Parses arguments and dispatches to subcommands.
    """
    parser = build_parser()
    args = parser.parse_args(argv)
    _configure_logging(args.verbose)
    try:
        args.func(args)
    except KeyboardInterrupt:
        print("\nInterrupted. Any started job is saved; list jobs with: flambient process --list", file=sys.stderr)
        sys.exit(EXIT_EXECUTION)


if __name__ == "__main__":
    main()
