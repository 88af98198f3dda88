"""
Compositing engine runner.

Executes rendered recipe scripts with `magick -script`. Each group runs in
its own process so one failing group never aborts the batch. Output is
captured per group and returned as CompositeResult records.
"""

import logging
import shutil
import subprocess
from pathlib import Path
from typing import List, Optional, Sequence

from ..settings import BlendSettings
from .errors import CompositingEngineError
from .models import BatchResult, CompositeResult, Recipe

logger = logging.getLogger(__name__)


class CompositingRunner:
    """Invokes the compositing engine once per group script."""

    def __init__(self, binary: str = "magick", timeout: float = 1800.0):
        self.binary = binary
        self.timeout = timeout

    @classmethod
    def from_settings(cls, settings: BlendSettings) -> "CompositingRunner":
        return cls(binary=settings.binary, timeout=settings.run_timeout)

    def check_available(self) -> None:
        """
        Raises:
            CompositingEngineError: If the engine binary is not on PATH
        """
        if shutil.which(self.binary) is None:
            raise CompositingEngineError(self.binary, "not found on PATH (install ImageMagick 7)")

    def run_script(self, script_path: str, group_id: int, output_path: Optional[str] = None) -> CompositeResult:
        """Run one script; failures are reported in the result, not raised."""
        cmd = [self.binary, "-script", script_path]
        logger.info(f"[MAGICK] Executing: {' '.join(cmd)}")
        try:
            completed = subprocess.run(
                cmd,
                capture_output=True,
                text=True,
                timeout=self.timeout,
            )
        except subprocess.TimeoutExpired as e:
            logger.error(f"[MAGICK] Group {group_id:02d} timed out after {self.timeout}s")
            return CompositeResult(
                group_id=group_id,
                script_path=script_path,
                output_path=output_path,
                success=False,
                stderr=f"timed out after {e.timeout}s",
            )
        except OSError as e:
            raise CompositingEngineError(self.binary, str(e)) from e

        success = completed.returncode == 0
        if success:
            logger.info(f"[MAGICK] Group {group_id:02d} completed")
        else:
            logger.error(
                f"[MAGICK] Group {group_id:02d} failed with exit code {completed.returncode}: "
                f"{completed.stderr.strip()}"
            )
        return CompositeResult(
            group_id=group_id,
            script_path=script_path,
            output_path=output_path,
            success=success,
            exit_code=completed.returncode,
            stdout=completed.stdout,
            stderr=completed.stderr,
        )

    def run_recipe(self, recipe: Recipe, scripts_directory: str) -> CompositeResult:
        script_path = str(Path(scripts_directory) / recipe.script_name)
        if not recipe.is_blendable:
            return CompositeResult(
                group_id=recipe.group_id,
                script_path=script_path,
                success=True,
                skipped=True,
                stdout=recipe.skip_reason or "",
            )
        return self.run_script(script_path, recipe.group_id, recipe.output_path)

    def run_all(self, recipes: Sequence[Recipe], scripts_directory: str) -> BatchResult:
        """
        Run every recipe's script in group order.

        Raises:
            CompositingEngineError: If the engine is missing
        """
        self.check_available()
        results: List[CompositeResult] = [
            self.run_recipe(recipe, scripts_directory) for recipe in recipes
        ]
        batch = BatchResult(results=results)
        logger.info(
            f"[MAGICK] Batch finished: {len(batch.succeeded)} succeeded, "
            f"{len(batch.failed)} failed, {len(batch.skipped)} skipped"
        )
        return batch


def cleanup_darken_exports(recipes: Sequence[Recipe]) -> int:
    """Remove temporary darkened flash composites. Returns the number removed."""
    removed = 0
    for recipe in recipes:
        if recipe.darken_output_path:
            path = Path(recipe.darken_output_path)
            if path.exists():
                path.unlink()
                removed += 1
    return removed
