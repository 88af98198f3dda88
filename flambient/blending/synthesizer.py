"""
Blend recipe synthesis and ImageMagick script rendering.

synthesize() is pure: the same group and parameters always produce the same
Recipe, and render_script() turns a Recipe into byte-identical script text.
Only write_recipe() and write_scripts() touch the filesystem.

Blend pipeline for a group with both exposure types:
1. Lighten-fold the ambient files into mpr:ambient_merge
2. Lighten-fold the flash files into mpr:flash_merge
3. Level-stretch the ambient merge's blue channel into a luminosity mask
4. CopyOpacity, Luminize, Over, Colorize composites produce the blend
5. Write {prefix}_{NN}.jpg
"""

import logging
import os
from pathlib import Path
from typing import List, Sequence

from ..classification.models import Group
from .errors import ScriptWriteError
from .models import BlendParameters, Instruction, InstructionKind, Recipe

logger = logging.getLogger(__name__)


AMBIENT_MERGE = "ambient_merge"
FLASH_MERGE = "flash_merge"
AMBIENT_MASK = "ambient_mask_alpha"
FLASH_MASK = "flash_mask"
LUMINIZE = "luminize_flambient"
UNGRADED = "ungraded_flambient"

MASTER_SCRIPT_NAME = "run_all_scripts.sh"


def output_path_for(group_id: int, params: BlendParameters, output_directory: str) -> str:
    return f"{output_directory}/{params.output_prefix}_{group_id:02d}.jpg"


def synthesize(group: Group, params: BlendParameters, output_directory: str) -> Recipe:
    """
    Build the compositing recipe for one group.

    A group missing either exposure type yields a recipe holding only a
    skip marker. This is not an error: one bad group must not abort a batch.
    """
    if not group.is_blendable:
        side = group.missing_side.value
        return Recipe(
            group_id=group.sequence_number,
            ambient_files=list(group.ambient_files),
            flash_files=list(group.flash_files),
            instructions=[
                Instruction(
                    kind=InstructionKind.SKIP,
                    note=(
                        f"Group {group.padded_number} lacks {side} images. "
                        f"Skipping blend operations."
                    ),
                )
            ],
        )

    output_path = output_path_for(group.sequence_number, params, output_directory)
    instructions = [
        Instruction(
            kind=InstructionKind.MERGE,
            sources=list(group.ambient_files),
            compose="lighten",
            target=AMBIENT_MERGE,
        ),
        Instruction(
            kind=InstructionKind.MERGE,
            sources=list(group.flash_files),
            compose="lighten",
            target=FLASH_MERGE,
        ),
    ]

    darken_output = None
    if params.darken_export:
        darken_output = (
            f"{output_directory}/{params.output_prefix}_{group.padded_number}"
            f"{params.darken_suffix}.jpg"
        )
        instructions.append(
            Instruction(
                kind=InstructionKind.MERGE,
                sources=list(group.flash_files),
                compose="darken",
                target=darken_output,
                target_is_file=True,
                note="Darkened flash composite",
            )
        )

    instructions.extend([
        Instruction(
            kind=InstructionKind.LEVEL,
            sources=[AMBIENT_MERGE],
            channel="B",
            level_low=params.level_low,
            level_high=params.level_high,
            gamma=params.gamma,
            target=AMBIENT_MASK,
        ),
        Instruction(
            kind=InstructionKind.COMPOSITE,
            sources=[FLASH_MERGE, AMBIENT_MASK],
            compose="CopyOpacity",
            target=FLASH_MASK,
        ),
        Instruction(
            kind=InstructionKind.COMPOSITE,
            sources=[FLASH_MERGE, AMBIENT_MERGE],
            compose="Luminize",
            target=LUMINIZE,
        ),
        Instruction(
            kind=InstructionKind.COMPOSITE,
            sources=[LUMINIZE, FLASH_MASK],
            compose="Over",
            target=UNGRADED,
        ),
        Instruction(
            kind=InstructionKind.COMPOSITE,
            sources=[UNGRADED, FLASH_MERGE],
            compose="Colorize",
            target=output_path,
            target_is_file=True,
        ),
    ])

    return Recipe(
        group_id=group.sequence_number,
        ambient_files=list(group.ambient_files),
        flash_files=list(group.flash_files),
        instructions=instructions,
        output_path=output_path,
        darken_output_path=darken_output,
    )


def synthesize_all(groups: Sequence[Group], params: BlendParameters, output_directory: str) -> List[Recipe]:
    recipes = [synthesize(group, params, output_directory) for group in groups]
    blendable = sum(1 for r in recipes if r.is_blendable)
    logger.info(f"Synthesized {len(recipes)} recipe(s), {blendable} blendable")
    return recipes


# Rendering

def _quote(path: str) -> str:
    return f'"{path}"'


def _write_target(instruction: Instruction) -> str:
    if instruction.target_is_file:
        return f"-write {_quote(instruction.target)}"
    return f"-write mpr:{instruction.target}"


def _render_instruction(instruction: Instruction, is_last: bool) -> str:
    kind = instruction.kind
    if kind is InstructionKind.MERGE:
        parts = [_quote(instruction.sources[0])]
        for source in instruction.sources[1:]:
            parts.append(f"{_quote(source)} -compose {instruction.compose} -composite")
        command = " ".join(parts)
    elif kind is InstructionKind.LEVEL:
        command = (
            f"mpr:{instruction.sources[0]} -channel {instruction.channel} "
            f"-level {instruction.level_low},{instruction.level_high},{instruction.gamma} "
            f"+channel"
        )
    elif kind is InstructionKind.COMPOSITE:
        base, overlay = instruction.sources
        command = f"mpr:{base} mpr:{overlay} -compose {instruction.compose} -composite"
    else:
        return f"# Warning: {instruction.note}"

    line = f"{command} {_write_target(instruction)}"
    if not is_last:
        line += " +delete"
    return line


def _basenames(paths: Sequence[str]) -> str:
    if not paths:
        return "None"
    return ", ".join(os.path.basename(p) for p in paths)


def render_script(recipe: Recipe) -> str:
    """Render a recipe as an ImageMagick -script file."""
    lines = [
        f"# ImageMagick script for Group {recipe.padded_id}",
        f"# Ambient files: {_basenames(recipe.ambient_files)}",
        f"# Flash files:   {_basenames(recipe.flash_files)}",
        "",
    ]

    if not recipe.is_blendable:
        lines.append(f"# Warning: {recipe.skip_reason}")
        return "\n".join(lines) + "\n"

    compositing = [i for i in recipe.instructions if i.is_compositing]
    blend_header_written = False
    for index, instruction in enumerate(compositing):
        is_last = index == len(compositing) - 1
        if instruction.kind is InstructionKind.MERGE and instruction.target_is_file:
            lines.append("")
            lines.append("# --- Dark Export: Create darkened flash composite ---")
            lines.append(_render_instruction(instruction, is_last))
            lines.append(f"# {instruction.note} saved to: {instruction.target}")
            continue
        if instruction.kind is not InstructionKind.MERGE and not blend_header_written:
            lines.append("")
            lines.append("# --- Flambient Blending Steps ---")
            blend_header_written = True
        lines.append(_render_instruction(instruction, is_last))

    lines.append(f"# Final output path: {recipe.output_path}")
    return "\n".join(lines) + "\n"


def render_master_script(script_paths: Sequence[str], binary: str = "magick") -> str:
    """Render a bash runner that invokes the engine once per script."""
    lines = [
        "#!/bin/bash",
        "",
        "# Runs every generated group script; one failing group does not stop the rest.",
        "",
        'echo "Starting Flambient processing for all groups..."',
        "failures=0",
        "",
    ]
    for script_path in script_paths:
        label = os.path.basename(script_path)
        lines.extend([
            f'echo "Processing {label}..."',
            f'{binary} -script "{script_path}"',
            "if [ $? -eq 0 ]; then",
            f'    echo "  OK {label} completed successfully."',
            "else",
            f'    echo "  FAILED {label}" >&2',
            "    failures=$((failures + 1))",
            "fi",
            "",
        ])
    lines.extend([
        'echo "All groups processed ($failures failure(s))."',
        'exit $(( failures > 0 ? 1 : 0 ))',
    ])
    return "\n".join(lines) + "\n"


def write_recipe(recipe: Recipe, scripts_directory: str) -> Path:
    """
    Write one recipe's script into the scripts directory.

    Raises:
        ScriptWriteError: If the file cannot be written
    """
    path = Path(scripts_directory) / recipe.script_name
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(render_script(recipe), encoding="utf-8")
    except OSError as e:
        raise ScriptWriteError(str(path), str(e)) from e
    return path


def write_scripts(recipes: Sequence[Recipe], scripts_directory: str, binary: str = "magick") -> List[Path]:
    """
    Write every recipe script plus the master runner.

    Skip-only recipes are written for the record but left out of the runner.

    Returns:
        Paths of the blendable group scripts, in group order
    """
    runnable: List[Path] = []
    for recipe in recipes:
        path = write_recipe(recipe, scripts_directory)
        if recipe.is_blendable:
            runnable.append(path)
        else:
            logger.warning(f"Group {recipe.padded_id} skipped: {recipe.skip_reason}")

    if runnable:
        master = Path(scripts_directory) / MASTER_SCRIPT_NAME
        try:
            master.write_text(
                render_master_script([str(p) for p in runnable], binary), encoding="utf-8"
            )
            master.chmod(0o755)
        except OSError as e:
            raise ScriptWriteError(str(master), str(e)) from e
        logger.info(f"Wrote {len(runnable)} group script(s) and {master}")
    return runnable
