"""
Blend recipe synthesis and compositing engine execution.

Usage:
    from flambient.blending import BlendParameters, synthesize, write_scripts

    recipe = synthesize(group, BlendParameters(), "/out/flambient")
"""

from .errors import (
    BlendError,
    ScriptWriteError,
    CompositingEngineError,
)
from .models import (
    BlendParameters,
    InstructionKind,
    Instruction,
    Recipe,
    CompositeResult,
    BatchResult,
)
from .synthesizer import (
    MASTER_SCRIPT_NAME,
    output_path_for,
    render_master_script,
    render_script,
    synthesize,
    synthesize_all,
    write_recipe,
    write_scripts,
)
from .runner import (
    CompositingRunner,
    cleanup_darken_exports,
)

__all__ = [
    # Errors
    "BlendError",
    "ScriptWriteError",
    "CompositingEngineError",
    # Models
    "BlendParameters",
    "InstructionKind",
    "Instruction",
    "Recipe",
    "CompositeResult",
    "BatchResult",
    # Synthesis
    "MASTER_SCRIPT_NAME",
    "output_path_for",
    "render_master_script",
    "render_script",
    "synthesize",
    "synthesize_all",
    "write_recipe",
    "write_scripts",
    # Execution
    "CompositingRunner",
    "cleanup_darken_exports",
]
