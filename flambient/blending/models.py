"""
Blend recipe models.

A Recipe is an engine-agnostic, ordered list of compositing instructions for
one group. Intermediate images are addressed by named buffers. Rendering to a
concrete engine script lives in synthesizer.py.
"""

import re
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from ..settings import BlendSettings


_LEVEL_PATTERN = re.compile(r"^\d+(\.\d+)?%?$")


class BlendParameters(BaseModel):
    """Level-stretch, gamma and naming parameters for the blue-channel mask."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    level_low: str = "40%"
    level_high: str = "140%"
    gamma: str = "1.0"
    output_prefix: str = "flambient"
    darken_export: bool = False
    darken_suffix: str = "_tmp"

    @field_validator("level_low", "level_high")
    @classmethod
    def _check_level(cls, value: str) -> str:
        value = value.strip()
        if not _LEVEL_PATTERN.match(value):
            raise ValueError(f"level must be a number or percentage, got {value!r}")
        return value

    @field_validator("gamma")
    @classmethod
    def _check_gamma(cls, value: str) -> str:
        value = value.strip()
        try:
            if float(value) <= 0:
                raise ValueError
        except ValueError:
            raise ValueError(f"gamma must be a positive number, got {value!r}") from None
        return value

    @field_validator("output_prefix")
    @classmethod
    def _check_prefix(cls, value: str) -> str:
        if not value or "/" in value or "\\" in value:
            raise ValueError("output prefix must be a plain file-name prefix")
        return value

    @classmethod
    def from_settings(cls, settings: BlendSettings) -> "BlendParameters":
        return cls(
            level_low=settings.level_low,
            level_high=settings.level_high,
            gamma=settings.gamma,
            output_prefix=settings.output_prefix,
            darken_export=settings.darken_export,
            darken_suffix=settings.darken_suffix,
        )


class InstructionKind(str, Enum):
    MERGE = "merge"  # fold source files with one compose operator
    LEVEL = "level"  # level-stretch one channel of a buffer
    COMPOSITE = "composite"  # compose two buffers
    SKIP = "skip"  # documented no-op


class Instruction(BaseModel):
    """
    One compositing operation.

    MERGE sources are file paths; LEVEL and COMPOSITE sources are buffer
    names. The target is a buffer name unless target_is_file is set.
    """

    model_config = ConfigDict(extra="forbid", frozen=True)

    kind: InstructionKind
    sources: List[str] = Field(default_factory=list)
    compose: Optional[str] = None
    channel: Optional[str] = None
    level_low: Optional[str] = None
    level_high: Optional[str] = None
    gamma: Optional[str] = None
    target: Optional[str] = None
    target_is_file: bool = False
    note: Optional[str] = None

    @property
    def is_compositing(self) -> bool:
        return self.kind is not InstructionKind.SKIP


class Recipe(BaseModel):
    """Deterministic compositing plan for one group."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    group_id: int = Field(ge=1)
    ambient_files: List[str] = Field(default_factory=list)
    flash_files: List[str] = Field(default_factory=list)
    instructions: List[Instruction] = Field(default_factory=list)
    output_path: Optional[str] = None
    darken_output_path: Optional[str] = None

    @property
    def padded_id(self) -> str:
        return f"{self.group_id:02d}"

    @property
    def script_name(self) -> str:
        return f"group_{self.padded_id}_script.mgk"

    @property
    def is_blendable(self) -> bool:
        return any(instruction.is_compositing for instruction in self.instructions)

    @property
    def skip_reason(self) -> Optional[str]:
        for instruction in self.instructions:
            if instruction.kind is InstructionKind.SKIP:
                return instruction.note
        return None


class CompositeResult(BaseModel):
    """Outcome of running one recipe script through the engine."""

    model_config = ConfigDict(extra="forbid")

    group_id: int
    script_path: str
    output_path: Optional[str] = None
    success: bool
    exit_code: Optional[int] = None
    stdout: str = ""
    stderr: str = ""
    skipped: bool = False


class BatchResult(BaseModel):
    """Per-group results of a batch run."""

    model_config = ConfigDict(extra="forbid")

    results: List[CompositeResult] = Field(default_factory=list)

    @property
    def succeeded(self) -> List[CompositeResult]:
        return [r for r in self.results if r.success and not r.skipped]

    @property
    def failed(self) -> List[CompositeResult]:
        return [r for r in self.results if not r.success]

    @property
    def skipped(self) -> List[CompositeResult]:
        return [r for r in self.results if r.skipped]

    @property
    def output_paths(self) -> List[str]:
        return [r.output_path for r in self.succeeded if r.output_path]

    def is_fully_successful(self) -> bool:
        return not self.failed
