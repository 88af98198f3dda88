"""
Exposure classification models.

ClassificationStrategy is a closed set: each member carries the EXIF column it
reads, an operator label, help text and its default ambient value. A Classifier
binds one strategy to the ambient-indicating value chosen for a shoot.

Records and groups are immutable once built.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional

from pydantic import BaseModel, ConfigDict, Field

from .errors import InvalidStrategyError


class ImageType(str, Enum):
    """Derived exposure type."""

    AMBIENT = "ambient"
    FLASH = "flash"


@dataclass(frozen=True)
class _StrategyTraits:
    exif_field: Optional[str]
    label: str
    help_text: str
    default_ambient_value: Optional[str]
    missing_value: str


class ClassificationStrategy(str, Enum):
    """Which EXIF field separates ambient exposures from flash exposures."""

    FLASH = "flash"
    EXPOSURE_PROGRAM = "exposure_program"
    EXPOSURE_MODE = "exposure_mode"
    WHITE_BALANCE = "white_balance"
    ISO = "iso"
    SHUTTER_SPEED = "shutter_speed"
    CUSTOM = "custom"

    @property
    def traits(self) -> _StrategyTraits:
        return _STRATEGY_TRAITS[self]

    @property
    def label(self) -> str:
        return self.traits.label

    @property
    def help_text(self) -> str:
        return self.traits.help_text

    @property
    def exif_field(self) -> Optional[str]:
        """CSV column read by this strategy (None for CUSTOM)."""
        return self.traits.exif_field

    @property
    def default_ambient_value(self) -> Optional[str]:
        return self.traits.default_ambient_value

    @property
    def missing_value(self) -> str:
        """Value assumed when the field is absent from a row."""
        return self.traits.missing_value


# exiftool -n reports Flash as a bitmask: 16 = "Off, Did not fire", 0 = "No Flash".
_STRATEGY_TRAITS: Dict[ClassificationStrategy, _StrategyTraits] = {
    ClassificationStrategy.FLASH: _StrategyTraits(
        exif_field="Flash",
        label="Flash",
        help_text="16=No Flash, 0=Flash Fired",
        default_ambient_value="16",
        missing_value="16",
    ),
    ClassificationStrategy.EXPOSURE_PROGRAM: _StrategyTraits(
        exif_field="ExposureProgram",
        label="Exposure Program",
        help_text="1=Manual, 2=Program AE, 3=Aperture Priority",
        default_ambient_value="1",
        missing_value="0",
    ),
    ClassificationStrategy.EXPOSURE_MODE: _StrategyTraits(
        exif_field="ExposureMode",
        label="Exposure Mode",
        help_text="0=Auto, 1=Manual, 2=Auto Bracket",
        default_ambient_value="1",
        missing_value="0",
    ),
    ClassificationStrategy.WHITE_BALANCE: _StrategyTraits(
        exif_field="WhiteBalance",
        label="White Balance",
        help_text="0=Auto, 1=Manual",
        default_ambient_value="0",
        missing_value="0",
    ),
    ClassificationStrategy.ISO: _StrategyTraits(
        exif_field="ISO",
        label="ISO",
        help_text="ISO speed of the ambient exposures, e.g. 100, 400, 800",
        default_ambient_value=None,
        missing_value="0",
    ),
    ClassificationStrategy.SHUTTER_SPEED: _StrategyTraits(
        exif_field="ShutterSpeed",
        label="Shutter Speed",
        help_text="Raw shutter value of the ambient exposures, e.g. 0.02 for 1/50",
        default_ambient_value=None,
        missing_value="",
    ),
    ClassificationStrategy.CUSTOM: _StrategyTraits(
        exif_field=None,
        label="Custom Field",
        help_text="Any EXIF tag name, compared against its raw value",
        default_ambient_value=None,
        missing_value="",
    ),
}


class ExifValue(BaseModel):
    """One EXIF field as a raw (numeric) value and its human-readable label."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    raw: str = ""
    label: str = ""

    def display(self) -> str:
        """Render as 'raw (label)' when the two differ."""
        if self.label and self.label != self.raw:
            return f"{self.raw} ({self.label})"
        return self.raw


class ExposureRecord(BaseModel):
    """A single extracted exposure and its derived type."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    source_path: str
    timestamp: str = ""  # DateTimeOriginal, "YYYY:MM:DD HH:MM:SS" sorts lexically
    exif: Dict[str, ExifValue] = Field(default_factory=dict)
    image_type: ImageType

    @property
    def filename(self) -> str:
        return self.source_path.replace("\\", "/").rsplit("/", 1)[-1]


class Classifier(BaseModel):
    """
    A strategy bound to the value that marks an exposure as ambient.

    Classification is exact equality of the raw extracted value against
    ambient_value. No normalization or fuzzy matching is applied.
    """

    model_config = ConfigDict(extra="forbid", frozen=True)

    strategy: ClassificationStrategy
    ambient_value: str
    custom_field: Optional[str] = None

    @classmethod
    def create(
        cls,
        strategy: ClassificationStrategy,
        ambient_value: Optional[Any] = None,
        custom_field: Optional[str] = None,
    ) -> "Classifier":
        """
        Build a classifier, applying the strategy's default ambient value.

        Raises:
            InvalidStrategyError: If no ambient value is available, or CUSTOM
                is used without a field name
        """
        if strategy is ClassificationStrategy.CUSTOM and not custom_field:
            raise InvalidStrategyError(strategy.value, "a custom field name is required")
        if ambient_value is None:
            ambient_value = strategy.default_ambient_value
        if ambient_value is None or str(ambient_value).strip() == "":
            raise InvalidStrategyError(
                strategy.value,
                f"an ambient value is required ({strategy.help_text})",
            )
        return cls(
            strategy=strategy,
            ambient_value=str(ambient_value).strip(),
            custom_field=custom_field,
        )

    @property
    def field_name(self) -> str:
        if self.strategy is ClassificationStrategy.CUSTOM:
            return self.custom_field or ""
        return self.strategy.exif_field or ""

    def extract_value(self, fields: Mapping[str, Any]) -> str:
        """Raw value this classifier compares, or the strategy's missing value."""
        value = fields.get(self.field_name)
        if isinstance(value, ExifValue):
            value = value.raw
        if value is None or str(value).strip() == "":
            return self.strategy.missing_value
        return str(value).strip()

    def classify(self, fields: Mapping[str, Any]) -> ImageType:
        if self.extract_value(fields) == self.ambient_value:
            return ImageType.AMBIENT
        return ImageType.FLASH


class Group(BaseModel):
    """
    One ambient burst followed by its flash burst.

    A group missing either side is retained but is not blendable.
    """

    model_config = ConfigDict(extra="forbid", frozen=True)

    sequence_number: int = Field(ge=1)
    ambient_files: List[str] = Field(default_factory=list)
    flash_files: List[str] = Field(default_factory=list)

    @property
    def padded_number(self) -> str:
        return f"{self.sequence_number:02d}"

    @property
    def has_ambient(self) -> bool:
        return bool(self.ambient_files)

    @property
    def has_flash(self) -> bool:
        return bool(self.flash_files)

    @property
    def is_blendable(self) -> bool:
        return self.has_ambient and self.has_flash

    @property
    def missing_side(self) -> Optional[ImageType]:
        """Which exposure type is absent, if any."""
        if not self.has_ambient:
            return ImageType.AMBIENT
        if not self.has_flash:
            return ImageType.FLASH
        return None


class GroupStatistics(BaseModel):
    """Summary counts over a grouping result."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    total_groups: int = 0
    total_ambient: int = 0
    total_flash: int = 0
    groups_with_both: int = 0
    groups_ambient_only: int = 0
    groups_flash_only: int = 0
