"""
Remote editing service DTOs.

Mirror the service's JSON payloads. Everything list-shaped arrives under a
`data` envelope; the client unwraps it before building these models.
"""

from datetime import datetime
from enum import Enum
from typing import Any, Dict, FrozenSet, List, Optional

from pydantic import BaseModel, ConfigDict, Field


COMPLETE_STATUSES: FrozenSet[str] = frozenset({"completed", "done", "finished"})
FAILED_STATUSES: FrozenSet[str] = frozenset({"failed", "error"})


class PhotographyType(str, Enum):
    REAL_ESTATE = "REAL_ESTATE"
    WEDDING = "WEDDING"
    PORTRAIT = "PORTRAIT"
    PRODUCT = "PRODUCT"
    LANDSCAPE = "LANDSCAPE"
    EVENT = "EVENT"

    @property
    def label(self) -> str:
        return self.value.replace("_", " ").title()


class EditOptions(BaseModel):
    """Edit flags sent with the start-edit request."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    crop: bool = False
    portrait_crop: bool = False
    headshot_crop: bool = False
    crop_aspect_ratio: Optional[str] = None
    hdr_merge: bool = False
    straighten: bool = False
    subject_mask: bool = False
    photography_type: Optional[PhotographyType] = None
    callback_url: Optional[str] = None
    smooth_skin: bool = False
    perspective_correction: bool = False
    window_pull: bool = True
    sky_replacement: bool = False
    sky_replacement_template_id: Optional[int] = None
    hdr_output_compression: str = "LOSSY"

    def to_payload(self, profile_key: str) -> Dict[str, Any]:
        """
        Build the start-edit request body.

        Core flags are always sent; optional flags only when set.
        """
        payload: Dict[str, Any] = {
            "profile_key": str(profile_key),
            "crop": self.crop,
            "window_pull": self.window_pull,
            "perspective_correction": self.perspective_correction,
            "hdr_merge": self.hdr_merge,
            "photography_type": self.photography_type.value if self.photography_type else None,
        }
        for name in (
            "portrait_crop",
            "headshot_crop",
            "straighten",
            "subject_mask",
            "smooth_skin",
            "sky_replacement",
        ):
            if getattr(self, name):
                payload[name] = True
        for name in ("crop_aspect_ratio", "callback_url", "sky_replacement_template_id"):
            value = getattr(self, name)
            if value is not None:
                payload[name] = value
        if self.hdr_merge:
            payload["hdr_output_compression"] = self.hdr_output_compression
        return payload


class RemoteProject(BaseModel):
    model_config = ConfigDict(extra="forbid")

    uuid: str
    name: Optional[str] = None
    created_at: datetime = Field(default_factory=datetime.now)


class Profile(BaseModel):
    """An editing profile (trained style) available to the account."""

    model_config = ConfigDict(extra="forbid")

    key: str
    name: str
    profile_type: Optional[str] = None
    image_type: Optional[str] = None
    photography_type: Optional[str] = None


class EditAck(BaseModel):
    model_config = ConfigDict(extra="forbid")

    project_uuid: str
    status: str = "submitted"
    message: str = ""


class RemoteStatus(BaseModel):
    """
    One status check of an edit or export.

    Status strings are compared case-insensitively against the known
    complete/failed sets; anything else means still running.
    """

    model_config = ConfigDict(extra="forbid")

    status: str = "unknown"
    progress: int = Field(default=0, ge=0, le=100)
    message: Optional[str] = None

    @property
    def is_complete(self) -> bool:
        return self.status.lower() in COMPLETE_STATUSES

    @property
    def is_failed(self) -> bool:
        return self.status.lower() in FAILED_STATUSES

    @property
    def is_terminal(self) -> bool:
        return self.is_complete or self.is_failed


class DownloadLink(BaseModel):
    model_config = ConfigDict(extra="forbid")

    filename: str
    url: str
    file_type: str = "jpeg"  # "jpeg" or "xmp"


class _TransferResult(BaseModel):
    model_config = ConfigDict(extra="forbid")

    total_files: int = 0
    succeeded: List[str] = Field(default_factory=list)
    failed: List[str] = Field(default_factory=list)

    def is_fully_successful(self) -> bool:
        return not self.failed

    def success_rate(self) -> float:
        """Percentage of files transferred; 0.0 when there was nothing to transfer."""
        if self.total_files == 0:
            return 0.0
        return len(self.succeeded) / self.total_files * 100


class UploadResult(_TransferResult):
    """succeeded / failed hold file names."""

    project_uuid: str = ""


class DownloadResult(_TransferResult):
    """succeeded holds local paths, failed holds file names."""
    pass
