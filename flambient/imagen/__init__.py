"""
Imagen AI remote editing client.

Usage:
    from flambient.imagen import ImagenClient, poll_until_complete

    with ImagenClient(settings.imagen) as client:
        project = client.create_project("shoot-20240101")
"""

from .errors import (
    ImagenError,
    TransientImagenError,
    FatalImagenError,
    ImagenConfigurationError,
    RemoteEditFailedError,
    PollingTimeoutError,
)
from .models import (
    PhotographyType,
    EditOptions,
    RemoteProject,
    Profile,
    EditAck,
    RemoteStatus,
    DownloadLink,
    UploadResult,
    DownloadResult,
)
from .client import ImagenClient
from .polling import poll_until_complete
from .presets import (
    DEFAULT_PRESET,
    EDIT_PRESETS,
    get_preset,
    list_presets,
)

__all__ = [
    # Errors
    "ImagenError",
    "TransientImagenError",
    "FatalImagenError",
    "ImagenConfigurationError",
    "RemoteEditFailedError",
    "PollingTimeoutError",
    # Models
    "PhotographyType",
    "EditOptions",
    "RemoteProject",
    "Profile",
    "EditAck",
    "RemoteStatus",
    "DownloadLink",
    "UploadResult",
    "DownloadResult",
    # Client
    "ImagenClient",
    "poll_until_complete",
    # Presets
    "DEFAULT_PRESET",
    "EDIT_PRESETS",
    "get_preset",
    "list_presets",
]
