"""
Shared fixtures for flambient tests.

FakeImagenClient stands in for the remote service: it records every call,
serves scripted status sequences, and can be told to fail specific files.
No test touches the network, exiftool or ImageMagick.
"""

import sys
from datetime import datetime, timedelta
from pathlib import Path
from typing import Dict, List, Optional, Sequence

import pytest

sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from flambient.imagen.errors import FatalImagenError, TransientImagenError
from flambient.imagen.models import (
    DownloadLink,
    EditAck,
    EditOptions,
    Profile,
    RemoteProject,
    RemoteStatus,
)
from flambient.jobs import EventRecorder, JobRegistry, WorkflowEngine
from flambient.persistence import PersistenceManager
from flambient.settings import ImagenSettings, WorkflowSettings


# =============================================================================
# Fake remote service
# =============================================================================

class FakeImagenClient:
    """In-memory stand-in for ImagenClient."""

    def __init__(self, export_names: Optional[Sequence[str]] = None):
        self.calls: List[tuple] = []
        self.project_uuid = "proj-0001"
        self.uploaded: List[str] = []
        self.fail_uploads: Dict[str, int] = {}
        self.fail_downloads: Dict[str, int] = {}
        self.withhold_links: set = set()
        self.edit_statuses: List[RemoteStatus] = [RemoteStatus(status="completed", progress=100)]
        self.export_statuses: List[RemoteStatus] = [RemoteStatus(status="completed", progress=100)]
        self.export_names = list(export_names) if export_names is not None else None
        self.export_link_responses: Optional[List[List[DownloadLink]]] = None
        self.sidecar_names: List[str] = []
        self.start_edit_error: Optional[Exception] = None
        self.verify_result = True
        self.profiles = [Profile(key="309406", name="Real Estate")]
        self.edit_options: Optional[EditOptions] = None

    def _call(self, name: str, *args) -> None:
        self.calls.append((name,) + args)

    def call_names(self) -> List[str]:
        return [c[0] for c in self.calls]

    def close(self) -> None:
        self._call("close")

    def create_project(self, name=None) -> RemoteProject:
        self._call("create_project", name)
        return RemoteProject(uuid=self.project_uuid, name=name)

    def list_profiles(self) -> List[Profile]:
        self._call("list_profiles")
        return list(self.profiles)

    def get_upload_links(self, project_uuid, filenames) -> Dict[str, str]:
        self._call("get_upload_links", project_uuid, list(filenames))
        return {
            name: f"https://storage.test/upload/{name}"
            for name in filenames
            if name not in self.withhold_links
        }

    def upload_file(self, upload_url, local_path) -> bool:
        name = Path(local_path).name
        self._call("upload_file", name)
        remaining = self.fail_uploads.get(name, 0)
        if remaining:
            self.fail_uploads[name] = remaining - 1
            raise TransientImagenError(f"Failed to upload {name}: HTTP 503", 503)
        self.uploaded.append(name)
        return True

    def verify_uploads_ready(self, project_uuid, filenames) -> bool:
        self._call("verify_uploads_ready", project_uuid, list(filenames))
        return self.verify_result

    def start_edit(self, project_uuid, profile_key, options=None) -> EditAck:
        self._call("start_edit", project_uuid, profile_key)
        self.edit_options = options
        if self.start_edit_error is not None:
            error, self.start_edit_error = self.start_edit_error, None
            raise error
        return EditAck(project_uuid=project_uuid, status="submitted", message="ok")

    def _next(self, statuses: List[RemoteStatus]) -> RemoteStatus:
        return statuses.pop(0) if len(statuses) > 1 else statuses[0]

    def get_edit_status(self, project_uuid) -> RemoteStatus:
        self._call("get_edit_status", project_uuid)
        return self._next(self.edit_statuses)

    def trigger_export(self, project_uuid) -> EditAck:
        self._call("trigger_export", project_uuid)
        return EditAck(project_uuid=project_uuid, status="exporting", message="ok")

    def get_export_status(self, project_uuid) -> RemoteStatus:
        self._call("get_export_status", project_uuid)
        return self._next(self.export_statuses)

    def get_export_links(self, project_uuid) -> List[DownloadLink]:
        self._call("get_export_links", project_uuid)
        if self.export_link_responses is not None:
            return self.export_link_responses.pop(0) if self.export_link_responses else []
        names = self.export_names if self.export_names is not None else self.uploaded
        return [
            DownloadLink(filename=name, url=f"https://storage.test/export/{name}", file_type="jpeg")
            for name in names
        ]

    def get_download_links(self, project_uuid) -> List[DownloadLink]:
        self._call("get_download_links", project_uuid)
        return [
            DownloadLink(filename=name, url=f"https://storage.test/xmp/{name}", file_type="xmp")
            for name in self.sidecar_names
        ]

    def download_file(self, url, dest_dir, filename=None) -> str:
        name = filename or url.rsplit("/", 1)[-1]
        self._call("download_file", name)
        remaining = self.fail_downloads.get(name, 0)
        if remaining:
            self.fail_downloads[name] = remaining - 1
            raise FatalImagenError(f"Failed to download {name}: HTTP 403", 403)
        destination = Path(dest_dir) / name
        destination.parent.mkdir(parents=True, exist_ok=True)
        destination.write_bytes(b"edited:" + name.encode())
        return str(destination)


class FakeClock:
    """Monotonic clock advancing one second per call."""

    def __init__(self, start: datetime = datetime(2024, 5, 1, 12, 0, 0)):
        self.current = start

    def __call__(self) -> datetime:
        self.current += timedelta(seconds=1)
        return self.current


# =============================================================================
# Fixtures
# =============================================================================

@pytest.fixture
def settings(tmp_path) -> WorkflowSettings:
    imagen = ImagenSettings(
        api_key="test-key",
        base_url="https://api.test/v1",
        retry_times=3,
        retry_backoff=0.0,
        poll_interval=0,
        poll_max_attempts=5,
        export_link_retry_delay=0,
    )
    return WorkflowSettings(imagen=imagen, database_path=str(tmp_path / "jobs.db"))


@pytest.fixture
def registry(settings) -> JobRegistry:
    return JobRegistry(PersistenceManager(settings.database_path))


@pytest.fixture
def fake_client() -> FakeImagenClient:
    return FakeImagenClient()


@pytest.fixture
def recorder() -> EventRecorder:
    return EventRecorder()


@pytest.fixture
def sleeps() -> List[float]:
    return []


@pytest.fixture
def engine(fake_client, registry, settings, recorder, sleeps) -> WorkflowEngine:
    return WorkflowEngine(
        fake_client,
        registry,
        settings,
        observers=[recorder],
        sleep=sleeps.append,
        now=FakeClock(),
    )


@pytest.fixture
def image_dir(tmp_path) -> Path:
    """Directory with five small image files."""
    directory = tmp_path / "shoot"
    directory.mkdir()
    for index in range(1, 6):
        (directory / f"IMG_{index:04d}.jpg").write_bytes(b"jpeg-bytes-%d" % index)
    return directory


@pytest.fixture
def manifest(image_dir) -> List[str]:
    return sorted(str(p) for p in image_dir.iterdir())
