"""
HTTP client for the Imagen AI editing service.

All API calls go through one httpx.Client carrying the x-api-key header.
Signed upload and download URLs go through a second, header-free client:
adding Content-Type or auth headers to a signed PUT invalidates its signature
and the storage backend silently rejects the file.

Transient failures are retried with tenacity; exhausted retries and all
other failures surface as ImagenError subclasses.
"""

import logging
import time
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Sequence

import httpx
from tenacity import (
    Retrying,
    retry_if_exception_type,
    stop_after_attempt,
    wait_random_exponential,
)

from ..settings import ImagenSettings
from .errors import (
    FatalImagenError,
    ImagenConfigurationError,
    TransientImagenError,
)
from .models import (
    DownloadLink,
    EditAck,
    EditOptions,
    Profile,
    RemoteProject,
    RemoteStatus,
)

logger = logging.getLogger(__name__)


_RETRYABLE_STATUS = {408, 425, 429}


class ImagenClient:
    """
    Stateless protocol client for one account.

    Every method is a single blocking call (plus transparent retries).
    Poll loops and per-file bookkeeping belong to the caller.
    """

    def __init__(
        self,
        settings: ImagenSettings,
        transport: Optional[httpx.BaseTransport] = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        if not settings.api_key:
            raise ImagenConfigurationError("IMAGEN_AI_API_KEY is not set")
        self.settings = settings
        self._sleep = sleep
        self._api = httpx.Client(
            base_url=settings.base_url.rstrip("/"),
            headers={
                "x-api-key": settings.api_key,
                "Content-Type": "application/json",
                "Accept": "application/json",
            },
            timeout=httpx.Timeout(settings.timeout),
            transport=transport,
        )
        self._transfer = httpx.Client(
            timeout=httpx.Timeout(settings.transfer_timeout),
            transport=transport,
            follow_redirects=True,
        )

    def close(self) -> None:
        self._api.close()
        self._transfer.close()

    def __enter__(self) -> "ImagenClient":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    # Transport

    def _retrying(self) -> Retrying:
        return Retrying(
            stop=stop_after_attempt(self.settings.retry_times),
            wait=wait_random_exponential(multiplier=self.settings.retry_backoff, max=30),
            retry=retry_if_exception_type(TransientImagenError),
            sleep=self._sleep,
            before_sleep=lambda state: logger.warning(
                f"[HTTP] Attempt {state.attempt_number} failed: {state.outcome.exception()}; retrying"
            ),
            reraise=True,
        )

    @staticmethod
    def _check_response(response: httpx.Response, action: str) -> None:
        status = response.status_code
        if status < 400:
            return
        body = response.text[:500]
        message = f"Failed to {action}: HTTP {status} {body}".strip()
        if status >= 500 or status in _RETRYABLE_STATUS:
            raise TransientImagenError(message, status)
        raise FatalImagenError(message, status)

    def _send(self, client: httpx.Client, method: str, url: str, action: str, **kwargs) -> httpx.Response:
        try:
            response = client.request(method, url, **kwargs)
        except httpx.TimeoutException as e:
            raise TransientImagenError(f"Failed to {action}: timed out ({e})") from e
        except httpx.TransportError as e:
            raise TransientImagenError(f"Failed to {action}: {e}") from e
        self._check_response(response, action)
        return response

    def _request(self, method: str, path: str, action: str, json: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        response = self._retrying()(self._send, self._api, method, path, action, json=json)
        try:
            body = response.json()
        except ValueError as e:
            raise FatalImagenError(f"Failed to {action}: response is not JSON", response.status_code) from e
        if not isinstance(body, dict):
            raise FatalImagenError(f"Failed to {action}: unexpected response shape", response.status_code)
        return body

    @staticmethod
    def _data(body: Dict[str, Any]) -> Dict[str, Any]:
        data = body.get("data")
        return data if isinstance(data, dict) else {}

    # Projects and profiles

    def create_project(self, name: Optional[str] = None) -> RemoteProject:
        payload = {"name": name} if name else {}
        body = self._request("POST", "/projects/", "create project", json=payload)
        project_uuid = self._data(body).get("project_uuid")
        if not project_uuid:
            raise FatalImagenError("Failed to create project: no project_uuid in response")
        logger.info(f"[PROJECT] Created remote project {project_uuid} ({name})")
        return RemoteProject(uuid=project_uuid, name=name)

    def list_profiles(self) -> List[Profile]:
        body = self._request("GET", "/profiles", "list profiles")
        profiles = []
        for item in self._data(body).get("profiles", []):
            profiles.append(
                Profile(
                    key=str(item.get("profile_key")),
                    name=item.get("profile_name") or "",
                    profile_type=item.get("profile_type"),
                    image_type=item.get("image_type"),
                    photography_type=item.get("photography_type"),
                )
            )
        return profiles

    # Uploads

    def get_upload_links(self, project_uuid: str, filenames: Sequence[str]) -> Dict[str, str]:
        """Request signed upload URLs, keyed by file name."""
        payload = {"files_list": [{"file_name": name} for name in filenames]}
        body = self._request(
            "POST",
            f"/projects/{project_uuid}/get_temporary_upload_links",
            "get upload links",
            json=payload,
        )
        links = {}
        for item in self._data(body).get("files_list", []):
            if item.get("file_name") and item.get("upload_link"):
                links[item["file_name"]] = item["upload_link"]
        return links

    def upload_file(self, upload_url: str, local_path: str) -> bool:
        """
        PUT the raw file bytes to a signed URL.

        Only the body is sent: no Content-Type, no API key.
        """
        content = Path(local_path).read_bytes()
        self._retrying()(
            self._send,
            self._transfer,
            "PUT",
            upload_url,
            f"upload {Path(local_path).name}",
            content=content,
        )
        return True

    def verify_uploads_ready(self, project_uuid: str, filenames: Sequence[str]) -> bool:
        """Confirm the service still issues a link for every uploaded file."""
        links = self.get_upload_links(project_uuid, filenames)
        ready = len(links) == len(filenames)
        if not ready:
            logger.warning(
                f"[UPLOAD] Service acknowledged {len(links)} of {len(filenames)} uploaded file(s)"
            )
        return ready

    # Editing

    def start_edit(self, project_uuid: str, profile_key: str, options: Optional[EditOptions] = None) -> EditAck:
        options = options or EditOptions()
        body = self._request(
            "POST",
            f"/projects/{project_uuid}/edit",
            "start editing",
            json=options.to_payload(profile_key),
        )
        return EditAck(
            project_uuid=project_uuid,
            status="submitted",
            message=body.get("message") or "Project submitted for editing",
        )

    @staticmethod
    def _status_from(body: Dict[str, Any]) -> RemoteStatus:
        data = body.get("data") if isinstance(body.get("data"), dict) else {}
        raw_progress = data.get("progress", 0)
        try:
            progress = int(float(raw_progress))
        except (TypeError, ValueError):
            progress = 0
        return RemoteStatus(
            status=str(data.get("status") or "unknown"),
            progress=max(0, min(100, progress)),
            message=data.get("message"),
        )

    def get_edit_status(self, project_uuid: str) -> RemoteStatus:
        body = self._request("GET", f"/projects/{project_uuid}/edit/status", "check edit status")
        return self._status_from(body)

    # Export and download

    def trigger_export(self, project_uuid: str) -> EditAck:
        body = self._request("POST", f"/projects/{project_uuid}/export", "export project")
        return EditAck(
            project_uuid=project_uuid,
            status="exporting",
            message=body.get("message") or "Project export initiated",
        )

    def get_export_status(self, project_uuid: str) -> RemoteStatus:
        body = self._request("GET", f"/projects/{project_uuid}/export/status", "check export status")
        return self._status_from(body)

    def _links(self, path: str, action: str, file_type: str) -> List[DownloadLink]:
        body = self._request("GET", path, action)
        links = []
        for item in self._data(body).get("files_list", []):
            if item.get("file_name") and item.get("download_link"):
                links.append(
                    DownloadLink(filename=item["file_name"], url=item["download_link"], file_type=file_type)
                )
        return links

    def get_export_links(self, project_uuid: str) -> List[DownloadLink]:
        """Signed URLs for the exported JPEGs."""
        return self._links(f"/projects/{project_uuid}/export/download", "get export links", "jpeg")

    def get_download_links(self, project_uuid: str) -> List[DownloadLink]:
        """Signed URLs for the XMP edit sidecars."""
        return self._links(f"/projects/{project_uuid}/download", "get download links", "xmp")

    def download_file(self, url: str, dest_dir: str, filename: Optional[str] = None) -> str:
        """
        Fetch a signed URL into dest_dir.

        The body is written to a .part file and renamed on completion, so a
        file present under its final name is always complete.
        """
        name = filename or Path(httpx.URL(url).path).name
        destination = Path(dest_dir) / name
        destination.parent.mkdir(parents=True, exist_ok=True)

        response = self._retrying()(self._send, self._transfer, "GET", url, f"download {name}")
        partial = destination.with_name(destination.name + ".part")
        partial.write_bytes(response.content)
        partial.replace(destination)
        return str(destination)
