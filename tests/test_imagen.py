"""
Imagen AI Client Tests

Tests proving:
1. API calls carry the x-api-key header and unwrap the data envelope
2. Signed-URL uploads send only the file bytes: no API key, no Content-Type
3. Transient failures (5xx, 429, timeouts) are retried; 4xx are not
4. Downloads land under their final name only when complete
5. Polling reports strictly increasing progress and stops on failure or timeout

All HTTP goes through httpx.MockTransport.
"""

import json
from typing import Callable, List

import httpx
import pytest

from flambient.imagen import (
    DEFAULT_PRESET,
    EDIT_PRESETS,
    EditOptions,
    FatalImagenError,
    ImagenClient,
    ImagenConfigurationError,
    PhotographyType,
    PollingTimeoutError,
    RemoteEditFailedError,
    RemoteStatus,
    TransientImagenError,
    UploadResult,
    get_preset,
    list_presets,
    poll_until_complete,
)
from flambient.settings import ImagenSettings


# =============================================================================
# Test Helpers
# =============================================================================

API = "https://api.test/v1"


def make_client(handler: Callable[[httpx.Request], httpx.Response], retry_times: int = 3) -> ImagenClient:
    settings = ImagenSettings(
        api_key="secret-key",
        base_url=API,
        retry_times=retry_times,
        retry_backoff=0.0,
    )
    return ImagenClient(settings, transport=httpx.MockTransport(handler), sleep=lambda _: None)


class Recorder:
    """MockTransport handler serving queued responses and recording requests."""

    def __init__(self, *responses: httpx.Response):
        self.responses = list(responses)
        self.requests: List[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        template = self.responses.pop(0) if len(self.responses) > 1 else self.responses[0]
        return httpx.Response(template.status_code, headers=template.headers, content=template.content)


# =============================================================================
# Client
# =============================================================================

class TestClientConfiguration:
    """Client construction."""

    def test_missing_api_key_rejected(self):
        with pytest.raises(ImagenConfigurationError):
            ImagenClient(ImagenSettings(api_key=None))


class TestApiCalls:
    """Authenticated JSON calls."""

    def test_create_project_sends_key_and_unwraps_data(self):
        handler = Recorder(httpx.Response(200, json={"data": {"project_uuid": "abc-123"}}))
        with make_client(handler) as client:
            project = client.create_project("Smith House")

        request = handler.requests[0]
        assert request.method == "POST"
        assert str(request.url) == f"{API}/projects/"
        assert request.headers["x-api-key"] == "secret-key"
        assert json.loads(request.content) == {"name": "Smith House"}
        assert project.uuid == "abc-123"

    def test_missing_project_uuid_is_fatal(self):
        handler = Recorder(httpx.Response(200, json={"data": {}}))
        with make_client(handler) as client:
            with pytest.raises(FatalImagenError):
                client.create_project("x")

    def test_upload_links_keyed_by_name(self):
        body = {"data": {"files_list": [
            {"file_name": "a.jpg", "upload_link": "https://s3.test/a?sig=1"},
            {"file_name": "b.jpg", "upload_link": "https://s3.test/b?sig=2"},
        ]}}
        handler = Recorder(httpx.Response(200, json=body))
        with make_client(handler) as client:
            links = client.get_upload_links("p1", ["a.jpg", "b.jpg"])

        assert links == {"a.jpg": "https://s3.test/a?sig=1", "b.jpg": "https://s3.test/b?sig=2"}
        assert handler.requests[0].url.path == "/v1/projects/p1/get_temporary_upload_links"
        assert json.loads(handler.requests[0].content) == {
            "files_list": [{"file_name": "a.jpg"}, {"file_name": "b.jpg"}]
        }

    def test_start_edit_sends_profile_and_flags(self):
        handler = Recorder(httpx.Response(200, json={"message": "queued"}))
        options = EditOptions(photography_type=PhotographyType.REAL_ESTATE, hdr_merge=True)
        with make_client(handler) as client:
            ack = client.start_edit("p1", "309406", options)

        payload = json.loads(handler.requests[0].content)
        assert payload["profile_key"] == "309406"
        assert payload["photography_type"] == "REAL_ESTATE"
        assert payload["window_pull"] is True
        assert payload["hdr_output_compression"] == "LOSSY"
        assert "smooth_skin" not in payload
        assert ack.message == "queued"

    def test_status_progress_clamped(self):
        handler = Recorder(httpx.Response(200, json={"data": {"status": "Processing", "progress": 140}}))
        with make_client(handler) as client:
            status = client.get_edit_status("p1")
        assert status.progress == 100
        assert not status.is_terminal

    def test_export_links(self):
        body = {"data": {"files_list": [{"file_name": "a.jpg", "download_link": "https://cdn.test/a.jpg"}]}}
        handler = Recorder(httpx.Response(200, json=body))
        with make_client(handler) as client:
            links = client.get_export_links("p1")
        assert handler.requests[0].url.path == "/v1/projects/p1/export/download"
        assert [(l.filename, l.file_type) for l in links] == [("a.jpg", "jpeg")]

    def test_list_profiles(self):
        body = {"data": {"profiles": [
            {"profile_key": 309406, "profile_name": "Real Estate", "image_type": "JPG"},
        ]}}
        handler = Recorder(httpx.Response(200, json=body))
        with make_client(handler) as client:
            profiles = client.list_profiles()
        assert profiles[0].key == "309406"
        assert profiles[0].name == "Real Estate"

    def test_non_json_body_is_fatal(self):
        handler = Recorder(httpx.Response(200, text="<html>oops</html>"))
        with make_client(handler) as client:
            with pytest.raises(FatalImagenError):
                client.get_edit_status("p1")


class TestRetries:
    """Transient versus fatal failures."""

    def test_server_error_retried_then_succeeds(self):
        handler = Recorder(
            httpx.Response(503, text="busy"),
            httpx.Response(502, text="bad gateway"),
            httpx.Response(200, json={"data": {"project_uuid": "p1"}}),
        )
        with make_client(handler) as client:
            assert client.create_project("x").uuid == "p1"
        assert len(handler.requests) == 3

    def test_retries_exhausted_raise_transient(self):
        handler = Recorder(httpx.Response(429, text="slow down"))
        with make_client(handler, retry_times=2) as client:
            with pytest.raises(TransientImagenError) as exc:
                client.get_export_status("p1")
        assert exc.value.status_code == 429
        assert len(handler.requests) == 2

    def test_auth_failure_not_retried(self):
        handler = Recorder(httpx.Response(401, text="bad key"))
        with make_client(handler) as client:
            with pytest.raises(FatalImagenError) as exc:
                client.list_profiles()
        assert exc.value.status_code == 401
        assert len(handler.requests) == 1

    def test_connection_error_is_transient(self):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        with make_client(handler, retry_times=2) as client:
            with pytest.raises(TransientImagenError):
                client.trigger_export("p1")


class TestTransfers:
    """Signed-URL uploads and downloads."""

    def test_upload_sends_bare_bytes(self, tmp_path):
        source = tmp_path / "IMG_0001.jpg"
        source.write_bytes(b"\xff\xd8jpeg")
        handler = Recorder(httpx.Response(200))
        with make_client(handler) as client:
            assert client.upload_file("https://s3.test/bucket/IMG_0001.jpg?sig=xyz", str(source))

        request = handler.requests[0]
        assert request.method == "PUT"
        assert request.content == b"\xff\xd8jpeg"
        assert "x-api-key" not in request.headers
        assert "content-type" not in request.headers

    def test_upload_rejected_by_storage_is_fatal(self, tmp_path):
        source = tmp_path / "a.jpg"
        source.write_bytes(b"x")
        handler = Recorder(httpx.Response(403, text="SignatureDoesNotMatch"))
        with make_client(handler) as client:
            with pytest.raises(FatalImagenError):
                client.upload_file("https://s3.test/a.jpg?sig=1", str(source))

    def test_download_writes_final_file(self, tmp_path):
        handler = Recorder(httpx.Response(200, content=b"edited-bytes"))
        with make_client(handler) as client:
            path = client.download_file("https://cdn.test/out/a.jpg?sig=1", str(tmp_path / "edited"))

        assert path == str(tmp_path / "edited" / "a.jpg")
        assert (tmp_path / "edited" / "a.jpg").read_bytes() == b"edited-bytes"
        assert not (tmp_path / "edited" / "a.jpg.part").exists()
        assert "x-api-key" not in handler.requests[0].headers


class TestTransferResults:
    """Upload/download summaries."""

    def test_upload_success_rate(self):
        result = UploadResult(total_files=4, succeeded=["a", "b", "c"], failed=["d"], project_uuid="p1")
        assert result.success_rate() == 75.0
        assert not result.is_fully_successful()

    def test_empty_result_rate_is_zero(self):
        assert UploadResult().success_rate() == 0.0


# =============================================================================
# Polling
# =============================================================================

class TestPolling:
    """poll_until_complete."""

    def _fetcher(self, *statuses: RemoteStatus):
        queue = list(statuses)

        def fetch():
            return queue.pop(0) if len(queue) > 1 else queue[0]

        return fetch

    def test_progress_reported_strictly_increasing(self):
        fetch = self._fetcher(
            RemoteStatus(status="processing", progress=10),
            RemoteStatus(status="processing", progress=10),
            RemoteStatus(status="processing", progress=5),
            RemoteStatus(status="processing", progress=60),
            RemoteStatus(status="Completed", progress=90),
        )
        seen = []
        sleeps = []
        status = poll_until_complete(
            fetch, interval=30, max_attempts=10,
            on_progress=lambda s: seen.append(s.progress), sleep=sleeps.append,
        )
        assert seen == [10, 60, 100]
        assert status.progress == 100
        assert sleeps == [30, 30, 30, 30]

    def test_failed_status_raises(self):
        fetch = self._fetcher(
            RemoteStatus(status="processing", progress=20),
            RemoteStatus(status="Failed", progress=20, message="corrupt input"),
        )
        with pytest.raises(RemoteEditFailedError) as exc:
            poll_until_complete(fetch, interval=0, max_attempts=5, sleep=lambda _: None)
        assert "corrupt input" in str(exc.value)

    def test_timeout_after_max_attempts(self):
        fetch = self._fetcher(RemoteStatus(status="processing", progress=50))
        sleeps = []
        with pytest.raises(PollingTimeoutError):
            poll_until_complete(fetch, interval=1, max_attempts=3, phase="export", sleep=sleeps.append)
        assert len(sleeps) == 2

    def test_initial_progress_suppresses_repeats(self):
        fetch = self._fetcher(
            RemoteStatus(status="processing", progress=40),
            RemoteStatus(status="done", progress=100),
        )
        seen = []
        poll_until_complete(
            fetch, interval=0, max_attempts=5, on_progress=lambda s: seen.append(s.progress),
            sleep=lambda _: None, initial_progress=40,
        )
        assert seen == [100]


# =============================================================================
# Presets
# =============================================================================

class TestPresets:
    """Named edit presets."""

    def test_default_preset_pulls_windows(self):
        options = get_preset(DEFAULT_PRESET)
        assert options.window_pull
        assert options.photography_type is PhotographyType.REAL_ESTATE

    def test_unknown_preset(self):
        with pytest.raises(KeyError):
            get_preset("nope")

    def test_every_preset_builds(self):
        for key, _, _ in list_presets():
            assert isinstance(get_preset(key), EditOptions)
        assert len(list_presets()) == len(EDIT_PRESETS)
