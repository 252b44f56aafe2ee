"""
Site Publisher - Test Configuration

Pytest fixtures and configuration for the test suite.
Provides an in-process fake of the hosting provider built on
httpx.MockTransport, so deployments run end to end without a network.
"""

import hashlib
import json
import os
import re
from typing import Any, Optional

import httpx
import pytest

from config.settings import Settings, clear_settings_cache
from publishing.bundle import FileBundle


FAKE_API_BASE = "https://hosting.test/v1beta1"
FAKE_UPLOAD_BASE = "https://upload.hosting.test/upload"
TEST_SITE_ID = "test-site"
TEST_TOKEN = "test-token"


# =============================================================================
# Markers
# =============================================================================

def pytest_configure(config):
    """Configure custom markers."""
    config.addinivalue_line(
        "markers",
        "integration: mark test as an integration test",
    )


# =============================================================================
# Environment Configuration
# =============================================================================

@pytest.fixture(scope="session", autouse=True)
def setup_test_environment():
    """Configure environment for testing."""
    os.environ.setdefault("ENVIRONMENT", "test")
    os.environ.setdefault("LOG_LEVEL", "WARNING")
    os.environ.setdefault("LOG_FILE", "")
    clear_settings_cache()

    yield

    clear_settings_cache()


@pytest.fixture
def hosting_settings() -> Settings:
    """Settings pointing at the fake provider."""
    return Settings(
        _env_file=None,
        environment="test",
        log_file=None,
        hosting_site_id=TEST_SITE_ID,
        hosting_access_token=TEST_TOKEN,
        hosting_api_base_url=FAKE_API_BASE,
        hosting_timeout_seconds=5.0,
        hosting_upload_concurrency=4,
    )


# =============================================================================
# Fake Hosting Provider
# =============================================================================

def _json_response(data: dict[str, Any], status_code: int = 200) -> httpx.Response:
    return httpx.Response(
        status_code=status_code,
        content=json.dumps(data).encode(),
        headers={"content-type": "application/json"},
    )


def _error_response(status_code: int, message: str) -> httpx.Response:
    return _json_response({"error": {"code": status_code, "message": message}}, status_code)


class FakeHostingProvider:
    """
    Minimal stateful stand-in for the hosting REST API.

    Content uploaded in one version stays held for later versions, like the
    real provider's hash-addressed store. The live channel exists from the
    start; preview channels are created on demand.
    """

    VERSIONS = re.compile(r"^/v1beta1/sites/(?P<site>[^/]+)/versions$")
    POPULATE = re.compile(r"^/v1beta1/sites/(?P<site>[^/]+)/versions/(?P<vid>[^/:]+):populateFiles$")
    VERSION = re.compile(r"^/v1beta1/sites/(?P<site>[^/]+)/versions/(?P<vid>[^/:]+)$")
    CHANNELS = re.compile(r"^/v1beta1/sites/(?P<site>[^/]+)/channels$")
    CHANNEL = re.compile(r"^/v1beta1/sites/(?P<site>[^/]+)/channels/(?P<channel>[^/]+)$")
    RELEASES = re.compile(r"^/v1beta1/sites/(?P<site>[^/]+)/channels/(?P<channel>[^/]+)/releases$")
    UPLOAD = re.compile(r"^/upload/sites/(?P<site>[^/]+)/versions/(?P<vid>[^/]+)/files/(?P<digest>[0-9a-f]+)$")

    def __init__(self, site_id: str = TEST_SITE_ID, token: str = TEST_TOKEN):
        self.site_id = site_id
        self.token = token

        self.held_digests: set[str] = set()
        self.versions: dict[str, dict[str, Any]] = {}
        self.channels: dict[str, dict[str, Any]] = {
            "live": {"url": f"https://{site_id}.example/", "version": None, "ttl": None},
        }
        self.calls: list[tuple[str, str]] = []
        self.requests: list[httpx.Request] = []

        # Failure switches
        self.fail_upload_digests: set[str] = set()
        self.fail_create_version = False
        self.fail_populate = False
        self.populate_override: Optional[dict[str, Any]] = None
        self.fail_finalize = False
        self.fail_release = False
        self.omit_channel_url = False
        self.fail_get_channel = False

    # -------------------------------------------------------------------------
    # Inspection helpers
    # -------------------------------------------------------------------------

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)

    def call_names(self) -> list[str]:
        return [name for name, _ in self.calls]

    def count(self, name: str) -> int:
        return self.call_names().count(name)

    def hold(self, content_digests: set[str]) -> None:
        self.held_digests.update(content_digests)

    # -------------------------------------------------------------------------
    # Routing
    # -------------------------------------------------------------------------

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)

        if request.headers.get("Authorization") != f"Bearer {self.token}":
            return _error_response(401, "Request had invalid authentication credentials")

        path = request.url.path
        method = request.method

        if method == "POST" and (m := self.VERSIONS.match(path)):
            return self._create_version(m["site"], request)
        if method == "POST" and (m := self.POPULATE.match(path)):
            return self._populate(m["site"], m["vid"], request)
        if method == "PATCH" and (m := self.VERSION.match(path)):
            return self._finalize(m["site"], m["vid"], request)
        if method == "POST" and (m := self.CHANNELS.match(path)):
            return self._create_channel(request)
        if method == "POST" and (m := self.RELEASES.match(path)):
            return self._release(m["channel"], request)
        if method == "GET" and (m := self.CHANNEL.match(path)):
            return self._get_channel(m["channel"])
        if method == "POST" and request.url.host == "upload.hosting.test" and (m := self.UPLOAD.match(path)):
            return self._upload(m["site"], m["vid"], m["digest"], request)

        return _error_response(404, f"No route for {method} {path}")

    # -------------------------------------------------------------------------
    # Handlers
    # -------------------------------------------------------------------------

    def _create_version(self, site: str, request: httpx.Request) -> httpx.Response:
        self.calls.append(("create_version", site))
        if self.fail_create_version:
            return _error_response(403, "Permission denied on site")

        body = json.loads(request.content)
        vid = f"v{len(self.versions) + 1}"
        name = f"sites/{site}/versions/{vid}"
        self.versions[vid] = {
            "name": name,
            "status": "CREATED",
            "config": body.get("config", {}),
            "files": {},
            "required": set(),
            "uploaded": set(),
        }
        return _json_response({"name": name, "status": "CREATED"})

    def _populate(self, site: str, vid: str, request: httpx.Request) -> httpx.Response:
        self.calls.append(("populate", vid))
        if self.fail_populate:
            return _error_response(500, "Internal error")
        if self.populate_override is not None:
            return _json_response(self.populate_override)

        version = self.versions[vid]
        files = json.loads(request.content)["files"]
        version["files"].update(files)

        required = sorted({d for d in files.values() if d not in self.held_digests})
        version["required"] = set(required)

        response: dict[str, Any] = {
            "uploadUrl": f"{FAKE_UPLOAD_BASE}/sites/{site}/versions/{vid}/files",
        }
        if required:
            response["uploadRequiredHashes"] = required
        return _json_response(response)

    def _upload(self, site: str, vid: str, digest: str, request: httpx.Request) -> httpx.Response:
        self.calls.append(("upload", digest))
        if digest in self.fail_upload_digests:
            return _error_response(503, "Backend unavailable")
        if hashlib.sha256(request.content).hexdigest() != digest:
            return _error_response(400, "Content does not match hash")

        self.held_digests.add(digest)
        self.versions[vid]["uploaded"].add(digest)
        return httpx.Response(200)

    def _finalize(self, site: str, vid: str, request: httpx.Request) -> httpx.Response:
        self.calls.append(("finalize", vid))
        version = self.versions[vid]
        if self.fail_finalize:
            return _error_response(400, "Version cannot be finalized")
        missing = version["required"] - version["uploaded"]
        if missing:
            return _error_response(400, f"{len(missing)} files have not been uploaded")

        version["status"] = json.loads(request.content)["status"]
        return _json_response({"name": version["name"], "status": version["status"]})

    def _create_channel(self, request: httpx.Request) -> httpx.Response:
        channel_id = request.url.params["channelId"]
        self.calls.append(("create_channel", channel_id))
        if channel_id in self.channels:
            return _error_response(409, f"Channel {channel_id} already exists")

        body = json.loads(request.content or b"{}")
        self.channels[channel_id] = {
            "url": f"https://{self.site_id}--{channel_id}.example/",
            "version": None,
            "ttl": body.get("ttl"),
        }
        return _json_response({"name": f"sites/{self.site_id}/channels/{channel_id}"})

    def _release(self, channel_id: str, request: httpx.Request) -> httpx.Response:
        self.calls.append(("release", channel_id))
        if self.fail_release:
            return _error_response(500, "Release failed")
        if channel_id not in self.channels:
            return _error_response(404, f"Channel {channel_id} not found")

        version_name = request.url.params["versionName"]
        vid = version_name.rsplit("/", 1)[-1]
        version = self.versions.get(vid)
        if version is None or version["status"] != "FINALIZED":
            return _error_response(400, "Version is not finalized")

        self.channels[channel_id]["version"] = version_name
        body = json.loads(request.content)
        return _json_response({"version": {"name": version_name}, "message": body.get("message")})

    def _get_channel(self, channel_id: str) -> httpx.Response:
        self.calls.append(("get_channel", channel_id))
        if self.fail_get_channel:
            return _error_response(503, "Backend unavailable")
        channel = self.channels.get(channel_id)
        if channel is None:
            return _error_response(404, f"Channel {channel_id} not found")

        data: dict[str, Any] = {"name": f"sites/{self.site_id}/channels/{channel_id}"}
        if not self.omit_channel_url:
            data["url"] = channel["url"]
        return _json_response(data)


@pytest.fixture
def fake_provider() -> FakeHostingProvider:
    """Fresh fake hosting provider."""
    return FakeHostingProvider()


# =============================================================================
# Sample Data Factories
# =============================================================================

@pytest.fixture
def sample_bundle() -> FileBundle:
    """The two-file site used throughout the end-to-end scenarios."""
    bundle = FileBundle()
    bundle.add_html("index.html", "<h1>Hi</h1>")
    bundle.add_css("css/style.css", "body{}")
    return bundle


@pytest.fixture
def bundle_factory():
    """Factory building a bundle of n distinct HTML pages."""
    def _create_bundle(count: int = 5, prefix: str = "page") -> FileBundle:
        bundle = FileBundle()
        for i in range(count):
            bundle.add_html(f"{prefix}-{i}.html", f"<p>{prefix} {i}</p>")
        return bundle
    return _create_bundle
