"""Shared fixtures for cns-oci tests."""

import base64
from collections.abc import Generator
from dataclasses import dataclass, field
import hashlib
import json
import logging
import pathlib
import re
from typing import Any
from unittest.mock import patch
from urllib.parse import parse_qs, urlsplit
import uuid

from oras.provider import Registry
import pytest
import requests
from requests.structures import CaseInsensitiveDict

_LOGGER = logging.getLogger(__name__)

UPLOADS_RE = re.compile(r"^/v2/(?P<repo>.+)/blobs/uploads/(?P<session>[^/]*)$")
BLOB_RE = re.compile(r"^/v2/(?P<repo>.+)/blobs/(?P<digest>sha256:[a-f0-9]{64})$")
MANIFEST_RE = re.compile(r"^/v2/(?P<repo>.+)/manifests/(?P<reference>[^/]+)$")
TOKEN_PATH = "/token"
TOKEN = "fake-registry-token"


def _digest(content: bytes) -> str:
    return f"sha256:{hashlib.sha256(content).hexdigest()}"


class FakeResponse:
    """A minimal stand-in for `requests.Response`."""

    def __init__(
        self,
        status_code: int,
        content: bytes = b"",
        headers: dict[str, str] | None = None,
    ) -> None:
        self.status_code = status_code
        self.content = content
        self.headers = CaseInsensitiveDict(headers or {})

    @property
    def text(self) -> str:
        return self.content.decode("utf-8", errors="replace")

    def json(self) -> Any:
        return json.loads(self.content)


@dataclass
class FakeRegistryServer:
    """An in-process fake of the registry HTTP API and its token service.

    Every `requests.Session` is routed here, so clients exercise the real
    `oras.provider.Registry` session and auth backend.
    """

    blobs: dict[str, bytes] = field(default_factory=dict)
    manifests: dict[str, tuple[str, bytes]] = field(default_factory=dict)
    tags: dict[tuple[str, str], str] = field(default_factory=dict)
    request_log: list[tuple[str, str]] = field(default_factory=list)
    clients: list[dict[str, Any]] = field(default_factory=list)
    credentials: list[tuple[str, str]] = field(default_factory=list)

    users: dict[str, str] | None = None
    """When set, require a bearer token issued for one of these users."""

    challenge: bool = True
    """Send a `Www-Authenticate` header with 401 responses."""

    unavailable: bool = False
    """Fail every request with a connection error."""

    status_override: int | None = None
    """Respond to every request with this status code."""

    digest_override: str | None = None
    """Report this digest for pushed manifests."""

    def connect(self, **kwargs: Any) -> Registry:
        self.clients.append(kwargs)
        return Registry(**kwargs)

    def requests_for(self, method: str) -> list[str]:
        return [path for req_method, path in self.request_log if req_method == method]

    def resolve(self, repository: str, reference: str) -> str | None:
        if reference in self.manifests:
            return reference
        return self.tags.get((repository, reference))

    def session_request(
        self,
        session: requests.Session,
        method: str,
        url: str,
        params: dict[str, str] | None = None,
        data: bytes | None = None,
        headers: dict[str, str] | None = None,
        **kwargs: Any,
    ) -> FakeResponse:
        return self.handle(method, url, data, headers or {})

    def handle(
        self, method: str, url: str, data: bytes | None, headers: dict[str, str]
    ) -> FakeResponse:
        parts = urlsplit(url)
        self.request_log.append((method, parts.path))
        _LOGGER.debug("Fake registry %s %s", method, url)
        if self.unavailable:
            raise requests.ConnectionError(f"connection refused: {parts.netloc}")
        if parts.path == TOKEN_PATH:
            return self._token(headers)
        if self.users is not None and headers.get("Authorization") != f"Bearer {TOKEN}":
            challenge = {}
            if self.challenge:
                realm = f"{parts.scheme}://{parts.netloc}{TOKEN_PATH}"
                challenge["Www-Authenticate"] = (
                    f'Bearer realm="{realm}",service="{parts.netloc}"'
                )
            return FakeResponse(401, b"unauthorized", challenge)
        if self.status_override is not None:
            return FakeResponse(self.status_override, b"registry error")

        if match := UPLOADS_RE.match(parts.path):
            return self._upload(method, match, parts.query, data)
        if match := BLOB_RE.match(parts.path):
            if (content := self.blobs.get(match["digest"])) is None:
                return FakeResponse(404)
            headers_out = {"Content-Length": str(len(content))}
            return FakeResponse(200, content if method == "GET" else b"", headers_out)
        if match := MANIFEST_RE.match(parts.path):
            return self._manifest(method, match, data, headers)
        return FakeResponse(404)

    def _token(self, headers: dict[str, str]) -> FakeResponse:
        scheme, _, value = headers.get("Authorization", "").partition(" ")
        if scheme == "Basic":
            username, _, password = base64.b64decode(value).decode().partition(":")
            self.credentials.append((username, password))
            if self.users is not None and self.users.get(username) == password:
                return FakeResponse(200, json.dumps({"token": TOKEN}).encode())
        return FakeResponse(401, b"invalid credentials")

    def _upload(
        self, method: str, match: re.Match[str], query: str, data: bytes | None
    ) -> FakeResponse:
        if method == "POST":
            location = f"/v2/{match['repo']}/blobs/uploads/{uuid.uuid4()}?_state=fake"
            return FakeResponse(202, headers={"Location": location})
        if method == "PUT" and match["session"]:
            digest = parse_qs(query)["digest"][0]
            content = data or b""
            if _digest(content) != digest:
                return FakeResponse(400, b"digest invalid")
            self.blobs[digest] = content
            return FakeResponse(201, headers={"Docker-Content-Digest": digest})
        return FakeResponse(405)

    def _manifest(
        self,
        method: str,
        match: re.Match[str],
        data: bytes | None,
        headers: dict[str, str],
    ) -> FakeResponse:
        repository, reference = match["repo"], match["reference"]
        if method == "PUT":
            content = data or b""
            digest = _digest(content)
            self.manifests[digest] = (headers.get("Content-Type", ""), content)
            if not reference.startswith("sha256:"):
                self.tags[(repository, reference)] = digest
            return FakeResponse(
                201, headers={"Docker-Content-Digest": self.digest_override or digest}
            )
        if (digest := self.resolve(repository, reference)) is None:
            return FakeResponse(404)
        media_type, content = self.manifests[digest]
        headers_out = {
            "Content-Type": media_type,
            "Docker-Content-Digest": digest,
            "Content-Length": str(len(content)),
        }
        return FakeResponse(200, content if method == "GET" else b"", headers_out)


@pytest.fixture(name="fake_registry")
def fake_registry_fixture() -> Generator[FakeRegistryServer, None, None]:
    """Route registry HTTP requests to an in-process fake registry."""
    server = FakeRegistryServer()
    with patch("cns_oci.remote.Registry", side_effect=server.connect), patch.object(
        requests.Session, "request", autospec=True, side_effect=server.session_request
    ):
        yield server


@pytest.fixture(name="docker_config", autouse=True)
def docker_config_fixture(
    tmp_path: pathlib.Path, monkeypatch: pytest.MonkeyPatch
) -> pathlib.Path:
    """Point the Docker configuration at an empty per-test directory."""
    config_dir = tmp_path / "docker-config"
    config_dir.mkdir()
    monkeypatch.setenv("DOCKER_CONFIG", str(config_dir))
    return config_dir


@pytest.fixture(name="bundle_dir")
def bundle_dir_fixture(tmp_path: pathlib.Path) -> pathlib.Path:
    """A small bundle directory with a nested file."""
    bundle = tmp_path / "bundle"
    (bundle / "sub").mkdir(parents=True)
    (bundle / "a.yaml").write_text("x: 1")
    (bundle / "sub" / "b.yaml").write_text("y: 2")
    return bundle
