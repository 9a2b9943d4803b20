"""Content store backed by a repository in a remote OCI registry.

Requests use the HTTP session and auth backend of an `oras.provider.Registry`.
A 401 or 403 response is answered once through the backend, which exchanges
the basic credentials (or nothing, for anonymous pulls) for a bearer token
from the realm named in the `Www-Authenticate` challenge.

Blobs are uploaded with the monolithic POST then PUT flow of the distribution
API, and manifests are uploaded with their exact serialized bytes so the
digest computed locally is the digest the registry stores.
"""

import asyncio
import logging
from typing import Any
from urllib.parse import urljoin

from oras.provider import Registry
import requests

from .credentials import Auth
from .exceptions import (
    ContentNotFoundError,
    DigestMismatchError,
    RegistryError,
    UnavailableError,
)
from .manifest import MANIFEST_MEDIA_TYPES, Descriptor, digest_of
from .reference import DEFAULT_REGISTRY, RegistryReference
from .store import ContentStore

__all__ = [
    "RegistryRepository",
]

_LOGGER = logging.getLogger(__name__)

# Docker Hub serves the registry API from a different host than its name.
DOCKER_HUB_API_HOST = "registry-1.docker.io"

CONTENT_DIGEST_HEADER = "Docker-Content-Digest"
MANIFEST_ACCEPT = ", ".join(sorted(MANIFEST_MEDIA_TYPES))

# Statuses the registry uses to challenge for credentials.
AUTH_STATUS_CODES = (401, 403)


def _api_host(registry: str) -> str:
    if registry == DEFAULT_REGISTRY:
        return DOCKER_HUB_API_HOST
    return registry


def _upload_url(location: str, base_url: str, digest: str) -> str:
    """Return the URL that completes an upload session with the digest."""
    url = urljoin(base_url, location)
    separator = "&" if "?" in url else "?"
    return f"{url}{separator}digest={digest}"


class RegistryRepository(ContentStore):
    """A ContentStore for a single repository of a remote registry."""

    def __init__(
        self,
        reference: RegistryReference,
        plain_http: bool = False,
        insecure_tls: bool = False,
        auth: Auth | None = None,
    ) -> None:
        """Initialize RegistryRepository."""
        self.reference = reference
        host = _api_host(reference.registry)
        self._registry = Registry(
            hostname=host, insecure=plain_http, tls_verify=not insecure_tls
        )
        if auth:
            _LOGGER.info("Using authentication for registry %s", reference.registry)
            self._registry.auth.set_basic_auth(auth.username, auth.password)
        self._tls_verify = not insecure_tls
        scheme = "http" if plain_http else "https"
        self._base_url = f"{scheme}://{host}/v2/{reference.repository}"

    def _content_url(self, desc: Descriptor) -> str:
        kind = "manifests" if desc.is_manifest else "blobs"
        return f"{self._base_url}/{kind}/{desc.digest}"

    def _send(
        self, method: str, url: str, data: bytes | None, headers: dict[str, str]
    ) -> Any:
        """Issue a blocking request, answering one authentication challenge.

        `Registry.do_request` is not used since it retries every failure with
        growing sleeps and raises a bare ValueError for unanswered challenges.
        """
        session = self._registry.session
        auth = self._registry.auth
        headers.update(auth.get_auth_header())
        response = session.request(
            method, url, data=data, headers=headers, verify=self._tls_verify
        )
        if response.status_code not in AUTH_STATUS_CODES:
            return response
        headers, changed = auth.authenticate_request(response, headers)
        if not changed:
            raise UnavailableError(
                f"registry {self.reference.registry} requires authentication "
                f"(status {response.status_code}); no usable credentials found"
            )
        _LOGGER.debug("Retrying %s %s with a registry token", method, url)
        return session.request(
            method, url, data=data, headers=headers, verify=self._tls_verify
        )

    async def _request(
        self,
        method: str,
        url: str,
        data: bytes | None = None,
        headers: dict[str, str] | None = None,
    ) -> Any:
        _LOGGER.debug("%s %s", method, url)
        try:
            return await asyncio.to_thread(
                self._send, method, url, data, dict(headers or {})
            )
        except (requests.RequestException, ValueError) as err:
            raise UnavailableError(
                f"request to registry {self.reference.registry} failed: {err}"
            ) from err

    @staticmethod
    def _check(response: Any, expected: set[int], action: str) -> None:
        if response.status_code in expected:
            return
        detail = (response.text or "").strip()[:200]
        message = f"{action} failed with status {response.status_code}"
        if detail:
            message = f"{message}: {detail}"
        raise RegistryError(message, status_code=response.status_code)

    async def exists(self, desc: Descriptor) -> bool:
        """Return True if the registry already has the content."""
        response = await self._request("HEAD", self._content_url(desc))
        if response.status_code == 404:
            return False
        self._check(response, {200}, f"checking {desc.digest}")
        return True

    async def fetch(self, desc: Descriptor) -> bytes:
        """Download content from the registry and verify it."""
        headers = {"Accept": desc.media_type} if desc.is_manifest else None
        response = await self._request("GET", self._content_url(desc), headers=headers)
        if response.status_code == 404:
            raise ContentNotFoundError(
                f"content {desc.digest} not found in {self.reference.name}"
            )
        self._check(response, {200}, f"fetching {desc.digest}")
        content: bytes = response.content
        if digest_of(content) != desc.digest:
            raise DigestMismatchError(
                f"content from {self.reference.name} does not match {desc.digest}"
            )
        return content

    async def _push_blob(self, desc: Descriptor, content: bytes) -> None:
        response = await self._request("POST", f"{self._base_url}/blobs/uploads/")
        self._check(response, {202}, f"starting upload of {desc.digest}")
        if not (location := response.headers.get("Location")):
            raise RegistryError(
                f"registry did not return an upload location for {desc.digest}"
            )
        response = await self._request(
            "PUT",
            _upload_url(location, self._base_url, desc.digest),
            data=content,
            headers={"Content-Type": "application/octet-stream"},
        )
        self._check(response, {201}, f"uploading {desc.digest}")

    async def _put_manifest(self, desc: Descriptor, content: bytes, reference: str) -> None:
        response = await self._request(
            "PUT",
            f"{self._base_url}/manifests/{reference}",
            data=content,
            headers={"Content-Type": desc.media_type},
        )
        self._check(response, {201}, f"uploading manifest {reference}")
        remote_digest = response.headers.get(CONTENT_DIGEST_HEADER)
        if remote_digest and remote_digest != desc.digest:
            raise RegistryError(
                f"registry stored manifest {reference} as {remote_digest}, expected {desc.digest}"
            )

    async def push(self, desc: Descriptor, content: bytes) -> None:
        """Upload a blob or a manifest by digest."""
        if (digest := digest_of(content)) != desc.digest:
            raise DigestMismatchError(
                f"content digest {digest} does not match descriptor {desc.digest}"
            )
        _LOGGER.debug("Uploading %s to %s", desc, self.reference.name)
        if desc.is_manifest:
            await self._put_manifest(desc, content, desc.digest)
        else:
            await self._push_blob(desc, content)

    async def resolve(self, reference: str) -> Descriptor:
        """Resolve a tag to the descriptor of the manifest it points to."""
        response = await self._request(
            "HEAD",
            f"{self._base_url}/manifests/{reference}",
            headers={"Accept": MANIFEST_ACCEPT},
        )
        if response.status_code == 404:
            raise ContentNotFoundError(
                f"reference {reference} not found in {self.reference.name}"
            )
        self._check(response, {200}, f"resolving {reference}")
        media_type = response.headers.get("Content-Type", "").split(";", 1)[0]
        if not (digest := response.headers.get(CONTENT_DIGEST_HEADER)):
            raise RegistryError(f"registry did not return a digest for {reference}")
        size = int(response.headers.get("Content-Length", 0))
        return Descriptor(media_type=media_type, digest=digest, size=size)

    async def tag(self, desc: Descriptor, reference: str) -> None:
        """Tag an existing manifest by uploading it again under the tag."""
        content = await self.fetch(desc)
        await self._put_manifest(desc, content, reference)

    async def push_reference(
        self, desc: Descriptor, content: bytes, reference: str
    ) -> None:
        """Upload a manifest directly under the tag."""
        if (digest := digest_of(content)) != desc.digest:
            raise DigestMismatchError(
                f"content digest {digest} does not match descriptor {desc.digest}"
            )
        _LOGGER.debug("Uploading manifest %s as %s", desc.digest, reference)
        await self._put_manifest(desc, content, reference)
