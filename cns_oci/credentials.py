"""Module for resolving registry credentials.

Credentials are read from the Docker CLI configuration, the same file that
`docker login` and `oras login` write. For each registry the lookup order is:

  - `credHelpers`: a per-registry credential helper program
  - `auths`: inline base64 `auth` or `username`/`password` entries
  - `credsStore`: the default credential helper program

Any failure to read the configuration degrades to anonymous access rather
than failing the push, since public registries accept anonymous uploads for
some repositories and the registry reports the authoritative error.
"""

from abc import ABC, abstractmethod
import base64
import binascii
from dataclasses import dataclass
import json
import logging
import os
from pathlib import Path
from typing import Any
from urllib.parse import urlparse

import aiofiles

from .command import Command, run
from .exceptions import CommandException
from .reference import DEFAULT_REGISTRY

__all__ = [
    "Auth",
    "CredentialResolver",
    "AnonymousCredentialResolver",
    "DockerConfigCredentialResolver",
    "docker_config_path",
]

_LOGGER = logging.getLogger(__name__)

DOCKER_CONFIG_ENV = "DOCKER_CONFIG"
DOCKER_CONFIG_FILE = "config.json"
HELPER_PREFIX = "docker-credential-"

# Keys the docker CLI uses for Docker Hub in `auths`.
_DOCKER_HUB_KEYS = (
    "https://index.docker.io/v1/",
    "index.docker.io",
    "registry-1.docker.io",
    DEFAULT_REGISTRY,
)


@dataclass
class Auth:
    """Authentication credentials."""

    username: str
    password: str


class CredentialResolver(ABC):
    """Looks up credentials for a registry host."""

    @abstractmethod
    async def resolve(self, registry: str) -> Auth | None:
        """Return credentials for the registry, or None for anonymous access."""


class AnonymousCredentialResolver(CredentialResolver):
    """Never returns credentials."""

    async def resolve(self, registry: str) -> Auth | None:
        """Return None for every registry."""
        return None


def docker_config_path() -> Path:
    """Return the path of the Docker CLI configuration file."""
    if config_dir := os.environ.get(DOCKER_CONFIG_ENV):
        return Path(config_dir) / DOCKER_CONFIG_FILE
    return Path.home() / ".docker" / DOCKER_CONFIG_FILE


def _server_host(key: str) -> str:
    """Reduce a config key such as `https://ghcr.io/v2/` to its host."""
    if "://" in key:
        return urlparse(key).netloc
    return key.split("/", 1)[0]


def _lookup(entries: dict[str, Any], registry: str) -> tuple[str, Any] | None:
    """Find the entry for the registry, returning the matched key and value."""
    candidates = [registry]
    if registry == DEFAULT_REGISTRY:
        candidates = list(_DOCKER_HUB_KEYS)
    for candidate in candidates:
        if candidate in entries:
            return candidate, entries[candidate]
    for key, value in entries.items():
        if _server_host(key) in candidates:
            return key, value
    return None


def _decode_auth(registry: str, entry: dict[str, Any]) -> Auth | None:
    if auth_str := entry.get("auth"):
        try:
            decoded = base64.b64decode(auth_str).decode("utf-8")
        except (binascii.Error, UnicodeDecodeError) as err:
            raise ValueError(f"invalid auth entry for {registry}: {err}") from err
        username, sep, password = decoded.partition(":")
        if not sep:
            raise ValueError(f"invalid auth entry for {registry}: missing ':'")
        return Auth(username=username, password=password)
    if (username := entry.get("username")) and (password := entry.get("password")):
        return Auth(username=username, password=password)
    if entry.get("identitytoken"):
        _LOGGER.info(
            "Identity token for %s is not supported, continuing anonymously", registry
        )
    return None


class DockerConfigCredentialResolver(CredentialResolver):
    """Resolves credentials from the Docker CLI configuration."""

    def __init__(self, config_path: Path | None = None) -> None:
        """Initialize DockerConfigCredentialResolver.

        The config path defaults to `docker_config_path()` at resolve time.
        """
        self._config_path = config_path
        self.degraded_reason: str | None = None
        """Why the last lookup fell back to anonymous access, if it did."""

    def _degrade(self, reason: str) -> None:
        _LOGGER.warning("Using anonymous registry access: %s", reason)
        self.degraded_reason = reason

    async def _read_config(self, path: Path) -> dict[str, Any] | None:
        try:
            async with aiofiles.open(path, encoding="utf-8") as fd:
                content = await fd.read()
        except FileNotFoundError:
            self._degrade(f"docker config {path} not found")
            return None
        except OSError as err:
            self._degrade(f"failed to read docker config {path}: {err}")
            return None
        try:
            config = json.loads(content) if content.strip() else {}
        except json.JSONDecodeError as err:
            self._degrade(f"docker config {path} is not valid JSON: {err}")
            return None
        if not isinstance(config, dict):
            self._degrade(f"docker config {path} is not a JSON object")
            return None
        return config

    async def _run_helper(self, helper: str, server: str) -> Auth | None:
        cmd = Command([f"{HELPER_PREFIX}{helper}", "get"])
        _LOGGER.debug("Fetching credentials for %s from helper %s", server, helper)
        try:
            out = await run(cmd, stdin=server.encode("utf-8"))
        except CommandException as err:
            self._degrade(f"credential helper {helper} failed for {server}: {err}")
            return None
        try:
            result = json.loads(out)
            username, secret = result["Username"], result["Secret"]
        except (json.JSONDecodeError, KeyError, TypeError) as err:
            self._degrade(f"credential helper {helper} returned invalid output: {err}")
            return None
        if username == "<token>":
            _LOGGER.info(
                "Identity token for %s is not supported, continuing anonymously",
                server,
            )
            return None
        return Auth(username=username, password=secret)

    async def resolve(self, registry: str) -> Auth | None:
        """Return credentials for the registry from the Docker configuration."""
        self.degraded_reason = None
        path = self._config_path or docker_config_path()
        if (config := await self._read_config(path)) is None:
            return None

        if found := _lookup(config.get("credHelpers") or {}, registry):
            server, helper = found
            return await self._run_helper(helper, server)

        if found := _lookup(config.get("auths") or {}, registry):
            server, entry = found
            try:
                if (auth := _decode_auth(server, entry if isinstance(entry, dict) else {})) is not None:
                    _LOGGER.debug("Using credentials for %s from %s", registry, path)
                    return auth
            except ValueError as err:
                self._degrade(str(err))
                return None

        if helper := config.get("credsStore"):
            server = "https://index.docker.io/v1/" if registry == DEFAULT_REGISTRY else registry
            return await self._run_helper(helper, server)

        _LOGGER.debug("No credentials for %s in %s", registry, path)
        return None
