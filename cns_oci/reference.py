"""Parsing of output targets into local paths or registry references.

An output target is either a plain filesystem path or an `oci://` URI:

    oci://ghcr.io/nvidia/bundle:v1.0.0
    oci://localhost:5000/test/bundle

The tag of a registry reference may be empty, in which case the caller is
expected to apply a default with `with_tag` before using it for a push.
"""

import dataclasses
from dataclasses import dataclass
from typing import ClassVar

from .exceptions import InvalidReferenceError
from .validation import validate_registry_reference, validate_tag

__all__ = [
    "URI_SCHEME",
    "LocalReference",
    "RegistryReference",
    "Reference",
    "parse_output_target",
    "parse_image_reference",
]

URI_SCHEME = "oci://"

DEFAULT_REGISTRY = "docker.io"
OFFICIAL_REPOSITORY_PREFIX = "library/"

# Maximum length of `registry/repository`, matching the docker reference grammar.
NAME_TOTAL_LENGTH_MAX = 255


@dataclass(frozen=True)
class LocalReference:
    """An output target on the local filesystem."""

    is_oci: ClassVar[bool] = False

    path: str
    """Filesystem path, kept verbatim."""

    def image_reference(self) -> str:
        """Local targets have no image reference."""
        return ""

    def with_tag(self, tag: str) -> "LocalReference":
        """Local targets carry no tag, so this is a no-op."""
        return self

    def __str__(self) -> str:
        return self.path


@dataclass(frozen=True)
class RegistryReference:
    """An output target in an OCI registry."""

    is_oci: ClassVar[bool] = True

    registry: str
    """Registry host with optional port e.g. `ghcr.io` or `localhost:5000`."""

    repository: str
    """Repository path e.g. `nvidia/bundle`."""

    tag: str = ""
    """Image tag, empty when none was given."""

    @property
    def name(self) -> str:
        """The repository name including the registry host."""
        return f"{self.registry}/{self.repository}"

    def image_reference(self) -> str:
        """Render as a bare image reference without the URI scheme."""
        if not self.tag:
            return self.name
        return f"{self.name}:{self.tag}"

    def with_tag(self, tag: str) -> "RegistryReference":
        """Return a copy of this reference with the specified tag."""
        return dataclasses.replace(self, tag=tag)

    def __str__(self) -> str:
        return f"{URI_SCHEME}{self.image_reference()}"


Reference = LocalReference | RegistryReference


def _is_registry_host(component: str) -> bool:
    return "." in component or ":" in component or component == "localhost"


def parse_image_reference(value: str) -> RegistryReference:
    """Parse a bare image reference such as `ghcr.io/nvidia/bundle:v1`.

    A first path component that does not look like a host is treated as a
    repository on the default registry, following docker's normalization.
    """
    if not value:
        raise InvalidReferenceError("reference", value, "reference is empty")
    if "@" in value:
        raise InvalidReferenceError(
            "reference", value, "digest references are not supported"
        )

    registry, sep, remainder = value.partition("/")
    if not sep or not _is_registry_host(registry):
        registry, remainder = DEFAULT_REGISTRY, value
        if "/" not in remainder:
            remainder = OFFICIAL_REPOSITORY_PREFIX + remainder

    repository, tag = remainder, ""
    last_segment = remainder.rsplit("/", 1)[-1]
    if ":" in last_segment:
        repository, _, tag = remainder.rpartition(":")
        validate_tag(tag)

    if not repository:
        raise InvalidReferenceError("repository", repository, "repository is empty")
    validate_registry_reference(registry, repository)
    if len(registry) + 1 + len(repository) > NAME_TOTAL_LENGTH_MAX:
        raise InvalidReferenceError(
            "reference",
            value,
            f"name must not exceed {NAME_TOTAL_LENGTH_MAX} characters",
        )
    return RegistryReference(registry=registry, repository=repository, tag=tag)


def parse_output_target(target: str) -> Reference:
    """Parse an output target into a local or registry reference.

    Plain paths are returned verbatim without validation. `oci://` URIs are
    parsed and validated; a missing tag yields an empty `tag`.
    """
    if not target.startswith(URI_SCHEME):
        return LocalReference(path=target)
    return parse_image_reference(target[len(URI_SCHEME) :])
