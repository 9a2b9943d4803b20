"""Grammar checks for registry hosts, repository paths and tags.

These checks are pure and shared by the reference parser, the packager and
the push operations. All of them fail closed: anything that does not match
the grammar is rejected with an error naming the offending component.
"""

import re

from .exceptions import InvalidReferenceError

__all__ = [
    "strip_protocol",
    "validate_registry",
    "validate_repository",
    "validate_tag",
    "validate_registry_reference",
]

_LABEL = r"[a-zA-Z0-9](?:[a-zA-Z0-9-]*[a-zA-Z0-9])?"
REGISTRY_RE = re.compile(rf"^{_LABEL}(?:\.{_LABEL})*(?::[0-9]+)?$")

_SEGMENT = r"[a-z0-9]+(?:(?:[._]|__|-+)[a-z0-9]+)*"
REPOSITORY_RE = re.compile(rf"^{_SEGMENT}(?:/{_SEGMENT})*$")

TAG_RE = re.compile(r"^[\w][\w.-]{0,127}$")

_PROTOCOLS = ("https://", "http://")


def strip_protocol(registry: str) -> str:
    """Remove a leading http:// or https:// from a registry host."""
    for prefix in _PROTOCOLS:
        if registry.startswith(prefix):
            return registry[len(prefix) :]
    return registry


def validate_registry(registry: str) -> None:
    """Validate a registry host, optionally with a port."""
    host = strip_protocol(registry)
    if not REGISTRY_RE.match(host):
        raise InvalidReferenceError("registry", registry, "must be a host name with an optional port")


def validate_repository(repository: str) -> None:
    """Validate a repository path such as `nvidia/bundle`."""
    if not REPOSITORY_RE.match(repository):
        raise InvalidReferenceError(
            "repository",
            repository,
            "must be lowercase alphanumeric path segments separated by '/'",
        )


def validate_tag(tag: str) -> None:
    """Validate an image tag."""
    if not TAG_RE.match(tag):
        raise InvalidReferenceError("tag", tag, "must match [A-Za-z0-9_][A-Za-z0-9_.-]{0,127}")


def validate_registry_reference(registry: str, repository: str) -> None:
    """Validate the registry host and repository path of a reference."""
    validate_registry(registry)
    validate_repository(repository)
