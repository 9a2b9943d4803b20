"""Results of packaging and pushing artifacts."""

from dataclasses import dataclass

__all__ = [
    "PackageResult",
    "PushResult",
    "PackageAndPushResult",
]


@dataclass(frozen=True, kw_only=True)
class PackageResult:
    """An artifact written to a local OCI layout."""

    digest: str
    """Digest of the manifest."""

    reference: str
    """Image reference `registry/repository:tag` the artifact was tagged for."""

    store_path: str
    """Path of the OCI layout holding the artifact."""


@dataclass(frozen=True, kw_only=True)
class PushResult:
    """An artifact pushed to a remote registry."""

    digest: str
    """Digest of the pushed manifest."""

    reference: str
    """Image reference `registry/repository:tag` that was pushed."""


@dataclass(frozen=True, kw_only=True)
class PackageAndPushResult:
    """An artifact packaged locally and then pushed to a remote registry."""

    digest: str
    """Digest of the pushed manifest."""

    reference: str
    """Image reference that was pushed."""

    store_path: str
    """Path of the local OCI layout."""
