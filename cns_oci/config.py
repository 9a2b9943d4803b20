"""Configuration objects for cns-oci operations."""

from dataclasses import dataclass
from pathlib import Path

from .credentials import CredentialResolver
from .manifest import REPRODUCIBLE_TIMESTAMP
from .reference import Reference

__all__ = [
    "PackageOptions",
    "PushOptions",
    "OutputConfig",
]


@dataclass
class PackageOptions:
    """Options for packaging a directory into a local OCI layout."""

    source_dir: Path
    """Directory whose contents become the artifact layer."""

    output_dir: Path
    """Directory that holds the `oci-layout` store."""

    registry: str
    """Registry host the artifact is intended for."""

    repository: str
    """Repository path within the registry."""

    tag: str
    """Tag recorded in the layout index."""

    sub_dir: str = ""
    """Only package this relative sub directory, keeping it as the path prefix."""

    annotations: dict[str, str] | None = None
    """Manifest annotations merged on top of the created timestamp."""

    reproducible_timestamp: str = REPRODUCIBLE_TIMESTAMP
    """Value of the created annotation, fixed so manifest digests are reproducible."""


@dataclass
class PushOptions:
    """Options for pushing an artifact to a remote registry."""

    registry: str
    """Registry host, optionally with a port."""

    repository: str
    """Repository path within the registry."""

    tag: str
    """Tag to push the manifest under."""

    plain_http: bool = False
    """Use plain HTTP instead of HTTPS."""

    insecure_tls: bool = False
    """Skip TLS certificate verification."""

    source_dir: Path | None = None
    """Source directory to package on the fly for a direct push."""

    sub_dir: str = ""
    """Sub directory of `source_dir` for a direct push."""

    annotations: dict[str, str] | None = None
    """Manifest annotations for a direct push."""


@dataclass
class OutputConfig:
    """Configuration for packaging a bundle and pushing it in one step."""

    source_dir: Path
    """Directory containing the generated bundle."""

    output_dir: Path
    """Directory that holds the local OCI layout."""

    reference: Reference
    """Push target, which must be a registry reference with a tag."""

    version: str = ""
    """Version recorded in the default annotations."""

    plain_http: bool = False
    """Use plain HTTP instead of HTTPS."""

    insecure_tls: bool = False
    """Skip TLS certificate verification."""

    annotations: dict[str, str] | None = None
    """Manifest annotations; defaults are derived from `version` when unset."""

    credentials: CredentialResolver | None = None
    """Credential lookup, defaults to the Docker configuration."""
