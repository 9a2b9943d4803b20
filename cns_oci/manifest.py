"""Representation of the OCI documents written to a layout or a registry.

The documents are plain dataclasses serialized with mashumaro using the
camelCase field names of the OCI image format. Serialization is
deterministic: fields are always emitted in declaration order and annotation
maps are sorted by key, so equal documents always hash to the same digest.
"""

from dataclasses import dataclass, field
import hashlib
import json
import logging
import re
from typing import Any

from mashumaro import DataClassDictMixin, field_options
from mashumaro.config import BaseConfig
from mashumaro.exceptions import MissingField

from .exceptions import InternalError

__all__ = [
    "ARTIFACT_TYPE",
    "REPRODUCIBLE_TIMESTAMP",
    "Descriptor",
    "Manifest",
    "Index",
    "ImageLayout",
    "digest_of",
    "empty_config",
]

_LOGGER = logging.getLogger(__name__)


# Identifies bundles produced by this system as opaque, non-executable
# artifacts rather than runnable container images.
ARTIFACT_TYPE = "application/vnd.nvidia.cns.artifact"

# Used in place of wall-clock time so manifest bytes are reproducible.
REPRODUCIBLE_TIMESTAMP = "1970-01-01T00:00:00Z"

MEDIA_TYPE_IMAGE_MANIFEST = "application/vnd.oci.image.manifest.v1+json"
MEDIA_TYPE_IMAGE_INDEX = "application/vnd.oci.image.index.v1+json"
MEDIA_TYPE_IMAGE_LAYER_GZIP = "application/vnd.oci.image.layer.v1.tar+gzip"
MEDIA_TYPE_EMPTY_JSON = "application/vnd.oci.empty.v1+json"

MANIFEST_MEDIA_TYPES = {
    MEDIA_TYPE_IMAGE_MANIFEST,
    MEDIA_TYPE_IMAGE_INDEX,
}

ANNOTATION_CREATED = "org.opencontainers.image.created"
ANNOTATION_TITLE = "org.opencontainers.image.title"
ANNOTATION_VERSION = "org.opencontainers.image.version"
ANNOTATION_VENDOR = "org.opencontainers.image.vendor"
ANNOTATION_SOURCE = "org.opencontainers.image.source"
ANNOTATION_REF_NAME = "org.opencontainers.image.ref.name"

# Annotations understood by `oras pull` for directory layers.
ANNOTATION_CONTENT_DIGEST = "io.deis.oras.content.digest"
ANNOTATION_UNPACK = "io.deis.oras.content.unpack"

IMAGE_LAYOUT_VERSION = "1.0.0"
IMAGE_LAYOUT_FILE = "oci-layout"
IMAGE_INDEX_FILE = "index.json"

EMPTY_JSON = b"{}"
EMPTY_JSON_DATA = "e30="

DIGEST_RE = re.compile(r"^sha256:[a-f0-9]{64}$")


def digest_of(content: bytes) -> str:
    """Return the sha256 digest string of the content."""
    return f"sha256:{hashlib.sha256(content).hexdigest()}"


def _sorted(annotations: dict[str, str] | None) -> dict[str, str] | None:
    if annotations is None:
        return None
    return dict(sorted(annotations.items()))


@dataclass
class BaseDocument(DataClassDictMixin):
    """Base class for all OCI documents."""

    @classmethod
    def from_json(cls, content: bytes) -> Any:
        """Parse a serialized document."""
        try:
            return cls.from_dict(json.loads(content))
        except (ValueError, MissingField) as err:
            raise InternalError(f"invalid {cls.__name__} document: {err}") from err

    def to_json(self) -> bytes:
        """Return the compact, canonical JSON encoding of the document."""
        return json.dumps(
            self.to_dict(), separators=(",", ":"), ensure_ascii=False
        ).encode("utf-8")

    class Config(BaseConfig):
        omit_none = True
        serialize_by_alias = True


@dataclass
class Descriptor(BaseDocument):
    """A content-addressed reference to a blob."""

    media_type: str = field(metadata=field_options(alias="mediaType"))
    """The media type of the referenced content."""

    digest: str
    """The sha256 digest of the exact bytes of the content."""

    size: int
    """The size of the content in bytes."""

    annotations: dict[str, str] | None = None
    """Arbitrary metadata for the descriptor."""

    data: str | None = None
    """Base64 encoded content embedded in the descriptor."""

    artifact_type: str | None = field(
        metadata=field_options(alias="artifactType"), default=None
    )
    """The artifact type of a referenced manifest."""

    def __post_init__(self) -> None:
        self.annotations = _sorted(self.annotations)

    @property
    def is_manifest(self) -> bool:
        """Return True if the descriptor references a manifest or index."""
        return self.media_type in MANIFEST_MEDIA_TYPES

    @property
    def encoded(self) -> str:
        """The hex portion of the digest."""
        return self.digest.split(":", 1)[-1]

    def __str__(self) -> str:
        return f"{self.media_type}@{self.digest} ({self.size} bytes)"


def empty_config() -> Descriptor:
    """Return the descriptor of the empty JSON config used by artifacts."""
    return Descriptor(
        media_type=MEDIA_TYPE_EMPTY_JSON,
        digest=digest_of(EMPTY_JSON),
        size=len(EMPTY_JSON),
        data=EMPTY_JSON_DATA,
    )


@dataclass
class Manifest(BaseDocument):
    """An OCI image manifest describing an artifact and its layers."""

    schema_version: int = field(metadata=field_options(alias="schemaVersion"))
    """Always 2 for OCI manifests."""

    media_type: str = field(metadata=field_options(alias="mediaType"))
    """The manifest media type."""

    artifact_type: str | None = field(metadata=field_options(alias="artifactType"))
    """The type of artifact this manifest describes."""

    config: Descriptor
    """The config blob, the empty JSON document for artifacts."""

    layers: list[Descriptor]
    """The content layers of the artifact."""

    annotations: dict[str, str] | None = None
    """Manifest level metadata."""

    def __post_init__(self) -> None:
        self.annotations = _sorted(self.annotations)

    @classmethod
    def for_artifact(
        cls,
        artifact_type: str,
        layers: list[Descriptor],
        annotations: dict[str, str] | None = None,
    ) -> "Manifest":
        """Build an OCI 1.1 artifact manifest with an empty config."""
        return cls(
            schema_version=2,
            media_type=MEDIA_TYPE_IMAGE_MANIFEST,
            artifact_type=artifact_type,
            config=empty_config(),
            layers=layers,
            annotations=annotations,
        )

    def blobs(self) -> list[Descriptor]:
        """Return the descriptors of all blobs referenced by the manifest."""
        return [self.config, *self.layers]

    def descriptor(self) -> Descriptor:
        """Return a descriptor for the serialized manifest."""
        content = self.to_json()
        return Descriptor(
            media_type=self.media_type,
            digest=digest_of(content),
            size=len(content),
            artifact_type=self.artifact_type,
        )


@dataclass
class Index(BaseDocument):
    """The index of an OCI Image Layout, mapping tags to manifests."""

    schema_version: int = field(
        metadata=field_options(alias="schemaVersion"), default=2
    )
    """Always 2 for OCI indexes."""

    media_type: str = field(
        metadata=field_options(alias="mediaType"), default=MEDIA_TYPE_IMAGE_INDEX
    )
    """The index media type."""

    manifests: list[Descriptor] = field(default_factory=list)
    """Descriptors of the tagged manifests."""

    def find(self, reference: str) -> Descriptor | None:
        """Find a manifest by tag, or by digest."""
        for desc in self.manifests:
            if (desc.annotations or {}).get(ANNOTATION_REF_NAME) == reference:
                return desc
        if DIGEST_RE.match(reference):
            for desc in self.manifests:
                if desc.digest == reference:
                    return desc
        return None

    def tags(self) -> list[str]:
        """Return the tags in the index."""
        return [
            ref_name
            for desc in self.manifests
            if (ref_name := (desc.annotations or {}).get(ANNOTATION_REF_NAME))
        ]


@dataclass
class ImageLayout(BaseDocument):
    """The layout marker file at the root of an OCI Image Layout."""

    image_layout_version: str = field(
        metadata=field_options(alias="imageLayoutVersion"),
        default=IMAGE_LAYOUT_VERSION,
    )
