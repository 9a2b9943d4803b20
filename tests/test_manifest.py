"""Tests for the OCI document model."""

import json

import pytest

from cns_oci.exceptions import InternalError
from cns_oci.manifest import (
    ANNOTATION_CREATED,
    ANNOTATION_REF_NAME,
    ARTIFACT_TYPE,
    MEDIA_TYPE_IMAGE_LAYER_GZIP,
    MEDIA_TYPE_IMAGE_MANIFEST,
    Descriptor,
    ImageLayout,
    Index,
    Manifest,
    digest_of,
    empty_config,
)

EMPTY_DIGEST = "sha256:44136fa355b3678a1146ad16f7e8649e94fb4fc21fe77e8310c060f61caaff8a"


def layer() -> Descriptor:
    return Descriptor(
        media_type=MEDIA_TYPE_IMAGE_LAYER_GZIP,
        digest=digest_of(b"layer"),
        size=5,
    )


def test_empty_config() -> None:
    """Test the empty config descriptor matches the well known value."""
    config = empty_config()
    assert config.digest == EMPTY_DIGEST
    assert config.size == 2
    assert config.to_json() == (
        b'{"mediaType":"application/vnd.oci.empty.v1+json",'
        b'"digest":"' + EMPTY_DIGEST.encode() + b'","size":2,"data":"e30="}'
    )
    assert not config.is_manifest
    assert config.encoded == EMPTY_DIGEST.removeprefix("sha256:")


def test_artifact_manifest() -> None:
    """Test the serialized form of an artifact manifest."""
    manifest = Manifest.for_artifact(
        ARTIFACT_TYPE,
        [layer()],
        {"z": "last", ANNOTATION_CREATED: "1970-01-01T00:00:00Z", "a": "first"},
    )
    content = manifest.to_json()
    doc = json.loads(content)
    assert list(doc) == [
        "schemaVersion",
        "mediaType",
        "artifactType",
        "config",
        "layers",
        "annotations",
    ]
    assert doc["schemaVersion"] == 2
    assert doc["mediaType"] == MEDIA_TYPE_IMAGE_MANIFEST
    assert doc["artifactType"] == ARTIFACT_TYPE
    assert doc["config"]["digest"] == EMPTY_DIGEST
    assert list(doc["annotations"]) == ["a", ANNOTATION_CREATED, "z"]
    assert b" " not in content

    desc = manifest.descriptor()
    assert desc.digest == digest_of(content)
    assert desc.size == len(content)
    assert desc.is_manifest
    assert desc.artifact_type == ARTIFACT_TYPE

    assert Manifest.from_json(content) == manifest
    assert manifest.blobs() == [empty_config(), layer()]


def test_annotation_order_does_not_change_digest() -> None:
    """Test equal annotations always produce the same manifest digest."""
    first = Manifest.for_artifact(ARTIFACT_TYPE, [layer()], {"b": "2", "a": "1"})
    second = Manifest.for_artifact(ARTIFACT_TYPE, [layer()], {"a": "1", "b": "2"})
    assert first.descriptor().digest == second.descriptor().digest


@pytest.mark.parametrize("content", [b"not json", b"{}", b'{"schemaVersion": 2}'])
def test_invalid_manifest(content: bytes) -> None:
    """Test malformed documents raise an internal error."""
    with pytest.raises(InternalError, match="invalid Manifest document"):
        Manifest.from_json(content)


def test_index_find() -> None:
    """Test finding manifests in an index by tag or digest."""
    manifest = Manifest.for_artifact(ARTIFACT_TYPE, [layer()]).descriptor()
    tagged = Descriptor(
        media_type=manifest.media_type,
        digest=manifest.digest,
        size=manifest.size,
        annotations={ANNOTATION_REF_NAME: "v1"},
    )
    index = Index(manifests=[tagged])
    assert index.find("v1") == tagged
    assert index.find(manifest.digest) == tagged
    assert index.find("v2") is None
    assert index.tags() == ["v1"]


def test_empty_index_and_layout() -> None:
    """Test the serialized form of a new index and layout marker."""
    assert Index().to_json() == (
        b'{"schemaVersion":2,'
        b'"mediaType":"application/vnd.oci.image.index.v1+json","manifests":[]}'
    )
    assert ImageLayout().to_json() == b'{"imageLayoutVersion":"1.0.0"}'
