"""Tests for packaging and pushing a bundle in one step."""

import json
import pathlib

import pytest

from cns_oci.config import OutputConfig
from cns_oci.credentials import AnonymousCredentialResolver
from cns_oci.exceptions import (
    InvalidReferenceError,
    InvalidRequestError,
    UnavailableError,
)
from cns_oci.manifest import ANNOTATION_CREATED
from cns_oci.orchestrator import default_annotations, package_and_push
from cns_oci.reference import LocalReference, RegistryReference

from .conftest import FakeRegistryServer

REFERENCE = RegistryReference("localhost:5000", "nvidia/bundle", "v1.0.0")


def read_manifest(store_path: str, digest: str) -> dict:
    path = pathlib.Path(store_path) / "blobs" / "sha256" / digest.removeprefix("sha256:")
    return json.loads(path.read_bytes())


async def test_package_and_push(
    bundle_dir: pathlib.Path, fake_registry: FakeRegistryServer
) -> None:
    """Test the bundle is packaged with default annotations and pushed."""
    result = await package_and_push(
        OutputConfig(
            source_dir=bundle_dir,
            output_dir=bundle_dir,
            reference=REFERENCE,
            version="v1.0.0",
            plain_http=True,
            credentials=AnonymousCredentialResolver(),
        )
    )
    assert result.reference == "localhost:5000/nvidia/bundle:v1.0.0"
    assert result.store_path == str((bundle_dir / "oci-layout").resolve())
    assert fake_registry.tags[("nvidia/bundle", "v1.0.0")] == result.digest

    manifest = read_manifest(result.store_path, result.digest)
    assert manifest["annotations"] == {
        ANNOTATION_CREATED: "1970-01-01T00:00:00Z",
        **default_annotations("v1.0.0"),
    }


def test_default_annotations() -> None:
    """Test the provenance annotations."""
    assert default_annotations("v2") == {
        "org.opencontainers.image.version": "v2",
        "org.opencontainers.image.vendor": "NVIDIA",
        "org.opencontainers.image.title": "CNS Bundle",
        "org.opencontainers.image.source": "https://github.com/NVIDIA/cloud-native-stack",
    }


async def test_caller_annotations(
    bundle_dir: pathlib.Path,
    tmp_path: pathlib.Path,
    fake_registry: FakeRegistryServer,
) -> None:
    """Test caller annotations replace the defaults."""
    result = await package_and_push(
        OutputConfig(
            source_dir=bundle_dir,
            output_dir=tmp_path / "out",
            reference=REFERENCE,
            annotations={"team": "gpu"},
            credentials=AnonymousCredentialResolver(),
        )
    )
    manifest = read_manifest(result.store_path, result.digest)
    assert manifest["annotations"] == {
        ANNOTATION_CREATED: "1970-01-01T00:00:00Z",
        "team": "gpu",
    }


async def test_relative_paths(
    bundle_dir: pathlib.Path,
    fake_registry: FakeRegistryServer,
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    """Test relative directories are resolved against the working directory."""
    monkeypatch.chdir(bundle_dir.parent)
    result = await package_and_push(
        OutputConfig(
            source_dir=pathlib.Path(bundle_dir.name),
            output_dir=pathlib.Path("out"),
            reference=REFERENCE,
            credentials=AnonymousCredentialResolver(),
        )
    )
    assert pathlib.Path(result.store_path).is_absolute()
    assert result.store_path == str((bundle_dir.parent / "out" / "oci-layout").resolve())


async def test_requires_registry_reference(bundle_dir: pathlib.Path) -> None:
    """Test a local output target is rejected."""
    with pytest.raises(InvalidRequestError, match="OCI reference is required"):
        await package_and_push(
            OutputConfig(
                source_dir=bundle_dir,
                output_dir=bundle_dir,
                reference=LocalReference(path="./out"),
            )
        )


async def test_requires_tag(bundle_dir: pathlib.Path) -> None:
    """Test a reference without a tag is rejected."""
    with pytest.raises(InvalidRequestError, match="tag is required"):
        await package_and_push(
            OutputConfig(
                source_dir=bundle_dir,
                output_dir=bundle_dir,
                reference=REFERENCE.with_tag(""),
            )
        )
    assert not (bundle_dir / "oci-layout").exists()


async def test_package_failure_keeps_category(
    bundle_dir: pathlib.Path, tmp_path: pathlib.Path
) -> None:
    """Test packaging errors are wrapped with the stage and keep the cause."""
    with pytest.raises(InvalidRequestError, match="failed to package OCI artifact") as exc:
        await package_and_push(
            OutputConfig(
                source_dir=bundle_dir,
                output_dir=tmp_path / "out",
                reference=RegistryReference("ghcr.io", "Bad/Repo", "v1"),
            )
        )
    assert isinstance(exc.value.__cause__, InvalidReferenceError)


async def test_push_failure_keeps_category(
    bundle_dir: pathlib.Path,
    tmp_path: pathlib.Path,
    fake_registry: FakeRegistryServer,
) -> None:
    """Test push errors are wrapped as unavailable with the stage named."""
    fake_registry.unavailable = True
    with pytest.raises(
        UnavailableError, match="failed to push OCI artifact to registry"
    ) as exc:
        await package_and_push(
            OutputConfig(
                source_dir=bundle_dir,
                output_dir=tmp_path / "out",
                reference=REFERENCE,
                credentials=AnonymousCredentialResolver(),
            )
        )
    assert isinstance(exc.value.__cause__, UnavailableError)
    # The local layout is kept for the caller
    assert (tmp_path / "out" / "oci-layout" / "index.json").exists()
