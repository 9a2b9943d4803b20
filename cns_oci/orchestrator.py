"""Packaging and pushing a bundle in a single operation."""

import logging
from pathlib import Path

from .artifact import PackageAndPushResult
from .config import OutputConfig, PackageOptions, PushOptions
from .exceptions import InvalidRequestError, OciException, wrap_error
from .manifest import (
    ANNOTATION_SOURCE,
    ANNOTATION_TITLE,
    ANNOTATION_VENDOR,
    ANNOTATION_VERSION,
)
from .packager import package
from .push import push_from_store
from .reference import RegistryReference

__all__ = [
    "default_annotations",
    "package_and_push",
]

_LOGGER = logging.getLogger(__name__)

DEFAULT_VENDOR = "NVIDIA"
DEFAULT_TITLE = "CNS Bundle"
DEFAULT_SOURCE = "https://github.com/NVIDIA/cloud-native-stack"


def default_annotations(version: str) -> dict[str, str]:
    """Return the provenance annotations used when none are configured."""
    return {
        ANNOTATION_VERSION: version,
        ANNOTATION_VENDOR: DEFAULT_VENDOR,
        ANNOTATION_TITLE: DEFAULT_TITLE,
        ANNOTATION_SOURCE: DEFAULT_SOURCE,
    }


async def package_and_push(cfg: OutputConfig) -> PackageAndPushResult:
    """Package the bundle into a local layout and push it to the registry.

    Errors from either stage are re-raised in the same category with a
    message naming the stage, and the original error as the cause.
    """
    reference = cfg.reference
    if not isinstance(reference, RegistryReference):
        raise InvalidRequestError("OCI reference is required to package and push")
    if not reference.tag:
        raise InvalidRequestError("tag is required for OCI packaging")

    source_dir = Path(cfg.source_dir).absolute()
    output_dir = Path(cfg.output_dir).absolute()
    annotations = cfg.annotations
    if annotations is None:
        annotations = default_annotations(cfg.version)

    _LOGGER.info("Packaging and pushing bundle as %s", reference)
    try:
        package_result = await package(
            PackageOptions(
                source_dir=source_dir,
                output_dir=output_dir,
                registry=reference.registry,
                repository=reference.repository,
                tag=reference.tag,
                annotations=annotations,
            )
        )
    except OciException as err:
        raise wrap_error("failed to package OCI artifact", err) from err
    _LOGGER.info(
        "Packaged %s as %s in %s",
        package_result.reference,
        package_result.digest,
        package_result.store_path,
    )

    try:
        push_result = await push_from_store(
            package_result.store_path,
            PushOptions(
                registry=reference.registry,
                repository=reference.repository,
                tag=reference.tag,
                plain_http=cfg.plain_http,
                insecure_tls=cfg.insecure_tls,
            ),
            credentials=cfg.credentials,
        )
    except OciException as err:
        raise wrap_error("failed to push OCI artifact to registry", err) from err

    return PackageAndPushResult(
        digest=push_result.digest,
        reference=push_result.reference,
        store_path=package_result.store_path,
    )
