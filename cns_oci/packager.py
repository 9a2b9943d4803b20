"""Packaging of a directory tree into a local OCI Image Layout.

The result is a single layer artifact: the whole tree is one gzip tar layer,
the config is the empty JSON document, and the manifest is tagged in the
layout index. Both the layer and the manifest are reproducible, so packaging
the same tree twice yields the same digests.
"""

import logging
from pathlib import Path

from .archive import staging_dir, write_tar_gz
from .artifact import PackageResult
from .config import PackageOptions
from .context import checkpoint, trace_context
from .exceptions import InternalError, InvalidRequestError
from .manifest import (
    ANNOTATION_CONTENT_DIGEST,
    ANNOTATION_CREATED,
    ANNOTATION_TITLE,
    ANNOTATION_UNPACK,
    ARTIFACT_TYPE,
    EMPTY_JSON,
    MEDIA_TYPE_IMAGE_LAYER_GZIP,
    Descriptor,
    Manifest,
    empty_config,
)
from .reference import parse_image_reference
from .store import LayoutStore
from .validation import strip_protocol, validate_registry_reference, validate_tag

__all__ = [
    "LAYOUT_DIR",
    "package",
]

_LOGGER = logging.getLogger(__name__)

# Name of the layout directory created inside the output directory.
LAYOUT_DIR = "oci-layout"

# `oras pull` extracts the layer into the directory named by the title.
LAYER_TITLE = "."


def _validate(opts: PackageOptions) -> str:
    """Check the options and return the image reference they describe."""
    if not opts.tag:
        raise InvalidRequestError("tag is required for OCI packaging")
    if not opts.registry:
        raise InvalidRequestError("registry is required for OCI packaging")
    if not opts.repository:
        raise InvalidRequestError("repository is required for OCI packaging")
    validate_registry_reference(opts.registry, opts.repository)
    validate_tag(opts.tag)

    image_ref = f"{strip_protocol(opts.registry)}/{opts.repository}:{opts.tag}"
    try:
        parse_image_reference(image_ref)
    except InvalidRequestError as err:
        raise InvalidRequestError(f"invalid image reference {image_ref}: {err}") from err
    return image_ref


def _layer_descriptor(digest: str, size: int, diff_id: str) -> Descriptor:
    return Descriptor(
        media_type=MEDIA_TYPE_IMAGE_LAYER_GZIP,
        digest=digest,
        size=size,
        annotations={
            ANNOTATION_TITLE: LAYER_TITLE,
            ANNOTATION_CONTENT_DIGEST: diff_id,
            ANNOTATION_UNPACK: "true",
        },
    )


async def package(opts: PackageOptions) -> PackageResult:
    """Package a directory as an OCI artifact in a local layout.

    The layout is created at `output_dir/oci-layout`, or extended when it
    already exists so a single layout can hold several tags. When the layout
    lives inside the source directory it is left out of the archive.

    Raises:
        InvalidRequestError: The options are missing or malformed. Nothing is
            written in this case.
        OperationCanceledError: The task was canceled before a stage started.
        InternalError: The source could not be read or the layout written.
    """
    image_ref = _validate(opts)
    await checkpoint("archive construction")

    source_dir = Path(opts.source_dir)
    store_path = (Path(opts.output_dir) / LAYOUT_DIR).resolve()
    with trace_context(f"Package '{image_ref}'"), staging_dir(
        source_dir, opts.sub_dir
    ) as stage:
        root = stage.resolve()
        if not root.is_dir():
            raise InternalError(f"source directory {root} is not a directory")
        store = LayoutStore.create(store_path)

        with trace_context("Archive"):
            with store.blob_writer() as writer:
                layer = write_tar_gz(root, writer, exclude=store.root)
        layer_desc = _layer_descriptor(writer.digest, writer.size, layer.diff_id)
        _LOGGER.debug("Wrote layer %s with %d entries", layer_desc, len(layer.entries))

        await checkpoint("manifest packing")
        config = empty_config()
        await store.push(config, EMPTY_JSON)
        annotations = {
            ANNOTATION_CREATED: opts.reproducible_timestamp,
            **(opts.annotations or {}),
        }
        manifest = Manifest.for_artifact(ARTIFACT_TYPE, [layer_desc], annotations)
        desc = manifest.descriptor()
        await store.push(desc, manifest.to_json())

        await checkpoint("index write")
        await store.tag(desc, opts.tag)

    _LOGGER.info("Packaged %s as %s in %s", image_ref, desc.digest, store.root)
    return PackageResult(
        digest=desc.digest,
        reference=image_ref,
        store_path=str(store.root),
    )
