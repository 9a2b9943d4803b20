"""Content store backed by an OCI Image Layout directory.

The layout is the standard on-disk format:

    <root>/oci-layout                marker with the layout version
    <root>/index.json                image index, tags as ref.name annotations
    <root>/blobs/sha256/<hex>        content-addressed blobs

Blobs are written to a temporary file in the blob directory and renamed into
place once their digest is known, so a blob path never holds partial or
modified content. There is no locking: concurrent writers to the same layout
must be serialized by the caller.
"""

from collections.abc import Generator
from contextlib import contextmanager
import dataclasses
import logging
import os
from pathlib import Path
import tempfile

from cns_oci.archive import DigestWriter
from cns_oci.exceptions import (
    ContentNotFoundError,
    DigestMismatchError,
    InternalError,
)
from cns_oci.manifest import (
    ANNOTATION_REF_NAME,
    DIGEST_RE,
    IMAGE_INDEX_FILE,
    IMAGE_LAYOUT_FILE,
    IMAGE_LAYOUT_VERSION,
    Descriptor,
    ImageLayout,
    Index,
    digest_of,
)

from .store import ContentStore

_LOGGER = logging.getLogger(__name__)

BLOBS_DIR = "blobs"
INGEST_PREFIX = ".ingest-"


def _write_atomic(path: Path, content: bytes) -> None:
    """Write a file by renaming a fully written temporary file into place."""
    try:
        fd, tmp_name = tempfile.mkstemp(dir=path.parent, prefix=INGEST_PREFIX)
    except OSError as err:
        raise InternalError(f"failed to write {path}: {err}") from err
    tmp_path = Path(tmp_name)
    try:
        with os.fdopen(fd, "wb") as fileobj:
            fileobj.write(content)
        os.replace(tmp_path, path)
    except OSError as err:
        raise InternalError(f"failed to write {path}: {err}") from err
    finally:
        tmp_path.unlink(missing_ok=True)


class LayoutStore(ContentStore):
    """A ContentStore that reads and writes an OCI Image Layout."""

    def __init__(self, root: Path) -> None:
        """Initialize a store rooted at an existing layout directory.

        Use `create` or `open` to construct a store with validation.
        """
        self.root = root

    @classmethod
    def create(cls, root: Path) -> "LayoutStore":
        """Create a new layout, or open the existing layout at `root`."""
        store = cls(root)
        try:
            (root / BLOBS_DIR / "sha256").mkdir(parents=True, exist_ok=True)
        except OSError as err:
            raise InternalError(f"failed to create OCI layout at {root}: {err}") from err
        if (root / IMAGE_LAYOUT_FILE).exists():
            store._check_layout()
        else:
            _LOGGER.debug("Creating OCI layout at %s", root)
            _write_atomic(root / IMAGE_LAYOUT_FILE, ImageLayout().to_json())
        if not (root / IMAGE_INDEX_FILE).exists():
            store._write_index(Index())
        return store

    @classmethod
    def open(cls, root: Path) -> "LayoutStore":
        """Open an existing layout at `root`."""
        store = cls(root)
        store._check_layout()
        return store

    def _check_layout(self) -> None:
        marker = self.root / IMAGE_LAYOUT_FILE
        try:
            content = marker.read_bytes()
        except FileNotFoundError as err:
            raise ContentNotFoundError(f"no OCI layout found at {self.root}") from err
        except OSError as err:
            raise InternalError(f"failed to read {marker}: {err}") from err
        layout = ImageLayout.from_json(content)
        if layout.image_layout_version != IMAGE_LAYOUT_VERSION:
            raise InternalError(
                f"unsupported OCI layout version {layout.image_layout_version} at {self.root}"
            )

    def blob_path(self, digest: str) -> Path:
        """Return the path of the blob with the specified digest."""
        if not DIGEST_RE.match(digest):
            raise InternalError(f"invalid digest '{digest}'")
        algorithm, encoded = digest.split(":", 1)
        return self.root / BLOBS_DIR / algorithm / encoded

    def read_index(self) -> Index:
        """Read the image index of the layout."""
        path = self.root / IMAGE_INDEX_FILE
        try:
            content = path.read_bytes()
        except OSError as err:
            raise InternalError(f"failed to read {path}: {err}") from err
        index: Index = Index.from_json(content)
        return index

    def _write_index(self, index: Index) -> None:
        _write_atomic(self.root / IMAGE_INDEX_FILE, index.to_json())

    def _commit(self, tmp_path: Path, digest: str) -> None:
        target = self.blob_path(digest)
        if target.exists():
            _LOGGER.debug("Blob %s already exists, skipping", digest)
            return
        try:
            os.replace(tmp_path, target)
        except OSError as err:
            raise InternalError(f"failed to write blob {target}: {err}") from err

    @contextmanager
    def blob_writer(self) -> Generator[DigestWriter, None, None]:
        """Stream a new blob into the store.

        The blob is committed under its digest when the block exits without
        error; otherwise the partial content is discarded.
        """
        blobs_dir = self.root / BLOBS_DIR / "sha256"
        try:
            fd, tmp_name = tempfile.mkstemp(dir=blobs_dir, prefix=INGEST_PREFIX)
        except OSError as err:
            raise InternalError(f"failed to create blob in {blobs_dir}: {err}") from err
        tmp_path = Path(tmp_name)
        try:
            with os.fdopen(fd, "wb") as fileobj:
                writer = DigestWriter(fileobj)
                yield writer
            self._commit(tmp_path, writer.digest)
        finally:
            tmp_path.unlink(missing_ok=True)

    async def exists(self, desc: Descriptor) -> bool:
        """Return True if the blob is present in the layout."""
        return self.blob_path(desc.digest).exists()

    async def fetch(self, desc: Descriptor) -> bytes:
        """Read a blob and verify it against its descriptor."""
        path = self.blob_path(desc.digest)
        try:
            content = path.read_bytes()
        except FileNotFoundError as err:
            raise ContentNotFoundError(f"content {desc.digest} not found in {self.root}") from err
        except OSError as err:
            raise InternalError(f"failed to read blob {path}: {err}") from err
        if len(content) != desc.size or digest_of(content) != desc.digest:
            raise DigestMismatchError(f"blob {path} does not match descriptor {desc}")
        return content

    async def push(self, desc: Descriptor, content: bytes) -> None:
        """Write a blob, unless a blob with the same digest already exists."""
        if (digest := digest_of(content)) != desc.digest:
            raise DigestMismatchError(
                f"content digest {digest} does not match descriptor {desc.digest}"
            )
        path = self.blob_path(desc.digest)
        if path.exists():
            _LOGGER.debug("Blob %s already exists, skipping", desc.digest)
            return
        _write_atomic(path, content)

    async def resolve(self, reference: str) -> Descriptor:
        """Resolve a tag or manifest digest using the index."""
        if (desc := self.read_index().find(reference)) is None:
            raise ContentNotFoundError(f"reference {reference} not found in {self.root}")
        return desc

    async def tag(self, desc: Descriptor, reference: str) -> None:
        """Record the manifest in the index under the tag.

        An existing entry for the same tag is replaced, other tags are kept.
        """
        if not await self.exists(desc):
            raise ContentNotFoundError(f"content {desc.digest} not found in {self.root}")
        index = self.read_index()
        index.manifests = [
            existing
            for existing in index.manifests
            if (existing.annotations or {}).get(ANNOTATION_REF_NAME) != reference
        ]
        annotations = {**(desc.annotations or {}), ANNOTATION_REF_NAME: reference}
        index.manifests.append(dataclasses.replace(desc, annotations=annotations))
        _LOGGER.debug("Tagging %s as %s in %s", desc.digest, reference, self.root)
        self._write_index(index)

    def tags(self) -> list[str]:
        """Return the tags recorded in the index."""
        return self.read_index().tags()
