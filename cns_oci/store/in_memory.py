"""Module for in memory content store."""

import dataclasses
import logging

from cns_oci.exceptions import ContentNotFoundError, DigestMismatchError
from cns_oci.manifest import Descriptor, digest_of

from .store import ContentStore

_LOGGER = logging.getLogger(__name__)


class InMemoryStore(ContentStore):
    """In-memory implementation of the ContentStore interface.

    Blobs are keyed by digest and tags map to manifest descriptors.
    """

    def __init__(self) -> None:
        """Initialize the InMemoryStore."""
        self._blobs: dict[str, bytes] = {}
        self._tags: dict[str, Descriptor] = {}

    async def exists(self, desc: Descriptor) -> bool:
        """Return True if the content identified by the descriptor is present."""
        return desc.digest in self._blobs

    async def fetch(self, desc: Descriptor) -> bytes:
        """Return the content identified by the descriptor."""
        if (content := self._blobs.get(desc.digest)) is None:
            raise ContentNotFoundError(f"content {desc.digest} not found")
        return content

    async def push(self, desc: Descriptor, content: bytes) -> None:
        """Store content under the descriptor's digest."""
        if (digest := digest_of(content)) != desc.digest:
            raise DigestMismatchError(
                f"content digest {digest} does not match descriptor {desc.digest}"
            )
        if desc.digest in self._blobs:
            _LOGGER.debug("Content %s already exists in store, skipping", desc.digest)
            return
        self._blobs[desc.digest] = content

    async def resolve(self, reference: str) -> Descriptor:
        """Resolve a tag to the manifest descriptor."""
        if (desc := self._tags.get(reference)) is None:
            raise ContentNotFoundError(f"reference {reference} not found")
        return desc

    async def tag(self, desc: Descriptor, reference: str) -> None:
        """Associate a tag with an existing manifest."""
        if desc.digest not in self._blobs:
            raise ContentNotFoundError(f"content {desc.digest} not found")
        self._tags[reference] = dataclasses.replace(desc)

    @property
    def digests(self) -> set[str]:
        """The digests of all blobs in the store."""
        return set(self._blobs)

    @property
    def tags(self) -> dict[str, Descriptor]:
        """The tags in the store and the descriptors they reference."""
        return dict(self._tags)
