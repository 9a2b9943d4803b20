"""Store module for content-addressed blobs and tagged manifests."""

from abc import ABC, abstractmethod

from cns_oci.manifest import Descriptor


class ContentStore(ABC):
    """Abstract base class for a content-addressed store with tag support.

    Blobs are identified by their descriptor. Content pushed for a
    descriptor must hash to its digest, and once present a blob is never
    modified.
    """

    @abstractmethod
    async def exists(self, desc: Descriptor) -> bool:
        """Return True if the content identified by the descriptor is present."""

    @abstractmethod
    async def fetch(self, desc: Descriptor) -> bytes:
        """Return the content identified by the descriptor.

        Raises:
            ContentNotFoundError: If the content is not present.
        """

    @abstractmethod
    async def push(self, desc: Descriptor, content: bytes) -> None:
        """Store content under the descriptor's digest."""

    @abstractmethod
    async def resolve(self, reference: str) -> Descriptor:
        """Resolve a tag (or manifest digest) to the manifest descriptor.

        Raises:
            ContentNotFoundError: If the reference is not known to the store.
        """

    @abstractmethod
    async def tag(self, desc: Descriptor, reference: str) -> None:
        """Associate a tag with an existing manifest."""

    async def push_reference(
        self, desc: Descriptor, content: bytes, reference: str
    ) -> None:
        """Push a manifest and tag it in one step.

        Stores that can do both with a single request override this.
        """
        if not await self.exists(desc):
            await self.push(desc, content)
        await self.tag(desc, reference)
