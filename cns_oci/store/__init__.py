"""
The store module provides content-addressed storage for OCI artifacts.

- Blobs are identified by descriptors and are write-once.
- Manifests are tagged so they can be resolved and copied by tag.

This abstract interface allows for various implementations: an OCI Image
Layout on disk, a remote registry repository (see `cns_oci.remote`) and an
in-memory store.
"""

from .store import ContentStore
from .in_memory import InMemoryStore
from .layout import LayoutStore

__all__ = [
    "ContentStore",
    "InMemoryStore",
    "LayoutStore",
]
