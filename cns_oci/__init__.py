"""
cns-oci packages a directory tree as a reproducible OCI artifact and pushes it
to an OCI registry.

  - `reference` parses output targets such as `oci://ghcr.io/nvidia/bundle:v1`
  - `packager` writes a directory into a local OCI Image Layout
  - `push` copies a packaged artifact to a registry
  - `orchestrator` combines packaging and pushing for generated bundles
"""

__all__ = [
    "archive",
    "artifact",
    "config",
    "copy",
    "credentials",
    "exceptions",
    "manifest",
    "orchestrator",
    "packager",
    "push",
    "reference",
    "remote",
    "store",
    "validation",
    # Note this is exposed for CLI documentation, not to be used as a library
    "tool",
]
