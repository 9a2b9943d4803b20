"""Common flags shared by the cns-oci actions."""

from argparse import ArgumentParser, ArgumentTypeError
from typing import Any


def _annotation(value: str) -> tuple[str, str]:
    key, sep, annotation = value.partition("=")
    if not sep or not key:
        raise ArgumentTypeError(f"annotation '{value}' must be KEY=VALUE")
    return key, annotation


def add_annotation_flags(args: ArgumentParser) -> None:
    """Add flags for specifying manifest annotations."""
    args.add_argument(
        "--annotation",
        "-a",
        type=_annotation,
        action="append",
        default=None,
        help="Manifest annotation as KEY=VALUE, may be repeated",
    )


def build_annotations(**kwargs: Any) -> dict[str, str] | None:
    """Build the annotations from the command line flags."""
    if not (annotations := kwargs.get("annotation")):
        return None
    return dict(annotations)


def add_transport_flags(args: ArgumentParser) -> None:
    """Add flags controlling how the registry is reached."""
    args.add_argument(
        "--plain-http",
        action="store_true",
        help="Use plain HTTP instead of HTTPS",
    )
    args.add_argument(
        "--insecure-tls",
        action="store_true",
        help="Skip verification of the registry TLS certificate",
    )
