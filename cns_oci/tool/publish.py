"""cns-oci publish action."""

import logging
from argparse import ArgumentParser, _SubParsersAction as SubParsersAction
import pathlib
from typing import cast

from cns_oci.config import OutputConfig
from cns_oci.orchestrator import package_and_push

from .format import add_output_flag, as_dict, print_result
from .push import registry_target
from .selector import add_annotation_flags, add_transport_flags, build_annotations

_LOGGER = logging.getLogger(__name__)


class PublishAction:
    """Package a bundle and push it in one step."""

    @classmethod
    def register(
        cls, subparsers: SubParsersAction  # type: ignore[type-arg]
    ) -> ArgumentParser:
        """Register the subparser commands."""
        args = cast(
            ArgumentParser,
            subparsers.add_parser(
                "publish",
                help="Package a bundle directory and push it to a registry",
                description=(
                    "Package a bundle directory into a local OCI layout and "
                    "push it, adding provenance annotations"
                ),
            ),
        )
        args.add_argument("target", help="Registry reference as oci://host/repo[:tag]")
        args.add_argument(
            "source_dir", type=pathlib.Path, help="Bundle directory to publish"
        )
        args.add_argument(
            "--output-dir",
            type=pathlib.Path,
            default=None,
            help="Directory for the oci-layout directory, defaults to the bundle directory",
        )
        args.add_argument(
            "--version",
            default="",
            help="Bundle version, also used as the tag when the target has none",
        )
        add_transport_flags(args)
        add_annotation_flags(args)
        add_output_flag(args)
        args.set_defaults(cls=cls)
        return args

    async def run(  # type: ignore[no-untyped-def]
        self,
        target: str,
        source_dir: pathlib.Path,
        output_dir: pathlib.Path | None,
        version: str,
        plain_http: bool,
        insecure_tls: bool,
        output: str,
        **kwargs,  # pylint: disable=unused-argument
    ) -> None:
        """Async Action implementation."""
        reference = registry_target(target, version or None)
        result = await package_and_push(
            OutputConfig(
                source_dir=source_dir,
                output_dir=output_dir or source_dir,
                reference=reference,
                version=version,
                plain_http=plain_http,
                insecure_tls=insecure_tls,
                annotations=build_annotations(**kwargs),
            )
        )
        print_result(as_dict(result), output)
