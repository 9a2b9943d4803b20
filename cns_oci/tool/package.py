"""cns-oci package action."""

import logging
from argparse import ArgumentParser, _SubParsersAction as SubParsersAction
import pathlib
from typing import cast

from cns_oci.config import PackageOptions
from cns_oci.packager import package

from .format import add_output_flag, as_dict, print_result
from .selector import add_annotation_flags, build_annotations

_LOGGER = logging.getLogger(__name__)


class PackageAction:
    """Package a directory into a local OCI layout."""

    @classmethod
    def register(
        cls, subparsers: SubParsersAction  # type: ignore[type-arg]
    ) -> ArgumentParser:
        """Register the subparser commands."""
        args = cast(
            ArgumentParser,
            subparsers.add_parser(
                "package",
                help="Package a directory as an OCI artifact",
                description=(
                    "Package a directory into an OCI Image Layout with a "
                    "reproducible digest"
                ),
            ),
        )
        args.add_argument(
            "source_dir", type=pathlib.Path, help="Directory to package"
        )
        args.add_argument(
            "--output-dir",
            type=pathlib.Path,
            required=True,
            help="Directory to create the oci-layout directory in",
        )
        args.add_argument("--registry", required=True, help="Registry host")
        args.add_argument("--repository", required=True, help="Repository path")
        args.add_argument("--tag", required=True, help="Tag for the artifact")
        args.add_argument(
            "--sub-dir",
            default="",
            help="Only package this sub directory, keeping its path prefix",
        )
        add_annotation_flags(args)
        add_output_flag(args)
        args.set_defaults(cls=cls)
        return args

    async def run(  # type: ignore[no-untyped-def]
        self,
        source_dir: pathlib.Path,
        output_dir: pathlib.Path,
        registry: str,
        repository: str,
        tag: str,
        sub_dir: str,
        output: str,
        **kwargs,  # pylint: disable=unused-argument
    ) -> None:
        """Async Action implementation."""
        result = await package(
            PackageOptions(
                source_dir=source_dir,
                output_dir=output_dir,
                registry=registry,
                repository=repository,
                tag=tag,
                sub_dir=sub_dir,
                annotations=build_annotations(**kwargs),
            )
        )
        print_result(as_dict(result), output)
