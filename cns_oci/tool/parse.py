"""cns-oci parse action."""

import logging
from argparse import ArgumentParser, _SubParsersAction as SubParsersAction
from typing import cast, Any

from cns_oci.reference import LocalReference, parse_output_target

from .format import add_output_flag, print_result

_LOGGER = logging.getLogger(__name__)


class ParseAction:
    """Parse an output target."""

    @classmethod
    def register(
        cls, subparsers: SubParsersAction  # type: ignore[type-arg]
    ) -> ArgumentParser:
        """Register the subparser commands."""
        args = cast(
            ArgumentParser,
            subparsers.add_parser(
                "parse",
                help="Parse an output target into its components",
                description=(
                    "Print the local path or the registry, repository and tag "
                    "of an output target such as oci://ghcr.io/nvidia/bundle:v1"
                ),
            ),
        )
        args.add_argument("target", help="Local path or oci:// reference")
        args.add_argument(
            "--default-tag",
            default=None,
            help="Tag to apply when the reference does not have one",
        )
        add_output_flag(args)
        args.set_defaults(cls=cls)
        return args

    async def run(  # type: ignore[no-untyped-def]
        self,
        target: str,
        default_tag: str | None,
        output: str,
        **kwargs,  # pylint: disable=unused-argument
    ) -> None:
        """Async Action implementation."""
        reference = parse_output_target(target)
        if default_tag and reference.is_oci and not reference.tag:
            reference = reference.with_tag(default_tag)

        data: dict[str, Any]
        if isinstance(reference, LocalReference):
            data = {"is_oci": False, "path": reference.path}
        else:
            data = {
                "is_oci": True,
                "registry": reference.registry,
                "repository": reference.repository,
                "tag": reference.tag,
                "image_reference": reference.image_reference(),
                "uri": str(reference),
            }
        print_result(data, output)
