"""cns-oci push action."""

import logging
from argparse import ArgumentParser, _SubParsersAction as SubParsersAction
import pathlib
from typing import cast

from cns_oci.config import PushOptions
from cns_oci.exceptions import InvalidRequestError
from cns_oci.push import push, push_from_store
from cns_oci.reference import RegistryReference, parse_output_target

from .format import add_output_flag, as_dict, print_result
from .selector import add_annotation_flags, add_transport_flags, build_annotations

_LOGGER = logging.getLogger(__name__)


def registry_target(target: str, default_tag: str | None) -> RegistryReference:
    """Parse a target that must name a registry, applying the default tag."""
    reference = parse_output_target(target)
    if not isinstance(reference, RegistryReference):
        raise InvalidRequestError(f"target '{target}' is not an oci:// reference")
    if default_tag and not reference.tag:
        reference = reference.with_tag(default_tag)
    return reference


class PushAction:
    """Push an artifact to a registry."""

    @classmethod
    def register(
        cls, subparsers: SubParsersAction  # type: ignore[type-arg]
    ) -> ArgumentParser:
        """Register the subparser commands."""
        args = cast(
            ArgumentParser,
            subparsers.add_parser(
                "push",
                help="Push an OCI artifact to a registry",
                description=(
                    "Push an artifact from a local OCI layout, or package a "
                    "directory and push it directly"
                ),
            ),
        )
        args.add_argument("target", help="Registry reference as oci://host/repo:tag")
        source = args.add_mutually_exclusive_group(required=True)
        source.add_argument(
            "--store",
            type=pathlib.Path,
            help="OCI layout created by the package command",
        )
        source.add_argument(
            "--source-dir",
            type=pathlib.Path,
            help="Directory to package and push directly",
        )
        args.add_argument(
            "--sub-dir",
            default="",
            help="Only push this sub directory of --source-dir (not valid with --store)",
        )
        args.add_argument(
            "--default-tag",
            default=None,
            help="Tag to apply when the target does not have one",
        )
        add_transport_flags(args)
        add_annotation_flags(args)
        add_output_flag(args)
        args.set_defaults(cls=cls)
        return args

    async def run(  # type: ignore[no-untyped-def]
        self,
        target: str,
        store: pathlib.Path | None,
        source_dir: pathlib.Path | None,
        sub_dir: str,
        default_tag: str | None,
        plain_http: bool,
        insecure_tls: bool,
        output: str,
        **kwargs,  # pylint: disable=unused-argument
    ) -> None:
        """Async Action implementation."""
        annotations = build_annotations(**kwargs)
        if store is not None and (sub_dir or annotations):
            raise InvalidRequestError(
                "--sub-dir and --annotation only apply when packaging with --source-dir"
            )
        reference = registry_target(target, default_tag)
        opts = PushOptions(
            registry=reference.registry,
            repository=reference.repository,
            tag=reference.tag,
            plain_http=plain_http,
            insecure_tls=insecure_tls,
            source_dir=source_dir,
            sub_dir=sub_dir,
            annotations=annotations,
        )
        if store is not None:
            result = await push_from_store(store, opts)
        else:
            result = await push(opts)
        print_result(as_dict(result), output)
