"""Command line tool for packaging bundles as OCI artifacts and pushing them."""

import argparse
import asyncio
import logging
import sys
import traceback

from cns_oci.exceptions import OciException
from . import package, parse, publish, push

_LOGGER = logging.getLogger(__name__)


def _make_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Command line utility for packaging and pushing OCI bundles.",
    )
    parser.add_argument(
        "--log-level", choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
    )

    subparsers = parser.add_subparsers(dest="command", help="Command", required=True)

    parse.ParseAction.register(subparsers)
    package.PackageAction.register(subparsers)
    push.PushAction.register(subparsers)
    publish.PublishAction.register(subparsers)
    return parser


def main() -> None:
    """cns-oci command line tool main entry point."""
    parser = _make_parser()
    args = parser.parse_args()

    if args.log_level:
        logging.basicConfig(level=args.log_level)

    action = args.cls()
    try:
        asyncio.run(action.run(**vars(args)))
    except OciException as err:
        if args.log_level == "DEBUG":
            traceback.print_exc(file=sys.stderr)
        print("cns-oci error: ", err, file=sys.stderr)
        sys.exit(1)


if __name__ == "__main__":
    main()
