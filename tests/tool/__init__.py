"""Test helpers for cns-oci tools."""

from cns_oci.command import Command, run

CNS_OCI_BIN = "cns-oci"


async def run_command(args: list[str], env: dict[str, str] | None = None) -> str:
    return await run(Command([CNS_OCI_BIN] + args, env=env))
