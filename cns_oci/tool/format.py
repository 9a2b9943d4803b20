"""Library for formatting output."""

from abc import ABC, abstractmethod
import dataclasses
import json
import sys
from typing import Any, TextIO

import yaml


def as_dict(obj: Any) -> dict[str, Any]:
    """Convert a result dataclass into a plain dictionary for output."""
    return dataclasses.asdict(obj)


class StructFormatter(ABC):
    """A formatter that prints objects."""

    @abstractmethod
    def print(self, data: Any, file: TextIO = sys.stdout) -> None:
        """Print the data objects."""


class YamlFormatter(StructFormatter):
    """A formatter that prints yaml output."""

    def print(self, data: Any, file: TextIO = sys.stdout) -> None:
        """Format the data objects."""
        print(yaml.dump(data, sort_keys=False, explicit_start=True), end="", file=file)


class JsonFormatter(StructFormatter):
    """A formatter that prints json output."""

    def print(self, data: Any, file: TextIO = sys.stdout) -> None:
        """Format the data objects."""
        json.dump(data, sort_keys=False, indent=4, fp=file)
        print(file=file)


FORMATTERS: dict[str, type[StructFormatter]] = {
    "yaml": YamlFormatter,
    "json": JsonFormatter,
}


def add_output_flag(args: Any) -> None:
    """Add the flag for selecting the output format."""
    args.add_argument(
        "--output",
        "-o",
        choices=list(FORMATTERS),
        default="yaml",
        help="Output format of the command",
    )


def print_result(data: Any, output: str = "yaml") -> None:
    """Print a result in the selected format."""
    FORMATTERS[output]().print(data)
