"""Exceptions related to cns-oci.

Every exception belongs to one of three categories so callers can decide how
to react: invalid requests are never worth retrying, internal errors point at
the local filesystem or encoding, and unavailable errors (network, registry,
cancellation) are transient.
"""

from enum import StrEnum

__all__ = [
    "ErrorCode",
    "OciException",
    "InvalidRequestError",
    "InvalidReferenceError",
    "InternalError",
    "ContentNotFoundError",
    "DigestMismatchError",
    "UnavailableError",
    "OperationCanceledError",
    "RegistryError",
    "CommandException",
    "wrap_error",
]


class ErrorCode(StrEnum):
    """Classification of an error for programmatic handling."""

    INVALID_REQUEST = "INVALID_REQUEST"
    INTERNAL = "INTERNAL"
    UNAVAILABLE = "SERVICE_UNAVAILABLE"


class OciException(Exception):
    """Generic base exception used for this library."""

    code: ErrorCode = ErrorCode.INTERNAL


class InvalidRequestError(OciException):
    """Raised when the input options or references are malformed."""

    code = ErrorCode.INVALID_REQUEST


class InvalidReferenceError(InvalidRequestError):
    """Raised when a registry, repository or tag fails validation."""

    def __init__(self, component: str, value: str, reason: str | None = None) -> None:
        message = f"invalid {component} '{value}'"
        if reason:
            message = f"{message}: {reason}"
        super().__init__(message)
        self.component = component
        self.value = value


class InternalError(OciException):
    """Raised for local filesystem or encoding failures."""

    code = ErrorCode.INTERNAL


class ContentNotFoundError(InternalError):
    """Raised when a blob or tag is not present in a content store."""


class DigestMismatchError(InternalError):
    """Raised when content does not hash to the digest that identifies it."""


class UnavailableError(OciException):
    """Raised for network, authentication or registry failures."""

    code = ErrorCode.UNAVAILABLE


class OperationCanceledError(UnavailableError):
    """Raised when an operation is canceled at one of its checkpoints."""

    def __init__(self, stage: str) -> None:
        super().__init__(f"operation canceled before {stage}")
        self.stage = stage


class RegistryError(UnavailableError):
    """Raised when the remote registry responds with an unexpected status."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class CommandException(OciException):
    """Raised when there is a failure running a subcommand."""


# Most specific categories first so wrapping keeps cancellation identifiable.
_CATEGORIES: tuple[type[OciException], ...] = (
    InvalidRequestError,
    UnavailableError,
    InternalError,
)


def wrap_error(message: str, err: Exception) -> OciException:
    """Return a new exception in the same category as `err` with a prefix.

    The caller is expected to raise the result `from err` so the original
    cause remains available for inspection.
    """
    for category in _CATEGORIES:
        if isinstance(err, category):
            return category(f"{message}: {err}")
    return InternalError(f"{message}: {err}")
