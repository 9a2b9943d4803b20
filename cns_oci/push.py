"""Transfer of packaged artifacts to a remote OCI registry."""

import logging
from pathlib import Path
import tempfile

from .artifact import PushResult
from .config import PackageOptions, PushOptions
from .context import checkpoint, trace_context
from .copy import copy
from .credentials import CredentialResolver, DockerConfigCredentialResolver
from .exceptions import InternalError, InvalidRequestError
from .packager import package
from .reference import RegistryReference
from .remote import RegistryRepository
from .store import LayoutStore
from .validation import strip_protocol, validate_registry_reference, validate_tag

__all__ = [
    "push",
    "push_from_store",
]

_LOGGER = logging.getLogger(__name__)


def _validate(opts: PushOptions) -> RegistryReference:
    if not opts.tag:
        raise InvalidRequestError("tag is required to push OCI image")
    validate_registry_reference(opts.registry, opts.repository)
    validate_tag(opts.tag)
    return RegistryReference(
        registry=strip_protocol(opts.registry),
        repository=opts.repository,
        tag=opts.tag,
    )


async def push_from_store(
    store_path: Path | str,
    opts: PushOptions,
    credentials: CredentialResolver | None = None,
) -> PushResult:
    """Push the artifact tagged `opts.tag` in a local layout to a registry.

    Blobs the registry already has are not uploaded again. Credentials come
    from the Docker configuration unless a resolver is given.

    Raises:
        InvalidRequestError: The options are missing or malformed.
        OperationCanceledError: The task was canceled before the copy started.
        InternalError: The layout is missing or does not hold the tag.
        UnavailableError: The registry could not be reached or rejected a request.
    """
    reference = _validate(opts)
    await checkpoint("network copy")

    store = LayoutStore.open(Path(store_path))
    resolver = credentials or DockerConfigCredentialResolver()
    auth = await resolver.resolve(reference.registry)
    remote = RegistryRepository(
        reference,
        plain_http=opts.plain_http,
        insecure_tls=opts.insecure_tls,
        auth=auth,
    )
    with trace_context(f"Push '{reference.image_reference()}'"):
        desc = await copy(store, opts.tag, remote, opts.tag)

    _LOGGER.info("Pushed %s as %s", reference.image_reference(), desc.digest)
    return PushResult(digest=desc.digest, reference=reference.image_reference())


async def push(
    opts: PushOptions, credentials: CredentialResolver | None = None
) -> PushResult:
    """Package `opts.source_dir` into a temporary layout and push it.

    The temporary layout is removed once the push finishes or fails.
    """
    _validate(opts)
    if opts.source_dir is None:
        raise InvalidRequestError("source directory is required to push OCI image")
    try:
        tmp = tempfile.TemporaryDirectory(prefix="cns-oci-push-")
    except OSError as err:
        raise InternalError(f"failed to create temporary directory: {err}") from err
    with tmp as tmp_dir:
        result = await package(
            PackageOptions(
                source_dir=Path(opts.source_dir),
                output_dir=Path(tmp_dir),
                registry=opts.registry,
                repository=opts.repository,
                tag=opts.tag,
                sub_dir=opts.sub_dir,
                annotations=opts.annotations,
            )
        )
        return await push_from_store(result.store_path, opts, credentials)
