"""Deterministic archival of a directory tree.

The archive written here is a gzip compressed tar stream whose bytes only
depend on the relative paths, contents and executable bits of the files in
the tree. Entries are written in lexicographic path order with zeroed
timestamps and ownership, and the gzip header carries no timestamp or file
name, so the same tree always produces the same digest on any machine.
"""

from collections.abc import Generator
from contextlib import contextmanager
from dataclasses import dataclass
import gzip
import hashlib
import logging
import os
from pathlib import Path, PurePosixPath
import stat
import tarfile
import tempfile
from typing import BinaryIO, Protocol

from slugify import slugify

from .exceptions import InternalError, InvalidRequestError

__all__ = [
    "DigestWriter",
    "LayerDigests",
    "hard_link_dir",
    "staging_dir",
    "write_tar_gz",
]

_LOGGER = logging.getLogger(__name__)

COMPRESS_LEVEL = 6
FILE_MODE = 0o644
EXEC_MODE = 0o755
STAGING_PREFIX = "cns-oci-stage"


class Writable(Protocol):
    """A sink that accepts bytes."""

    def write(self, data: bytes, /) -> int: ...


class DigestWriter:
    """Forwards writes to a sink while computing a sha256 digest."""

    def __init__(self, sink: Writable) -> None:
        self._sink = sink
        self._hash = hashlib.sha256()
        self.size = 0

    def write(self, data: bytes) -> int:
        self._hash.update(data)
        self.size += len(data)
        self._sink.write(data)
        return len(data)

    def flush(self) -> None:
        """Nothing is buffered."""

    @property
    def digest(self) -> str:
        return f"sha256:{self._hash.hexdigest()}"


@dataclass(frozen=True)
class LayerDigests:
    """Digests of a written archive."""

    diff_id: str
    """Digest of the uncompressed tar stream."""

    entries: tuple[str, ...]
    """Archive paths in the order they were written."""


def hard_link_dir(src: Path, dst: Path) -> None:
    """Recursively reproduce `src` at `dst` using hard links for files.

    Hard links require `src` and `dst` to be on the same filesystem; there is
    no fallback to copying.
    """
    try:
        src_stat = src.stat()
    except OSError as err:
        raise InternalError(f"failed to stat source directory {src}: {err}") from err
    if not stat.S_ISDIR(src_stat.st_mode):
        raise InternalError(f"source {src} is not a directory")
    try:
        dst.mkdir(mode=stat.S_IMODE(src_stat.st_mode), parents=True, exist_ok=True)
    except OSError as err:
        raise InternalError(f"failed to create directory {dst}: {err}") from err

    try:
        entries = sorted(os.scandir(src), key=lambda entry: entry.name)
    except OSError as err:
        raise InternalError(f"failed to read source directory {src}: {err}") from err

    for entry in entries:
        src_path = src / entry.name
        dst_path = dst / entry.name
        if entry.is_dir(follow_symlinks=False):
            hard_link_dir(src_path, dst_path)
            continue
        try:
            os.link(src_path, dst_path, follow_symlinks=False)
        except OSError as err:
            raise InternalError(
                f"failed to create hard link {dst_path} -> {src_path}: {err}"
            ) from err


def _check_sub_dir(sub_dir: str) -> PurePosixPath:
    path = PurePosixPath(sub_dir)
    if path.is_absolute() or ".." in path.parts or not path.parts:
        raise InvalidRequestError(
            f"sub directory '{sub_dir}' must be a relative path inside the source directory"
        )
    return path


@contextmanager
def staging_dir(source_dir: Path, sub_dir: str | None = None) -> Generator[Path, None, None]:
    """Yield the directory to archive for `source_dir` and `sub_dir`.

    Without a sub directory this is the source directory itself. Otherwise a
    freshly named temporary directory holds hard links to the contents of
    `source_dir/sub_dir` under the same relative prefix, and is removed on
    every exit path.
    """
    if not sub_dir:
        yield source_dir
        return

    sub_path = _check_sub_dir(sub_dir)
    prefix = f"{STAGING_PREFIX}-{slugify(sub_dir, max_length=40)}-"
    try:
        tmp = tempfile.TemporaryDirectory(prefix=prefix)
    except OSError as err:
        raise InternalError(f"failed to create staging directory: {err}") from err
    with tmp as tmp_dir:
        _LOGGER.debug("Staging %s/%s in %s", source_dir, sub_dir, tmp_dir)
        hard_link_dir(source_dir / sub_path, Path(tmp_dir) / sub_path)
        yield Path(tmp_dir)


def _collect(root: Path, exclude: Path | None) -> list[tuple[str, Path]]:
    """Return (archive path, filesystem path) pairs in lexicographic order."""
    found: list[tuple[str, Path]] = []

    def onerror(err: OSError) -> None:
        raise InternalError(f"failed to read directory {err.filename}: {err}") from err

    for dirpath, dirnames, filenames in os.walk(root, onerror=onerror):
        current = Path(dirpath)
        if exclude is not None:
            dirnames[:] = [d for d in dirnames if current / d != exclude]
        # Symlinks to directories are listed in dirnames but never descended.
        names = filenames + [d for d in dirnames if (current / d).is_symlink()]
        for name in names:
            path = current / name
            found.append((path.relative_to(root).as_posix(), path))
    found.sort(key=lambda item: item[0])
    return found


def _tar_info(name: str, path: Path) -> tarfile.TarInfo:
    try:
        st = path.lstat()
    except OSError as err:
        raise InternalError(f"failed to stat {path}: {err}") from err
    info = tarfile.TarInfo(name)
    info.mtime = 0
    info.uid = info.gid = 0
    info.uname = info.gname = ""
    if stat.S_ISLNK(st.st_mode):
        info.type = tarfile.SYMTYPE
        info.linkname = os.readlink(path)
        info.mode = 0o777
    elif stat.S_ISREG(st.st_mode):
        info.type = tarfile.REGTYPE
        info.size = st.st_size
        info.mode = EXEC_MODE if st.st_mode & 0o111 else FILE_MODE
    else:
        raise InternalError(f"unsupported file type for {path}")
    return info


def write_tar_gz(root: Path, sink: BinaryIO | Writable, exclude: Path | None = None) -> LayerDigests:
    """Write the contents of `root` as a deterministic gzip tar stream.

    The `exclude` directory, when inside `root`, is left out of the archive.
    Returns the digest of the uncompressed tar stream along with the archive
    paths that were written.
    """
    entries = _collect(root, exclude)
    gz = gzip.GzipFile(
        filename="", mode="wb", fileobj=sink, compresslevel=COMPRESS_LEVEL, mtime=0  # type: ignore[arg-type]
    )
    tar_sink = DigestWriter(gz)
    names: list[str] = []
    with gz:
        with tarfile.open(
            fileobj=tar_sink,  # type: ignore[arg-type]
            mode="w|",
            format=tarfile.PAX_FORMAT,
        ) as tar:
            for name, path in entries:
                info = _tar_info(name, path)
                _LOGGER.debug("Adding %s to archive", name)
                if info.isreg():
                    try:
                        with path.open("rb") as fd:
                            tar.addfile(info, fd)
                    except OSError as err:
                        raise InternalError(f"failed to read {path}: {err}") from err
                else:
                    tar.addfile(info)
                names.append(name)
    return LayerDigests(diff_id=tar_sink.digest, entries=tuple(names))
