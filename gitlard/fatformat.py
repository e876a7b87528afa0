"""The git-fat pointer format and the clean/smudge filters."""

from __future__ import annotations

import hashlib
import os
import re
import shutil
import tempfile
from typing import BinaryIO, Optional, Tuple, Union

from .debug import debug
from .filesystem import exists

PathLike = Union[str, "os.PathLike[str]"]

MAGIC = b"#$# git-fat "
MAGIC_LEN = 74
SHA1_HEX_LEN = 40

_CLEAN_CHUNK = 4 * 1024 * 1024
_SMUDGE_CHUNK = 64 * 1024
_LEADING_INT = re.compile(rb"\s*([+-]?\d+)")


class DecodeError(ValueError):
    """Raised when data is not a git-fat pointer."""


def encode(sha1: str, size: int) -> bytes:
    """Build the pointer text stored in git in place of the file content."""
    return b"%s%s %20d\n" % (MAGIC, sha1.encode("ascii"), size)


def _atoi(data: bytes) -> int:
    match = _LEADING_INT.match(data)
    return int(match.group(1)) if match else 0


def decode(data: bytes) -> Optional[Tuple[str, int]]:
    """Return ``(sha1, size)`` if ``data`` starts with the pointer magic, else None."""
    if not data.startswith(MAGIC):
        return None
    start = len(MAGIC)
    sha1 = data[start:start + SHA1_HEX_LEN].decode("latin-1")
    size = _atoi(data[start + SHA1_HEX_LEN + 1:])
    debug(f"Decoded git-fat string: hash {sha1}, size: {size}")
    return sha1, size


def decode_strict(data: bytes) -> Tuple[str, int]:
    """Like :func:`decode` but raise :class:`DecodeError` on failure."""
    pointer = decode(data)
    if pointer is None:
        shown = data[:MAGIC_LEN].decode("latin-1")
        raise DecodeError(f"Could not decode {shown}")
    return pointer


def sha1_hex(data: bytes) -> str:
    """Return the hexadecimal SHA-1 digest of ``data``."""
    return hashlib.sha1(data).hexdigest()


def object_path(objdir: PathLike, sha1: str) -> str:
    """Return the path of the cached object named ``sha1``."""
    return f"{os.fspath(objdir)}/{sha1}"


def fat_object_sha1(path: PathLike) -> Optional[str]:
    """Return the object hash if ``path`` holds exactly a pointer, else None."""
    try:
        if os.stat(path).st_size != MAGIC_LEN:
            return None
        with open(path, "rb") as f:
            data = f.read(MAGIC_LEN)
    except OSError:
        return None
    pointer = decode(data)
    return pointer[0] if pointer else None


def _read_chunk(stream: BinaryIO, size: int) -> bytes:
    parts = []
    remaining = size
    while remaining > 0:
        piece = stream.read(remaining)
        if not piece:
            break
        parts.append(piece)
        remaining -= len(piece)
    return b"".join(parts)


def filter_clean(instream: BinaryIO, outstream: BinaryIO, objdir: PathLike) -> str:
    """Replace file content with a pointer, caching the content in ``objdir``.

    Input that already is a pointer is passed through unchanged. Returns the
    hash of the object the written pointer refers to.
    """
    first = _read_chunk(instream, _CLEAN_CHUNK)
    if len(first) == MAGIC_LEN:
        pointer = decode(first)
        if pointer is not None:
            outstream.write(first)
            return pointer[0]

    objdir = os.fspath(objdir)
    digest = hashlib.sha1()
    size = 0
    spool = tempfile.NamedTemporaryFile(dir=objdir, prefix=".clean-", delete=False)
    try:
        with spool:
            chunk = first
            while chunk:
                digest.update(chunk)
                spool.write(chunk)
                size += len(chunk)
                chunk = _read_chunk(instream, _CLEAN_CHUNK)

        hexsha = digest.hexdigest()
        outstream.write(encode(hexsha, size))

        path = object_path(objdir, hexsha)
        if exists(path):
            os.unlink(spool.name)
        else:
            debug(f"Caching file to {path}")
            os.replace(spool.name, path)
    except BaseException:
        if exists(spool.name):
            os.unlink(spool.name)
        raise
    return hexsha


def filter_smudge(instream: BinaryIO, outstream: BinaryIO, objdir: PathLike) -> bool:
    """Replace a pointer with the cached content it names.

    Non-pointer input is copied through; a pointer whose object is missing is
    written back unchanged. Returns whether content came from the cache.
    """
    head = _read_chunk(instream, _SMUDGE_CHUNK)
    pointer = decode(head) if len(head) == MAGIC_LEN else None
    if pointer is None:
        outstream.write(head)
        shutil.copyfileobj(instream, outstream, _SMUDGE_CHUNK)
        debug("git-lard filter-smudge: not a managed file")
        return False

    sha1, size = pointer
    path = object_path(objdir, sha1)
    try:
        source = open(path, "rb")
    except OSError:
        debug(f"git-lard filter-smudge: fat object missing {path}")
        outstream.write(head)
        return False

    copied = 0
    with source:
        while chunk := source.read(_SMUDGE_CHUNK):
            outstream.write(chunk)
            copied += len(chunk)

    if copied == size:
        debug(f"git-lard filter-smudge: restoring from {path}")
    else:
        debug(
            f"git-lard filter-smudge: invalid size of {path} "
            f"(expected {size}, got {copied})"
        )
    return True