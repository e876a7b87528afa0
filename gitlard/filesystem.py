"""Filesystem helpers for the object store."""

from __future__ import annotations

import os
import stat
from pathlib import Path
from typing import Set, Union

PathLike = Union[str, "os.PathLike[str]"]


def exists(path: PathLike) -> bool:
    """Return whether ``path`` can be stat'ed."""
    try:
        os.stat(path)
    except OSError:
        return False
    return True


def is_file(path: PathLike) -> bool:
    """Return whether ``path`` is a regular file; raise if it cannot be stat'ed."""
    return stat.S_ISREG(os.stat(path).st_mode)


def get_file_size(path: PathLike) -> int:
    """Return the size of ``path`` in bytes."""
    return os.stat(path).st_size


def create_dir_struct(path: PathLike) -> None:
    """Create ``path`` and any missing parents, each with owner-only access.

    Raises ``OSError`` when the path cannot be examined or created.
    """
    try:
        os.stat(path)
        return
    except FileNotFoundError:
        pass

    target = Path(path)
    for prefix in reversed((target, *target.parents)):
        if exists(prefix):
            continue
        try:
            prefix.mkdir(mode=0o700)
        except FileExistsError:
            pass


def list_directory(path: PathLike) -> Set[str]:
    """Return the entry names in ``path``; directories carry a trailing ``/``.

    An unreadable or missing directory yields an empty set.
    """
    try:
        with os.scandir(path) as entries:
            return {
                entry.name + "/" if entry.is_dir(follow_symlinks=False) else entry.name
                for entry in entries
            }
    except OSError:
        return set()