"""Access to a git repository through the git command-line tool."""

from __future__ import annotations

import os
import re
import subprocess
from dataclasses import dataclass
from typing import Dict, Iterable, Iterator, List, Optional, Sequence, Tuple, Union

from .fatformat import MAGIC, MAGIC_LEN

PathLike = Union[str, "os.PathLike[str]"]

GITLINK_MODE = "160000"
_BATCH_CHECK_FORMAT = "--batch-check=%(objectname) %(objecttype) %(objectsize)"
_NEEDS_RE = re.compile(r"^(.*): needs (?:update|merge)$")


class GitError(RuntimeError):
    """Raised when a git command fails."""


@dataclass(frozen=True)
class IndexEntry:
    """A file recorded in the index."""

    path: str
    local_path: str
    blob: str
    mode: str


def _git(
    cwd: PathLike,
    args: Sequence[str],
    *,
    input: Optional[bytes] = None,
    check: bool = True,
) -> subprocess.CompletedProcess:
    proc = subprocess.run(
        ["git", *args],
        cwd=os.fspath(cwd),
        input=input,
        capture_output=True,
    )
    if check and proc.returncode != 0:
        message = proc.stderr.decode(errors="replace").strip()
        raise GitError(f"git {' '.join(args)} failed: {message}")
    return proc


def _parse_batch(data: bytes) -> Iterator[Tuple[str, str, bytes]]:
    """Parse ``git cat-file --batch`` output into (sha, type, content)."""
    pos = 0
    while pos < len(data):
        newline = data.index(b"\n", pos)
        header = data[pos:newline].decode().split()
        pos = newline + 1
        if len(header) < 3:
            continue
        sha, kind, size = header[0], header[1], int(header[2])
        content = data[pos:pos + size]
        pos += size + 1
        yield sha, kind, content


def _parse_ls_entries(data: bytes) -> Iterator[Tuple[str, str, str, str]]:
    """Parse NUL-separated ``meta\\tpath`` records into (f1, f2, f3, path)."""
    for record in data.split(b"\0"):
        if not record:
            continue
        meta, _, path = record.partition(b"\t")
        first, second, third = meta.decode().split()
        yield first, second, third, path.decode("utf-8", errors="surrogateescape")


class Repository:
    """A git repository discovered from a working directory."""

    def __init__(self, cwd: Optional[PathLike] = None) -> None:
        self.cwd = os.fspath(cwd) if cwd is not None else os.getcwd()
        proc = _git(self.cwd, ["rev-parse", "--show-prefix"], check=False)
        if proc.returncode != 0:
            raise GitError("not a git repository: " + self.cwd)
        self.prefix = proc.stdout.decode().strip()

        env_dir = os.environ.get("GIT_DIR")
        if env_dir:
            self.git_dir = env_dir
        else:
            out = _git(self.cwd, ["rev-parse", "--absolute-git-dir"]).stdout
            self.git_dir = out.decode().strip()

        top = _git(self.cwd, ["rev-parse", "--show-toplevel"], check=False)
        self.work_tree: Optional[str] = (
            top.stdout.decode().strip() if top.returncode == 0 else None
        )

    def _run(self, args: Sequence[str], **kwargs) -> subprocess.CompletedProcess:
        return _git(self.cwd, args, **kwargs)

    def _top(self) -> str:
        return self.work_tree if self.work_tree is not None else self.cwd

    # configuration

    def config_key_exists(self, key: str) -> bool:
        """Return whether ``key`` is set in the git configuration."""
        return self.get_config(key) is not None

    def set_config(self, key: str, value: str) -> None:
        """Set ``key`` to ``value`` in the repository configuration."""
        self._run(["config", key, value])

    def get_config(self, key: str) -> Optional[str]:
        """Return the value of ``key``, or None if it is not set."""
        proc = self._run(["config", "--get", key], check=False)
        if proc.returncode != 0:
            return None
        return proc.stdout.decode().rstrip("\n")

    def get_config_from_file(self, path: PathLike, key: str) -> Optional[str]:
        """Look ``key`` up in the config file ``path``, then in git's own config."""
        proc = self._run(
            ["config", "--file", os.fspath(path), "--get", key], check=False
        )
        if proc.returncode == 0:
            return proc.stdout.decode().rstrip("\n")
        return self.get_config(key)

    # revisions and objects

    def resolve(self, name: str) -> Optional[str]:
        """Return the object name ``name`` resolves to, or None."""
        proc = self._run(["rev-parse", "--verify", "--quiet", name], check=False)
        if proc.returncode != 0:
            return None
        return proc.stdout.decode().strip() or None

    def _rev_objects(self, revs: Sequence[str], nowalk: bool) -> List[str]:
        args = ["rev-list", "--objects"]
        if nowalk:
            args.append("--no-walk")
        args.extend(revs)
        out = self._run(args).stdout.decode()
        return [line.split(" ", 1)[0] for line in out.splitlines() if line]

    def _blob_sizes(self, objects: Iterable[str]) -> Iterator[Tuple[str, int]]:
        names = list(objects)
        if not names:
            return
        data = ("\n".join(names) + "\n").encode()
        out = self._run(["cat-file", _BATCH_CHECK_FORMAT], input=data).stdout
        for line in out.decode().splitlines():
            parts = line.split()
            if len(parts) == 3 and parts[1] == "blob":
                yield parts[0], int(parts[2])

    def fat_objects(self, revs: Sequence[str], nowalk: bool = False) -> Iterator[bytes]:
        """Yield the content of every pointer blob reachable from ``revs``."""
        candidates = [
            sha
            for sha, size in self._blob_sizes(self._rev_objects(revs, nowalk))
            if size == MAGIC_LEN
        ]
        if not candidates:
            return
        data = ("\n".join(candidates) + "\n").encode()
        out = self._run(["cat-file", "--batch"], input=data).stdout
        for _, kind, content in _parse_batch(out):
            if kind == "blob" and content.startswith(MAGIC):
                yield content

    def blobs(self, revs: Sequence[str]) -> Iterator[Tuple[str, int]]:
        """Yield ``(sha1, size)`` for every blob reachable from ``revs``."""
        yield from self._blob_sizes(self._rev_objects(revs, False))

    def commits(self, revs: Sequence[str]) -> List[str]:
        """Return the commits reachable from ``revs`` in walk order."""
        out = self._run(["rev-list", *revs]).stdout.decode()
        return [line for line in out.splitlines() if line]

    def commits_for_blobs(
        self, revs: Sequence[str], blobs: Iterable[str]
    ) -> Dict[str, str]:
        """Map each wanted blob to a commit whose tree, below cwd, holds it.

        The last commit of the walk that holds a blob wins.
        """
        wanted = set(blobs)
        found: Dict[str, str] = {}
        if not wanted:
            return found
        for commit in self.commits(revs):
            out = self._run(["ls-tree", "-r", "-z", commit]).stdout
            for _mode, kind, sha, _path in _parse_ls_entries(out):
                if kind == "blob" and sha in wanted:
                    found[sha] = commit
        return found

    def commit_info(self, blob: str, commit: str) -> str:
        """Describe ``blob`` and the raw text of ``commit``."""
        body = self._run(["cat-file", "commit", commit]).stdout.decode(
            errors="replace"
        )
        return f"blob {blob}\ncommit {commit}\n{body}\n"

    # index

    def index_files(self) -> List[IndexEntry]:
        """Return the index entries below the current directory."""
        out = self._run(["ls-files", "-s", "-z", "--full-name"]).stdout
        return [
            IndexEntry(
                path=path,
                local_path=path[len(self.prefix):],
                blob=sha,
                mode=mode,
            )
            for mode, sha, _stage, path in _parse_ls_entries(out)
        ]

    def refresh_index(self, paths: Iterable[str]) -> List[str]:
        """Refresh cached stat data after ``paths`` were rewritten.

        Returns the paths whose content still differs from the index.
        """
        if not list(paths):
            return []
        proc = _git(self._top(), ["update-index", "--refresh"], check=False)
        if proc.returncode not in (0, 1):
            raise GitError(
                "Unable to write new index file: "
                + proc.stderr.decode(errors="replace").strip()
            )
        stale = []
        for line in proc.stdout.decode(errors="replace").splitlines():
            match = _NEEDS_RE.match(line.strip())
            if match:
                stale.append(match.group(1))
        return stale

    def submodules(self) -> List[str]:
        """Return the paths of all gitlinks in the index."""
        out = _git(self._top(), ["ls-files", "-s", "-z", "--full-name"]).stdout
        return [
            path
            for mode, _sha, _stage, path in _parse_ls_entries(out)
            if mode == GITLINK_MODE
        ]