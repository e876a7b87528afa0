"""Commands that manage fat objects stored outside a git repository."""

from __future__ import annotations

import hashlib
import os
import re
import shutil
import subprocess
import sys
import time
from typing import BinaryIO, Dict, Iterable, List, NamedTuple, Optional, Sequence, Set

from .debug import debug
from .fatformat import (
    MAGIC,
    SHA1_HEX_LEN,
    fat_object_sha1,
    filter_clean,
    filter_smudge,
    object_path,
)
from .filesystem import create_dir_struct, exists, get_file_size, list_directory
from .git import Repository
from .stringhelpers import split

_HASH_CHUNK = 64 * 1024
_LEADING_INT = re.compile(r"\s*([+-]?\d+)")

_SUBMODULE_USAGE = (
    "Update fat files located in submodules.\n"
    "Usage:\n"
    "   git lard submodule update [-r|--recursive] [-i|--init]\n"
    "   git lard submodule init [-r|--recursive]"
)


class LardError(RuntimeError):
    """Raised when a command cannot complete."""


class ObjectStatus(NamedTuple):
    """Result of comparing the object store with the referenced objects."""

    referenced: List[str]
    orphans: List[str]
    garbage: List[str]


def _atoi(text: str) -> int:
    match = _LEADING_INT.match(text)
    return int(match.group(1)) if match else 0


def _file_sha1(path: str) -> str:
    digest = hashlib.sha1()
    with open(path, "rb") as f:
        while chunk := f.read(_HASH_CHUNK):
            digest.update(chunk)
    return digest.hexdigest()


class Lard:
    """Operations on the fat object store of one repository."""

    def __init__(self, command_name: str, repo: Optional[Repository] = None) -> None:
        self.command_name = command_name
        self.repo = repo if repo is not None else Repository()
        self.prefix = self.repo.prefix
        self.git_dir = self.repo.git_dir
        self.objdir = f"{self.git_dir}/fat/objects"
        debug(f"Prefix: {self.prefix}")
        debug(f"Git dir: {self.git_dir}")
        debug(f"Obj dir: {self.objdir}")

    @property
    def work_tree(self) -> str:
        """The top directory of the working tree."""
        return self.repo.work_tree or self.repo.cwd

    def _worktree_path(self, path: str) -> str:
        return os.path.join(self.work_tree, path)

    # setup

    def _setup(self) -> None:
        try:
            create_dir_struct(self.objdir)
        except OSError as err:
            print(err.strerror or str(err), file=sys.stderr)

    def _is_init_done(self) -> bool:
        return self.repo.config_key_exists(
            "filter.fat.clean"
        ) and self.repo.config_key_exists("filter.fat.smudge")

    def _assert_init_done(self) -> None:
        if not self._is_init_done():
            raise LardError(
                f"fatal: git-lard is not yet configured in {self.work_tree} "
                'repository.\nRun "git lard init" to configure.'
            )

    # commands

    def init(self, args: Sequence[str] = ()) -> None:
        """Configure the clean and smudge filters, optionally in submodules."""
        self._setup()
        if self._is_init_done():
            print(
                f"Git lard already configured for {self.work_tree}, "
                "check configuration in .git/config"
            )
            print("    Note: migration from git-fat may require changing executable name.")
        else:
            self.repo.set_config("filter.fat.clean", "git-fat filter-clean")
            self.repo.set_config("filter.fat.smudge", "git-fat filter-smudge")

        if "-r" in args:
            self._submodule_init(True)

    def status(self, args: Sequence[str] = ()) -> ObjectStatus:
        """Report orphan (referenced, missing) and garbage (unreferenced) objects."""
        self._setup()
        catalog = list_directory(self.objdir)
        debug(f"Fat objects: {len(catalog)}")
        show_all = "--all" in args
        referenced = self.referenced_objects(show_all, False, None)
        debug(f"Referenced objects: {len(referenced)}")

        result = ObjectStatus(
            referenced=sorted(referenced),
            orphans=sorted(referenced - catalog),
            garbage=sorted(catalog - referenced),
        )
        if show_all:
            for name in result.referenced:
                print(name)
        if result.orphans:
            print("Orphan objects:")
            for name in result.orphans:
                print(f"    {name}")
        if result.garbage:
            print("Garbage objects:")
            for name in result.garbage:
                print(f"    {name}")
        return result

    def gc(self) -> List[str]:
        """Delete cached objects that HEAD does not reference; return their names."""
        catalog = list_directory(self.objdir)
        referenced = self.referenced_objects(False, False, None)
        garbage = sorted(catalog - referenced)
        print(f"Unreferenced objects to remove: {len(garbage)}")
        for name in garbage:
            path = object_path(self.objdir, name)
            print(f"{get_file_size(path):10d} {name}")
            os.unlink(path)
        return garbage

    def verify(self) -> None:
        """Check that every cached object's content matches its name."""
        corrupted = []
        for name in sorted(list_directory(self.objdir)):
            if name.endswith("/"):
                continue
            actual = _file_sha1(object_path(self.objdir, name))
            if name[:SHA1_HEX_LEN] != actual:
                corrupted.append((name, actual))
        if corrupted:
            print(f"Corrupted objects: {len(corrupted)}")
            for name, actual in corrupted:
                print(f"{name} data hash is {actual}")
            raise LardError(f"{len(corrupted)} corrupted objects")

    def find(self, args: Sequence[str]) -> Dict[str, int]:
        """List blobs in all history at least as large as the threshold in ``args``."""
        if not args:
            raise LardError("find requires a size threshold")
        threshold = _atoi(args[0])
        large = self._large_blobs(threshold)
        commits = self.repo.commits(["--all"])
        debug(f"Rev walk found {len(commits)} commits")
        for sha, size in sorted(large.items()):
            print(f"{size:10d} {sha}")
        return large

    def clean(
        self, instream: Optional[BinaryIO] = None, outstream: Optional[BinaryIO] = None
    ) -> str:
        """Run the clean filter: content in, pointer out."""
        self._setup()
        return filter_clean(
            instream if instream is not None else sys.stdin.buffer,
            outstream if outstream is not None else sys.stdout.buffer,
            self.objdir,
        )

    def smudge(
        self, instream: Optional[BinaryIO] = None, outstream: Optional[BinaryIO] = None
    ) -> bool:
        """Run the smudge filter: pointer in, content out."""
        self._setup()
        return filter_smudge(
            instream if instream is not None else sys.stdin.buffer,
            outstream if outstream is not None else sys.stdout.buffer,
            self.objdir,
        )

    def checkout(self) -> List[str]:
        """Replace pointer files below the current directory with cached content."""
        self._assert_init_done()
        restored = []
        missing: Set[str] = set()
        for entry in self.repo.index_files():
            path = self._worktree_path(entry.path)
            sha1 = fat_object_sha1(path)
            if sha1 is None:
                continue
            source = object_path(self.objdir, sha1)
            if exists(source):
                restored.append((sha1, source, entry.path))
                os.utime(path, None)
            else:
                missing.add(entry.blob)
                print(f"Data unavailable: {sha1} {entry.local_path}")

        for sha1, source, target in restored:
            print(f"Restoring {sha1} -> {target}")
            shutil.copyfile(source, self._worktree_path(target))
        targets = [target for _, _, target in restored]
        self.repo.refresh_index(targets)
        print()

        if missing:
            print("!! Missing files !!")
            for blob, commit in self.repo.commits_for_blobs(["HEAD"], missing).items():
                print(self.repo.commit_info(blob, commit), end="")
        return targets

    def pull(self, args: Sequence[str] = ()) -> None:
        """Fetch missing objects from the remote and check them out."""
        self._setup()

        pull_all = False
        nowalk = True
        recurse_submodules = False
        rsync_cwd = True
        rev: Optional[str] = None

        for arg in args:
            if arg.startswith("-"):
                if arg == "--":
                    break
                if arg == "--all":
                    pull_all = True
                    nowalk = False
                    rsync_cwd = False
                elif arg == "--history":
                    nowalk = False
                    rsync_cwd = False
                elif arg == "--recurse-submodules":
                    recurse_submodules = True
                elif arg == "--no-rsync-cwd":
                    rsync_cwd = False
            else:
                resolved = self.repo.resolve(arg)
                if resolved:
                    rev = resolved
                    rsync_cwd = False

        debug(f"Rev: {rev or '(none)'}, all: {int(pull_all)}")

        catalog = list_directory(self.objdir)
        referenced = (
            self._referenced_objects_cwd()
            if rsync_cwd
            else self.referenced_objects(pull_all, nowalk, rev)
        )
        orphans = sorted(referenced - catalog)

        cmd = self.rsync_command(False)
        ok = self._execute_rsync(cmd, orphans)

        self.checkout()

        if recurse_submodules:
            self._submodule_update(True)

        if not ok:
            raise LardError("Error executing rsync!")

    def push(self, args: Sequence[str] = ()) -> None:
        """Send referenced cached objects to the remote."""
        self._setup()
        push_all = "--all" in args
        catalog = list_directory(self.objdir)
        referenced = self.referenced_objects(push_all, False, None)
        files = sorted(catalog & referenced)

        cmd = self.rsync_command(True)
        if not self._execute_rsync(cmd, files):
            raise LardError("Error executing rsync!")

    def submodule(self, args: Sequence[str]) -> None:
        """Initialise or update fat files in submodules."""
        if not args:
            print(_SUBMODULE_USAGE)
            return

        recursive = False
        init = args[0] == "init"
        for arg in args[1:]:
            if not arg.startswith("-"):
                continue
            param = arg[1:]
            if param.startswith("-"):
                param = param[1:]
            if param in ("r", "recursive"):
                recursive = True
            elif param in ("i", "init"):
                init = True

        self._setup()

        if init:
            self._submodule_init(recursive)
        if args[0] == "update":
            self._submodule_update(recursive)

    # rsync

    def rsync_command(self, push: bool) -> List[str]:
        """Build the rsync arguments from the ``.gitfat`` file of the work tree."""
        cmd = ["-v", "--progress", "--ignore-existing", "--from0", "--files-from=-"]
        cfg_path = f"{self.work_tree}/.gitfat"

        remote = self.repo.get_config_from_file(cfg_path, "rsync.remote")
        if remote is None:
            raise LardError(f"No rsync.remote in {cfg_path}")
        sshport = self.repo.get_config_from_file(cfg_path, "rsync.sshport")
        sshuser = self.repo.get_config_from_file(cfg_path, "rsync.sshuser")
        options = self.repo.get_config_from_file(cfg_path, "rsync.options")

        if sshport or sshuser:
            rsh = "--rsh=ssh"
            if sshport:
                rsh += f" -p {sshport}"
            if sshuser:
                rsh += f" -l {sshuser}"
            cmd.append(rsh)

        if options:
            cmd.extend(split(options))

        local = f"{self.objdir}/"
        far = f"{remote}/"
        cmd.extend([local, far] if push else [far, local])

        print(f"{'Pushing to' if push else 'Pulling from'} {remote}")
        return cmd

    def _execute_rsync(self, cmd: Sequence[str], files: Iterable[str]) -> bool:
        payload = b"".join(os.fsencode(name) + b"\0" for name in files)
        try:
            proc = subprocess.run(["rsync", *cmd], input=payload)
        except OSError:
            return False
        return proc.returncode == 0

    # object discovery

    def referenced_objects(
        self, all: bool, nowalk: bool, rev: Optional[str]
    ) -> Set[str]:
        """Return the hashes of objects that pointers in history refer to."""
        if all:
            revs = ["--all"]
        elif rev:
            if self.repo.resolve(rev) is None:
                raise LardError(f"Cannot resolve {rev}")
            revs = [rev]
        else:
            if self.repo.resolve("HEAD") is None:
                return set()
            revs = ["HEAD"]

        start = len(MAGIC)
        return {
            content[start:start + SHA1_HEX_LEN].decode("latin-1")
            for content in self.repo.fat_objects(revs, nowalk)
        }

    def _referenced_objects_cwd(self) -> Set[str]:
        found = set()
        for entry in self.repo.index_files():
            sha1 = fat_object_sha1(self._worktree_path(entry.path))
            if sha1 is not None:
                found.add(sha1)
        return found

    def _large_blobs(self, threshold: int) -> Dict[str, int]:
        started = time.perf_counter()
        total = 0
        large: Dict[str, int] = {}
        for sha, size in self.repo.blobs(["--all"]):
            total += 1
            if size >= threshold:
                large[sha] = size
        elapsed_ms = int((time.perf_counter() - started) * 1000)
        debug(
            f"{len(large)} of {total} blobs are >= {threshold} bytes "
            f"[elapsed: {elapsed_ms}ms]"
        )
        return large

    # submodules

    def _submodules(self) -> List[str]:
        return [
            path
            for path in self.repo.submodules()
            if exists(f"{self.work_tree}/{path}/.gitfat")
        ]

    def _submodule_init(self, recurse: bool) -> None:
        args = [self.command_name, "init"]
        if recurse:
            args.append("-r")
        self._execute_on_submodules(args, "Initializing {} submodules.")

    def _submodule_update(self, recurse: bool) -> None:
        args = [self.command_name, "pull"]
        if recurse:
            args.append("--recurse-submodules")
        self._execute_on_submodules(args, "Pulling {} submodules.")

    def _execute_on_submodules(self, args: List[str], msg: str) -> None:
        submodules = self._submodules()
        if not submodules:
            return
        print(msg.format(self.work_tree))
        for path in submodules:
            try:
                proc = subprocess.run(args, cwd=f"{self.work_tree}/{path}")
            except OSError:
                debug(f"Executing worker for {path} failed!")
                print("Error worker failed!", file=sys.stderr)
                return
            if proc.returncode != 0:
                print("Error worker failed!", file=sys.stderr)
                return