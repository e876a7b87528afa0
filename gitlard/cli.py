"""Command-line entry point."""

from __future__ import annotations

import os
import sys
from typing import List, Optional, Sequence

from .debug import default_log
from .fatformat import DecodeError
from .git import GitError
from .lard import Lard, LardError

USAGE = (
    "Usage: git lard [init|status|push|pull|gc|verify|checkout|find|"
    "index-filtered|submodule]"
)


def _stderr_callback(msg: str) -> None:
    print(msg, file=sys.stderr)


def _dispatch(lard: Lard, command: str, args: List[str]) -> int:
    if command == "filter-clean":
        sys.stdout.flush()
        lard.clean(sys.stdin.buffer, sys.stdout.buffer)
        sys.stdout.buffer.flush()
    elif command == "filter-smudge":
        sys.stdout.flush()
        lard.smudge(sys.stdin.buffer, sys.stdout.buffer)
        sys.stdout.buffer.flush()
    elif command == "init":
        lard.init(args)
    elif command == "status":
        lard.status(args)
    elif command == "push":
        lard.push(args)
    elif command == "pull":
        lard.pull(args)
    elif command == "gc":
        lard.gc()
    elif command == "verify":
        lard.verify()
    elif command == "checkout":
        lard.checkout()
    elif command == "find":
        lard.find(args)
    elif command == "index-filter":
        print("index-filter is not supported", file=sys.stderr)
        return 1
    elif command == "submodule":
        lard.submodule(args)
    else:
        print(USAGE)
        return 1
    return 0


def main(argv: Optional[Sequence[str]] = None) -> int:
    """Run a git-lard command; return the process exit status."""
    if argv is None:
        command_name, args = sys.argv[0], sys.argv[1:]
    else:
        command_name, args = "git-lard", list(argv)

    if not args:
        print(USAGE)
        return 1

    if os.environ.get("GITLARD_DEBUG"):
        default_log.add_callback(_stderr_callback)
    debug_args = " ".join([command_name, *args])
    default_log.message(f"Command line: {debug_args}")

    try:
        lard = Lard(command_name)
        return _dispatch(lard, args[0], args[1:])
    except (LardError, GitError, DecodeError, OSError) as err:
        print(err, file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())