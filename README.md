# gitlard

`gitlard` keeps large files out of your git history. Their content is stored
in `.git/fat/objects`, and the repository holds only a short placeholder. The
placeholder format is the one git-fat uses, so a repository set up with
git-fat keeps working. The object store is synchronised with a remote through
`rsync`, which must be installed. The `git` command must also be on `PATH`.

## Installation

    pip install .

This installs the `git-lard` command. Git finds `git-<name>` executables on
`PATH`, so you can also run it as `git lard`.

## Setup

In a repository, run:

    git-lard init

If they are not already set, this sets `filter.fat.clean` to
`git-fat filter-clean` and `filter.fat.smudge` to `git-fat filter-smudge` in
the repository configuration. If no `git-fat` command on your `PATH` runs
`git-lard`, point the filters at `git-lard` yourself:

    git config filter.fat.clean "git-lard filter-clean"
    git config filter.fat.smudge "git-lard filter-smudge"

Add `-r` to `init` to run it in every submodule that has a `.gitfat` file as
well.

To choose which files are managed, add lines like these to `.gitattributes`:

    *.png filter=fat -crlf
    *.zip filter=fat -crlf

To say where objects are pushed to and pulled from, put a `.gitfat` file at
the top of the work tree:

    [rsync]
        remote = storage.example.com:/srv/fat-store
        sshuser = builder
        sshport = 2222
        options = --compress

Only `rsync.remote` is required. A key missing from `.gitfat` is also looked
up in the ordinary git configuration. `options` is split on spaces and passed
to rsync. `sshuser` and `sshport` become an `--rsh=ssh -p ... -l ...` option.

## Commands

    git-lard status [--all]
        Compare the store with the objects referenced in the history of HEAD
        (or of every ref, with --all). Lists orphan objects (referenced but not
        stored) and garbage objects (stored but not referenced). With --all it
        also prints every referenced object.

    git-lard push [--all]
        Send stored objects that the history of HEAD (or every ref) references.

    git-lard pull [--all] [--history] [--recurse-submodules] [--no-rsync-cwd] [REV]
        Fetch missing objects, then run checkout. By default it fetches the
        objects named by placeholder files in the work tree below the current
        directory.
          REV                    objects referenced by the tree of REV
          --history              objects referenced anywhere in the history of HEAD or REV
          --all                  objects referenced anywhere in the history of every ref
          --no-rsync-cwd         objects referenced by the tree of HEAD
          --recurse-submodules   afterwards run "pull --recurse-submodules" in
                                 every submodule that has a .gitfat file
        Arguments after "--" are ignored.

    git-lard checkout
        Replace placeholder files below the current directory with stored
        content and refresh the index. Placeholders whose object is not stored
        are reported, with the commits that hold them. Requires "init".

    git-lard gc
        Delete stored objects that the history of HEAD does not reference.

    git-lard verify
        Check that every stored object's content matches its name. Exits with
        status 1 if any object is corrupted.

    git-lard find SIZE
        List every blob in the history of every ref that is at least SIZE bytes.

    git-lard submodule init [-r|--recursive]
    git-lard submodule update [-r|--recursive] [-i|--init]
        Run "init" or "pull" in every submodule that has a .gitfat file.

    git-lard filter-clean
        Clean filter: reads content on stdin, stores it, writes a placeholder.
    git-lard filter-smudge
        Smudge filter: reads a placeholder on stdin, writes the stored content.

Git calls `filter-clean` and `filter-smudge` itself. You do not need to run
them by hand. Set the environment variable `GITLARD_DEBUG` to any non-empty
value to print timestamped debug messages on standard error.

## Placeholder format

Each placeholder is exactly 74 bytes:

    #$# git-fat <40 hex digit sha1> <size right-aligned in 20 columns>\n

## Using it from Python

```python
import io
import tempfile

from gitlard.fatformat import decode, encode, filter_clean, filter_smudge

placeholder = encode("0" * 40, 1234)
print(decode(placeholder))      # ('0000000000000000000000000000000000000000', 1234)

objdir = tempfile.mkdtemp()     # the object directory must exist
pointer = io.BytesIO()
sha1 = filter_clean(io.BytesIO(b"large payload"), pointer, objdir)

content = io.BytesIO()
filter_smudge(io.BytesIO(pointer.getvalue()), content, objdir)
assert content.getvalue() == b"large payload"
```

`gitlard.lard.Lard` and `gitlard.git.Repository` expose the commands and the
repository queries they are built on.

## What it does not do

- `index-filter` is not supported. It prints a message and exits with status 1.
- `find` only lists large blobs. It does not move them into the store or
  rewrite history.