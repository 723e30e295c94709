"""
Ignore Rules
============
Rules for skipping generated files and stale diagnostics when a source tree
is copied into a fresh stage working tree.

Ignored patterns:
    - .git/
    - target/ (cargo build output)
    - node_modules/ / __pycache__/ / .venv/ / venv/
    - *.stdout.txt / *.stderr.txt (diagnostics from an earlier run)

A stage must start without leftovers, otherwise its ArtifactSet would pick
up files produced by some other stage.
"""
import fnmatch
import os
from typing import Callable, Iterable, List, Set

IGNORED_NAMES = frozenset({
    ".git",
    "target",
    "node_modules",
    "__pycache__",
    ".venv",
    "venv",
})

IGNORED_GLOBS = ("*.stdout.txt", "*.stderr.txt", "*.pyc")


def is_ignored(name: str) -> bool:
    if name in IGNORED_NAMES:
        return True
    return any(fnmatch.fnmatchcase(name, g) for g in IGNORED_GLOBS)


def copy_ignore(excluded_paths: Iterable[str] = ()) -> Callable[[str, List[str]], Set[str]]:
    """
    Build an ``ignore`` callable for shutil.copytree.

    ``excluded_paths`` are absolute directories to skip wherever they appear
    (the workspace root itself when it lives inside the source tree).
    """
    excluded = {os.path.abspath(p) for p in excluded_paths if p}

    def _ignore(directory: str, names: List[str]) -> Set[str]:
        skipped = set()
        for name in names:
            if is_ignored(name) or os.path.abspath(os.path.join(directory, name)) in excluded:
                skipped.add(name)
        return skipped

    return _ignore
