"""
Filesystem helpers for locating man page sources
"""

import os
from typing import Callable, Iterable


def normalize_path_for_platform(path: str) -> str:
    """Expand ~ and normalize separators for the current platform"""
    if not path:
        return path
    return os.path.normpath(os.path.expanduser(path))


def document_base_path(filename: str) -> str:
    """Directory that holds a man page source, used to resolve its cross-references.

    A bare filename lives in the current directory.
    """
    directory = os.path.dirname(filename)
    return directory or '.'


def path_exists(path: str) -> bool:
    """Default "document exists" lookup: probe the filesystem"""
    return os.path.exists(path)


def known_pages_lookup(pages: Iterable[str]) -> Callable[[str], bool]:
    """Build a "document exists" lookup from page names such as "ls.1".

    Only the final path component is compared, so the lookup works for
    documents that never touch the filesystem.
    """
    names = frozenset(pages)

    def exists(path: str) -> bool:
        return os.path.basename(path) in names

    return exists
