"""Locate executables on the search path."""
from __future__ import annotations

import logging
import os
import stat
from typing import Dict, List, Optional

logger = logging.getLogger(__name__)


def search_dirs(path: Optional[str]) -> List[str]:
    """Split a PATH-style string into directories, skipping empty entries."""
    if not path:
        return []
    return [d for d in path.split(os.pathsep) if d]


def is_executable(path: str) -> bool:
    """True for an existing regular file with any execute bit set."""
    try:
        st = os.stat(path)
    except OSError:
        return False
    return stat.S_ISREG(st.st_mode) and bool(st.st_mode & 0o111)


def resolve(name: str, path: Optional[str]) -> Optional[str]:
    """Return the first executable called ``name`` on ``path``.

    A name containing a slash is not searched for; it is checked as given
    (relative names against the current directory).
    """
    if not name:
        return None
    if os.sep in name:
        candidate = os.path.abspath(name)
        return candidate if is_executable(candidate) else None
    for directory in search_dirs(path):
        candidate = os.path.join(directory, name)
        if is_executable(candidate):
            return os.path.abspath(candidate)
    return None


def list_all(path: Optional[str]) -> Dict[str, str]:
    """Map every executable name on ``path`` to its location.

    Missing or unreadable directories are skipped. The first directory that
    provides a name wins, as it does for :func:`resolve`.
    """
    found: Dict[str, str] = {}
    for directory in search_dirs(path):
        try:
            entries = os.listdir(directory)
        except OSError as e:
            logger.debug("skipping %s: %s", directory, e)
            continue
        for entry in entries:
            if entry in found:
                continue
            candidate = os.path.join(directory, entry)
            if is_executable(candidate):
                found[entry] = os.path.abspath(candidate)
    return found
