"""
=============================================================================
FILE SYSTEM PROBES
=============================================================================

Thin wrappers over os.lstat / os.scandir / os.path.realpath / os.access
used by the resolver. None of them raise for a missing or unreadable
entry: OSError turns into an "absent" result (None, [] or False).

    ┌───────────────────────┬─────────────────────────────────────────────┐
    │  Function             │  Failure result                             │
    ├───────────────────────┼─────────────────────────────────────────────┤
    │  get_kind(path)       │  None   (no such entry, or not file/dir/link)│
    │  get_realpath(path)   │  None   (broken link, loop)                 │
    │  get_index(dir)       │  []     (not a dir, no permission)          │
    │  is_readable(path)    │  False                                      │
    └───────────────────────┴─────────────────────────────────────────────┘

=============================================================================
"""

import errno
import logging
import os
import stat
from dataclasses import dataclass
from enum import Enum
from typing import Callable, List, Optional

from .utils import trim_slash


logger = logging.getLogger(__name__)


class FSKind(Enum):
    """
    Kind of a file system entry.

    LINK is only seen before symlinks are followed; the resolver always
    reports FILE, DIR or None in the end.
    """
    FILE = "file"
    DIR = "dir"
    LINK = "link"


@dataclass
class FSLocation:
    """
    A file system entry.

    Attributes:
        file_path: Absolute, normalized path.
        kind: Entry kind, or None when nothing usable exists there.
        target: For symlinks, the entry the link points to.
    """
    file_path: str
    kind: Optional[FSKind] = None
    target: Optional["FSLocation"] = None

    @property
    def real(self) -> "FSLocation":
        """The link target when there is one, else this entry."""
        return self.target if self.target is not None else self


def stats_kind(mode: int) -> Optional[FSKind]:
    if stat.S_ISLNK(mode):
        return FSKind.LINK
    if stat.S_ISDIR(mode):
        return FSKind.DIR
    if stat.S_ISREG(mode):
        return FSKind.FILE
    return None


def get_kind(file_path: str) -> Optional[FSKind]:
    """lstat() an entry without following symlinks."""
    try:
        return stats_kind(os.lstat(file_path).st_mode)
    except (OSError, ValueError):
        return None


def get_realpath(file_path: str) -> Optional[str]:
    """Resolve symlinks; None when the final target does not exist."""
    try:
        real = os.path.realpath(file_path)
    except (OSError, ValueError):
        return None
    return real if os.path.exists(real) else None


def get_index(dir_path: str) -> List[FSLocation]:
    """List a directory's entries with their (unfollowed) kinds."""
    items: List[FSLocation] = []
    try:
        with os.scandir(dir_path) as entries:
            for entry in entries:
                items.append(FSLocation(os.path.join(dir_path, entry.name), _entry_kind(entry)))
    except OSError as e:
        logger.debug(f"Could not list {dir_path}: {e}")
        return []
    return items


def _entry_kind(entry: os.DirEntry) -> Optional[FSKind]:
    try:
        if entry.is_symlink():
            return FSKind.LINK
        if entry.is_dir(follow_symlinks=False):
            return FSKind.DIR
        if entry.is_file(follow_symlinks=False):
            return FSKind.FILE
    except OSError:
        pass
    return None


def is_subpath(parent: str, file_path: str) -> bool:
    """
    Check that file_path is parent itself or somewhere below it.

    Relative paths and paths with a ".." component are never accepted.
    """
    if not os.path.isabs(file_path):
        return False
    parts = file_path.replace("\\", "/").split("/")
    if ".." in parts:
        return False
    parent = parent.rstrip("/\\") if len(parent) > 1 else parent
    if file_path == parent:
        return True
    prefix = parent if parent.endswith(os.sep) else parent + os.sep
    return file_path.startswith(prefix)


def get_local_path(root: str, file_path: str) -> Optional[str]:
    """
    Path of file_path relative to root, or None when outside of it.

        get_local_path("/srv", "/srv/css/app.css")   → "css/app.css"
        get_local_path("/srv", "/srv")               → ""
    """
    if not is_subpath(root, file_path):
        return None
    root = root.rstrip("/\\") if len(root) > 1 else root
    return trim_slash(file_path[len(root):])


def is_readable(file_path: str, kind: Optional[FSKind] = None) -> bool:
    """Directories need read and execute permission, other entries read."""
    if kind is None:
        kind = get_kind(file_path)
    if kind is None:
        return False
    mode = os.R_OK | os.X_OK if kind == FSKind.DIR else os.R_OK
    try:
        return os.access(file_path, mode)
    except (OSError, ValueError):
        return False


def check_dir_access(dir_path: str, on_error: Callable[[str], None]) -> bool:
    """
    Check that the root directory exists and can be listed.

    Reports "not a directory" or "permission denied" through on_error.
    """
    try:
        st = os.stat(dir_path)
    except FileNotFoundError:
        on_error(f"not a directory: {dir_path}")
        return False
    except PermissionError:
        on_error(f"permission denied: {dir_path}")
        return False
    except OSError as e:
        if e.errno == errno.ENOTDIR:
            on_error(f"not a directory: {dir_path}")
        else:
            on_error(str(e))
        return False

    if not stat.S_ISDIR(st.st_mode):
        on_error(f"not a directory: {dir_path}")
        return False
    if not os.access(dir_path, os.R_OK | os.X_OK):
        on_error(f"permission denied: {dir_path}")
        return False
    return True
