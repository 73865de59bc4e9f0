"""
=============================================================================
PATH RESOLVER
=============================================================================

Turns a decoded URL path into a file system entry under the served root.

=============================================================================
RESOLUTION ORDER
=============================================================================

With root=/srv, dir_file=["index.html"], ext=[".html"]:

    ┌──────────────────┬─────────────────────────────┬───────────────────┐
    │  URL path        │  Candidates (first wins)    │  Result           │
    ├──────────────────┼─────────────────────────────┼───────────────────┤
    │  /app.js         │  /srv/app.js                │  file             │
    │  /               │  /srv/index.html            │  file             │
    │  /docs           │  /srv/docs/index.html       │  file             │
    │                  │  /srv/docs                  │  dir (listing)    │
    │  /about          │  /srv/about.html            │  file             │
    │  /missing        │  /srv/missing(.html)        │  none → 404       │
    └──────────────────┴─────────────────────────────┴───────────────────┘

Symlinks are followed with realpath(); the target goes through the same
candidate rules and must land inside the root, otherwise the link counts
as missing.

=============================================================================
STATUS DECISION
=============================================================================

    found file or dir?
        │
        ├── no ──────────────────────────────────► 404  (file = None)
        │
        ├── dir while dir_list is off ───────────► 404  (file kept, for logs)
        ├── some segment excluded (e.g. ".env") ─► 404  (file kept)
        │
        ├── not readable (no r, or no r+x for dirs) ► 403
        │
        └── otherwise ───────────────────────────► 200

=============================================================================
"""

import logging
import os
from dataclasses import dataclass
from typing import List, Optional

from .config import ServerOptions
from .fs_utils import (
    FSKind,
    FSLocation,
    get_index,
    get_kind,
    get_local_path,
    get_realpath,
    is_readable,
    is_subpath,
)
from .path_matcher import PathMatcher


logger = logging.getLogger(__name__)


@dataclass
class ResolveResult:
    """
    Attributes:
        url_path: The decoded URL path that was looked up.
        status: 200, 403 or 404.
        file: The entry found, possibly a link with its target attached.
    """
    url_path: str
    status: int
    file: Optional[FSLocation] = None


class FileResolver:
    """
    Resolves URL paths against a root directory.

    Usage:
        resolver = FileResolver(options)
        result = resolver.find("/docs")
        if result.status == 200 and result.file.real.kind == FSKind.DIR:
            items = resolver.index(result.file.real.file_path)
    """

    def __init__(self, options: ServerOptions):
        root = options.root
        if not isinstance(root, str) or not root:
            raise ValueError("Missing root directory")
        if not os.path.isabs(root):
            raise ValueError("Expected absolute root path")

        self.root = root.rstrip("/\\") or os.sep
        self.ext: List[str] = list(options.ext or [])
        self.dir_file: List[str] = list(options.dir_file or [])
        self.dir_list = bool(options.dir_list)
        self._exclude_matcher: Optional[PathMatcher] = None
        if options.exclude:
            self._exclude_matcher = PathMatcher(options.exclude, case_sensitive=True)

    def within_root(self, file_path: str) -> bool:
        return is_subpath(self.root, file_path)

    def allowed_path(self, file_path: str) -> bool:
        """Check that a path is inside the root and not excluded."""
        local_path = get_local_path(self.root, file_path)
        if local_path is None:
            return False
        if self._exclude_matcher is None:
            return True
        return not self._exclude_matcher.test(local_path)

    def resolve_path(self, url_path: str) -> Optional[str]:
        """Join a decoded URL path to the root; None if it escapes."""
        relative = url_path.lstrip("/")
        file_path = os.path.normpath(os.path.join(self.root, relative)) if relative else self.root
        if not self.within_root(file_path):
            return None
        return file_path.rstrip("/\\") or os.sep

    def find(self, url_path: str) -> ResolveResult:
        """Resolve a decoded URL path to a status and a file system entry."""
        target_path = self.resolve_path(url_path)
        file = self.locate_file(target_path) if target_path is not None else None

        if file is not None and file.kind == FSKind.LINK:
            real_path = get_realpath(file.file_path)
            target = self.locate_file(real_path) if real_path is not None else None
            if target is not None and target.kind in (FSKind.FILE, FSKind.DIR):
                file.target = target

        real = file.real if file is not None else None
        if real is not None and real.kind in (FSKind.FILE, FSKind.DIR):
            if real.kind == FSKind.DIR and not self.dir_list:
                allowed = False
            else:
                allowed = self.allowed_path(real.file_path)
            if not allowed:
                status = 404
            elif is_readable(real.file_path, real.kind):
                status = 200
            else:
                status = 403
            return ResolveResult(url_path=url_path, status=status, file=file)

        return ResolveResult(url_path=url_path, status=404, file=None)

    def index(self, dir_path: str) -> List[FSLocation]:
        """
        Entries of a directory for the listing page.

        Excluded and unknown entries are dropped; links get their target
        attached when it lies inside the root.
        """
        if not self.dir_list:
            return []

        items = [
            item for item in get_index(dir_path)
            if item.kind is not None and self.allowed_path(item.file_path)
        ]
        items.sort(key=lambda item: item.file_path)

        for item in items:
            if item.kind == FSKind.LINK:
                real_path = get_realpath(item.file_path)
                if real_path is not None and self.within_root(real_path):
                    item.target = FSLocation(real_path, get_kind(real_path))
        return items

    def locate_file(self, file_path: str) -> FSLocation:
        """
        Find the entry to serve for a path, trying index files for
        directories and extensions for missing paths.
        """
        if not self.within_root(file_path):
            return FSLocation(file_path, None)

        kind = get_kind(file_path)

        if kind == FSKind.DIR and self.dir_file:
            match = self._locate_alt_files([os.path.join(file_path, name) for name in self.dir_file])
            if match is not None:
                return match
        elif kind is None and self.ext:
            match = self._locate_alt_files([file_path + ext for ext in self.ext])
            if match is not None:
                return match

        return FSLocation(file_path, kind)

    def _locate_alt_files(self, file_paths: List[str]) -> Optional[FSLocation]:
        for file_path in file_paths:
            if not self.within_root(file_path):
                continue
            kind = get_kind(file_path)
            if kind in (FSKind.FILE, FSKind.LINK):
                return FSLocation(file_path, kind)
        return None
