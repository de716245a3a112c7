"""Ordered repository list: the local file repository first, then remotes."""
from __future__ import annotations

import logging
import os
import re
import sys
import threading
from pathlib import Path
from typing import Iterable, List, Optional, Union

from constants import Constants

logger = logging.getLogger(__name__)

RE_TRAILING_SLASH = re.compile(r"/+$")


def sanitize(url: str) -> str:
    """Drop trailing slashes from a repository URL."""
    return RE_TRAILING_SLASH.sub("", str(url).strip())


def default_local_root() -> str:
    """Return ``<application dir>/bin``, the default local repository."""
    main = sys.modules.get("__main__")
    main_file = getattr(main, "__file__", None)
    app_dir = os.path.dirname(os.path.abspath(main_file)) if main_file else os.getcwd()
    return os.path.join(app_dir, "bin")


class RepositoryList:
    """Repositories in priority order.

    The local root is re-read on every iteration because it can be changed at
    runtime; remote repositories keep registration order and are de-duplicated
    on their sanitized form.
    """

    def __init__(self, repositories: Optional[Iterable[str]] = None,
                 local_root: Optional[Union[str, Path]] = None):
        self._lock = threading.Lock()
        self._remotes: List[str] = []
        self._local_root: Optional[str] = str(local_root) if local_root else None
        for url in repositories or ():
            self.add_repository(url)

    def add_repository(self, url: str) -> bool:
        """Append a remote repository.

        Returns:
            False if an equivalent repository was already registered.
        """
        clean = sanitize(url)
        if not clean:
            raise ValueError("Repository URL cannot be empty")
        with self._lock:
            if clean in self._remotes:
                return False
            self._remotes.append(clean)
        logger.debug("Registered repository %s", clean)
        return True

    def remove_repository(self, url: str) -> bool:
        """Remove a remote repository; returns False if it was not registered."""
        clean = sanitize(url)
        with self._lock:
            if clean not in self._remotes:
                return False
            self._remotes.remove(clean)
            return True

    def set_local_root(self, path: Optional[Union[str, Path]]) -> None:
        """Change the local repository root (None restores the default)."""
        with self._lock:
            self._local_root = str(path) if path else None

    def local_root(self) -> str:
        """Return the local repository directory."""
        with self._lock:
            configured = self._local_root
        if configured:
            return sanitize(configured)
        if Constants.LOCAL_REPOSITORY:
            return sanitize(Constants.LOCAL_REPOSITORY)
        return sanitize(default_local_root())

    def local_url(self) -> str:
        """Return the local repository as a ``file:`` URL without trailing slash."""
        return sanitize(Path(self.local_root()).resolve().as_uri())

    def remotes(self) -> List[str]:
        """Snapshot of the registered remote repositories."""
        with self._lock:
            return list(self._remotes)

    def __iter__(self):
        seen = [self.local_url()]
        for url in self.remotes():
            if url not in seen:
                seen.append(url)
        return iter(seen)

    def __len__(self) -> int:
        return 1 + len(self.remotes())
