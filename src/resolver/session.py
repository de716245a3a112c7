"""Resolution session: the explicit context shared by one resolver's callers.

A session owns the coordinate registry, the repository list, the worker pool
and the three memoizing caches (base URLs, descriptors, packages). Tests
build isolated sessions; applications usually keep one for their lifetime.
"""
from __future__ import annotations

import logging
import sqlite3
import threading
from concurrent.futures import Future, ThreadPoolExecutor
from pathlib import Path
from typing import Any, Dict, FrozenSet, Iterable, Optional, Union

from common import http_client
from common.kv_store import KeyValueStore
from common import xml_utils
from constants import Constants
from errors import NotFoundError, PersistenceError

from .cache import FutureCache
from .coordinate import Coordinate, CoordinateRegistry
from .graph import DependencyGraphBuilder
from .models import Descriptor
from .package import Package, project_coordinate
from .persistent import PersistentCache
from .repositories import RepositoryList
from .url_resolver import UrlResolver

logger = logging.getLogger(__name__)


def open_store(path: Union[str, Path]) -> KeyValueStore:
    """Open the persistent store at ``path``, or an in-memory one if that fails."""
    try:
        return KeyValueStore(path)
    except (OSError, sqlite3.Error) as exc:
        err = PersistenceError(f"Cannot open resolution cache {path}: {exc}")
        logger.warning("%s; resolutions will not survive this process", err)
        return KeyValueStore(":memory:")


class ResolutionSession:
    """Resolves coordinates to URLs, descriptors and dependency closures.

    Args:
        repositories: remote repositories in priority order; defaults to
            ``Constants.DEFAULT_REPOSITORIES``.
        local_root: local repository directory, tried before any remote.
        persistent: persistent URL cache; by default a SQLite store at
            ``cache_path`` (or ``Constants.CACHE_PATH``).
        cache_path: location of the default persistent store.
        http: object exposing ``fetch_text`` and ``open_stream``; defaults to
            ``common.http_client``.
        max_workers: size of the worker pool.
    """

    def __init__(  # pylint: disable=too-many-arguments
        self,
        repositories: Optional[Iterable[str]] = None,
        local_root: Optional[Union[str, Path]] = None,
        persistent: Optional[PersistentCache] = None,
        cache_path: Optional[Union[str, Path]] = None,
        http: Any = None,
        max_workers: Optional[int] = None,
    ):
        self.coordinates = CoordinateRegistry()
        self.repositories = RepositoryList(
            Constants.DEFAULT_REPOSITORIES if repositories is None else repositories,
            local_root,
        )
        self._owns_persistent = persistent is None
        if persistent is None:
            persistent = PersistentCache(open_store(cache_path or Constants.CACHE_PATH), Constants.CACHE_TTL_SEC)
        self.persistent = persistent
        self.http = http if http is not None else http_client
        self.executor = ThreadPoolExecutor(
            max_workers=max_workers or Constants.MAX_WORKERS,
            thread_name_prefix="depresolve",
        )
        self._descriptors: FutureCache[Coordinate, Descriptor] = FutureCache(
            self._fetch_descriptor, self.executor, name="pom cache"
        )
        self.url_resolver = UrlResolver(self.repositories, self.http, self._descriptors, self.persistent)
        self._urls: FutureCache[Coordinate, str] = FutureCache(
            self.url_resolver.resolve_base, self.executor, name="url cache"
        )
        self._packages: Dict[Coordinate, Package] = {}
        self._packages_lock = threading.Lock()

    # Coordinates and repositories

    def coordinate(self, group: str, artifact: str, version: str, classifier: Optional[str] = None) -> Coordinate:
        """Intern a coordinate in this session's registry."""
        return self.coordinates.intern(group, artifact, version, classifier)

    def parse_coordinate(self, text: str) -> Coordinate:
        """Parse and intern ``group:artifact:version[:classifier]``."""
        return self.coordinates.parse(text)

    def add_repository(self, url: str) -> bool:
        """Append a remote repository (see ``RepositoryList.add_repository``)."""
        return self.repositories.add_repository(url)

    def local_root(self) -> str:
        """The local repository directory."""
        return self.repositories.local_root()

    # URL resolution

    def resolve_future(self, coordinate: Coordinate) -> Future:
        """Future of the base URL for ``coordinate``.

        Finished in-memory results are only trusted while the persistent cache
        still holds an unexpired entry; otherwise a fresh resolution starts.
        An unexpired persistent entry is served without network access.
        """
        coordinate = self.coordinates.intern_coordinate(coordinate)
        persisted = self.persistent.get(coordinate)
        if persisted is None:
            existing = self._urls.peek(coordinate)
            if existing is not None and existing.done():
                self._urls.invalidate(coordinate)
        elif self._urls.peek(coordinate) is None:
            logger.debug("Persistent cache hit for %s", coordinate)
            self._urls.put(coordinate, persisted)
        return self._urls.get(coordinate)

    def resolve(self, coordinate: Coordinate, packaging: Optional[str] = None) -> str:
        """Resolve ``coordinate`` to its base URL, or to ``base.packaging``.

        Raises:
            NotFoundError: if no repository has the artifact.
        """
        coordinate = self.coordinates.intern_coordinate(coordinate)
        self.resolve_future(coordinate)
        try:
            base = self._urls.result(coordinate)
        except NotFoundError:
            raise
        except Exception as exc:
            logger.error("Resolution of %s failed: %s", coordinate, exc)
            raise NotFoundError(f"Unable to resolve {coordinate}: {exc}", coordinate) from exc
        return f"{base}.{packaging}" if packaging else base

    # Descriptors

    def _fetch_descriptor(self, coordinate: Coordinate) -> Descriptor:
        logger.info("Fetching descriptor for %s", coordinate)
        try:
            pom_url = self.resolve(coordinate, "pom")
        finally:
            prefetched = self.url_resolver.take_prefetched(coordinate)
        if prefetched is not None and prefetched.source == pom_url:
            return prefetched
        text = self.http.fetch_text(pom_url)
        if text is None:
            logger.warning("Descriptor for %s missing at %s", coordinate, pom_url)
            raise NotFoundError(f"No descriptor for {coordinate}", coordinate)
        return Descriptor(pom_url, text)

    def descriptor_future(self, coordinate: Coordinate) -> Future:
        """Start fetching the descriptor of ``coordinate`` without waiting."""
        return self._descriptors.get(self.coordinates.intern_coordinate(coordinate))

    def descriptor(self, coordinate: Coordinate) -> Descriptor:
        """The descriptor of ``coordinate``, fetched at most once per session.

        Raises:
            ResolverError: if the coordinate or its descriptor cannot be found.
        """
        return self._descriptors.result(self.coordinates.intern_coordinate(coordinate))

    def resolve_pom_text(self, coordinate: Coordinate) -> Optional[str]:
        """The descriptor document as text, or None if it cannot be obtained."""
        try:
            return self.descriptor(coordinate).text
        except Exception as exc:  # pylint: disable=broad-exception-caught
            logger.error("Cannot obtain descriptor for %s: %s", coordinate, exc)
            return None

    def register_descriptor(self, text: str, source: str) -> Package:
        """Use a local POM document as the descriptor of its own coordinate.

        Raises:
            MalformedDescriptorError: if the document is not a usable POM.
            UnsupportedVersionError: if its version cannot be determined.
        """
        descriptor = Descriptor(source, text)
        coordinate = project_coordinate(descriptor.root, self.coordinates)
        if not self._descriptors.put(coordinate, descriptor):
            logger.warning("Descriptor for %s already loaded; keeping the existing one", coordinate)
        pkg = self.package(coordinate)
        pkg.name = xml_utils.get_element(descriptor.root, "name")
        return pkg

    # Packages and closures

    def package(self, coordinate: Coordinate, name: Optional[str] = None) -> Package:
        """The session's package object for ``coordinate``."""
        coordinate = self.coordinates.intern_coordinate(coordinate)
        with self._packages_lock:
            pkg = self._packages.get(coordinate)
            if pkg is None:
                pkg = Package(self, coordinate, name)
                self._packages[coordinate] = pkg
            elif name and not pkg.has_name:
                pkg.name = name
            return pkg

    def flatten(self, coordinate: Coordinate) -> FrozenSet[Package]:
        """All transitive packages of ``coordinate``, including itself.

        Raises:
            NotFoundError: if the coordinate itself cannot be resolved.
        """
        return DependencyGraphBuilder(self).flatten(coordinate)

    def flatten_package(self, pkg: Package) -> FrozenSet[Package]:
        """Like ``flatten`` for a package whose descriptor is already loaded."""
        return DependencyGraphBuilder(self).flatten_package(pkg)

    # Lifecycle

    def drop_cache(self) -> None:
        """Clear the persistent cache and forget finished in-memory results."""
        self.persistent.drop_all()
        self._urls.clear()
        self._descriptors.clear()

    def close(self) -> None:
        """Wait for started computations, then release the pool and the default store."""
        self.executor.shutdown(wait=True)
        if self._owns_persistent:
            self.persistent.close()

    def __enter__(self) -> "ResolutionSession":
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()
