"""Resolution of coordinates to base URLs across repositories.

Repositories are tried in priority order and the first one producing a
location wins. Release versions are confirmed by fetching their POM (which is
kept as the descriptor); snapshot versions are expanded through
``maven-metadata.xml``.
"""
from __future__ import annotations

import logging
import threading
from typing import Any, Dict, Iterable, Optional

from common import xml_utils
from common.logging_utils import extra_context, is_debug_enabled, safe_url, Timer
from constants import Constants
from errors import MalformedDescriptorError, NotFoundError, TransientIOError

from .cache import FutureCache
from .coordinate import Coordinate
from .models import Descriptor, LookupStatus, RepositoryOutcome
from .persistent import PersistentCache

logger = logging.getLogger(__name__)


def path_fragment(coordinate: Coordinate) -> str:
    """Return ``/group/as/path/artifact/version/``."""
    return f"/{coordinate.group_path}/{coordinate.artifact}/{coordinate.version}/"


def classifier_suffix(coordinate: Coordinate) -> str:
    """Return ``-classifier``, or an empty string without a classifier."""
    return f"-{coordinate.classifier}" if coordinate.classifier else ""


class UrlResolver:
    """Runs the repository search for one coordinate at a time.

    Args:
        repositories: iterable yielding repository roots in priority order;
            iterated afresh on every resolution.
        http: object exposing ``fetch_text(url) -> Optional[str]``.
        descriptors: descriptor cache, fed with POMs fetched while probing.
        persistent: cache receiving every successful resolution.
    """

    def __init__(self, repositories: Iterable[str], http: Any,
                 descriptors: Optional[FutureCache] = None,
                 persistent: Optional[PersistentCache] = None):
        self._repositories = repositories
        self._http = http
        self._descriptors = descriptors
        self._persistent = persistent
        self._prefetched_lock = threading.Lock()
        self._prefetched: Dict[Coordinate, Descriptor] = {}

    def resolve_base(self, coordinate: Coordinate) -> str:
        """Return the base URL (no extension) for ``coordinate``.

        Raises:
            NotFoundError: if no repository has the artifact.
        """
        logger.info("Resolving URL for %s", coordinate)
        errors = []
        with Timer() as t:
            for repository in self._repositories:
                outcome = self.probe(repository, coordinate)
                if outcome.status is LookupStatus.FOUND:
                    if is_debug_enabled(logger):
                        logger.debug(
                            "Resolved base URL",
                            extra=extra_context(
                                event="resolve", component="url_resolver", action="resolve_base",
                                outcome="found", coordinate=str(coordinate),
                                target=safe_url(outcome.url), duration_ms=t.duration_ms()
                            )
                        )
                    if self._persistent is not None:
                        self._persistent.put(coordinate, outcome.url)
                    return outcome.url
                if outcome.status is LookupStatus.ERROR:
                    errors.append(outcome)
                    logger.warning(
                        "Repository %s failed for %s: %s",
                        safe_url(repository), coordinate, outcome.cause,
                    )

        logger.warning("Unable to resolve %s in any repository", coordinate)
        reason = f" ({len(errors)} repositories failed)" if errors else ""
        raise NotFoundError(f"Unable to resolve {coordinate}{reason}", coordinate)

    def probe(self, repository: str, coordinate: Coordinate) -> RepositoryOutcome:
        """Look for ``coordinate`` in a single repository."""
        base = repository + path_fragment(coordinate)
        try:
            if coordinate.is_snapshot:
                return self._resolve_snapshot(repository, base, coordinate)
            return self._resolve_release(repository, base, coordinate)
        except (TransientIOError, MalformedDescriptorError) as exc:
            return RepositoryOutcome.error(repository, exc)

    def _cached_descriptor(self, coordinate: Coordinate) -> Optional[Descriptor]:
        if self._descriptors is None:
            return None
        future = self._descriptors.peek(coordinate)
        if future is None or not future.done() or future.exception() is not None:
            return None
        return future.result()

    def _resolve_release(self, repository: str, base: str, coordinate: Coordinate) -> RepositoryOutcome:
        candidate = f"{base}{coordinate.artifact}-{coordinate.version}{classifier_suffix(coordinate)}"
        pom_url = candidate + Constants.SUFFIX_POM
        cached = self._cached_descriptor(coordinate)
        if cached is not None and cached.source == pom_url:
            return RepositoryOutcome.found(repository, candidate)

        # Test it with the pom
        pom = self._http.fetch_text(pom_url)
        if pom is None:
            logger.debug("%s not in %s", coordinate, safe_url(repository))
            return RepositoryOutcome.not_found_here(repository)
        self._keep_descriptor(coordinate, Descriptor(pom_url, pom))
        return RepositoryOutcome.found(repository, candidate)

    def _resolve_snapshot(self, repository: str, base: str, coordinate: Coordinate) -> RepositoryOutcome:
        if repository.startswith("file:"):
            # Local repositories keep no snapshot metadata
            return RepositoryOutcome.not_found_here(repository)
        text = self._http.fetch_text(base + Constants.METADATA_FILE)
        if text is None:
            logger.debug("No snapshot metadata for %s in %s", coordinate, safe_url(repository))
            return RepositoryOutcome.not_found_here(repository)

        metadata = xml_utils.root_element(text, "metadata")
        snapshot = xml_utils.last_element(xml_utils.get_elements(metadata, "versioning/snapshot"))
        if snapshot is None:
            logger.debug("No snapshot entry in metadata for %s in %s", coordinate, safe_url(repository))
            return RepositoryOutcome.not_found_here(repository)
        timestamp = xml_utils.get_element(snapshot, "timestamp")
        build_number = xml_utils.get_element(snapshot, "buildNumber")

        version = coordinate.version
        if build_number is not None:
            version = version[: -len(Constants.SUFFIX_SNAPSHOT)]
            if timestamp is not None:
                version += f"-{timestamp}"
            version += f"-{build_number}"
        return RepositoryOutcome.found(
            repository, f"{base}{coordinate.artifact}-{version}{classifier_suffix(coordinate)}"
        )

    def _keep_descriptor(self, coordinate: Coordinate, descriptor: Descriptor) -> None:
        # Cache the pom since we already have it. When a descriptor fetch for
        # this coordinate is already running (and waiting on us), park it for
        # take_prefetched instead.
        if self._descriptors is None or self._descriptors.put(coordinate, descriptor):
            return
        pending = self._descriptors.peek(coordinate)
        if pending is not None and not pending.done():
            with self._prefetched_lock:
                self._prefetched[coordinate] = descriptor

    def take_prefetched(self, coordinate: Coordinate) -> Optional[Descriptor]:
        """Remove and return the POM parked for ``coordinate`` while probing."""
        with self._prefetched_lock:
            return self._prefetched.pop(coordinate, None)
