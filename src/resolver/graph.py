"""Transitive dependency closure of a package.

Each top-level request gets its own closure cache, so per-request memo state
is released with the builder. Descriptors of all direct targets are requested
up front so they download in parallel on the session's pool, while the walk
itself stays in the calling thread; a dependency cycle therefore shows up as
re-entry into a pending slot of that thread and contributes nothing.
"""
from __future__ import annotations

import logging
from typing import TYPE_CHECKING, FrozenSet, List, Set

from common.logging_utils import extra_context, is_debug_enabled, Timer
from errors import NotFoundError

from .cache import CycleError, FutureCache
from .coordinate import Coordinate
from .models import DependencyEdge

if TYPE_CHECKING:
    from .package import Package
    from .session import ResolutionSession

logger = logging.getLogger(__name__)


class DependencyGraphBuilder:
    """Builds flattened closures for one top-level request."""

    def __init__(self, session: "ResolutionSession"):
        self.session = session
        self._closures: FutureCache[Coordinate, FrozenSet["Package"]] = FutureCache(
            self._closure, executor=None, name="closure cache"
        )

    def flatten(self, coordinate: Coordinate) -> FrozenSet["Package"]:
        """Closure of ``coordinate``, itself included.

        Raises:
            NotFoundError: if ``coordinate`` resolves to no base location.
        """
        coordinate = self.session.coordinates.intern_coordinate(coordinate)
        self.session.resolve(coordinate)
        return self._walk(coordinate)

    def flatten_package(self, pkg: "Package") -> FrozenSet["Package"]:
        """Closure of a package whose own location need not be resolvable.

        Used for local project descriptors registered with the session.
        """
        return self._walk(pkg.coordinate)

    def _walk(self, coordinate: Coordinate) -> FrozenSet["Package"]:
        with Timer() as t:
            result = self._closures.result(coordinate)
        logger.info("Flattened %s: %d packages", coordinate, len(result))
        if is_debug_enabled(logger):
            logger.debug(
                "Closure complete",
                extra=extra_context(
                    event="flatten", component="graph", action="flatten", outcome="done",
                    coordinate=str(coordinate), count=len(result), duration_ms=t.duration_ms()
                )
            )
        return result

    def _edges(self, pkg: "Package") -> List[DependencyEdge]:
        try:
            return pkg.dependencies()
        except Exception as exc:  # pylint: disable=broad-exception-caught
            logger.warning("Cannot read dependencies of %s: %s", pkg.coordinate, exc)
            return []

    def _closure(self, coordinate: Coordinate) -> FrozenSet["Package"]:
        pkg = self.session.package(coordinate)
        result: Set["Package"] = {pkg}
        edges = self._edges(pkg)

        # Start every direct descriptor download before descending
        for edge in edges:
            self.session.descriptor_future(edge.target)

        for edge in edges:
            target = self.session.package(edge.target, edge.name)
            try:
                self.session.resolve(edge.target)
                contribution = self._closures.result(edge.target)
            except CycleError:
                logger.debug("Dependency cycle through %s from %s", edge.target, coordinate)
                continue
            except NotFoundError as exc:
                logger.warning("Dropping dependency %s of %s: %s", target, coordinate, exc)
                continue
            except Exception as exc:  # pylint: disable=broad-exception-caught
                logger.warning("Dependency %s of %s failed: %s", target, coordinate, exc)
                continue
            result.update(
                p for p in contribution
                if p.coordinate == edge.target or not edge.excludes(p.coordinate)
            )
        return frozenset(result)
