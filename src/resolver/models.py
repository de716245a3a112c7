"""Data models for dependency edges and repository lookups."""
from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import FrozenSet, Optional

from common import xml_utils

from .coordinate import Coordinate


class Scope(Enum):
    """Dependency scope, and whether it propagates to dependents."""

    COMPILE = "compile"
    RUNTIME = "runtime"
    PROVIDED = "provided"
    TEST = "test"
    SYSTEM = "system"

    @property
    def transitive(self) -> bool:
        """Whether the scope applies when depending on the package transitively."""
        return self in (Scope.COMPILE, Scope.RUNTIME)

    @classmethod
    def from_text(cls, text: Optional[str]) -> "Scope":
        """Convert a ``<scope>`` value, defaulting to COMPILE when missing or unknown."""
        if text:
            try:
                return cls(text.strip().lower())
            except ValueError:
                pass
        return cls.COMPILE


@dataclass(frozen=True)
class Exclusion:
    """An edge-local (group, artifact) pattern; ``*`` matches anything."""

    group: str
    artifact: str

    def matches(self, coordinate: Coordinate) -> bool:
        """True if ``coordinate`` should be pruned from the edge's contribution."""
        return (
            self.group in ("*", coordinate.group)
            and self.artifact in ("*", coordinate.artifact)
        )


@dataclass(frozen=True)
class DependencyEdge:
    """A declared dependency of one package on another coordinate."""

    target: Coordinate
    scope: Scope = Scope.COMPILE
    exclusions: FrozenSet[Exclusion] = field(default_factory=frozenset)
    optional: bool = False
    name: Optional[str] = None

    def excludes(self, coordinate: Coordinate) -> bool:
        """True if any exclusion on this edge matches ``coordinate``."""
        return any(exclusion.matches(coordinate) for exclusion in self.exclusions)


class LookupStatus(Enum):
    """Outcome kinds for probing a single repository."""

    FOUND = "found"
    NOT_FOUND_HERE = "not_found_here"
    ERROR = "error"


@dataclass(frozen=True)
class RepositoryOutcome:
    """Result of probing one repository for one coordinate."""

    status: LookupStatus
    repository: str
    url: Optional[str] = None
    cause: Optional[BaseException] = None

    @classmethod
    def found(cls, repository: str, url: str) -> "RepositoryOutcome":
        return cls(LookupStatus.FOUND, repository, url=url)

    @classmethod
    def not_found_here(cls, repository: str) -> "RepositoryOutcome":
        return cls(LookupStatus.NOT_FOUND_HERE, repository)

    @classmethod
    def error(cls, repository: str, cause: BaseException) -> "RepositoryOutcome":
        return cls(LookupStatus.ERROR, repository, cause=cause)


class Descriptor:
    """A fetched project descriptor and where it came from.

    The document is parsed on first access to ``root``.
    """

    def __init__(self, source: str, text: str):
        self.source = source
        self.text = text
        self._root = None

    @property
    def root(self):
        """The ``<project>`` element.

        Raises:
            MalformedDescriptorError: if the document is not a POM.
        """
        if self._root is None:
            self._root = xml_utils.root_element(self.text, "project")
        return self._root

    def __repr__(self) -> str:
        return f"Descriptor({self.source!r})"
