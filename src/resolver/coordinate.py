"""Maven coordinates and the registry that interns them."""
from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field
from typing import Dict, Optional

from constants import Constants

logger = logging.getLogger(__name__)

SEPARATOR = ":"


def format_coordinate(group: str, artifact: str, version: str, classifier: Optional[str]) -> str:
    """Join coordinate parts into the canonical ``group:artifact:version:classifier`` form."""
    return SEPARATOR.join((group, artifact, version, classifier or ""))


@dataclass(frozen=True)
class Coordinate:
    """An immutable (group, artifact, version, classifier) tuple.

    Equality and hashing follow the canonical string, so two coordinates built
    outside a registry still compare equal.
    """

    group: str
    artifact: str
    version: str
    classifier: Optional[str] = None
    _canonical: str = field(init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        for name in ("group", "artifact", "version"):
            if not getattr(self, name):
                raise ValueError(f"Coordinate {name} cannot be empty")
        object.__setattr__(
            self, "_canonical",
            format_coordinate(self.group, self.artifact, self.version, self.classifier),
        )

    def __eq__(self, other: object) -> bool:
        if self is other:
            return True
        if not isinstance(other, Coordinate):
            return NotImplemented
        return self._canonical == other._canonical

    def __hash__(self) -> int:
        return hash(self._canonical)

    def __str__(self) -> str:
        return self._canonical

    @property
    def is_snapshot(self) -> bool:
        """True for mutable ``-SNAPSHOT`` versions."""
        return self.version.endswith(Constants.SUFFIX_SNAPSHOT)

    @property
    def group_path(self) -> str:
        """The group with dots turned into path separators."""
        return self.group.replace(".", "/")

    @staticmethod
    def parse(text: str) -> "Coordinate":
        """Parse ``group:artifact:version[:classifier]``.

        Raises:
            ValueError: if fewer than three non-empty parts are present.
        """
        parts = text.strip().split(SEPARATOR)
        if len(parts) not in (3, 4):
            raise ValueError(f"Invalid coordinate '{text}': expected group:artifact:version[:classifier]")
        classifier = parts[3] if len(parts) == 4 and parts[3] else None
        return Coordinate(parts[0], parts[1], parts[2], classifier)


class CoordinateRegistry:
    """Interns coordinates so equal coordinates share one instance."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._table: Dict[str, Coordinate] = {}

    def intern(self, group: str, artifact: str, version: str, classifier: Optional[str] = None) -> Coordinate:
        """Return the shared coordinate for the given parts, creating it on first use."""
        key = format_coordinate(group, artifact, version, classifier)
        with self._lock:
            coordinate = self._table.get(key)
            if coordinate is None:
                logger.debug("New coordinate %s", key)
                coordinate = Coordinate(group, artifact, version, classifier or None)
                self._table[key] = coordinate
            return coordinate

    def intern_coordinate(self, coordinate: Coordinate) -> Coordinate:
        """Return the shared instance equal to ``coordinate``."""
        return self.intern(coordinate.group, coordinate.artifact, coordinate.version, coordinate.classifier)

    def parse(self, text: str) -> Coordinate:
        """Parse and intern ``group:artifact:version[:classifier]``."""
        return self.intern_coordinate(Coordinate.parse(text))

    def __len__(self) -> int:
        with self._lock:
            return len(self._table)
