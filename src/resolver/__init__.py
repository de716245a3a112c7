"""Maven artifact resolution package.

This package resolves coordinates to repository locations, caches those
locations in memory and on disk, flattens transitive dependency graphs and
verifies local artifacts against published checksums.
"""

from .coordinate import Coordinate, CoordinateRegistry
from .models import DependencyEdge, Exclusion, Scope
from .package import Package
from .session import ResolutionSession
from .update_checker import UpdateChecker

__all__ = [
    "Coordinate",
    "CoordinateRegistry",
    "DependencyEdge",
    "Exclusion",
    "Scope",
    "Package",
    "ResolutionSession",
    "UpdateChecker",
]
