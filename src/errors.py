"""Error taxonomy for coordinate resolution.

Every failure raised by the resolver derives from ``ResolverError`` so callers
can decide between "skip this edge" and "abort" without matching on builtin
exception types.
"""
from __future__ import annotations

from typing import Optional


class ResolverError(Exception):
    """Base class for resolution failures."""

    def __init__(self, message: str, coordinate: Optional[object] = None):
        super().__init__(message)
        self.coordinate = coordinate


class NotFoundError(ResolverError):
    """No repository yields a usable location for a coordinate."""


class MalformedDescriptorError(ResolverError):
    """A project descriptor is missing required fields or cannot be parsed."""


class MalformedDependencyError(MalformedDescriptorError):
    """A single dependency declaration is unusable once its placeholders are expanded."""


class UnsupportedVersionError(ResolverError):
    """The version needs dependency management or range resolution."""


class TransientIOError(ResolverError):
    """Network or I/O failure that may succeed on a later attempt."""


class PersistenceError(ResolverError):
    """The durable cache could not be read or written."""
