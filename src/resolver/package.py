"""Resolved artifact nodes and parsing of their dependency declarations."""
from __future__ import annotations

import logging
import os
import re
import threading
import xml.etree.ElementTree as ET
from typing import TYPE_CHECKING, Dict, List, Mapping, Optional

from common import xml_utils
from common.digest import parse_sidecar
from constants import Constants
from errors import MalformedDependencyError, MalformedDescriptorError, ResolverError, UnsupportedVersionError

from . import layout
from .coordinate import Coordinate, CoordinateRegistry
from .models import DependencyEdge, Descriptor, Exclusion, Scope

if TYPE_CHECKING:
    from .session import ResolutionSession

logger = logging.getLogger(__name__)

RE_PROPERTY = re.compile(r"\$\{(.*?)}")


def inherit(node: ET.Element, name: str) -> Optional[str]:
    """Read ``name`` from ``node``, falling back to its ``<parent>`` (one level only)."""
    value = xml_utils.get_element(node, name)
    if value is not None:
        return value
    parent = xml_utils.last_element(xml_utils.get_elements(node, "parent"))
    if parent is None:
        return None
    return xml_utils.get_element(parent, name)


def project_coordinate(root: ET.Element, registry: CoordinateRegistry) -> Coordinate:
    """Coordinate of a ``<project>`` element, inheriting group/version from its parent.

    Raises:
        MalformedDescriptorError: if groupId or artifactId is missing.
        UnsupportedVersionError: if no version can be determined.
    """
    group = inherit(root, "groupId")
    artifact = xml_utils.get_element(root, "artifactId")
    version = inherit(root, "version")
    if group is None:
        raise MalformedDescriptorError("project groupId cannot be null")
    if artifact is None:
        raise MalformedDescriptorError("project artifactId cannot be null")
    if version is None:
        raise UnsupportedVersionError(f"Null version: {group}:{artifact}")
    return registry.intern(group, artifact, version)


def _check_version(group: str, artifact: str, version: str) -> None:
    if not version:
        raise UnsupportedVersionError(f"Empty version: {group}:{artifact}")
    if "${" in version:
        raise UnsupportedVersionError(f"Unresolved property in version: {group}:{artifact}:{version}")
    if version[:1] in "[(" or version[-1:] in "])":
        raise UnsupportedVersionError(f"Version ranges are not supported: {group}:{artifact}:{version}")


def parse_dependency(node: ET.Element, context: Optional["Package"],
                     registry: CoordinateRegistry) -> DependencyEdge:
    """Build an edge from a ``<dependency>`` element.

    Placeholders are expanded against ``context``, the declaring package.

    Raises:
        MalformedDescriptorError: if groupId or artifactId is missing.
        MalformedDependencyError: if groupId is blank after expansion.
        UnsupportedVersionError: if the version is missing or cannot be used as-is.
    """
    group = inherit(node, "groupId")
    artifact = xml_utils.get_element(node, "artifactId")
    version = inherit(node, "version")
    if group is None:
        raise MalformedDescriptorError("group cannot be null")
    if artifact is None:
        raise MalformedDescriptorError("artifact cannot be null")
    if version is None:
        # TODO: read dependencyManagement/dependencies/dependency/version
        raise UnsupportedVersionError(f"Null version: {group}:{artifact}")
    if context is not None:
        group = context.expand(group.replace("${project.groupId}", context.coordinate.group))
        version = context.expand(version.replace("${project.version}", context.coordinate.version))
        group, version = group.strip(), version.strip()
    if not group:
        raise MalformedDependencyError(f"Empty group after expansion: {artifact}")
    _check_version(group, artifact, version)

    exclusions = set()
    for ex_node in xml_utils.get_elements(node, "exclusions/exclusion"):
        ex_group = xml_utils.get_element(ex_node, "groupId")
        ex_artifact = xml_utils.get_element(ex_node, "artifactId")
        if ex_group is None or ex_artifact is None:
            logger.warning("Ignoring incomplete exclusion on %s:%s", group, artifact)
            continue
        exclusions.add(Exclusion(ex_group, ex_artifact))

    return DependencyEdge(
        target=registry.intern(group, artifact, version),
        scope=Scope.from_text(xml_utils.get_element(node, "scope")),
        exclusions=frozenset(exclusions),
        optional=(xml_utils.get_element(node, "optional") or "").lower() == "true",
        name=xml_utils.get_element(node, "name"),
    )


class Package:
    """A resolvable artifact.

    Packages compare equal by coordinate. The base URL and descriptor are
    resolved lazily through the owning session; checksums are fetched on
    first use and remembered per algorithm.
    """

    def __init__(self, session: "ResolutionSession", coordinate: Coordinate, name: Optional[str] = None):
        self.session = session
        self.coordinate = coordinate
        self._name = name
        self._properties: Optional[Dict[str, str]] = None
        self._checksums: Dict[str, str] = {}
        self._lock = threading.Lock()
        # Download status
        self.progress = 0
        self.size = 0

    @property
    def name(self) -> str:
        """Display name, falling back to the coordinate."""
        return self._name or str(self.coordinate)

    @name.setter
    def name(self, value: Optional[str]) -> None:
        self._name = value

    @property
    def has_name(self) -> bool:
        return bool(self._name)

    @property
    def base_url(self) -> str:
        """Resolved base URL; raises ``NotFoundError`` if unresolvable."""
        return self.session.resolve(self.coordinate)

    def descriptor(self) -> Descriptor:
        """The project descriptor, fetched once per session."""
        return self.session.descriptor(self.coordinate)

    def properties(self) -> Dict[str, str]:
        """The ``<properties>`` of this package's own descriptor."""
        if self._properties is None:
            self._properties = xml_utils.properties(self.descriptor().root)
        return self._properties

    def expand(self, raw: str) -> str:
        """Expand ``${name}`` tokens from this package's properties (one level, no recursion)."""
        if "${" not in raw:
            return raw
        try:
            props = self.properties()
        except ResolverError as exc:
            logger.debug("No properties available for %s: %s", self.coordinate, exc)
            return raw
        return RE_PROPERTY.sub(lambda m: props.get(m.group(1), m.group(0)), raw)

    def dependencies(self, transitive_only: bool = True) -> List[DependencyEdge]:
        """Direct dependency edges declared by the descriptor.

        Optional and non-transitive edges are dropped unless
        ``transitive_only`` is False. Edges that are blank after expansion or
        have unusable versions are logged and skipped.

        Raises:
            MalformedDescriptorError: if the descriptor or an edge is missing required fields.
        """
        root = self.descriptor().root
        edges: List[DependencyEdge] = []
        for node in xml_utils.get_elements(root, "dependencies/dependency"):
            if transitive_only:
                if (xml_utils.get_element(node, "optional") or "").lower() == "true":
                    continue
                if not Scope.from_text(xml_utils.get_element(node, "scope")).transitive:
                    continue
            try:
                edges.append(parse_dependency(node, self, self.session.coordinates))
            except (MalformedDependencyError, UnsupportedVersionError) as exc:
                logger.warning("Skipping dependency of %s: %s", self.coordinate, exc)
        return edges

    def local_file(self) -> str:
        """Where the artifact lives in the local repository."""
        return os.path.join(
            layout.program_directory(self.session.repositories.local_root(), self.coordinate),
            layout.file_name(self.base_url),
        )

    def checksum_file(self, algorithm: str = Constants.ALGORITHM) -> str:
        """Where the checksum sidecar lives in the local repository."""
        return os.path.join(
            layout.program_directory(self.session.repositories.local_root(), self.coordinate),
            layout.checksum_file_name(self.base_url, algorithm),
        )

    def checksum(self, algorithm: str = Constants.ALGORITHM) -> Optional[str]:
        """Published checksum of the artifact, preferring a downloaded sidecar file."""
        algorithm = algorithm.lower()
        with self._lock:
            cached = self._checksums.get(algorithm)
        if cached is not None:
            return cached

        sidecar = self.checksum_file(algorithm)
        if os.path.isfile(sidecar):
            # Avoid network
            with open(sidecar, encoding="utf-8") as handle:
                text = handle.read()
        else:
            text = self.session.http.fetch_text(layout.checksum_url(self.base_url, algorithm))
        value = parse_sidecar(text) if text else None
        if value:
            with self._lock:
                self._checksums.setdefault(algorithm, value)
        return value

    def associate(self, headers: Mapping[str, str]) -> None:
        """Remember ``X-Checksum-<algorithm>`` headers from an artifact response."""
        prefix = Constants.CHECKSUM_HEADER_PREFIX
        for key, value in headers.items():
            key = str(key).lower()
            if key.startswith(prefix) and value:
                algorithm = key[len(prefix):]
                logger.debug("Associating %s checksum with %s", algorithm, self)
                with self._lock:
                    self._checksums[algorithm] = str(value).strip().lower()

    def __eq__(self, other: object) -> bool:
        if self is other:
            return True
        if not isinstance(other, Package):
            return NotImplemented
        return self.coordinate == other.coordinate

    def __hash__(self) -> int:
        return hash(self.coordinate)

    def __str__(self) -> str:
        return self.name

    def __repr__(self) -> str:
        return f"Package({self.coordinate})"
