"""Local and remote path conventions for artifacts."""
from __future__ import annotations

import os
import posixpath

from constants import Constants

from .coordinate import Coordinate


def download_url(base_url: str, extension: str = Constants.SUFFIX_JAR) -> str:
    """URL of the artifact file for a resolved base URL."""
    return base_url + extension


def checksum_url(base_url: str, algorithm: str, extension: str = Constants.SUFFIX_JAR) -> str:
    """URL of the published checksum sidecar for the artifact."""
    return f"{download_url(base_url, extension)}.{algorithm.lower()}"


def program_directory(local_root: str, coordinate: Coordinate) -> str:
    """Local directory holding the artifact: ``local/group/path/artifact/version``."""
    return os.path.join(local_root, *coordinate.group.split("."), coordinate.artifact, coordinate.version)


def file_name(base_url: str, extension: str = Constants.SUFFIX_JAR) -> str:
    """Last path segment of the artifact URL."""
    return posixpath.basename(download_url(base_url, extension))


def checksum_file_name(base_url: str, algorithm: str, extension: str = Constants.SUFFIX_JAR) -> str:
    """Last path segment of the checksum sidecar URL."""
    return posixpath.basename(checksum_url(base_url, algorithm, extension))
