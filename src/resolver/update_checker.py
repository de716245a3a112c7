"""Integrity checks and downloads of artifacts in the local repository."""
from __future__ import annotations

import logging
import os
from typing import TYPE_CHECKING, List, Optional, Union

from common.digest import digest_file
from common.logging_utils import extra_context, is_debug_enabled, safe_url, Timer
from constants import Constants
from errors import ResolverError

from . import layout
from .coordinate import Coordinate
from .package import Package

if TYPE_CHECKING:
    from .session import ResolutionSession

logger = logging.getLogger(__name__)


class UpdateChecker:
    """Decides which packages need (re)acquisition and fetches them.

    Args:
        session: the resolution session supplying packages and HTTP access.
        algorithm: checksum algorithm used for verification and sidecars.
    """

    def __init__(self, session: "ResolutionSession", algorithm: str = Constants.ALGORITHM):
        self.session = session
        self.algorithm = algorithm.lower()

    # Path helpers

    def download_url(self, pkg: Package) -> str:
        return layout.download_url(pkg.base_url)

    def checksum_url(self, pkg: Package, algorithm: Optional[str] = None) -> str:
        return layout.checksum_url(pkg.base_url, algorithm or self.algorithm)

    def program_directory(self, pkg: Package) -> str:
        return layout.program_directory(self.session.local_root(), pkg.coordinate)

    def file_for(self, pkg: Package) -> str:
        return pkg.local_file()

    def checksum_file(self, pkg: Package, algorithm: Optional[str] = None) -> str:
        return pkg.checksum_file(algorithm or self.algorithm)

    # Verification

    def verify(self, pkg: Package) -> bool:
        """Check the local file of ``pkg`` against its published checksum.

        Never raises: a missing file, a mismatch, an unobtainable checksum or
        an I/O problem all yield False and are logged.
        """
        try:
            path = pkg.local_file()
            if not os.path.isfile(path):
                logger.info("%s is not downloaded", pkg)
                return False
            expected = pkg.checksum(self.algorithm)
            if not expected:
                logger.warning("No %s checksum published for %s", self.algorithm, pkg)
                return False
            actual = digest_file(path, self.algorithm)
        except (ResolverError, OSError, ValueError) as exc:
            logger.error("Cannot verify %s: %s", pkg, exc)
            return False

        verified = actual == expected
        if is_debug_enabled(logger):
            logger.debug(
                "Checksum compared",
                extra=extra_context(
                    event="verify", component="update_checker", action="verify",
                    outcome="match" if verified else "mismatch",
                    coordinate=str(pkg.coordinate), algorithm=self.algorithm
                )
            )
        if not verified:
            logger.warning("Checksum mismatch for %s: expected %s, got %s", pkg, expected, actual)
        return verified

    def get_updates(self, target: Union[Package, Coordinate]) -> List[Package]:
        """Packages in the closure of ``target`` whose local copy fails verification.

        A Package target is flattened as already loaded (see
        ``ResolutionSession.flatten_package``); a coordinate must resolve.

        Raises:
            NotFoundError: if a coordinate ``target`` cannot be resolved.
        """
        if isinstance(target, Package):
            closure = self.session.flatten_package(target)
        else:
            closure = self.session.flatten(target)
        updates = [pkg for pkg in closure if not self.verify(pkg)]
        logger.info("%d of %d packages need updating", len(updates), len(closure))
        return sorted(updates, key=lambda p: str(p.coordinate))

    # Acquisition

    def download(self, pkg: Package) -> str:
        """Stream the artifact of ``pkg`` into the local repository.

        Checksum headers sent with the artifact are associated with the
        package, and the published checksum is written next to the file.

        Returns:
            The local path of the artifact.

        Raises:
            NotFoundError: if the artifact or its location does not exist.
            TransientIOError: on network errors.
            OSError: if the local file cannot be written.
        """
        url = self.download_url(pkg)
        path = pkg.local_file()
        os.makedirs(os.path.dirname(path), exist_ok=True)
        partial = path + ".part"
        logger.info("Downloading %s", safe_url(url))
        with Timer() as t:
            try:
                with self.session.http.open_stream(url) as stream:
                    pkg.associate(stream.headers)
                    pkg.size = stream.content_length or 0
                    pkg.progress = 0
                    with open(partial, "wb") as handle:
                        for chunk in stream.chunks:
                            handle.write(chunk)
                            pkg.progress += len(chunk)
            except BaseException:
                if os.path.exists(partial):
                    os.remove(partial)
                raise
            os.replace(partial, path)
        if not pkg.size:
            pkg.size = pkg.progress

        checksum = pkg.checksum(self.algorithm)
        if checksum:
            with open(pkg.checksum_file(self.algorithm), "w", encoding="utf-8") as handle:
                handle.write(checksum + "\n")
        else:
            logger.warning("No %s checksum available for %s", self.algorithm, pkg)

        if is_debug_enabled(logger):
            logger.debug(
                "Download complete",
                extra=extra_context(
                    event="download", component="update_checker", action="download",
                    outcome="success", coordinate=str(pkg.coordinate),
                    target=safe_url(url), size=pkg.progress, duration_ms=t.duration_ms()
                )
            )
        return path
