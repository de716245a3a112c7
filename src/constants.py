"""Constants used in the project."""

import os
from enum import Enum


class ExitCodes(Enum):
    """Exit codes for the program.

    Args:
        Enum (int): Exit codes for the program.
    """

    SUCCESS = 0
    FILE_ERROR = 1
    CONNECTION_ERROR = 2
    EXIT_WARNINGS = 3
    NOT_FOUND = 4


class Actions(Enum):
    """Actions supported by the command line entry point.

    Args:
        Enum (string): Actions supported by the program.
    """

    RESOLVE = "resolve"
    DEPS = "deps"
    UPDATES = "updates"
    FETCH = "fetch"


class Constants:  # pylint: disable=too-few-public-methods
    """General constants used in the project.
    Data holder for configuration constants; not intended to provide behavior.
    """

    SUPPORTED_ACTIONS = [action.value for action in Actions]
    DEFAULT_REPOSITORIES = [
        "https://repo.maven.apache.org/maven2",
        "https://oss.jfrog.org/oss-snapshot-local",
        "https://repository.jetbrains.com/all",
    ]
    POM_XML_FILE = "pom.xml"
    METADATA_FILE = "maven-metadata.xml"
    SUFFIX_POM = ".pom"
    SUFFIX_JAR = ".jar"
    SUFFIX_SNAPSHOT = "-SNAPSHOT"
    ALGORITHM = "sha1"
    CHECKSUM_HEADER_PREFIX = "x-checksum-"
    LOG_FORMAT = "[%(levelname)s] %(message)s"
    USER_AGENT = "depresolve/1.0"

    REQUEST_TIMEOUT = 10  # Connect and read timeout in seconds
    HTTP_RETRY_MAX = 2
    HTTP_RETRY_BASE_DELAY_SEC = 0.3
    HTTP_MAX_REDIRECTS = 5
    DOWNLOAD_CHUNK_SIZE = 64 * 1024

    MAX_WORKERS = 16
    CACHE_TTL_SEC = 7 * 24 * 60 * 60
    CACHE_PATH = os.path.join(os.path.expanduser("~"), ".cache", "depresolve", "cache.sqlite3")
    # None means "<application dir>/bin", see resolver.repositories.default_local_root
    LOCAL_REPOSITORY = None

    ENV_LOCAL_REPO = "DEPRESOLVE_LOCAL_REPO"
    ENV_CACHE_PATH = "DEPRESOLVE_CACHE_PATH"
