"""Shared fixtures: an in-memory HTTP double and POM builders."""

import threading
import time
from contextlib import contextmanager

import pytest

from common.http_client import Stream
from common.kv_store import KeyValueStore
from errors import NotFoundError
from resolver.persistent import PersistentCache
from resolver.session import ResolutionSession

REPO = "https://repo.test/maven2"


class FakeHttp:
    """Serves documents from a dict and counts requests per URL."""

    def __init__(self, delay=0.0):
        self.documents = {}
        self.binaries = {}
        self.headers = {}
        self.errors = {}
        self.delay = delay
        self.requests = []
        self._lock = threading.Lock()

    def count(self, url):
        with self._lock:
            return self.requests.count(url)

    def _record(self, url):
        with self._lock:
            self.requests.append(url)
        if self.delay:
            time.sleep(self.delay)
        error = self.errors.get(url)
        if error is not None:
            raise error

    def fetch_text(self, url):
        self._record(url)
        return self.documents.get(url)

    @contextmanager
    def open_stream(self, url):
        self._record(url)
        if url not in self.binaries:
            raise NotFoundError(f"{url} does not exist")
        data = self.binaries[url]
        yield Stream(
            headers=dict(self.headers.get(url, {})),
            content_length=len(data),
            chunks=iter([data[:3], data[3:]]),
        )


def base_url(group, artifact, version, repo=REPO, classifier=None):
    """Release base URL in ``repo``."""
    suffix = f"-{classifier}" if classifier else ""
    return f"{repo}/{group.replace('.', '/')}/{artifact}/{version}/{artifact}-{version}{suffix}"


def dependency_xml(group, artifact, version=None, scope=None, optional=False, exclusions=(), name=None):
    """A ``<dependency>`` element."""
    parts = [f"<groupId>{group}</groupId>", f"<artifactId>{artifact}</artifactId>"]
    if version is not None:
        parts.append(f"<version>{version}</version>")
    if scope:
        parts.append(f"<scope>{scope}</scope>")
    if optional:
        parts.append("<optional>true</optional>")
    if name:
        parts.append(f"<name>{name}</name>")
    if exclusions:
        parts.append("<exclusions>")
        for ex_group, ex_artifact in exclusions:
            parts.append(
                f"<exclusion><groupId>{ex_group}</groupId><artifactId>{ex_artifact}</artifactId></exclusion>"
            )
        parts.append("</exclusions>")
    return "<dependency>" + "".join(parts) + "</dependency>"


def pom_xml(group, artifact, version, dependencies=(), properties=None, parent=None, name=None):
    """A namespaced POM document."""
    parts = ['<project xmlns="http://maven.apache.org/POM/4.0.0">']
    if parent:
        parts.append(
            f"<parent><groupId>{parent[0]}</groupId><artifactId>{parent[1]}</artifactId>"
            f"<version>{parent[2]}</version></parent>"
        )
    if group:
        parts.append(f"<groupId>{group}</groupId>")
    parts.append(f"<artifactId>{artifact}</artifactId>")
    if version:
        parts.append(f"<version>{version}</version>")
    if name:
        parts.append(f"<name>{name}</name>")
    if properties:
        parts.append("<properties>")
        parts.extend(f"<{k}>{v}</{k}>" for k, v in properties.items())
        parts.append("</properties>")
    if dependencies:
        parts.append("<dependencies>" + "".join(dependencies) + "</dependencies>")
    parts.append("</project>")
    return "".join(parts)


def publish(http, group, artifact, version, dependencies=(), properties=None, repo=REPO):
    """Serve a release POM from ``repo`` and return its base URL."""
    base = base_url(group, artifact, version, repo)
    http.documents[base + ".pom"] = pom_xml(group, artifact, version, dependencies, properties)
    return base


class Clock:
    """Settable clock for TTL tests."""

    def __init__(self, now=1_700_000_000.0):
        self.now = now

    def __call__(self):
        return self.now


@pytest.fixture
def http():
    return FakeHttp()


@pytest.fixture
def clock():
    return Clock()


@pytest.fixture
def persistent(tmp_path, clock):
    cache = PersistentCache(KeyValueStore(tmp_path / "cache.sqlite3"), clock=clock)
    yield cache
    cache.close()


@pytest.fixture
def session(tmp_path, http, persistent):
    with ResolutionSession(
        repositories=[REPO],
        local_root=tmp_path / "local",
        persistent=persistent,
        http=http,
        max_workers=4,
    ) as s:
        yield s
