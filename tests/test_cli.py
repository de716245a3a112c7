"""End-to-end CLI tests against a file-based repository."""

import hashlib
import json
import logging

import pytest

from args import parse_args
from conftest import dependency_xml as dep, pom_xml
from constants import Constants, ExitCodes
from depresolve import main

G = "org.example"
JAR = b"lib jar bytes"


@pytest.fixture(autouse=True)
def isolated(monkeypatch):
    """Restore global state touched by main()."""
    for attr in ("DEFAULT_REPOSITORIES", "LOCAL_REPOSITORY", "CACHE_PATH", "CACHE_TTL_SEC",
                 "REQUEST_TIMEOUT", "MAX_WORKERS"):
        monkeypatch.setattr(Constants, attr, getattr(Constants, attr))
    monkeypatch.setattr(Constants, "DEFAULT_REPOSITORIES", [])
    monkeypatch.setenv("DEPRESOLVE_LOG_LEVEL", "INFO")
    monkeypatch.delenv(Constants.ENV_LOCAL_REPO, raising=False)
    monkeypatch.delenv(Constants.ENV_CACHE_PATH, raising=False)
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    yield
    root.handlers[:] = handlers
    root.setLevel(level)


def artifact_dir(repo, artifact, version):
    path = repo / "org" / "example" / artifact / version
    path.mkdir(parents=True, exist_ok=True)
    return path


@pytest.fixture
def repo(tmp_path):
    """A file: repository holding app -> lib."""
    root = tmp_path / "repo"
    app = artifact_dir(root, "app", "1.0")
    (app / "app-1.0.pom").write_text(pom_xml(G, "app", "1.0", [dep(G, "lib", "1.0")]), encoding="utf-8")
    (app / "app-1.0.jar").write_bytes(b"app jar")
    (app / "app-1.0.jar.sha1").write_text(hashlib.sha1(b"app jar").hexdigest(), encoding="utf-8")
    lib = artifact_dir(root, "lib", "1.0")
    (lib / "lib-1.0.pom").write_text(pom_xml(G, "lib", "1.0"), encoding="utf-8")
    (lib / "lib-1.0.jar").write_bytes(JAR)
    (lib / "lib-1.0.jar.sha1").write_text(hashlib.sha1(JAR).hexdigest() + "  lib-1.0.jar", encoding="utf-8")
    return root


def run(tmp_path, repo, *extra):
    """Run main() and return (exit code, JSON output)."""
    out = tmp_path / "out.json"
    argv = [
        "-r", repo.as_uri(),
        "--local", str(tmp_path / "local"),
        "--cache", str(tmp_path / "cache.sqlite3"),
        "-o", str(out),
        "-q",
        *extra,
    ]
    with pytest.raises(SystemExit) as exc_info:
        main(argv)
    data = json.loads(out.read_text(encoding="utf-8")) if out.exists() else None
    return exc_info.value.code, data


class TestArgs:
    """Argument parsing."""

    def test_defaults(self):
        args = parse_args(["-p", "g:a:1"])
        assert args.PACKAGES == ["g:a:1"]
        assert args.ACTION == "resolve"
        assert args.REPOSITORIES == []
        assert not args.DROP_CACHE

    def test_package_and_pom_are_exclusive(self):
        with pytest.raises(SystemExit):
            parse_args(["-p", "g:a:1", "--pom", "pom.xml"])

    def test_unknown_action(self):
        with pytest.raises(SystemExit):
            parse_args(["-p", "g:a:1", "-a", "install"])


class TestMain:
    """Actions end to end."""

    def test_resolve(self, tmp_path, repo):
        code, data = run(tmp_path, repo, "-p", "org.example:app:1.0")
        assert code == ExitCodes.SUCCESS.value
        assert data[0]["url"] == repo.as_uri() + "/org/example/app/1.0/app-1.0"

    def test_deps(self, tmp_path, repo):
        code, data = run(tmp_path, repo, "-p", "org.example:app:1.0", "-a", "deps")
        assert code == ExitCodes.SUCCESS.value
        assert [d["coordinate"] for d in data[0]["dependencies"]] == ["org.example:lib:1.0:"]

    def test_fetch_then_nothing_to_update(self, tmp_path, repo):
        code, data = run(tmp_path, repo, "-p", "org.example:app:1.0", "-a", "fetch")
        assert code == ExitCodes.SUCCESS.value
        assert len(data[0]["downloaded"]) == 2
        local_jar = tmp_path / "local" / "org" / "example" / "lib" / "1.0" / "lib-1.0.jar"
        assert local_jar.read_bytes() == JAR

        code, data = run(tmp_path, repo, "-p", "org.example:app:1.0", "-a", "updates")
        assert code == ExitCodes.SUCCESS.value
        assert data[0]["updates"] == []

    def test_pom_input(self, tmp_path, repo):
        project = tmp_path / "project"
        project.mkdir()
        (project / "pom.xml").write_text(
            pom_xml(None, "local-app", None, [dep(G, "lib", "1.0")], parent=(G, "parent", "5")),
            encoding="utf-8",
        )
        code, data = run(tmp_path, repo, "--pom", str(project), "-a", "deps")
        assert code == ExitCodes.SUCCESS.value
        assert data[0]["coordinate"] == "org.example:local-app:5:"
        assert [d["artifactId"] for d in data[0]["dependencies"]] == ["lib"]

    def test_missing_package(self, tmp_path, repo):
        code, data = run(tmp_path, repo, "-p", "org.example:missing:1.0")
        assert code == ExitCodes.NOT_FOUND.value
        assert data == []

    def test_invalid_coordinate(self, tmp_path, repo):
        code, _ = run(tmp_path, repo, "-p", "not-a-coordinate")
        assert code == ExitCodes.EXIT_WARNINGS.value

    def test_unreadable_pom(self, tmp_path, repo):
        code, _ = run(tmp_path, repo, "--pom", str(tmp_path / "absent.xml"))
        assert code == ExitCodes.FILE_ERROR.value

    def test_drop_cache_alone(self, tmp_path, repo):
        code, _ = run(tmp_path, repo, "--drop-cache")
        assert code == ExitCodes.SUCCESS.value
