"""Tests for configuration layering (YAML, environment, CLI)."""

from types import SimpleNamespace

import pytest

import cli_config
from constants import Constants


@pytest.fixture(autouse=True)
def restore_constants(monkeypatch):
    """Let each test mutate Constants freely."""
    for attr in ("DEFAULT_REPOSITORIES", "LOCAL_REPOSITORY", "CACHE_PATH", "CACHE_TTL_SEC",
                 "REQUEST_TIMEOUT", "MAX_WORKERS"):
        monkeypatch.setattr(Constants, attr, getattr(Constants, attr))
    monkeypatch.delenv(Constants.ENV_LOCAL_REPO, raising=False)
    monkeypatch.delenv(Constants.ENV_CACHE_PATH, raising=False)


def args(**kwargs):
    defaults = {"CONFIG": None, "LOCAL_REPOSITORY": None, "CACHE_PATH": None, "REPOSITORIES": []}
    defaults.update(kwargs)
    return SimpleNamespace(**defaults)


class TestLoadConfig:
    """YAML loading never raises."""

    def test_loads_mapping(self, tmp_path):
        path = tmp_path / "depresolve.yml"
        path.write_text("repositories:\n  - https://a.test/repo\nmax_workers: 3\n", encoding="utf-8")
        assert cli_config.load_config(str(path)) == {
            "repositories": ["https://a.test/repo"], "max_workers": 3,
        }

    def test_missing_file(self, tmp_path):
        assert cli_config.load_config(str(tmp_path / "nope.yml")) == {}

    def test_invalid_yaml(self, tmp_path):
        path = tmp_path / "bad.yml"
        path.write_text("repositories: [unclosed\n", encoding="utf-8")
        assert cli_config.load_config(str(path)) == {}

    def test_non_mapping(self, tmp_path):
        path = tmp_path / "list.yml"
        path.write_text("- a\n- b\n", encoding="utf-8")
        assert cli_config.load_config(str(path)) == {}

    def test_no_path(self):
        assert cli_config.load_config(None) == {}


class TestApplyConfig:
    """Values land on Constants; bad values keep defaults."""

    def test_valid_values(self):
        cli_config.apply_config({
            "repositories": ["https://a.test/repo"],
            "local_repository": "/tmp/local",
            "cache_path": "/tmp/cache.sqlite3",
            "cache_ttl_days": 2,
            "request_timeout": "30",
            "max_workers": 4,
        })
        assert Constants.DEFAULT_REPOSITORIES == ["https://a.test/repo"]
        assert Constants.LOCAL_REPOSITORY == "/tmp/local"
        assert Constants.CACHE_PATH == "/tmp/cache.sqlite3"
        assert Constants.CACHE_TTL_SEC == 2 * 24 * 60 * 60
        assert Constants.REQUEST_TIMEOUT == 30
        assert Constants.MAX_WORKERS == 4

    def test_invalid_values_are_ignored(self):
        before = (list(Constants.DEFAULT_REPOSITORIES), Constants.CACHE_TTL_SEC,
                  Constants.REQUEST_TIMEOUT, Constants.MAX_WORKERS, Constants.CACHE_PATH)
        cli_config.apply_config({
            "repositories": "https://not-a-list.test",
            "cache_ttl_days": "soon",
            "request_timeout": -1,
            "max_workers": 0,
            "cache_path": 42,
        })
        after = (Constants.DEFAULT_REPOSITORIES, Constants.CACHE_TTL_SEC,
                 Constants.REQUEST_TIMEOUT, Constants.MAX_WORKERS, Constants.CACHE_PATH)
        assert after == before


class TestPrecedence:
    """CLI beats environment beats file."""

    def test_env_overrides_file(self, tmp_path, monkeypatch):
        path = tmp_path / "cfg.yml"
        path.write_text("local_repository: /from/file\ncache_path: /from/file.db\n", encoding="utf-8")
        monkeypatch.setenv(Constants.ENV_LOCAL_REPO, "/from/env")
        cli_config.apply_all(args(CONFIG=str(path)))
        assert Constants.LOCAL_REPOSITORY == "/from/env"
        assert Constants.CACHE_PATH == "/from/file.db"

    def test_cli_overrides_env(self, monkeypatch):
        monkeypatch.setenv(Constants.ENV_CACHE_PATH, "/from/env.db")
        cli_config.apply_all(args(CACHE_PATH="/from/cli.db", LOCAL_REPOSITORY="/from/cli"))
        assert Constants.CACHE_PATH == "/from/cli.db"
        assert Constants.LOCAL_REPOSITORY == "/from/cli"

    def test_cli_repositories_are_appended_once(self):
        Constants.DEFAULT_REPOSITORIES = ["https://a.test/repo"]
        cli_config.apply_cli_overrides(args(REPOSITORIES=["https://b.test/repo", "https://a.test/repo"]))
        assert Constants.DEFAULT_REPOSITORIES == ["https://a.test/repo", "https://b.test/repo"]
