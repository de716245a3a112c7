"""Configuration overrides for runtime tunables.

Applied in increasing precedence: YAML config file, environment variables,
CLI flags. Kept out of depresolve.py to keep the entrypoint slim. None of
these functions raise: malformed values are logged and defaults kept.
"""

from __future__ import annotations

import logging
import os
from typing import Any, Dict, Optional

import yaml

from constants import Constants

logger = logging.getLogger(__name__)


def load_config(path: Optional[str]) -> Dict[str, Any]:
    """Load a YAML configuration file.

    Args:
        path: Path to the YAML file; None or empty means no file.

    Returns:
        The mapping found in the file, or an empty dict.
    """
    if not path:
        return {}
    if not os.path.isfile(path):
        logger.warning("Config file not found: %s", path)
        return {}
    try:
        with open(path, "r", encoding="utf-8") as fh:
            data = yaml.safe_load(fh)
    except (OSError, yaml.YAMLError) as exc:
        logger.error("Failed to load config %s: %s", path, exc)
        return {}
    if not isinstance(data, dict):
        logger.warning("Ignoring config %s: top level must be a mapping", path)
        return {}
    return data


def _positive_int(value: Any, key: str) -> Optional[int]:
    try:
        number = int(value)
    except (TypeError, ValueError):
        logger.warning("Ignoring config %s=%r: not an integer", key, value)
        return None
    if number <= 0:
        logger.warning("Ignoring config %s=%r: must be positive", key, value)
        return None
    return number


def apply_config(cfg: Dict[str, Any]) -> None:
    """Apply a loaded configuration mapping onto ``Constants``."""
    repositories = cfg.get("repositories")
    if repositories is not None:
        if isinstance(repositories, list) and all(isinstance(r, str) for r in repositories):
            Constants.DEFAULT_REPOSITORIES = list(repositories)
        else:
            logger.warning("Ignoring config repositories: expected a list of URLs")

    for key, attr in (("local_repository", "LOCAL_REPOSITORY"), ("cache_path", "CACHE_PATH")):
        value = cfg.get(key)
        if value is None:
            continue
        if isinstance(value, str) and value.strip():
            setattr(Constants, attr, os.path.expanduser(value.strip()))
        else:
            logger.warning("Ignoring config %s=%r: expected a path", key, value)

    if cfg.get("cache_ttl_days") is not None:
        days = _positive_int(cfg["cache_ttl_days"], "cache_ttl_days")
        if days is not None:
            Constants.CACHE_TTL_SEC = days * 24 * 60 * 60
    if cfg.get("request_timeout") is not None:
        timeout = _positive_int(cfg["request_timeout"], "request_timeout")
        if timeout is not None:
            Constants.REQUEST_TIMEOUT = timeout
    if cfg.get("max_workers") is not None:
        workers = _positive_int(cfg["max_workers"], "max_workers")
        if workers is not None:
            Constants.MAX_WORKERS = workers


def apply_env_overrides() -> None:
    """Apply ``DEPRESOLVE_LOCAL_REPO`` and ``DEPRESOLVE_CACHE_PATH``."""
    local = os.environ.get(Constants.ENV_LOCAL_REPO)
    if local and local.strip():
        Constants.LOCAL_REPOSITORY = os.path.expanduser(local.strip())
    cache = os.environ.get(Constants.ENV_CACHE_PATH)
    if cache and cache.strip():
        Constants.CACHE_PATH = os.path.expanduser(cache.strip())


def apply_cli_overrides(args) -> None:
    """Apply CLI flags (highest precedence)."""
    if getattr(args, "LOCAL_REPOSITORY", None):
        Constants.LOCAL_REPOSITORY = os.path.expanduser(args.LOCAL_REPOSITORY)
    if getattr(args, "CACHE_PATH", None):
        Constants.CACHE_PATH = os.path.expanduser(args.CACHE_PATH)
    extra = [r for r in (getattr(args, "REPOSITORIES", None) or []) if r not in Constants.DEFAULT_REPOSITORIES]
    if extra:
        Constants.DEFAULT_REPOSITORIES = list(Constants.DEFAULT_REPOSITORIES) + extra


def apply_all(args) -> None:
    """Load ``args.CONFIG`` and apply every override layer in order."""
    apply_config(load_config(getattr(args, "CONFIG", None)))
    apply_env_overrides()
    apply_cli_overrides(args)
