"""Shared HTTP helpers used by the resolver.

Encapsulates request/timeout/retry handling so resolution code only sees two
outcomes: a document, or a definitive "not found". Transient failures (5xx,
connection errors, timeouts) are retried and then surfaced as
``TransientIOError``. ``file:`` URLs are served straight from disk so the
local repository goes through the same code path as remote ones.
"""
from __future__ import annotations

import logging
import threading
import time
import urllib.parse
import urllib.request
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Any, Dict, Iterator, Optional

import requests

from constants import Constants
from common.logging_utils import extra_context, is_debug_enabled, safe_url, Timer
from errors import NotFoundError, TransientIOError

logger = logging.getLogger(__name__)

_local = threading.local()


@dataclass
class Stream:
    """An open artifact stream."""

    headers: Dict[str, str]
    content_length: Optional[int]
    chunks: Iterator[bytes]


def _session() -> requests.Session:
    """Return the calling thread's session (sessions are not shared across threads)."""
    session = getattr(_local, "session", None)
    if session is None:
        session = requests.Session()
        session.max_redirects = Constants.HTTP_MAX_REDIRECTS
        session.headers.update({"User-Agent": Constants.USER_AGENT})
        _local.session = session
    return session


def is_file_url(url: str) -> bool:
    """Return True for ``file:`` URLs."""
    return url.startswith("file:")


def file_path(url: str) -> str:
    """Convert a ``file:`` URL to a local filesystem path."""
    return urllib.request.url2pathname(urllib.parse.urlsplit(url).path)


def robust_get(url: str, *, stream: bool = False, **kwargs: Any) -> Optional[requests.Response]:
    """Perform a GET with timeouts and retries.

    Returns:
        The response for 2xx/3xx, or None when the server answered 4xx.

    Raises:
        TransientIOError: after ``Constants.HTTP_RETRY_MAX`` failed attempts.
    """
    safe_target = safe_url(url)
    last_exception: Optional[str] = None

    for attempt in range(Constants.HTTP_RETRY_MAX):
        if attempt:
            time.sleep(Constants.HTTP_RETRY_BASE_DELAY_SEC * attempt)
        with Timer() as t:
            try:
                if is_debug_enabled(logger):
                    logger.debug(
                        "HTTP request",
                        extra=extra_context(
                            event="http_request",
                            component="http_client",
                            action="GET",
                            target=safe_target,
                            attempt=attempt + 1
                        )
                    )
                response = _session().get(
                    url,
                    timeout=(Constants.REQUEST_TIMEOUT, Constants.REQUEST_TIMEOUT),
                    stream=stream,
                    **kwargs
                )
            except requests.Timeout:
                last_exception = "timeout"
                logger.debug("HTTP timeout on %s (attempt %d)", safe_target, attempt + 1)
                continue
            except requests.RequestException as exc:  # includes ConnectionError, TooManyRedirects
                last_exception = str(exc)
                logger.debug("HTTP error on %s (attempt %d): %s", safe_target, attempt + 1, exc)
                continue

        if response.status_code >= 500:
            last_exception = f"HTTP {response.status_code}"
            response.close()
            continue

        if is_debug_enabled(logger):
            logger.debug(
                "HTTP response",
                extra=extra_context(
                    event="http_response",
                    component="http_client",
                    action="GET",
                    outcome="success" if response.status_code < 400 else "not_found",
                    status_code=response.status_code,
                    duration_ms=t.duration_ms(),
                    target=safe_target
                )
            )
        if response.status_code >= 400:
            response.close()
            return None
        return response

    raise TransientIOError(
        f"GET {safe_target} failed after {Constants.HTTP_RETRY_MAX} attempts: {last_exception}"
    )


def fetch_text(url: str) -> Optional[str]:
    """Fetch a document as text.

    Returns:
        The document, or None if it does not exist.

    Raises:
        TransientIOError: on network or disk errors other than absence.
    """
    if is_file_url(url):
        path = file_path(url)
        try:
            with open(path, encoding="utf-8") as handle:
                return handle.read()
        except FileNotFoundError:
            return None
        except (IsADirectoryError, NotADirectoryError):
            return None
        except OSError as exc:
            raise TransientIOError(f"Cannot read {path}: {exc}") from exc

    response = robust_get(url)
    if response is None:
        return None
    return response.text


@contextmanager
def open_stream(url: str) -> Iterator[Stream]:
    """Open a binary stream for ``url``.

    Raises:
        NotFoundError: the resource does not exist.
        TransientIOError: on network or disk errors.
    """
    if is_file_url(url):
        path = file_path(url)
        try:
            handle = open(path, "rb")  # pylint: disable=consider-using-with
        except FileNotFoundError as exc:
            raise NotFoundError(f"{path} does not exist") from exc
        except OSError as exc:
            raise TransientIOError(f"Cannot read {path}: {exc}") from exc
        with handle:
            size = None
            try:
                size = int(handle.seek(0, 2))
                handle.seek(0)
            except OSError:
                pass
            yield Stream(
                headers={},
                content_length=size,
                chunks=iter(lambda: handle.read(Constants.DOWNLOAD_CHUNK_SIZE), b""),
            )
        return

    response = robust_get(url, stream=True)
    if response is None:
        raise NotFoundError(f"{safe_url(url)} does not exist")
    try:
        length = response.headers.get("Content-Length")
        yield Stream(
            headers=dict(response.headers),
            content_length=int(length) if length and length.isdigit() else None,
            chunks=response.iter_content(chunk_size=Constants.DOWNLOAD_CHUNK_SIZE),
        )
    except requests.RequestException as exc:
        raise TransientIOError(f"Download of {safe_url(url)} interrupted: {exc}") from exc
    finally:
        response.close()
