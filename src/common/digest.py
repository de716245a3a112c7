"""Checksum primitives."""
from __future__ import annotations

import hashlib
import os
from typing import Union

from constants import Constants

PathLike = Union[str, os.PathLike]


def _new(algorithm: str):
    # hashlib spells SHA-1 as "sha1"; repository sidecars do the same
    return hashlib.new(algorithm.lower().replace("-", ""))


def digest_bytes(data: bytes, algorithm: str = Constants.ALGORITHM) -> str:
    """Return the lowercase hex digest of ``data``.

    Raises:
        ValueError: for algorithms hashlib does not know.
    """
    hasher = _new(algorithm)
    hasher.update(data)
    return hasher.hexdigest()


def digest_file(path: PathLike, algorithm: str = Constants.ALGORITHM) -> str:
    """Return the lowercase hex digest of the file at ``path``.

    Raises:
        OSError: if the file cannot be read.
        ValueError: for algorithms hashlib does not know.
    """
    hasher = _new(algorithm)
    with open(path, "rb") as handle:
        for chunk in iter(lambda: handle.read(Constants.DOWNLOAD_CHUNK_SIZE), b""):
            hasher.update(chunk)
    return hasher.hexdigest()


def parse_sidecar(text: str) -> str:
    """Extract the digest from a checksum sidecar (``<hex> [filename]``)."""
    return text.strip().split()[0].lower() if text and text.strip() else ""
