"""SHA-256 digests of files."""

from __future__ import annotations

import hashlib
import os

_CHUNK_SIZE = 65536


def hash_file(path: str | os.PathLike[str]) -> str:
    """Return the hexadecimal SHA-256 digest of the file at ``path``."""
    digest = hashlib.sha256()
    with open(path, "rb") as handle:
        for chunk in iter(lambda: handle.read(_CHUNK_SIZE), b""):
            digest.update(chunk)
    return digest.hexdigest()