"""Hashing helpers for content addressing.

Addresses have the form ``sha256:<hex>``; the bare hex digest is accepted
wherever an address is read.
"""

from __future__ import annotations

import hashlib
from pathlib import Path

ADDRESS_PREFIX = "sha256:"
_CHUNK_SIZE = 1024 * 1024


def sha256_file(path: Path) -> str:
    """Return the SHA-256 hex digest of a file, read in chunks."""
    digest = hashlib.sha256()
    with Path(path).open("rb") as fh:
        for chunk in iter(lambda: fh.read(_CHUNK_SIZE), b""):
            digest.update(chunk)
    return digest.hexdigest()


def to_address(hex_digest: str) -> str:
    """Turn a hex digest into a content address."""
    return f"{ADDRESS_PREFIX}{hex_digest}"


def extract_digest(content_address: str) -> str:
    """Strip the ``sha256:`` prefix from a content address, if present."""
    return content_address.removeprefix(ADDRESS_PREFIX)
