"""Checksum helpers for release artifacts and audit fingerprints."""

from __future__ import annotations

import hashlib
from pathlib import Path

_CHUNK = 1024 * 1024


def sha256_hex(data: bytes) -> str:
    """Return the SHA-256 hex digest of raw bytes."""
    return hashlib.sha256(data).hexdigest()


def sha256_file(path: Path) -> str:
    """SHA-256 hex digest of a file, streamed in 1 MiB chunks."""
    digest = hashlib.sha256()
    with Path(path).open("rb") as fh:
        for chunk in iter(lambda: fh.read(_CHUNK), b""):
            digest.update(chunk)
    return digest.hexdigest()


def sha256_file_or_empty(path: Path) -> str:
    """Digest of *path*, or ``""`` when it does not exist."""
    path = Path(path)
    return sha256_file(path) if path.is_file() else ""


def format_checksum_line(digest: str, filename: str) -> str:
    """A ``sha256sum``-compatible line: ``<hex>  <filename>``."""
    return f"{digest}  {filename}\n"


def parse_checksum_line(line: str) -> tuple[str, str]:
    """Inverse of ``format_checksum_line``; returns ``(digest, filename)``."""
    digest, _, filename = line.strip().partition("  ")
    if not digest or not filename:
        raise ValueError(f"Malformed checksum line: {line!r}")
    return digest, filename.lstrip("*")
