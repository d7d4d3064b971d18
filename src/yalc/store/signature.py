"""Package content signatures.

A signature is an MD5 digest over a package's publishable files:

    file_hash = md5(relative_path + file_bytes)
    signature = md5(concat(file_hash for relative_path in sorted(paths)))

Seeding each file hash with its relative path makes the signature sensitive
to renames as well as content changes.
"""

from __future__ import annotations

import hashlib
import logging
from collections.abc import Iterable
from pathlib import Path

import aiofiles

from yalc.config import SIGNATURE_FILE
from yalc.errors import CopyError
from yalc.store.sync import gather_bounded

logger = logging.getLogger(__name__)

CHUNK_SIZE = 8192
SHORT_SIGNATURE_LENGTH = 8


def normalize_relative_path(relative_path: str) -> str:
    return relative_path.replace("\\", "/")


async def hash_file(path: Path, relative_path: str = "") -> str:
    """Hash a file's content, seeded with its relative path.

    Args:
        path: File to read.
        relative_path: Path relative to the package root.

    Returns:
        Hex-encoded MD5 digest (32 chars).

    Raises:
        CopyError: If the file cannot be read.
    """
    hasher = hashlib.md5(usedforsecurity=False)
    hasher.update(normalize_relative_path(relative_path).encode())
    try:
        async with aiofiles.open(path, "rb") as f:
            while chunk := await f.read(CHUNK_SIZE):
                hasher.update(chunk)
    except OSError as e:
        raise CopyError(path, str(e)) from e
    return hasher.hexdigest()


def combine_hashes(hashes: Iterable[str]) -> str:
    """Fold ordered per-file hashes into one signature."""
    return hashlib.md5("".join(hashes).encode(), usedforsecurity=False).hexdigest()


async def compute_signature(base_dir: Path, relative_paths: Iterable[str]) -> str:
    """Compute the signature of a file set rooted at base_dir.

    Independent of the order relative_paths come in.
    """
    ordered = sorted(normalize_relative_path(p) for p in relative_paths)
    hashes = await gather_bounded(hash_file(base_dir / rel, rel) for rel in ordered)
    return combine_hashes(hashes)


def short_signature(signature: str) -> str:
    return signature[:SHORT_SIGNATURE_LENGTH]


def read_signature(directory: Path) -> str:
    """Read the signature file in directory, or "" when absent."""
    try:
        return (directory / SIGNATURE_FILE).read_text(encoding="utf-8").strip()
    except OSError:
        return ""


def write_signature(directory: Path, signature: str) -> None:
    path = directory / SIGNATURE_FILE
    try:
        path.write_text(signature, encoding="utf-8")
    except OSError:
        logger.error(f"Could not write signature file {path}")
        raise
