"""Directory copy helpers.

copy_dir_safe mirrors a source tree into a destination, rewriting only the
files whose content differs, and deletes destination files the source no
longer has. Nested node_modules folders in the destination are left alone.
"""

from __future__ import annotations

import asyncio
import logging
import os
import shutil
from collections.abc import Awaitable, Iterable
from pathlib import Path
from typing import TypeVar

import aiofiles

from yalc.config import MODULES_FOLDER
from yalc.errors import CopyError

logger = logging.getLogger(__name__)

CHUNK_SIZE = 64 * 1024
# Upper bound on files streamed at once; each copy holds two descriptors.
MAX_OPEN_FILES = 64

T = TypeVar("T")


def list_files(root: Path, *, skip_modules: bool = False) -> list[str]:
    """List files under root as sorted forward-slash relative paths."""
    if not root.is_dir():
        return []
    files: list[str] = []
    for dirpath, dirnames, filenames in os.walk(root):
        if skip_modules and MODULES_FOLDER in dirnames:
            dirnames.remove(MODULES_FOLDER)
        base = Path(dirpath)
        for filename in filenames:
            files.append((base / filename).relative_to(root).as_posix())
    return sorted(files)


def remove_path(path: Path) -> None:
    """Remove a file, symlink or directory tree if it exists.

    Raises:
        CopyError: If the path cannot be removed.
    """
    try:
        if path.is_symlink() or path.is_file():
            path.unlink()
        elif path.is_dir():
            shutil.rmtree(path)
    except OSError as e:
        raise CopyError(path, str(e)) from e


async def gather_bounded(aws: Iterable[Awaitable[T]], limit: int = MAX_OPEN_FILES) -> list[T]:
    """Await aws concurrently, at most limit at a time. Results keep input order."""
    semaphore = asyncio.Semaphore(limit)

    async def bounded(aw: Awaitable[T]) -> T:
        async with semaphore:
            return await aw

    return list(await asyncio.gather(*(bounded(aw) for aw in aws)))


async def copy_file(src: Path, dest: Path) -> None:
    """Stream src into dest, creating parent directories and keeping the mode."""
    try:
        dest.parent.mkdir(parents=True, exist_ok=True)
        if dest.is_symlink():
            dest.unlink()
        async with aiofiles.open(src, "rb") as reader, aiofiles.open(dest, "wb") as writer:
            while chunk := await reader.read(CHUNK_SIZE):
                await writer.write(chunk)
        shutil.copymode(src, dest)
    except OSError as e:
        raise CopyError(src, str(e)) from e


async def files_equal(a: Path, b: Path) -> bool:
    """Compare two files by size, then by streamed content."""
    try:
        if a.stat().st_size != b.stat().st_size:
            return False
        async with aiofiles.open(a, "rb") as fa, aiofiles.open(b, "rb") as fb:
            while True:
                chunk_a = await fa.read(CHUNK_SIZE)
                chunk_b = await fb.read(CHUNK_SIZE)
                if chunk_a != chunk_b:
                    return False
                if not chunk_a:
                    return True
    except OSError:
        return False


async def copy_dir_safe(src_dir: Path, dest_dir: Path, compare_content: bool = True) -> int:
    """Mirror src_dir into dest_dir.

    Args:
        src_dir: Source directory.
        dest_dir: Destination directory (created if missing).
        compare_content: When False, every file is rewritten.

    Returns:
        Number of files written.

    Raises:
        CopyError: If a file cannot be copied.
    """
    src_files = list_files(src_dir)
    dest_files = set(list_files(dest_dir, skip_modules=True))
    src_set = set(src_files)

    for rel in sorted(dest_files - src_set):
        try:
            (dest_dir / rel).unlink()
        except OSError as e:
            raise CopyError(dest_dir / rel, str(e)) from e
    _prune_empty_dirs(dest_dir)

    async def sync_one(rel: str) -> bool:
        src = src_dir / rel
        dest = dest_dir / rel
        if compare_content and rel in dest_files and await files_equal(src, dest):
            return False
        await copy_file(src, dest)
        return True

    try:
        dest_dir.mkdir(parents=True, exist_ok=True)
    except OSError as e:
        raise CopyError(dest_dir, str(e)) from e
    written = await gather_bounded(sync_one(rel) for rel in src_files)
    return sum(written)


def _prune_empty_dirs(root: Path) -> None:
    if not root.is_dir():
        return
    for dirpath, _dirnames, _filenames in os.walk(root, topdown=False):
        path = Path(dirpath)
        if path == root or MODULES_FOLDER in path.relative_to(root).parts:
            continue
        try:
            if not any(path.iterdir()):
                path.rmdir()
        except OSError as e:
            raise CopyError(path, str(e)) from e
