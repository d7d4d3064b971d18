"""Shared fixtures: an isolated store plus helpers for packages and projects."""

from __future__ import annotations

import os
from collections.abc import Callable, Iterator
from pathlib import Path
from typing import Any

import orjson
import pytest

from yalc.config import YalcConfig


def write_json(path: Path, data: Any) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(orjson.dumps(data, option=orjson.OPT_INDENT_2) + b"\n")


def read_json(path: Path) -> Any:
    return orjson.loads(path.read_bytes())


FD_LIMIT = 256


@pytest.fixture(autouse=True)
def _isolated_store_env(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("YALC_STORE_DIR", str(tmp_path / "default-store"))


@pytest.fixture
def low_fd_limit() -> Iterator[int]:
    """Lower the soft open-file limit for one test and yield it."""
    resource = pytest.importorskip("resource")
    soft, hard = resource.getrlimit(resource.RLIMIT_NOFILE)
    limit = FD_LIMIT if hard == resource.RLIM_INFINITY else min(FD_LIMIT, hard)
    resource.setrlimit(resource.RLIMIT_NOFILE, (limit, hard))
    try:
        yield limit
    finally:
        resource.setrlimit(resource.RLIMIT_NOFILE, (soft, hard))


@pytest.fixture
def config(tmp_path: Path) -> YalcConfig:
    return YalcConfig(store_dir=tmp_path / "store")


@pytest.fixture
def make_package(tmp_path: Path) -> Callable[..., Path]:
    """Create a source package directory with a manifest and files."""

    def _make(
        name: str,
        version: str = "1.0.0",
        files: dict[str, str] | None = None,
        **manifest: Any,
    ) -> Path:
        pkg_dir = tmp_path / "src" / name.replace("/", "__") / version
        write_json(pkg_dir / "package.json", {"name": name, "version": version, **manifest})
        for rel, content in (files if files is not None else {"index.js": f"module.exports = '{name}'\n"}).items():
            path = pkg_dir / rel
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_text(content)
        return pkg_dir

    return _make


@pytest.fixture
def make_project(tmp_path: Path) -> Callable[..., Path]:
    """Create a consuming project directory with a package.json."""

    def _make(name: str = "app", **manifest: Any) -> Path:
        project_dir = tmp_path / "projects" / name
        write_json(project_dir / "package.json", {"name": name, "version": "0.0.0", **manifest})
        return project_dir

    return _make


def set_mtime(path: Path, seconds: float) -> None:
    os.utime(path, (seconds, seconds))
