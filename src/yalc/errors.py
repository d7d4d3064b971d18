"""Exception hierarchy for yalc operations.

Recoverable conditions (a single missing store entry or vendor copy) are
raised as StoreNotFoundError and turned into logged skips by the add
orchestrator. Everything else propagates to the caller.
"""

from __future__ import annotations

from pathlib import Path


class YalcError(Exception):
    """Base exception for yalc operations."""


class StoreNotFoundError(YalcError):
    """Raised when a package or version is missing from the store."""

    def __init__(self, name: str, path: Path) -> None:
        self.name = name
        self.path = path
        super().__init__(f"Could not find package `{name}` in store ({path})")


class MissingProjectManifestError(YalcError):
    """Raised when the working project has no readable package.json."""

    def __init__(self, working_dir: Path) -> None:
        self.working_dir = working_dir
        super().__init__(f"No package.json found in {working_dir}")


class CopyError(YalcError):
    """Raised when copying package content fails."""

    def __init__(self, path: Path, reason: str) -> None:
        self.path = path
        super().__init__(f"Could not copy {path}: {reason}")


class HookError(YalcError):
    """Raised when a lifecycle script exits with a non-zero status."""

    def __init__(self, script: str, returncode: int) -> None:
        self.script = script
        self.returncode = returncode
        super().__init__(f"Script `{script}` failed with exit code {returncode}")


class LockfileError(YalcError):
    """Raised when a project lockfile cannot be parsed."""


class RegistryError(YalcError):
    """Raised when the installations file cannot be parsed."""
