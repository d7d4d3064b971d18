"""Package manager strategies and lifecycle script execution.

The strategy table is keyed by manager id and passed to the orchestrators
through YalcConfig, so detection and command building happen in one place.
"""

from __future__ import annotations

import logging
import subprocess
from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from yalc.errors import HookError

logger = logging.getLogger(__name__)

DEFAULT_PACKAGE_MANAGER = "npm"


@dataclass(frozen=True)
class PackageManager:
    """Command templates for one package manager.

    Attributes:
        name: Manager id.
        lockfile: Marker file whose presence selects this manager.
        run_script: Command prefix to run a package script.
        update: Command prefix to update named packages.
    """

    name: str
    lockfile: str
    run_script: tuple[str, ...]
    update: tuple[str, ...]

    def script_command(self, script: str) -> list[str]:
        """Build the argv that runs a package script."""
        return [*self.run_script, script]

    def update_command(self, packages: Iterable[str]) -> list[str]:
        """Build the argv that updates the given packages."""
        return [*self.update, *packages]


PACKAGE_MANAGERS: dict[str, PackageManager] = {
    "pnpm": PackageManager(
        name="pnpm",
        lockfile="pnpm-lock.yaml",
        run_script=("pnpm", "run"),
        update=("pnpm", "update"),
    ),
    "yarn": PackageManager(
        name="yarn",
        lockfile="yarn.lock",
        run_script=("yarn",),
        update=("yarn", "upgrade"),
    ),
    "bun": PackageManager(
        name="bun",
        lockfile="bun.lockb",
        run_script=("bun", "run"),
        update=("bun", "update"),
    ),
    "npm": PackageManager(
        name="npm",
        lockfile="package-lock.json",
        run_script=("npm", "run"),
        update=("npm", "update"),
    ),
}


def detect_package_manager(
    working_dir: Path,
    table: Mapping[str, PackageManager] = PACKAGE_MANAGERS,
) -> PackageManager:
    """Pick the package manager whose lockfile exists in working_dir.

    Table order decides between several markers. Falls back to npm (or the
    first table entry when npm is absent).
    """
    for manager in table.values():
        if (working_dir / manager.lockfile).exists():
            return manager
    if DEFAULT_PACKAGE_MANAGER in table:
        return table[DEFAULT_PACKAGE_MANAGER]
    return next(iter(table.values()))


class ScriptRunner:
    """Runs lifecycle scripts declared in a project's manifest.

    Scripts run synchronously with inherited stdio. A missing script is a
    no-op; a non-zero exit raises HookError.
    """

    def __init__(
        self,
        working_dir: Path,
        manifest: Mapping[str, Any],
        manager: PackageManager,
        *,
        enabled: bool = True,
    ) -> None:
        self._working_dir = working_dir
        self._scripts: Mapping[str, Any] = manifest.get("scripts") or {}
        self._manager = manager
        self._enabled = enabled

    @property
    def manager(self) -> PackageManager:
        return self._manager

    def has_script(self, script: str) -> bool:
        return bool(self._scripts.get(script))

    def run(self, script: str) -> bool:
        """Run a script if declared.

        Returns:
            True if the script ran, False if it was skipped.

        Raises:
            HookError: If the script exits non-zero.
        """
        if not self._enabled or not self.has_script(script):
            return False
        logger.info(f"Running {script} script: {self._scripts[script]}")
        command = self._manager.script_command(script)
        result = subprocess.run(command, cwd=self._working_dir, check=False)
        if result.returncode != 0:
            raise HookError(script, result.returncode)
        return True

    def run_update(self, packages: Iterable[str]) -> None:
        """Run the package manager update procedure for packages."""
        command = self._manager.update_command(packages)
        logger.info(f"Running {' '.join(command)} in {self._working_dir}")
        result = subprocess.run(command, cwd=self._working_dir, check=False)
        if result.returncode != 0:
            raise HookError(" ".join(command), result.returncode)
