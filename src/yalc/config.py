"""
Store location and shared constants.

The store directory is resolved from, in order: an explicit value, the
YALC_STORE_DIR environment variable, %LOCALAPPDATA%/Yalc on Windows, and
~/.yalc everywhere else.
"""

from __future__ import annotations

import os
import sys
from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING

from yalc.package_manager import PACKAGE_MANAGERS, PackageManager

if TYPE_CHECKING:
    from yalc.store.package_store import PackageStore
    from yalc.tracking.installations import InstallationsRegistry

STORE_DIR_ENV_VAR = "YALC_STORE_DIR"

MANIFEST_FILE = "package.json"
LOCKFILE_NAME = "yalc.lock"
SIGNATURE_FILE = "yalc.sig"
IGNORE_FILE = ".yalcignore"
INSTALLATIONS_FILE = "installations.json"
PACKAGES_FOLDER = "packages"
VENDOR_FOLDER = ".yalc"
MODULES_FOLDER = "node_modules"
BIN_FOLDER = ".bin"
PNPM_WORKSPACE_FILE = "pnpm-workspace.yaml"

PRESCRIPT = "preyalc"
POSTSCRIPT = "postyalc"


def default_store_dir() -> Path:
    """Platform default store directory."""
    env_dir = os.environ.get(STORE_DIR_ENV_VAR, "")
    if env_dir:
        return Path(env_dir).expanduser().resolve()
    local_app_data = os.environ.get("LOCALAPPDATA", "")
    if sys.platform == "win32" and local_app_data:
        return Path(local_app_data) / "Yalc"
    return Path.home() / ".yalc"


@dataclass
class YalcConfig:
    """Runtime configuration shared by all commands.

    Attributes:
        store_dir: Root of the local store (packages + installations file).
        package_managers: Strategy table keyed by package manager id.
    """

    store_dir: Path = field(default_factory=default_store_dir)
    package_managers: dict[str, PackageManager] = field(
        default_factory=lambda: dict(PACKAGE_MANAGERS)
    )

    def __post_init__(self) -> None:
        self.store_dir = Path(self.store_dir)
        if not self.package_managers:
            raise ValueError("package_managers must not be empty")

    @classmethod
    def from_env(cls, store_dir: str | Path | None = None) -> YalcConfig:
        """Build a config, preferring an explicit store folder."""
        if store_dir:
            return cls(store_dir=Path(store_dir).expanduser().resolve())
        return cls()

    @property
    def packages_dir(self) -> Path:
        return self.store_dir / PACKAGES_FOLDER

    @property
    def installations_file(self) -> Path:
        return self.store_dir / INSTALLATIONS_FILE

    def store(self) -> PackageStore:
        """Content store rooted at this config's store_dir."""
        from yalc.store.package_store import PackageStore

        return PackageStore(self.store_dir)

    def registry(self) -> InstallationsRegistry:
        """Installations registry stored next to the packages."""
        from yalc.tracking.installations import InstallationsRegistry

        return InstallationsRegistry(self.installations_file)
