"""Global installations registry (installations.json).

Reverse index from package name to the projects that installed it:
    {"my-lib": ["/home/me/app", "/home/me/other-app"]}
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass
from pathlib import Path

import orjson

from yalc.errors import LockfileError, RegistryError
from yalc.tracking.lockfile import LockfileRepository

logger = logging.getLogger(__name__)

Installations = dict[str, list[str]]


@dataclass(frozen=True)
class PackageInstallation:
    """One (package, project) association."""

    name: str
    path: str

    @classmethod
    def of(cls, name: str, path: Path | str) -> PackageInstallation:
        return cls(name=name, path=str(Path(path).resolve()))


class InstallationsRegistry:
    """Reads and updates installations.json.

    Every operation re-reads the file, so concurrent yalc processes see each
    other's committed changes (the last writer wins).
    """

    def __init__(self, path: Path) -> None:
        self._path = Path(path)

    @property
    def path(self) -> Path:
        return self._path

    def read(self) -> Installations:
        """Load the registry; a missing file is an empty registry.

        Raises:
            RegistryError: If the file exists but cannot be parsed.
        """
        try:
            raw = self._path.read_bytes()
        except FileNotFoundError:
            return {}
        try:
            data = orjson.loads(raw)
        except orjson.JSONDecodeError as e:
            msg = f"Invalid installations file {self._path}: {e}"
            raise RegistryError(msg) from e
        if not isinstance(data, dict):
            msg = f"Invalid installations file {self._path}: expected an object"
            raise RegistryError(msg)
        return {str(k): [str(p) for p in v] for k, v in data.items() if isinstance(v, list) and v}

    def write(self, installations: Installations) -> None:
        data = {name: paths for name, paths in installations.items() if paths}
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            self._path.write_bytes(orjson.dumps(data, option=orjson.OPT_INDENT_2) + b"\n")
        except OSError:
            logger.error(f"Could not write installations file {self._path}")
            raise

    def add(self, installations: Iterable[PackageInstallation]) -> bool:
        """Record installations; returns True if the file changed."""
        current = self.read()
        changed = False
        for inst in installations:
            paths = current.setdefault(inst.name, [])
            if inst.path not in paths:
                logger.info(f"Installation of package {inst.name} in {inst.path} added")
                paths.append(inst.path)
                changed = True
        if changed:
            self.write(current)
        return changed

    def remove(self, installations: Iterable[PackageInstallation]) -> bool:
        """Forget installations; returns True if the file changed."""
        current = self.read()
        changed = False
        for inst in installations:
            paths = current.get(inst.name, [])
            if inst.path in paths:
                logger.info(f"Removing installation of {inst.name} in {inst.path}")
                paths.remove(inst.path)
                changed = True
            if not paths:
                current.pop(inst.name, None)
        if changed:
            self.write(current)
        return changed

    def show(self, packages: Iterable[str] = ()) -> Installations:
        """Current mapping, optionally restricted to some package names."""
        current = self.read()
        wanted = set(packages)
        if not wanted:
            return current
        return {name: paths for name, paths in current.items() if name in wanted}

    def clean(self, packages: Iterable[str] = (), *, dry_run: bool = False) -> list[PackageInstallation]:
        """Drop installations whose project is gone or no longer locks the package.

        Args:
            packages: Restrict the check to these names (all when empty).
            dry_run: Report stale installations without changing the file.

        Returns:
            The stale installations found.
        """
        stale: list[PackageInstallation] = []
        for name, paths in self.show(packages).items():
            for path in paths:
                if not self._is_valid(name, Path(path)):
                    stale.append(PackageInstallation(name=name, path=path))

        if not stale:
            logger.info("No installations to remove.")
        elif dry_run:
            for inst in stale:
                logger.info(f"Installation to remove: {inst.name} in {inst.path}")
        else:
            self.remove(stale)
        return stale

    @staticmethod
    def _is_valid(name: str, project_dir: Path) -> bool:
        if not project_dir.is_dir():
            return False
        try:
            lockfile = LockfileRepository(project_dir).read()
        except LockfileError as e:
            logger.warning(f"Skipping installation check in {project_dir}: {e}")
            return True
        return name in lockfile.packages
