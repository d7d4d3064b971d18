"""Per-project lockfile (yalc.lock).

Format:
    {
        "version": "v1",
        "packages": {
            "my-lib": {"version": "1.0.0", "file": true, "replaced": "^1.0.0", "signature": "..."},
            "other": {"link": true, "signature": "..."}
        }
    }

Only `true` mode flags and non-empty values are written. An entry without
any mode flag was installed as a plain symlink (`yalc link`).
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from enum import Enum
from pathlib import Path
from typing import Any

import orjson
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from yalc.config import LOCKFILE_NAME
from yalc.errors import LockfileError

LOCKFILE_VERSION = "v1"


class InstallMode(str, Enum):
    """How a package is materialized in a consuming project."""

    FILE = "file"  # copy into node_modules, manifest -> file:.yalc/<name>
    SYMLINK = "symlink"  # symlink into node_modules, manifest untouched
    LINK_DEP = "link"  # symlink into node_modules, manifest -> link:.yalc/<name>
    WORKSPACE = "workspace"  # copy into node_modules, manifest -> workspace:*
    PURE = "pure"  # manifest -> file:.yalc/<name> only

    @property
    def is_symlink(self) -> bool:
        return self in (InstallMode.SYMLINK, InstallMode.LINK_DEP)

    @property
    def touches_modules(self) -> bool:
        return self is not InstallMode.PURE

    @property
    def rewrites_manifest(self) -> bool:
        return self is not InstallMode.SYMLINK


class LockfileEntry(BaseModel):
    """Lock record for one installed package.

    Attributes:
        version: Requested version spec (None = latest at install time).
        file, link, workspace, pure: Mode flags, see InstallMode.
        replaced: Dependency value the yalc address replaced in package.json.
        signature: Package signature at install time.
    """

    model_config = ConfigDict(extra="ignore")

    version: str | None = Field(default=None, description="Requested version spec")
    file: bool | None = None
    link: bool | None = None
    workspace: bool | None = None
    pure: bool | None = None
    replaced: str | None = Field(default=None, description="Replaced dependency value")
    signature: str | None = Field(default=None, description="Signature at install time")

    @property
    def mode(self) -> InstallMode:
        if self.pure:
            return InstallMode.PURE
        if self.workspace:
            return InstallMode.WORKSPACE
        if self.link:
            return InstallMode.LINK_DEP
        if self.file:
            return InstallMode.FILE
        return InstallMode.SYMLINK

    @classmethod
    def for_mode(
        cls,
        mode: InstallMode,
        *,
        version: str = "",
        replaced: str | None = None,
        signature: str = "",
    ) -> LockfileEntry:
        return cls(
            version=version or None,
            file=True if mode is InstallMode.FILE else None,
            link=True if mode is InstallMode.LINK_DEP else None,
            workspace=True if mode is InstallMode.WORKSPACE else None,
            pure=True if mode is InstallMode.PURE else None,
            replaced=replaced or None,
            signature=signature or None,
        )

    def to_dict(self) -> dict[str, Any]:
        data = self.model_dump(exclude_none=True)
        return {k: v for k, v in data.items() if v is not False and v != ""}


class Lockfile(BaseModel):
    """Parsed yalc.lock document."""

    model_config = ConfigDict(extra="ignore")

    version: str = LOCKFILE_VERSION
    packages: dict[str, LockfileEntry] = Field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            "version": self.version,
            "packages": {name: entry.to_dict() for name, entry in self.packages.items()},
        }


class LockfileRepository:
    """Reads and writes one project's yalc.lock.

    Every call goes to disk; nothing is cached between calls.
    """

    def __init__(self, working_dir: Path) -> None:
        self._working_dir = Path(working_dir)

    @property
    def path(self) -> Path:
        return self._working_dir / LOCKFILE_NAME

    def exists(self) -> bool:
        return self.path.is_file()

    def read(self) -> Lockfile:
        """Load the lockfile; a missing file yields an empty lockfile.

        Raises:
            LockfileError: If the file exists but cannot be parsed.
        """
        try:
            raw = self.path.read_bytes()
        except FileNotFoundError:
            return Lockfile()
        try:
            return Lockfile.model_validate(orjson.loads(raw))
        except (orjson.JSONDecodeError, ValidationError) as e:
            msg = f"Invalid lockfile {self.path}: {e}"
            raise LockfileError(msg) from e

    def _save(self, lockfile: Lockfile) -> None:
        self.path.write_bytes(orjson.dumps(lockfile.to_dict(), option=orjson.OPT_INDENT_2) + b"\n")

    def write(self, entries: Mapping[str, LockfileEntry]) -> Lockfile:
        """Merge entries into the on-disk lockfile by package name.

        Entries not mentioned are kept. A new entry without `replaced`
        inherits the previous entry's value.
        """
        lockfile = self.read()
        for name, entry in entries.items():
            previous = lockfile.packages.get(name)
            if previous is not None and not entry.replaced and previous.replaced:
                entry = entry.model_copy(update={"replaced": previous.replaced})
            lockfile.packages[name] = entry
        self._save(lockfile)
        return lockfile

    def remove(self, names: Iterable[str]) -> Lockfile:
        """Drop entries; the file is deleted once no packages remain."""
        lockfile = self.read()
        for name in names:
            lockfile.packages.pop(name, None)
        if lockfile.packages:
            self._save(lockfile)
        else:
            self.delete()
        return lockfile

    def delete(self) -> None:
        self.path.unlink(missing_ok=True)
