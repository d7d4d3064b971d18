"""
Remove or retreat packages from a project.

remove:  restores package.json, drops lockfile + registry entries and deletes
         the .yalc copy and node_modules entry.
retreat: restores package.json and deletes the node_modules entry, but keeps
         the lockfile entry and .yalc copy so `restore` can bring it back.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from dataclasses import dataclass
from pathlib import Path

from yalc.commands.add import WORKSPACE_ADDRESS
from yalc.config import MODULES_FOLDER, VENDOR_FOLDER, YalcConfig
from yalc.errors import MissingProjectManifestError
from yalc.manifest import (
    PackageManifest,
    parse_package_name,
    read_package_manifest,
    write_package_manifest,
)
from yalc.store.sync import remove_path
from yalc.tracking.installations import PackageInstallation
from yalc.tracking.lockfile import InstallMode, LockfileEntry, LockfileRepository

logger = logging.getLogger(__name__)


@dataclass
class RemoveOptions:
    """Options for removing packages.

    Attributes:
        working_dir: Project directory.
        retreat: Keep lockfile entries and .yalc copies for a later restore.
        all: Remove every locked package when no names are given.
    """

    working_dir: Path
    retreat: bool = False
    all: bool = False

    def __post_init__(self) -> None:
        self.working_dir = Path(self.working_dir)


def is_yalc_address(address: object, name: str, entry: LockfileEntry | None = None) -> bool:
    """Whether a dependency value was written by yalc for this package."""
    if not isinstance(address, str):
        return False
    if address in (f"file:{VENDOR_FOLDER}/{name}", f"link:{VENDOR_FOLDER}/{name}"):
        return True
    return address == WORKSPACE_ADDRESS and entry is not None and entry.mode is InstallMode.WORKSPACE


def restore_manifest_entry(manifest: PackageManifest, name: str, entry: LockfileEntry | None) -> bool:
    """Put back the replaced dependency value (or drop the yalc one).

    Returns:
        True if the manifest changed.
    """
    for field in ("dependencies", "devDependencies"):
        deps = manifest.get(field)
        if not isinstance(deps, dict) or not is_yalc_address(deps.get(name), name, entry):
            continue
        if entry is not None and entry.replaced:
            deps[name] = entry.replaced
        else:
            del deps[name]
        return True
    return False


def _select_packages(packages: Sequence[str], options: RemoveOptions, locked: dict[str, LockfileEntry]) -> list[str]:
    if not packages:
        if options.all:
            return list(locked)
        logger.info("Use --all option to remove all packages.")
        return []

    names: list[str] = []
    for spec in packages:
        name, version = parse_package_name(spec)
        entry = locked.get(name)
        if entry is None:
            logger.warning(f"Package {spec} not found in lockfile, still will try to remove.")
            names.append(name)
        elif not version or version == entry.version:
            names.append(name)
    return names


async def remove_packages(
    packages: Sequence[str],
    options: RemoveOptions,
    *,
    config: YalcConfig | None = None,
) -> list[str]:
    """Remove (or retreat) packages from options.working_dir.

    Returns:
        Names of the packages handled.

    Raises:
        MissingProjectManifestError: If the project has no package.json.
    """
    config = config or YalcConfig.from_env()
    working_dir = options.working_dir
    manifest = read_package_manifest(working_dir)
    if manifest is None:
        raise MissingProjectManifestError(working_dir)

    repository = LockfileRepository(working_dir)
    locked = repository.read().packages
    names = _select_packages(packages, options, locked)
    if not names:
        return []

    manifest_changed = False
    for name in names:
        entry = locked.get(name)
        if restore_manifest_entry(manifest, name, entry):
            manifest_changed = True
        if options.retreat:
            replaced = entry.replaced if entry else None
            logger.info(f"Retreating package {name} version ==> {replaced or '(removed)'}")

    if manifest_changed:
        write_package_manifest(working_dir, manifest)

    if not options.retreat:
        if repository.exists():
            repository.remove(names)
        config.registry().remove(PackageInstallation.of(name, working_dir) for name in names)

    vendor_root = working_dir / VENDOR_FOLDER
    for name in names:
        remove_path(working_dir / MODULES_FOLDER / name)
        if not options.retreat:
            remove_path(vendor_root / name)
            scope_dir = (vendor_root / name).parent
            if scope_dir != vendor_root and scope_dir.is_dir() and not any(scope_dir.iterdir()):
                scope_dir.rmdir()
    if not options.retreat and vendor_root.is_dir() and not any(vendor_root.iterdir()):
        vendor_root.rmdir()

    return names
