"""
Update packages a project already tracks in its lockfile.

Locked packages are grouped by install mode and re-added with one
add_packages call per group, so each package is materialized the way it was
originally added.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from dataclasses import dataclass
from pathlib import Path

from yalc.commands.add import AddOptions, InstallResult, add_packages
from yalc.config import YalcConfig
from yalc.manifest import parse_package_name
from yalc.tracking.installations import PackageInstallation
from yalc.tracking.lockfile import InstallMode, LockfileRepository

logger = logging.getLogger(__name__)

# Group order used when re-adding packages.
UPDATE_MODE_ORDER: tuple[InstallMode, ...] = (
    InstallMode.FILE,
    InstallMode.SYMLINK,
    InstallMode.WORKSPACE,
    InstallMode.LINK_DEP,
    InstallMode.PURE,
)


@dataclass
class UpdateOptions:
    """Options for updating locked packages.

    Attributes:
        working_dir: Project directory.
        replace: Rewrite every file instead of only the changed ones.
        update: Run the package manager's update procedure.
        restore: Reinstall from .yalc copies (used by `restore`).
        no_installations_remove: Return stale installations instead of
            removing them from the registry.
    """

    working_dir: Path
    replace: bool = False
    update: bool = False
    restore: bool = False
    no_installations_remove: bool = False

    def __post_init__(self) -> None:
        self.working_dir = Path(self.working_dir)


def group_by_mode(specs: dict[str, InstallMode]) -> dict[InstallMode, list[str]]:
    """Partition package specs into disjoint per-mode lists."""
    groups: dict[InstallMode, list[str]] = {mode: [] for mode in UPDATE_MODE_ORDER}
    for spec, mode in specs.items():
        groups[mode].append(spec)
    return groups


async def update_packages(
    packages: Sequence[str],
    options: UpdateOptions,
    *,
    config: YalcConfig | None = None,
) -> list[PackageInstallation]:
    """Re-add locked packages from the store (or .yalc when restoring).

    Args:
        packages: Package specs to update; empty means every locked package.
            `name@version` overrides the locked version.
        options: Update options.
        config: Store configuration (defaults to the environment).

    Returns:
        Installations of requested packages that the lockfile does not know.
    """
    config = config or YalcConfig.from_env()
    lockfile = LockfileRepository(options.working_dir).read()

    names: list[str] = []
    stale: list[PackageInstallation] = []
    if packages:
        for spec in packages:
            name, version = parse_package_name(spec)
            entry = lockfile.packages.get(name)
            if entry is None:
                stale.append(PackageInstallation.of(name, options.working_dir))
                logger.warning(
                    f"Did not find package {name} in lockfile, "
                    f"please use 'add' command to add it explicitly."
                )
                continue
            if version:
                lockfile.packages[name] = entry.model_copy(update={"version": version})
            names.append(name)
    else:
        names = list(lockfile.packages)

    specs: dict[str, InstallMode] = {}
    for name in names:
        entry = lockfile.packages[name]
        spec = f"{name}@{entry.version}" if entry.version else name
        specs[spec] = entry.mode

    results: list[InstallResult] = []
    for mode, group in group_by_mode(specs).items():
        if not group:
            continue
        add_options = AddOptions(
            working_dir=options.working_dir,
            mode=mode,
            pure=mode is InstallMode.PURE,
            replace=options.replace,
            restore=options.restore,
            update=options.update,
        )
        results.extend(await add_packages(group, add_options, config=config))

    logger.debug("Updated packages", extra={"count": len(results), "stale": len(stale)})

    if stale and not options.no_installations_remove:
        config.registry().remove(stale)
    return stale
