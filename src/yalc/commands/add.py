"""
Add packages from the store to a project.

Flow per batch:
1. Packages are installed concurrently: store entry -> .yalc/<name> vendor
   copy -> node_modules/<name> (copy or symlink, depending on the mode)
2. Each install returns a manifest patch; patches are applied to package.json
   in request order once every install has finished
3. Lockfile and installations registry are updated with the results
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Sequence
from dataclasses import dataclass
from pathlib import Path

from yalc.config import (
    BIN_FOLDER,
    MODULES_FOLDER,
    PNPM_WORKSPACE_FILE,
    POSTSCRIPT,
    PRESCRIPT,
    VENDOR_FOLDER,
    YalcConfig,
)
from yalc.errors import CopyError, MissingProjectManifestError, StoreNotFoundError
from yalc.manifest import (
    PackageManifest,
    manifest_bins,
    parse_package_name,
    read_package_manifest,
    write_package_manifest,
)
from yalc.package_manager import ScriptRunner, detect_package_manager
from yalc.store.package_store import PackageStore
from yalc.store.signature import read_signature
from yalc.store.sync import copy_dir_safe, remove_path
from yalc.tracking.installations import PackageInstallation
from yalc.tracking.lockfile import InstallMode, LockfileEntry, LockfileRepository

logger = logging.getLogger(__name__)

DEFAULT_PURE_NOTICE = "--pure option will be used by default, to override use --no-pure."
WORKSPACE_ADDRESS = "workspace:*"


@dataclass
class AddOptions:
    """Options for adding packages to a project.

    Attributes:
        working_dir: Consuming project directory.
        mode: Install mode to use when pure mode does not apply.
        pure: True forces pure mode, False disables automatic pure mode,
            None lets workspaces / pnpm-workspace.yaml enable it.
        dev: Put the dependency in devDependencies.
        replace: Rewrite every file instead of only the changed ones.
        restore: Install from the existing .yalc copy instead of the store.
        update: Run the package manager's update for the added packages.
    """

    working_dir: Path
    mode: InstallMode = InstallMode.FILE
    pure: bool | None = None
    dev: bool = False
    replace: bool = False
    restore: bool = False
    update: bool = False

    def __post_init__(self) -> None:
        self.working_dir = Path(self.working_dir)
        if self.pure is False and self.mode is InstallMode.PURE:
            raise ValueError("pure=False contradicts mode=PURE")


@dataclass(frozen=True)
class ManifestPatch:
    """Dependency rewrite requested by one installed package."""

    name: str
    address: str
    dev: bool = False


@dataclass(frozen=True)
class InstallResult:
    """Outcome of one successfully added package."""

    name: str
    version: str
    signature: str
    path: str
    mode: InstallMode
    replaced: str | None = None


@dataclass
class _PendingInstall:
    name: str
    version: str
    signature: str
    patch: ManifestPatch | None = None


def select_install_mode(options: AddOptions, manifest: PackageManifest, working_dir: Path) -> InstallMode:
    """Choose the effective mode; pure mode takes precedence."""
    if options.pure or options.mode is InstallMode.PURE:
        return InstallMode.PURE
    if options.pure is None:
        if manifest.get("workspaces"):
            logger.warning("Because of `workspaces` enabled in this package " + DEFAULT_PURE_NOTICE)
            return InstallMode.PURE
        if (working_dir / PNPM_WORKSPACE_FILE).exists():
            logger.warning(f"Because of `{PNPM_WORKSPACE_FILE}` exists in this package " + DEFAULT_PURE_NOTICE)
            return InstallMode.PURE
    return options.mode


def local_address(mode: InstallMode, name: str) -> str:
    """Dependency value that points package.json at the vendor copy."""
    if mode is InstallMode.WORKSPACE:
        return WORKSPACE_ADDRESS
    protocol = "link:" if mode is InstallMode.LINK_DEP else "file:"
    return f"{protocol}{VENDOR_FOLDER}/{name}"


def apply_manifest_patch(manifest: PackageManifest, patch: ManifestPatch) -> tuple[str | None, bool]:
    """Point the package's dependency entry at its yalc address.

    The entry stays in whichever of dependencies/devDependencies already
    names it unless `dev` moves it to devDependencies.

    Returns:
        (replaced value or None, whether the manifest changed).
    """
    deps = manifest.get("dependencies") or {}
    dev_deps = manifest.get("devDependencies") or {}
    replaced: str | None = None
    changed = False

    if patch.dev:
        target = dev_deps
        if patch.name in deps:
            replaced = deps.pop(patch.name)
            manifest["dependencies"] = deps
            changed = True
    elif patch.name not in deps and patch.name in dev_deps:
        target = dev_deps
    else:
        target = deps

    current = target.get(patch.name)
    if current != patch.address:
        replaced = replaced or current
        target[patch.name] = patch.address
        changed = True

    if changed:
        manifest["devDependencies" if target is dev_deps else "dependencies"] = target
    if replaced == patch.address:
        replaced = None
    return replaced, changed


def _link_bins(manifest: PackageManifest, vendor_dir: Path, working_dir: Path) -> list[str]:
    """Symlink declared executables into node_modules/.bin.

    A failing executable is logged and skipped.
    """
    linked: list[str] = []
    bins = manifest_bins(manifest)
    if not bins:
        return linked
    bin_dir = working_dir / MODULES_FOLDER / BIN_FOLDER
    for bin_name, rel in bins.items():
        src = vendor_dir / rel
        dest = bin_dir / bin_name
        logger.info(
            f"Linking bin script: {vendor_dir.relative_to(working_dir).as_posix()} -> "
            f"{dest.relative_to(working_dir).as_posix()}"
        )
        try:
            dest.parent.mkdir(parents=True, exist_ok=True)
            remove_path(dest)
            dest.symlink_to(src.resolve())
            src.chmod(0o755)
        except (OSError, CopyError) as e:
            logger.warning(f"Could not create bin symlink {dest}: {e}")
            continue
        linked.append(bin_name)
    return linked


async def _materialize(
    name: str,
    vendor_dir: Path,
    manifest: PackageManifest,
    mode: InstallMode,
    options: AddOptions,
) -> None:
    """Place the vendor copy into node_modules according to mode."""
    working_dir = options.working_dir
    modules_dir = working_dir / MODULES_FOLDER / name
    try:
        if mode.is_symlink or modules_dir.is_symlink():
            remove_path(modules_dir)
        if mode.is_symlink:
            modules_dir.parent.mkdir(parents=True, exist_ok=True)
            modules_dir.symlink_to(vendor_dir.resolve(), target_is_directory=True)
    except OSError as e:
        raise CopyError(modules_dir, str(e)) from e

    if mode.is_symlink:
        _link_bins(manifest, vendor_dir, working_dir)
    else:
        await copy_dir_safe(vendor_dir, modules_dir, compare_content=not options.replace)

    action = "linked" if mode is InstallMode.SYMLINK else "added"
    logger.info(f"Package {manifest.get('name', name)}@{manifest.get('version', '')} {action} ==> {modules_dir}")


async def _install_package(
    spec: str,
    mode: InstallMode,
    options: AddOptions,
    store: PackageStore,
    runner: ScriptRunner,
) -> _PendingInstall | None:
    runner.run(f"{PRESCRIPT}.{spec}")
    name, version = parse_package_name(spec)
    if not name:
        logger.warning(f"Could not parse package name {spec}, skipping.")
        return None

    vendor_dir = options.working_dir / VENDOR_FOLDER / name
    if options.restore:
        logger.info(f"Restoring package `{spec}` from {VENDOR_FOLDER} directory")
        if not vendor_dir.is_dir():
            logger.warning(f"Could not find package `{spec}` {vendor_dir}, skipping.")
            return None
    else:
        try:
            entry_dir = store.entry_dir(name, version)
        except StoreNotFoundError as e:
            logger.warning(f"{e}, skipping.")
            return None
        await copy_dir_safe(entry_dir, vendor_dir, compare_content=not options.replace)

    pkg = read_package_manifest(vendor_dir)
    if pkg is None:
        logger.warning(f"Could not read manifest of `{spec}` in {vendor_dir}, skipping.")
        return None

    if not mode.touches_modules:
        logger.info(f"{pkg.get('name', name)}@{pkg.get('version', '')} added to {VENDOR_FOLDER}/{name} purely")
    else:
        await _materialize(name, vendor_dir, pkg, mode, options)

    patch = None
    if mode.rewrites_manifest:
        patch = ManifestPatch(name=name, address=local_address(mode, name), dev=options.dev)

    signature = read_signature(vendor_dir)
    runner.run(f"{POSTSCRIPT}.{spec}")
    return _PendingInstall(name=name, version=version, signature=signature, patch=patch)


async def add_packages(
    packages: Sequence[str],
    options: AddOptions,
    *,
    config: YalcConfig | None = None,
) -> list[InstallResult]:
    """Add packages from the store to options.working_dir.

    Args:
        packages: Package specs, `name` or `name@version`.
        options: Add options.
        config: Store configuration (defaults to the environment).

    Returns:
        One InstallResult per package actually installed; skipped packages
        (missing from the store, unreadable) are logged and left out.

    Raises:
        MissingProjectManifestError: If the project has no package.json.
        CopyError: If copying package files fails.
        HookError: If a lifecycle script fails.
    """
    config = config or YalcConfig.from_env()
    working_dir = options.working_dir
    local_manifest = read_package_manifest(working_dir)
    if local_manifest is None:
        raise MissingProjectManifestError(working_dir)
    if not packages:
        return []

    manager = detect_package_manager(working_dir, config.package_managers)
    runner = ScriptRunner(working_dir, local_manifest, manager)
    mode = select_install_mode(options, local_manifest, working_dir)
    store = config.store()

    runner.run(PRESCRIPT)

    pending = await asyncio.gather(
        *(_install_package(spec, mode, options, store, runner) for spec in packages)
    )

    results: list[InstallResult] = []
    manifest_changed = False
    for item in pending:
        if item is None:
            continue
        replaced = None
        if item.patch is not None:
            replaced, changed = apply_manifest_patch(local_manifest, item.patch)
            manifest_changed = manifest_changed or changed
        results.append(
            InstallResult(
                name=item.name,
                version=item.version,
                signature=item.signature,
                path=str(working_dir.resolve()),
                mode=mode,
                replaced=replaced,
            )
        )

    if manifest_changed:
        write_package_manifest(working_dir, local_manifest)

    if results:
        LockfileRepository(working_dir).write(
            {
                r.name: LockfileEntry.for_mode(
                    r.mode,
                    version=r.version,
                    replaced=r.replaced,
                    signature=r.signature,
                )
                for r in results
            }
        )

    runner.run(POSTSCRIPT)

    if results:
        config.registry().add(PackageInstallation.of(r.name, working_dir) for r in results)

    if options.update:
        runner.run_update(r.name for r in results)

    return results
