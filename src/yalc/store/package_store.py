"""Versioned local package store.

Layout:
    <store>/packages/<name>/<version>/
        package.json   derived manifest (yalcSig injected)
        yalc.sig       package signature
        ...            publishable files
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from yalc.config import MANIFEST_FILE, MODULES_FOLDER, PACKAGES_FOLDER
from yalc.errors import CopyError, MissingProjectManifestError, StoreNotFoundError
from yalc.manifest import (
    DEPENDENCY_FIELDS,
    PackageManifest,
    read_package_manifest,
    write_package_manifest,
)
from yalc.store.files import IgnoreRules, list_publishable_files, read_ignore_file
from yalc.store.signature import (
    compute_signature,
    read_signature,
    short_signature,
    write_signature,
)
from yalc.store.sync import copy_file, remove_path

logger = logging.getLogger(__name__)

# Scripts that must not run again when the stored copy is installed.
DEV_ONLY_SCRIPTS: tuple[str, ...] = ("prepare", "prepublish")
WORKSPACE_PROTOCOL = "workspace:"
WORKSPACE_ALIASES: frozenset[str] = frozenset({"*", "^", "~"})


@dataclass
class StorePublishOptions:
    """Options for copying a package into the store.

    Attributes:
        signature: Append `+<short signature>` to the stored version.
        changed: Skip publishing when content matches the stored signature.
        content: Log the list of published files.
        dev_mod: Strip devDependencies and prepare/prepublish scripts.
        workspace_resolve: Resolve `workspace:` dependency ranges.
    """

    signature: bool = False
    changed: bool = False
    content: bool = False
    dev_mod: bool = True
    workspace_resolve: bool = True


def find_installed_manifest(package_name: str, start_dir: Path) -> Path | None:
    """Locate node_modules/<name>/package.json walking up from start_dir."""
    for directory in (start_dir, *start_dir.parents):
        candidate = directory / MODULES_FOLDER / package_name / MANIFEST_FILE
        if candidate.is_file():
            return candidate
    return None


def resolve_workspace_version(range_spec: str, package_name: str, working_dir: Path) -> str:
    """Turn a `workspace:` range into a concrete version spec.

    `*`, `^` and `~` are resolved against the sibling package's installed
    manifest; explicit ranges are kept as written.
    """
    if range_spec not in WORKSPACE_ALIASES:
        return range_spec
    prefix = range_spec if range_spec in ("^", "~") else ""
    manifest_file = find_installed_manifest(package_name, working_dir)
    resolved = read_package_manifest(manifest_file.parent) if manifest_file else None
    version = resolved.get("version") if resolved else None
    if not version:
        logger.warning(f"Could not resolve workspace package location for {package_name}")
        return "*"
    return f"{prefix}{version}"


def resolve_workspaces(manifest: PackageManifest, working_dir: Path) -> PackageManifest:
    """Rewrite `workspace:` dependency values to concrete versions."""
    resolved = dict(manifest)
    for field in DEPENDENCY_FIELDS:
        deps = manifest.get(field)
        if not isinstance(deps, Mapping):
            continue
        new_deps: dict[str, Any] = {}
        for dep_name, value in deps.items():
            if isinstance(value, str) and value.startswith(WORKSPACE_PROTOCOL):
                value = resolve_workspace_version(
                    value[len(WORKSPACE_PROTOCOL) :], dep_name, working_dir
                )
                logger.info(f"Resolving workspace package {dep_name} version ==> {value}")
            new_deps[dep_name] = value
        resolved[field] = new_deps
    return resolved


def strip_dev_fields(manifest: PackageManifest) -> PackageManifest:
    """Drop devDependencies and dev-only lifecycle scripts."""
    stripped = {k: v for k, v in manifest.items() if k != "devDependencies"}
    scripts = manifest.get("scripts")
    if isinstance(scripts, Mapping):
        stripped["scripts"] = {k: v for k, v in scripts.items() if k not in DEV_ONLY_SCRIPTS}
    return stripped


class PackageStore:
    """Filesystem-backed store of published packages keyed by (name, version)."""

    def __init__(self, root: Path) -> None:
        self._root = Path(root)

    @property
    def root(self) -> Path:
        return self._root

    @property
    def packages_dir(self) -> Path:
        return self._root / PACKAGES_FOLDER

    def package_dir(self, name: str, version: str = "") -> Path:
        path = self.packages_dir / name
        return path / version if version else path

    def versions(self, name: str) -> list[str]:
        """Versions present in the store for a package, sorted by name."""
        package_dir = self.package_dir(name)
        if not package_dir.is_dir():
            return []
        return sorted(p.name for p in package_dir.iterdir() if p.is_dir())

    def resolve_version(self, name: str, version: str = "") -> str:
        """Resolve the version to install.

        An explicit version is returned as-is. Otherwise the most recently
        created version directory wins; equal timestamps fall back to the
        greatest version name.

        Raises:
            StoreNotFoundError: If the package has no versions in the store.
        """
        if version:
            return version
        package_dir = self.package_dir(name)
        versions = self.versions(name)
        if not versions:
            raise StoreNotFoundError(name, package_dir)
        return max(versions, key=lambda v: ((package_dir / v).stat().st_mtime_ns, v))

    def entry_dir(self, name: str, version: str = "") -> Path:
        """Directory of an existing store entry.

        Raises:
            StoreNotFoundError: If the package or version is missing.
        """
        resolved = self.resolve_version(name, version)
        entry = self.package_dir(name, resolved)
        if not entry.is_dir():
            raise StoreNotFoundError(f"{name}@{resolved}", entry)
        return entry

    def select_files(self, working_dir: Path, manifest: PackageManifest) -> list[str]:
        """Publishable files of working_dir minus `.yalcignore` matches."""
        rules = IgnoreRules(read_ignore_file(working_dir))
        return rules.filter(list_publishable_files(working_dir, manifest))

    async def publish(self, working_dir: Path, options: StorePublishOptions | None = None) -> str | None:
        """Copy a package into the store.

        Args:
            working_dir: Package source directory.
            options: Publish options.

        Returns:
            The new signature, or None when `changed` is set and the content
            matches the stored signature (nothing is written in that case).

        Raises:
            MissingProjectManifestError: If working_dir has no package.json.
            CopyError: If copying fails.
        """
        options = options or StorePublishOptions()
        working_dir = Path(working_dir)
        manifest = read_package_manifest(working_dir)
        if manifest is None:
            raise MissingProjectManifestError(working_dir)

        name = str(manifest.get("name", ""))
        version = str(manifest.get("version", ""))
        if not name or not version:
            raise MissingProjectManifestError(working_dir)

        store_dir = self.package_dir(name, version)
        files = self.select_files(working_dir, manifest)

        if options.content:
            logger.info("Files included in published content:")
            for rel in files:
                logger.info(f"- {rel}")
            logger.info(f"Total {len(files)} files.")

        if options.changed:
            signature = await compute_signature(working_dir, files)
            if signature == read_signature(store_dir):
                return None

        signature = await self._copy_files(working_dir, store_dir, files)

        to_write = strip_dev_fields(manifest) if options.dev_mod else dict(manifest)
        if options.workspace_resolve:
            to_write = resolve_workspaces(to_write, working_dir)
        to_write["yalcSig"] = signature
        if options.signature:
            to_write["version"] = f"{version}+{short_signature(signature)}"

        write_package_manifest(store_dir, to_write)
        write_signature(store_dir, signature)
        logger.debug("Stored package", extra={"package": name, "version": version, "files": len(files)})
        return signature

    async def _copy_files(self, working_dir: Path, store_dir: Path, files: list[str]) -> str:
        try:
            remove_path(store_dir)
            store_dir.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise CopyError(store_dir, str(e)) from e
        for rel in files:
            await copy_file(working_dir / rel, store_dir / rel)
        return await compute_signature(store_dir, files)
