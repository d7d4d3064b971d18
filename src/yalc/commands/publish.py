"""
Publish a package to the local store, optionally pushing it to every
project that installed it.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path

from yalc.commands.update import UpdateOptions, update_packages
from yalc.config import YalcConfig
from yalc.errors import MissingProjectManifestError
from yalc.manifest import read_package_manifest
from yalc.package_manager import ScriptRunner, detect_package_manager
from yalc.store.package_store import StorePublishOptions
from yalc.tracking.installations import PackageInstallation

logger = logging.getLogger(__name__)

PRE_PUBLISH_SCRIPTS: tuple[str, ...] = (
    "prepublish",
    "prepare",
    "prepublishOnly",
    "prepack",
    "preyalcpublish",
)
POST_PUBLISH_SCRIPTS: tuple[str, ...] = (
    "postyalcpublish",
    "postpack",
    "publish",
    "postpublish",
)


@dataclass
class PublishOptions:
    """Options for publish and push.

    Attributes:
        working_dir: Package directory to publish.
        push: Update every project that installed the package.
        replace: Force full content replacement when pushing.
        update: Run the package manager update in pushed projects.
        private: Allow publishing a package marked `private`.
        scripts: Run publish lifecycle scripts.
        signature, changed, content, dev_mod, workspace_resolve: See
            StorePublishOptions.
    """

    working_dir: Path
    push: bool = False
    replace: bool = False
    update: bool = False
    private: bool = False
    scripts: bool = True
    signature: bool = False
    changed: bool = False
    content: bool = False
    dev_mod: bool = True
    workspace_resolve: bool = True

    def __post_init__(self) -> None:
        self.working_dir = Path(self.working_dir)

    def store_options(self) -> StorePublishOptions:
        return StorePublishOptions(
            signature=self.signature,
            changed=self.changed,
            content=self.content,
            dev_mod=self.dev_mod,
            workspace_resolve=self.workspace_resolve,
        )


@dataclass(frozen=True)
class PublishResult:
    """Identity of a package stored by publish."""

    name: str
    version: str
    signature: str
    path: Path
    pushed: tuple[str, ...] = ()


async def push_package(
    name: str,
    options: PublishOptions,
    *,
    config: YalcConfig,
) -> list[str]:
    """Update every project registered for name.

    Stale installations found along the way are removed in one pass at the end.

    Returns:
        The project paths that were updated.
    """
    registry = config.registry()
    paths = registry.show([name]).get(name, [])
    stale: list[PackageInstallation] = []
    for path in paths:
        logger.info(f"Pushing {name} in {path}")
        stale.extend(
            await update_packages(
                [name],
                UpdateOptions(
                    working_dir=Path(path),
                    replace=options.replace,
                    update=options.update,
                    no_installations_remove=True,
                ),
                config=config,
            )
        )
    if stale:
        registry.remove(stale)
    stale_paths = {s.path for s in stale}
    return [p for p in paths if p not in stale_paths]


async def publish_package(
    options: PublishOptions,
    *,
    config: YalcConfig | None = None,
) -> PublishResult | None:
    """Publish options.working_dir into the store.

    Returns:
        The stored package identity, or None when publishing was refused
        (private package) or skipped (content unchanged).

    Raises:
        MissingProjectManifestError: If the package has no package.json.
        HookError: If a lifecycle script fails.
    """
    config = config or YalcConfig.from_env()
    working_dir = options.working_dir
    manifest = read_package_manifest(working_dir)
    if manifest is None:
        raise MissingProjectManifestError(working_dir)

    if manifest.get("private") and not options.private:
        logger.info("Will not publish package with `private: true` use --private flag to force publishing.")
        return None

    manager = detect_package_manager(working_dir, config.package_managers)
    runner = ScriptRunner(working_dir, manifest, manager, enabled=options.scripts)
    for script in PRE_PUBLISH_SCRIPTS:
        runner.run(script)

    store = config.store()
    signature = await store.publish(working_dir, options.store_options())
    if signature is None:
        logger.warning("Package content has not changed, skipping publishing.")
        return None

    for script in POST_PUBLISH_SCRIPTS:
        runner.run(script)

    name = str(manifest["name"])
    stored_dir = store.package_dir(name, str(manifest["version"]))
    stored = read_package_manifest(stored_dir) or manifest
    version = str(stored.get("version", manifest["version"]))
    logger.info(f"{name}@{version} published in store.")

    pushed: tuple[str, ...] = ()
    if options.push:
        pushed = tuple(await push_package(name, options, config=config))

    return PublishResult(name=name, version=version, signature=signature, path=stored_dir, pushed=pushed)
