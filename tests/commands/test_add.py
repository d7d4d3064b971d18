"""Tests for adding store packages to a project."""

from __future__ import annotations

import subprocess
from collections.abc import Callable
from pathlib import Path
from typing import Any

import pytest
from conftest import read_json

from yalc.commands.add import (
    AddOptions,
    ManifestPatch,
    add_packages,
    apply_manifest_patch,
    local_address,
    select_install_mode,
)
from yalc.config import YalcConfig
from yalc.errors import MissingProjectManifestError
from yalc.store.sync import list_files
from yalc.tracking.lockfile import InstallMode, LockfileRepository


async def _publish(config: YalcConfig, pkg: Path) -> str:
    signature = await config.store().publish(pkg)
    assert signature is not None
    return signature


class TestApplyManifestPatch:
    """Tests for apply_manifest_patch."""

    def test_replaces_existing_dependency(self) -> None:
        manifest: dict[str, Any] = {"dependencies": {"lib": "^1.0.0"}}
        replaced, changed = apply_manifest_patch(manifest, ManifestPatch("lib", "file:.yalc/lib"))
        assert (replaced, changed) == ("^1.0.0", True)
        assert manifest["dependencies"] == {"lib": "file:.yalc/lib"}

    def test_adds_missing_dependency(self) -> None:
        manifest: dict[str, Any] = {"name": "app"}
        replaced, changed = apply_manifest_patch(manifest, ManifestPatch("lib", "file:.yalc/lib"))
        assert (replaced, changed) == (None, True)
        assert manifest["dependencies"] == {"lib": "file:.yalc/lib"}

    def test_keeps_dev_dependency_bucket(self) -> None:
        manifest: dict[str, Any] = {"devDependencies": {"lib": "^1.0.0"}}
        apply_manifest_patch(manifest, ManifestPatch("lib", "file:.yalc/lib"))
        assert manifest["devDependencies"] == {"lib": "file:.yalc/lib"}
        assert "dependencies" not in manifest

    def test_dev_moves_dependency(self) -> None:
        manifest: dict[str, Any] = {"dependencies": {"lib": "^1.0.0"}}
        replaced, _ = apply_manifest_patch(manifest, ManifestPatch("lib", "file:.yalc/lib", dev=True))
        assert replaced == "^1.0.0"
        assert manifest["dependencies"] == {}
        assert manifest["devDependencies"] == {"lib": "file:.yalc/lib"}

    def test_already_pointing_at_address(self) -> None:
        manifest: dict[str, Any] = {"dependencies": {"lib": "file:.yalc/lib"}}
        assert apply_manifest_patch(manifest, ManifestPatch("lib", "file:.yalc/lib")) == (None, False)


class TestSelectInstallMode:
    """Tests for mode selection and automatic pure mode."""

    def test_local_addresses(self) -> None:
        assert local_address(InstallMode.FILE, "lib") == "file:.yalc/lib"
        assert local_address(InstallMode.PURE, "@s/lib") == "file:.yalc/@s/lib"
        assert local_address(InstallMode.LINK_DEP, "lib") == "link:.yalc/lib"
        assert local_address(InstallMode.WORKSPACE, "lib") == "workspace:*"

    def test_workspaces_enable_pure(self, tmp_path: Path) -> None:
        options = AddOptions(working_dir=tmp_path, mode=InstallMode.LINK_DEP)
        assert select_install_mode(options, {"workspaces": ["packages/*"]}, tmp_path) is InstallMode.PURE

    def test_pnpm_workspace_file_enables_pure(self, tmp_path: Path) -> None:
        (tmp_path / "pnpm-workspace.yaml").write_text("packages: []\n")
        options = AddOptions(working_dir=tmp_path)
        assert select_install_mode(options, {}, tmp_path) is InstallMode.PURE

    def test_no_pure_overrides_workspaces(self, tmp_path: Path) -> None:
        options = AddOptions(working_dir=tmp_path, pure=False)
        assert select_install_mode(options, {"workspaces": ["a"]}, tmp_path) is InstallMode.FILE

    def test_pure_false_contradicts_pure_mode(self, tmp_path: Path) -> None:
        with pytest.raises(ValueError):
            AddOptions(working_dir=tmp_path, mode=InstallMode.PURE, pure=False)


class TestAddPackages:
    """Tests for add_packages."""

    @pytest.mark.asyncio
    async def test_file_mode(
        self,
        config: YalcConfig,
        make_package: Callable[..., Path],
        make_project: Callable[..., Path],
    ) -> None:
        signature = await _publish(config, make_package("lib", files={"index.js": "a", "lib/u.js": "b"}))
        project = make_project(dependencies={"lib": "^1.0.0"})

        results = await add_packages(["lib"], AddOptions(working_dir=project), config=config)

        assert len(results) == 1
        result = results[0]
        assert result.signature == signature
        assert result.replaced == "^1.0.0"
        assert result.path == str(project.resolve())

        entry = config.store().package_dir("lib", "1.0.0")
        vendor = project / ".yalc" / "lib"
        assert list_files(vendor) == list_files(entry)
        for rel in list_files(entry):
            assert (vendor / rel).read_bytes() == (entry / rel).read_bytes()
        assert (project / "node_modules" / "lib" / "lib" / "u.js").read_text() == "b"
        assert not (project / "node_modules" / "lib").is_symlink()

        assert read_json(project / "package.json")["dependencies"] == {"lib": "file:.yalc/lib"}
        locked = LockfileRepository(project).read().packages["lib"]
        assert locked.mode is InstallMode.FILE
        assert locked.replaced == "^1.0.0"
        assert locked.signature == signature
        assert locked.version is None
        assert config.registry().read() == {"lib": [str(project.resolve())]}

    @pytest.mark.asyncio
    async def test_missing_package_is_skipped(
        self,
        config: YalcConfig,
        make_package: Callable[..., Path],
        make_project: Callable[..., Path],
    ) -> None:
        await _publish(config, make_package("a", "1.2.3"))
        project = make_project()

        results = await add_packages(["a@1.2.3", "b"], AddOptions(working_dir=project), config=config)

        assert [r.name for r in results] == ["a"]
        assert results[0].version == "1.2.3"
        packages = LockfileRepository(project).read().packages
        assert set(packages) == {"a"}
        assert packages["a"].version == "1.2.3"
        assert "b" not in read_json(project / "package.json").get("dependencies", {})

    @pytest.mark.asyncio
    async def test_nothing_installed_writes_no_lockfile(
        self, config: YalcConfig, make_project: Callable[..., Path]
    ) -> None:
        project = make_project()
        assert await add_packages(["ghost"], AddOptions(working_dir=project), config=config) == []
        assert not LockfileRepository(project).exists()
        assert not config.installations_file.exists()

    @pytest.mark.asyncio
    async def test_explicit_pure_leaves_node_modules_alone(
        self,
        config: YalcConfig,
        make_package: Callable[..., Path],
        make_project: Callable[..., Path],
    ) -> None:
        await _publish(config, make_package("lib"))
        project = make_project()

        results = await add_packages(["lib"], AddOptions(working_dir=project, pure=True), config=config)

        assert results[0].mode is InstallMode.PURE
        assert (project / ".yalc" / "lib" / "index.js").exists()
        assert not (project / "node_modules").exists()
        assert read_json(project / "package.json")["dependencies"] == {"lib": "file:.yalc/lib"}
        assert LockfileRepository(project).read().packages["lib"].pure

    @pytest.mark.asyncio
    async def test_workspaces_project_installs_purely(
        self,
        config: YalcConfig,
        make_package: Callable[..., Path],
        make_project: Callable[..., Path],
    ) -> None:
        await _publish(config, make_package("lib"))
        project = make_project(workspaces=["packages/*"])

        results = await add_packages(["lib"], AddOptions(working_dir=project), config=config)

        assert results[0].mode is InstallMode.PURE
        assert not (project / "node_modules").exists()

    @pytest.mark.asyncio
    async def test_symlink_mode_keeps_manifest(
        self,
        config: YalcConfig,
        make_package: Callable[..., Path],
        make_project: Callable[..., Path],
    ) -> None:
        await _publish(config, make_package("lib", bin={"lib-cli": "cli.js"}, files={"cli.js": "#!/bin/sh\n"}))
        project = make_project(dependencies={"lib": "^1.0.0"})

        await add_packages(["lib"], AddOptions(working_dir=project, mode=InstallMode.SYMLINK), config=config)

        modules_dir = project / "node_modules" / "lib"
        assert modules_dir.is_symlink()
        assert modules_dir.resolve() == (project / ".yalc" / "lib").resolve()
        assert (project / "node_modules" / ".bin" / "lib-cli").is_symlink()
        assert read_json(project / "package.json")["dependencies"] == {"lib": "^1.0.0"}
        locked = LockfileRepository(project).read().packages["lib"]
        assert locked.mode is InstallMode.SYMLINK
        assert locked.replaced is None

    @pytest.mark.asyncio
    async def test_link_dependency_mode(
        self,
        config: YalcConfig,
        make_package: Callable[..., Path],
        make_project: Callable[..., Path],
    ) -> None:
        await _publish(config, make_package("lib"))
        project = make_project()

        await add_packages(["lib"], AddOptions(working_dir=project, mode=InstallMode.LINK_DEP), config=config)

        assert (project / "node_modules" / "lib").is_symlink()
        assert read_json(project / "package.json")["dependencies"] == {"lib": "link:.yalc/lib"}
        assert LockfileRepository(project).read().packages["lib"].link

    @pytest.mark.asyncio
    async def test_workspace_mode_dev(
        self,
        config: YalcConfig,
        make_package: Callable[..., Path],
        make_project: Callable[..., Path],
    ) -> None:
        await _publish(config, make_package("lib"))
        project = make_project()

        await add_packages(
            ["lib"],
            AddOptions(working_dir=project, mode=InstallMode.WORKSPACE, dev=True),
            config=config,
        )

        assert (project / "node_modules" / "lib" / "index.js").exists()
        assert read_json(project / "package.json")["devDependencies"] == {"lib": "workspace:*"}

    @pytest.mark.asyncio
    async def test_scoped_package(
        self,
        config: YalcConfig,
        make_package: Callable[..., Path],
        make_project: Callable[..., Path],
    ) -> None:
        await _publish(config, make_package("@scope/lib"))
        project = make_project()

        results = await add_packages(["@scope/lib"], AddOptions(working_dir=project), config=config)

        assert results[0].name == "@scope/lib"
        assert (project / "node_modules" / "@scope" / "lib" / "index.js").exists()
        assert read_json(project / "package.json")["dependencies"] == {"@scope/lib": "file:.yalc/@scope/lib"}

    @pytest.mark.asyncio
    async def test_batch_writes_manifest_in_request_order(
        self,
        config: YalcConfig,
        make_package: Callable[..., Path],
        make_project: Callable[..., Path],
    ) -> None:
        for name in ("c", "a", "b"):
            await _publish(config, make_package(name))
        project = make_project(dependencies={"a": "^0.1.0"})

        results = await add_packages(["c", "a", "b"], AddOptions(working_dir=project), config=config)

        assert [r.name for r in results] == ["c", "a", "b"]
        assert read_json(project / "package.json")["dependencies"] == {
            "a": "file:.yalc/a",
            "c": "file:.yalc/c",
            "b": "file:.yalc/b",
        }

    @pytest.mark.asyncio
    async def test_restore_from_vendor_copy(
        self,
        config: YalcConfig,
        make_package: Callable[..., Path],
        make_project: Callable[..., Path],
    ) -> None:
        await _publish(config, make_package("lib"))
        project = make_project()
        await add_packages(["lib"], AddOptions(working_dir=project), config=config)
        (project / "node_modules" / "lib" / "index.js").unlink()
        # Store contents are not consulted on restore.
        (config.store().package_dir("lib", "1.0.0") / "index.js").write_text("changed")

        await add_packages(["lib"], AddOptions(working_dir=project, restore=True), config=config)

        assert (project / "node_modules" / "lib" / "index.js").read_text() == "module.exports = 'lib'\n"

    @pytest.mark.asyncio
    async def test_restore_without_vendor_copy_skips(
        self, config: YalcConfig, make_project: Callable[..., Path]
    ) -> None:
        project = make_project()
        results = await add_packages(["lib"], AddOptions(working_dir=project, restore=True), config=config)
        assert results == []

    @pytest.mark.asyncio
    async def test_lifecycle_hooks_run(
        self,
        config: YalcConfig,
        make_package: Callable[..., Path],
        make_project: Callable[..., Path],
        monkeypatch: pytest.MonkeyPatch,
    ) -> None:
        calls: list[list[str]] = []

        def fake_run(argv: list[str], **kwargs: Any) -> subprocess.CompletedProcess[bytes]:
            calls.append(list(argv))
            return subprocess.CompletedProcess(argv, 0)

        monkeypatch.setattr("yalc.package_manager.subprocess.run", fake_run)
        await _publish(config, make_package("lib"))
        project = make_project(scripts={"preyalc": "echo pre", "postyalc": "echo post", "preyalc.lib": "echo one"})
        (project / "yarn.lock").write_text("")

        await add_packages(["lib"], AddOptions(working_dir=project), config=config)

        assert calls == [["yarn", "preyalc"], ["yarn", "preyalc.lib"], ["yarn", "postyalc"]]

    @pytest.mark.asyncio
    async def test_missing_project_manifest(self, config: YalcConfig, tmp_path: Path) -> None:
        with pytest.raises(MissingProjectManifestError):
            await add_packages(["lib"], AddOptions(working_dir=tmp_path), config=config)

    @pytest.mark.asyncio
    async def test_replaced_kept_across_re_add(
        self,
        config: YalcConfig,
        make_package: Callable[..., Path],
        make_project: Callable[..., Path],
    ) -> None:
        await _publish(config, make_package("lib"))
        project = make_project(dependencies={"lib": "^1.0.0"})
        await add_packages(["lib"], AddOptions(working_dir=project), config=config)

        await add_packages(["lib"], AddOptions(working_dir=project), config=config)

        assert LockfileRepository(project).read().packages["lib"].replaced == "^1.0.0"
