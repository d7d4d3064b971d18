"""Detect yalc dependencies left in package.json (e.g. before a commit)."""

from __future__ import annotations

import logging
import re
import subprocess
from pathlib import Path

from yalc.config import MANIFEST_FILE, VENDOR_FOLDER
from yalc.errors import MissingProjectManifestError
from yalc.manifest import PackageManifest, read_package_manifest

logger = logging.getLogger(__name__)

LOCAL_ADDRESS_PATTERN = re.compile(rf"^(file|link):(\./)?{re.escape(VENDOR_FOLDER)}/")


def find_local_dependencies(manifest: PackageManifest) -> list[str]:
    """Names whose dependency value points into the .yalc folder."""
    found: list[str] = []
    for field in ("dependencies", "devDependencies"):
        deps = manifest.get(field)
        if not isinstance(deps, dict):
            continue
        found.extend(
            name for name, value in deps.items() if isinstance(value, str) and LOCAL_ADDRESS_PATTERN.match(value)
        )
    return found


def manifest_is_staged(working_dir: Path) -> bool:
    """Whether package.json is staged in the git index."""
    result = subprocess.run(
        ["git", "diff", "--cached", "--name-only"],
        cwd=working_dir,
        capture_output=True,
        text=True,
        check=False,
    )
    if result.returncode != 0:
        return False
    return any(Path(line.strip()).name == MANIFEST_FILE for line in result.stdout.splitlines())


def check_manifest(working_dir: Path, *, commit: bool = False) -> list[str]:
    """Report yalc dependencies in working_dir's package.json.

    Args:
        working_dir: Project directory.
        commit: Only check when package.json is staged for commit.

    Returns:
        Names of packages still pointing at .yalc.
    """
    working_dir = Path(working_dir)
    manifest = read_package_manifest(working_dir)
    if manifest is None:
        raise MissingProjectManifestError(working_dir)
    if commit and not manifest_is_staged(working_dir):
        return []
    local_deps = find_local_dependencies(manifest)
    if local_deps:
        logger.info(f"Yalc dependencies found: {', '.join(local_deps)}")
    return local_deps
