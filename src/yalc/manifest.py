"""Package manifest (package.json) access.

Manifests are kept as plain dicts so unknown fields and key order survive a
read/write cycle.
"""

from __future__ import annotations

import logging
import re
from pathlib import Path
from typing import Any

import orjson

from yalc.config import MANIFEST_FILE

logger = logging.getLogger(__name__)

PackageManifest = dict[str, Any]

DEPENDENCY_FIELDS: tuple[str, ...] = ("dependencies", "devDependencies", "peerDependencies")

# [@scope/]name[@version]
PACKAGE_NAME_PATTERN = re.compile(r"^(?P<scope>@[^/@]+/)?(?P<name>[^@/]+)(?:@(?P<version>.*))?$")


def parse_package_name(spec: str) -> tuple[str, str]:
    """Split `name@version` into its parts.

    Args:
        spec: Package spec such as "lib", "lib@1.0.0" or "@scope/lib@^2".

    Returns:
        (name, version). Both are empty strings for an unparsable spec;
        version is empty when not given.
    """
    match = PACKAGE_NAME_PATTERN.match(spec.strip())
    if not match:
        return "", ""
    name = (match.group("scope") or "") + match.group("name")
    return name, match.group("version") or ""


def manifest_path(working_dir: Path) -> Path:
    return working_dir / MANIFEST_FILE


def read_package_manifest(working_dir: Path) -> PackageManifest | None:
    """Read package.json from working_dir.

    Returns:
        The parsed manifest, or None when it is missing or unreadable.
    """
    path = manifest_path(working_dir)
    try:
        data = orjson.loads(path.read_bytes())
    except FileNotFoundError:
        return None
    except (OSError, orjson.JSONDecodeError) as e:
        logger.warning(f"Could not read {path}: {e}")
        return None
    if not isinstance(data, dict):
        logger.warning(f"Could not read {path}: manifest is not a JSON object")
        return None
    return data


def write_package_manifest(working_dir: Path, manifest: PackageManifest) -> None:
    """Write package.json with 2-space indentation and a trailing newline."""
    path = manifest_path(working_dir)
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(orjson.dumps(manifest, option=orjson.OPT_INDENT_2) + b"\n")
    except OSError:
        logger.error(f"Could not write {path}")
        raise


def manifest_bins(manifest: PackageManifest) -> dict[str, str]:
    """Executables declared by `bin`, as name -> relative path."""
    bin_field = manifest.get("bin")
    if isinstance(bin_field, str):
        # A bare string is exposed under the unscoped package name.
        name = str(manifest.get("name", "")).split("/")[-1]
        return {name: bin_field} if name else {}
    if isinstance(bin_field, dict):
        return {str(k): str(v) for k, v in bin_field.items() if v}
    return {}
