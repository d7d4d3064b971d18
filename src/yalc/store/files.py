"""Publishable file selection.

list_publishable_files approximates the npm publish rules: the manifest's
`files` field (plus the files npm always ships) when present, otherwise the
whole tree minus `.npmignore` (or `.gitignore`) patterns. IgnoreRules applies
gitignore-style patterns such as those in `.yalcignore`.
"""

from __future__ import annotations

import fnmatch
import os
import re
from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from yalc.config import (
    IGNORE_FILE,
    LOCKFILE_NAME,
    MANIFEST_FILE,
    MODULES_FOLDER,
    SIGNATURE_FILE,
    VENDOR_FOLDER,
)

ALWAYS_EXCLUDED_DIRS: frozenset[str] = frozenset({".git", ".hg", ".svn", MODULES_FOLDER, VENDOR_FOLDER})
ALWAYS_EXCLUDED_FILES: frozenset[str] = frozenset(
    {LOCKFILE_NAME, SIGNATURE_FILE, ".DS_Store", "npm-debug.log", ".npmrc"}
)

# Shipped regardless of the `files` field.
ALWAYS_INCLUDED_PATTERN = re.compile(r"^(readme|license|licence|changelog)(\..*)?$", re.IGNORECASE)


@dataclass(frozen=True)
class IgnoreRule:
    pattern: str
    negated: bool
    dir_only: bool
    anchored: bool

    def matches(self, relative_path: str) -> bool:
        parts = relative_path.split("/")
        # Directory rules only match strict parents of the path.
        limit = len(parts) - 1 if self.dir_only else len(parts)
        if self.anchored:
            segments = self.pattern.split("/")
            return any(_match_segments(segments, parts[: i + 1]) for i in range(limit))
        return any(fnmatch.fnmatchcase(part, self.pattern) for part in parts[:limit])


def _match_segments(pattern: Sequence[str], parts: Sequence[str]) -> bool:
    """Match path segments one by one; `**` spans any number of segments."""
    if not pattern:
        return not parts
    head = pattern[0]
    if head == "**":
        return any(_match_segments(pattern[1:], parts[i:]) for i in range(len(parts) + 1))
    return bool(parts) and fnmatch.fnmatchcase(parts[0], head) and _match_segments(pattern[1:], parts[1:])


def parse_ignore_rule(line: str) -> IgnoreRule | None:
    line = line.strip()
    if not line or line.startswith("#"):
        return None
    negated = line.startswith("!")
    if negated:
        line = line[1:]
    dir_only = line.endswith("/")
    line = line.rstrip("/")
    anchored = "/" in line
    line = line.lstrip("/")
    if line.startswith("**/"):
        # "**/x" matches x at any depth
        line = line[3:]
        anchored = "/" in line
    if not line:
        return None
    return IgnoreRule(pattern=line, negated=negated, dir_only=dir_only, anchored=anchored)


class IgnoreRules:
    """Ordered gitignore-style rules; the last matching rule wins."""

    def __init__(self, content: str = "") -> None:
        self._rules: list[IgnoreRule] = []
        self.add(content)

    def add(self, content: str) -> IgnoreRules:
        for line in content.splitlines():
            rule = parse_ignore_rule(line)
            if rule is not None:
                self._rules.append(rule)
        return self

    def __len__(self) -> int:
        return len(self._rules)

    def ignores(self, relative_path: str) -> bool:
        ignored = False
        for rule in self._rules:
            if rule.matches(relative_path):
                ignored = not rule.negated
        return ignored

    def filter(self, relative_paths: Iterable[str]) -> list[str]:
        return [p for p in relative_paths if not self.ignores(p)]


def read_ignore_file(working_dir: Path, name: str = IGNORE_FILE) -> str:
    """Read an ignore file, or "" when absent."""
    try:
        return (working_dir / name).read_text(encoding="utf-8")
    except OSError:
        return ""


def _walk(working_dir: Path) -> list[str]:
    files: list[str] = []
    for dirpath, dirnames, filenames in os.walk(working_dir):
        dirnames[:] = sorted(d for d in dirnames if d not in ALWAYS_EXCLUDED_DIRS)
        base = Path(dirpath)
        for filename in filenames:
            if filename in ALWAYS_EXCLUDED_FILES:
                continue
            files.append((base / filename).relative_to(working_dir).as_posix())
    return files


def _in_files_field(relative_path: str, entries: list[str]) -> bool:
    for entry in entries:
        entry = entry.strip().removeprefix("./").rstrip("/")
        if not entry:
            continue
        if relative_path == entry or relative_path.startswith(entry + "/"):
            return True
        if fnmatch.fnmatchcase(relative_path, entry) or fnmatch.fnmatchcase(
            relative_path, entry + "/*"
        ):
            return True
    return False


def list_publishable_files(working_dir: Path, manifest: dict[str, Any]) -> list[str]:
    """List the files a publish of working_dir ships, relative and sorted."""
    candidates = _walk(working_dir)

    files_field = manifest.get("files")
    if isinstance(files_field, list) and files_field:
        entries = [str(e) for e in files_field]
        main = str(manifest.get("main", "")).removeprefix("./")
        candidates = [
            p
            for p in candidates
            if p == MANIFEST_FILE
            or p == main
            or ("/" not in p and ALWAYS_INCLUDED_PATTERN.match(p))
            or _in_files_field(p, entries)
        ]
    else:
        npm_ignore = read_ignore_file(working_dir, ".npmignore")
        if not npm_ignore and not (working_dir / ".npmignore").exists():
            npm_ignore = read_ignore_file(working_dir, ".gitignore")
        rules = IgnoreRules(npm_ignore)
        candidates = [p for p in candidates if p == MANIFEST_FILE or not rules.ignores(p)]

    return sorted(candidates)
