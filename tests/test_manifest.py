"""Tests for package.json access helpers."""

from __future__ import annotations

from pathlib import Path

import pytest

from yalc.manifest import manifest_bins, parse_package_name, read_package_manifest, write_package_manifest


class TestParsePackageName:
    """Tests for parse_package_name."""

    @pytest.mark.parametrize(
        ("spec", "expected"),
        [
            ("lib", ("lib", "")),
            ("lib@1.0.0", ("lib", "1.0.0")),
            ("@scope/lib", ("@scope/lib", "")),
            ("@scope/lib@^2.0.0", ("@scope/lib", "^2.0.0")),
            ("  lib@1.0.0 ", ("lib", "1.0.0")),
            ("@scope", ("", "")),
            ("", ("", "")),
        ],
    )
    def test_parse(self, spec: str, expected: tuple[str, str]) -> None:
        assert parse_package_name(spec) == expected


class TestReadWrite:
    """Tests for reading and writing manifests."""

    def test_missing_returns_none(self, tmp_path: Path) -> None:
        assert read_package_manifest(tmp_path) is None

    def test_invalid_json_returns_none(self, tmp_path: Path) -> None:
        (tmp_path / "package.json").write_text("{oops")
        assert read_package_manifest(tmp_path) is None

    def test_non_object_returns_none(self, tmp_path: Path) -> None:
        (tmp_path / "package.json").write_text("[]")
        assert read_package_manifest(tmp_path) is None

    def test_round_trip_keeps_unknown_fields_and_order(self, tmp_path: Path) -> None:
        manifest = {"version": "1.0.0", "name": "lib", "custom": {"nested": [1, 2]}}
        write_package_manifest(tmp_path, manifest)

        text = (tmp_path / "package.json").read_text()
        assert text.endswith("}\n")
        assert text.startswith('{\n  "version"')
        assert read_package_manifest(tmp_path) == manifest


class TestManifestBins:
    """Tests for manifest_bins."""

    def test_string_bin_uses_unscoped_name(self) -> None:
        assert manifest_bins({"name": "@scope/tool", "bin": "cli.js"}) == {"tool": "cli.js"}

    def test_mapping_bin(self) -> None:
        assert manifest_bins({"bin": {"a": "a.js", "b": ""}}) == {"a": "a.js"}

    def test_no_bin(self) -> None:
        assert manifest_bins({"name": "lib"}) == {}
