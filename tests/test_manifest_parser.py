"""Tests for package.json parsing."""

import json

import pytest

from models import ManifestNotFoundError, ManifestParseError
from registry.npm.manifest import parse_package_json, parse_package_json_content


class TestPackageJsonParser:
    """Test package.json parsing."""

    def test_parse_full_manifest(self):
        content = json.dumps({
            "name": "@acme/app",
            "version": "2.0.0",
            "private": True,
            "dependencies": {"@acme/lib": "^1.0.0", "lodash": "4.17.21"},
            "devDependencies": {"jest": "^29.0.0"},
            "scripts": {"postinstall": "node setup.js", "test": "jest"},
        })

        data = parse_package_json_content(content)

        assert data.name == "@acme/app"
        assert data.version == "2.0.0"
        assert data.is_private is True
        assert data.dependencies == {"@acme/lib": "^1.0.0", "lodash": "4.17.21"}
        assert data.dev_dependencies == {"jest": "^29.0.0"}
        assert data.has_postinstall is True
        assert data.has_preinstall is False
        assert data.has_install_scripts is True

    def test_minimal_manifest(self):
        data = parse_package_json_content("{}")

        assert data.name is None
        assert data.is_private is False
        assert data.dependencies == {}
        assert data.dev_dependencies == {}
        assert data.has_install_scripts is False

    def test_non_string_versions_are_dropped(self):
        content = json.dumps({"dependencies": {"ok": "1.0.0", "bad": 3, "worse": None}})

        data = parse_package_json_content(content)

        assert data.dependencies == {"ok": "1.0.0"}

    def test_invalid_json_raises(self):
        with pytest.raises(ManifestParseError):
            parse_package_json_content("{ nope")

    def test_non_object_raises(self):
        with pytest.raises(ManifestParseError):
            parse_package_json_content('"just a string"')

    def test_missing_file_raises(self, tmp_path):
        with pytest.raises(ManifestNotFoundError):
            parse_package_json(str(tmp_path))

    def test_reads_from_directory(self, tmp_path):
        (tmp_path / "package.json").write_text(json.dumps({"name": "demo", "scripts": {"preinstall": "x"}}))

        data = parse_package_json(str(tmp_path))

        assert data.name == "demo"
        assert data.has_preinstall is True
