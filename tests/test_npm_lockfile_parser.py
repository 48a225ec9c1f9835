"""Tests for npm lockfile parsers (package-lock.json, yarn.lock, pnpm-lock.yaml)."""

import json

import pytest

from models import LockfileParseError, PackageManager
from registry.npm.lockfile_parser import (
    LOCKFILE_PARSERS,
    detect_lockfile,
    parse_lockfile,
    parse_npm_lockfile,
    parse_pnpm_lockfile,
    parse_yarn_lockfile,
)


class TestPackageLockParser:
    """Test package-lock.json parser."""

    def test_parse_package_lock_v1(self):
        """Test parsing package-lock.json with lockfileVersion 1."""
        lockfile_content = {
            "name": "test-package",
            "version": "1.0.0",
            "lockfileVersion": 1,
            "dependencies": {
                "lodash": {
                    "version": "4.17.21",
                    "resolved": "https://registry.npmjs.org/lodash/-/lodash-4.17.21.tgz",
                    "integrity": "sha512-lodash",
                    "dependencies": {
                        "underscore": {
                            "version": "1.13.0",
                            "resolved": "https://registry.npmjs.org/underscore/-/underscore-1.13.0.tgz",
                        }
                    }
                },
                "express": {
                    "version": "4.18.2",
                    "resolved": "https://registry.npmjs.org/express/-/express-4.18.2.tgz",
                }
            }
        }

        result = parse_npm_lockfile(json.dumps(lockfile_content, indent=2))

        assert result.type is PackageManager.NPM
        assert set(result.packages) == {"lodash", "express", "underscore"}
        assert result.packages["lodash"].integrity == "sha512-lodash"
        assert result.packages["express"].integrity is None

    def test_parse_package_lock_v2(self):
        """Test parsing package-lock.json with lockfileVersion 2."""
        lockfile_content = {
            "name": "test-package",
            "version": "1.0.0",
            "lockfileVersion": 2,
            "packages": {
                "": {
                    "name": "test-package",
                    "version": "1.0.0",
                    "dependencies": {"lodash": "^4.17.21"},
                },
                "node_modules/lodash": {
                    "version": "4.17.21",
                    "resolved": "https://registry.npmjs.org/lodash/-/lodash-4.17.21.tgz",
                    "integrity": "sha512-abc",
                },
                "node_modules/@babel/core": {
                    "version": "7.23.0",
                    "resolved": "https://registry.npmjs.org/@babel/core/-/core-7.23.0.tgz",
                },
            }
        }

        result = parse_npm_lockfile(json.dumps(lockfile_content))

        assert set(result.packages) == {"lodash", "@babel/core"}
        entry = result.packages["@babel/core"]
        assert entry.version == "7.23.0"
        assert entry.resolved == "https://registry.npmjs.org/@babel/core/-/core-7.23.0.tgz"

    def test_scoped_entries_keyed_by_bare_name(self):
        """N distinct scoped packages produce exactly N entries without path prefixes."""
        names = [f"@acme/pkg-{i}" for i in range(7)]
        lockfile_content = {
            "lockfileVersion": 3,
            "packages": {
                "": {"name": "app"},
                **{f"node_modules/{n}": {"version": "1.0.0"} for n in names},
            },
        }

        result = parse_npm_lockfile(json.dumps(lockfile_content))

        assert sorted(result.packages) == sorted(names)

    def test_nested_copy_does_not_shadow_hoisted_entry(self):
        """A nested copy sorted before the hoisted package never replaces it."""
        lockfile_content = {
            "lockfileVersion": 3,
            "packages": {
                "": {"name": "app"},
                "node_modules/@acme/a": {"version": "1.0.0"},
                "node_modules/@acme/a/node_modules/@acme/z": {
                    "version": "0.9.0",
                    "resolved": "https://npm.acme.internal/@acme/z/-/z-0.9.0.tgz",
                },
                "node_modules/@acme/z": {
                    "version": "1.0.0",
                    "resolved": "https://registry.npmjs.org/@acme/z/-/z-1.0.0.tgz",
                },
                "packages/web/node_modules/c": {"version": "3.0.0"},
                "packages/web": {"version": "0.0.1"},
            },
        }

        result = parse_npm_lockfile(json.dumps(lockfile_content))

        assert set(result.packages) == {"@acme/a", "@acme/z"}
        assert result.packages["@acme/z"].version == "1.0.0"
        assert result.packages["@acme/z"].resolved.startswith("https://registry.npmjs.org/")

    def test_first_occurrence_wins(self):
        """A hoisted entry is kept over a nested duplicate listed after it."""
        lockfile_content = {
            "lockfileVersion": 3,
            "packages": {
                "node_modules/debug": {"version": "4.3.4"},
                "node_modules/x/node_modules/debug": {"version": "2.6.9"},
            },
        }

        result = parse_npm_lockfile(json.dumps(lockfile_content))

        assert result.packages["debug"].version == "4.3.4"

    def test_has_install_scripts_flag(self):
        """Only a literal true marks an entry as having install scripts."""
        lockfile_content = {
            "lockfileVersion": 3,
            "packages": {
                "node_modules/@acme/native": {"version": "1.0.0", "hasInstallScripts": True},
                "node_modules/plain": {"version": "1.0.0", "hasInstallScripts": "yes"},
            },
        }

        result = parse_npm_lockfile(json.dumps(lockfile_content))

        assert result.packages["@acme/native"].has_install_scripts is True
        assert result.packages["plain"].has_install_scripts is None

    def test_malformed_json_raises(self):
        """Malformed package-lock.json is a fatal parse error."""
        with pytest.raises(LockfileParseError):
            parse_npm_lockfile("{ not json")

    def test_non_object_raises(self):
        with pytest.raises(LockfileParseError):
            parse_npm_lockfile("[1, 2]")


class TestYarnLockParser:
    """Test yarn.lock (classic v1) parser."""

    YARN_LOCK = """# THIS IS AN AUTOGENERATED FILE. DO NOT EDIT THIS FILE DIRECTLY.
# yarn lockfile v1


"@acme/utils@^1.0.0", "@acme/utils@^1.1.0":
  version "1.2.0"
  resolved "https://npm.acme.internal/@acme/utils/-/utils-1.2.0.tgz#abc"
  integrity sha512-acme==

lodash@^4.17.21:
  version "4.17.21"
  resolved "https://registry.yarnpkg.com/lodash/-/lodash-4.17.21.tgz"
  integrity sha512-lodash==

no-integrity@1.0.0:
  version "1.0.0"
  resolved "https://registry.yarnpkg.com/no-integrity/-/no-integrity-1.0.0.tgz"
"""

    def test_parse_yarn_lock(self):
        """Test parsing entries with multi-specifier headers."""
        result = parse_yarn_lockfile(self.YARN_LOCK)

        assert result.type is PackageManager.YARN
        assert set(result.packages) == {"@acme/utils", "lodash", "no-integrity"}
        utils = result.packages["@acme/utils"]
        assert utils.version == "1.2.0"
        assert utils.resolved == "https://npm.acme.internal/@acme/utils/-/utils-1.2.0.tgz#abc"
        assert utils.integrity == "sha512-acme=="
        assert result.packages["no-integrity"].integrity is None

    def test_parse_is_pure(self):
        """Parsing the same content twice yields identical tables."""
        assert parse_yarn_lockfile(self.YARN_LOCK) == parse_yarn_lockfile(self.YARN_LOCK)

    def test_duplicate_name_keeps_first(self):
        content = (
            "pkg@^1.0.0:\n"
            '  version "1.0.0"\n'
            "\n"
            "pkg@^2.0.0:\n"
            '  version "2.0.0"\n'
        )
        result = parse_yarn_lockfile(content)

        assert result.packages["pkg"].version == "1.0.0"

    def test_garbage_lines_are_skipped(self):
        content = "!!! not a header\n  junk\nok@1.0.0:\n  version \"1.0.0\"\n"
        result = parse_yarn_lockfile(content)

        assert list(result.packages) == ["ok"]


class TestPnpmLockParser:
    """Test pnpm-lock.yaml parser."""

    def test_parse_v5_keys(self):
        content = """lockfileVersion: 5.4

specifiers:
  '@acme/ui': ^1.0.0

packages:

  /@acme/ui/1.0.0:
    resolution: {integrity: sha512-ui==}
    dev: false

  /lodash/4.17.21:
    resolution: {integrity: sha512-lodash==}
"""
        result = parse_pnpm_lockfile(content)

        assert result.type is PackageManager.PNPM
        assert result.packages["@acme/ui"].version == "1.0.0"
        assert result.packages["@acme/ui"].integrity == "sha512-ui=="
        assert result.packages["lodash"].version == "4.17.21"

    def test_parse_v6_keys(self):
        content = """lockfileVersion: '6.0'

packages:

  /@acme/ui@1.0.0:
    resolution: {integrity: sha512-ui==}

  /lodash@4.17.21:
    resolution: {integrity: sha512-lodash==}
"""
        result = parse_pnpm_lockfile(content)

        assert set(result.packages) == {"@acme/ui", "lodash"}

    def test_parse_v9_quoted_keys_and_section_end(self):
        content = """lockfileVersion: '9.0'

packages:

  '@acme/ui@1.0.0':
    resolution: {integrity: sha512-ui==, tarball: https://npm.acme.internal/@acme/ui/-/ui-1.0.0.tgz}

  lodash@4.17.21:
    resolution: {integrity: sha512-lodash==}

snapshots:

  '@acme/ui@1.0.0': {}
  other@9.9.9: {}
"""
        result = parse_pnpm_lockfile(content)

        assert set(result.packages) == {"@acme/ui", "lodash"}
        assert result.packages["@acme/ui"].resolved == "https://npm.acme.internal/@acme/ui/-/ui-1.0.0.tgz"

    def test_duplicate_name_keeps_first_version(self):
        """Two blocks sharing a name keep only the first-seen version."""
        content = """packages:

  /@acme/ui@1.0.0:
    resolution: {integrity: sha512-one==}

  /@acme/ui@2.0.0:
    resolution: {integrity: sha512-two==}
"""
        result = parse_pnpm_lockfile(content)

        assert result.packages["@acme/ui"].version == "1.0.0"
        assert result.packages["@acme/ui"].integrity == "sha512-one=="

    def test_missing_integrity(self):
        content = "packages:\n\n  /left-pad@1.3.0:\n    dev: true\n"
        result = parse_pnpm_lockfile(content)

        assert result.packages["left-pad"].integrity is None


class TestLockfileDetection:
    """Test lockfile detection and dispatch."""

    def test_no_lockfile(self, tmp_path):
        assert detect_lockfile(str(tmp_path)) is None
        assert parse_lockfile(str(tmp_path)) is None

    def test_precedence_npm_over_yarn_over_pnpm(self, tmp_path):
        (tmp_path / "pnpm-lock.yaml").write_text("packages:\n")
        (tmp_path / "yarn.lock").write_text("")
        path, manager = detect_lockfile(str(tmp_path))
        assert manager is PackageManager.YARN
        assert path.endswith("yarn.lock")

        (tmp_path / "package-lock.json").write_text(json.dumps({"packages": {}}))
        _, manager = detect_lockfile(str(tmp_path))
        assert manager is PackageManager.NPM

    def test_parse_lockfile_dispatches(self, tmp_path):
        (tmp_path / "yarn.lock").write_text('lodash@^4.0.0:\n  version "4.17.21"\n')

        result = parse_lockfile(str(tmp_path))

        assert result.type is PackageManager.YARN
        assert "lodash" in result.packages

    def test_every_dialect_has_a_parser(self):
        assert set(LOCKFILE_PARSERS) == set(PackageManager)

    def test_malformed_package_lock_propagates(self, tmp_path):
        (tmp_path / "package-lock.json").write_text("{")

        with pytest.raises(LockfileParseError):
            parse_lockfile(str(tmp_path))
