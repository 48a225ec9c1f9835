"""End-to-end tests for the scan entrypoints."""

import json

import pytest

from config import build_config
from models import (
    ManifestNotFoundError,
    ManifestParseError,
    LockfileParseError,
    PackageManager,
    Severity,
    WorkspaceInfo,
    WorkspacePackage,
)
from scanner import scan_for_confusion, scan_workspace


def _write_json(path, data):
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(data, indent=2))


class TestScanForConfusion:
    """Test single-project scans."""

    def test_scoped_dependency_without_config_or_lockfile(self, tmp_path):
        """No config and no lockfile: exactly DC-001 and DC-004."""
        _write_json(tmp_path / "package.json", {"dependencies": {"@acme/lib": "^1.0.0"}})

        result = scan_for_confusion(build_config(root_dir=str(tmp_path), severity_threshold="high"))

        assert sorted(f.rule_id for f in result.findings) == ["DC-001", "DC-004"]
        assert result.summary.to_dict() == {
            "total": 2, "critical": 0, "high": 2, "medium": 0, "low": 0, "info": 0,
        }

    def test_default_threshold_reports_medium_too(self, tmp_path):
        _write_json(tmp_path / "package.json", {"dependencies": {"@acme/lib": "^1.0.0"}})

        result = scan_for_confusion(build_config(root_dir=str(tmp_path)))

        assert [f.rule_id for f in result.findings] == ["DC-001", "DC-004", "DC-007"]
        assert result.context.scoped_packages == 1
        assert result.context.lockfile_detected is False

    def test_public_resolution_behind_nested_private_copy(self, tmp_path):
        """DC-003 fires for a hoisted public copy even when a nested copy resolves privately."""
        _write_json(tmp_path / "package.json", {"dependencies": {"@acme/a": "1.0.0", "@acme/z": "1.0.0"}})
        (tmp_path / ".npmrc").write_text("@acme:registry=https://npm.acme.internal/\n")
        _write_json(tmp_path / "package-lock.json", {
            "lockfileVersion": 3,
            "packages": {
                "": {"name": "app"},
                "node_modules/@acme/a": {
                    "version": "1.0.0",
                    "resolved": "https://npm.acme.internal/@acme/a/-/a-1.0.0.tgz",
                    "integrity": "sha512-a",
                },
                "node_modules/@acme/a/node_modules/@acme/z": {
                    "version": "0.9.0",
                    "resolved": "https://npm.acme.internal/@acme/z/-/z-0.9.0.tgz",
                    "integrity": "sha512-old",
                },
                "node_modules/@acme/z": {
                    "version": "1.0.0",
                    "resolved": "https://registry.npmjs.org/@acme/z/-/z-1.0.0.tgz",
                    "integrity": "sha512-z",
                },
            },
        })

        result = scan_for_confusion(build_config(root_dir=str(tmp_path)))

        dc003 = [f for f in result.findings if f.rule_id == "DC-003"]
        assert [f.package_name for f in dc003] == ["@acme/z"]

    def test_private_default_registry(self, tmp_path):
        """A private default registry suppresses the missing scope mapping finding."""
        _write_json(tmp_path / "package.json", {"dependencies": {"@acme/lib": "1.0.0"}})
        (tmp_path / ".npmrc").write_text("registry=https://npm.acme.internal/\n")

        result = scan_for_confusion(build_config(root_dir=str(tmp_path)))

        ids = [f.rule_id for f in result.findings]
        assert "DC-010" in ids
        assert "DC-002" not in ids
        dc010 = next(f for f in result.findings if f.rule_id == "DC-010")
        assert dc010.severity is Severity.INFO

    def test_lockfile_resolution_from_public_registry(self, tmp_path):
        _write_json(tmp_path / "package.json", {"dependencies": {"@acme/lib": "1.0.0"}})
        (tmp_path / ".npmrc").write_text("@acme:registry=https://npm.acme.internal/\n")
        _write_json(tmp_path / "package-lock.json", {
            "lockfileVersion": 3,
            "packages": {
                "": {"name": "app"},
                "node_modules/@acme/lib": {
                    "version": "1.0.0",
                    "resolved": "https://registry.npmjs.org/@acme/lib/-/lib-1.0.0.tgz",
                    "integrity": "sha512-abc",
                },
            },
        })

        result = scan_for_confusion(build_config(root_dir=str(tmp_path)))

        assert result.findings[0].rule_id == "DC-003"
        assert result.findings[0].severity is Severity.CRITICAL
        assert result.context.lockfile_detected is True

    def test_scope_and_ignore_filters(self, tmp_path):
        _write_json(tmp_path / "package.json", {
            "dependencies": {"@acme/a": "^1.0.0", "@other/b": "^1.0.0", "@acme/c": "^1.0.0"},
        })
        _write_json(tmp_path / "package-lock.json", {"lockfileVersion": 3, "packages": {}})
        (tmp_path / ".npmrc").write_text("")

        config = build_config(root_dir=str(tmp_path), scopes=["@acme"], ignore_packages=["@acme/c"])
        result = scan_for_confusion(config)

        packages = {f.package_name for f in result.findings}
        assert packages == {"@acme/a"}

    def test_missing_manifest(self, tmp_path):
        with pytest.raises(ManifestNotFoundError):
            scan_for_confusion(build_config(root_dir=str(tmp_path)))

    def test_malformed_manifest(self, tmp_path):
        (tmp_path / "package.json").write_text("{")

        with pytest.raises(ManifestParseError):
            scan_for_confusion(build_config(root_dir=str(tmp_path)))

    def test_malformed_npm_lockfile(self, tmp_path):
        _write_json(tmp_path / "package.json", {})
        (tmp_path / "package-lock.json").write_text("not json")

        with pytest.raises(LockfileParseError):
            scan_for_confusion(build_config(root_dir=str(tmp_path)))


class TestScanWorkspace:
    """Test workspace scans."""

    def test_non_workspace_degrades_to_root(self, tmp_path):
        _write_json(tmp_path / "package.json", {"dependencies": {"@acme/lib": "^1.0.0"}})

        result = scan_workspace(build_config(root_dir=str(tmp_path)))

        assert result.is_workspace is False
        assert [pr.package_name for pr in result.package_results] == ["root"]
        assert result.combined_summary == result.package_results[0].result.summary

    def test_workspace_scans_root_then_packages(self, tmp_path):
        _write_json(tmp_path / "package.json", {"name": "mono", "workspaces": ["packages/*"]})
        _write_json(tmp_path / "packages" / "a" / "package.json", {
            "name": "@acme/a", "dependencies": {"@acme/lib": "^1.0.0"},
        })
        _write_json(tmp_path / "packages" / "b" / "package.json", {
            "name": "@acme/b", "dependencies": {"lodash": "4.17.21"},
        })

        result = scan_workspace(build_config(root_dir=str(tmp_path)))

        assert result.is_workspace is True
        assert [pr.package_name for pr in result.package_results] == ["root", "@acme/a", "@acme/b"]
        all_findings = [f for pr in result.package_results for f in pr.result.findings]
        assert result.combined_summary.total == len(all_findings)
        assert result.combined_summary.high == sum(1 for f in all_findings if f.severity is Severity.HIGH)
        assert result.skipped_packages == ()

    def test_unscannable_package_is_recorded(self, tmp_path):
        _write_json(tmp_path / "package.json", {"name": "mono"})
        good = tmp_path / "packages" / "good"
        _write_json(good / "package.json", {"name": "good"})
        broken = tmp_path / "packages" / "broken"
        broken.mkdir(parents=True)
        workspace = WorkspaceInfo(
            type=PackageManager.NPM,
            root_dir=str(tmp_path),
            packages=(
                WorkspacePackage(name="broken", path=str(broken), relative_path="packages/broken"),
                WorkspacePackage(name="good", path=str(good), relative_path="packages/good"),
            ),
        )

        result = scan_workspace(build_config(root_dir=str(tmp_path)), workspace=workspace)

        assert [pr.package_name for pr in result.package_results] == ["root", "good"]
        assert result.skipped_packages == ("broken",)
