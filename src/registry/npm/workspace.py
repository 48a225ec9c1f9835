"""Workspace discovery for npm, yarn and pnpm monorepos.

Supports ``workspaces`` in package.json (array or ``{"packages": [...]}``)
and ``pnpm-workspace.yaml``. Patterns are resolved with plain directory
listing: ``dir/**`` (recursive), ``dir/*`` (one level), exact directories,
and other globs scanned one level under their static prefix.
"""

from __future__ import annotations

import json
import logging
import os
from typing import Any, List, Optional, Set

import yaml

from constants import Constants
from models import PackageManager, WorkspaceInfo, WorkspacePackage

logger = logging.getLogger(__name__)


def _extract_workspace_patterns(workspaces: Any) -> List[str]:
    if isinstance(workspaces, list):
        return [p for p in workspaces if isinstance(p, str)]
    if isinstance(workspaces, dict) and isinstance(workspaces.get("packages"), list):
        return [p for p in workspaces["packages"] if isinstance(p, str)]
    return []


def parse_pnpm_workspace_yaml(content: str) -> List[str]:
    """Return the ``packages`` patterns of a pnpm-workspace.yaml document.

    Malformed YAML yields no patterns.
    """
    try:
        data = yaml.safe_load(content)
    except yaml.YAMLError as e:
        logger.warning("Invalid %s: %s", Constants.PNPM_WORKSPACE_FILE, e)
        return []
    if not isinstance(data, dict):
        return []
    return _extract_workspace_patterns(data.get("packages"))


class _PackageCollector:
    """Accumulates unique package directories in discovery order."""

    def __init__(self, root_dir: str):
        self.root_dir = root_dir
        self.packages: List[WorkspacePackage] = []
        self._seen: Set[str] = set()

    def add_if_package(self, directory: str) -> None:
        normalized = os.path.abspath(directory)
        if normalized in self._seen:
            return
        manifest = os.path.join(normalized, Constants.PACKAGE_JSON_FILE)
        if not os.path.isfile(manifest):
            return
        try:
            with open(manifest, "r", encoding="utf-8") as file:
                raw = json.load(file)
        except (OSError, json.JSONDecodeError) as e:
            logger.debug("Skipping %s: %s", manifest, e)
            return

        relative = os.path.relpath(normalized, self.root_dir)
        name = raw.get("name") if isinstance(raw, dict) else None
        self._seen.add(normalized)
        self.packages.append(
            WorkspacePackage(
                name=name if isinstance(name, str) else relative,
                path=normalized,
                relative_path=relative,
            )
        )

    def scan_children(self, parent: str) -> None:
        for entry in _sorted_listdir(parent):
            child = os.path.join(parent, entry)
            if os.path.isdir(child):
                self.add_if_package(child)

    def scan_recursive(self, parent: str) -> None:
        for entry in _sorted_listdir(parent):
            if entry == Constants.NODE_MODULES_DIR:
                continue
            child = os.path.join(parent, entry)
            if os.path.isdir(child):
                self.add_if_package(child)
                self.scan_recursive(child)


def _sorted_listdir(directory: str) -> List[str]:
    try:
        return sorted(os.listdir(directory))
    except OSError:
        return []


def resolve_workspace_patterns(root_dir: str, patterns: List[str]) -> List[WorkspacePackage]:
    """Resolve workspace glob patterns to package directories under ``root_dir``."""
    root_dir = os.path.abspath(root_dir)
    collector = _PackageCollector(root_dir)

    for pattern in patterns:
        if pattern.startswith("!"):
            # Negated patterns only narrow a match set; nothing to add
            continue
        if pattern.endswith("/**"):
            parent = os.path.join(root_dir, pattern[:-3])
            if os.path.isdir(parent):
                collector.scan_recursive(parent)
        elif pattern.endswith("/*"):
            parent = os.path.join(root_dir, pattern[:-2])
            if os.path.isdir(parent):
                collector.scan_children(parent)
        elif "*" not in pattern:
            collector.add_if_package(os.path.join(root_dir, pattern))
        else:
            static_parts = []
            for part in pattern.split("/"):
                if "*" in part:
                    break
                static_parts.append(part)
            parent = os.path.join(root_dir, *static_parts)
            if os.path.isdir(parent):
                collector.scan_children(parent)

    return collector.packages


def detect_workspace(root_dir: str) -> Optional[WorkspaceInfo]:
    """Detect whether ``root_dir`` is a monorepo workspace and list its packages.

    Returns:
        WorkspaceInfo, or None when the root declares no workspace patterns.
    """
    manifest = os.path.join(root_dir, Constants.PACKAGE_JSON_FILE)
    if not os.path.isfile(manifest):
        return None
    try:
        with open(manifest, "r", encoding="utf-8") as file:
            raw = json.load(file)
    except (OSError, json.JSONDecodeError) as e:
        logger.debug("Cannot read workspaces from %s: %s", manifest, e)
        return None

    patterns = _extract_workspace_patterns(raw.get("workspaces")) if isinstance(raw, dict) else []
    if patterns:
        manager = (
            PackageManager.YARN
            if os.path.isfile(os.path.join(root_dir, Constants.YARN_LOCK_FILE))
            else PackageManager.NPM
        )
        packages = resolve_workspace_patterns(root_dir, patterns)
        logger.info("%s workspace with %d package(s) detected", manager.value, len(packages))
        return WorkspaceInfo(type=manager, root_dir=os.path.abspath(root_dir), packages=tuple(packages))

    pnpm_workspace = os.path.join(root_dir, Constants.PNPM_WORKSPACE_FILE)
    if os.path.isfile(pnpm_workspace):
        with open(pnpm_workspace, "r", encoding="utf-8") as file:
            patterns = parse_pnpm_workspace_yaml(file.read())
        if patterns:
            packages = resolve_workspace_patterns(root_dir, patterns)
            logger.info("pnpm workspace with %d package(s) detected", len(packages))
            return WorkspaceInfo(
                type=PackageManager.PNPM,
                root_dir=os.path.abspath(root_dir),
                packages=tuple(packages),
            )

    return None
