"""Lockfile parsers for npm ecosystem (package-lock.json, yarn.lock, pnpm-lock.yaml).

Each dialect has its own pure parser taking the file content and returning a
normalized LockfileData. ``parse_lockfile`` detects the dialect from file
presence and dispatches through ``LOCKFILE_PARSERS``.

Every parser keeps the first entry seen for a package name; later blocks for
the same name are ignored.
"""

from __future__ import annotations

import json
import logging
import os
import re
from collections import deque
from typing import Callable, Dict, List, Optional, Tuple

from common.logging_utils import (
    is_debug_enabled,
    log_discovered_files,
    log_selection,
    warn_multiple_lockfiles,
)
from constants import Constants
from models import LockfileData, LockfileEntry, LockfileParseError, PackageManager

logger = logging.getLogger(__name__)

_NODE_MODULES_PREFIX = Constants.NODE_MODULES_DIR + "/"


def _optional_str(value) -> Optional[str]:
    return value if isinstance(value, str) else None


def _entry_from_json(name: str, info: dict) -> LockfileEntry:
    """Build a LockfileEntry from a package-lock.json record."""
    return LockfileEntry(
        name=name,
        version=info["version"] if isinstance(info.get("version"), str) else "",
        resolved=_optional_str(info.get("resolved")),
        integrity=_optional_str(info.get("integrity")),
        has_install_scripts=True if info.get("hasInstallScripts") is True else None,
    )


def _name_from_install_path(install_path: str) -> Optional[str]:
    """Return the package name of a hoisted ``packages`` key.

    "node_modules/@scope/pkg" -> "@scope/pkg"
    Nested copies ("node_modules/a/node_modules/b"), the root "" entry and
    workspace folders -> None
    """
    if not install_path.startswith(_NODE_MODULES_PREFIX):
        return None
    name = install_path[len(_NODE_MODULES_PREFIX):]
    if "/" + _NODE_MODULES_PREFIX in name:
        return None
    return name or None


def parse_npm_lockfile(content: str) -> LockfileData:
    """Parse package-lock.json content.

    Reads the flat ``packages`` map of lockfileVersion 2/3 and falls back to
    the nested ``dependencies`` tree of lockfileVersion 1 when the flat map
    yields nothing.

    Args:
        content: Raw JSON text.

    Returns:
        LockfileData of type npm.

    Raises:
        LockfileParseError: If the content is not valid JSON.
    """
    try:
        data = json.loads(content)
    except json.JSONDecodeError as e:
        raise LockfileParseError(f"Invalid package-lock.json: {e}") from e
    if not isinstance(data, dict):
        raise LockfileParseError("Invalid package-lock.json: top-level value is not an object")

    packages: Dict[str, LockfileEntry] = {}

    flat = data.get("packages")
    if isinstance(flat, dict):
        for pkg_path, pkg_info in flat.items():
            if not pkg_path or not isinstance(pkg_info, dict):
                continue
            name = _name_from_install_path(pkg_path)
            if name and name not in packages:
                packages[name] = _entry_from_json(name, pkg_info)

    if not packages:
        # lockfileVersion 1: walk the tree breadth-first so top-level wins
        queue = deque([data.get("dependencies")])
        while queue:
            deps = queue.popleft()
            if not isinstance(deps, dict):
                continue
            for pkg_name, pkg_info in deps.items():
                if not isinstance(pkg_info, dict):
                    continue
                if pkg_name not in packages:
                    packages[pkg_name] = _entry_from_json(pkg_name, pkg_info)
                if "dependencies" in pkg_info:
                    queue.append(pkg_info["dependencies"])

    return LockfileData(type=PackageManager.NPM, packages=packages)


_YARN_HEADER = re.compile(r'^"?(@?[^@"]+)@')
_YARN_VERSION = re.compile(r'^version\s+"([^"]+)"')
_YARN_RESOLVED = re.compile(r'^resolved\s+"([^"]+)"')
_YARN_INTEGRITY = re.compile(r"^integrity\s+(\S+)")


def _split_yarn_blocks(content: str) -> List[List[str]]:
    """Split yarn.lock into blocks, each starting at a non-indented line."""
    blocks: List[List[str]] = []
    for line in content.splitlines():
        if line and not line[0].isspace():
            blocks.append([line])
        elif blocks:
            blocks[-1].append(line)
    return blocks


def parse_yarn_lockfile(content: str) -> LockfileData:
    """Parse classic (v1) yarn.lock content.

    Block header: ``"@scope/pkg@^1.0.0", "@scope/pkg@^1.1.0":``. The name
    is taken from the first specifier; indented lines supply version,
    resolved and integrity. Unrecognized lines are skipped.
    """
    packages: Dict[str, LockfileEntry] = {}

    for block in _split_yarn_blocks(content):
        header = block[0].strip()
        if not header or header.startswith("#"):
            continue
        match = _YARN_HEADER.match(header)
        if not match:
            continue

        name = match.group(1)
        version = ""
        resolved = None
        integrity = None
        for line in block[1:]:
            trimmed = line.strip()
            m = _YARN_VERSION.match(trimmed)
            if m:
                version = m.group(1)
                continue
            m = _YARN_RESOLVED.match(trimmed)
            if m:
                resolved = m.group(1)
                continue
            m = _YARN_INTEGRITY.match(trimmed)
            if m:
                integrity = m.group(1)

        if name not in packages:
            packages[name] = LockfileEntry(
                name=name, version=version, resolved=resolved, integrity=integrity
            )

    return LockfileData(type=PackageManager.YARN, packages=packages)


# pnpm-lock.yaml package key shapes, each optionally quoted:
#   v5 scoped:   /@scope/name/1.0.0:
#   v5 unscoped: /name/1.0.0:
#   v6+ / v9:    /@scope/name@1.0.0:  /name@1.0.0:  'name@1.0.0':
_PNPM_V5_SCOPED = re.compile(r"""^['"]?/?(@[^/]+/[^/]+)/(\d[^:'"]*)['"]?:""")
_PNPM_V5_UNSCOPED = re.compile(r"""^['"]?/([^@/][^/]*)/(\d[^:'"]*)['"]?:""")
_PNPM_AT_SIGN = re.compile(r"""^['"]?/?(@[^@]+|[^@/'"\s][^@]*?)@(\d[^:'"]*)['"]?:""")
_PNPM_KEY_SHAPES = (_PNPM_V5_SCOPED, _PNPM_V5_UNSCOPED, _PNPM_AT_SIGN)
_PNPM_INTEGRITY = re.compile(r"""integrity:\s*['"]?(sha[^}'",\s]+)['"]?""")
_PNPM_TARBALL = re.compile(r"""tarball:\s*['"]?([^}'",\s]+)['"]?""")


def _match_pnpm_key(trimmed: str) -> Optional[Tuple[str, str]]:
    for pattern in _PNPM_KEY_SHAPES:
        match = pattern.match(trimmed)
        if match:
            return match.group(1), match.group(2)
    return None


class _PnpmPending:
    """Package block being accumulated by the pnpm state machine."""

    def __init__(self, name: str, version: str):
        self.name = name
        self.version = version
        self.integrity: Optional[str] = None
        self.resolved: Optional[str] = None

    def flush_into(self, packages: Dict[str, LockfileEntry]) -> None:
        if self.name and self.version and self.name not in packages:
            packages[self.name] = LockfileEntry(
                name=self.name,
                version=self.version,
                resolved=self.resolved,
                integrity=self.integrity,
            )


def parse_pnpm_lockfile(content: str) -> LockfileData:
    """Parse pnpm-lock.yaml content.

    Handles v5 (slash-separated), v6+ (@-separated) and v9 (quoted keys)
    layouts with a line-oriented state machine rather than a YAML load, so
    partially broken files still yield whatever entries are readable.
    """
    packages: Dict[str, LockfileEntry] = {}
    in_packages = False
    pending: Optional[_PnpmPending] = None

    for line in content.splitlines():
        trimmed = line.strip()

        if re.match(r"^packages:\s*$", line):
            in_packages = True
            continue

        if in_packages and trimmed and not line[0].isspace():
            if not trimmed.startswith(("/", "@", "'", '"')):
                if pending:
                    pending.flush_into(packages)
                pending = None
                in_packages = False
                continue

        if not in_packages:
            continue

        key = _match_pnpm_key(trimmed)
        if key:
            if pending:
                pending.flush_into(packages)
            pending = _PnpmPending(*key)
            continue

        if pending:
            m = _PNPM_INTEGRITY.search(trimmed)
            if m:
                pending.integrity = m.group(1)
            m = _PNPM_TARBALL.search(trimmed)
            if m:
                pending.resolved = m.group(1)

    if pending:
        pending.flush_into(packages)

    return LockfileData(type=PackageManager.PNPM, packages=packages)


LOCKFILE_PARSERS: Dict[PackageManager, Callable[[str], LockfileData]] = {
    PackageManager.NPM: parse_npm_lockfile,
    PackageManager.YARN: parse_yarn_lockfile,
    PackageManager.PNPM: parse_pnpm_lockfile,
}

# Detection precedence: first present file wins.
LOCKFILE_PRECEDENCE: Tuple[Tuple[str, PackageManager], ...] = (
    (Constants.PACKAGE_LOCK_FILE, PackageManager.NPM),
    (Constants.YARN_LOCK_FILE, PackageManager.YARN),
    (Constants.PNPM_LOCK_FILE, PackageManager.PNPM),
)


def detect_lockfile(root_dir: str) -> Optional[Tuple[str, PackageManager]]:
    """Find the lockfile to use in ``root_dir``.

    Returns:
        (path, dialect) of the highest-precedence lockfile, or None.
    """
    present = [
        (os.path.join(root_dir, file_name), manager)
        for file_name, manager in LOCKFILE_PRECEDENCE
        if os.path.isfile(os.path.join(root_dir, file_name))
    ]
    if is_debug_enabled(logger):
        log_discovered_files(logger, "npm", {"lockfile": [path for path, _ in present]})
    if not present:
        return None
    if len(present) > 1:
        warn_multiple_lockfiles(logger, "npm", present[0][0], [path for path, _ in present[1:]])
    return present[0]


def parse_lockfile(root_dir: str) -> Optional[LockfileData]:
    """Detect and parse the lockfile in the project root.

    Returns:
        LockfileData, or None when no lockfile is present.

    Raises:
        LockfileParseError: If package-lock.json is malformed.
    """
    detected = detect_lockfile(root_dir)
    if detected is None:
        logger.debug("No lockfile found in %s", root_dir)
        return None

    path, manager = detected
    log_selection(
        logger,
        manager.value,
        os.path.join(root_dir, Constants.PACKAGE_JSON_FILE),
        path,
        "lockfile precedence package-lock.json > yarn.lock > pnpm-lock.yaml",
    )
    with open(path, "r", encoding="utf-8") as file:
        content = file.read()
    lockfile = LOCKFILE_PARSERS[manager](content)
    logger.debug("Parsed %s: %d entries", path, len(lockfile.packages))
    return lockfile
