"""Registry configuration parsers for .npmrc and .yarnrc.yml.

Both files are read line by line; lines that match nothing are skipped so a
partially broken config still contributes whatever it defines.
"""

from __future__ import annotations

import logging
import os
import re
from typing import Dict, Optional

from common.logging_utils import safe_url
from constants import Constants
from models import RegistryConfig

logger = logging.getLogger(__name__)

_NPMRC_DEFAULT = re.compile(r"^registry\s*=\s*(.+)")
_NPMRC_SCOPED = re.compile(r"^(@[^:]+):registry\s*=\s*(.+)")

_YARNRC_DEFAULT = re.compile(r"""^npmRegistryServer:\s*["']?([^"'\n]+)["']?""")
_YARNRC_SCOPES = re.compile(r"^npmScopes:\s*$")
_YARNRC_SCOPE_KEY = re.compile(r"""^ {2}["']?(@?[^"'\s:]+)["']?\s*:\s*$""")
_YARNRC_SCOPE_SERVER = re.compile(r"""^\s{4,}npmRegistryServer:\s*["']?([^"'\n]+)["']?""")


def parse_npmrc_content(content: str) -> RegistryConfig:
    """Parse .npmrc content.

    ``registry=URL`` sets the default registry and ``@scope:registry=URL``
    maps a scope. ``#`` and ``;`` comment lines are ignored.
    """
    scope_registries: Dict[str, str] = {}
    default_registry: Optional[str] = None

    for line in content.splitlines():
        trimmed = line.strip()
        if not trimmed or trimmed.startswith(("#", ";")):
            continue

        m = _NPMRC_DEFAULT.match(trimmed)
        if m:
            default_registry = m.group(1).strip()
            continue

        m = _NPMRC_SCOPED.match(trimmed)
        if m:
            scope_registries[m.group(1)] = m.group(2).strip()

    return RegistryConfig(
        default_registry=default_registry,
        scope_registries=scope_registries,
        has_config=True,
    )


def parse_yarnrc_content(content: str) -> RegistryConfig:
    """Parse .yarnrc.yml content.

    A top-level ``npmRegistryServer`` sets the default registry. Under
    ``npmScopes:`` each two-space-indented scope key may carry a nested
    ``npmRegistryServer``; the section ends at the next column-0 line.
    Yarn writes scope keys without the leading ``@``; they are normalized.
    """
    scope_registries: Dict[str, str] = {}
    default_registry: Optional[str] = None

    in_scopes = False
    current_scope: Optional[str] = None

    for line in content.splitlines():
        if line.strip() and not line[0].isspace():
            # Column-0 line: either a top-level key or the end of npmScopes
            in_scopes = False
            current_scope = None
            if _YARNRC_SCOPES.match(line):
                in_scopes = True
                continue
            m = _YARNRC_DEFAULT.match(line)
            if m:
                default_registry = m.group(1).strip()
            continue

        if not in_scopes:
            continue

        m = _YARNRC_SCOPE_KEY.match(line)
        if m:
            scope = m.group(1)
            current_scope = scope if scope.startswith("@") else f"@{scope}"
            continue

        if current_scope:
            m = _YARNRC_SCOPE_SERVER.match(line)
            if m:
                scope_registries[current_scope] = m.group(1).strip()

    return RegistryConfig(
        default_registry=default_registry,
        scope_registries=scope_registries,
        has_config=True,
    )


def _read_config(path: str, parser) -> RegistryConfig:
    if not os.path.isfile(path):
        return RegistryConfig()
    try:
        with open(path, "r", encoding="utf-8") as file:
            content = file.read()
    except (OSError, UnicodeDecodeError) as e:
        # The file exists, so the project does carry registry config
        logger.warning("Unable to read %s: %s", path, e)
        return RegistryConfig(has_config=True)
    return parser(content)


def merge_registry_configs(npmrc: RegistryConfig, yarnrc: RegistryConfig) -> RegistryConfig:
    """Merge two configs; .npmrc wins over .yarnrc.yml on every collision."""
    scope_registries = dict(yarnrc.scope_registries)
    scope_registries.update(npmrc.scope_registries)
    return RegistryConfig(
        default_registry=npmrc.default_registry or yarnrc.default_registry,
        scope_registries=scope_registries,
        has_config=npmrc.has_config or yarnrc.has_config,
    )


def parse_registry_config(root_dir: str) -> RegistryConfig:
    """Read and merge .npmrc and .yarnrc.yml from the project root."""
    npmrc = _read_config(os.path.join(root_dir, Constants.NPMRC_FILE), parse_npmrc_content)
    yarnrc = _read_config(os.path.join(root_dir, Constants.YARNRC_FILE), parse_yarnrc_content)
    config = merge_registry_configs(npmrc, yarnrc)

    logger.debug(
        "Registry config for %s: default=%s, scopes=%s, has_config=%s",
        root_dir,
        safe_url(config.default_registry),
        sorted(config.scope_registries),
        config.has_config,
    )
    return config
