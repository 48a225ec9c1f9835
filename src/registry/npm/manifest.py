"""package.json parser."""

from __future__ import annotations

import json
import logging
import os
from typing import Any, Dict

from constants import Constants
from models import ManifestNotFoundError, ManifestParseError, PackageJsonData

logger = logging.getLogger(__name__)


def _string_map(value: Any) -> Dict[str, str]:
    """Keep only string-to-string pairs of a dependency map."""
    if not isinstance(value, dict):
        return {}
    return {str(k): v for k, v in value.items() if isinstance(v, str)}


def parse_package_json_content(content: str) -> PackageJsonData:
    """Parse package.json from raw content.

    Args:
        content: Raw JSON text.

    Returns:
        PackageJsonData for the manifest.

    Raises:
        ManifestParseError: If the content is not a JSON object.
    """
    try:
        raw = json.loads(content)
    except json.JSONDecodeError as e:
        raise ManifestParseError(f"Invalid package.json: {e}") from e
    if not isinstance(raw, dict):
        raise ManifestParseError("Invalid package.json: top-level value is not an object")

    scripts = raw.get("scripts") or {}
    if not isinstance(scripts, dict):
        scripts = {}

    return PackageJsonData(
        name=raw["name"] if isinstance(raw.get("name"), str) else None,
        version=raw["version"] if isinstance(raw.get("version"), str) else None,
        is_private=raw.get("private") is True,
        dependencies=_string_map(raw.get("dependencies")),
        dev_dependencies=_string_map(raw.get("devDependencies")),
        has_preinstall="preinstall" in scripts,
        has_install="install" in scripts,
        has_postinstall="postinstall" in scripts,
    )


def parse_package_json(root_dir: str) -> PackageJsonData:
    """Read and parse ``package.json`` in ``root_dir``.

    Raises:
        ManifestNotFoundError: If the file does not exist.
        ManifestParseError: If the file is not valid JSON.
    """
    path = os.path.join(root_dir, Constants.PACKAGE_JSON_FILE)
    if not os.path.isfile(path):
        raise ManifestNotFoundError(f"No package.json found in {root_dir}")

    try:
        with open(path, "r", encoding="utf-8") as file:
            content = file.read()
    except OSError as e:
        raise ManifestNotFoundError(f"Unable to read {path}: {e}") from e

    data = parse_package_json_content(content)
    logger.debug(
        "Parsed %s: %d dependencies, %d devDependencies",
        path,
        len(data.dependencies),
        len(data.dev_dependencies),
    )
    return data
