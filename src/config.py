"""Scan configuration: explicit defaults, YAML config files and overrides.

Precedence, lowest first: built-in defaults, a ``.depfence.yml`` file (or the
one named with ``--config``), then command-line flags.
"""

from __future__ import annotations

import logging
import os
from typing import Any, Dict, Iterable, Optional, Tuple

import yaml

from constants import Constants
from models import ScanConfig, Severity

logger = logging.getLogger(__name__)

# Config-file key -> ScanConfig field
_FILE_KEYS = {
    "severity": "severity_threshold",
    "online": "online",
    "scopes": "scopes",
    "ignore": "ignore_packages",
    "concurrency": "concurrency",
    "format": "output_format",
}

_OVERRIDE_FIELDS = {
    "root_dir",
    "offline",
    "online",
    "severity_threshold",
    "output_format",
    "scopes",
    "ignore_packages",
    "concurrency",
}


def _string_tuple(value: Any, option: str) -> Optional[Tuple[str, ...]]:
    if value is None:
        return None
    if isinstance(value, str):
        value = [value]
    if not isinstance(value, (list, tuple)) or not all(isinstance(v, str) for v in value):
        raise ValueError(f'Invalid value for "{option}": expected a list of strings')
    return tuple(value)


def build_config(**overrides: Any) -> ScanConfig:
    """Return a fully populated ScanConfig.

    Args:
        **overrides: Any ScanConfig field. ``online`` is accepted as the
            inverse of ``offline``; ``severity_threshold`` may be a name.
            None values fall back to the defaults.

    Raises:
        ValueError: On an unknown option or an invalid value.
    """
    unknown = set(overrides) - _OVERRIDE_FIELDS
    if unknown:
        raise ValueError(f"Unknown configuration option(s): {', '.join(sorted(unknown))}")
    values = {k: v for k, v in overrides.items() if v is not None}

    root_dir = os.path.abspath(values.get("root_dir") or os.getcwd())

    offline = values.get("offline", True)
    if "online" in values:
        online = values["online"]
        offline = not online if isinstance(online, bool) else online
    if not isinstance(offline, bool):
        raise ValueError('Invalid value for "online": expected true or false')

    severity = values.get("severity_threshold", Severity.INFO)
    if not isinstance(severity, Severity):
        severity = Severity.parse(severity)

    output_format = str(values.get("output_format", "terminal")).lower()
    if output_format not in Constants.OUTPUT_FORMATS:
        raise ValueError(
            f'Invalid format "{output_format}". Valid values: {", ".join(Constants.OUTPUT_FORMATS)}'
        )

    concurrency = values.get("concurrency", Constants.DEFAULT_CONCURRENCY)
    if isinstance(concurrency, bool) or not isinstance(concurrency, int) or concurrency < 1:
        raise ValueError(f'Invalid concurrency "{concurrency}": expected a positive integer')

    return ScanConfig(
        root_dir=root_dir,
        offline=offline,
        severity_threshold=severity,
        output_format=output_format,
        scopes=_string_tuple(values.get("scopes"), "scopes"),
        ignore_packages=_string_tuple(values.get("ignore_packages"), "ignore"),
        concurrency=concurrency,
    )


def find_config_file(root_dir: str) -> Optional[str]:
    """Return the first default config file present in ``root_dir``."""
    for name in Constants.CONFIG_FILES:
        candidate = os.path.join(root_dir, name)
        if os.path.isfile(candidate):
            return candidate
    return None


def load_config_file(path: str) -> Dict[str, Any]:
    """Load a YAML config file into build_config keyword arguments.

    Unknown keys are logged and ignored.

    Raises:
        ValueError: The file is unreadable, not valid YAML, or not a mapping.
    """
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f)
    except OSError as e:
        raise ValueError(f"Unable to read config file {path}: {e}") from e
    except yaml.YAMLError as e:
        raise ValueError(f"Invalid YAML in config file {path}: {e}") from e

    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValueError(f"Config file {path} must contain a mapping")

    options: Dict[str, Any] = {}
    for key, value in data.items():
        field_name = _FILE_KEYS.get(key)
        if field_name is None:
            logger.warning("Ignoring unknown key %r in %s", key, path)
            continue
        options[field_name] = value
    logger.debug("Loaded config file %s: %s", path, sorted(options))
    return options


def resolve_config(
    root_dir: str,
    config_path: Optional[str] = None,
    cli_overrides: Optional[Dict[str, Any]] = None,
) -> ScanConfig:
    """Merge defaults, the config file and command-line values into a ScanConfig.

    Raises:
        ValueError: On an invalid config file or value.
    """
    path = config_path or find_config_file(root_dir)
    merged: Dict[str, Any] = load_config_file(path) if path else {}
    for key, value in (cli_overrides or {}).items():
        if value is not None:
            merged[key] = value
    merged["root_dir"] = root_dir
    return build_config(**merged)


def normalize_list_option(values: Optional[Iterable[str]]) -> Optional[Tuple[str, ...]]:
    """Flatten repeated and comma-separated CLI values; empty becomes None."""
    if not values:
        return None
    items = [part.strip() for value in values for part in value.split(",") if part.strip()]
    return tuple(items) or None
