"""Centralized logging setup and structured-logging helpers.

Modules obtain their logger with ``logging.getLogger(__name__)`` and attach
structured fields through ``extra=extra_context(...)``. DEBUG traces should be
guarded with ``is_debug_enabled`` so that building the extras costs nothing
at the default level.
"""
from __future__ import annotations

import logging
import os
import sys
import time
import urllib.parse
from typing import Any, Dict, Iterable, Optional

from constants import Constants


def configure_logging(level: Optional[str] = None, log_file: Optional[str] = None) -> None:
    """Configure the root logger once.

    Args:
        level: Level name; falls back to the DEPFENCE_LOG_LEVEL environment
            variable, then INFO.
        log_file: Optional path for an additional file handler.
    """
    level_name = str(level or os.environ.get(Constants.LOG_LEVEL_ENV) or "INFO").upper()
    level_value = getattr(logging, level_name, logging.INFO)

    root = logging.getLogger()
    if not any(getattr(h, "_depfence", False) for h in root.handlers):
        handler = logging.StreamHandler(sys.stderr)
        handler.setFormatter(logging.Formatter(Constants.LOG_FORMAT))
        handler._depfence = True  # type: ignore[attr-defined]
        root.addHandler(handler)
    root.setLevel(level_value)

    if log_file:
        log_path = os.path.abspath(log_file)
        if not any(getattr(h, "_depfence_file", None) == log_path for h in root.handlers):
            file_handler = logging.FileHandler(log_path)
            file_handler.setFormatter(
                logging.Formatter("%(asctime)s %(levelname)s %(name)s %(message)s")
            )
            file_handler._depfence_file = log_path  # type: ignore[attr-defined]
            root.addHandler(file_handler)


def is_debug_enabled(logger: logging.Logger) -> bool:
    """Return True when DEBUG records of ``logger`` would be emitted."""
    return logger.isEnabledFor(logging.DEBUG)


def extra_context(**fields: Any) -> Dict[str, Any]:
    """Build an ``extra`` mapping for structured log records, dropping None values."""
    return {key: value for key, value in fields.items() if value is not None}


def safe_url(url: Optional[str]) -> Optional[str]:
    """Strip credentials from a URL before it reaches a log line or a report."""
    if not url:
        return url
    try:
        parts = urllib.parse.urlsplit(url)
    except ValueError:
        return url
    if not parts.username and not parts.password:
        return url
    host = parts.hostname or ""
    if parts.port:
        host = f"{host}:{parts.port}"
    return urllib.parse.urlunsplit(
        (parts.scheme, f"[REDACTED]@{host}", parts.path, parts.query, parts.fragment)
    )


class Timer:
    """Context manager measuring elapsed wall time."""

    def __init__(self) -> None:
        self._start = 0.0
        self._end: Optional[float] = None

    def __enter__(self) -> "Timer":
        self._start = time.perf_counter()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self._end = time.perf_counter()

    def duration_ms(self) -> int:
        end = self._end if self._end is not None else time.perf_counter()
        return int((end - self._start) * 1000)


def log_discovered_files(logger: logging.Logger, manager: str, discovered: Dict[str, Iterable[str]]) -> None:
    """DEBUG-log the manifest and lockfiles found in a project directory."""
    for kind, paths in discovered.items():
        paths = list(paths)
        logger.debug(
            "Discovered %s %s file(s): %s",
            manager,
            kind,
            ", ".join(paths) if paths else "<none>",
            extra=extra_context(
                event="discovery",
                component="scan",
                package_manager=manager,
                file_kind=kind,
                count=len(paths),
            ),
        )


def log_selection(
    logger: logging.Logger,
    manager: str,
    manifest_path: Optional[str],
    lockfile_path: Optional[str],
    rationale: str,
) -> None:
    """INFO-log which manifest/lockfile pair a scan is using."""
    logger.info(
        "%s: using manifest %s, lockfile %s (%s)",
        manager,
        manifest_path or "<none>",
        lockfile_path or "<none>",
        rationale,
        extra=extra_context(
            event="selection",
            component="scan",
            package_manager=manager,
        ),
    )


def warn_multiple_lockfiles(
    logger: logging.Logger,
    manager: str,
    selected: Optional[str],
    alternatives: Iterable[str],
) -> None:
    """WARN when several lockfiles coexist and only one is used."""
    logger.warning(
        "Multiple %s lockfiles found; using %s and ignoring %s",
        manager,
        selected,
        ", ".join(alternatives),
        extra=extra_context(
            event="decision",
            component="scan",
            outcome="multiple_lockfiles",
            package_manager=manager,
        ),
    )
