"""Scan entrypoints for single projects and workspaces."""

from __future__ import annotations

import logging
import os
from dataclasses import replace
from typing import List, Optional

from analysis.analyzer import analyze
from analysis.context import build_project_context
from common.logging_utils import Timer, extra_context
from models import (
    Finding,
    ScanConfig,
    ScanError,
    ScanResult,
    ScanSummary,
    WorkspaceInfo,
    WorkspacePackageResult,
    WorkspaceScanResult,
)
from registry.npm.client import PublicRegistryChecker
from registry.npm.workspace import detect_workspace

logger = logging.getLogger(__name__)

ROOT_PACKAGE_NAME = "root"


def scan_for_confusion(
    config: ScanConfig,
    checker: Optional[PublicRegistryChecker] = None,
) -> ScanResult:
    """Scan the project at ``config.root_dir``.

    Raises:
        ScanError: The manifest is missing or malformed, or the npm lockfile
            is malformed.
    """
    with Timer() as t:
        context = build_project_context(config.root_dir)
        result = analyze(context, config, checker=checker)
    logger.info(
        "Scanned %s: %d finding(s) in %d ms",
        context.root_dir,
        result.summary.total,
        t.duration_ms(),
        extra=extra_context(event="scan_complete", component="scanner", duration_ms=t.duration_ms()),
    )
    return result


def scan_workspace(
    config: ScanConfig,
    workspace: Optional[WorkspaceInfo] = None,
    checker: Optional[PublicRegistryChecker] = None,
) -> WorkspaceScanResult:
    """Scan a workspace root and each of its packages, in discovery order.

    Args:
        config: Scan options; ``root_dir`` is the workspace root.
        workspace: Pre-discovered layout; detected from ``root_dir`` when omitted.
        checker: Online checker shared by every package scan.

    Returns:
        WorkspaceScanResult. A root that is not a workspace yields a single
        package named ``root`` and ``is_workspace=False``.

    Raises:
        ScanError: Only in the non-workspace case, where the root is the
            whole scan.
    """
    root_dir = os.path.abspath(config.root_dir)
    if workspace is None:
        workspace = detect_workspace(root_dir)

    if workspace is None:
        result = scan_for_confusion(config, checker=checker)
        return WorkspaceScanResult(
            is_workspace=False,
            root_dir=root_dir,
            package_results=(WorkspacePackageResult(ROOT_PACKAGE_NAME, root_dir, result),),
            combined_summary=result.summary,
        )

    targets = [(ROOT_PACKAGE_NAME, root_dir)]
    for package in workspace.packages:
        if os.path.abspath(package.path) == root_dir:
            continue
        targets.append((package.name, package.path))

    package_results: List[WorkspacePackageResult] = []
    skipped: List[str] = []
    all_findings: List[Finding] = []
    for name, path in targets:
        try:
            result = scan_for_confusion(replace(config, root_dir=path), checker=checker)
        except ScanError as e:
            logger.warning("Skipping workspace package %s (%s): %s", name, path, e)
            skipped.append(name)
            continue
        package_results.append(WorkspacePackageResult(name, path, result))
        all_findings.extend(result.findings)

    return WorkspaceScanResult(
        is_workspace=True,
        root_dir=root_dir,
        package_results=tuple(package_results),
        combined_summary=ScanSummary.from_findings(all_findings),
        skipped_packages=tuple(skipped),
    )
