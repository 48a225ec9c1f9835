"""Run the detection rules over a ProjectContext and assemble a ScanResult."""

from __future__ import annotations

import asyncio
import logging
from typing import Iterable, List, Optional

from analysis.context import package_scope
from analysis.rules import run_rules
from common.logging_utils import extra_context
from models import Finding, ProjectContext, ScanConfig, ScanContext, ScanResult, ScanSummary, Severity
from registry.npm.client import PublicRegistryChecker

logger = logging.getLogger(__name__)


def normalize_scope(scope: str) -> str:
    scope = scope.strip()
    return scope if scope.startswith("@") else f"@{scope}"


def filter_by_scopes(findings: Iterable[Finding], scopes: Optional[Iterable[str]]) -> List[Finding]:
    """Drop findings about scoped packages outside the allow-list.

    Project-level findings and findings about unscoped packages are kept.
    """
    findings = list(findings)
    allowed = {normalize_scope(s) for s in scopes or () if s.strip()}
    if not allowed:
        return findings
    kept = []
    for finding in findings:
        if finding.package_name is None:
            kept.append(finding)
            continue
        scope = package_scope(finding.package_name)
        if scope is None or scope in allowed:
            kept.append(finding)
    return kept


def filter_ignored(findings: Iterable[Finding], ignore_packages: Optional[Iterable[str]]) -> List[Finding]:
    ignored = set(ignore_packages or ())
    return [f for f in findings if f.package_name is None or f.package_name not in ignored]


def filter_by_threshold(findings: Iterable[Finding], threshold: Severity) -> List[Finding]:
    return [f for f in findings if f.severity.ordinal <= threshold.ordinal]


def sort_findings(findings: Iterable[Finding]) -> List[Finding]:
    """Most severe first; ``sorted`` is stable so ties keep their order."""
    return sorted(findings, key=lambda f: f.severity.ordinal)


def build_scan_context(context: ProjectContext) -> ScanContext:
    config = context.registry_config
    return ScanContext(
        packages_scanned=len(context.dependencies),
        scoped_packages=len(context.scoped_dependencies),
        registries_configured=len(config.scope_registries) + (1 if config.default_registry else 0),
        lockfile_detected=context.lockfile is not None,
    )


def assemble_result(
    context: ProjectContext,
    findings: Iterable[Finding],
    config: ScanConfig,
) -> ScanResult:
    """Filter, sort and summarize raw findings.

    Filters run in a fixed order: scope allow-list, ignore list, then the
    severity threshold. The summary counts only what survives.
    """
    raw = list(findings)
    kept = filter_by_scopes(raw, config.scopes)
    kept = filter_ignored(kept, config.ignore_packages)
    kept = filter_by_threshold(kept, config.severity_threshold)
    kept = sort_findings(kept)

    logger.debug(
        "Kept %d of %d finding(s)",
        len(kept),
        len(raw),
        extra=extra_context(
            event="decision",
            component="analyzer",
            action="filter",
            threshold=config.severity_threshold.value,
        ),
    )
    return ScanResult(
        findings=tuple(kept),
        summary=ScanSummary.from_findings(kept),
        context=build_scan_context(context),
    )


def analyze(
    context: ProjectContext,
    config: ScanConfig,
    checker: Optional[PublicRegistryChecker] = None,
) -> ScanResult:
    """Run the static rules, plus the online check unless offline.

    Args:
        context: Snapshot of the project under scan.
        config: Scan options; ``offline``, ``scopes``, ``ignore_packages``,
            ``severity_threshold`` and ``concurrency`` are honoured here.
        checker: Online checker to use instead of a default one.

    Returns:
        ScanResult with the filtered, sorted findings.
    """
    findings = run_rules(context)

    if not config.offline:
        if checker is None:
            checker = PublicRegistryChecker(concurrency=config.concurrency)
        findings.extend(asyncio.run(checker.check(context.dependencies)))
    else:
        logger.debug("Offline mode: skipping public registry checks")

    return assemble_result(context, findings, config)
