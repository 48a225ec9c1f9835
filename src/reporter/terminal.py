"""Plain-text report for terminals and CI logs."""

from typing import Dict, List

from models import Finding, ScanResult, ScanSummary, Severity, WorkspaceScanResult

RULE = "-" * 50
HEAVY_RULE = "=" * 50

SEVERITY_ICONS = {
    Severity.CRITICAL: "x",
    Severity.HIGH: "!",
    Severity.MEDIUM: "*",
    Severity.LOW: "o",
    Severity.INFO: "i",
}


def _group_by_severity(findings) -> Dict[Severity, List[Finding]]:
    groups: Dict[Severity, List[Finding]] = {}
    for finding in findings:
        groups.setdefault(finding.severity, []).append(finding)
    return groups


def summary_parts(summary: ScanSummary) -> List[str]:
    """Non-zero severity counts, most severe first."""
    return [
        f"{getattr(summary, severity.value)} {severity.value}"
        for severity in Severity
        if getattr(summary, severity.value) > 0
    ]


def format_terminal(result: ScanResult) -> str:
    lines = ["", "Dependency Confusion Scan Results", RULE]

    if not result.findings:
        lines.append("")
        lines.append("No dependency confusion risks detected.")
        lines.append("")
        return "\n".join(lines)

    grouped = _group_by_severity(result.findings)
    for severity in Severity:
        findings = grouped.get(severity)
        if not findings:
            continue
        lines.append("")
        lines.append(f"{SEVERITY_ICONS[severity]} {severity.value.upper()} ({len(findings)})")
        for finding in findings:
            lines.append(f"  [{finding.rule_id}] {finding.title}")
            if finding.package_name:
                lines.append(f"    Package: {finding.package_name}")
            lines.append(f"    {finding.description}")
            lines.append(f"    Fix: {finding.recommendation}")
            if finding.evidence:
                lines.append(f"    Evidence: {finding.evidence}")

    lines.append("")
    lines.append(RULE)
    lines.append(f"Total: {result.summary.total} findings ({', '.join(summary_parts(result.summary))})")
    lines.append(
        f"Scanned: {result.context.packages_scanned} packages "
        f"({result.context.scoped_packages} scoped)"
    )
    lines.append("")
    return "\n".join(lines)


def format_workspace_terminal(result: WorkspaceScanResult) -> str:
    lines = ["", "Workspace Dependency Confusion Scan", HEAVY_RULE]

    for package_result in result.package_results:
        lines.append("")
        lines.append(f"> {package_result.package_name}")
        lines.append(f"  {package_result.package_path}")
        lines.append(format_terminal(package_result.result))

    if result.skipped_packages:
        lines.append(f"Skipped: {', '.join(result.skipped_packages)}")

    summary = result.combined_summary
    lines.append(HEAVY_RULE)
    lines.append("Combined Summary")
    lines.append(
        f"Total: {summary.total} findings across {len(result.package_results)} packages "
        f"({', '.join(summary_parts(summary))})"
    )
    lines.append("")
    return "\n".join(lines)
