"""Markdown report, suitable for PR comments and CI summaries."""

from typing import List

from models import ScanResult, ScanSummary, Severity, WorkspaceScanResult


def _summary_table(summary: ScanSummary) -> List[str]:
    lines = ["| Severity | Count |", "| --- | --- |"]
    for severity in Severity:
        lines.append(f"| {severity.value.capitalize()} | {getattr(summary, severity.value)} |")
    lines.append(f"| **Total** | **{summary.total}** |")
    return lines


def format_markdown(result: ScanResult) -> str:
    lines = ["# Dependency Confusion Scan Report", "", "## Summary", ""]
    lines.extend(_summary_table(result.summary))
    lines.append("")

    context = result.context
    lines.extend([
        "## Scan Context",
        "",
        f"- Packages scanned: {context.packages_scanned}",
        f"- Scoped packages: {context.scoped_packages}",
        f"- Registries configured: {context.registries_configured}",
        f"- Lockfile detected: {'Yes' if context.lockfile_detected else 'No'}",
        "",
    ])

    if not result.findings:
        lines.extend(["## Results", "", "No dependency confusion risks detected."])
        return "\n".join(lines)

    lines.extend(["## Findings", ""])
    for finding in result.findings:
        lines.append(f"### {finding.rule_id}: {finding.title}")
        lines.append("")
        lines.append(f"**Severity:** {finding.severity.value}")
        if finding.package_name:
            lines.append(f"**Package:** `{finding.package_name}`")
        lines.append("")
        lines.append(finding.description)
        lines.append("")
        lines.append(f"**Recommendation:** {finding.recommendation}")
        if finding.evidence:
            lines.append("")
            lines.append(f"> Evidence: {finding.evidence}")
        lines.append("")

    return "\n".join(lines)


def format_workspace_markdown(result: WorkspaceScanResult) -> str:
    lines = ["# Workspace Dependency Confusion Scan Report", ""]
    for package_result in result.package_results:
        lines.append(f"## Package: {package_result.package_name}")
        lines.append("")
        lines.append(format_markdown(package_result.result))
        lines.append("")

    if result.skipped_packages:
        lines.append("## Skipped Packages")
        lines.append("")
        lines.extend(f"- {name}" for name in result.skipped_packages)
        lines.append("")

    summary = result.combined_summary
    lines.extend(["## Combined Summary", "", f"- **Total**: {summary.total}"])
    for severity in Severity:
        lines.append(f"- **{severity.value.capitalize()}**: {getattr(summary, severity.value)}")
    lines.append("")
    return "\n".join(lines)
