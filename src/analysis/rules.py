"""Static dependency-confusion detection rules.

Every rule is a stateless evaluator over a ProjectContext. Rules never look at
each other's findings: where two rules would report the same problem, the
weaker one carries a precondition built from the shared predicates below.
Those relationships are listed in RULE_EXCLUSIONS.

The online existence check (DC-008) lives in registry.npm.client because it
needs the network.
"""

import logging
import urllib.parse
from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence

import semantic_version

from common.logging_utils import safe_url
from constants import Constants
from models import Finding, ProjectContext, Severity

logger = logging.getLogger(__name__)


# --- shared predicates -------------------------------------------------------

def is_public_registry(url: Optional[str]) -> bool:
    """A missing URL means the npm default, which is public."""
    if not url:
        return True
    return any(host in url for host in Constants.PUBLIC_REGISTRY_HOSTS)


def has_registry_config(context: ProjectContext) -> bool:
    return context.registry_config.has_config


def default_registry_is_private(context: ProjectContext) -> bool:
    default = context.registry_config.default_registry
    return bool(default) and not is_public_registry(default)


def scope_has_mapping(context: ProjectContext, scope: Optional[str]) -> bool:
    return scope is not None and scope in context.registry_config.scope_registries


_RANGE_TOKENS = ("^", "~", ">", "<", "*", "||", " ")


def is_version_pinned(version: str) -> bool:
    """True for an exact version such as ``1.2.3`` or ``=1.2.3``; x-ranges fail to parse."""
    candidate = version.strip()
    if candidate.startswith("="):
        candidate = candidate[1:]
    if not candidate or any(token in candidate for token in _RANGE_TOKENS):
        return False
    try:
        semantic_version.Version(candidate)
    except ValueError:
        return False
    return True


def extract_registry_host(url: str) -> Optional[str]:
    try:
        return urllib.parse.urlparse(url).hostname
    except ValueError:
        return None


@dataclass(frozen=True)
class RuleExclusion:
    """``suppressed`` stays silent whenever the trigger of ``pre_empting`` holds."""
    pre_empting: str
    suppressed: str
    condition: str


RULE_EXCLUSIONS = (
    RuleExclusion("DC-001", "DC-002", "no .npmrc or .yarnrc.yml exists"),
    RuleExclusion("DC-010", "DC-002", "the default registry is private"),
    RuleExclusion("DC-002", "DC-003", "the dependency's scope has no registry mapping"),
)


# --- rules -------------------------------------------------------------------

class Rule:
    """Base class for detection rules."""

    rule_id = ""
    severity = Severity.INFO
    title = ""

    def run(self, context: ProjectContext) -> List[Finding]:
        """Evaluate the rule against a context.

        Returns:
            Zero or more findings; an empty list when the precondition is unmet.
        """
        raise NotImplementedError

    def finding(
        self,
        description: str,
        recommendation: str,
        package_name: Optional[str] = None,
        evidence: Optional[str] = None,
        severity: Optional[Severity] = None,
        title: Optional[str] = None,
    ) -> Finding:
        return Finding(
            rule_id=self.rule_id,
            severity=severity or self.severity,
            title=title or self.title,
            description=description,
            package_name=package_name,
            recommendation=recommendation,
            evidence=evidence,
        )


class NoRegistryConfigRule(Rule):
    """DC-001: scoped packages in use but no registry config file at all."""

    rule_id = "DC-001"
    severity = Severity.HIGH
    title = "No registry configuration found"

    def run(self, context):
        scoped = context.scoped_dependencies
        if has_registry_config(context) or not scoped:
            return []
        return [self.finding(
            description=(
                f"No .npmrc or .yarnrc.yml found, but project uses {len(scoped)} scoped "
                "package(s). All packages resolve from the public npm registry by default."
            ),
            recommendation=(
                "Create an .npmrc file with scope-specific registry mappings for your private scopes."
            ),
            evidence="Scoped packages: " + ", ".join(dep.name for dep in scoped),
        )]


class ScopeWithoutRegistryRule(Rule):
    """DC-002: scoped package whose scope has no registry mapping."""

    rule_id = "DC-002"
    severity = Severity.CRITICAL
    title = "Scoped package without registry mapping"

    def run(self, context):
        if not has_registry_config(context):
            return []
        if default_registry_is_private(context):
            return []

        findings = []
        for dep in context.scoped_dependencies:
            if scope_has_mapping(context, dep.scope):
                continue
            findings.append(self.finding(
                description=(
                    f'Package "{dep.name}" uses scope "{dep.scope}" but no registry mapping '
                    "exists for this scope. It will be fetched from the public npm registry."
                ),
                recommendation=(
                    f"Add '{dep.scope}:registry=https://your-private-registry.example.com/' to .npmrc"
                ),
                package_name=dep.name,
                evidence=f"Scope: {dep.scope}, Version: {dep.version}",
            ))
        return findings


class LockfilePublicResolutionRule(Rule):
    """DC-003: mapped scope, yet the lockfile resolved the package publicly."""

    rule_id = "DC-003"
    severity = Severity.CRITICAL
    title = "Scoped package resolved from public registry"

    def run(self, context):
        if context.lockfile is None:
            return []

        findings = []
        for dep in context.scoped_dependencies:
            if not scope_has_mapping(context, dep.scope):
                continue
            entry = context.lockfile.packages.get(dep.name)
            if entry is None or not entry.resolved or not is_public_registry(entry.resolved):
                continue
            findings.append(self.finding(
                description=(
                    f'Package "{dep.name}" has a private registry configured for scope '
                    f'"{dep.scope}", but the lockfile shows it resolved from the public npm registry.'
                ),
                recommendation=(
                    "Delete the lockfile and node_modules, then run a fresh install to resolve "
                    "from the correct registry."
                ),
                package_name=dep.name,
                evidence=f"Resolved URL: {entry.resolved}",
            ))
        return findings


class MissingLockfileRule(Rule):
    """DC-004: no lockfile at all."""

    rule_id = "DC-004"
    severity = Severity.HIGH
    title = "No lockfile found"

    def run(self, context):
        if context.lockfile is not None:
            return []
        return [self.finding(
            description=(
                "No package-lock.json, yarn.lock, or pnpm-lock.yaml found. "
                "Package resolution is non-deterministic."
            ),
            recommendation=(
                "Run npm install (or yarn/pnpm install) and commit the lockfile to version control."
            ),
        )]


class NoIntegrityHashRule(Rule):
    """DC-005: lockfile entry without an integrity hash."""

    rule_id = "DC-005"
    severity = Severity.MEDIUM
    title = "Missing integrity hash in lockfile"

    def run(self, context):
        if context.lockfile is None:
            return []

        findings = []
        for dep in context.dependencies:
            entry = context.lockfile.packages.get(dep.name)
            if entry is None or entry.integrity:
                continue
            findings.append(self.finding(
                description=(
                    f'Package "{dep.name}" has no integrity hash in the lockfile. '
                    "Package contents cannot be verified."
                ),
                recommendation=(
                    "Regenerate the lockfile with a recent version of npm/yarn/pnpm that "
                    "includes integrity hashes."
                ),
                package_name=dep.name,
            ))
        return findings


class InstallScriptsRule(Rule):
    """DC-006: install lifecycle scripts, escalated for scoped dependencies."""

    rule_id = "DC-006"
    severity = Severity.MEDIUM
    title = "Install scripts detected"

    def run(self, context):
        findings = []
        manifest = context.package_json

        if manifest.has_install_scripts:
            scripts = [
                name for name, present in (
                    ("preinstall", manifest.has_preinstall),
                    ("install", manifest.has_install),
                    ("postinstall", manifest.has_postinstall),
                ) if present
            ]
            findings.append(self.finding(
                description=(
                    "This project's package.json contains install lifecycle scripts that "
                    "execute during npm install."
                ),
                recommendation=(
                    "Review install scripts for unexpected behavior. Consider using "
                    "--ignore-scripts for CI."
                ),
                evidence=", ".join(scripts),
            ))

        for dep in context.dependencies:
            if not (dep.is_scoped and dep.has_install_scripts):
                continue
            findings.append(self.finding(
                severity=Severity.HIGH,
                title="Scoped dependency has install scripts",
                description=(
                    f'Scoped package "{dep.name}" has install lifecycle scripts that execute '
                    "during npm install. Combined with dependency confusion, this is a code "
                    "execution vector."
                ),
                recommendation=(
                    f'Verify "{dep.name}" is from your private registry. Consider using '
                    "--ignore-scripts or npm audit signatures."
                ),
                package_name=dep.name,
                evidence="hasInstallScripts: true in lockfile",
            ))
        return findings


class UnpinnedScopedVersionRule(Rule):
    """DC-007: scoped package declared with a version range."""

    rule_id = "DC-007"
    severity = Severity.MEDIUM
    title = "Unpinned version on scoped package"

    def run(self, context):
        findings = []
        for dep in context.scoped_dependencies:
            if is_version_pinned(dep.version):
                continue
            pinned = dep.version[1:] if dep.version[:1] in ("^", "~") else dep.version
            findings.append(self.finding(
                description=(
                    f'Scoped package "{dep.name}" uses version range "{dep.version}". '
                    "A higher version from the public registry could be pulled."
                ),
                recommendation=f'Pin to an exact version: "{dep.name}": "{pinned}"',
                package_name=dep.name,
                evidence=f"Version: {dep.version}",
            ))
        return findings


class MixedScopeRegistriesRule(Rule):
    """DC-009: one scope resolved from several registry hosts."""

    rule_id = "DC-009"
    severity = Severity.HIGH
    title = "Mixed registries for same scope"

    def run(self, context):
        if context.lockfile is None:
            return []

        hosts_by_scope: Dict[str, List[str]] = {}
        packages_by_scope: Dict[str, List[str]] = {}
        for dep in context.scoped_dependencies:
            entry = context.lockfile.packages.get(dep.name)
            if entry is None or not entry.resolved:
                continue
            host = extract_registry_host(entry.resolved)
            if not host:
                continue
            hosts = hosts_by_scope.setdefault(dep.scope, [])
            if host not in hosts:
                hosts.append(host)
            packages_by_scope.setdefault(dep.scope, []).append(dep.name)

        findings = []
        for scope, hosts in hosts_by_scope.items():
            if len(hosts) < 2:
                continue
            findings.append(self.finding(
                description=(
                    f'Packages in scope "{scope}" resolve from {len(hosts)} different registries. '
                    "This could indicate a partial compromise."
                ),
                recommendation=(
                    f'Ensure all packages in scope "{scope}" resolve from the same private registry.'
                ),
                evidence=(
                    f"Registries: {', '.join(hosts)}; "
                    f"Packages: {', '.join(packages_by_scope[scope])}"
                ),
            ))
        return findings


class PrivateRegistryConfiguredRule(Rule):
    """DC-010: informational, reports private registries that are configured."""

    rule_id = "DC-010"
    severity = Severity.INFO
    title = "Private registry configured"

    def run(self, context):
        findings = []
        config = context.registry_config

        if default_registry_is_private(context):
            registry = safe_url(config.default_registry)
            findings.append(self.finding(
                description=f"Default registry is set to a private registry: {registry}",
                recommendation=(
                    "This is a good practice. Ensure scope-specific mappings are also "
                    "configured for completeness."
                ),
                evidence=f"Registry: {registry}",
            ))

        for scope, registry in config.scope_registries.items():
            if is_public_registry(registry):
                continue
            registry = safe_url(registry)
            findings.append(self.finding(
                title=f"Private registry configured for {scope}",
                description=f'Scope "{scope}" is mapped to private registry: {registry}',
                recommendation=(
                    "Good configuration. Verify it matches your organization's private registry."
                ),
                evidence=f"Scope: {scope}, Registry: {registry}",
            ))
        return findings


ALL_RULES = (
    NoRegistryConfigRule(),
    ScopeWithoutRegistryRule(),
    LockfilePublicResolutionRule(),
    MissingLockfileRule(),
    NoIntegrityHashRule(),
    InstallScriptsRule(),
    UnpinnedScopedVersionRule(),
    MixedScopeRegistriesRule(),
    PrivateRegistryConfiguredRule(),
)


def run_rules(context: ProjectContext, rules: Sequence[Rule] = ALL_RULES) -> List[Finding]:
    """Run every rule in order and concatenate their findings."""
    findings: List[Finding] = []
    for rule in rules:
        rule_findings = rule.run(context)
        if rule_findings:
            logger.debug("%s produced %d finding(s)", rule.rule_id, len(rule_findings))
        findings.extend(rule_findings)
    return findings
