"""Data models shared by the parsers, the analysis engine and the reporters."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType
from typing import Any, Dict, List, Mapping, Optional, Tuple


class Severity(Enum):
    """Finding severity, declared from most to least severe."""
    CRITICAL = "critical"
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"
    INFO = "info"

    @property
    def ordinal(self) -> int:
        """Rank of the severity; 0 is the most severe."""
        return list(Severity).index(self)

    @classmethod
    def parse(cls, value: str) -> "Severity":
        """Parse a severity name case-insensitively.

        Raises:
            ValueError: If the name is not a known severity.
        """
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            valid = ", ".join(s.value for s in cls)
            raise ValueError(f'Invalid severity "{value}". Valid values: {valid}') from None


class PackageManager(Enum):
    """Package managers whose lockfiles are understood."""
    NPM = "npm"
    YARN = "yarn"
    PNPM = "pnpm"


class ScanError(Exception):
    """Raised when a project cannot be turned into a scan context."""


class ManifestNotFoundError(ScanError):
    """The project root holds no package.json."""


class ManifestParseError(ScanError):
    """package.json exists but is not valid JSON."""


class LockfileParseError(ScanError):
    """package-lock.json exists but is not valid JSON."""


def _freeze_map(instance: Any, *names: str) -> None:
    """Replace dict fields of a frozen dataclass with read-only views of a copy."""
    for name in names:
        object.__setattr__(instance, name, MappingProxyType(dict(getattr(instance, name))))


@dataclass(frozen=True)
class PackageJsonData:
    """Fields of package.json relevant to confusion analysis."""
    name: Optional[str]
    version: Optional[str]
    is_private: bool
    dependencies: Mapping[str, str]
    dev_dependencies: Mapping[str, str]
    has_preinstall: bool = False
    has_install: bool = False
    has_postinstall: bool = False

    def __post_init__(self):
        _freeze_map(self, "dependencies", "dev_dependencies")

    @property
    def has_install_scripts(self) -> bool:
        return self.has_preinstall or self.has_install or self.has_postinstall


@dataclass(frozen=True)
class LockfileEntry:
    """One resolved package from a lockfile."""
    name: str
    version: str
    resolved: Optional[str] = None
    integrity: Optional[str] = None
    has_install_scripts: Optional[bool] = None


@dataclass(frozen=True)
class LockfileData:
    """Normalized lockfile: dialect plus name-keyed entries."""
    type: PackageManager
    packages: Mapping[str, LockfileEntry]

    def __post_init__(self):
        _freeze_map(self, "packages")


@dataclass(frozen=True)
class RegistryConfig:
    """Merged registry configuration from .npmrc and .yarnrc.yml."""
    default_registry: Optional[str] = None
    scope_registries: Mapping[str, str] = field(default_factory=dict)
    has_config: bool = False

    def __post_init__(self):
        _freeze_map(self, "scope_registries")


@dataclass(frozen=True)
class PackageDependency:
    """A manifest dependency enriched with its lockfile resolution."""
    name: str
    version: str
    scope: Optional[str]
    is_scoped: bool
    is_dev: bool
    resolved_url: Optional[str] = None
    integrity: Optional[str] = None
    has_install_scripts: bool = False


@dataclass(frozen=True)
class ProjectContext:
    """Immutable snapshot of everything a scan looks at."""
    root_dir: str
    package_json: PackageJsonData
    dependencies: Tuple[PackageDependency, ...]
    registry_config: RegistryConfig
    lockfile: Optional[LockfileData] = None

    @property
    def scoped_dependencies(self) -> List[PackageDependency]:
        return [dep for dep in self.dependencies if dep.is_scoped]


@dataclass(frozen=True)
class Finding:
    """A single detection result."""
    rule_id: str
    severity: Severity
    title: str
    description: str
    package_name: Optional[str]
    recommendation: str
    evidence: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "ruleId": self.rule_id,
            "severity": self.severity.value,
            "title": self.title,
            "description": self.description,
            "packageName": self.package_name,
            "recommendation": self.recommendation,
            "evidence": self.evidence,
        }


@dataclass(frozen=True)
class ScanSummary:
    """Per-severity counts over a list of findings."""
    total: int = 0
    critical: int = 0
    high: int = 0
    medium: int = 0
    low: int = 0
    info: int = 0

    @classmethod
    def from_findings(cls, findings: List[Finding]) -> "ScanSummary":
        counts = {severity.value: 0 for severity in Severity}
        for finding in findings:
            counts[finding.severity.value] += 1
        return cls(total=len(findings), **counts)

    def to_dict(self) -> Dict[str, int]:
        return {
            "total": self.total,
            "critical": self.critical,
            "high": self.high,
            "medium": self.medium,
            "low": self.low,
            "info": self.info,
        }


@dataclass(frozen=True)
class ScanContext:
    """Metadata about what a scan covered."""
    packages_scanned: int
    scoped_packages: int
    registries_configured: int
    lockfile_detected: bool

    def to_dict(self) -> Dict[str, Any]:
        return {
            "packagesScanned": self.packages_scanned,
            "scopedPackages": self.scoped_packages,
            "registriesConfigured": self.registries_configured,
            "lockfileDetected": self.lockfile_detected,
        }


@dataclass(frozen=True)
class ScanResult:
    """Findings, summary and context of one project scan."""
    findings: Tuple[Finding, ...]
    summary: ScanSummary
    context: ScanContext

    def to_dict(self) -> Dict[str, Any]:
        return {
            "findings": [f.to_dict() for f in self.findings],
            "summary": self.summary.to_dict(),
            "context": self.context.to_dict(),
        }


@dataclass(frozen=True)
class ScanConfig:
    """Every tunable of a scan, with its default spelled out."""
    root_dir: str
    offline: bool = True
    severity_threshold: Severity = Severity.INFO
    output_format: str = "terminal"
    scopes: Optional[Tuple[str, ...]] = None
    ignore_packages: Optional[Tuple[str, ...]] = None
    concurrency: int = 5


@dataclass(frozen=True)
class WorkspacePackage:
    """A package directory discovered inside a workspace."""
    name: str
    path: str
    relative_path: str


@dataclass(frozen=True)
class WorkspaceInfo:
    """Workspace layout: manager flavour plus discovered packages."""
    type: PackageManager
    root_dir: str
    packages: Tuple[WorkspacePackage, ...]


@dataclass(frozen=True)
class WorkspacePackageResult:
    """Scan result of one workspace package."""
    package_name: str
    package_path: str
    result: ScanResult

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "packageName": self.package_name,
            "packagePath": self.package_path,
        }
        data.update(self.result.to_dict())
        return data


@dataclass(frozen=True)
class WorkspaceScanResult:
    """Per-package results plus a summary re-aggregated from all findings."""
    is_workspace: bool
    root_dir: str
    package_results: Tuple[WorkspacePackageResult, ...]
    combined_summary: ScanSummary
    skipped_packages: Tuple[str, ...] = ()

    def to_dict(self) -> Dict[str, Any]:
        return {
            "isWorkspace": self.is_workspace,
            "rootDir": self.root_dir,
            "packageResults": [pr.to_dict() for pr in self.package_results],
            "combinedSummary": self.combined_summary.to_dict(),
            "skippedPackages": list(self.skipped_packages),
        }
