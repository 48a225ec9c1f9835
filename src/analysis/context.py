"""Build the immutable ProjectContext a scan runs against."""

from __future__ import annotations

import logging
import os
from typing import Dict, Optional, Tuple

from models import LockfileData, PackageDependency, PackageJsonData, ProjectContext
from registry.npm.config_parser import parse_registry_config
from registry.npm.lockfile_parser import parse_lockfile
from registry.npm.manifest import parse_package_json

logger = logging.getLogger(__name__)


def package_scope(name: str) -> Optional[str]:
    """Return ``@scope`` for a scoped package name, else None."""
    if name.startswith("@") and "/" in name:
        return name.split("/", 1)[0]
    return None


def build_dependencies(
    package_json: PackageJsonData,
    lockfile: Optional[LockfileData],
) -> Tuple[PackageDependency, ...]:
    """Join the manifest's dependency maps with their lockfile entries.

    A name listed under both ``dependencies`` and ``devDependencies`` is kept
    once, as a regular dependency.
    """
    entries = lockfile.packages if lockfile is not None else {}
    deps: Dict[str, PackageDependency] = {}

    for source, is_dev in ((package_json.dependencies, False), (package_json.dev_dependencies, True)):
        for name, version in source.items():
            if name in deps:
                logger.debug("%s is declared as both a dependency and a devDependency", name)
                continue
            entry = entries.get(name)
            scope = package_scope(name)
            deps[name] = PackageDependency(
                name=name,
                version=version,
                scope=scope,
                is_scoped=scope is not None,
                is_dev=is_dev,
                resolved_url=entry.resolved if entry else None,
                integrity=entry.integrity if entry else None,
                has_install_scripts=bool(entry and entry.has_install_scripts),
            )

    return tuple(deps.values())


def build_project_context(root_dir: str) -> ProjectContext:
    """Parse every project file under ``root_dir`` into a ProjectContext.

    Raises:
        ManifestNotFoundError: package.json is missing.
        ManifestParseError: package.json is not valid JSON.
        LockfileParseError: package-lock.json is not valid JSON.
    """
    root_dir = os.path.abspath(root_dir)
    package_json = parse_package_json(root_dir)
    lockfile = parse_lockfile(root_dir)
    registry_config = parse_registry_config(root_dir)
    dependencies = build_dependencies(package_json, lockfile)

    logger.debug(
        "Context for %s: %d dependencies (%d scoped), lockfile=%s",
        root_dir,
        len(dependencies),
        sum(1 for dep in dependencies if dep.is_scoped),
        lockfile.type.value if lockfile else None,
    )
    return ProjectContext(
        root_dir=root_dir,
        package_json=package_json,
        dependencies=dependencies,
        registry_config=registry_config,
        lockfile=lockfile,
    )
