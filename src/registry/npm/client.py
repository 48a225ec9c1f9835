"""Public npm registry existence checks for scoped dependencies (rule DC-008).

Scoped names are probed with HEAD requests in sequential batches; every probe
of a batch runs concurrently and the next batch starts only once all of them
have settled, which caps open connections at the batch size.
"""

from __future__ import annotations

import asyncio
import logging
import urllib.parse
from enum import Enum
from typing import List, Optional, Sequence, Tuple

import aiohttp

from common.http_client import create_session, head_status
from common.logging_utils import extra_context
from constants import Constants
from models import Finding, PackageDependency, Severity

logger = logging.getLogger(__name__)

RULE_ID = "DC-008"


class RegistryCheckResult(Enum):
    """Outcome of one existence probe."""
    EXISTS = "exists"
    NOT_FOUND = "not-found"
    ERROR = "error"


def encode_package_name(name: str) -> str:
    """Percent-encode a package name for a registry URL, keeping the scope ``@``."""
    return urllib.parse.quote(name, safe="").replace("%40", "@", 1)


def _batches(items: Sequence[PackageDependency], size: int) -> List[Sequence[PackageDependency]]:
    return [items[i:i + size] for i in range(0, len(items), size)]


class PublicRegistryChecker:
    """Checks whether scoped package names are claimed on the public registry."""

    def __init__(
        self,
        registry_url: str = Constants.REGISTRY_URL_NPM,
        concurrency: int = Constants.DEFAULT_CONCURRENCY,
        timeout: float = Constants.PROBE_TIMEOUT_SEC,
    ):
        if concurrency < 1:
            raise ValueError("concurrency must be at least 1")
        self.registry_url = registry_url if registry_url.endswith("/") else registry_url + "/"
        self.concurrency = concurrency
        self.timeout = timeout

    def package_url(self, name: str) -> str:
        return f"{self.registry_url}{encode_package_name(name)}"

    async def probe(self, session: aiohttp.ClientSession, name: str) -> RegistryCheckResult:
        """Classify a single package name as exists / not-found / error."""
        url = self.package_url(name)
        try:
            status = await head_status(session, url, context="npm", timeout=self.timeout)
        except asyncio.TimeoutError:
            logger.warning("npm registry check for %s timed out after %ss", name, self.timeout)
            return RegistryCheckResult.ERROR
        except aiohttp.ClientError as exc:
            logger.warning("npm registry check for %s failed: %s", name, exc)
            return RegistryCheckResult.ERROR

        if status == 200:
            return RegistryCheckResult.EXISTS
        if status == 404:
            return RegistryCheckResult.NOT_FOUND
        # 429 and 5xx land here too; no retry is attempted
        logger.warning(
            "Unexpected status %s from npm registry for %s",
            status,
            name,
            extra=extra_context(
                event="http_response",
                outcome="handled_non_2xx",
                status_code=status,
                package_manager="npm",
            ),
        )
        return RegistryCheckResult.ERROR

    async def _check_batch(
        self,
        session: aiohttp.ClientSession,
        batch: Sequence[PackageDependency],
    ) -> List[Tuple[PackageDependency, RegistryCheckResult]]:
        """Probe one batch concurrently; a failing probe never affects its siblings."""
        outcomes = await asyncio.gather(
            *(self.probe(session, dep.name) for dep in batch),
            return_exceptions=True,
        )
        results = []
        for dep, outcome in zip(batch, outcomes):
            if isinstance(outcome, BaseException):
                if isinstance(outcome, asyncio.CancelledError):
                    raise outcome
                logger.warning("npm registry check for %s raised %r", dep.name, outcome)
                outcome = RegistryCheckResult.ERROR
            results.append((dep, outcome))
        return results

    async def check(
        self,
        dependencies: Sequence[PackageDependency],
        session: Optional[aiohttp.ClientSession] = None,
    ) -> List[Finding]:
        """Probe every scoped dependency and return DC-008 findings in input order."""
        scoped = [dep for dep in dependencies if dep.is_scoped]
        if not scoped:
            return []

        logger.info(
            "Checking %d scoped package(s) against the public npm registry",
            len(scoped),
        )
        own_session = session is None
        if own_session:
            session = create_session(self.concurrency)

        findings: List[Finding] = []
        try:
            for batch in _batches(scoped, self.concurrency):
                for dep, result in await self._check_batch(session, batch):
                    finding = self._finding_for(dep, result)
                    if finding is not None:
                        findings.append(finding)
        finally:
            if own_session:
                await session.close()
        return findings

    def _finding_for(self, dep: PackageDependency, result: RegistryCheckResult) -> Optional[Finding]:
        if result is RegistryCheckResult.EXISTS:
            return Finding(
                rule_id=RULE_ID,
                severity=Severity.HIGH,
                title="Scoped package exists on public npm",
                description=(
                    f'Package "{dep.name}" exists on the public npm registry. This is a direct '
                    "dependency confusion attack vector if you expect this to be a private package."
                ),
                package_name=dep.name,
                recommendation=(
                    f'Verify that the public "{dep.name}" package is the intended one, not a '
                    "malicious squatter. Configure scope-specific registry in .npmrc."
                ),
                evidence=f"Public npm URL: {self.package_url(dep.name)}",
            )
        if result is RegistryCheckResult.ERROR:
            return Finding(
                rule_id=RULE_ID,
                severity=Severity.LOW,
                title="Unable to check public registry",
                description=(
                    f'Could not verify whether "{dep.name}" exists on the public npm registry. '
                    "Network error or timeout occurred."
                ),
                package_name=dep.name,
                recommendation="Re-run with network access to complete the dependency confusion check.",
                evidence="Network check failed",
            )
        return None
