"""Constants used in the project."""

from enum import Enum


class ExitCodes(Enum):
    """Exit codes for the program.

    The non-zero codes mirror the most severe finding reported, so CI
    pipelines can gate on them directly.

    Args:
        Enum (int): Exit codes for the program.
    """

    SUCCESS = 0
    MEDIUM_FINDINGS = 1
    HIGH_FINDINGS = 2
    CRITICAL_FINDINGS = 3
    SCAN_ERROR = 4


class Constants:  # pylint: disable=too-few-public-methods
    """General constants used in the project.
    Data holder for configuration constants; not intended to provide behavior.
    """

    REGISTRY_URL_NPM = "https://registry.npmjs.org/"
    PUBLIC_REGISTRY_HOSTS = ("registry.npmjs.org", "registry.yarnpkg.com")

    PACKAGE_JSON_FILE = "package.json"
    PACKAGE_LOCK_FILE = "package-lock.json"
    YARN_LOCK_FILE = "yarn.lock"
    PNPM_LOCK_FILE = "pnpm-lock.yaml"
    NPMRC_FILE = ".npmrc"
    YARNRC_FILE = ".yarnrc.yml"
    PNPM_WORKSPACE_FILE = "pnpm-workspace.yaml"
    NODE_MODULES_DIR = "node_modules"
    CONFIG_FILES = (".depfence.yml", ".depfence.yaml")

    OUTPUT_FORMATS = ["terminal", "json", "markdown"]
    SEVERITY_LEVELS = ["critical", "high", "medium", "low", "info"]

    LOG_FORMAT = "[%(levelname)s] %(message)s"
    LOG_LEVEL_ENV = "DEPFENCE_LOG_LEVEL"

    PROBE_TIMEOUT_SEC = 5  # Per-request timeout for public registry probes
    DEFAULT_CONCURRENCY = 5
    USER_AGENT = "depfence/1.0"
