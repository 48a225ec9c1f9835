"""Argument parsing functionality for depfence."""

import argparse

from constants import Constants


def build_parser():
    """Build the command-line parser."""
    parser = argparse.ArgumentParser(
        prog="depfence",
        description=(
            "depfence - Detect dependency confusion attack vectors in Node.js projects"
        ),
        add_help=True,
    )

    parser.add_argument("directory",
                        help="Project root directory (default: current directory)",
                        nargs="?",
                        default=".")
    parser.add_argument("-f", "--format",
                        dest="OUTPUT_FORMAT",
                        help="Output format: terminal, json, markdown (default: terminal)",
                        action="store",
                        type=str.lower,
                        choices=Constants.OUTPUT_FORMATS)
    parser.add_argument("--severity",
                        dest="SEVERITY",
                        help="Minimum severity threshold: critical, high, medium, low, info (default: info)",
                        action="store",
                        type=str.lower,
                        choices=Constants.SEVERITY_LEVELS)
    network_group = parser.add_mutually_exclusive_group()
    network_group.add_argument("--online",
                               dest="ONLINE",
                               help="Check scoped package names against the public npm registry",
                               action="store_const",
                               const=True,
                               default=None)
    network_group.add_argument("--offline",
                               dest="ONLINE",
                               help="Skip the public registry check, overriding 'online: true' in the config file",
                               action="store_const",
                               const=False)
    parser.add_argument("--scopes",
                        dest="SCOPES",
                        help="Only report these scopes, e.g. @company @org",
                        nargs="+",
                        type=str)
    parser.add_argument("--ignore",
                        dest="IGNORE",
                        help="Ignore findings for these packages",
                        nargs="+",
                        type=str)
    parser.add_argument("--workspace",
                        dest="WORKSPACE",
                        help="Scan all workspace packages in a monorepo",
                        action="store_true")
    parser.add_argument("--concurrency",
                        dest="CONCURRENCY",
                        help=f"Concurrent public registry probes per batch (default: {Constants.DEFAULT_CONCURRENCY})",
                        action="store",
                        type=int)

    parser.add_argument("-c", "--config",
                        dest="CONFIG",
                        help="Path to configuration file (YAML); defaults to .depfence.yml in the directory",
                        action="store",
                        type=str)
    parser.add_argument("--loglevel",
                        dest="LOG_LEVEL",
                        help="Set the logging level",
                        action="store",
                        type=str.upper,
                        choices=['DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL'])
    parser.add_argument("--logfile",
                        dest="LOG_FILE",
                        help="Log output file",
                        action="store",
                        type=str)

    return parser


def parse_args(argv=None):
    """Parses the arguments passed to the program."""
    return build_parser().parse_args(argv)
