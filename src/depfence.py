"""depfence - dependency confusion scanner for npm, yarn and pnpm projects.

Entry point: parses arguments, configures logging, runs the scan and maps
the most severe finding to the process exit code.
"""

import logging
import os
import sys

from args import parse_args
from common.logging_utils import configure_logging, extra_context, is_debug_enabled
from config import normalize_list_option, resolve_config
from constants import ExitCodes
from models import ScanError, ScanSummary
from reporter import format_output, format_workspace_output
from scanner import scan_for_confusion, scan_workspace

logger = logging.getLogger(__name__)


def exit_code_for(summary: ScanSummary) -> ExitCodes:
    """Map the most severe finding in ``summary`` to an exit code."""
    if summary.critical > 0:
        return ExitCodes.CRITICAL_FINDINGS
    if summary.high > 0:
        return ExitCodes.HIGH_FINDINGS
    if summary.medium > 0:
        return ExitCodes.MEDIUM_FINDINGS
    return ExitCodes.SUCCESS


def run(argv=None) -> int:
    """Run the CLI and return the exit code instead of exiting."""
    args = parse_args(argv)
    configure_logging(args.LOG_LEVEL, args.LOG_FILE)

    if is_debug_enabled(logger):
        logger.debug(
            "CLI start",
            extra=extra_context(event="function_entry", component="cli", action="main"),
        )

    root_dir = os.path.abspath(args.directory)
    try:
        config = resolve_config(
            root_dir,
            config_path=args.CONFIG,
            cli_overrides={
                "output_format": args.OUTPUT_FORMAT,
                "severity_threshold": args.SEVERITY,
                "online": args.ONLINE,
                "scopes": normalize_list_option(args.SCOPES),
                "ignore_packages": normalize_list_option(args.IGNORE),
                "concurrency": args.CONCURRENCY,
            },
        )

        if args.WORKSPACE:
            ws_result = scan_workspace(config)
            output = format_workspace_output(ws_result, config.output_format)
            summary = ws_result.combined_summary
        else:
            result = scan_for_confusion(config)
            output = format_output(result, config.output_format)
            summary = result.summary
    except (ScanError, ValueError) as e:
        logger.error("Error: %s", e)
        return ExitCodes.SCAN_ERROR.value

    sys.stdout.write(output)
    if not output.endswith("\n"):
        sys.stdout.write("\n")

    code = exit_code_for(summary)
    if is_debug_enabled(logger):
        logger.debug(
            "CLI finished",
            extra=extra_context(
                event="function_exit",
                component="cli",
                action="main",
                outcome=code.name.lower(),
            ),
        )
    return code.value


def main():
    """Main function of the program."""
    sys.exit(run())


if __name__ == "__main__":
    main()
