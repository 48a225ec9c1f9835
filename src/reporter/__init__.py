"""Report renderers for scan results."""

from models import ScanResult, WorkspaceScanResult
from reporter.json_reporter import format_json, format_workspace_json
from reporter.markdown import format_markdown, format_workspace_markdown
from reporter.terminal import format_terminal, format_workspace_terminal

_FORMATTERS = {
    "terminal": format_terminal,
    "json": format_json,
    "markdown": format_markdown,
}

_WORKSPACE_FORMATTERS = {
    "terminal": format_workspace_terminal,
    "json": format_workspace_json,
    "markdown": format_workspace_markdown,
}


def format_output(result: ScanResult, fmt: str) -> str:
    """Render a single-project result.

    Raises:
        ValueError: If ``fmt`` is not a known output format.
    """
    formatter = _FORMATTERS.get(fmt)
    if formatter is None:
        raise ValueError(f'Invalid format "{fmt}"')
    return formatter(result)


def format_workspace_output(result: WorkspaceScanResult, fmt: str) -> str:
    """Render a workspace result."""
    formatter = _WORKSPACE_FORMATTERS.get(fmt)
    if formatter is None:
        raise ValueError(f'Invalid format "{fmt}"')
    return formatter(result)
