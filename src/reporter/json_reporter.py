"""JSON report using the camelCase ``to_dict`` shapes."""

import json

from models import ScanResult, WorkspaceScanResult


def format_json(result: ScanResult) -> str:
    return json.dumps(result.to_dict(), ensure_ascii=False, indent=2)


def format_workspace_json(result: WorkspaceScanResult) -> str:
    return json.dumps(result.to_dict(), ensure_ascii=False, indent=2) + "\n"
