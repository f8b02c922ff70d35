"""
Issue report rendering.

Produces either a JSON document (for CI) or grouped plain text for
terminals.
"""

import json
import os
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Sequence

from .engine import GLOBAL_FILE, Issue, Severity, ValidationEngine

SEVERITY_ORDER = {Severity.ERROR: 0, Severity.WARNING: 1, Severity.INFO: 2}


def display_path(path: str, content_dir: Optional[str] = None) -> str:
    if not content_dir or path == GLOBAL_FILE:
        return path
    rel = os.path.relpath(path, content_dir)
    return path if rel.startswith("..") else rel.replace(os.sep, "/")


def generate_report_json(issues: Sequence[Issue], content_dir: Optional[str] = None) -> Dict[str, Any]:
    """
    Build the CI report.

    Args:
        issues: Issues from ValidationEngine.validate()
        content_dir: Paths are shown relative to this directory

    Returns:
        Report dictionary with summary and issue list
    """
    items = []
    for issue in issues:
        item = issue.to_dict()
        item["file"] = display_path(issue.file, content_dir)
        items.append(item)
    return {
        "generated_at_utc": datetime.now(timezone.utc).isoformat(),
        "summary": ValidationEngine.get_summary(issues),
        "issues": items,
    }


def format_summary_line(summary: Dict[str, Any]) -> str:
    by_severity = summary["by_severity"]
    return (
        f"{summary['total']} issues: "
        f"{by_severity['error']} errors, {by_severity['warning']} warnings, {by_severity['info']} info"
        f" ({summary['fixable']} fixable)"
    )


def format_text(issues: Sequence[Issue], content_dir: Optional[str] = None, verbose: bool = False) -> str:
    """Group issues by file, most severe first."""
    if not issues:
        return "No issues found."

    grouped: Dict[str, List[Issue]] = {}
    for issue in issues:
        grouped.setdefault(display_path(issue.file, content_dir), []).append(issue)

    lines = []
    for file in sorted(grouped):
        lines.append(file)
        for issue in sorted(grouped[file], key=lambda i: (SEVERITY_ORDER[i.severity], i.line or 0, i.rule)):
            where = f"L{issue.line}" if issue.line else "-"
            fixable = " [fixable]" if issue.is_fixable else ""
            lines.append(f"  {where:>6}  {issue.severity.value.upper():<7} {issue.rule}: {issue.message}{fixable}")
        lines.append("")

    summary = ValidationEngine.get_summary(issues)
    lines.append(format_summary_line(summary))
    if verbose:
        for rule_id, count in summary["by_rule"].items():
            lines.append(f"  {rule_id}: {count}")
    return "\n".join(lines)


def format_output(issues: Sequence[Issue], ci: bool = False, content_dir: Optional[str] = None,
                  verbose: bool = False) -> str:
    if ci:
        return json.dumps(generate_report_json(issues, content_dir), indent=2)
    return format_text(issues, content_dir, verbose)
