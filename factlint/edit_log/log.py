"""
Per-page edit logging.

Records which tool touched which page, and why. Logging is best-effort:
these functions never raise, and a failed call only produces a warning.
"""

import logging
import os
from dataclasses import asdict, dataclass
from datetime import date
from typing import Any, Dict, Iterable, List, Optional

from .client import EditLogClient

logger = logging.getLogger(__name__)

AGENCIES = ("human", "ai-directed", "automated")


@dataclass
class EditLogEntry:
    page_id: str
    date: str
    tool: str
    agency: str
    requested_by: Optional[str] = None
    note: Optional[str] = None

    def to_payload(self) -> Dict[str, Any]:
        data = asdict(self)
        return {
            "pageId": data["page_id"],
            "date": data["date"],
            "tool": data["tool"],
            "agency": data["agency"],
            "requestedBy": data["requested_by"],
            "note": data["note"],
        }


def page_id_from_path(path: str) -> str:
    """Page id for a content file: the filename stem, or the directory for index files."""
    stem = os.path.splitext(os.path.basename(path))[0]
    if stem == "index":
        return os.path.basename(os.path.dirname(os.path.abspath(path)))
    return stem


def build_entry(page_id: str, tool: str, agency: str, requested_by: Optional[str] = None,
                note: Optional[str] = None, entry_date: Optional[str] = None) -> EditLogEntry:
    return EditLogEntry(
        page_id=page_id,
        date=entry_date or date.today().isoformat(),
        tool=tool,
        agency=agency,
        requested_by=requested_by or None,
        note=note or None,
    )


def append_edit_log(page_id: str, tool: str, agency: str, requested_by: Optional[str] = None,
                    note: Optional[str] = None, entry_date: Optional[str] = None,
                    client: Optional[EditLogClient] = None) -> Optional[EditLogEntry]:
    """
    Record one edit.

    Args:
        page_id: Page that was changed
        tool: Tool that changed it, e.g. factlint-fact-wrap
        agency: One of AGENCIES
        requested_by: Optional person who asked for the change
        note: Optional free-text reason
        entry_date: ISO date, defaults to today
        client: Edit-log client, built from settings when omitted

    Returns:
        The entry that was sent, or None if the service did not accept it
    """
    entry = build_entry(page_id, tool, agency, requested_by, note, entry_date)
    if agency not in AGENCIES:
        logger.warning(f"Unknown edit-log agency '{agency}' for {page_id}")
    client = client or EditLogClient.from_settings()
    if client.append(entry.to_payload()) is None:
        logger.info(f"Edit log not recorded for {page_id}")
        return None
    return entry


def log_bulk_fixes(paths: Iterable[str], tool: str, agency: str, note: Optional[str] = None,
                   requested_by: Optional[str] = None,
                   client: Optional[EditLogClient] = None) -> List[EditLogEntry]:
    """
    Record the same edit for every modified file in one batch call.

    Returns:
        Entries that were accepted (empty when the service is unavailable)
    """
    entries = [build_entry(page_id_from_path(p), tool, agency, requested_by, note) for p in paths]
    if not entries:
        return []
    client = client or EditLogClient.from_settings()
    result = client.append_batch([e.to_payload() for e in entries])
    if result is None:
        logger.info(f"Edit log not recorded for {len(entries)} fixed pages")
        return []
    logger.info(f"Logged {len(entries)} edits via {tool}")
    return entries


AGENCY_ICONS = {"human": "H", "ai-directed": "A", "automated": "S"}


def format_edit_history(page_id: str, entries: List[Dict[str, Any]]) -> str:
    """Numbered edit history for one page, oldest first."""
    if not entries:
        return f'No edit log found for "{page_id}"'

    lines = [f"Edit History: {page_id}", f"{len(entries)} entries", ""]
    for i, e in enumerate(entries, 1):
        icon = AGENCY_ICONS.get(e.get("agency"), "?")
        line = f"{i:>3}. {e.get('date', '')} [{icon}] {e.get('tool', '')}"
        if e.get("requestedBy"):
            line += f" by {e['requestedBy']}"
        lines.append(line)
        if e.get("note"):
            lines.append(f"       {e['note']}")
    lines.append("")
    lines.append("Agency: [H]=human [A]=ai-directed [S]=automated")
    return "\n".join(lines)


def format_edit_stats(stats: Dict[str, Any]) -> str:
    """Totals plus per-tool and per-agency counts, largest first."""
    lines = [
        "Edit Log Statistics",
        "",
        f"  Pages with logs: {stats.get('pagesWithLogs', 0)}",
        f"  Total entries:   {stats.get('totalEntries', 0)}",
    ]
    for title, key in (("By Tool:", "byTool"), ("By Agency:", "byAgency")):
        lines.append("")
        lines.append(title)
        counts = stats.get(key) or {}
        for name, count in sorted(counts.items(), key=lambda kv: (-kv[1], kv[0])):
            lines.append(f"  {name:<18} {count:>5}")
    return "\n".join(lines)
