"""Best-effort reporting of automated edits to the edit-log service."""

from .client import EditLogClient
from .log import EditLogEntry, append_edit_log, log_bulk_fixes, page_id_from_path

__all__ = ["EditLogClient", "EditLogEntry", "append_edit_log", "log_bulk_fixes", "page_id_from_path"]
