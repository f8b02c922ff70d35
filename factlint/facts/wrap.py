"""
Fact-wrap run: scan content files and wrap hardcoded values in fact tags.

Each file is an independent unit of work: it is read fresh from disk,
scanned, and (in apply mode) rewritten and verified before it is written.
A failure in one file is recorded on its result and never stops the rest.
"""

import logging
import os
from dataclasses import dataclass, field
from typing import List, Optional, Sequence

from ..content.document import (
    DocumentIntegrityError,
    DocumentParseError,
    find_content_files,
    read_document,
    should_skip,
    write_document,
)
from ..edit_log.client import EditLogClient
from ..edit_log.log import log_bulk_fixes
from .patterns import SearchPattern, build_patterns
from .rewriter import annotate
from .scanner import Match, scan
from .store import FactTable

logger = logging.getLogger(__name__)

WRAP_TOOL = "factlint-fact-wrap"
WRAP_NOTE = "Auto-wrapped hardcoded numbers with <F> fact components"


@dataclass
class FileResult:
    path: str
    relative_path: str
    matches: List[Match] = field(default_factory=list)
    written: bool = False
    error: Optional[str] = None


@dataclass
class WrapReport:
    files: List[FileResult] = field(default_factory=list)
    fact_count: int = 0
    pattern_count: int = 0
    applied: bool = False

    @property
    def total_matches(self) -> int:
        return sum(len(f.matches) for f in self.files)

    @property
    def files_with_matches(self) -> List[FileResult]:
        return [f for f in self.files if f.matches]

    @property
    def written_files(self) -> List[FileResult]:
        return [f for f in self.files if f.written]

    @property
    def failures(self) -> List[FileResult]:
        return [f for f in self.files if f.error]


class PageNotFoundError(Exception):
    """Raised when a requested page id matches no content file."""
    pass


def select_files(content_dir: str, page_id: Optional[str] = None,
                 skip_prefixes: Sequence[str] = ("internal/",)) -> List[str]:
    """
    Content files to process, optionally narrowed to one page.

    Raises:
        PageNotFoundError: If page_id is given and no file matches it
    """
    files = []
    for path in find_content_files(content_dir):
        rel = os.path.relpath(path, content_dir).replace(os.sep, "/")
        if any(rel.startswith(prefix) for prefix in skip_prefixes):
            continue
        files.append(path)

    if page_id:
        wanted = [
            p for p in files
            if os.path.splitext(os.path.basename(p))[0] == page_id
            or (os.path.basename(p).startswith("index.") and os.path.basename(os.path.dirname(p)) == page_id)
        ]
        if not wanted:
            raise PageNotFoundError(f"No content file found for page id '{page_id}'")
        return wanted
    return files


def wrap_file(path: str, content_dir: str, patterns: List[SearchPattern], apply: bool = False,
              skip_prefixes: Sequence[str] = ("internal/",)) -> FileResult:
    """Scan one file and, in apply mode, write the annotated text."""
    rel = os.path.relpath(path, content_dir).replace(os.sep, "/")
    result = FileResult(path=path, relative_path=rel)

    try:
        doc = read_document(path, content_dir)
    except DocumentParseError as e:
        logger.warning(f"Skipping {rel}: {e.message}")
        result.error = e.message
        return result

    if should_skip(doc, skip_prefixes):
        return result

    result.matches = scan(doc, patterns)
    if not apply or not result.matches:
        return result

    new_text = annotate(doc, result.matches)
    try:
        result.written = write_document(path, new_text, doc.raw)
    except DocumentIntegrityError as e:
        logger.error(f"Refusing to write {rel}: {e.message}")
        result.error = e.message
    except OSError as e:
        logger.error(f"Failed to write {rel}: {e}")
        result.error = str(e)
    return result


def run_fact_wrap(content_dir: str, facts: FactTable, page_id: Optional[str] = None,
                  entity: Optional[str] = None, apply: bool = False,
                  edit_log: Optional[EditLogClient] = None,
                  skip_prefixes: Sequence[str] = ("internal/",)) -> WrapReport:
    """
    Scan (and optionally rewrite) content files against the fact table.

    Args:
        content_dir: Root of the content tree
        facts: Canonical fact table
        page_id: Restrict the run to one page
        entity: Restrict pattern generation to one entity's facts
        apply: Write changes (default is a dry run that never writes)
        edit_log: Client notified after a successful apply
        skip_prefixes: Relative path prefixes that are never touched

    Returns:
        WrapReport with one FileResult per processed file

    Raises:
        PageNotFoundError: If page_id matches no file
    """
    patterns = build_patterns(facts, entity=entity)
    report = WrapReport(fact_count=len(facts), pattern_count=len(patterns), applied=apply)
    logger.info(f"Generated {len(patterns)} patterns from {len(facts)} facts")

    for path in select_files(content_dir, page_id, skip_prefixes):
        report.files.append(wrap_file(path, content_dir, patterns, apply, skip_prefixes))

    written = [f.path for f in report.written_files]
    if apply and written:
        log_bulk_fixes(written, tool=WRAP_TOOL, agency="automated", note=WRAP_NOTE, client=edit_log)

    return report
