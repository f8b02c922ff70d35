"""
Rule: standard sections use canonical table headers.

Risk Assessment, Quick Assessment, and Key Links tables share one header
format across pages so readers can scan them side by side. Known variant
headers are rewritten to the canonical form; anything else is reported
as INFO since it may be a specialized table.
"""

import re
from typing import Dict, List, Optional, Tuple

from ...content.document import Document, should_skip
from ...content.regions import FENCED_CODE, ProtectedRanges
from ..engine import FILE_SCOPE, Issue, Rule, RunContext, Severity
from ..fixes import ReplaceText

RISK_ASSESSMENT = "Risk Assessment"
QUICK_ASSESSMENT = "Quick Assessment"
KEY_LINKS = "Key Links"

CANONICAL_HEADERS: Dict[str, str] = {
    RISK_ASSESSMENT: "| Dimension | Assessment | Notes |",
    QUICK_ASSESSMENT: "| Dimension | Assessment | Evidence |",
    KEY_LINKS: "| Source | Link |",
}

HEADER_ALIASES: Dict[str, Dict[str, str]] = {
    RISK_ASSESSMENT: {
        "| Dimension | Rating | Justification |": "| Dimension | Assessment | Notes |",
        "| Dimension | Rating | Notes |": "| Dimension | Assessment | Notes |",
        "| Dimension | Assessment | Details |": "| Dimension | Assessment | Notes |",
        "| Dimension | Assessment | Evidence/Notes |": "| Dimension | Assessment | Notes |",
        "| Dimension | Assessment | Evidence |": "| Dimension | Assessment | Notes |",
        "| Factor | Assessment | Evidence |": "| Dimension | Assessment | Notes |",
        "| Factor | Assessment | Notes |": "| Dimension | Assessment | Notes |",
    },
    QUICK_ASSESSMENT: {
        "| Dimension | Rating | Notes |": "| Dimension | Assessment | Evidence |",
        "| Dimension | Assessment | Notes |": "| Dimension | Assessment | Evidence |",
        "| Dimension | Rating | Evidence |": "| Dimension | Assessment | Evidence |",
        "| Dimension | Rating | Evidence Basis |": "| Dimension | Assessment | Evidence |",
        "| Dimension | Score | Evidence |": "| Dimension | Assessment | Evidence |",
        "| Dimension | Assessment | Details |": "| Dimension | Assessment | Evidence |",
        "| Dimension | Rating | Rationale |": "| Dimension | Assessment | Evidence |",
        "| Assessment Dimension | Rating | Analysis |": "| Dimension | Assessment | Evidence |",
        "| Aspect | Assessment |": "| Dimension | Assessment |",
        "| Aspect | Details |": "| Dimension | Assessment |",
        "| Aspect | Summary |": "| Dimension | Assessment |",
        "| Aspect | Status |": "| Dimension | Assessment |",
        "| Aspect | Rating | Notes |": "| Dimension | Assessment | Evidence |",
        "| Aspect | Description |": "| Dimension | Assessment |",
        "| Attribute | Assessment |": "| Dimension | Assessment |",
        "| Attribute | Detail |": "| Dimension | Assessment |",
        "| Attribute | Details |": "| Dimension | Assessment |",
        "| Category | Details |": "| Dimension | Assessment |",
        "| Dimension | Rating/Details |": "| Dimension | Assessment |",
    },
    KEY_LINKS: {
        "| Resource | Link |": "| Source | Link |",
        "| Title | Link |": "| Source | Link |",
        "| Name | Link |": "| Source | Link |",
    },
}

# Headers starting like this are compatible variants (extra columns, etc.)
COMPATIBLE_PREFIXES = ("| Dimension |", "| Source |")

SECTION_HEADING_RE = re.compile(r"^#{1,3} (Risk Assessment|Quick Assessment|Key Links)$")
ANY_HEADING_RE = re.compile(r"^#{1,3} ")
SEPARATOR_RE = re.compile(r"^\|[\s\-:|]+\|$")

# How far below a heading the table may start
SEARCH_WINDOW = 10


def first_table_header(lines: List[str], heading_idx: int) -> Optional[Tuple[str, int]]:
    """(header row, 0-based line index) of the first table under a heading, if any."""
    for i in range(heading_idx + 1, min(heading_idx + 1 + SEARCH_WINDOW, len(lines))):
        line = lines[i].strip()
        if line.startswith("|"):
            if SEPARATOR_RE.match(line):
                continue
            return line, i
        if ANY_HEADING_RE.match(line):
            break
    return None


class TableHeadersRule(Rule):
    id = "table-headers"
    name = "Standard Table Column Headers"
    description = "Enforce canonical column headers for Risk Assessment, Quick Assessment, and Key Links tables"
    scope = FILE_SCOPE

    def check(self, doc: Document, context: RunContext) -> List[Issue]:
        if should_skip(doc, context.settings.skip_prefixes):
            return []

        ranges = ProtectedRanges.build(doc.raw, kinds=frozenset({FENCED_CODE}))
        lines = doc.raw.split("\n")
        start = doc.body_line_offset

        issues = []
        offset = sum(len(line) + 1 for line in lines[:start])
        for idx in range(start, len(lines)):
            line = lines[idx]
            line_start = offset
            offset += len(line) + 1

            m = SECTION_HEADING_RE.match(line)
            if not m or ranges.contains(line_start):
                continue

            section = m.group(1)
            found = first_table_header(lines, idx)
            if found is None:
                continue
            header, header_idx = found
            if header == CANONICAL_HEADERS[section]:
                continue

            canonical = HEADER_ALIASES[section].get(header)
            if canonical is not None:
                issues.append(self.issue(
                    doc, header_idx + 1,
                    f'Non-standard {section} table header: "{header}" -> should be "{canonical}"',
                    Severity.WARNING,
                    fix=ReplaceText(header, canonical),
                ))
            elif not header.startswith(COMPATIBLE_PREFIXES):
                issues.append(self.issue(
                    doc, header_idx + 1,
                    f'Non-standard {section} table header: "{header}" '
                    f'(expected "{CANONICAL_HEADERS[section]}" or compatible variant)',
                    Severity.INFO,
                ))
        return issues
