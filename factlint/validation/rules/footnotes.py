"""
Rule: footnote references and definitions must line up.

A reference with no definition usually means the page was truncated
during an edit; a duplicated definition usually means a bad merge.
"""

import re
from typing import Dict, List

from ...content.document import Document, LineIndex
from ...content.regions import COMMENT, FENCED_CODE, FRONTMATTER, INLINE_CODE, ProtectedRanges
from ..engine import FILE_SCOPE, Issue, Rule, RunContext, Severity

FOOTNOTE_REF_RE = re.compile(r"\[\^([^\]\s]+)\](?!:)")
FOOTNOTE_DEF_RE = re.compile(r"^\[\^([^\]\s]+)\]:", re.MULTILINE)
_CODE_KINDS = frozenset({FRONTMATTER, FENCED_CODE, INLINE_CODE, COMMENT})


class FootnoteIntegrityRule(Rule):
    id = "footnote-integrity"
    name = "Footnote Integrity"
    description = "Detect orphaned footnote references and duplicate footnote definitions"
    scope = FILE_SCOPE

    def check(self, doc: Document, context: RunContext) -> List[Issue]:
        ranges = ProtectedRanges.build(doc.raw, kinds=_CODE_KINDS)
        lines = LineIndex(doc.raw)

        definitions: Dict[str, int] = {}
        issues = []
        for m in FOOTNOTE_DEF_RE.finditer(doc.raw):
            if ranges.contains(m.start()):
                continue
            label = m.group(1)
            line = lines.line_at(m.start())
            if label in definitions:
                issues.append(self.issue(
                    doc, line,
                    f"Duplicate footnote definition [^{label}] (first defined on line {definitions[label]})",
                    Severity.WARNING,
                ))
            else:
                definitions[label] = line

        reported = set()
        for m in FOOTNOTE_REF_RE.finditer(doc.raw):
            label = m.group(1)
            if label in definitions or label in reported or ranges.contains(m.start()):
                continue
            reported.add(label)
            issues.append(self.issue(
                doc, lines.line_at(m.start()),
                f"Footnote reference [^{label}] has no definition (page may be truncated)",
                Severity.WARNING,
            ))
        return issues
