"""Rule: <F> tags must reference facts that exist in the fact table."""

import re
from typing import List

from ...content.document import Document, LineIndex
from ...content.regions import FENCED_CODE, INLINE_CODE, COMMENT, ProtectedRanges
from ..engine import FILE_SCOPE, Issue, Rule, RunContext, Severity

FACT_REF_RE = re.compile(r'<F\s+e="([^"]*)"\s+f="([^"]*)"')


class FactRefsRule(Rule):
    id = "fact-refs"
    name = "Fact References"
    description = "Ensure every <F> tag names a known entity and fact"
    scope = FILE_SCOPE

    def check(self, doc: Document, context: RunContext) -> List[Issue]:
        facts = context.facts
        # Without a fact table every reference would look broken
        if not len(facts):
            return []

        ranges = ProtectedRanges.build(doc.raw, kinds=frozenset({FENCED_CODE, INLINE_CODE, COMMENT}))
        lines = LineIndex(doc.raw)
        known_entities = set(facts.entities())

        issues = []
        for m in FACT_REF_RE.finditer(doc.raw):
            if ranges.contains(m.start()):
                continue
            entity, fact_id = m.group(1), m.group(2)
            if (entity, fact_id) in facts:
                continue
            if entity not in known_entities:
                message = f'Unknown entity "{entity}" in fact reference {entity}.{fact_id}'
            else:
                message = f'Unknown fact "{fact_id}" for entity "{entity}"'
            issues.append(self.issue(doc, lines.line_at(m.start()), message, Severity.ERROR))
        return issues
