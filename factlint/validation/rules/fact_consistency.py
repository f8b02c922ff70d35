"""
Rule: hardcoded values that match a canonical fact.

Reports every value the fact-wrap scanner would annotate. The attached
WrapFacts fix re-scans the current file text when applied, so stale
offsets from the validation pass are never reused.
"""

from typing import List

from ...content.document import Document, parse_document, should_skip
from ...facts.rewriter import annotate
from ...facts.scanner import scan
from ..engine import FILE_SCOPE, Issue, Rule, RunContext, Severity
from ..fixes import CustomFix, WrapFacts


class FactConsistencyRule(Rule):
    id = "fact-consistency"
    name = "Fact Consistency"
    description = "Suggest <F> tags for hardcoded numbers that match canonical facts"
    scope = FILE_SCOPE

    def check(self, doc: Document, context: RunContext) -> List[Issue]:
        if not context.patterns or should_skip(doc, context.settings.skip_prefixes):
            return []

        issues = []
        for match in scan(doc, context.patterns):
            issues.append(self.issue(
                doc, match.line,
                f'Hardcoded "{match.matched_text}" matches canonical fact {match.fact_key} '
                f'("{match.value}"). Consider <F e="{match.entity}" f="{match.fact_id}">',
                Severity.INFO,
                fix=WrapFacts(),
            ))
        return issues

    def apply_fix(self, content: str, fix: CustomFix, context: RunContext, path: str) -> str:
        if isinstance(fix, WrapFacts):
            doc = parse_document(path, content, context.content_dir)
            return annotate(doc, scan(doc, context.patterns))
        return super().apply_fix(content, fix, context, path)
