"""
Rule: wiki components used in a page must be imported.

Catches missing imports before the MDX build fails with "Expected
component to be defined".
"""

import re
from typing import List

from ...content.document import Document
from ...content.regions import COMMENT, FENCED_CODE, FRONTMATTER, INLINE_CODE, ProtectedRanges
from ...facts.rewriter import AGGREGATE_IMPORT_RE, COMPONENTS_MODULE, ensure_import, imported_names
from ..engine import FILE_SCOPE, Issue, Rule, RunContext, Severity
from ..fixes import AddToImport, CreateImport, CustomFix

WIKI_COMPONENTS = (
    "EntityLink",
    "MultiEntityLinks",
    "R",
    "InfoBox",
    "DataInfoBox",
    "Backlinks",
    "DataExternalLinks",
    "ExternalLinks",
    "Mermaid",
    "CredibilityBadge",
    "ResourceTags",
    "F",
    "SquiggleEstimate",
)

COMPONENT_USAGE_RE = re.compile(r"<([A-Z][A-Za-z0-9]*)[\s/>]")
_CODE_KINDS = frozenset({FRONTMATTER, FENCED_CODE, INLINE_CODE, COMMENT})


def used_components(text: str) -> List[str]:
    """Known wiki components used outside code, in first-use order."""
    ranges = ProtectedRanges.build(text, kinds=_CODE_KINDS)
    used = []
    for m in COMPONENT_USAGE_RE.finditer(text):
        name = m.group(1)
        if name in WIKI_COMPONENTS and name not in used and not ranges.contains(m.start()):
            used.append(name)
    return used


class ComponentImportsRule(Rule):
    id = "component-imports"
    name = "Component Imports"
    description = "Ensure all used wiki components are imported"
    scope = FILE_SCOPE

    def check(self, doc: Document, context: RunContext) -> List[Issue]:
        used = used_components(doc.raw)
        if not used:
            return []

        imported = set(imported_names(doc.raw))
        missing = tuple(c for c in used if c not in imported)
        if not missing:
            return []

        if AGGREGATE_IMPORT_RE.search(doc.raw):
            fix = AddToImport(components=missing)
        else:
            fix = CreateImport(components=missing)
        return [self.issue(
            doc, doc.body_line_offset + 1,
            f"Missing import(s) for: {', '.join(missing)}",
            Severity.ERROR,
            fix=fix,
        )]

    def apply_fix(self, content: str, fix: CustomFix, context: RunContext, path: str) -> str:
        if isinstance(fix, (AddToImport, CreateImport)):
            for component in fix.components:
                content = ensure_import(content, component, COMPONENTS_MODULE)
            return content
        return super().apply_fix(content, fix, context, path)
