"""
Rule: component imports and references must point at something real.

- every name in a named import is used somewhere after the import
- ``<EntityLink id="...">`` names a known entity: one with a fact file
  or a page of its own
"""

import re
from typing import List, Set

from ...content.document import Document, LineIndex, should_skip
from ...content.regions import COMMENT, FENCED_CODE, FRONTMATTER, INLINE_CODE, ProtectedRanges
from ...facts.rewriter import NAMED_IMPORT_RE
from ..engine import FILE_SCOPE, Issue, Rule, RunContext, Severity

IMPORT_SOURCE_RE = re.compile(r"from\s*['\"]([^'\"]+)['\"]")
ENTITY_LINK_ID_RE = re.compile(r"<EntityLink\s+id=[\"']([^\"']+)[\"']")
_CODE_KINDS = frozenset({FRONTMATTER, FENCED_CODE, INLINE_CODE, COMMENT})


def unused_imports(text: str) -> List[tuple]:
    """(name, source, import offset) for imported names never used after their import."""
    unused = []
    for m in NAMED_IMPORT_RE.finditer(text):
        source_match = IMPORT_SOURCE_RE.search(m.group(0))
        source = source_match.group(1) if source_match else ""
        rest = text[m.end():]
        for part in m.group(1).split(","):
            name = part.strip().split(" as ")[-1].strip()
            if not name:
                continue
            usage = re.compile(r"<" + re.escape(name) + r"[\s/>]|\b" + re.escape(name) + r"\(")
            if not usage.search(rest):
                unused.append((name, source, m.start()))
    return unused


def known_entities(context: RunContext) -> Set[str]:
    """Entities with a fact file, plus every page id in the run."""
    return set(context.facts.entities()) | {doc.page_id for doc in context.documents}


class ComponentRefsRule(Rule):
    id = "component-refs"
    name = "Component References"
    description = "Flag unused component imports and EntityLinks to unknown entities"
    scope = FILE_SCOPE

    def check(self, doc: Document, context: RunContext) -> List[Issue]:
        lines = LineIndex(doc.raw)
        issues = []

        for name, source, pos in unused_imports(doc.raw):
            issues.append(self.issue(
                doc, lines.line_at(pos),
                f'Unused import: {name} from "{source}"',
                Severity.WARNING,
            ))

        if should_skip(doc, context.settings.skip_prefixes):
            return issues

        entities = known_entities(context)
        ranges = ProtectedRanges.build(doc.raw, kinds=_CODE_KINDS)
        for m in ENTITY_LINK_ID_RE.finditer(doc.raw):
            if ranges.contains(m.start()):
                continue
            entity_id = m.group(1)
            if entity_id in entities:
                continue
            issues.append(self.issue(
                doc, lines.line_at(m.start()),
                f'EntityLink id="{entity_id}" not found in facts or pages',
                Severity.ERROR,
            ))
        return issues
