"""Rule: page frontmatter must match the content collection schema."""

import datetime
import re
from typing import Any, Dict, List

import jsonschema

from ...content.document import Document
from ..engine import FILE_SCOPE, Issue, Rule, RunContext, Severity
from ..fixes import ReplaceText

_SCORE = {"type": "number", "minimum": 0, "maximum": 100}
_RATING = {"type": "number", "minimum": 0, "maximum": 10}

FRONTMATTER_SCHEMA: Dict[str, Any] = {
    "type": "object",
    "required": ["title"],
    "properties": {
        "title": {"type": "string", "minLength": 1},
        "description": {"type": "string"},
        "sidebar": {
            "type": "object",
            "properties": {
                "label": {"type": "string"},
                "order": {"type": "number"},
                "hidden": {"type": "boolean"},
            },
        },
        "template": {"enum": ["doc", "splash"]},
        "editUrl": {"type": ["string", "boolean"]},
        "draft": {"type": "boolean"},
        "pageType": {"enum": ["content", "stub", "documentation"]},
        "contentFormat": {"enum": ["article", "table", "diagram", "index", "dashboard"]},
        "quality": _SCORE,
        "importance": _SCORE,
        "tractability": _SCORE,
        "neglectedness": _SCORE,
        "uncertainty": _SCORE,
        "llmSummary": {"type": "string"},
        "lastEdited": {"type": "string"},
        "todo": {"type": "string"},
        "todos": {"type": "array", "items": {"type": "string"}},
        "seeAlso": {"type": "string"},
        "ratings": {
            "type": "object",
            "properties": {
                "novelty": _RATING,
                "rigor": _RATING,
                "actionability": _RATING,
                "completeness": _RATING,
                "changeability": _SCORE,
                "xriskImpact": _SCORE,
                "trajectoryImpact": _SCORE,
                "uncertainty": _SCORE,
            },
        },
        "metrics": {
            "type": "object",
            "properties": {
                "wordCount": {"type": "number"},
                "citations": {"type": "number"},
                "tables": {"type": "number"},
                "diagrams": {"type": "number"},
            },
        },
        "maturity": {"type": "string"},
        "fullWidth": {"type": "boolean"},
        "update_frequency": {"type": "number", "exclusiveMinimum": 0},
        "entityId": {"type": "string"},
        "roles": {"type": "array", "items": {"type": "string"}},
        "pageTemplate": {"type": "string"},
    },
}

UNQUOTED_LAST_EDITED_RE = re.compile(r"^lastEdited:[ \t]*(\d{4}-\d{2}-\d{2})[ \t]*$", re.MULTILINE)

_VALIDATOR = jsonschema.Draft7Validator(FRONTMATTER_SCHEMA)


def _key_line(doc: Document, key: str) -> int:
    """Raw-file line of a top-level header key, or 1."""
    m = re.search(rf"^{re.escape(key)}:", doc.header, re.MULTILINE)
    if not m:
        return 1
    return doc.header.count("\n", 0, m.start()) + 1


class FrontmatterSchemaRule(Rule):
    id = "frontmatter-schema"
    name = "Frontmatter Schema"
    description = "Validate page frontmatter against the content collection schema"
    scope = FILE_SCOPE

    def check(self, doc: Document, context: RunContext) -> List[Issue]:
        if not doc.has_header:
            return [self.issue(doc, 1, "Missing frontmatter header", Severity.ERROR)]

        issues = []
        frontmatter = dict(doc.frontmatter)

        # YAML reads a bare 2026-02-01 as a date; the schema expects a string
        if isinstance(frontmatter.get("lastEdited"), datetime.date):
            frontmatter.pop("lastEdited")
            m = UNQUOTED_LAST_EDITED_RE.search(doc.header)
            fix = None
            if m:
                fix = ReplaceText(old_text=m.group(0), new_text=f'lastEdited: "{m.group(1)}"')
            issues.append(self.issue(
                doc, _key_line(doc, "lastEdited"),
                "lastEdited must be a quoted string",
                Severity.WARNING,
                fix=fix,
            ))

        for error in sorted(_VALIDATOR.iter_errors(frontmatter), key=lambda e: [str(p) for p in e.path]):
            field_path = ".".join(str(p) for p in error.path) or "(root)"
            top_key = str(error.path[0]) if error.path else ""
            issues.append(self.issue(
                doc, _key_line(doc, top_key) if top_key else 1,
                f"Frontmatter {field_path}: {error.message}",
                Severity.ERROR,
            ))
        return issues
