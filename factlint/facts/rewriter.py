"""Apply scanned matches as fact annotation tags and keep the import in place."""

import re
from typing import Iterable, List

from ..content.document import Document
from ..content.regions import header_end
from .scanner import Match

ANNOTATION_COMPONENT = "F"
COMPONENTS_MODULE = "@components/wiki"

AGGREGATE_IMPORT_RE = re.compile(
    r"^import\s*\{([^}]*)\}\s*from\s*(['\"])" + re.escape(COMPONENTS_MODULE) + r"\2;?",
    re.MULTILINE,
)
NAMED_IMPORT_RE = re.compile(r"^import\s*\{([^}]*)\}\s*from\s*['\"][^'\"]+['\"]", re.MULTILINE)


def annotation_tag(entity: str, fact_id: str, inner: str) -> str:
    return f'<F e="{entity}" f="{fact_id}">{inner}</F>'


def apply_matches(text: str, matches: Iterable[Match]) -> str:
    """
    Wrap each match in an annotation tag.

    Matches are applied from the last offset to the first so that earlier
    offsets stay valid. The matched text is kept verbatim inside the tag.
    """
    result = text
    for match in sorted(matches, key=lambda m: m.position, reverse=True):
        inner = result[match.position:match.end]
        result = (
            result[:match.position]
            + annotation_tag(match.entity, match.fact_id, inner)
            + result[match.end:]
        )
    return result


def imported_names(text: str) -> List[str]:
    names = []
    for m in NAMED_IMPORT_RE.finditer(text):
        for part in m.group(1).split(","):
            name = part.strip().split(" as ")[-1].strip()
            if name:
                names.append(name)
    return names


def ensure_import(text: str, component: str = ANNOTATION_COMPONENT,
                  source: str = COMPONENTS_MODULE) -> str:
    """
    Make sure component is imported exactly once.

    An existing aggregate import from source is extended; otherwise a new
    import line is inserted directly after the metadata header.
    """
    if component in imported_names(text):
        return text

    if source == COMPONENTS_MODULE:
        aggregate = AGGREGATE_IMPORT_RE
    else:
        aggregate = re.compile(
            r"^import\s*\{([^}]*)\}\s*from\s*(['\"])" + re.escape(source) + r"\2;?",
            re.MULTILINE,
        )

    m = aggregate.search(text)
    if m:
        names = [n.strip() for n in m.group(1).split(",") if n.strip()]
        names.append(component)
        quote = m.group(2)
        replacement = f"import {{{', '.join(names)}}} from {quote}{source}{quote};"
        return text[:m.start()] + replacement + text[m.end():]

    statement = f"import {{{component}}} from '{source}';\n"
    insert_at = header_end(text)
    if insert_at and not text[:insert_at].endswith("\n"):
        statement = "\n" + statement
    return text[:insert_at] + statement + text[insert_at:]


def annotate(doc: Document, matches: List[Match]) -> str:
    """Annotated raw text for doc, unchanged when there are no matches."""
    if not matches:
        return doc.raw
    return ensure_import(apply_matches(doc.raw, matches))
