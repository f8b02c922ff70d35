"""
Protected-region detection for MDX documents.

A protected region is any span that pattern matching and rewriting must
never touch: the metadata header, fenced and inline code, component tags
and their attributes, bodies of existing annotation tags, expression
blocks, comments, import/export lines, link targets and link text, raw
URLs, footnote definitions, and SquiggleEstimate blocks.

Regions are computed once per document text by a single scanning pass
and stored as a merged, sorted interval set. Offsets are Python string
indices (code points) everywhere.
"""

import re
from bisect import bisect_right
from dataclasses import dataclass
from typing import FrozenSet, Iterable, List, Optional, Tuple

# Region kinds
FRONTMATTER = "frontmatter"
FENCED_CODE = "fenced_code"
INLINE_CODE = "inline_code"
IMPORT = "import"
COMPONENT_TAG = "component_tag"
ANNOTATION = "annotation"
EXPRESSION = "expression"
COMMENT = "comment"
LINK_TARGET = "link_target"
LINK_TEXT = "link_text"
URL = "url"
FOOTNOTE_DEF = "footnote_definition"
ESTIMATE = "estimate"

ALL_KINDS: FrozenSet[str] = frozenset({
    FRONTMATTER, FENCED_CODE, INLINE_CODE, IMPORT, COMPONENT_TAG, ANNOTATION,
    EXPRESSION, COMMENT, LINK_TARGET, LINK_TEXT, URL, FOOTNOTE_DEF, ESTIMATE,
})

# Regions where prose claims are not real claims (used by the conflict detector)
CODE_KINDS: FrozenSet[str] = frozenset({FRONTMATTER, FENCED_CODE, INLINE_CODE, EXPRESSION, COMMENT, ESTIMATE})

# Components whose children are already bound to a value
ANNOTATION_COMPONENTS = ("F", "Calc")

HEADER_RE = re.compile(r"\A---\n.*?\n---(?:\n|\Z)", re.DOTALL)
FENCE_RE = re.compile(r"[ \t]*(```|~~~)")
BACKTICK_RUN_RE = re.compile(r"`+")
COMMENT_RE = re.compile(r"<!--.*?(?:-->|\Z)", re.DOTALL)
IMPORT_RE = re.compile(
    r"^import\s*\{[^}]*\}\s*from\s*['\"][^'\"\n]*['\"];?[^\n]*$"
    r"|^import\b[^\n]*$",
    re.MULTILINE,
)
EXPORT_RE = re.compile(r"^export\b[^\n]*$", re.MULTILINE)
TAG_OPEN_RE = re.compile(r"</?([A-Z][A-Za-z0-9_.]*)")
LINK_TARGET_RE = re.compile(r"\]\([^)\n]*\)?")
LINK_TEXT_RE = re.compile(r"\[[^\]\n]*(?:\]|$)", re.MULTILINE)
URL_RE = re.compile(r"https?://\S+")
FOOTNOTE_DEF_RE = re.compile(r"^\[\^[^\]\n]+\]:[^\n]*$", re.MULTILINE)
ESTIMATE_OPEN_RE = re.compile(r"<SquiggleEstimate\b")
ESTIMATE_CLOSE = "</SquiggleEstimate>"


@dataclass(frozen=True)
class Region:
    start: int
    end: int
    kind: str


def header_end(text: str) -> int:
    """Offset just past the closing header delimiter, or 0 without a header."""
    m = HEADER_RE.match(text)
    return m.end() if m else 0


def _iter_lines(text: str, start: int = 0) -> Iterable[Tuple[int, int]]:
    """Yield (line_start, line_end) offsets, line_end excluding the newline."""
    pos = start
    length = len(text)
    while pos < length:
        nl = text.find("\n", pos)
        if nl == -1:
            yield pos, length
            return
        yield pos, nl
        pos = nl + 1


def _fenced_code(text: str, body_start: int) -> List[Region]:
    regions = []
    open_start = None
    open_marker = None
    for line_start, line_end in _iter_lines(text, body_start):
        m = FENCE_RE.match(text, line_start, line_end)
        if not m:
            continue
        if open_start is None:
            open_start = line_start
            open_marker = m.group(1)
        elif m.group(1) == open_marker:
            regions.append(Region(open_start, line_end, FENCED_CODE))
            open_start = None
    if open_start is not None:
        regions.append(Region(open_start, len(text), FENCED_CODE))
    return regions


def _inline_code(text: str, body_start: int, blocked: List[Region]) -> List[Region]:
    regions = []
    for line_start, line_end in _iter_lines(text, body_start):
        if any(r.start <= line_start < r.end for r in blocked):
            continue
        runs = list(BACKTICK_RUN_RE.finditer(text, line_start, line_end))
        i = 0
        while i < len(runs):
            opener = runs[i]
            closer_idx = None
            for j in range(i + 1, len(runs)):
                if len(runs[j].group(0)) == len(opener.group(0)):
                    closer_idx = j
                    break
            if closer_idx is None:
                # Unmatched delimiter: everything to end of line is treated as code
                regions.append(Region(opener.start(), line_end, INLINE_CODE))
                break
            regions.append(Region(opener.start(), runs[closer_idx].end(), INLINE_CODE))
            i = closer_idx + 1
    return regions


def _mask(text: str, regions: Iterable[Region]) -> str:
    """Blank out regions with spaces, keeping newlines and offsets intact."""
    chars = list(text)
    for region in regions:
        for i in range(region.start, region.end):
            if chars[i] != "\n":
                chars[i] = " "
    return "".join(chars)


def _tag_end(text: str, start: int) -> int:
    """Offset just past the '>' closing the tag opened at start."""
    quote = None
    depth = 0
    i = start + 1
    length = len(text)
    while i < length:
        ch = text[i]
        if quote:
            if ch == quote:
                quote = None
        elif ch in ('"', "'", "`"):
            quote = ch
        elif ch == "{":
            depth += 1
        elif ch == "}":
            depth = max(depth - 1, 0)
        elif ch == ">" and depth == 0:
            return i + 1
        i += 1
    return length


def _component_tags(masked: str, body_start: int) -> List[Region]:
    regions = []
    pos = body_start
    while True:
        m = TAG_OPEN_RE.search(masked, pos)
        if not m:
            break
        start = m.start()
        end = _tag_end(masked, start)
        regions.append(Region(start, end, COMPONENT_TAG))

        name = m.group(1)
        closing = masked[start + 1] == "/"
        self_closing = masked[end - 2:end] == "/>"
        if name in ANNOTATION_COMPONENTS and not closing and not self_closing:
            close_at = masked.find(f"</{name}>", end)
            body_end = close_at if close_at != -1 else len(masked)
            if body_end > end:
                regions.append(Region(end, body_end, ANNOTATION))
        pos = end
    return regions


def _estimate_blocks(text: str, body_start: int, blocked: List[Region]) -> List[Region]:
    """SquiggleEstimate tags through their close, template-literal code included."""
    regions = []
    for m in ESTIMATE_OPEN_RE.finditer(text, body_start):
        start = m.start()
        if any(r.start <= start < r.end for r in blocked):
            continue
        end = _tag_end(text, start)
        if text[end - 2:end] != "/>":
            close_at = text.find(ESTIMATE_CLOSE, end)
            if close_at != -1:
                end = close_at + len(ESTIMATE_CLOSE)
        regions.append(Region(start, end, ESTIMATE))
    return regions


def _expressions(masked: str, body_start: int, tags: List[Region]) -> List[Region]:
    regions = []
    depth = 0
    open_at = 0
    tag_iter = iter(sorted(
        (t for t in tags if t.kind == COMPONENT_TAG and t.start >= body_start),
        key=lambda t: t.start,
    ))
    next_tag = next(tag_iter, None)
    i = body_start
    length = len(masked)
    while i < length:
        if depth == 0 and next_tag is not None and i >= next_tag.start:
            # Attribute expressions belong to the tag region already
            i = max(i, next_tag.end)
            next_tag = next(tag_iter, None)
            continue
        ch = masked[i]
        if ch == "{":
            if depth == 0:
                open_at = i
            depth += 1
        elif ch == "}" and depth > 0:
            depth -= 1
            if depth == 0:
                regions.append(Region(open_at, i + 1, EXPRESSION))
        i += 1
    if depth > 0:
        regions.append(Region(open_at, length, EXPRESSION))
    return regions


def _regex_regions(pattern, masked: str, body_start: int, kind: str, offset: int = 0) -> List[Region]:
    return [
        Region(m.start() + offset, m.end(), kind)
        for m in pattern.finditer(masked, body_start)
        if m.end() > m.start() + offset
    ]


def find_regions(text: str) -> List[Region]:
    """Return every protected region in text, unmerged, in discovery order."""
    body_start = header_end(text)
    regions: List[Region] = []
    if body_start:
        regions.append(Region(0, body_start, FRONTMATTER))

    fenced = _fenced_code(text, body_start)
    inline = _inline_code(text, body_start, fenced)
    regions.extend(fenced)
    regions.extend(inline)

    # Read from the raw text: the template literal in code={`...`} looks like inline code
    regions.extend(_estimate_blocks(text, body_start, fenced + inline))

    # Structural syntax is only recognised outside header and code
    masked = _mask(text, regions)

    comments = _regex_regions(COMMENT_RE, masked, body_start, COMMENT)
    masked_no_comments = _mask(masked, comments)
    regions.extend(comments)

    regions.extend(_regex_regions(IMPORT_RE, masked_no_comments, body_start, IMPORT))
    regions.extend(_regex_regions(EXPORT_RE, masked_no_comments, body_start, IMPORT))

    tags = _component_tags(masked_no_comments, body_start)
    regions.extend(tags)
    regions.extend(_expressions(masked_no_comments, body_start, tags))

    regions.extend(_regex_regions(LINK_TARGET_RE, masked_no_comments, body_start, LINK_TARGET, offset=1))
    regions.extend(_regex_regions(LINK_TEXT_RE, masked_no_comments, body_start, LINK_TEXT))
    regions.extend(_regex_regions(URL_RE, masked_no_comments, body_start, URL))
    regions.extend(_regex_regions(FOOTNOTE_DEF_RE, masked_no_comments, body_start, FOOTNOTE_DEF))
    return regions


class ProtectedRanges:
    """Merged, sorted set of protected intervals for one document text."""

    def __init__(self, regions: Iterable[Region]):
        self.regions: Tuple[Region, ...] = tuple(sorted(regions, key=lambda r: (r.start, r.end)))
        starts: List[int] = []
        ends: List[int] = []
        for region in self.regions:
            if region.end <= region.start:
                continue
            if starts and region.start <= ends[-1]:
                ends[-1] = max(ends[-1], region.end)
            else:
                starts.append(region.start)
                ends.append(region.end)
        self._starts = starts
        self._ends = ends

    @classmethod
    def build(cls, text: str, kinds: FrozenSet[str] = ALL_KINDS) -> "ProtectedRanges":
        """Scan text once and keep the regions whose kind is in kinds."""
        return cls(r for r in find_regions(text) if r.kind in kinds)

    def __len__(self) -> int:
        return len(self._starts)

    def contains(self, pos: int) -> bool:
        """True if pos falls inside any protected interval."""
        idx = bisect_right(self._starts, pos) - 1
        return idx >= 0 and pos < self._ends[idx]

    def overlaps(self, start: int, end: int) -> bool:
        """True if the half-open span [start, end) touches any protected interval."""
        if end <= start:
            return self.contains(start)
        idx = bisect_right(self._starts, end - 1) - 1
        return idx >= 0 and self._ends[idx] > start

    def kind_at(self, pos: int) -> Optional[str]:
        """Kind of the innermost-starting region covering pos, for diagnostics."""
        found = None
        for region in self.regions:
            if region.start > pos:
                break
            if pos < region.end:
                found = region.kind
        return found


def is_protected(text: str, pos: int) -> bool:
    """Pure single-position check. Prefer ProtectedRanges.build for repeated queries."""
    return ProtectedRanges.build(text).contains(pos)
