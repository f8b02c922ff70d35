"""
Match scanning and deduplication.

Runs every eligible search pattern over a document's raw text, drops
matches that touch protected regions, and reduces the survivors in three
stages:

    1. same start offset: keep the longest match
    2. overlapping spans: keep the earliest, drop the rest
    3. per fact: keep only the first occurrence in the document

Stage 3 exists because a value's later occurrences may describe a
different quantity that happens to share the same display string.
"""

import logging
import re
from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional, Set

from ..content.document import Document, LineIndex
from ..content.regions import ProtectedRanges
from .patterns import SearchPattern

logger = logging.getLogger(__name__)

ANNOTATION_TAG_RE = re.compile(r'<F\s+e="([^"]+)"\s+f="([^"]+)"')


@dataclass(frozen=True)
class Match:
    """A located occurrence of a fact value in a document."""
    position: int
    length: int
    matched_text: str
    entity: str
    fact_id: str
    value: str
    line: int

    @property
    def end(self) -> int:
        return self.position + self.length

    @property
    def fact_key(self) -> str:
        return f"{self.entity}.{self.fact_id}"


def annotated_fact_keys(text: str) -> Set[str]:
    """Keys of facts that already carry an annotation tag in text."""
    return {f"{m.group(1)}.{m.group(2)}" for m in ANNOTATION_TAG_RE.finditer(text)}


def deduplicate_matches(matches: Iterable[Match]) -> List[Match]:
    """
    Reduce raw matches to a non-overlapping, one-per-fact list.

    Args:
        matches: Raw matches in any order

    Returns:
        Matches sorted by position
    """
    ordered = sorted(matches, key=lambda m: (m.position, -m.length, m.entity, m.fact_id))

    # Stage 1: longest at each position (ties already broken by sort order)
    by_position: Dict[int, Match] = {}
    for match in ordered:
        by_position.setdefault(match.position, match)

    # Stage 2: earliest wins across overlaps
    non_overlapping: List[Match] = []
    last_end = -1
    for position in sorted(by_position):
        match = by_position[position]
        if match.position >= last_end:
            non_overlapping.append(match)
            last_end = match.end

    # Stage 3: first occurrence per fact
    seen: Set[str] = set()
    result = []
    for match in non_overlapping:
        if match.fact_key in seen:
            continue
        seen.add(match.fact_key)
        result.append(match)
    return result


def scan_text(text: str, page_id: str, patterns: Iterable[SearchPattern],
              ranges: Optional[ProtectedRanges] = None) -> List[Match]:
    """Scan raw text belonging to page_id. See scan()."""
    if ranges is None:
        ranges = ProtectedRanges.build(text)
    already_annotated = annotated_fact_keys(text)
    lines = LineIndex(text)

    raw: List[Match] = []
    for pattern in patterns:
        if pattern.low_specificity and pattern.entity != page_id:
            continue
        if pattern.fact_key in already_annotated:
            continue
        for m in pattern.regex.finditer(text):
            if m.end() == m.start() or ranges.overlaps(m.start(), m.end()):
                continue
            raw.append(Match(
                position=m.start(),
                length=m.end() - m.start(),
                matched_text=m.group(0),
                entity=pattern.entity,
                fact_id=pattern.fact_id,
                value=pattern.value,
                line=lines.line_at(m.start()),
            ))

    result = deduplicate_matches(raw)
    if raw:
        logger.debug(f"{page_id}: {len(raw)} raw matches, {len(result)} after dedup")
    return result


def scan(doc: Document, patterns: Iterable[SearchPattern],
         ranges: Optional[ProtectedRanges] = None) -> List[Match]:
    """
    Find annotatable fact values in a document.

    Args:
        doc: Parsed document; its raw text is scanned, header included
        patterns: Search patterns, in any order
        ranges: Precomputed protected ranges for doc.raw

    Returns:
        Deduplicated matches sorted by position
    """
    return scan_text(doc.raw, doc.page_id, patterns, ranges)
