"""
Cross-document numeric consistency.

Extracts typed claims from every page (currency amounts next to a
revenue/valuation/funding keyword, headcounts, founding years), attributes
each to an entity, and flags pairs of pages that disagree about the same
(entity, metric).

Attribution:
    - currency and headcount claims use the single EntityLink on the same
      line, or the page's own entity when there is none or more than one
    - founding years always use the page's own entity, since a linked
      entity on that line is more often the founder than the organization

Amounts conflict when their symmetric percentage difference exceeds the
configured threshold (5% by default). Founding years conflict on any
difference.
"""

import logging
import re
from dataclasses import dataclass
from itertools import combinations
from typing import Dict, List, Optional, Tuple

from ...content.document import Document, LineIndex, is_documentation_page, should_skip
from ...content.regions import CODE_KINDS, ProtectedRanges
from ..engine import GLOBAL_SCOPE, Issue, Rule, RunContext, Severity

logger = logging.getLogger(__name__)

UNIT_MULTIPLIERS = {
    "thousand": 1e3, "k": 1e3,
    "million": 1e6, "m": 1e6, "mn": 1e6,
    "billion": 1e9, "b": 1e9, "bn": 1e9,
    "trillion": 1e12, "t": 1e12, "tn": 1e12,
}

METRIC_KEYWORDS = {
    "revenue": ["revenue", "arr", "run-rate revenue", "run rate revenue",
                "annualized revenue", "annual revenue", "sales"],
    "valuation": ["valuation", "valued at", "market cap", "post-money", "pre-money", "worth"],
    "funding": ["total funding", "funding raised", "raised over", "raised more than", "total raised"],
}
HEADCOUNT = "headcount"
FOUNDED = "founded"

DOLLAR_UNIT_RE = re.compile(r"\\?\$([\d,.]+)\s*(billion|million|trillion|thousand|[BMKTbmkt]n?)\b")
HEADCOUNT_RE = re.compile(
    r"(?:~|≈|approximately\s+)?([\d,]+)\s+(?:employees|staff|headcount|workers)\b",
    re.IGNORECASE,
)
FOUNDED_RE = re.compile(r"(?:founded|established|incorporated)\s+in\s+(\d{4})\b", re.IGNORECASE)
ENTITY_LINK_RE = re.compile(r"<EntityLink\s+id=[\"']([^\"']+)[\"']")

MIN_YEAR = 1900
MAX_YEAR = 2100


@dataclass(frozen=True)
class Claim:
    entity: str
    metric: str
    raw_value: str
    value: float
    file: str
    slug: str
    line: int


def _keyword_re(keyword: str):
    return re.compile(r"(?<![a-z])" + re.escape(keyword) + r"(?![a-z])")


_METRIC_RES = [(metric, [_keyword_re(k) for k in keywords]) for metric, keywords in METRIC_KEYWORDS.items()]


def metric_for_line(line: str) -> Optional[str]:
    """First metric whose keyword appears on the line."""
    lowered = line.lower()
    for metric, patterns in _METRIC_RES:
        if any(p.search(lowered) for p in patterns):
            return metric
    return None


def parse_amount(number: str, unit: str) -> Optional[float]:
    """Normalize '1.5' + 'billion' to 1.5e9."""
    multiplier = UNIT_MULTIPLIERS.get(unit.lower())
    if multiplier is None:
        return None
    try:
        return float(number.replace(",", "")) * multiplier
    except ValueError:
        return None


def entity_on_line(line: str) -> Optional[str]:
    """The single EntityLink id on the line, or None if absent or ambiguous."""
    ids = set(ENTITY_LINK_RE.findall(line))
    if len(ids) == 1:
        return ids.pop()
    return None


def percent_difference(a: float, b: float) -> float:
    mean = (a + b) / 2
    if mean == 0:
        return 0.0
    return abs(a - b) / mean * 100


def extract_claims(doc: Document) -> List[Claim]:
    """All claims on one page, in document order."""
    ranges = ProtectedRanges.build(doc.raw, kinds=CODE_KINDS)
    lines = LineIndex(doc.raw)
    own_entity = doc.page_id
    claims: List[Claim] = []

    offset = 0
    for line in doc.raw.split("\n"):
        line_start = offset
        offset += len(line) + 1
        if not line.strip():
            continue

        linked = entity_on_line(line)
        metric = metric_for_line(line)
        line_no = lines.line_at(line_start)

        def add(m, entity, kind, value):
            if ranges.contains(line_start + m.start()):
                return
            claims.append(Claim(entity, kind, m.group(0).strip(), value, doc.path, doc.slug, line_no))

        if metric:
            for m in DOLLAR_UNIT_RE.finditer(line):
                amount = parse_amount(m.group(1), m.group(2))
                if amount is not None and amount > 0:
                    add(m, linked or own_entity, metric, amount)

        for m in HEADCOUNT_RE.finditer(line):
            try:
                count = float(m.group(1).replace(",", ""))
            except ValueError:
                continue
            if count > 0:
                add(m, linked or own_entity, HEADCOUNT, count)

        for m in FOUNDED_RE.finditer(line):
            year = int(m.group(1))
            if MIN_YEAR <= year <= MAX_YEAR:
                add(m, own_entity, FOUNDED, float(year))

    return claims


def find_conflicts(claims: List[Claim], threshold_pct: float) -> List[Tuple[Claim, Claim, Optional[float]]]:
    """
    Pairs of claims from different pages that disagree.

    Returns:
        (first, second, percent_difference) tuples; the difference is None
        for founding years
    """
    groups: Dict[Tuple[str, str], Dict[str, Claim]] = {}
    for claim in claims:
        per_file = groups.setdefault((claim.entity, claim.metric), {})
        per_file.setdefault(claim.file, claim)

    conflicts = []
    for key in sorted(groups):
        group = [groups[key][f] for f in sorted(groups[key])]
        for a, b in combinations(group, 2):
            if a.metric == FOUNDED:
                if a.value != b.value:
                    conflicts.append((a, b, None))
                continue
            diff = percent_difference(a.value, b.value)
            if diff > threshold_pct:
                conflicts.append((a, b, diff))
    return conflicts


def conflict_message(a: Claim, b: Claim, diff: Optional[float]) -> str:
    magnitude = "different years" if diff is None else f"{diff:.1f}% difference"
    return (
        f'Conflicting {a.metric} for "{a.entity}": '
        f'"{a.raw_value}" ({a.slug}:{a.line}) vs "{b.raw_value}" ({b.slug}:{b.line}), {magnitude}'
    )


class ValueConsistencyRule(Rule):
    id = "value-consistency"
    name = "Value Consistency"
    description = "Flag pages that disagree about the same entity's revenue, valuation, funding, headcount, or founding year"
    scope = GLOBAL_SCOPE

    def check(self, target: RunContext, context: RunContext) -> List[Issue]:
        claims: List[Claim] = []
        for doc in context.documents:
            if should_skip(doc, context.settings.skip_prefixes) or is_documentation_page(doc):
                continue
            claims.extend(extract_claims(doc))

        issues = []
        for a, b, diff in find_conflicts(claims, context.settings.conflict_threshold_pct):
            message = conflict_message(a, b, diff)
            issues.append(self.issue(a.file, a.line, message, Severity.WARNING))
            issues.append(self.issue(b.file, b.line, message, Severity.WARNING))

        logger.debug(f"value-consistency: {len(claims)} claims, {len(issues) // 2} conflicts")
        return issues
