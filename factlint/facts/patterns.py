"""
Search-pattern generation for canonical fact values.

Each fact's display value is turned into one or more compiled regexes that
cover the ways the same number is commonly written in prose ("$14 billion",
"$14B", "\\$14 billion", "$20 to $26 billion", ...).
"""

import re
from dataclasses import dataclass
from typing import Iterable, List, Optional, Pattern

from .store import CanonicalFact

MIN_VALUE_LENGTH = 4

# Values too common to attribute to any one fact
GENERIC_VALUES = frozenset(
    [str(year) for year in range(2020, 2031)]
    + ["10%", "20%", "25%", "30%", "40%", "50%", "75%"]
)

UNIT_ABBREVIATIONS = {
    "thousand": "K",
    "million": "M",
    "billion": "B",
    "trillion": "T",
}
ABBREVIATION_UNITS = {
    "k": "thousand",
    "m": "million",
    "mn": "million",
    "b": "billion",
    "bn": "billion",
    "t": "trillion",
    "tn": "trillion",
}

_UNIT = r"(thousand|million|billion|trillion|k|mn|m|bn|b|tn|t)"
_NUM = r"([\d][\d,.]*)"

CURRENCY_PLUS_RE = re.compile(rf"^\$\s*{_NUM}\s*{_UNIT}\+$", re.IGNORECASE)
CURRENCY_UNIT_RE = re.compile(rf"^\$\s*{_NUM}\s*{_UNIT}$", re.IGNORECASE)
CURRENCY_RANGE_RE = re.compile(rf"^\$\s*{_NUM}\s*-\s*\$?{_NUM}\s*{_UNIT}$", re.IGNORECASE)
PERCENT_RE = re.compile(r"^([\d][\d,.]*)%$")
PERCENT_RANGE_RE = re.compile(r"^(\d+(?:\.\d+)?)\s*-\s*(\d+(?:\.\d+)?)%$")
NUMBER_UNIT_RE = re.compile(r"^([\d][\d,.]*)\s*(thousand|million|billion|trillion)(\+?)$", re.IGNORECASE)
PLAIN_NUMBER_RE = re.compile(r"^(\d{1,3}(?:,\d{3})+|\d+)(\+?)$")
YEAR_RE = re.compile(r"^\d{4}$")

LOW_SPECIFICITY_RES = [
    re.compile(r"^\d{1,4}$"),
    re.compile(r"^\d+-\d+$"),
    re.compile(r"^[\d,.]+%$"),
    re.compile(r"^\d+-\d+%$"),
    re.compile(r"^[\d,.]+\s*(billion|million|trillion)\+?$", re.IGNORECASE),
    re.compile(r"^[\d,]+\+?$"),
]

# Optional escaping backslash before the currency glyph (MDX writes \$)
_DOLLAR = r"\\?\$"
_DIGIT_BEFORE = r"(?<![\d.,])"
_DIGIT_AFTER = r"(?![\d]|[.,]\d)"


@dataclass(frozen=True)
class SearchPattern:
    """A compiled regex bound to the fact it was derived from."""
    regex: Pattern
    entity: str
    fact_id: str
    value: str
    low_specificity: bool

    @property
    def fact_key(self) -> str:
        return f"{self.entity}.{self.fact_id}"


def is_low_specificity(value: str) -> bool:
    """True for short or round values that are only trusted on their own entity's page."""
    return any(r.match(value) for r in LOW_SPECIFICITY_RES)


def _canonical_unit(unit: str) -> str:
    unit = unit.lower()
    return ABBREVIATION_UNITS.get(unit, unit)


def _num(number: str) -> str:
    return re.escape(number)


def _currency_sources(number: str, unit: str, plus: str = "") -> List[str]:
    """Spelled-out and abbreviated currency forms for one number/unit pair."""
    full = _canonical_unit(unit)
    abbr = UNIT_ABBREVIATIONS[full]
    return [
        rf"{_DOLLAR}{_num(number)}\s*{full}{plus}",
        rf"{_DOLLAR}{_num(number)}\s*{abbr}\b{plus}",
    ]


def pattern_sources(value: str) -> List[str]:
    """
    Regex sources for the textual variants of value.

    Args:
        value: Fact display value, already stripped

    Returns:
        List of uncompiled regex sources (matched case-insensitively)
    """
    m = CURRENCY_PLUS_RE.match(value)
    if m:
        return _currency_sources(m.group(1), m.group(2), plus=r"\+?")

    m = CURRENCY_UNIT_RE.match(value)
    if m:
        return _currency_sources(m.group(1), m.group(2))

    m = CURRENCY_RANGE_RE.match(value)
    if m:
        lo, hi = _num(m.group(1)), _num(m.group(2))
        unit = _canonical_unit(m.group(3))
        return [
            rf"{_DOLLAR}{lo}\s*-\s*{hi}\s*{unit}",
            rf"{_DOLLAR}{lo}\s*-\s*{_DOLLAR}{hi}\s*{unit}",
            rf"{_DOLLAR}{lo}\s+to\s+{_DOLLAR}{hi}\s*{unit}",
        ]

    m = PERCENT_RANGE_RE.match(value)
    if m:
        return [rf"{_DIGIT_BEFORE}{_num(m.group(1))}\s*-\s*{_num(m.group(2))}%"]

    m = PERCENT_RE.match(value)
    if m:
        return [rf"{_DIGIT_BEFORE}{_num(m.group(1))}%"]

    m = NUMBER_UNIT_RE.match(value)
    if m:
        plus = r"\+?" if m.group(3) else ""
        return [rf"(?<!\$)(?<!\\\$){_DIGIT_BEFORE}\b{_num(m.group(1))}\s*{m.group(2).lower()}\b{plus}"]

    m = PLAIN_NUMBER_RE.match(value)
    if m:
        plus = r"\+?" if m.group(2) else ""
        return [rf"{_DIGIT_BEFORE}{_num(m.group(1))}{plus}{_DIGIT_AFTER}"]

    escaped = re.escape(value).replace(r"\$", _DOLLAR)
    prefix = _DIGIT_BEFORE if value[0].isdigit() else ""
    suffix = _DIGIT_AFTER if value[-1].isdigit() else ""
    return [f"{prefix}{escaped}{suffix}"]


def generate_patterns(fact: CanonicalFact) -> List[SearchPattern]:
    """
    Build search patterns for one fact.

    Returns an empty list for facts that must never be matched: computed
    facts, missing or short values, generic values, and bare years on
    noCompute facts.
    """
    if fact.computed or not fact.value:
        return []

    value = fact.value.strip()
    if len(value) < MIN_VALUE_LENGTH and not value.startswith("$"):
        return []
    if value in GENERIC_VALUES:
        return []
    if fact.no_compute and YEAR_RE.match(value):
        return []

    low = is_low_specificity(value)
    return [
        SearchPattern(
            regex=re.compile(source, re.IGNORECASE),
            entity=fact.entity,
            fact_id=fact.fact_id,
            value=value,
            low_specificity=low,
        )
        for source in pattern_sources(value)
    ]


def build_patterns(facts: Iterable[CanonicalFact], entity: Optional[str] = None) -> List[SearchPattern]:
    """Patterns for every eligible fact, longest values first."""
    patterns = []
    for fact in facts:
        if entity and fact.entity != entity:
            continue
        patterns.extend(generate_patterns(fact))
    patterns.sort(key=lambda p: (-len(p.value), p.entity, p.fact_id))
    return patterns
