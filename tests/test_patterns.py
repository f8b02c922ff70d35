"""Tests for factlint/facts/patterns.py - search-pattern generation."""

import pytest

from factlint.facts.patterns import build_patterns, generate_patterns, is_low_specificity
from factlint.facts.store import CanonicalFact


def _fact(value, **kwargs):
    return CanonicalFact(entity="acme", fact_id="f", value=value, **kwargs)


def _matches(value, text):
    """True if any pattern generated for value matches inside text."""
    return any(p.regex.search(text) for p in generate_patterns(_fact(value)))


class TestCurrencyPatterns:
    """Currency amounts with magnitude words."""

    @pytest.mark.parametrize("text", [
        "valued at $14 billion today",
        "valued at \\$14 billion today",
        "valued at $14B today",
        "valued at $14 Billion today",
    ])
    def test_variants_match(self, text):
        assert _matches("$14 billion", text)

    @pytest.mark.parametrize("text", [
        "valued at $140 billion",
        "valued at $1.14 billion",
        "valued at 14 billion",
    ])
    def test_different_amounts_do_not_match(self, text):
        assert not _matches("$14 billion", text)

    def test_abbreviated_value(self):
        """A value written as $14B also finds the spelled-out form."""
        assert _matches("$14B", "raised $14 billion")

    def test_plus_suffix_is_optional(self):
        assert _matches("$1 billion+", "over $1 billion+ in sales")
        assert _matches("$1 billion+", "over $1 billion in sales")

    def test_range_forms(self):
        """Ranges match hyphenated, double-currency, and 'to' forms."""
        for text in ("$20-26 billion", "$20 - $26 billion", "$20 to $26 billion", "\\$20-\\$26 billion"):
            assert _matches("$20-26 billion", text), text


class TestNumericPatterns:
    """Plain numbers, percentages, and numbers with units."""

    def test_comma_number_digit_boundaries(self):
        assert _matches("1,500", "about 1,500 employees.")
        assert not _matches("1,500", "about 21,500 employees")
        assert not _matches("1,500", "about 1,5000 employees")
        assert not _matches("1,500", "version 1,500.5")

    def test_percent(self):
        assert _matches("37.5%", "grew 37.5% last year")
        assert not _matches("37.5%", "grew 137.5% last year")

    def test_number_with_unit_excludes_currency(self):
        """A unit number without $ does not match a currency amount."""
        assert _matches("100 million", "reached 100 million users")
        assert not _matches("100 million", "raised $100 million")
        assert not _matches("100 million", "raised \\$100 million")

    def test_text_value_is_escaped(self):
        assert _matches("Series B (2024)", "closed its Series B (2024) round")


class TestEligibility:
    """Facts that never produce patterns."""

    def test_computed_fact_is_skipped(self):
        assert generate_patterns(_fact("$14 billion", computed=True)) == []

    def test_missing_value_is_skipped(self):
        assert generate_patterns(_fact(None)) == []

    def test_short_value_is_skipped(self):
        assert generate_patterns(_fact("12")) == []

    def test_short_currency_is_kept(self):
        assert generate_patterns(_fact("$5"))

    def test_generic_values_are_skipped(self):
        assert generate_patterns(_fact("2025")) == []
        assert generate_patterns(_fact("50%")) == []

    def test_year_on_no_compute_fact_is_skipped(self):
        assert generate_patterns(_fact("1987", no_compute=True)) == []
        assert generate_patterns(_fact("1987"))

    def test_patterns_are_case_insensitive(self):
        pattern = generate_patterns(_fact("$14 billion"))[0]
        assert pattern.regex.search("$14 BILLION")
        assert pattern.fact_key == "acme.f"


class TestSpecificity:
    @pytest.mark.parametrize("value", ["1500", "1,500", "37%", "10-20%", "5-10", "100 million", "2,300+"])
    def test_low_specificity(self, value):
        assert is_low_specificity(value)

    @pytest.mark.parametrize("value", ["$14 billion", "$20-26 billion", "Series B"])
    def test_specific(self, value):
        assert not is_low_specificity(value)

    def test_flag_is_set_on_pattern(self):
        assert generate_patterns(_fact("1,500"))[0].low_specificity
        assert not generate_patterns(_fact("$14 billion"))[0].low_specificity


class TestBuildPatterns:
    def test_longest_values_first(self):
        facts = [
            CanonicalFact("acme", "short", "$14 billion"),
            CanonicalFact("acme", "long", "$20-26 billion"),
        ]
        patterns = build_patterns(facts)
        assert patterns[0].fact_id == "long"
        assert patterns[-1].fact_id == "short"

    def test_entity_filter(self):
        facts = [
            CanonicalFact("acme", "valuation", "$14 billion"),
            CanonicalFact("globex", "valuation", "$9 billion"),
        ]
        assert {p.entity for p in build_patterns(facts, entity="globex")} == {"globex"}
