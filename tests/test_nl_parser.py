"""Tests for the natural language parser."""

import pytest

from scryfall_nlq.models import Currency, OptimizationStrategy, QueryContext
from scryfall_nlq.nl_parser import NaturalLanguageParser, normalize


class TestNormalize:
    """Test text preprocessing."""

    def test_lowercases_and_strips_punctuation(self):
        """Should keep $, . and - but drop other punctuation."""
        assert normalize("Red, Creatures!  Under $5.") == "red creatures under $5."

    def test_keeps_hyphens(self):
        """Hyphenated words should survive."""
        assert normalize("Mono-Red (Burn)") == "mono-red burn"

    def test_empty(self):
        """Whitespace only collapses to an empty string."""
        assert normalize("   \t ") == ""


class TestParseScenarios:
    """End-to-end parsing of representative requests."""

    def test_red_creatures_under_five_for_modern(self, parser: NaturalLanguageParser):
        """Should find color, type, price and format."""
        parsed = parser.parse("red creatures under $5 for modern")

        assert len(parsed.colors) == 1
        assert parsed.colors[0].colors == ("r",)
        assert parsed.colors[0].confidence >= 0.9

        assert [t.key for t in parsed.types] == ["creature"]

        assert len(parsed.prices) == 1
        assert parsed.prices[0].max == 5.0
        assert parsed.prices[0].currency == Currency.USD

        assert [f.name for f in parsed.formats] == ["modern"]
        assert 0.0 < parsed.confidence <= 1.0

    def test_azorius_control(self, parser: NaturalLanguageParser):
        """Guild plus archetype."""
        parsed = parser.parse("azorius control")

        assert parsed.colors[0].colors == ("w", "u")
        assert parsed.colors[0].exact
        assert parsed.colors[0].confidence == pytest.approx(0.98)
        assert [a.name for a in parsed.archetypes] == ["control"]

    def test_price_range_merge(self, parser: NaturalLanguageParser):
        """Range and minimum hints converge on one window."""
        parsed = parser.parse("between $5 and $20 over $3")

        assert len(parsed.prices) == 1
        assert parsed.prices[0].min == 5.0
        assert parsed.prices[0].max == 20.0

    def test_nothing_recognizable(self, parser: NaturalLanguageParser):
        """Gibberish yields no concepts and zero confidence."""
        parsed = parser.parse("xyzzy plugh")

        assert parsed.is_empty
        assert parsed.confidence == 0.0
        assert parsed.ambiguities == []

    def test_empty_text(self, parser: NaturalLanguageParser):
        """Empty input is not an error."""
        parsed = parser.parse("")

        assert parsed.is_empty
        assert parsed.confidence == 0.0


class TestParseDetails:
    """Test confidence, ambiguities, conflicts and context handling."""

    def test_aggregate_confidence_single_concept(self, parser: NaturalLanguageParser):
        """One concept with confidence c aggregates to c ** 2.5."""
        parsed = parser.parse("red")

        assert parsed.confidence == pytest.approx(0.95 ** 2.5)

    def test_confidences_in_range(self, parser: NaturalLanguageParser):
        """Every concept confidence stays within [0, 1]."""
        parsed = parser.parse("goblin tribal aggro with haste under $2 for legacy")

        for concept in parsed.all_concepts():
            assert 0.0 <= concept.confidence <= 1.0
        assert 0.0 <= parsed.confidence <= 1.0

    def test_exact_color_wins_over_inclusive(self, parser: NaturalLanguageParser):
        """Exact colors should replace inclusive ones."""
        parsed = parser.parse("colorless or azorius cards")

        assert len(parsed.colors) == 1
        assert parsed.colors[0].colors == ("w", "u")
        assert parsed.colors[0].exact

    def test_format_ambiguity(self, parser: NaturalLanguageParser):
        """Several formats should be reported as ambiguous."""
        parsed = parser.parse("standard or modern removal")

        assert len(parsed.ambiguities) == 1
        ambiguity = parsed.ambiguities[0]
        assert ambiguity.category == "format"
        assert ambiguity.alternatives == ("standard", "modern")
        assert ambiguity.confidence == pytest.approx(0.7)

    def test_tribal_absorbs_subtypes(self, parser: NaturalLanguageParser):
        """A tribal archetype should pick up creature types."""
        parsed = parser.parse("goblin tribal")

        tribal = parsed.archetypes[0]
        assert tribal.name == "tribal"
        assert tribal.constraints.subtypes == ("goblin",)
        assert tribal.confidence == pytest.approx(0.95)

    def test_context_is_recorded_not_used(self, parser: NaturalLanguageParser):
        """Context is stored on the result but does not add concepts."""
        context = QueryContext(
            target_format="legacy",
            optimization_strategy=OptimizationStrategy.RECALL,
        )
        parsed = parser.parse("red creatures", context)

        assert parsed.context is context
        assert parsed.formats == []

    def test_summary(self, parser: NaturalLanguageParser):
        """Summary should describe the main categories."""
        summary = parser.parse("red creatures under $5 for modern").summary()

        assert summary["colors"] == ["any red"]
        assert summary["types"] == ["creature"]
        assert summary["prices"] == ["under 5 USD"]
        assert summary["formats"] == ["modern"]
