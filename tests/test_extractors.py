"""Tests for the pattern extraction engines."""

import pytest

from scryfall_nlq.extractors import (
    ArchetypeEngine,
    ColorEngine,
    FormatEngine,
    PriceEngine,
    TypeEngine,
    extract_abilities,
    extract_keywords,
    extract_mana_costs,
    extract_mechanics,
    extract_stats,
)
from scryfall_nlq.models import ArchetypeConcept, Currency, FormatConcept


class TestColorEngine:
    """Test color extraction and merging."""

    def test_basic_color(self):
        """Should extract a single basic color."""
        concepts = ColorEngine().extract("red creatures")

        assert len(concepts) == 1
        assert concepts[0].colors == ("r",)
        assert concepts[0].confidence == pytest.approx(0.95)
        assert not concepts[0].exact
        assert not concepts[0].inclusive

    def test_guild_is_exact(self):
        """Guild names should map to exact color pairs."""
        concepts = ColorEngine().extract("azorius control")

        assert len(concepts) == 1
        assert concepts[0].colors == ("w", "u")
        assert concepts[0].exact
        assert concepts[0].confidence == pytest.approx(0.98)

    def test_inclusive_marker_merges_colors(self):
        """"red or blue" should merge into one inclusive concept."""
        concepts = ColorEngine().extract("red or blue creatures")

        assert len(concepts) == 1
        assert concepts[0].colors == ("r", "u")
        assert concepts[0].inclusive
        assert not concepts[0].exact

    def test_markers_match_whole_words(self):
        """"or" inside "for" should not make a color inclusive."""
        concepts = ColorEngine().extract("red creatures for modern")

        assert not concepts[0].inclusive

    def test_color_inside_word_ignored(self):
        """"red" inside "colored" should not match."""
        assert ColorEngine().extract("colored creatures") == []

    def test_mono_color(self):
        """Mono colors should be exact and not double count the base color."""
        concepts = ColorEngine().extract("mono-red burn")

        assert len(concepts) == 1
        assert concepts[0].colors == ("r",)
        assert concepts[0].exact
        assert concepts[0].exclusive

    def test_mono_color_with_space(self):
        """"mono red" should read the same as "mono-red"."""
        assert ColorEngine().extract("mono red aggro") == ColorEngine().extract("mono-red aggro")

    def test_colorless(self):
        """Should extract colorless."""
        concepts = ColorEngine().extract("colorless artifacts")

        assert len(concepts) == 1
        assert concepts[0].colorless
        assert concepts[0].colors == ()

    def test_multicolored(self):
        """Should extract multicolored without also matching multicolor."""
        concepts = ColorEngine().extract("multicolored creatures")

        assert len(concepts) == 1
        assert concepts[0].multicolor

    def test_merge_never_exact_with_non_exact(self):
        """Merging an exact and a non-exact concept should not be exact."""
        concepts = ColorEngine().extract("azorius and red")

        assert len(concepts) == 1
        assert concepts[0].colors == ("r", "w", "u")
        assert not concepts[0].exact

    def test_empty_text(self):
        """Empty input yields nothing."""
        assert ColorEngine().extract("") == []


class TestPriceEngine:
    """Test price extraction and merging."""

    def test_under(self):
        """"under $5" should set a USD maximum."""
        concepts = PriceEngine().extract("red creatures under $5 for modern")

        assert len(concepts) == 1
        assert concepts[0].max == 5.0
        assert concepts[0].min is None
        assert concepts[0].currency == Currency.USD
        assert concepts[0].confidence == pytest.approx(0.95)

    def test_range_and_minimum_merge(self):
        """A range and a looser minimum should tighten into one window."""
        concepts = PriceEngine().extract("between $5 and $20 over $3")

        assert len(concepts) == 1
        assert concepts[0].min == 5.0
        assert concepts[0].max == 20.0

    def test_reversed_range(self):
        """A reversed range should be normalized."""
        concepts = PriceEngine().extract("between $20 and $5")

        assert concepts[0].min == 5.0
        assert concepts[0].max == 20.0

    def test_budget_condition(self):
        """Budget wording should set the condition and keep the tighter cap."""
        concepts = PriceEngine().extract("budget cards under $5")

        assert len(concepts) == 1
        assert concepts[0].max == 5.0
        assert concepts[0].condition == "budget"

    def test_bare_budget(self):
        """"budget" alone should cap the price at 10."""
        concepts = PriceEngine().extract("budget removal")

        assert concepts[0].max == 10.0
        assert concepts[0].condition == "budget"

    def test_premium(self):
        """"premium" should set a minimum of 50."""
        concepts = PriceEngine().extract("premium lands")

        assert concepts[0].min == 50.0
        assert concepts[0].condition == "premium"

    def test_tix_currency(self):
        """Currency should come from nearby words."""
        concepts = PriceEngine().extract("cards under 10 tix")

        assert concepts[0].currency == Currency.TIX
        assert concepts[0].max == 10.0

    def test_euro_currency(self):
        """"euro" should switch to EUR."""
        concepts = PriceEngine().extract("under 3 euro")

        assert concepts[0].currency == Currency.EUR

    def test_mana_numbers_are_not_prices(self):
        """"under 5 mana" is a mana value, not a price."""
        assert PriceEngine().extract("creatures under 5 mana") == []

    @pytest.mark.parametrize(
        "text",
        [
            "creatures with power over 4",
            "toughness above 5",
            "cmc under 3 creatures",
            "mana value below 2",
        ],
    )
    def test_stat_comparisons_are_not_prices(self, text):
        """A comparison right after a stat word is not a price."""
        assert PriceEngine().extract(text) == []

    def test_price_after_stat_comparison(self):
        """A real price later in the text is still found."""
        concepts = PriceEngine().extract("power over 4 and under $5")

        assert len(concepts) == 1
        assert (concepts[0].min, concepts[0].max) == (None, 5.0)

    def test_exact_price(self):
        """"costs $2" should pin the price."""
        concepts = PriceEngine().extract("costs $2")

        assert concepts[0].min == 2.0
        assert concepts[0].max == 2.0

    def test_no_price(self):
        """Text without prices yields nothing."""
        assert PriceEngine().extract("blue counterspells") == []


class TestFormatEngine:
    """Test format extraction."""

    def test_deduplicates_keeping_best(self):
        """"for modern" and "modern" should yield one concept at 0.95."""
        concepts = FormatEngine().extract("red creatures for modern")

        assert concepts == [FormatConcept(name="modern", confidence=0.95)]

    def test_edh_alias(self):
        """"edh" should map to commander."""
        concepts = FormatEngine().extract("edh staples")

        assert concepts[0].name == "commander"
        assert concepts[0].confidence == pytest.approx(0.98)

    def test_deck_size_hint(self):
        """100-card decks imply commander."""
        concepts = FormatEngine().extract("100-card singleton deck")

        assert len(concepts) == 1
        assert concepts[0].name == "commander"
        assert concepts[0].confidence == pytest.approx(0.85)


class TestTypeEngine:
    """Test type, supertype, function and subtype extraction."""

    def test_spells_are_nonland(self):
        """"spells" should become a negated land type."""
        concepts = TypeEngine().extract("creature spells")

        assert [c.key for c in concepts] == ["creature", "-land"]
        assert concepts[1].negated

    def test_noncreature(self):
        """"noncreature" should not also match "creature"."""
        concepts = TypeEngine().extract("noncreature artifacts")

        assert [c.key for c in concepts] == ["artifact", "-creature"]

    def test_supertype(self):
        """Should extract supertypes alongside types."""
        concepts = TypeEngine().extract("legendary creatures")
        keys = {c.key for c in concepts}

        assert keys == {"creature", "legendary"}

    def test_world_needs_enchantment(self):
        """Plain "world" is English; "world enchantment" is the supertype."""
        assert TypeEngine().extract("hello world") == []

        keys = {c.key for c in TypeEngine().extract("world enchantments")}
        assert keys == {"world", "enchantment"}

    def test_function_keeps_best_phrase(self):
        """"card draw" should win over "draw" for the same function."""
        concepts = TypeEngine().extract("card draw")

        assert len(concepts) == 1
        assert concepts[0].function == "draw"
        assert concepts[0].confidence == pytest.approx(0.88)

    def test_subtypes(self):
        """Should extract creature subtypes from plurals."""
        subtypes = TypeEngine().extract_subtypes("elves and goblins")

        assert [s.subtype for s in subtypes] == ["elf", "goblin"]
        assert all(s.category == "creature" for s in subtypes)


class TestArchetypeEngine:
    """Test archetype extraction."""

    def test_control(self):
        """"control" should carry its constraint bundle."""
        concepts = ArchetypeEngine().extract("azorius control")

        assert len(concepts) == 1
        assert concepts[0].name == "control"
        assert concepts[0].constraints.cmc_range == (2, 8)
        assert concepts[0].confidence == pytest.approx(0.88)

    def test_synonym(self):
        """"aggro" is both an archetype and a synonym of aggressive."""
        names = [c.name for c in ArchetypeEngine().extract("aggro deck")]

        assert names == ["aggressive", "aggro"]

    def test_enhance_tribal(self):
        """Tribal should absorb creature subtypes and gain confidence."""
        engine = ArchetypeEngine()
        tribal = engine.extract("goblin tribal")[0]
        enhanced = engine.enhance_tribal(tribal, ["goblin"])

        assert enhanced.constraints.subtypes == ("goblin",)
        assert enhanced.confidence == pytest.approx(0.95)

    def test_enhance_tribal_clamps(self):
        """Boosted confidence should never exceed 1."""
        archetype = ArchetypeConcept(name="tribal", confidence=0.95)

        assert ArchetypeEngine().enhance_tribal(archetype, ["elf"]).confidence == 1.0

    def test_enhance_ignores_other_archetypes(self):
        """Only tribal archetypes change."""
        control = ArchetypeEngine().extract("control")[0]

        assert ArchetypeEngine().enhance_tribal(control, ["elf"]) is control


class TestInlineExtractors:
    """Test keyword, mechanic, ability, mana and stat extraction."""

    def test_keywords(self):
        """Should extract single and two-word keywords."""
        keywords = [k.keyword for k in extract_keywords("flying creatures with first strike")]

        assert keywords == ["flying", "first strike"]

    def test_mechanics(self):
        """Should extract mechanics."""
        assert [m.mechanic for m in extract_mechanics("cascade spells")] == ["cascade"]

    def test_abilities(self):
        """Ability phrases should map to oracle text."""
        abilities = extract_abilities("etb creatures")

        assert abilities[0].oracle_text == "enters"

    @pytest.mark.parametrize(
        "text,field,value",
        [
            ("cmc 3 creatures", "exact", 3),
            ("mana value 4", "exact", 4),
            ("costs 2", "exact", 2),
            ("2 mana or less", "max", 2),
            ("5 mana or more", "min", 5),
            ("under 4 mana", "max", 4),
            ("cmc under 3 creatures", "max", 3),
            ("mana value at least 4", "min", 4),
        ],
    )
    def test_mana_costs(self, text, field, value):
        """Should read exact, maximum and minimum mana values."""
        concepts = extract_mana_costs(text)

        assert len(concepts) == 1
        assert getattr(concepts[0], field) == value

    def test_stats(self):
        """Should read power and toughness constraints."""
        concepts = extract_stats("power 4 or more and toughness 2 or less")

        assert [(c.stat, c.min, c.max) for c in concepts] == [
            ("power", 4, None),
            ("toughness", None, 2),
        ]

    def test_stat_number_first(self):
        """"3 power" should be an exact power."""
        concepts = extract_stats("3 power creatures")

        assert concepts[0].stat == "power"
        assert concepts[0].exact == 3

    @pytest.mark.parametrize(
        "text,stat,field,value",
        [
            ("creatures with at least 3 power", "power", "min", 3),
            ("5 toughness or more", "toughness", "min", 5),
            ("3 or more power", "power", "min", 3),
            ("under 2 power", "power", "max", 2),
            ("creatures with power over 4", "power", "min", 4),
        ],
    )
    def test_stat_bounds(self, text, stat, field, value):
        """Prefixes and suffixes on either side of the stat set the bound."""
        concepts = extract_stats(text)

        assert len(concepts) == 1
        assert concepts[0].stat == stat
        assert getattr(concepts[0], field) == value
        assert concepts[0].exact is None

    def test_nothing_found(self):
        """Unrelated text yields nothing."""
        assert extract_keywords("xyzzy") == []
        assert extract_mana_costs("xyzzy") == []
        assert extract_stats("xyzzy") == []
