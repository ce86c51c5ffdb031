"""Natural language parser that runs every extraction engine over a request.

Turns free text like "red aggressive creatures under $5 for modern" into a
ParsedQuery holding one list per concept category, an aggregate confidence
and any ambiguities a caller may want to surface.
"""

import logging
import re

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
from scryfall_nlq.models import (
    Ambiguity,
    ColorConcept,
    ParsedQuery,
    QueryContext,
    clamp_confidence,
)

logger = logging.getLogger(__name__)

# Everything except word characters, whitespace, "$", "." and "-"
_STRIP_PATTERN = re.compile(r"[^\w\s$.\-]")
_WHITESPACE_PATTERN = re.compile(r"\s+")

AMBIGUITY_CONFIDENCE = 0.7


def normalize(text: str) -> str:
    """Lowercase, drop punctuation and collapse whitespace."""
    text = _STRIP_PATTERN.sub(" ", text.lower())
    return _WHITESPACE_PATTERN.sub(" ", text).strip()


class NaturalLanguageParser:
    """Extracts structured concepts from a natural language card request.

    The parser owns one instance of each engine. Engines are stateless, so a
    single parser can serve any number of calls.
    """

    def __init__(self) -> None:
        self.colors = ColorEngine()
        self.types = TypeEngine()
        self.archetypes = ArchetypeEngine()
        self.prices = PriceEngine()
        self.formats = FormatEngine()

    def parse(self, text: str, context: QueryContext | None = None) -> ParsedQuery:
        """Parse a request into concepts.

        Args:
            text: Free text description of the wanted cards
            context: Optional caller hints, recorded on the result as-is

        Returns:
            ParsedQuery with concepts, aggregate confidence and ambiguities
        """
        normalized = normalize(text)

        parsed = ParsedQuery(
            colors=self._resolve_color_conflicts(self.colors.extract(normalized)),
            types=self.types.extract(normalized),
            subtypes=self.types.extract_subtypes(normalized),
            archetypes=self.archetypes.extract(normalized),
            prices=self.prices.extract(normalized),
            formats=self.formats.extract(normalized),
            keywords=extract_keywords(normalized),
            mechanics=extract_mechanics(normalized),
            abilities=extract_abilities(normalized),
            mana_costs=extract_mana_costs(normalized),
            stats=extract_stats(normalized),
            context=context or QueryContext(),
            normalized_text=normalized,
        )

        creature_subtypes = [
            s.subtype for s in parsed.subtypes if s.category == "creature"
        ]
        parsed.archetypes = [
            self.archetypes.enhance_tribal(a, creature_subtypes)
            for a in parsed.archetypes
        ]

        parsed.confidence = self.aggregate_confidence(parsed)
        parsed.ambiguities = self.detect_ambiguities(parsed)

        logger.debug(
            "Parsed %r: %d colors, %d types, %d archetypes, %d prices, "
            "%d formats, confidence %.3f",
            normalized,
            len(parsed.colors),
            len(parsed.types),
            len(parsed.archetypes),
            len(parsed.prices),
            len(parsed.formats),
            parsed.confidence,
        )
        return parsed

    @staticmethod
    def _resolve_color_conflicts(concepts: list[ColorConcept]) -> list[ColorConcept]:
        """Exact color concepts win over inclusive ones."""
        exact = [c for c in concepts if c.exact]
        inclusive = [c for c in concepts if c.inclusive]
        if exact and inclusive:
            return exact
        return concepts

    @staticmethod
    def aggregate_confidence(parsed: ParsedQuery) -> float:
        """Confidence-weighted mean over every concept.

        Each concept contributes c * c**1.5 so strong matches dominate weak
        ones. No concepts means 0.0.
        """
        concepts = parsed.all_concepts()
        if not concepts:
            return 0.0
        weighted = sum(c.confidence * c.confidence ** 1.5 for c in concepts)
        return clamp_confidence(weighted / len(concepts))

    @staticmethod
    def detect_ambiguities(parsed: ParsedQuery) -> list[Ambiguity]:
        ambiguities: list[Ambiguity] = []

        if len(parsed.colors) > 1:
            ambiguities.append(
                Ambiguity(
                    category="color",
                    description="Multiple color interpretations possible",
                    alternatives=tuple(c.render() for c in parsed.colors),
                    confidence=AMBIGUITY_CONFIDENCE,
                )
            )

        if len(parsed.formats) > 1:
            ambiguities.append(
                Ambiguity(
                    category="format",
                    description="Multiple formats mentioned",
                    alternatives=tuple(f.name for f in parsed.formats),
                    confidence=AMBIGUITY_CONFIDENCE,
                )
            )

        return ambiguities
