"""Maps extracted concepts to Scryfall operators and resolves conflicts.

Every concept becomes one or more ConceptMapping candidates tagged with a
fixed base priority. Candidates that share an operator are then reduced by
an operator-specific rule so the final query carries each operator once, or
twice for numeric ranges (one min clause and one max clause).
"""

import logging
from typing import Callable

from scryfall_nlq.models import (
    ArchetypeConcept,
    ColorConcept,
    ConceptMapping,
    ParsedQuery,
    format_number,
)

logger = logging.getLogger(__name__)

# Base priorities, most specific first
PRIORITY_IDENTITY = 10
PRIORITY_TYPE = 8
PRIORITY_COST = 7
PRIORITY_ARCHETYPE_STAT = 6
PRIORITY_KEYWORD = 5
PRIORITY_ARCHETYPE_KEYWORD = 4

# Archetype constraints are hints, not requests
ARCHETYPE_CMC_FACTOR = 0.8
ARCHETYPE_POWER_FACTOR = 0.7
ARCHETYPE_KEYWORD_FACTOR = 0.6
ARCHETYPE_FUNCTION_FACTOR = 0.8
ARCHETYPE_TYPE_FACTOR = 0.9

NUMERIC_OPERATORS = frozenset({"cmc", "usd", "eur", "tix"})
MIN_COMPARISONS = (">=", ">")
MAX_COMPARISONS = ("<=", "<")
EXACT_COMPARISONS = ("=", None)

STAT_OPERATORS = {"power": "pow", "toughness": "tou"}


def _rank(mappings: list[ConceptMapping]) -> list[ConceptMapping]:
    """Priority desc, then confidence desc. Stable for equal keys."""
    return sorted(mappings, key=lambda m: (-m.priority, -m.confidence))


def _resolve_color(ranked: list[ConceptMapping]) -> list[ConceptMapping]:
    exact = [m for m in ranked if m.comparison == "="]
    inclusive = [m for m in ranked if m.comparison == ">="]
    if exact and inclusive:
        return exact[:1]
    return ranked[:1]


def _resolve_numeric(ranked: list[ConceptMapping]) -> list[ConceptMapping]:
    exact = [m for m in ranked if m.comparison in EXACT_COMPARISONS]
    if exact:
        return exact[:1]
    minimum = [m for m in ranked if m.comparison in MIN_COMPARISONS]
    maximum = [m for m in ranked if m.comparison in MAX_COMPARISONS]
    return minimum[:1] + maximum[:1]


def _resolve_top(ranked: list[ConceptMapping]) -> list[ConceptMapping]:
    return ranked[:1]


CONFLICT_RULES: dict[str, Callable[[list[ConceptMapping]], list[ConceptMapping]]] = {
    "c": _resolve_color,
    **{operator: _resolve_numeric for operator in NUMERIC_OPERATORS},
}


def resolve_conflicts(mappings: list[ConceptMapping]) -> list[ConceptMapping]:
    """Reduce mappings so each operator survives once (numeric: min + max).

    Operators keep their first-seen order. Applying this twice gives the same
    result as applying it once.
    """
    grouped: dict[str, list[ConceptMapping]] = {}
    for mapping in mappings:
        grouped.setdefault(mapping.operator, []).append(mapping)

    resolved: list[ConceptMapping] = []
    for operator, group in grouped.items():
        if len(group) == 1:
            resolved.extend(group)
            continue
        rule = CONFLICT_RULES.get(operator, _resolve_top)
        resolved.extend(rule(_rank(group)))

    return resolved


def _range_mappings(
    operator: str,
    minimum: float | None,
    maximum: float | None,
    exact: float | None,
    confidence: float,
    priority: int,
) -> list[ConceptMapping]:
    if exact is None and minimum is not None and minimum == maximum:
        exact = minimum

    if exact is not None:
        return [
            ConceptMapping(operator, format_number(exact), "=", confidence=confidence, priority=priority)
        ]

    mappings = []
    if minimum is not None:
        mappings.append(
            ConceptMapping(operator, format_number(minimum), ">=", confidence=confidence, priority=priority)
        )
    if maximum is not None:
        mappings.append(
            ConceptMapping(operator, format_number(maximum), "<=", confidence=confidence, priority=priority)
        )
    return mappings


class ConceptMapper:
    """Converts a ParsedQuery into resolved Scryfall operator mappings."""

    def extract_mappings(self, parsed: ParsedQuery) -> list[ConceptMapping]:
        """Map every concept category, then resolve per-operator conflicts.

        Args:
            parsed: Result of NaturalLanguageParser.parse

        Returns:
            Resolved mappings in first-seen operator order
        """
        mappings: list[ConceptMapping] = []
        mappings.extend(self.map_colors(parsed.colors))
        mappings.extend(self.map_types(parsed))
        mappings.extend(self.map_archetypes(parsed.archetypes))
        mappings.extend(self.map_prices(parsed))
        mappings.extend(self.map_formats(parsed))
        mappings.extend(self.map_text(parsed))
        mappings.extend(self.map_mana_costs(parsed))
        mappings.extend(self.map_stats(parsed))

        resolved = resolve_conflicts(mappings)
        logger.debug(
            "Mapped %d candidates to %d terms: %s",
            len(mappings),
            len(resolved),
            " ".join(m.render() for m in resolved),
        )
        return resolved

    def map_colors(self, colors: list[ColorConcept]) -> list[ConceptMapping]:
        mappings = []
        for concept in colors:
            if concept.colorless:
                value, comparison = "c", None
            elif concept.multicolor and not concept.colors:
                value, comparison = "m", None
            elif concept.colors:
                value = "".join(concept.colors)
                if concept.exact:
                    comparison = "="
                elif concept.inclusive:
                    comparison = ">="
                else:
                    comparison = None
            else:
                continue
            mappings.append(
                ConceptMapping(
                    "c", value, comparison,
                    confidence=concept.confidence,
                    priority=PRIORITY_IDENTITY,
                )
            )
        return mappings

    def map_types(self, parsed: ParsedQuery) -> list[ConceptMapping]:
        """Card types, supertypes, subtypes and functional groupings."""
        mappings = []
        for concept in parsed.types:
            if concept.type or concept.supertype:
                mappings.append(
                    ConceptMapping(
                        "t",
                        concept.type or concept.supertype,
                        negation=concept.negated,
                        confidence=concept.confidence,
                        priority=PRIORITY_TYPE,
                    )
                )
            if concept.function:
                mappings.append(
                    ConceptMapping(
                        "function",
                        concept.function,
                        confidence=concept.confidence,
                        priority=PRIORITY_COST,
                    )
                )
        for concept in parsed.subtypes:
            mappings.append(
                ConceptMapping(
                    "t", concept.subtype,
                    confidence=concept.confidence,
                    priority=PRIORITY_TYPE,
                )
            )
        return mappings

    def map_archetypes(self, archetypes: list[ArchetypeConcept]) -> list[ConceptMapping]:
        """Expand each archetype's constraint bundle at discounted confidence."""
        mappings = []
        for archetype in archetypes:
            constraints = archetype.constraints
            confidence = archetype.confidence

            if constraints.cmc_range:
                low, high = constraints.cmc_range
                mappings.extend(
                    _range_mappings(
                        "cmc", low, high, None,
                        confidence * ARCHETYPE_CMC_FACTOR,
                        PRIORITY_ARCHETYPE_STAT,
                    )
                )
            if constraints.power_min is not None:
                mappings.append(
                    ConceptMapping(
                        "pow", str(constraints.power_min), ">=",
                        confidence=confidence * ARCHETYPE_POWER_FACTOR,
                        priority=PRIORITY_ARCHETYPE_STAT,
                    )
                )
            for keyword in constraints.keywords:
                mappings.append(
                    ConceptMapping(
                        "o", keyword,
                        confidence=confidence * ARCHETYPE_KEYWORD_FACTOR,
                        priority=PRIORITY_ARCHETYPE_KEYWORD,
                    )
                )
            for function in constraints.functions:
                mappings.append(
                    ConceptMapping(
                        "function", function,
                        confidence=confidence * ARCHETYPE_FUNCTION_FACTOR,
                        priority=PRIORITY_COST,
                    )
                )
            for card_type in constraints.card_types + constraints.subtypes:
                mappings.append(
                    ConceptMapping(
                        "t", card_type,
                        confidence=confidence * ARCHETYPE_TYPE_FACTOR,
                        priority=PRIORITY_TYPE,
                    )
                )
        return mappings

    def map_prices(self, parsed: ParsedQuery) -> list[ConceptMapping]:
        mappings = []
        for price in parsed.prices:
            mappings.extend(
                _range_mappings(
                    price.currency.value, price.min, price.max, None,
                    price.confidence, PRIORITY_TYPE,
                )
            )
        return mappings

    def map_formats(self, parsed: ParsedQuery) -> list[ConceptMapping]:
        return [
            ConceptMapping("f", f.name, confidence=f.confidence, priority=PRIORITY_IDENTITY)
            for f in parsed.formats
        ]

    def map_text(self, parsed: ParsedQuery) -> list[ConceptMapping]:
        """Keywords, mechanics and abilities all search oracle text."""
        mappings = [
            ConceptMapping("o", k.keyword, confidence=k.confidence, priority=PRIORITY_KEYWORD)
            for k in parsed.keywords
        ]
        mappings.extend(
            ConceptMapping("o", m.mechanic, confidence=m.confidence, priority=PRIORITY_KEYWORD)
            for m in parsed.mechanics
        )
        mappings.extend(
            ConceptMapping("o", a.oracle_text, confidence=a.confidence, priority=PRIORITY_KEYWORD)
            for a in parsed.abilities
        )
        return mappings

    def map_mana_costs(self, parsed: ParsedQuery) -> list[ConceptMapping]:
        mappings = []
        for cost in parsed.mana_costs:
            mappings.extend(
                _range_mappings(
                    "cmc", cost.min, cost.max, cost.exact,
                    cost.confidence, PRIORITY_COST,
                )
            )
        return mappings

    def map_stats(self, parsed: ParsedQuery) -> list[ConceptMapping]:
        mappings = []
        for stat in parsed.stats:
            mappings.extend(
                _range_mappings(
                    STAT_OPERATORS[stat.stat], stat.min, stat.max, stat.exact,
                    stat.confidence, PRIORITY_ARCHETYPE_STAT,
                )
            )
        return mappings
