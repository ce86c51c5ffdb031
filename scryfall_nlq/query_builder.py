"""Assembles Scryfall queries from resolved concept mappings.

The builder renders mappings into Scryfall syntax, applies an optimization
strategy as a string rewrite, and optionally trial-runs the result through a
CardSearcher to broaden queries with no hits or narrow queries with far too
many.
"""

import logging
import re
from typing import Any, Protocol

from scryfall_nlq.concept_mapper import ConceptMapper
from scryfall_nlq.models import (
    COLOR_NAMES,
    AlternativeQuery,
    BuildOptions,
    BuildResult,
    ConceptMapping,
    OptimizationStrategy,
    ParsedQuery,
    QueryOptimization,
    clamp_confidence,
    format_number,
)

logger = logging.getLogger(__name__)


class CardSearcher(Protocol):
    """Anything that can run a Scryfall query and report a total count."""

    async def search_cards(self, query: str, limit: int = 20) -> dict[str, Any]:
        ...


POPULAR_FORMATS = ("standard", "modern", "commander")
ALTERNATIVE_FORMATS = ("standard", "modern", "commander", "legacy")
MAX_ALTERNATIVES = 3

DISJUNCTIVE_OPERATORS = frozenset({"o", "t"})
RANGE_OPERATORS = frozenset({"cmc", "pow", "tou", "usd", "eur", "tix"})

RELATED_TYPES = {
    "creature": "planeswalker",
    "planeswalker": "creature",
    "instant": "sorcery",
    "sorcery": "instant",
    "artifact": "enchantment",
    "enchantment": "artifact",
}

PRECISION_PRICE_CAP = 50
BUDGET_PRICE_CAP = 5
NARROW_PRICE_CAP = 20
NARROW_FORMAT = "modern"
OVERFLOW_FACTOR = 10

SUCCESS_BONUS = 0.1
OPTIMIZATION_PENALTY = 0.05

# Term detection over a rendered query string
_FORMAT_TERM = re.compile(r"(?<![\w-])f:")
_FORMAT_CLAUSE = re.compile(r"(?<![\w-])f:\w+")
_PRICE_TERM = re.compile(r"(?<![\w])(?:usd|eur|tix)[<>=:]")
_IS_TERM = re.compile(r"(?<![\w-])is:")
_POWER_MIN = re.compile(r"(?<![\w-])pow>=(\d+)")
_EXACT_CMC = re.compile(r"(?<![\w-])cmc=(\d+)")
_PRICE_CEILING = re.compile(r"(?<![\w-])(usd|eur|tix)<=(\d+(?:\.\d+)?)")
_STANDALONE_TYPE = re.compile(r"(?<!\S)t:(\w+)(?!\S)")

_COMPARISON_WORDS = {
    "<=": "at most",
    "<": "under",
    ">=": "at least",
    ">": "over",
    "=": "exactly",
    None: "exactly",
}
_STAT_LABELS = {"cmc": "mana value", "pow": "power", "tou": "toughness"}
_CURRENCY_SYMBOLS = {"usd": "$", "eur": "€"}


def _group(mappings: list[ConceptMapping]) -> dict[str, list[ConceptMapping]]:
    grouped: dict[str, list[ConceptMapping]] = {}
    for mapping in mappings:
        grouped.setdefault(mapping.operator, []).append(mapping)
    return grouped


def _best(mappings: list[ConceptMapping]) -> ConceptMapping:
    return max(mappings, key=lambda m: m.confidence)


def render_operator(operator: str, mappings: list[ConceptMapping]) -> str:
    """Render every mapping that shares one operator into a query fragment."""
    if len(mappings) == 1:
        return mappings[0].render()

    if operator in DISJUNCTIVE_OPERATORS:
        return "(" + " OR ".join(m.render() for m in mappings) + ")"

    if operator in RANGE_OPERATORS:
        exact = [m for m in mappings if m.comparison in ("=", None)]
        if exact:
            return _best(exact).render()
        parts = []
        minimum = [m for m in mappings if m.comparison in (">=", ">")]
        maximum = [m for m in mappings if m.comparison in ("<=", "<")]
        if minimum:
            parts.append(_best(minimum).render())
        if maximum:
            parts.append(_best(maximum).render())
        return " ".join(parts)

    return _best(mappings).render()


def compose_query(mappings: list[ConceptMapping]) -> str:
    """Space-join one fragment per operator, in first-seen operator order."""
    fragments = [
        render_operator(operator, group) for operator, group in _group(mappings).items()
    ]
    return " ".join(f for f in fragments if f)


def _append(query: str, term: str) -> str:
    return f"{query} {term}" if query else term


def apply_optimization(query: str, strategy: OptimizationStrategy) -> str:
    """Rewrite a query for the given strategy. Pure string transformation."""
    if strategy == OptimizationStrategy.PRECISION:
        if not _FORMAT_TERM.search(query):
            formats = " OR ".join(f"f:{f}" for f in POPULAR_FORMATS)
            query = _append(query, f"({formats})")
        if not _PRICE_TERM.search(query):
            query = _append(query, f"usd<={PRECISION_PRICE_CAP}")

    elif strategy == OptimizationStrategy.RECALL:
        match = _POWER_MIN.search(query)
        if match:
            lowered = max(1, int(match.group(1)) - 1)
            query = query[:match.start()] + f"pow>={lowered}" + query[match.end():]

        for match in _STANDALONE_TYPE.finditer(query):
            related = RELATED_TYPES.get(match.group(1))
            if related:
                widened = f"(t:{match.group(1)} OR t:{related})"
                query = query[:match.start()] + widened + query[match.end():]
                break

    elif strategy == OptimizationStrategy.DISCOVERY:
        if not _IS_TERM.search(query):
            query = _append(query, "(is:unique OR is:reserved OR is:promo)")

    elif strategy == OptimizationStrategy.BUDGET:
        if not _PRICE_TERM.search(query):
            query = _append(query, f"usd<={BUDGET_PRICE_CAP}")

    return query


def broaden(query: str) -> tuple[str, list[QueryOptimization]]:
    """Relax a query that returned no results."""
    optimizations: list[QueryOptimization] = []

    match = _EXACT_CMC.search(query)
    if match:
        relaxed = f"cmc<={match.group(1)}"
        optimizations.append(
            QueryOptimization("broadening", "No results with exact mana value", f"{match.group(0)} -> {relaxed}")
        )
        query = query[:match.start()] + relaxed + query[match.end():]

    match = _POWER_MIN.search(query)
    if match and int(match.group(1)) > 1:
        relaxed = f"pow>={int(match.group(1)) - 1}"
        optimizations.append(
            QueryOptimization("broadening", "No results with power minimum", f"{match.group(0)} -> {relaxed}")
        )
        query = query[:match.start()] + relaxed + query[match.end():]

    match = _PRICE_CEILING.search(query)
    if match:
        doubled = f"{match.group(1)}<={format_number(float(match.group(2)) * 2)}"
        optimizations.append(
            QueryOptimization("broadening", "No results within price limit", f"{match.group(0)} -> {doubled}")
        )
        query = query[:match.start()] + doubled + query[match.end():]

    return query, optimizations


def narrow(query: str) -> tuple[str, list[QueryOptimization]]:
    """Tighten a query that returned far more results than requested."""
    optimizations: list[QueryOptimization] = []

    if not _FORMAT_TERM.search(query):
        term = f"f:{NARROW_FORMAT}"
        optimizations.append(
            QueryOptimization("narrowing", "Too many results, restricted format", f"added {term}")
        )
        query = _append(query, term)

    if not _PRICE_TERM.search(query):
        term = f"usd<={NARROW_PRICE_CAP}"
        optimizations.append(
            QueryOptimization("narrowing", "Too many results, added price limit", f"added {term}")
        )
        query = _append(query, term)

    return query, optimizations


def _color_words(value: str) -> str:
    return " and ".join(COLOR_NAMES.get(code, code) for code in value)


def _price_words(mapping: ConceptMapping) -> str:
    amount = mapping.value
    symbol = _CURRENCY_SYMBOLS.get(mapping.operator)
    money = f"{symbol}{amount}" if symbol else f"{amount} {mapping.operator}"
    return f"{_COMPARISON_WORDS.get(mapping.comparison, 'exactly')} {money}"


def explain(mappings: list[ConceptMapping], options: BuildOptions) -> str:
    """Human-readable, comma-joined description of the compiled constraints."""
    grouped = _group(mappings)
    clauses: list[str] = []

    colors = grouped.get("c", []) + grouped.get("id", [])
    if colors:
        clauses.append("Cards that are " + " and ".join(_color_words(m.value) for m in colors))

    types = grouped.get("t", [])
    if types:
        names = [("non-" if m.negation else "") + m.value for m in types]
        clauses.append(" or ".join(names) + " cards")

    functions = grouped.get("function", []) + grouped.get("o", [])
    if functions:
        clauses.append("with " + " or ".join(m.value for m in functions) + " effects")

    prices = grouped.get("usd", []) + grouped.get("eur", []) + grouped.get("tix", [])
    if prices:
        clauses.append("priced " + " and ".join(_price_words(m) for m in prices))

    stats = [m for op in ("cmc", "pow", "tou") for m in grouped.get(op, [])]
    if stats:
        parts = [
            f"{_STAT_LABELS[m.operator]} {_COMPARISON_WORDS.get(m.comparison, 'exactly')} {m.value}"
            for m in stats
        ]
        clauses.append("with " + " and ".join(parts))

    if options.format:
        clauses.append(f"legal in {options.format} format")

    return ", ".join(clauses)


class QueryBuilder:
    """Compiles a ParsedQuery into a Scryfall query string.

    Args:
        mapper: Concept mapper used to derive resolved operator mappings
        searcher: Optional CardSearcher for adaptive refinement. Without one
            the builder never performs I/O.
    """

    def __init__(
        self,
        mapper: ConceptMapper | None = None,
        searcher: CardSearcher | None = None,
    ):
        self.mapper = mapper or ConceptMapper()
        self.searcher = searcher

    async def build(
        self, parsed: ParsedQuery, options: BuildOptions | None = None
    ) -> BuildResult:
        """Build an optimized, optionally refined query.

        Args:
            parsed: Concepts from NaturalLanguageParser.parse
            options: Strategy, format, result size and price budget

        Returns:
            BuildResult with the query, explanation, confidence, alternatives
            and any refinement changes
        """
        options = options or BuildOptions()
        mappings = self.mapper.extract_mappings(parsed)

        base = compose_query(mappings)
        base = self._apply_options(base, options)

        if not base:
            logger.debug("Nothing to compile for %r", parsed.normalized_text)
            return BuildResult(
                query="",
                explanation="No recognizable card criteria",
                confidence=clamp_confidence(parsed.confidence),
            )

        optimized = apply_optimization(base, options.optimize_for)
        query, optimizations = await self._refine(optimized, options)

        return BuildResult(
            query=query,
            explanation=explain(mappings, options),
            confidence=self._confidence(parsed, optimizations),
            alternatives=self._alternatives(base, options),
            optimizations=optimizations,
        )

    @staticmethod
    def _apply_options(query: str, options: BuildOptions) -> str:
        if options.format:
            term = f"f:{options.format}"
            if term not in query.split():
                query = _append(query, term)
        if options.price_budget and not _PRICE_TERM.search(query):
            budget = options.price_budget
            query = _append(
                query, f"{budget.currency.value}<={format_number(budget.max)}"
            )
        return query

    async def _refine(
        self, query: str, options: BuildOptions
    ) -> tuple[str, list[QueryOptimization]]:
        """Trial-run the query once and broaden or narrow on the count."""
        if self.searcher is None:
            return query, []

        try:
            result = await self.searcher.search_cards(query, limit=1)
        except Exception as e:
            logger.warning("Query refinement failed for %r: %s", query, e)
            return query, []

        total = int(result.get("total_cards") or 0)
        logger.debug("Trial search for %r returned %d cards", query, total)

        if total == 0:
            return broaden(query)
        if total > options.max_results * OVERFLOW_FACTOR:
            return narrow(query)
        return query, []

    @staticmethod
    def _confidence(parsed: ParsedQuery, optimizations: list[QueryOptimization]) -> float:
        confidence = parsed.confidence
        if not optimizations:
            confidence += SUCCESS_BONUS
        confidence -= len(optimizations) * OPTIMIZATION_PENALTY
        return clamp_confidence(confidence)

    @staticmethod
    def _alternatives(base: str, options: BuildOptions) -> list[AlternativeQuery]:
        alternatives: list[AlternativeQuery] = []

        # A caller-chosen format is fixed; a format from the text is swapped out
        formats = () if options.format else ALTERNATIVE_FORMATS
        for fmt in formats:
            term = f"f:{fmt}"
            if term in base.split():
                continue
            if _FORMAT_CLAUSE.search(base):
                query = _FORMAT_CLAUSE.sub(term, base, count=1)
            else:
                query = _append(base, term)
            alternatives.append(
                AlternativeQuery(
                    query=query,
                    description=f"Same search restricted to {fmt} format",
                    type="format_restriction",
                    confidence=0.8,
                )
            )

        for strategy in OptimizationStrategy:
            if strategy == options.optimize_for:
                continue
            alternatives.append(
                AlternativeQuery(
                    query=apply_optimization(base, strategy),
                    description=f"Optimized for {strategy.value}",
                    type="optimization",
                    confidence=0.7,
                )
            )

        return alternatives[:MAX_ALTERNATIVES]
