"""Value objects for the natural language query pipeline.

Concepts are produced by the extraction engines, mappings by the concept
mapper, and build results by the query builder. Everything here is plain
data; the only behavior is clamping and rendering helpers.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class OptimizationStrategy(str, Enum):
    """How the query builder trades precision against recall."""

    PRECISION = "precision"
    RECALL = "recall"
    DISCOVERY = "discovery"
    BUDGET = "budget"


class Currency(str, Enum):
    """Price currencies understood by Scryfall."""

    USD = "usd"
    EUR = "eur"
    TIX = "tix"


COLOR_NAMES = {
    "w": "white",
    "u": "blue",
    "b": "black",
    "r": "red",
    "g": "green",
    "c": "colorless",
    "m": "multicolor",
}


def clamp_confidence(value: float) -> float:
    """Clamp a confidence score into [0, 1]."""
    return max(0.0, min(1.0, float(value)))


def format_number(value: float) -> str:
    """Render a number the way Scryfall expects it (5 not 5.0)."""
    if float(value).is_integer():
        return str(int(value))
    return f"{value:g}"


@dataclass(frozen=True)
class ColorConcept:
    """A color interpretation such as "red", "azorius" or "colorless"."""

    colors: tuple[str, ...] = ()
    exact: bool = False
    inclusive: bool = False
    exclusive: bool = False
    multicolor: bool = False
    colorless: bool = False
    confidence: float = 0.0

    def __post_init__(self) -> None:
        object.__setattr__(self, "confidence", clamp_confidence(self.confidence))

    def can_merge(self, other: "ColorConcept") -> bool:
        """Overlapping colors or agreeing multicolor/colorless flags."""
        overlap = bool(set(self.colors) & set(other.colors))
        compatible = (
            self.multicolor == other.multicolor
            and self.colorless == other.colorless
        )
        return overlap or compatible

    def merge(self, other: "ColorConcept") -> "ColorConcept":
        colors = tuple(dict.fromkeys(self.colors + other.colors))
        return ColorConcept(
            colors=colors,
            exact=self.exact and other.exact,
            inclusive=self.inclusive or other.inclusive,
            exclusive=self.exclusive or other.exclusive,
            multicolor=self.multicolor or other.multicolor,
            colorless=self.colorless or other.colorless,
            confidence=max(self.confidence, other.confidence),
        )

    def render(self) -> str:
        if self.colorless:
            return "colorless"
        if self.multicolor and not self.colors:
            return "multicolor"
        return "".join(self.colors)


@dataclass(frozen=True)
class TypeConcept:
    """A card type, supertype or functional grouping."""

    type: str | None = None
    supertype: str | None = None
    function: str | None = None
    negated: bool = False
    confidence: float = 0.0

    def __post_init__(self) -> None:
        object.__setattr__(self, "confidence", clamp_confidence(self.confidence))

    @property
    def key(self) -> str:
        prefix = "-" if self.negated else ""
        return prefix + (self.type or self.supertype or self.function or "")


@dataclass(frozen=True)
class SubtypeConcept:
    subtype: str
    category: str
    confidence: float = 0.0

    def __post_init__(self) -> None:
        object.__setattr__(self, "confidence", clamp_confidence(self.confidence))


@dataclass(frozen=True)
class ArchetypeConstraints:
    """Structured constraint bundle carried by an archetype."""

    cmc_range: tuple[int, int] | None = None
    power_min: int | None = None
    keywords: tuple[str, ...] = ()
    functions: tuple[str, ...] = ()
    card_types: tuple[str, ...] = ()
    subtypes: tuple[str, ...] = ()


@dataclass(frozen=True)
class ArchetypeConcept:
    name: str
    constraints: ArchetypeConstraints = field(default_factory=ArchetypeConstraints)
    confidence: float = 0.0

    def __post_init__(self) -> None:
        object.__setattr__(self, "confidence", clamp_confidence(self.confidence))


@dataclass(frozen=True)
class PriceConcept:
    """A price window in one currency.

    Merging two hints in the same currency tightens the window: the higher
    minimum and the lower maximum win.
    """

    min: float | None = None
    max: float | None = None
    currency: Currency = Currency.USD
    condition: str | None = None
    confidence: float = 0.0

    def __post_init__(self) -> None:
        object.__setattr__(self, "confidence", clamp_confidence(self.confidence))

    def merge(self, other: "PriceConcept") -> "PriceConcept":
        return PriceConcept(
            min=_tighten(self.min, other.min, max),
            max=_tighten(self.max, other.max, min),
            currency=self.currency,
            condition=self.condition or other.condition,
            confidence=max(self.confidence, other.confidence),
        )

    def render(self) -> str:
        unit = self.currency.value.upper()
        if self.min is not None and self.max is not None:
            if self.min == self.max:
                return f"exactly {format_number(self.min)} {unit}"
            return f"{format_number(self.min)}-{format_number(self.max)} {unit}"
        if self.max is not None:
            return f"under {format_number(self.max)} {unit}"
        if self.min is not None:
            return f"over {format_number(self.min)} {unit}"
        return ""


def _tighten(a: float | None, b: float | None, pick) -> float | None:
    if a is None:
        return b
    if b is None:
        return a
    return pick(a, b)


@dataclass(frozen=True)
class FormatConcept:
    name: str
    confidence: float = 0.0

    def __post_init__(self) -> None:
        object.__setattr__(self, "confidence", clamp_confidence(self.confidence))


@dataclass(frozen=True)
class KeywordConcept:
    keyword: str
    confidence: float = 0.0


@dataclass(frozen=True)
class MechanicConcept:
    mechanic: str
    confidence: float = 0.0


@dataclass(frozen=True)
class AbilityConcept:
    ability: str
    oracle_text: str
    confidence: float = 0.0


@dataclass(frozen=True)
class ManaCostConcept:
    min: int | None = None
    max: int | None = None
    exact: int | None = None
    confidence: float = 0.0


@dataclass(frozen=True)
class StatConcept:
    stat: str  # "power" or "toughness"
    min: int | None = None
    max: int | None = None
    exact: int | None = None
    confidence: float = 0.0


@dataclass(frozen=True)
class Ambiguity:
    """Multiple competing interpretations within one category."""

    category: str
    description: str
    alternatives: tuple[str, ...] = ()
    confidence: float = 0.7


@dataclass(frozen=True)
class QueryContext:
    """Caller-supplied hints, recorded on the parse result only."""

    target_format: str | None = None
    optimization_strategy: OptimizationStrategy | None = None
    max_results: int | None = None
    user_intent: str | None = None


@dataclass
class ParsedQuery:
    """Every concept extracted from one natural language request."""

    colors: list[ColorConcept] = field(default_factory=list)
    types: list[TypeConcept] = field(default_factory=list)
    subtypes: list[SubtypeConcept] = field(default_factory=list)
    archetypes: list[ArchetypeConcept] = field(default_factory=list)
    prices: list[PriceConcept] = field(default_factory=list)
    formats: list[FormatConcept] = field(default_factory=list)
    keywords: list[KeywordConcept] = field(default_factory=list)
    mechanics: list[MechanicConcept] = field(default_factory=list)
    abilities: list[AbilityConcept] = field(default_factory=list)
    mana_costs: list[ManaCostConcept] = field(default_factory=list)
    stats: list[StatConcept] = field(default_factory=list)
    confidence: float = 0.0
    ambiguities: list[Ambiguity] = field(default_factory=list)
    context: QueryContext = field(default_factory=QueryContext)
    normalized_text: str = ""

    def all_concepts(self) -> list[Any]:
        """Every concept in a stable category order."""
        return [
            *self.colors,
            *self.types,
            *self.subtypes,
            *self.archetypes,
            *self.prices,
            *self.formats,
            *self.keywords,
            *self.mechanics,
            *self.abilities,
            *self.mana_costs,
            *self.stats,
        ]

    @property
    def is_empty(self) -> bool:
        return not self.all_concepts()

    def summary(self) -> dict[str, list[str]]:
        """Human-readable rendering of the main categories."""
        result: dict[str, list[str]] = {}
        if self.colors:
            result["colors"] = [_describe_color(c) for c in self.colors]
        if self.types:
            result["types"] = [t.key for t in self.types]
        if self.subtypes:
            result["subtypes"] = [s.subtype for s in self.subtypes]
        if self.archetypes:
            result["archetypes"] = [a.name for a in self.archetypes]
        if self.prices:
            result["prices"] = [p.render() for p in self.prices if p.render()]
        if self.formats:
            result["formats"] = [f.name for f in self.formats]
        if self.keywords:
            result["keywords"] = [k.keyword for k in self.keywords]
        return result


def _describe_color(concept: ColorConcept) -> str:
    names = ", ".join(COLOR_NAMES.get(c, c) for c in concept.colors)
    if concept.colorless:
        return "colorless"
    if concept.multicolor and not names:
        return "multicolor"
    if concept.exact:
        return f"exactly {names}"
    if concept.inclusive:
        return f"including {names}"
    return f"any {names}"


@dataclass(frozen=True)
class ConceptMapping:
    """A candidate Scryfall term derived from a concept."""

    operator: str
    value: str
    comparison: str | None = None
    negation: bool = False
    confidence: float = 0.0
    priority: int = 0

    def __post_init__(self) -> None:
        object.__setattr__(self, "confidence", clamp_confidence(self.confidence))

    def render(self) -> str:
        prefix = "-" if self.negation else ""
        value = self.value
        if " " in value:
            value = f'"{value}"'
        if self.comparison:
            return f"{prefix}{self.operator}{self.comparison}{value}"
        return f"{prefix}{self.operator}:{value}"


@dataclass(frozen=True)
class PriceBudget:
    max: float
    currency: Currency = Currency.USD


@dataclass(frozen=True)
class BuildOptions:
    optimize_for: OptimizationStrategy = OptimizationStrategy.PRECISION
    format: str | None = None
    max_results: int = 20
    price_budget: PriceBudget | None = None


@dataclass(frozen=True)
class AlternativeQuery:
    query: str
    description: str
    type: str
    confidence: float

    def to_dict(self) -> dict[str, Any]:
        return {
            "query": self.query,
            "description": self.description,
            "type": self.type,
            "confidence": self.confidence,
        }


@dataclass(frozen=True)
class QueryOptimization:
    type: str
    reason: str
    change: str

    def to_dict(self) -> dict[str, Any]:
        return {"type": self.type, "reason": self.reason, "change": self.change}


@dataclass
class BuildResult:
    """Compiled query plus everything needed to present it."""

    query: str
    explanation: str
    confidence: float
    alternatives: list[AlternativeQuery] = field(default_factory=list)
    optimizations: list[QueryOptimization] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "query": self.query,
            "explanation": self.explanation,
            "confidence": round(self.confidence, 3),
            "alternatives": [a.to_dict() for a in self.alternatives],
            "optimizations": [o.to_dict() for o in self.optimizations],
        }
