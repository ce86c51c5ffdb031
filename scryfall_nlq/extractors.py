"""Pattern extraction engines for natural language card requests.

Each engine scans already-normalized text (lowercase, punctuation stripped)
against a fixed dictionary or regex table and returns confidence-scored
concepts. Engines are stateless: every table is a module-level constant, so
one instance can be shared between concurrent callers.

Dictionary phrases match on word boundaries only. A hyphen counts as part of
a word, so "red" does not fire inside "mono-red" and "land" does not fire
inside "non-land". When two color phrases overlap the longer one wins, so
"mono red" is read once as mono red and not also as red.
"""

import re
from dataclasses import replace

from scryfall_nlq.models import (
    AbilityConcept,
    ArchetypeConcept,
    ArchetypeConstraints,
    ColorConcept,
    Currency,
    FormatConcept,
    KeywordConcept,
    ManaCostConcept,
    MechanicConcept,
    PriceConcept,
    StatConcept,
    SubtypeConcept,
    TypeConcept,
)


def _phrase_pattern(phrase: str) -> re.Pattern:
    """Compile a whole-word pattern for a dictionary phrase."""
    return re.compile(r"(?<![\w-])" + re.escape(phrase) + r"(?![\w-])")


def _context_window(text: str, start: int, end: int, word_count: int) -> str:
    """Return the match plus up to word_count words on each side."""
    before = text[:start].split()
    matched = text[start:end].split()
    after = text[end:].split()
    window = before[max(0, len(before) - word_count):] + matched + after[:word_count]
    return " ".join(window)


def _has_marker(window: str, markers: tuple[str, ...]) -> bool:
    return any(re.search(rf"\b{re.escape(m)}\b", window) for m in markers)


def _inside_longer(match: re.Match, spans: list[tuple[int, int]]) -> bool:
    """True when a longer hit covers the whole match."""
    length = match.end() - match.start()
    return any(
        start <= match.start() and match.end() <= end and end - start > length
        for start, end in spans
    )


# =============================================================================
# COLORS
# =============================================================================

# phrase -> (colors, exact, multicolor, colorless, confidence)
COLOR_PATTERNS: dict[str, tuple[tuple[str, ...], bool, bool, bool, float]] = {
    # Basic colors
    "red": (("r",), False, False, False, 0.95),
    "blue": (("u",), False, False, False, 0.95),
    "white": (("w",), False, False, False, 0.95),
    "black": (("b",), False, False, False, 0.95),
    "green": (("g",), False, False, False, 0.95),
    # Guilds
    "azorius": (("w", "u"), True, False, False, 0.98),
    "dimir": (("u", "b"), True, False, False, 0.98),
    "rakdos": (("b", "r"), True, False, False, 0.98),
    "gruul": (("r", "g"), True, False, False, 0.98),
    "selesnya": (("g", "w"), True, False, False, 0.98),
    "orzhov": (("w", "b"), True, False, False, 0.98),
    "izzet": (("u", "r"), True, False, False, 0.98),
    "golgari": (("b", "g"), True, False, False, 0.98),
    "boros": (("r", "w"), True, False, False, 0.98),
    "simic": (("g", "u"), True, False, False, 0.98),
    # Shards
    "bant": (("g", "w", "u"), True, False, False, 0.98),
    "esper": (("w", "u", "b"), True, False, False, 0.98),
    "grixis": (("u", "b", "r"), True, False, False, 0.98),
    "jund": (("b", "r", "g"), True, False, False, 0.98),
    "naya": (("r", "g", "w"), True, False, False, 0.98),
    # Wedges
    "abzan": (("w", "b", "g"), True, False, False, 0.98),
    "jeskai": (("u", "r", "w"), True, False, False, 0.98),
    "sultai": (("b", "g", "u"), True, False, False, 0.98),
    "mardu": (("r", "w", "b"), True, False, False, 0.98),
    "temur": (("g", "u", "r"), True, False, False, 0.98),
    # Special combinations
    "multicolor": ((), False, True, False, 0.90),
    "multicolored": ((), False, True, False, 0.90),
    "colorless": ((), False, False, True, 0.95),
    "rainbow": (("w", "u", "b", "r", "g"), False, False, False, 0.85),
    "five-color": (("w", "u", "b", "r", "g"), False, False, False, 0.90),
    "five color": (("w", "u", "b", "r", "g"), False, False, False, 0.90),
    # Mono colors
    "mono-red": (("r",), True, False, False, 0.92),
    "mono-blue": (("u",), True, False, False, 0.92),
    "mono-white": (("w",), True, False, False, 0.92),
    "mono-black": (("b",), True, False, False, 0.92),
    "mono-green": (("g",), True, False, False, 0.92),
    "mono red": (("r",), True, False, False, 0.92),
    "mono blue": (("u",), True, False, False, 0.92),
    "mono white": (("w",), True, False, False, 0.92),
    "mono black": (("b",), True, False, False, 0.92),
    "mono green": (("g",), True, False, False, 0.92),
}

INCLUSIVE_MARKERS = ("or", "any", "either", "include", "including", "containing")
EXCLUSIVE_MARKERS = ("only", "just", "exactly", "purely", "solely", "mono")

_COLOR_TABLE = [
    (_phrase_pattern(phrase), definition)
    for phrase, definition in COLOR_PATTERNS.items()
]


class ColorEngine:
    """Extracts color concepts: basic colors, guilds, shards, wedges."""

    window_words = 5

    def extract(self, text: str) -> list[ColorConcept]:
        concepts: list[ColorConcept] = []
        spans = [
            (m.start(), m.end()) for pattern, _ in _COLOR_TABLE for m in pattern.finditer(text)
        ]

        for pattern, (colors, exact, multicolor, colorless, confidence) in _COLOR_TABLE:
            match = next(
                (m for m in pattern.finditer(text) if not _inside_longer(m, spans)), None
            )
            if match is None:
                continue

            window = _context_window(text, match.start(), match.end(), self.window_words)
            concepts.append(
                ColorConcept(
                    colors=colors,
                    exact=exact,
                    inclusive=_has_marker(window, INCLUSIVE_MARKERS),
                    exclusive=_has_marker(window, EXCLUSIVE_MARKERS),
                    multicolor=multicolor,
                    colorless=colorless,
                    confidence=confidence,
                )
            )

        return self._merge(concepts)

    def _merge(self, concepts: list[ColorConcept]) -> list[ColorConcept]:
        """Pairwise merge of compatible concepts, first-seen order kept."""
        if len(concepts) <= 1:
            return concepts

        merged: list[ColorConcept] = []
        processed: set[int] = set()

        for i, concept in enumerate(concepts):
            if i in processed:
                continue
            current = concept
            for j in range(i + 1, len(concepts)):
                if j in processed:
                    continue
                if current.can_merge(concepts[j]):
                    current = current.merge(concepts[j])
                    processed.add(j)
            merged.append(current)
            processed.add(i)

        return merged


# =============================================================================
# PRICES
# =============================================================================

# Numbers followed by a mana/stat unit belong to the inline extractors.
_AMOUNT = r"(\d+(?:\.\d{1,2})?)(?!\.?\d|\s*(?:mana|cmc|mv|power|toughness|cards?)\b)"
# A comparison right after a stat word ("power over 4") is not a price.
_STAT_LEAD = re.compile(r"\b(?:power|toughness|cmc|mana value|mv|mana cost)\s*(?:of\s*)?$")

# (regex, kind, confidence) - order matters, explicit numbers first
PRICE_PATTERNS = [
    # Maximums
    (rf"\bunder\s*\$?{_AMOUNT}", "max", 0.95),
    (rf"\bless\s+than\s*\$?{_AMOUNT}", "max", 0.93),
    (rf"\bbelow\s*\$?{_AMOUNT}", "max", 0.90),
    (rf"\${_AMOUNT}\s*or\s*less\b", "max", 0.92),
    (rf"\${_AMOUNT}\s*and\s*under\b", "max", 0.90),
    (rf"\${_AMOUNT}\s*max\b", "max", 0.88),
    (rf"\bmaximum\s*\$?{_AMOUNT}", "max", 0.87),
    # Budget words followed by an amount
    (rf"\bbudget\b.*?\${_AMOUNT}", "max", 0.85),
    (rf"\bcheap\b.*?\${_AMOUNT}", "max", 0.80),
    (rf"\baffordable\b.*?\${_AMOUNT}", "max", 0.82),
    (rf"\binexpensive\b.*?\${_AMOUNT}", "max", 0.78),
    # Minimums
    (rf"\bover\s*\$?{_AMOUNT}", "min", 0.95),
    (rf"\bmore\s+than\s*\$?{_AMOUNT}", "min", 0.93),
    (rf"\babove\s*\$?{_AMOUNT}", "min", 0.90),
    (rf"\${_AMOUNT}\s*or\s*more\b", "min", 0.92),
    (rf"\${_AMOUNT}\s*and\s*up\b", "min", 0.88),
    (rf"\bminimum\s*\$?{_AMOUNT}", "min", 0.87),
    # Ranges
    (rf"\bbetween\s*\$?{_AMOUNT}\s*(?:and|to|-)\s*\$?{_AMOUNT}", "range", 0.88),
    (rf"\${_AMOUNT}\s*(?:-|to)\s*\$?{_AMOUNT}", "range", 0.85),
    (rf"\bfrom\s*\$?{_AMOUNT}\s*to\s*\$?{_AMOUNT}", "range", 0.87),
    # Exact
    (rf"\bexactly\s*\${_AMOUNT}", "exact", 0.90),
    (rf"\bcosts?\s*\${_AMOUNT}", "exact", 0.85),
    (rf"\bpriced\s*at\s*\$?{_AMOUNT}", "exact", 0.83),
    # Qualitative terms
    (r"\bbudget\b", "budget", 0.70),
    (r"\bcheap\b", "budget", 0.65),
    (r"\baffordable\b", "budget", 0.68),
    (r"\bexpensive\b", "premium", 0.65),
    (r"\bpremium\b", "premium", 0.70),
    (r"\bhigh.?end\b", "premium", 0.72),
]

BUDGET_THRESHOLD = 10.0
PREMIUM_THRESHOLD = 50.0

_PRICE_TABLE = [
    (re.compile(regex, re.IGNORECASE), kind, confidence)
    for regex, kind, confidence in PRICE_PATTERNS
]

_CURRENCY_MARKERS = [
    (re.compile(r"\beur(?:os?)?\b|€"), Currency.EUR),
    (re.compile(r"\btix\b|\btickets?\b|\bmtgo\b"), Currency.TIX),
]

_CONDITION_MARKERS = [
    (re.compile(r"\b(?:budget|cheap|affordable)\b"), "budget"),
    (re.compile(r"\b(?:value|efficient|reasonable)\b"), "value"),
    (re.compile(r"\b(?:premium|expensive|high.?end)\b"), "premium"),
]


class PriceEngine:
    """Extracts price windows and budget hints."""

    window_chars = 20

    def extract(self, text: str) -> list[PriceConcept]:
        concepts: list[PriceConcept] = []

        for pattern, kind, confidence in _PRICE_TABLE:
            match = next(
                (m for m in pattern.finditer(text) if not _STAT_LEAD.search(text[:m.start()])),
                None,
            )
            if match is None:
                continue

            low = high = None
            condition = None
            if kind == "max":
                high = float(match.group(1))
            elif kind == "min":
                low = float(match.group(1))
            elif kind == "range":
                low, high = float(match.group(1)), float(match.group(2))
                if low > high:
                    low, high = high, low
            elif kind == "exact":
                low = high = float(match.group(1))
            elif kind == "budget":
                high = BUDGET_THRESHOLD
                condition = "budget"
            elif kind == "premium":
                low = PREMIUM_THRESHOLD
                condition = "premium"

            window = self._window(text, match.start())
            concepts.append(
                PriceConcept(
                    min=low,
                    max=high,
                    currency=self._detect_currency(window),
                    condition=condition or self._detect_condition(window),
                    confidence=confidence,
                )
            )

        return self._merge(concepts)

    def _window(self, text: str, position: int) -> str:
        start = max(0, position - self.window_chars)
        return text[start:position + self.window_chars].lower()

    def _detect_currency(self, window: str) -> Currency:
        for pattern, currency in _CURRENCY_MARKERS:
            if pattern.search(window):
                return currency
        return Currency.USD

    def _detect_condition(self, window: str) -> str | None:
        for pattern, condition in _CONDITION_MARKERS:
            if pattern.search(window):
                return condition
        return None

    def _merge(self, concepts: list[PriceConcept]) -> list[PriceConcept]:
        """Merge same-currency hints by tightening the window."""
        if len(concepts) <= 1:
            return concepts

        merged: list[PriceConcept] = []
        processed: set[int] = set()

        for i, concept in enumerate(concepts):
            if i in processed:
                continue
            current = concept
            for j in range(i + 1, len(concepts)):
                if j not in processed and concepts[j].currency == current.currency:
                    current = current.merge(concepts[j])
                    processed.add(j)
            merged.append(current)
            processed.add(i)

        return merged


# =============================================================================
# FORMATS
# =============================================================================

FORMAT_PATTERNS: dict[str, tuple[str, float]] = {
    # Format names
    "standard": ("standard", 0.95),
    "modern": ("modern", 0.95),
    "legacy": ("legacy", 0.95),
    "vintage": ("vintage", 0.95),
    "pioneer": ("pioneer", 0.95),
    "commander": ("commander", 0.95),
    "edh": ("commander", 0.98),
    "brawl": ("brawl", 0.95),
    "pauper": ("pauper", 0.95),
    "penny": ("penny", 0.95),
    "historic": ("historic", 0.95),
    "alchemy": ("alchemy", 0.95),
    "explorer": ("explorer", 0.95),
    "timeless": ("timeless", 0.95),
    # Common misspellings
    "comander": ("commander", 0.85),
    "pionneer": ("pioneer", 0.85),
    "standart": ("standard", 0.85),
    # "X legal"
    "standard legal": ("standard", 0.90),
    "modern legal": ("modern", 0.90),
    "legacy legal": ("legacy", 0.90),
    "vintage legal": ("vintage", 0.90),
    "pioneer legal": ("pioneer", 0.90),
    "commander legal": ("commander", 0.90),
    "edh legal": ("commander", 0.92),
    "brawl legal": ("brawl", 0.90),
    "pauper legal": ("pauper", 0.90),
    # "in X"
    "in standard": ("standard", 0.88),
    "in modern": ("modern", 0.88),
    "in legacy": ("legacy", 0.88),
    "in vintage": ("vintage", 0.88),
    "in pioneer": ("pioneer", 0.88),
    "in commander": ("commander", 0.88),
    "in edh": ("commander", 0.90),
    "in brawl": ("brawl", 0.88),
    "in pauper": ("pauper", 0.88),
    # "for X"
    "for standard": ("standard", 0.85),
    "for modern": ("modern", 0.85),
    "for legacy": ("legacy", 0.85),
    "for vintage": ("vintage", 0.85),
    "for pioneer": ("pioneer", 0.85),
    "for commander": ("commander", 0.85),
    "for edh": ("commander", 0.87),
    "for brawl": ("brawl", 0.85),
    "for pauper": ("pauper", 0.85),
    # Casual play
    "casual": ("casual", 0.75),
    "kitchen table": ("casual", 0.80),
    "multiplayer": ("commander", 0.70),
    # Arena
    "arena": ("standard", 0.70),
    "mtg arena": ("standard", 0.72),
    "mtga": ("standard", 0.72),
    # Magic Online
    "mtgo": ("legacy", 0.60),
    "magic online": ("legacy", 0.60),
    # Competitive play
    "competitive": ("modern", 0.60),
    "tournament": ("standard", 0.65),
    "fnm": ("standard", 0.70),
    "friday night magic": ("standard", 0.70),
    # Deck size hints
    "100 card": ("commander", 0.85),
    "100-card": ("commander", 0.85),
    "singleton": ("commander", 0.75),
    "highlander": ("commander", 0.80),
    # Power level hints
    "high power": ("vintage", 0.60),
    "powered": ("vintage", 0.70),
    "unpowered": ("legacy", 0.65),
    "budget": ("pauper", 0.60),
}

_FORMAT_TABLE = [
    (_phrase_pattern(phrase), definition)
    for phrase, definition in FORMAT_PATTERNS.items()
]


class FormatEngine:
    """Extracts formats from names, misspellings and contextual phrases."""

    def extract(self, text: str) -> list[FormatConcept]:
        best: dict[str, FormatConcept] = {}

        for pattern, (name, confidence) in _FORMAT_TABLE:
            if not pattern.search(text):
                continue
            existing = best.get(name)
            if existing is None or confidence > existing.confidence:
                best[name] = FormatConcept(name=name, confidence=confidence)

        return list(best.values())


# =============================================================================
# TYPES
# =============================================================================

# phrase -> (field, value, negated, confidence)
TYPE_PATTERNS: dict[str, tuple[str, str, bool, float]] = {
    # Card types
    "creature": ("type", "creature", False, 0.98),
    "creatures": ("type", "creature", False, 0.98),
    "instant": ("type", "instant", False, 0.98),
    "instants": ("type", "instant", False, 0.98),
    "sorcery": ("type", "sorcery", False, 0.98),
    "sorceries": ("type", "sorcery", False, 0.98),
    "artifact": ("type", "artifact", False, 0.98),
    "artifacts": ("type", "artifact", False, 0.98),
    "enchantment": ("type", "enchantment", False, 0.98),
    "enchantments": ("type", "enchantment", False, 0.98),
    "planeswalker": ("type", "planeswalker", False, 0.98),
    "planeswalkers": ("type", "planeswalker", False, 0.98),
    "land": ("type", "land", False, 0.98),
    "lands": ("type", "land", False, 0.98),
    "battle": ("type", "battle", False, 0.98),
    "battles": ("type", "battle", False, 0.98),
    # Negated groupings
    "spell": ("type", "land", True, 0.85),
    "spells": ("type", "land", True, 0.85),
    "nonland": ("type", "land", True, 0.85),
    "non-land": ("type", "land", True, 0.85),
    "noncreature": ("type", "creature", True, 0.85),
    "non-creature": ("type", "creature", True, 0.85),
    # Supertypes
    "legendary": ("supertype", "legendary", False, 0.95),
    "basic": ("supertype", "basic", False, 0.95),
    "snow": ("supertype", "snow", False, 0.95),
    "world enchantment": ("supertype", "world", False, 0.95),
    "world enchantments": ("supertype", "world", False, 0.95),
    # Functional groupings
    "removal": ("function", "removal", False, 0.88),
    "counterspell": ("function", "counterspell", False, 0.90),
    "counterspells": ("function", "counterspell", False, 0.90),
    "draw": ("function", "draw", False, 0.85),
    "card draw": ("function", "draw", False, 0.88),
    "ramp": ("function", "ramp", False, 0.90),
    "mana ramp": ("function", "ramp", False, 0.92),
    "tutor": ("function", "tutor", False, 0.88),
    "tutors": ("function", "tutor", False, 0.88),
    "wipe": ("function", "wipe", False, 0.85),
    "board wipe": ("function", "wipe", False, 0.90),
    "sweeper": ("function", "wipe", False, 0.88),
}

# phrase -> (subtype, category, confidence)
SUBTYPE_PATTERNS: dict[str, tuple[str, str, float]] = {
    "human": ("human", "creature", 0.90),
    "humans": ("human", "creature", 0.90),
    "elf": ("elf", "creature", 0.95),
    "elves": ("elf", "creature", 0.95),
    "goblin": ("goblin", "creature", 0.95),
    "goblins": ("goblin", "creature", 0.95),
    "zombie": ("zombie", "creature", 0.95),
    "zombies": ("zombie", "creature", 0.95),
    "dragon": ("dragon", "creature", 0.95),
    "dragons": ("dragon", "creature", 0.95),
    "angel": ("angel", "creature", 0.95),
    "angels": ("angel", "creature", 0.95),
    "demon": ("demon", "creature", 0.95),
    "demons": ("demon", "creature", 0.95),
    "wizard": ("wizard", "creature", 0.90),
    "wizards": ("wizard", "creature", 0.90),
    "warrior": ("warrior", "creature", 0.90),
    "warriors": ("warrior", "creature", 0.90),
    "knight": ("knight", "creature", 0.90),
    "knights": ("knight", "creature", 0.90),
    "beast": ("beast", "creature", 0.90),
    "beasts": ("beast", "creature", 0.90),
    "spirit": ("spirit", "creature", 0.90),
    "spirits": ("spirit", "creature", 0.90),
    "elemental": ("elemental", "creature", 0.90),
    "elementals": ("elemental", "creature", 0.90),
    "equipment": ("equipment", "artifact", 0.95),
    "vehicle": ("vehicle", "artifact", 0.95),
    "vehicles": ("vehicle", "artifact", 0.95),
    "treasure": ("treasure", "artifact", 0.95),
    "treasures": ("treasure", "artifact", 0.95),
    "food": ("food", "artifact", 0.95),
    "clue": ("clue", "artifact", 0.95),
    "clues": ("clue", "artifact", 0.95),
    "mountain": ("mountain", "land", 0.90),
    "mountains": ("mountain", "land", 0.90),
    "island": ("island", "land", 0.90),
    "islands": ("island", "land", 0.90),
    "forest": ("forest", "land", 0.90),
    "forests": ("forest", "land", 0.90),
    "plains": ("plains", "land", 0.90),
    "swamp": ("swamp", "land", 0.90),
    "swamps": ("swamp", "land", 0.90),
    "aura": ("aura", "enchantment", 0.95),
    "auras": ("aura", "enchantment", 0.95),
    "saga": ("saga", "enchantment", 0.95),
    "sagas": ("saga", "enchantment", 0.95),
}

_TYPE_TABLE = [
    (_phrase_pattern(phrase), definition)
    for phrase, definition in TYPE_PATTERNS.items()
]

_SUBTYPE_TABLE = [
    (_phrase_pattern(phrase), definition)
    for phrase, definition in SUBTYPE_PATTERNS.items()
]


class TypeEngine:
    """Extracts card types, supertypes, functional groupings and subtypes."""

    def extract(self, text: str) -> list[TypeConcept]:
        """Extract type concepts, one per type/supertype/function key.

        When two phrases produce the same key ("draw" and "card draw") the
        more confident one is kept, at the position of the first.
        """
        found: dict[str, TypeConcept] = {}

        for pattern, (kind, value, negated, confidence) in _TYPE_TABLE:
            if not pattern.search(text):
                continue

            concept = TypeConcept(negated=negated, confidence=confidence, **{kind: value})
            existing = found.get(concept.key)
            if existing is None or concept.confidence > existing.confidence:
                found[concept.key] = concept

        return list(found.values())

    def extract_subtypes(self, text: str) -> list[SubtypeConcept]:
        found: dict[str, SubtypeConcept] = {}

        for pattern, (subtype, category, confidence) in _SUBTYPE_TABLE:
            if pattern.search(text) and subtype not in found:
                found[subtype] = SubtypeConcept(
                    subtype=subtype, category=category, confidence=confidence
                )

        return list(found.values())


# =============================================================================
# ARCHETYPES
# =============================================================================

ARCHETYPE_DEFINITIONS: dict[str, tuple[ArchetypeConstraints, float]] = {
    "aggressive": (
        ArchetypeConstraints(
            cmc_range=(1, 4),
            power_min=2,
            keywords=("haste", "trample", "first strike", "double strike"),
            functions=("burn", "direct damage"),
            card_types=("creature", "instant", "sorcery"),
        ),
        0.90,
    ),
    "aggro": (
        ArchetypeConstraints(
            cmc_range=(1, 3),
            power_min=2,
            keywords=("haste", "prowess", "menace"),
            functions=("burn",),
            card_types=("creature",),
        ),
        0.92,
    ),
    "control": (
        ArchetypeConstraints(
            cmc_range=(2, 8),
            keywords=("flash", "vigilance"),
            functions=("counterspell", "removal", "draw", "wipe"),
            card_types=("instant", "sorcery", "enchantment", "planeswalker"),
        ),
        0.88,
    ),
    "midrange": (
        ArchetypeConstraints(
            cmc_range=(3, 6),
            power_min=2,
            functions=("removal", "value"),
            card_types=("creature", "planeswalker"),
        ),
        0.85,
    ),
    "combo": (
        ArchetypeConstraints(
            keywords=("flash", "storm", "cascade"),
            functions=("tutor", "draw", "ritual"),
            card_types=("instant", "sorcery", "artifact", "enchantment"),
        ),
        0.80,
    ),
    "ramp": (
        ArchetypeConstraints(
            keywords=("vigilance",),
            functions=("ramp", "mana acceleration"),
            card_types=("land", "artifact", "creature", "sorcery"),
        ),
        0.93,
    ),
    "tribal": (
        ArchetypeConstraints(card_types=("creature",)),
        0.85,
    ),
    "tempo": (
        ArchetypeConstraints(
            cmc_range=(1, 4),
            keywords=("flash", "prowess", "flying"),
            functions=("bounce", "counterspell"),
            card_types=("creature", "instant"),
        ),
        0.87,
    ),
    "burn": (
        ArchetypeConstraints(
            cmc_range=(1, 4),
            functions=("burn", "direct damage"),
            card_types=("instant", "sorcery", "creature"),
        ),
        0.90,
    ),
    "reanimator": (
        ArchetypeConstraints(
            keywords=("flashback",),
            functions=("reanimation", "graveyard"),
            card_types=("sorcery", "instant", "creature"),
        ),
        0.88,
    ),
    "prison": (
        ArchetypeConstraints(
            keywords=("static",),
            functions=("lock", "stax"),
            card_types=("artifact", "enchantment"),
        ),
        0.82,
    ),
    "storm": (
        ArchetypeConstraints(
            keywords=("storm",),
            functions=("ritual", "draw"),
            card_types=("instant", "sorcery"),
        ),
        0.95,
    ),
    "voltron": (
        ArchetypeConstraints(
            keywords=("hexproof", "shroud", "indestructible"),
            functions=("protection", "pump"),
            card_types=("equipment", "aura", "creature"),
        ),
        0.85,
    ),
    "tokens": (
        ArchetypeConstraints(
            keywords=("convoke",),
            functions=("token generation",),
            card_types=("sorcery", "instant", "creature", "enchantment"),
        ),
        0.88,
    ),
    "aristocrats": (
        ArchetypeConstraints(
            keywords=("sacrifice",),
            functions=("sacrifice", "death triggers"),
            card_types=("creature", "enchantment"),
        ),
        0.86,
    ),
}

ARCHETYPE_SYNONYMS: dict[str, tuple[str, ...]] = {
    "aggressive": ("aggro", "fast", "beatdown", "rush", "tempo"),
    "control": ("controlling", "defensive", "reactive", "late game"),
    "midrange": ("midgame", "value", "grindy", "fair"),
    "combo": ("synergy", "engine", "infinite", "lock"),
    "ramp": ("acceleration", "big mana", "ramping", "fast mana"),
    "tribal": ("creature type", "synergy", "lord effects"),
    "tempo": ("pressure", "clock", "efficient"),
    "burn": ("direct damage", "face damage", "lightning"),
    "reanimator": ("graveyard", "resurrection", "cheat"),
    "prison": ("stax", "lock", "denial"),
    "storm": ("spell velocity", "ritual"),
    "voltron": ("equipment", "aura", "pump"),
    "tokens": ("go wide", "swarm", "army"),
    "aristocrats": ("sacrifice", "death", "blood artist"),
}

_ARCHETYPE_TABLE = [
    (
        name,
        [_phrase_pattern(p) for p in (name, *ARCHETYPE_SYNONYMS.get(name, ()))],
        constraints,
        confidence,
    )
    for name, (constraints, confidence) in ARCHETYPE_DEFINITIONS.items()
]

TRIBAL_BOOST = 0.1


class ArchetypeEngine:
    """Extracts deck archetypes together with their constraint bundles."""

    def extract(self, text: str) -> list[ArchetypeConcept]:
        return [
            ArchetypeConcept(name=name, constraints=constraints, confidence=confidence)
            for name, patterns, constraints, confidence in _ARCHETYPE_TABLE
            if any(p.search(text) for p in patterns)
        ]

    def enhance_tribal(
        self, archetype: ArchetypeConcept, subtypes: list[str]
    ) -> ArchetypeConcept:
        """Attach detected creature types to a tribal archetype."""
        if archetype.name != "tribal" or not subtypes:
            return archetype

        constraints = replace(
            archetype.constraints,
            subtypes=tuple(dict.fromkeys(archetype.constraints.subtypes + tuple(subtypes))),
        )
        return replace(
            archetype,
            constraints=constraints,
            confidence=archetype.confidence + TRIBAL_BOOST,
        )


# =============================================================================
# INLINE EXTRACTORS
# =============================================================================

KEYWORDS = (
    "flying", "trample", "haste", "vigilance", "lifelink", "deathtouch",
    "first strike", "double strike", "menace", "reach", "flash", "hexproof",
    "indestructible", "prowess", "ward",
)
MECHANICS = (
    "storm", "cascade", "flashback", "madness", "cycling", "convoke", "delve",
    "kicker",
)
# phrase -> oracle text to search for
ABILITIES = {
    "enters the battlefield": "enters",
    "etb": "enters",
    "when dies": "dies",
    "tap to add": "{T}: Add",
    "sacrifice to": "Sacrifice",
}

KEYWORD_CONFIDENCE = 0.85
MECHANIC_CONFIDENCE = 0.85
ABILITY_CONFIDENCE = 0.80
MANA_COST_CONFIDENCE = 0.80
STAT_CONFIDENCE = 0.85

_KEYWORD_TABLE = [(_phrase_pattern(k), k) for k in KEYWORDS]
_MECHANIC_TABLE = [(_phrase_pattern(m), m) for m in MECHANICS]
_ABILITY_TABLE = [(_phrase_pattern(a), a, o) for a, o in ABILITIES.items()]

_PREFIX = r"(?P<prefix>under|less than|below|at most|over|more than|above|at least)"
_SUFFIX_WORDS = r"or\s*(?:less|fewer|lower|more|greater|higher)"
_SUFFIX = rf"(?P<suffix>{_SUFFIX_WORDS})"
_LOWER_WORDS = ("less", "fewer", "lower", "under", "below", "most")

MANA_COST_PATTERNS = [
    re.compile(rf"\b(?:cmc|mana value|mv|mana cost)\s*(?:of\s*)?{_PREFIX}\s*(?P<value>\d+)\b"),
    re.compile(rf"\b{_PREFIX}\s*(?P<value>\d+)\s*(?:mana|cmc|mv)\b"),
    re.compile(rf"\b(?:cmc|mana value|mv|mana cost|costs?)\s*(?:of\s*)?(?P<value>\d+)\b(?:\s*{_SUFFIX})?"),
    re.compile(rf"\b(?P<value>\d+)\s*(?:mana|cmc|mv)\b(?:\s*{_SUFFIX})?"),
]

STAT_PATTERNS = [
    re.compile(rf"\b(?P<stat>power|toughness)\s*(?:of\s*)?(?:{_PREFIX}\s*)?(?P<value>\d+)\b(?:\s*{_SUFFIX})?"),
    re.compile(
        rf"\b(?:{_PREFIX}\s*)?(?P<value>\d+)\s*(?:{_SUFFIX}\s*)?(?P<stat>power|toughness)\b"
        rf"(?:\s*(?P<trailing>{_SUFFIX_WORDS}))?"
    ),
]


def _bound(match: re.Match) -> dict[str, int]:
    """Turn "N", "under N" or "N or more" into an exact/max/min field."""
    groups = match.groupdict()
    value = int(groups["value"])
    qualifier = groups.get("prefix") or groups.get("suffix") or groups.get("trailing")
    if not qualifier:
        return {"exact": value}
    if any(word in qualifier for word in _LOWER_WORDS):
        return {"max": value}
    return {"min": value}


def _scan(patterns: list[re.Pattern], text: str) -> list[re.Match]:
    """Non-overlapping matches across patterns, earlier patterns first."""
    matches: list[re.Match] = []
    for pattern in patterns:
        for match in pattern.finditer(text):
            if any(match.start() < m.end() and m.start() < match.end() for m in matches):
                continue
            matches.append(match)
    return matches


def extract_keywords(text: str) -> list[KeywordConcept]:
    return [
        KeywordConcept(keyword=keyword, confidence=KEYWORD_CONFIDENCE)
        for pattern, keyword in _KEYWORD_TABLE
        if pattern.search(text)
    ]


def extract_mechanics(text: str) -> list[MechanicConcept]:
    return [
        MechanicConcept(mechanic=mechanic, confidence=MECHANIC_CONFIDENCE)
        for pattern, mechanic in _MECHANIC_TABLE
        if pattern.search(text)
    ]


def extract_abilities(text: str) -> list[AbilityConcept]:
    found: dict[str, AbilityConcept] = {}
    for pattern, ability, oracle in _ABILITY_TABLE:
        if pattern.search(text) and oracle not in found:
            found[oracle] = AbilityConcept(
                ability=ability, oracle_text=oracle, confidence=ABILITY_CONFIDENCE
            )
    return list(found.values())


def extract_mana_costs(text: str) -> list[ManaCostConcept]:
    """Mana value constraints such as "cmc 3" or "2 mana or less"."""
    concepts: list[ManaCostConcept] = []
    for match in _scan(MANA_COST_PATTERNS, text):
        concept = ManaCostConcept(confidence=MANA_COST_CONFIDENCE, **_bound(match))
        if concept not in concepts:
            concepts.append(concept)
    return concepts


def extract_stats(text: str) -> list[StatConcept]:
    """Power and toughness constraints such as "power 4 or more"."""
    concepts: list[StatConcept] = []
    for match in _scan(STAT_PATTERNS, text):
        concept = StatConcept(
            stat=match.group("stat"),
            confidence=STAT_CONFIDENCE,
            **_bound(match),
        )
        if concept not in concepts:
            concepts.append(concept)
    return concepts
