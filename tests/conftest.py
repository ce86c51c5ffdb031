"""Shared test fixtures for the Scryfall NLQ package."""

from typing import Any, Callable
from unittest.mock import AsyncMock

import pytest

from scryfall_nlq.config import Settings
from scryfall_nlq.nl_parser import NaturalLanguageParser


@pytest.fixture
def parser() -> NaturalLanguageParser:
    return NaturalLanguageParser()


@pytest.fixture
def fast_settings() -> Settings:
    """Settings with no waiting between requests or retries."""
    return Settings(
        rate_limit_ms=0,
        max_backoff_ms=0,
        max_retries=2,
        cache_ttl_seconds=60,
        low_confidence_threshold=0.3,
    )


@pytest.fixture
def sample_search_response() -> dict[str, Any]:
    """A Scryfall list object as returned by /cards/search."""
    return {
        "object": "list",
        "total_cards": 3,
        "has_more": False,
        "data": [
            {
                "object": "card",
                "id": "e2d1f479-3c2b-4b2a-8c9a-1a2b3c4d5e6f",
                "name": "Monastery Swiftspear",
                "mana_cost": "{R}",
                "cmc": 1.0,
                "type_line": "Creature — Human Monk",
                "oracle_text": "Haste\nProwess",
                "set": "ktk",
                "rarity": "uncommon",
                "prices": {"usd": "0.45", "eur": "0.30", "tix": "0.02"},
                "scryfall_uri": "https://scryfall.com/card/ktk/118/monastery-swiftspear",
            },
            {
                "object": "card",
                "id": "f1e2d3c4-b5a6-9870-fedc-ba0987654321",
                "name": "Goblin Guide",
                "mana_cost": "{R}",
                "cmc": 1.0,
                "type_line": "Creature — Goblin Scout",
                "oracle_text": "Haste",
                "set": "zen",
                "rarity": "rare",
                "prices": {"usd": "3.10", "eur": "2.50", "tix": "0.05"},
                "scryfall_uri": "https://scryfall.com/card/zen/126/goblin-guide",
            },
            {
                "object": "card",
                "id": "a1b2c3d4-e5f6-7890-1234-567890abcdef",
                "name": "Bloodghast",
                "mana_cost": "{B}{B}",
                "cmc": 2.0,
                "type_line": "Creature — Vampire Spirit",
                "oracle_text": "Bloodghast can't block.",
                "set": "zen",
                "rarity": "rare",
                "prices": {"usd": "4.75", "eur": None, "tix": "0.10"},
                "scryfall_uri": "https://scryfall.com/card/zen/83/bloodghast",
            },
        ],
    }


def _make_searcher(total_cards: int = 50) -> AsyncMock:
    searcher = AsyncMock()
    searcher.search_cards.return_value = {
        "object": "list",
        "total_cards": total_cards,
        "has_more": False,
        "data": [],
    }
    return searcher


@pytest.fixture
def make_searcher() -> Callable[..., AsyncMock]:
    """Factory for CardSearcher stand-ins that report a fixed total."""
    return _make_searcher


@pytest.fixture
def searcher() -> AsyncMock:
    return _make_searcher()
