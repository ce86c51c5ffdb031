"""MCP Server for natural language Scryfall queries.

Exposes the query compiler as a tool next to a thin live search wrapper.
Uses the low-level MCP Server class and the stdio transport, so nothing in
this process may write to stdout.
"""

import asyncio
import json
import logging
from dataclasses import dataclass
from typing import Any

import mcp.types as types
from mcp.server.lowlevel import Server, NotificationOptions
from mcp.server.models import InitializationOptions
import mcp.server.stdio

from scryfall_nlq import __version__
from scryfall_nlq.concept_mapper import ConceptMapper
from scryfall_nlq.config import Settings, settings as default_settings
from scryfall_nlq.models import (
    BuildOptions,
    Currency,
    OptimizationStrategy,
    ParsedQuery,
    PriceBudget,
    QueryContext,
)
from scryfall_nlq.nl_parser import NaturalLanguageParser
from scryfall_nlq.query_builder import QueryBuilder
from scryfall_nlq.scryfall_client import ScryfallAPIError, ScryfallClient

logger = logging.getLogger(__name__)

# Server name constant - used in multiple places
SERVER_NAME = "scryfall-nlq"

FORMATS = [
    "standard", "modern", "legacy", "vintage", "commander", "pioneer",
    "brawl", "pauper", "penny", "historic", "alchemy",
]
MAX_QUERY_LENGTH = 500
MAX_RESULTS_LIMIT = 175
TEST_SAMPLE_SIZE = 5

SUGGESTIONS = [
    'Use more specific terms (e.g., "red creatures" instead of "red cards")',
    'Include format information (e.g., "in modern" or "for commander")',
    'Be explicit about constraints (e.g., "under $10" or "power 3 or more")',
    'Use Magic terminology (e.g., "instant", "sorcery", "planeswalker")',
]

EXAMPLE_QUERIES = [
    "red aggressive creatures under $5 for modern",
    "blue counterspells in standard",
    "legendary artifacts for commander",
    "white removal spells under $10",
]


@dataclass
class Tool:
    """Tool definition for MCP."""

    name: str
    description: str
    inputSchema: dict[str, Any]


class ToolArgumentError(Exception):
    """Invalid tool arguments with a hint for the caller."""

    def __init__(self, message: str, hint: str | None = None):
        super().__init__(message)
        self.message = message
        self.hint = hint or "Check the tool's input schema"

    def __str__(self) -> str:
        return f"{self.message}. Hint: {self.hint}"


def _require_int(arguments: dict[str, Any], key: str, default: int, low: int, high: int | None) -> int:
    value = arguments.get(key, default)
    if isinstance(value, bool) or not isinstance(value, int):
        raise ToolArgumentError(f"'{key}' must be an integer")
    if value < low or (high is not None and value > high):
        bounds = f"between {low} and {high}" if high is not None else f"at least {low}"
        raise ToolArgumentError(f"'{key}' must be {bounds}, got {value}")
    return value


def _require_bool(arguments: dict[str, Any], key: str, default: bool) -> bool:
    value = arguments.get(key, default)
    if not isinstance(value, bool):
        raise ToolArgumentError(f"'{key}' must be true or false")
    return value


def _choice(arguments: dict[str, Any], key: str, choices: list[str]) -> str | None:
    value = arguments.get(key)
    if value is None:
        return None
    if value not in choices:
        raise ToolArgumentError(
            f"Unsupported {key}: {value!r}", hint=f"Use one of: {', '.join(choices)}"
        )
    return value


class QueryBuilderServer:
    """Natural language Scryfall query MCP Server.

    Compiles card descriptions into Scryfall syntax and, when asked, checks
    the result against the live API.
    """

    name = SERVER_NAME
    version = __version__

    def __init__(self, client: ScryfallClient | None = None, config: Settings | None = None):
        """Initialize server.

        Args:
            client: Scryfall client used for live searches and query testing
            config: Settings, defaults to the environment settings
        """
        self.config = config or default_settings
        self._client = client or ScryfallClient(self.config)
        self._parser = NaturalLanguageParser()
        self._mapper = ConceptMapper()

    async def cleanup(self) -> None:
        """Release the HTTP client."""
        await self._client.close()

    async def __aenter__(self) -> "QueryBuilderServer":
        """Enter async context manager."""
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        """Exit async context manager and clean up resources."""
        await self.cleanup()

    def list_tools(self) -> list[Tool]:
        """List available tools.

        Returns:
            List of tool definitions
        """
        return [
            Tool(
                name="build_scryfall_query",
                description="Convert a natural language description of Magic: The Gathering cards "
                "into Scryfall search syntax, with an explanation, confidence scores and "
                "alternative queries. Example: 'red aggressive creatures under $5 for modern'.",
                inputSchema={
                    "type": "object",
                    "properties": {
                        "natural_query": {
                            "type": "string",
                            "description": "Description of the cards you want",
                            "minLength": 1,
                            "maxLength": MAX_QUERY_LENGTH,
                        },
                        "format": {
                            "type": "string",
                            "enum": FORMATS,
                            "description": "Restrict results to a format",
                        },
                        "optimize_for": {
                            "type": "string",
                            "enum": [s.value for s in OptimizationStrategy],
                            "default": OptimizationStrategy.PRECISION.value,
                            "description": "precision (fewer, closer matches), recall (more matches), "
                            "discovery (unusual cards) or budget (cheap cards)",
                        },
                        "max_results": {
                            "type": "integer",
                            "description": "Expected result size, used to judge the query (default 20)",
                            "default": 20,
                            "minimum": 1,
                            "maximum": MAX_RESULTS_LIMIT,
                        },
                        "price_budget": {
                            "type": "object",
                            "properties": {
                                "max": {
                                    "type": "number",
                                    "minimum": 0,
                                    "description": "Maximum price per card",
                                },
                                "currency": {
                                    "type": "string",
                                    "enum": [c.value for c in Currency],
                                    "default": Currency.USD.value,
                                },
                            },
                            "description": "Price ceiling applied when the text names none",
                        },
                        "include_alternatives": {
                            "type": "boolean",
                            "default": True,
                            "description": "Include alternative query suggestions",
                        },
                        "explain_mapping": {
                            "type": "boolean",
                            "default": True,
                            "description": "Explain how the text was mapped to Scryfall operators",
                        },
                        "test_query": {
                            "type": "boolean",
                            "default": True,
                            "description": "Run the query against Scryfall and refine it on the result count",
                        },
                    },
                    "required": ["natural_query"],
                },
            ),
            Tool(
                name="search_cards",
                description="Search Magic: The Gathering cards on Scryfall using Scryfall syntax "
                "(e.g., 'c:r t:creature usd<=5 f:modern').",
                inputSchema={
                    "type": "object",
                    "properties": {
                        "query": {
                            "type": "string",
                            "description": "Scryfall search query",
                        },
                        "limit": {
                            "type": "integer",
                            "description": "Maximum results to return (default 20, max 175)",
                            "default": 20,
                            "minimum": 1,
                            "maximum": MAX_RESULTS_LIMIT,
                        },
                        "page": {
                            "type": "integer",
                            "description": "Result page (default 1)",
                            "default": 1,
                            "minimum": 1,
                        },
                    },
                    "required": ["query"],
                },
            ),
        ]

    async def call_tool(self, name: str, arguments: dict[str, Any]) -> dict[str, Any]:
        """Execute a tool.

        Args:
            name: Tool name
            arguments: Tool arguments

        Returns:
            Tool result dictionary
        """
        try:
            if name == "build_scryfall_query":
                return await self._build_scryfall_query(arguments)
            elif name == "search_cards":
                return await self._search_cards(arguments)
            else:
                return {"error": f"Unknown tool: {name}"}
        except ToolArgumentError as e:
            return {"error": e.message, "hint": e.hint}

    async def _build_scryfall_query(self, arguments: dict[str, Any]) -> dict[str, Any]:
        """Compile natural language into a Scryfall query.

        Args:
            arguments: See the build_scryfall_query input schema

        Returns:
            Query, explanation, confidences and suggestions, or a low
            confidence report when the text was mostly not understood
        """
        text = arguments.get("natural_query")
        if not isinstance(text, str) or not text.strip():
            raise ToolArgumentError(
                "'natural_query' is required",
                hint="Describe the cards, e.g. 'blue counterspells in standard'",
            )
        if len(text) > MAX_QUERY_LENGTH:
            raise ToolArgumentError(f"'natural_query' is limited to {MAX_QUERY_LENGTH} characters")

        fmt = _choice(arguments, "format", FORMATS)
        strategy = _choice(arguments, "optimize_for", [s.value for s in OptimizationStrategy])
        max_results = _require_int(arguments, "max_results", 20, 1, MAX_RESULTS_LIMIT)
        include_alternatives = _require_bool(arguments, "include_alternatives", True)
        explain_mapping = _require_bool(arguments, "explain_mapping", True)
        test_query = _require_bool(arguments, "test_query", True)
        budget = self._price_budget(arguments.get("price_budget"))

        options = BuildOptions(
            optimize_for=OptimizationStrategy(strategy or OptimizationStrategy.PRECISION.value),
            format=fmt,
            max_results=max_results,
            price_budget=budget,
        )
        parsed = self._parser.parse(
            text,
            QueryContext(
                target_format=fmt,
                optimization_strategy=options.optimize_for,
                max_results=max_results,
            ),
        )

        if parsed.confidence < self.config.low_confidence_threshold:
            return self._low_confidence(text, parsed)

        builder = QueryBuilder(self._mapper, self._client if test_query else None)
        result = await builder.build(parsed, options)

        response: dict[str, Any] = {
            "query": result.query,
            "parse_confidence": round(parsed.confidence, 3),
            "build_confidence": round(result.confidence, 3),
            "ambiguities": [a.description for a in parsed.ambiguities],
            "optimizations": [o.to_dict() for o in result.optimizations],
        }
        if explain_mapping:
            response["explanation"] = result.explanation
            response["understood"] = parsed.summary()
        if include_alternatives:
            response["alternatives"] = [a.to_dict() for a in result.alternatives]
        if test_query and result.query:
            response["test"] = await self._test_query(result.query, max_results)

        response["usage"] = {
            "tool": "search_cards",
            "arguments": {"query": result.query, "limit": max_results},
        }
        return response

    @staticmethod
    def _price_budget(value: Any) -> PriceBudget | None:
        if value is None:
            return None
        if not isinstance(value, dict):
            raise ToolArgumentError("'price_budget' must be an object with 'max' and 'currency'")

        maximum = value.get("max")
        if isinstance(maximum, bool) or not isinstance(maximum, (int, float)) or maximum < 0:
            raise ToolArgumentError("'price_budget.max' must be a number >= 0")

        currency = value.get("currency", Currency.USD.value)
        if currency not in [c.value for c in Currency]:
            raise ToolArgumentError(
                f"Unsupported currency: {currency!r}", hint="Use one of: usd, eur, tix"
            )
        return PriceBudget(max=float(maximum), currency=Currency(currency))

    def _low_confidence(self, text: str, parsed: ParsedQuery) -> dict[str, Any]:
        return {
            "query": None,
            "low_confidence": True,
            "message": f"Could not confidently interpret {text!r}",
            "parse_confidence": round(parsed.confidence, 3),
            "understood": parsed.summary(),
            "ambiguities": [a.description for a in parsed.ambiguities],
            "suggestions": SUGGESTIONS,
            "examples": EXAMPLE_QUERIES,
        }

    async def _test_query(self, query: str, max_results: int) -> dict[str, Any]:
        """Run a small live search to show how the query behaves."""
        try:
            result = await self._client.search_cards(query, limit=TEST_SAMPLE_SIZE)
        except ScryfallAPIError as e:
            logger.warning("Query test failed for %r: %s", query, e)
            return {"error": e.message, "hint": "The generated query may still be valid"}

        total = result.get("total_cards", 0)
        if total == 0:
            assessment = "No results found. Consider broadening the search."
        elif total > max_results * 5:
            assessment = f"Many results ({total}). Consider adding constraints."
        else:
            assessment = "Good result count for exploration."

        return {
            "total_cards": total,
            "assessment": assessment,
            "sample": [card.get("name") for card in result.get("data", [])],
        }

    async def _search_cards(self, arguments: dict[str, Any]) -> dict[str, Any]:
        """Search for cards on Scryfall.

        Args:
            arguments: {"query": str, "limit": int, "page": int}

        Returns:
            {"cards": [...], "total_cards": int, "has_more": bool}
        """
        query = arguments.get("query")
        if not isinstance(query, str) or not query.strip():
            raise ToolArgumentError(
                "'query' is required", hint="Try build_scryfall_query to write one"
            )
        limit = _require_int(arguments, "limit", 20, 1, MAX_RESULTS_LIMIT)
        page = _require_int(arguments, "page", 1, 1, None)

        try:
            result = await self._client.search_cards(query, limit=limit, page=page)
        except ScryfallAPIError as e:
            return {**e.to_dict(), "hint": "Check the query syntax at https://scryfall.com/docs/syntax"}

        return {
            "cards": [self._card_summary(card) for card in result.get("data", [])],
            "total_cards": result.get("total_cards", 0),
            "has_more": result.get("has_more", False),
            "page": page,
        }

    @staticmethod
    def _card_summary(card: dict[str, Any]) -> dict[str, Any]:
        prices = card.get("prices") or {}
        return {
            "name": card.get("name"),
            "mana_cost": card.get("mana_cost"),
            "type_line": card.get("type_line"),
            "oracle_text": card.get("oracle_text"),
            "set": card.get("set"),
            "rarity": card.get("rarity"),
            "prices": {k: prices.get(k) for k in ("usd", "eur", "tix")},
            "scryfall_uri": card.get("scryfall_uri"),
        }


def create_server(config: Settings | None = None) -> tuple[Server, QueryBuilderServer]:
    """Create MCP server instance.

    Args:
        config: Optional settings override

    Returns:
        Tuple of (MCP Server, QueryBuilderServer instance for cleanup)
    """
    builder = QueryBuilderServer(config=config)

    # Create low-level MCP server
    server = Server(SERVER_NAME)

    @server.list_tools()
    async def handle_list_tools() -> list[types.Tool]:
        """Return available tools."""
        tools = builder.list_tools()
        return [
            types.Tool(
                name=t.name,
                description=t.description,
                inputSchema=t.inputSchema,
            )
            for t in tools
        ]

    @server.call_tool()
    async def handle_call_tool(
        name: str, arguments: dict[str, Any]
    ) -> list[types.TextContent]:
        """Handle tool execution."""
        result = await builder.call_tool(name, arguments or {})
        return [
            types.TextContent(
                type="text",
                text=json.dumps(result, default=str),
            )
        ]

    return server, builder


async def run_server(config: Settings | None = None) -> None:
    """Run the MCP server over stdio.

    Args:
        config: Optional settings override
    """
    server, builder = create_server(config)

    try:
        async with mcp.server.stdio.stdio_server() as (read_stream, write_stream):
            await server.run(
                read_stream,
                write_stream,
                InitializationOptions(
                    server_name=SERVER_NAME,
                    server_version=__version__,
                    capabilities=server.get_capabilities(
                        notification_options=NotificationOptions(),
                        experimental_capabilities={},
                    ),
                ),
            )
    finally:
        # Ensure cleanup on shutdown
        await builder.cleanup()


if __name__ == "__main__":
    asyncio.run(run_server())
