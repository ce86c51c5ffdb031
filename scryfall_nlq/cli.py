"""CLI for compiling natural language card requests into Scryfall queries."""

import argparse
import asyncio
import json
import logging
import sys

from scryfall_nlq.concept_mapper import ConceptMapper
from scryfall_nlq.models import (
    BuildOptions,
    Currency,
    OptimizationStrategy,
    PriceBudget,
)
from scryfall_nlq.nl_parser import NaturalLanguageParser
from scryfall_nlq.query_builder import QueryBuilder
from scryfall_nlq.scryfall_client import ScryfallClient
from scryfall_nlq.server import FORMATS, run_server


def configure_logging(verbose: bool) -> None:
    """Log to stderr so stdout stays clean for output and the stdio transport."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )


def show_parse(text: str, as_json: bool = False) -> None:
    """Print the concepts and resolved mappings for a request."""
    parsed = NaturalLanguageParser().parse(text)
    mappings = ConceptMapper().extract_mappings(parsed)

    if as_json:
        print(json.dumps(
            {
                "normalized": parsed.normalized_text,
                "confidence": round(parsed.confidence, 3),
                "understood": parsed.summary(),
                "ambiguities": [a.description for a in parsed.ambiguities],
                "mappings": [m.render() for m in mappings],
            },
            indent=2,
        ))
        return

    print(f"Input:      {parsed.normalized_text}")
    print(f"Confidence: {parsed.confidence:.0%}")
    print("-" * 40)

    summary = parsed.summary()
    if not summary:
        print("  Nothing recognized.")
    for category, values in summary.items():
        print(f"  {category.capitalize():<10} {', '.join(values)}")

    for ambiguity in parsed.ambiguities:
        print(f"  Ambiguous: {ambiguity.description} ({', '.join(ambiguity.alternatives)})")

    if mappings:
        print()
        print("Mappings:")
        for mapping in mappings:
            print(f"  {mapping.render():<24} priority {mapping.priority}, "
                  f"confidence {mapping.confidence:.2f}")


async def build_query(
    text: str,
    options: BuildOptions,
    offline: bool = False,
    as_json: bool = False,
) -> None:
    """Build a query, refining it against Scryfall unless offline."""
    parsed = NaturalLanguageParser().parse(text)
    client = None if offline else ScryfallClient()

    try:
        result = await QueryBuilder(ConceptMapper(), client).build(parsed, options)
    finally:
        if client is not None:
            await client.close()

    if as_json:
        print(json.dumps(result.to_dict(), indent=2))
        return

    if not result.query:
        print("Could not build a query from that description.")
        print(f"  Confidence: {result.confidence:.0%}")
        return

    print(result.query)
    print()
    print(f"  Explanation: {result.explanation}")
    print(f"  Confidence:  {result.confidence:.0%}")

    for optimization in result.optimizations:
        print(f"  {optimization.type.capitalize()}: {optimization.reason} ({optimization.change})")

    if result.alternatives:
        print()
        print("Alternatives:")
        for alternative in result.alternatives:
            print(f"  {alternative.query}")
            print(f"      {alternative.description}")


def main(argv: list[str] | None = None) -> None:
    """Main CLI entry point."""
    parser = argparse.ArgumentParser(
        description="Scryfall NLQ - Turn card descriptions into Scryfall queries",
    )

    parser.add_argument(
        "--verbose",
        "-v",
        action="store_true",
        help="Enable debug logging (stderr)",
    )

    subparsers = parser.add_subparsers(dest="command", help="Commands")

    # Parse command
    parse_parser = subparsers.add_parser(
        "parse",
        help="Show what was understood from a description",
    )
    parse_parser.add_argument("text", help="Card description, e.g. 'azorius control'")
    parse_parser.add_argument("--json", action="store_true", help="Print JSON")

    # Build command
    build_parser = subparsers.add_parser(
        "build",
        help="Compile a description into a Scryfall query",
    )
    build_parser.add_argument("text", help="Card description")
    build_parser.add_argument(
        "--format",
        choices=FORMATS,
        help="Restrict the query to a format",
    )
    build_parser.add_argument(
        "--optimize-for",
        choices=[s.value for s in OptimizationStrategy],
        default=OptimizationStrategy.PRECISION.value,
        help="Optimization strategy (default: precision)",
    )
    build_parser.add_argument(
        "--max-results",
        type=int,
        default=20,
        help="Expected result size (default: 20)",
    )
    build_parser.add_argument(
        "--budget",
        type=float,
        help="Maximum price per card when the description names none",
    )
    build_parser.add_argument(
        "--currency",
        choices=[c.value for c in Currency],
        default=Currency.USD.value,
        help="Currency for --budget (default: usd)",
    )
    build_parser.add_argument(
        "--offline",
        action="store_true",
        help="Skip the trial search against Scryfall",
    )
    build_parser.add_argument("--json", action="store_true", help="Print JSON")

    # Serve command
    subparsers.add_parser(
        "serve",
        help="Run the MCP server over stdio",
    )

    args = parser.parse_args(argv)

    configure_logging(args.verbose)

    if args.command == "parse":
        show_parse(args.text, args.json)
    elif args.command == "build":
        if args.max_results < 1:
            parser.error("--max-results must be at least 1")
        if args.budget is not None and args.budget < 0:
            parser.error("--budget must not be negative")
        options = BuildOptions(
            optimize_for=OptimizationStrategy(args.optimize_for),
            format=args.format,
            max_results=args.max_results,
            price_budget=(
                PriceBudget(max=args.budget, currency=Currency(args.currency))
                if args.budget is not None
                else None
            ),
        )
        asyncio.run(build_query(args.text, options, args.offline, args.json))
    elif args.command == "serve":
        asyncio.run(run_server())
    else:
        parser.print_help()


if __name__ == "__main__":
    main()
