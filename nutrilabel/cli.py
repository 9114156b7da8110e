#!/usr/bin/env python3
"""Command-line interface for recipe parsing and nutrition labels."""

import argparse
import json
import sys
from pathlib import Path
from typing import List, Optional

from nutrilabel.config import configure_logging, load_settings
from nutrilabel.ingestion.recipe_parser import WARNING_PREFIX, parse_recipe_text
from nutrilabel.ingestion.unit_converter import UnitConverter
from nutrilabel.ingestion.usda_client import USDAClient, USDALookupError
from nutrilabel.nutrition.audit import AuditTrailManager
from nutrilabel.nutrition.calculator import LabelCalculator, bind_best_candidates
from nutrilabel.output.label_formatter import format_label_json_string, format_label_markdown
from nutrilabel.providers.ingredient_lookup import StaticIngredientLookup


class _USDAVariantLookup(StaticIngredientLookup):
    """Searches USDA with fallback variants, once per ingredient."""

    def __init__(self, client: USDAClient) -> None:
        super().__init__({})
        self._client = client

    def search(self, query: str):
        key = (query or "").strip().lower()
        if key not in self._table:
            self._table[key] = self._client.search_with_variants(query)
        return list(self._table[key])


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Parse recipes and compute FDA-rounded nutrition labels"
    )
    parser.add_argument(
        "--config",
        type=str,
        help="Path to settings YAML (default: $NUTRILABEL_CONFIG or config/label_settings.yaml)"
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    parse_cmd = subparsers.add_parser("parse", help="Parse recipe text and print the structure as JSON")
    parse_cmd.add_argument("recipe_file", type=str, help="Recipe text file (dish name on the first line)")

    label_cmd = subparsers.add_parser("label", help="Compute a nutrition label for a recipe")
    label_cmd.add_argument("recipe_file", type=str, help="Recipe text file (dish name on the first line)")
    source = label_cmd.add_mutually_exclusive_group(required=True)
    source.add_argument(
        "--candidates",
        type=str,
        help="JSON file mapping ingredient text to candidate lists"
    )
    source.add_argument(
        "--usda",
        action="store_true",
        help="Search USDA FoodData Central (requires USDA_API_KEY)"
    )
    label_cmd.add_argument("--json", action="store_true", help="Print JSON instead of Markdown")
    label_cmd.add_argument(
        "--output-file",
        type=str,
        help="Optional file path to save output (default: print to stdout)"
    )
    return parser


def _read_recipe(path_str: str) -> str:
    path = Path(path_str)
    if not path.exists():
        print(f"Error: Recipe file not found: {path}", file=sys.stderr)
        sys.exit(1)
    return path.read_text(encoding="utf-8")


def _print_parse_messages(errors: List[str]) -> None:
    for message in errors:
        prefix = "" if message.startswith(WARNING_PREFIX) else "Parse issue: "
        print(f"   - {prefix}{message}", file=sys.stderr)


def main(argv: Optional[List[str]] = None) -> None:
    """Main CLI entry point."""
    args = build_parser().parse_args(argv)

    try:
        settings = load_settings(args.config)
    except (OSError, ValueError) as e:
        print(f"Error: Could not load settings: {e}", file=sys.stderr)
        sys.exit(1)
    configure_logging(settings.log_level)

    parsed = parse_recipe_text(_read_recipe(args.recipe_file))

    if args.command == "parse":
        print(json.dumps(parsed.to_dict(), indent=2))
        _print_parse_messages(parsed.errors)
        return

    if not parsed.final_dish.ingredients:
        print("Error: Recipe has no ingredients", file=sys.stderr)
        _print_parse_messages(parsed.errors)
        sys.exit(2)

    if args.usda:
        try:
            lookup = _USDAVariantLookup(USDAClient.from_env(page_size=settings.usda_page_size))
        except ValueError as e:
            print("Failed to initialize ingredient API:", file=sys.stderr)
            print(str(e), file=sys.stderr)
            sys.exit(3)
    else:
        candidates_path = Path(args.candidates)
        if not candidates_path.exists():
            print(f"Error: Candidates file not found: {candidates_path}", file=sys.stderr)
            sys.exit(1)
        try:
            lookup = StaticIngredientLookup.from_json(candidates_path)
        except ValueError as e:
            print(f"Error: Could not read candidates file: {e}", file=sys.stderr)
            sys.exit(1)

    try:
        bindings = bind_best_candidates(parsed, lookup)
    except USDALookupError as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(3)

    calculator = LabelCalculator(
        converter=UnitConverter(settings.default_grams_per_unit),
        serving_size_g=settings.serving_size_g,
    )
    dish = calculator.calculate(parsed, bindings)
    label = AuditTrailManager(
        tolerance_percent=settings.tolerance_percent,
        tolerance_floor=settings.tolerance_floor,
    ).initialize(dish.per_serving)

    if args.json:
        output = format_label_json_string(label, dish=dish)
    else:
        output = format_label_markdown(label, dish=dish)

    if args.output_file:
        output_path = Path(args.output_file)
        output_path.write_text(output)
        print(f"Label saved to {output_path}", file=sys.stderr)
    else:
        print(output)

    if parsed.errors:
        print("\n⚠️  Recipe parsed with warnings:", file=sys.stderr)
        _print_parse_messages(parsed.errors)


if __name__ == "__main__":
    main()
