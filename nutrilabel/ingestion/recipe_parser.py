"""Recipe text parser with sub-recipe detection.

Parses free text where the first line is the dish name and every further
line is one ingredient statement. A line whose ingredient carries a
parenthetical list is a sub-recipe:

    Chicken Tacos
    2 cups shredded chicken
    1 cup salsa verde (1/2 cup tomatillos, 1/4 cup onions, 2 tbsp cilantro)
    8 corn tortillas

yields a final dish with three entries, the second one referencing a
sub-recipe "salsa verde" with three ingredients.

DESIGN DECISIONS:
- No line ever raises: it is parsed, or reported in errors and skipped
- Warnings (missing unit, nested parentheses, duplicate names) share the
  errors list with hard failures, prefixed so callers can tell them apart
- Sub-recipe detection is one level deep; the contents of a parenthetical
  are parsed as plain ingredient lines
"""

import logging
import math
import re
from typing import List, Optional, Tuple

from nutrilabel.data_layer.models import (
    ITEM_UNIT,
    FinalDishIngredient,
    ParsedFinalDish,
    ParsedIngredientLine,
    ParsedSubRecipe,
    SmartParseResult,
)

logger = logging.getLogger(__name__)

MAX_QUANTITY = 1_000_000.0
MAX_INGREDIENT_LENGTH = 255

WARNING_PREFIX = "Warning: "
ERROR_PREFIX = "Error: "

UNICODE_FRACTIONS = {
    "¼": "1/4", "½": "1/2", "¾": "3/4",
    "⅓": "1/3", "⅔": "2/3",
    "⅕": "1/5", "⅖": "2/5", "⅗": "3/5", "⅘": "4/5",
    "⅙": "1/6", "⅚": "5/6",
    "⅛": "1/8", "⅜": "3/8", "⅝": "5/8", "⅞": "7/8",
}

_PRIVATE_USE_BULLETS = re.compile(r"^[\uE000-\uF8FF]+\s*")
_BULLETS = re.compile(r"^[\u2022\u2023\u25E6\u2043\u2219\-*+\u25CB\u25CF\u25AA\u25AB\u25A0\u25A1\u2192\u203A\u00BB]\s*")
_LIST_NUMBERING = re.compile(r"^\d+[.)]\s+")
_EXOTIC_SPACE = r"[\s\u00A0\u1680\u2000-\u200B\u202F\u205F\u3000\uFEFF]"
_EDGE_SPACE = re.compile("^" + _EXOTIC_SPACE + "+|" + _EXOTIC_SPACE + "+$")

# quantity + unit + ingredient: "2 cups flour", "1 1/2 tsp salt"
_WITH_UNIT = re.compile(r"^([\d/.\s]+?)\s+([a-zA-Z]+)\s+(.+)$")
# unit attached to the number: "200g flour"
_ATTACHED_UNIT = re.compile(r"^(\d+(?:\.\d+)?)([a-zA-Z]+)\s+(.+)$")
# quantity + ingredient: "3 eggs"
_NO_UNIT = re.compile(r"^([\d/.\s]+?)\s+(.+)$")
# <qty>? <unit>? <name> (<list>)
_SUB_RECIPE = re.compile(r"^\s*([\d\s/.]+)?\s*(?:([a-zA-Z]+)\s+)?([^(]+?)\s*\((.*)\)\s*$")


def parse_quantity(text: Optional[str]) -> float:
    """Parse "2", "0.5", "1/2" or "1 1/2" into a float.

    Terms are summed. Invalid fractions count as 1, unparseable terms as 0.
    The result is forced into (0, MAX_QUANTITY]; anything else becomes 1.
    """
    if not text or not text.strip():
        return 1.0

    total = 0.0
    for part in text.split():
        if "/" in part:
            numerator, _, denominator = part.partition("/")
            try:
                num = float(numerator)
                den = float(denominator)
            except ValueError:
                total += 1.0
                continue
            if den == 0:
                total += 1.0
                continue
            total += num / den
        else:
            try:
                total += float(part)
            except ValueError:
                continue

    if math.isnan(total) or math.isinf(total) or total <= 0:
        return 1.0
    return min(total, MAX_QUANTITY)


def _clean_line(line: str) -> str:
    """Strip bullets, list numbering and exotic whitespace; expand fractions."""
    cleaned = line.strip()
    cleaned = _PRIVATE_USE_BULLETS.sub("", cleaned)
    cleaned = _BULLETS.sub("", cleaned)
    cleaned = _LIST_NUMBERING.sub("", cleaned)
    cleaned = _EDGE_SPACE.sub("", cleaned)
    # "1½" -> "1 1/2"
    for glyph, ascii_fraction in UNICODE_FRACTIONS.items():
        cleaned = re.sub(r"(\d)" + glyph, r"\1 " + ascii_fraction, cleaned)
        cleaned = cleaned.replace(glyph, ascii_fraction)
    return cleaned


class RecipeTextParser:
    """Parser for multi-line recipe text into a final dish and sub-recipes."""

    def parse_ingredient_line(self, line: str) -> Optional[ParsedIngredientLine]:
        """Parse one ingredient statement.

        Args:
            line: Raw line (e.g., "1 1/2 cups flour", "- 3 eggs", "salt")

        Returns:
            ParsedIngredientLine, or None when nothing is left after cleaning
        """
        cleaned = _clean_line(line or "")
        if not cleaned:
            return None

        quantity, unit, name = self._split_statement(cleaned)
        if not name:
            return None

        return ParsedIngredientLine(
            ingredient=name[:MAX_INGREDIENT_LENGTH],
            quantity=quantity,
            unit=unit,
            original_line=line.strip(),
        )

    def _split_statement(self, text: str) -> Tuple[float, str, str]:
        match = _WITH_UNIT.match(text)
        if match and _has_digit(match.group(1)):
            return parse_quantity(match.group(1)), match.group(2), match.group(3).strip()

        match = _ATTACHED_UNIT.match(text)
        if match:
            return parse_quantity(match.group(1)), match.group(2), match.group(3).strip()

        match = _NO_UNIT.match(text)
        if match and _has_digit(match.group(1)):
            return parse_quantity(match.group(1)), ITEM_UNIT, match.group(2).strip()

        return 1.0, ITEM_UNIT, text.strip()

    def detect_sub_recipe(self, line: str) -> Optional[Tuple[float, str, str, str]]:
        """Match "<qty>? <unit>? <name> (<ingredient list>)".

        Returns:
            (quantity, unit, name, ingredient list text) or None
        """
        match = _SUB_RECIPE.match(line)
        if not match:
            return None

        quantity_text, unit, name, contents = match.groups()
        name = name.strip()
        if not name:
            return None
        if quantity_text is not None and not _has_digit(quantity_text):
            quantity_text = None
        if quantity_text is None and unit:
            # "salsa verde (..)": the first word is part of the name, not a unit
            name = f"{unit} {name}"
            unit = None

        return parse_quantity(quantity_text), unit or ITEM_UNIT, name, contents.strip()

    def parse(self, recipe_text: str) -> SmartParseResult:
        """Parse a complete recipe.

        Args:
            recipe_text: Dish name on the first line, ingredients after it

        Returns:
            SmartParseResult with final dish, sub-recipes and errors
        """
        lines = [line.strip() for line in (recipe_text or "").split("\n")]
        lines = [line for line in lines if line]
        errors: List[str] = []

        if not lines:
            errors.append("Recipe text is empty")
            return SmartParseResult(final_dish=ParsedFinalDish(name=""), errors=errors)

        dish_name = lines[0]
        if len(lines) == 1:
            errors.append(
                "Recipe must have at least one ingredient. "
                "Add ingredients on separate lines after the recipe name."
            )
            return SmartParseResult(final_dish=ParsedFinalDish(name=dish_name), errors=errors)

        sub_recipes: List[ParsedSubRecipe] = []
        entries: List[FinalDishIngredient] = []

        for line in lines[1:]:
            opening = line.count("(")
            closing = line.count(")")
            if opening != closing:
                errors.append(
                    f'{ERROR_PREFIX}Line "{line}" has unbalanced parentheses '
                    f"({opening} opening, {closing} closing)."
                )
                continue

            detected = self.detect_sub_recipe(line) if opening else None
            if detected:
                entry = self._parse_sub_recipe_line(line, detected, sub_recipes, errors)
                if entry is not None:
                    entries.append(entry)
                continue

            parsed = self.parse_ingredient_line(line)
            if parsed is None:
                errors.append(f'Failed to parse ingredient: "{line}"')
                continue

            if parsed.unit == ITEM_UNIT and "item" not in line.lower():
                errors.append(
                    f'{WARNING_PREFIX}"{parsed.ingredient}" has no unit specified. '
                    f'Defaulting to "{ITEM_UNIT}" which may affect nutrition calculations.'
                )

            entries.append(FinalDishIngredient(
                ingredient=parsed.ingredient,
                quantity=parsed.quantity,
                unit=parsed.unit,
                original_line=line,
                is_sub_recipe=False,
            ))

        if errors:
            logger.debug("Parsed recipe %r with %d issue(s)", dish_name, len(errors))

        return SmartParseResult(
            final_dish=ParsedFinalDish(name=dish_name, ingredients=entries),
            sub_recipes=sub_recipes,
            errors=errors,
        )

    def _parse_sub_recipe_line(
        self,
        line: str,
        detected: Tuple[float, str, str, str],
        sub_recipes: List[ParsedSubRecipe],
        errors: List[str]
    ) -> Optional[FinalDishIngredient]:
        quantity, unit, name, contents = detected

        if not contents:
            errors.append(
                f'{ERROR_PREFIX}"{name}" has empty parentheses. '
                "Sub-recipes must list their ingredients inside parentheses."
            )
            return None

        if "(" in contents or ")" in contents:
            errors.append(
                f'{WARNING_PREFIX}"{name}" contains nested parentheses. Only the '
                "outermost level is supported; inner parentheses are treated as text."
            )

        ingredients: List[ParsedIngredientLine] = []
        for piece in _split_top_level(contents):
            parsed = self.parse_ingredient_line(piece)
            if parsed is None:
                errors.append(f'Failed to parse sub-recipe ingredient: "{piece}"')
                continue
            parsed.original_line = piece
            ingredients.append(parsed)

        sub_recipe = ParsedSubRecipe(
            name=name,
            ingredients=ingredients,
            quantity_in_final_dish=quantity,
            unit_in_final_dish=unit,
        )

        if any(s.name.lower() == name.lower() for s in sub_recipes):
            errors.append(
                f'{WARNING_PREFIX}Duplicate sub-recipe name "{name}". '
                "Each sub-recipe is kept separately."
            )
        sub_recipes.append(sub_recipe)

        return FinalDishIngredient(
            ingredient=name,
            quantity=quantity,
            unit=unit,
            original_line=line,
            is_sub_recipe=True,
            sub_recipe_data=sub_recipe,
        )


def _has_digit(text: Optional[str]) -> bool:
    return bool(text) and any(ch.isdigit() for ch in text)


def _split_top_level(contents: str) -> List[str]:
    """Split on commas outside nested parentheses; empty pieces dropped."""
    pieces: List[str] = []
    depth = 0
    current = []
    for ch in contents:
        if ch == "(":
            depth += 1
        elif ch == ")":
            depth = max(0, depth - 1)
        if ch == "," and depth == 0:
            pieces.append("".join(current))
            current = []
        else:
            current.append(ch)
    pieces.append("".join(current))
    return [p.strip() for p in pieces if p.strip()]


def parse_recipe_text(recipe_text: str) -> SmartParseResult:
    """Parse with a default RecipeTextParser."""
    return RecipeTextParser().parse(recipe_text)
