"""Label calculator: parsed recipe + confirmed candidates → dish nutrition."""
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Sequence

from nutrilabel.data_layer.models import (
    BoundIngredient,
    FoodCandidate,
    NutrientProfile,
    ParsedIngredientLine,
    SmartParseResult,
    SubRecipeContribution,
)
from nutrilabel.ingestion.unit_converter import UnitConverter
from nutrilabel.nutrition.aggregator import Component, NutrientAggregator
from nutrilabel.providers.ingredient_lookup import IngredientLookup
from nutrilabel.scoring.candidate_scorer import CandidateScorer

logger = logging.getLogger(__name__)

DEFAULT_SERVING_SIZE_G = 100.0


@dataclass
class IngredientBinding:
    """The database candidate a user confirmed for one ingredient."""
    candidate: FoodCandidate
    custom_grams_per_unit: Optional[float] = None
    yield_factor: float = 1.0


@dataclass
class ComponentLine:
    """How one recipe line was turned into grams."""
    name: str
    quantity: float
    unit: str
    grams: float
    tier: str  # ConversionTier value, "sub_recipe" for a nested recipe
    is_estimate: bool = False
    is_sub_recipe: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "quantity": self.quantity,
            "unit": self.unit,
            "grams": self.grams,
            "tier": self.tier,
            "is_estimate": self.is_estimate,
            "is_sub_recipe": self.is_sub_recipe,
        }


@dataclass
class DishNutrition:
    """Computed nutrition for a final dish.

    Attributes:
        name: Dish name (first recipe line)
        total: Whole-dish nutrients
        per_serving: total / servings_per_container
        total_grams: Weight of the dish
        serving_size_g: total_grams / servings_per_container
        servings_per_container: max(1, round(total_grams / serving size))
        running_totals: Cumulative totals, one per final-dish component
        sub_recipes: Sub-recipe usage, in final-dish order
        components: Gram resolution for every final-dish line
        warnings: Unbound ingredients and estimated conversions
    """
    name: str
    total: NutrientProfile
    per_serving: NutrientProfile
    total_grams: float
    serving_size_g: float
    servings_per_container: int
    running_totals: List[NutrientProfile] = field(default_factory=list)
    sub_recipes: List[SubRecipeContribution] = field(default_factory=list)
    components: List[ComponentLine] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "total": self.total.to_dict(),
            "per_serving": self.per_serving.to_dict(),
            "total_grams": self.total_grams,
            "serving_size_g": self.serving_size_g,
            "servings_per_container": self.servings_per_container,
            "sub_recipes": [
                {
                    "name": s.name,
                    "total_grams": s.total_grams,
                    "requested_grams": s.requested_grams,
                }
                for s in self.sub_recipes
            ],
            "components": [c.to_dict() for c in self.components],
            "warnings": list(self.warnings),
        }


class LabelCalculator:
    """Calculator for dish nutrition from a parsed recipe.

    Sub-recipes are aggregated first, on their own weight. The final dish
    then uses each one through a SubRecipeContribution whose requested
    grams come from the quantity written on the final-dish line.

    Usage:
        calculator = LabelCalculator()
        parsed = parse_recipe_text(text)
        dish = calculator.calculate(parsed, {
            "flour": IngredientBinding(candidate=flour_candidate),
        })
        print(dish.per_serving.calories)
    """

    def __init__(
        self,
        converter: Optional[UnitConverter] = None,
        aggregator: Optional[NutrientAggregator] = None,
        serving_size_g: float = DEFAULT_SERVING_SIZE_G
    ):
        """Initialize calculator.

        Args:
            converter: UnitConverter (default: 50 g fallback)
            aggregator: NutrientAggregator
            serving_size_g: Reference serving weight used to derive servings

        Raises:
            ValueError: If serving_size_g is not positive
        """
        if serving_size_g <= 0:
            raise ValueError(f"Invalid serving_size_g: {serving_size_g}. Must be positive.")
        self.converter = converter or UnitConverter()
        self.aggregator = aggregator or NutrientAggregator()
        self.serving_size_g = serving_size_g

    def calculate(
        self,
        parse_result: SmartParseResult,
        bindings: Mapping[str, IngredientBinding]
    ) -> DishNutrition:
        """Compute nutrition for the final dish of a parse result.

        Args:
            parse_result: Output of RecipeTextParser.parse()
            bindings: Confirmed candidates keyed by ingredient text

        Returns:
            DishNutrition; unbound ingredients are skipped with a warning
        """
        warnings: List[str] = []
        lookup = _normalize_bindings(bindings)

        sub_totals: Dict[int, SubRecipeContribution] = {}
        for sub_recipe in parse_result.sub_recipes:
            components, _ = self._bind_lines(sub_recipe.ingredients, lookup, warnings)
            result = self.aggregator.aggregate(components)
            warnings.extend(result.warnings)
            sub_totals[id(sub_recipe)] = SubRecipeContribution(
                name=sub_recipe.name,
                total=result.total,
                total_grams=result.total_grams,
                requested_grams=0.0,
            )

        final_components: List[Component] = []
        lines: List[ComponentLine] = []
        used_sub_recipes: List[SubRecipeContribution] = []

        for entry in parse_result.final_dish.ingredients:
            if entry.is_sub_recipe and entry.sub_recipe_data is not None:
                computed = sub_totals.get(id(entry.sub_recipe_data))
                if computed is None:
                    warnings.append(f"Sub-recipe '{entry.ingredient}' was not parsed; skipped")
                    continue
                conversion = self.converter.to_grams(entry.quantity, entry.unit, entry.ingredient)
                if conversion.warning:
                    warnings.append(conversion.warning)
                usage = SubRecipeContribution(
                    name=computed.name,
                    total=computed.total,
                    total_grams=computed.total_grams,
                    requested_grams=conversion.grams,
                )
                final_components.append(usage)
                used_sub_recipes.append(usage)
                lines.append(ComponentLine(
                    name=entry.ingredient,
                    quantity=entry.quantity,
                    unit=entry.unit,
                    grams=conversion.grams,
                    tier="sub_recipe",
                    is_estimate=conversion.is_estimate,
                    is_sub_recipe=True,
                ))
                continue

            components, entry_lines = self._bind_lines([entry], lookup, warnings)
            final_components.extend(components)
            lines.extend(entry_lines)

        result = self.aggregator.aggregate(final_components)
        warnings.extend(result.warnings)

        servings = max(1, int(_round_half_up(result.total_grams / self.serving_size_g)))
        per_serving = result.total.scale(1.0 / servings)

        return DishNutrition(
            name=parse_result.final_dish.name,
            total=result.total,
            per_serving=per_serving,
            total_grams=result.total_grams,
            serving_size_g=result.total_grams / servings,
            servings_per_container=servings,
            running_totals=result.running_totals,
            sub_recipes=used_sub_recipes,
            components=lines,
            warnings=warnings,
        )

    def _bind_lines(
        self,
        lines: Sequence[ParsedIngredientLine],
        lookup: Dict[str, IngredientBinding],
        warnings: List[str]
    ):
        components: List[Component] = []
        component_lines: List[ComponentLine] = []

        for line in lines:
            binding = lookup.get(line.ingredient.strip().lower())
            if binding is None:
                message = f"No confirmed match for '{line.ingredient}'; skipped"
                logger.info(message)
                warnings.append(message)
                continue

            conversion = self.converter.to_grams(
                line.quantity,
                line.unit,
                line.ingredient,
                custom_grams_per_unit=binding.custom_grams_per_unit,
                portions=binding.candidate.portions,
            )
            if conversion.warning:
                warnings.append(conversion.warning)

            components.append(BoundIngredient(
                name=line.ingredient,
                grams=conversion.grams,
                per_100g=binding.candidate.nutrients_per_100g,
                yield_factor=binding.yield_factor,
            ))
            component_lines.append(ComponentLine(
                name=line.ingredient,
                quantity=line.quantity,
                unit=line.unit,
                grams=conversion.grams,
                tier=conversion.tier.value,
                is_estimate=conversion.is_estimate,
            ))

        return components, component_lines


def _normalize_bindings(bindings: Mapping[str, IngredientBinding]) -> Dict[str, IngredientBinding]:
    return {key.strip().lower(): binding for key, binding in bindings.items()}


def _round_half_up(value: float) -> float:
    return float(int(value + 0.5)) if value >= 0 else -float(int(-value + 0.5))


def ingredient_names(parse_result: SmartParseResult) -> List[str]:
    """Unique ingredient names needing a database match, in recipe order."""
    names: List[str] = []
    for sub_recipe in parse_result.sub_recipes:
        for line in sub_recipe.ingredients:
            if line.ingredient not in names:
                names.append(line.ingredient)
    for entry in parse_result.final_dish.ingredients:
        if not entry.is_sub_recipe and entry.ingredient not in names:
            names.append(entry.ingredient)
    return names


def bind_best_candidates(
    parse_result: SmartParseResult,
    lookup: IngredientLookup,
    scorer: Optional[CandidateScorer] = None
) -> Dict[str, IngredientBinding]:
    """Bind every ingredient to its highest-scoring candidate.

    Ingredients the lookup returns nothing for are left unbound; the
    calculator reports them as warnings.
    """
    scorer = scorer or CandidateScorer()
    bindings: Dict[str, IngredientBinding] = {}
    for name in ingredient_names(parse_result):
        best = scorer.select_best(name, lookup.search(name))
        if best is None:
            logger.info("No candidates for %r", name)
            continue
        logger.debug(
            "Bound %r to %r (score %d)",
            name, best.candidate.description, best.breakdown.final_score
        )
        bindings[name] = IngredientBinding(candidate=best.candidate)
    return bindings
