"""Nutrient aggregator for summing contributions across a recipe."""
import logging
from dataclasses import dataclass, field
from typing import List, Sequence, Union

from nutrilabel.data_layer.models import BoundIngredient, NutrientProfile, SubRecipeContribution

logger = logging.getLogger(__name__)

Component = Union[BoundIngredient, SubRecipeContribution]


@dataclass
class AggregationResult:
    """Total plus one cumulative snapshot per component, in input order.

    Attributes:
        total: Sum of every contribution
        running_totals: running_totals[i] is the sum of components[0..i]
        total_grams: Weight of everything aggregated (after yield)
        warnings: Components that contributed nothing and why
    """
    total: NutrientProfile = field(default_factory=NutrientProfile)
    running_totals: List[NutrientProfile] = field(default_factory=list)
    total_grams: float = 0.0
    warnings: List[str] = field(default_factory=list)


class NutrientAggregator:
    """Aggregator for combining bound ingredients and sub-recipes."""

    @staticmethod
    def contribution(component: Component) -> NutrientProfile:
        """Absolute nutrients contributed by one component.

        Ingredient: per_100g × grams / 100 × yield_factor.
        Sub-recipe: total × requested_grams / total_grams.
        """
        if isinstance(component, SubRecipeContribution):
            if component.total_grams <= 0:
                return NutrientProfile()
            return component.total.scale(component.requested_grams / component.total_grams)
        return component.per_100g.scale(component.grams / 100.0 * component.yield_factor)

    @staticmethod
    def component_grams(component: Component) -> float:
        if isinstance(component, SubRecipeContribution):
            return component.requested_grams
        return component.grams * component.yield_factor

    def aggregate(self, components: Sequence[Component]) -> AggregationResult:
        """Aggregate components in input order.

        Args:
            components: BoundIngredient and SubRecipeContribution items

        Returns:
            AggregationResult with total and running totals
        """
        result = AggregationResult()
        for component in components:
            self.add_contribution(result, component)
        return result

    def add_contribution(self, result: AggregationResult, component: Component) -> AggregationResult:
        """Extend an existing result by one component (in place).

        Returns:
            The same result, for chaining
        """
        if isinstance(component, SubRecipeContribution) and component.total_grams <= 0:
            message = (
                f"Sub-recipe '{component.name}' has no weight; "
                "it contributes nothing to the total"
            )
            logger.warning(message)
            result.warnings.append(message)

        result.total = result.total + self.contribution(component)
        result.running_totals.append(result.total)
        result.total_grams += self.component_grams(component)
        return result
