"""Tests for nutrient aggregator."""
import pytest

from nutrilabel.data_layer.models import BoundIngredient, NutrientProfile, SubRecipeContribution
from nutrilabel.nutrition.aggregator import AggregationResult, NutrientAggregator


def _approx_profile(profile: NutrientProfile):
    return pytest.approx(profile.to_dict())


@pytest.fixture
def flour():
    return BoundIngredient(
        name="flour",
        grams=250.0,
        per_100g=NutrientProfile(calories=364.0, protein=10.3, total_carbohydrate=76.3),
    )


@pytest.fixture
def butter():
    return BoundIngredient(
        name="butter",
        grams=113.0,
        per_100g=NutrientProfile(calories=717.0, total_fat=81.1, sodium=11.0),
    )


class TestContribution:
    """Tests for single-component contributions."""

    def test_ingredient_scaled_by_grams(self, flour):
        result = NutrientAggregator.contribution(flour)

        assert result.calories == pytest.approx(910.0)
        assert result.protein == pytest.approx(25.75)

    def test_yield_factor_applied(self):
        chicken = BoundIngredient(
            name="chicken",
            grams=100.0,
            per_100g=NutrientProfile(calories=120.0),
            yield_factor=0.75,
        )

        assert NutrientAggregator.contribution(chicken).calories == pytest.approx(90.0)
        assert NutrientAggregator.component_grams(chicken) == pytest.approx(75.0)

    def test_sub_recipe_proportional(self):
        salsa = SubRecipeContribution(
            name="salsa",
            total=NutrientProfile(calories=200.0, sodium=400.0),
            total_grams=400.0,
            requested_grams=100.0,
        )

        result = NutrientAggregator.contribution(salsa)

        assert result.calories == pytest.approx(50.0)
        assert result.sodium == pytest.approx(100.0)
        assert NutrientAggregator.component_grams(salsa) == 100.0

    def test_weightless_sub_recipe_contributes_nothing(self):
        empty = SubRecipeContribution(
            name="empty",
            total=NutrientProfile(calories=200.0),
            total_grams=0.0,
            requested_grams=100.0,
        )

        assert NutrientAggregator.contribution(empty) == NutrientProfile()


class TestAggregate:
    """Tests for NutrientAggregator.aggregate()."""

    def test_aggregate_two_ingredients(self, flour, butter):
        result = NutrientAggregator().aggregate([flour, butter])

        assert result.total.calories == pytest.approx(910.0 + 810.21)
        assert result.total.total_fat == pytest.approx(91.643)
        assert result.total_grams == pytest.approx(363.0)
        assert result.warnings == []

    def test_running_totals(self, flour, butter):
        result = NutrientAggregator().aggregate([flour, butter])

        assert len(result.running_totals) == 2
        assert result.running_totals[0].to_dict() == _approx_profile(NutrientAggregator.contribution(flour))
        assert result.running_totals[-1] == result.total

    def test_additivity(self, flour, butter):
        """Test [A, B] at once equals [A] then adding B separately."""
        aggregator = NutrientAggregator()

        direct = aggregator.aggregate([flour, butter])
        stepwise = aggregator.add_contribution(aggregator.aggregate([flour]), butter)

        assert stepwise.total.to_dict() == _approx_profile(direct.total)
        assert stepwise.total_grams == pytest.approx(direct.total_grams)

    def test_empty(self):
        result = NutrientAggregator().aggregate([])

        assert result.total == NutrientProfile()
        assert result.running_totals == []
        assert result.total_grams == 0.0

    def test_weightless_sub_recipe_warns(self, flour):
        empty = SubRecipeContribution(
            name="glaze",
            total=NutrientProfile(calories=50.0),
            total_grams=0.0,
            requested_grams=20.0,
        )

        result = NutrientAggregator().aggregate([flour, empty])

        assert result.total.calories == pytest.approx(910.0)
        assert len(result.warnings) == 1
        assert "glaze" in result.warnings[0]

    def test_add_contribution_returns_same_result(self, flour):
        result = AggregationResult()

        returned = NutrientAggregator().add_contribution(result, flour)

        assert returned is result
        assert result.total.calories == pytest.approx(910.0)
