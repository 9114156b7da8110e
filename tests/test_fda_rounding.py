"""Tests for FDA label rounding."""
import pytest

from nutrilabel.data_layer.models import NutrientProfile
from nutrilabel.output.fda_rounding import (
    LABEL_FIELDS,
    percent_daily_value,
    round_profile,
    round_to_increment,
    round_value,
)


class TestRoundToIncrement:
    """Tests for half-up rounding."""

    def test_half_rounds_up(self):
        assert round_to_increment(2.5, 1) == 3.0
        assert round_to_increment(0.15, 0.1) == pytest.approx(0.2)
        assert round_to_increment(2.25, 0.5) == 2.5

    def test_below_half_rounds_down(self):
        assert round_to_increment(47, 5) == 45.0


class TestRoundValue:
    """Tests for per-nutrient label rules."""

    @pytest.mark.parametrize("value,expected", [
        (4.9, "0"),
        (47, "45"),
        (47.5, "50"),
        (52, "50"),
        (55, "60"),
        (367.76, "370"),
    ])
    def test_calories(self, value, expected):
        assert round_value("calories", value) == expected

    @pytest.mark.parametrize("value,expected", [
        (0.4, "0g"),
        (2.3, "2.5g"),
        (2.25, "2.5g"),
        (4.9, "5g"),
        (7.5, "8g"),
    ])
    def test_fat(self, value, expected):
        assert round_value("total_fat", value) == expected
        assert round_value("saturated_fat", value) == expected

    @pytest.mark.parametrize("value,expected", [
        (1.9, "0mg"),
        (3, "less than 5mg"),
        (12, "10mg"),
        (12.5, "15mg"),
    ])
    def test_cholesterol(self, value, expected):
        assert round_value("cholesterol", value) == expected

    @pytest.mark.parametrize("value,expected", [
        (4, "0mg"),
        (138, "140mg"),
        (141, "140mg"),
        (146, "150mg"),
    ])
    def test_sodium(self, value, expected):
        assert round_value("sodium", value) == expected

    @pytest.mark.parametrize("value,expected", [
        (0.4, "0g"),
        (0.7, "less than 1g"),
        (2.5, "3g"),
        (25.75, "26g"),
    ])
    def test_carbohydrate_family(self, value, expected):
        assert round_value("total_carbohydrate", value) == expected
        assert round_value("protein", value) == expected

    def test_micronutrients(self):
        assert round_value("vitamin_d", 1.25) == "1.3mcg"
        assert round_value("calcium", 125) == "130mg"
        assert round_value("iron", 0.04) == "0mg"
        assert round_value("potassium", 146) == "150mg"

    def test_none_treated_as_zero(self):
        assert round_value("calories", None) == "0"

    def test_non_label_field_raises(self):
        with pytest.raises(KeyError):
            round_value("vitamin_c", 10)


class TestPercentDailyValue:
    """Tests for %DV strings."""

    def test_macronutrients_whole_percent(self):
        assert percent_daily_value("total_fat", 10) == "13%"
        assert percent_daily_value("protein", 25) == "50%"

    @pytest.mark.parametrize("field,value,expected", [
        ("vitamin_d", 0.3, "0%"),
        ("iron", 1.5, "8%"),
        ("calcium", 400, "30%"),
        ("iron", 9, "50%"),
        ("potassium", 3500, "70%"),
    ])
    def test_micronutrient_increments(self, field, value, expected):
        assert percent_daily_value(field, value) == expected

    def test_no_daily_value(self):
        assert percent_daily_value("calories", 200) is None
        assert percent_daily_value("total_sugars", 10) is None


class TestRoundProfile:
    """Tests for round_profile()."""

    def test_label_order_and_names(self):
        lines = round_profile(NutrientProfile())

        assert list(lines) == list(LABEL_FIELDS)
        assert lines["total_fat"].label == "Total Fat"

    def test_rounded_lines(self):
        lines = round_profile(NutrientProfile(calories=367.76, total_fat=10.0, sodium=141.0))

        assert lines["calories"].display == "370"
        assert lines["calories"].percent_dv is None
        assert lines["total_fat"].display == "10g"
        assert lines["total_fat"].percent_dv == "13%"
        assert lines["sodium"].to_dict() == {
            "field": "sodium",
            "label": "Sodium",
            "display": "140mg",
            "percent_dv": "6%",
        }
