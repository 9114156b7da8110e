"""FDA label rounding (21 CFR 101.9).

Pure value → display-string mapping. Nothing here touches the numeric
profile; calculated and audit values stay full precision and only the
printed label is rounded.

Rounding is half-up to the increment ("2.5 g" rounds to "3g", not "2g"),
as the regulation reads, rather than Python's round-half-even.
"""

from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal
from typing import Callable, Dict, Optional

from nutrilabel.data_layer.models import NutrientProfile


# Reference daily values for a 2,000 kcal diet
DAILY_VALUES: Dict[str, float] = {
    "total_fat": 78.0,  # g
    "saturated_fat": 20.0,  # g
    "cholesterol": 300.0,  # mg
    "sodium": 2300.0,  # mg
    "total_carbohydrate": 275.0,  # g
    "dietary_fiber": 28.0,  # g
    "added_sugars": 50.0,  # g
    "protein": 50.0,  # g
    "vitamin_d": 20.0,  # mcg
    "calcium": 1300.0,  # mg
    "iron": 18.0,  # mg
    "potassium": 4700.0,  # mg
}

MICRONUTRIENT_FIELDS = ("vitamin_d", "calcium", "iron", "potassium")

# Label order and display names
LABEL_FIELDS: Dict[str, str] = {
    "calories": "Calories",
    "total_fat": "Total Fat",
    "saturated_fat": "Saturated Fat",
    "trans_fat": "Trans Fat",
    "cholesterol": "Cholesterol",
    "sodium": "Sodium",
    "total_carbohydrate": "Total Carbohydrate",
    "dietary_fiber": "Dietary Fiber",
    "total_sugars": "Total Sugars",
    "added_sugars": "Added Sugars",
    "protein": "Protein",
    "vitamin_d": "Vitamin D",
    "calcium": "Calcium",
    "iron": "Iron",
    "potassium": "Potassium",
}


def round_to_increment(value: float, increment: float) -> float:
    """Round half-up to the nearest multiple of increment."""
    steps = (Decimal(str(value)) / Decimal(str(increment))).quantize(Decimal(1), rounding=ROUND_HALF_UP)
    return float(steps * Decimal(str(increment)))


def _number(value: float) -> str:
    """2.0 → "2", 2.5 → "2.5"."""
    text = f"{value:.1f}"
    return text[:-2] if text.endswith(".0") else text


def round_calories(value: float) -> str:
    if value < 5:
        return "0"
    if value <= 50:
        return _number(round_to_increment(value, 5))
    return _number(round_to_increment(value, 10))


def round_fat(value: float) -> str:
    """Total, saturated and trans fat."""
    if value < 0.5:
        return "0g"
    if value < 5:
        return f"{_number(round_to_increment(value, 0.5))}g"
    return f"{_number(round_to_increment(value, 1))}g"


def round_cholesterol(value: float) -> str:
    if value < 2:
        return "0mg"
    if value < 5:
        return "less than 5mg"
    return f"{_number(round_to_increment(value, 5))}mg"


def round_sodium(value: float) -> str:
    """Sodium and potassium."""
    if value < 5:
        return "0mg"
    if value <= 140:
        return f"{_number(round_to_increment(value, 5))}mg"
    return f"{_number(round_to_increment(value, 10))}mg"


def round_carbohydrate(value: float) -> str:
    """Carbohydrate, fiber, sugars, added sugars and protein."""
    if value < 0.5:
        return "0g"
    if value < 1:
        return "less than 1g"
    return f"{_number(round_to_increment(value, 1))}g"


def round_vitamin_d(value: float) -> str:
    return f"{_number(round_to_increment(max(value, 0.0), 0.1))}mcg"


def round_calcium(value: float) -> str:
    return f"{_number(round_to_increment(max(value, 0.0), 10))}mg"


def round_iron(value: float) -> str:
    return f"{_number(round_to_increment(max(value, 0.0), 0.1))}mg"


ROUNDING_RULES: Dict[str, Callable[[float], str]] = {
    "calories": round_calories,
    "total_fat": round_fat,
    "saturated_fat": round_fat,
    "trans_fat": round_fat,
    "cholesterol": round_cholesterol,
    "sodium": round_sodium,
    "potassium": round_sodium,
    "total_carbohydrate": round_carbohydrate,
    "dietary_fiber": round_carbohydrate,
    "total_sugars": round_carbohydrate,
    "added_sugars": round_carbohydrate,
    "protein": round_carbohydrate,
    "vitamin_d": round_vitamin_d,
    "calcium": round_calcium,
    "iron": round_iron,
}


def round_value(field_name: str, value: float) -> str:
    """Display string for one label nutrient.

    Raises:
        KeyError: If field_name is not a label nutrient
    """
    return ROUNDING_RULES[field_name](value or 0.0)


def percent_daily_value(field_name: str, value: float) -> Optional[str]:
    """Percent daily value string (e.g., "12%"), None when no DV exists.

    Macronutrients use whole percents. Micronutrients use the label
    increments: below 2% → "0%", up to 10% by 2, up to 50% by 5, then by 10.
    """
    daily_value = DAILY_VALUES.get(field_name)
    if daily_value is None:
        return None

    percent = max(value or 0.0, 0.0) / daily_value * 100.0
    if field_name in MICRONUTRIENT_FIELDS:
        if percent < 2:
            return "0%"
        if percent <= 10:
            percent = round_to_increment(percent, 2)
        elif percent <= 50:
            percent = round_to_increment(percent, 5)
        else:
            percent = round_to_increment(percent, 10)
    else:
        percent = round_to_increment(percent, 1)
    return f"{int(percent)}%"


@dataclass(frozen=True)
class LabelLine:
    """One printed row of a nutrition label."""

    field: str
    label: str
    display: str
    percent_dv: Optional[str] = None

    def to_dict(self) -> Dict[str, Optional[str]]:
        return {
            "field": self.field,
            "label": self.label,
            "display": self.display,
            "percent_dv": self.percent_dv,
        }


def round_profile(profile: NutrientProfile) -> Dict[str, LabelLine]:
    """Rounded label rows in label order, keyed by field name."""
    lines: Dict[str, LabelLine] = {}
    for field_name, label in LABEL_FIELDS.items():
        value = getattr(profile, field_name)
        lines[field_name] = LabelLine(
            field=field_name,
            label=label,
            display=round_value(field_name, value),
            percent_dv=percent_daily_value(field_name, value),
        )
    return lines
