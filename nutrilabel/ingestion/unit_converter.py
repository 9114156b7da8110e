"""Quantity + unit → gram weight resolution.

Every ingredient line must end up as grams before nutrients can be scaled.
Resolution walks a fixed fallback chain and reports which tier answered:

    1. CUSTOM    ingredient-specific grams-per-unit supplied by the caller
    2. PORTION   a database portion for this exact food + unit
    3. STANDARD  static unit table (volume, weight, coarse count buckets)
    4. DEFAULT   fixed grams per unit, flagged as an estimate

DESIGN DECISIONS:
- An unmatched unit never aborts the pipeline: tier 4 always answers
- Tier 4 results carry is_estimate=True and a warning so the caller can
  surface the inaccuracy instead of hiding it
- Volume units assume water density (1 ml ≈ 1 g); a database portion or a
  custom ratio should be preferred for anything else
- Negative quantities are a caller bug and raise ValueError
"""

import logging
import re
from dataclasses import dataclass
from enum import Enum
from typing import Dict, List, Optional, Sequence, Tuple

from nutrilabel.data_layer.models import FoodPortion

logger = logging.getLogger(__name__)


DEFAULT_GRAMS_PER_UNIT = 50.0


# ============================================================================
# STANDARD CONVERSION TABLE
# ============================================================================
#
# Exact aliases are tried first. When none matches, the long-form names
# below are searched as substrings of the unit, in this order, so that
# "fluid ounces" resolves to fluid ounce (not ounce) and "tablespoons"
# resolves to tablespoon (not teaspoon).
# ============================================================================

STANDARD_CONVERSIONS: Dict[str, float] = {
    # Volume (water-equivalent)
    "cup": 240.0, "cups": 240.0, "c": 240.0,
    "tbsp": 15.0, "tbs": 15.0, "tablespoon": 15.0, "tablespoons": 15.0, "T": 15.0,
    "tsp": 5.0, "teaspoon": 5.0, "teaspoons": 5.0, "t": 5.0,
    "fl oz": 30.0, "floz": 30.0, "fluid ounce": 30.0, "fluid ounces": 30.0,
    "ml": 1.0, "milliliter": 1.0, "milliliters": 1.0, "millilitre": 1.0,
    "l": 1000.0, "liter": 1000.0, "liters": 1000.0, "litre": 1000.0,
    "pint": 473.0, "pints": 473.0, "pt": 473.0,
    "quart": 946.0, "quarts": 946.0, "qt": 946.0,
    "gallon": 3785.0, "gallons": 3785.0, "gal": 3785.0,

    # Weight
    "g": 1.0, "gram": 1.0, "grams": 1.0, "gr": 1.0,
    "mg": 0.001,
    "oz": 28.35, "ounce": 28.35, "ounces": 28.35,
    "lb": 453.59, "lbs": 453.59, "pound": 453.59, "pounds": 453.59,
    "kg": 1000.0, "kilogram": 1000.0, "kilograms": 1000.0,

    # Coarse count buckets
    "small": 100.0,
    "medium": 150.0,
    "large": 200.0,
    "whole": 150.0,
    "piece": 50.0, "pieces": 50.0,
    "slice": 30.0, "slices": 30.0,
    "clove": 5.0, "cloves": 5.0,
    "head": 100.0, "heads": 100.0,
    "bunch": 200.0, "bunches": 200.0,
    "sprig": 5.0, "sprigs": 5.0,
    "stalk": 50.0, "stalks": 50.0,
    "pinch": 0.5, "pinches": 0.5,
    "dash": 0.6, "dashes": 0.6,
}

# Case-sensitive aliases ("T" tablespoon vs "t" teaspoon)
_CASE_SENSITIVE_ALIASES = {"T", "t"}

# Substring fallback, most specific first
SUBSTRING_CONVERSIONS: Sequence[Tuple[str, float]] = (
    ("fluid ounce", 30.0),
    ("fl oz", 30.0),
    ("tablespoon", 15.0),
    ("teaspoon", 5.0),
    ("milliliter", 1.0),
    ("millilitre", 1.0),
    ("kilogram", 1000.0),
    ("gallon", 3785.0),
    ("quart", 946.0),
    ("pint", 473.0),
    ("liter", 1000.0),
    ("litre", 1000.0),
    ("cup", 240.0),
    ("tbsp", 15.0),
    ("tsp", 5.0),
    ("ounce", 28.35),
    ("pound", 453.59),
    ("gram", 1.0),
    ("small", 100.0),
    ("medium", 150.0),
    ("large", 200.0),
    ("whole", 150.0),
    ("piece", 50.0),
    ("slice", 30.0),
    ("clove", 5.0),
    ("bunch", 200.0),
    ("sprig", 5.0),
    ("stalk", 50.0),
    ("pinch", 0.5),
    ("dash", 0.6),
)


# ============================================================================
# COOKING YIELD FACTORS
# ============================================================================
#
# Final weight / initial weight for common cooking methods.
# ============================================================================

TYPICAL_YIELDS: Dict[str, float] = {
    "baked": 0.95, "baking": 0.95,
    "boiled": 0.75, "boiling": 0.75,
    "braised": 0.80, "braising": 0.80,
    "broiled": 0.90, "broiling": 0.90,
    "fried": 0.95, "frying": 0.95,
    "deep fried": 1.10, "deep frying": 1.10,
    "grilled": 0.85, "grilling": 0.85,
    "roasted": 0.80, "roasting": 0.80,
    "sautéed": 0.90, "sautéing": 0.90, "sauteed": 0.90, "sauteing": 0.90,
    "steamed": 0.85, "steaming": 0.85,
    "stewed": 0.75, "stewing": 0.75,
    "cooked": 0.85, "cooking": 0.85,
}


def yield_factor_for(method: Optional[str]) -> float:
    """Typical yield multiplier for a cooking method (1.0 if unknown)."""
    if not method:
        return 1.0
    return TYPICAL_YIELDS.get(method.strip().lower(), 1.0)


class ConversionTier(Enum):
    """Which tier of the fallback chain produced a gram weight."""

    CUSTOM = "custom"
    PORTION = "portion"
    STANDARD = "standard"
    DEFAULT = "default"


@dataclass
class GramConversion:
    """Result of UnitConverter.to_grams().

    Attributes:
        grams: Resolved weight in grams (always usable)
        tier: Tier of the fallback chain that answered
        is_estimate: True when no real conversion matched
        warning: Human-readable message when is_estimate is True
    """
    grams: float
    tier: ConversionTier
    is_estimate: bool = False
    warning: Optional[str] = None


class UnitConverter:
    """Resolves (quantity, unit) pairs to grams through a fallback chain.

    Usage:
        converter = UnitConverter()

        converter.to_grams(2, "cups", "sugar").grams                   # 480.0
        converter.to_grams(2, "cups", "flour", portions=[
            FoodPortion(gram_weight=125.0, amount=1, unit_name="cup"),
        ]).grams                                                       # 250.0
        converter.to_grams(1, "cup", "flour", custom_grams_per_unit=120).grams  # 120.0
    """

    def __init__(self, default_grams_per_unit: float = DEFAULT_GRAMS_PER_UNIT):
        """Initialize converter.

        Args:
            default_grams_per_unit: Tier 4 estimate per unit (must be > 0)
        """
        if default_grams_per_unit <= 0:
            raise ValueError(
                f"Invalid default_grams_per_unit: {default_grams_per_unit}. Must be positive."
            )
        self.default_grams_per_unit = default_grams_per_unit

    def to_grams(
        self,
        quantity: float,
        unit: str,
        ingredient_name: str = "",
        custom_grams_per_unit: Optional[float] = None,
        portions: Optional[Sequence[FoodPortion]] = None
    ) -> GramConversion:
        """Convert a quantity and unit to grams.

        Args:
            quantity: Amount in the given unit
            unit: Unit string as written (e.g., "cups", "Tbsp", "large")
            ingredient_name: Ingredient name, used in warnings
            custom_grams_per_unit: Caller-supplied ratio (tier 1)
            portions: Database portions for this food (tier 2)

        Returns:
            GramConversion; never fails for a non-negative quantity

        Raises:
            ValueError: If quantity is negative
        """
        if quantity < 0:
            raise ValueError(f"Invalid quantity: {quantity}. Must be non-negative.")

        unit_text = (unit or "").strip()

        if custom_grams_per_unit is not None and custom_grams_per_unit > 0:
            return GramConversion(quantity * custom_grams_per_unit, ConversionTier.CUSTOM)

        if portions:
            per_unit = self.match_portion(unit_text, portions)
            if per_unit is not None:
                return GramConversion(quantity * per_unit, ConversionTier.PORTION)

        per_unit = self.standard_grams_per_unit(unit_text)
        if per_unit is not None:
            return GramConversion(quantity * per_unit, ConversionTier.STANDARD)

        grams = quantity * self.default_grams_per_unit
        label = f" for '{ingredient_name}'" if ingredient_name else ""
        warning = (
            f"Unknown unit '{unit_text}'{label}: estimated "
            f"{self.default_grams_per_unit:g} g per unit ({grams:g} g total)"
        )
        logger.warning(warning)
        return GramConversion(grams, ConversionTier.DEFAULT, is_estimate=True, warning=warning)

    @staticmethod
    def standard_grams_per_unit(unit: str) -> Optional[float]:
        """Look up the static table: exact alias, then ordered substrings."""
        if not unit:
            return None
        if unit in _CASE_SENSITIVE_ALIASES:
            return STANDARD_CONVERSIONS[unit]

        normalized = re.sub(r"\s+", " ", unit.lower().rstrip(".")).strip()
        if normalized in STANDARD_CONVERSIONS and normalized not in _CASE_SENSITIVE_ALIASES:
            return STANDARD_CONVERSIONS[normalized]

        for name, grams in SUBSTRING_CONVERSIONS:
            if name in normalized:
                return grams
        return None

    @staticmethod
    def match_portion(unit: str, portions: Sequence[FoodPortion]) -> Optional[float]:
        """Grams per one unit from a matching database portion, if any."""
        wanted = _unit_forms(unit)
        if not wanted:
            return None
        for portion in portions:
            if portion.gram_weight is None or portion.gram_weight <= 0:
                continue
            names = _unit_forms(portion.unit_name)
            modifier = (portion.modifier or "").lower()
            # "cup, sifted" -> "cup"
            names |= _unit_forms(re.split(r"[,(]", modifier)[0]) if modifier else set()
            if wanted & names:
                amount = portion.amount if portion.amount and portion.amount > 0 else 1.0
                return portion.gram_weight / amount
        return None


def _unit_forms(unit: Optional[str]) -> set:
    """Lower-cased singular and plural spellings of a unit."""
    if not unit:
        return set()
    u = re.sub(r"\s+", " ", unit.lower().rstrip(".")).strip()
    if not u:
        return set()
    forms = {u}
    if u.endswith("es") and len(u) > 3:
        forms.add(u[:-2])
    if u.endswith("s") and len(u) > 2:
        forms.add(u[:-1])
    else:
        forms.add(u + "s")
    return forms


def convert_to_grams(
    quantity: float,
    unit: str,
    ingredient_name: str = "",
    custom_grams_per_unit: Optional[float] = None,
    portions: Optional[List[FoodPortion]] = None
) -> GramConversion:
    """Convert with a default UnitConverter."""
    return UnitConverter().to_grams(
        quantity, unit, ingredient_name, custom_grams_per_unit, portions
    )
