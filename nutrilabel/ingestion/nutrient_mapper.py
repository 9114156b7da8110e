"""Nutrient mapping from USDA FoodData Central to NutrientProfile.

Converts raw USDA food payloads into the engine's internal shapes.
Mapping is deterministic: no heuristics and no food-category assumptions.

DESIGN DECISIONS:
- Static mapping table: USDA nutrient ID → NutrientProfile field name
- Unknown nutrients are silently ignored (not all USDA nutrients are tracked)
- Missing nutrients default to zero
- Both payload shapes are accepted: search results carry flat
  nutrientId/value entries, food details carry nested nutrient.id/amount
- Values are per 100 g, as USDA reports them
"""

import logging
from typing import Any, Dict, List, Mapping, Optional

from nutrilabel.data_layer.models import FoodCandidate, FoodPortion, NutrientProfile

logger = logging.getLogger(__name__)


# ============================================================================
# USDA NUTRIENT ID MAPPING TABLE
# ============================================================================
#
# Authoritative mapping from USDA FoodData Central nutrient IDs to
# NutrientProfile field names. Source: USDA FDC documentation.
#
# Format:
#   USDA_ID: {
#       "field": NutrientProfile field name,
#       "unit": USDA unit (for documentation),
#       "description": USDA nutrient name,
#       "conversion": optional conversion factor
#   }
# ============================================================================

USDA_NUTRIENT_MAP: Dict[int, Dict[str, Any]] = {
    # === LABEL NUTRIENTS ===
    1008: {"field": "calories", "unit": "kcal", "description": "Energy"},
    1004: {"field": "total_fat", "unit": "g", "description": "Total lipid (fat)"},
    1258: {"field": "saturated_fat", "unit": "g", "description": "Fatty acids, total saturated"},
    1257: {"field": "trans_fat", "unit": "g", "description": "Fatty acids, total trans"},
    1253: {"field": "cholesterol", "unit": "mg", "description": "Cholesterol"},
    1093: {"field": "sodium", "unit": "mg", "description": "Sodium, Na"},
    1005: {"field": "total_carbohydrate", "unit": "g", "description": "Carbohydrate, by difference"},
    1079: {"field": "dietary_fiber", "unit": "g", "description": "Fiber, total dietary"},
    2000: {"field": "total_sugars", "unit": "g", "description": "Sugars, total including NLEA"},
    1235: {"field": "added_sugars", "unit": "g", "description": "Sugars, added"},
    1003: {"field": "protein", "unit": "g", "description": "Protein"},
    1114: {"field": "vitamin_d", "unit": "µg", "description": "Vitamin D (D2 + D3)"},
    1087: {"field": "calcium", "unit": "mg", "description": "Calcium, Ca"},
    1089: {"field": "iron", "unit": "mg", "description": "Iron, Fe"},
    1092: {"field": "potassium", "unit": "mg", "description": "Potassium, K"},

    # === FATS ===
    1292: {"field": "monounsaturated_fat", "unit": "g", "description": "Fatty acids, total monounsaturated"},
    1293: {"field": "polyunsaturated_fat", "unit": "g", "description": "Fatty acids, total polyunsaturated"},

    # === VITAMINS ===
    1106: {"field": "vitamin_a", "unit": "µg", "description": "Vitamin A, RAE"},
    1162: {"field": "vitamin_c", "unit": "mg", "description": "Vitamin C, total ascorbic acid"},
    1109: {"field": "vitamin_e", "unit": "mg", "description": "Vitamin E (alpha-tocopherol)"},
    1185: {"field": "vitamin_k", "unit": "µg", "description": "Vitamin K (phylloquinone)"},
    1165: {"field": "thiamin", "unit": "mg", "description": "Thiamin"},
    1166: {"field": "riboflavin", "unit": "mg", "description": "Riboflavin"},
    1167: {"field": "niacin", "unit": "mg", "description": "Niacin"},
    1175: {"field": "vitamin_b6", "unit": "mg", "description": "Vitamin B-6"},
    1190: {"field": "folate", "unit": "µg", "description": "Folate, DFE"},
    1178: {"field": "vitamin_b12", "unit": "µg", "description": "Vitamin B-12"},

    # === MINERALS ===
    1090: {"field": "magnesium", "unit": "mg", "description": "Magnesium, Mg"},
    1091: {"field": "phosphorus", "unit": "mg", "description": "Phosphorus, P"},
    1095: {"field": "zinc", "unit": "mg", "description": "Zinc, Zn"},
    1103: {"field": "selenium", "unit": "µg", "description": "Selenium, Se"},
}


class NutrientMapper:
    """Maps raw USDA food payloads to internal shapes.

    Usage:
        mapper = NutrientMapper()
        profile = mapper.map_nutrients(raw_food)      # NutrientProfile per 100 g
        portions = mapper.map_portions(raw_food)      # List[FoodPortion]
        candidate = mapper.to_candidate(raw_food)     # FoodCandidate
    """

    def map_nutrients(self, raw_payload: Mapping[str, Any]) -> NutrientProfile:
        """Map a USDA payload's foodNutrients array to a per-100g profile.

        Args:
            raw_payload: Raw USDA food (search hit or food details)

        Returns:
            NutrientProfile with all fields populated (missing = 0.0)
        """
        values: Dict[str, float] = {}
        for nutrient_data in raw_payload.get("foodNutrients") or []:
            self._process_nutrient(nutrient_data, values)
        return NutrientProfile(**values)

    def _process_nutrient(self, nutrient_data: Mapping[str, Any], values: Dict[str, float]) -> None:
        nutrient_id, amount = _id_and_amount(nutrient_data)
        if nutrient_id is None:
            return

        mapping = USDA_NUTRIENT_MAP.get(nutrient_id)
        if mapping is None:
            return  # Untracked nutrient

        conversion = mapping.get("conversion")
        if conversion is not None:
            amount = amount * conversion

        field_name = mapping["field"]
        # First reported value wins; USDA occasionally repeats an id
        if field_name not in values:
            values[field_name] = amount

    def map_portions(self, raw_payload: Mapping[str, Any]) -> List[FoodPortion]:
        """Map foodPortions (details) or foodMeasures (search) to FoodPortion.

        Entries without a positive gram weight are dropped.
        """
        portions: List[FoodPortion] = []

        for raw in raw_payload.get("foodPortions") or []:
            gram_weight = _as_float(raw.get("gramWeight"))
            if gram_weight <= 0:
                continue
            measure_unit = raw.get("measureUnit") or {}
            unit_name = measure_unit.get("name") or measure_unit.get("abbreviation") or ""
            if unit_name == "undetermined":
                unit_name = ""
            portions.append(FoodPortion(
                gram_weight=gram_weight,
                amount=_as_float(raw.get("amount")) or 1.0,
                unit_name=unit_name,
                modifier=raw.get("modifier") or raw.get("portionDescription") or "",
            ))

        for raw in raw_payload.get("foodMeasures") or []:
            gram_weight = _as_float(raw.get("gramWeight"))
            if gram_weight <= 0:
                continue
            portions.append(FoodPortion(
                gram_weight=gram_weight,
                amount=1.0,
                unit_name=raw.get("disseminationText") or raw.get("measureUnitName") or "",
                modifier=raw.get("measureUnitAbbreviation") or "",
            ))

        return portions

    def to_candidate(self, raw_payload: Mapping[str, Any]) -> FoodCandidate:
        """Build a FoodCandidate from a raw USDA food."""
        category = raw_payload.get("foodCategory")
        if isinstance(category, Mapping):
            category = category.get("description")
        return FoodCandidate(
            description=raw_payload.get("description") or "",
            data_type=raw_payload.get("dataType") or "",
            fdc_id=raw_payload.get("fdcId"),
            category=category,
            nutrients_per_100g=self.map_nutrients(raw_payload),
            portions=self.map_portions(raw_payload),
        )

    def get_tracked_nutrient_ids(self) -> set:
        """USDA nutrient IDs present in the mapping table."""
        return set(USDA_NUTRIENT_MAP.keys())

    def get_field_for_nutrient_id(self, nutrient_id: int) -> Optional[str]:
        mapping = USDA_NUTRIENT_MAP.get(nutrient_id)
        return mapping["field"] if mapping else None


def _id_and_amount(nutrient_data: Mapping[str, Any]):
    """(nutrient id, amount) from either USDA nutrient entry shape."""
    nutrient_info = nutrient_data.get("nutrient") or {}
    nutrient_id = nutrient_data.get("nutrientId", nutrient_info.get("id"))
    amount = nutrient_data.get("value", nutrient_data.get("amount"))
    try:
        nutrient_id = int(nutrient_id) if nutrient_id is not None else None
    except (TypeError, ValueError):
        logger.debug("Skipping nutrient with non-numeric id %r", nutrient_id)
        nutrient_id = None
    return nutrient_id, _as_float(amount)


def _as_float(value: Any) -> float:
    if value is None:
        return 0.0
    try:
        return float(value)
    except (TypeError, ValueError):
        return 0.0
