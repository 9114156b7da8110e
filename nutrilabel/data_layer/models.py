"""Data models for the nutrition label engine."""
import math
from dataclasses import dataclass, field, fields
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional


@dataclass(frozen=True)
class CanonicalForm:
    """Normalized decomposition of one raw ingredient string."""

    base: str  # Searchable ingredient identity (e.g., "flour")
    qualifiers: List[str] = field(default_factory=list)  # e.g., ["sifted"]


class BaseType(Enum):
    """Classification of a candidate within an ingredient domain."""

    ALL_PURPOSE = "all_purpose"
    SPECIALTY = "specialty"
    UNKNOWN = "unknown"


@dataclass
class ScoreTier:
    """One scoring rule that fired, with the delta it applied."""

    name: str
    delta: int


@dataclass
class ScoreBreakdown:
    """Explainable score for one (ingredient, candidate) pair.

    final_score is always the sum of tiers[].delta.
    """

    base_type: BaseType
    positives: List[str] = field(default_factory=list)
    negatives: List[str] = field(default_factory=list)
    tiers: List[ScoreTier] = field(default_factory=list)
    final_score: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "base_type": self.base_type.value,
            "positives": list(self.positives),
            "negatives": list(self.negatives),
            "tiers": [{"name": t.name, "delta": t.delta} for t in self.tiers],
            "final_score": self.final_score,
        }


# ============================================================================
# RECIPE PARSE RESULTS
# ============================================================================

ITEM_UNIT = "item"  # Unit used when a line carries no explicit unit


@dataclass
class ParsedIngredientLine:
    """One ingredient statement parsed from free text."""

    ingredient: str
    quantity: float = 1.0
    unit: str = ITEM_UNIT
    original_line: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return {
            "quantity": self.quantity,
            "unit": self.unit,
            "ingredient": self.ingredient,
            "original_line": self.original_line,
        }


@dataclass
class ParsedSubRecipe:
    """A parenthetical ingredient group detected on one recipe line."""

    name: str
    ingredients: List[ParsedIngredientLine]
    quantity_in_final_dish: float = 1.0
    unit_in_final_dish: str = ITEM_UNIT

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "ingredients": [i.to_dict() for i in self.ingredients],
            "quantity_in_final_dish": self.quantity_in_final_dish,
            "unit_in_final_dish": self.unit_in_final_dish,
        }


@dataclass
class FinalDishIngredient(ParsedIngredientLine):
    """Final dish entry; either a plain ingredient or a sub-recipe reference."""

    is_sub_recipe: bool = False
    sub_recipe_data: Optional[ParsedSubRecipe] = None

    def to_dict(self) -> Dict[str, Any]:
        data = super().to_dict()
        data["is_sub_recipe"] = self.is_sub_recipe
        if self.sub_recipe_data is not None:
            data["sub_recipe_data"] = self.sub_recipe_data.to_dict()
        return data


@dataclass
class ParsedFinalDish:
    """Dish name plus its top-level ingredient entries."""

    name: str
    ingredients: List[FinalDishIngredient] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "ingredients": [i.to_dict() for i in self.ingredients],
        }


@dataclass
class SmartParseResult:
    """Output of RecipeTextParser.parse()."""

    final_dish: ParsedFinalDish
    sub_recipes: List[ParsedSubRecipe] = field(default_factory=list)
    errors: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "final_dish": self.final_dish.to_dict(),
            "sub_recipes": [s.to_dict() for s in self.sub_recipes],
            "errors": list(self.errors),
        }


# ============================================================================
# NUTRIENT PROFILE
# ============================================================================

# Keys used by earlier stored records, mapped to NutrientProfile fields.
# Covers the camelCase label store and the short legacy audit keys.
FIELD_ALIASES: Dict[str, str] = {
    "kcal": "calories",
    "carbs": "total_carbohydrate",
    "fat": "total_fat",
    "fiber": "dietary_fiber",
    "sugars": "total_sugars",
    "totalFat": "total_fat",
    "saturatedFat": "saturated_fat",
    "transFat": "trans_fat",
    "totalCarbohydrate": "total_carbohydrate",
    "dietaryFiber": "dietary_fiber",
    "totalSugars": "total_sugars",
    "addedSugars": "added_sugars",
    "vitaminD": "vitamin_d",
    "monounsaturatedFat": "monounsaturated_fat",
    "polyunsaturatedFat": "polyunsaturated_fat",
    "vitaminA": "vitamin_a",
    "vitaminC": "vitamin_c",
    "vitaminE": "vitamin_e",
    "vitaminK": "vitamin_k",
    "vitaminB6": "vitamin_b6",
    "vitaminB12": "vitamin_b12",
}


@dataclass
class NutrientProfile:
    """Fixed-shape nutrient record.

    Per-100g or absolute depending on pipeline stage. Every field defaults to
    zero so addition and scaling are always total.
    """

    # Label nutrients
    calories: float = 0.0  # kcal
    total_fat: float = 0.0  # g
    saturated_fat: float = 0.0  # g
    trans_fat: float = 0.0  # g
    cholesterol: float = 0.0  # mg
    sodium: float = 0.0  # mg
    total_carbohydrate: float = 0.0  # g
    dietary_fiber: float = 0.0  # g
    total_sugars: float = 0.0  # g
    added_sugars: float = 0.0  # g
    protein: float = 0.0  # g
    vitamin_d: float = 0.0  # mcg
    calcium: float = 0.0  # mg
    iron: float = 0.0  # mg
    potassium: float = 0.0  # mg

    # Additional nutrients (tracked, not required on the label)
    monounsaturated_fat: float = 0.0  # g
    polyunsaturated_fat: float = 0.0  # g
    vitamin_a: float = 0.0  # mcg RAE
    vitamin_c: float = 0.0  # mg
    vitamin_e: float = 0.0  # mg
    vitamin_k: float = 0.0  # mcg
    thiamin: float = 0.0  # mg
    riboflavin: float = 0.0  # mg
    niacin: float = 0.0  # mg
    vitamin_b6: float = 0.0  # mg
    folate: float = 0.0  # mcg DFE
    vitamin_b12: float = 0.0  # mcg
    phosphorus: float = 0.0  # mg
    magnesium: float = 0.0  # mg
    zinc: float = 0.0  # mg
    selenium: float = 0.0  # mcg

    @classmethod
    def field_names(cls) -> List[str]:
        return [f.name for f in fields(cls)]

    @classmethod
    def zero(cls) -> "NutrientProfile":
        return cls()

    def __add__(self, other: "NutrientProfile") -> "NutrientProfile":
        if not isinstance(other, NutrientProfile):
            return NotImplemented
        return NutrientProfile(**{
            name: getattr(self, name) + getattr(other, name)
            for name in self.field_names()
        })

    def scale(self, factor: float) -> "NutrientProfile":
        """Return a copy with every nutrient multiplied by factor."""
        return NutrientProfile(**{
            name: getattr(self, name) * factor
            for name in self.field_names()
        })

    def to_dict(self) -> Dict[str, float]:
        return {name: getattr(self, name) for name in self.field_names()}

    @classmethod
    def from_dict(cls, data: Optional[Mapping[str, Any]]) -> "NutrientProfile":
        """Build a profile from a stored mapping.

        Unknown keys are ignored; missing, None or non-numeric values
        become 0.0.
        """
        values: Dict[str, float] = {}
        if not data:
            return cls()
        known = set(cls.field_names())
        for key, raw in data.items():
            name = FIELD_ALIASES.get(key, key)
            if name not in known:
                continue
            values[name] = _to_float(raw)
        return cls(**values)


def resolve_field_name(key: str) -> Optional[str]:
    """Map a stored or request key to a NutrientProfile field name."""
    name = FIELD_ALIASES.get(key, key)
    return name if name in NutrientProfile.field_names() else None


def _to_float(value: Any) -> float:
    if value is None or isinstance(value, bool):
        return 0.0
    try:
        number = float(value)
    except (TypeError, ValueError):
        return 0.0
    if math.isnan(number) or math.isinf(number):
        return 0.0
    return number


# ============================================================================
# INGREDIENT DATABASE SHAPES
# ============================================================================

@dataclass
class FoodPortion:
    """A standard measure for one database food (e.g., 1 cup = 125 g)."""

    gram_weight: float
    amount: float = 1.0
    unit_name: str = ""  # e.g., "cup"
    modifier: str = ""  # e.g., "cup, sifted"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "gram_weight": self.gram_weight,
            "amount": self.amount,
            "unit_name": self.unit_name,
            "modifier": self.modifier,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "FoodPortion":
        return cls(
            gram_weight=_to_float(data.get("gram_weight")),
            amount=_to_float(data.get("amount", 1.0)) or 1.0,
            unit_name=str(data.get("unit_name") or ""),
            modifier=str(data.get("modifier") or ""),
        )


@dataclass
class FoodCandidate:
    """One entry returned by the ingredient database for a search query."""

    description: str
    data_type: str = ""
    fdc_id: Optional[int] = None
    category: Optional[str] = None
    nutrients_per_100g: NutrientProfile = field(default_factory=NutrientProfile)
    portions: List[FoodPortion] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "description": self.description,
            "data_type": self.data_type,
            "fdc_id": self.fdc_id,
            "category": self.category,
            "nutrients_per_100g": self.nutrients_per_100g.to_dict(),
            "portions": [p.to_dict() for p in self.portions],
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "FoodCandidate":
        """Build a candidate from a plain mapping (candidate files, API bodies)."""
        return cls(
            description=str(data.get("description") or ""),
            data_type=str(data.get("data_type") or ""),
            fdc_id=data.get("fdc_id"),
            category=data.get("category"),
            nutrients_per_100g=NutrientProfile.from_dict(data.get("nutrients_per_100g")),
            portions=[FoodPortion.from_dict(p) for p in data.get("portions") or []],
        )


@dataclass
class BoundIngredient:
    """An ingredient resolved to a gram weight and a per-100g profile."""

    name: str
    grams: float
    per_100g: NutrientProfile
    yield_factor: float = 1.0


@dataclass
class SubRecipeContribution:
    """Usage of an already-aggregated sub-recipe inside another recipe.

    Contributes total * (requested_grams / total_grams).
    """

    name: str
    total: NutrientProfile
    total_grams: float
    requested_grams: float
