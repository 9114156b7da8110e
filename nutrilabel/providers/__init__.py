"""Ingredient lookup abstraction.

Decouples the label pipeline from concrete candidate sources (USDA API vs.
local JSON).
"""

from nutrilabel.providers.ingredient_lookup import IngredientLookup, StaticIngredientLookup

__all__ = [
    "IngredientLookup",
    "StaticIngredientLookup",
]
