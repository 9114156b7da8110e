"""Ingestion layer: recipe text, ingredient names, units and USDA payloads."""

from nutrilabel.ingestion.canonicalizer import (
    Canonicalizer,
    canonicalize,
    has_specialty_qualifier,
    specialty_keywords,
    PREPARATION_TOKENS,
)

from nutrilabel.ingestion.search_query import (
    clean_for_search,
    generate_search_variants,
)

from nutrilabel.ingestion.recipe_parser import (
    RecipeTextParser,
    parse_recipe_text,
    parse_quantity,
)

from nutrilabel.ingestion.unit_converter import (
    UnitConverter,
    GramConversion,
    ConversionTier,
    STANDARD_CONVERSIONS,
    TYPICAL_YIELDS,
    yield_factor_for,
)

from nutrilabel.ingestion.nutrient_mapper import (
    NutrientMapper,
    USDA_NUTRIENT_MAP,
)

__all__ = [
    # Canonicalizer
    "Canonicalizer",
    "canonicalize",
    "has_specialty_qualifier",
    "specialty_keywords",
    "PREPARATION_TOKENS",
    # Search queries
    "clean_for_search",
    "generate_search_variants",
    # Parser
    "RecipeTextParser",
    "parse_recipe_text",
    "parse_quantity",
    # Unit converter
    "UnitConverter",
    "GramConversion",
    "ConversionTier",
    "STANDARD_CONVERSIONS",
    "TYPICAL_YIELDS",
    "yield_factor_for",
    # Nutrient mapper
    "NutrientMapper",
    "USDA_NUTRIENT_MAP",
]
