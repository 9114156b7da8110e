"""Search query preparation for ingredient database lookups.

Produces the cleaned query sent to the ingredient database and a list of
progressively simpler fallbacks to try when the first query finds nothing.
"""

import logging
import re
from typing import List

logger = logging.getLogger(__name__)

MAX_QUERY_LENGTH = 200
MAX_VARIANTS = 10

SEARCH_NOISE_DESCRIPTORS = (
    "fresh", "raw", "cooked", "dried", "frozen", "canned", "chopped", "diced",
    "minced", "sliced", "shredded", "grated", "julienned", "organic",
    "free-range", "grass-fed", "wild-caught", "extra", "virgin", "pure",
    "natural", "whole", "part-skim", "low-fat", "non-fat", "reduced-fat",
    "unsalted", "salted", "sweetened", "unsweetened",
)

_DESCRIPTOR_PATTERN = re.compile(
    r"(?<![\w-])(" + "|".join(re.escape(d) for d in SEARCH_NOISE_DESCRIPTORS) + r")(?![\w-])"
)

# (pattern, replacement) pairs that match USDA's "noun, modifier" naming
SEARCH_SUBSTITUTIONS = (
    (re.compile(r"\bboneless\s+skinless\s+chicken\b"), "chicken breast"),
    (re.compile(r"\bground\s+beef\b"), "beef ground"),
    (re.compile(r"\bextra\s+virgin\s+olive\s+oil\b"), "olive oil"),
    (re.compile(r"\bheavy\s+cream\b"), "cream"),
    (re.compile(r"\bsour\s+cream\b"), "cream sour"),
    (re.compile(r"\ball\s+purpose\s+flour\b"), "flour wheat"),
    (re.compile(r"\bbrown\s+sugar\b"), "sugar brown"),
    (re.compile(r"\bwhite\s+sugar\b"), "sugar"),
)


def clean_for_search(ingredient: str) -> str:
    """Clean an ingredient name for a database search.

    Args:
        ingredient: Raw ingredient name

    Returns:
        Lower-cased query with symbols and cooking descriptors removed.
        Falls back to the lower-cased input when cleaning leaves nothing.
    """
    if not ingredient or not isinstance(ingredient, str):
        return ""

    cleaned = ingredient.lower()
    cleaned = re.sub(r"[™®©]", "", cleaned)
    cleaned = re.sub(r"\([^)]*\)", "", cleaned)
    cleaned = re.sub(r"\[[^\]]*\]", "", cleaned)
    cleaned = re.sub(r"\{[^}]*\}", "", cleaned)
    cleaned = cleaned.replace("/", " ")
    cleaned = re.sub(r"\s*&\s*", " and ", cleaned)
    cleaned = re.sub(r"[—–]", " ", cleaned)
    cleaned = cleaned.replace(",", " ")
    cleaned = re.sub(r"[\"“”'‘’]", "", cleaned)
    cleaned = re.sub(r"[+*#@!?°%]", " ", cleaned)
    cleaned = re.sub(r"\.(?!\d)", " ", cleaned)
    cleaned = _DESCRIPTOR_PATTERN.sub("", cleaned)
    cleaned = re.sub(r"\s+", " ", cleaned)
    cleaned = re.sub(r"-+", "-", cleaned).strip()

    result = cleaned or ingredient.lower().strip()

    if len(result) > MAX_QUERY_LENGTH:
        logger.warning(
            "Truncating long search query from %d to %d chars",
            len(result), MAX_QUERY_LENGTH
        )
        return result[:MAX_QUERY_LENGTH].strip()

    return result


def generate_search_variants(ingredient: str) -> List[str]:
    """Generate ordered, de-duplicated search queries for one ingredient.

    Order: fully cleaned, minimally cleaned, text before the first comma,
    trailing words, singular/plural toggles, known substitutions.

    Args:
        ingredient: Raw ingredient name

    Returns:
        Up to MAX_VARIANTS non-empty queries, most specific first
    """
    if not ingredient or not isinstance(ingredient, str):
        return []

    variants: List[str] = []

    def add(candidate: str) -> None:
        if candidate and candidate not in variants:
            variants.append(candidate)

    original = ingredient.lower().strip()
    fully_cleaned = clean_for_search(ingredient)
    add(fully_cleaned)

    minimal = re.sub(r"[™®©]", "", original)
    minimal = re.sub(r"[\"“”'‘’]", "", minimal)
    minimal = re.sub(r"\s+", " ", minimal).strip()
    add(minimal)

    main_part = re.split(r"[,;]", original)[0].strip()
    add(clean_for_search(main_part))

    words = fully_cleaned.split()
    if len(words) >= 2:
        add(" ".join(words[-2:]))
    if len(words) >= 3:
        add(" ".join(words[-3:]))
    if len(words) >= 2 and len(words[-1]) > 2:
        add(words[-1])

    toggled = []
    for variant in variants[:3]:
        if variant.endswith("s") and len(variant) > 3:
            toggled.append(variant[:-1])
        elif not variant.endswith("s"):
            toggled.append(variant + "s")
    for variant in toggled:
        add(variant)

    for pattern, replacement in SEARCH_SUBSTITUTIONS:
        substituted = pattern.sub(replacement, fully_cleaned)
        if substituted != fully_cleaned:
            add(substituted)

    return variants[:MAX_VARIANTS]
