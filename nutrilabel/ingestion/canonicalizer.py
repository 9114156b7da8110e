"""Ingredient canonicalization into {base, qualifiers}.

Turns a raw ingredient string into a CanonicalForm whose base is the
searchable identity and whose qualifiers keep every descriptor.

DESIGN DECISIONS:
- Preparation words found in the base are MOVED into qualifiers, never
  deleted. Discarding them loses the information that separates a
  specialty ingredient from the generic one.
- Descriptors are matched as whole words only (not substrings)
- Comma and parenthesis separated parts become qualifiers, order preserved
- Never raises; the raw trimmed string is the last-resort base
"""

import re
from typing import Iterable, List, Set

from nutrilabel.data_layer.models import CanonicalForm


PREPARATION_TOKENS: Set[str] = {
    "sifted", "chopped", "diced", "minced", "sliced", "shredded",
    "grated", "finely", "coarse", "crushed", "ground",
    "fresh", "raw", "cooked", "dried", "frozen",
}

# Qualifiers that name a specialty variety rather than a preparation
SPECIALTY_QUALIFIER_KEYWORDS = (
    "almond", "coconut", "rye", "spelt", "self-rising", "self rising",
    "gluten-free", "gluten free", "bread", "cake", "pastry",
    "00", "tipo 00", "buckwheat", "rice", "oat", "corn", "potato",
    "sorghum", "millet", "teff", "kamut", "einkorn", "emmer", "farro",
)

_SPLIT_PATTERN = re.compile(r"[(),]")


class Canonicalizer:
    """Splits ingredient text into a base identity and ordered qualifiers.

    Usage:
        canonicalizer = Canonicalizer()
        canon = canonicalizer.canonicalize("Flour, sifted")
        print(canon.base)        # "flour"
        print(canon.qualifiers)  # ["sifted"]
    """

    def __init__(self, additional_tokens: Iterable[str] = ()):
        """Initialize with optional extra preparation tokens.

        Args:
            additional_tokens: Extra words to lift out of the base (optional)
        """
        self.tokens = set(PREPARATION_TOKENS)
        self.tokens.update(t.lower() for t in additional_tokens)
        alternation = "|".join(sorted((re.escape(t) for t in self.tokens), key=len, reverse=True))
        self._token_pattern = re.compile(r"\b(" + alternation + r")\b")

    def canonicalize(self, text: str) -> CanonicalForm:
        """Canonicalize one ingredient string.

        Args:
            text: Raw ingredient text (e.g., "chicken (boneless, skinless)")

        Returns:
            CanonicalForm; empty input gives CanonicalForm("", [])
        """
        if not text or not text.strip():
            return CanonicalForm(base="", qualifiers=[])

        lower = re.sub(r"\s+", " ", text.lower()).strip()
        parts = [p.strip() for p in _SPLIT_PATTERN.split(lower)]
        parts = [p for p in parts if p]
        if not parts:
            return CanonicalForm(base=lower, qualifiers=[])

        raw_base = parts[0]
        lifted = self._token_pattern.findall(raw_base)
        base = re.sub(r"\s+", " ", self._token_pattern.sub(" ", raw_base)).strip()

        if not base:
            # The whole base was a preparation word ("ground"); keep it.
            return CanonicalForm(base=raw_base, qualifiers=parts[1:])

        return CanonicalForm(base=base, qualifiers=lifted + parts[1:])


_default = Canonicalizer()


def canonicalize(text: str) -> CanonicalForm:
    """Canonicalize with the default preparation token set."""
    return _default.canonicalize(text)


def specialty_keywords(parts: List[str]) -> List[str]:
    """Specialty variety keywords named in parts, in keyword order."""
    found: List[str] = []
    for keyword in SPECIALTY_QUALIFIER_KEYWORDS:
        pattern = r"\b" + re.escape(keyword) + r"\b"
        if any(re.search(pattern, part.lower()) for part in parts):
            found.append(keyword)
    return found


def has_specialty_qualifier(qualifiers: List[str]) -> bool:
    """True if any qualifier names a specialty variety (e.g., "almond")."""
    return bool(specialty_keywords(qualifiers))
