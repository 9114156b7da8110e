"""Deterministic, tiered scoring of ingredient database candidates.

Ranks the candidates returned by the ingredient database against what the
user typed. The score is additive: every rule that fires contributes a fixed
delta and is recorded in the breakdown, so the final number is explainable.

DESIGN DECISIONS:
- Rules are small named objects evaluated in a fixed order and summed
- Base type (generic vs specialty) is classified before any rule runs
- The base-type gap outweighs every other rule combined, so a generic
  candidate always beats a specialty one for a plain ingredient ("flour")
- When the ingredient names a specialty ("almond flour"), the base-type rule
  rewards candidates naming that specialty instead, and the generic lexical
  bonuses are skipped
- Domains (flour, ...) register their own token sets; aggregation logic
  does not change per domain
- Never raises; unrecognized input scores as BaseType.UNKNOWN

RULE ORDER:
    1. Category match       +100
    2. Base type            +500 generic / -1000 specialty
                            (+500 requested specialty match)
    3. Source tier          Foundation +150, SR Legacy +120,
                            Survey +100, Branded -80
    4. Lexical bonuses      per domain (flour: all-purpose +200,
                            enriched +50, (un)bleached +30, white +40)
"""

import re
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional, Pattern, Sequence, Tuple

from nutrilabel.data_layer.models import (
    BaseType,
    CanonicalForm,
    FoodCandidate,
    ScoreBreakdown,
    ScoreTier,
)
from nutrilabel.ingestion.canonicalizer import canonicalize, specialty_keywords


CATEGORY_MATCH_DELTA = 100
GENERIC_BASE_DELTA = 500
SPECIALTY_BASE_DELTA = -1000

# USDA data type -> (delta, tier name, tag)
SOURCE_TIER_DELTAS: Dict[str, Tuple[int, str, str]] = {
    "Foundation": (150, "Foundation data type", "Foundation data source"),
    "SR Legacy": (120, "SR Legacy data type", "SR Legacy data source"),
    "Survey (FNDDS)": (100, "Survey data type", "Survey data source"),
    "Branded": (-80, "Branded data penalty", "Branded product data"),
}


@dataclass
class RuleHit:
    """Outcome of a rule that fired."""

    tier: str  # Tier name recorded in the breakdown
    delta: int
    label: str  # Short tag appended to positives or negatives

    @property
    def positive(self) -> bool:
        return self.delta > 0


@dataclass
class ScoringContext:
    """Everything a rule may inspect for one candidate."""

    canonical: CanonicalForm
    description: str  # lower-cased
    data_type: str
    category: str  # lower-cased, "" when absent
    base_type: BaseType
    domain: Optional["IngredientDomain"]
    # Specialty keywords the ingredient itself names (e.g., ["almond"])
    requested_specialties: List[str] = field(default_factory=list)


@dataclass
class ScoringRule:
    """A named pure function from context to an optional hit."""

    name: str
    evaluate: Callable[[ScoringContext], Optional[RuleHit]]

    def __call__(self, context: ScoringContext) -> Optional[RuleHit]:
        return self.evaluate(context)


@dataclass
class LexicalBonus:
    """A high-confidence token bonus for one domain."""

    name: str
    pattern: Pattern[str]
    delta: int
    label: str

    def as_rule(self) -> ScoringRule:
        def evaluate(context: ScoringContext) -> Optional[RuleHit]:
            if context.requested_specialties:
                return None
            if self.pattern.search(context.description):
                return RuleHit(self.name, self.delta, self.label)
            return None
        return ScoringRule(self.name, evaluate)


@dataclass
class IngredientDomain:
    """Token sets that separate generic from specialty within one domain.

    Attributes:
        name: Domain key (e.g., "flour")
        trigger: Matches canonical bases that belong to this domain
        category_keywords: Substrings of the expected database category
        generic_pattern: Matches the generic/default identity
        specialty_patterns: Any match marks a specialty identity
        generic_label: Tag recorded when the generic bonus fires
        category_label: Tag recorded when the category bonus fires
        lexical_bonuses: Fine-grained token bonuses
    """

    name: str
    trigger: Pattern[str]
    category_keywords: Sequence[str]
    generic_pattern: Pattern[str]
    specialty_patterns: Sequence[Pattern[str]]
    generic_label: str = "Generic ingredient"
    category_label: str = "Category match"
    lexical_bonuses: Sequence[LexicalBonus] = field(default_factory=tuple)

    def applies_to(self, canonical: CanonicalForm) -> bool:
        return bool(self.trigger.search(canonical.base))

    def is_specialty(self, description: str) -> bool:
        return any(p.search(description) for p in self.specialty_patterns)

    def is_generic(self, description: str) -> bool:
        # A specialty match always disqualifies the generic identity
        if not self.generic_pattern.search(description):
            return False
        return not self.is_specialty(description)

    def classify(self, description: str) -> BaseType:
        d = description.lower()
        if self.is_generic(d):
            return BaseType.ALL_PURPOSE
        if self.is_specialty(d):
            return BaseType.SPECIALTY
        return BaseType.UNKNOWN


FLOUR_DOMAIN = IngredientDomain(
    name="flour",
    trigger=re.compile(r"\bflours?\b"),
    category_keywords=("cereal", "grain"),
    generic_pattern=re.compile(r"\b(wheat|all[- ]purpose|ap flour)\b"),
    specialty_patterns=(
        re.compile(r"\b(00|tipo 00)\b"),
        re.compile(r"\b(almond|coconut|hazelnut|walnut|pecan|pistachio|macadamia)\b"),
        re.compile(r"\b(rye|spelt|buckwheat|quinoa|amaranth|teff|millet|sorghum|kamut|einkorn|emmer|farro)\b"),
        re.compile(r"\b(rice flour|corn flour|potato flour|cornmeal|cornstarch)\b"),
        re.compile(r"\b(chickpea|garbanzo|lentil|soy|pea flour)\b"),
        re.compile(r"\b(cassava|tapioca|arrowroot|carob)\b"),
        re.compile(r"\boat flour\b"),
        re.compile(r"\b(self[- ]rising|gluten[- ]free|bread flour|cake flour|pastry flour)\b"),
    ),
    generic_label="All-purpose wheat flour",
    category_label="Cereal Grains category",
    lexical_bonuses=(
        LexicalBonus("All-purpose indicator", re.compile(r"all[- ]purpose"), 200, "All-purpose keyword"),
        LexicalBonus("Enriched indicator", re.compile(r"enriched"), 50, "Enriched flour"),
        LexicalBonus("Bleached/unbleached indicator", re.compile(r"bleached"), 30, "Standard processing"),
        LexicalBonus("White flour indicator", re.compile(r"white(?=.*flour)|flour(?=.*white)"), 40, "White flour"),
    ),
)


def category_rule(context: ScoringContext) -> Optional[RuleHit]:
    domain = context.domain
    if domain is None or not context.category:
        return None
    if any(k in context.category for k in domain.category_keywords):
        return RuleHit(f"Category match ({domain.name})", CATEGORY_MATCH_DELTA, domain.category_label)
    return None


def base_type_rule(context: ScoringContext) -> Optional[RuleHit]:
    domain = context.domain
    if domain is None:
        return None
    if context.requested_specialties:
        # The user asked for a specialty: reward that specialty, penalize nothing
        for keyword in context.requested_specialties:
            if re.search(r"\b" + re.escape(keyword) + r"\b", context.description):
                return RuleHit(
                    f"Requested {domain.name} match",
                    GENERIC_BASE_DELTA,
                    f"Matches requested {keyword} {domain.name}",
                )
        return None
    if context.base_type is BaseType.ALL_PURPOSE:
        return RuleHit(f"Generic {domain.name} bonus", GENERIC_BASE_DELTA, domain.generic_label)
    if context.base_type is BaseType.SPECIALTY:
        return RuleHit(
            f"Specialty {domain.name} penalty",
            SPECIALTY_BASE_DELTA,
            f"Specialty {domain.name} type detected",
        )
    return None


def source_tier_rule(context: ScoringContext) -> Optional[RuleHit]:
    entry = SOURCE_TIER_DELTAS.get(context.data_type)
    if entry is None:
        return None
    delta, tier, tag = entry
    return RuleHit(tier, delta, tag)


DEFAULT_RULES: Tuple[ScoringRule, ...] = (
    ScoringRule("category", category_rule),
    ScoringRule("base_type", base_type_rule),
    ScoringRule("source_tier", source_tier_rule),
)


@dataclass
class RankedCandidate:
    """A candidate paired with its breakdown."""

    candidate: FoodCandidate
    breakdown: ScoreBreakdown


class CandidateScorer:
    """Scores database candidates against a canonical ingredient.

    Usage:
        scorer = CandidateScorer()
        breakdown = scorer.score(
            "flour, sifted",
            "Wheat flour, white, all-purpose, enriched, bleached",
            "SR Legacy",
            "Cereal Grains and Pasta",
        )
        print(breakdown.final_score)  # 1040
    """

    def __init__(self, domains: Optional[Sequence[IngredientDomain]] = None):
        """Initialize with domains to recognize (defaults to flour).

        Args:
            domains: Ingredient domains in lookup order
        """
        self._domains: List[IngredientDomain] = list(domains) if domains is not None else [FLOUR_DOMAIN]

    def register_domain(self, domain: IngredientDomain) -> None:
        """Add a domain; earlier registrations win when several apply."""
        self._domains.append(domain)

    def domain_for(self, canonical: CanonicalForm) -> Optional[IngredientDomain]:
        for domain in self._domains:
            if domain.applies_to(canonical):
                return domain
        return None

    def rules_for(self, domain: Optional[IngredientDomain]) -> List[ScoringRule]:
        """Rules in evaluation order for one domain."""
        rules = list(DEFAULT_RULES)
        if domain is not None:
            rules.extend(bonus.as_rule() for bonus in domain.lexical_bonuses)
        return rules

    def score(
        self,
        ingredient,
        description: str,
        data_type: str = "",
        category: Optional[str] = None
    ) -> ScoreBreakdown:
        """Score one candidate.

        Args:
            ingredient: Raw ingredient text or an existing CanonicalForm
            description: Candidate display description
            data_type: Candidate data-quality tier (e.g., "SR Legacy")
            category: Candidate food category (optional)

        Returns:
            ScoreBreakdown whose final_score is the sum of its tiers
        """
        canonical = _as_canonical(ingredient)
        desc = (description or "").lower().strip()
        domain = self.domain_for(canonical) if canonical.base else None
        if domain is not None and not desc:
            domain = None
        base_type = domain.classify(desc) if domain else BaseType.UNKNOWN

        context = ScoringContext(
            canonical=canonical,
            description=desc,
            data_type=data_type or "",
            category=(category or "").lower(),
            base_type=base_type,
            domain=domain,
            requested_specialties=(
                specialty_keywords([canonical.base, *canonical.qualifiers]) if domain else []
            ),
        )

        breakdown = ScoreBreakdown(base_type=base_type)
        for rule in self.rules_for(domain):
            hit = rule(context)
            if hit is None:
                continue
            breakdown.tiers.append(ScoreTier(name=hit.tier, delta=hit.delta))
            if hit.positive:
                breakdown.positives.append(hit.label)
            else:
                breakdown.negatives.append(hit.label)

        breakdown.final_score = sum(t.delta for t in breakdown.tiers)
        return breakdown

    def rank(self, ingredient, candidates: Sequence[FoodCandidate]) -> List[RankedCandidate]:
        """Rank candidates best first; ties keep first-seen order."""
        canonical = _as_canonical(ingredient)
        ranked = [
            RankedCandidate(
                candidate=c,
                breakdown=self.score(canonical, c.description, c.data_type, c.category),
            )
            for c in candidates
        ]
        # sorted() is stable, so equal scores stay in input order
        return sorted(ranked, key=lambda r: -r.breakdown.final_score)

    def select_best(self, ingredient, candidates: Sequence[FoodCandidate]) -> Optional[RankedCandidate]:
        ranked = self.rank(ingredient, candidates)
        return ranked[0] if ranked else None


def _as_canonical(ingredient) -> CanonicalForm:
    if isinstance(ingredient, CanonicalForm):
        return ingredient
    return canonicalize(ingredient or "")


def score_candidate(
    ingredient,
    description: str,
    data_type: str = "",
    category: Optional[str] = None
) -> ScoreBreakdown:
    """Score with a default CandidateScorer."""
    return CandidateScorer().score(ingredient, description, data_type, category)
