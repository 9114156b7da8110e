"""Tests for ingredient canonicalization and search query preparation."""
import pytest

from nutrilabel.data_layer.models import CanonicalForm
from nutrilabel.ingestion.canonicalizer import (
    PREPARATION_TOKENS,
    Canonicalizer,
    canonicalize,
    has_specialty_qualifier,
    specialty_keywords,
)
from nutrilabel.ingestion.search_query import (
    MAX_QUERY_LENGTH,
    MAX_VARIANTS,
    clean_for_search,
    generate_search_variants,
)


class TestCanonicalize:
    """Tests for canonicalize()."""

    def test_comma_qualifier_kept(self):
        """Test that "Flour, sifted" keeps sifted as a qualifier."""
        canon = canonicalize("Flour, sifted")

        assert canon.base == "flour"
        assert canon.qualifiers == ["sifted"]

    def test_parenthetical_qualifiers_kept_in_order(self):
        """Test that parenthesized descriptors become ordered qualifiers."""
        canon = canonicalize("chicken (boneless, skinless)")

        assert canon.base == "chicken"
        assert canon.qualifiers == ["boneless", "skinless"]

    def test_preparation_words_lifted_from_base(self):
        """Test that prep words in the base move to qualifiers, not away."""
        canon = canonicalize("finely chopped onion")

        assert canon.base == "onion"
        assert canon.qualifiers == ["finely", "chopped"]

    def test_no_token_dropped(self):
        """Test that every non-prep token survives in base or qualifiers."""
        text = "sifted flour (unbleached, organic)"
        canon = canonicalize(text)

        assert canon.base == "flour"
        assert canon.qualifiers == ["sifted", "unbleached", "organic"]
        kept = " ".join([canon.base] + canon.qualifiers)
        for token in ("flour", "unbleached", "organic"):
            assert token in kept

    def test_tokens_match_whole_words_only(self):
        """Test that "ground" is not lifted out of "groundnut"."""
        canon = canonicalize("groundnut oil")

        assert canon.base == "groundnut oil"
        assert canon.qualifiers == []

    def test_base_that_is_only_a_prep_word_is_kept(self):
        """Test that a base made of a prep word alone is not emptied."""
        canon = canonicalize("ground")

        assert canon.base == "ground"
        assert canon.qualifiers == []

    def test_case_and_whitespace_normalized(self):
        """Test that casing and repeated whitespace are normalized."""
        canon = canonicalize("  Ground   Beef ")

        assert canon.base == "beef"
        assert canon.qualifiers == ["ground"]

    @pytest.mark.parametrize("text", ["", "   ", None])
    def test_empty_input(self, text):
        """Test that empty input gives an empty form instead of raising."""
        assert canonicalize(text) == CanonicalForm(base="", qualifiers=[])

    def test_additional_tokens(self):
        """Test extra preparation tokens supplied at construction."""
        canonicalizer = Canonicalizer(additional_tokens=["Toasted"])
        canon = canonicalizer.canonicalize("toasted almonds")

        assert canon.base == "almonds"
        assert canon.qualifiers == ["toasted"]
        assert "toasted" not in PREPARATION_TOKENS


class TestSpecialtyQualifier:
    """Tests for has_specialty_qualifier()."""

    def test_specialty_keywords(self):
        assert has_specialty_qualifier(["almond"]) is True
        assert has_specialty_qualifier(["blanched", "Self-Rising"]) is True

    def test_preparation_is_not_specialty(self):
        assert has_specialty_qualifier(["sifted", "unbleached"]) is False
        assert has_specialty_qualifier([]) is False

    def test_specialty_keywords_from_base(self):
        assert specialty_keywords(["almond flour"]) == ["almond"]
        assert specialty_keywords(["flour", "rye"]) == ["rye"]
        assert specialty_keywords(["flour", "sifted"]) == []


class TestCleanForSearch:
    """Tests for clean_for_search()."""

    def test_removes_parentheses_and_descriptors(self):
        """Test that parentheticals and cooking descriptors are removed."""
        assert clean_for_search("Fresh Basil (chopped)") == "basil"

    def test_removes_marketing_descriptors(self):
        assert clean_for_search("Extra Virgin Olive Oil") == "olive oil"

    def test_commas_become_spaces(self):
        assert clean_for_search("chicken breast, boneless") == "chicken breast boneless"

    @pytest.mark.parametrize("text", ["", "   ", None])
    def test_empty_input(self, text):
        assert clean_for_search(text) == ""

    def test_long_query_truncated(self):
        """Test that very long queries are cut to MAX_QUERY_LENGTH."""
        result = clean_for_search("a" * (MAX_QUERY_LENGTH + 100))

        assert len(result) == MAX_QUERY_LENGTH


class TestGenerateSearchVariants:
    """Tests for generate_search_variants()."""

    def test_first_variant_is_fully_cleaned(self):
        text = "chicken breast, boneless"
        variants = generate_search_variants(text)

        assert variants[0] == clean_for_search(text)
        assert "chicken breast" in variants

    def test_variants_unique_and_bounded(self):
        variants = generate_search_variants("all purpose flour")

        assert len(variants) == len(set(variants))
        assert len(variants) <= MAX_VARIANTS
        assert all(variants)

    def test_substitution_variant(self):
        """Test that USDA-style word order is offered as a fallback."""
        variants = generate_search_variants("all purpose flour")

        assert "flour wheat" in variants
        assert "flour" in variants

    def test_empty_input(self):
        assert generate_search_variants("") == []
