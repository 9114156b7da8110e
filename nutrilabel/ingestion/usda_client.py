"""USDA FoodData Central API client for ingredient candidate search.

Returns every candidate the API offers for a query, mapped to
FoodCandidate. Choosing between them is the scorer's job, not the client's.

API Reference: https://fdc.nal.usda.gov/api-guide.html

DESIGN DECISIONS:
- No selection logic here: results keep the API's order
- Structured error handling (no silent failures): every HTTP problem
  raises USDALookupError with a machine-readable code
- Fallback queries come from generate_search_variants, tried in order
"""

import logging
import os
from typing import Any, Dict, List, Optional

import requests

from nutrilabel.data_layer.models import FoodCandidate
from nutrilabel.ingestion.nutrient_mapper import NutrientMapper
from nutrilabel.ingestion.search_query import clean_for_search, generate_search_variants
from nutrilabel.providers.ingredient_lookup import IngredientLookup

logger = logging.getLogger(__name__)


class USDALookupError(Exception):
    """Raised when a USDA API call fails.

    Attributes:
        error_code: RATE_LIMITED, NOT_FOUND, TIMEOUT, CONNECTION_ERROR,
            API_ERROR or INVALID_QUERY
        message: Human-readable description
    """
    def __init__(self, error_code: str, message: str):
        self.error_code = error_code
        self.message = message
        super().__init__(f"{error_code}: {message}")


class USDAClient(IngredientLookup):
    """Client for USDA FoodData Central API.

    Usage:
        client = USDAClient(api_key="your_key")
        # or
        client = USDAClient.from_env()  # reads USDA_API_KEY env var

        candidates = client.search("all-purpose flour")
        details = client.get_food(candidates[0].fdc_id)
    """

    BASE_URL = "https://api.nal.usda.gov/fdc/v1"
    DEFAULT_DATA_TYPES = "Foundation,SR Legacy,Survey (FNDDS),Branded"
    TIMEOUT_SECONDS = 10

    def __init__(self, api_key: str, page_size: int = 25, mapper: Optional[NutrientMapper] = None):
        """Initialize USDA client with API key.

        Args:
            api_key: USDA FoodData Central API key
            page_size: Results requested per search
            mapper: NutrientMapper override (optional)

        Raises:
            ValueError: If API key is empty
        """
        if not api_key or not api_key.strip():
            raise ValueError("API key is required. Get one at https://fdc.nal.usda.gov/api-key-signup.html")
        self.api_key = api_key.strip()
        self.page_size = page_size
        self.mapper = mapper or NutrientMapper()

    @classmethod
    def from_env(cls, env_var: str = "USDA_API_KEY", page_size: int = 25) -> "USDAClient":
        """Create client from environment variable.

        Raises:
            ValueError: If environment variable not set
        """
        api_key = os.environ.get(env_var)
        if not api_key:
            raise ValueError(
                f"Environment variable {env_var} not set. "
                "Get an API key at https://fdc.nal.usda.gov/api-key-signup.html"
            )
        return cls(api_key=api_key, page_size=page_size)

    def search(self, query: str, page_size: Optional[int] = None) -> List[FoodCandidate]:
        """Search for candidates matching an ingredient.

        Args:
            query: Ingredient text; cleaned with clean_for_search first
            page_size: Override for the configured page size

        Returns:
            Candidates in API order (empty list when nothing matched)

        Raises:
            USDALookupError: INVALID_QUERY for an empty query, or any
                transport/API error
        """
        cleaned = clean_for_search(query or "")
        if not cleaned:
            raise USDALookupError("INVALID_QUERY", "Ingredient name cannot be empty")

        payload = self._make_request(cleaned, page_size or self.page_size)
        foods = payload.get("foods") or []
        logger.debug("USDA search %r returned %d foods", cleaned, len(foods))
        return [self.mapper.to_candidate(food) for food in foods]

    def search_with_variants(self, ingredient: str) -> List[FoodCandidate]:
        """Try each search variant until one returns candidates.

        Returns:
            The first non-empty candidate list, or [] when every variant
            came back empty or NOT_FOUND
        """
        variants = generate_search_variants(ingredient)
        if not variants:
            raise USDALookupError("INVALID_QUERY", "Ingredient name cannot be empty")

        for variant in variants:
            try:
                candidates = self.search(variant)
            except USDALookupError as e:
                if e.error_code != "NOT_FOUND":
                    raise
                logger.debug("USDA query %r not found; trying next variant", variant)
                continue
            if candidates:
                if variant != variants[0]:
                    logger.info("Found %r via fallback query %r", ingredient, variant)
                return candidates

        logger.warning("No USDA candidates for %r after %d queries", ingredient, len(variants))
        return []

    def get_food(self, fdc_id: int) -> FoodCandidate:
        """Fetch one food with full nutrients and portions.

        Raises:
            USDALookupError: INVALID_QUERY for a non-positive id, NOT_FOUND,
                or any transport/API error
        """
        if fdc_id is None or fdc_id <= 0:
            raise USDALookupError(
                "INVALID_QUERY",
                f"Invalid FDC ID: {fdc_id}. Must be a positive integer."
            )
        payload = self._get_food_details_request(fdc_id)
        return self.mapper.to_candidate(payload)

    def _make_request(self, query: str, page_size: int) -> Dict[str, Any]:
        """Make API request to USDA search endpoint.

        Raises:
            USDALookupError: If API request fails
        """
        url = f"{self.BASE_URL}/foods/search"
        params = {
            "api_key": self.api_key,
            "query": query,
            "pageSize": page_size,
            "dataType": self.DEFAULT_DATA_TYPES,
        }
        return self._get_json(url, params, not_found=f"No results found for '{query}'")

    def _get_food_details_request(self, fdc_id: int) -> Dict[str, Any]:
        """Make API request to USDA Food Details endpoint.

        Raises:
            USDALookupError: If API request fails
        """
        url = f"{self.BASE_URL}/food/{fdc_id}"
        params = {"api_key": self.api_key}
        return self._get_json(url, params, not_found=f"Food with FDC ID {fdc_id} not found")

    def _get_json(self, url: str, params: Dict[str, Any], not_found: str) -> Dict[str, Any]:
        try:
            response = requests.get(url, params=params, timeout=self.TIMEOUT_SECONDS)

            # Handle rate limiting
            if response.status_code == 429:
                raise USDALookupError(
                    "RATE_LIMITED",
                    "Too many requests. Please wait before trying again."
                )

            if response.status_code == 404:
                raise USDALookupError("NOT_FOUND", not_found)

            # Handle other HTTP errors
            if response.status_code != 200:
                raise USDALookupError(
                    "API_ERROR",
                    f"USDA API returned status {response.status_code}"
                )

            return response.json()

        except requests.exceptions.Timeout:
            raise USDALookupError("TIMEOUT", "USDA API request timed out")
        except requests.exceptions.ConnectionError:
            raise USDALookupError("CONNECTION_ERROR", "Failed to connect to USDA API")
        except requests.exceptions.RequestException as e:
            raise USDALookupError("API_ERROR", f"Request failed: {str(e)}")
        except ValueError:
            raise USDALookupError("API_ERROR", "USDA API returned invalid JSON")
