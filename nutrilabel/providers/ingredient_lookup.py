"""Abstract base class for ingredient database lookups.

The label pipeline depends ONLY on this interface. Concrete implementations
supply candidates from the USDA API or from a local JSON file without
changing scoring, conversion or aggregation.
"""

import json
import logging
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, Dict, List, Mapping, Sequence, Union

from nutrilabel.data_layer.models import FoodCandidate
from nutrilabel.ingestion.canonicalizer import canonicalize

logger = logging.getLogger(__name__)


class IngredientLookup(ABC):
    """Abstraction for ingredient candidate search."""

    @abstractmethod
    def search(self, query: str) -> List[FoodCandidate]:
        """Return candidates for *query*, in database order.

        Args:
            query: Ingredient text as the user wrote it

        Returns:
            Candidate list, possibly empty
        """
        ...


class StaticIngredientLookup(IngredientLookup):
    """Lookup backed by a fixed candidate table.

    The table maps an ingredient key to its candidate list. Keys are matched
    case-insensitively, first on the full text and then on its canonical
    base, so "Flour, sifted" finds the entry stored under "flour".

    Used for offline CLI runs and in tests.
    """

    def __init__(self, table: Mapping[str, Sequence[FoodCandidate]]) -> None:
        self._table: Dict[str, List[FoodCandidate]] = {
            key.strip().lower(): list(candidates) for key, candidates in table.items()
        }

    @classmethod
    def from_json(cls, path: Union[str, Path]) -> "StaticIngredientLookup":
        """Load a table from a JSON file shaped {ingredient: [candidate, ...]}.

        Raises:
            FileNotFoundError: If the file does not exist
            ValueError: If the file is not valid JSON, is not a JSON object,
                or holds a candidate entry that is not an object
        """
        with open(path, "r", encoding="utf-8") as f:
            raw: Any = json.load(f)
        if not isinstance(raw, dict):
            raise ValueError(f"Candidate file {path} must contain a JSON object")
        try:
            table = {
                key: [FoodCandidate.from_dict(item) for item in items or []]
                for key, items in raw.items()
            }
        except (AttributeError, TypeError) as e:
            raise ValueError(f"Candidate file {path} has a malformed entry: {e}")
        logger.debug("Loaded %d candidate lists from %s", len(table), path)
        return cls(table)

    def search(self, query: str) -> List[FoodCandidate]:
        key = (query or "").strip().lower()
        if not key:
            return []
        if key in self._table:
            return list(self._table[key])
        base = canonicalize(key).base
        return list(self._table.get(base, []))

    def keys(self) -> List[str]:
        return list(self._table.keys())
