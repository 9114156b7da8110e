"""Record store for label records (in-memory and JSON file backed).

A record is a flat mapping. Its nutrition label and its component list are
stored as JSON strings, the way an external table would hold them:

    {
        "name": "Chicken Tacos",
        "nutrition_label": "{\"values\": {...}, \"source\": \"calculated\", ...}",
        "components": "[{\"name\": \"flour\", \"grams\": 250.0, ...}]"
    }

Writes are last-writer-wins per record; no optimistic locking is done here.
"""
import json
import logging
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

from nutrilabel.data_layer.exceptions import RecordFormatError, RecordNotFoundError
from nutrilabel.nutrition.audit import NutritionLabelData

logger = logging.getLogger(__name__)

LABEL_KEY = "nutrition_label"
COMPONENTS_KEY = "components"
NAME_KEY = "name"


class RecordStore(ABC):
    """Abstraction over label record persistence."""

    @abstractmethod
    def get(self, record_id: str) -> Dict[str, Any]:
        """Return a copy of the record.

        Raises:
            RecordNotFoundError: If no record exists for record_id
        """
        ...

    @abstractmethod
    def put(self, record_id: str, record: Dict[str, Any]) -> None:
        """Create or replace the record."""
        ...

    def get_label(self, record_id: str) -> NutritionLabelData:
        """Deserialize the record's nutrition label.

        Raises:
            RecordNotFoundError: If no record exists for record_id
            RecordFormatError: If the stored label cannot be read
        """
        record = self.get(record_id)
        raw = record.get(LABEL_KEY)
        try:
            data = json.loads(raw) if isinstance(raw, str) else raw
            return NutritionLabelData.from_dict(data)
        except (TypeError, ValueError) as e:
            raise RecordFormatError(record_id, str(e))

    def get_components(self, record_id: str) -> List[Dict[str, Any]]:
        record = self.get(record_id)
        raw = record.get(COMPONENTS_KEY) or "[]"
        try:
            components = json.loads(raw) if isinstance(raw, str) else raw
        except ValueError as e:
            raise RecordFormatError(record_id, str(e))
        if not isinstance(components, list):
            raise RecordFormatError(record_id, "components must be a list")
        return components

    def put_label(
        self,
        record_id: str,
        label: NutritionLabelData,
        name: Optional[str] = None,
        components: Optional[List[Dict[str, Any]]] = None
    ) -> None:
        """Write a label, keeping the record's other fields.

        Args:
            record_id: Record key
            label: Label to serialize
            name: Dish name (kept as stored when None)
            components: Component dicts (kept as stored when None)
        """
        try:
            record = self.get(record_id)
        except RecordNotFoundError:
            record = {}
        record[LABEL_KEY] = json.dumps(label.to_dict())
        if name is not None:
            record[NAME_KEY] = name
        if components is not None:
            record[COMPONENTS_KEY] = json.dumps(components)
        self.put(record_id, record)


class InMemoryRecordStore(RecordStore):
    """Store backed by a caller-supplied dict."""

    def __init__(self, records: Optional[Dict[str, Dict[str, Any]]] = None):
        self._records = records if records is not None else {}

    def get(self, record_id: str) -> Dict[str, Any]:
        if record_id not in self._records:
            raise RecordNotFoundError(record_id)
        return dict(self._records[record_id])

    def put(self, record_id: str, record: Dict[str, Any]) -> None:
        self._records[record_id] = dict(record)


class JsonFileRecordStore(RecordStore):
    """Store backed by one JSON file: {"records": {record_id: record}}.

    The file is read on every call and rewritten on every put.
    """

    def __init__(self, json_path: Union[str, Path]):
        self.json_path = Path(json_path)

    def _load(self) -> Dict[str, Dict[str, Any]]:
        if not self.json_path.exists():
            return {}
        with open(self.json_path, "r", encoding="utf-8") as f:
            data = json.load(f)
        return data.get("records", {})

    def get(self, record_id: str) -> Dict[str, Any]:
        records = self._load()
        if record_id not in records:
            raise RecordNotFoundError(record_id)
        return dict(records[record_id])

    def put(self, record_id: str, record: Dict[str, Any]) -> None:
        records = self._load()
        records[record_id] = dict(record)
        self.json_path.parent.mkdir(parents=True, exist_ok=True)
        with open(self.json_path, "w", encoding="utf-8") as f:
            json.dump({"records": records}, f, indent=2)
        logger.debug("Wrote record %s to %s", record_id, self.json_path)
