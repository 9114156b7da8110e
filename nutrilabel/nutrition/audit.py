"""Audit trail for nutrition labels: calculated values vs. manual overrides.

A label record keeps two profiles. calculated_values always reflects the
ingredients; values is what the label displays. The record's source says
which one the label is showing:

    calculated ──apply_override──▶ manual_override
         ▲                              │
         └────────────revert────────────┘

    recompute: refreshes calculated_values in both states; values follow
               only while the source is calculated

DESIGN DECISIONS:
- Every transition returns a new NutritionLabelData; inputs are never mutated
- Override requests are validated completely before anything is built, so a
  rejected request leaves the caller's record exactly as it was
- Only the latest override's metadata is kept; revert drops it entirely.
  Longer history is the AuditLog's job.
- Edits are closed, tagged event types (override, revert, recompute) rather
  than loose dicts with optional keys
"""

import logging
import math
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Callable, Dict, List, Mapping, MutableMapping, Optional, Union

from nutrilabel.data_layer.exceptions import OverrideValidationError
from nutrilabel.data_layer.models import NutrientProfile, resolve_field_name
from nutrilabel.output.fda_rounding import ROUNDING_RULES, round_value

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]

DEFAULT_TOLERANCE_PERCENT = 1.0
DEFAULT_TOLERANCE_FLOOR = 1.0


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def _iso(moment: datetime) -> str:
    return moment.isoformat().replace("+00:00", "Z")


class NutritionSource(Enum):
    """Which profile the label is displaying."""

    CALCULATED = "calculated"
    MANUAL_OVERRIDE = "manual_override"


@dataclass
class ManualEditMetadata:
    """Details of the most recent manual override."""

    timestamp: str  # ISO 8601
    reason: str
    edited_fields: List[str] = field(default_factory=list)
    previous_values: Dict[str, float] = field(default_factory=dict)
    edited_by: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "timestamp": self.timestamp,
            "reason": self.reason,
            "edited_fields": list(self.edited_fields),
            "previous_values": dict(self.previous_values),
            "edited_by": self.edited_by,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "ManualEditMetadata":
        edited = data.get("edited_fields", data.get("editedFields")) or []
        previous = data.get("previous_values", data.get("previousValues")) or {}
        return cls(
            timestamp=str(data.get("timestamp") or ""),
            reason=str(data.get("reason") or ""),
            edited_fields=[resolve_field_name(f) or f for f in edited],
            previous_values={
                resolve_field_name(k) or k: float(v)
                for k, v in previous.items()
                if v is not None
            },
            edited_by=data.get("edited_by", data.get("editedBy")),
        )


@dataclass
class NutritionLabelData:
    """One label record: displayed values, calculated values, provenance."""

    values: NutrientProfile
    calculated_values: NutrientProfile
    source: NutritionSource = NutritionSource.CALCULATED
    last_calculated: str = ""  # ISO 8601
    manual_edit_metadata: Optional[ManualEditMetadata] = None

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "values": self.values.to_dict(),
            "calculated_values": self.calculated_values.to_dict(),
            "source": self.source.value,
            "last_calculated": self.last_calculated,
        }
        if self.manual_edit_metadata is not None:
            data["manual_edit_metadata"] = self.manual_edit_metadata.to_dict()
        return data

    @classmethod
    def from_dict(cls, data: Optional[Mapping[str, Any]], now: Optional[datetime] = None) -> "NutritionLabelData":
        """Read a stored record.

        Records without a "values" key are legacy bare profiles and are
        read as calculated. camelCase keys from older records are accepted.

        Raises:
            ValueError: If data is not a mapping or names an unknown source
        """
        stamp = _iso(now or utc_now())
        if data is None:
            data = {}
        if not isinstance(data, Mapping):
            raise ValueError(f"Expected a mapping, got {type(data).__name__}")

        if "values" not in data:
            profile = NutrientProfile.from_dict(data)
            return cls(values=profile, calculated_values=profile, last_calculated=stamp)

        values = NutrientProfile.from_dict(data.get("values"))
        raw_calculated = data.get("calculated_values", data.get("calculatedValues"))
        calculated = NutrientProfile.from_dict(raw_calculated) if raw_calculated else values
        metadata = data.get("manual_edit_metadata", data.get("manualEditMetadata"))
        return cls(
            values=values,
            calculated_values=calculated,
            source=NutritionSource(data.get("source") or NutritionSource.CALCULATED.value),
            last_calculated=data.get("last_calculated", data.get("lastCalculated")) or stamp,
            manual_edit_metadata=ManualEditMetadata.from_dict(metadata) if metadata else None,
        )


# ============================================================================
# EDIT EVENTS
# ============================================================================

@dataclass
class OverrideEvent:
    """Replace some displayed values, with a required reason."""

    overrides: Dict[str, Any]
    reason: str
    edited_by: Optional[str] = None
    kind: str = field(default="override", init=False)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "kind": self.kind,
            "overrides": dict(self.overrides),
            "reason": self.reason,
            "edited_by": self.edited_by,
        }


@dataclass
class RevertEvent:
    """Go back to the calculated values."""

    reason: Optional[str] = None
    kind: str = field(default="revert", init=False)

    def to_dict(self) -> Dict[str, Any]:
        return {"kind": self.kind, "reason": self.reason}


@dataclass
class RecomputeEvent:
    """Ingredients changed; new calculated values are available."""

    calculated_values: NutrientProfile
    kind: str = field(default="recompute", init=False)

    def to_dict(self) -> Dict[str, Any]:
        return {"kind": self.kind, "calculated_values": self.calculated_values.to_dict()}


EditEvent = Union[OverrideEvent, RevertEvent, RecomputeEvent]


def event_from_dict(data: Mapping[str, Any]) -> EditEvent:
    """Rebuild an event from its to_dict() form.

    Raises:
        ValueError: If the kind tag is missing or unknown
    """
    kind = data.get("kind")
    if kind == "override":
        return OverrideEvent(
            overrides=dict(data.get("overrides") or {}),
            reason=data.get("reason") or "",
            edited_by=data.get("edited_by"),
        )
    if kind == "revert":
        return RevertEvent(reason=data.get("reason"))
    if kind == "recompute":
        return RecomputeEvent(calculated_values=NutrientProfile.from_dict(data.get("calculated_values")))
    raise ValueError(f"Unknown edit event kind: {kind!r}")


@dataclass
class Discrepancy:
    """A field whose displayed value differs from the calculated one beyond tolerance."""

    field: str
    calculated: float
    displayed: float
    difference: float  # absolute
    percent_diff: float  # relative to calculated; 100 when calculated is 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "field": self.field,
            "calculated": self.calculated,
            "displayed": self.displayed,
            "difference": self.difference,
            "percent_diff": self.percent_diff,
        }


class AuditTrailManager:
    """State transitions over NutritionLabelData.

    Usage:
        manager = AuditTrailManager()
        label = manager.initialize(dish.total)
        label = manager.apply_override(label, {"calories": "390"}, "Lab test")
        manager.find_discrepancies(label)   # [Discrepancy(field="calories", ...)]
        label = manager.revert(label)
    """

    def __init__(
        self,
        clock: Clock = utc_now,
        tolerance_percent: float = DEFAULT_TOLERANCE_PERCENT,
        tolerance_floor: float = DEFAULT_TOLERANCE_FLOOR,
        ignore_label_rounding: bool = True
    ):
        """Initialize manager.

        Args:
            clock: Returns the current time (injected for tests)
            tolerance_percent: Relative discrepancy tolerance, in percent
            tolerance_floor: Absolute discrepancy tolerance
            ignore_label_rounding: Skip label nutrients whose FDA-rounded
                display is the same on both sides
        """
        self.clock = clock
        self.tolerance_percent = tolerance_percent
        self.tolerance_floor = tolerance_floor
        self.ignore_label_rounding = ignore_label_rounding

    def _now(self) -> str:
        return _iso(self.clock())

    def initialize(self, profile: NutrientProfile) -> NutritionLabelData:
        """Create a calculated record from a freshly aggregated profile."""
        return NutritionLabelData(
            values=profile,
            calculated_values=profile,
            source=NutritionSource.CALCULATED,
            last_calculated=self._now(),
        )

    def recompute(self, data: NutritionLabelData, calculated_values: NutrientProfile) -> NutritionLabelData:
        """Refresh calculated values after an ingredient change.

        A manual override survives: its values and metadata are carried over
        unchanged.
        """
        if data.source is NutritionSource.CALCULATED:
            return NutritionLabelData(
                values=calculated_values,
                calculated_values=calculated_values,
                source=NutritionSource.CALCULATED,
                last_calculated=self._now(),
            )
        return replace(data, calculated_values=calculated_values, last_calculated=self._now())

    def apply_override(
        self,
        data: NutritionLabelData,
        overrides: Mapping[str, Any],
        reason: str,
        edited_by: Optional[str] = None
    ) -> NutritionLabelData:
        """Replace displayed values and record why.

        Args:
            data: Current record
            overrides: Field → new value; numeric strings are accepted
            reason: Required explanation
            edited_by: Editor identity (optional)

        Returns:
            New record with source MANUAL_OVERRIDE

        Raises:
            OverrideValidationError: Blank reason, empty overrides, unknown
                field, or a non-numeric, non-finite or negative value
        """
        coerced = validate_overrides(overrides, reason)

        edited_fields: List[str] = []
        previous_values: Dict[str, float] = {}
        for name, value in coerced.items():
            current = getattr(data.values, name)
            if value != current:
                edited_fields.append(name)
                previous_values[name] = current

        metadata = ManualEditMetadata(
            timestamp=self._now(),
            reason=reason.strip(),
            edited_fields=edited_fields,
            previous_values=previous_values,
            edited_by=edited_by,
        )
        logger.info(
            "Manual override of %s (%s)",
            ", ".join(edited_fields) or "no changed fields", metadata.reason
        )
        return NutritionLabelData(
            values=replace(data.values, **coerced),
            calculated_values=data.calculated_values,
            source=NutritionSource.MANUAL_OVERRIDE,
            last_calculated=data.last_calculated,
            manual_edit_metadata=metadata,
        )

    def revert(self, data: NutritionLabelData, reason: Optional[str] = None) -> NutritionLabelData:
        """Display the calculated values again and drop override metadata."""
        if reason:
            logger.info("Reverting to calculated values: %s", reason)
        else:
            logger.info("Reverting to calculated values")
        return NutritionLabelData(
            values=data.calculated_values,
            calculated_values=data.calculated_values,
            source=NutritionSource.CALCULATED,
            last_calculated=data.last_calculated,
        )

    def apply_event(self, data: NutritionLabelData, event: EditEvent) -> NutritionLabelData:
        """Dispatch one edit event to its transition."""
        if isinstance(event, OverrideEvent):
            return self.apply_override(data, event.overrides, event.reason, event.edited_by)
        if isinstance(event, RevertEvent):
            return self.revert(data, event.reason)
        if isinstance(event, RecomputeEvent):
            return self.recompute(data, event.calculated_values)
        raise TypeError(f"Unsupported edit event: {type(event).__name__}")

    def tolerance_for(self, calculated: float) -> float:
        return max(self.tolerance_floor, calculated * self.tolerance_percent / 100.0)

    def find_discrepancies(self, data: NutritionLabelData) -> List[Discrepancy]:
        """Fields where displayed and calculated values differ beyond tolerance.

        Fields that are zero on both sides are skipped. With
        ignore_label_rounding, so are label nutrients that print the same
        (100 kcal vs 102 kcal both print "100").

        percent_diff is 100 when only the displayed side is non-zero.
        """
        discrepancies: List[Discrepancy] = []
        for name in NutrientProfile.field_names():
            calculated = getattr(data.calculated_values, name) or 0.0
            displayed = getattr(data.values, name) or 0.0
            if calculated == 0 and displayed == 0:
                continue

            difference = abs(displayed - calculated)
            if difference <= self.tolerance_for(calculated):
                continue
            if (
                self.ignore_label_rounding
                and name in ROUNDING_RULES
                and round_value(name, calculated) == round_value(name, displayed)
            ):
                continue

            discrepancies.append(Discrepancy(
                field=name,
                calculated=calculated,
                displayed=displayed,
                difference=difference,
                percent_diff=_percent_diff(calculated, displayed),
            ))
        return discrepancies

    @staticmethod
    def has_manual_override(data: NutritionLabelData) -> bool:
        return data.source is NutritionSource.MANUAL_OVERRIDE


def validate_overrides(overrides: Optional[Mapping[str, Any]], reason: Optional[str]) -> Dict[str, float]:
    """Check an override request and coerce its values.

    Returns:
        Field name → float, keyed by NutrientProfile field names

    Raises:
        OverrideValidationError: With every problem found, not just the first
    """
    problems: List[str] = []
    bad_fields: List[str] = []
    coerced: Dict[str, float] = {}

    if reason is None or not str(reason).strip():
        problems.append("A reason is required for manual overrides")

    if not overrides:
        problems.append("At least one field must be overridden")

    for key, raw in (overrides or {}).items():
        name = resolve_field_name(key)
        if name is None:
            problems.append(f"Unknown nutrition field '{key}'")
            bad_fields.append(key)
            continue

        value = _coerce_number(raw)
        if value is None:
            problems.append(f"Value for '{key}' must be a number, got {raw!r}")
            bad_fields.append(key)
        elif value < 0:
            problems.append(f"Value for '{key}' cannot be negative")
            bad_fields.append(key)
        else:
            coerced[name] = value

    if problems:
        raise OverrideValidationError(problems, bad_fields)
    return coerced


def _coerce_number(raw: Any) -> Optional[float]:
    if raw is None or isinstance(raw, bool):
        return None
    if isinstance(raw, str):
        raw = raw.strip()
        if not raw:
            return None
    try:
        value = float(raw)
    except (TypeError, ValueError):
        return None
    if math.isnan(value) or math.isinf(value):
        return None
    return value


def _percent_diff(calculated: float, displayed: float) -> float:
    if calculated == 0:
        return 100.0 if displayed != 0 else 0.0
    return abs(displayed - calculated) / abs(calculated) * 100.0


# ============================================================================
# AUDIT LOG
# ============================================================================

class AuditLog:
    """Append-only history of applied edit events, per record.

    Backed by a caller-supplied mapping so each request or test owns its
    storage.
    """

    def __init__(self, storage: Optional[MutableMapping[str, List[Dict[str, Any]]]] = None, clock: Clock = utc_now):
        self._storage = storage if storage is not None else {}
        self.clock = clock

    def record(self, record_id: str, event: EditEvent) -> Dict[str, Any]:
        entry = event.to_dict()
        entry["at"] = _iso(self.clock())
        self._storage.setdefault(record_id, []).append(entry)
        return entry

    def history(self, record_id: str) -> List[Dict[str, Any]]:
        return list(self._storage.get(record_id, []))
