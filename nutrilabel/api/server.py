"""FastAPI server for recipe parsing and nutrition label audits."""

from typing import Any, Dict, List, Optional

import uvicorn
from fastapi import FastAPI, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from nutrilabel.config import LabelSettings, configure_logging, load_settings
from nutrilabel.data_layer.exceptions import (
    LabelPipelineError,
    OverrideValidationError,
    RecordFormatError,
    RecordNotFoundError,
)
from nutrilabel.data_layer.models import FoodCandidate
from nutrilabel.data_layer.record_store import InMemoryRecordStore, RecordStore
from nutrilabel.ingestion.recipe_parser import parse_recipe_text
from nutrilabel.ingestion.unit_converter import UnitConverter
from nutrilabel.nutrition.audit import (
    AuditLog,
    AuditTrailManager,
    OverrideEvent,
    RecomputeEvent,
    RevertEvent,
)
from nutrilabel.nutrition.calculator import LabelCalculator, bind_best_candidates
from nutrilabel.output.label_formatter import format_label_json
from nutrilabel.providers.ingredient_lookup import StaticIngredientLookup


class ParseRequest(BaseModel):
    recipe_text: str


class CalculateRequest(BaseModel):
    recipe_text: str
    # ingredient text -> candidates as returned by the ingredient database
    candidates: Dict[str, List[Dict[str, Any]]] = Field(default_factory=dict)


class ManualOverrideRequest(BaseModel):
    overrides: Dict[str, Any] = Field(default_factory=dict)
    reason: str = ""
    edited_by: Optional[str] = None


class RevertRequest(BaseModel):
    reason: Optional[str] = None


def create_app(
    store: Optional[RecordStore] = None,
    settings: Optional[LabelSettings] = None,
    audit_log: Optional[AuditLog] = None
) -> FastAPI:
    """Build the API around a record store.

    Args:
        store: Label record persistence (default: a fresh in-memory store)
        settings: Engine settings (default: built-in defaults)
        audit_log: Event history (default: a fresh in-memory log)
    """
    settings = settings or LabelSettings()
    store = store if store is not None else InMemoryRecordStore({})
    audit_log = audit_log if audit_log is not None else AuditLog({})
    manager = AuditTrailManager(
        tolerance_percent=settings.tolerance_percent,
        tolerance_floor=settings.tolerance_floor,
    )
    calculator = LabelCalculator(
        converter=UnitConverter(settings.default_grams_per_unit),
        serving_size_g=settings.serving_size_g,
    )

    app = FastAPI(title="Nutrition Label API")

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],  # Local development
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(LabelPipelineError)
    async def handle_pipeline_error(request: Request, exc: LabelPipelineError) -> JSONResponse:
        if isinstance(exc, RecordNotFoundError):
            status = 404
        elif isinstance(exc, OverrideValidationError):
            status = 400
        elif isinstance(exc, RecordFormatError):
            status = 500
        else:
            status = 400
        return JSONResponse(status_code=status, content=exc.to_dict())

    def label_response(record_id: str) -> Dict[str, Any]:
        label = store.get_label(record_id)
        record = store.get(record_id)
        data = format_label_json(label, name=record.get("name", ""))
        data["id"] = record_id
        return data

    @app.post("/api/recipes/parse")
    def parse_recipe(request: ParseRequest) -> Dict[str, Any]:
        return parse_recipe_text(request.recipe_text).to_dict()

    @app.post("/api/labels/{record_id}/calculate")
    def calculate_label(record_id: str, request: CalculateRequest) -> Dict[str, Any]:
        parsed = parse_recipe_text(request.recipe_text)
        if not parsed.final_dish.ingredients:
            raise HTTPException(status_code=400, detail={"errors": parsed.errors})

        lookup = StaticIngredientLookup({
            name: [FoodCandidate.from_dict(c) for c in candidates]
            for name, candidates in request.candidates.items()
        })
        dish = calculator.calculate(parsed, bind_best_candidates(parsed, lookup))

        try:
            label = manager.recompute(store.get_label(record_id), dish.per_serving)
        except RecordNotFoundError:
            label = manager.initialize(dish.per_serving)
        audit_log.record(record_id, RecomputeEvent(calculated_values=dish.per_serving))

        store.put_label(
            record_id,
            label,
            name=dish.name,
            components=[c.to_dict() for c in dish.components],
        )
        data = format_label_json(label, dish=dish)
        data["id"] = record_id
        data["parse_errors"] = parsed.errors
        return data

    @app.get("/api/labels/{record_id}")
    def get_label(record_id: str) -> Dict[str, Any]:
        return label_response(record_id)

    @app.post("/api/labels/{record_id}/manual-override")
    def manual_override(record_id: str, request: ManualOverrideRequest) -> Dict[str, Any]:
        event = OverrideEvent(
            overrides=request.overrides,
            reason=request.reason,
            edited_by=request.edited_by,
        )
        label = manager.apply_event(store.get_label(record_id), event)
        store.put_label(record_id, label)
        audit_log.record(record_id, event)
        return label_response(record_id)

    @app.post("/api/labels/{record_id}/revert-to-calculated")
    def revert_to_calculated(record_id: str, request: Optional[RevertRequest] = None) -> Dict[str, Any]:
        event = RevertEvent(reason=request.reason if request else None)
        label = manager.apply_event(store.get_label(record_id), event)
        store.put_label(record_id, label)
        audit_log.record(record_id, event)
        return label_response(record_id)

    @app.get("/api/labels/{record_id}/discrepancies")
    def get_discrepancies(record_id: str) -> Dict[str, Any]:
        label = store.get_label(record_id)
        discrepancies = manager.find_discrepancies(label)
        return {
            "id": record_id,
            "source": label.source.value,
            "has_manual_override": manager.has_manual_override(label),
            "discrepancies": [d.to_dict() for d in discrepancies],
        }

    @app.get("/api/labels/{record_id}/history")
    def get_history(record_id: str) -> Dict[str, Any]:
        store.get(record_id)
        return {"id": record_id, "events": audit_log.history(record_id)}

    return app


if __name__ == "__main__":
    settings = load_settings()
    configure_logging(settings.log_level)
    uvicorn.run(create_app(settings=settings), host="0.0.0.0", port=8000)
