"""Tests for the label API endpoints."""
import json

import pytest
from fastapi.testclient import TestClient

from nutrilabel.api.server import create_app
from nutrilabel.data_layer.record_store import LABEL_KEY, InMemoryRecordStore
from nutrilabel.nutrition.audit import AuditLog

RECIPE = "Cookies\n2 cups flour\n1 cup sugar"

CANDIDATES = {
    "flour": [
        {
            "description": "Wheat flour, white, all-purpose, enriched, bleached",
            "data_type": "SR Legacy",
            "nutrients_per_100g": {"calories": 364.0, "protein": 10.3},
            "portions": [{"gram_weight": 125.0, "amount": 1.0, "unit_name": "cup"}],
        },
        {
            "description": "Almond flour",
            "data_type": "Foundation",
            "nutrients_per_100g": {"calories": 571.0},
        },
    ],
    "sugar": [
        {
            "description": "Sugars, granulated",
            "data_type": "SR Legacy",
            "nutrients_per_100g": {"calories": 387.0, "total_sugars": 99.8},
        },
    ],
}


@pytest.fixture
def records():
    return {}


@pytest.fixture
def client(records):
    app = create_app(store=InMemoryRecordStore(records), audit_log=AuditLog({}))
    return TestClient(app)


@pytest.fixture
def calculated(client):
    response = client.post(
        "/api/labels/r1/calculate",
        json={"recipe_text": RECIPE, "candidates": CANDIDATES},
    )
    assert response.status_code == 200
    return response.json()


def calories_line(data):
    return next(line for line in data["label"] if line["field"] == "calories")


# === Parsing ===

class TestParseEndpoint:
    """Tests for POST /api/recipes/parse."""

    def test_parse(self, client):
        response = client.post("/api/recipes/parse", json={"recipe_text": RECIPE})

        assert response.status_code == 200
        data = response.json()
        assert data["final_dish"]["name"] == "Cookies"
        assert [i["ingredient"] for i in data["final_dish"]["ingredients"]] == ["flour", "sugar"]
        assert data["errors"] == []

    def test_missing_body_field(self, client):
        response = client.post("/api/recipes/parse", json={})

        assert response.status_code == 422


# === Calculation ===

class TestCalculateEndpoint:
    """Tests for POST /api/labels/{id}/calculate."""

    def test_calculate(self, calculated):
        assert calculated["id"] == "r1"
        assert calculated["name"] == "Cookies"
        assert calculated["source"] == "calculated"
        assert calculated["servings_per_container"] == 5
        assert calculated["values"]["calories"] == pytest.approx(367.76)
        assert calories_line(calculated)["display"] == "370"
        assert calculated["parse_errors"] == []

    def test_label_stored_as_json_string(self, calculated, records):
        stored = records["r1"][LABEL_KEY]

        assert isinstance(stored, str)
        assert json.loads(stored)["source"] == "calculated"

    def test_no_ingredients(self, client):
        response = client.post("/api/labels/r1/calculate", json={"recipe_text": "Just a title"})

        assert response.status_code == 400
        assert "errors" in response.json()["detail"]

    def test_recalculate_keeps_override(self, client, calculated):
        client.post(
            "/api/labels/r1/manual-override",
            json={"overrides": {"calories": 400}, "reason": "Lab test"},
        )

        response = client.post(
            "/api/labels/r1/calculate",
            json={"recipe_text": "Cookies\n2 cups flour", "candidates": CANDIDATES},
        )

        data = response.json()
        assert data["source"] == "manual_override"
        assert data["values"]["calories"] == 400.0
        assert data["calculated_values"]["calories"] == pytest.approx(910.0 / 3)


# === Reading and editing ===

class TestLabelEndpoints:
    """Tests for reading, overriding and reverting labels."""

    def test_get_label(self, client, calculated):
        response = client.get("/api/labels/r1")

        assert response.status_code == 200
        assert response.json()["name"] == "Cookies"
        assert response.json()["id"] == "r1"

    def test_unknown_record(self, client):
        response = client.get("/api/labels/missing")

        assert response.status_code == 404
        assert response.json()["error_code"] == "RECORD_NOT_FOUND"

    def test_manual_override(self, client, calculated):
        response = client.post(
            "/api/labels/r1/manual-override",
            json={"overrides": {"calories": "500"}, "reason": "Lab test", "edited_by": "sam"},
        )

        assert response.status_code == 200
        data = response.json()
        assert data["source"] == "manual_override"
        assert data["values"]["calories"] == 500.0
        assert data["calculated_values"]["calories"] == pytest.approx(367.76)
        assert data["edit_summary"].endswith("Reason: Lab test")

    def test_invalid_override_leaves_label(self, client, calculated):
        response = client.post(
            "/api/labels/r1/manual-override",
            json={"overrides": {"calories": -10}, "reason": ""},
        )

        assert response.status_code == 400
        assert response.json()["error_code"] == "OVERRIDE_VALIDATION"
        assert client.get("/api/labels/r1").json()["source"] == "calculated"

    def test_override_unknown_record(self, client):
        response = client.post(
            "/api/labels/missing/manual-override",
            json={"overrides": {"calories": 10}, "reason": "x"},
        )

        assert response.status_code == 404

    def test_discrepancies(self, client, calculated):
        client.post(
            "/api/labels/r1/manual-override",
            json={"overrides": {"calories": 500, "protein": 5.2}, "reason": "Lab test"},
        )

        data = client.get("/api/labels/r1/discrepancies").json()

        assert data["has_manual_override"] is True
        assert [d["field"] for d in data["discrepancies"]] == ["calories"]

    def test_revert_without_body(self, client, calculated):
        client.post(
            "/api/labels/r1/manual-override",
            json={"overrides": {"calories": 500}, "reason": "Lab test"},
        )

        response = client.post("/api/labels/r1/revert-to-calculated")

        assert response.status_code == 200
        assert response.json()["source"] == "calculated"
        assert response.json()["values"]["calories"] == pytest.approx(367.76)

    def test_revert_with_reason(self, client, calculated):
        response = client.post("/api/labels/r1/revert-to-calculated", json={"reason": "Recipe changed"})

        assert response.status_code == 200
        assert response.json()["edit_summary"] is None

    def test_history(self, client, calculated):
        client.post(
            "/api/labels/r1/manual-override",
            json={"overrides": {"calories": 500}, "reason": "Lab test"},
        )
        client.post("/api/labels/r1/revert-to-calculated", json={"reason": "Oops"})

        events = client.get("/api/labels/r1/history").json()["events"]

        assert [e["kind"] for e in events] == ["recompute", "override", "revert"]
        assert events[1]["reason"] == "Lab test"
        assert "at" in events[0]

    def test_history_unknown_record(self, client):
        assert client.get("/api/labels/missing/history").status_code == 404
