"""
Tests for the scheduling API routes and service endpoints.
"""
import pytest
from fastapi.testclient import TestClient

from orchestrator.samples import thanksgiving_request


@pytest.fixture
def turkey_payload():
    return {
        "meal_time": "2024-11-28T18:00:00",
        "meal_name": "Thanksgiving",
        "equipment": {"ovens": [{"physical_racks": 2, "rack_positions": 5}], "stovetop_burners": 4},
        "recipes": [
            {
                "id": "turkey",
                "name": "Roast Turkey",
                "step_groups": [
                    {"id": "prep", "name": "Prep", "duration_minutes": 30},
                    {
                        "id": "roast",
                        "name": "Roast",
                        "duration_minutes": 180,
                        "rest_minutes": 20,
                        "hold_minutes": 10,
                        "equipment": {"kind": "oven", "temperature": 325, "height_slots": 3},
                    },
                ],
            }
        ],
    }


class TestRootEndpoint:
    """Tests for the root / endpoint."""

    def test_returns_app_info(self, client: TestClient):
        response = client.get("/")

        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "running"
        assert data["docs"] == "/docs"


class TestHealthCheckEndpoint:
    """Tests for the /health endpoint."""

    def test_healthy(self, client: TestClient):
        response = client.get("/health")

        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "healthy"
        assert data["repair_strategy"] in ("shift_earlier", "none")


class TestCreateSchedule:
    """POST /api/schedule."""

    def test_returns_report(self, client: TestClient, turkey_payload):
        response = client.post("/api/schedule", json=turkey_payload)

        assert response.status_code == 200
        data = response.json()
        assert data["final_state"] == "reported"
        assert data["all_ready_by_meal_time"] is True
        assert data["no_equipment_overbooked"] is True
        roast = next(a for a in data["assignments"] if a["step_group_id"] == "roast")
        assert roast["start"] == "2024-11-28T14:30:00"
        assert roast["equipment_id"] == "oven-1"
        assert data["timeline"][-1]["description"] == "Serve Thanksgiving"

    def test_conflicts_are_data_not_errors(self, client: TestClient, turkey_payload):
        turkey_payload["kitchen_opens_at"] = "2024-11-28T17:00:00"

        response = client.post("/api/schedule", json=turkey_payload)

        assert response.status_code == 200
        data = response.json()
        assert data["final_state"] == "unmet_deadline"
        assert data["conflicts"][0]["type"] == "unmet_deadline"
        assert data["conflicts"][0]["status"] == "fatal"

    def test_sample_request_round_trips(self, client: TestClient):
        payload = thanksgiving_request().model_dump(mode="json")

        response = client.post("/api/schedule", json=payload)

        assert response.status_code == 200
        assert response.json()["conflicts"] == []

    def test_unknown_equipment_kind_rejected(self, client: TestClient, turkey_payload):
        turkey_payload["recipes"][0]["step_groups"][1]["equipment"]["kind"] = "grill"

        response = client.post("/api/schedule", json=turkey_payload)

        assert response.status_code == 422


class TestValidateSchedule:
    """POST /api/schedule/validate."""

    def test_returns_chain_summary(self, client: TestClient, turkey_payload):
        response = client.post("/api/schedule/validate", json=turkey_payload)

        assert response.status_code == 200
        assert response.json() == {
            "valid": True,
            "recipes": [
                {
                    "recipe_id": "turkey",
                    "recipe_name": "Roast Turkey",
                    "step_group_ids": ["prep", "roast"],
                }
            ],
        }

    def test_malformed_recipe(self, client: TestClient, turkey_payload):
        turkey_payload["recipes"][0]["step_groups"][1]["id"] = "prep"

        response = client.post("/api/schedule/validate", json=turkey_payload)

        assert response.status_code == 422
        assert response.json()["error_code"] == "RECIPE_MALFORMED"
