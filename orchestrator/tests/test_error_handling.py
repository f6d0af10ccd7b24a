"""
Tests for error handling and error response format.

Tests cover:
- Custom exception classes and error codes
- Structured error responses
- Error code propagation through the API
"""
import pytest

from orchestrator.errors import (
    ErrorCode,
    ErrorResponse,
    MalformedRecipeError,
    OrchestratorError,
    ScheduleCancelledError,
    UnmetDeadlineError,
)


class TestErrorCodeEnum:
    """Tests for ErrorCode enumeration."""

    def test_error_codes_are_strings(self):
        """Error codes should be string values."""
        assert isinstance(ErrorCode.RECIPE_MALFORMED.value, str)
        assert ErrorCode.RECIPE_MALFORMED.value == "RECIPE_MALFORMED"

    def test_schedule_codes_exist(self):
        for code in (ErrorCode.SCHEDULE_UNMET_DEADLINE, ErrorCode.SCHEDULE_CANCELLED):
            assert code.value.startswith("SCHEDULE_")


class TestOrchestratorError:
    """Tests for the base exception."""

    def test_defaults(self):
        error = OrchestratorError("boom")

        assert error.error_code == ErrorCode.INTERNAL_ERROR
        assert error.status_code == 500
        assert error.details == {}
        assert str(error) == "boom"

    def test_to_response_omits_empty_details(self):
        response = OrchestratorError("boom").to_response()

        assert isinstance(response, ErrorResponse)
        assert response.details is None
        assert response.model_dump() == {
            "error_code": "INTERNAL_ERROR",
            "message": "boom",
            "details": None,
        }


class TestMalformedRecipeError:
    """Malformed recipe input."""

    def test_problems_sorted_and_counted(self):
        error = MalformedRecipeError(["EMPTY_RECIPE: recipe=b", "DUPLICATE_STEP: recipe=a step=x"])

        assert error.problems == ["DUPLICATE_STEP: recipe=a step=x", "EMPTY_RECIPE: recipe=b"]
        assert error.message.startswith("Recipe input is malformed (2 problems)")
        assert error.status_code == 422
        assert error.to_response().details == {"problems": error.problems}

    def test_single_problem_wording(self):
        error = MalformedRecipeError(["EMPTY_RECIPE: recipe=b"])

        assert "(1 problem)" in error.message


class TestUnmetDeadlineError:
    """Per-recipe deadline failures."""

    def test_details(self):
        error = UnmetDeadlineError(
            recipe_id="turkey",
            recipe_name="Roast Turkey",
            reason="too late",
            step_group_ids=["prep", "roast"],
            shortfall_minutes=45,
        )

        assert error.message == "'Roast Turkey' cannot be ready by meal time: too late"
        assert error.details == {
            "recipe_id": "turkey",
            "reason": "too late",
            "step_group_ids": ["prep", "roast"],
            "shortfall_minutes": 45,
        }

    def test_shortfall_optional(self):
        error = UnmetDeadlineError(recipe_id="pie", recipe_name="Pie", reason="pinned")

        assert "shortfall_minutes" not in error.details
        assert error.step_group_ids == []


class TestScheduleCancelledError:
    def test_conflict_status(self):
        error = ScheduleCancelledError("allocated")

        assert error.status_code == 409
        assert error.error_code == ErrorCode.SCHEDULE_CANCELLED
        assert error.details == {"state": "allocated"}


class TestApiErrorResponses:
    """Errors reach API clients as structured bodies."""

    def test_malformed_recipe_returns_422(self, client):
        response = client.post(
            "/api/schedule",
            json={
                "meal_time": "2024-11-28T18:00:00",
                "recipes": [{"id": "empty", "name": "Empty", "step_groups": []}],
            },
        )

        assert response.status_code == 422
        data = response.json()
        assert data["error_code"] == "RECIPE_MALFORMED"
        assert data["details"]["problems"] == ["EMPTY_RECIPE: recipe=empty has no step groups"]

    def test_invalid_payload_uses_request_validation(self, client):
        response = client.post("/api/schedule", json={"recipes": []})

        assert response.status_code == 422
        assert "detail" in response.json()

    @pytest.mark.parametrize("path", ["/api/schedule", "/api/schedule/validate"])
    def test_kitchen_must_open_before_meal(self, client, path):
        response = client.post(
            path,
            json={
                "meal_time": "2024-11-28T18:00:00",
                "kitchen_opens_at": "2024-11-28T19:00:00",
                "recipes": [],
            },
        )

        assert response.status_code == 422

    def test_mixed_timezone_awareness_rejected(self, client):
        response = client.post(
            "/api/schedule",
            json={
                "meal_time": "2024-11-28T18:00:00+00:00",
                "kitchen_opens_at": "2024-11-28T08:00:00",
                "recipes": [],
            },
        )

        assert response.status_code == 422
        assert "both include a timezone" in response.text
