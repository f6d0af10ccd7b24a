"""
Custom exceptions and error codes for the meal orchestrator.

This module provides:
- Structured error codes for categorized error handling
- Custom exception classes for the fatal scheduling failures
- Error response schema for consistent API responses

Equipment contention is never raised; it is reported as Conflict data in the
schedule report.
"""
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict


class ErrorCode(str, Enum):
    """
    Application-wide error codes for categorized error handling.

    Format: CATEGORY_SPECIFIC_ERROR
    Categories:
    - RECIPE_*: Structural recipe input errors
    - SCHEDULE_*: Scheduling run errors
    - VALIDATION_*: Input validation errors
    """

    # Recipe-related errors
    RECIPE_MALFORMED = "RECIPE_MALFORMED"

    # Schedule-related errors
    SCHEDULE_UNMET_DEADLINE = "SCHEDULE_UNMET_DEADLINE"
    SCHEDULE_CANCELLED = "SCHEDULE_CANCELLED"

    # Validation errors
    VALIDATION_INVALID_FORMAT = "VALIDATION_INVALID_FORMAT"

    # General errors
    INTERNAL_ERROR = "INTERNAL_ERROR"


class ErrorResponse(BaseModel):
    """Structured error response for API errors."""
    error_code: ErrorCode
    message: str
    details: Optional[Dict[str, Any]] = None

    model_config = ConfigDict(use_enum_values=True)


class OrchestratorError(Exception):
    """
    Base exception for all meal orchestrator errors.

    Provides structured error information for consistent error handling.
    """

    def __init__(
        self,
        message: str,
        error_code: ErrorCode = ErrorCode.INTERNAL_ERROR,
        details: Optional[Dict[str, Any]] = None,
        status_code: int = 500,
    ):
        self.message = message
        self.error_code = error_code
        self.details = details or {}
        self.status_code = status_code
        super().__init__(self.message)

    def to_response(self) -> ErrorResponse:
        """Convert exception to ErrorResponse for API output."""
        return ErrorResponse(
            error_code=self.error_code,
            message=self.message,
            details=self.details if self.details else None,
        )


class MalformedRecipeError(OrchestratorError):
    """
    Raised when recipe input is structurally invalid.

    Fatal for the whole run: nothing is scheduled. Every problem found is
    listed so the author can fix them in one go.
    """

    def __init__(self, problems: List[str]):
        self.problems = sorted(problems)
        count = len(self.problems)
        super().__init__(
            message=f"Recipe input is malformed ({count} problem{'s' if count != 1 else ''}): "
            + "; ".join(self.problems),
            error_code=ErrorCode.RECIPE_MALFORMED,
            details={"problems": self.problems},
            status_code=422,
        )


class UnmetDeadlineError(OrchestratorError):
    """
    Raised when a recipe's own chain cannot fit before meal time.

    Fatal for that recipe only; the scheduler converts it into an
    unmet-deadline conflict and keeps scheduling the other recipes.
    """

    def __init__(
        self,
        recipe_id: str,
        recipe_name: str,
        reason: str,
        step_group_ids: Optional[List[str]] = None,
        shortfall_minutes: Optional[int] = None,
    ):
        self.recipe_id = recipe_id
        self.recipe_name = recipe_name
        self.reason = reason
        self.step_group_ids = step_group_ids or []
        self.shortfall_minutes = shortfall_minutes

        details: Dict[str, Any] = {
            "recipe_id": recipe_id,
            "reason": reason,
            "step_group_ids": self.step_group_ids,
        }
        if shortfall_minutes is not None:
            details["shortfall_minutes"] = shortfall_minutes

        super().__init__(
            message=f"'{recipe_name}' cannot be ready by meal time: {reason}",
            error_code=ErrorCode.SCHEDULE_UNMET_DEADLINE,
            details=details,
            status_code=422,
        )


class ScheduleCancelledError(OrchestratorError):
    """Raised when a scheduling run is abandoned at a state transition."""

    def __init__(self, state: str):
        self.state = state
        super().__init__(
            message=f"Scheduling run cancelled after reaching state '{state}'",
            error_code=ErrorCode.SCHEDULE_CANCELLED,
            details={"state": state},
            status_code=409,
        )
