"""
Attribution Request Validator
=============================

Multi-layer validation for attribution analysis requests.

WHY THIS FILE EXISTS
--------------------
Invalid requests must be rejected with a 400 before any pipeline lookup,
SQL generation or provider call happens. The validator never raises: it
returns a ValidationResult the service turns into a client error response.

VALIDATION LAYERS
-----------------
    Layer 1: Schema (pydantic)
        - JSON structure and types
        - Enum values (modelType, timeScopeType, timeUnit, action, ...)

    Layer 2: Semantic
        - Required identifiers present
        - Time scope consistent (FIXED xor RELATIVE fields)
        - dashboardId requires sheetId
        - Touch points differ from the conversion event
        - Model window complete

    Layer 3: Safety
        - Identifiers match IDENTIFIER_PATTERN (they are not encoded)
        - Free-text values have no statement terminators or control chars
        - Length limits

RELATED FILES
-------------
- clickstream_api/attribution/query.py: AttributionRequest (layer 1)
- clickstream_api/attribution/encoder.py: Shared safety predicates
- clickstream_api/services/attribution_service.py: Calls validate()
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional
import logging

from pydantic import ValidationError as PydanticValidationError

from clickstream_api.attribution.encoder import contains_unsafe_sequence, is_sql_identifier
from clickstream_api.attribution.query import (
    AttributionRequest,
    ModelWindowType,
    TimeScopeType,
)

logger = logging.getLogger(__name__)


MAX_VALUE_LENGTH = 255
MAX_TOUCH_POINTS = 20


# =============================================================================
# VALIDATION ERROR / RESULT
# =============================================================================

@dataclass
class ValidationError:
    """
    A single validation failure.

    ATTRIBUTES:
        layer: "schema", "semantic" or "safety"
        code: Machine-readable code (e.g. "MISSING_SHEET_ID")
        message: Human-readable message
        field: Wire name of the offending field (optional)
    """
    layer: str
    code: str
    message: str
    field: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        result = {
            "layer": self.layer,
            "code": self.code,
            "message": self.message,
        }
        if self.field:
            result["field"] = self.field
        return result


@dataclass
class ValidationResult:
    """
    Outcome of the validation pipeline.

    ATTRIBUTES:
        valid: True when every layer passed
        errors: All errors collected
        request: Parsed request (present once the schema layer passed)
    """
    valid: bool = True
    errors: List[ValidationError] = field(default_factory=list)
    request: Optional[AttributionRequest] = None

    def add_error(self, error: ValidationError) -> None:
        self.errors.append(error)
        self.valid = False

    @property
    def message(self) -> Optional[str]:
        """First error message, which is what the caller gets back."""
        if self.valid:
            return None
        return self.errors[0].message

    def to_dict(self) -> Dict[str, Any]:
        return {
            "valid": self.valid,
            "message": self.message,
            "errors": [e.to_dict() for e in self.errors],
        }


# =============================================================================
# VALIDATOR
# =============================================================================

class AttributionValidator:
    """
    Validates raw attribution request bodies.

    USAGE:
        result = AttributionValidator().validate(payload)
        if not result.valid:
            return 400, result.message
        request = result.request
    """

    def validate(self, payload: Any) -> ValidationResult:
        result = ValidationResult()

        request = self._validate_schema(payload, result)
        if request is None:
            self._log_failure(result)
            return result

        self._validate_semantic(request, result)
        self._validate_safety(request, result)

        if result.valid:
            result.request = request
            logger.debug(f"[VALIDATOR] Attribution request valid: {request.model_type.value}")
        else:
            self._log_failure(result)
        return result

    # -------------------------------------------------------------------------
    # Layer 1: Schema
    # -------------------------------------------------------------------------

    def _validate_schema(self, payload: Any, result: ValidationResult) -> Optional[AttributionRequest]:
        if not isinstance(payload, dict):
            result.add_error(ValidationError(
                layer="schema",
                code="MALFORMED_BODY",
                message="Request body must be a JSON object",
            ))
            return None

        try:
            return AttributionRequest.model_validate(payload)
        except PydanticValidationError as exc:
            for error in exc.errors():
                field_name = ".".join(str(part) for part in error.get("loc", ()))
                result.add_error(ValidationError(
                    layer="schema",
                    code=_schema_error_code(error.get("type", "")),
                    message=f"{field_name}: {error.get('msg')}" if field_name else error.get("msg", ""),
                    field=field_name or None,
                ))
            return None

    # -------------------------------------------------------------------------
    # Layer 2: Semantic
    # -------------------------------------------------------------------------

    def _validate_semantic(self, request: AttributionRequest, result: ValidationResult) -> None:
        self._validate_required(request, result)
        self._validate_time_scope(request, result)
        self._validate_dashboard_target(request, result)
        self._validate_events(request, result)
        self._validate_model_window(request, result)

    def _validate_required(self, request: AttributionRequest, result: ValidationResult) -> None:
        required = {
            "projectId": request.project_id,
            "appId": request.app_id,
            "touchPointEventName": request.touch_point_event_name,
            "conversionEventName": request.conversion_event_name,
        }
        for name, value in required.items():
            if not value or not value.strip():
                result.add_error(ValidationError(
                    layer="semantic",
                    code="MISSING_REQUIRED_FIELD",
                    message=f"missing required parameter {name}",
                    field=name,
                ))

    def _validate_time_scope(self, request: AttributionRequest, result: ValidationResult) -> None:
        """
        FIXED needs timeStart + timeEnd and nothing relative.
        RELATIVE needs lastN + timeUnit and nothing absolute.
        """
        has_fixed = request.time_start is not None or request.time_end is not None
        has_relative = request.last_n is not None or request.time_unit is not None

        if has_fixed and has_relative:
            result.add_error(ValidationError(
                layer="semantic",
                code="MIXED_TIME_SCOPE",
                message="time scope cannot mix timeStart/timeEnd with lastN/timeUnit",
                field="timeScopeType",
            ))
            return

        if request.time_scope_type == TimeScopeType.FIXED:
            if request.time_start is None or request.time_end is None:
                result.add_error(ValidationError(
                    layer="semantic",
                    code="INCOMPLETE_TIME_SCOPE",
                    message="timeStart and timeEnd are required for a FIXED time scope",
                    field="timeStart",
                ))
            elif request.time_start > request.time_end:
                result.add_error(ValidationError(
                    layer="semantic",
                    code="INVALID_TIME_RANGE",
                    message="timeStart must not be after timeEnd",
                    field="timeStart",
                ))
        else:
            if request.last_n is None or request.time_unit is None:
                result.add_error(ValidationError(
                    layer="semantic",
                    code="INCOMPLETE_TIME_SCOPE",
                    message="lastN and timeUnit are required for a RELATIVE time scope",
                    field="lastN",
                ))
            elif request.last_n <= 0:
                result.add_error(ValidationError(
                    layer="semantic",
                    code="OUT_OF_RANGE",
                    message="lastN must be a positive integer",
                    field="lastN",
                ))

    def _validate_dashboard_target(self, request: AttributionRequest, result: ValidationResult) -> None:
        if request.dashboard_id and not request.sheet_id:
            result.add_error(ValidationError(
                layer="semantic",
                code="MISSING_SHEET_ID",
                message="missing required parameter sheetId",
                field="sheetId",
            ))

    def _validate_events(self, request: AttributionRequest, result: ValidationResult) -> None:
        touch_points = request.touch_point_event_names()
        if len(touch_points) > MAX_TOUCH_POINTS:
            result.add_error(ValidationError(
                layer="semantic",
                code="TOO_MANY_TOUCH_POINTS",
                message=f"at most {MAX_TOUCH_POINTS} touch point events are supported",
                field="additionalTouchPointEventNames",
            ))
        if any(not name or not name.strip() for name in request.additional_touch_point_event_names):
            result.add_error(ValidationError(
                layer="semantic",
                code="MISSING_REQUIRED_FIELD",
                message="touch point event names must not be empty",
                field="additionalTouchPointEventNames",
            ))
        if request.conversion_event_name in touch_points:
            result.add_error(ValidationError(
                layer="semantic",
                code="CONFLICTING_EVENTS",
                message="conversion event cannot also be a touch point event",
                field="conversionEventName",
            ))

    def _validate_model_window(self, request: AttributionRequest, result: ValidationResult) -> None:
        window = request.model_window
        if window is None or window.type != ModelWindowType.CUSTOMIZE:
            return
        if window.value is None or window.value <= 0 or window.unit is None:
            result.add_error(ValidationError(
                layer="semantic",
                code="INCOMPLETE_MODEL_WINDOW",
                message="a CUSTOMIZE model window needs a positive value and a unit",
                field="modelWindow",
            ))

    # -------------------------------------------------------------------------
    # Layer 3: Safety
    # -------------------------------------------------------------------------

    def _validate_safety(self, request: AttributionRequest, result: ValidationResult) -> None:
        identifiers = {
            "projectId": request.project_id,
            "appId": request.app_id,
        }
        if request.view_name is not None:
            identifiers["viewName"] = request.view_name
        if request.conversion_value_property is not None:
            identifiers["conversionValueProperty"] = request.conversion_value_property

        for name, value in identifiers.items():
            # Empty values were already reported by the semantic layer
            if value and not is_sql_identifier(value):
                result.add_error(ValidationError(
                    layer="safety",
                    code="INVALID_IDENTIFIER",
                    message=f"{name} may only contain letters, digits and underscores",
                    field=name,
                ))

        free_text = [("conversionEventName", request.conversion_event_name)]
        free_text += [("touchPointEventName", name) for name in request.touch_point_event_names()]

        for name, value in free_text:
            if len(value) > MAX_VALUE_LENGTH:
                result.add_error(ValidationError(
                    layer="safety",
                    code="VALUE_TOO_LONG",
                    message=f"{name} exceeds maximum length of {MAX_VALUE_LENGTH}",
                    field=name,
                ))
            elif contains_unsafe_sequence(value):
                result.add_error(ValidationError(
                    layer="safety",
                    code="DANGEROUS_PATTERN",
                    message=f"{name} contains characters that are not allowed",
                    field=name,
                ))

    def _log_failure(self, result: ValidationResult) -> None:
        logger.warning(
            "[VALIDATOR] Attribution request rejected",
            extra={
                "error_count": len(result.errors),
                "errors": [e.to_dict() for e in result.errors],
            },
        )


def _schema_error_code(pydantic_type: str) -> str:
    if pydantic_type == "missing":
        return "MISSING_REQUIRED_FIELD"
    if pydantic_type == "enum":
        return "INVALID_ENUM_VALUE"
    return "INVALID_FIELD_TYPE"


def validate_attribution_request(payload: Any) -> ValidationResult:
    """Convenience wrapper around AttributionValidator().validate()."""
    return AttributionValidator().validate(payload)
