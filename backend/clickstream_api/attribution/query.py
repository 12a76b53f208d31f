"""
Attribution Query Model
=======================

Typed request structure for attribution analysis and the derived parameter
set consumed by the SQL builders.

WHY THIS FILE EXISTS
--------------------
Requests arrive as loose JSON. Before anything touches SQL they are parsed
into `AttributionRequest` (a pydantic model, tagged on `model_type`), checked
by the validator, resolved against the owning pipeline and finally flattened
into `AttributionSQLParameters`.

    JSON body
        |
        v
    AttributionRequest          (schema layer, this file)
        |
        v
    AttributionValidator        (semantic + safety layers)
        |
        v
    AttributionSQLParameters    (+ schema_name, db_name, timezone)
        |
        v
    encode_attribution_parameters -> build_sql_for_*_model

RELATED FILES
-------------
- clickstream_api/attribution/validator.py: Validates AttributionRequest
- clickstream_api/attribution/encoder.py: Encodes AttributionSQLParameters
- clickstream_api/attribution/compiler.py: Consumes AttributionSQLParameters
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


# =============================================================================
# ENUMS
# =============================================================================

class AttributionModelType(str, Enum):
    """
    Attribution model requested by the caller.

    FIRST_TOUCH and LAST_TOUCH share the single-point builder and differ only
    in direction.
    """
    FIRST_TOUCH = "FIRST_TOUCH"
    LAST_TOUCH = "LAST_TOUCH"
    LINEAR = "LINEAR"
    POSITION = "POSITION"


class TimeScopeType(str, Enum):
    """Absolute (start/end) or relative (last N units) time scope."""
    FIXED = "FIXED"
    RELATIVE = "RELATIVE"


class RelativeTimeUnit(str, Enum):
    """
    Unit for relative time scopes.

    The value is what the UI sends; `datepart` is the Redshift DATEADD part.
    """
    DD = "DD"
    WK = "WK"
    MM = "MM"
    Q = "Q"
    Y = "Y"

    @property
    def datepart(self) -> str:
        return _RELATIVE_DATEPARTS[self]


_RELATIVE_DATEPARTS = {
    RelativeTimeUnit.DD: "DAY",
    RelativeTimeUnit.WK: "WEEK",
    RelativeTimeUnit.MM: "MONTH",
    RelativeTimeUnit.Q: "QUARTER",
    RelativeTimeUnit.Y: "YEAR",
}


class ModelWindowType(str, Enum):
    """
    Look-back window between a touch point and its conversion.

    CURRENT_DAY: touch and conversion fall on the same local day
    CUSTOMIZE: touch happened at most `value` `unit`s before the conversion
    """
    CURRENT_DAY = "CURRENT_DAY"
    CUSTOMIZE = "CUSTOMIZE"


class ModelWindowUnit(str, Enum):
    MINUTE = "MINUTE"
    HOUR = "HOUR"
    DAY = "DAY"


class ExploreRequestAction(str, Enum):
    """PREVIEW renders into disposable resources; PUBLISH keeps them."""
    PREVIEW = "PREVIEW"
    PUBLISH = "PUBLISH"


class ExploreLocale(str, Enum):
    EN_US = "en-US"
    ZH_CN = "zh-CN"


class ChartType(str, Enum):
    TABLE = "Table"
    BAR = "Bar"


# =============================================================================
# REQUEST MODEL (schema layer)
# =============================================================================

class ModelWindow(BaseModel):
    """Optional look-back window. See ModelWindowType."""

    model_config = ConfigDict(populate_by_name=True, alias_generator=to_camel)

    type: ModelWindowType
    value: Optional[int] = None
    unit: Optional[ModelWindowUnit] = None


class AttributionRequest(BaseModel):
    """
    Attribution analysis request body.

    WHAT: The strongly-typed form of the POST body. Field names are camelCase
    on the wire (`projectId`, `touchPointEventName`, ...) and snake_case in
    Python.

    INVARIANTS (checked by the validator, not here):
        - Exactly one of (time_start, time_end) or (last_n, time_unit) is set,
          matching time_scope_type
        - dashboard_id set implies sheet_id set
        - touch point names differ from the conversion event name

    EXAMPLE:
        AttributionRequest.model_validate({
            "projectId": "p1",
            "appId": "a1",
            "modelType": "LAST_TOUCH",
            "touchPointEventName": "view_item",
            "conversionEventName": "purchase",
            "timeScopeType": "FIXED",
            "timeStart": "2024-01-01",
            "timeEnd": "2024-01-31",
            "viewName": "attribution_view",
            "action": "PREVIEW",
        })
    """

    model_config = ConfigDict(populate_by_name=True, alias_generator=to_camel)

    project_id: str
    app_id: str
    model_type: AttributionModelType

    touch_point_event_name: str
    additional_touch_point_event_names: List[str] = Field(default_factory=list)
    conversion_event_name: str
    conversion_value_property: Optional[str] = None
    model_window: Optional[ModelWindow] = None

    time_scope_type: TimeScopeType
    time_start: Optional[date] = None
    time_end: Optional[date] = None
    last_n: Optional[int] = None
    time_unit: Optional[RelativeTimeUnit] = None

    dashboard_id: Optional[str] = None
    sheet_id: Optional[str] = None
    locale: ExploreLocale = ExploreLocale.EN_US
    chart_type: ChartType = ChartType.TABLE
    view_name: Optional[str] = None
    action: ExploreRequestAction

    def touch_point_event_names(self) -> List[str]:
        """Primary touch point followed by the additional ones, without duplicates."""
        names: List[str] = []
        for name in [self.touch_point_event_name, *self.additional_touch_point_event_names]:
            if name not in names:
                names.append(name)
        return names

    def resolved_view_name(self) -> str:
        """Caller-supplied view name, or one derived from the app and model."""
        if self.view_name:
            return self.view_name
        return f"attribution_{self.app_id}_{self.model_type.value.lower()}"

    def is_preview(self) -> bool:
        return self.action == ExploreRequestAction.PREVIEW

    def targets_existing_dashboard(self) -> bool:
        return bool(self.dashboard_id)


# =============================================================================
# SQL PARAMETERS (builder input)
# =============================================================================

@dataclass(frozen=True)
class TimeScopeParameters:
    """
    Dataset parameter names the time scope is bound to.

    When AttributionSQLParameters carries these, the builders emit `<<$name>>`
    placeholders instead of literal dates, and the dashboard controls bound to
    the same names re-scope the visual without new SQL.

        FIXED      start, end   (dates)
        RELATIVE   last_n       (integer, the unit stays as requested)
    """
    start: str
    end: str
    last_n: str

    @classmethod
    def for_visual(cls, visual_id: str) -> "TimeScopeParameters":
        """Names unique to one visual, so visuals sharing a dashboard never collide."""
        suffix = visual_id.replace("-", "")[:8]
        return cls(start=f"dateStart{suffix}", end=f"dateEnd{suffix}", last_n=f"lastN{suffix}")


@dataclass
class AttributionSQLParameters:
    """
    Everything a SQL builder needs, nothing it does not.

    WHAT: The validated request flattened for SQL generation, plus the
    resolved warehouse location and timezone.

    PARAMETERS:
        schema_name: Warehouse schema (the app id)
        db_name: Warehouse database (the project id)
        timezone: Timezone of the app, from the owning pipeline

    NOTE: Free-text fields (event names, timezone) must go through
    `encode_attribution_parameters` exactly once before reaching a builder.
    """
    model_type: AttributionModelType
    touch_point_event_names: List[str]
    conversion_event_name: str
    time_scope_type: TimeScopeType
    schema_name: str
    db_name: str
    timezone: str
    time_start: Optional[date] = None
    time_end: Optional[date] = None
    last_n: Optional[int] = None
    time_unit: Optional[RelativeTimeUnit] = None
    conversion_value_property: Optional[str] = None
    model_window: Optional[ModelWindow] = None
    time_parameters: Optional[TimeScopeParameters] = None
    encoded: bool = field(default=False, compare=False)

    @classmethod
    def from_request(
        cls,
        request: AttributionRequest,
        timezone: str,
        time_parameters: Optional[TimeScopeParameters] = None,
    ) -> "AttributionSQLParameters":
        return cls(
            model_type=request.model_type,
            touch_point_event_names=request.touch_point_event_names(),
            conversion_event_name=request.conversion_event_name,
            time_scope_type=request.time_scope_type,
            schema_name=request.app_id,
            db_name=request.project_id,
            timezone=timezone,
            time_start=request.time_start,
            time_end=request.time_end,
            last_n=request.last_n,
            time_unit=request.time_unit,
            conversion_value_property=request.conversion_value_property,
            model_window=request.model_window,
            time_parameters=time_parameters,
        )

    def uses_conversion_value(self) -> bool:
        return bool(self.conversion_value_property)
