"""
Attribution Analysis
====================

Turns an attribution request into warehouse SQL and the dashboard
definitions that render it.

ARCHITECTURE OVERVIEW
---------------------
```
JSON body
    |
    v
AttributionValidator (attribution/validator.py)
    |   1. Schema (pydantic AttributionRequest)
    |   2. Semantic (time scope, sheet/dashboard, events)
    |   3. Safety (identifiers, terminators, lengths)
    v
AttributionSQLParameters (attribution/query.py)
    |   + db (project), schema (app), timezone (pipeline)
    v
encode_attribution_parameters (attribution/encoder.py)
    |
    v
build_sql_for_*_model (attribution/compiler.py)
    |   shared CTE skeleton + CreditStrategy (attribution/credit.py)
    v
DataSetProps / VisualProps (attribution/visual_builder.py)
```

The orchestration (pipeline lookup, provider call, HTTP status mapping)
lives in services/attribution_service.py.

SAFETY MODEL
------------
Values that end up inside string literals (event names, timezone) are
validated and then encoded exactly once. Values that end up as identifiers
(project, app, view, property) must match `[A-Za-z_][A-Za-z0-9_]*` and are
never encoded.
"""

from clickstream_api.attribution.query import (
    AttributionModelType,
    AttributionRequest,
    AttributionSQLParameters,
    ChartType,
    ExploreLocale,
    ExploreRequestAction,
    ModelWindow,
    ModelWindowType,
    ModelWindowUnit,
    RelativeTimeUnit,
    TimeScopeParameters,
    TimeScopeType,
)
from clickstream_api.attribution.validator import (
    AttributionValidator,
    ValidationError,
    ValidationResult,
    validate_attribution_request,
)
from clickstream_api.attribution.encoder import (
    encode_attribution_parameters,
    encode_query_value_for_sql,
)
from clickstream_api.attribution.errors import (
    AttributionError,
    ClientError,
    GenerationError,
    NotFoundError,
    PipelineConfigurationError,
    SqlEncodingError,
    UnsupportedModelTypeError,
    VisualizationProviderError,
)
from clickstream_api.attribution.credit import (
    CreditStrategy,
    LinearCredit,
    PositionCredit,
    SinglePointCredit,
    TouchDirection,
)
from clickstream_api.attribution.compiler import (
    ATTRIBUTION_COLUMNS,
    build_attribution_sql,
    build_sql_for_linear_model,
    build_sql_for_model,
    build_sql_for_position_model,
    build_sql_for_single_point_model,
)
from clickstream_api.attribution.visual_builder import (
    DataSetProps,
    VisualProps,
    build_attribution_visual,
    get_temp_resource_name,
    get_visual_related_defs,
)


__all__ = [
    # Request model
    "AttributionModelType",
    "AttributionRequest",
    "AttributionSQLParameters",
    "ChartType",
    "ExploreLocale",
    "ExploreRequestAction",
    "ModelWindow",
    "ModelWindowType",
    "ModelWindowUnit",
    "RelativeTimeUnit",
    "TimeScopeParameters",
    "TimeScopeType",
    # Validation
    "AttributionValidator",
    "ValidationError",
    "ValidationResult",
    "validate_attribution_request",
    # Encoding
    "encode_attribution_parameters",
    "encode_query_value_for_sql",
    # Errors
    "AttributionError",
    "ClientError",
    "GenerationError",
    "NotFoundError",
    "PipelineConfigurationError",
    "SqlEncodingError",
    "UnsupportedModelTypeError",
    "VisualizationProviderError",
    # Credit
    "CreditStrategy",
    "LinearCredit",
    "PositionCredit",
    "SinglePointCredit",
    "TouchDirection",
    # SQL
    "ATTRIBUTION_COLUMNS",
    "build_attribution_sql",
    "build_sql_for_linear_model",
    "build_sql_for_model",
    "build_sql_for_position_model",
    "build_sql_for_single_point_model",
    # Visuals
    "DataSetProps",
    "VisualProps",
    "build_attribution_visual",
    "get_temp_resource_name",
    "get_visual_related_defs",
]
