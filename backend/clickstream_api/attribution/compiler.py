"""
Attribution SQL Compiler
========================

Compiles AttributionSQLParameters into one Redshift statement that computes
per-touch-point conversion credit.

WHY THIS FILE EXISTS
--------------------
First-touch, last-touch, linear and position-based attribution all need the
same work done: pick the events, pair every touch with the conversion it
leads to, order the touches of each conversion, then aggregate by touch
point. Only the credit rule differs. `build_attribution_sql` is that shared
algorithm; the rule is passed in as a CreditStrategy.

QUERY SHAPE
-----------
    base_data            events of interest inside the time scope
    touch_point_data     touch events
    conversion_data      conversion events + previous conversion of the user
    touch_conversion     touch paired with the next conversion of the user
    ranked_touch         rank / count of touches per conversion
    attributed_touch     credit per touch (strategy)
    touch_point_names    every requested touch point (zero rows included)
    trigger_count        touch events per touch point
    attribution_summary  triggers with conversion, summed contribution
    conversion_summary   total conversions / total conversion value

PAIRING RULES
-------------
- A touch qualifies for a conversion when it is from the same user, strictly
  earlier, and not earlier than the user's previous conversion. Each touch is
  therefore credited to at most one conversion.
- Touches of a conversion are ordered by (event_timestamp, event_id). Equal
  timestamps are broken by event_id so "first" and "last" are reproducible.
- An optional model window further bounds the touch-to-conversion distance.

OUTPUT COLUMNS
--------------
    Touch Point Name, Trigger Count, Number of Total Conversion,
    Number of Triggers with Conversion, Contribution(number/sum...value),
    Contribution Rate

Contribution Rate is contribution / total conversions (or / total conversion
value when a conversion value property is used), a ratio in [0, 1].

RELATED FILES
-------------
- clickstream_api/attribution/credit.py: Credit strategies
- clickstream_api/attribution/time_scope.py: Time predicates
- clickstream_api/attribution/encoder.py: Must run before this module
"""

from __future__ import annotations

import logging
from typing import List

from clickstream_api.attribution.credit import (
    CreditStrategy,
    LinearCredit,
    PositionCredit,
    SinglePointCredit,
    TouchDirection,
)
from clickstream_api.attribution.errors import UnsupportedModelTypeError
from clickstream_api.attribution.query import AttributionModelType, AttributionSQLParameters
from clickstream_api.attribution.time_scope import model_window_condition, time_scope_condition

logger = logging.getLogger(__name__)


EVENT_TABLE = "event_v2"

COLUMN_TOUCH_POINT_NAME = "Touch Point Name"
COLUMN_TRIGGER_COUNT = "Trigger Count"
COLUMN_TOTAL_CONVERSION = "Number of Total Conversion"
COLUMN_TRIGGERS_WITH_CONVERSION = "Number of Triggers with Conversion"
COLUMN_CONTRIBUTION = "Contribution(number/sum...value)"
COLUMN_CONTRIBUTION_RATE = "Contribution Rate"

ATTRIBUTION_COLUMNS = [
    COLUMN_TOUCH_POINT_NAME,
    COLUMN_TRIGGER_COUNT,
    COLUMN_TOTAL_CONVERSION,
    COLUMN_TRIGGERS_WITH_CONVERSION,
    COLUMN_CONTRIBUTION,
    COLUMN_CONTRIBUTION_RATE,
]


# =============================================================================
# PUBLIC BUILDERS
# =============================================================================

def build_sql_for_single_point_model(params: AttributionSQLParameters) -> str:
    """First-touch or last-touch, chosen by params.model_type."""
    if params.model_type == AttributionModelType.FIRST_TOUCH:
        direction = TouchDirection.FIRST
    elif params.model_type == AttributionModelType.LAST_TOUCH:
        direction = TouchDirection.LAST
    else:
        raise UnsupportedModelTypeError(
            "Single point model requires FIRST_TOUCH or LAST_TOUCH",
            details={"model_type": str(params.model_type)},
        )
    return build_attribution_sql(params, SinglePointCredit(direction))


def build_sql_for_linear_model(params: AttributionSQLParameters) -> str:
    return build_attribution_sql(params, LinearCredit())


def build_sql_for_position_model(params: AttributionSQLParameters) -> str:
    return build_attribution_sql(params, PositionCredit())


def build_sql_for_model(params: AttributionSQLParameters) -> str:
    """Dispatch on params.model_type. Raises UnsupportedModelTypeError for unknown types."""
    builder = _MODEL_BUILDERS.get(params.model_type)
    if builder is None:
        raise UnsupportedModelTypeError(
            "Invalid attribution analysis model type",
            details={"model_type": str(params.model_type)},
        )
    return builder(params)


_MODEL_BUILDERS = {
    AttributionModelType.FIRST_TOUCH: build_sql_for_single_point_model,
    AttributionModelType.LAST_TOUCH: build_sql_for_single_point_model,
    AttributionModelType.LINEAR: build_sql_for_linear_model,
    AttributionModelType.POSITION: build_sql_for_position_model,
}


# =============================================================================
# SHARED ALGORITHM
# =============================================================================

def build_attribution_sql(params: AttributionSQLParameters, strategy: CreditStrategy) -> str:
    """
    Build the full attribution statement.

    PARAMETERS:
        params: Validated and encoded parameters
        strategy: Credit rule applied to each ranked touch

    RETURNS:
        A single SELECT statement (no trailing semicolon)
    """
    ctes = [
        _base_data_cte(params),
        _touch_point_data_cte(params),
        _conversion_data_cte(params),
        _touch_conversion_cte(params),
        _ranked_touch_cte(),
        _attributed_touch_cte(strategy),
        _touch_point_names_cte(params),
        _trigger_count_cte(),
        _attribution_summary_cte(),
        _conversion_summary_cte(),
    ]
    sql = "WITH\n" + ",\n".join(ctes) + "\n" + _final_select()
    logger.debug(f"[COMPILER] Built {strategy.name} attribution SQL for {params.schema_name}")
    return sql


def _quote(value: str) -> str:
    return f"'{value}'"


def _literal_list(values: List[str]) -> str:
    return ", ".join(_quote(v) for v in values)


def _event_name_condition(names: List[str]) -> str:
    if len(names) == 1:
        return f"event_name = {_quote(names[0])}"
    return f"event_name IN ({_literal_list(names)})"


def _base_data_cte(params: AttributionSQLParameters) -> str:
    event_names = _literal_list(params.touch_point_event_names + [params.conversion_event_name])
    columns = [
        "event_id",
        "event_name",
        "event_timestamp",
        "user_pseudo_id",
    ]
    if params.uses_conversion_value():
        columns.append("custom_parameters")
    return (
        "base_data AS (\n"
        "  SELECT\n"
        + ",\n".join(f"    {c}" for c in columns) + "\n"
        f"  FROM {params.db_name}.{params.schema_name}.{EVENT_TABLE}\n"
        f"  WHERE event_name IN ({event_names})\n"
        f"    AND {time_scope_condition(params)}\n"
        ")"
    )


def _touch_point_data_cte(params: AttributionSQLParameters) -> str:
    return (
        "touch_point_data AS (\n"
        "  SELECT\n"
        "    user_pseudo_id,\n"
        "    event_id,\n"
        "    event_name,\n"
        "    event_timestamp\n"
        "  FROM base_data\n"
        f"  WHERE {_event_name_condition(params.touch_point_event_names)}\n"
        ")"
    )


def _conversion_value_sql(params: AttributionSQLParameters) -> str:
    if params.uses_conversion_value():
        prop = params.conversion_value_property
        return f"COALESCE(CAST(custom_parameters.{prop}.value AS DOUBLE PRECISION), 0.0)"
    return "CAST(1.0 AS DOUBLE PRECISION)"


def _conversion_data_cte(params: AttributionSQLParameters) -> str:
    return (
        "conversion_data AS (\n"
        "  SELECT\n"
        "    user_pseudo_id,\n"
        "    event_id AS conversion_id,\n"
        "    event_timestamp AS conversion_timestamp,\n"
        f"    {_conversion_value_sql(params)} AS conversion_value,\n"
        "    LAG(event_timestamp) OVER (\n"
        "      PARTITION BY user_pseudo_id ORDER BY event_timestamp ASC, event_id ASC\n"
        "    ) AS previous_conversion_timestamp\n"
        "  FROM base_data\n"
        f"  WHERE event_name = {_quote(params.conversion_event_name)}\n"
        ")"
    )


def _touch_conversion_cte(params: AttributionSQLParameters) -> str:
    conditions = [
        "t.user_pseudo_id = c.user_pseudo_id",
        "t.event_timestamp < c.conversion_timestamp",
        "(c.previous_conversion_timestamp IS NULL"
        " OR t.event_timestamp >= c.previous_conversion_timestamp)",
    ]
    window = model_window_condition(params, "t.event_timestamp", "c.conversion_timestamp")
    if window:
        conditions.append(window)

    return (
        "touch_conversion AS (\n"
        "  SELECT\n"
        "    t.user_pseudo_id,\n"
        "    t.event_name AS touch_point_name,\n"
        "    t.event_id AS touch_event_id,\n"
        "    t.event_timestamp AS touch_timestamp,\n"
        "    c.conversion_id,\n"
        "    c.conversion_value\n"
        "  FROM touch_point_data t\n"
        "  JOIN conversion_data c\n"
        "    ON " + "\n    AND ".join(conditions) + "\n"
        ")"
    )


def _ranked_touch_cte() -> str:
    return (
        "ranked_touch AS (\n"
        "  SELECT\n"
        "    touch_point_name,\n"
        "    touch_event_id,\n"
        "    conversion_id,\n"
        "    conversion_value,\n"
        "    ROW_NUMBER() OVER (\n"
        "      PARTITION BY user_pseudo_id, conversion_id\n"
        "      ORDER BY touch_timestamp ASC, touch_event_id ASC\n"
        "    ) AS touch_rank,\n"
        "    COUNT(*) OVER (PARTITION BY user_pseudo_id, conversion_id) AS touch_count\n"
        "  FROM touch_conversion\n"
        ")"
    )


def _attributed_touch_cte(strategy: CreditStrategy) -> str:
    return (
        "attributed_touch AS (\n"
        "  SELECT\n"
        "    touch_point_name,\n"
        "    touch_event_id,\n"
        "    conversion_id,\n"
        "    conversion_value,\n"
        f"    {strategy.sql_expression('touch_rank', 'touch_count')} AS credit\n"
        "  FROM ranked_touch\n"
        ")"
    )


def _touch_point_names_cte(params: AttributionSQLParameters) -> str:
    selects = [
        f"  SELECT {_quote(name)} AS touch_point_name"
        for name in params.touch_point_event_names
    ]
    return "touch_point_names AS (\n" + "\n  UNION ALL\n".join(selects) + "\n)"


def _trigger_count_cte() -> str:
    return (
        "trigger_count AS (\n"
        "  SELECT\n"
        "    event_name AS touch_point_name,\n"
        "    COUNT(DISTINCT event_id) AS trigger_count\n"
        "  FROM touch_point_data\n"
        "  GROUP BY event_name\n"
        ")"
    )


def _attribution_summary_cte() -> str:
    return (
        "attribution_summary AS (\n"
        "  SELECT\n"
        "    touch_point_name,\n"
        "    COUNT(DISTINCT CASE WHEN credit > 0 THEN touch_event_id END) AS trigger_with_conversion_count,\n"
        "    SUM(credit * conversion_value) AS contribution\n"
        "  FROM attributed_touch\n"
        "  GROUP BY touch_point_name\n"
        ")"
    )


def _conversion_summary_cte() -> str:
    return (
        "conversion_summary AS (\n"
        "  SELECT\n"
        "    COUNT(DISTINCT conversion_id) AS total_conversion_count,\n"
        "    COALESCE(SUM(conversion_value), 0.0) AS total_conversion_value\n"
        "  FROM conversion_data\n"
        ")"
    )


def _final_select() -> str:
    return (
        "SELECT\n"
        f"  n.touch_point_name AS \"{COLUMN_TOUCH_POINT_NAME}\",\n"
        f"  COALESCE(tc.trigger_count, 0) AS \"{COLUMN_TRIGGER_COUNT}\",\n"
        f"  cs.total_conversion_count AS \"{COLUMN_TOTAL_CONVERSION}\",\n"
        f"  COALESCE(s.trigger_with_conversion_count, 0) AS \"{COLUMN_TRIGGERS_WITH_CONVERSION}\",\n"
        f"  COALESCE(s.contribution, 0.0) AS \"{COLUMN_CONTRIBUTION}\",\n"
        "  CASE\n"
        "    WHEN cs.total_conversion_value = 0 THEN 0.0\n"
        "    ELSE COALESCE(s.contribution, 0.0) / cs.total_conversion_value\n"
        f"  END AS \"{COLUMN_CONTRIBUTION_RATE}\"\n"
        "FROM touch_point_names n\n"
        "LEFT JOIN trigger_count tc ON tc.touch_point_name = n.touch_point_name\n"
        "LEFT JOIN attribution_summary s ON s.touch_point_name = n.touch_point_name\n"
        "CROSS JOIN conversion_summary cs\n"
        f"ORDER BY \"{COLUMN_CONTRIBUTION}\" DESC, \"{COLUMN_TOUCH_POINT_NAME}\" ASC"
    )
