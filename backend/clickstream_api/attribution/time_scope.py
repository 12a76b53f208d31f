"""Time scope and model window predicates for attribution SQL.

Event timestamps are stored in UTC. Day boundaries are evaluated in the app's
timezone, so every date comparison goes through CONVERT_TIMEZONE first.

    FIXED      local_date BETWEEN start AND end (both inclusive)
    RELATIVE   today - N units < local_date <= today   (today in app tz)

With a DD unit, "last 7" therefore covers today and the six days before it.

When the parameters carry TimeScopeParameters, start/end (FIXED) or N
(RELATIVE) are written as `<<$name>>` dataset parameter placeholders. The
visualization provider substitutes the current control values on every run.
"""

from __future__ import annotations

from typing import Optional

from clickstream_api.attribution.query import (
    AttributionSQLParameters,
    ModelWindowType,
    TimeScopeType,
)


def parameter_placeholder(name: str) -> str:
    return f"<<${name}>>"


def local_timestamp_sql(column: str, timezone: str) -> str:
    return f"CONVERT_TIMEZONE('{timezone}', {column})"


def local_date_sql(column: str, timezone: str) -> str:
    return f"CAST({local_timestamp_sql(column, timezone)} AS DATE)"


def current_local_date_sql(timezone: str) -> str:
    return local_date_sql("GETDATE()", timezone)


def time_scope_condition(params: AttributionSQLParameters, column: str = "event_timestamp") -> str:
    """
    SQL predicate restricting `column` to the requested time scope.

    `params` must already be encoded (the timezone is embedded as a literal).
    """
    event_date = local_date_sql(column, params.timezone)
    bound = params.time_parameters

    if params.time_scope_type == TimeScopeType.FIXED:
        if bound:
            start = f"CAST({parameter_placeholder(bound.start)} AS DATE)"
            end = f"CAST({parameter_placeholder(bound.end)} AS DATE)"
        else:
            start = f"DATE '{params.time_start.isoformat()}'"
            end = f"DATE '{params.time_end.isoformat()}'"
        return f"{event_date} >= {start} AND {event_date} <= {end}"

    today = current_local_date_sql(params.timezone)
    last_n = parameter_placeholder(bound.last_n) if bound else str(int(params.last_n))
    return (
        f"{event_date} > DATEADD({params.time_unit.datepart}, -{last_n}, {today})"
        f" AND {event_date} <= {today}"
    )


def model_window_condition(
    params: AttributionSQLParameters,
    touch_column: str,
    conversion_column: str,
) -> Optional[str]:
    """Predicate bounding how long before a conversion a touch may happen, or None."""
    window = params.model_window
    if window is None:
        return None

    if window.type == ModelWindowType.CURRENT_DAY:
        return (
            f"{local_date_sql(touch_column, params.timezone)}"
            f" = {local_date_sql(conversion_column, params.timezone)}"
        )

    return f"{touch_column} >= DATEADD({window.unit.value}, -{int(window.value)}, {conversion_column})"
