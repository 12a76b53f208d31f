"""
SQL Value Encoder
=================

Escapes user-supplied values before they are embedded in generated SQL text.

WHY THIS FILE EXISTS
--------------------
The attribution SQL is handed to the visualization provider as a custom
dataset query, so values cannot be bound as driver parameters. Every
free-text value ends up inside a single-quoted Redshift string literal, which
means two things must hold:

    1. The value cannot close the literal
       - Single quotes are doubled:      O'Brien  -> O''Brien
       - Backslashes are doubled:        a\\b      -> a\\\\b
         (Redshift treats backslash as an escape inside literals)

    2. The value cannot smuggle in another statement
       - Statement terminators (;) are rejected
       - Control characters (including NUL) are rejected

SQL identifiers (schema, database, view and property names) are NOT encoded
here. They are restricted to IDENTIFIER_PATTERN by the validator.

ENCODE EXACTLY ONCE
-------------------
Encoding is not idempotent. Encoding an already-encoded value doubles every
quote again (O''Brien -> O''''Brien), which changes the literal. Callers
encode once, right before building SQL. A second call is logged but still
applied.

RELATED FILES
-------------
- clickstream_api/attribution/validator.py: Rejects unsafe values up front
- clickstream_api/attribution/compiler.py: Embeds encoded values
"""

import dataclasses
import logging
import re

from clickstream_api.attribution.errors import SqlEncodingError
from clickstream_api.attribution.query import AttributionSQLParameters

logger = logging.getLogger(__name__)


STATEMENT_TERMINATOR = ";"

# Control characters: NUL through US, plus DEL
_CONTROL_CHAR_PATTERN = re.compile(r"[\x00-\x1f\x7f]")

IDENTIFIER_PATTERN = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")


def contains_unsafe_sequence(value: str) -> bool:
    """True if the value holds a statement terminator or a control character."""
    return STATEMENT_TERMINATOR in value or bool(_CONTROL_CHAR_PATTERN.search(value))


def is_sql_identifier(value: str) -> bool:
    return bool(value) and bool(IDENTIFIER_PATTERN.match(value))


def encode_query_value_for_sql(value: str) -> str:
    """
    Encode a single value for use inside a single-quoted SQL literal.

    RAISES:
        SqlEncodingError: If the value contains a statement terminator or a
        control character

    EXAMPLE:
        encode_query_value_for_sql("O'Brien")  # "O''Brien"
    """
    if contains_unsafe_sequence(value):
        raise SqlEncodingError(
            "Value contains characters that are not allowed in queries",
            details={"value_preview": value[:50]},
        )
    return value.replace("\\", "\\\\").replace("'", "''")


def encode_attribution_parameters(params: AttributionSQLParameters) -> AttributionSQLParameters:
    """
    Return a copy of `params` with every literal-bound field encoded.

    Encoded fields: touch point event names, conversion event name, timezone.
    The input object is left untouched.
    """
    if params.encoded:
        logger.warning("[ENCODER] Parameters were already encoded; values will be double-escaped")

    return dataclasses.replace(
        params,
        touch_point_event_names=[
            encode_query_value_for_sql(name) for name in params.touch_point_event_names
        ],
        conversion_event_name=encode_query_value_for_sql(params.conversion_event_name),
        timezone=encode_query_value_for_sql(params.timezone),
        encoded=True,
    )
