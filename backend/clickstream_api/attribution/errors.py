"""
Attribution Error Taxonomy
==========================

Exception classes raised while turning an attribution request into SQL and
a dashboard visual.

WHY THIS FILE EXISTS
--------------------
Errors surface at different stages and each stage maps to a different HTTP
status at the service boundary:

    1. Client errors (400)
       - Malformed or inconsistent request body
       - Unsupported model type
       - Values that cannot be embedded in SQL safely

    2. Not found (404)
       - No pipeline registered for the project

    3. Generation errors (500)
       - The visualization provider produced nothing renderable
       - The provider could not be reached
       - The pipeline registry holds an unusable value (timezone)

Anything else is an unhandled error and becomes a generic 500.

RELATED FILES
-------------
- clickstream_api/attribution/validator.py: Produces client errors as ValidationResult
- clickstream_api/attribution/encoder.py: Raises SqlEncodingError
- clickstream_api/services/attribution_service.py: Maps errors to responses
"""

from typing import Any, Dict, Optional


class AttributionError(Exception):
    """
    Base class for attribution analysis errors.

    ATTRIBUTES:
        message: Message that is safe to return to the caller
        status_code: HTTP status the service boundary should answer with
        details: Extra debug information (logged, never returned)
    """

    status_code: int = 500

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for structured logging."""
        return {
            "error": type(self).__name__,
            "message": self.message,
            "status_code": self.status_code,
            "details": self.details,
        }


class ClientError(AttributionError):
    """Bad or missing request parameters."""

    status_code = 400


class NotFoundError(AttributionError):
    """Referenced project/pipeline does not exist."""

    status_code = 404


class GenerationError(AttributionError):
    """Dashboard resources could not be produced."""

    status_code = 500


class PipelineConfigurationError(GenerationError):
    """The pipeline registry holds a value that cannot be used, e.g. a bad timezone."""


class SqlEncodingError(ClientError):
    """A value contains a sequence that must never reach generated SQL."""


class UnsupportedModelTypeError(ClientError):
    """A model type reached the SQL dispatcher without a matching builder."""


class VisualizationProviderError(GenerationError):
    """
    Raised when the visualization provider call fails.

    The provider may already have created part of the resources (a dataset
    or a temporary view); no cleanup is attempted.
    """

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message, details)
        self.provider_status_code = status_code
