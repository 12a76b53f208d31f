"""Pydantic schemas for API responses.

Every reporting endpoint answers with the same envelope:

    success -> {"success": true,  "message": "OK", "data": {...}}
    failure -> {"success": false, "message": "...", "error": "..."}
"""

from typing import Any, List, Optional

from pydantic import BaseModel, Field


class ApiSuccess(BaseModel):
    """Successful response envelope."""

    success: bool = True
    message: str = "OK"
    data: Any = None


class ApiFail(BaseModel):
    """Failed response envelope."""

    success: bool = False
    message: str = Field(description="Error message", examples=["missing required parameter sheetId"])
    error: Optional[str] = None

    model_config = {
        "json_schema_extra": {
            "example": {
                "success": False,
                "message": "Pipeline not found",
            }
        }
    }


class VisualId(BaseModel):
    id: str
    name: str


class DashboardArtifact(BaseModel):
    """Dashboard resources created for an attribution visual."""

    dashboardId: str
    dashboardName: Optional[str] = None
    dashboardVersion: Optional[int] = None
    dashboardEmbedUrl: str = Field(default="", description="Embeddable URL, empty when not ready")
    analysisId: Optional[str] = None
    analysisName: Optional[str] = None
    sheetId: Optional[str] = None
    visualIds: List[VisualId] = Field(default_factory=list)
    dataSetIds: List[str] = Field(default_factory=list)


class AttributionSuccess(ApiSuccess):
    """201 body of the attribution endpoint."""

    data: DashboardArtifact


class HealthResponse(BaseModel):
    """Health check response."""

    status: str = Field(
        description="Service status",
        examples=["ok"],
    )

    model_config = {
        "json_schema_extra": {
            "example": {
                "status": "ok"
            }
        }
    }
