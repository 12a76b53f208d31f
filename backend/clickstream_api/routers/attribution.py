"""Attribution analysis endpoints.

WHAT:
    POST /api/reporting/attribution
    Builds attribution SQL for the requested model and renders it as a
    dashboard visual (preview or published).

WHY:
    The UI explores attribution models interactively (PREVIEW) and then
    pins the chosen one to a dashboard (PUBLISH). Both go through the same
    endpoint; the body's `action` decides.

REFERENCES:
    - clickstream_api/services/attribution_service.py (all the logic)
    - clickstream_api/deps.py (service wiring)
"""

import logging
from typing import Any, Dict

from fastapi import APIRouter, Body, Depends
from fastapi.responses import JSONResponse

from ..deps import Settings, get_attribution_service, get_settings
from ..schemas import ApiFail, AttributionSuccess
from ..services.attribution_service import AttributionAnalysisService

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/api/reporting",
    tags=["Attribution"],
)


@router.post(
    "/attribution",
    status_code=201,
    responses={
        201: {"model": AttributionSuccess, "description": "Visual created"},
        400: {"model": ApiFail, "description": "Invalid request"},
        404: {"model": ApiFail, "description": "Pipeline not found"},
        500: {"model": ApiFail, "description": "Resources could not be created"},
    },
)
async def create_attribution_analysis_visual(
    payload: Dict[str, Any] = Body(...),
    service: AttributionAnalysisService = Depends(get_attribution_service),
    settings: Settings = Depends(get_settings),
):
    """Create an attribution analysis visual.

    Models: FIRST_TOUCH, LAST_TOUCH, LINEAR, POSITION.
    The body is validated by the service, so every failure comes back in the
    ApiFail envelope with the matching status code.
    """
    if not payload.get("locale"):
        payload = {**payload, "locale": settings.DEFAULT_LOCALE}

    logger.info(
        f"[ATTRIBUTION] {payload.get('action')} {payload.get('modelType')} "
        f"for project {payload.get('projectId')}"
    )
    outcome = await service.create_attribution_analysis_visual(payload)
    return JSONResponse(status_code=outcome.status_code, content=outcome.body)
