"""Attribution analysis service.

WHAT:
    Orchestrates one attribution analysis request end to end:

        RECEIVED   -> validate body                      (400 on failure)
        VALIDATED  -> resolve pipeline by project id     (404 when missing)
        ENRICHED   -> resolve app timezone (500 when the registry value is bad),
                      bind time scope parameters, encode values
        SHEET      -> new sheet id, or the caller's when extending a dashboard
        DISPATCH   -> model type -> SQL builder
        RENDER     -> reporting service -> dashboard artifact
        SUCCEEDED  -> 201 with the artifact
        FAILED     -> 500 when nothing renderable came back

WHY:
    Collaborators (pipeline resolver, reporting service) are injected so the
    router wires real implementations and tests wire fakes. The service keeps
    no state between requests.

    Every failure becomes an AttributionOutcome instead of an exception.
    Unexpected exceptions are logged, sent to Sentry and answered with a
    generic message; SQL text and tracebacks never reach the caller.

REFERENCES:
    - clickstream_api/attribution/ (validator, encoder, compiler, visual_builder)
    - clickstream_api/services/pipeline_service.py
    - clickstream_api/services/reporting_service.py
    - clickstream_api/routers/attribution.py
"""

import logging
import uuid
from dataclasses import dataclass
from typing import Any, Dict, Optional

from ..attribution.compiler import build_sql_for_model
from ..attribution.encoder import encode_attribution_parameters
from ..attribution.errors import AttributionError, NotFoundError
from ..attribution.query import AttributionSQLParameters, TimeScopeParameters
from ..attribution.validator import AttributionValidator
from ..attribution.visual_builder import build_attribution_visual, get_temp_resource_name
from ..schemas import ApiFail, ApiSuccess
from ..telemetry.sentry import capture_exception
from .pipeline_service import PipelineResolver
from .reporting_service import ReportingService

logger = logging.getLogger(__name__)

GENERIC_FAILURE_MESSAGE = "Failed to create resources, please try again later."
PIPELINE_NOT_FOUND_MESSAGE = "Pipeline not found"


@dataclass
class AttributionOutcome:
    """HTTP status plus the ApiSuccess/ApiFail body to send back."""
    status_code: int
    body: Dict[str, Any]

    @property
    def succeeded(self) -> bool:
        return self.status_code == 201


def _fail(status_code: int, message: str) -> AttributionOutcome:
    return AttributionOutcome(status_code, ApiFail(message=message).model_dump())


class AttributionAnalysisService:
    """Creates attribution analysis visuals.

    Usage:
        service = AttributionAnalysisService(PipelineService(db), ReportingService(provider))
        outcome = await service.create_attribution_analysis_visual(body)
        return JSONResponse(status_code=outcome.status_code, content=outcome.body)
    """

    def __init__(
        self,
        pipeline_resolver: PipelineResolver,
        reporting_service: ReportingService,
        validator: Optional[AttributionValidator] = None,
    ):
        self.pipeline_resolver = pipeline_resolver
        self.reporting_service = reporting_service
        self.validator = validator or AttributionValidator()

    async def create_attribution_analysis_visual(self, payload: Any) -> AttributionOutcome:
        """Run the request through every stage, never raising."""
        try:
            return await self._create(payload)
        except AttributionError as e:
            logger.warning(f"[ATTRIBUTION] Request failed: {e.to_dict()}")
            if e.status_code >= 500:
                capture_exception(e, extra={"stage": "attribution", "details": e.details})
                return _fail(e.status_code, GENERIC_FAILURE_MESSAGE)
            return _fail(e.status_code, e.message)
        except Exception as e:
            logger.exception(f"[ATTRIBUTION] Unhandled error: {e}")
            capture_exception(e, extra={"stage": "attribution"})
            return _fail(500, GENERIC_FAILURE_MESSAGE)

    async def _create(self, payload: Any) -> AttributionOutcome:
        # RECEIVED -> VALIDATED
        validation = self.validator.validate(payload)
        if not validation.valid:
            return _fail(400, validation.message)
        query = validation.request

        # VALIDATED -> ENRICHED
        pipeline = await self.pipeline_resolver.get_pipeline_by_project_id(query.project_id)
        if pipeline is None:
            raise NotFoundError(PIPELINE_NOT_FOUND_MESSAGE, details={"project_id": query.project_id})

        timezone = await self.pipeline_resolver.get_timezone_by_app_id(pipeline, query.app_id)

        # The SQL placeholders and the dashboard controls share these names
        visual_id = str(uuid.uuid4())
        time_parameters = TimeScopeParameters.for_visual(visual_id)
        params = encode_attribution_parameters(
            AttributionSQLParameters.from_request(query, timezone, time_parameters)
        )

        # Fresh dashboards get a fresh sheet; existing ones reuse the caller's
        if query.targets_existing_dashboard():
            sheet_id = query.sheet_id
        else:
            sheet_id = str(uuid.uuid4())

        # DISPATCH
        sql = build_sql_for_model(params)
        logger.debug(f"[ATTRIBUTION] Generated {query.model_type.value} SQL:\n{sql}")

        # RENDER
        view_name = get_temp_resource_name(query.resolved_view_name(), query.action)
        dataset, visual = build_attribution_visual(
            sql, sheet_id, view_name, query, visual_id=visual_id, time_parameters=time_parameters,
        )
        result = await self.reporting_service.create_dashboard_visuals(
            sheet_id,
            view_name,
            query,
            pipeline,
            [dataset],
            [visual],
        )

        if result is None or (query.is_preview() and not result.dashboard_embed_url):
            # Preview dashboards may still be provisioning; the caller retries
            logger.error(
                f"[ATTRIBUTION] No renderable dashboard for view {view_name} "
                f"(action={query.action.value})"
            )
            return _fail(500, GENERIC_FAILURE_MESSAGE)

        logger.info(
            f"[ATTRIBUTION] Created {query.model_type.value} visual on dashboard "
            f"{result.dashboard_id} (sheet={sheet_id})"
        )
        return AttributionOutcome(201, ApiSuccess(data=result.to_dict()).model_dump())
