"""Reporting service.

WHAT:
    Turns generated attribution SQL plus dataset/visual definitions into a
    provider payload, hands it to the visualization provider and normalizes
    the answer into a CreateDashboardResult.

WHY:
    The attribution service should not know provider wire formats. It passes
    the sheet, the (already temp-named) view, the request, the pipeline and
    the definitions built by attribution/visual_builder.py; this service does
    the rest.

    PREVIEW results are disposable: the provider materializes `_tmp_` views
    and returns an embed URL for a throwaway dashboard. PUBLISH results are
    persistent and either create a dashboard or add a visual to the sheet of
    an existing one.

REFERENCES:
    - clickstream_api/services/visualization_client.py (provider)
    - clickstream_api/attribution/visual_builder.py (DataSetProps, VisualProps)
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from ..attribution.query import AttributionRequest
from ..attribution.visual_builder import DataSetProps, VisualProps
from ..models import Pipeline
from .visualization_client import VisualizationProvider

logger = logging.getLogger(__name__)


@dataclass
class CreateDashboardResult:
    """Identifiers and embed URL of the rendered dashboard."""
    dashboard_id: str
    dashboard_name: Optional[str] = None
    dashboard_version: Optional[int] = None
    dashboard_embed_url: str = ""
    analysis_id: Optional[str] = None
    analysis_name: Optional[str] = None
    sheet_id: Optional[str] = None
    visual_ids: List[Dict[str, str]] = field(default_factory=list)
    data_set_ids: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "dashboardId": self.dashboard_id,
            "dashboardName": self.dashboard_name,
            "dashboardVersion": self.dashboard_version,
            "dashboardEmbedUrl": self.dashboard_embed_url,
            "analysisId": self.analysis_id,
            "analysisName": self.analysis_name,
            "sheetId": self.sheet_id,
            "visualIds": self.visual_ids,
            "dataSetIds": self.data_set_ids,
        }


class ReportingService:
    """Creates dashboard visuals through a VisualizationProvider."""

    def __init__(self, provider: VisualizationProvider):
        self.provider = provider

    def build_payload(
        self,
        sheet_id: str,
        view_name: str,
        query: AttributionRequest,
        pipeline: Pipeline,
        datasets: List[DataSetProps],
        visuals: List[VisualProps],
    ) -> Dict[str, Any]:
        """Provider payload for one create-visuals call."""
        return {
            "action": query.action.value,
            "projectId": query.project_id,
            "appId": query.app_id,
            "dashboardId": query.dashboard_id,
            "sheetId": sheet_id,
            "viewName": view_name,
            "locale": query.locale.value,
            "pipeline": pipeline.to_dict(),
            "dataSets": [dataset.to_dict() for dataset in datasets],
            "visuals": [visual.to_dict() for visual in visuals],
        }

    async def create_dashboard_visuals(
        self,
        sheet_id: str,
        view_name: str,
        query: AttributionRequest,
        pipeline: Pipeline,
        datasets: List[DataSetProps],
        visuals: List[VisualProps],
    ) -> Optional[CreateDashboardResult]:
        """Create the datasets and visuals, returning the rendered dashboard.

        Returns None when the provider answers without a dashboard id.

        Raises:
            VisualizationProviderError: Provider unreachable or rejecting the payload
        """
        payload = self.build_payload(sheet_id, view_name, query, pipeline, datasets, visuals)
        logger.info(
            f"[REPORTING] Creating {len(visuals)} visual(s) on sheet {sheet_id} "
            f"(view={view_name}, action={query.action.value}, pipeline={pipeline.id})"
        )

        response = await self.provider.create_dashboard_visuals(payload)
        if not response or not response.get("dashboardId"):
            logger.warning(f"[REPORTING] Provider returned no dashboard for view {view_name}")
            return None

        return CreateDashboardResult(
            dashboard_id=response["dashboardId"],
            dashboard_name=response.get("dashboardName"),
            dashboard_version=response.get("dashboardVersion"),
            dashboard_embed_url=response.get("dashboardEmbedUrl") or "",
            analysis_id=response.get("analysisId"),
            analysis_name=response.get("analysisName"),
            sheet_id=response.get("sheetId") or sheet_id,
            visual_ids=[{"id": visual.visual_id, "name": visual.name} for visual in visuals],
            data_set_ids=list(response.get("dataSetIds") or []),
        )
