"""Pipeline lookup service.

WHAT:
    Resolves the pipeline that owns a project and the reporting timezone of
    an app within it.

WHY:
    Attribution SQL is generated against `{project_id}.{app_id}.event_v2`
    and evaluates day boundaries in the app's timezone. Both come from the
    pipeline registry, which the attribution service only reads.

NON-BLOCKING:
    The registry session is synchronous. Queries run in a worker thread via
    asyncio.to_thread() so concurrent requests keep the event loop.

REFERENCES:
    - clickstream_api/models.py (Pipeline, PipelineAppTimezone)
    - clickstream_api/services/attribution_service.py (PipelineResolver consumer)
"""

import asyncio
import logging
import re
from typing import Optional, Protocol
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from sqlalchemy.orm import Session

from ..attribution.errors import PipelineConfigurationError
from ..models import DEFAULT_TIMEZONE, Pipeline, PipelineAppTimezone

logger = logging.getLogger(__name__)

# Fixed UTC offsets as CONVERT_TIMEZONE accepts them, e.g. +08:00
_UTC_OFFSET_PATTERN = re.compile(r"^[+-](0\d|1[0-4]):[0-5]\d$")


def is_valid_timezone(value: str) -> bool:
    """True for UTC, a +HH:MM offset or an IANA zone name."""
    if value == DEFAULT_TIMEZONE or _UTC_OFFSET_PATTERN.match(value):
        return True
    try:
        ZoneInfo(value)
    except (ZoneInfoNotFoundError, ValueError):
        return False
    return True


class PipelineResolver(Protocol):
    async def get_pipeline_by_project_id(self, project_id: str) -> Optional[Pipeline]:
        ...

    async def get_timezone_by_app_id(self, pipeline: Pipeline, app_id: str) -> str:
        ...


class PipelineService:
    """Reads pipelines from the registry database.

    Usage:
        service = PipelineService(db)
        pipeline = await service.get_pipeline_by_project_id("shop_project")
        tz = await service.get_timezone_by_app_id(pipeline, "web_app")
    """

    def __init__(self, db: Session):
        self.db = db

    async def get_pipeline_by_project_id(self, project_id: str) -> Optional[Pipeline]:
        """Return the project's pipeline, or None when the project has none.

        Pipelines marked deleted are treated as absent.
        """
        def run_sync():
            return (
                self.db.query(Pipeline)
                .filter(Pipeline.project_id == project_id)
                .filter(Pipeline.status != "deleted")
                .first()
            )

        pipeline = await asyncio.to_thread(run_sync)
        if pipeline is None:
            logger.info(f"[PIPELINE] No pipeline for project {project_id}")
        return pipeline

    async def get_timezone_by_app_id(self, pipeline: Pipeline, app_id: str) -> str:
        """Timezone configured for the app, UTC when it has none.

        Raises:
            PipelineConfigurationError: The registry holds a value that is not
                a timezone (a server-side fault, not the caller's)
        """
        def run_sync():
            return (
                self.db.query(PipelineAppTimezone)
                .filter(PipelineAppTimezone.pipeline_id == pipeline.id)
                .filter(PipelineAppTimezone.app_id == app_id)
                .first()
            )

        entry = await asyncio.to_thread(run_sync)
        if entry is None or not entry.timezone:
            logger.debug(f"[PIPELINE] No timezone for app {app_id}, using {DEFAULT_TIMEZONE}")
            return DEFAULT_TIMEZONE

        if not is_valid_timezone(entry.timezone):
            logger.error(f"[PIPELINE] Invalid timezone for app {app_id} in pipeline {pipeline.id}")
            raise PipelineConfigurationError(
                "Invalid timezone configured for app",
                details={"pipeline_id": pipeline.id, "app_id": app_id},
            )
        return entry.timezone
