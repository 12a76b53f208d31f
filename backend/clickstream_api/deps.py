"""Dependency providers and settings management."""

from functools import lru_cache
from typing import Optional

from fastapi import Depends
from pydantic_settings import BaseSettings, SettingsConfigDict
from sqlalchemy.orm import Session

from .database import get_db
from .services.attribution_service import AttributionAnalysisService
from .services.pipeline_service import PipelineService
from .services.reporting_service import ReportingService
from .services.visualization_client import HttpVisualizationProvider, VisualizationProvider


class Settings(BaseSettings):
    """Application settings loaded from environment or .env."""

    BACKEND_CORS_ORIGINS: str = "http://localhost:3000"

    # Visualization provider (dashboards, datasets, embed URLs)
    VISUALIZATION_API_URL: str = "http://localhost:8080/api"
    VISUALIZATION_API_KEY: Optional[str] = None
    VISUALIZATION_TIMEOUT_SECONDS: float = 30.0

    # Locale used when a request does not send one
    DEFAULT_LOCALE: str = "en-US"

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")


@lru_cache()
def get_settings() -> Settings:
    """Return cached settings instance."""
    return Settings()  # type: ignore[call-arg]


def get_visualization_provider(settings: Settings = Depends(get_settings)) -> VisualizationProvider:
    """Provider client built from settings. Tests override this dependency."""
    return HttpVisualizationProvider(
        base_url=settings.VISUALIZATION_API_URL,
        api_key=settings.VISUALIZATION_API_KEY,
        timeout=settings.VISUALIZATION_TIMEOUT_SECONDS,
    )


def get_attribution_service(
    db: Session = Depends(get_db),
    provider: VisualizationProvider = Depends(get_visualization_provider),
) -> AttributionAnalysisService:
    """Attribution service wired to the registry database and the provider."""
    return AttributionAnalysisService(
        pipeline_resolver=PipelineService(db),
        reporting_service=ReportingService(provider),
    )
