"""Pytest configuration for API integration tests

WHAT: Shared fixtures for endpoint and pipeline-registry tests
WHY: Consistent setup: in-memory registry database, a fake visualization
     provider, and a TestClient wired to both
REFERENCES:
    - clickstream_api/main.py: FastAPI application
    - clickstream_api/database.py: Database configuration
    - clickstream_api/deps.py: Dependency injection
"""

import os
from typing import Generator

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

# Set test environment before the app is imported
os.environ.setdefault("DATABASE_URL", "sqlite:///:memory:")
os.environ.setdefault("VISUALIZATION_API_URL", "http://visualization.test/api")


# ============================================================================
# Database Fixtures
# ============================================================================

@pytest.fixture
def test_db_engine():
    """In-memory registry database shared across threads."""
    engine = create_engine(
        "sqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )

    from clickstream_api.database import Base
    Base.metadata.create_all(bind=engine)

    yield engine

    Base.metadata.drop_all(bind=engine)


@pytest.fixture
def test_db_session(test_db_engine) -> Generator[Session, None, None]:
    SessionLocal = sessionmaker(
        autocommit=False,
        autoflush=False,
        bind=test_db_engine
    )

    session = SessionLocal()
    yield session
    session.rollback()
    session.close()


@pytest.fixture
def pipeline(test_db_session):
    """Pipeline for project p1 with app a1 reporting in +00:00."""
    from clickstream_api.models import Pipeline, PipelineAppTimezone

    record = Pipeline(id="pipeline-1", project_id="p1", name="main", region="us-east-1", status="active")
    record.app_timezones.append(PipelineAppTimezone(id="tz-1", app_id="a1", timezone="+00:00"))
    test_db_session.add(record)
    test_db_session.commit()
    return record


# ============================================================================
# Visualization Provider Fixtures
# ============================================================================

class FakeVisualizationProvider:
    """Records payloads and answers with a canned dashboard."""

    def __init__(self):
        self.payloads = []
        self.response = {
            "dashboardId": "dash-1",
            "dashboardName": "Attribution",
            "dashboardEmbedUrl": "https://bi.example.com/embed/dash-1",
            "analysisId": "analysis-1",
            "dataSetIds": ["ds-1"],
        }

    async def create_dashboard_visuals(self, payload):
        self.payloads.append(payload)
        return self.response


@pytest.fixture
def fake_provider():
    return FakeVisualizationProvider()


# ============================================================================
# Application & Client Fixtures
# ============================================================================

@pytest.fixture
def app(test_db_session, fake_provider):
    """FastAPI app with the registry session and provider overridden."""
    from clickstream_api.main import create_app
    from clickstream_api.database import get_db
    from clickstream_api.deps import get_visualization_provider

    test_app = create_app()

    def override_get_db():
        yield test_db_session

    test_app.dependency_overrides[get_db] = override_get_db
    test_app.dependency_overrides[get_visualization_provider] = lambda: fake_provider

    return test_app


@pytest.fixture
def client(app) -> TestClient:
    """Create TestClient for HTTP testing."""
    return TestClient(app)


# ============================================================================
# Request Fixtures
# ============================================================================

@pytest.fixture
def attribution_body():
    """LAST_TOUCH preview for view_item -> purchase in January 2024."""
    return {
        "modelType": "LAST_TOUCH",
        "projectId": "p1",
        "appId": "a1",
        "touchPointEventName": "view_item",
        "conversionEventName": "purchase",
        "timeScopeType": "FIXED",
        "timeStart": "2024-01-01",
        "timeEnd": "2024-01-31",
        "action": "PREVIEW",
    }
