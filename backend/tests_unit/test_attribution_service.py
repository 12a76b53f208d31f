"""
Attribution Analysis Service Tests (Unit)
=========================================

WHAT: The request state machine with an in-memory pipeline resolver and
      visualization provider.
WHY: Status mapping (201/400/404/500) and "no side effects on early failure"
     are the service's contract with the UI.

REFERENCES:
- backend/clickstream_api/services/attribution_service.py
- backend/clickstream_api/services/reporting_service.py
"""

import asyncio
from unittest.mock import patch

from clickstream_api.attribution.errors import PipelineConfigurationError, VisualizationProviderError
from clickstream_api.models import Pipeline
from clickstream_api.services.attribution_service import (
    GENERIC_FAILURE_MESSAGE,
    AttributionAnalysisService,
)
from clickstream_api.services.reporting_service import ReportingService

SERVICE_MODULE = "clickstream_api.services.attribution_service"


class FakePipelineResolver:
    def __init__(self, pipelines=None, timezones=None):
        self.pipelines = pipelines or {}
        self.timezones = timezones or {}
        self.timezone_lookups = []

    async def get_pipeline_by_project_id(self, project_id):
        return self.pipelines.get(project_id)

    async def get_timezone_by_app_id(self, pipeline, app_id):
        self.timezone_lookups.append(app_id)
        return self.timezones.get(app_id, "UTC")


class FakeProvider:
    def __init__(self, response=None, error=None):
        self.response = response
        self.error = error
        self.payloads = []

    async def create_dashboard_visuals(self, payload):
        self.payloads.append(payload)
        if self.error:
            raise self.error
        return self.response


def _pipeline():
    return Pipeline(id="pipeline-1", project_id="p1", name="main", region="us-east-1", status="active")


def _ready_response(**overrides):
    response = {
        "dashboardId": "dash-1",
        "dashboardName": "Attribution",
        "dashboardEmbedUrl": "https://bi.example.com/embed/dash-1",
        "analysisId": "analysis-1",
        "dataSetIds": ["ds-1"],
    }
    response.update(overrides)
    return response


def _body(**overrides):
    body = {
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
    body.update(overrides)
    return body


def _service(provider, resolver=None):
    resolver = resolver or FakePipelineResolver({"p1": _pipeline()}, {"a1": "+00:00"})
    return AttributionAnalysisService(resolver, ReportingService(provider))


def _run(service, body):
    return asyncio.run(service.create_attribution_analysis_visual(body))


class TestSuccess:
    def test_preview_returns_created_artifact(self):
        provider = FakeProvider(_ready_response())
        outcome = _run(_service(provider), _body())

        assert outcome.status_code == 201
        assert outcome.succeeded
        assert outcome.body["success"] is True
        assert outcome.body["message"] == "OK"
        data = outcome.body["data"]
        assert data["dashboardId"] == "dash-1"
        assert data["dashboardEmbedUrl"]
        assert data["visualIds"][0]["name"] == "CHART"

    def test_generated_sql_reaches_provider(self):
        provider = FakeProvider(_ready_response())
        _run(_service(provider), _body())

        payload = provider.payloads[0]
        sql = payload["dataSets"][0]["customSql"]
        assert "event_name = 'view_item'" in sql
        assert "event_name = 'purchase'" in sql
        assert "CONVERT_TIMEZONE('+00:00'" in sql

    def test_time_scope_is_bound_to_dashboard_parameters(self):
        provider = FakeProvider(_ready_response())
        _run(_service(provider), _body())

        payload = provider.payloads[0]
        dataset = payload["dataSets"][0]
        visual = payload["visuals"][0]
        start, end = [p["DateTimeDatasetParameter"] for p in dataset["datasetParameters"]]

        assert f"<<${start['Name']}>>" in dataset["customSql"]
        assert f"<<${end['Name']}>>" in dataset["customSql"]
        assert start["DefaultValues"]["StaticValues"] == ["2024-01-01T00:00:00.000Z"]
        assert end["DefaultValues"]["StaticValues"] == ["2024-01-31T00:00:00.000Z"]
        assert start["Name"].endswith(visual["visualId"].replace("-", "")[:8])

    def test_preview_uses_temp_view(self):
        provider = FakeProvider(_ready_response())
        _run(_service(provider), _body(viewName="my_view"))
        assert provider.payloads[0]["viewName"] == "_tmp_my_view"
        assert provider.payloads[0]["dataSets"][0]["tableName"] == "_tmp_my_view"

    def test_new_dashboard_gets_fresh_sheet(self):
        provider = FakeProvider(_ready_response(dashboardEmbedUrl=""))
        service = _service(provider)
        first = _run(service, _body(action="PUBLISH"))
        second = _run(service, _body(action="PUBLISH"))

        assert first.status_code == 201
        assert first.body["data"]["sheetId"] != second.body["data"]["sheetId"]

    def test_existing_dashboard_reuses_callers_sheet(self):
        provider = FakeProvider(_ready_response())
        outcome = _run(_service(provider), _body(action="PUBLISH", dashboardId="dash-1", sheetId="sheet-9"))

        assert outcome.status_code == 201
        assert provider.payloads[0]["sheetId"] == "sheet-9"
        assert provider.payloads[0]["dashboardId"] == "dash-1"

    def test_encoded_event_name(self):
        provider = FakeProvider(_ready_response())
        outcome = _run(_service(provider), _body(touchPointEventName="O'Brien"))

        assert outcome.status_code == 201
        assert "event_name = 'O''Brien'" in provider.payloads[0]["dataSets"][0]["customSql"]


class TestClientErrors:
    def test_dashboard_without_sheet_produces_no_sql(self):
        provider = FakeProvider(_ready_response())
        with patch(f"{SERVICE_MODULE}.build_sql_for_model") as build_sql:
            outcome = _run(_service(provider), _body(dashboardId="dash-1"))

        assert outcome.status_code == 400
        assert outcome.body == {
            "success": False,
            "message": "missing required parameter sheetId",
            "error": None,
        }
        build_sql.assert_not_called()
        assert provider.payloads == []

    def test_unknown_model_type(self):
        outcome = _run(_service(FakeProvider(_ready_response())), _body(modelType="UNKNOWN"))
        assert outcome.status_code == 400
        assert outcome.body["success"] is False


class TestNotFound:
    def test_unknown_project_invokes_no_builder(self):
        provider = FakeProvider(_ready_response())
        resolver = FakePipelineResolver()
        with patch(f"{SERVICE_MODULE}.build_sql_for_model") as build_sql:
            outcome = _run(_service(provider, resolver), _body(projectId="missing"))

        assert outcome.status_code == 404
        assert outcome.body["message"] == "Pipeline not found"
        build_sql.assert_not_called()
        assert resolver.timezone_lookups == []
        assert provider.payloads == []


class TestGenerationFailures:
    def test_bad_registry_timezone_is_server_error(self):
        class BrokenTimezoneResolver(FakePipelineResolver):
            async def get_timezone_by_app_id(self, pipeline, app_id):
                raise PipelineConfigurationError("Invalid timezone configured for app")

        provider = FakeProvider(_ready_response())
        resolver = BrokenTimezoneResolver({"p1": _pipeline()})
        with patch(f"{SERVICE_MODULE}.capture_exception") as capture, \
                patch(f"{SERVICE_MODULE}.build_sql_for_model") as build_sql:
            outcome = _run(_service(provider, resolver), _body())

        assert outcome.status_code == 500
        assert outcome.body["message"] == GENERIC_FAILURE_MESSAGE
        capture.assert_called_once()
        build_sql.assert_not_called()
        assert provider.payloads == []

    def test_preview_without_embed_url_is_server_error(self):
        outcome = _run(_service(FakeProvider(_ready_response(dashboardEmbedUrl=""))), _body())
        assert outcome.status_code == 500
        assert outcome.body["message"] == GENERIC_FAILURE_MESSAGE

    def test_missing_dashboard_is_server_error(self):
        outcome = _run(_service(FakeProvider({})), _body(action="PUBLISH"))
        assert outcome.status_code == 500

    def test_provider_error_is_generic_server_error(self):
        provider = FakeProvider(error=VisualizationProviderError("boom", status_code=502))
        outcome = _run(_service(provider), _body())
        assert outcome.status_code == 500
        assert outcome.body["message"] == GENERIC_FAILURE_MESSAGE

    def test_unexpected_exception_does_not_leak_internals(self):
        provider = FakeProvider(error=RuntimeError("SELECT secret FROM internal_table"))
        with patch(f"{SERVICE_MODULE}.capture_exception") as capture:
            outcome = _run(_service(provider), _body())

        assert outcome.status_code == 500
        assert outcome.body["message"] == GENERIC_FAILURE_MESSAGE
        assert "SELECT" not in str(outcome.body)
        capture.assert_called_once()
