"""Tests for the attribution analysis endpoint.

WHAT: POST /api/reporting/attribution through FastAPI with the registry in
      SQLite and a fake visualization provider
WHY: The UI relies on the status codes and the ApiSuccess/ApiFail envelope

REFERENCES:
  - clickstream_api/routers/attribution.py
  - clickstream_api/services/attribution_service.py
"""

ENDPOINT = "/api/reporting/attribution"


class TestCreateAttributionVisual:
    def test_preview_is_created(self, client, pipeline, fake_provider, attribution_body):
        response = client.post(ENDPOINT, json=attribution_body)

        assert response.status_code == 201
        body = response.json()
        assert body["success"] is True
        assert body["data"]["dashboardEmbedUrl"] == "https://bi.example.com/embed/dash-1"

        sql = fake_provider.payloads[0]["dataSets"][0]["customSql"]
        assert "event_name = 'view_item'" in sql
        assert "event_name = 'purchase'" in sql
        assert "<<$dateStart" in sql
        assert "<<$dateEnd" in sql
        assert "CONVERT_TIMEZONE('+00:00'" in sql

    def test_payload_carries_pipeline_and_default_locale(self, client, pipeline, fake_provider, attribution_body):
        client.post(ENDPOINT, json=attribution_body)

        payload = fake_provider.payloads[0]
        assert payload["pipeline"]["pipelineId"] == "pipeline-1"
        assert payload["locale"] == "en-US"
        assert payload["viewName"] == "_tmp_attribution_a1_last_touch"

    def test_unknown_project_is_404(self, client, pipeline, fake_provider, attribution_body):
        response = client.post(ENDPOINT, json={**attribution_body, "projectId": "nope"})

        assert response.status_code == 404
        assert response.json()["success"] is False
        assert fake_provider.payloads == []

    def test_dashboard_without_sheet_is_400(self, client, pipeline, fake_provider, attribution_body):
        response = client.post(ENDPOINT, json={**attribution_body, "dashboardId": "dash-1"})

        assert response.status_code == 400
        assert response.json()["message"] == "missing required parameter sheetId"
        assert fake_provider.payloads == []

    def test_unknown_model_type_is_400(self, client, pipeline, attribution_body):
        response = client.post(ENDPOINT, json={**attribution_body, "modelType": "UNKNOWN"})
        assert response.status_code == 400

    def test_non_object_body_is_400(self, client, pipeline):
        response = client.post(ENDPOINT, json=["not", "an", "object"])

        assert response.status_code == 400
        assert response.json()["success"] is False

    def test_bad_registry_timezone_is_500(self, client, test_db_session, fake_provider, attribution_body):
        from clickstream_api.models import Pipeline, PipelineAppTimezone

        record = Pipeline(id="pipeline-2", project_id="p2", name="broken", status="active")
        record.app_timezones.append(PipelineAppTimezone(id="tz-2", app_id="a1", timezone="Mars/Olympus"))
        test_db_session.add(record)
        test_db_session.commit()

        response = client.post(ENDPOINT, json={**attribution_body, "projectId": "p2"})

        assert response.status_code == 500
        assert response.json()["message"] == "Failed to create resources, please try again later."
        assert fake_provider.payloads == []

    def test_empty_preview_url_is_500(self, client, pipeline, fake_provider, attribution_body):
        fake_provider.response = {**fake_provider.response, "dashboardEmbedUrl": ""}

        response = client.post(ENDPOINT, json=attribution_body)

        assert response.status_code == 500
        assert response.json()["message"] == "Failed to create resources, please try again later."


def test_health(client):
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json() == {"status": "ok"}
