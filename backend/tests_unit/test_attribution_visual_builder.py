"""
Attribution Visual Builder Tests (Unit)
=======================================

WHAT: Dataset, visual and time-control definitions sent to the provider.
WHY: The provider renders exactly what we describe; wrong names or a missing
     control show up as broken dashboards, not as errors.

REFERENCES:
- backend/clickstream_api/attribution/visual_builder.py
"""

import re

import pytest

from clickstream_api.attribution.compiler import ATTRIBUTION_COLUMNS, build_sql_for_model
from clickstream_api.attribution.encoder import encode_attribution_parameters
from clickstream_api.attribution.query import (
    AttributionRequest,
    AttributionSQLParameters,
    ExploreLocale,
    ExploreRequestAction,
    RelativeTimeUnit,
    TimeScopeParameters,
    TimeScopeType,
)
from clickstream_api.attribution.visual_builder import (
    IMPORT_MODE_DIRECT_QUERY,
    TimeScopeProps,
    build_attribution_visual,
    get_dashboard_title_props,
    get_temp_resource_name,
    get_visual_related_defs,
)


def _request(**overrides) -> AttributionRequest:
    body = {
        "projectId": "p1",
        "appId": "a1",
        "modelType": "POSITION",
        "touchPointEventName": "view_item",
        "additionalTouchPointEventNames": ["add_to_cart"],
        "conversionEventName": "purchase",
        "timeScopeType": "FIXED",
        "timeStart": "2024-01-01",
        "timeEnd": "2024-01-31",
        "action": "PREVIEW",
    }
    body.update(overrides)
    return AttributionRequest.model_validate(body)


def test_preview_resources_get_temp_prefix():
    assert get_temp_resource_name("attribution_view", ExploreRequestAction.PREVIEW) == "_tmp_attribution_view"


def test_publish_resources_keep_their_name():
    assert get_temp_resource_name("attribution_view", ExploreRequestAction.PUBLISH) == "attribution_view"


def test_temp_name_is_stable_across_calls():
    first = get_temp_resource_name("v", ExploreRequestAction.PREVIEW)
    second = get_temp_resource_name("v", ExploreRequestAction.PREVIEW)
    assert first == second


def test_titles_follow_locale():
    assert get_dashboard_title_props(_request())["title"] == "Position Based Attribution"
    zh = get_dashboard_title_props(_request(locale="zh-CN"))
    assert zh["title"] == "基于位置归因"
    assert "view_item, add_to_cart" in zh["subtitle"]


class TestBuildAttributionVisual:
    def setup_method(self):
        self.dataset, self.visual = build_attribution_visual(
            "SELECT 1", "sheet-1", "_tmp_view", _request(),
        )

    def test_dataset_wraps_sql_as_direct_query(self):
        data = self.dataset.to_dict()
        assert data["tableName"] == "_tmp_view"
        assert data["customSql"] == "SELECT 1"
        assert data["importMode"] == IMPORT_MODE_DIRECT_QUERY
        assert data["projectedColumns"] == ATTRIBUTION_COLUMNS

    def test_table_is_default_chart(self):
        data = self.visual.to_dict()
        assert data["name"] == "CHART"
        assert data["sheetId"] == "sheet-1"
        table = data["visual"]["TableVisual"]
        assert table["VisualId"] == self.visual.visual_id
        values = table["ChartConfiguration"]["FieldWells"]["TableUnaggregatedFieldWells"]["Values"]
        assert [v["Column"]["ColumnName"] for v in values] == ATTRIBUTION_COLUMNS
        assert all(v["Column"]["DataSetIdentifier"] == "_tmp_view" for v in values)

    def test_fixed_scope_declares_date_parameters(self):
        assert len(self.visual.parameter_declarations) == 2
        start = self.visual.parameter_declarations[0]["DateTimeParameterDeclaration"]
        assert start["DefaultValues"]["StaticValues"] == ["2024-01-01T00:00:00.000Z"]
        end = self.visual.parameter_declarations[1]["DateTimeParameterDeclaration"]
        assert end["DefaultValues"]["StaticValues"] == ["2024-01-31T00:00:00.000Z"]

    def test_fixed_scope_has_a_date_picker_per_bound(self):
        pickers = [control["DateTimePicker"] for control in self.visual.parameter_controls]
        assert [p["Title"] for p in pickers] == ["Start date", "End date"]

    def test_no_filter_on_output_columns(self):
        data = self.visual.to_dict()
        assert "filterGroup" not in data
        assert "filterControl" not in data


def _declared_names(declarations):
    return [next(iter(d.values()))["Name"] for d in declarations]


def _bound_visual(**overrides):
    """Compile SQL and build the visual with the same parameter names, as the service does."""
    request = _request(**overrides)
    visual_id = "0f8fad5b-d9cb-469f-a165-70867728950e"
    names = TimeScopeParameters.for_visual(visual_id)
    params = encode_attribution_parameters(
        AttributionSQLParameters.from_request(request, "+00:00", names)
    )
    sql = build_sql_for_model(params)
    return build_attribution_visual(
        sql, "sheet-1", "_tmp_view", request, visual_id=visual_id, time_parameters=names,
    )


@pytest.mark.parametrize("overrides", [
    {},
    {"timeScopeType": "RELATIVE", "timeStart": None, "timeEnd": None, "lastN": 7, "timeUnit": "DD"},
])
def test_every_time_control_resolves_against_the_dataset(overrides):
    dataset, visual = _bound_visual(**overrides)

    placeholders = set(re.findall(r"<<\$(\w+)>>", dataset.custom_sql))
    dataset_names = set(_declared_names(dataset.dataset_parameters))
    assert placeholders
    assert placeholders == dataset_names

    for declaration in visual.parameter_declarations:
        body = next(iter(declaration.values()))
        assert body["MappedDataSetParameters"] == [
            {"DataSetIdentifier": dataset.table_name, "DataSetParameterName": body["Name"]},
        ]
        assert body["Name"] in dataset_names

    declared = set(_declared_names(visual.parameter_declarations))
    for control in visual.parameter_controls:
        assert next(iter(control.values()))["SourceParameterName"] in declared


def test_bound_sql_has_no_literal_dates():
    dataset, _ = _bound_visual()
    assert "DATE '2024-01-01'" not in dataset.custom_sql
    assert "CAST(<<$dateStart0f8fad5b>> AS DATE)" in dataset.custom_sql
    assert "CAST(<<$dateEnd0f8fad5b>> AS DATE)" in dataset.custom_sql


def test_bar_chart():
    _, visual = build_attribution_visual("SELECT 1", "s", "v", _request(chartType="Bar"))
    bar = visual.visual["BarChartVisual"]
    wells = bar["ChartConfiguration"]["FieldWells"]["BarChartAggregatedFieldWells"]
    assert wells["Category"][0]["CategoricalDimensionField"]["Column"]["ColumnName"] == "Touch Point Name"


def test_relative_scope_binds_last_n():
    names = TimeScopeParameters.for_visual("v")
    defs = get_visual_related_defs(TimeScopeProps(
        time_scope_type=TimeScopeType.RELATIVE,
        view_name="view",
        parameters=names,
        last_n=3,
        time_unit=RelativeTimeUnit.MM,
    ))
    dataset_parameter = defs.dataset_parameters[0]["IntegerDatasetParameter"]
    assert dataset_parameter["Name"] == names.last_n
    assert dataset_parameter["DefaultValues"]["StaticValues"] == [3]
    declaration = defs.parameter_declarations[0]["IntegerParameterDeclaration"]
    assert declaration["DefaultValues"]["StaticValues"] == [3]
    control = defs.parameter_controls[0]["TextField"]
    assert control["SourceParameterName"] == names.last_n
    assert control["Title"] == "Last N months"


def test_relative_control_title_follows_locale():
    defs = get_visual_related_defs(
        TimeScopeProps(
            time_scope_type=TimeScopeType.RELATIVE,
            view_name="view",
            parameters=TimeScopeParameters.for_visual("v"),
            last_n=2,
            time_unit=RelativeTimeUnit.WK,
        ),
        ExploreLocale.ZH_CN,
    )
    assert defs.parameter_controls[0]["TextField"]["Title"] == "最近 N 周"


def test_each_build_mints_a_new_visual_id():
    _, first = build_attribution_visual("SELECT 1", "s", "v", _request())
    _, second = build_attribution_visual("SELECT 1", "s", "v", _request())
    assert first.visual_id != second.visual_id
    assert first.parameter_declarations[0] != second.parameter_declarations[0]
