"""
Attribution Visual Builder
==========================

Builds the dataset, visual and time-control definitions that the
visualization provider turns into a dashboard sheet.

WHY THIS FILE EXISTS
--------------------
The compiler produces SQL; the provider needs to know how to show it. This
module describes, as plain dicts:

1. Dataset: the SQL bound as a DIRECT_QUERY custom source, plus the dataset
   parameters its `<<$name>>` placeholders refer to
2. Visual: a table (default) or bar chart over the attribution columns
3. Time controls: analysis parameters mapped onto those dataset parameters,
   and controls that edit them (FIXED start/end dates or RELATIVE last N)

The result rows carry no date column, so the time scope cannot be a filter on
the output. Changing a control re-runs the SQL with new parameter values.

Titles and column labels follow the request locale.

OUTPUT FORMAT
-------------
    DataSetProps.to_dict() ->
        {"tableName", "columns", "importMode", "customSql", "projectedColumns",
         "datasetParameters"}

    VisualProps.to_dict() ->
        {"sheetId", "name", "visualId", "visual", "dataSetIdentifierDeclaration",
         "parameterControls", "parameterDeclarations"}

RELATED FILES
-------------
- clickstream_api/attribution/compiler.py: Output column names
- clickstream_api/attribution/time_scope.py: Writes the placeholders
- clickstream_api/services/reporting_service.py: Sends these to the provider
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass, field
from datetime import date
from typing import Any, Dict, List, Optional, Tuple

from clickstream_api.attribution.compiler import (
    ATTRIBUTION_COLUMNS,
    COLUMN_CONTRIBUTION,
    COLUMN_CONTRIBUTION_RATE,
    COLUMN_TOTAL_CONVERSION,
    COLUMN_TOUCH_POINT_NAME,
    COLUMN_TRIGGER_COUNT,
    COLUMN_TRIGGERS_WITH_CONVERSION,
)
from clickstream_api.attribution.query import (
    AttributionModelType,
    AttributionRequest,
    ChartType,
    ExploreLocale,
    ExploreRequestAction,
    RelativeTimeUnit,
    TimeScopeParameters,
    TimeScopeType,
)

logger = logging.getLogger(__name__)


TEMP_RESOURCE_NAME_PREFIX = "_tmp_"
VISUAL_NAME_CHART = "CHART"
IMPORT_MODE_DIRECT_QUERY = "DIRECT_QUERY"

ATTRIBUTION_VISUAL_COLUMNS: List[Dict[str, str]] = [
    {"Name": COLUMN_TOUCH_POINT_NAME, "Type": "STRING"},
    {"Name": COLUMN_TRIGGER_COUNT, "Type": "INTEGER"},
    {"Name": COLUMN_TOTAL_CONVERSION, "Type": "INTEGER"},
    {"Name": COLUMN_TRIGGERS_WITH_CONVERSION, "Type": "INTEGER"},
    {"Name": COLUMN_CONTRIBUTION, "Type": "DECIMAL"},
    {"Name": COLUMN_CONTRIBUTION_RATE, "Type": "DECIMAL"},
]


# =============================================================================
# LOCALES
# =============================================================================

LOCALE_TEXT: Dict[ExploreLocale, Dict[str, Any]] = {
    ExploreLocale.EN_US: {
        "analysis": "Attribution Analysis",
        "models": {
            AttributionModelType.FIRST_TOUCH: "First Touch Attribution",
            AttributionModelType.LAST_TOUCH: "Last Touch Attribution",
            AttributionModelType.LINEAR: "Linear Attribution",
            AttributionModelType.POSITION: "Position Based Attribution",
        },
        "subtitle": "Touch points: {touch_points} / Conversion: {conversion}",
        "columns": {
            COLUMN_TOUCH_POINT_NAME: "Touch Point Name",
            COLUMN_TRIGGER_COUNT: "Trigger Count",
            COLUMN_TOTAL_CONVERSION: "Number of Total Conversion",
            COLUMN_TRIGGERS_WITH_CONVERSION: "Number of Triggers with Conversion",
            COLUMN_CONTRIBUTION: "Contribution(number/sum...value)",
            COLUMN_CONTRIBUTION_RATE: "Contribution Rate",
        },
        "controls": {
            "start": "Start date",
            "end": "End date",
            "last_n": "Last N {unit}",
        },
        "units": {
            RelativeTimeUnit.DD: "days",
            RelativeTimeUnit.WK: "weeks",
            RelativeTimeUnit.MM: "months",
            RelativeTimeUnit.Q: "quarters",
            RelativeTimeUnit.Y: "years",
        },
    },
    ExploreLocale.ZH_CN: {
        "analysis": "归因分析",
        "models": {
            AttributionModelType.FIRST_TOUCH: "首次触点归因",
            AttributionModelType.LAST_TOUCH: "末次触点归因",
            AttributionModelType.LINEAR: "线性归因",
            AttributionModelType.POSITION: "基于位置归因",
        },
        "subtitle": "触点: {touch_points} / 转化: {conversion}",
        "columns": {
            COLUMN_TOUCH_POINT_NAME: "触点名称",
            COLUMN_TRIGGER_COUNT: "触发次数",
            COLUMN_TOTAL_CONVERSION: "总转化次数",
            COLUMN_TRIGGERS_WITH_CONVERSION: "有转化的触发次数",
            COLUMN_CONTRIBUTION: "贡献 (数量/总和值)",
            COLUMN_CONTRIBUTION_RATE: "贡献率",
        },
        "controls": {
            "start": "开始日期",
            "end": "结束日期",
            "last_n": "最近 N {unit}",
        },
        "units": {
            RelativeTimeUnit.DD: "天",
            RelativeTimeUnit.WK: "周",
            RelativeTimeUnit.MM: "月",
            RelativeTimeUnit.Q: "季度",
            RelativeTimeUnit.Y: "年",
        },
    },
}


def _locale_text(locale: Optional[ExploreLocale]) -> Dict[str, Any]:
    return LOCALE_TEXT.get(locale or ExploreLocale.EN_US, LOCALE_TEXT[ExploreLocale.EN_US])


# =============================================================================
# DATA STRUCTURES
# =============================================================================

@dataclass
class DataSetProps:
    """Custom-SQL dataset backing one visual."""
    table_name: str
    custom_sql: str
    columns: List[Dict[str, str]] = field(default_factory=lambda: list(ATTRIBUTION_VISUAL_COLUMNS))
    import_mode: str = IMPORT_MODE_DIRECT_QUERY
    projected_columns: List[str] = field(default_factory=lambda: list(ATTRIBUTION_COLUMNS))
    dataset_parameters: List[Dict[str, Any]] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "tableName": self.table_name,
            "columns": self.columns,
            "importMode": self.import_mode,
            "customSql": self.custom_sql,
            "projectedColumns": self.projected_columns,
            "datasetParameters": self.dataset_parameters,
        }


@dataclass
class TimeScopeProps:
    """Time scope of the request, as the dashboard controls see it."""
    time_scope_type: TimeScopeType
    view_name: str
    parameters: TimeScopeParameters
    last_n: Optional[int] = None
    time_unit: Optional[RelativeTimeUnit] = None
    time_start: Optional[date] = None
    time_end: Optional[date] = None


@dataclass
class VisualRelatedDefs:
    dataset_parameters: List[Dict[str, Any]]
    parameter_declarations: List[Dict[str, Any]]
    parameter_controls: List[Dict[str, Any]]


@dataclass
class VisualProps:
    sheet_id: str
    visual_id: str
    visual: Dict[str, Any]
    name: str = VISUAL_NAME_CHART
    data_set_identifier_declaration: List[Dict[str, Any]] = field(default_factory=list)
    parameter_controls: List[Dict[str, Any]] = field(default_factory=list)
    parameter_declarations: List[Dict[str, Any]] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "sheetId": self.sheet_id,
            "name": self.name,
            "visualId": self.visual_id,
            "visual": self.visual,
            "dataSetIdentifierDeclaration": self.data_set_identifier_declaration,
            "parameterControls": self.parameter_controls,
            "parameterDeclarations": self.parameter_declarations,
        }


# =============================================================================
# NAMES AND TITLES
# =============================================================================

def get_temp_resource_name(resource_name: str, action: ExploreRequestAction) -> str:
    """
    Name of the view/dataset backing a request.

    PREVIEW requests get a disposable `_tmp_` name. The name depends only on
    (resource_name, action), so repeating a preview overwrites the previous one.
    """
    if action == ExploreRequestAction.PREVIEW:
        return f"{TEMP_RESOURCE_NAME_PREFIX}{resource_name}"
    return resource_name


def get_dashboard_title_props(request: AttributionRequest) -> Dict[str, str]:
    """Locale-aware title and subtitle for the attribution visual."""
    text = _locale_text(request.locale)
    return {
        "title": text["models"][request.model_type],
        "subtitle": text["subtitle"].format(
            touch_points=", ".join(request.touch_point_event_names()),
            conversion=request.conversion_event_name,
        ),
        "analysis": text["analysis"],
    }


# =============================================================================
# VISUAL DEFINITIONS
# =============================================================================

def _column(view_name: str, column_name: str) -> Dict[str, str]:
    return {"DataSetIdentifier": view_name, "ColumnName": column_name}


def _title_block(text: str) -> Dict[str, Any]:
    return {"Visibility": "VISIBLE", "FormatText": {"PlainText": text}}


def get_attribution_table_visual_def(
    visual_id: str,
    view_name: str,
    title_props: Dict[str, str],
    chart_type: ChartType = ChartType.TABLE,
    locale: ExploreLocale = ExploreLocale.EN_US,
) -> Dict[str, Any]:
    """
    Visual definition for the attribution result.

    TABLE: every attribution column, rate formatted as a percentage
    BAR: contribution per touch point, horizontal
    """
    labels = _locale_text(locale)["columns"]

    if chart_type == ChartType.BAR:
        category_id = f"{visual_id}.category"
        value_id = f"{visual_id}.contribution"
        return {
            "BarChartVisual": {
                "VisualId": visual_id,
                "Title": _title_block(title_props["title"]),
                "Subtitle": _title_block(title_props["subtitle"]),
                "ChartConfiguration": {
                    "FieldWells": {
                        "BarChartAggregatedFieldWells": {
                            "Category": [{
                                "CategoricalDimensionField": {
                                    "FieldId": category_id,
                                    "Column": _column(view_name, COLUMN_TOUCH_POINT_NAME),
                                },
                            }],
                            "Values": [{
                                "NumericalMeasureField": {
                                    "FieldId": value_id,
                                    "Column": _column(view_name, COLUMN_CONTRIBUTION),
                                    "AggregationFunction": {"SimpleNumericalAggregation": "SUM"},
                                },
                            }],
                        },
                    },
                    "Orientation": "HORIZONTAL",
                    "BarsArrangement": "CLUSTERED",
                    "FieldOptions": {
                        "SelectedFieldOptions": [
                            {"FieldId": category_id, "CustomLabel": labels[COLUMN_TOUCH_POINT_NAME]},
                            {"FieldId": value_id, "CustomLabel": labels[COLUMN_CONTRIBUTION]},
                        ],
                    },
                },
            },
        }

    values = []
    field_options = []
    for index, column_name in enumerate(ATTRIBUTION_COLUMNS):
        field_id = f"{visual_id}.{index}"
        value: Dict[str, Any] = {
            "FieldId": field_id,
            "Column": _column(view_name, column_name),
        }
        if column_name == COLUMN_CONTRIBUTION_RATE:
            value["FormatConfiguration"] = {
                "NumericFormatConfiguration": {
                    "PercentageDisplayFormatConfiguration": {
                        "DecimalPlacesConfiguration": {"DecimalPlaces": 2},
                    },
                },
            }
        values.append(value)
        field_options.append({
            "FieldId": field_id,
            "Width": "190px",
            "CustomLabel": labels[column_name],
        })

    return {
        "TableVisual": {
            "VisualId": visual_id,
            "Title": _title_block(title_props["title"]),
            "Subtitle": _title_block(title_props["subtitle"]),
            "ChartConfiguration": {
                "FieldWells": {"TableUnaggregatedFieldWells": {"Values": values}},
                "SortConfiguration": {
                    "RowSort": [{
                        "FieldSort": {
                            "FieldId": f"{visual_id}.{ATTRIBUTION_COLUMNS.index(COLUMN_CONTRIBUTION)}",
                            "Direction": "DESC",
                        },
                    }],
                },
                "FieldOptions": {"SelectedFieldOptions": field_options},
            },
        },
    }


# =============================================================================
# TIME SCOPE CONTROLS
# =============================================================================

def get_visual_related_defs(props: TimeScopeProps, locale: ExploreLocale = ExploreLocale.EN_US) -> VisualRelatedDefs:
    """
    Parameters and controls for the request's time scope.

    FIXED: start/end date parameters defaulting to the request's dates, each
    edited by a date picker.
    RELATIVE: an integer N parameter defaulting to the request's last_n,
    edited by a text field. The unit is fixed by the request.

    Every analysis parameter is mapped onto the dataset parameter of the same
    name, which is what the SQL placeholders refer to.
    """
    text = _locale_text(locale)
    controls = text["controls"]
    names = props.parameters

    if props.time_scope_type == TimeScopeType.FIXED:
        dataset_parameters = [
            _date_dataset_parameter(names.start, props.time_start),
            _date_dataset_parameter(names.end, props.time_end),
        ]
        parameter_declarations = [
            _date_parameter(names.start, props.time_start, props.view_name),
            _date_parameter(names.end, props.time_end, props.view_name),
        ]
        parameter_controls = [
            _date_picker_control(names.start, controls["start"]),
            _date_picker_control(names.end, controls["end"]),
        ]
    else:
        title = controls["last_n"].format(unit=text["units"][props.time_unit])
        dataset_parameters = [_integer_dataset_parameter(names.last_n, props.last_n)]
        parameter_declarations = [_integer_parameter(names.last_n, props.last_n, props.view_name)]
        parameter_controls = [{
            "TextField": {
                "ParameterControlId": str(uuid.uuid4()),
                "Title": title,
                "SourceParameterName": names.last_n,
                "DisplayOptions": {"TitleOptions": {"Visibility": "VISIBLE"}},
            },
        }]

    return VisualRelatedDefs(
        dataset_parameters=dataset_parameters,
        parameter_declarations=parameter_declarations,
        parameter_controls=parameter_controls,
    )


def _date_value(value: Optional[date]) -> List[str]:
    return [f"{value.isoformat()}T00:00:00.000Z"] if value else []


def _mapped(name: str, view_name: str) -> List[Dict[str, str]]:
    return [{"DataSetIdentifier": view_name, "DataSetParameterName": name}]


def _date_dataset_parameter(name: str, value: Optional[date]) -> Dict[str, Any]:
    return {
        "DateTimeDatasetParameter": {
            "Id": str(uuid.uuid4()),
            "Name": name,
            "ValueType": "SINGLE_VALUED",
            "TimeGranularity": "DAY",
            "DefaultValues": {"StaticValues": _date_value(value)},
        },
    }


def _integer_dataset_parameter(name: str, value: Optional[int]) -> Dict[str, Any]:
    return {
        "IntegerDatasetParameter": {
            "Id": str(uuid.uuid4()),
            "Name": name,
            "ValueType": "SINGLE_VALUED",
            "DefaultValues": {"StaticValues": [value] if value is not None else []},
        },
    }


def _date_parameter(name: str, value: Optional[date], view_name: str) -> Dict[str, Any]:
    return {
        "DateTimeParameterDeclaration": {
            "Name": name,
            "TimeGranularity": "DAY",
            "DefaultValues": {"StaticValues": _date_value(value)},
            "ValueWhenUnset": {"ValueWhenUnsetOption": "RECOMMENDED_VALUE"},
            "MappedDataSetParameters": _mapped(name, view_name),
        },
    }


def _integer_parameter(name: str, value: Optional[int], view_name: str) -> Dict[str, Any]:
    return {
        "IntegerParameterDeclaration": {
            "ParameterValueType": "SINGLE_VALUED",
            "Name": name,
            "DefaultValues": {"StaticValues": [value] if value is not None else []},
            "ValueWhenUnset": {"ValueWhenUnsetOption": "RECOMMENDED_VALUE"},
            "MappedDataSetParameters": _mapped(name, view_name),
        },
    }


def _date_picker_control(name: str, title: str) -> Dict[str, Any]:
    return {
        "DateTimePicker": {
            "ParameterControlId": str(uuid.uuid4()),
            "Title": title,
            "SourceParameterName": name,
            "DisplayOptions": {
                "TitleOptions": {"Visibility": "VISIBLE"},
                "DateTimeFormat": "YYYY/MM/DD",
            },
        },
    }


# =============================================================================
# ASSEMBLY
# =============================================================================

def build_attribution_visual(
    sql: str,
    sheet_id: str,
    view_name: str,
    request: AttributionRequest,
    visual_id: Optional[str] = None,
    time_parameters: Optional[TimeScopeParameters] = None,
) -> Tuple[DataSetProps, VisualProps]:
    """
    Dataset + visual for one attribution result.

    PARAMETERS:
        sql: Output of the compiler
        sheet_id: Sheet receiving the visual
        view_name: Already resolved with get_temp_resource_name
        request: Original (unencoded) request, used for titles and controls
        visual_id: Id for the new visual, minted when omitted
        time_parameters: Parameter names the SQL placeholders use, derived
            from visual_id when omitted

    RETURNS:
        (DataSetProps, VisualProps)
    """
    visual_id = visual_id or str(uuid.uuid4())
    time_parameters = time_parameters or TimeScopeParameters.for_visual(visual_id)
    locale = request.locale or ExploreLocale.EN_US

    title_props = get_dashboard_title_props(request)
    visual_def = get_attribution_table_visual_def(
        visual_id,
        view_name,
        title_props,
        request.chart_type or ChartType.TABLE,
        locale,
    )
    related = get_visual_related_defs(
        TimeScopeProps(
            time_scope_type=request.time_scope_type,
            view_name=view_name,
            parameters=time_parameters,
            last_n=request.last_n,
            time_unit=request.time_unit,
            time_start=request.time_start,
            time_end=request.time_end,
        ),
        locale,
    )

    dataset = DataSetProps(
        table_name=view_name,
        custom_sql=sql,
        dataset_parameters=related.dataset_parameters,
    )
    visual = VisualProps(
        sheet_id=sheet_id,
        visual_id=visual_id,
        visual=visual_def,
        parameter_controls=related.parameter_controls,
        parameter_declarations=related.parameter_declarations,
    )
    logger.debug(f"[VISUAL_BUILDER] Built {request.chart_type.value} visual {visual_id} on {view_name}")
    return dataset, visual
