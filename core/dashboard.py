from __future__ import annotations

from dataclasses import asdict
from typing import Any, Dict, List

import pandas as pd

from core.aggregation import MonthBucket, SummaryTotals
from core.charts import build_area_chart, to_vega_spec
from core.filters import FilterState
from core.projection import describe_filters, project
from core.records import METRIC_CONFIG, empty_record_frame, normalize_metric, valid_period_mask

EMPTY_MESSAGE = "No data found for the selected filters."


def compute_dashboard(
    filters: FilterState,
    ctx: Dict[str, Any],
    *,
    metric: str = "retail_sales",
    show_all: bool = True,
) -> Dict[str, Any]:
    metric = normalize_metric(metric)
    buckets: List[MonthBucket] = ctx.get("buckets", []) or []
    summary: SummaryTotals = ctx.get("summary") or SummaryTotals()
    selection = project(buckets, metric, show_all)

    charts: Dict[str, Any] = {}
    chart = build_area_chart(selection)
    if chart is not None:
        charts["monthly_volume"] = to_vega_spec(chart)

    return {
        "filters": asdict(filters),
        "metric": {"key": metric, "label": METRIC_CONFIG[metric].label},
        "view": selection.view_label,
        "pill": describe_filters(filters),
        "summary": asdict(summary),
        "months": [asdict(b) for b in buckets],
        "series": [asdict(s) for s in selection.series],
        "charts": charts,
        "empty_message": EMPTY_MESSAGE if selection.is_empty else None,
        "row_count": int(ctx.get("row_count", 0) or 0),
    }


def compute_data_quality(ctx: Dict[str, Any]) -> Dict[str, Any]:
    records: pd.DataFrame = ctx.get("records", empty_record_frame())
    payload: Dict[str, Any] = {
        "row_counts": {
            "rows": int(len(records)),
            "rows_excluded_invalid_period": 0,
            "rows_missing_item_type": 0,
        },
        "month_coverage": [],
    }
    if records.empty:
        return payload

    valid = valid_period_mask(records)
    item_type = records["item_type"]
    missing_type = item_type.isna() | (item_type.astype(str).str.strip() == "")
    payload["row_counts"]["rows_excluded_invalid_period"] = int((~valid).sum())
    payload["row_counts"]["rows_missing_item_type"] = int(missing_type.sum())

    dated = records[valid]
    if not dated.empty:
        coverage = (
            dated.groupby("year")["month"]
            .agg(["min", "max", "nunique"])
            .reset_index()
            .rename(columns={"min": "first_month", "max": "last_month", "nunique": "months_present"})
        )
        payload["month_coverage"] = [
            {k: int(v) for k, v in row.items()} for row in coverage.to_dict(orient="records")
        ]
    return payload
