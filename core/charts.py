from __future__ import annotations

from typing import Any, Dict, Optional

import altair as alt
import pandas as pd

from core.projection import SeriesSelection

alt.data_transformers.disable_max_rows()


def to_vega_spec(chart: alt.Chart) -> Dict[str, Any]:
    """Convert an Altair chart into a Vega-Lite spec dict (JSON-serializable)."""
    return chart.to_dict()


def selection_to_long(selection: SeriesSelection) -> pd.DataFrame:
    rows = []
    for order, bucket in enumerate(selection.buckets):
        for spec in selection.series:
            rows.append(
                {
                    "order": order,
                    "label": bucket.label,
                    "series": spec.label,
                    "value": float(getattr(bucket, spec.key)),
                }
            )
    return pd.DataFrame(rows, columns=["order", "label", "series", "value"])


def build_area_chart(selection: SeriesSelection, *, height: int = 320) -> Optional[alt.Chart]:
    if selection.is_empty or not selection.series:
        return None
    long_df = selection_to_long(selection)
    hover = alt.selection_point(fields=["series"], on="mouseover", empty="all")
    return (
        alt.Chart(long_df)
        .mark_area(line=True, opacity=0.35, interpolate="monotone")
        .encode(
            x=alt.X("label:N", title=None, sort=list(selection.labels), axis=alt.Axis(labelAngle=0, grid=False)),
            y=alt.Y("value:Q", title=None, stack=None, axis=alt.Axis(format="~s", gridDash=[3, 3], domain=False, ticks=False)),
            color=alt.Color(
                "series:N",
                title=None,
                scale=alt.Scale(domain=[s.label for s in selection.series], range=[s.color for s in selection.series]),
                legend=alt.Legend(orient="top-right"),
            ),
            opacity=alt.condition(hover, alt.value(0.6), alt.value(0.15)),
            tooltip=[
                alt.Tooltip("label:N", title="Month"),
                alt.Tooltip("series:N", title="Series"),
                alt.Tooltip("value:Q", title="Value", format=",.0f"),
            ],
        )
        .add_params(hover)
        .properties(height=height)
    )
