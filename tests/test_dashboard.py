from __future__ import annotations

import json

import pytest

from core.dashboard import EMPTY_MESSAGE, compute_dashboard, compute_data_quality
from core.data import load_dashboard_data, prepare_context
from core.filters import FilterState
from core.records import normalize_rows


def test_dashboard_payload_all_all(sales_source):
    filters = FilterState()
    ctx = prepare_context(filters, load_dashboard_data())
    payload = compute_dashboard(filters, ctx, metric="warehouse_sales", show_all=False)

    assert payload["filters"] == {"item_type": "ALL", "year": "ALL"}
    assert payload["metric"] == {"key": "warehouse_sales", "label": "Warehouse Sales"}
    assert payload["view"] == "Focused single series"
    assert payload["pill"] == "All item types"
    assert [m["label"] for m in payload["months"]] == ["Dec 2019", "Jan 2020", "Feb 2020"]
    assert [s["key"] for s in payload["series"]] == ["warehouse_sales"]
    assert payload["summary"]["months"] == 3
    assert payload["summary"]["total_warehouse"] == pytest.approx(15.0)
    assert payload["empty_message"] is None
    assert payload["row_count"] == 6
    assert "monthly_volume" in payload["charts"]
    json.dumps(payload)


def test_dashboard_payload_empty_state(sales_source):
    filters = FilterState(item_type="KEGS", year=2020)
    ctx = prepare_context(filters, load_dashboard_data())
    payload = compute_dashboard(filters, ctx)
    assert payload["months"] == []
    assert payload["charts"] == {}
    assert payload["empty_message"] == EMPTY_MESSAGE
    assert payload["summary"] == {"months": 0, "total_retail_sales": 0.0, "total_transfers": 0.0, "total_warehouse": 0.0}
    assert payload["pill"] == "KEGS • 2020"


def test_data_quality(sales_source):
    ctx = prepare_context(None, load_dashboard_data())
    payload = compute_data_quality(ctx)
    assert payload["row_counts"] == {"rows": 6, "rows_excluded_invalid_period": 1, "rows_missing_item_type": 0}
    assert payload["month_coverage"] == [
        {"year": 2019, "first_month": 12, "last_month": 12, "months_present": 1},
        {"year": 2020, "first_month": 1, "last_month": 2, "months_present": 2},
    ]


def test_data_quality_counts_missing_item_types():
    records = normalize_rows([{"YEAR": 2020, "MONTH": 1, "ITEM TYPE": ""}, {"YEAR": 2020, "MONTH": 2}])
    payload = compute_data_quality({"records": records})
    assert payload["row_counts"]["rows_missing_item_type"] == 2


def test_data_quality_empty():
    payload = compute_data_quality({})
    assert payload["row_counts"]["rows"] == 0
    assert payload["month_coverage"] == []
