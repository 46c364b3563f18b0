from __future__ import annotations

from dataclasses import asdict, dataclass
from typing import List, Sequence

import pandas as pd

from core.filters import ALL, FilterState
from core.records import DEFAULT_METRIC, METRIC_KEYS, Records, as_frame, valid_period_mask

MONTH_LABELS = ("Jan", "Feb", "Mar", "Apr", "May", "Jun", "Jul", "Aug", "Sep", "Oct", "Nov", "Dec")


@dataclass(frozen=True)
class MonthBucket:
    year: int
    month: int
    label: str
    retail_sales: float = 0.0
    retail_transfers: float = 0.0
    warehouse_sales: float = 0.0


@dataclass(frozen=True)
class SummaryTotals:
    months: int = 0
    total_retail_sales: float = 0.0
    total_transfers: float = 0.0
    total_warehouse: float = 0.0


def month_label(year: int, month: int) -> str:
    return f"{MONTH_LABELS[month - 1]} {year}"


def filter_records(records: Records, filters: FilterState) -> pd.DataFrame:
    """Apply the item-type/year selection; year is compared as text to tolerate type drift."""
    df = as_frame(records)
    mask = pd.Series(True, index=df.index)
    if filters.item_type != ALL:
        mask &= df["item_type"] == filters.item_type
    if filters.year != ALL:
        mask &= df["year"].astype(str) == str(filters.year).strip()
    return df[mask]


def aggregate(records: Records, filters: FilterState, metric: str = DEFAULT_METRIC) -> List[MonthBucket]:
    """Roll records up into one bucket per (year, month), oldest first.

    All three metrics are always summed. ``metric`` is accepted so callers can
    pass their view options straight through; it never changes the buckets and
    is resolved by ``project``.
    """
    df = filter_records(records, filters)
    if df.empty:
        return []
    df = df[valid_period_mask(df)]
    if df.empty:
        return []

    grouped = (
        df.groupby(["year", "month"], sort=True)[list(METRIC_KEYS)]
        .sum()
        .reset_index()
        .sort_values(["year", "month"])
    )
    return [
        MonthBucket(
            year=int(row["year"]),
            month=int(row["month"]),
            label=month_label(int(row["year"]), int(row["month"])),
            retail_sales=float(row["retail_sales"]),
            retail_transfers=float(row["retail_transfers"]),
            warehouse_sales=float(row["warehouse_sales"]),
        )
        for row in grouped.to_dict(orient="records")
    ]


def summarize(buckets: Sequence[MonthBucket]) -> SummaryTotals:
    months = 0
    retail = transfers = warehouse = 0.0
    for bucket in buckets:
        months += 1
        retail += bucket.retail_sales
        transfers += bucket.retail_transfers
        warehouse += bucket.warehouse_sales
    return SummaryTotals(
        months=months,
        total_retail_sales=retail,
        total_transfers=transfers,
        total_warehouse=warehouse,
    )


def buckets_to_frame(buckets: Sequence[MonthBucket]) -> pd.DataFrame:
    cols = ["year", "month", "label", *METRIC_KEYS]
    if not buckets:
        return pd.DataFrame(columns=cols)
    return pd.DataFrame([asdict(b) for b in buckets], columns=cols)
