from __future__ import annotations

import logging
from dataclasses import asdict, dataclass, fields
from typing import Dict, Iterable, List, Mapping, Optional, Sequence, Tuple, Union

import numpy as np
import pandas as pd

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class MetricConfig:
    key: str
    column: str
    label: str
    series_name: str
    color: str


METRIC_CONFIG: Dict[str, MetricConfig] = {
    "retail_sales": MetricConfig("retail_sales", "RETAIL SALES", "Retail Sales", "Retail sales", "#38bdf8"),
    "retail_transfers": MetricConfig("retail_transfers", "RETAIL TRANSFERS", "Retail Transfers", "Retail transfers", "#a855f7"),
    "warehouse_sales": MetricConfig("warehouse_sales", "WAREHOUSE SALES", "Warehouse Sales", "Warehouse sales", "#22c55e"),
}
METRIC_KEYS: Tuple[str, ...] = tuple(METRIC_CONFIG)
DEFAULT_METRIC = "retail_sales"

_METRIC_ALIASES = {
    "retailSales": "retail_sales",
    "retailTransfers": "retail_transfers",
    "warehouseSales": "warehouse_sales",
}

# Raw CSV header -> canonical column.
RAW_COLUMNS = {
    "YEAR": "year",
    "MONTH": "month",
    "ITEM TYPE": "item_type",
    "RETAIL SALES": "retail_sales",
    "RETAIL TRANSFERS": "retail_transfers",
    "WAREHOUSE SALES": "warehouse_sales",
}
REQUIRED_HEADERS: Tuple[str, ...] = tuple(RAW_COLUMNS)

PASSTHROUGH_COLUMNS = {
    "SUPPLIER": "supplier",
    "ITEM CODE": "item_code",
    "ITEM DESCRIPTION": "item_description",
}

RECORD_COLUMNS: Tuple[str, ...] = ("year", "month", "item_type", *METRIC_KEYS)

# Larger magnitudes cannot be a calendar value and would overflow int64.
_MAX_CALENDAR_VALUE = 1e9


@dataclass(frozen=True)
class SalesRecord:
    year: int
    month: int
    item_type: Optional[str]
    retail_sales: float = 0.0
    retail_transfers: float = 0.0
    warehouse_sales: float = 0.0


Records = Union[pd.DataFrame, Sequence[SalesRecord]]


def normalize_metric(metric: object) -> str:
    key = _METRIC_ALIASES.get(str(metric), str(metric)) if metric is not None else DEFAULT_METRIC
    if key not in METRIC_CONFIG:
        logger.warning("Unknown metric %r, falling back to %s", metric, DEFAULT_METRIC)
        return DEFAULT_METRIC
    return key


def canonical_header(name: object) -> str:
    """'Retail_Sales ' -> 'RETAIL SALES'."""
    return " ".join(str(name).replace("_", " ").split()).upper()


def empty_record_frame() -> pd.DataFrame:
    return pd.DataFrame(
        {
            "year": pd.Series(dtype="int64"),
            "month": pd.Series(dtype="int64"),
            "item_type": pd.Series(dtype=object),
            "retail_sales": pd.Series(dtype="float64"),
            "retail_transfers": pd.Series(dtype="float64"),
            "warehouse_sales": pd.Series(dtype="float64"),
        }
    )


def _column_or_missing(df: pd.DataFrame, col: str) -> pd.Series:
    if col not in df.columns:
        return pd.Series([None] * len(df), index=df.index, dtype=object)
    val = df[col]
    if isinstance(val, pd.DataFrame):
        return val.iloc[:, 0]
    return val


def _strip_text(series: pd.Series) -> pd.Series:
    return series.astype(object).map(lambda v: v.strip() if isinstance(v, str) else v)


def _text_or_none(series: pd.Series) -> pd.Series:
    return series.astype(object).map(lambda v: None if v is None or (not isinstance(v, str) and pd.isna(v)) else v)


def coerce_numeric(series: pd.Series, *, column: str = "") -> pd.Series:
    """Best-effort float coercion; anything unparsable or non-finite becomes 0."""
    cleaned = _strip_text(series)
    values = pd.to_numeric(cleaned, errors="coerce").astype("float64")
    malformed = values.isna() & cleaned.notna() & (cleaned != "")
    if malformed.any():
        logger.debug("Coerced %d malformed %s value(s) to 0", int(malformed.sum()), column or "numeric")
    return values.where(np.isfinite(values), 0.0)


def coerce_integer(series: pd.Series, *, column: str = "") -> pd.Series:
    values = coerce_numeric(series, column=column)
    integral = (values == np.floor(values)) & (values.abs() <= _MAX_CALENDAR_VALUE)
    return values.where(integral, 0.0).astype("int64")


def normalize_frame(raw: pd.DataFrame) -> pd.DataFrame:
    """Turn raw string cells into typed sales records, one output row per input row."""
    if raw is None or raw.empty:
        return empty_record_frame()

    raw = raw.reset_index(drop=True).copy()
    raw.columns = [canonical_header(c) for c in raw.columns]
    raw = raw.loc[:, ~raw.columns.duplicated()]

    out = pd.DataFrame(index=raw.index)
    out["year"] = coerce_integer(_column_or_missing(raw, "YEAR"), column="YEAR")
    out["month"] = coerce_integer(_column_or_missing(raw, "MONTH"), column="MONTH")

    out["item_type"] = _text_or_none(_column_or_missing(raw, "ITEM TYPE"))

    for key, cfg in METRIC_CONFIG.items():
        out[key] = coerce_numeric(_column_or_missing(raw, cfg.column), column=cfg.column)

    for header, col in PASSTHROUGH_COLUMNS.items():
        if header in raw.columns:
            out[col] = _text_or_none(_column_or_missing(raw, header))
    return out


def normalize_rows(rows: Iterable[Mapping[str, object]]) -> pd.DataFrame:
    rows = list(rows)
    if not rows:
        return empty_record_frame()
    return normalize_frame(pd.DataFrame.from_records(rows))


def records_from_frame(df: pd.DataFrame) -> Tuple[SalesRecord, ...]:
    if df.empty:
        return ()
    cols = [f.name for f in fields(SalesRecord)]
    return tuple(
        SalesRecord(
            year=int(row["year"]),
            month=int(row["month"]),
            item_type=row["item_type"],
            retail_sales=float(row["retail_sales"]),
            retail_transfers=float(row["retail_transfers"]),
            warehouse_sales=float(row["warehouse_sales"]),
        )
        for row in df[cols].to_dict(orient="records")
    )


def as_frame(records: Records) -> pd.DataFrame:
    if isinstance(records, pd.DataFrame):
        if records.empty:
            return empty_record_frame()
        return records
    items: List[SalesRecord] = list(records)
    if not items:
        return empty_record_frame()
    return pd.DataFrame([asdict(r) for r in items], columns=list(RECORD_COLUMNS))


def valid_period_mask(df: pd.DataFrame) -> pd.Series:
    """Rows with a usable (year, month); everything else is skipped by aggregation."""
    return (df["year"] > 0) & df["month"].between(1, 12)


# ---------------- Dimension index ----------------
def get_item_types(records: Records) -> List[str]:
    df = as_frame(records)
    types = {str(v) for v in df["item_type"].tolist() if isinstance(v, str) and v}
    return sorted(types)


def get_years(records: Records) -> List[int]:
    df = as_frame(records)
    years = pd.to_numeric(df["year"], errors="coerce").dropna().astype(int)
    return sorted(int(y) for y in years[years > 0].unique())
