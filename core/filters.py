from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Union

from core.records import DEFAULT_METRIC, normalize_metric

ALL = "ALL"

YearFilter = Union[int, str]


@dataclass(frozen=True)
class FilterState:
    item_type: str = ALL
    year: YearFilter = ALL

    @property
    def is_unfiltered(self) -> bool:
        return self.item_type == ALL and self.year == ALL


@dataclass(frozen=True)
class ViewOptions:
    metric: str = DEFAULT_METRIC
    show_all_series: bool = True


def _as_year(value: object) -> YearFilter:
    if value is None:
        return ALL
    s = str(value).strip()
    if not s or s.upper() == ALL:
        return ALL
    try:
        return int(s)
    except ValueError:
        pass
    try:
        f = float(s)
    except ValueError:
        # Kept verbatim so it matches nothing instead of silently widening to ALL.
        return s
    return int(f) if f.is_integer() else s


def _as_item_type(value: object) -> str:
    if value is None:
        return ALL
    s = str(value)
    if not s.strip() or s.strip().upper() == ALL:
        return ALL
    return s


def normalize_filters(raw: Optional[dict]) -> FilterState:
    raw = raw or {}
    return FilterState(item_type=_as_item_type(raw.get("item_type")), year=_as_year(raw.get("year")))


def normalize_view(raw: Optional[dict]) -> ViewOptions:
    raw = raw or {}
    show_all = raw.get("show_all_series", True)
    if isinstance(show_all, str):
        show_all = show_all.strip().lower() not in {"0", "false", "no", "off"}
    return ViewOptions(metric=normalize_metric(raw.get("metric", DEFAULT_METRIC)), show_all_series=bool(show_all))
