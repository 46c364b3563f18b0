from __future__ import annotations

from dataclasses import dataclass
from typing import Sequence, Tuple

from core.aggregation import MonthBucket
from core.filters import ALL, FilterState
from core.records import METRIC_CONFIG, METRIC_KEYS, normalize_metric

VIEW_ALL = "All channels overlay"
VIEW_FOCUSED = "Focused single series"


@dataclass(frozen=True)
class SeriesSpec:
    key: str
    label: str
    color: str


@dataclass(frozen=True)
class SeriesSelection:
    metric: str
    show_all: bool
    series: Tuple[SeriesSpec, ...]
    labels: Tuple[str, ...]
    buckets: Tuple[MonthBucket, ...]

    @property
    def keys(self) -> Tuple[str, ...]:
        return tuple(s.key for s in self.series)

    @property
    def view_label(self) -> str:
        return VIEW_ALL if self.show_all else VIEW_FOCUSED

    @property
    def is_empty(self) -> bool:
        return not self.buckets


def project(buckets: Sequence[MonthBucket], metric: str, show_all: bool) -> SeriesSelection:
    metric = normalize_metric(metric)
    visible = METRIC_KEYS if show_all else (metric,)
    series = tuple(
        SeriesSpec(key=key, label=METRIC_CONFIG[key].series_name, color=METRIC_CONFIG[key].color)
        for key in METRIC_KEYS
        if key in visible
    )
    buckets = tuple(buckets)
    return SeriesSelection(
        metric=metric,
        show_all=bool(show_all),
        series=series,
        labels=tuple(b.label for b in buckets),
        buckets=buckets,
    )


def describe_filters(filters: FilterState) -> str:
    text = "All item types" if filters.item_type == ALL else filters.item_type
    if filters.year != ALL:
        text = f"{text} • {filters.year}"
    return text
