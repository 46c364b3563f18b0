from __future__ import annotations

import csv
import io
import logging
import os
import threading
from dataclasses import dataclass, field, replace
from functools import lru_cache
from pathlib import Path
from typing import Callable, Dict, List, Optional, Tuple, Union

import pandas as pd
import requests

from core.aggregation import aggregate, summarize
from core.errors import DataUnavailableError
from core.filters import FilterState, normalize_filters
from core.records import (
    DEFAULT_METRIC,
    REQUIRED_HEADERS,
    canonical_header,
    empty_record_frame,
    get_item_types,
    get_years,
    normalize_frame,
    valid_period_mask,
)

logger = logging.getLogger(__name__)

DATA_DIR = Path(__file__).resolve().parents[1]
CSV_FILENAME = "Warehouse_and_Retail_Sales.csv"
SOURCE_ENV = "SALES_CSV_SOURCE"
REQUEST_TIMEOUT = 30.0

Source = Union[str, Path]


def default_source() -> str:
    return os.environ.get(SOURCE_ENV) or str(DATA_DIR / CSV_FILENAME)


def is_remote(source: Source) -> bool:
    return str(source).lower().startswith(("http://", "https://"))


def source_signature(source: Source) -> Tuple[str, float]:
    src = str(source)
    if is_remote(src):
        return src, 0.0
    try:
        return src, Path(src).stat().st_mtime
    except OSError:
        return src, -1.0


# ---------------- Transport ----------------
def fetch_text(source: Source, *, timeout: float = REQUEST_TIMEOUT) -> str:
    src = str(source)
    try:
        if is_remote(src):
            resp = requests.get(src, timeout=timeout)
            resp.raise_for_status()
            return resp.content.decode("utf-8-sig")
        return Path(src).read_text(encoding="utf-8-sig")
    except (OSError, UnicodeDecodeError, requests.RequestException) as exc:
        logger.error("Unable to load CSV data from %s: %s", src, exc)
        raise DataUnavailableError(source=src) from exc


# ---------------- Parsing ----------------
def _drop_dangling_quotes(lines: List[str]) -> Tuple[List[str], List[int]]:
    """Strip quotes from lines whose quoted field never closes.

    Returns the repaired lines and the 1-based numbers of the lines touched.
    A quote that is closed on a later line is left alone (multi-line field).
    """
    out: List[str] = []
    repaired: List[int] = []
    i = 0
    while i < len(lines):
        j = i
        quotes = lines[i].count('"')
        while quotes % 2 and j + 1 < len(lines):
            j += 1
            quotes += lines[j].count('"')
        if quotes % 2:
            repaired.append(i + 1)
            out.append(lines[i].replace('"', ""))
            i += 1
            continue
        out.extend(lines[i : j + 1])
        i = j + 1
    return out, repaired


def parse_csv_text(text: str) -> pd.DataFrame:
    """Parse CSV text into raw string cells; bad rows are logged and kept, never fatal."""
    text = (text or "").lstrip("\ufeff")
    if not text.strip():
        return pd.DataFrame()

    lines, repaired = _drop_dangling_quotes(text.splitlines())
    if repaired:
        logger.warning("CSV parse errors: unclosed quote on line(s) %s; quotes dropped from those rows", repaired)
        text = "\n".join(lines) + "\n"

    header = next(csv.reader(io.StringIO(text)), [])
    width = len(header)
    bad_lines: List[List[str]] = []

    def _keep_bad_line(fields: List[str]) -> List[str]:
        bad_lines.append(fields)
        return fields[:width]

    try:
        raw = pd.read_csv(
            io.StringIO(text),
            header=None,
            dtype=str,
            keep_default_na=False,
            skip_blank_lines=True,
            engine="python",
            on_bad_lines=_keep_bad_line,
        )
    except pd.errors.EmptyDataError:
        return pd.DataFrame()
    except pd.errors.ParserError as exc:
        logger.error("CSV could not be tokenized: %s", exc)
        raise DataUnavailableError() from exc

    # header=None keeps a long first data row from being read as an index column
    df = raw.iloc[1:].reset_index(drop=True)
    df.columns = [str(c) for c in raw.iloc[0].tolist()]

    if bad_lines:
        logger.warning("CSV parse errors: %d row(s) with extra fields, first: %s", len(bad_lines), bad_lines[:3])

    present = {canonical_header(c) for c in df.columns}
    missing = [c for c in REQUIRED_HEADERS if c not in present]
    if missing:
        logger.warning("CSV is missing column(s) %s; treating them as empty", ", ".join(missing))
    return df


def load_sales_frame(source: Source, *, fetch: Callable[[str], str] = fetch_text) -> pd.DataFrame:
    return normalize_frame(parse_csv_text(fetch(str(source))))


# ---------------- Public API (Streamlit parity + FastAPI use) ----------------
@lru_cache(maxsize=4)
def _load_dashboard_data_cached(signature: Tuple[str, float]) -> Dict[str, object]:
    source = signature[0]
    records = load_sales_frame(source)
    valid = int(valid_period_mask(records).sum()) if not records.empty else 0
    logger.info("Loaded %d sales rows (%d with a valid month) from %s", len(records), valid, source)
    return {
        "source": source,
        "records": records,
        "row_count": int(len(records)),
        "valid_row_count": valid,
        "item_types": get_item_types(records),
        "years": get_years(records),
    }


def load_dashboard_data(source: Optional[Source] = None) -> Dict[str, object]:
    return _load_dashboard_data_cached(source_signature(source or default_source()))


def clear_cache() -> None:
    _load_dashboard_data_cached.cache_clear()


def prepare_context(
    filters: Union[dict, FilterState, None],
    data_ctx: Dict[str, object],
    *,
    metric: str = DEFAULT_METRIC,
) -> Dict[str, object]:
    records: pd.DataFrame = data_ctx.get("records", empty_record_frame())
    filt = filters if isinstance(filters, FilterState) else normalize_filters(filters)
    buckets = aggregate(records, filt, metric)
    return {
        "filters": filt,
        "records": records,
        "buckets": buckets,
        "summary": summarize(buckets),
        "row_count": int(data_ctx.get("row_count", len(records)) or 0),
        "valid_row_count": int(data_ctx.get("valid_row_count", 0) or 0),
        "item_types": data_ctx.get("item_types") or get_item_types(records),
        "years": data_ctx.get("years") or get_years(records),
    }


# ---------------- Load lifecycle ----------------
@dataclass(frozen=True)
class LoadState:
    status: str = "idle"
    records: pd.DataFrame = field(default_factory=empty_record_frame, compare=False, repr=False)
    error: Optional[str] = None
    ticket: int = 0

    @property
    def row_count(self) -> int:
        return int(len(self.records))


class SalesDataLoader:
    """Tracks one visible dataset; results of superseded loads are dropped."""

    def __init__(self, fetch: Callable[[str], str] = fetch_text):
        self._fetch = fetch
        self._lock = threading.Lock()
        self._current = 0
        self.state = LoadState()

    def begin(self) -> int:
        with self._lock:
            self._current += 1
            self.state = replace(self.state, status="loading", error=None, ticket=self._current)
            return self._current

    def cancel(self) -> None:
        with self._lock:
            self._current += 1
            if self.state.status == "loading":
                self.state = replace(self.state, status="idle")

    def is_current(self, ticket: int) -> bool:
        return ticket == self._current

    def complete(self, ticket: int, records: pd.DataFrame) -> bool:
        with self._lock:
            if ticket != self._current:
                logger.info("Discarding superseded load %d", ticket)
                return False
            self.state = LoadState(status="ready", records=records, ticket=ticket)
            return True

    def fail(self, ticket: int, message: str) -> bool:
        with self._lock:
            if ticket != self._current:
                logger.info("Discarding failure of superseded load %d", ticket)
                return False
            self.state = LoadState(status="error", error=message, ticket=ticket)
            return True

    def load(self, source: Optional[Source] = None) -> LoadState:
        ticket = self.begin()
        try:
            records = load_sales_frame(source or default_source(), fetch=self._fetch)
        except DataUnavailableError as exc:
            self.fail(ticket, str(exc))
        except Exception:
            logger.exception("Sales data load %d failed", ticket)
            self.fail(ticket, DataUnavailableError.default_message)
        else:
            self.complete(ticket, records)
        return self.state
