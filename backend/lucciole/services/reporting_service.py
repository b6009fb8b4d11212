# Overview: Service-layer operations for reporting; encapsulates business logic and database work.

from __future__ import annotations

import threading
import time
from dataclasses import dataclass, field
from datetime import date, datetime

from flask import current_app
from sqlalchemy.exc import SQLAlchemyError

from ..catalog import SALE_TAG
from .ledger_service import fetch_all_entries
from lucciole.time_utils import day_window, to_business_time

"""
Report Invariants (authoritative)

- Source is the Transaction Log only; current Item state is never consulted.
- The whole log is read, then filtered in memory to the inclusive window
  [start 00:00:00, end 23:59:59] in the business timezone.
- Non-sale entries: +change adds to loaded, -change adds |change| to sold.
- Sale entries: each adds exactly 1 to sold, plus its revenue and cost.
- margin = revenue - cost, computed at read time.
- Sums accumulate unrounded; rounding to 2 decimals happens only on output.
- Table and chart are always built from the same filtered rows.
"""

# Spans up to this many calendar days (inclusive) chart by day, longer by month
DAILY_BUCKET_MAX_DAYS = 60

DAY_KEY_FORMAT = "%Y-%m-%d"
MONTH_KEY_FORMAT = "%Y-%m"


class ReportGenerationFailure(Exception):
    """Raised when report generation fails. No partial report is produced."""
    pass


@dataclass(frozen=True)
class LogRow:
    """Detached copy of one log entry, in business-local time."""
    item_name: str
    category: str
    quantity_change: float
    revenue: float
    cost: float
    local_date: datetime

    @property
    def is_sale(self) -> bool:
        return self.category == SALE_TAG


@dataclass
class ItemTotals:
    item_name: str
    loaded: float = 0.0
    sold: float = 0.0
    revenue: float = 0.0
    cost: float = 0.0

    @property
    def margin(self) -> float:
        return self.revenue - self.cost

    def to_dict(self) -> dict:
        return {
            "item_name": self.item_name,
            "loaded": round(self.loaded, 2),
            "sold": round(self.sold, 2),
            "revenue": round(self.revenue, 2),
            "cost": round(self.cost, 2),
            "margin": round(self.margin, 2),
        }


@dataclass
class SalesReport:
    start: date
    end: date
    name_filter: str | None
    granularity: str
    rows: list[ItemTotals]
    chart: list[tuple[str, float]]

    @property
    def total_revenue(self) -> float:
        return sum(r.revenue for r in self.rows)

    @property
    def total_cost(self) -> float:
        return sum(r.cost for r in self.rows)

    def to_dict(self) -> dict:
        return {
            "start": self.start.isoformat(),
            "end": self.end.isoformat(),
            "name_filter": self.name_filter,
            "granularity": self.granularity,
            "rows": [r.to_dict() for r in self.rows],
            "chart": [{"bucket": key, "revenue": round(value, 2)} for key, value in self.chart],
            "totals": {
                "revenue": round(self.total_revenue, 2),
                "cost": round(self.total_cost, 2),
                "margin": round(self.total_revenue - self.total_cost, 2),
            },
        }


def span_days(start: date, end: date) -> int:
    """Calendar days covered, both ends included (Jan 1..Jan 31 -> 31)."""
    return (end - start).days + 1


def bucket_granularity(start: date, end: date) -> str:
    return "day" if span_days(start, end) <= DAILY_BUCKET_MAX_DAYS else "month"


def _matches(row: LogRow, name_filter: str | None) -> bool:
    if not name_filter:
        return True
    return name_filter.strip().lower() in row.item_name.lower()


@dataclass
class ReportSnapshot:
    """
    Log rows inside one (start, end) window, fetched once.

    build() may be called repeatedly with different name filters without
    touching the database.
    """
    start: date
    end: date
    rows: tuple[LogRow, ...]
    fetched_at: float = field(default_factory=time.monotonic)

    def build(self, name_filter: str | None = None) -> SalesReport:
        name_filter = (name_filter or "").strip() or None
        selected = [r for r in self.rows if _matches(r, name_filter)]

        totals: dict[str, ItemTotals] = {}
        for row in selected:
            bucket = totals.get(row.item_name)
            if bucket is None:
                bucket = totals[row.item_name] = ItemTotals(item_name=row.item_name)
            if row.is_sale:
                bucket.sold += 1
                bucket.revenue += row.revenue
                bucket.cost += row.cost
            elif row.quantity_change > 0:
                bucket.loaded += row.quantity_change
            else:
                bucket.sold += abs(row.quantity_change)

        ordered = sorted(totals.values(), key=lambda t: (-t.sold, t.item_name.lower()))

        granularity = bucket_granularity(self.start, self.end)
        key_format = DAY_KEY_FORMAT if granularity == "day" else MONTH_KEY_FORMAT
        series: dict[str, float] = {}
        for row in selected:
            if not row.is_sale:
                continue
            key = row.local_date.strftime(key_format)
            series[key] = series.get(key, 0.0) + row.revenue

        return SalesReport(
            start=self.start,
            end=self.end,
            name_filter=name_filter,
            granularity=granularity,
            rows=ordered,
            chart=sorted(series.items()),
        )


def fetch_snapshot(start: date, end: date) -> ReportSnapshot:
    """
    Full log scan, then in-memory filter to the inclusive day window.

    Raises ReportGenerationFailure on query errors.
    """
    if start is None or end is None:
        raise ValueError("start and end dates are required")
    if end < start:
        raise ValueError("end date must not be before start date")

    tz_name = current_app.config["BUSINESS_TIMEZONE"]
    window_start, window_end = day_window(start, end, tz_name)

    try:
        entries = fetch_all_entries()
    except SQLAlchemyError as exc:
        raise ReportGenerationFailure("Could not read the transaction log") from exc

    rows = tuple(
        LogRow(
            item_name=e.item_name,
            category=e.category,
            quantity_change=e.quantity_change or 0.0,
            revenue=e.revenue or 0.0,
            cost=e.cost or 0.0,
            local_date=to_business_time(e.date, tz_name),
        )
        for e in entries
        if window_start <= e.date <= window_end
    )
    return ReportSnapshot(start=start, end=end, rows=rows)


def generate_report(start: date, end: date, name_filter: str | None = None) -> SalesReport:
    return fetch_snapshot(start, end).build(name_filter)


class ReportCache:
    """
    Snapshots per (start, end), kept for max_age seconds.

    Changing only the name filter reuses the cached snapshot. New log entries
    clear the cache through invalidate_reports(); refresh=True forces a new scan.
    """

    def __init__(self, max_age: float, max_entries: int = 32):
        self.max_age = max_age
        self.max_entries = max_entries
        self._snapshots: dict[tuple[date, date], ReportSnapshot] = {}
        self._lock = threading.Lock()

    def get(self, start: date, end: date, *, refresh: bool = False) -> ReportSnapshot:
        key = (start, end)
        with self._lock:
            cached = self._snapshots.get(key)
        if cached is not None and not refresh and time.monotonic() - cached.fetched_at <= self.max_age:
            return cached

        snapshot = fetch_snapshot(start, end)
        with self._lock:
            if len(self._snapshots) >= self.max_entries and key not in self._snapshots:
                oldest = min(self._snapshots, key=lambda k: self._snapshots[k].fetched_at)
                del self._snapshots[oldest]
            self._snapshots[key] = snapshot
        return snapshot

    def clear(self) -> None:
        with self._lock:
            self._snapshots.clear()


_CACHE_KEY = "lucciole.report_cache"


def init_report_cache(app) -> ReportCache:
    cache = ReportCache(max_age=app.config["REPORT_CACHE_SECONDS"])
    app.extensions[_CACHE_KEY] = cache
    return cache


def get_report_cache() -> ReportCache:
    return current_app.extensions[_CACHE_KEY]


def invalidate_reports() -> None:
    """Drop cached snapshots; call after every committed log entry."""
    get_report_cache().clear()


def sales_report(
    *,
    start: date,
    end: date,
    name_filter: str | None = None,
    refresh: bool = False,
) -> dict:
    snapshot = get_report_cache().get(start, end, refresh=refresh)
    report = snapshot.build(name_filter).to_dict()
    report["fetched_window"] = {
        "start": start.isoformat(),
        "end": end.isoformat(),
        "entries": len(snapshot.rows),
    }
    return report
