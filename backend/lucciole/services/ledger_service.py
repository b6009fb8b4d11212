# Overview: Service-layer operations for the Transaction Log.

from __future__ import annotations

from typing import Optional
from datetime import datetime

from ..extensions import db
from ..models import LogEntry
from ..catalog import SALE_TAG
from lucciole.time_utils import utcnow
"""
Transaction Log Invariants (authoritative)

- Append-only: exactly one entry per mutating action, never updated or deleted.
- Entries are written inside the same DB transaction as the change they record;
  callers commit.
- Keyed by item name and category, never by item id.
- date is business time; defaults to now (UTC-naive).
"""


def append_log_entry(
    *,
    item_name: str,
    category: str,
    quantity_change: float,
    user_role: str | None = None,
    note: Optional[str] = None,
    revenue: float | None = None,
    cost: float | None = None,
    occurred_at: Optional[datetime] = None,
) -> LogEntry:
    """
    Append one Transaction Log entry.

    - No domain logic here.
    - No commit: the caller's transaction decides.
    """
    entry = LogEntry(
        item_name=item_name,
        category=category,
        quantity_change=quantity_change,
        user_role=user_role,
        note=note,
        revenue=revenue,
        cost=cost,
        date=occurred_at or utcnow(),
    )
    db.session.add(entry)
    db.session.flush()
    return entry


def append_sale_entry(
    *,
    item_name: str,
    revenue: float,
    cost: float,
    user_role: str | None = None,
    note: Optional[str] = None,
    occurred_at: Optional[datetime] = None,
) -> LogEntry:
    return append_log_entry(
        item_name=item_name,
        category=SALE_TAG,
        quantity_change=-1,
        user_role=user_role,
        note=note,
        revenue=revenue,
        cost=cost,
        occurred_at=occurred_at,
    )


def fetch_all_entries() -> list[LogEntry]:
    """
    Full Transaction Log scan, oldest first.

    Reporting filters by date after retrieval; no server-side date predicate.
    """
    return (
        db.session.query(LogEntry)
        .order_by(LogEntry.date.asc(), LogEntry.id.asc())
        .all()
    )


def list_entries_for_item(item_name: str, *, limit: int = 200) -> list[LogEntry]:
    return (
        db.session.query(LogEntry)
        .filter(db.func.lower(LogEntry.item_name) == item_name.strip().lower())
        .order_by(LogEntry.date.desc(), LogEntry.id.desc())
        .limit(limit)
        .all()
    )
