from __future__ import annotations

from ..extensions import db
from ..catalog import SALE_TAG
from lucciole.time_utils import to_utc_z, utcnow


class LogEntry(db.Model):
    """
    Transaction Log: one row per stock or sale event.

    - Append-only. Updates and deletes are refused at the ORM layer (see immutability.py).
    - Name-keyed, not id-keyed: item_name/category are copied at write time so
      reports survive item renames and deletions.
    - quantity_change is the REQUESTED delta, even when the stored quantity was
      clamped at zero.
    - Sale entries carry category == "SALE" plus revenue and cost.
    """
    __tablename__ = "logs"
    __table_args__ = (
        db.Index("ix_logs_item_date", "item_name", "date"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    item_name = db.Column(db.String(255), nullable=False)
    category = db.Column(db.String(64), nullable=False, index=True)
    quantity_change = db.Column(db.Float, nullable=False)

    user_role = db.Column(db.String(32), nullable=True)
    note = db.Column(db.String(255), nullable=True)

    # Business time of the event (UTC-naive)
    date = db.Column(db.DateTime, nullable=False, default=utcnow, index=True)

    revenue = db.Column(db.Float, nullable=True)
    cost = db.Column(db.Float, nullable=True)

    @property
    def is_sale(self) -> bool:
        return self.category == SALE_TAG

    def __repr__(self) -> str:
        return f"<LogEntry id={self.id} item={self.item_name!r} change={self.quantity_change}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "item_name": self.item_name,
            "category": self.category,
            "quantity_change": self.quantity_change,
            "user_role": self.user_role,
            "note": self.note,
            "date": to_utc_z(self.date),
            "revenue": self.revenue,
            "cost": self.cost,
        }
