from __future__ import annotations

from ..extensions import db
from lucciole.time_utils import to_utc_z

SHOPPING_LIST_KEY = "shoppingList"


class GeneralDocument(db.Model):
    """
    Small keyed JSON documents shared by the whole deployment.

    The shopping list is the document at key "shoppingList": one field per
    department holding free text. Saved wholesale, no history.
    """
    __tablename__ = "general"

    key = db.Column(db.String(64), primary_key=True)
    data = db.Column(db.JSON, nullable=False, default=dict)

    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    def to_dict(self) -> dict:
        return {
            "key": self.key,
            "data": dict(self.data or {}),
            "updated_at": to_utc_z(self.updated_at),
        }
