# Overview: Shared shopping list: one free-text note per department.

from __future__ import annotations

from ..extensions import db
from ..models import GeneralDocument
from ..models.general import SHOPPING_LIST_KEY
from ..catalog import get_catalog
from ..validation import ValidationError
from .concurrency import write_with_retry

MAX_NOTE_LENGTH = 5000


def _document() -> GeneralDocument | None:
    return db.session.get(GeneralDocument, SHOPPING_LIST_KEY)


def get_shopping_list() -> dict:
    """Every configured department, "" when nothing was saved for it."""
    doc = _document()
    stored = dict(doc.data or {}) if doc is not None else {}
    departments = {name: str(stored.get(name) or "") for name in get_catalog().categories}
    return {
        "departments": departments,
        "updated_at": doc.to_dict()["updated_at"] if doc is not None else None,
    }


def _clean(payload) -> dict[str, str]:
    if not isinstance(payload, dict):
        raise ValidationError("Shopping list must be an object keyed by department")

    categories = get_catalog().categories
    cleaned = {}
    for key, value in payload.items():
        if key not in categories:
            raise ValidationError(f"Unknown department: {key}")
        if value is None:
            value = ""
        if not isinstance(value, str):
            raise ValidationError(f"{key} must be text")
        if len(value) > MAX_NOTE_LENGTH:
            raise ValidationError(f"{key} exceeds max length {MAX_NOTE_LENGTH}")
        cleaned[key] = value
    return cleaned


def save_shopping_list(payload: dict, *, merge: bool = False) -> dict:
    """
    Overwrite the shopping list wholesale (merge=False) or only the given
    departments (merge=True). Last write wins; no history.
    """
    cleaned = _clean(payload)

    def _op():
        doc = _document()
        if doc is None:
            doc = GeneralDocument(key=SHOPPING_LIST_KEY, data={})
            db.session.add(doc)
        data = dict(doc.data or {}) if merge else {}
        data.update(cleaned)
        # Reassign so the JSON column is flagged dirty
        doc.data = data
        db.session.commit()

    write_with_retry(_op, action="save the shopping list")
    return get_shopping_list()
