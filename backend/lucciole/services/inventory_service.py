# Overview: Service-layer operations for inventory; encapsulates business logic and database work.

# backend/lucciole/services/inventory_service.py

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, timedelta

from flask import current_app
from sqlalchemy import case, func

from ..extensions import db
from ..models import Item, StockItem, MenuDirectItem, MenuDishItem, LogEntry
from ..models.inventory import EXPIRY_WARNING_DAYS, MENU_TYPE_DIRECT, MENU_TYPE_DISH
from ..catalog import MENU_ITEM, get_catalog
from ..validation import (
    ModelValidationPolicy,
    ValidationError,
    ConflictError,
    validate_payload,
    enforce_rules_stock_item,
    enforce_rules_menu_item,
    enforce_rules_delta,
)
from lucciole.time_utils import business_today
from .ledger_service import append_log_entry
from .concurrency import write_with_retry
from .subscriptions import notify_item_change
from .reporting_service import invalidate_reports
"""
Inventory Invariants (authoritative)

Quantity:
- Never negative. Every mutation path clamps at zero.
- Stored to 4 decimal places so dose-based pours (dose/capacity) accumulate cleanly.
- Always changed by a relative UPDATE evaluated in the database
  (quantity = max(0, round(quantity + delta, 4))). Never read-modify-write from
  a cached value: two concurrent -1s must both land.
- Dish menu items do not track quantity; deltas against them only append a log entry.

Merge-on-Add:
- A delivery whose trim().lower() name and exact category match a non-archived
  StockItem is folded into it; otherwise a new StockItem is created.
- There is never more than one non-archived StockItem per normalized (name, category).

Transaction Log:
- Exactly one entry per add/delta, name-keyed.
- The logged quantity_change is the REQUESTED delta, not the clamped effect.
"""

POUR_NOTE = "dose-sold"
LOAD_NOTE = "stock loaded"
MERGE_NOTE = "stock loaded (merged)"

MODE_ALL = "ALL"
MODE_LOW_STOCK = "LOW_STOCK"
MODE_EXPIRING = "EXPIRING"
LIST_MODES = (MODE_ALL, MODE_LOW_STOCK, MODE_EXPIRING)

SECTION_WAREHOUSE = "warehouse"
SECTION_MENU = "menu"

# Fields a merge overwrites only when the incoming value is non-empty
MERGE_OVERWRITE_FIELDS = ("min_threshold", "supplier", "subcategory")

STOCK_CREATE_POLICY = ModelValidationPolicy(
    writable_fields={
        "name", "category", "subcategory", "quantity", "min_threshold", "unit",
        "supplier", "expiry_date", "cost_price", "sell_price", "capacity", "dose",
    },
    required_on_create={"name", "category", "quantity"},
)

STOCK_UPDATE_POLICY = ModelValidationPolicy(
    writable_fields={
        "name", "category", "subcategory", "min_threshold", "unit", "supplier",
        "expiry_date", "cost_price", "sell_price", "capacity", "dose",
    },
)

MENU_DIRECT_POLICY = ModelValidationPolicy(
    writable_fields={"name", "subcategory", "cost_price", "sell_price", "linked_product_id"},
    required_on_create={"name"},
)

MENU_DISH_POLICY = ModelValidationPolicy(
    writable_fields={"name", "subcategory", "cost_price", "sell_price"},
    required_on_create={"name"},
)

PRICE_FIELDS = frozenset({"cost_price", "sell_price"})


@dataclass
class AddResult:
    item: StockItem
    merged: bool
    log_entry: LogEntry


@dataclass
class DeltaResult:
    item: Item
    log_entry: LogEntry
    clamped: bool


def normalize_name(name: str | None) -> str:
    return (name or "").strip().lower()


def _has_value(value) -> bool:
    # Empty means None, "" or 0: a delivery form left blank keeps the stored value
    return value not in (None, "", 0, 0.0)


def _today() -> date:
    return business_today(current_app.config["BUSINESS_TIMEZONE"])


def get_item(item_id: int) -> Item | None:
    return db.session.get(Item, item_id)


def is_visible_to(item: Item, role: str | None) -> bool:
    """Scoped staff roles only see their own department's warehouse stock."""
    scope = get_catalog().scope_for(role)
    if scope is None or item.category == MENU_ITEM:
        return True
    return item.category == scope


def find_merge_target(name: str, category: str) -> StockItem | None:
    return (
        db.session.query(StockItem)
        .filter(
            func.lower(func.trim(StockItem.name)) == normalize_name(name),
            StockItem.category == category,
            StockItem.is_archived.is_(False),
        )
        .order_by(StockItem.id.asc())
        .first()
    )


def add_item_or_merge(payload: dict, *, user_role: str | None = None) -> AddResult:
    """
    Record a stock delivery.

    Folds into the matching StockItem when one exists (quantity added, threshold,
    supplier and subcategory overwritten only by non-empty values), otherwise
    inserts a new StockItem. Appends exactly one log entry with +quantity.

    Scoped staff roles always load into their own department.
    """
    catalog = get_catalog()
    patch = validate_payload(
        model=StockItem,
        payload=payload,
        policy=STOCK_CREATE_POLICY,
        partial=False,
    )
    scope = catalog.scope_for(user_role)
    if scope is not None:
        patch["category"] = scope
    enforce_rules_stock_item(patch, categories=catalog.categories, units=catalog.units)

    quantity = patch.get("quantity") or 0.0

    def _op():
        existing = find_merge_target(patch["name"], patch["category"])

        if existing is not None:
            values = {StockItem.quantity: func.round(StockItem.quantity + quantity, 4)}
            for key in MERGE_OVERWRITE_FIELDS:
                if _has_value(patch.get(key)):
                    values[getattr(StockItem, key)] = patch[key]
            db.session.query(StockItem).filter(StockItem.id == existing.id).update(
                values, synchronize_session=False
            )
            item_id, item_name, merged = existing.id, existing.name, True
        else:
            item = StockItem(**patch)
            item.quantity = round(quantity, 4)
            db.session.add(item)
            db.session.flush()
            item_id, item_name, merged = item.id, item.name, False

        entry = append_log_entry(
            item_name=item_name,
            category=patch["category"],
            quantity_change=quantity,
            user_role=user_role,
            note=MERGE_NOTE if merged else LOAD_NOTE,
        )
        db.session.commit()
        return item_id, merged, entry

    item_id, merged, entry = write_with_retry(_op, action="save the delivery")
    invalidate_reports()
    notify_item_change()

    return AddResult(item=db.session.get(StockItem, item_id), merged=merged, log_entry=entry)


def apply_delta(
    item_id: int,
    delta: float,
    note: str | None = None,
    *,
    user_role: str | None = None,
) -> DeltaResult | None:
    """
    Apply a signed quantity change.

    - Unknown item (or deleted before the UPDATE lands): no-op, returns None.
    - Dish menu item: quantity untouched, log entry only.
    - Otherwise: quantity = max(0, round(quantity + delta, 4)) in a single UPDATE.
    The log entry always carries the requested delta, clamped or not.
    """
    delta = float(delta)
    enforce_rules_delta(delta)

    def _op():
        item = db.session.get(Item, item_id)
        if item is None:
            return None

        clamped = False
        if item.tracks_quantity:
            new_quantity = func.round(Item.quantity + delta, 4)
            clamped = bool(
                db.session.query(Item.quantity + delta < 0)
                .filter(Item.id == item_id)
                .scalar()
            )
            updated = db.session.query(Item).filter(Item.id == item_id).update(
                {Item.quantity: case((new_quantity < 0, 0.0), else_=new_quantity)},
                synchronize_session=False,
            )
            # Row deleted after the lookup
            if updated == 0:
                db.session.rollback()
                return None

        entry = append_log_entry(
            item_name=item.name,
            category=item.category,
            quantity_change=delta,
            user_role=user_role,
            note=note,
        )
        db.session.commit()
        return clamped, entry

    outcome = write_with_retry(_op, action="update the quantity")
    if outcome is None:
        return None

    clamped, entry = outcome
    invalidate_reports()
    notify_item_change()
    return DeltaResult(item=db.session.get(Item, item_id), log_entry=entry, clamped=clamped)


def adjust_by_step(item_id: int, direction: str, *, user_role: str | None = None) -> DeltaResult | None:
    """Manual +/- button: one adjustment_step up or down (0.1 for Kg/Lt/dosed items, else 1)."""
    if direction not in ("+", "-"):
        raise ValidationError("direction must be '+' or '-'")
    item = get_item(item_id)
    if item is None:
        return None
    step = item.adjustment_step if isinstance(item, StockItem) else 1.0
    return apply_delta(item_id, step if direction == "+" else -step, user_role=user_role)


def pour_dose(item_id: int, *, user_role: str | None = None) -> DeltaResult | None:
    """Sell one serving from a container: quantity -= dose / capacity."""
    item = get_item(item_id)
    if item is None:
        return None
    if not isinstance(item, StockItem) or not item.can_pour:
        raise ConflictError("Pouring requires both capacity and dose to be set")
    return apply_delta(item_id, -item.pour_fraction, POUR_NOTE, user_role=user_role)


def create_menu_item(payload: dict) -> Item:
    """
    Create a sellable menu entry.

    menu_type "direct" may carry linked_product_id; it must name an existing
    StockItem now, but is re-resolved (and may have vanished) at every sale.
    """
    payload = dict(payload or {})
    menu_type = payload.pop("menu_type", None)
    if menu_type == MENU_TYPE_DIRECT:
        model, policy = MenuDirectItem, MENU_DIRECT_POLICY
    elif menu_type == MENU_TYPE_DISH:
        model, policy = MenuDishItem, MENU_DISH_POLICY
    else:
        raise ValidationError("menu_type must be 'direct' or 'dish'")

    patch = validate_payload(model=model, payload=payload, policy=policy, partial=False)
    enforce_rules_menu_item(patch)

    linked_id = patch.get("linked_product_id")
    if linked_id is not None:
        linked = db.session.get(StockItem, linked_id)
        if linked is None:
            raise ConflictError("linked_product_id does not name a warehouse item")

    def _op():
        item = model(category=MENU_ITEM, quantity=0.0, **patch)
        db.session.add(item)
        db.session.commit()
        return item.id

    item_id = write_with_retry(_op, action="create the menu item")
    notify_item_change()
    return db.session.get(Item, item_id)


def update_item(item_id: int, payload: dict) -> Item | None:
    """
    Edit descriptive fields. Quantity is not writable here; it only moves through
    apply_delta/add_item_or_merge.
    """
    item = get_item(item_id)
    if item is None:
        return None

    catalog = get_catalog()
    if isinstance(item, StockItem):
        patch = validate_payload(model=StockItem, payload=payload, policy=STOCK_UPDATE_POLICY, partial=True)
        enforce_rules_stock_item(
            {"capacity": item.capacity, "dose": item.dose, **patch},
            categories=catalog.categories,
            units=catalog.units,
        )
        name = patch.get("name", item.name)
        category = patch.get("category", item.category)
        clash = find_merge_target(name, category)
        if clash is not None and clash.id != item.id:
            raise ConflictError(f"{clash.name!r} already exists in {category}")
    else:
        policy = MENU_DIRECT_POLICY if isinstance(item, MenuDirectItem) else MENU_DISH_POLICY
        patch = validate_payload(model=type(item), payload=payload, policy=policy, partial=True)
        enforce_rules_menu_item(patch)

    def _op():
        for key, value in patch.items():
            setattr(item, key, value)
        db.session.commit()

    write_with_retry(_op, action="update the item")
    notify_item_change()
    return db.session.get(Item, item_id)


def set_archived(item_id: int, archived: bool) -> Item | None:
    """
    Archive hides an item from default views; it stays in storage and in reports.
    Restoring is refused when an active item already holds the same name.
    """
    item = get_item(item_id)
    if item is None:
        return None

    if not archived and isinstance(item, StockItem) and item.is_archived:
        clash = find_merge_target(item.name, item.category)
        if clash is not None:
            raise ConflictError(f"{clash.name!r} is already active in {item.category}")

    def _op():
        item.is_archived = archived
        db.session.commit()

    write_with_retry(_op, action="archive the item" if archived else "restore the item")
    notify_item_change()
    return db.session.get(Item, item_id)


def archive_item(item_id: int) -> Item | None:
    return set_archived(item_id, True)


def restore_item(item_id: int) -> Item | None:
    return set_archived(item_id, False)


def delete_item(item_id: int) -> bool:
    """Hard delete. Log entries are name-keyed and stay untouched."""
    item = get_item(item_id)
    if item is None:
        return False

    def _op():
        db.session.delete(item)
        db.session.commit()

    write_with_retry(_op, action="delete the item")
    notify_item_change()
    return True


def list_items(
    *,
    role: str | None,
    section: str = SECTION_WAREHOUSE,
    category: str | None = None,
    mode: str = MODE_ALL,
    search: str | None = None,
    include_archived: bool = False,
    today: date | None = None,
) -> list[Item]:
    """
    Filtered view over the Item Store, sorted by name (case-insensitive).

    mode: ALL | LOW_STOCK (quantity <= min_threshold) | EXPIRING (expiry within 10 days)
    """
    if mode not in LIST_MODES:
        raise ValidationError(f"mode must be one of: {', '.join(LIST_MODES)}")

    if section == SECTION_MENU:
        query = db.session.query(Item).filter(Item.category == MENU_ITEM)
    elif section == SECTION_WAREHOUSE:
        query = db.session.query(StockItem)
        scope = get_catalog().scope_for(role)
        if scope is not None:
            query = query.filter(StockItem.category == scope)
        elif category:
            query = query.filter(StockItem.category == category)

        if mode == MODE_LOW_STOCK:
            query = query.filter(StockItem.quantity <= func.coalesce(StockItem.min_threshold, 0))
        elif mode == MODE_EXPIRING:
            limit = (today or _today()) + timedelta(days=EXPIRY_WARNING_DAYS)
            query = query.filter(StockItem.expiry_date.isnot(None), StockItem.expiry_date <= limit)
    else:
        raise ValidationError("section must be 'warehouse' or 'menu'")

    if not include_archived:
        query = query.filter(Item.is_archived.is_(False))

    if search:
        query = query.filter(func.lower(Item.name).contains(normalize_name(search), autoescape=True))

    return query.order_by(func.lower(Item.name).asc(), Item.id.asc()).all()


def inventory_alerts(*, role: str | None, today: date | None = None) -> dict:
    today = today or _today()
    low = list_items(role=role, mode=MODE_LOW_STOCK, today=today)
    expiring = list_items(role=role, mode=MODE_EXPIRING, today=today)
    return {
        "low_stock": len(low),
        "expiring": len(expiring),
    }


def suggestions(*, role: str | None) -> dict:
    """Autocomplete sources: distinct item names and distinct non-empty suppliers."""
    items = list_items(role=role)
    names = sorted({i.name for i in items if i.name}, key=str.lower)
    suppliers = sorted({i.supplier for i in items if i.supplier}, key=str.lower)
    return {"names": names, "suppliers": suppliers}
