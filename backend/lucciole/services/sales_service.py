"""
Menu sales: record the sale first, then try to take stock from the linked
warehouse item.

Every sale counts for revenue even when inventory
bookkeeping for the item is broken (deleted or misconfigured link). A failed
stock decrement never rolls back or fails the sale.
"""

from __future__ import annotations

from dataclasses import dataclass

from flask import current_app

from ..extensions import db
from ..models import Item, StockItem, MenuDirectItem, MenuDishItem, LogEntry
from .inventory_service import apply_delta
from .ledger_service import append_sale_entry
from .concurrency import WriteFailure, write_with_retry
from .reporting_service import invalidate_reports

SALE_NOTE = "sold from menu"


class SaleError(Exception):
    """Raised for sale operation errors."""
    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.details = details or {}


class LinkResolutionFailure(Exception):
    """A direct menu item's linked_product_id does not resolve to a warehouse item."""


@dataclass
class SaleResult:
    sale_entry: LogEntry
    warehouse_item: StockItem | None = None
    stock_decremented: bool = False


def resolve_linked_item(menu_item: MenuDirectItem) -> StockItem:
    """
    Explicit resolution of the soft reference. Never assume it resolves.

    Archived items still resolve: archiving hides, it does not remove stock.
    """
    if menu_item.linked_product_id is None:
        raise LinkResolutionFailure(f"{menu_item.name!r} has no linked warehouse item")

    linked = db.session.get(Item, menu_item.linked_product_id)
    if linked is None:
        raise LinkResolutionFailure(
            f"{menu_item.name!r} links to missing item {menu_item.linked_product_id}"
        )
    if not isinstance(linked, StockItem):
        raise LinkResolutionFailure(
            f"{menu_item.name!r} links to {linked.name!r}, which is not warehouse stock"
        )
    return linked


def sell_menu_item(menu_item_id: int, *, user_role: str | None = None) -> SaleResult:
    """
    Sell one unit of a menu item.

    1. Append a SALE log entry: delta -1, revenue = sell_price or 0, cost = cost_price or 0.
    2. Direct items with a resolvable link: decrement the warehouse item by exactly 1
       (floor at zero), regardless of its unit.
    Success depends only on step 1.
    """
    menu_item = db.session.get(Item, menu_item_id)
    if menu_item is None or not isinstance(menu_item, (MenuDirectItem, MenuDishItem)):
        raise SaleError("Menu item not found")

    def _op():
        entry = append_sale_entry(
            item_name=menu_item.name,
            revenue=menu_item.sell_price or 0.0,
            cost=menu_item.cost_price or 0.0,
            user_role=user_role,
            note=SALE_NOTE,
        )
        db.session.commit()
        return entry

    entry = write_with_retry(_op, action="record the sale")
    invalidate_reports()
    result = SaleResult(sale_entry=entry)

    if not isinstance(menu_item, MenuDirectItem) or menu_item.linked_product_id is None:
        return result

    try:
        linked = resolve_linked_item(menu_item)
    except LinkResolutionFailure as exc:
        current_app.logger.warning("Sale recorded without stock decrement: %s", exc)
        return result

    result.warehouse_item = linked
    try:
        outcome = apply_delta(
            linked.id,
            -1,
            f"{SALE_NOTE}: {menu_item.name}",
            user_role=user_role,
        )
    except WriteFailure:
        current_app.logger.warning(
            "Sale of %r recorded but stock decrement of %r failed",
            menu_item.name,
            linked.name,
            exc_info=True,
        )
        return result

    if outcome is None or outcome.item is None:
        # Deleted between resolution and decrement
        current_app.logger.warning(
            "Sale of %r recorded; linked item %s vanished before decrement",
            menu_item.name,
            menu_item.linked_product_id,
        )
        return result

    result.warehouse_item = outcome.item
    result.stock_decremented = True
    return result
