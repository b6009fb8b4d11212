# backend/lucciole/routes/inventory.py
"""
Inventory management routes.

SECURITY: All routes require authentication.
- View operations require VIEW_INVENTORY
- Deliveries require LOAD_STOCK
- +/- adjustments and pours require ADJUST_STOCK
- Field edits and archive/restore require EDIT_ITEMS
- Delete requires DELETE_ITEMS
- cost_price/sell_price are only returned to roles with VIEW_PRICES

Items outside a scoped staff role's department answer 404.
"""
from flask import Blueprint, request, jsonify, g, current_app

from ..validation import ValidationError, ConflictError
from ..decorators import require_auth, require_permission, can_view_prices
from ..services import inventory_service
from ..services.concurrency import WriteFailure
from ..services.ledger_service import list_entries_for_item
from ..models import StockItem
from lucciole.time_utils import business_today


inventory_bp = Blueprint("inventory", __name__, url_prefix="/api/inventory")


def _item_json(item):
    if isinstance(item, StockItem):
        today = business_today(current_app.config["BUSINESS_TIMEZONE"])
        return item.to_dict(include_prices=can_view_prices(), today=today)
    return item.to_dict(include_prices=can_view_prices())


def _visible_item_or_404(item_id: int):
    item = inventory_service.get_item(item_id)
    if item is None or not inventory_service.is_visible_to(item, g.role):
        return None
    return item


def _strip_prices(payload: dict) -> dict:
    if can_view_prices():
        return payload
    return {k: v for k, v in payload.items() if k not in inventory_service.PRICE_FIELDS}


@inventory_bp.get("")
@require_auth
@require_permission("VIEW_INVENTORY")
def list_items_route():
    """
    Query params: section (warehouse|menu), category, mode (ALL|LOW_STOCK|EXPIRING), search, include_archived.
    """
    include_archived = request.args.get("include_archived", "false").lower() == "true"
    try:
        items = inventory_service.list_items(
            role=g.role,
            section=request.args.get("section", inventory_service.SECTION_WAREHOUSE),
            category=request.args.get("category") or None,
            mode=request.args.get("mode", inventory_service.MODE_ALL).upper(),
            search=request.args.get("search"),
            include_archived=include_archived,
        )
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    return jsonify([_item_json(i) for i in items]), 200


@inventory_bp.get("/alerts")
@require_auth
@require_permission("VIEW_INVENTORY")
def alerts_route():
    return jsonify(inventory_service.inventory_alerts(role=g.role)), 200


@inventory_bp.get("/suggestions")
@require_auth
@require_permission("VIEW_INVENTORY")
def suggestions_route():
    return jsonify(inventory_service.suggestions(role=g.role)), 200


@inventory_bp.get("/<int:item_id>")
@require_auth
@require_permission("VIEW_INVENTORY")
def get_item_route(item_id: int):
    item = _visible_item_or_404(item_id)
    if item is None:
        return jsonify({"error": "Item not found"}), 404
    return jsonify(_item_json(item)), 200


@inventory_bp.get("/<int:item_id>/logs")
@require_auth
@require_permission("VIEW_INVENTORY")
def item_logs_route(item_id: int):
    item = _visible_item_or_404(item_id)
    if item is None:
        return jsonify({"error": "Item not found"}), 404
    limit = request.args.get("limit", 200, type=int)
    return jsonify([e.to_dict() for e in list_entries_for_item(item.name, limit=limit)]), 200


@inventory_bp.post("")
@require_auth
@require_permission("LOAD_STOCK")
def add_item_route():
    """
    Record a delivery. Folds into an existing item with the same name and
    category, otherwise creates one.

    201 when created, 200 when merged.
    """
    payload = _strip_prices(request.get_json(silent=True) or {})

    try:
        result = inventory_service.add_item_or_merge(payload, user_role=g.role)
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except WriteFailure as e:
        current_app.logger.exception("Failed to save delivery")
        return jsonify({"error": str(e)}), 500

    return jsonify({
        "item": _item_json(result.item),
        "merged": result.merged,
        "log_entry": result.log_entry.to_dict(),
    }), (200 if result.merged else 201)


@inventory_bp.patch("/<int:item_id>")
@require_auth
@require_permission("EDIT_ITEMS")
def update_item_route(item_id: int):
    payload = request.get_json(silent=True) or {}

    try:
        item = inventory_service.update_item(item_id, payload)
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except ConflictError as e:
        return jsonify({"error": str(e)}), 409
    except WriteFailure as e:
        current_app.logger.exception("Failed to update item")
        return jsonify({"error": str(e)}), 500

    if item is None:
        return jsonify({"error": "Item not found"}), 404
    return jsonify(_item_json(item)), 200


@inventory_bp.post("/<int:item_id>/adjust")
@require_auth
@require_permission("ADJUST_STOCK")
def adjust_item_route(item_id: int):
    """
    Body: {"delta": <number>, "note": "..."} or {"direction": "+"|"-"}.

    direction moves by the item's adjustment step (0.1 for Kg/Lt/dosed items).
    """
    if _visible_item_or_404(item_id) is None:
        return jsonify({"error": "Item not found"}), 404

    payload = request.get_json(silent=True) or {}

    try:
        if "direction" in payload:
            result = inventory_service.adjust_by_step(item_id, payload["direction"], user_role=g.role)
        elif "delta" in payload:
            delta = payload["delta"]
            if isinstance(delta, bool) or not isinstance(delta, (int, float)):
                raise ValidationError("delta must be a number")
            note = payload.get("note")
            result = inventory_service.apply_delta(
                item_id, delta, str(note).strip() if note else None, user_role=g.role
            )
        else:
            raise ValidationError("delta or direction is required")
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except WriteFailure as e:
        current_app.logger.exception("Failed to adjust item")
        return jsonify({"error": str(e)}), 500

    if result is None:
        return jsonify({"error": "Item not found"}), 404

    return jsonify({
        "item": _item_json(result.item),
        "log_entry": result.log_entry.to_dict(),
        "clamped": result.clamped,
    }), 200


@inventory_bp.post("/<int:item_id>/pour")
@require_auth
@require_permission("ADJUST_STOCK")
def pour_item_route(item_id: int):
    if _visible_item_or_404(item_id) is None:
        return jsonify({"error": "Item not found"}), 404

    try:
        result = inventory_service.pour_dose(item_id, user_role=g.role)
    except ConflictError as e:
        return jsonify({"error": str(e)}), 409
    except WriteFailure as e:
        current_app.logger.exception("Failed to pour dose")
        return jsonify({"error": str(e)}), 500

    if result is None:
        return jsonify({"error": "Item not found"}), 404

    return jsonify({
        "item": _item_json(result.item),
        "log_entry": result.log_entry.to_dict(),
        "clamped": result.clamped,
    }), 200


def _set_archived(item_id: int, archived: bool):
    change = inventory_service.archive_item if archived else inventory_service.restore_item
    try:
        item = change(item_id)
    except ConflictError as e:
        return jsonify({"error": str(e)}), 409
    except WriteFailure as e:
        current_app.logger.exception("Failed to change archive state")
        return jsonify({"error": str(e)}), 500

    if item is None:
        return jsonify({"error": "Item not found"}), 404
    return jsonify(_item_json(item)), 200


@inventory_bp.post("/<int:item_id>/archive")
@require_auth
@require_permission("EDIT_ITEMS")
def archive_item_route(item_id: int):
    return _set_archived(item_id, True)


@inventory_bp.post("/<int:item_id>/restore")
@require_auth
@require_permission("EDIT_ITEMS")
def restore_item_route(item_id: int):
    return _set_archived(item_id, False)


@inventory_bp.delete("/<int:item_id>")
@require_auth
@require_permission("DELETE_ITEMS")
def delete_item_route(item_id: int):
    try:
        deleted = inventory_service.delete_item(item_id)
    except WriteFailure as e:
        current_app.logger.exception("Failed to delete item")
        return jsonify({"error": str(e)}), 500

    if not deleted:
        return jsonify({"error": "Item not found"}), 404
    return "", 204
