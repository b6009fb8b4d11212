# Overview: Flask API routes for the sellable menu.

from flask import Blueprint, request, jsonify, g, current_app

from ..validation import ValidationError, ConflictError
from ..decorators import require_auth, require_permission, can_view_prices
from ..services import inventory_service, sales_service
from ..services.sales_service import SaleError
from ..services.concurrency import WriteFailure


menu_bp = Blueprint("menu", __name__, url_prefix="/api/menu")


@menu_bp.get("")
@require_auth
@require_permission("VIEW_INVENTORY")
def list_menu_route():
    include_archived = request.args.get("include_archived", "false").lower() == "true"
    items = inventory_service.list_items(
        role=g.role,
        section=inventory_service.SECTION_MENU,
        search=request.args.get("search"),
        include_archived=include_archived,
    )
    return jsonify([i.to_dict(include_prices=can_view_prices()) for i in items]), 200


@menu_bp.post("")
@require_auth
@require_permission("MANAGE_MENU")
def create_menu_route():
    """
    Body: {"menu_type": "direct"|"dish", "name", "sell_price", "cost_price",
    "subcategory", "linked_product_id" (direct only)}
    """
    payload = request.get_json(silent=True) or {}

    try:
        item = inventory_service.create_menu_item(payload)
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except ConflictError as e:
        return jsonify({"error": str(e)}), 409
    except WriteFailure as e:
        current_app.logger.exception("Failed to create menu item")
        return jsonify({"error": str(e)}), 500

    return jsonify(item.to_dict(include_prices=True)), 201


@menu_bp.post("/<int:item_id>/sell")
@require_auth
@require_permission("SELL_MENU")
def sell_menu_route(item_id: int):
    """
    Record one sale. Succeeds once the sale is logged; stock_decremented tells
    whether the linked warehouse item was also reduced.
    """
    try:
        result = sales_service.sell_menu_item(item_id, user_role=g.role)
    except SaleError as e:
        return jsonify({"error": str(e), **e.details}), 404
    except WriteFailure as e:
        current_app.logger.exception("Failed to record sale")
        return jsonify({"error": str(e)}), 500

    warehouse = result.warehouse_item
    return jsonify({
        "sale": result.sale_entry.to_dict(),
        "stock_decremented": result.stock_decremented,
        "warehouse_item": (
            warehouse.to_dict(include_prices=can_view_prices()) if warehouse is not None else None
        ),
    }), 201
