from flask import Blueprint, jsonify, request, current_app

from ..decorators import require_auth, require_permission
from ..services import shopping_list_service
from ..services.concurrency import WriteFailure
from ..validation import ValidationError


shopping_list_bp = Blueprint("shopping_list", __name__, url_prefix="/api/shopping-list")


@shopping_list_bp.get("")
@require_auth
@require_permission("EDIT_SHOPPING_LIST")
def get_shopping_list_route():
    return jsonify(shopping_list_service.get_shopping_list()), 200


@shopping_list_bp.put("")
@require_auth
@require_permission("EDIT_SHOPPING_LIST")
def save_shopping_list_route():
    """
    Body: {"departments": {"Bar": "...", ...}, "merge": false}

    Without merge the stored list is replaced wholesale.
    """
    data = request.get_json(silent=True) or {}
    if not isinstance(data, dict):
        return jsonify({"error": "Invalid JSON payload"}), 400
    merge = data.get("merge", False)
    if not isinstance(merge, bool):
        return jsonify({"error": "merge must be true or false"}), 400

    try:
        saved = shopping_list_service.save_shopping_list(data.get("departments", {}), merge=merge)
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except WriteFailure as e:
        current_app.logger.exception("Failed to save shopping list")
        return jsonify({"error": str(e)}), 500

    return jsonify(saved), 200
