from flask import Blueprint, jsonify, request, current_app

from lucciole.decorators import require_auth, require_permission
from lucciole.services import reporting_service
from lucciole.time_utils import parse_iso_date


reports_bp = Blueprint("reports", __name__, url_prefix="/api/reports")


@reports_bp.get("/sales")
@require_auth
@require_permission("VIEW_REPORTS")
def sales_report():
    try:
        start = parse_iso_date(request.args.get("start"))
        end = parse_iso_date(request.args.get("end"))
    except ValueError as exc:
        return jsonify({"error": str(exc)}), 400

    if start is None or end is None:
        return jsonify({"error": "start and end are required (YYYY-MM-DD)"}), 400

    refresh = request.args.get("refresh", "false").lower() == "true"

    try:
        report = reporting_service.sales_report(
            start=start,
            end=end,
            name_filter=request.args.get("name") or None,
            refresh=refresh,
        )
        return jsonify(report), 200
    except ValueError as exc:
        return jsonify({"error": str(exc)}), 400
    except reporting_service.ReportGenerationFailure as exc:
        current_app.logger.exception("Sales report failed")
        return jsonify({"error": str(exc)}), 500
