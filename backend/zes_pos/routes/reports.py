# Overview: Flask API routes for reports operations; parses input and returns JSON responses.

from flask import Blueprint, request, jsonify

from ..decorators import require_auth, require_permission
from ..services import reporting_service
from ..services.ledger_service import verify_ledger
from ..time_utils import parse_iso_datetime

reports_bp = Blueprint("reports", __name__, url_prefix="/api/reports")


@reports_bp.get("/revenue")
@require_auth
@require_permission("VIEW_REVENUE")
def revenue_report_route():
    """
    Query params:
    - period: weekly | monthly | yearly | all (default all)
    - from / to: ISO-8601 custom range (instead of period)
    """
    try:
        start = parse_iso_datetime(request.args.get("from"))
        end = parse_iso_datetime(request.args.get("to"))
        report = reporting_service.revenue_report(
            period=request.args.get("period"),
            start=start,
            end=end,
        )
    except ValueError as e:
        return jsonify({"error": str(e)}), 400
    return jsonify(report), 200


@reports_bp.get("/dashboard")
@require_auth
@require_permission("VIEW_PRODUCTS")
def dashboard_route():
    return jsonify(reporting_service.dashboard_summary()), 200


@reports_bp.get("/consistency")
@require_auth
@require_permission("VIEW_REVENUE")
def consistency_route():
    issues = verify_ledger()
    return jsonify({"ok": not issues, "issues": issues}), 200
