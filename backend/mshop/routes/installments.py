# Overview: Flask API routes for installment plans and collections.

from flask import Blueprint, jsonify, request

from ..services import installment_service, read_models
from mshop.time_utils import parse_iso_date
from .responses import json_error


installments_bp = Blueprint("installments", __name__, url_prefix="/api/installments")


@installments_bp.post("/<int:installment_id>/settle")
def settle_installment_route(installment_id: int):
    """Collect one installment. Returns the installment and its plan."""
    try:
        installment, plan = installment_service.settle_installment(installment_id)
        return jsonify({
            "installment": installment.to_dict(),
            "plan": plan.to_dict(),
        }), 200
    except Exception as e:
        return json_error(e, "settle installment")


@installments_bp.get("/plans/<int:plan_id>")
def get_plan_route(plan_id: int):
    try:
        return jsonify(read_models.assemble_plan(plan_id)), 200
    except Exception as e:
        return json_error(e, "get installment plan")


@installments_bp.get("/alerts")
def installment_alerts_route():
    """
    Overdue and upcoming pending installments.

    Query params:
    - today: ISO date overriding the server date (YYYY-MM-DD)
    """
    try:
        raw = request.args.get("today")
        try:
            today = parse_iso_date(raw) if raw else None
        except ValueError:
            return jsonify({"error": "today must be an ISO-8601 date"}), 400
        return jsonify(read_models.installment_alerts(today)), 200
    except Exception as e:
        return json_error(e, "list installment alerts")
