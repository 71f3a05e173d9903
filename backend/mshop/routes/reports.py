# Overview: Flask API routes for dashboards and overviews; read-only.

from flask import Blueprint, jsonify, request

from ..services import read_models
from mshop.time_utils import parse_iso_date
from .responses import json_error


reports_bp = Blueprint("reports", __name__, url_prefix="/api/reports")


@reports_bp.get("/dashboard")
def dashboard_route():
    try:
        return jsonify(read_models.dashboard_summary()), 200
    except Exception as e:
        return json_error(e, "build dashboard summary")


@reports_bp.get("/stock")
def stock_overview_route():
    try:
        return jsonify(read_models.stock_overview()), 200
    except Exception as e:
        return json_error(e, "build stock overview")


@reports_bp.get("/cash-transfers")
def cash_transfer_overview_route():
    raw = request.args.get("today")
    try:
        today = parse_iso_date(raw) if raw else None
    except ValueError:
        return jsonify({"error": "today must be an ISO-8601 date"}), 400
    try:
        return jsonify(read_models.cash_transfer_overview(today)), 200
    except Exception as e:
        return json_error(e, "build cash transfer overview")


@reports_bp.get("/financial")
def financial_report_route():
    """Query: ?start=YYYY-MM-DD&end=YYYY-MM-DD (both optional, inclusive)."""
    try:
        start = parse_iso_date(request.args.get("start") or None)
        end = parse_iso_date(request.args.get("end") or None)
    except ValueError:
        return jsonify({"error": "start and end must be ISO-8601 dates"}), 400
    try:
        return jsonify(read_models.financial_report(start, end)), 200
    except Exception as e:
        return json_error(e, "build financial report")
