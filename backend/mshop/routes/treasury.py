# Overview: Flask API routes for the treasury; ledger statements, expenses and manual entries.

from flask import Blueprint, jsonify, request

from ..models.ledger import BOOK_MAIN
from ..services import read_models, treasury_service
from .responses import get_json_body, json_error


treasury_bp = Blueprint("treasury", __name__, url_prefix="/api/treasury")


@treasury_bp.get("/ledger")
def ledger_statement_route():
    """
    Query params:
    - book: ledger book (default main)
    - limit: number of newest entries (default 100, max 500)
    """
    book = request.args.get("book", BOOK_MAIN)
    try:
        limit = min(max(int(request.args.get("limit", 100)), 1), 500)
    except ValueError:
        return jsonify({"error": "limit must be an integer"}), 400
    try:
        return jsonify(read_models.ledger_statement(book, limit=limit)), 200
    except Exception as e:
        return json_error(e, "get ledger statement")


@treasury_bp.post("/ledger/entries")
def manual_entry_route():
    """Body: {"direction": "deposit", "amount_cents": 1000, "description": "...", "book": "main"}"""
    try:
        data = get_json_body()
        entry = treasury_service.record_manual_entry(
            direction=data.get("direction"),
            amount_cents=data.get("amount_cents"),
            description=data.get("description"),
            book=data.get("book") or BOOK_MAIN,
        )
        return jsonify({"entry": entry.to_dict()}), 201
    except Exception as e:
        return json_error(e, "record manual ledger entry")


@treasury_bp.get("/expense-categories")
def list_categories_route():
    try:
        categories = treasury_service.list_expense_categories()
        return jsonify({"items": [c.to_dict() for c in categories]}), 200
    except Exception as e:
        return json_error(e, "list expense categories")


@treasury_bp.post("/expense-categories")
def create_category_route():
    try:
        category = treasury_service.create_expense_category(get_json_body().get("name"))
        return jsonify({"category": category.to_dict()}), 201
    except Exception as e:
        return json_error(e, "create expense category")


@treasury_bp.post("/expenses")
def record_expense_route():
    """Body: {"category_id": 1, "description": "rent", "amount_cents": 250000}"""
    try:
        data = get_json_body()
        expense = treasury_service.record_expense(
            category_id=data.get("category_id"),
            description=data.get("description"),
            amount_cents=data.get("amount_cents"),
        )
        return jsonify({"expense": expense.to_dict()}), 201
    except Exception as e:
        return json_error(e, "record expense")
