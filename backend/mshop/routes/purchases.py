# Overview: Flask API routes for purchases; parses input and returns JSON responses.

from flask import Blueprint, jsonify

from ..services import purchase_service, read_models
from .responses import get_json_body, json_error


purchases_bp = Blueprint("purchases", __name__, url_prefix="/api/purchases")


@purchases_bp.post("")
def record_purchase_route():
    """
    Receive stock and pay for it.

    Body:
    {
        "product_id": 1,
        "quantity": 2,
        "unit_cost_cents": 5000,
        "supplier_id": 3,               (optional)
        "serial_numbers": ["A1", "A2"]  (required for serialized products)
    }
    """
    try:
        data = get_json_body()
        purchase = purchase_service.record_purchase(
            product_id=data.get("product_id"),
            quantity=data.get("quantity"),
            unit_cost_cents=data.get("unit_cost_cents"),
            supplier_id=data.get("supplier_id"),
            serials=data.get("serial_numbers"),
        )
        return jsonify(read_models.assemble_purchase(purchase.id)), 201
    except Exception as e:
        return json_error(e, "record purchase")


@purchases_bp.get("/<int:purchase_id>")
def get_purchase_route(purchase_id: int):
    try:
        return jsonify(read_models.assemble_purchase(purchase_id)), 200
    except Exception as e:
        return json_error(e, "get purchase")
