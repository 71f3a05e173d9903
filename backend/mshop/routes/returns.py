# Overview: Flask API routes for sales returns; parses input and returns JSON responses.

from flask import Blueprint, jsonify

from ..services import read_models, return_service
from .responses import get_json_body, json_error


returns_bp = Blueprint("returns", __name__, url_prefix="/api/returns")


@returns_bp.post("")
def create_return_route():
    """
    Body:
    {
        "original_sale_id": 12,
        "customer_id": 4,   (optional, defaults to the sale's customer)
        "lines": [{"product_id": 1, "quantity": 1}, {"product_id": 2, "serial_number": "A1"}]
    }
    """
    try:
        data = get_json_body()
        sales_return = return_service.create_sales_return(
            original_sale_id=data.get("original_sale_id"),
            lines=data.get("lines"),
            customer_id=data.get("customer_id"),
        )
        return jsonify(read_models.assemble_return(sales_return.id)), 201
    except Exception as e:
        return json_error(e, "create return")


@returns_bp.get("/<int:return_id>")
def get_return_route(return_id: int):
    try:
        return jsonify(read_models.assemble_return(return_id)), 200
    except Exception as e:
        return json_error(e, "get return")
