# Overview: Flask API routes for sales operations; parses input and returns JSON responses.

# backend/mshop/routes/sales.py
"""Sales API routes. A sale is posted in one request; there are no drafts."""

from flask import Blueprint, jsonify

from ..services import read_models, sales_service
from .responses import get_json_body, json_error


sales_bp = Blueprint("sales", __name__, url_prefix="/api/sales")


@sales_bp.post("")
def create_sale_route():
    """
    Post a sale.

    Body:
    {
        "payment_type": "cash" | "installment",
        "customer_id": 4,                       (optional)
        "new_customer": {"name": ..., ...},     (optional, instead of customer_id)
        "lines": [
            {"product_id": 1, "quantity": 2},
            {"product_id": 2, "serial_number": "A1", "unit_price_cents": 90000}
        ],
        "installment_terms": {                  (installment sales only)
            "down_payment_cents": 20000,
            "interest_rate_bps": 1000,
            "months": 10,
            "due_day": 5,
            "start_date": "2026-01-01",
            "guarantor_name": ...
        }
    }
    """
    try:
        data = get_json_body()
        sale = sales_service.create_sale(
            lines=data.get("lines"),
            payment_type=data.get("payment_type"),
            customer_id=data.get("customer_id"),
            new_customer=data.get("new_customer"),
            installment_terms=data.get("installment_terms"),
        )
        return jsonify(read_models.assemble_sale(sale.id)), 201
    except Exception as e:
        return json_error(e, "create sale")


@sales_bp.get("/<int:sale_id>")
def get_sale_route(sale_id: int):
    """Sale with lines, customer, plan summary and returns."""
    try:
        return jsonify(read_models.assemble_sale(sale_id)), 200
    except Exception as e:
        return json_error(e, "get sale")
