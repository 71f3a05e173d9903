# Overview: Flask API routes for catalog master data; parses input and returns JSON responses.

from flask import Blueprint, jsonify, request

from ..services import catalog_service
from ..services.stock_service import available_quantity, get_product
from .responses import get_json_body, json_error


catalog_bp = Blueprint("catalog", __name__, url_prefix="/api")


# =============================================================================
# PRODUCTS
# =============================================================================

@catalog_bp.get("/products")
def list_products_route():
    """
    List products with their sellable quantity.

    Query params:
    - include_inactive: "true" to include deactivated products
    """
    include_inactive = request.args.get("include_inactive", "").lower() in {"1", "true", "yes"}
    try:
        products = catalog_service.list_products(include_inactive=include_inactive)
        items = []
        for p in products:
            row = p.to_dict()
            row["available"] = available_quantity(p)
            items.append(row)
        return jsonify({"items": items, "count": len(items)}), 200
    except Exception as e:
        return json_error(e, "list products")


@catalog_bp.post("/products")
def create_product_route():
    try:
        product = catalog_service.create_product(get_json_body())
        return jsonify({"product": product.to_dict()}), 201
    except Exception as e:
        return json_error(e, "create product")


@catalog_bp.get("/products/<int:product_id>")
def get_product_route(product_id: int):
    try:
        product = get_product(product_id)
        row = product.to_dict()
        row["available"] = available_quantity(product)
        return jsonify({"product": row}), 200
    except Exception as e:
        return json_error(e, "get product")


# =============================================================================
# CUSTOMERS & SUPPLIERS
# =============================================================================

@catalog_bp.post("/customers")
def create_customer_route():
    try:
        customer = catalog_service.create_customer(get_json_body())
        return jsonify({"customer": customer.to_dict()}), 201
    except Exception as e:
        return json_error(e, "create customer")


@catalog_bp.get("/customers/<int:customer_id>")
def get_customer_route(customer_id: int):
    try:
        customer = catalog_service.get_customer(customer_id)
        return jsonify({"customer": customer.to_dict()}), 200
    except Exception as e:
        return json_error(e, "get customer")


@catalog_bp.post("/suppliers")
def create_supplier_route():
    try:
        supplier = catalog_service.create_supplier(get_json_body())
        return jsonify({"supplier": supplier.to_dict()}), 201
    except Exception as e:
        return json_error(e, "create supplier")
