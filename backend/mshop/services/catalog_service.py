# Overview: Service-layer operations for catalog master data (products, customers, suppliers).

from __future__ import annotations

from ..errors import (
    CustomerNotFoundError,
    DuplicateBarcodeError,
    SupplierNotFoundError,
)
from ..extensions import db
from ..models import Customer, Product, Supplier
from ..validation import ModelValidationPolicy, validate_payload
from .concurrency import unit_of_work


PRODUCT_POLICY = ModelValidationPolicy(
    writable_fields={
        "name",
        "brand",
        "description",
        "barcode",
        "purchase_price_cents",
        "selling_price_cents",
        "is_serialized",
    },
    required_on_create={"name"},
)

CUSTOMER_POLICY = ModelValidationPolicy(
    writable_fields={"name", "phone", "address", "national_id"},
    required_on_create={"name"},
)

SUPPLIER_POLICY = ModelValidationPolicy(
    writable_fields={"name", "contact_person", "phone", "address"},
    required_on_create={"name"},
)


def create_product(payload: dict) -> Product:
    """
    Create a catalog product.

    Products always start empty: stock arrives only through purchases, so
    stock = purchased - sold + returned holds from the first row.
    """
    data = validate_payload(model=Product, payload=payload, policy=PRODUCT_POLICY)

    def _op():
        barcode = data.get("barcode")
        if barcode and db.session.query(Product.id).filter_by(barcode=barcode).first():
            raise DuplicateBarcodeError(f"Barcode {barcode} is already in use", entity_id=barcode)

        product = Product(stock=0, **data)
        db.session.add(product)
        db.session.flush()
        return product

    return unit_of_work("CreateProduct", _op)


def list_products(*, include_inactive: bool = False) -> list[Product]:
    q = Product.query
    if not include_inactive:
        q = q.filter_by(is_active=True)
    return q.order_by(Product.name.asc(), Product.id.asc()).all()


def _create_customer_inner(payload: dict) -> Customer:
    """Core customer insert without commit; used by CreateSale for new customers."""
    data = validate_payload(model=Customer, payload=payload, policy=CUSTOMER_POLICY)
    customer = Customer(**data)
    db.session.add(customer)
    db.session.flush()
    return customer


def create_customer(payload: dict) -> Customer:
    # Validate before opening the write transaction
    validate_payload(model=Customer, payload=payload, policy=CUSTOMER_POLICY)
    return unit_of_work("CreateCustomer", lambda: _create_customer_inner(payload))


def get_customer(customer_id: int) -> Customer:
    customer = db.session.get(Customer, customer_id)
    if customer is None:
        raise CustomerNotFoundError(f"Customer {customer_id} not found", entity_id=customer_id)
    return customer


def create_supplier(payload: dict) -> Supplier:
    data = validate_payload(model=Supplier, payload=payload, policy=SUPPLIER_POLICY)

    def _op():
        supplier = Supplier(**data)
        db.session.add(supplier)
        db.session.flush()
        return supplier

    return unit_of_work("CreateSupplier", _op)


def get_supplier(supplier_id: int) -> Supplier:
    supplier = db.session.get(Supplier, supplier_id)
    if supplier is None:
        raise SupplierNotFoundError(f"Supplier {supplier_id} not found", entity_id=supplier_id)
    return supplier
