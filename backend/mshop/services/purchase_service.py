"""
Purchase Service - stock intake paid from the treasury

WHY: A purchase touches three stores at once: the purchase document, stock
(aggregate count or new serialized units) and the main ledger. They commit
together or not at all; stock never moves without its ledger withdrawal.

ORDER OF WRITES:
1. Purchase row
2. Stock: create_units (serialized) or adjust_aggregate_stock(+qty)
3. Ledger withdrawal of quantity x unit cost (skipped when the total is 0)
"""

from __future__ import annotations

from typing import Sequence

from ..errors import InvalidProductError, PurchaseNotFoundError, SerialCountMismatchError, ValidationError
from ..extensions import db
from ..models import Product, Purchase
from ..models.ledger import DIRECTION_WITHDRAWAL
from ..validation import coerce_cents, coerce_int
from .catalog_service import get_supplier
from .concurrency import lock_for_update, unit_of_work
from .ledger_service import append_entry
from .stock_service import adjust_aggregate_stock, create_units, get_product


OPERATION = "RecordPurchase"


def _normalize_serials(serials: Sequence[str] | None) -> list[str]:
    if serials is None:
        return []
    if isinstance(serials, str) or not isinstance(serials, (list, tuple)):
        raise ValidationError("serials must be a list of serial numbers")
    return [str(s).strip() if s is not None else "" for s in serials]


def _validate_serials(product: Product, quantity: int, serials: list[str]) -> None:
    if not product.is_serialized:
        if serials:
            raise InvalidProductError(
                f"Product {product.id} is not serialized; serial numbers are not accepted",
                entity_id=product.id,
            )
        return

    if len(serials) != quantity:
        raise SerialCountMismatchError(
            f"Serialized product needs {quantity} serial numbers, got {len(serials)}",
            entity_id=product.id,
            details={"quantity": quantity, "serial_count": len(serials)},
        )
    if any(not s for s in serials):
        raise SerialCountMismatchError("Serial numbers cannot be blank", entity_id=product.id)

    seen: set[str] = set()
    repeated = sorted({s for s in serials if s in seen or seen.add(s)})
    if repeated:
        raise SerialCountMismatchError(
            f"Serial numbers repeated within the purchase: {', '.join(repeated)}",
            entity_id=product.id,
            details={"serial_numbers": repeated},
        )


def record_purchase(
    *,
    product_id: int,
    quantity,
    unit_cost_cents,
    supplier_id: int | None = None,
    serials: Sequence[str] | None = None,
) -> Purchase:
    """
    Receive stock for one product and pay for it from the main ledger.

    Raises:
        ValidationError: quantity <= 0 or negative cost
        ProductNotFoundError / SupplierNotFoundError
        InvalidProductError: inactive product, or serials for a non-serialized product
        SerialCountMismatchError: serial list does not match quantity
        DuplicateSerialError: a serial was registered before
    """
    if product_id is None:
        raise ValidationError("product_id is required", operation=OPERATION)
    product_id = coerce_int(product_id, "product_id")
    quantity = coerce_int(quantity, "quantity")
    if quantity <= 0:
        raise ValidationError("quantity must be > 0", operation=OPERATION)
    unit_cost_cents = coerce_cents(unit_cost_cents, "unit_cost_cents")
    serial_list = _normalize_serials(serials)

    def _op():
        product = get_product(product_id)
        product = lock_for_update(db.session.query(Product).filter_by(id=product.id)).one()
        if not product.is_active:
            raise InvalidProductError(f"Product {product_id} is inactive", entity_id=product_id)
        _validate_serials(product, quantity, serial_list)

        if supplier_id is not None:
            get_supplier(supplier_id)

        total_cost = quantity * unit_cost_cents
        purchase = Purchase(
            supplier_id=supplier_id,
            product_id=product.id,
            quantity=quantity,
            unit_cost_cents=unit_cost_cents,
            total_cost_cents=total_cost,
        )
        db.session.add(purchase)
        db.session.flush()

        if product.is_serialized:
            create_units(product.id, serial_list, purchase_id=purchase.id)
        else:
            adjust_aggregate_stock(product.id, quantity)

        if total_cost > 0:
            append_entry(
                DIRECTION_WITHDRAWAL,
                total_cost,
                f"purchase of {quantity} x {product.name} (purchase #{purchase.id})",
                reference_type="purchase",
                reference_id=purchase.id,
            )

        return purchase

    return unit_of_work(OPERATION, _op)


def get_purchase(purchase_id: int) -> Purchase:
    purchase = db.session.get(Purchase, purchase_id)
    if purchase is None:
        raise PurchaseNotFoundError(f"Purchase {purchase_id} not found", entity_id=purchase_id)
    return purchase
