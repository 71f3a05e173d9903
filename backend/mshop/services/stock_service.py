# Overview: Catalog & stock store; atomic stock counts and serialized-unit state.

"""
Stock Invariants (authoritative)

- Aggregate stock (non-serialized products) changes only through one
  conditional UPDATE: stock = stock + delta WHERE stock + delta >= 0.
  The orchestrator never reads, adds and writes back.
- Serial numbers are unique for all time. A serial already known to the
  store (in any status) cannot be registered again.
- Unit status moves by compare-and-swap: UPDATE ... WHERE status = expected.
  Zero rows touched means another writer got there first.

None of these functions commit; they run inside the caller's unit of work.
"""

from __future__ import annotations

from typing import Iterable

from sqlalchemy import func, update
from sqlalchemy.exc import IntegrityError

from ..errors import (
    DuplicateSerialError,
    InvalidProductError,
    NegativeStockError,
    ProductNotFoundError,
    SerialNotFoundError,
    StaleUnitStateError,
    UnitNotAvailableError,
)
from ..extensions import db
from ..models import Product, StockUnit
from ..models.inventory import UNIT_STATUS_IN_STOCK, UNIT_STATUS_SOLD, UNIT_STATUSES
from mshop.time_utils import utcnow


def get_product(product_id: int) -> Product:
    product = db.session.get(Product, product_id)
    if product is None:
        raise ProductNotFoundError(f"Product {product_id} not found", entity_id=product_id)
    return product


def adjust_aggregate_stock(product_id: int, delta: int) -> int:
    """
    Atomically add `delta` to a non-serialized product's stock.

    Returns the new stock level. Raises NegativeStockError when the result
    would drop below zero; the row is left untouched in that case.
    """
    product = get_product(product_id)
    if product.is_serialized:
        raise InvalidProductError(
            f"Product {product_id} is serialized; its stock is tracked per unit",
            entity_id=product_id,
        )

    stmt = (
        update(Product)
        .where(Product.id == product_id, Product.stock + delta >= 0)
        .values(stock=Product.stock + delta)
        .execution_options(synchronize_session=False)
    )
    result = db.session.execute(stmt)

    current = db.session.query(Product.stock).filter_by(id=product_id).scalar()
    if not result.rowcount:
        raise NegativeStockError(
            f"Insufficient stock for product {product_id}: {current} available",
            entity_id=product_id,
            details={"product_id": product_id, "available": current, "requested_delta": delta},
        )

    db.session.expire(product, ["stock"])
    return int(current)


def create_units(
    product_id: int,
    serials: Iterable[str],
    *,
    purchase_id: int,
    status: str = UNIT_STATUS_IN_STOCK,
) -> list[StockUnit]:
    """
    Register new physical units for a serialized product.

    Raises DuplicateSerialError if any serial is already known, whatever its
    current status.
    """
    if status not in UNIT_STATUSES:
        raise ValueError(f"invalid unit status {status!r}")

    serials = list(serials)
    existing = [
        row.serial_number
        for row in db.session.query(StockUnit.serial_number)
        .filter(StockUnit.serial_number.in_(serials))
        .all()
    ]
    if existing:
        raise DuplicateSerialError(
            f"Serial number already registered: {', '.join(sorted(existing))}",
            entity_id=sorted(existing)[0],
            details={"serial_numbers": sorted(existing)},
        )

    now = utcnow()
    units = [
        StockUnit(
            product_id=product_id,
            serial_number=serial,
            status=status,
            purchase_id=purchase_id,
            created_at=now,
            updated_at=now,
        )
        for serial in serials
    ]
    db.session.add_all(units)
    try:
        # A concurrent purchase can slip the same serial in between the check and here
        db.session.flush()
    except IntegrityError as exc:
        raise DuplicateSerialError(
            "Serial number already registered",
            details={"serial_numbers": serials},
        ) from exc
    return units


def transition_unit(
    serial: str,
    expected_status: str,
    new_status: str,
    *,
    sale_id: int | None = None,
    return_id: int | None = None,
) -> StockUnit:
    """
    Compare-and-swap a unit's status.

    Moving to `sold` stamps `sale_id`; moving back to `in_stock` clears the
    sale back-reference and stamps `return_id`. Raises SerialNotFoundError
    for unknown serials and StaleUnitStateError when the current status is
    not `expected_status`.
    """
    values: dict = {"status": new_status, "updated_at": utcnow()}
    if new_status == UNIT_STATUS_SOLD:
        values["sale_id"] = sale_id
    elif new_status == UNIT_STATUS_IN_STOCK:
        values["sale_id"] = None
        if return_id is not None:
            values["return_id"] = return_id

    stmt = (
        update(StockUnit)
        .where(StockUnit.serial_number == serial, StockUnit.status == expected_status)
        .values(**values)
        .execution_options(synchronize_session=False)
    )
    result = db.session.execute(stmt)

    unit = db.session.query(StockUnit).filter_by(serial_number=serial).populate_existing().first()
    if unit is None:
        raise SerialNotFoundError(f"Serial number {serial} is not registered", entity_id=serial)
    if not result.rowcount:
        raise StaleUnitStateError(
            f"Unit {serial} is {unit.status}, expected {expected_status}",
            entity_id=serial,
            details={"serial_number": serial, "status": unit.status, "expected": expected_status},
        )
    return unit


def find_available_unit(serial: str) -> StockUnit:
    """
    Return the unit for `serial` if it can be sold right now.

    SerialNotFoundError: the serial was never registered.
    UnitNotAvailableError: the serial exists but is not in_stock.
    """
    unit = db.session.query(StockUnit).filter_by(serial_number=serial).first()
    if unit is None:
        raise SerialNotFoundError(f"Serial number {serial} is not registered", entity_id=serial)
    if unit.status != UNIT_STATUS_IN_STOCK:
        raise UnitNotAvailableError(
            f"Unit {serial} is not available (status: {unit.status})",
            entity_id=serial,
            details={"serial_number": serial, "status": unit.status},
        )
    return unit


def count_units_in_stock(product_id: int) -> int:
    return int(
        db.session.query(func.count(StockUnit.id))
        .filter_by(product_id=product_id, status=UNIT_STATUS_IN_STOCK)
        .scalar()
        or 0
    )


def available_quantity(product: Product) -> int:
    """Sellable quantity regardless of how the product is tracked."""
    if product.is_serialized:
        return count_units_in_stock(product.id)
    return product.stock
