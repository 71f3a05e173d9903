"""
Return Service - sales returns as compensating documents

WHY: A sale is never edited or deleted. Taking goods back is its own document
that references the original sale, puts the goods back on the shelf and pays
the customer out of the treasury, all in one unit of work.

DESIGN PRINCIPLES:
- Every return line points at the original sale line it reverses.
- Refund uses the price the customer actually paid on that line, and the
  line carries the cost snapshot taken at sale time.
- A line cannot be returned beyond what was sold, counting earlier returns.
- Serialized units go sold -> in_stock by compare-and-swap; the `returned`
  status is never assigned, so a returned unit is immediately sellable again.
"""

from __future__ import annotations

from sqlalchemy import func

from ..errors import (
    InvalidReturnError,
    ReturnNotFoundError,
    SaleNotFoundError,
    SerialCountMismatchError,
    StaleUnitStateError,
    UnitNotAvailableError,
    ValidationError,
)
from ..extensions import db
from ..models import ReturnLine, Sale, SaleLine, SalesReturn
from ..models.inventory import UNIT_STATUS_IN_STOCK, UNIT_STATUS_SOLD
from ..models.ledger import DIRECTION_WITHDRAWAL
from ..validation import coerce_int
from .catalog_service import get_customer
from .concurrency import lock_for_update, unit_of_work
from .ledger_service import append_entry
from .stock_service import adjust_aggregate_stock, transition_unit


OPERATION = "CreateSalesReturn"


# =============================================================================
# REQUEST PARSING
# =============================================================================

def _parse_lines(lines) -> list[dict]:
    if not isinstance(lines, list) or not lines:
        raise ValidationError("A return needs at least one line")

    parsed = []
    for i, raw in enumerate(lines, start=1):
        if not isinstance(raw, dict):
            raise ValidationError(f"line {i} must be an object")

        sale_line_id = raw.get("sale_line_id")
        product_id = raw.get("product_id")
        if sale_line_id is None and product_id is None:
            raise ValidationError(f"line {i}: sale_line_id or product_id is required")

        serial = raw.get("serial_number")
        serial = str(serial).strip() if serial is not None else None
        if serial == "":
            serial = None

        quantity = coerce_int(raw.get("quantity", 1), f"line {i} quantity")
        if quantity <= 0:
            raise ValidationError(f"line {i}: quantity must be > 0")
        if serial is not None and quantity != 1:
            raise SerialCountMismatchError(
                f"line {i}: a serialized line returns exactly one unit",
                entity_id=serial,
            )

        parsed.append({
            "sale_line_id": coerce_int(sale_line_id, f"line {i} sale_line_id") if sale_line_id is not None else None,
            "product_id": coerce_int(product_id, f"line {i} product_id") if product_id is not None else None,
            "serial_number": serial,
            "quantity": quantity,
        })
    return parsed


# =============================================================================
# MATCHING AGAINST THE ORIGINAL SALE
# =============================================================================

def _returned_quantities(sale_id: int) -> dict[int, int]:
    """Quantity already returned per original sale line."""
    rows = (
        db.session.query(ReturnLine.original_sale_line_id, func.sum(ReturnLine.quantity))
        .join(SalesReturn, SalesReturn.id == ReturnLine.return_id)
        .filter(SalesReturn.original_sale_id == sale_id)
        .group_by(ReturnLine.original_sale_line_id)
        .all()
    )
    return {line_id: int(qty or 0) for line_id, qty in rows}


def _match_line(sale: Sale, sale_lines: list[SaleLine], request: dict, returned: dict[int, int]) -> SaleLine:
    if request["sale_line_id"] is not None:
        candidates = [l for l in sale_lines if l.id == request["sale_line_id"]]
        if not candidates:
            raise InvalidReturnError(
                f"Line {request['sale_line_id']} is not part of sale #{sale.id}",
                entity_id=request["sale_line_id"],
            )
    else:
        candidates = [
            l for l in sale_lines
            if l.product_id == request["product_id"] and l.serial_number == request["serial_number"]
        ]
        if not candidates:
            what = f"serial {request['serial_number']}" if request["serial_number"] else f"product {request['product_id']}"
            raise InvalidReturnError(
                f"Sale #{sale.id} has no line for {what}",
                entity_id=request["serial_number"] or request["product_id"],
            )

    for line in candidates:
        if request["product_id"] is not None and line.product_id != request["product_id"]:
            continue
        if request["serial_number"] is not None and line.serial_number != request["serial_number"]:
            continue
        if line.quantity - returned.get(line.id, 0) >= request["quantity"]:
            return line

    returnable = sum(l.quantity - returned.get(l.id, 0) for l in candidates)
    raise InvalidReturnError(
        f"Cannot return {request['quantity']}: only {returnable} left to return on sale #{sale.id}",
        entity_id=candidates[0].id,
        details={"requested": request["quantity"], "returnable": returnable},
    )


# =============================================================================
# RETURN CREATION
# =============================================================================

def create_sales_return(
    *,
    original_sale_id: int,
    lines,
    customer_id: int | None = None,
) -> SalesReturn:
    """
    Take goods back against an earlier sale.

    Each line is {"sale_line_id"?, "product_id"?, "serial_number"?, "quantity"}.
    The original sale's customer is used when no customer_id is given.

    Raises:
        SaleNotFoundError / CustomerNotFoundError
        InvalidReturnError: line does not match the sale or exceeds what is left
        UnitNotAvailableError: the serialized unit is not currently sold
    """
    if original_sale_id is None:
        raise ValidationError("original_sale_id is required", operation=OPERATION)
    original_sale_id = coerce_int(original_sale_id, "original_sale_id")
    if customer_id is not None:
        customer_id = coerce_int(customer_id, "customer_id")
    parsed_lines = _parse_lines(lines)

    def _op():
        sale = lock_for_update(db.session.query(Sale).filter_by(id=original_sale_id)).first()
        if sale is None:
            raise SaleNotFoundError(f"Sale {original_sale_id} not found", entity_id=original_sale_id)

        resolved_customer_id = get_customer(customer_id).id if customer_id is not None else sale.customer_id

        sale_lines = SaleLine.query.filter_by(sale_id=sale.id).order_by(SaleLine.id).all()
        returned = _returned_quantities(sale.id)

        matched = []
        for request in parsed_lines:
            sale_line = _match_line(sale, sale_lines, request, returned)
            # Later lines of the same request see this one as already returned
            returned[sale_line.id] = returned.get(sale_line.id, 0) + request["quantity"]
            matched.append((sale_line, request["quantity"]))

        sales_return = SalesReturn(
            original_sale_id=sale.id,
            customer_id=resolved_customer_id,
            total_refund_cents=sum(l.unit_price_cents * qty for l, qty in matched),
        )
        db.session.add(sales_return)
        db.session.flush()

        db.session.add_all([
            ReturnLine(
                return_id=sales_return.id,
                original_sale_line_id=sale_line.id,
                product_id=sale_line.product_id,
                quantity=qty,
                unit_price_cents=sale_line.unit_price_cents,
                unit_cost_cents=sale_line.unit_cost_cents,
                line_refund_cents=sale_line.unit_price_cents * qty,
                serial_number=sale_line.serial_number,
            )
            for sale_line, qty in matched
        ])
        db.session.flush()

        for sale_line, qty in matched:
            if sale_line.serial_number is not None:
                try:
                    transition_unit(
                        sale_line.serial_number,
                        UNIT_STATUS_SOLD,
                        UNIT_STATUS_IN_STOCK,
                        return_id=sales_return.id,
                    )
                except StaleUnitStateError as exc:
                    raise UnitNotAvailableError(
                        f"Unit {sale_line.serial_number} is not currently sold",
                        entity_id=sale_line.serial_number,
                        details=exc.details,
                    ) from exc
            else:
                adjust_aggregate_stock(sale_line.product_id, qty)

        if sales_return.total_refund_cents > 0:
            append_entry(
                DIRECTION_WITHDRAWAL,
                sales_return.total_refund_cents,
                f"return of sale #{sale.id}",
                reference_type="return",
                reference_id=sales_return.id,
            )

        return sales_return

    return unit_of_work(OPERATION, _op)


def get_return(return_id: int) -> SalesReturn:
    sales_return = db.session.get(SalesReturn, return_id)
    if sales_return is None:
        raise ReturnNotFoundError(f"Return {return_id} not found", entity_id=return_id)
    return sales_return
