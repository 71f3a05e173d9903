"""
Sales Service - one-shot sale posting

WHY: A sale moves stock, money and (for credit sales) debt at the same time.
The whole thing is one unit of work: a failure at any step leaves the sale
tables, stock units, aggregate counts and the ledger exactly as they were,
including a customer created for this sale.

ORDER OF WRITES:
1. New customer (when a new-customer payload is given)
2. Sale header, then its lines
3. Stock per line: serial CAS in_stock -> sold, or aggregate decrement
4. Cash: ledger deposit of the total
   Installment: plan + installments, profit += interest, down payment deposit
"""

from __future__ import annotations

from datetime import date

from ..errors import (
    CashCustomerCreditError,
    InsufficientStockError,
    InvalidProductError,
    NegativeStockError,
    SaleNotFoundError,
    SerialCountMismatchError,
    StaleUnitStateError,
    UnitNotAvailableError,
    ValidationError,
)
from ..extensions import db
from ..models import Installment, InstallmentPlan, Product, Sale, SaleLine
from ..models.inventory import UNIT_STATUS_IN_STOCK, UNIT_STATUS_SOLD
from ..models.ledger import DIRECTION_DEPOSIT
from ..models.sales import PAYMENT_TYPE_CASH, PAYMENT_TYPE_INSTALLMENT, PAYMENT_TYPES
from ..validation import coerce_cents, coerce_int
from mshop.time_utils import parse_iso_date, today
from .catalog_service import _create_customer_inner, get_customer
from .concurrency import unit_of_work
from .installment_schedule import build_schedule
from .ledger_service import append_entry
from .stock_service import adjust_aggregate_stock, get_product, transition_unit


OPERATION = "CreateSale"

GUARANTOR_FIELDS = ("guarantor_name", "guarantor_phone", "guarantor_address", "guarantor_national_id")


# =============================================================================
# REQUEST PARSING (no store access)
# =============================================================================

def _parse_lines(lines) -> list[dict]:
    if not isinstance(lines, list) or not lines:
        raise ValidationError("A sale needs at least one line")

    parsed = []
    for i, raw in enumerate(lines, start=1):
        if not isinstance(raw, dict):
            raise ValidationError(f"line {i} must be an object")
        if raw.get("product_id") is None:
            raise ValidationError(f"line {i}: product_id is required")

        serial = raw.get("serial_number")
        serial = str(serial).strip() if serial is not None else None
        if serial == "":
            serial = None

        quantity = coerce_int(raw.get("quantity", 1), f"line {i} quantity")
        if quantity <= 0:
            raise ValidationError(f"line {i}: quantity must be > 0")
        if serial is not None and quantity != 1:
            raise SerialCountMismatchError(
                f"line {i}: a serialized line sells exactly one unit",
                entity_id=serial,
                details={"quantity": quantity},
            )

        parsed.append({
            "product_id": coerce_int(raw["product_id"], f"line {i} product_id"),
            "quantity": quantity,
            "serial_number": serial,
            "unit_price_cents": (
                coerce_cents(raw["unit_price_cents"], f"line {i} unit_price_cents")
                if raw.get("unit_price_cents") is not None
                else None
            ),
        })
    return parsed


def _parse_terms(terms) -> dict:
    if not isinstance(terms, dict):
        raise ValidationError("installment_terms are required for installment sales")

    parsed = {
        "down_payment_cents": coerce_cents(terms.get("down_payment_cents", 0), "down_payment_cents"),
        "interest_rate_bps": coerce_int(terms.get("interest_rate_bps", 0), "interest_rate_bps"),
        "months": coerce_int(terms.get("months"), "months") if terms.get("months") is not None else 0,
    }

    start = terms.get("start_date")
    if isinstance(start, date):
        parsed["start_date"] = start
    elif start is not None and not isinstance(start, str):
        raise ValidationError("start_date must be an ISO-8601 date (YYYY-MM-DD)")
    else:
        try:
            parsed["start_date"] = parse_iso_date(start) if start else None
        except ValueError:
            raise ValidationError("start_date must be an ISO-8601 date (YYYY-MM-DD)")

    due_day = terms.get("due_day")
    parsed["due_day"] = coerce_int(due_day, "due_day") if due_day is not None else None

    for field in GUARANTOR_FIELDS:
        value = terms.get(field)
        parsed[field] = str(value).strip() if value not in (None, "") else None
    return parsed


# =============================================================================
# SALE CREATION
# =============================================================================

def _sell_line(sale: Sale, product: Product, line: dict) -> None:
    serial = line["serial_number"]

    if serial is not None:
        if not product.is_serialized:
            raise InvalidProductError(
                f"Product {product.id} is not serialized; serial {serial} cannot be sold against it",
                entity_id=product.id,
            )
        try:
            unit = transition_unit(serial, UNIT_STATUS_IN_STOCK, UNIT_STATUS_SOLD, sale_id=sale.id)
        except StaleUnitStateError as exc:
            raise UnitNotAvailableError(
                f"Unit {serial} is not available for sale",
                entity_id=serial,
                details=exc.details,
            ) from exc
        if unit.product_id != product.id:
            raise InvalidProductError(
                f"Serial {serial} belongs to product {unit.product_id}, not {product.id}",
                entity_id=serial,
            )
        return

    if product.is_serialized:
        raise SerialCountMismatchError(
            f"Product {product.id} is serialized; each unit must be sold by serial number",
            entity_id=product.id,
        )
    try:
        adjust_aggregate_stock(product.id, -line["quantity"])
    except NegativeStockError as exc:
        raise InsufficientStockError(
            f"Insufficient stock for {product.name}: {exc.details.get('available')} available",
            entity_id=product.id,
            details=exc.details,
        ) from exc


def _create_plan(sale: Sale, customer_id: int, terms: dict) -> InstallmentPlan:
    start_date = terms["start_date"] or today()
    due_day = terms["due_day"] if terms["due_day"] is not None else start_date.day

    schedule = build_schedule(
        principal_cents=sale.total_cents,
        down_payment_cents=terms["down_payment_cents"],
        interest_rate_bps=terms["interest_rate_bps"],
        months=terms["months"],
        due_day=due_day,
        start_date=start_date,
    )

    plan = InstallmentPlan(
        sale_id=sale.id,
        customer_id=customer_id,
        principal_cents=schedule.principal_cents,
        interest_rate_bps=schedule.interest_rate_bps,
        interest_amount_cents=schedule.interest_amount_cents,
        total_amount_cents=schedule.total_amount_cents,
        down_payment_cents=schedule.down_payment_cents,
        remaining_amount_cents=schedule.remaining_amount_cents,
        number_of_months=schedule.months,
        monthly_installment_cents=schedule.monthly_amount_cents,
        start_date=schedule.start_date,
        due_day=schedule.due_day,
        **{field: terms[field] for field in GUARANTOR_FIELDS},
    )
    db.session.add(plan)
    db.session.flush()

    db.session.add_all([
        Installment(
            plan_id=plan.id,
            sequence=item.sequence,
            due_date=item.due_date,
            amount_cents=item.amount_cents,
        )
        for item in schedule.installments
    ])

    # Credit sales earn their interest on top of the margin
    sale.profit_cents += schedule.interest_amount_cents
    db.session.flush()
    return plan


def create_sale(
    *,
    lines,
    payment_type: str,
    customer_id: int | None = None,
    new_customer: dict | None = None,
    installment_terms: dict | None = None,
) -> Sale:
    """
    Post a complete sale in one unit of work.

    Each line is {"product_id", "quantity", "serial_number"?, "unit_price_cents"?}.
    The price defaults to the product's selling price; the cost is always
    snapshotted from the product's purchase price.

    Raises:
        ValidationError / SerialCountMismatchError / InvalidTermError: bad input
        CashCustomerCreditError: installment sale without a customer
        ProductNotFoundError / SerialNotFoundError / CustomerNotFoundError
        UnitNotAvailableError: serial is not in stock (sold, or lost a race)
        InsufficientStockError: aggregate stock would go negative
    """
    parsed_lines = _parse_lines(lines)
    if payment_type not in PAYMENT_TYPES:
        raise ValidationError(f"payment_type must be one of {', '.join(PAYMENT_TYPES)}")
    if customer_id is not None and new_customer is not None:
        raise ValidationError("Give either customer_id or new_customer, not both")
    if customer_id is not None:
        customer_id = coerce_int(customer_id, "customer_id")
    if new_customer is not None and not isinstance(new_customer, dict):
        raise ValidationError("new_customer must be an object")

    terms = None
    if payment_type == PAYMENT_TYPE_INSTALLMENT:
        if customer_id is None and not new_customer:
            raise CashCustomerCreditError(
                "Installment sales need a customer; walk-in cash customers cannot buy on credit",
                operation=OPERATION,
            )
        terms = _parse_terms(installment_terms)

    def _op():
        if new_customer:
            resolved_customer_id = _create_customer_inner(new_customer).id
        elif customer_id is not None:
            resolved_customer_id = get_customer(customer_id).id
        else:
            resolved_customer_id = None

        products: dict[int, Product] = {}
        total = 0
        profit = 0
        for line in parsed_lines:
            product = products.get(line["product_id"]) or get_product(line["product_id"])
            if not product.is_active:
                raise InvalidProductError(f"Product {product.id} is inactive", entity_id=product.id)
            products[product.id] = product

            if line["unit_price_cents"] is None:
                line["unit_price_cents"] = product.selling_price_cents
            line["unit_cost_cents"] = product.purchase_price_cents
            line["line_total_cents"] = line["quantity"] * line["unit_price_cents"]

            total += line["line_total_cents"]
            profit += line["quantity"] * (line["unit_price_cents"] - line["unit_cost_cents"])

        sale = Sale(
            customer_id=resolved_customer_id,
            payment_type=payment_type,
            total_cents=total,
            profit_cents=profit,
        )
        db.session.add(sale)
        db.session.flush()

        db.session.add_all([
            SaleLine(
                sale_id=sale.id,
                product_id=line["product_id"],
                quantity=line["quantity"],
                unit_price_cents=line["unit_price_cents"],
                unit_cost_cents=line["unit_cost_cents"],
                line_total_cents=line["line_total_cents"],
                serial_number=line["serial_number"],
            )
            for line in parsed_lines
        ])
        db.session.flush()

        for line in parsed_lines:
            _sell_line(sale, products[line["product_id"]], line)

        if payment_type == PAYMENT_TYPE_CASH:
            if total > 0:
                append_entry(
                    DIRECTION_DEPOSIT,
                    total,
                    f"cash sale #{sale.id}",
                    reference_type="sale",
                    reference_id=sale.id,
                )
        else:
            plan = _create_plan(sale, resolved_customer_id, terms)
            if plan.down_payment_cents > 0:
                append_entry(
                    DIRECTION_DEPOSIT,
                    plan.down_payment_cents,
                    f"down payment #{sale.id}",
                    reference_type="sale",
                    reference_id=sale.id,
                )

        return sale

    return unit_of_work(OPERATION, _op)


def get_sale(sale_id: int) -> Sale:
    sale = db.session.get(Sale, sale_id)
    if sale is None:
        raise SaleNotFoundError(f"Sale {sale_id} not found", entity_id=sale_id)
    return sale
