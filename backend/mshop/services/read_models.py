# Overview: Read-only assembly of denormalized views over the stores; never writes.

"""
Read models

Only the root entity of an assembly may be missing (NotFoundError). Joined
records that have gone away degrade to placeholders instead of failing the
read: a sale line whose product row no longer exists shows "Unknown product",
a sale without a customer shows "Cash customer".
"""

from __future__ import annotations

from datetime import date, datetime, time, timedelta

from flask import current_app
from sqlalchemy import func

from ..errors import ValidationError
from ..extensions import db
from ..models import (
    CashTransferAccount,
    CashTransferTransaction,
    Customer,
    Expense,
    Installment,
    InstallmentPlan,
    Product,
    Purchase,
    ReturnLine,
    Sale,
    SalesReturn,
    StockUnit,
)
from ..models.inventory import UNIT_STATUS_IN_STOCK
from ..models.ledger import BOOK_CASH_TRANSFER, BOOK_MAIN
from ..models.sales import INSTALLMENT_STATUS_PAID, INSTALLMENT_STATUS_PENDING
from mshop.time_utils import to_iso_date, today as utc_today
from .installment_service import get_plan
from .ledger_service import latest_balance, list_entries
from .purchase_service import get_purchase
from .return_service import get_return
from .sales_service import get_sale


CASH_CUSTOMER_NAME = "Cash customer"
UNKNOWN_PRODUCT_NAME = "Unknown product"


def _product_names(product_ids) -> dict[int, str]:
    ids = {pid for pid in product_ids if pid is not None}
    if not ids:
        return {}
    rows = db.session.query(Product.id, Product.name).filter(Product.id.in_(ids)).all()
    return {pid: name for pid, name in rows}


def _customer_summary(customer: Customer | None) -> dict:
    if customer is None:
        return {"id": None, "name": CASH_CUSTOMER_NAME, "phone": None}
    return {"id": customer.id, "name": customer.name, "phone": customer.phone}


# =============================================================================
# DOCUMENT VIEWS
# =============================================================================

def assemble_sale(sale_id: int) -> dict:
    sale = get_sale(sale_id)
    names = _product_names(line.product_id for line in sale.lines)

    lines = []
    for line in sale.lines:
        row = line.to_dict()
        row["product_name"] = names.get(line.product_id, UNKNOWN_PRODUCT_NAME)
        lines.append(row)

    plan = sale.installment_plan
    return {
        "sale": sale.to_dict(),
        "customer": _customer_summary(sale.customer),
        "lines": lines,
        "installment_plan": plan.to_dict() if plan else None,
        "returns": [
            {
                "id": r.id,
                "total_refund_cents": r.total_refund_cents,
                "created_at": r.to_dict()["created_at"],
            }
            for r in sale.returns
        ],
    }


def assemble_plan(plan_id: int, *, as_of: date | None = None) -> dict:
    plan = get_plan(plan_id)
    as_of = as_of or utc_today()

    installments = []
    paid_count = 0
    collected = 0
    for inst in plan.installments:
        row = inst.to_dict()
        if inst.status == INSTALLMENT_STATUS_PAID:
            paid_count += 1
            collected += inst.amount_cents
            row["is_overdue"] = False
        else:
            row["is_overdue"] = inst.due_date < as_of
        installments.append(row)

    return {
        "plan": plan.to_dict(),
        "customer": _customer_summary(plan.customer),
        "installments": installments,
        "paid_count": paid_count,
        "pending_count": len(installments) - paid_count,
        "collected_cents": collected,
        "is_completed": plan.is_completed,
    }


def assemble_purchase(purchase_id: int) -> dict:
    purchase = get_purchase(purchase_id)
    names = _product_names([purchase.product_id])
    return {
        "purchase": purchase.to_dict(),
        "product_name": names.get(purchase.product_id, UNKNOWN_PRODUCT_NAME),
        "supplier": purchase.supplier.to_dict() if purchase.supplier else None,
        "serial_numbers": sorted(u.serial_number for u in purchase.units),
    }


def assemble_return(return_id: int) -> dict:
    sales_return = get_return(return_id)
    names = _product_names(line.product_id for line in sales_return.lines)

    lines = []
    for line in sales_return.lines:
        row = line.to_dict()
        row["product_name"] = names.get(line.product_id, UNKNOWN_PRODUCT_NAME)
        lines.append(row)

    customer = db.session.get(Customer, sales_return.customer_id) if sales_return.customer_id else None
    return {
        "return": sales_return.to_dict(),
        "customer": _customer_summary(customer),
        "lines": lines,
    }


# =============================================================================
# TREASURY VIEWS
# =============================================================================

def ledger_statement(book: str = BOOK_MAIN, *, limit: int = 100) -> dict:
    return {
        "book": book,
        "balance_cents": latest_balance(book),
        "entries": [e.to_dict() for e in list_entries(book, limit=limit)],
    }


def installment_alerts(today: date | None = None) -> dict:
    """Pending installments already late, and those falling due soon."""
    today = today or utc_today()
    horizon = today + timedelta(days=int(current_app.config.get("INSTALLMENT_UPCOMING_DAYS", 7)))

    rows = (
        db.session.query(Installment, Customer.name)
        .join(InstallmentPlan, InstallmentPlan.id == Installment.plan_id)
        .outerjoin(Customer, Customer.id == InstallmentPlan.customer_id)
        .filter(Installment.status == INSTALLMENT_STATUS_PENDING, Installment.due_date <= horizon)
        .order_by(Installment.due_date.asc(), Installment.id.asc())
        .all()
    )

    overdue, upcoming = [], []
    for inst, customer_name in rows:
        item = inst.to_dict()
        item["customer_name"] = customer_name or CASH_CUSTOMER_NAME
        if inst.due_date < today:
            item["days_overdue"] = (today - inst.due_date).days
            overdue.append(item)
        else:
            upcoming.append(item)

    return {"as_of": to_iso_date(today), "overdue": overdue, "upcoming": upcoming}


def stock_overview() -> dict:
    threshold = int(current_app.config.get("LOW_STOCK_THRESHOLD", 3))

    unit_counts = dict(
        db.session.query(StockUnit.product_id, func.count(StockUnit.id))
        .filter(StockUnit.status == UNIT_STATUS_IN_STOCK)
        .group_by(StockUnit.product_id)
        .all()
    )

    products = Product.query.filter_by(is_active=True).order_by(Product.name.asc(), Product.id.asc()).all()
    rows = []
    total_value = 0
    for product in products:
        available = int(unit_counts.get(product.id, 0)) if product.is_serialized else product.stock
        value = available * product.purchase_price_cents
        total_value += value
        rows.append({
            "product_id": product.id,
            "name": product.name,
            "is_serialized": product.is_serialized,
            "available": available,
            "stock_value_cents": value,
        })

    return {
        "products": rows,
        "total_stock_value_cents": total_value,
        "low_stock": [r for r in rows if 0 < r["available"] <= threshold],
        "low_stock_threshold": threshold,
    }


def cash_transfer_overview(today: date | None = None) -> dict:
    today = today or utc_today()
    day_start = datetime.combine(today, time.min)
    day_end = day_start + timedelta(days=1)
    month_start = datetime.combine(today.replace(day=1), time.min)

    def _sums(since: datetime) -> dict[int, tuple[int, int]]:
        rows = (
            db.session.query(
                CashTransferTransaction.account_id,
                func.coalesce(func.sum(CashTransferTransaction.amount_cents), 0),
                func.coalesce(func.sum(CashTransferTransaction.commission_cents), 0),
            )
            .filter(
                CashTransferTransaction.created_at >= since,
                CashTransferTransaction.created_at < day_end,
            )
            .group_by(CashTransferTransaction.account_id)
            .all()
        )
        return {account_id: (int(amount), int(commission)) for account_id, amount, commission in rows}

    daily = _sums(day_start)
    monthly = _sums(month_start)

    accounts = []
    for account in CashTransferAccount.query.order_by(CashTransferAccount.id.asc()).all():
        day_amount, day_commission = daily.get(account.id, (0, 0))
        month_amount, month_commission = monthly.get(account.id, (0, 0))
        accounts.append({
            **account.to_dict(),
            "today_amount_cents": day_amount,
            "today_commission_cents": day_commission,
            "month_amount_cents": month_amount,
            "month_commission_cents": month_commission,
            "daily_limit_remaining_cents": (
                account.daily_limit_cents - day_amount if account.daily_limit_cents else None
            ),
            "monthly_limit_remaining_cents": (
                account.monthly_limit_cents - month_amount if account.monthly_limit_cents else None
            ),
        })

    return {
        "as_of": to_iso_date(today),
        "accounts": accounts,
        "total_balance_cents": sum(a["balance_cents"] for a in accounts),
        "today_commission_cents": sum(a["today_commission_cents"] for a in accounts),
        "month_commission_cents": sum(a["month_commission_cents"] for a in accounts),
        "cash_transfer_book_balance_cents": latest_balance(BOOK_CASH_TRANSFER),
    }


def dashboard_summary() -> dict:
    total_sales, total_profit = db.session.query(
        func.coalesce(func.sum(Sale.total_cents), 0),
        func.coalesce(func.sum(Sale.profit_cents), 0),
    ).one()

    outstanding = (
        db.session.query(func.coalesce(func.sum(InstallmentPlan.remaining_amount_cents), 0))
        .filter(InstallmentPlan.remaining_amount_cents > 0)
        .scalar()
    )
    commission = db.session.query(
        func.coalesce(func.sum(CashTransferTransaction.commission_cents), 0)
    ).scalar()

    return {
        "total_sales_cents": int(total_sales),
        "total_profit_cents": int(total_profit),
        "outstanding_installments_cents": int(outstanding or 0),
        "main_balance_cents": latest_balance(BOOK_MAIN),
        "cash_transfer_commission_cents": int(commission or 0),
        "purchases_count": db.session.query(func.count(Purchase.id)).scalar() or 0,
    }


def _in_period(column, start: date | None, end: date | None):
    """Both bounds are whole days, inclusive."""
    clauses = []
    if start is not None:
        clauses.append(column >= datetime.combine(start, time.min))
    if end is not None:
        clauses.append(column < datetime.combine(end + timedelta(days=1), time.min))
    return clauses


def financial_report(start: date | None = None, end: date | None = None) -> dict:
    """
    Period totals for the shop's own business.

    Refunds reduce sales value, and the margin of every returned line is
    taken back out of profit, so a refunded sale contributes nothing.
    Cash-transfer agency money is not shop income and stays out of this report.
    """
    if start is not None and end is not None and start > end:
        raise ValidationError("start must not be after end", details={"start": to_iso_date(start), "end": to_iso_date(end)})

    sales_count, total_sales, gross_profit = (
        db.session.query(
            func.count(Sale.id),
            func.coalesce(func.sum(Sale.total_cents), 0),
            func.coalesce(func.sum(Sale.profit_cents), 0),
        )
        .filter(*_in_period(Sale.created_at, start, end))
        .one()
    )

    total_refunds = (
        db.session.query(func.coalesce(func.sum(SalesReturn.total_refund_cents), 0))
        .filter(*_in_period(SalesReturn.created_at, start, end))
        .scalar()
    )
    returned_profit = (
        db.session.query(
            func.coalesce(
                func.sum((ReturnLine.unit_price_cents - ReturnLine.unit_cost_cents) * ReturnLine.quantity), 0
            )
        )
        .join(SalesReturn, SalesReturn.id == ReturnLine.return_id)
        .filter(*_in_period(SalesReturn.created_at, start, end))
        .scalar()
    )

    total_purchases = (
        db.session.query(func.coalesce(func.sum(Purchase.total_cost_cents), 0))
        .filter(*_in_period(Purchase.created_at, start, end))
        .scalar()
    )
    total_expenses = (
        db.session.query(func.coalesce(func.sum(Expense.amount_cents), 0))
        .filter(*_in_period(Expense.created_at, start, end))
        .scalar()
    )

    net_profit = int(gross_profit) - int(returned_profit)
    return {
        "start": to_iso_date(start),
        "end": to_iso_date(end),
        "sales_count": int(sales_count),
        "total_sales_cents": int(total_sales),
        "total_refunds_cents": int(total_refunds),
        "net_sales_cents": int(total_sales) - int(total_refunds),
        "gross_profit_cents": int(gross_profit),
        "returned_profit_cents": int(returned_profit),
        "net_profit_cents": net_profit,
        "total_purchases_cents": int(total_purchases),
        "total_expenses_cents": int(total_expenses),
        "net_result_cents": net_profit - int(total_expenses),
    }
